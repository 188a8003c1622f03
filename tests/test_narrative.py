"""Tests for alzeye_server.narrative."""

import json

import pytest

from alzeye_server.errors import NarrativeGenerationFailure
from alzeye_server.io_schemas import EffectiveResult, RiskCategory
from alzeye_server.narrative import (
    TEMPLATES,
    RiskNarrator,
    build_context,
    confidence_percent,
    derive_risk_category,
    likelihood_tier,
    parse_narrative,
)
from alzeye_server.reducer import reduce_predictions

from conftest import NARRATIVE_JSON, FakeGenerator, pairs


class TestRiskCategory:
    @pytest.mark.parametrize("label", ["Glaucoma", "glaucoma", "GLAUCOMA", "gLAUCOMA"])
    def test_glaucoma_is_positive(self, label):
        assert derive_risk_category(label) is RiskCategory.POSITIVE

    @pytest.mark.parametrize("label", ["Normal", "normal", "NORMAL"])
    def test_normal_is_negative(self, label):
        assert derive_risk_category(label) is RiskCategory.NEGATIVE

    @pytest.mark.parametrize("label", ["Cataract", "", "normal eye", " glaucoma", "Glaucomatous"])
    def test_anything_else_is_inconclusive(self, label):
        assert derive_risk_category(label) is RiskCategory.INCONCLUSIVE


class TestConfidencePercent:
    def test_rounds_down_below_half(self):
        assert confidence_percent(0.754) == 75

    def test_rounds_half_up(self):
        assert confidence_percent(0.755) == 76

    def test_bounds(self):
        assert confidence_percent(0.0) == 0
        assert confidence_percent(1.0) == 100

    def test_exact(self):
        assert confidence_percent(0.82) == 82
        assert confidence_percent(0.005) == 1


class TestTemplates:
    def test_one_template_per_category(self):
        assert set(TEMPLATES) == set(RiskCategory)
        for category, template in TEMPLATES.items():
            assert template.category is category

    @pytest.mark.parametrize("label,score", [("Glaucoma", 0.82), ("Normal", 0.95), ("Cataract", 0.6)])
    def test_same_output_contract(self, label, score):
        ctx = build_context(EffectiveResult(label=label, score=score))
        prompt = TEMPLATES[ctx.category].render(ctx)
        assert '"interpretation", "visualization", "nextSteps"' in prompt
        assert f"'{ctx.category.value}' risk category" in prompt
        assert f"{ctx.percent}%" in prompt
        assert label in prompt

    def test_rejects_other_category(self):
        ctx = build_context(EffectiveResult(label="Normal", score=0.9))
        with pytest.raises(ValueError):
            TEMPLATES[RiskCategory.POSITIVE].render(ctx)

    @pytest.mark.parametrize("score,tier", [(0.71, "High"), (0.7, "Moderate"), (0.41, "Moderate"), (0.4, "Low")])
    def test_likelihood_tier(self, score, tier):
        assert likelihood_tier(score) == tier

    def test_positive_template_states_tier(self):
        ctx = build_context(EffectiveResult(label="Glaucoma", score=0.55))
        assert "Moderate Likelihood" in TEMPLATES[RiskCategory.POSITIVE].render(ctx)

    def test_label_with_braces_is_not_reformatted(self):
        ctx = build_context(EffectiveResult(label="odd {label}", score=0.3))
        assert "odd {label}" in TEMPLATES[RiskCategory.INCONCLUSIVE].render(ctx)


class TestParseNarrative:
    def test_valid(self):
        n = parse_narrative(NARRATIVE_JSON)
        assert n.next_steps == "Consult an ophthalmologist."

    def test_code_fence_is_stripped(self):
        n = parse_narrative(f"```json\n{NARRATIVE_JSON}\n```")
        assert n.interpretation.startswith("The scan")

    @pytest.mark.parametrize("text", [
        "",
        "not json",
        "[]",
        json.dumps({"interpretation": "x", "visualization": "y"}),
        json.dumps({"interpretation": "x", "visualization": "  ", "nextSteps": "z"}),
    ])
    def test_malformed(self, text):
        with pytest.raises(NarrativeGenerationFailure):
            parse_narrative(text)


class TestRiskNarrator:
    def test_single_call_with_matching_template(self):
        gen = FakeGenerator()
        out = RiskNarrator(gen).interpret(EffectiveResult(label="Normal", score=0.95))
        assert len(gen.prompts) == 1
        assert "'negative' risk category" in gen.prompts[0]
        assert out.risk_category is RiskCategory.NEGATIVE
        assert out.confidence_percent == 95
        assert out.effective.label == "Normal"

    def test_generator_error_becomes_narrative_failure(self):
        gen = FakeGenerator(error=RuntimeError("quota exceeded"))
        with pytest.raises(NarrativeGenerationFailure) as exc:
            RiskNarrator(gen).interpret(EffectiveResult(label="Glaucoma", score=0.6))
        assert "quota exceeded" in exc.value.message
        assert exc.value.user_message == NarrativeGenerationFailure.generic_message
        assert len(gen.prompts) == 1

    def test_malformed_reply(self):
        gen = FakeGenerator(reply='{"interpretation": ""}')
        with pytest.raises(NarrativeGenerationFailure):
            RiskNarrator(gen).interpret(EffectiveResult(label="Cataract", score=0.6))


class TestScenarios:
    def test_a_glaucoma(self):
        gen = FakeGenerator()
        eff = reduce_predictions(pairs(("Glaucoma", 0.82), ("Normal", 0.18)))
        out = RiskNarrator(gen).interpret(eff)
        assert (eff.label, eff.score) == ("Glaucoma", 0.82)
        assert out.risk_category is RiskCategory.POSITIVE
        assert out.confidence_percent == 82
        assert "'positive' risk category" in gen.prompts[0]
        assert "82%" in gen.prompts[0]

    def test_b_normal(self):
        gen = FakeGenerator()
        eff = reduce_predictions(pairs(("Normal", 0.95), ("Glaucoma", 0.05)))
        out = RiskNarrator(gen).interpret(eff)
        assert (eff.label, eff.score) == ("Normal", 0.95)
        assert out.risk_category is RiskCategory.NEGATIVE
        assert out.confidence_percent == 95

    def test_c_unknown_label(self):
        gen = FakeGenerator()
        eff = reduce_predictions(pairs(("Cataract", 0.60)))
        out = RiskNarrator(gen).interpret(eff)
        assert (eff.label, eff.score) == ("Cataract", 0.60)
        assert out.risk_category is RiskCategory.INCONCLUSIVE
        assert "'inconclusive' risk category" in gen.prompts[0]
