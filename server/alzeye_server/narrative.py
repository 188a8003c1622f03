"""
Risk category derivation and category-bound narrative generation.

One ``NarrativeTemplate`` exists per ``RiskCategory``. All three share the
same prompt frame and ask for the same three output fields, so the text
service always receives one well-formed request and the reply always parses
into a ``RiskNarrative``.
"""

import json
import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from .errors import NarrativeGenerationFailure
from .io_schemas import (
    EffectiveResult,
    InterpretResponse,
    NarrativeContext,
    RiskCategory,
    RiskNarrative,
)
from .textgen import TextGenerator

logger = logging.getLogger(__name__)


def derive_risk_category(label: str) -> RiskCategory:
    name = label.lower()
    if name == "normal":
        return RiskCategory.NEGATIVE
    if name == "glaucoma":
        return RiskCategory.POSITIVE
    return RiskCategory.INCONCLUSIVE


def confidence_percent(score: float) -> int:
    """Score in [0,1] as a whole percent, rounding halves up (0.755 -> 76)."""
    pct = Decimal(repr(float(score))) * 100
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_context(effective: EffectiveResult) -> NarrativeContext:
    return NarrativeContext(
        label=effective.label,
        score=effective.score,
        percent=confidence_percent(effective.score),
        category=derive_risk_category(effective.label),
    )


def likelihood_tier(score: float) -> str:
    if score > 0.7:
        return "High"
    if score > 0.4:
        return "Moderate"
    return "Low"


_FRAME = """You are an AI assistant providing preliminary interpretations of eye scan analyses for \
Alzheimer's risk screening. Your language must be professional, cautious, and emphasize that this is \
NOT a diagnosis but a screening result. The analysis resulted in {article} '{category}' risk category.

Analysis Details:
- Effective Predicted Class from Initial Analysis: {label}
- Model Confidence for this Class: {percent}%
- Determined Risk Category for Interpretation: {category}

Generate the interpretation, visualization, and next steps:
- Interpretation: {interpretation}
- Visualization: {visualization}
- Next Steps: {next_steps}

Reply with a single JSON object with exactly these string keys: "interpretation", "visualization", \
"nextSteps". Be empathetic but maintain a factual, professional tone."""

_OPENING = (
    "The initial analysis of your eye scan resulted in an effective classification of "
    "'{label}' with {percent}% confidence by the model."
)


@dataclass(frozen=True)
class NarrativeTemplate:
    category: RiskCategory
    interpretation: str
    visualization: str
    next_steps: str
    extra_fields: Optional[Callable[[NarrativeContext], Dict[str, str]]] = None

    def render(self, ctx: NarrativeContext) -> str:
        if ctx.category is not self.category:
            raise ValueError(f"{self.category.value} template cannot render {ctx.category.value} context")
        fields = {"label": ctx.label, "percent": ctx.percent, "score": ctx.score}
        if self.extra_fields is not None:
            fields.update(self.extra_fields(ctx))
        return _FRAME.format(
            article="an" if self.category is RiskCategory.INCONCLUSIVE else "a",
            category=self.category.value,
            label=ctx.label,
            percent=ctx.percent,
            interpretation=self.interpretation.format(**fields),
            visualization=self.visualization.format(**fields),
            next_steps=self.next_steps.format(**fields),
        )


TEMPLATES: Dict[RiskCategory, NarrativeTemplate] = {
    RiskCategory.NEGATIVE: NarrativeTemplate(
        category=RiskCategory.NEGATIVE,
        interpretation=_OPENING + (
            " This is a reassuring finding. It indicates that, for the ocular characteristics assessed "
            "by this screening tool, no prominent markers often associated with increased Alzheimer's "
            "risk were detected. Based solely on this automated image analysis, the conceptual "
            "Alzheimer's risk is considered very low."
        ),
        visualization=(
            "\"Risk Level: {percent}% Confidence in '{label}' Classification "
            "(Indicates Very Low Alzheimer's Concern from this Scan)\""
        ),
        next_steps=(
            "Continue with regular comprehensive eye examinations as advised by an ophthalmologist. "
            "A balanced diet, regular physical activity and cognitive engagement support long-term "
            "brain health. This tool does not replace professional medical advice."
        ),
    ),
    RiskCategory.POSITIVE: NarrativeTemplate(
        category=RiskCategory.POSITIVE,
        interpretation=_OPENING + (
            " This classification suggests ocular features (for example optic nerve characteristics or "
            "retinal patterns) that some research associates with an increased likelihood of developing "
            "Alzheimer's disease. State clearly that this is a preliminary screening result and NOT a "
            "diagnosis, and that the confidence reflects certainty about ocular features, not a "
            "probability of having Alzheimer's."
        ),
        visualization=(
            "\"Risk Level: {percent}% Confidence in '{label}' Classification. Finding: {tier} Likelihood "
            "of Concerning Ocular Indicators for Alzheimer's Risk Assessment.\""
        ),
        next_steps=(
            "Strongly recommend a comprehensive evaluation: 1. consult an ophthalmologist about the "
            "'{label}' findings; 2. discuss the results with a neurologist or primary care physician "
            "experienced in cognitive health; 3. mention that further diagnostic tests may be "
            "recommended. This tool does not replace professional medical advice, diagnosis, or treatment."
        ),
        extra_fields=lambda ctx: {"tier": likelihood_tier(ctx.score)},
    ),
    RiskCategory.INCONCLUSIVE: NarrativeTemplate(
        category=RiskCategory.INCONCLUSIVE,
        interpretation=_OPENING + (
            " The observed ocular features did not strongly align with either the 'Normal' or typical "
            "'Glaucoma-like' patterns this tool is trained to differentiate, so the implication for "
            "Alzheimer's risk is unclear without further expert assessment."
        ),
        visualization=(
            "\"Risk Level: Inconclusive ({label} at {percent}% Confidence) - Requires Expert Medical Review\""
        ),
        next_steps=(
            "Recommend consulting an ophthalmologist or general practitioner to interpret the '{label}' "
            "finding, who will decide whether further evaluation is needed. This tool does not replace "
            "professional medical advice, diagnosis, or treatment."
        ),
    ),
}

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_narrative(text: str) -> RiskNarrative:
    raw = _FENCE.sub("", (text or "").strip())
    if not raw:
        raise NarrativeGenerationFailure("text service returned an empty reply")
    try:
        return RiskNarrative.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise NarrativeGenerationFailure(f"malformed narrative from text service: {e}") from e


class RiskNarrator:
    """Turns an effective result into a category-specific narrative."""

    def __init__(self, generator: TextGenerator, templates: Optional[Dict[RiskCategory, NarrativeTemplate]] = None):
        self._generator = generator
        self._templates = templates or TEMPLATES

    def interpret(self, effective: EffectiveResult) -> InterpretResponse:
        ctx = build_context(effective)
        prompt = self._templates[ctx.category].render(ctx)
        logger.info("requesting %s narrative for %s (%d%%)", ctx.category.value, ctx.label, ctx.percent)
        try:
            reply = self._generator.generate(prompt)
        except NarrativeGenerationFailure:
            raise
        except Exception as e:
            raise NarrativeGenerationFailure(f"text service error: {e}") from e
        narrative = parse_narrative(reply)
        return InterpretResponse(
            effective=effective,
            risk_category=ctx.category,
            confidence_percent=ctx.percent,
            narrative=narrative,
        )
