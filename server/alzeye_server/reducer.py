"""Reduce raw classifier output to the single result that drives interpretation."""

import logging
from typing import List, Optional, Sequence

from .io_schemas import ClassificationPair, EffectiveResult

logger = logging.getLogger(__name__)

GLAUCOMA = "glaucoma"
NORMAL = "normal"


def _find(pairs: Sequence[ClassificationPair], label: str) -> Optional[ClassificationPair]:
    for p in pairs:
        if p.label.lower() == label:
            return p
    return None


def _top(pairs: Sequence[ClassificationPair]) -> ClassificationPair:
    # first pair wins on exact ties
    best = pairs[0]
    for p in pairs[1:]:
        if p.probability > best.probability:
            best = p
    return best


def sort_predictions(pairs: Sequence[ClassificationPair]) -> List[ClassificationPair]:
    """Breakdown for display: descending probability, input order kept on ties."""
    return sorted(pairs, key=lambda p: p.probability, reverse=True)


def reduce_predictions(pairs: Sequence[ClassificationPair]) -> EffectiveResult:
    """
    Pick the effective label and score from a non-empty set of pairs.

    Glaucoma wins only when strictly more probable than normal; an exact tie
    goes to normal. A missing label counts as probability 0 for the
    comparison. When neither label is present the most probable pair wins.
    """
    glaucoma = _find(pairs, GLAUCOMA)
    normal = _find(pairs, NORMAL)
    p_glaucoma = glaucoma.probability if glaucoma else 0.0
    p_normal = normal.probability if normal else 0.0

    if glaucoma is not None and p_glaucoma > p_normal:
        chosen = glaucoma
    elif normal is not None and p_normal >= p_glaucoma:
        chosen = normal
    elif glaucoma is not None and normal is None:
        chosen = glaucoma
    else:
        chosen = _top(pairs)

    logger.debug("effective result %s=%.4f from %d pairs", chosen.label, chosen.probability, len(pairs))
    return EffectiveResult(label=chosen.label, score=chosen.probability)
