"""Pure progress computation for trainings and their sub-units.

Nothing in here reads or writes a store.  Callers fetch a fresh snapshot
(content shape + signals), call ``calculate`` and decide what to persist,
including the ``completed_at`` transition.  Same inputs, same output.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.models.content import SubUnitShape, TrainingContentShape
from app.models.progress import ProgressResult
from app.services.weights import weights_for

logger = logging.getLogger(__name__)

SUB_UNIT_VIDEO_WEIGHT = 0.7
SUB_UNIT_QUIZ_WEIGHT = 0.3


@dataclass(frozen=True, slots=True)
class SubUnitSignals:
    video_progress_pct: float = 0.0
    quiz_completed: bool = False


@dataclass(frozen=True, slots=True)
class TrainingSignals:
    """Raw learner signals for one training.

    ``sub_units`` is aligned with ``TrainingContentShape.sub_unit_shapes``;
    an unstarted sub-unit is represented by a zero ``SubUnitSignals``.
    """

    video_progress_pct: float = 0.0
    quiz_completed: bool = False
    sub_units: tuple[SubUnitSignals, ...] = ()


def round_half_up(value: float, places: int = 0) -> float:
    # round() does banker's rounding; percentages and scores round half up
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _clamp_pct(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(100.0, value))


def score_sub_unit(shape: SubUnitShape, signals: SubUnitSignals) -> float:
    """Completion of one sub-unit in [0, 100], split 70 video / 30 quiz.

    A missing component hands its share to the other one; a sub-unit with
    neither scores 0.  The quiz share is all-or-nothing on ``quiz_completed``.
    """
    earned = 0.0
    total_weight = 0.0
    if shape.has_video:
        earned += _clamp_pct(signals.video_progress_pct) * SUB_UNIT_VIDEO_WEIGHT
        total_weight += SUB_UNIT_VIDEO_WEIGHT
    if shape.has_quiz:
        if signals.quiz_completed:
            earned += 100 * SUB_UNIT_QUIZ_WEIGHT
        total_weight += SUB_UNIT_QUIZ_WEIGHT
    if total_weight == 0:
        return 0.0
    return earned / total_weight


def average_sub_unit_progress(
    shapes: Sequence[SubUnitShape], signals: Sequence[SubUnitSignals]
) -> float:
    """Mean sub-unit completion over *all* sub-units, started or not."""
    if not shapes:
        return 0.0
    total = 0.0
    for i, shape in enumerate(shapes):
        sig = signals[i] if i < len(signals) else SubUnitSignals()
        total += score_sub_unit(shape, sig)
    return total / len(shapes)


def calculate(signals: TrainingSignals, shape: TrainingContentShape) -> ProgressResult:
    weights = weights_for(shape)
    if weights is None:
        logger.debug("Training has no components; progress fixed at 0")
        return ProgressResult(progress_pct=0.0, is_completed=False)

    total = 0.0
    if weights.video:
        total += _clamp_pct(signals.video_progress_pct) * weights.video
    if weights.quiz and signals.quiz_completed:
        total += 100 * weights.quiz
    if weights.sub_units:
        avg = average_sub_unit_progress(shape.sub_unit_shapes, signals.sub_units)
        total += avg * weights.sub_units

    progress = _clamp_pct(round_half_up(total, 2))
    return ProgressResult(progress_pct=progress, is_completed=progress >= 100)
