"""Component weights for a training's progress percentage.

Priority is fixed: video > quiz > sub-units.  Only which components are
present matters; how many sub-units or how long the video is does not.

  video  quiz  sub-units   →  video / quiz / sub-units
    ✓     ✓       ✓           0.50 / 0.30 / 0.20
    ✓     ✓       ✗           0.50 / 0.50 / 0
    ✓     ✗       ✓           0.60 / 0    / 0.40
    ✗     ✓       ✓           0    / 0.60 / 0.40
    ✓     ✗       ✗           1.0  / 0    / 0
    ✗     ✓       ✗           0    / 1.0  / 0
    ✗     ✗       ✓           0    / 0    / 1.0
    ✗     ✗       ✗           no weights: callers report 0%, not completed
"""

from __future__ import annotations

from dataclasses import dataclass

from app.models.content import TrainingContentShape


@dataclass(frozen=True, slots=True)
class Weights:
    video: float
    quiz: float
    sub_units: float


_TABLE: dict[tuple[bool, bool, bool], Weights] = {
    (True, True, True): Weights(0.5, 0.3, 0.2),
    (True, True, False): Weights(0.5, 0.5, 0.0),
    (True, False, True): Weights(0.6, 0.0, 0.4),
    (False, True, True): Weights(0.0, 0.6, 0.4),
    (True, False, False): Weights(1.0, 0.0, 0.0),
    (False, True, False): Weights(0.0, 1.0, 0.0),
    (False, False, True): Weights(0.0, 0.0, 1.0),
}


def weights_for(shape: TrainingContentShape) -> Weights | None:
    """Return the weights for ``shape``, or None when it has no components."""
    return _TABLE.get((shape.has_video, shape.has_quiz, shape.has_sub_units))
