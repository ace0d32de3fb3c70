from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TrainingProgress:
    """One learner's progress through one training.

    Invariant: ``is_completed == (progress_pct >= 100)``.  ``completed_at``
    is stamped on the false→true transition and cleared only when a
    recalculation demotes the learner.
    """

    learner_id: str
    training_id: str
    video_progress_pct: float = 0.0
    video_watched_seconds: int = 0
    quiz_completed: bool = False
    quiz_score: int | None = None
    quiz_postponed: bool = False
    sub_units_completed_count: int = 0  # display only
    sub_units_total_count: int = 0  # display only
    progress_pct: float = 0.0
    is_completed: bool = False
    completed_at: int | None = None

    @staticmethod
    def zero(learner_id: str, training_id: str) -> TrainingProgress:
        # Default-record factory shared by every get-or-create path
        return TrainingProgress(learner_id=learner_id, training_id=training_id)


@dataclass(frozen=True, slots=True)
class SubUnitProgress:
    learner_id: str
    sub_unit_id: str
    video_progress_pct: float = 0.0
    quiz_completed: bool = False
    quiz_score: int | None = None
    is_completed: bool = False  # set only by sub-quiz submission
    completed_at: int | None = None

    @staticmethod
    def zero(learner_id: str, sub_unit_id: str) -> SubUnitProgress:
        return SubUnitProgress(learner_id=learner_id, sub_unit_id=sub_unit_id)


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Derived read model: rebuilt from training completions, never patched."""

    learner_id: str
    course_id: str
    progress_pct: float = 0.0
    is_completed: bool = False
    completed_trainings: int = 0
    total_trainings: int = 0


@dataclass(frozen=True, slots=True)
class ProgressResult:
    progress_pct: float
    is_completed: bool
