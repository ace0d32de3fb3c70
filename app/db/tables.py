"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/.
The domain models stay as-is; these tables are the persistence layer.
Repos convert between SQLAlchemy rows and domain dataclasses.

Quiz questions are kept as the JSON text trainers author; the Pg content
repo normalizes them into ``Question`` objects on read.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base

_ID = 64  # uuid4 strings and external learner ids

# --- Content graph ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)


class TrainingRow(Base):
    __tablename__ = "trainings"

    id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(_ID), ForeignKey("courses.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    video_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    minimum_watch_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SubUnitRow(Base):
    __tablename__ = "sub_units"

    id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    training_id: Mapped[str] = mapped_column(
        String(_ID),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    video_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)


class QuizRow(Base):
    """Attached to exactly one of a training or a sub-unit."""

    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    training_id: Mapped[str | None] = mapped_column(
        String(_ID),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
    )
    sub_unit_id: Mapped[str | None] = mapped_column(
        String(_ID),
        ForeignKey("sub_units.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    allow_retake: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_attempts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    questions_to_show: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    questions_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")


# --- Learner progress ---


class TrainingProgressRow(Base):
    __tablename__ = "training_progress"

    learner_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    training_id: Mapped[str] = mapped_column(
        String(_ID),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    video_progress_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    video_watched_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    quiz_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiz_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quiz_postponed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sub_units_completed_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    sub_units_total_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    progress_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class SubUnitProgressRow(Base):
    __tablename__ = "sub_unit_progress"

    learner_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    sub_unit_id: Mapped[str] = mapped_column(
        String(_ID), ForeignKey("sub_units.id", ondelete="CASCADE"), primary_key=True
    )
    video_progress_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    quiz_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiz_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class CourseProgressRow(Base):
    """Projection / read model, derived from training_progress."""

    __tablename__ = "course_progress"

    learner_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(_ID), ForeignKey("courses.id"), primary_key=True, index=True
    )
    progress_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_trainings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_trainings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(_ID), nullable=False)
    # No FK: attempts outlive a deleted quiz
    quiz_id: Mapped[str] = mapped_column(String(_ID), nullable=False, index=True)
    attempt_no: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answers_json: Mapped[str] = mapped_column(Text, nullable=False)
    started_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)


# --- Gamification ---


class LearnerStatsRow(Base):
    __tablename__ = "learner_stats"

    learner_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    diamonds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LearnerRewardRow(Base):
    """One row per completion a learner has been paid XP for."""

    __tablename__ = "learner_rewards"

    learner_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    training_id: Mapped[str] = mapped_column(String(_ID), primary_key=True)
    completed_at: Mapped[int] = mapped_column(Integer, primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False)
