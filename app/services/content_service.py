"""Trainer-facing content mutations.

Any change to what a training is made of (its quiz, its sub-units, a
sub-unit's quiz) changes the weights or the sub-unit average for every
learner on it.  Each such mutation is followed, in the same request, by
a recalculation of that training, and learners whose completed training
became incomplete are handed to the notification sink.

Editing an existing quiz's questions does not change the content shape,
so it does not trigger a recalculation.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from app.models.content import Course, Quiz, SubUnit, Training, parse_questions
from app.repos.bundle import Repos
from app.services import course_aggregator
from app.services.errors import NotFoundError, ValidationError
from app.services.notifications import NotificationSink
from app.services.recalculation import (
    Clock,
    RecalculationReport,
    recalculate_training,
    system_clock,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuizSpec:
    """Trainer-supplied quiz definition, questions still in stored JSON shape."""

    questions: Sequence[dict[str, Any]]
    title: str = ""
    passing_score: int = 70
    allow_retake: bool = True
    max_attempts: int | None = None
    questions_to_show: int | None = None
    time_limit: int | None = None


@dataclass(frozen=True, slots=True)
class ContentChange:
    training: Training
    created: bool = False
    report: RecalculationReport | None = None
    notified: int = 0

    @property
    def affected_learner_ids(self) -> list[str]:
        return list(self.report.affected_learner_ids) if self.report else []


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _require_text(value: str, name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{name} must be non-empty")
    return value


def _require_non_negative(value: int | None, name: str) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{name} must be >= 0")


def _build_quiz(draft: QuizSpec, existing: Quiz | None) -> Quiz:
    if not draft.questions:
        raise ValidationError("quiz must have at least one question")
    if not all(isinstance(q, dict) for q in draft.questions):
        raise ValidationError("each question must be an object")
    if not 0 <= draft.passing_score <= 100:
        raise ValidationError("passing_score must be between 0 and 100")
    if draft.max_attempts is not None and draft.max_attempts < 1:
        raise ValidationError("max_attempts must be >= 1")
    if draft.questions_to_show is not None and draft.questions_to_show < 1:
        raise ValidationError("questions_to_show must be >= 1")
    _require_non_negative(draft.time_limit, "time_limit")
    try:
        questions = parse_questions(list(draft.questions))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid question: {e}") from None

    fields = dict(
        questions=questions,
        title=draft.title,
        passing_score=draft.passing_score,
        allow_retake=draft.allow_retake,
        max_attempts=draft.max_attempts,
        questions_to_show=draft.questions_to_show,
        time_limit=draft.time_limit,
    )
    if existing is not None:
        # Same id keeps learners' attempt counts (and seeds) continuous
        return Quiz(id=existing.id, **fields)
    return Quiz.new(**fields)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def _require_training(repos: Repos, training_id: str) -> Training:
    training = await repos.content.get_training(training_id)
    if training is None:
        raise NotFoundError("training", training_id)
    return training


async def _require_sub_unit(repos: Repos, sub_unit_id: str) -> SubUnit:
    sub_unit = await repos.content.get_sub_unit(sub_unit_id)
    if sub_unit is None:
        raise NotFoundError("sub-unit", sub_unit_id)
    return sub_unit


# ---------------------------------------------------------------------------
# Follow-ups
# ---------------------------------------------------------------------------


async def _after_graph_change(
    repos: Repos,
    training_id: str,
    notifier: NotificationSink | None,
    clock: Clock,
    *,
    created: bool = False,
) -> ContentChange:
    report = await recalculate_training(repos, training_id, clock=clock)
    training = await _require_training(repos, training_id)
    notified = 0
    if report.affected_learner_ids and notifier is not None:
        try:
            notified = await notifier.notify_training_updated(
                report.affected_learner_ids, training.id, training.title
            )
        except Exception:
            # The content change and recalculation already stand
            logger.exception("Notification delivery failed training=%s", training.id)
    return ContentChange(
        training=training, created=created, report=report, notified=notified
    )


async def _reaggregate_course(repos: Repos, course_id: str) -> int:
    learner_ids = await repos.course_progress.list_learners_for_course(course_id)
    for learner_id in learner_ids:
        await course_aggregator.aggregate(repos, learner_id, course_id)
    logger.info(
        "Re-aggregated course=%s for %d learner(s)", course_id, len(learner_ids)
    )
    return len(learner_ids)


# ---------------------------------------------------------------------------
# Courses and trainings
# ---------------------------------------------------------------------------


async def create_course(repos: Repos, title: str) -> Course:
    course = Course.new(title=_require_text(title, "title"))
    await repos.content.add_course(course)
    logger.info("Created course id=%s", course.id)
    return course


async def create_training(
    repos: Repos,
    course_id: str,
    title: str,
    *,
    video_duration: int | None = None,
    minimum_watch_time: int = 0,
    total_xp: int = 0,
    is_published: bool = True,
) -> Training:
    if await repos.content.get_course(course_id) is None:
        raise NotFoundError("course", course_id)
    _require_non_negative(video_duration, "video_duration")
    _require_non_negative(minimum_watch_time, "minimum_watch_time")
    _require_non_negative(total_xp, "total_xp")

    training = Training.new(
        course_id=course_id,
        title=_require_text(title, "title"),
        video_duration=video_duration,
        minimum_watch_time=minimum_watch_time,
        total_xp=total_xp,
        is_published=is_published,
    )
    await repos.content.add_training(training)
    logger.info("Created training id=%s course=%s", training.id, course_id)
    if is_published:
        # One more published training lowers every tracked learner's share
        await _reaggregate_course(repos, course_id)
    return training


async def set_training_published(
    repos: Repos, training_id: str, is_published: bool
) -> Training:
    before = await _require_training(repos, training_id)
    training = await repos.content.set_training_published(training_id, is_published)
    if training is None:
        raise NotFoundError("training", training_id)
    if before.is_published != is_published:
        await _reaggregate_course(repos, training.course_id)
    return training


# ---------------------------------------------------------------------------
# Training quiz
# ---------------------------------------------------------------------------


async def upsert_training_quiz(
    repos: Repos,
    training_id: str,
    draft: QuizSpec,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    training = await _require_training(repos, training_id)
    quiz = _build_quiz(draft, training.quiz)
    created = training.quiz is None
    updated = await repos.content.set_training_quiz(training_id, quiz)
    if updated is None:
        raise NotFoundError("training", training_id)
    if not created:
        logger.info("Updated quiz training=%s", training_id)
        return ContentChange(training=updated)
    logger.info("Created quiz training=%s", training_id)
    return await _after_graph_change(
        repos, training_id, notifier, clock, created=True
    )


async def delete_training_quiz(
    repos: Repos,
    training_id: str,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    training = await _require_training(repos, training_id)
    if training.quiz is None:
        raise NotFoundError("quiz", training_id)
    await repos.content.set_training_quiz(training_id, None)
    logger.info("Deleted quiz training=%s", training_id)
    return await _after_graph_change(repos, training_id, notifier, clock)


# ---------------------------------------------------------------------------
# Sub-units and their quizzes
# ---------------------------------------------------------------------------


async def add_sub_unit(
    repos: Repos,
    training_id: str,
    title: str,
    *,
    video_duration: int | None = None,
    position: int | None = None,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> tuple[SubUnit, ContentChange]:
    training = await _require_training(repos, training_id)
    _require_non_negative(video_duration, "video_duration")
    if position is None:
        position = max((su.position for su in training.sub_units), default=-1) + 1
    sub_unit = SubUnit.new(
        training_id=training_id,
        title=_require_text(title, "title"),
        position=position,
        video_duration=video_duration,
    )
    await repos.content.add_sub_unit(sub_unit)
    logger.info("Added sub-unit id=%s training=%s", sub_unit.id, training_id)
    change = await _after_graph_change(
        repos, training_id, notifier, clock, created=True
    )
    return sub_unit, change


async def delete_sub_unit(
    repos: Repos,
    sub_unit_id: str,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    await repos.content.remove_sub_unit(sub_unit_id)
    logger.info("Deleted sub-unit id=%s training=%s", sub_unit_id, sub_unit.training_id)
    return await _after_graph_change(repos, sub_unit.training_id, notifier, clock)


async def upsert_sub_unit_quiz(
    repos: Repos,
    sub_unit_id: str,
    draft: QuizSpec,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    quiz = _build_quiz(draft, sub_unit.quiz)
    created = sub_unit.quiz is None
    await repos.content.set_sub_unit_quiz(sub_unit_id, quiz)
    if not created:
        logger.info("Updated quiz sub_unit=%s", sub_unit_id)
        return ContentChange(
            training=await _require_training(repos, sub_unit.training_id)
        )
    logger.info("Created quiz sub_unit=%s", sub_unit_id)
    return await _after_graph_change(
        repos, sub_unit.training_id, notifier, clock, created=True
    )


async def delete_sub_unit_quiz(
    repos: Repos,
    sub_unit_id: str,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    if sub_unit.quiz is None:
        raise NotFoundError("quiz", sub_unit_id)
    await repos.content.set_sub_unit_quiz(sub_unit_id, None)
    logger.info("Deleted quiz sub_unit=%s", sub_unit_id)
    return await _after_graph_change(repos, sub_unit.training_id, notifier, clock)


async def recalculate(
    repos: Repos,
    training_id: str,
    *,
    notifier: NotificationSink | None = None,
    clock: Clock = system_clock,
) -> ContentChange:
    """Manual re-run, e.g. to pick up learners a previous batch failed on."""
    await _require_training(repos, training_id)
    return await _after_graph_change(repos, training_id, notifier, clock)
