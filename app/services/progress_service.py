"""Learner-facing progress operations.

Every write follows the same shape inside the (learner, training) writer
scope: update the raw signal, ``recompute`` from a fresh read, then
``settle`` the follow-ups (course re-aggregation, XP) if completion
flipped.  Reads never create records; a learner who has not started a
training sees a zero state.

Raw signals only move forward on learner activity: watched seconds keep
their maximum and a passed quiz stays passed.  A completed training can
therefore only be demoted by a content-change recalculation.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from app.core.metrics import QUIZ_SUBMISSIONS
from app.models.content import Quiz, SubUnit, Training
from app.models.progress import CourseProgress, TrainingProgress
from app.models.quiz_attempt import QuizAttempt
from app.repos.bundle import Repos
from app.services import course_aggregator, gamification
from app.services.errors import (
    NotFoundError,
    QuizAttemptNotAllowedError,
    ValidationError,
)
from app.services.progress_calculator import round_half_up
from app.services.quiz_randomizer import RandomizedQuestion, randomize
from app.services.quiz_scoring import QuestionResult, QuizScore, score_submission
from app.services.recalculation import Clock, recompute, settle, system_clock

logger = logging.getLogger(__name__)

VIDEO_COMPLETED_FRACTION = 0.9
SUB_UNIT_QUIZ_UNLOCK_FRACTION = 0.5


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WatchProgressResult:
    watched_seconds: int
    video_progress_pct: float
    is_video_completed: bool
    can_take_quiz: bool
    minimum_watch_time: int
    progress_pct: float
    is_completed: bool


@dataclass(frozen=True, slots=True)
class WatchProgressView:
    watched_seconds: int
    video_progress_pct: float
    can_take_quiz: bool
    minimum_watch_time: int


@dataclass(frozen=True, slots=True)
class SubUnitWatchResult:
    video_progress_pct: float
    can_take_quiz: bool
    is_completed: bool
    training_progress_pct: float


@dataclass(frozen=True, slots=True)
class AttemptMeta:
    started_at: int | None = None  # epoch seconds
    time_spent_seconds: int | None = None  # client-reported fallback


@dataclass(frozen=True, slots=True)
class QuizSubmissionResult:
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    attempt_number: int
    xp_earned: int
    progress_pct: float
    is_completed: bool
    results: tuple[QuestionResult, ...]


@dataclass(frozen=True, slots=True)
class PresentedQuiz:
    quiz_id: str
    title: str
    attempt_number: int
    attempts_used: int
    passing_score: int
    allow_retake: bool
    max_attempts: int | None
    time_limit: int | None
    questions: tuple[RandomizedQuestion, ...]


# ---------------------------------------------------------------------------
# Lookups and validation
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


def validate_watched_seconds(value: Any) -> float:
    # bool is an int subclass; True is not a duration
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("watched_seconds must be a number")
    if not math.isfinite(value):
        raise ValidationError("watched_seconds must be finite")
    if value < 0:
        raise ValidationError("watched_seconds must be >= 0")
    return float(value)


def _validate_answers(answers: Any) -> Mapping[str, Any]:
    if not isinstance(answers, Mapping):
        raise ValidationError("answers must be an object keyed by question id")
    return answers


def _video_pct(watched_seconds: float, duration: int | None) -> float:
    if not duration or duration <= 0:
        return 0.0
    return min(100.0, round_half_up(watched_seconds / duration * 100, 2))


def _can_take_quiz(watched_seconds: int, minimum_watch_time: int) -> bool:
    return watched_seconds >= minimum_watch_time


# ---------------------------------------------------------------------------
# Video watching
# ---------------------------------------------------------------------------


async def record_watch_progress(
    repos: Repos,
    learner_id: str,
    training_id: str,
    watched_seconds: Any,
    *,
    clock: Clock = system_clock,
) -> WatchProgressResult:
    seconds = validate_watched_seconds(watched_seconds)
    training = await _require_training(repos, training_id)

    def apply(p: TrainingProgress) -> TrainingProgress:
        watched = max(p.video_watched_seconds, math.floor(seconds))
        return replace(
            p,
            video_watched_seconds=watched,
            video_progress_pct=max(
                p.video_progress_pct, _video_pct(seconds, training.video_duration)
            ),
        )

    async with repos.progress.writer(learner_id, training.id):
        transition = await recompute(
            repos, learner_id, training, clock(), update=apply
        )
        await settle(
            repos,
            training,
            transition,
            score=transition.after.quiz_score,
            passed=transition.after.quiz_completed,
        )

    record = transition.after
    duration = training.video_duration or 0
    return WatchProgressResult(
        watched_seconds=record.video_watched_seconds,
        video_progress_pct=record.video_progress_pct,
        is_video_completed=duration > 0
        and record.video_watched_seconds >= duration * VIDEO_COMPLETED_FRACTION,
        can_take_quiz=_can_take_quiz(
            record.video_watched_seconds, training.minimum_watch_time
        ),
        minimum_watch_time=training.minimum_watch_time,
        progress_pct=record.progress_pct,
        is_completed=record.is_completed,
    )


async def get_watch_progress(
    repos: Repos, learner_id: str, training_id: str
) -> WatchProgressView:
    training = await _require_training(repos, training_id)
    record = await repos.progress.get_training_progress(
        learner_id, training_id
    ) or TrainingProgress.zero(learner_id, training_id)
    return WatchProgressView(
        watched_seconds=record.video_watched_seconds,
        video_progress_pct=record.video_progress_pct,
        can_take_quiz=_can_take_quiz(
            record.video_watched_seconds, training.minimum_watch_time
        ),
        minimum_watch_time=training.minimum_watch_time,
    )


async def record_sub_unit_watch_progress(
    repos: Repos,
    learner_id: str,
    sub_unit_id: str,
    watched_seconds: Any,
    *,
    clock: Clock = system_clock,
) -> SubUnitWatchResult:
    """Store the sub-unit's video signal.  Watching alone never completes it."""
    seconds = validate_watched_seconds(watched_seconds)
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    training = await _require_training(repos, sub_unit.training_id)

    async with repos.progress.writer(learner_id, training.id):
        sp = await repos.progress.get_or_create_sub_unit_progress(
            learner_id, sub_unit.id
        )
        sp = replace(
            sp,
            video_progress_pct=max(
                sp.video_progress_pct, _video_pct(seconds, sub_unit.video_duration)
            ),
        )
        await repos.progress.save_sub_unit_progress(sp)
        transition = await recompute(repos, learner_id, training, clock())
        await settle(
            repos,
            training,
            transition,
            score=transition.after.quiz_score,
            passed=transition.after.quiz_completed,
        )

    duration = sub_unit.video_duration or 0
    return SubUnitWatchResult(
        video_progress_pct=sp.video_progress_pct,
        can_take_quiz=duration <= 0
        or seconds >= duration * SUB_UNIT_QUIZ_UNLOCK_FRACTION,
        is_completed=sp.is_completed,
        training_progress_pct=transition.after.progress_pct,
    )


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


async def _next_attempt_number(repos: Repos, learner_id: str, quiz: Quiz) -> int:
    """1-based number of the learner's next attempt; raises when none is left."""
    used = await repos.attempts.count(learner_id, quiz.id)
    if used > 0 and not quiz.allow_retake:
        raise QuizAttemptNotAllowedError("quiz does not allow retakes")
    if quiz.max_attempts is not None and used >= quiz.max_attempts:
        raise QuizAttemptNotAllowedError("maximum attempts reached")
    return used + 1


async def _present(repos: Repos, learner_id: str, quiz: Quiz) -> PresentedQuiz:
    used = await repos.attempts.count(learner_id, quiz.id)
    attempt_number = used + 1
    return PresentedQuiz(
        quiz_id=quiz.id,
        title=quiz.title,
        attempt_number=attempt_number,
        attempts_used=used,
        passing_score=quiz.passing_score,
        allow_retake=quiz.allow_retake,
        max_attempts=quiz.max_attempts,
        time_limit=quiz.time_limit,
        questions=tuple(
            randomize(quiz.questions, learner_id, quiz.questions_to_show, attempt_number)
        ),
    )


async def present_training_quiz(
    repos: Repos, learner_id: str, training_id: str
) -> PresentedQuiz:
    """Questions for the learner's next attempt, in the order scoring will use."""
    training = await _require_training(repos, training_id)
    if training.quiz is None:
        raise NotFoundError("quiz", training_id)
    return await _present(repos, learner_id, training.quiz)


async def present_sub_unit_quiz(
    repos: Repos, learner_id: str, sub_unit_id: str
) -> PresentedQuiz:
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    if sub_unit.quiz is None:
        raise NotFoundError("quiz", sub_unit_id)
    return await _present(repos, learner_id, sub_unit.quiz)


async def _grade_and_record(
    repos: Repos,
    learner_id: str,
    quiz: Quiz,
    answers: Mapping[str, Any],
    meta: AttemptMeta,
    now: int,
) -> tuple[int, QuizScore]:
    if not quiz.questions:
        raise ValidationError("quiz has no questions")
    attempt_number = await _next_attempt_number(repos, learner_id, quiz)
    shown = randomize(quiz.questions, learner_id, quiz.questions_to_show, attempt_number)
    scored = score_submission(shown, answers, quiz.passing_score)

    if meta.started_at is not None:
        time_spent: int | None = max(0, now - meta.started_at)
    else:
        time_spent = meta.time_spent_seconds

    await repos.attempts.add(
        QuizAttempt.new(
            learner_id=learner_id,
            quiz_id=quiz.id,
            attempt_no=attempt_number,
            score=scored.score,
            passed=scored.passed,
            answers_json=json.dumps(dict(answers), default=str),
            completed_at=now,
            started_at=meta.started_at,
            time_spent_seconds=time_spent,
        )
    )
    QUIZ_SUBMISSIONS.labels(passed="true" if scored.passed else "false").inc()
    return attempt_number, scored


async def submit_training_quiz(
    repos: Repos,
    learner_id: str,
    training_id: str,
    answers: Any,
    meta: AttemptMeta | None = None,
    *,
    clock: Clock = system_clock,
) -> QuizSubmissionResult:
    answers = _validate_answers(answers)
    meta = meta or AttemptMeta()
    training = await _require_training(repos, training_id)
    quiz = training.quiz
    if quiz is None:
        raise NotFoundError("quiz", training_id)

    async with repos.progress.writer(learner_id, training.id):
        now = clock()
        attempt_number, scored = await _grade_and_record(
            repos, learner_id, quiz, answers, meta, now
        )

        def apply(p: TrainingProgress) -> TrainingProgress:
            return replace(
                p,
                quiz_completed=p.quiz_completed or scored.passed,
                quiz_score=scored.score,
                quiz_postponed=False,
            )

        transition = await recompute(repos, learner_id, training, now, update=apply)
        xp = await settle(
            repos, training, transition, score=scored.score, passed=scored.passed
        )

    logger.info(
        "Quiz submitted learner=%s training=%s attempt=%d score=%d passed=%s",
        learner_id,
        training.id,
        attempt_number,
        scored.score,
        scored.passed,
        extra={"learner_id": learner_id, "training_id": training.id},
    )
    return QuizSubmissionResult(
        score=scored.score,
        passed=scored.passed,
        correct_count=scored.correct_count,
        total_questions=scored.total,
        attempt_number=attempt_number,
        xp_earned=xp,
        progress_pct=transition.after.progress_pct,
        is_completed=transition.after.is_completed,
        results=scored.results,
    )


async def submit_sub_unit_quiz(
    repos: Repos,
    learner_id: str,
    sub_unit_id: str,
    answers: Any,
    meta: AttemptMeta | None = None,
    *,
    clock: Clock = system_clock,
) -> QuizSubmissionResult:
    """Passing the sub-quiz is the only way a sub-unit becomes completed."""
    answers = _validate_answers(answers)
    meta = meta or AttemptMeta()
    sub_unit = await _require_sub_unit(repos, sub_unit_id)
    quiz = sub_unit.quiz
    if quiz is None:
        raise NotFoundError("quiz", sub_unit_id)
    training = await _require_training(repos, sub_unit.training_id)

    async with repos.progress.writer(learner_id, training.id):
        now = clock()
        attempt_number, scored = await _grade_and_record(
            repos, learner_id, quiz, answers, meta, now
        )

        sp = await repos.progress.get_or_create_sub_unit_progress(
            learner_id, sub_unit.id
        )
        sp = replace(sp, quiz_score=scored.score)
        if scored.passed and not sp.is_completed:
            sp = replace(sp, quiz_completed=True, is_completed=True, completed_at=now)
        await repos.progress.save_sub_unit_progress(sp)

        transition = await recompute(repos, learner_id, training, now)
        xp = await settle(
            repos,
            training,
            transition,
            score=transition.after.quiz_score,
            passed=transition.after.quiz_completed,
        )

    logger.info(
        "Sub-unit quiz submitted learner=%s sub_unit=%s attempt=%d score=%d passed=%s",
        learner_id,
        sub_unit.id,
        attempt_number,
        scored.score,
        scored.passed,
        extra={"learner_id": learner_id, "training_id": training.id},
    )
    return QuizSubmissionResult(
        score=scored.score,
        passed=scored.passed,
        correct_count=scored.correct_count,
        total_questions=scored.total,
        attempt_number=attempt_number,
        xp_earned=xp,
        progress_pct=transition.after.progress_pct,
        is_completed=transition.after.is_completed,
        results=scored.results,
    )


async def postpone_quiz(
    repos: Repos, learner_id: str, training_id: str, postponed: bool = True
) -> TrainingProgress:
    training = await _require_training(repos, training_id)
    if training.quiz is None:
        raise NotFoundError("quiz", training_id)
    async with repos.progress.writer(learner_id, training.id):
        record = await repos.progress.get_or_create_training_progress(
            learner_id, training.id
        )
        record = replace(record, quiz_postponed=postponed)
        await repos.progress.save_training_progress(record)
    return record


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_training_progress(
    repos: Repos,
    learner_id: str,
    training_id: str,
    *,
    clock: Clock = system_clock,
) -> TrainingProgress:
    """Stored progress, re-derived from current signals and content.

    A drifted record is corrected on the way out; a missing one is
    reported as zero without being created.
    """
    training = await _require_training(repos, training_id)
    if await repos.progress.get_training_progress(learner_id, training_id) is None:
        return replace(
            TrainingProgress.zero(learner_id, training_id),
            sub_units_total_count=len(training.sub_units),
        )
    async with repos.progress.writer(learner_id, training.id):
        transition = await recompute(repos, learner_id, training, clock())
        await settle(
            repos,
            training,
            transition,
            score=transition.after.quiz_score,
            passed=transition.after.quiz_completed,
        )
    return transition.after


async def get_course_progress(
    repos: Repos, learner_id: str, course_id: str
) -> CourseProgress:
    if await repos.content.get_course(course_id) is None:
        raise NotFoundError("course", course_id)
    if await repos.course_progress.get(learner_id, course_id) is None:
        # Not tracked yet: report the live figure without enrolling
        training_ids = await repos.content.list_published_training_ids(course_id)
        records = await repos.progress.list_training_progress(learner_id, training_ids)
        return course_aggregator.course_progress_from(
            learner_id, course_id, training_ids, records
        )
    return await course_aggregator.aggregate(repos, learner_id, course_id)


async def get_learner_stats(repos: Repos, learner_id: str) -> gamification.StatsView:
    stats = await repos.learners.get(learner_id)
    return gamification.view(stats.xp if stats else 0)
