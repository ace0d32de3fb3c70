"""Learner-facing progress endpoints.

Routes stay thin: parse the body, call ``progress_service`` with the
token subject as learner id, shape the result.  Every write recomputes
the training inside the learner's writer scope before responding, so
the returned percentage is the stored one.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.dependencies import LearnerDep, ReposDep
from app.api.errors import to_http
from app.services import progress_service
from app.services.errors import ProgressError
from app.services.quiz_randomizer import RandomizedQuestion
from app.services.quiz_scoring import QuestionResult

router = APIRouter(prefix="/v1", tags=["progress"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class WatchProgressIn(BaseModel):
    # Validated by the service so bools and negatives get a 400 with a reason
    watched_seconds: Any


class WatchProgressOut(BaseModel):
    watched_seconds: int
    video_progress_pct: float
    is_video_completed: bool
    can_take_quiz: bool
    minimum_watch_time: int
    progress_pct: float
    is_completed: bool


class WatchProgressViewOut(BaseModel):
    watched_seconds: int
    video_progress_pct: float
    can_take_quiz: bool
    minimum_watch_time: int


class SubUnitWatchOut(BaseModel):
    video_progress_pct: float
    can_take_quiz: bool
    is_completed: bool
    training_progress_pct: float


class TrainingProgressOut(BaseModel):
    training_id: str
    progress_pct: float
    is_completed: bool
    completed_at: int | None
    video_progress_pct: float
    video_watched_seconds: int
    quiz_completed: bool
    quiz_score: int | None
    quiz_postponed: bool
    sub_units_completed_count: int
    sub_units_total_count: int


class CourseProgressOut(BaseModel):
    course_id: str
    progress_pct: float
    is_completed: bool
    completed_trainings: int
    total_trainings: int


class StatsOut(BaseModel):
    xp: int
    level: int
    diamonds: int
    xp_to_next_level: int
    level_progress_pct: float


class OptionOut(BaseModel):
    id: str
    text: str


class QuestionOut(BaseModel):
    id: str
    type: str
    question: str
    options: list[OptionOut]
    points: int


class QuizOut(BaseModel):
    quiz_id: str
    title: str
    attempt_number: int
    attempts_used: int
    passing_score: int
    allow_retake: bool
    max_attempts: int | None
    time_limit: int | None
    questions: list[QuestionOut]


class QuizSubmitIn(BaseModel):
    answers: dict[str, Any]
    started_at: int | None = None  # epoch seconds
    time_spent: int | None = None  # seconds, client-measured


class QuestionResultOut(BaseModel):
    question_id: str
    question: str
    user_answer: str | None
    correct_answer: str | None
    correct_answer_text: str | None
    is_correct: bool
    explanation: str | None


class QuizResultOut(BaseModel):
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    attempt_number: int
    xp_earned: int
    progress_pct: float
    is_completed: bool
    results: list[QuestionResultOut]


class PostponeIn(BaseModel):
    postponed: bool = True


def _question_out(rq: RandomizedQuestion) -> QuestionOut:
    return QuestionOut(
        id=rq.id,
        type=rq.question.type,
        question=rq.question.text,
        options=[OptionOut(id=o.id, text=o.text) for o in rq.options],
        points=rq.question.points,
    )


def _quiz_out(quiz: progress_service.PresentedQuiz) -> QuizOut:
    return QuizOut(
        quiz_id=quiz.quiz_id,
        title=quiz.title,
        attempt_number=quiz.attempt_number,
        attempts_used=quiz.attempts_used,
        passing_score=quiz.passing_score,
        allow_retake=quiz.allow_retake,
        max_attempts=quiz.max_attempts,
        time_limit=quiz.time_limit,
        questions=[_question_out(q) for q in quiz.questions],
    )


def _result_out(r: QuestionResult) -> QuestionResultOut:
    return QuestionResultOut(
        question_id=r.question_id,
        question=r.question,
        user_answer=r.user_answer,
        correct_answer=r.correct_answer,
        correct_answer_text=r.correct_answer_text,
        is_correct=r.is_correct,
        explanation=r.explanation,
    )


def _submission_out(res: progress_service.QuizSubmissionResult) -> QuizResultOut:
    return QuizResultOut(
        score=res.score,
        passed=res.passed,
        correct_count=res.correct_count,
        total_questions=res.total_questions,
        attempt_number=res.attempt_number,
        xp_earned=res.xp_earned,
        progress_pct=res.progress_pct,
        is_completed=res.is_completed,
        results=[_result_out(r) for r in res.results],
    )


def _meta(payload: QuizSubmitIn) -> progress_service.AttemptMeta:
    return progress_service.AttemptMeta(
        started_at=payload.started_at, time_spent_seconds=payload.time_spent
    )


# ---------------------------------------------------------------------------
# Trainings
# ---------------------------------------------------------------------------


@router.post("/trainings/{training_id}/watch-progress", response_model=WatchProgressOut)
async def post_watch_progress(
    training_id: str,
    payload: WatchProgressIn,
    principal: LearnerDep,
    repos: ReposDep,
) -> WatchProgressOut:
    try:
        res = await progress_service.record_watch_progress(
            repos, principal.user_id, training_id, payload.watched_seconds
        )
    except ProgressError as e:
        raise to_http(e) from None
    return WatchProgressOut(
        watched_seconds=res.watched_seconds,
        video_progress_pct=res.video_progress_pct,
        is_video_completed=res.is_video_completed,
        can_take_quiz=res.can_take_quiz,
        minimum_watch_time=res.minimum_watch_time,
        progress_pct=res.progress_pct,
        is_completed=res.is_completed,
    )


@router.get(
    "/trainings/{training_id}/watch-progress", response_model=WatchProgressViewOut
)
async def get_watch_progress(
    training_id: str, principal: LearnerDep, repos: ReposDep
) -> WatchProgressViewOut:
    try:
        view = await progress_service.get_watch_progress(
            repos, principal.user_id, training_id
        )
    except ProgressError as e:
        raise to_http(e) from None
    return WatchProgressViewOut(
        watched_seconds=view.watched_seconds,
        video_progress_pct=view.video_progress_pct,
        can_take_quiz=view.can_take_quiz,
        minimum_watch_time=view.minimum_watch_time,
    )


@router.get("/trainings/{training_id}/progress", response_model=TrainingProgressOut)
async def get_training_progress(
    training_id: str, principal: LearnerDep, repos: ReposDep
) -> TrainingProgressOut:
    try:
        p = await progress_service.get_training_progress(
            repos, principal.user_id, training_id
        )
    except ProgressError as e:
        raise to_http(e) from None
    return TrainingProgressOut(
        training_id=p.training_id,
        progress_pct=p.progress_pct,
        is_completed=p.is_completed,
        completed_at=p.completed_at,
        video_progress_pct=p.video_progress_pct,
        video_watched_seconds=p.video_watched_seconds,
        quiz_completed=p.quiz_completed,
        quiz_score=p.quiz_score,
        quiz_postponed=p.quiz_postponed,
        sub_units_completed_count=p.sub_units_completed_count,
        sub_units_total_count=p.sub_units_total_count,
    )


@router.get("/trainings/{training_id}/quiz", response_model=QuizOut)
async def get_training_quiz(
    training_id: str, principal: LearnerDep, repos: ReposDep
) -> QuizOut:
    try:
        quiz = await progress_service.present_training_quiz(
            repos, principal.user_id, training_id
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _quiz_out(quiz)


@router.post("/trainings/{training_id}/quiz/submit", response_model=QuizResultOut)
async def submit_training_quiz(
    training_id: str,
    payload: QuizSubmitIn,
    principal: LearnerDep,
    repos: ReposDep,
) -> QuizResultOut:
    try:
        res = await progress_service.submit_training_quiz(
            repos, principal.user_id, training_id, payload.answers, _meta(payload)
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _submission_out(res)


@router.post(
    "/trainings/{training_id}/quiz/postpone", response_model=TrainingProgressOut
)
async def postpone_training_quiz(
    training_id: str,
    payload: PostponeIn,
    principal: LearnerDep,
    repos: ReposDep,
) -> TrainingProgressOut:
    try:
        await progress_service.postpone_quiz(
            repos, principal.user_id, training_id, payload.postponed
        )
    except ProgressError as e:
        raise to_http(e) from None
    return await get_training_progress(training_id, principal, repos)


# ---------------------------------------------------------------------------
# Sub-units
# ---------------------------------------------------------------------------


@router.post("/sub-units/{sub_unit_id}/watch-progress", response_model=SubUnitWatchOut)
async def post_sub_unit_watch_progress(
    sub_unit_id: str,
    payload: WatchProgressIn,
    principal: LearnerDep,
    repos: ReposDep,
) -> SubUnitWatchOut:
    try:
        res = await progress_service.record_sub_unit_watch_progress(
            repos, principal.user_id, sub_unit_id, payload.watched_seconds
        )
    except ProgressError as e:
        raise to_http(e) from None
    return SubUnitWatchOut(
        video_progress_pct=res.video_progress_pct,
        can_take_quiz=res.can_take_quiz,
        is_completed=res.is_completed,
        training_progress_pct=res.training_progress_pct,
    )


@router.get("/sub-units/{sub_unit_id}/quiz", response_model=QuizOut)
async def get_sub_unit_quiz(
    sub_unit_id: str, principal: LearnerDep, repos: ReposDep
) -> QuizOut:
    try:
        quiz = await progress_service.present_sub_unit_quiz(
            repos, principal.user_id, sub_unit_id
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _quiz_out(quiz)


@router.post("/sub-units/{sub_unit_id}/quiz/submit", response_model=QuizResultOut)
async def submit_sub_unit_quiz(
    sub_unit_id: str,
    payload: QuizSubmitIn,
    principal: LearnerDep,
    repos: ReposDep,
) -> QuizResultOut:
    try:
        res = await progress_service.submit_sub_unit_quiz(
            repos, principal.user_id, sub_unit_id, payload.answers, _meta(payload)
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _submission_out(res)


# ---------------------------------------------------------------------------
# Course and learner summaries
# ---------------------------------------------------------------------------


@router.get("/courses/{course_id}/progress", response_model=CourseProgressOut)
async def get_course_progress(
    course_id: str, principal: LearnerDep, repos: ReposDep
) -> CourseProgressOut:
    try:
        cp = await progress_service.get_course_progress(
            repos, principal.user_id, course_id
        )
    except ProgressError as e:
        raise to_http(e) from None
    return CourseProgressOut(
        course_id=cp.course_id,
        progress_pct=cp.progress_pct,
        is_completed=cp.is_completed,
        completed_trainings=cp.completed_trainings,
        total_trainings=cp.total_trainings,
    )


@router.get("/me/stats", response_model=StatsOut)
async def get_my_stats(principal: LearnerDep, repos: ReposDep) -> StatsOut:
    stats = await progress_service.get_learner_stats(repos, principal.user_id)
    return StatsOut(
        xp=stats.xp,
        level=stats.level,
        diamonds=stats.diamonds,
        xp_to_next_level=stats.xp_to_next_level,
        level_progress_pct=stats.level_progress_pct,
    )
