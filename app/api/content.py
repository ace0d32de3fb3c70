"""Trainer endpoints for editing the content graph.

Structural edits (adding or removing a quiz or a sub-unit) recalculate
every learner on the training before the response is sent; the response
carries the batch outcome so the trainer sees who was demoted and which
learners need a manual re-run.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.api.dependencies import NotifierDep, ReposDep, TrainerDep
from app.api.errors import to_http
from app.models.content import Training
from app.services import content_service
from app.services.errors import ProgressError

router = APIRouter(prefix="/v1/content", tags=["content"])


class CourseIn(BaseModel):
    title: str


class CourseOut(BaseModel):
    id: str
    title: str


class TrainingIn(BaseModel):
    title: str
    video_duration: int | None = None
    minimum_watch_time: int = 0
    total_xp: int = 0
    is_published: bool = True


class PublishIn(BaseModel):
    is_published: bool


class SubUnitIn(BaseModel):
    title: str
    video_duration: int | None = None
    position: int | None = None


class QuizIn(BaseModel):
    questions: list[dict[str, Any]] = Field(min_length=1)
    title: str = ""
    passing_score: int = 70
    allow_retake: bool = True
    max_attempts: int | None = None
    questions_to_show: int | None = None
    time_limit: int | None = None


class SubUnitOut(BaseModel):
    id: str
    title: str
    position: int
    video_duration: int | None
    has_quiz: bool


class TrainingOut(BaseModel):
    id: str
    course_id: str
    title: str
    video_duration: int | None
    minimum_watch_time: int
    total_xp: int
    is_published: bool
    has_quiz: bool
    sub_units: list[SubUnitOut]


class ContentChangeOut(BaseModel):
    training: TrainingOut
    recalculated: bool
    processed: int
    affected_learner_ids: list[str]
    failed_learner_ids: list[str]
    notified: int


class SubUnitCreatedOut(ContentChangeOut):
    sub_unit_id: str


def _training_out(t: Training) -> TrainingOut:
    return TrainingOut(
        id=t.id,
        course_id=t.course_id,
        title=t.title,
        video_duration=t.video_duration,
        minimum_watch_time=t.minimum_watch_time,
        total_xp=t.total_xp,
        is_published=t.is_published,
        has_quiz=t.quiz is not None,
        sub_units=[
            SubUnitOut(
                id=su.id,
                title=su.title,
                position=su.position,
                video_duration=su.video_duration,
                has_quiz=su.quiz is not None,
            )
            for su in t.sub_units
        ],
    )


def _change_fields(change: content_service.ContentChange) -> dict[str, Any]:
    report = change.report
    return {
        "training": _training_out(change.training),
        "recalculated": report is not None,
        "processed": report.processed if report else 0,
        "affected_learner_ids": change.affected_learner_ids,
        "failed_learner_ids": report.failed_learner_ids if report else [],
        "notified": change.notified,
    }


def _change_out(change: content_service.ContentChange) -> ContentChangeOut:
    return ContentChangeOut(**_change_fields(change))


def _quiz_spec(payload: QuizIn) -> content_service.QuizSpec:
    return content_service.QuizSpec(
        questions=payload.questions,
        title=payload.title,
        passing_score=payload.passing_score,
        allow_retake=payload.allow_retake,
        max_attempts=payload.max_attempts,
        questions_to_show=payload.questions_to_show,
        time_limit=payload.time_limit,
    )


# ---------------------------------------------------------------------------
# Courses and trainings
# ---------------------------------------------------------------------------


@router.post(
    "/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED
)
async def create_course(
    payload: CourseIn, _principal: TrainerDep, repos: ReposDep
) -> CourseOut:
    try:
        course = await content_service.create_course(repos, payload.title)
    except ProgressError as e:
        raise to_http(e) from None
    return CourseOut(id=course.id, title=course.title)


@router.post(
    "/courses/{course_id}/trainings",
    response_model=TrainingOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_training(
    course_id: str, payload: TrainingIn, _principal: TrainerDep, repos: ReposDep
) -> TrainingOut:
    try:
        training = await content_service.create_training(
            repos,
            course_id,
            payload.title,
            video_duration=payload.video_duration,
            minimum_watch_time=payload.minimum_watch_time,
            total_xp=payload.total_xp,
            is_published=payload.is_published,
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _training_out(training)


@router.patch("/trainings/{training_id}/publish", response_model=TrainingOut)
async def publish_training(
    training_id: str, payload: PublishIn, _principal: TrainerDep, repos: ReposDep
) -> TrainingOut:
    try:
        training = await content_service.set_training_published(
            repos, training_id, payload.is_published
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _training_out(training)


@router.post(
    "/trainings/{training_id}/recalculate", response_model=ContentChangeOut
)
async def recalculate_training(
    training_id: str, _principal: TrainerDep, repos: ReposDep, notifier: NotifierDep
) -> ContentChangeOut:
    try:
        change = await content_service.recalculate(
            repos, training_id, notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)


# ---------------------------------------------------------------------------
# Training quiz
# ---------------------------------------------------------------------------


@router.put("/trainings/{training_id}/quiz", response_model=ContentChangeOut)
async def put_training_quiz(
    training_id: str,
    payload: QuizIn,
    _principal: TrainerDep,
    repos: ReposDep,
    notifier: NotifierDep,
) -> ContentChangeOut:
    try:
        change = await content_service.upsert_training_quiz(
            repos, training_id, _quiz_spec(payload), notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)


@router.delete("/trainings/{training_id}/quiz", response_model=ContentChangeOut)
async def delete_training_quiz(
    training_id: str, _principal: TrainerDep, repos: ReposDep, notifier: NotifierDep
) -> ContentChangeOut:
    try:
        change = await content_service.delete_training_quiz(
            repos, training_id, notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)


# ---------------------------------------------------------------------------
# Sub-units
# ---------------------------------------------------------------------------


@router.post(
    "/trainings/{training_id}/sub-units",
    response_model=SubUnitCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_sub_unit(
    training_id: str,
    payload: SubUnitIn,
    _principal: TrainerDep,
    repos: ReposDep,
    notifier: NotifierDep,
) -> SubUnitCreatedOut:
    try:
        sub_unit, change = await content_service.add_sub_unit(
            repos,
            training_id,
            payload.title,
            video_duration=payload.video_duration,
            position=payload.position,
            notifier=notifier,
        )
    except ProgressError as e:
        raise to_http(e) from None
    return SubUnitCreatedOut(sub_unit_id=sub_unit.id, **_change_fields(change))


@router.delete("/sub-units/{sub_unit_id}", response_model=ContentChangeOut)
async def delete_sub_unit(
    sub_unit_id: str, _principal: TrainerDep, repos: ReposDep, notifier: NotifierDep
) -> ContentChangeOut:
    try:
        change = await content_service.delete_sub_unit(
            repos, sub_unit_id, notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)


@router.put("/sub-units/{sub_unit_id}/quiz", response_model=ContentChangeOut)
async def put_sub_unit_quiz(
    sub_unit_id: str,
    payload: QuizIn,
    _principal: TrainerDep,
    repos: ReposDep,
    notifier: NotifierDep,
) -> ContentChangeOut:
    try:
        change = await content_service.upsert_sub_unit_quiz(
            repos, sub_unit_id, _quiz_spec(payload), notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)


@router.delete("/sub-units/{sub_unit_id}/quiz", response_model=ContentChangeOut)
async def delete_sub_unit_quiz(
    sub_unit_id: str, _principal: TrainerDep, repos: ReposDep, notifier: NotifierDep
) -> ContentChangeOut:
    try:
        change = await content_service.delete_sub_unit_quiz(
            repos, sub_unit_id, notifier=notifier
        )
    except ProgressError as e:
        raise to_http(e) from None
    return _change_out(change)
