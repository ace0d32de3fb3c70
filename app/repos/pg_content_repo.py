"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

import json

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseRow, QuizRow, SubUnitRow, TrainingRow
from app.models.content import (
    Course,
    Quiz,
    SubUnit,
    Training,
    parse_questions,
    question_to_raw,
)


class PgContentRepo:
    """Satisfies the ContentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: str) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return Course(id=row.id, title=row.title)

    async def add_course(self, course: Course) -> None:
        self._session.add(CourseRow(id=course.id, title=course.title))
        await self._session.flush()

    async def get_training(self, training_id: str) -> Training | None:
        row = await self._session.get(TrainingRow, training_id)
        if row is None:
            return None

        su_stmt = (
            select(SubUnitRow)
            .where(SubUnitRow.training_id == training_id)
            .order_by(SubUnitRow.position, SubUnitRow.id)
        )
        su_rows = (await self._session.execute(su_stmt)).scalars().all()

        sub_unit_ids = [r.id for r in su_rows]
        quiz_stmt = select(QuizRow).where(
            (QuizRow.training_id == training_id)
            | (QuizRow.sub_unit_id.in_(sub_unit_ids))
        )
        quiz_rows = (await self._session.execute(quiz_stmt)).scalars().all()
        training_quiz = next(
            (q for q in quiz_rows if q.training_id == training_id), None
        )
        by_sub_unit = {q.sub_unit_id: q for q in quiz_rows if q.sub_unit_id}

        return Training(
            id=row.id,
            course_id=row.course_id,
            title=row.title,
            video_duration=row.video_duration,
            minimum_watch_time=row.minimum_watch_time,
            total_xp=row.total_xp,
            is_published=row.is_published,
            quiz=_row_to_quiz(training_quiz) if training_quiz else None,
            sub_units=tuple(
                _row_to_sub_unit(r, by_sub_unit.get(r.id)) for r in su_rows
            ),
        )

    async def add_training(self, training: Training) -> None:
        self._session.add(
            TrainingRow(
                id=training.id,
                course_id=training.course_id,
                title=training.title,
                video_duration=training.video_duration,
                minimum_watch_time=training.minimum_watch_time,
                total_xp=training.total_xp,
                is_published=training.is_published,
            )
        )
        await self._session.flush()
        if training.quiz is not None:
            await self.set_training_quiz(training.id, training.quiz)
        for su in training.sub_units:
            await self.add_sub_unit(su)

    async def set_training_published(
        self, training_id: str, is_published: bool
    ) -> Training | None:
        stmt = (
            update(TrainingRow)
            .where(TrainingRow.id == training_id)
            .values(is_published=is_published)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_training(training_id)

    async def list_published_training_ids(self, course_id: str) -> list[str]:
        stmt = (
            select(TrainingRow.id)
            .where(TrainingRow.course_id == course_id, TrainingRow.is_published)
            .order_by(TrainingRow.id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def set_training_quiz(
        self, training_id: str, quiz: Quiz | None
    ) -> Training | None:
        if await self._session.get(TrainingRow, training_id) is None:
            return None
        await self._session.execute(
            delete(QuizRow).where(QuizRow.training_id == training_id)
        )
        if quiz is not None:
            self._session.add(_quiz_to_row(quiz, training_id=training_id))
        await self._session.flush()
        return await self.get_training(training_id)

    async def get_sub_unit(self, sub_unit_id: str) -> SubUnit | None:
        row = await self._session.get(SubUnitRow, sub_unit_id)
        if row is None:
            return None
        stmt = select(QuizRow).where(QuizRow.sub_unit_id == sub_unit_id)
        quiz_row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_sub_unit(row, quiz_row)

    async def add_sub_unit(self, sub_unit: SubUnit) -> None:
        if await self._session.get(TrainingRow, sub_unit.training_id) is None:
            raise KeyError("training not found")
        self._session.add(
            SubUnitRow(
                id=sub_unit.id,
                training_id=sub_unit.training_id,
                title=sub_unit.title,
                position=sub_unit.position,
                video_duration=sub_unit.video_duration,
            )
        )
        await self._session.flush()
        if sub_unit.quiz is not None:
            self._session.add(_quiz_to_row(sub_unit.quiz, sub_unit_id=sub_unit.id))
            await self._session.flush()

    async def remove_sub_unit(self, sub_unit_id: str) -> SubUnit | None:
        existing = await self.get_sub_unit(sub_unit_id)
        if existing is None:
            return None
        await self._session.execute(
            delete(QuizRow).where(QuizRow.sub_unit_id == sub_unit_id)
        )
        await self._session.execute(
            delete(SubUnitRow).where(SubUnitRow.id == sub_unit_id)
        )
        return existing

    async def set_sub_unit_quiz(
        self, sub_unit_id: str, quiz: Quiz | None
    ) -> SubUnit | None:
        if await self._session.get(SubUnitRow, sub_unit_id) is None:
            return None
        await self._session.execute(
            delete(QuizRow).where(QuizRow.sub_unit_id == sub_unit_id)
        )
        if quiz is not None:
            self._session.add(_quiz_to_row(quiz, sub_unit_id=sub_unit_id))
        await self._session.flush()
        return await self.get_sub_unit(sub_unit_id)


def _quiz_to_row(
    quiz: Quiz, *, training_id: str | None = None, sub_unit_id: str | None = None
) -> QuizRow:
    return QuizRow(
        id=quiz.id,
        training_id=training_id,
        sub_unit_id=sub_unit_id,
        title=quiz.title,
        passing_score=quiz.passing_score,
        allow_retake=quiz.allow_retake,
        max_attempts=quiz.max_attempts,
        questions_to_show=quiz.questions_to_show,
        time_limit=quiz.time_limit,
        questions_json=json.dumps([question_to_raw(q) for q in quiz.questions]),
    )


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        questions=parse_questions(json.loads(row.questions_json or "[]")),
        title=row.title or "",
        passing_score=row.passing_score,
        allow_retake=row.allow_retake,
        max_attempts=row.max_attempts,
        questions_to_show=row.questions_to_show,
        time_limit=row.time_limit,
    )


def _row_to_sub_unit(row: SubUnitRow, quiz_row: QuizRow | None) -> SubUnit:
    return SubUnit(
        id=row.id,
        training_id=row.training_id,
        title=row.title,
        position=row.position,
        video_duration=row.video_duration,
        quiz=_row_to_quiz(quiz_row) if quiz_row else None,
    )
