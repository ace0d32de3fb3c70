"""PostgreSQL implementation of CourseProgressRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseProgressRow
from app.models.progress import CourseProgress
from app.repos.pg_progress_repo import advisory_writer


class PgCourseProgressRepo:
    """Satisfies the CourseProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def writer(self, learner_id: str, course_id: str):
        return advisory_writer(self._session, f"course:{learner_id}:{course_id}")

    async def get(self, learner_id: str, course_id: str) -> CourseProgress | None:
        row = await self._session.get(
            CourseProgressRow, (learner_id, course_id), populate_existing=True
        )
        if row is None:
            return None
        return CourseProgress(
            learner_id=row.learner_id,
            course_id=row.course_id,
            progress_pct=row.progress_pct,
            is_completed=row.is_completed,
            completed_trainings=row.completed_trainings,
            total_trainings=row.total_trainings,
        )

    async def upsert(self, progress: CourseProgress) -> None:
        values = {
            "progress_pct": progress.progress_pct,
            "is_completed": progress.is_completed,
            "completed_trainings": progress.completed_trainings,
            "total_trainings": progress.total_trainings,
        }
        stmt = (
            insert(CourseProgressRow)
            .values(
                learner_id=progress.learner_id,
                course_id=progress.course_id,
                **values,
            )
            .on_conflict_do_update(
                index_elements=["learner_id", "course_id"], set_=values
            )
        )
        await self._session.execute(stmt)

    async def list_learners_for_course(self, course_id: str) -> list[str]:
        stmt = (
            select(CourseProgressRow.learner_id)
            .where(CourseProgressRow.course_id == course_id)
            .order_by(CourseProgressRow.learner_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())
