"""PostgreSQL implementation of ProgressRepo.

``writer`` opens a SAVEPOINT and takes a transaction-scoped advisory lock
keyed on (learner, training).  A concurrent writer for the same pair
blocks until the owning transaction ends; a failure inside the scope
rolls back to the SAVEPOINT and leaves earlier learners in the same
batch untouched.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import SubUnitProgressRow, TrainingProgressRow
from app.models.progress import SubUnitProgress, TrainingProgress

_LOCK_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:key))")


@asynccontextmanager
async def advisory_writer(session: AsyncSession, key: str) -> AsyncIterator[None]:
    async with session.begin_nested():
        await session.execute(_LOCK_SQL, {"key": key})
        yield


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def writer(self, learner_id: str, training_id: str):
        return advisory_writer(self._session, f"training:{learner_id}:{training_id}")

    async def get_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress | None:
        row = await self._session.get(
            TrainingProgressRow, (learner_id, training_id), populate_existing=True
        )
        if row is None:
            return None
        return _row_to_training_progress(row)

    async def get_or_create_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress:
        stmt = (
            insert(TrainingProgressRow)
            .values(learner_id=learner_id, training_id=training_id)
            .on_conflict_do_nothing(index_elements=["learner_id", "training_id"])
        )
        await self._session.execute(stmt)
        progress = await self.get_training_progress(learner_id, training_id)
        if progress is None:
            raise LookupError(
                f"no training progress for {learner_id}/{training_id} after insert"
            )
        return progress

    async def save_training_progress(self, progress: TrainingProgress) -> None:
        values = {
            "video_progress_pct": progress.video_progress_pct,
            "video_watched_seconds": progress.video_watched_seconds,
            "quiz_completed": progress.quiz_completed,
            "quiz_score": progress.quiz_score,
            "quiz_postponed": progress.quiz_postponed,
            "sub_units_completed_count": progress.sub_units_completed_count,
            "sub_units_total_count": progress.sub_units_total_count,
            "progress_pct": progress.progress_pct,
            "is_completed": progress.is_completed,
            "completed_at": progress.completed_at,
        }
        stmt = (
            insert(TrainingProgressRow)
            .values(
                learner_id=progress.learner_id,
                training_id=progress.training_id,
                **values,
            )
            .on_conflict_do_update(
                index_elements=["learner_id", "training_id"], set_=values
            )
        )
        await self._session.execute(stmt)

    async def list_training_progress(
        self, learner_id: str, training_ids: Sequence[str]
    ) -> list[TrainingProgress]:
        if not training_ids:
            return []
        stmt = select(TrainingProgressRow).where(
            TrainingProgressRow.learner_id == learner_id,
            TrainingProgressRow.training_id.in_(list(training_ids)),
        ).execution_options(populate_existing=True)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_training_progress(r) for r in rows]

    async def list_learners_for_training(self, training_id: str) -> list[str]:
        stmt = (
            select(TrainingProgressRow.learner_id)
            .where(TrainingProgressRow.training_id == training_id)
            .order_by(TrainingProgressRow.learner_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress | None:
        row = await self._session.get(
            SubUnitProgressRow, (learner_id, sub_unit_id), populate_existing=True
        )
        if row is None:
            return None
        return _row_to_sub_unit_progress(row)

    async def get_or_create_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress:
        stmt = (
            insert(SubUnitProgressRow)
            .values(learner_id=learner_id, sub_unit_id=sub_unit_id)
            .on_conflict_do_nothing(index_elements=["learner_id", "sub_unit_id"])
        )
        await self._session.execute(stmt)
        progress = await self.get_sub_unit_progress(learner_id, sub_unit_id)
        if progress is None:
            raise LookupError(
                f"no sub-unit progress for {learner_id}/{sub_unit_id} after insert"
            )
        return progress

    async def save_sub_unit_progress(self, progress: SubUnitProgress) -> None:
        values = {
            "video_progress_pct": progress.video_progress_pct,
            "quiz_completed": progress.quiz_completed,
            "quiz_score": progress.quiz_score,
            "is_completed": progress.is_completed,
            "completed_at": progress.completed_at,
        }
        stmt = (
            insert(SubUnitProgressRow)
            .values(
                learner_id=progress.learner_id,
                sub_unit_id=progress.sub_unit_id,
                **values,
            )
            .on_conflict_do_update(
                index_elements=["learner_id", "sub_unit_id"], set_=values
            )
        )
        await self._session.execute(stmt)

    async def list_sub_unit_progress(
        self, learner_id: str, sub_unit_ids: Sequence[str]
    ) -> list[SubUnitProgress]:
        if not sub_unit_ids:
            return []
        stmt = select(SubUnitProgressRow).where(
            SubUnitProgressRow.learner_id == learner_id,
            SubUnitProgressRow.sub_unit_id.in_(list(sub_unit_ids)),
        ).execution_options(populate_existing=True)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_sub_unit_progress(r) for r in rows]


def _row_to_training_progress(row: TrainingProgressRow) -> TrainingProgress:
    return TrainingProgress(
        learner_id=row.learner_id,
        training_id=row.training_id,
        video_progress_pct=row.video_progress_pct,
        video_watched_seconds=row.video_watched_seconds,
        quiz_completed=row.quiz_completed,
        quiz_score=row.quiz_score,
        quiz_postponed=row.quiz_postponed,
        sub_units_completed_count=row.sub_units_completed_count,
        sub_units_total_count=row.sub_units_total_count,
        progress_pct=row.progress_pct,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
    )


def _row_to_sub_unit_progress(row: SubUnitProgressRow) -> SubUnitProgress:
    return SubUnitProgress(
        learner_id=row.learner_id,
        sub_unit_id=row.sub_unit_id,
        video_progress_pct=row.video_progress_pct,
        quiz_completed=row.quiz_completed,
        quiz_score=row.quiz_score,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
    )
