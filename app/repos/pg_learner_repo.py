"""PostgreSQL implementation of LearnerRepo.

The reward row's primary key makes each completion pay once: the insert
either claims (learner, training, completed_at) or hits the conflict and
credits nothing.  A re-completion after a demotion carries a new
completed_at and claims a fresh row.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LearnerRewardRow, LearnerStatsRow
from app.models.learner import LearnerStats


class PgLearnerRepo:
    """Satisfies the LearnerRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, learner_id: str) -> LearnerStats | None:
        row = await self._session.get(
            LearnerStatsRow, learner_id, populate_existing=True
        )
        if row is None:
            return None
        stmt = select(
            LearnerRewardRow.training_id, LearnerRewardRow.completed_at
        ).where(LearnerRewardRow.learner_id == learner_id)
        rewarded = (await self._session.execute(stmt)).all()
        return LearnerStats(
            learner_id=row.learner_id,
            xp=row.xp,
            level=row.level,
            diamonds=row.diamonds,
            rewarded_completions=frozenset(
                (training_id, completed_at) for training_id, completed_at in rewarded
            ),
        )

    async def add_reward(
        self, learner_id: str, training_id: str, completed_at: int, xp: int
    ) -> LearnerStats | None:
        claim = (
            insert(LearnerRewardRow)
            .values(
                learner_id=learner_id,
                training_id=training_id,
                completed_at=completed_at,
                xp=xp,
            )
            .on_conflict_do_nothing(
                index_elements=["learner_id", "training_id", "completed_at"]
            )
        )
        result = await self._session.execute(claim)
        if result.rowcount == 0:
            return None

        await self._session.execute(
            insert(LearnerStatsRow)
            .values(learner_id=learner_id)
            .on_conflict_do_nothing(index_elements=["learner_id"])
        )
        # Increment in SQL so concurrent awards for other trainings add up
        await self._session.execute(
            update(LearnerStatsRow)
            .where(LearnerStatsRow.learner_id == learner_id)
            .values(xp=LearnerStatsRow.xp + xp)
        )
        return await self.get(learner_id)

    async def set_derived(self, learner_id: str, level: int, diamonds: int) -> None:
        stmt = (
            insert(LearnerStatsRow)
            .values(learner_id=learner_id, level=level, diamonds=diamonds)
            .on_conflict_do_update(
                index_elements=["learner_id"],
                set_={"level": level, "diamonds": diamonds},
            )
        )
        await self._session.execute(stmt)
