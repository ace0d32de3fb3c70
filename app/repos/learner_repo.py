from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from app.models.learner import LearnerStats


class LearnerRepo(Protocol):
    async def get(self, learner_id: str) -> LearnerStats | None: ...
    async def add_reward(
        self, learner_id: str, training_id: str, completed_at: int, xp: int
    ) -> LearnerStats | None: ...
    async def set_derived(self, learner_id: str, level: int, diamonds: int) -> None: ...


class InMemoryLearnerRepo:
    def __init__(self) -> None:
        self._store: dict[str, LearnerStats] = {}

    async def get(self, learner_id: str) -> LearnerStats | None:
        return self._store.get(learner_id)

    async def add_reward(
        self, learner_id: str, training_id: str, completed_at: int, xp: int
    ) -> LearnerStats | None:
        """Credit ``xp`` once per completion.  None if already credited."""
        stats = self._store.get(learner_id) or LearnerStats(learner_id=learner_id)
        if stats.was_rewarded(training_id, completed_at):
            return None
        updated = replace(
            stats,
            xp=stats.xp + xp,
            rewarded_completions=stats.rewarded_completions
            | {(training_id, completed_at)},
        )
        self._store[learner_id] = updated
        return updated

    async def set_derived(self, learner_id: str, level: int, diamonds: int) -> None:
        stats = self._store.get(learner_id) or LearnerStats(learner_id=learner_id)
        self._store[learner_id] = replace(stats, level=level, diamonds=diamonds)
