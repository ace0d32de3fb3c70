"""Training and sub-unit progress storage.

SINGLE WRITER PER (LEARNER, TRAINING)
---------------------------------------
A watch-progress ping and a quiz submission for the same learner and
training can arrive at the same time.  Both do upsert → re-read →
recompute → save.  If they interleave, the slower one can save a
progress value computed from a stale read.

``writer(learner_id, training_id)`` is the scope every such sequence
runs in.  Sub-unit writes take the scope of the sub-unit's parent
training, since they feed the same recompute.  Different learners never
share a scope, so a batch recalculation can process them in parallel.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from app.models.progress import SubUnitProgress, TrainingProgress


class ProgressRepo(Protocol):
    def writer(
        self, learner_id: str, training_id: str
    ) -> AbstractAsyncContextManager[None]: ...
    async def get_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress | None: ...
    async def get_or_create_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress: ...
    async def save_training_progress(self, progress: TrainingProgress) -> None: ...
    async def list_training_progress(
        self, learner_id: str, training_ids: Sequence[str]
    ) -> list[TrainingProgress]: ...
    async def list_learners_for_training(self, training_id: str) -> list[str]: ...
    async def get_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress | None: ...
    async def get_or_create_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress: ...
    async def save_sub_unit_progress(self, progress: SubUnitProgress) -> None: ...
    async def list_sub_unit_progress(
        self, learner_id: str, sub_unit_ids: Sequence[str]
    ) -> list[SubUnitProgress]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._training: dict[tuple[str, str], TrainingProgress] = {}
        self._sub_unit: dict[tuple[str, str], SubUnitProgress] = {}
        # An entry lives only while some writer holds or awaits its lock
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def writer(self, learner_id: str, training_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault((learner_id, training_id), asyncio.Lock())
        async with lock:
            yield

    async def get_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress | None:
        return self._training.get((learner_id, training_id))

    async def get_or_create_training_progress(
        self, learner_id: str, training_id: str
    ) -> TrainingProgress:
        return self._training.setdefault(
            (learner_id, training_id), TrainingProgress.zero(learner_id, training_id)
        )

    async def save_training_progress(self, progress: TrainingProgress) -> None:
        self._training[(progress.learner_id, progress.training_id)] = progress

    async def list_training_progress(
        self, learner_id: str, training_ids: Sequence[str]
    ) -> list[TrainingProgress]:
        return [
            self._training[(learner_id, tid)]
            for tid in training_ids
            if (learner_id, tid) in self._training
        ]

    async def list_learners_for_training(self, training_id: str) -> list[str]:
        return sorted(
            learner for (learner, tid) in self._training if tid == training_id
        )

    async def get_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress | None:
        return self._sub_unit.get((learner_id, sub_unit_id))

    async def get_or_create_sub_unit_progress(
        self, learner_id: str, sub_unit_id: str
    ) -> SubUnitProgress:
        return self._sub_unit.setdefault(
            (learner_id, sub_unit_id), SubUnitProgress.zero(learner_id, sub_unit_id)
        )

    async def save_sub_unit_progress(self, progress: SubUnitProgress) -> None:
        self._sub_unit[(progress.learner_id, progress.sub_unit_id)] = progress

    async def list_sub_unit_progress(
        self, learner_id: str, sub_unit_ids: Sequence[str]
    ) -> list[SubUnitProgress]:
        return [
            self._sub_unit[(learner_id, sid)]
            for sid in sub_unit_ids
            if (learner_id, sid) in self._sub_unit
        ]
