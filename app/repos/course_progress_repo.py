from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from app.models.progress import CourseProgress


class CourseProgressRepo(Protocol):
    def writer(
        self, learner_id: str, course_id: str
    ) -> AbstractAsyncContextManager[None]: ...
    async def get(self, learner_id: str, course_id: str) -> CourseProgress | None: ...
    async def upsert(self, progress: CourseProgress) -> None: ...
    async def list_learners_for_course(self, course_id: str) -> list[str]: ...


class InMemoryCourseProgressRepo:
    """Lock order: a training writer may be held when this writer is taken,
    never the other way round."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CourseProgress] = {}
        # An entry lives only while some writer holds or awaits its lock
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def writer(self, learner_id: str, course_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault((learner_id, course_id), asyncio.Lock())
        async with lock:
            yield

    async def get(self, learner_id: str, course_id: str) -> CourseProgress | None:
        return self._store.get((learner_id, course_id))

    async def upsert(self, progress: CourseProgress) -> None:
        self._store[(progress.learner_id, progress.course_id)] = progress

    async def list_learners_for_course(self, course_id: str) -> list[str]:
        return sorted(learner for (learner, cid) in self._store if cid == course_id)
