from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from app.models.content import Course, Quiz, SubUnit, Training


class ContentRepo(Protocol):
    async def get_course(self, course_id: str) -> Course | None: ...
    async def add_course(self, course: Course) -> None: ...
    async def get_training(self, training_id: str) -> Training | None: ...
    async def add_training(self, training: Training) -> None: ...
    async def set_training_published(
        self, training_id: str, is_published: bool
    ) -> Training | None: ...
    async def list_published_training_ids(self, course_id: str) -> list[str]: ...
    async def set_training_quiz(
        self, training_id: str, quiz: Quiz | None
    ) -> Training | None: ...
    async def get_sub_unit(self, sub_unit_id: str) -> SubUnit | None: ...
    async def add_sub_unit(self, sub_unit: SubUnit) -> None: ...
    async def remove_sub_unit(self, sub_unit_id: str) -> SubUnit | None: ...
    async def set_sub_unit_quiz(
        self, sub_unit_id: str, quiz: Quiz | None
    ) -> SubUnit | None: ...


class InMemoryContentRepo:
    """Trainings are stored with their sub-units embedded (by position)."""

    def __init__(self) -> None:
        self._courses: dict[str, Course] = {}
        self._trainings: dict[str, Training] = {}
        self._sub_unit_owner: dict[str, str] = {}  # sub_unit_id -> training_id

    async def get_course(self, course_id: str) -> Course | None:
        return self._courses.get(course_id)

    async def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course

    async def get_training(self, training_id: str) -> Training | None:
        return self._trainings.get(training_id)

    async def add_training(self, training: Training) -> None:
        if training.id in self._trainings:
            raise ValueError("training already exists")
        self._trainings[training.id] = training
        for su in training.sub_units:
            self._sub_unit_owner[su.id] = training.id

    async def set_training_published(
        self, training_id: str, is_published: bool
    ) -> Training | None:
        t = self._trainings.get(training_id)
        if t is None:
            return None
        updated = replace(t, is_published=is_published)
        self._trainings[training_id] = updated
        return updated

    async def list_published_training_ids(self, course_id: str) -> list[str]:
        return [
            t.id
            for t in self._trainings.values()
            if t.course_id == course_id and t.is_published
        ]

    async def set_training_quiz(
        self, training_id: str, quiz: Quiz | None
    ) -> Training | None:
        t = self._trainings.get(training_id)
        if t is None:
            return None
        updated = replace(t, quiz=quiz)
        self._trainings[training_id] = updated
        return updated

    async def get_sub_unit(self, sub_unit_id: str) -> SubUnit | None:
        training_id = self._sub_unit_owner.get(sub_unit_id)
        if training_id is None:
            return None
        for su in self._trainings[training_id].sub_units:
            if su.id == sub_unit_id:
                return su
        return None

    async def add_sub_unit(self, sub_unit: SubUnit) -> None:
        t = self._trainings.get(sub_unit.training_id)
        if t is None:
            raise KeyError("training not found")
        if sub_unit.id in self._sub_unit_owner:
            raise ValueError("sub-unit already exists")
        sub_units = sorted((*t.sub_units, sub_unit), key=lambda su: su.position)
        self._trainings[t.id] = replace(t, sub_units=tuple(sub_units))
        self._sub_unit_owner[sub_unit.id] = t.id

    async def remove_sub_unit(self, sub_unit_id: str) -> SubUnit | None:
        training_id = self._sub_unit_owner.pop(sub_unit_id, None)
        if training_id is None:
            return None
        t = self._trainings[training_id]
        removed = next(su for su in t.sub_units if su.id == sub_unit_id)
        self._trainings[training_id] = replace(
            t, sub_units=tuple(su for su in t.sub_units if su.id != sub_unit_id)
        )
        return removed

    async def set_sub_unit_quiz(
        self, sub_unit_id: str, quiz: Quiz | None
    ) -> SubUnit | None:
        training_id = self._sub_unit_owner.get(sub_unit_id)
        if training_id is None:
            return None
        t = self._trainings[training_id]
        updated: SubUnit | None = None
        sub_units = []
        for su in t.sub_units:
            if su.id == sub_unit_id:
                updated = replace(su, quiz=quiz)
                sub_units.append(updated)
            else:
                sub_units.append(su)
        self._trainings[training_id] = replace(t, sub_units=tuple(sub_units))
        return updated
