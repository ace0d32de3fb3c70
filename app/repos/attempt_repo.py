from __future__ import annotations

from typing import Protocol

from app.models.quiz_attempt import QuizAttempt


class QuizAttemptRepo(Protocol):
    async def add(self, attempt: QuizAttempt) -> None: ...
    async def count(self, learner_id: str, quiz_id: str) -> int: ...
    async def list_for(self, learner_id: str, quiz_id: str) -> list[QuizAttempt]: ...


class InMemoryQuizAttemptRepo:
    """Append-only; attempts are never updated or removed."""

    def __init__(self) -> None:
        self._attempts: list[QuizAttempt] = []

    async def add(self, attempt: QuizAttempt) -> None:
        self._attempts.append(attempt)

    async def count(self, learner_id: str, quiz_id: str) -> int:
        return sum(
            1
            for a in self._attempts
            if a.learner_id == learner_id and a.quiz_id == quiz_id
        )

    async def list_for(self, learner_id: str, quiz_id: str) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts
            if a.learner_id == learner_id and a.quiz_id == quiz_id
        ]
