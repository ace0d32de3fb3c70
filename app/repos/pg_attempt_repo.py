"""PostgreSQL implementation of QuizAttemptRepo."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import QuizAttemptRow
from app.models.quiz_attempt import QuizAttempt


class PgQuizAttemptRepo:
    """Satisfies the QuizAttemptRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, attempt: QuizAttempt) -> None:
        row = QuizAttemptRow(
            id=attempt.id,
            learner_id=attempt.learner_id,
            quiz_id=attempt.quiz_id,
            attempt_no=attempt.attempt_no,
            score=attempt.score,
            passed=attempt.passed,
            answers_json=attempt.answers_json,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            time_spent_seconds=attempt.time_spent_seconds,
        )
        self._session.add(row)
        await self._session.flush()

    async def count(self, learner_id: str, quiz_id: str) -> int:
        stmt = select(func.count()).where(
            QuizAttemptRow.learner_id == learner_id,
            QuizAttemptRow.quiz_id == quiz_id,
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_for(self, learner_id: str, quiz_id: str) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.learner_id == learner_id,
                QuizAttemptRow.quiz_id == quiz_id,
            )
            .order_by(QuizAttemptRow.attempt_no)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        learner_id=row.learner_id,
        quiz_id=row.quiz_id,
        attempt_no=row.attempt_no,
        score=row.score,
        passed=row.passed,
        answers_json=row.answers_json,
        completed_at=row.completed_at,
        started_at=row.started_at,
        time_spent_seconds=row.time_spent_seconds,
    )
