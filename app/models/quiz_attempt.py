from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """Append-only record of one quiz submission."""

    id: str
    learner_id: str
    quiz_id: str
    attempt_no: int
    score: int
    passed: bool
    answers_json: str
    completed_at: int
    started_at: int | None = None
    time_spent_seconds: int | None = None

    @staticmethod
    def new(
        *,
        learner_id: str,
        quiz_id: str,
        attempt_no: int,
        score: int,
        passed: bool,
        answers_json: str,
        completed_at: int,
        started_at: int | None = None,
        time_spent_seconds: int | None = None,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=str(uuid4()),
            learner_id=learner_id,
            quiz_id=quiz_id,
            attempt_no=attempt_no,
            score=score,
            passed=passed,
            answers_json=answers_json,
            completed_at=completed_at,
            started_at=started_at,
            time_spent_seconds=time_spent_seconds,
        )
