"""Score a submission against the randomized questions it was shown.

Answers are keyed by question id.  A string answer is an option id (or
the free-text answer for short-answer questions); an int answer is the
position of the option in the *displayed* order.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.models.content import ById
from app.services.progress_calculator import round_half_up
from app.services.quiz_randomizer import RandomizedQuestion


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question_id: str
    question: str
    user_answer: str | None  # option text when the answer named an option
    correct_answer: str | None  # option id (or expected free text)
    correct_answer_text: str | None
    is_correct: bool
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class QuizScore:
    score: int
    passed: bool
    correct_count: int
    total: int
    results: tuple[QuestionResult, ...]


def _selected_index(rq: RandomizedQuestion, answer: Any) -> int | None:
    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer if 0 <= answer < len(rq.options) else None
    if isinstance(answer, str):
        for i, opt in enumerate(rq.options):
            if opt.id == answer:
                return i
    return None


def _grade(rq: RandomizedQuestion, answer: Any) -> QuestionResult:
    q = rq.question
    selected = _selected_index(rq, answer)
    correct_opt = rq.correct_option

    if rq.options:
        is_correct = selected is not None and selected == rq.correct_index
        user_text = rq.options[selected].text if selected is not None else (
            None if answer is None else str(answer)
        )
    else:
        # Free text: compare against the stored expected answer
        expected = q.correct.option_id if isinstance(q.correct, ById) else None
        is_correct = (
            expected is not None
            and isinstance(answer, str)
            and answer.strip().lower() == expected.strip().lower()
        )
        user_text = None if answer is None else str(answer)

    if correct_opt is not None:
        correct_id, correct_text = correct_opt.id, correct_opt.text
    elif isinstance(q.correct, ById):
        correct_id = correct_text = q.correct.option_id
    else:
        correct_id = correct_text = None

    return QuestionResult(
        question_id=q.id,
        question=q.text,
        user_answer=user_text,
        correct_answer=correct_id,
        correct_answer_text=correct_text,
        is_correct=is_correct,
        explanation=q.explanation,
    )


def score_submission(
    shown: Sequence[RandomizedQuestion],
    answers: Mapping[str, Any],
    passing_score: int,
) -> QuizScore:
    results = tuple(_grade(rq, answers.get(rq.id)) for rq in shown)
    correct = sum(1 for r in results if r.is_correct)
    total = len(results)
    score = int(round_half_up(100 * correct / total)) if total else 0
    return QuizScore(
        score=score,
        passed=score >= passing_score,
        correct_count=correct,
        total=total,
        results=results,
    )
