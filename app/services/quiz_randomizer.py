"""Deterministic per-attempt question selection and option shuffling.

The randomized copy is never stored.  Display and scoring both call
``randomize`` with the same (learner, attempt number), get the same
questions in the same order, and so agree on which displayed position
is correct.  A new attempt number gives a new seed, so retakes see a
different subset and ordering.
"""

from __future__ import annotations

import hashlib
import random
from collections.abc import Sequence
from dataclasses import dataclass

from app.models.content import Option, Question


@dataclass(frozen=True, slots=True)
class RandomizedQuestion:
    question: Question
    options: tuple[Option, ...]  # display order
    correct_index: int | None  # into ``options``; None for free-text questions

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def correct_option(self) -> Option | None:
        if self.correct_index is None:
            return None
        return self.options[self.correct_index]


def attempt_seed(learner_id: str, attempt_number: int) -> int:
    digest = hashlib.sha256(f"{learner_id}:{attempt_number}".encode()).digest()
    return int.from_bytes(digest[:8], "big")


def randomize(
    bank: Sequence[Question],
    learner_id: str,
    k: int | None,
    attempt_number: int,
) -> list[RandomizedQuestion]:
    """Pick ``k`` questions (whole bank when ``k`` is None or too large),
    shuffle their order, then shuffle each question's options."""
    if not bank:
        return []

    rng = random.Random(attempt_seed(learner_id, attempt_number))
    selected = list(bank)
    rng.shuffle(selected)
    if k is not None and 0 < k < len(selected):
        selected = selected[:k]

    out: list[RandomizedQuestion] = []
    for q in selected:
        original_correct = q.correct_index()
        order = list(range(len(q.options)))
        rng.shuffle(order)
        options = tuple(q.options[i] for i in order)
        correct_index = (
            order.index(original_correct) if original_correct is not None else None
        )
        out.append(
            RandomizedQuestion(question=q, options=options, correct_index=correct_index)
        )
    return out
