from __future__ import annotations

from app.models.content import parse_questions
from app.services.quiz_randomizer import attempt_seed, randomize


def _bank(n: int = 10):
    return parse_questions(
        [
            {
                "id": f"q{i}",
                "question": f"Question {i}?",
                "options": ["w", "x", "y", "z"],
                "correctAnswer": 3,
            }
            for i in range(n)
        ]
    )


def _fingerprint(selection) -> list[tuple[str, tuple[str, ...]]]:
    return [(rq.id, tuple(o.id for o in rq.options)) for rq in selection]


def test_same_learner_and_attempt_is_deterministic() -> None:
    bank = _bank()
    first = randomize(bank, "learner-a", 5, 1)
    second = randomize(bank, "learner-a", 5, 1)
    assert _fingerprint(first) == _fingerprint(second)
    assert len(first) == 5


def test_different_attempt_changes_the_selection() -> None:
    bank = _bank()
    assert attempt_seed("learner-a", 1) != attempt_seed("learner-a", 2)
    assert _fingerprint(randomize(bank, "learner-a", 5, 1)) != _fingerprint(
        randomize(bank, "learner-a", 5, 2)
    )


def test_different_learners_get_different_seeds() -> None:
    assert attempt_seed("learner-a", 1) != attempt_seed("learner-b", 1)


def test_k_at_or_above_bank_size_returns_whole_bank() -> None:
    bank = _bank(4)
    for k in (None, 0, 4, 9):
        picked = randomize(bank, "learner-a", k, 1)
        assert sorted(rq.id for rq in picked) == ["q0", "q1", "q2", "q3"]


def test_selected_questions_are_distinct() -> None:
    picked = randomize(_bank(), "learner-a", 7, 3)
    assert len({rq.id for rq in picked}) == 7


def test_correct_answer_follows_its_option_through_the_shuffle() -> None:
    bank = _bank()
    for attempt in range(1, 6):
        for rq in randomize(bank, "learner-a", None, attempt):
            # Original index 3 is "z", wherever it lands
            assert rq.correct_option is not None
            assert rq.correct_option.text == "z"
            assert rq.options[rq.correct_index].id == rq.question.options[3].id


def test_options_are_a_permutation_of_the_original() -> None:
    for rq in randomize(_bank(3), "learner-a", None, 1):
        assert sorted(o.id for o in rq.options) == sorted(
            o.id for o in rq.question.options
        )


def test_free_text_question_has_no_correct_index() -> None:
    bank = parse_questions(
        [{"id": "f1", "type": "short_answer", "question": "Say hi", "correctAnswer": "hi"}]
    )
    [rq] = randomize(bank, "learner-a", None, 1)
    assert rq.options == ()
    assert rq.correct_index is None


def test_empty_bank_yields_nothing() -> None:
    assert randomize((), "learner-a", 3, 1) == []
