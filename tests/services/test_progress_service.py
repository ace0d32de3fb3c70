from __future__ import annotations

import asyncio

import pytest

from app.repos.bundle import Repos
from app.services import progress_service
from app.services.errors import (
    NotFoundError,
    QuizAttemptNotAllowedError,
    ValidationError,
)
from app.services.progress_service import AttemptMeta
from tests.conftest import (
    FixedClock,
    correct_answers,
    make_quiz,
    seed_course,
    seed_sub_unit,
    seed_training,
    wrong_answers,
)

# ---- watch progress ----


def test_record_watch_progress_reports_video_and_training(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=200, minimum_watch_time=120)

    res = asyncio.run(
        progress_service.record_watch_progress(repos, "l1", training.id, 130.7)
    )

    assert res.watched_seconds == 130
    assert res.video_progress_pct == 65.35
    assert res.can_take_quiz is True
    assert res.is_video_completed is False
    assert res.minimum_watch_time == 120
    assert res.progress_pct == 65.35
    assert res.is_completed is False


def test_video_completed_at_ninety_percent(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=100)
    res = asyncio.run(progress_service.record_watch_progress(repos, "l1", training.id, 90))
    assert res.is_video_completed is True


def test_watching_past_the_end_caps_at_100(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=100, total_xp=40)
    res = asyncio.run(
        progress_service.record_watch_progress(repos, "l1", training.id, 250)
    )
    assert res.video_progress_pct == 100
    assert res.is_completed is True
    # No quiz on the training: half XP
    assert asyncio.run(repos.learners.get("l1")).xp == 20


def test_watch_signal_never_moves_backwards(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=100)
    asyncio.run(progress_service.record_watch_progress(repos, "l1", training.id, 80))
    res = asyncio.run(progress_service.record_watch_progress(repos, "l1", training.id, 10))
    assert res.watched_seconds == 80
    assert res.video_progress_pct == 80


@pytest.mark.parametrize("bad", [-1, float("inf"), float("nan"), True, "12", None])
def test_invalid_watched_seconds_rejected_before_any_write(
    repos: Repos, bad: object
) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course)
    with pytest.raises(ValidationError):
        asyncio.run(progress_service.record_watch_progress(repos, "l1", training.id, bad))
    assert asyncio.run(repos.progress.get_training_progress("l1", training.id)) is None


def test_watch_progress_for_unknown_training(repos: Repos) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(progress_service.record_watch_progress(repos, "l1", "nope", 10))


def test_get_watch_progress_is_zero_when_not_started(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, minimum_watch_time=30)
    view = asyncio.run(progress_service.get_watch_progress(repos, "l1", training.id))
    assert view.watched_seconds == 0
    assert view.can_take_quiz is False
    assert view.minimum_watch_time == 30


# ---- sub-units ----


def test_sub_unit_watch_does_not_complete_the_sub_unit(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=None)
    sub_unit = seed_sub_unit(repos, training, video_duration=100, quiz=make_quiz(1))

    res = asyncio.run(
        progress_service.record_sub_unit_watch_progress(repos, "l1", sub_unit.id, 60)
    )

    assert res.video_progress_pct == 60
    assert res.can_take_quiz is True
    assert res.is_completed is False
    # 60% video x 0.7 = 42 for the only sub-unit
    assert res.training_progress_pct == 42


def test_sub_unit_quiz_unlocks_at_half_the_video(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course)
    sub_unit = seed_sub_unit(repos, training, video_duration=100)
    res = asyncio.run(
        progress_service.record_sub_unit_watch_progress(repos, "l1", sub_unit.id, 49)
    )
    assert res.can_take_quiz is False


def test_passing_sub_quiz_completes_sub_unit(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, video_duration=None)
    quiz = make_quiz(2)
    sub_unit = seed_sub_unit(repos, training, video_duration=None, quiz=quiz)

    res = asyncio.run(
        progress_service.submit_sub_unit_quiz(
            repos, "l1", sub_unit.id, correct_answers(quiz)
        )
    )

    assert res.passed is True
    assert res.is_completed is True
    sp = asyncio.run(repos.progress.get_sub_unit_progress("l1", sub_unit.id))
    assert sp.is_completed is True
    tp = asyncio.run(progress_service.get_training_progress(repos, "l1", training.id))
    assert tp.sub_units_completed_count == 1
    assert tp.sub_units_total_count == 1


# ---- training quiz ----


def test_submit_training_quiz_pass_completes_and_awards_xp(repos: Repos) -> None:
    clock = FixedClock()
    course = seed_course(repos)
    quiz = make_quiz(4)
    training = seed_training(repos, course, video_duration=None, quiz=quiz, total_xp=200)

    answers = correct_answers(quiz)
    answers["q3"] = "q3-b"
    res = asyncio.run(
        progress_service.submit_training_quiz(
            repos, "l1", training.id, answers, AttemptMeta(started_at=clock.now - 45),
            clock=clock,
        )
    )

    assert res.score == 75
    assert res.passed is True
    assert res.correct_count == 3
    assert res.total_questions == 4
    assert res.attempt_number == 1
    assert res.xp_earned == 150
    assert res.progress_pct == 100
    assert res.is_completed is True

    [attempt] = asyncio.run(repos.attempts.list_for("l1", quiz.id))
    assert attempt.time_spent_seconds == 45
    assert asyncio.run(repos.course_progress.get("l1", course.id)).is_completed


def test_failed_quiz_counts_attempt_without_progress(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(2)
    training = seed_training(repos, course, video_duration=100, quiz=quiz)

    res = asyncio.run(
        progress_service.submit_training_quiz(
            repos,
            "l1",
            training.id,
            wrong_answers(quiz),
            AttemptMeta(time_spent_seconds=30),
        )
    )

    assert res.score == 0
    assert res.passed is False
    assert res.xp_earned == 0
    assert res.progress_pct == 0
    [attempt] = asyncio.run(repos.attempts.list_for("l1", quiz.id))
    assert attempt.time_spent_seconds == 30


def test_passed_quiz_stays_passed_after_a_worse_retake(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(2)
    training = seed_training(repos, course, video_duration=100, quiz=quiz)
    asyncio.run(
        progress_service.submit_training_quiz(
            repos, "l1", training.id, correct_answers(quiz)
        )
    )
    retake = asyncio.run(
        progress_service.submit_training_quiz(
            repos, "l1", training.id, wrong_answers(quiz)
        )
    )

    assert retake.attempt_number == 2
    assert retake.progress_pct == 50
    tp = asyncio.run(repos.progress.get_training_progress("l1", training.id))
    assert tp.quiz_completed is True
    assert tp.quiz_score == 0


def test_retake_rejected_when_not_allowed(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(1, allow_retake=False)
    training = seed_training(repos, course, quiz=quiz)
    asyncio.run(
        progress_service.submit_training_quiz(repos, "l1", training.id, wrong_answers(quiz))
    )
    with pytest.raises(QuizAttemptNotAllowedError, match="retakes"):
        asyncio.run(
            progress_service.submit_training_quiz(
                repos, "l1", training.id, correct_answers(quiz)
            )
        )


def test_max_attempts_enforced(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(1, max_attempts=2)
    training = seed_training(repos, course, quiz=quiz)
    for _ in range(2):
        asyncio.run(
            progress_service.submit_training_quiz(
                repos, "l1", training.id, wrong_answers(quiz)
            )
        )
    with pytest.raises(QuizAttemptNotAllowedError, match="maximum attempts"):
        asyncio.run(
            progress_service.submit_training_quiz(
                repos, "l1", training.id, wrong_answers(quiz)
            )
        )
    assert asyncio.run(repos.attempts.count("l1", quiz.id)) == 2


def test_presented_quiz_matches_what_scoring_uses(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(6, questions_to_show=3)
    training = seed_training(repos, course, video_duration=None, quiz=quiz)

    presented = asyncio.run(
        progress_service.present_training_quiz(repos, "l1", training.id)
    )
    assert presented.attempt_number == 1
    assert len(presented.questions) == 3

    # Answer by displayed position only
    answers = {rq.id: rq.correct_index for rq in presented.questions}
    res = asyncio.run(
        progress_service.submit_training_quiz(repos, "l1", training.id, answers)
    )
    assert res.score == 100
    assert {r.question_id for r in res.results} == set(answers)


def test_present_quiz_for_training_without_quiz(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course)
    with pytest.raises(NotFoundError):
        asyncio.run(progress_service.present_training_quiz(repos, "l1", training.id))


def test_answers_must_be_a_mapping(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course, quiz=make_quiz())
    with pytest.raises(ValidationError):
        asyncio.run(
            progress_service.submit_training_quiz(repos, "l1", training.id, ["a"])
        )


# ---- postpone ----


def test_postpone_is_cleared_by_submission(repos: Repos) -> None:
    course = seed_course(repos)
    quiz = make_quiz(1)
    training = seed_training(repos, course, quiz=quiz)

    record = asyncio.run(progress_service.postpone_quiz(repos, "l1", training.id))
    assert record.quiz_postponed is True

    asyncio.run(
        progress_service.submit_training_quiz(repos, "l1", training.id, wrong_answers(quiz))
    )
    tp = asyncio.run(repos.progress.get_training_progress("l1", training.id))
    assert tp.quiz_postponed is False


# ---- reads ----


def test_training_progress_read_does_not_create_record(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course)
    seed_sub_unit(repos, training)

    tp = asyncio.run(progress_service.get_training_progress(repos, "l1", training.id))

    assert tp.progress_pct == 0
    assert tp.sub_units_total_count == 1
    assert asyncio.run(repos.progress.get_training_progress("l1", training.id)) is None


def test_course_progress_read_without_tracking(repos: Repos) -> None:
    course = seed_course(repos)
    t1 = seed_training(repos, course, video_duration=100)
    seed_training(repos, course, title="Second")
    seed_training(repos, course, title="Draft", is_published=False)
    asyncio.run(progress_service.record_watch_progress(repos, "l1", t1.id, 100))

    cp = asyncio.run(progress_service.get_course_progress(repos, "l1", course.id))
    assert cp.progress_pct == 50
    assert cp.total_trainings == 2

    other = asyncio.run(progress_service.get_course_progress(repos, "l2", course.id))
    assert other.progress_pct == 0
    assert asyncio.run(repos.course_progress.get("l2", course.id)) is None


def test_course_progress_unknown_course(repos: Repos) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(progress_service.get_course_progress(repos, "l1", "nope"))


def test_learner_stats_default_to_zero(repos: Repos) -> None:
    stats = asyncio.run(progress_service.get_learner_stats(repos, "nobody"))
    assert stats.xp == 0
    assert stats.level == 1
    assert stats.xp_to_next_level == 1000
