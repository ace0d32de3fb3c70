from __future__ import annotations

import asyncio
import gc
from dataclasses import replace

import pytest

from app.models.content import SubUnit
from app.models.progress import CourseProgress
from app.models.quiz_attempt import QuizAttempt
from app.repos.bundle import Repos
from app.repos.course_progress_repo import InMemoryCourseProgressRepo
from app.repos.progress_repo import InMemoryProgressRepo
from tests.conftest import seed_course, seed_sub_unit, seed_training

# ---- progress ----


def test_get_or_create_returns_zero_record_once(repos: Repos) -> None:
    first = asyncio.run(repos.progress.get_or_create_training_progress("l1", "t1"))
    assert first.progress_pct == 0
    assert first.is_completed is False

    asyncio.run(repos.progress.save_training_progress(replace(first, progress_pct=40)))
    again = asyncio.run(repos.progress.get_or_create_training_progress("l1", "t1"))
    assert again.progress_pct == 40


def test_get_does_not_create(repos: Repos) -> None:
    assert asyncio.run(repos.progress.get_training_progress("l1", "t1")) is None
    assert asyncio.run(repos.progress.list_learners_for_training("t1")) == []


def test_learners_for_training_are_sorted(repos: Repos) -> None:
    for learner in ("zoe", "adam", "mia"):
        asyncio.run(repos.progress.get_or_create_training_progress(learner, "t1"))
    asyncio.run(repos.progress.get_or_create_training_progress("bob", "t2"))

    assert asyncio.run(repos.progress.list_learners_for_training("t1")) == [
        "adam",
        "mia",
        "zoe",
    ]


def test_list_sub_unit_progress_skips_untouched(repos: Repos) -> None:
    asyncio.run(repos.progress.get_or_create_sub_unit_progress("l1", "s1"))
    rows = asyncio.run(repos.progress.list_sub_unit_progress("l1", ["s1", "s2"]))
    assert [r.sub_unit_id for r in rows] == ["s1"]


def test_writer_serializes_the_same_pair(repos: Repos) -> None:
    order: list[str] = []

    async def _step(name: str) -> None:
        async with repos.progress.writer("l1", "t1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    async def _main() -> None:
        await asyncio.gather(_step("a"), _step("b"))

    asyncio.run(_main())
    assert order == ["a-in", "a-out", "b-in", "b-out"]


def test_writer_locks_are_released_after_use() -> None:
    progress = InMemoryProgressRepo()
    course_progress = InMemoryCourseProgressRepo()

    async def _main() -> None:
        async with progress.writer("l1", "t1"):
            assert len(progress._locks) == 1
            async with course_progress.writer("l1", "c1"):
                assert len(course_progress._locks) == 1

    for _ in range(3):
        asyncio.run(_main())
    gc.collect()

    assert len(progress._locks) == 0
    assert len(course_progress._locks) == 0


# ---- course progress ----


def test_course_progress_upsert_and_learners(repos: Repos) -> None:
    asyncio.run(repos.course_progress.upsert(CourseProgress("l2", "c1", 50.0)))
    asyncio.run(repos.course_progress.upsert(CourseProgress("l1", "c1", 100.0, True)))
    asyncio.run(repos.course_progress.upsert(CourseProgress("l1", "c1", 50.0)))

    assert asyncio.run(repos.course_progress.get("l1", "c1")).progress_pct == 50
    assert asyncio.run(repos.course_progress.list_learners_for_course("c1")) == [
        "l1",
        "l2",
    ]


# ---- attempts ----


def _attempt(learner: str, quiz: str, n: int) -> QuizAttempt:
    return QuizAttempt.new(
        learner_id=learner,
        quiz_id=quiz,
        attempt_no=n,
        score=50,
        passed=False,
        answers_json="{}",
        completed_at=1_700_000_000 + n,
    )


def test_attempts_are_counted_per_learner_and_quiz(repos: Repos) -> None:
    for a in (_attempt("l1", "qz", 1), _attempt("l1", "qz", 2), _attempt("l2", "qz", 1)):
        asyncio.run(repos.attempts.add(a))

    assert asyncio.run(repos.attempts.count("l1", "qz")) == 2
    assert asyncio.run(repos.attempts.count("l1", "other")) == 0
    assert [a.attempt_no for a in asyncio.run(repos.attempts.list_for("l1", "qz"))] == [
        1,
        2,
    ]


# ---- learners ----


def test_add_reward_is_claimed_once_per_completion(repos: Repos) -> None:
    first = asyncio.run(repos.learners.add_reward("l1", "t1", 1000, 80))
    repeat = asyncio.run(repos.learners.add_reward("l1", "t1", 1000, 80))
    other = asyncio.run(repos.learners.add_reward("l1", "t2", 1000, 20))
    recompleted = asyncio.run(repos.learners.add_reward("l1", "t1", 2000, 80))

    assert first is not None and first.xp == 80
    assert repeat is None
    assert other is not None and other.xp == 100
    assert recompleted is not None and recompleted.xp == 180
    assert recompleted.was_rewarded("t1", 1000)
    assert recompleted.was_rewarded("t1", 2000)
    assert not recompleted.was_rewarded("t2", 2000)


def test_set_derived_keeps_xp(repos: Repos) -> None:
    asyncio.run(repos.learners.add_reward("l1", "t1", 1000, 1500))
    asyncio.run(repos.learners.set_derived("l1", level=2, diamonds=150))
    stats = asyncio.run(repos.learners.get("l1"))
    assert (stats.xp, stats.level, stats.diamonds) == (1500, 2, 150)


# ---- content ----


def test_sub_units_are_kept_in_position_order(repos: Repos) -> None:
    course = seed_course(repos)
    training = seed_training(repos, course)
    later = seed_sub_unit(repos, training, position=5)
    earlier = seed_sub_unit(repos, training, position=1)

    stored = asyncio.run(repos.content.get_training(training.id))
    assert [su.id for su in stored.sub_units] == [earlier.id, later.id]

    removed = asyncio.run(repos.content.remove_sub_unit(later.id))
    assert removed.id == later.id
    assert asyncio.run(repos.content.get_sub_unit(later.id)) is None
    assert asyncio.run(repos.content.remove_sub_unit(later.id)) is None


def test_add_sub_unit_to_unknown_training(repos: Repos) -> None:
    orphan = SubUnit.new(training_id="missing", title="x", position=0)
    with pytest.raises(KeyError):
        asyncio.run(repos.content.add_sub_unit(orphan))


def test_published_training_ids(repos: Repos) -> None:
    course = seed_course(repos)
    live = seed_training(repos, course)
    draft = seed_training(repos, course, is_published=False, title="Draft")

    assert asyncio.run(repos.content.list_published_training_ids(course.id)) == [live.id]
    asyncio.run(repos.content.set_training_published(draft.id, True))
    assert set(asyncio.run(repos.content.list_published_training_ids(course.id))) == {
        live.id,
        draft.id,
    }
