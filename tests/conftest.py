from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api import dependencies
from app.main import app
from app.models.content import Course, Quiz, SubUnit, Training, parse_questions
from app.repos.bundle import Repos, in_memory_repos
from app.services import token_service
from app.services.notifications import InMemoryNotificationSink

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_in_memory_state() -> None:
    """Fresh in-memory stores and notification sink for every test."""
    dependencies.reset_in_memory_state()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def app_repos() -> Repos:
    """The stores the app's routes read and write (no DATABASE_URL in tests)."""
    return dependencies.in_memory_state()[0]


@pytest.fixture
def app_notifier() -> InMemoryNotificationSink:
    return dependencies.in_memory_state()[1]


@pytest.fixture
def repos() -> Repos:
    """Standalone stores for service-level tests."""
    return in_memory_repos()


def mint_token(
    username: str = "learner-1",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with the default learner role."""
    return mint_token()


@pytest.fixture
def trainer_token() -> str:
    return mint_token(username="trainer-1", roles=["trainer"])


# ---------------------------------------------------------------------------
# Content helpers
# ---------------------------------------------------------------------------


class FixedClock:
    """Deterministic epoch-seconds clock; ``advance`` moves it forward."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def make_quiz(
    n_questions: int = 2,
    *,
    passing_score: int = 70,
    allow_retake: bool = True,
    max_attempts: int | None = None,
    questions_to_show: int | None = None,
) -> Quiz:
    """Questions q0..qN-1, options "A".."D"; the correct answer is always "A"."""
    raw = [
        {
            "id": f"q{i}",
            "type": "multiple_choice",
            "question": f"Question {i}?",
            "options": [
                {"id": f"q{i}-a", "text": "A"},
                {"id": f"q{i}-b", "text": "B"},
                {"id": f"q{i}-c", "text": "C"},
                {"id": f"q{i}-d", "text": "D"},
            ],
            "correctAnswer": f"q{i}-a",
            "explanation": f"A is right for {i}",
        }
        for i in range(n_questions)
    ]
    return Quiz.new(
        questions=parse_questions(raw),
        passing_score=passing_score,
        allow_retake=allow_retake,
        max_attempts=max_attempts,
        questions_to_show=questions_to_show,
    )


def correct_answers(quiz: Quiz) -> dict[str, str]:
    return {q.id: f"{q.id}-a" for q in quiz.questions}


def wrong_answers(quiz: Quiz) -> dict[str, str]:
    return {q.id: f"{q.id}-b" for q in quiz.questions}


def seed_course(repos: Repos, title: str = "Compliance 101") -> Course:
    course = Course.new(title=title)
    asyncio.run(repos.content.add_course(course))
    return course


def seed_training(
    repos: Repos,
    course: Course,
    *,
    video_duration: int | None = 600,
    minimum_watch_time: int = 0,
    total_xp: int = 100,
    quiz: Quiz | None = None,
    is_published: bool = True,
    title: str = "Data Privacy",
) -> Training:
    training = Training.new(
        course_id=course.id,
        title=title,
        video_duration=video_duration,
        minimum_watch_time=minimum_watch_time,
        total_xp=total_xp,
        is_published=is_published,
    )
    asyncio.run(repos.content.add_training(training))
    if quiz is not None:
        asyncio.run(repos.content.set_training_quiz(training.id, quiz))
    stored = asyncio.run(repos.content.get_training(training.id))
    assert stored is not None
    return stored


def seed_sub_unit(
    repos: Repos,
    training: Training,
    *,
    video_duration: int | None = 120,
    quiz: Quiz | None = None,
    position: int = 0,
) -> SubUnit:
    sub_unit = SubUnit.new(
        training_id=training.id,
        title=f"Part {position + 1}",
        position=position,
        video_duration=video_duration,
    )
    asyncio.run(repos.content.add_sub_unit(sub_unit))
    if quiz is not None:
        asyncio.run(repos.content.set_sub_unit_quiz(sub_unit.id, quiz))
    stored = asyncio.run(repos.content.get_sub_unit(sub_unit.id))
    assert stored is not None
    return stored
