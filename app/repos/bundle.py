"""Repository bundle handed to services.

Services take one ``Repos`` instead of five arguments.  The in-memory
bundle backs dev and tests; the Pg bundle shares one request-scoped
session so every repo writes inside the same transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.repos.attempt_repo import InMemoryQuizAttemptRepo, QuizAttemptRepo
from app.repos.content_repo import ContentRepo, InMemoryContentRepo
from app.repos.course_progress_repo import (
    CourseProgressRepo,
    InMemoryCourseProgressRepo,
)
from app.repos.learner_repo import InMemoryLearnerRepo, LearnerRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo


@dataclass(frozen=True)
class Repos:
    content: ContentRepo
    progress: ProgressRepo
    course_progress: CourseProgressRepo
    attempts: QuizAttemptRepo
    learners: LearnerRepo
    # Writes share one connection, so per-learner work has to run serially
    serial_writes: bool = False


def in_memory_repos() -> Repos:
    return Repos(
        content=InMemoryContentRepo(),
        progress=InMemoryProgressRepo(),
        course_progress=InMemoryCourseProgressRepo(),
        attempts=InMemoryQuizAttemptRepo(),
        learners=InMemoryLearnerRepo(),
    )


def pg_repos(session: AsyncSession) -> Repos:
    from app.repos.pg_attempt_repo import PgQuizAttemptRepo
    from app.repos.pg_content_repo import PgContentRepo
    from app.repos.pg_course_progress_repo import PgCourseProgressRepo
    from app.repos.pg_learner_repo import PgLearnerRepo
    from app.repos.pg_progress_repo import PgProgressRepo

    return Repos(
        content=PgContentRepo(session),
        progress=PgProgressRepo(session),
        course_progress=PgCourseProgressRepo(session),
        attempts=PgQuizAttemptRepo(session),
        learners=PgLearnerRepo(session),
        serial_writes=True,
    )
