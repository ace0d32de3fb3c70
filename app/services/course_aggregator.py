from __future__ import annotations

import logging
from collections.abc import Sequence

from app.models.progress import CourseProgress, TrainingProgress
from app.repos.bundle import Repos
from app.services.progress_calculator import round_half_up

logger = logging.getLogger(__name__)


def course_progress_from(
    learner_id: str,
    course_id: str,
    published_training_ids: Sequence[str],
    records: Sequence[TrainingProgress],
) -> CourseProgress:
    """Course completion = completed published trainings / all published trainings."""
    published = set(published_training_ids)
    total = len(published)
    completed = sum(
        1 for r in records if r.training_id in published and r.is_completed
    )
    pct = round_half_up(100 * completed / total, 2) if total else 0.0
    pct = max(0.0, min(100.0, pct))
    return CourseProgress(
        learner_id=learner_id,
        course_id=course_id,
        progress_pct=pct,
        is_completed=pct >= 100,
        completed_trainings=completed,
        total_trainings=total,
    )


async def aggregate(repos: Repos, learner_id: str, course_id: str) -> CourseProgress:
    """Rebuild and upsert the learner's course record from current state.

    The first call for a (learner, course) pair creates the record, so no
    separate enrollment step is needed.
    """
    async with repos.course_progress.writer(learner_id, course_id):
        training_ids = await repos.content.list_published_training_ids(course_id)
        records = await repos.progress.list_training_progress(learner_id, training_ids)
        course_progress = course_progress_from(
            learner_id, course_id, training_ids, records
        )
        await repos.course_progress.upsert(course_progress)
    logger.debug(
        "Course progress learner=%s course=%s %d/%d = %.2f%%",
        learner_id,
        course_id,
        course_progress.completed_trainings,
        course_progress.total_trainings,
        course_progress.progress_pct,
    )
    return course_progress
