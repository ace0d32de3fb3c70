"""Re-derive stored training progress from fresh signals.

``recompute`` is the single read-compute-save step every write path goes
through: learner pings, quiz submissions and the content-change batch.
It must run inside ``repos.progress.writer(learner, training)``.

``recalculate_training`` is the batch run after a trainer changes a
training's content graph.  Each learner is an independent unit:

  - learners run concurrently up to ``concurrency`` (1 on a shared DB
    session, where statements cannot interleave);
  - a failure is logged, counted, and reported; it never stops the
    batch and never leaves that learner half-written;
  - re-running the batch converges on the same stored state, so a
    partial failure is fixed by running it again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from app.core.config import SETTINGS
from app.core.metrics import (
    LEARNERS_DEMOTED,
    RECALCULATION_BATCH_SECONDS,
    RECALCULATIONS,
)
from app.models.content import Training, TrainingContentShape
from app.models.progress import SubUnitProgress, TrainingProgress
from app.repos.bundle import Repos
from app.services import course_aggregator, gamification
from app.services.errors import NotFoundError, RecalculationPartialFailure
from app.services.progress_calculator import (
    SubUnitSignals,
    TrainingSignals,
    calculate,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


@dataclass(frozen=True, slots=True)
class Transition:
    before: TrainingProgress
    after: TrainingProgress

    @property
    def completed_now(self) -> bool:
        return not self.before.is_completed and self.after.is_completed

    @property
    def demoted(self) -> bool:
        return self.before.is_completed and not self.after.is_completed

    @property
    def flipped(self) -> bool:
        return self.before.is_completed != self.after.is_completed


async def recompute(
    repos: Repos,
    learner_id: str,
    training: Training,
    now: int,
    update: Callable[[TrainingProgress], TrainingProgress] | None = None,
) -> Transition:
    """Apply ``update`` to the raw signals, then recompute and save.

    Always re-reads the stored record and every sub-unit record, so a
    value computed by an earlier writer is never trusted.
    """
    before = await repos.progress.get_or_create_training_progress(
        learner_id, training.id
    )
    signals_record = update(before) if update else before

    sub_unit_ids = [su.id for su in training.sub_units]
    by_id: dict[str, SubUnitProgress] = {
        p.sub_unit_id: p
        for p in await repos.progress.list_sub_unit_progress(learner_id, sub_unit_ids)
    }
    sub_signals = tuple(
        SubUnitSignals(
            video_progress_pct=by_id[sid].video_progress_pct,
            quiz_completed=by_id[sid].quiz_completed,
        )
        if sid in by_id
        else SubUnitSignals()
        for sid in sub_unit_ids
    )

    shape = TrainingContentShape.of(training)
    result = calculate(
        TrainingSignals(
            video_progress_pct=signals_record.video_progress_pct,
            quiz_completed=signals_record.quiz_completed,
            sub_units=sub_signals,
        ),
        shape,
    )

    if result.is_completed:
        completed_at = before.completed_at or now
    else:
        completed_at = None

    after = replace(
        signals_record,
        progress_pct=result.progress_pct,
        is_completed=result.is_completed,
        completed_at=completed_at,
        sub_units_completed_count=sum(1 for p in by_id.values() if p.is_completed),
        sub_units_total_count=len(sub_unit_ids),
    )
    if after != before:
        await repos.progress.save_training_progress(after)
    return Transition(before=before, after=after)


async def settle(
    repos: Repos,
    training: Training,
    transition: Transition,
    *,
    score: int | None = None,
    passed: bool = False,
) -> int:
    """Follow-up for a completion flip: course re-aggregation, then XP.

    A training whose quiz has been removed pays the no-quiz rate whatever
    score the learner once had.  Returns the XP credited (0 when nothing
    was awarded).
    """
    learner_id = transition.after.learner_id
    if training.quiz is None:
        score, passed = None, False
    if transition.flipped:
        await course_aggregator.aggregate(repos, learner_id, training.course_id)
    if transition.completed_now:
        return await gamification.award_completion(
            repos,
            learner_id,
            training,
            transition.after.completed_at,
            score,
            passed,
        )
    return 0


@dataclass
class RecalculationReport:
    training_id: str
    processed: int = 0
    affected_learner_ids: list[str] = field(default_factory=list)
    failures: list[RecalculationPartialFailure] = field(default_factory=list)

    @property
    def failed_learner_ids(self) -> list[str]:
        return [f.learner_id for f in self.failures]


async def _recalculate_learner(
    repos: Repos, training: Training, learner_id: str, now: int
) -> Transition:
    async with repos.progress.writer(learner_id, training.id):
        transition = await recompute(repos, learner_id, training, now)
        try:
            await settle(
                repos,
                training,
                transition,
                score=transition.after.quiz_score,
                passed=transition.after.quiz_completed,
            )
        except Exception:
            # Put the records back so a re-run sees the same flip again
            await repos.progress.save_training_progress(transition.before)
            if transition.flipped:
                await course_aggregator.aggregate(
                    repos, learner_id, training.course_id
                )
            raise
    return transition


async def recalculate_training(
    repos: Repos,
    training_id: str,
    *,
    clock: Clock = system_clock,
    concurrency: int | None = None,
) -> RecalculationReport:
    training = await repos.content.get_training(training_id)
    if training is None:
        raise NotFoundError("training", training_id)

    learner_ids = await repos.progress.list_learners_for_training(training_id)
    report = RecalculationReport(training_id=training_id)
    if not learner_ids:
        return report

    limit = concurrency or SETTINGS.recalc_concurrency
    if repos.serial_writes:
        limit = 1
    semaphore = asyncio.Semaphore(max(1, limit))
    now = clock()

    async def run_one(learner_id: str) -> Transition | None:
        async with semaphore:
            try:
                transition = await _recalculate_learner(
                    repos, training, learner_id, now
                )
            except Exception as exc:
                logger.exception(
                    "Recalculation failed learner=%s training=%s",
                    learner_id,
                    training_id,
                )
                RECALCULATIONS.labels(result="failed").inc()
                report.failures.append(RecalculationPartialFailure(learner_id, exc))
                return None
            RECALCULATIONS.labels(result="ok").inc()
            return transition

    started = time.perf_counter()
    transitions = await asyncio.gather(*(run_one(lid) for lid in learner_ids))
    RECALCULATION_BATCH_SECONDS.observe(time.perf_counter() - started)

    for transition in transitions:
        if transition is None:
            continue
        report.processed += 1
        if transition.demoted:
            report.affected_learner_ids.append(transition.after.learner_id)

    if report.affected_learner_ids:
        LEARNERS_DEMOTED.inc(len(report.affected_learner_ids))
        logger.info(
            "Recalculation demoted %d learner(s) training=%s",
            len(report.affected_learner_ids),
            training_id,
        )
    logger.info(
        "Recalculated training=%s processed=%d failed=%d",
        training_id,
        report.processed,
        len(report.failures),
    )
    return report


async def on_content_graph_changed(
    repos: Repos,
    training_id: str,
    *,
    clock: Clock = system_clock,
    concurrency: int | None = None,
) -> list[str]:
    """Recalculate every learner on ``training_id``; return the demoted ones."""
    report = await recalculate_training(
        repos, training_id, clock=clock, concurrency=concurrency
    )
    return report.affected_learner_ids
