"""XP, level and diamonds.

XP is the only accumulated quantity.  Level and diamonds are pure
functions of it and are re-derived after every award, so they can never
drift from the XP total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.metrics import XP_AWARDED
from app.models.content import Training
from app.repos.bundle import Repos
from app.services.progress_calculator import round_half_up

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 1000
MAX_LEVEL = 100
DIAMONDS_PER_XP = 0.1


def xp_for_completion(total_xp: int, score: int | None, passed: bool) -> int:
    """Full ``score``% of the training's XP on a passed quiz, half otherwise."""
    multiplier = score / 100 if passed and score is not None else 0.5
    return int(round_half_up(total_xp * multiplier))


def level_for(xp: int) -> int:
    return min(MAX_LEVEL, xp // XP_PER_LEVEL + 1)


def diamonds_for(xp: int) -> int:
    return int(xp * DIAMONDS_PER_XP)


def xp_to_next_level(xp: int) -> int:
    level = xp // XP_PER_LEVEL + 1
    return max(0, level * XP_PER_LEVEL - xp)


def level_progress_pct(xp: int) -> float:
    into_level = xp - (xp // XP_PER_LEVEL) * XP_PER_LEVEL
    return min(100.0, max(0.0, into_level / XP_PER_LEVEL * 100))


@dataclass(frozen=True, slots=True)
class StatsView:
    xp: int
    level: int
    diamonds: int
    xp_to_next_level: int
    level_progress_pct: float


def view(xp: int) -> StatsView:
    return StatsView(
        xp=xp,
        level=level_for(xp),
        diamonds=diamonds_for(xp),
        xp_to_next_level=xp_to_next_level(xp),
        level_progress_pct=round_half_up(level_progress_pct(xp), 2),
    )


async def award_completion(
    repos: Repos,
    learner_id: str,
    training: Training,
    completed_at: int,
    score: int | None,
    passed: bool,
) -> int:
    """Credit XP for completing ``training``.  Returns the XP credited.

    Each completion, identified by its ``completed_at``, is paid at most
    once; replaying the same completion credits 0.  A learner who is
    demoted and completes the training again is paid again.
    """
    xp = xp_for_completion(training.total_xp, score, passed)
    if xp <= 0:
        return 0

    stats = await repos.learners.add_reward(
        learner_id, training.id, completed_at, xp
    )
    if stats is None:
        logger.debug(
            "XP already awarded learner=%s training=%s", learner_id, training.id
        )
        return 0

    await repos.learners.set_derived(
        learner_id, level_for(stats.xp), diamonds_for(stats.xp)
    )
    XP_AWARDED.inc(xp)
    logger.info(
        "Awarded %d XP learner=%s training=%s total_xp=%d",
        xp,
        learner_id,
        training.id,
        stats.xp,
    )
    return xp
