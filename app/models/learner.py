from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LearnerStats:
    """Cumulative gamification state.  Level and diamonds are derived from xp.

    ``rewarded_completions`` holds one (training_id, completed_at) pair per
    completion that has been paid.
    """

    learner_id: str
    xp: int = 0
    level: int = 1
    diamonds: int = 0
    rewarded_completions: frozenset[tuple[str, int]] = frozenset()

    def was_rewarded(self, training_id: str, completed_at: int) -> bool:
        return (training_id, completed_at) in self.rewarded_completions
