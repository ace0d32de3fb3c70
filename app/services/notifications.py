"""Notification sink for "training requirements changed" alerts.

Delivery (in-app feed, email, push) belongs to the platform; this
service hands over who to tell and about which training.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

TRAINING_UPDATED_BODY = (
    "New content has been added to this training. "
    "Complete the new sections to finish it again."
)


@dataclass(frozen=True, slots=True)
class TrainingUpdateNotice:
    learner_id: str
    training_id: str
    title: str
    body: str
    link: str


class NotificationSink(Protocol):
    async def notify_training_updated(
        self, learner_ids: Sequence[str], training_id: str, training_title: str
    ) -> int: ...


def build_notice(
    learner_id: str, training_id: str, training_title: str
) -> TrainingUpdateNotice:
    return TrainingUpdateNotice(
        learner_id=learner_id,
        training_id=training_id,
        title=f"Training Updated: {training_title}",
        body=TRAINING_UPDATED_BODY,
        link=f"/courses/training/{training_id}",
    )


class InMemoryNotificationSink:
    """Records every notice in delivery order.

    A learner demoted twice from the same training gets two notices.
    """

    def __init__(self) -> None:
        self._notices: list[TrainingUpdateNotice] = []

    async def notify_training_updated(
        self, learner_ids: Sequence[str], training_id: str, training_title: str
    ) -> int:
        for learner_id in learner_ids:
            self._notices.append(
                build_notice(learner_id, training_id, training_title)
            )
        sent = len(learner_ids)
        logger.info(
            "Queued %d training-updated notice(s) training=%s", sent, training_id
        )
        return sent

    def notices_for(self, learner_id: str) -> list[TrainingUpdateNotice]:
        return [n for n in self._notices if n.learner_id == learner_id]

