"""Error taxonomy for the progress engine.

Routers map these to HTTP status codes; nothing below the router layer
knows about HTTP.
"""

from __future__ import annotations


class ProgressError(Exception):
    pass


class ValidationError(ProgressError, ValueError):
    """Malformed or out-of-range input.  Raised before any store mutation."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotFoundError(ProgressError, LookupError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.entity_id = entity_id


class QuizAttemptNotAllowedError(ProgressError):
    pass


class RecalculationPartialFailure(ProgressError):
    """One learner's recompute failed inside a batch.

    Collected into the batch report, never raised out of the orchestrator.
    """

    def __init__(self, learner_id: str, cause: BaseException) -> None:
        super().__init__(f"recalculation failed for learner={learner_id}: {cause!r}")
        self.learner_id = learner_id
        self.cause = cause
