from __future__ import annotations

from dataclasses import dataclass

TRAINER_ROLES = frozenset({"trainer", "admin"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    ``user_id`` is the token subject; for learner-facing routes it is the
    learner id every progress record is keyed on.
    """

    user_id: str
    roles: frozenset[str]

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)
