from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.logging import learner_id_var
from app.db import engine as db
from app.models.principal import TRAINER_ROLES, Principal
from app.repos.bundle import Repos, in_memory_repos, pg_repos
from app.services import token_service
from app.services.notifications import InMemoryNotificationSink, NotificationSink

logger = logging.getLogger(__name__)

# Tokens are issued by the identity service; tokenUrl only feeds the docs UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Process-wide stores used when DATABASE_URL is unset
_in_memory: Repos = in_memory_repos()
_notifier: InMemoryNotificationSink = InMemoryNotificationSink()


def in_memory_state() -> tuple[Repos, InMemoryNotificationSink]:
    return _in_memory, _notifier


def reset_in_memory_state() -> None:
    """Fresh stores and sink; tests call this between cases."""
    global _in_memory, _notifier
    _in_memory = in_memory_repos()
    _notifier = InMemoryNotificationSink()


async def get_repos() -> AsyncIterator[Repos]:
    """Request-scoped repository bundle.

    With a database, every repo shares one session; the transaction
    commits when the route returns and rolls back if it raises.
    """
    if db.async_session_factory is None:
        yield _in_memory
        return
    async with asynccontextmanager(db.get_async_session)() as session:
        yield pg_repos(session)


def get_notifier() -> NotificationSink:
    return _notifier


ReposDep = Annotated[Repos, Depends(get_repos)]
NotifierDep = Annotated[NotificationSink, Depends(get_notifier)]


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    The subject becomes the learner id for progress routes and is put on
    the logging context for the rest of the request.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    learner_id_var.set(principal.user_id)
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        sorted(principal.roles),
    )
    return principal


def require_any_role(roles: set[str] | frozenset[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"trainer", "admin"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                sorted(roles),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_trainer = require_any_role(TRAINER_ROLES)

LearnerDep = Annotated[Principal, Depends(require_user)]
TrainerDep = Annotated[Principal, Depends(require_trainer)]
