"""Client-scoped access control.

Admins see every client. Staff see only the clients listed in their
assignment set. The acting identity comes from the upstream session layer
and is trusted as given.
"""
import logging
from dataclasses import dataclass

from fastapi import Header
from sqlmodel import Session, select

from errors import ForbiddenError, NotFoundError, UnauthenticatedError
from models import ROLE_ADMIN, ROLES, Client, UserClientLink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Build the acting identity from the session layer's headers."""
    if not x_user_id or not x_user_role:
        raise UnauthenticatedError("Missing identity context")
    try:
        user_id = int(x_user_id)
    except ValueError as e:
        raise UnauthenticatedError("Invalid user id in identity context") from e
    role = x_user_role.strip().lower()
    if role not in ROLES:
        raise UnauthenticatedError("Invalid role in identity context")
    return Actor(user_id=user_id, role=role)


def assigned_client_ids(session: Session, user_id: int) -> set[int]:
    rows = session.exec(
        select(UserClientLink.client_id).where(UserClientLink.user_id == user_id)
    ).all()
    return set(rows)


def can_access(session: Session, user_id: int, role: str, client_id: int) -> bool:
    if role == ROLE_ADMIN:
        return True
    return client_id in assigned_client_ids(session, user_id)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        logger.warning(f"Admin-only operation denied for user {actor.user_id}")
        raise ForbiddenError("Admin access only")


def require_client_access(session: Session, actor: Actor, client_id: int) -> None:
    if not can_access(session, actor.user_id, actor.role, client_id):
        logger.warning(f"Access denied: user {actor.user_id} ({actor.role}) -> client {client_id}")
        raise ForbiddenError("You do not have access to this client")


def get_client_or_404(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if not client:
        raise NotFoundError("Client not found")
    return client


def get_accessible_client(session: Session, actor: Actor, client_id: int) -> Client:
    """Existence first, then visibility, so a missing client is never reported as forbidden."""
    client = get_client_or_404(session, client_id)
    require_client_access(session, actor, client_id)
    return client
