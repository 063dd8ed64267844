"""User roles and client assignment.

Invariant: an admin user never holds client assignments. Every path that
changes a user's role or assignment set goes through
``enforce_scope_invariant``.
"""
import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from access import Actor, assigned_client_ids, require_admin
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models import ROLE_ADMIN, ROLE_STAFF, ROLES, Client, User, UserClientLink, utcnow

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def ensure_assignable(user: User) -> None:
    if user.role == ROLE_ADMIN:
        raise ForbiddenError("Admin users cannot be assigned to clients")


def _replace_links(session: Session, user_id: int, client_ids: set[int]) -> None:
    current = assigned_client_ids(session, user_id)
    for client_id in current - client_ids:
        session.delete(session.get(UserClientLink, (user_id, client_id)))
    for client_id in sorted(client_ids - current):
        session.add(UserClientLink(user_id=user_id, client_id=client_id))


def enforce_scope_invariant(
    session: Session, user: User, requested_client_ids: list[int] | None = None
) -> None:
    """Apply an assignment request (if any) while keeping admins unscoped.

    Does not commit; callers commit once their whole mutation is staged.
    """
    if requested_client_ids is not None:
        ensure_assignable(user)
        _replace_links(session, user.id, set(requested_client_ids))
    elif user.role == ROLE_ADMIN:
        _replace_links(session, user.id, set())


def change_role(session: Session, actor: Actor, target_user_id: int, new_role: str) -> User:
    require_admin(actor)
    if actor.user_id == target_user_id:
        logger.warning(f"User {actor.user_id} attempted to change their own role")
        raise ForbiddenError("You cannot change your own role")
    if new_role not in ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")

    user = get_user_or_404(session, target_user_id)
    previous = user.role
    user.role = new_role
    user.updated_at = utcnow()
    session.add(user)
    enforce_scope_invariant(session, user)
    session.commit()
    session.refresh(user)
    logger.info(f"User {user.id} role changed {previous} -> {new_role} by {actor.user_id}")
    return user


def set_assigned_clients(session: Session, actor: Actor, user_id: int, client_ids: list[int]) -> User:
    """Replace the user's assignment set; clients left out lose access."""
    require_admin(actor)
    user = get_user_or_404(session, user_id)
    ensure_assignable(user)

    wanted = set(client_ids)
    if wanted:
        found = session.exec(select(Client.id).where(col(Client.id).in_(wanted))).all()
        if len(set(found)) != len(wanted):
            raise NotFoundError("One or more clients not found")

    enforce_scope_invariant(session, user, sorted(wanted))
    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User {user.id} assigned to clients {sorted(wanted)} by {actor.user_id}")
    return user


def register_user(session: Session, email: str) -> User:
    """Create a staff account record; credentials live in the identity layer."""
    normalized = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format")
    if session.exec(select(User).where(User.email == normalized)).first():
        raise ConflictError("User with this email already exists")

    user = User(email=normalized, role=ROLE_STAFF)
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError("User with this email already exists") from e
    session.refresh(user)
    logger.info(f"Registered user {user.id}")
    return user


def list_users(session: Session, actor: Actor) -> list[User]:
    require_admin(actor)
    return list(session.exec(select(User).order_by(User.email)).all())
