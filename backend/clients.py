"""Client records: the people whose day is being documented."""
import logging

from sqlmodel import Session, col, delete, select

from access import Actor, assigned_client_ids, get_accessible_client, get_client_or_404, require_admin
from errors import ValidationError
from models import CATEGORIES, CardClientLink, CardFieldEntry, CategoryEntry, Client, UserClientLink, utcnow

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 1000


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Client name is required")
    if len(cleaned) < 2:
        raise ValidationError("Client name must be at least 2 characters long")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Client name must be less than {MAX_NAME_LENGTH} characters")
    return cleaned


def _check_categories(categories: list[str]) -> list[str]:
    invalid = [c for c in categories if c not in CATEGORIES]
    if invalid:
        raise ValidationError(
            f"Invalid categories: {', '.join(invalid)}. Valid categories are: {', '.join(CATEGORIES)}"
        )
    if not categories:
        raise ValidationError("At least one category must be enabled")
    # Keep canonical order, drop duplicates
    return [c for c in CATEGORIES if c in categories]


def _clean_notes(notes: str | None) -> str:
    cleaned = (notes or "").strip()
    if len(cleaned) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes must be less than {MAX_NOTES_LENGTH} characters")
    return cleaned


def create_client(
    session: Session,
    actor: Actor,
    name: str,
    photo: str | None = None,
    enabled_categories: list[str] | None = None,
    notes: str | None = None,
) -> Client:
    require_admin(actor)
    client = Client(
        name=_clean_name(name),
        photo=photo or "",
        enabled_categories=_check_categories(enabled_categories)
        if enabled_categories is not None
        else list(CATEGORIES),
        notes=_clean_notes(notes),
    )
    session.add(client)
    session.commit()
    session.refresh(client)
    logger.info(f"Created client {client.id}")
    return client


def list_clients(session: Session, actor: Actor) -> list[Client]:
    stmt = select(Client).order_by(Client.name)
    if not actor.is_admin:
        visible = assigned_client_ids(session, actor.user_id)
        if not visible:
            return []
        stmt = stmt.where(col(Client.id).in_(visible))
    return list(session.exec(stmt).all())


def get_client(session: Session, actor: Actor, client_id: int) -> Client:
    return get_accessible_client(session, actor, client_id)


def update_client(
    session: Session,
    actor: Actor,
    client_id: int,
    name: str | None = None,
    photo: str | None = None,
    enabled_categories: list[str] | None = None,
    notes: str | None = None,
    is_active: bool | None = None,
) -> Client:
    require_admin(actor)
    client = get_client_or_404(session, client_id)

    if name is not None:
        client.name = _clean_name(name)
    if photo is not None:
        client.photo = photo
    if enabled_categories is not None:
        client.enabled_categories = _check_categories(enabled_categories)
    if notes is not None:
        client.notes = _clean_notes(notes)
    if is_active is not None:
        client.is_active = is_active

    client.updated_at = utcnow()
    session.add(client)
    session.commit()
    session.refresh(client)
    logger.info(f"Updated client {client.id} (active={client.is_active})")
    return client


def delete_client(session: Session, actor: Actor, client_id: int) -> None:
    """Delete a client together with everything recorded or assigned for it."""
    require_admin(actor)
    client = get_client_or_404(session, client_id)

    entries = session.execute(delete(CategoryEntry).where(CategoryEntry.client_id == client_id)).rowcount
    fields = session.execute(delete(CardFieldEntry).where(CardFieldEntry.client_id == client_id)).rowcount
    session.execute(delete(CardClientLink).where(CardClientLink.client_id == client_id))
    session.execute(delete(UserClientLink).where(UserClientLink.client_id == client_id))
    session.delete(client)
    session.commit()
    logger.info(f"Deleted client {client_id} with {entries} entries and {fields} field entries")
