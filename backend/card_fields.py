"""Card field entries and their edit lock.

One row per (card, client, field slot, documentation day). The lock is a
business flag on the row, not a concurrency primitive:

    Absent --staff save--> Locked
    Absent --admin save--> Unlocked
    Unlocked --staff save--> Locked
    Unlocked/Locked --admin save--> unchanged
    Locked --admin unlock--> Unlocked

Concurrent writers to the same key are serialized only by the table's
unique constraint; a losing insert surfaces as a conflict.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from access import Actor, get_client_or_404, require_admin, require_client_access
from cards import get_card_or_404, is_assigned
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models import DATE_TIME_SLOT, FIELD_COUNT, CardFieldEntry, utcnow
from time_utils import parse_day, resolve_day, validate_hhmm

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 5000


def _clean_value(value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError("Value cannot be empty")
    if len(text) > MAX_VALUE_LENGTH:
        raise ValidationError(f"Value must be less than {MAX_VALUE_LENGTH} characters")
    return text


def _optional_value(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return _clean_value(value)


def _find_existing(
    session: Session, card_id: int, client_id: int, field_index: int, day: str
) -> CardFieldEntry | None:
    return session.exec(
        select(CardFieldEntry)
        .where(CardFieldEntry.card_id == card_id)
        .where(CardFieldEntry.client_id == client_id)
        .where(CardFieldEntry.field_index == field_index)
        .where(CardFieldEntry.date == day)
    ).first()


def submit_field(
    session: Session,
    actor: Actor,
    card_id: int,
    client_id: int,
    field_index: int,
    value: str | None = None,
    date: str | None = None,
    event_date: str | None = None,
    event_time: str | None = None,
) -> tuple[CardFieldEntry, bool]:
    """Save one slot of a card for a client's documentation day.

    A second save against the same day behaves as an edit and is subject to
    the lock. Returns the row and whether it was newly inserted.
    """
    if isinstance(field_index, bool) or not isinstance(field_index, int) or not 0 <= field_index < FIELD_COUNT:
        raise ValidationError(f"fieldIndex must be a number between 0 and {FIELD_COUNT - 1}")

    if field_index == DATE_TIME_SLOT:
        text = _optional_value(value)
        parsed_event_date = parse_day(event_date, "eventDate") if event_date else None
        parsed_event_time = validate_hhmm(event_time) if event_time else None
        if text is None and parsed_event_date is None and parsed_event_time is None:
            raise ValidationError("Provide a value, eventDate or eventTime for the date/time field")
    else:
        text = _clean_value(value)
        parsed_event_date = parsed_event_time = None

    day = resolve_day(date)

    card = get_card_or_404(session, card_id)
    client = get_client_or_404(session, client_id)
    if not is_assigned(session, card_id, client_id):
        raise ValidationError("Card is not assigned to this client")
    if field_index not in card.enabled_fields:
        raise ValidationError(f"Field {field_index} is not enabled on this card")
    require_client_access(session, actor, client_id)
    if not client.is_active:
        raise ValidationError("Cannot create entry for inactive client")

    existing = _find_existing(session, card_id, client_id, field_index, day)
    if existing:
        if existing.is_locked and not actor.is_admin:
            logger.warning(
                f"Locked field edit denied: user {actor.user_id} on entry {existing.id} "
                f"(card {card_id}, client {client_id}, field {field_index}, {day})"
            )
            raise ForbiddenError("This field is locked and can only be edited by an administrator")

        if field_index == DATE_TIME_SLOT:
            if parsed_event_date:
                existing.event_date = parsed_event_date
            if parsed_event_time:
                existing.event_time = parsed_event_time
            if text:
                existing.value = text
        else:
            existing.value = text
        if not actor.is_admin:
            existing.is_locked = True
        existing.updated_at = utcnow()
        session.add(existing)
        session.commit()
        session.refresh(existing)
        logger.info(
            f"Updated field entry {existing.id} by {actor.role} {actor.user_id}, locked={existing.is_locked}"
        )
        return existing, False

    entry = CardFieldEntry(
        card_id=card_id,
        client_id=client_id,
        field_index=field_index,
        value=text,
        event_date=parsed_event_date,
        event_time=parsed_event_time,
        date=day,
        is_locked=not actor.is_admin,
        created_by=actor.user_id,
    )
    session.add(entry)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Concurrent create for card {card_id}, client {client_id}, field {field_index}, {day}")
        raise ConflictError("This field was saved by another request; reload and try again") from e
    session.refresh(entry)
    logger.info(
        f"Created field entry {entry.id} (card {card_id}, client {client_id}, field {field_index}, {day}) "
        f"by {actor.role} {actor.user_id}, locked={entry.is_locked}"
    )
    return entry, True


def set_field_entry(
    session: Session,
    actor: Actor,
    entry_id: int,
    is_locked: bool | None = None,
    value: str | None = None,
    event_date: str | None = None,
    event_time: str | None = None,
) -> CardFieldEntry:
    """Admin edit of an existing row: toggle the lock and/or correct its content.

    For the date/time slot an empty eventDate/eventTime clears the stored one.
    """
    require_admin(actor)
    entry = session.get(CardFieldEntry, entry_id)
    if not entry:
        raise NotFoundError("Entry not found")
    client = get_client_or_404(session, entry.client_id)
    require_client_access(session, actor, entry.client_id)
    if not client.is_active:
        raise ValidationError("Cannot edit entry for inactive client")

    if value is not None:
        if entry.field_index == DATE_TIME_SLOT:
            text = _optional_value(value)
            if text:
                entry.value = text
        else:
            entry.value = _clean_value(value)

    if entry.field_index == DATE_TIME_SLOT:
        if event_date is not None:
            entry.event_date = parse_day(event_date, "eventDate") if event_date.strip() else None
        if event_time is not None:
            entry.event_time = validate_hhmm(event_time) if event_time.strip() else None

    if is_locked is not None:
        entry.is_locked = is_locked

    entry.updated_at = utcnow()
    session.add(entry)
    session.commit()
    session.refresh(entry)
    logger.info(f"Admin {actor.user_id} set field entry {entry.id}, locked={entry.is_locked}")
    return entry


def list_field_entries(
    session: Session,
    actor: Actor,
    card_id: int,
    client_id: int,
    date: str | None = None,
) -> list[CardFieldEntry]:
    get_card_or_404(session, card_id)
    get_client_or_404(session, client_id)
    require_client_access(session, actor, client_id)

    stmt = (
        select(CardFieldEntry)
        .where(CardFieldEntry.card_id == card_id)
        .where(CardFieldEntry.client_id == client_id)
    )
    if date:
        stmt = stmt.where(CardFieldEntry.date == parse_day(date))
    stmt = stmt.order_by(col(CardFieldEntry.field_index), col(CardFieldEntry.date).desc())
    return list(session.exec(stmt).all())
