"""Free-form category entries and the per-day meals upsert."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from access import Actor, get_accessible_client, get_client_or_404, require_client_access
from errors import ConflictError, NotFoundError, ValidationError
from models import CATEGORIES, DAILY_MEAL_TYPES, MEAL_TYPES, CategoryEntry, utcnow
from time_utils import day_key, parse_day, parse_effective_datetime

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 5000


def _clean_description(description: str | None) -> str:
    text = (description or "").strip()
    if not text:
        raise ValidationError("Description cannot be empty")
    if len(text) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters")
    return text


def _check_category(category: str | None) -> str:
    if category not in CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(CATEGORIES)}")
    return category


def _find_daily_meal(session: Session, client_id: int, meal_type: str, day: str) -> CategoryEntry | None:
    return session.exec(
        select(CategoryEntry)
        .where(CategoryEntry.client_id == client_id)
        .where(CategoryEntry.category == "meals")
        .where(CategoryEntry.meal_type == meal_type)
        .where(CategoryEntry.day == day)
    ).first()


def _commit(session: Session, entry: CategoryEntry) -> CategoryEntry:
    client_id, meal_type, day = entry.client_id, entry.meal_type, entry.day
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Meal entry conflict for client {client_id} on {day}: {e.orig}")
        raise ConflictError(f"A {meal_type} entry already exists for this client on {day}") from e
    session.refresh(entry)
    return entry


def create_entry(
    session: Session,
    actor: Actor,
    client_id: int,
    category: str,
    description: str,
    date: str | None = None,
    meal_type: str | None = None,
) -> tuple[CategoryEntry, bool]:
    """Create an entry, or overwrite today's breakfast/lunch/dinner in place.

    Returns the entry and whether it was newly inserted.
    """
    category = _check_category(category)
    text = _clean_description(description)

    if category == "meals":
        if meal_type not in MEAL_TYPES:
            raise ValidationError(f"mealType must be one of: {', '.join(MEAL_TYPES)}")
    elif meal_type is not None:
        raise ValidationError("mealType is only allowed for the meals category")

    effective = parse_effective_datetime(date)
    day = day_key(effective)

    client = get_accessible_client(session, actor, client_id)
    if not client.is_active:
        raise ValidationError("Cannot create entry for inactive client")
    if category not in client.enabled_categories:
        raise ValidationError(f"Category '{category}' is not enabled for this client")

    if category == "meals" and meal_type in DAILY_MEAL_TYPES:
        existing = _find_daily_meal(session, client_id, meal_type, day)
        if existing:
            existing.description = text
            existing.date = effective
            existing.updated_at = utcnow()
            session.add(existing)
            entry = _commit(session, existing)
            logger.info(f"Overwrote {meal_type} entry {entry.id} for client {client_id} on {day}")
            return entry, False

    entry = CategoryEntry(
        client_id=client_id,
        category=category,
        description=text,
        meal_type=meal_type,
        date=effective,
        day=day,
        created_by=actor.user_id,
    )
    session.add(entry)
    entry = _commit(session, entry)
    logger.info(f"Created {category} entry {entry.id} for client {client_id} on {day}")
    return entry, True


def list_entries(
    session: Session,
    actor: Actor,
    client_id: int,
    category: str | None = None,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[CategoryEntry]:
    get_accessible_client(session, actor, client_id)

    start_day = parse_day(start_date, "startDate") if start_date else None
    end_day = parse_day(end_date, "endDate") if end_date else None
    if start_day and end_day and start_day > end_day:
        raise ValidationError("startDate must be on or before endDate")

    stmt = select(CategoryEntry).where(CategoryEntry.client_id == client_id)
    if category:
        stmt = stmt.where(CategoryEntry.category == _check_category(category))
    if search and search.strip():
        stmt = stmt.where(col(CategoryEntry.description).icontains(search.strip(), autoescape=True))
    # Day keys compare lexically, so the end bound covers the whole end day
    if start_day:
        stmt = stmt.where(CategoryEntry.day >= start_day)
    if end_day:
        stmt = stmt.where(CategoryEntry.day <= end_day)

    stmt = stmt.order_by(col(CategoryEntry.date).desc(), col(CategoryEntry.id).desc())
    return list(session.exec(stmt).all())


def _get_entry_for_actor(session: Session, actor: Actor, entry_id: int) -> CategoryEntry:
    entry = session.get(CategoryEntry, entry_id)
    if not entry:
        raise NotFoundError("Entry not found")
    get_client_or_404(session, entry.client_id)
    require_client_access(session, actor, entry.client_id)
    return entry


def update_entry(
    session: Session,
    actor: Actor,
    entry_id: int,
    category: str | None = None,
    description: str | None = None,
) -> CategoryEntry:
    if category is None and description is None:
        raise ValidationError("Provide a category or description to update")

    entry = _get_entry_for_actor(session, actor, entry_id)

    if category is not None:
        category = _check_category(category)
        if category == "meals" and entry.category != "meals":
            raise ValidationError("Entries cannot be moved into the meals category")
        if category != "meals":
            entry.meal_type = None
        entry.category = category
    if description is not None:
        entry.description = _clean_description(description)

    entry.updated_at = utcnow()
    session.add(entry)
    entry = _commit(session, entry)
    logger.info(f"Updated entry {entry.id} for client {entry.client_id}")
    return entry


def delete_entry(session: Session, actor: Actor, entry_id: int) -> None:
    entry = _get_entry_for_actor(session, actor, entry_id)
    session.delete(entry)
    session.commit()
    logger.info(f"Deleted entry {entry_id}")
