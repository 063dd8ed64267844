"""Card templates: 11 titled slots, an enabled subset, and client assignment."""
import logging

from sqlmodel import Session, col, delete, select

from access import Actor, get_accessible_client, require_admin
from errors import NotFoundError, ValidationError
from models import FIELD_COUNT, Card, CardClientLink, CardFieldEntry, Client, utcnow

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100
DEFAULT_CARD_TITLE = "Untitled Card"


def normalize_title(title: str | None) -> str:
    cleaned = (title or "").strip() or DEFAULT_CARD_TITLE
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Card title must be less than {MAX_TITLE_LENGTH} characters")
    return cleaned


def normalize_field_titles(titles: list[str] | None) -> list[str]:
    """Pad or truncate to exactly 11 titles; blanks become "untitled {n}"."""
    titles = list(titles or [])[:FIELD_COUNT]
    titles += [""] * (FIELD_COUNT - len(titles))

    normalized = []
    for i, raw in enumerate(titles):
        cleaned = (raw or "").strip()
        if len(cleaned) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Field title at index {i} must be less than {MAX_TITLE_LENGTH} characters")
        normalized.append(cleaned or f"untitled {i + 1}")
    return normalized


def normalize_enabled_fields(indices: list[int] | None) -> list[int]:
    enabled = sorted(
        {i for i in (indices or []) if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < FIELD_COUNT}
    )
    return enabled or list(range(FIELD_COUNT))


def assigned_client_ids(session: Session, card_id: int) -> list[int]:
    return sorted(
        session.exec(select(CardClientLink.client_id).where(CardClientLink.card_id == card_id)).all()
    )


def is_assigned(session: Session, card_id: int, client_id: int) -> bool:
    return session.get(CardClientLink, (card_id, client_id)) is not None


def get_card_or_404(session: Session, card_id: int) -> Card:
    card = session.get(Card, card_id)
    if not card:
        raise NotFoundError("Card not found")
    return card


def create_card(
    session: Session,
    actor: Actor,
    title: str | None = None,
    field_titles: list[str] | None = None,
    enabled_fields: list[int] | None = None,
) -> Card:
    require_admin(actor)
    card = Card(
        title=normalize_title(title),
        field_titles=normalize_field_titles(field_titles),
        enabled_fields=normalize_enabled_fields(enabled_fields),
        created_by=actor.user_id,
    )
    session.add(card)
    session.commit()
    session.refresh(card)
    logger.info(f"Created card {card.id} '{card.title}' with slots {card.enabled_fields}")
    return card


def update_card(
    session: Session,
    actor: Actor,
    card_id: int,
    title: str | None = None,
    field_titles: list[str] | None = None,
    enabled_fields: list[int] | None = None,
) -> Card:
    """Partial update: only the attributes that were supplied change."""
    require_admin(actor)
    card = get_card_or_404(session, card_id)

    if title is not None:
        card.title = normalize_title(title)
    if field_titles is not None:
        card.field_titles = normalize_field_titles(field_titles)
    if enabled_fields is not None:
        card.enabled_fields = normalize_enabled_fields(enabled_fields)

    card.updated_at = utcnow()
    session.add(card)
    session.commit()
    session.refresh(card)
    logger.info(f"Updated card {card.id}")
    return card


def delete_card(session: Session, actor: Actor, card_id: int) -> None:
    require_admin(actor)
    card = get_card_or_404(session, card_id)

    removed = session.execute(delete(CardFieldEntry).where(CardFieldEntry.card_id == card_id)).rowcount
    session.execute(delete(CardClientLink).where(CardClientLink.card_id == card_id))
    session.delete(card)
    session.commit()
    logger.info(f"Deleted card {card_id} and {removed} field entries")


def assign_card(session: Session, actor: Actor, card_id: int, client_ids: list[int]) -> Card:
    """Replace the card's assignment set with exactly ``client_ids``."""
    require_admin(actor)
    card = get_card_or_404(session, card_id)

    wanted = set(client_ids)
    if wanted:
        found = session.exec(select(Client.id).where(col(Client.id).in_(wanted))).all()
        if len(set(found)) != len(wanted):
            raise NotFoundError("One or more clients not found")

    current = set(assigned_client_ids(session, card_id))
    for client_id in current - wanted:
        session.delete(session.get(CardClientLink, (card_id, client_id)))
    for client_id in sorted(wanted - current):
        session.add(CardClientLink(card_id=card_id, client_id=client_id))
    card.updated_at = utcnow()
    session.add(card)
    session.commit()
    session.refresh(card)
    logger.info(f"Card {card_id} assigned to clients {sorted(wanted)}")
    return card


def get_card(session: Session, actor: Actor, card_id: int) -> Card:
    return get_card_or_404(session, card_id)


def list_cards(session: Session, actor: Actor) -> list[Card]:
    require_admin(actor)
    return list(session.exec(select(Card).order_by(col(Card.created_at).desc(), col(Card.id).desc())).all())


def list_cards_for_client(session: Session, actor: Actor, client_id: int) -> list[Card]:
    get_accessible_client(session, actor, client_id)
    stmt = (
        select(Card)
        .join(CardClientLink, CardClientLink.card_id == Card.id)
        .where(CardClientLink.client_id == client_id)
        .order_by(col(Card.created_at).desc(), col(Card.id).desc())
    )
    return list(session.exec(stmt).all())
