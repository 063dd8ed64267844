"""Record builders and identity headers shared by the test modules."""
from sqlmodel import Session

from access import Actor
from models import Card, CardClientLink, Client, User, UserClientLink


def headers_for(user: User) -> dict:
    """Identity headers as the upstream session layer would send them."""
    return {"X-User-Id": str(user.id), "X-User-Role": user.role}


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


def make_user(session: Session, email: str, role: str = "staff", client_ids=()) -> User:
    user = User(email=email, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    for client_id in client_ids:
        session.add(UserClientLink(user_id=user.id, client_id=client_id))
    session.commit()
    return user


def make_client(session: Session, name: str, **fields) -> Client:
    record = Client(name=name, **fields)
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def make_card(session: Session, client_ids=(), **fields) -> Card:
    fields.setdefault("title", "Daily Card")
    fields.setdefault("field_titles", [f"untitled {i + 1}" for i in range(11)])
    fields.setdefault("enabled_fields", list(range(11)))
    card = Card(**fields)
    session.add(card)
    session.commit()
    session.refresh(card)
    for client_id in client_ids:
        session.add(CardClientLink(card_id=card.id, client_id=client_id))
    session.commit()
    return card
