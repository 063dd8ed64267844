from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlmodel import Field, SQLModel, UniqueConstraint

ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"
ROLES = (ROLE_STAFF, ROLE_ADMIN)

CATEGORIES = ("meals", "behavior", "outing", "medical", "notes")
MEAL_TYPES = ("breakfast", "lunch", "dinner", "snacks")
# One record per client per day; snacks are unlimited
DAILY_MEAL_TYPES = ("breakfast", "lunch", "dinner")

FIELD_COUNT = 11
DATE_TIME_SLOT = 10


def utcnow() -> datetime:
    return datetime.now(UTC)


class UserClientLink(SQLModel, table=True):
    user_id: int = Field(foreign_key="user.id", primary_key=True)
    client_id: int = Field(foreign_key="client.id", primary_key=True)


class CardClientLink(SQLModel, table=True):
    card_id: int = Field(foreign_key="card.id", primary_key=True)
    client_id: int = Field(foreign_key="client.id", primary_key=True)


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)  # Normalized: lower(trim(email))
    role: str = Field(default=ROLE_STAFF, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)


class Client(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    photo: str = Field(default="")
    enabled_categories: list[str] = Field(
        default_factory=lambda: list(CATEGORIES), sa_column=Column(JSON, nullable=False)
    )
    notes: str = Field(default="")
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)


class CategoryEntry(SQLModel, table=True):
    __table_args__ = (
        Index(
            "uniq_category_entry_client_meal_day",
            "client_id",
            "meal_type",
            "day",
            unique=True,
            sqlite_where=text("category = 'meals' AND meal_type IN ('breakfast', 'lunch', 'dinner')"),
            postgresql_where=text("category = 'meals' AND meal_type IN ('breakfast', 'lunch', 'dinner')"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="client.id", index=True)
    category: str = Field(index=True)
    description: str
    meal_type: str | None = Field(default=None)
    # Effective date in the caller's wall clock, stored naive
    date: datetime = Field(sa_column=Column(DateTime(timezone=False), nullable=False, index=True))
    day: str = Field(index=True)  # YYYY-MM-DD of date
    created_by: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)


class Card(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(default="Untitled Card")
    field_titles: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    enabled_fields: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_by: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)


class CardFieldEntry(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("card_id", "client_id", "field_index", "date", name="uniq_card_field_entry_day"),
    )

    id: int | None = Field(default=None, primary_key=True)
    card_id: int = Field(foreign_key="card.id", index=True)
    client_id: int = Field(foreign_key="client.id", index=True)
    field_index: int
    value: str | None = Field(default=None)
    event_date: str | None = Field(default=None)  # YYYY-MM-DD, slot 10 only
    event_time: str | None = Field(default=None)  # HH:MM, slot 10 only
    date: str = Field(index=True)  # Documentation day, YYYY-MM-DD
    is_locked: bool = Field(default=False)
    created_by: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)
