from datetime import datetime

from pydantic import BaseModel, ConfigDict, StrictBool, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models speak camelCase; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Users


class UserRegister(CamelModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RoleUpdate(CamelModel):
    role: str


class ClientIdsPayload(CamelModel):
    client_ids: list[int]


class UserResponse(CamelModel):
    id: int
    email: str
    role: str
    assigned_clients: list[int] = []
    created_at: datetime
    updated_at: datetime | None = None


# Clients


class ClientCreate(CamelModel):
    name: str
    photo: str | None = None
    enabled_categories: list[str] | None = None
    notes: str | None = None


class ClientUpdate(CamelModel):
    name: str | None = None
    photo: str | None = None
    enabled_categories: list[str] | None = None
    notes: str | None = None
    is_active: bool | None = None


class ClientResponse(CamelModel):
    id: int
    name: str
    photo: str
    enabled_categories: list[str]
    notes: str
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None


# Category entries


class CategoryEntryCreate(CamelModel):
    client_id: int
    category: str
    description: str
    date: str | None = None  # YYYY-MM-DD or ISO datetime, caller's local time
    meal_type: str | None = None


class CategoryEntryUpdate(CamelModel):
    category: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def validate_not_empty(self):
        if self.category is None and self.description is None:
            raise ValueError("Provide a category or description to update")
        return self


class CategoryEntryResponse(CamelModel):
    id: int
    client_id: int
    category: str
    description: str
    meal_type: str | None = None
    date: datetime
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


# Cards


class CardPayload(CamelModel):
    title: str | None = None
    field_titles: list[str] | None = None
    enabled_fields: list[int] | None = None


class CardResponse(CamelModel):
    id: int
    title: str
    field_titles: list[str]
    enabled_fields: list[int]
    assigned_clients: list[int] = []
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


# Card field entries


class CardFieldSubmit(CamelModel):
    card_id: int
    client_id: int
    field_index: int
    value: str | None = None
    date: str | None = None  # Documentation day, YYYY-MM-DD
    event_date: str | None = None
    event_time: str | None = None


class CardFieldUpdate(CamelModel):
    is_locked: StrictBool | None = None
    value: str | None = None
    event_date: str | None = None
    event_time: str | None = None


class CardFieldEntryResponse(CamelModel):
    id: int
    card_id: int
    client_id: int
    field_index: int
    value: str | None = None
    event_date: str | None = None
    event_time: str | None = None
    date: str
    is_locked: bool
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


class MessageResponse(BaseModel):
    ok: bool
    message: str
