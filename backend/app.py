import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

import card_fields
import cards
import category_entries
import clients
import roles
from access import Actor, get_actor
from db import create_db_and_tables, get_session
from errors import DomainError
from models import Card, User
from schemas import (
    CardFieldEntryResponse,
    CardFieldSubmit,
    CardFieldUpdate,
    CardPayload,
    CardResponse,
    CategoryEntryCreate,
    CategoryEntryResponse,
    CategoryEntryUpdate,
    ClientCreate,
    ClientIdsPayload,
    ClientResponse,
    ClientUpdate,
    MessageResponse,
    RoleUpdate,
    UserRegister,
    UserResponse,
)

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def user_response(session: Session, user: User) -> UserResponse:
    response = UserResponse.model_validate(user)
    response.assigned_clients = sorted(roles.assigned_client_ids(session, user.id))
    return response


def card_response(session: Session, card: Card) -> CardResponse:
    response = CardResponse.model_validate(card)
    response.assigned_clients = cards.assigned_client_ids(session, card.id)
    return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    create_db_and_tables()
    logger.info("Database initialized")
    yield


# Create FastAPI app
app = FastAPI(title="Care Log API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"kind": exc.kind, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    logger.info(f"{request.method} {request.url.path} -> 422 validation: {errors}")
    return JSONResponse(
        status_code=422,
        content={"kind": "validation", "error": "Validation error", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"kind": "internal", "error": "Internal server error"})


# Users


@app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(request: UserRegister, session: Session = Depends(get_session)):
    """Register a staff account record. Credentials are issued upstream."""
    logger.info("Register user request")
    user = roles.register_user(session, request.email)
    return user_response(session, user)


@app.get("/users", response_model=list[UserResponse])
def list_users(session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    logger.info(f"List users request by {actor.user_id}")
    return [user_response(session, user) for user in roles.list_users(session, actor)]


@app.patch("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    request: RoleUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Role change request by {actor.user_id}: user {user_id} -> {request.role}")
    user = roles.change_role(session, actor, user_id, request.role)
    return user_response(session, user)


@app.put("/users/{user_id}/clients", response_model=UserResponse)
def update_user_clients(
    user_id: int,
    request: ClientIdsPayload,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Assignment request by {actor.user_id}: user {user_id} -> {request.client_ids}")
    user = roles.set_assigned_clients(session, actor, user_id, request.client_ids)
    return user_response(session, user)


# Clients


@app.post("/clients", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    request: ClientCreate, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)
):
    logger.info(f"Create client request by {actor.user_id}")
    return clients.create_client(
        session,
        actor,
        name=request.name,
        photo=request.photo,
        enabled_categories=request.enabled_categories,
        notes=request.notes,
    )


@app.get("/clients", response_model=list[ClientResponse])
def list_clients(session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    """Admins see every client; staff see only their assigned clients."""
    return clients.list_clients(session, actor)


@app.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(client_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return clients.get_client(session, actor, client_id)


@app.put("/clients/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: int,
    request: ClientUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Update client request by {actor.user_id}: client {client_id}")
    return clients.update_client(
        session,
        actor,
        client_id,
        name=request.name,
        photo=request.photo,
        enabled_categories=request.enabled_categories,
        notes=request.notes,
        is_active=request.is_active,
    )


@app.delete("/clients/{client_id}", response_model=MessageResponse)
def delete_client(client_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    logger.info(f"Delete client request by {actor.user_id}: client {client_id}")
    clients.delete_client(session, actor, client_id)
    return MessageResponse(ok=True, message="Client deleted")


# Category entries


@app.post("/entries", response_model=CategoryEntryResponse, status_code=status.HTTP_201_CREATED)
def create_entry(
    request: CategoryEntryCreate,
    response: Response,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """Create a daily entry; a same-day breakfast/lunch/dinner is overwritten in place."""
    logger.info(
        f"Create entry request by {actor.user_id}: client {request.client_id}, "
        f"category {request.category}, meal_type {request.meal_type}, date {request.date}"
    )
    entry, created = category_entries.create_entry(
        session,
        actor,
        client_id=request.client_id,
        category=request.category,
        description=request.description,
        date=request.date,
        meal_type=request.meal_type,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return entry


@app.get("/entries/client/{client_id}", response_model=list[CategoryEntryResponse])
def list_entries(
    client_id: int,
    category: str = Query(None, description="Filter by category"),
    search: str = Query(None, description="Case-insensitive text search in descriptions"),
    start_date: str = Query(None, alias="startDate", description="Start day (YYYY-MM-DD), inclusive"),
    end_date: str = Query(None, alias="endDate", description="End day (YYYY-MM-DD), inclusive"),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """Get a client's entries, newest effective date first."""
    logger.info(
        f"Entries request by {actor.user_id}: client {client_id}, category {category}, "
        f"search {search!r}, from {start_date}, to {end_date}"
    )
    entries = category_entries.list_entries(
        session,
        actor,
        client_id,
        category=category,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
    logger.info(f"Found {len(entries)} entries for client {client_id}")
    return entries


@app.put("/entries/{entry_id}", response_model=CategoryEntryResponse)
def update_entry(
    entry_id: int,
    request: CategoryEntryUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Update entry request by {actor.user_id}: entry {entry_id}")
    return category_entries.update_entry(
        session, actor, entry_id, category=request.category, description=request.description
    )


@app.delete("/entries/{entry_id}", response_model=MessageResponse)
def delete_entry(entry_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    """Delete a specific entry by ID."""
    logger.info(f"Delete entry request by {actor.user_id}: entry {entry_id}")
    category_entries.delete_entry(session, actor, entry_id)
    return MessageResponse(ok=True, message="Entry deleted successfully")


# Cards


@app.post("/cards", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
def create_card(request: CardPayload, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    logger.info(f"Create card request by {actor.user_id}")
    card = cards.create_card(
        session,
        actor,
        title=request.title,
        field_titles=request.field_titles,
        enabled_fields=request.enabled_fields,
    )
    return card_response(session, card)


@app.get("/cards", response_model=list[CardResponse])
def list_cards(session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return [card_response(session, card) for card in cards.list_cards(session, actor)]


@app.get("/cards/client/{client_id}", response_model=list[CardResponse])
def list_client_cards(client_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    """Get all cards assigned to a specific client."""
    return [card_response(session, card) for card in cards.list_cards_for_client(session, actor, client_id)]


@app.get("/cards/{card_id}", response_model=CardResponse)
def get_card(card_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return card_response(session, cards.get_card(session, actor, card_id))


@app.put("/cards/{card_id}", response_model=CardResponse)
def update_card(
    card_id: int,
    request: CardPayload,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Update card request by {actor.user_id}: card {card_id}")
    card = cards.update_card(
        session,
        actor,
        card_id,
        title=request.title,
        field_titles=request.field_titles,
        enabled_fields=request.enabled_fields,
    )
    return card_response(session, card)


@app.delete("/cards/{card_id}", response_model=MessageResponse)
def delete_card(card_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    """Delete a card and every field entry recorded against it."""
    logger.info(f"Delete card request by {actor.user_id}: card {card_id}")
    cards.delete_card(session, actor, card_id)
    return MessageResponse(ok=True, message="Card deleted successfully")


@app.post("/cards/{card_id}/assign", response_model=CardResponse)
def assign_card(
    card_id: int,
    request: ClientIdsPayload,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    logger.info(f"Assign card request by {actor.user_id}: card {card_id} -> {request.client_ids}")
    card = cards.assign_card(session, actor, card_id, request.client_ids)
    return card_response(session, card)


# Card field entries


@app.post("/card-entries", response_model=CardFieldEntryResponse, status_code=status.HTTP_201_CREATED)
def submit_card_field(
    request: CardFieldSubmit,
    response: Response,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """Save one card slot for a client's day; a repeat save edits it, subject to the lock."""
    logger.info(
        f"Card field request by {actor.user_id} ({actor.role}): card {request.card_id}, "
        f"client {request.client_id}, field {request.field_index}, date {request.date}"
    )
    entry, created = card_fields.submit_field(
        session,
        actor,
        card_id=request.card_id,
        client_id=request.client_id,
        field_index=request.field_index,
        value=request.value,
        date=request.date,
        event_date=request.event_date,
        event_time=request.event_time,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return entry


@app.get("/card-entries/card/{card_id}/client/{client_id}", response_model=list[CardFieldEntryResponse])
def list_card_fields(
    card_id: int,
    client_id: int,
    date: str = Query(None, description="Documentation day (YYYY-MM-DD)"),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return card_fields.list_field_entries(session, actor, card_id, client_id, date=date)


@app.put("/card-entries/{entry_id}", response_model=CardFieldEntryResponse)
def update_card_field(
    entry_id: int,
    request: CardFieldUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """Admin-only: lock/unlock a field entry or correct its content."""
    logger.info(f"Card field update by {actor.user_id}: entry {entry_id}, is_locked={request.is_locked}")
    return card_fields.set_field_entry(
        session,
        actor,
        entry_id,
        is_locked=request.is_locked,
        value=request.value,
        event_date=request.event_date,
        event_time=request.event_time,
    )


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Care Log API", "docs": "/docs"}
