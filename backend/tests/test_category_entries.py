"""Tests for category entries and the per-day meals upsert."""
from datetime import datetime

import pytest
from sqlmodel import select

import category_entries
import time_utils
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from helpers import actor_for, headers_for, make_client
from models import CategoryEntry


def post_meal(client, user, client_id, meal_type, description, date=None):
    body = {"clientId": client_id, "category": "meals", "mealType": meal_type, "description": description}
    if date:
        body["date"] = date
    return client.post("/entries", json=body, headers=headers_for(user))


def test_breakfast_same_day_overwrites_in_place(client, test_session, staff, client_a):
    first = post_meal(client, staff, client_a.id, "breakfast", "oats", "2024-01-10")
    assert first.status_code == 201

    second = post_meal(client, staff, client_a.id, "breakfast", "eggs", "2024-01-10")
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["description"] == "eggs"

    rows = test_session.exec(select(CategoryEntry).where(CategoryEntry.client_id == client_a.id)).all()
    assert len(rows) == 1
    assert rows[0].description == "eggs"


def test_each_daily_meal_has_its_own_slot(client, test_session, staff, client_a):
    for meal_type in ("breakfast", "lunch", "dinner"):
        assert post_meal(client, staff, client_a.id, meal_type, "first", "2024-01-10").status_code == 201
        assert post_meal(client, staff, client_a.id, meal_type, "second", "2024-01-10").status_code == 200

    rows = test_session.exec(select(CategoryEntry)).all()
    assert sorted(r.meal_type for r in rows) == ["breakfast", "dinner", "lunch"]
    assert {r.description for r in rows} == {"second"}


def test_snacks_are_never_merged(client, test_session, staff, client_a):
    for description in ("apple", "crackers", "yogurt"):
        response = post_meal(client, staff, client_a.id, "snacks", description, "2024-01-10")
        assert response.status_code == 201

    rows = test_session.exec(select(CategoryEntry).where(CategoryEntry.meal_type == "snacks")).all()
    assert len(rows) == 3


def test_meal_on_a_different_day_inserts(client, staff, client_a):
    first = post_meal(client, staff, client_a.id, "dinner", "pasta", "2024-01-10")
    second = post_meal(client, staff, client_a.id, "dinner", "rice", "2024-01-11")
    assert second.status_code == 201
    assert second.json()["id"] != first.json()["id"]


def test_same_day_is_per_client(client, admin, client_a, client_b):
    post_meal(client, admin, client_a.id, "lunch", "soup", "2024-01-10")
    response = post_meal(client, admin, client_b.id, "lunch", "salad", "2024-01-10")
    assert response.status_code == 201


def test_missing_date_falls_back_to_server_day(client, test_session, staff, client_a, monkeypatch):
    """Without a date the server clock decides the day; a later dated edit of that day still merges."""
    monkeypatch.setattr(time_utils, "server_now", lambda: datetime(2024, 1, 10, 23, 30))

    created = post_meal(client, staff, client_a.id, "breakfast", "toast")
    assert created.status_code == 201
    assert created.json()["date"].startswith("2024-01-10T23:30")

    edited = post_meal(client, staff, client_a.id, "breakfast", "porridge", "2024-01-10")
    assert edited.status_code == 200
    assert edited.json()["id"] == created.json()["id"]

    later = post_meal(client, staff, client_a.id, "breakfast", "cereal", "2024-01-11")
    assert later.status_code == 201


def test_effective_date_round_trips_as_wall_clock(test_session, staff, client_a):
    """The stored date is the naive wall-clock value the caller sent."""
    entry, _ = category_entries.create_entry(
        test_session, actor_for(staff), client_a.id, "notes", "Evening check", date="2024-01-10T22:45:00+02:00"
    )
    test_session.expire_all()
    stored = test_session.get(CategoryEntry, entry.id)
    assert stored.date == datetime(2024, 1, 10, 22, 45)
    assert stored.date.tzinfo is None
    assert stored.day == "2024-01-10"


def test_iso_datetime_keeps_callers_wall_clock_day(client, staff, client_a):
    """A late-evening local timestamp stays on its local day even with an offset attached."""
    first = post_meal(client, staff, client_a.id, "dinner", "stew", "2024-01-10T22:45:00-08:00")
    second = post_meal(client, staff, client_a.id, "dinner", "curry", "2024-01-10")
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]


def test_meals_requires_meal_type(client, staff, client_a):
    response = client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "meals", "description": "oats"},
        headers=headers_for(staff),
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"


def test_meal_type_rejected_outside_meals(test_session, staff, client_a):
    with pytest.raises(ValidationError):
        category_entries.create_entry(
            test_session, actor_for(staff), client_a.id, "notes", "hello", meal_type="lunch"
        )


@pytest.mark.parametrize(
    "category,description",
    [("parties", "fun"), ("notes", "   "), ("notes", "x" * 5001)],
)
def test_create_rejects_bad_input(test_session, staff, client_a, category, description):
    with pytest.raises(ValidationError):
        category_entries.create_entry(test_session, actor_for(staff), client_a.id, category, description)


def test_inactive_client_rejects_new_entries(client, test_session, admin):
    inactive = make_client(test_session, "Dormant", is_active=False)
    response = client.post(
        "/entries",
        json={"clientId": inactive.id, "category": "notes", "description": "hello"},
        headers=headers_for(admin),
    )
    assert response.status_code == 400
    assert "inactive" in response.json()["error"]


def test_category_must_be_enabled_for_client(test_session, admin):
    limited = make_client(test_session, "Limited", enabled_categories=["notes"])
    with pytest.raises(ValidationError):
        category_entries.create_entry(test_session, actor_for(admin), limited.id, "medical", "checkup")


def test_create_for_unknown_client(test_session, admin):
    with pytest.raises(NotFoundError):
        category_entries.create_entry(test_session, actor_for(admin), 4242, "notes", "hello")


def test_racing_daily_meal_insert_is_a_conflict(test_session, staff, client_a, monkeypatch):
    actor = actor_for(staff)
    category_entries.create_entry(
        test_session, actor, client_a.id, "meals", "oats", date="2024-01-10", meal_type="breakfast"
    )
    # Another request inserted between our lookup and our commit
    monkeypatch.setattr(category_entries, "_find_daily_meal", lambda *args: None)

    with pytest.raises(ConflictError):
        category_entries.create_entry(
            test_session, actor, client_a.id, "meals", "eggs", date="2024-01-10", meal_type="breakfast"
        )
    assert len(test_session.exec(select(CategoryEntry)).all()) == 1


def seed_entries(client, user, client_id):
    entries = [
        ("behavior", "Calm during Music group", "2024-01-08"),
        ("outing", "Walk to the park", "2024-01-09"),
        ("notes", "Called family", "2024-01-10T18:00:00"),
        ("behavior", "Restless in the evening", "2024-01-10T21:00:00"),
        ("medical", "Doctor visit", "2024-01-12"),
    ]
    for category, description, date in entries:
        response = client.post(
            "/entries",
            json={"clientId": client_id, "category": category, "description": description, "date": date},
            headers=headers_for(user),
        )
        assert response.status_code == 201


def test_list_orders_newest_effective_date_first(client, staff, client_a):
    seed_entries(client, staff, client_a.id)
    response = client.get(f"/entries/client/{client_a.id}", headers=headers_for(staff))
    assert response.status_code == 200
    descriptions = [e["description"] for e in response.json()]
    assert descriptions == [
        "Doctor visit",
        "Restless in the evening",
        "Called family",
        "Walk to the park",
        "Calm during Music group",
    ]


def test_list_filters(client, staff, client_a):
    seed_entries(client, staff, client_a.id)
    h = headers_for(staff)

    by_category = client.get(f"/entries/client/{client_a.id}?category=behavior", headers=h).json()
    assert len(by_category) == 2

    by_search = client.get(f"/entries/client/{client_a.id}?search=MUSIC", headers=h).json()
    assert [e["description"] for e in by_search] == ["Calm during Music group"]

    # End bound covers the whole end day, including the 21:00 entry
    by_range = client.get(
        f"/entries/client/{client_a.id}?startDate=2024-01-09&endDate=2024-01-10", headers=h
    ).json()
    assert len(by_range) == 3


def test_search_treats_wildcards_literally(client, staff, client_a):
    seed_entries(client, staff, client_a.id)
    response = client.get(f"/entries/client/{client_a.id}?search=%25", headers=headers_for(staff))
    assert response.json() == []


def test_list_rejects_inverted_range(client, staff, client_a):
    response = client.get(
        f"/entries/client/{client_a.id}?startDate=2024-01-10&endDate=2024-01-01", headers=headers_for(staff)
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"


def test_update_and_delete_respect_assignment(client, test_session, admin, staff, client_b):
    created = client.post(
        "/entries",
        json={"clientId": client_b.id, "category": "notes", "description": "Admin note"},
        headers=headers_for(admin),
    ).json()

    update = client.put(f"/entries/{created['id']}", json={"description": "x"}, headers=headers_for(staff))
    assert update.status_code == 403
    delete = client.delete(f"/entries/{created['id']}", headers=headers_for(staff))
    assert delete.status_code == 403

    assert test_session.get(CategoryEntry, created["id"]).description == "Admin note"


def test_update_entry(client, staff, client_a):
    created = client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "notes", "description": "Draft"},
        headers=headers_for(staff),
    ).json()

    response = client.put(
        f"/entries/{created['id']}",
        json={"category": "behavior", "description": "Final"},
        headers=headers_for(staff),
    )
    assert response.status_code == 200
    assert response.json()["category"] == "behavior"
    assert response.json()["description"] == "Final"


def test_update_requires_a_field(client, staff, client_a):
    created = client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "notes", "description": "Draft"},
        headers=headers_for(staff),
    ).json()
    response = client.put(f"/entries/{created['id']}", json={}, headers=headers_for(staff))
    assert response.status_code == 422


def test_update_out_of_meals_clears_meal_type(test_session, staff, client_a):
    actor = actor_for(staff)
    entry, _ = category_entries.create_entry(
        test_session, actor, client_a.id, "meals", "oats", date="2024-01-10", meal_type="breakfast"
    )
    updated = category_entries.update_entry(test_session, actor, entry.id, category="notes")
    assert updated.meal_type is None

    with pytest.raises(ValidationError):
        category_entries.update_entry(test_session, actor, entry.id, category="meals")


def test_delete_entry(client, staff, client_a):
    created = client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "notes", "description": "Temp"},
        headers=headers_for(staff),
    ).json()
    response = client.delete(f"/entries/{created['id']}", headers=headers_for(staff))
    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert client.get(f"/entries/client/{client_a.id}", headers=headers_for(staff)).json() == []


def test_ledger_denies_unassigned_staff(test_session, staff, client_b):
    with pytest.raises(ForbiddenError):
        category_entries.list_entries(test_session, actor_for(staff), client_b.id)
