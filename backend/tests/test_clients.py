"""Tests for client records."""
from sqlmodel import select

from helpers import headers_for, make_card
from models import CATEGORIES, CardClientLink, CategoryEntry, UserClientLink


def test_create_client_defaults(client, admin):
    response = client.post("/clients", json={"name": "  Carol  "}, headers=headers_for(admin))
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Carol"
    assert data["enabledCategories"] == list(CATEGORIES)
    assert data["isActive"] is True
    assert data["notes"] == ""


def test_create_client_validation(client, admin):
    h = headers_for(admin)
    assert client.post("/clients", json={"name": "C"}, headers=h).status_code == 400
    assert client.post("/clients", json={"name": "Carol", "enabledCategories": []}, headers=h).status_code == 400
    bad = client.post("/clients", json={"name": "Carol", "enabledCategories": ["karaoke"]}, headers=h)
    assert bad.status_code == 400
    assert "karaoke" in bad.json()["error"]


def test_categories_keep_canonical_order(client, admin):
    response = client.post(
        "/clients",
        json={"name": "Carol", "enabledCategories": ["notes", "meals", "notes"]},
        headers=headers_for(admin),
    )
    assert response.json()["enabledCategories"] == ["meals", "notes"]


def test_staff_cannot_create_client(client, staff):
    response = client.post("/clients", json={"name": "Carol"}, headers=headers_for(staff))
    assert response.status_code == 403


def test_list_clients_by_role(client, admin, staff, client_a, client_b):
    everyone = client.get("/clients", headers=headers_for(admin)).json()
    assert [c["name"] for c in everyone] == ["Alice Client", "Bob Client"]

    mine = client.get("/clients", headers=headers_for(staff)).json()
    assert [c["id"] for c in mine] == [client_a.id]


def test_deactivate_client(client, admin, staff, client_a):
    response = client.put(f"/clients/{client_a.id}", json={"isActive": False}, headers=headers_for(admin))
    assert response.status_code == 200
    assert response.json()["isActive"] is False
    assert response.json()["name"] == "Alice Client"

    entry = client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "notes", "description": "hello"},
        headers=headers_for(staff),
    )
    assert entry.status_code == 400


def test_get_client_not_found(client, admin):
    response = client.get("/clients/9999", headers=headers_for(admin))
    assert response.status_code == 404
    assert response.json() == {"kind": "not_found", "error": "Client not found"}


def test_delete_client_cascades(client, test_session, admin, staff, client_a):
    make_card(test_session, client_ids=[client_a.id])
    client.post(
        "/entries",
        json={"clientId": client_a.id, "category": "notes", "description": "hello"},
        headers=headers_for(staff),
    )

    response = client.delete(f"/clients/{client_a.id}", headers=headers_for(admin))
    assert response.status_code == 200
    assert test_session.exec(select(CategoryEntry)).all() == []
    assert test_session.exec(select(CardClientLink)).all() == []
    assert test_session.exec(select(UserClientLink)).all() == []
    assert client.get(f"/clients/{client_a.id}", headers=headers_for(admin)).status_code == 404
