import json
from decimal import Decimal

import pytest

from protoshop.services.quote_service import estimated_price_from, parse_specifications

STL = b"solid bracket\nendsolid bracket\n"


def _request(client, headers, data=None, name="bracket.stl", body=STL):
    return client.post(
        "/api/quotes/request",
        headers=headers,
        data=data or {},
        files={"file": (name, body, "model/stl")},
    )


def test_request_quote_stores_model_and_notifies(client, make_user, uploads, email_client):
    user, headers = make_user()
    specs = {"material": "PETG", "infill": "20%", "estimatedPrice": 412.5}

    resp = _request(
        client,
        headers,
        data={"phone": "9876543210", "notes": "Matte black please", "specifications": json.dumps(specs)},
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Quote requested successfully"
    quote = body["quote"]
    assert quote["status"] == "pending"
    assert quote["email"] == user.email
    assert quote["file_name"] == "bracket.stl"
    assert quote["specifications"]["material"] == "PETG"
    assert Decimal(quote["estimated_price"]) == Decimal("412.50")
    assert quote["admin_notes"] == "Matte black please"

    [path] = uploads
    assert path.startswith("quotes/models/")
    assert uploads[path] == STL

    staff, customer = email_client.sent
    assert staff["to"] == "staff@example.com"
    assert staff["subject"] == "New Request: bracket.stl - Rs. 412.50"
    assert staff["attachments"] == [("bracket.stl", STL)]
    assert "Matte black please" in staff["text"]
    assert customer["to"] == user.email
    assert customer["subject"] == "Order Received: bracket.stl"


def test_contact_email_override(client, make_user, uploads, email_client):
    _, headers = make_user()

    resp = _request(client, headers, data={"email": "workshop@example.test"})

    assert resp.json()["quote"]["email"] == "workshop@example.test"
    assert email_client.sent[-1]["to"] == "workshop@example.test"


def test_request_without_file(client, make_user, uploads):
    _, headers = make_user()

    resp = client.post("/api/quotes/request", headers=headers, data={"notes": "no file"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "No file uploaded"
    assert uploads == {}


def test_request_requires_login(client, uploads):
    assert _request(client, {}).status_code == 401


def test_my_quotes_are_private(client, make_user, uploads):
    _, alice = make_user()
    _, bob = make_user()
    _request(client, alice)

    assert len(client.get("/api/quotes/my", headers=alice).json()) == 1
    assert client.get("/api/quotes/my", headers=bob).json() == []


def test_admin_reviews_quotes(client, make_user, uploads):
    _, headers = make_user()
    _, admin = make_user(role="admin")
    quote_id = _request(client, headers).json()["quote"]["id"]
    _request(client, headers, name="gear.obj")

    resp = client.put(
        f"/api/quotes/{quote_id}/status",
        headers=admin,
        json={"status": "approved", "estimated_price": "550.00", "admin_notes": "Two-day turnaround"},
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert Decimal(resp.json()["estimated_price"]) == Decimal("550.00")

    approved = client.get("/api/quotes/admin/all", headers=admin, params={"status_filter": "approved"}).json()
    everything = client.get("/api/quotes/admin/all", headers=admin).json()
    assert [q["id"] for q in approved] == [quote_id]
    assert len(everything) == 2


def test_quote_admin_rules(client, make_user, uploads):
    _, headers = make_user()
    _, admin = make_user(role="admin")
    quote_id = _request(client, headers).json()["quote"]["id"]

    assert client.get("/api/quotes/admin/all", headers=headers).status_code == 403
    assert (
        client.put(f"/api/quotes/{quote_id}/status", headers=admin, json={"status": "shipped"}).status_code
        == 400
    )
    assert (
        client.put(
            "/api/quotes/00000000-0000-0000-0000-000000000000/status",
            headers=admin,
            json={"status": "reviewed"},
        ).status_code
        == 404
    )


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, {}),
        ("", {}),
        ("not json", {}),
        ("[1, 2]", {}),
        ('{"infill": Infinity}', {"infill": None}),
        ('{"layerHeight": 0.2}', {"layerHeight": 0.2}),
    ],
)
def test_parse_specifications_is_lenient(raw, expected):
    assert parse_specifications(raw) == expected


def test_estimated_price_from():
    assert estimated_price_from({"estimatedPrice": "99.999"}) == Decimal("100.00")
    assert estimated_price_from({"estimatedPrice": "soon"}) is None
    assert estimated_price_from({}) is None


@pytest.mark.parametrize("raw", ["NaN", "sNaN", "Infinity", "-Infinity", float("nan"), "-5", "1e9"])
def test_estimated_price_rejects_values_the_column_cannot_hold(raw):
    assert estimated_price_from({"estimatedPrice": raw}) is None


def test_nan_estimate_is_not_stored(client, make_user, uploads):
    _, headers = make_user()

    resp = _request(client, headers, data={"specifications": '{"estimatedPrice": NaN}'})

    assert resp.status_code == 201
    quote = resp.json()["quote"]
    assert quote["estimated_price"] is None
    assert quote["specifications"] == {"estimatedPrice": None}
