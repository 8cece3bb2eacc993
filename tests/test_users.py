import uuid

from protoshop.models.user import SavedModel


def _address(**overrides):
    body = {
        "label": "Home",
        "fullName": "Asha Rao",
        "phone": "9876543210",
        "addressLine1": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "pincode": "560001",
    }
    body.update(overrides)
    return body


def test_profile_read_and_partial_update(client, make_user):
    user, headers = make_user()

    resp = client.put("/api/user/profile", headers=headers, json={"phoneNumber": " 9000000001 "})

    assert resp.status_code == 200
    body = resp.json()
    assert body["phone_number"] == "9000000001"
    assert body["full_name"] == user.full_name
    assert client.get("/api/user/profile", headers=headers).json()["phone_number"] == "9000000001"


def test_profile_rejects_unknown_fields(client, make_user):
    _, headers = make_user()

    resp = client.put("/api/user/profile", headers=headers, json={"role": "admin"})

    assert resp.status_code == 400


def test_first_address_becomes_default(client, make_user):
    _, headers = make_user()

    first = client.post("/api/user/addresses", headers=headers, json=_address())
    second = client.post("/api/user/addresses", headers=headers, json=_address(label="Work"))

    assert first.status_code == 201
    assert first.json()["is_default"] is True
    assert second.json()["is_default"] is False


def test_single_default_address(client, make_user):
    _, headers = make_user()
    home = client.post("/api/user/addresses", headers=headers, json=_address()).json()
    work = client.post(
        "/api/user/addresses", headers=headers, json=_address(label="Work", isDefault=True)
    ).json()

    listed = client.get("/api/user/addresses", headers=headers).json()
    defaults = [a["id"] for a in listed if a["is_default"]]
    assert defaults == [work["id"]]

    client.put(
        f"/api/user/addresses/{home['id']}",
        headers=headers,
        json=_address(city="Mysuru", isDefault=True),
    )
    listed = client.get("/api/user/addresses", headers=headers).json()
    assert [a["id"] for a in listed if a["is_default"]] == [home["id"]]
    assert listed[0]["city"] == "Mysuru"


def test_address_belongs_to_owner(client, make_user):
    _, owner = make_user()
    _, stranger = make_user()
    address_id = client.post("/api/user/addresses", headers=owner, json=_address()).json()["id"]

    assert client.put(f"/api/user/addresses/{address_id}", headers=stranger, json=_address()).status_code == 404
    assert client.delete(f"/api/user/addresses/{address_id}", headers=stranger).status_code == 404
    assert client.get("/api/user/addresses", headers=stranger).json() == []

    deleted = client.delete(f"/api/user/addresses/{address_id}", headers=owner)
    assert deleted.json() == {"message": "Address deleted"}
    assert client.get("/api/user/addresses", headers=owner).json() == []


def test_address_validation(client, make_user):
    _, headers = make_user()

    resp = client.post("/api/user/addresses", headers=headers, json=_address(city="  "))

    assert resp.status_code == 400


def test_saved_models(client, make_user, session):
    user, headers = make_user()
    _, other = make_user()
    session.add(SavedModel(user_id=user.id, name="Benchy", file_url="https://files.example.com/benchy.stl"))
    session.commit()

    mine = client.get("/api/user/models", headers=headers).json()

    assert [m["name"] for m in mine] == ["Benchy"]
    assert client.get("/api/user/models", headers=other).json() == []


def test_admin_changes_role(client, make_user):
    user, headers = make_user()
    _, admin = make_user(role="admin")

    resp = client.patch(f"/api/user/{user.id}/role", headers=admin, json={"role": "admin"})

    assert resp.status_code == 200
    assert resp.json()["role"] == "admin"
    # Role is read from the database, so the promotion applies immediately
    assert client.get("/api/user/admin/all", headers=headers).status_code == 200


def test_role_update_validation(client, make_user):
    _, admin = make_user(role="admin")

    assert (
        client.patch(f"/api/user/{uuid.uuid4()}/role", headers=admin, json={"role": "admin"}).status_code
        == 404
    )
    assert (
        client.patch(f"/api/user/{uuid.uuid4()}/role", headers=admin, json={"role": "owner"}).status_code
        == 400
    )
