from decimal import Decimal

from protoshop.models.product import Product
from protoshop.services import product_service
from protoshop.services.product_service import MAX_IMAGE_BYTES

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 64


def _image(name="part.png", data=PNG, content_type="image/png"):
    return ("images", (name, data, content_type))


def test_listing_hides_archived_products(client, make_product):
    make_product(name="Visible")
    make_product(name="Hidden", is_archived=True)

    public = client.get("/api/products").json()
    everything = client.get("/api/products", params={"show_archived": "true"}).json()

    assert [p["name"] for p in public] == ["Visible"]
    assert sorted(p["name"] for p in everything) == ["Hidden", "Visible"]


def test_listing_filters_by_category_and_search(client, make_product):
    make_product(name="Ender Printer", category="3d_printer", description="Budget FDM machine")
    make_product(name="PLA Spool", category="filament")
    make_product(name="Gear Model", category="digital_model", description="printable fdm gear")

    printers = client.get("/api/products", params={"category": "3d_printer"}).json()
    fdm = client.get("/api/products", params={"search": "FDM"}).json()

    assert [p["name"] for p in printers] == ["Ender Printer"]
    assert sorted(p["name"] for p in fdm) == ["Ender Printer", "Gear Model"]


def test_admin_creates_product_with_gallery(client, make_user, uploads):
    _, admin = make_user(role="admin")

    resp = client.post(
        "/api/products",
        headers=admin,
        data={
            "name": "Resin Printer",
            "price": "24999.00",
            "stock": "3",
            "category": "3d_printer",
            "specifications": '{"build_volume": "192x120x200"}',
        },
        files=[_image("front.png"), _image("side.jpg", content_type="image/jpeg")],
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert Decimal(body["price"]) == Decimal("24999.00")
    assert body["specifications"] == {"build_volume": "192x120x200"}
    assert [img["display_order"] for img in body["images"]] == [0, 1]
    assert body["image_url"] == body["images"][0]["image_url"]
    assert len(uploads) == 2
    assert all(path.startswith(f"products/{body['id']}/") for path in uploads)
    assert sorted(p.rsplit(".", 1)[1] for p in uploads) == ["jpg", "png"]


def test_new_images_are_appended_after_existing(client, make_user, uploads):
    _, admin = make_user(role="admin")
    created = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Nozzle Kit", "price": "499"},
        files=[_image()],
    ).json()

    resp = client.put(
        f"/api/products/{created['id']}",
        headers=admin,
        data={"stock": "12"},
        files=[_image("a.webp", content_type="image/webp"), _image("b.png")],
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["stock"] == 12
    assert body["name"] == "Nozzle Kit"
    assert [img["display_order"] for img in body["images"]] == [0, 1, 2]
    assert body["image_url"] == created["image_url"]


def test_invalid_images_are_rejected_before_upload(client, make_user, uploads):
    _, admin = make_user(role="admin")

    bad_type = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Thing", "price": "10"},
        files=[_image(), _image("notes.txt", b"hello", "text/plain")],
    )
    too_big = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Thing", "price": "10"},
        files=[_image("huge.png", b"0" * (MAX_IMAGE_BYTES + 1))],
    )

    assert bad_type.status_code == 400
    assert too_big.status_code == 413
    assert uploads == {}
    assert client.get("/api/products").json() == []


def test_create_validation(client, make_user):
    _, admin = make_user(role="admin")

    negative = client.post("/api/products", headers=admin, data={"name": "X", "price": "-1"})
    bad_specs = client.post(
        "/api/products", headers=admin, data={"name": "X", "price": "1", "specifications": "[1, 2]"}
    )
    missing = client.post("/api/products", headers=admin, data={"price": "1"})

    assert negative.status_code == 400
    assert bad_specs.status_code == 400
    assert missing.status_code == 400


def test_catalog_writes_require_admin(client, make_user, make_product):
    _, headers = make_user()
    product = make_product()

    assert client.post("/api/products", headers=headers, data={"name": "X", "price": "1"}).status_code == 403
    assert client.delete(f"/api/products/{product.id}", headers=headers).status_code == 403
    assert client.post("/api/products", data={"name": "X", "price": "1"}).status_code == 401


def test_archive_and_restore(client, make_user, make_product, fetch):
    _, admin = make_user(role="admin")
    product = make_product(name="Seasonal Vase")

    archived = client.delete(f"/api/products/{product.id}", headers=admin)
    assert archived.json() == {"message": "Product archived"}
    assert fetch(Product, product.id).is_archived is True
    assert client.get("/api/products").json() == []

    restored = client.patch(f"/api/products/{product.id}/restore", headers=admin)
    assert restored.status_code == 200
    assert restored.json()["is_archived"] is False
    assert [p["name"] for p in client.get("/api/products").json()] == ["Seasonal Vase"]


def test_delete_image_moves_main_image(client, make_user, uploads):
    _, admin = make_user(role="admin")
    created = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Bracket", "price": "20"},
        files=[_image("one.png"), _image("two.png")],
    ).json()
    first, second = created["images"]

    resp = client.delete(f"/api/products/{created['id']}/images/{first['id']}", headers=admin)

    assert resp.status_code == 204
    detail = client.get(f"/api/products/{created['id']}").json()
    assert [img["id"] for img in detail["images"]] == [second["id"]]
    assert detail["image_url"] == second["image_url"]


def test_delete_image_of_another_product(client, make_user, make_product, uploads):
    _, admin = make_user(role="admin")
    created = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Bracket", "price": "20"},
        files=[_image()],
    ).json()
    other = make_product()

    resp = client.delete(
        f"/api/products/{other.id}/images/{created['images'][0]['id']}", headers=admin
    )

    assert resp.status_code == 404
    assert resp.json()["error"] == "Image not found for this product"


def test_reviews_update_rating(client, make_user, make_product):
    _, alice = make_user()
    _, bob = make_user()
    product = make_product()

    first = client.post(
        f"/api/products/{product.id}/reviews", headers=alice, json={"rating": 5, "comment": "Crisp layers"}
    )
    client.post(f"/api/products/{product.id}/reviews", headers=bob, json={"rating": 4})

    assert first.status_code == 201
    assert first.json()["user_name"] == "Test User 1"
    detail = client.get(f"/api/products/{product.id}").json()
    assert detail["review_count"] == 2
    assert Decimal(detail["average_rating"]) == Decimal("4.5")
    assert len(detail["reviews"]) == 2
    assert len(client.get(f"/api/products/{product.id}/reviews").json()) == 2


def test_review_validation(client, make_user, make_product):
    _, headers = make_user()
    product = make_product()
    archived = make_product(is_archived=True)

    assert client.post(f"/api/products/{product.id}/reviews", headers=headers, json={"rating": 6}).status_code == 400
    assert client.post(f"/api/products/{archived.id}/reviews", headers=headers, json={"rating": 3}).status_code == 404
    assert client.post(f"/api/products/{product.id}/reviews", json={"rating": 3}).status_code == 401


def test_like_toggles(client, make_user, make_product):
    _, alice = make_user()
    _, bob = make_user()
    product = make_product()

    assert client.post(f"/api/products/{product.id}/like", headers=alice).json() == {
        "liked": True,
        "likes_count": 1,
    }
    assert client.post(f"/api/products/{product.id}/like", headers=bob).json()["likes_count"] == 2
    assert client.post(f"/api/products/{product.id}/like", headers=alice).json() == {
        "liked": False,
        "likes_count": 1,
    }


def test_unknown_product(client):
    resp = client.get("/api/products/00000000-0000-0000-0000-000000000000")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Product not found"


def test_product_video_upload_and_replace(client, make_user, uploads, monkeypatch):
    removed = []
    monkeypatch.setattr(product_service, "delete_public_url", removed.append)
    _, admin = make_user(role="admin")

    created = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Printer Demo", "price": "15000"},
        files=[_image(), ("video", ("demo.mp4", b"mp4-bytes", "video/mp4"))],
    )

    assert created.status_code == 201, created.text
    first_video = created.json()["video_url"]
    [video_path] = [p for p in uploads if p.startswith("products/videos/")]
    assert video_path.endswith(".mp4")
    assert first_video.endswith(video_path)

    updated = client.put(
        f"/api/products/{created.json()['id']}",
        headers=admin,
        files=[("video", ("tour.webm", b"webm-bytes", "video/webm"))],
    )

    assert updated.status_code == 200
    assert updated.json()["video_url"].endswith(".webm")
    assert removed == [first_video]
    assert len(updated.json()["images"]) == 1


def test_invalid_video_is_rejected_before_save(client, make_user, uploads, monkeypatch):
    monkeypatch.setattr(product_service, "MAX_VIDEO_BYTES", 16)
    _, admin = make_user(role="admin")

    wrong_type = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Clip", "price": "10"},
        files=[("video", ("clip.avi", b"avi", "video/x-msvideo"))],
    )
    too_big = client.post(
        "/api/products",
        headers=admin,
        data={"name": "Clip", "price": "10"},
        files=[("video", ("clip.mp4", b"0" * 17, "video/mp4"))],
    )

    assert wrong_type.status_code == 400
    assert too_big.status_code == 413
    assert uploads == {}
    assert client.get("/api/products").json() == []
