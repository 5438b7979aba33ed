import os
from io import BytesIO

from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.category import Category
from app.models.product import Product


def _jpeg_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (6, 6), color=(200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


def test_list_only_active_in_display_order(client: TestClient, db_session: Session):
    db_session.add_all(
        [
            Category(name="Accesorios", slug="accesorios", display_order=2),
            Category(name="Batas", slug="batas", display_order=1),
            Category(name="Archivada", slug="archivada", display_order=0, is_active=False),
        ]
    )
    db_session.commit()

    response = client.get("/api/categories/")

    assert response.status_code == 200
    assert [c["name"] for c in response.json()["data"]] == ["Batas", "Accesorios"]


def test_get_by_id_and_slug(client: TestClient, db_session: Session):
    category = Category(name="Uniformes Deportivos", slug="uniformes-deportivos")
    db_session.add(category)
    db_session.commit()

    assert client.get(f"/api/categories/{category.id}").json()["data"]["slug"] == "uniformes-deportivos"
    assert client.get("/api/categories/slug/uniformes-deportivos").json()["data"]["id"] == category.id

    missing = client.get("/api/categories/slug/no-existe")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Categoría no encontrada"


def test_create_generates_unique_slugs(client: TestClient, admin_headers: dict):
    first = client.post("/api/categories/", data={"name": "Batas y Mandiles"}, headers=admin_headers)
    second = client.post("/api/categories/", data={"name": "Batas y Mandiles"}, headers=admin_headers)

    assert first.status_code == 201
    assert first.json()["data"]["slug"] == "batas-y-mandiles"
    assert second.json()["data"]["slug"] == "batas-y-mandiles-2"


def test_punctuation_only_name_gets_fallback_slug(client: TestClient, admin_headers: dict):
    first = client.post("/api/categories/", data={"name": "!!!"}, headers=admin_headers)
    second = client.post("/api/categories/", data={"name": "¿?"}, headers=admin_headers)

    assert first.status_code == 201
    assert first.json()["data"]["slug"] == "categoria"
    assert second.json()["data"]["slug"] == "categoria-2"


def test_create_requires_name_and_admin(client: TestClient, admin_headers: dict, customer_headers: dict):
    assert client.post("/api/categories/", data={"name": "X"}, headers=customer_headers).status_code == 403

    response = client.post("/api/categories/", data={"description": "sin nombre"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "El nombre es requerido"


def test_image_is_replaced_on_update(client: TestClient, admin_headers: dict):
    created = client.post(
        "/api/categories/",
        data={"name": "Suéteres"},
        files={"image": ("sueter.jpg", _jpeg_bytes(), "image/jpeg")},
        headers=admin_headers,
    )
    assert created.status_code == 201
    data = created.json()["data"]
    old_path = os.path.join(settings.CATEGORY_UPLOAD_DIR, data["image_url"])
    assert os.path.exists(old_path)

    updated = client.put(
        f"/api/categories/{data['id']}",
        data={"description": "Suéteres de invierno"},
        files={"image": ("nuevo.jpg", _jpeg_bytes(), "image/jpeg")},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    new_image = updated.json()["data"]["image_url"]
    assert new_image != data["image_url"]
    assert os.path.exists(os.path.join(settings.CATEGORY_UPLOAD_DIR, new_image))
    assert not os.path.exists(old_path)


def test_delete_keeps_products(client: TestClient, db_session: Session, admin_headers: dict):
    category = Category(name="Temporal", slug="temporal")
    db_session.add(category)
    db_session.flush()
    product = Product(name="Gorra", price=80.0, category_id=category.id)
    db_session.add(product)
    db_session.commit()

    response = client.delete(f"/api/categories/{category.id}", headers=admin_headers)

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(Category).count() == 0
    assert db_session.get(Product, product.id).category_id is None
