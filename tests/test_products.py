import os
from io import BytesIO

from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.cart import Cart, CartItem
from app.models.category import Category
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductImage, ProductVariant
from app.models.user import User
from app.models.wishlist import Wishlist


def _png_bytes(width: int = 8, height: int = 8) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(10, 40, 120)).save(buffer, format="PNG")
    return buffer.getvalue()


def _create_product(db: Session, name: str = "Camisa Blanca", price: float = 180.0, category_id=None) -> Product:
    product = Product(name=name, price=price, description="Manga corta", category_id=category_id)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def test_list_products_with_category_filter(client: TestClient, db_session: Session):
    category = Category(name="Uniformes Escolares", slug="uniformes-escolares")
    db_session.add(category)
    db_session.commit()
    _create_product(db_session, "Camisa Blanca", category_id=category.id)
    _create_product(db_session, "Short Deportivo")

    everything = client.get("/api/products/")
    assert everything.status_code == 200
    assert len(everything.json()["data"]) == 2

    filtered = client.get(f"/api/products/?category={category.id}")
    data = filtered.json()["data"]
    assert [p["name"] for p in data] == ["Camisa Blanca"]
    assert data[0]["category_name"] == "Uniformes Escolares"

    limited = client.get("/api/products/?limit=1")
    assert len(limited.json()["data"]) == 1


def test_product_detail_orders_variants(client: TestClient, db_session: Session):
    product = _create_product(db_session)
    db_session.add_all(
        [
            ProductVariant(product_id=product.id, color_hex="#FFFFFF", size="8", stock=1),
            ProductVariant(product_id=product.id, color_hex="#000000", size="6", stock=1),
            ProductVariant(product_id=product.id, color_hex="#000000", size="10", stock=1),
        ]
    )
    db_session.commit()

    response = client.get(f"/api/products/{product.id}")

    assert response.status_code == 200
    variants = response.json()["data"]["variants"]
    assert [(v["color_hex"], v["size"]) for v in variants] == [
        ("#000000", "10"),
        ("#000000", "6"),
        ("#FFFFFF", "8"),
    ]

    missing = client.get("/api/products/9999")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Producto no encontrado"


def test_search_and_autocomplete(client: TestClient, db_session: Session):
    _create_product(db_session, "Suéter Escolar")
    _create_product(db_session, "Pants Deportivo")

    search = client.get("/api/products/search?q=suéter")
    assert [p["name"] for p in search.json()["data"]] == ["Suéter Escolar"]

    by_description = client.get("/api/products/search?q=manga")
    assert len(by_description.json()["data"]) == 2

    empty = client.get("/api/products/search?q=")
    assert empty.json()["data"] == []

    suggestions = client.get("/api/products/autocomplete?q=pan")
    assert suggestions.json()["data"][0]["name"] == "Pants Deportivo"


def test_create_and_update_product(client: TestClient, admin_headers: dict, customer_headers: dict):
    denied = client.post("/api/products/", json={"name": "Bata", "price": 300}, headers=customer_headers)
    assert denied.status_code == 403

    missing = client.post("/api/products/", json={"name": "Bata"}, headers=admin_headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "Nombre y precio son obligatorios"

    created = client.post(
        "/api/products/",
        json={"name": "Bata de Laboratorio", "price": 320.5, "brand": "FYTTSA"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    product_id = created.json()["data"]["id"]
    assert created.json()["data"]["description"] == ""

    updated = client.put(f"/api/products/{product_id}", json={"price": 299.0}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["price"] == 299.0
    assert updated.json()["data"]["name"] == "Bata de Laboratorio"


def test_delete_product_cleans_references(client: TestClient, db_session: Session, customer: User, admin_headers: dict):
    product = _create_product(db_session)
    variant = ProductVariant(product_id=product.id, size="8", color_name="Blanco", stock=4)
    db_session.add(variant)
    db_session.flush()

    cart = Cart(user_id=customer.id)
    db_session.add(cart)
    db_session.flush()
    db_session.add(CartItem(cart_id=cart.id, product_id=product.id, variant_id=variant.id, quantity=1))
    db_session.add(Wishlist(user_id=customer.id, product_id=product.id))

    order = Order(user_id=customer.id, subtotal=180.0, total=279.0, shipping_cost=99.0)
    db_session.add(order)
    db_session.flush()
    db_session.add(
        OrderItem(
            order_id=order.id,
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.name,
            size="8",
            quantity=1,
            price=180.0,
        )
    )
    db_session.commit()

    response = client.delete(f"/api/products/{product.id}", headers=admin_headers)

    assert response.status_code == 200
    assert db_session.query(Product).count() == 0
    assert db_session.query(ProductVariant).count() == 0
    assert db_session.query(CartItem).count() == 0
    assert db_session.query(Wishlist).count() == 0

    item = db_session.query(OrderItem).one()
    assert item.product_id is None
    assert item.variant_id is None
    assert item.product_name == "Camisa Blanca"


def test_upload_and_delete_image(client: TestClient, db_session: Session, admin_headers: dict):
    product = _create_product(db_session)

    first = client.post(
        f"/api/products/{product.id}/images",
        files={"image": ("frente.png", _png_bytes(), "image/png")},
        headers=admin_headers,
    )
    assert first.status_code == 201
    first_data = first.json()["data"]
    assert first_data["sort_order"] == 0
    assert first_data["image_url"] != "frente.png"
    stored = os.path.join(settings.PRODUCT_UPLOAD_DIR, first_data["image_url"])
    assert os.path.exists(stored)

    second = client.post(
        f"/api/products/{product.id}/images",
        files={"image": ("espalda.png", _png_bytes(), "image/png")},
        headers=admin_headers,
    )
    assert second.json()["data"]["sort_order"] == 1

    deleted = client.delete(f"/api/products/{product.id}/images/{first_data['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert not os.path.exists(stored)
    assert db_session.query(ProductImage).count() == 1

    missing = client.delete(f"/api/products/{product.id}/images/9999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Imagen no encontrada"


def test_upload_rejects_non_images(client: TestClient, db_session: Session, admin_headers: dict):
    product = _create_product(db_session)

    response = client.post(
        f"/api/products/{product.id}/images",
        files={"image": ("virus.png", b"definitely not a png", "image/png")},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert db_session.query(ProductImage).count() == 0


def test_variant_crud(client: TestClient, db_session: Session, admin_headers: dict):
    product = _create_product(db_session)

    negative = client.post(
        "/api/variants/",
        json={"product_id": product.id, "size": "8", "stock": -1},
        headers=admin_headers,
    )
    assert negative.status_code == 400
    assert negative.json()["message"] == "El stock no puede ser negativo"

    created = client.post(
        "/api/variants/",
        json={"product_id": product.id, "size": "8", "color_name": "Blanco", "color_hex": "#FFFFFF", "stock": 6},
        headers=admin_headers,
    )
    assert created.status_code == 201
    variant_id = created.json()["data"]["id"]

    listed = client.get(f"/api/variants/{product.id}")
    assert [v["id"] for v in listed.json()["data"]] == [variant_id]

    updated = client.put(f"/api/variants/{variant_id}", json={"stock": 2}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["stock"] == 2
    assert updated.json()["data"]["size"] == "8"

    assert client.delete(f"/api/variants/{variant_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/variants/{variant_id}", headers=admin_headers).status_code == 404
