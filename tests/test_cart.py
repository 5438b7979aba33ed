from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.cart import Cart, CartItem
from app.models.product import Product, ProductVariant
from app.models.user import User
from conftest import auth_headers, create_user


def _create_product_variant(db: Session, stock: int, price: float = 250.0) -> ProductVariant:
    product = Product(name="Playera Deportiva", price=price)
    db.add(product)
    db.flush()

    variant = ProductVariant(
        product_id=product.id,
        color_name="Blanco",
        color_hex="#FFFFFF",
        size="10",
        stock=stock,
    )
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _add(client: TestClient, headers: dict, variant: ProductVariant, quantity: int):
    return client.post(
        "/api/cart/add",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": quantity},
        headers=headers,
    )


def test_get_cart_creates_empty_cart(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    response = client.get("/api/cart/", headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["data"]["items"] == []
    assert db_session.query(Cart).filter(Cart.user_id == customer.id).count() == 1

    # second read reuses the same cart
    client.get("/api/cart/", headers=customer_headers)
    assert db_session.query(Cart).filter(Cart.user_id == customer.id).count() == 1


def test_cart_requires_authentication(client: TestClient):
    response = client.get("/api/cart/")

    assert response.status_code == 401


def test_add_then_merge_same_variant(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=5)

    first = _add(client, customer_headers, variant, 2)
    assert first.status_code == 200
    assert first.json()["data"] == {"added": True}
    assert first.json()["message"] == "Producto agregado al carrito"

    second = _add(client, customer_headers, variant, 3)
    assert second.status_code == 200
    assert second.json()["data"] == {"updated": True}

    items = client.get("/api/cart/", headers=customer_headers).json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 5
    assert items[0]["name"] == "Playera Deportiva"
    assert items[0]["size"] == "10"
    assert items[0]["stock"] == 5


def test_merge_beyond_stock_is_rejected(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=4)

    assert _add(client, customer_headers, variant, 3).status_code == 200

    response = _add(client, customer_headers, variant, 2)
    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "Stock insuficiente. Solo hay 4 unidades disponibles."
    assert payload["errors"] == [{"availableStock": 4}]

    # the failed merge left the line untouched
    assert db_session.query(CartItem.quantity).scalar() == 3


def test_add_rejects_invalid_quantity(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=4)

    response = _add(client, customer_headers, variant, 0)

    assert response.status_code == 400
    assert response.json()["message"] == "La cantidad debe ser al menos 1"


def test_add_unknown_product_or_variant(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=4)

    missing_product = client.post(
        "/api/cart/add",
        json={"product_id": 9999, "variant_id": variant.id, "quantity": 1},
        headers=customer_headers,
    )
    assert missing_product.status_code == 404
    assert missing_product.json()["message"] == "Producto no encontrado"

    other = _create_product_variant(db_session, stock=4)
    mismatched = client.post(
        "/api/cart/add",
        json={"product_id": variant.product_id, "variant_id": other.id, "quantity": 1},
        headers=customer_headers,
    )
    assert mismatched.status_code == 404
    assert mismatched.json()["message"] == "Variante no encontrada"


def test_update_item_quantity(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=3)
    _add(client, customer_headers, variant, 1)
    item_id = db_session.query(CartItem.id).scalar()

    ok = client.patch(f"/api/cart/item/{item_id}", json={"quantity": 3}, headers=customer_headers)
    assert ok.status_code == 200
    assert ok.json()["data"] == {"id": item_id, "quantity": 3}

    too_many = client.patch(f"/api/cart/item/{item_id}", json={"quantity": 4}, headers=customer_headers)
    assert too_many.status_code == 400
    assert too_many.json()["errors"] == [{"availableStock": 3}]

    zero = client.patch(f"/api/cart/item/{item_id}", json={"quantity": 0}, headers=customer_headers)
    assert zero.status_code == 400


def test_items_of_other_users_are_not_found(client: TestClient, db_session: Session, customer_headers: dict):
    variant = _create_product_variant(db_session, stock=3)
    _add(client, customer_headers, variant, 1)
    item_id = db_session.query(CartItem.id).scalar()

    intruder = create_user(db_session, "otro@fyttsa.mx")
    headers = auth_headers(intruder)

    update = client.patch(f"/api/cart/item/{item_id}", json={"quantity": 2}, headers=headers)
    assert update.status_code == 404
    assert update.json()["message"] == "Item no encontrado"

    delete = client.delete(f"/api/cart/item/{item_id}", headers=headers)
    assert delete.status_code == 404


def test_remove_item_and_clear(client: TestClient, db_session: Session, customer_headers: dict):
    first = _create_product_variant(db_session, stock=3)
    second = _create_product_variant(db_session, stock=3)
    _add(client, customer_headers, first, 1)
    _add(client, customer_headers, second, 2)

    item_id = db_session.query(CartItem.id).filter(CartItem.variant_id == first.id).scalar()
    removed = client.delete(f"/api/cart/item/{item_id}", headers=customer_headers)
    assert removed.status_code == 200
    assert db_session.query(CartItem).count() == 1

    cleared = client.delete("/api/cart/clear", headers=customer_headers)
    assert cleared.status_code == 200
    assert db_session.query(CartItem).count() == 0
