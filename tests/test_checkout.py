from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.address import Address
from app.models.cart import Cart, CartItem
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductVariant
from app.models.user import User
from conftest import auth_headers, create_user


def _create_variant(db: Session, stock: int, price: float, size: str = "12") -> ProductVariant:
    product = Product(name=f"Falda Escolar {size}", price=price)
    db.add(product)
    db.flush()

    variant = ProductVariant(
        product_id=product.id,
        color_name="Azul Marino",
        color_hex="#1F2A44",
        size=size,
        stock=stock,
    )
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _fill_cart(db: Session, user: User, *lines) -> Cart:
    cart = db.query(Cart).filter(Cart.user_id == user.id).first()
    if not cart:
        cart = Cart(user_id=user.id)
        db.add(cart)
        db.flush()
    for variant, quantity in lines:
        db.add(
            CartItem(
                cart_id=cart.id,
                product_id=variant.product_id,
                variant_id=variant.id,
                quantity=quantity,
            )
        )
    db.commit()
    return cart


def _create_address(db: Session, user: User) -> Address:
    address = Address(
        user_id=user.id,
        full_name="María López",
        phone="5512345678",
        street="Av. Juárez",
        exterior_number="120",
        neighborhood="Centro",
        city="Puebla",
        state="Puebla",
        postal_code="72000",
        is_default=True,
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


def test_checkout_without_cart(client: TestClient, customer_headers: dict):
    response = client.post("/api/checkout/", json={}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "No tienes un carrito"


def test_checkout_with_empty_cart(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    _fill_cart(db_session, customer)

    response = client.post("/api/checkout/", json={}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "El carrito está vacío"


def test_checkout_creates_order_and_decrements_stock(
    client: TestClient, db_session: Session, customer: User, customer_headers: dict
):
    skirt = _create_variant(db_session, stock=5, price=150.0, size="10")
    shirt = _create_variant(db_session, stock=2, price=100.0, size="8")
    _fill_cart(db_session, customer, (skirt, 2), (shirt, 1))
    address = _create_address(db_session, customer)

    response = client.post(
        "/api/checkout/",
        json={
            "address_id": address.id,
            "payment_method": "transferencia",
            "notes": "<b>Entregar</b> por la tarde",
        },
        headers=customer_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["subtotal"] == 400.0
    assert data["shipping_cost"] == 99.0
    assert data["total"] == 499.0
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["payment_method"] == "transferencia"
    assert data["notes"] == "Entregar por la tarde"
    assert data["shipping_address_snapshot"]["city"] == "Puebla"
    assert {item["size"] for item in data["items"]} == {"10", "8"}

    db_session.expire_all()
    assert db_session.get(ProductVariant, skirt.id).stock == 3
    assert db_session.get(ProductVariant, shirt.id).stock == 1
    assert db_session.query(CartItem).count() == 0


def test_checkout_queues_confirmation_email(
    client: TestClient, db_session: Session, customer: User, customer_headers: dict, monkeypatch
):
    sent = []
    monkeypatch.setattr(
        "app.services.checkout_service.queue_email",
        lambda to, subject, html, *args, **kwargs: sent.append((to, subject)) or True,
    )
    variant = _create_variant(db_session, stock=3, price=120.0)
    _fill_cart(db_session, customer, (variant, 1))

    response = client.post("/api/checkout/", json={}, headers=customer_headers)

    assert response.status_code == 201
    order_id = response.json()["data"]["id"]
    assert sent == [("cliente@fyttsa.mx", f"¡Pedido #{order_id} confirmado! - FYTTSA")]


def test_free_shipping_from_threshold(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    variant = _create_variant(db_session, stock=5, price=250.0)
    _fill_cart(db_session, customer, (variant, 2))

    response = client.post("/api/checkout/", json={}, headers=customer_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["subtotal"] == 500.0
    assert data["shipping_cost"] == 0.0
    assert data["total"] == 500.0
    assert data["shipping_address_snapshot"] is None


def test_insufficient_stock_rolls_back_everything(
    client: TestClient, db_session: Session, customer: User, customer_headers: dict
):
    plenty = _create_variant(db_session, stock=10, price=100.0, size="6")
    scarce = _create_variant(db_session, stock=1, price=100.0, size="14")
    _fill_cart(db_session, customer, (plenty, 2), (scarce, 2))

    response = client.post("/api/checkout/", json={}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Stock insuficiente para Falda Escolar 14 (14)"

    db_session.expire_all()
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    assert db_session.get(ProductVariant, plenty.id).stock == 10
    assert db_session.get(ProductVariant, scarce.id).stock == 1
    assert db_session.query(CartItem).count() == 2


def test_checkout_rejects_foreign_address(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    variant = _create_variant(db_session, stock=5, price=100.0)
    _fill_cart(db_session, customer, (variant, 1))
    other = create_user(db_session, "vecino@fyttsa.mx")
    foreign = _create_address(db_session, other)

    response = client.post("/api/checkout/", json={"address_id": foreign.id}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Dirección no encontrada"
    db_session.expire_all()
    assert db_session.get(ProductVariant, variant.id).stock == 5


def test_cart_checkout_shortcut(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    variant = _create_variant(db_session, stock=3, price=120.0)
    _fill_cart(db_session, customer, (variant, 1))

    response = client.post("/api/cart/checkout", headers=customer_headers)

    assert response.status_code == 201
    assert response.json()["data"]["total"] == 219.0


def test_payment_intent_and_confirmation(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    variant = _create_variant(db_session, stock=3, price=120.0)
    _fill_cart(db_session, customer, (variant, 1))
    order_id = client.post("/api/checkout/", json={}, headers=customer_headers).json()["data"]["id"]

    intent = client.post(
        "/api/checkout/create-payment-intent",
        json={"order_id": order_id},
        headers=customer_headers,
    )
    assert intent.status_code == 200
    assert intent.json()["data"] == {"clientSecret": None, "order_id": order_id, "amount": 219.0}

    stranger = auth_headers(create_user(db_session, "extrano@fyttsa.mx"))
    foreign = client.post(
        "/api/checkout/confirm-payment",
        json={"order_id": order_id},
        headers=stranger,
    )
    assert foreign.status_code == 404

    confirmed = client.post(
        "/api/checkout/confirm-payment",
        json={"order_id": order_id, "payment_method": "tarjeta"},
        headers=customer_headers,
    )
    assert confirmed.status_code == 200
    data = confirmed.json()["data"]
    assert data["payment_status"] == "paid"
    assert data["status"] == "processing"
    assert data["payment_method"] == "tarjeta"
