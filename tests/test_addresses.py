from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.address import Address
from app.models.order import Order
from app.models.user import User
from conftest import auth_headers, create_user


def _payload(**overrides) -> dict:
    data = {
        "label": "Casa",
        "full_name": "María López",
        "phone": "5512345678",
        "street": "Av. Juárez",
        "exterior_number": "120",
        "neighborhood": "Centro",
        "city": "Puebla",
        "state": "Puebla",
        "postal_code": "72000",
    }
    data.update(overrides)
    return data


def _create(client: TestClient, headers: dict, **overrides) -> dict:
    response = client.post("/api/addresses/", json=_payload(**overrides), headers=headers)
    assert response.status_code == 201
    return response.json()["data"]


def test_first_address_becomes_default(client: TestClient, customer_headers: dict):
    first = _create(client, customer_headers)
    second = _create(client, customer_headers, label="Trabajo")

    assert first["is_default"] is True
    assert first["country"] == "México"
    assert second["is_default"] is False


def test_missing_required_fields(client: TestClient, customer_headers: dict):
    response = client.post("/api/addresses/", json=_payload(street="  "), headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Campos requeridos incompletos"


def test_list_puts_default_first(client: TestClient, customer_headers: dict):
    _create(client, customer_headers, label="Casa")
    work = _create(client, customer_headers, label="Trabajo")

    client.put(f"/api/addresses/{work['id']}/default", headers=customer_headers)

    listed = client.get("/api/addresses/", headers=customer_headers).json()["data"]
    assert [a["label"] for a in listed] == ["Trabajo", "Casa"]
    assert [a["is_default"] for a in listed] == [True, False]


def test_new_default_unsets_previous(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    _create(client, customer_headers)
    _create(client, customer_headers, label="Escuela", is_default=True)

    defaults = db_session.query(Address).filter(Address.user_id == customer.id, Address.is_default.is_(True)).all()
    assert [a.label for a in defaults] == ["Escuela"]


def test_update_address(client: TestClient, customer_headers: dict):
    address = _create(client, customer_headers)

    response = client.put(
        f"/api/addresses/{address['id']}",
        json={"city": "Cholula", "interior_number": "B"},
        headers=customer_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["city"] == "Cholula"
    assert data["interior_number"] == "B"
    assert data["street"] == "Av. Juárez"


def test_addresses_are_private(client: TestClient, db_session: Session, customer_headers: dict):
    address = _create(client, customer_headers)
    stranger = auth_headers(create_user(db_session, "vecina@fyttsa.mx"))

    assert client.get(f"/api/addresses/{address['id']}", headers=stranger).status_code == 404
    assert client.put(f"/api/addresses/{address['id']}", json={"city": "X"}, headers=stranger).status_code == 404
    assert client.delete(f"/api/addresses/{address['id']}", headers=stranger).status_code == 404


def test_delete_default_promotes_newest(client: TestClient, db_session: Session, customer: User, customer_headers: dict):
    home = _create(client, customer_headers, label="Casa")
    _create(client, customer_headers, label="Trabajo")
    newest = _create(client, customer_headers, label="Abuela")

    order = Order(user_id=customer.id, subtotal=100.0, total=199.0, shipping_address_id=home["id"])
    db_session.add(order)
    db_session.commit()

    response = client.delete(f"/api/addresses/{home['id']}", headers=customer_headers)
    assert response.status_code == 200

    db_session.expire_all()
    assert db_session.get(Address, newest["id"]).is_default is True
    assert db_session.get(Order, order.id).shipping_address_id is None
