from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.product import Product


def _create_product(db: Session, name: str = "Moño Escolar") -> Product:
    product = Product(name=name, price=45.0)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def test_add_list_check_and_remove(client: TestClient, db_session: Session, customer_headers: dict):
    product = _create_product(db_session)

    added = client.post("/api/wishlist/", json={"product_id": product.id}, headers=customer_headers)
    assert added.status_code == 201
    assert added.json()["data"]["product"]["name"] == "Moño Escolar"

    listed = client.get("/api/wishlist/", headers=customer_headers)
    assert [item["product_id"] for item in listed.json()["data"]] == [product.id]

    check = client.get(f"/api/wishlist/check/{product.id}", headers=customer_headers)
    assert check.json()["data"] == {"in_wishlist": True}

    removed = client.delete(f"/api/wishlist/{product.id}", headers=customer_headers)
    assert removed.status_code == 200

    check = client.get(f"/api/wishlist/check/{product.id}", headers=customer_headers)
    assert check.json()["data"] == {"in_wishlist": False}


def test_duplicate_is_rejected(client: TestClient, db_session: Session, customer_headers: dict):
    product = _create_product(db_session)
    client.post("/api/wishlist/", json={"product_id": product.id}, headers=customer_headers)

    response = client.post("/api/wishlist/", json={"product_id": product.id}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "El producto ya está en favoritos"


def test_missing_and_unknown_product(client: TestClient, customer_headers: dict):
    missing = client.post("/api/wishlist/", json={}, headers=customer_headers)
    assert missing.status_code == 400

    unknown = client.post("/api/wishlist/", json={"product_id": 9999}, headers=customer_headers)
    assert unknown.status_code == 404

    not_listed = client.delete("/api/wishlist/9999", headers=customer_headers)
    assert not_listed.status_code == 404
    assert not_listed.json()["message"] == "Producto no encontrado en favoritos"
