from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.product import Product, ProductVariant


def _seed(db: Session) -> dict:
    products = {
        "falda": Product(name="Falda Tableada", price=280.0),
        "camisa": Product(name="Camisa Polo", price=190.0),
        "pants": Product(name="Pants Deportivo", price=350.0),
    }
    db.add_all(products.values())
    db.flush()
    db.add_all(
        [
            ProductVariant(product_id=products["falda"].id, size="10", color_hex="#1F2A44", stock=3),
            ProductVariant(product_id=products["falda"].id, size="12", color_hex="#1F2A44", stock=3),
            ProductVariant(product_id=products["camisa"].id, size="10", color_hex="#FFFFFF", stock=3),
            ProductVariant(product_id=products["pants"].id, size="M", color_hex="#808080", stock=3),
        ]
    )
    db.add(Category(name="Faldas y Jumpers", slug="faldas-y-jumpers"))
    db.commit()
    return products


def test_search_by_text(client: TestClient, db_session: Session):
    _seed(db_session)

    response = client.get("/api/search/?q=falda")

    data = response.json()["data"]
    assert data["total"] == 1
    assert data["products"][0]["name"] == "Falda Tableada"


def test_search_by_size_returns_each_product_once(client: TestClient, db_session: Session):
    _seed(db_session)

    response = client.get("/api/search/?size=10&sort=price_asc")

    data = response.json()["data"]
    assert [p["name"] for p in data["products"]] == ["Camisa Polo", "Falda Tableada"]
    assert data["total"] == 2


def test_search_by_color_and_price_range(client: TestClient, db_session: Session):
    _seed(db_session)

    by_color = client.get("/api/search/", params={"color": "#1F2A44"}).json()["data"]
    assert [p["name"] for p in by_color["products"]] == ["Falda Tableada"]

    in_range = client.get("/api/search/?minPrice=200&maxPrice=300").json()["data"]
    assert [p["name"] for p in in_range["products"]] == ["Falda Tableada"]

    descending = client.get("/api/search/?sort=price_desc").json()["data"]
    assert [p["price"] for p in descending["products"]] == [350.0, 280.0, 190.0]


def test_search_rejects_unknown_sort(client: TestClient):
    response = client.get("/api/search/?sort=random")

    assert response.status_code == 422


def test_autocomplete(client: TestClient, db_session: Session):
    _seed(db_session)

    data = client.get("/api/search/autocomplete?q=fal").json()["data"]

    assert [p["name"] for p in data["products"]] == ["Falda Tableada"]
    assert [c["slug"] for c in data["categories"]] == ["faldas-y-jumpers"]
    assert data["suggestions"] == []

    sizes = client.get("/api/search/autocomplete?q=1").json()["data"]
    assert sizes["suggestions"] == ["10", "12"]

    empty = client.get("/api/search/autocomplete?q=").json()["data"]
    assert empty == {"products": [], "categories": [], "suggestions": []}
