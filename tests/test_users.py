from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.order import Order, OrderItem, OrderStatus
from app.models.user import User, UserRole
from app.services.user_service import dashboard_stats


def _add_order(db: Session, user: User, total: float, status=OrderStatus.PENDING, created_at=None) -> Order:
    order = Order(
        user_id=user.id,
        subtotal=total,
        total=total,
        status=status,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def test_users_endpoints_require_admin(client: TestClient, customer_headers: dict):
    assert client.get("/api/users/", headers=customer_headers).status_code == 403
    assert client.get("/api/users/stats/dashboard", headers=customer_headers).status_code == 403


def test_list_users_with_order_totals(client: TestClient, db_session: Session, customer: User, admin_headers: dict):
    _add_order(db_session, customer, 150.0)
    _add_order(db_session, customer, 250.5)

    response = client.get("/api/users/", headers=admin_headers)

    assert response.status_code == 200
    rows = {row["email"]: row for row in response.json()["data"]}
    assert rows["cliente@fyttsa.mx"]["total_orders"] == 2
    assert rows["cliente@fyttsa.mx"]["total_spent"] == 400.5
    assert rows["admin@fyttsa.mx"]["total_orders"] == 0
    assert "password_hash" not in rows["cliente@fyttsa.mx"]


def test_user_detail(client: TestClient, db_session: Session, customer: User, admin_headers: dict):
    _add_order(db_session, customer, 99.0)

    response = client.get(f"/api/users/{customer.id}", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == customer.email
    assert len(data["orders"]) == 1
    assert data["addresses"] == []

    missing = client.get("/api/users/9999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Usuario no encontrado"


def test_change_role(client: TestClient, db_session: Session, customer: User, admin_headers: dict):
    invalid = client.patch(f"/api/users/{customer.id}/role", json={"role": "superuser"}, headers=admin_headers)
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Rol inválido"

    response = client.patch(f"/api/users/{customer.id}/role", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "admin"

    db_session.refresh(customer)
    assert customer.role == UserRole.ADMIN


def test_dashboard_stats(db_session: Session, customer: User, admin: User):
    now = datetime(2026, 3, 18, 15, 0)
    _add_order(db_session, customer, 100.0, created_at=datetime(2026, 3, 17, 10, 0))
    _add_order(db_session, customer, 50.0, status=OrderStatus.SHIPPED, created_at=datetime(2026, 3, 17, 12, 0))
    old = _add_order(db_session, customer, 300.0, status=OrderStatus.COMPLETED, created_at=datetime(2026, 1, 5, 9, 0))
    db_session.add(
        OrderItem(order_id=old.id, product_id=7, product_name="Bata", quantity=3, price=100.0)
    )
    db_session.commit()

    stats = dashboard_stats(db_session, now=now)

    assert stats["totalUsers"] == 1
    assert stats["salesByDay"] == [{"date": "2026-03-17", "orders": 2, "revenue": 150.0}]
    assert [(m["month"], m["month_name"], m["orders"]) for m in stats["salesByMonth"]] == [
        ("2026-01", "Ene", 1),
        ("2026-03", "Mar", 2),
    ]
    assert stats["topProducts"] == [{"id": 7, "name": "Bata", "total_sold": 3, "total_revenue": 300.0}]
    assert stats["recentOrders"][0]["customer_email"] == customer.email
    assert {row["status"]: row["count"] for row in stats["ordersByStatus"]} == {
        "pending": 1,
        "shipped": 1,
        "completed": 1,
    }


def test_dashboard_endpoint(client: TestClient, admin_headers: dict):
    response = client.get("/api/users/stats/dashboard", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["salesByDay"] == []
