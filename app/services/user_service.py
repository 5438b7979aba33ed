from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import UserNotFound
from app.models.address import Address
from app.models.order import Order, OrderItem
from app.models.user import User, UserRole

logger = structlog.get_logger()

MONTH_NAMES = ["Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"]


def list_users(db: Session) -> List[dict]:
    """All users with their order count and amount spent, newest first."""
    rows = (
        db.query(
            User,
            func.count(Order.id).label("total_orders"),
            func.coalesce(func.sum(Order.total), 0).label("total_spent"),
        )
        .outerjoin(Order, Order.user_id == User.id)
        .group_by(User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "is_active": user.is_active,
            "created_at": user.created_at,
            "last_login": user.last_login,
            "total_orders": int(total_orders or 0),
            "total_spent": float(total_spent or 0),
        }
        for user, total_orders, total_spent in rows
    ]


def get_user_detail(db: Session, user_id: int) -> dict:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound()

    orders = (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    addresses = db.query(Address).filter(Address.user_id == user_id).order_by(Address.id).all()
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role.value,
        "created_at": user.created_at,
        "orders": [
            {
                "id": o.id,
                "total": o.total,
                "status": o.status.value,
                "payment_method": o.payment_method,
                "created_at": o.created_at,
            }
            for o in orders
        ],
        "addresses": [
            {
                "id": a.id,
                "label": a.label,
                "street": a.street,
                "city": a.city,
                "state": a.state,
                "postal_code": a.postal_code,
                "is_default": a.is_default,
            }
            for a in addresses
        ],
    }


def _month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def dashboard_stats(db: Session, now: Optional[datetime] = None) -> dict:
    """Figures for the admin dashboard.

    Aggregation by day and month is done in Python so the same code works
    on every database backend.
    """
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today.replace(day=1)

    total_users = db.query(func.count(User.id)).filter(User.role == UserRole.USER).scalar()
    new_users = (
        db.query(func.count(User.id))
        .filter(User.role == UserRole.USER, User.created_at >= month_start)
        .scalar()
    )

    week_start = today - timedelta(days=7)
    by_day = defaultdict(lambda: {"orders": 0, "revenue": 0.0})
    for created_at, total in (
        db.query(Order.created_at, Order.total).filter(Order.created_at >= week_start).all()
    ):
        bucket = by_day[created_at.date().isoformat()]
        bucket["orders"] += 1
        bucket["revenue"] += float(total or 0)

    six_months_start = month_start
    for _ in range(5):
        six_months_start = (six_months_start - timedelta(days=1)).replace(day=1)
    by_month = defaultdict(lambda: {"orders": 0, "revenue": 0.0})
    for created_at, total in (
        db.query(Order.created_at, Order.total).filter(Order.created_at >= six_months_start).all()
    ):
        bucket = by_month[_month_key(created_at)]
        bucket["orders"] += 1
        bucket["revenue"] += float(total or 0)

    top_products = (
        db.query(
            OrderItem.product_id,
            OrderItem.product_name,
            func.sum(OrderItem.quantity).label("total_sold"),
            func.sum(OrderItem.quantity * OrderItem.price).label("total_revenue"),
        )
        .filter(OrderItem.product_id.isnot(None))
        .group_by(OrderItem.product_id, OrderItem.product_name)
        .order_by(func.sum(OrderItem.quantity).desc())
        .limit(5)
        .all()
    )

    recent_orders = (
        db.query(Order, User)
        .join(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(5)
        .all()
    )

    by_status = (
        db.query(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    )

    return {
        "totalUsers": int(total_users or 0),
        "newUsersThisMonth": int(new_users or 0),
        "salesByDay": [
            {"date": day, "orders": values["orders"], "revenue": round(values["revenue"], 2)}
            for day, values in sorted(by_day.items())
        ],
        "salesByMonth": [
            {
                "month": month,
                "month_name": MONTH_NAMES[int(month[5:]) - 1],
                "orders": values["orders"],
                "revenue": round(values["revenue"], 2),
            }
            for month, values in sorted(by_month.items())
        ],
        "topProducts": [
            {
                "id": row.product_id,
                "name": row.product_name,
                "total_sold": int(row.total_sold or 0),
                "total_revenue": float(row.total_revenue or 0),
            }
            for row in top_products
        ],
        "recentOrders": [
            {
                "id": order.id,
                "total": order.total,
                "status": order.status.value,
                "created_at": order.created_at,
                "customer_name": user.name,
                "customer_email": user.email,
            }
            for order, user in recent_orders
        ],
        "ordersByStatus": [
            {"status": getattr(order_status, "value", order_status), "count": count}
            for order_status, count in by_status
        ],
    }


def change_role(db: Session, user_id: int, role: Optional[str], admin_id: int) -> User:
    if role not in (UserRole.USER.value, UserRole.ADMIN.value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Rol inválido")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound()

    user.role = UserRole(role)
    db.commit()
    db.refresh(user)
    logger.info("user_role_changed", user_id=user.id, role=role, admin_user_id=admin_id)
    return user
