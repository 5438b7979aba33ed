import os

import sentry_sdk
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from slowapi.middleware import SlowAPIMiddleware

from app.api import health
from app.api.v1 import (
    addresses,
    auth,
    cart,
    categories,
    checkout,
    contact,
    order_items,
    orders,
    products,
    search,
    users,
    variants,
    wishlist,
)
from app.core.config import settings
from app.core.error_handlers import register_exception_handlers
from app.core.logging import configure_logging
from app.core.rate_limiter import limiter
from app.middleware.http import register_http_middleware

configure_logging()
logger = structlog.get_logger()

if settings.ENVIRONMENT == "production" and settings.SENTRY_DSN:
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=0.1,
            integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        )
        logger.info("sentry_initialized")
    except Exception as exc:
        # the API keeps serving without error reporting
        logger.warning("sentry_init_failed", error=str(exc))

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=health.API_VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

allowed_origins = list(dict.fromkeys([*settings.BACKEND_CORS_ORIGINS, settings.FRONTEND_URL]))
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin for origin in allowed_origins if origin],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID", "X-Process-Time"],
    max_age=3600,
)

register_http_middleware(app)
register_exception_handlers(app)

# Uploaded images. The category mount must come first or /uploads shadows it.
os.makedirs(settings.CATEGORY_UPLOAD_DIR, exist_ok=True)
os.makedirs(settings.PRODUCT_UPLOAD_DIR, exist_ok=True)
app.mount("/uploads/categories", StaticFiles(directory=settings.CATEGORY_UPLOAD_DIR), name="category-uploads")
app.mount("/uploads", StaticFiles(directory=settings.PRODUCT_UPLOAD_DIR), name="uploads")

API_ROUTERS = [
    (auth.router, "auth", "Authentication"),
    (users.router, "users", "Users"),
    (addresses.router, "addresses", "Addresses"),
    (categories.router, "categories", "Categories"),
    (products.router, "products", "Products"),
    (variants.router, "variants", "Variants"),
    (search.router, "search", "Search"),
    (cart.router, "cart", "Cart"),
    (checkout.router, "checkout", "Checkout"),
    (orders.router, "orders", "Orders"),
    (order_items.router, "order-items", "Order Items"),
    (wishlist.router, "wishlist", "Wishlist"),
    (contact.router, "contact", "Contact"),
]

app.include_router(health.router, tags=["Health"])
for router, path, tag in API_ROUTERS:
    app.include_router(router, prefix=f"{settings.API_PREFIX}/{path}", tags=[tag])
