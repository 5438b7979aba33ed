from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from typing import List


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "FYTTSA Store API"
    API_PREFIX: str = "/api"

    # Database
    DATABASE_URL: str

    # Security
    JWT_SECRET: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 30
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Email
    EMAIL_HOST: str = "smtp.gmail.com"
    EMAIL_PORT: int = 587
    EMAIL_USER: str = ""
    EMAIL_PASSWORD: str = ""
    EMAIL_FROM: str = ""
    EMAIL_FROM_NAME: str = "FYTTSA Uniformes"
    CONTACT_EMAIL: str = ""
    EMAILS_ENABLED: bool = True

    # Checkout
    FREE_SHIPPING_THRESHOLD: float = 500.0
    SHIPPING_COST: float = 99.0

    # File Upload
    MAX_UPLOAD_SIZE: int = 5242880  # 5MB
    ALLOWED_EXTENSIONS: List[str] = ["jpg", "jpeg", "png", "webp"]
    PRODUCT_UPLOAD_DIR: str = "public/uploads"
    CATEGORY_UPLOAD_DIR: str = "uploads/categories"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Frontend
    FRONTEND_URL: str = "http://localhost:5173"

    # Monitoring
    SENTRY_DSN: str = ""

    # Celery & Redis (Task Queue)
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Admin bootstrap
    DEFAULT_ADMIN_EMAIL: str = "admin@fyttsa.com"
    DEFAULT_ADMIN_PASSWORD: str = ""

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.lower().strip()

    @model_validator(mode="after")
    def validate_production_secrets(self):
        if self.ENVIRONMENT == "production":
            normalized_secret = (self.JWT_SECRET or "").strip()
            if len(normalized_secret) < 32 or "change-me" in normalized_secret.lower():
                raise ValueError("JWT_SECRET must be at least 32 chars and not use placeholders in production")
        return self

    @property
    def contact_recipient(self) -> str:
        return self.CONTACT_EMAIL or self.EMAIL_FROM

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()
