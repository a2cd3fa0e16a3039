"""Centralized application configuration via Pydantic Settings.

Loads all env vars into a typed Settings instance. Every tunable of the
service (store backend, timeouts, rule table, collaborator credentials)
is read here and nowhere else.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # CORS
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated allowed origins for CORS ('*' allows any)",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Python log level")
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production",
    )

    # App
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    # Transaction store
    STORE_BACKEND: str = Field(
        default="memory",
        description="Backing store for transactions: memory or redis",
    )
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    REDIS_KEY_PREFIX: str = Field(default="ledger", description="Prefix for all Redis keys")
    PERSISTENCE_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        description="Upper bound for a single backing-store call",
    )
    BATCH_SIZE: int = Field(default=10, description="Chunk size for batch saves")

    # Categorization
    CATEGORY_RULES_PATH: str = Field(
        default="",
        description="Path to a category rules JSON file (empty = bundled rules)",
    )
    CATEGORIZE_CSV_UPLOADS: bool = Field(
        default=False,
        description="Run the categorization engine on CSV uploads",
    )

    # Uploads
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, description="Max upload size")

    # Bank linking (Plaid)
    PLAID_CLIENT_ID: str = Field(default="", description="Plaid client id")
    PLAID_SECRET: str = Field(default="", description="Plaid secret")
    PLAID_ENV: str = Field(default="sandbox", description="sandbox, development or production")
    PLAID_ACCESS_TOKEN: str = Field(default="", description="Access token of the linked item")

    # Receipt OCR (Textract)
    AWS_REGION: str = Field(default="us-east-1", description="AWS region for Textract")

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def bank_link_configured(self) -> bool:
        return bool(self.PLAID_CLIENT_ID and self.PLAID_SECRET and self.PLAID_ACCESS_TOKEN)

    model_config = {"env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Factory for Settings — allows test override."""
    return Settings()


settings = get_settings()
