"""Ledger Ingestion API: FastAPI entry point.

Routes:
    POST   /upload/csv             bank statement upload
    POST   /upload/receipt         receipt image upload (OCR)
    POST   /upload/email           e-mail receipt
    GET    /transactions           stored transactions, newest first
    POST   /transactions/sync      pull new activity from the linked bank
    DELETE /uploads/{upload_id}    remove everything a CSV upload created
    GET    /health, /health/ready  probes
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from apps.api.core.config import Settings, settings
from apps.api.core.cors import register_cors
from apps.api.core.errors import register_error_handlers
from apps.api.core.logging import setup_logging
from apps.api.domains.email.router import router as email_router
from apps.api.domains.ingestion.router import router as ingestion_router
from apps.api.domains.receipts.router import router as receipts_router
from apps.api.domains.transactions.router import router as transactions_router
from apps.api.routers import health
from packages.categorization.engine import CategorizationEngine
from packages.transaction_store import RedisBackend, TransactionStore

logger = structlog.get_logger()


def build_store(app_settings: Settings) -> TransactionStore:
    """Build the transaction store for the configured backend."""
    backend_name = app_settings.STORE_BACKEND.lower()
    backend = None
    if backend_name == "redis":
        backend = RedisBackend.from_url(
            app_settings.REDIS_URL,
            prefix=app_settings.REDIS_KEY_PREFIX,
            timeout=app_settings.PERSISTENCE_TIMEOUT_SECONDS,
        )
    elif backend_name != "memory":
        raise ValueError(f"Unknown STORE_BACKEND: {app_settings.STORE_BACKEND}")

    return TransactionStore(
        backend,
        timeout=app_settings.PERSISTENCE_TIMEOUT_SECONDS,
        batch_size=app_settings.BATCH_SIZE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup/shutdown hooks."""
    app_settings: Settings = app.state.settings
    setup_logging(log_level=app_settings.log_level, json_output=app_settings.is_production)
    logger.info(
        "app_starting",
        version=app_settings.APP_VERSION,
        store_backend=app_settings.STORE_BACKEND,
    )

    loaded = await app.state.store.open()
    logger.info("store_ready", transactions=loaded)
    yield

    app.state.store.close()
    logger.info("app_stopping")


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[TransactionStore] = None,
    engine: Optional[CategorizationEngine] = None,
) -> FastAPI:
    app_settings = app_settings or settings

    app = FastAPI(
        title="Ledger Ingestion API",
        description="Normalizes bank statements, receipts and bank-sync data into one ledger.",
        version=app_settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.store = store or build_store(app_settings)
    app.state.engine = engine or CategorizationEngine.from_file(
        app_settings.CATEGORY_RULES_PATH or None
    )

    register_error_handlers(app, expose_errors=not app_settings.is_production)
    register_cors(app, app_settings.allowed_origins)

    app.include_router(ingestion_router)
    app.include_router(transactions_router)
    app.include_router(receipts_router)
    app.include_router(email_router)
    app.include_router(health.router)
    return app


app = create_app()
