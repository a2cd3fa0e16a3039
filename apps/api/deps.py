"""FastAPI dependencies shared by the domain routers.

The store, the categorization engine and the settings live on
``app.state`` (see ``apps.api.main.create_app``); tests swap them through
``app.dependency_overrides``.
"""

from typing import AsyncIterator

from fastapi import Depends, Request

from apps.api.core.config import Settings
from apps.api.core.errors import ServiceUnavailableError
from apps.api.domains.receipts.service import TextractReceiptAnalyzer
from apps.api.domains.transactions.service import PlaidClient
from packages.categorization.engine import CategorizationEngine
from packages.categorization.processor import TransactionProcessor
from packages.transaction_store import TransactionStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_store(request: Request) -> TransactionStore:
    """The shared store, hydrated before its first use."""
    store = request.app.state.store
    if not store.hydrated:
        await store.open()
    return store


def get_engine(request: Request) -> CategorizationEngine:
    return request.app.state.engine


def get_processor(
    store: TransactionStore = Depends(get_store),
    engine: CategorizationEngine = Depends(get_engine),
    settings: Settings = Depends(get_app_settings),
) -> TransactionProcessor:
    return TransactionProcessor(engine, store=store, batch_size=settings.BATCH_SIZE)


def get_receipt_analyzer(
    request: Request, settings: Settings = Depends(get_app_settings)
) -> TextractReceiptAnalyzer:
    analyzer = getattr(request.app.state, "receipt_analyzer", None)
    if analyzer is None:
        analyzer = TextractReceiptAnalyzer.from_region(settings.AWS_REGION)
        request.app.state.receipt_analyzer = analyzer
    return analyzer


async def get_bank_link_client(
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[PlaidClient]:
    """A Plaid client for the configured item, closed after the request."""
    if not settings.bank_link_configured:
        raise ServiceUnavailableError("Bank linking is not configured")

    client = PlaidClient(
        client_id=settings.PLAID_CLIENT_ID,
        secret=settings.PLAID_SECRET,
        access_token=settings.PLAID_ACCESS_TOKEN,
        environment=settings.PLAID_ENV,
    )
    try:
        yield client
    finally:
        await client.aclose()
