"""Transactions router: stored transactions and bank-link sync."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from apps.api.core.errors import BadRequestError, UpstreamError
from apps.api.deps import get_bank_link_client, get_processor, get_store
from apps.api.domains.transactions.schemas import (
    SyncResponse,
    TransactionListResponse,
    TransactionOut,
)
from apps.api.domains.transactions.service import (
    BankSyncError,
    PlaidClient,
    list_transactions,
    sync_bank_transactions,
)
from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.dates import normalize_date
from packages.transaction_store import TransactionStore

router = APIRouter(prefix="/transactions", tags=["transactions"])
logger = structlog.get_logger()


def _date_param(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    parsed = normalize_date(value)
    if not parsed:
        raise BadRequestError(f"{name} is not a valid date: {value}")
    return parsed


@router.get("", response_model=TransactionListResponse)
async def get_transactions(
    limit: Optional[int] = Query(default=None, ge=1),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    store: TransactionStore = Depends(get_store),
):
    """Stored transactions, newest first, optionally within a date range."""
    transactions = await list_transactions(
        store,
        start_date=_date_param(start_date, "startDate"),
        end_date=_date_param(end_date, "endDate"),
        limit=limit,
    )
    return TransactionListResponse(
        transactions=[TransactionOut.model_validate(txn) for txn in transactions],
        count=len(transactions),
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_transactions(
    store: TransactionStore = Depends(get_store),
    processor: TransactionProcessor = Depends(get_processor),
    client: PlaidClient = Depends(get_bank_link_client),
):
    try:
        result = await sync_bank_transactions(store, client, processor=processor)
    except BankSyncError as e:
        raise UpstreamError(str(e))

    logger.info(
        "bank_sync_completed",
        added=result.added,
        modified=result.modified,
        saved=result.saved,
    )
    return SyncResponse(
        new_transactions=result.added,
        modified_transactions=result.modified,
        saved_transactions=result.saved,
        next_cursor=result.next_cursor,
    )
