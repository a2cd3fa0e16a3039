"""E-mail router: receipts forwarded from a mailbox."""

import structlog
from fastapi import APIRouter, Depends

from apps.api.core.errors import ValidationError
from apps.api.deps import get_processor, get_store
from apps.api.domains.email.schemas import EmailReceiptRequest, EmailReceiptResponse
from apps.api.domains.transactions.schemas import TransactionOut
from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.email_receipts import EmailReceiptError, parse_email_receipt
from packages.transaction_store import TransactionStore

router = APIRouter(tags=["email"])
logger = structlog.get_logger()


@router.post("/upload/email", response_model=EmailReceiptResponse)
async def upload_email(
    payload: EmailReceiptRequest,
    store: TransactionStore = Depends(get_store),
    processor: TransactionProcessor = Depends(get_processor),
):
    """Parse an Amazon order or generic receipt e-mail into a spend."""
    try:
        txn = parse_email_receipt(
            payload.message_id,
            payload.source,
            payload.subject,
            payload.body,
            received_at=payload.received_at,
        )
    except EmailReceiptError as e:
        raise ValidationError(str(e))

    await processor.process(txn)
    stored = await store.save_if_new(txn)
    logger.info("email_receipt_processed", message_id=payload.message_id, stored=stored)

    return EmailReceiptResponse(
        message="Email receipt processed successfully" if stored else "Email receipt already recorded",
        transaction=TransactionOut.model_validate(txn),
        duplicate=not stored,
    )
