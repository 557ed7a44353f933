"""POST /v1/payments/usage, GET /v1/payments and GET /v1/payments/{transaction_id}"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from payment_proxy.api.v1.schemas import (
    PaymentHistoryResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentStatusResponse,
)
from payment_proxy.api.dependencies import (
    get_cache,
    get_current_client,
    get_processor,
    get_request_id,
    get_services,
)
from payment_proxy.domain.models import Transaction
from payment_proxy.infrastructure.cache.redis_cache import RedisCache
from payment_proxy.infrastructure.database.session import get_db
from payment_proxy.infrastructure.database.repositories import TransactionRepository
from payment_proxy.infrastructure.observability.events import EVENTS
from payment_proxy.infrastructure.observability.logging import log_payment
from payment_proxy.services.container import Services
from payment_proxy.services.processor import TransactionProcessor
from payment_proxy.utils.ids import is_valid_transaction_id

router = APIRouter()


@router.post("/payments/usage", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def process_payment(
    request_body: PaymentRequest,
    request: Request,
    client_id: str = Depends(get_current_client),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    processor: TransactionProcessor = Depends(get_processor),
    cache: RedisCache = Depends(get_cache),
):
    """
    Process a payment with integrated risk assessment.

    Flow:
    1. Create PENDING transaction
    2. Fraud rules, risk model, provider routing (never raises)
    3. Persist the decided transaction and cache it for status lookups
    4. Return decision; risk-scoring failures still answer 201
    """
    start_time = time.time()
    request_id = get_request_id(request)

    transaction = Transaction.create(
        amount=request_body.amount,
        currency=request_body.currency,
        source=request_body.source,
        email=request_body.email,
    )
    services.events.publish(
        EVENTS.TRANSACTION_CREATED,
        {
            "source": "PaymentsAPI",
            "transaction_id": transaction.id,
            "amount": transaction.amount,
            "currency": transaction.currency,
        },
    )

    transaction = await processor.process_transaction(transaction)

    try:
        TransactionRepository(db).save(transaction, client_id=client_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Failed to persist transaction: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Payment processing failed")

    await cache.set(
        cache.generate_key("transaction", transaction.id),
        transaction.to_dict(),
        services.settings.transaction_cache_ttl_seconds,
    )

    duration_ms = (time.time() - start_time) * 1000
    log_payment(
        request_id,
        transaction.id,
        transaction.status.value,
        transaction.provider,
        transaction.risk_score,
        duration_ms,
    )

    return PaymentResponse(
        transaction_id=transaction.id,
        provider=transaction.provider,
        status=transaction.status.value,
        risk_score=transaction.risk_score,
        explanation=transaction.explanation,
    )


@router.get("/payments/{transaction_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    transaction_id: str,
    client_id: str = Depends(get_current_client),
    db: Session = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    """Look up a processed transaction in the database, then the cache"""
    if not is_valid_transaction_id(transaction_id):
        raise HTTPException(status_code=422, detail="Invalid transaction ID format")

    transaction = TransactionRepository(db).get_by_id(transaction_id)

    if transaction is None:
        cached = await cache.get(cache.generate_key("transaction", transaction_id))
        if cached:
            try:
                transaction = Transaction.from_dict(cached)
            except (KeyError, ValueError, TypeError) as e:
                logging.warning(f"Unreadable cached transaction {transaction_id}: {e}")

    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return _status_response(transaction)


@router.get("/payments", response_model=PaymentHistoryResponse)
def get_payment_history(
    limit: int = Query(20, ge=1, le=100, description="Maximum number of transactions"),
    client_id: str = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    """
    Retrieve the calling client's most recent transactions.

    Returns:
        Transactions newest first, as stored after processing
    """
    transactions = TransactionRepository(db).list_recent(client_id=client_id, limit=limit)

    return PaymentHistoryResponse(
        client_id=client_id,
        transactions=[_status_response(t) for t in transactions],
    )


def _status_response(transaction: Transaction) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        transaction_id=transaction.id,
        status=transaction.status.value,
        amount=transaction.amount,
        currency=transaction.currency,
        provider=transaction.provider,
        risk_score=transaction.risk_score,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
    )
