"""
Payment provider webhook.

The signature is checked against the raw body before anything is parsed;
a bad signature never reaches the reconciler.
"""
import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from marketplace.api.dependencies import get_db
from marketplace.lib.errors import UnauthorizedException
from marketplace.lib.logging import get_logger
from marketplace.services.payment_reconciler import OUTCOME_MALFORMED, PaymentReconciler
from marketplace.services.paystack import SIGNATURE_HEADER, verify_signature

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/paystack")
async def paystack_webhook(request: Request, db: Session = Depends(get_db)) -> dict:
    """
    Receive a Paystack event.

    Verified events are always acknowledged with 200, including unknown
    references and malformed bodies, so the provider stops retrying.
    """
    raw_body = await request.body()
    if not verify_signature(raw_body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Rejected payment webhook with invalid signature")
        raise UnauthorizedException("Invalid webhook signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        logger.warning("Payment webhook body is not valid JSON")
        return {"received": True, "outcome": OUTCOME_MALFORMED}

    outcome = await run_in_threadpool(PaymentReconciler(db).handle_event, payload)
    return {"received": True, "outcome": outcome}
