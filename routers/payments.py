# routers/payments.py
"""
Payments API.

POST /api/payments/invoice: request payment for an order (idempotent for 10 minutes).
POST /api/payments/web3/verify: verify an on-chain transfer and settle the invoice.
POST /api/payments/test/web3-receipt: same policy against a supplied receipt (non-production).
POST /api/payments/webhook: off-chain provider confirmation, authenticated by shared secret.
GET  /api/payments/{payment_id}: read one payment.

Role-based access:
- Staff (any role other than customer): all orders
- Customer: own orders only
"""
import hmac
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_session
from dependencies import get_accessible_order, get_current_user, get_payment_service
from logging_config import get_logger
from models import User
from schemas.payment import (
     InvoiceCreateRequest,
     InvoiceCreateResponse,
     PaymentEnvelope,
     PaymentResponse,
     PaymentWebhookEvent,
     ReceiptVerifyResponse,
     Web3ReceiptRequest,
     Web3VerifyRequest,
     WebhookAck,
)
from services.payment_service import PaymentService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
     "/invoice",
     response_model=InvoiceCreateResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create payment invoice",
)
def create_invoice(
     body: InvoiceCreateRequest,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
     service: PaymentService = Depends(get_payment_service),
):
     get_accessible_order(db, user, body.order_id)
     payment, reused = service.create_invoice(
          db,
          order_id=body.order_id,
          amount=body.amount,
          currency=body.currency,
          provider=body.provider,
          method=body.method,
          purpose=body.purpose,
          description=body.description,
          actor_id=user.id,
     )
     return {"payment": payment, "reused": reused}


@router.post(
     "/web3/verify",
     response_model=PaymentEnvelope,
     summary="Verify on-chain payment",
)
async def verify_web3_payment(
     body: Web3VerifyRequest,
     background: BackgroundTasks,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
     service: PaymentService = Depends(get_payment_service),
):
     """
     Wait for the transaction's confirmations, check the transfer against the
     invoice and mark it COMPLETED or FAILED.

     Resubmitting for an already completed invoice returns it unchanged.
     Database work runs in the threadpool; only the chain calls run on the loop.
     """
     await run_in_threadpool(get_accessible_order, db, user, body.order_id)
     payment = await service.verify_and_complete_payment(
          db,
          order_id=body.order_id,
          payment_id=body.payment_id,
          tx_hash=body.tx_hash,
          background=background,
     )
     return {"payment": payment}


@router.post(
     "/test/web3-receipt",
     response_model=ReceiptVerifyResponse,
     summary="Verify payment from a supplied receipt (non-production)",
)
def verify_web3_receipt(
     body: Web3ReceiptRequest,
     background: BackgroundTasks,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
     service: PaymentService = Depends(get_payment_service),
):
     get_accessible_order(db, user, body.order_id)
     payment = service.verify_and_complete_payment_from_receipt(
          db,
          order_id=body.order_id,
          payment_id=body.payment_id,
          tx_hash=body.tx_hash,
          receipt=body.receipt,
          background=background,
     )
     return {"ok": True, "payment": payment}


@router.post("/webhook", response_model=WebhookAck, summary="Provider payment callback")
def payment_webhook(
     event: PaymentWebhookEvent,
     background: BackgroundTasks,
     x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
     db: Session = Depends(get_session),
     service: PaymentService = Depends(get_payment_service),
):
     expected = service.settings.webhook_secret
     if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
          logger.warning("webhook_rejected", payment_id=event.payment_id)
          raise HTTPException(status_code=401, detail="Invalid webhook secret")

     if event.status.lower() != "paid":
          return {"ok": True, "message": f"Ignored status '{event.status}'"}

     payment = service.on_paid(
          db,
          order_id=event.order_id,
          payment_id=event.payment_id,
          provider_ref=event.provider_ref,
          background=background,
     )
     return {"ok": True, "message": "Payment completed", "payment": payment}


@router.get("/{payment_id}", response_model=PaymentResponse, summary="Get payment")
def get_payment(
     payment_id: int,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
     service: PaymentService = Depends(get_payment_service),
):
     payment = service.get_payment(db, payment_id)
     get_accessible_order(db, user, payment.order_id)
     return payment
