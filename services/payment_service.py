# services/payment_service.py
"""
Payment Service - invoice creation and the PENDING -> COMPLETED | FAILED transition.

On-chain verification flow:
1. Validate the transaction hash and load the invoice for the caller's order
2. Short-circuit: a COMPLETED invoice is returned unchanged, a FAILED one is rejected
3. Confirm the RPC node is on the configured network
4. Wait for the receipt with the required confirmations
5. Extract the transfer (ERC-20 log first, native value as fallback)
6. Apply destination and amount policy
7. Commit COMPLETED or FAILED together with a timeline entry

Every status write is a compare-and-swap on ``status = 'PENDING'``. Receipt
rendering and owner notification run after the commit and never affect it.
"""
import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Tuple

from fastapi import BackgroundTasks
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import update
from sqlalchemy.orm import Session

from config import Settings
from errors import (
     AmountMismatch,
     ChainMismatch,
     DestMismatch,
     Forbidden,
     InvalidAmount,
     InvalidTxHash,
     OrderMismatch,
     OrderNotFound,
     PaymentNotFound,
     PaymentNotPending,
     RpcUnavailable,
     ServiceError,
     TxFailed,
     TxTimeout,
)
from logging_config import get_logger
from models import Order, OrderTimeline, Payment, PaymentMethod, PaymentProvider, PaymentPurpose, PaymentStatus
from models.order_timeline import (
     PAYMENT_COMPLETED,
     PAYMENT_COMPLETED_WEB3,
     PAYMENT_FAILED_WEB3,
     PAYMENT_INVOICE_CREATED,
)
from services.amount_policy import check_amount, check_destination
from services.background import schedule
from services.chain_client import RPC_ERRORS
from services.log_decoder import Transfer, find_token_transfer, native_transfer, receipt_status
from utils.hashing import sha256_hex

logger = get_logger(__name__)

TX_HASH_RE = re.compile(r"^0x[A-Fa-f0-9]{64}$")
CENT = Decimal("0.01")
INVOICE_IDEMPOTENCY_WINDOW = timedelta(minutes=10)


def validate_tx_hash(tx_hash: Any) -> str:
     """
     Raises:
          InvalidTxHash: Unless ``tx_hash`` is 0x followed by 64 hex characters
     """
     if not isinstance(tx_hash, str) or not TX_HASH_RE.fullmatch(tx_hash):
          raise InvalidTxHash(tx_hash=tx_hash if isinstance(tx_hash, str) else None)
     return tx_hash.lower()


def normalize_amount(amount: Any) -> Decimal:
     """
     Raises:
          InvalidAmount: If ``amount`` is not a positive number with at least one cent
     """
     try:
          value = Decimal(str(amount))
     except (InvalidOperation, ValueError):
          raise InvalidAmount(amount=str(amount))
     if not value.is_finite():
          raise InvalidAmount(amount=str(amount))
     value = value.quantize(CENT, rounding=ROUND_HALF_UP)
     if value <= 0:
          raise InvalidAmount(amount=str(amount))
     return value


def invoice_fingerprint(order_id: int, amount: Decimal, currency: str, purpose: PaymentPurpose) -> str:
     return sha256_hex(f"{order_id}:{amount}:{currency}:{purpose.value}")


class PaymentService:
     """Service class for payment-related business logic."""

     def __init__(self, settings: Settings, chain_client=None, receipts=None, notifier=None):
          self.settings = settings
          self.chain = settings.chain
          self.chain_client = chain_client
          self.receipts = receipts
          self.notifier = notifier

     # ------------------------------------------------------------------
     # Invoices
     # ------------------------------------------------------------------

     def create_invoice(
          self,
          db: Session,
          order_id: int,
          amount: Any,
          currency: str = "UAH",
          provider: PaymentProvider = PaymentProvider.LIQPAY,
          method: PaymentMethod = PaymentMethod.CARD,
          purpose: PaymentPurpose = PaymentPurpose.REPAIR,
          description: Optional[str] = None,
          actor_id: Optional[int] = None,
          idempotency_window: timedelta = INVOICE_IDEMPOTENCY_WINDOW,
     ) -> Tuple[Payment, bool]:
          """
          Create a PENDING invoice for an order.

          An identical request (same order, amount, currency and purpose) made
          within ``idempotency_window`` returns the still-pending invoice it
          created earlier instead of a new one.

          Returns:
               (payment, reused: bool)

          Raises:
               InvalidAmount: If the amount is not positive
               OrderNotFound: If the order doesn't exist
          """
          value = normalize_amount(amount)
          currency = (currency or "UAH").upper()

          order = db.get(Order, order_id)
          if order is None:
               raise OrderNotFound(order_id=order_id)

          fingerprint = invoice_fingerprint(order.id, value, currency, purpose)
          since = datetime.utcnow() - idempotency_window
          existing = (
               db.query(Payment)
               .filter(
                    Payment.order_id == order.id,
                    Payment.fingerprint == fingerprint,
                    Payment.status == PaymentStatus.PENDING,
                    Payment.created_at >= since,
               )
               .order_by(Payment.id.desc())
               .first()
          )
          if existing is not None:
               logger.info("invoice_reused", order_id=order.id, payment_id=existing.id)
               return existing, True

          try:
               payment = Payment(
                    order_id=order.id,
                    amount=value,
                    currency=currency,
                    provider=provider,
                    method=method,
                    purpose=purpose,
                    description=description,
                    status=PaymentStatus.PENDING,
                    fingerprint=fingerprint,
               )
               db.add(payment)
               db.flush()  # Flush to get the ID for the pay link
               payment.invoice_url = f"{self.settings.public_base_url}/orders/{order.id}/payments/{payment.id}"
               db.add(OrderTimeline(
                    order_id=order.id,
                    event=PAYMENT_INVOICE_CREATED,
                    user_id=actor_id,
                    details={
                         "paymentId": payment.id,
                         "amount": str(value),
                         "currency": currency,
                         "provider": provider.value,
                         "purpose": purpose.value,
                    },
               ))
               db.commit()
          except Exception:
               db.rollback()
               raise
          db.refresh(payment)

          logger.info(
               "invoice_created",
               order_id=order.id,
               payment_id=payment.id,
               amount=str(value),
               currency=currency,
               provider=provider.value,
          )
          return payment, False

     def get_payment(self, db: Session, payment_id: int) -> Payment:
          payment = db.get(Payment, payment_id)
          if payment is None:
               raise PaymentNotFound(payment_id=payment_id)
          return payment

     # ------------------------------------------------------------------
     # Completion paths
     # ------------------------------------------------------------------

     async def verify_and_complete_payment(
          self,
          db: Session,
          order_id: int,
          payment_id: int,
          tx_hash: str,
          background: Optional[BackgroundTasks] = None,
     ) -> Payment:
          """
          Verify an on-chain transfer against a pending invoice and settle it.

          Returns:
               The COMPLETED payment (unchanged if it was already completed)

          Raises:
               InvalidTxHash, PaymentNotFound, OrderMismatch, PaymentNotPending:
                    Before anything touches the network
               RpcUnavailable, ChainMismatch, TxTimeout:
                    Environmental; the invoice stays PENDING
               TxFailed, DestMismatch, AmountMismatch:
                    The invoice is marked FAILED before raising
          """
          tx_hash = validate_tx_hash(tx_hash)
          payment = await run_in_threadpool(self._load_and_release, db, order_id, payment_id)
          if payment.status == PaymentStatus.COMPLETED:
               logger.info("payment_already_completed", payment_id=payment.id, tx_hash=tx_hash)
               return payment

          client = self.chain_client
          if client is None:
               raise RpcUnavailable("No blockchain RPC endpoint is configured")

          chain_id = await self._check_network(client)

          receipt = await client.wait_for_receipt(
               tx_hash,
               confirmations=self.chain.confirmations,
               timeout_ms=self.chain.tx_timeout_ms,
          )
          if receipt is None:
               raise TxTimeout(tx_hash=tx_hash, confirmations=self.chain.confirmations)

          if receipt_status(receipt) != 1:
               return await run_in_threadpool(self._fail, db, payment, tx_hash, TxFailed(tx_hash=tx_hash))

          transfer = self._token_transfer(receipt)
          if transfer is None:
               try:
                    tx = await client.get_transaction(tx_hash)
               except RPC_ERRORS as e:
                    raise RpcUnavailable(error=str(e)) from e
               if tx is not None:
                    transfer = native_transfer(tx)

          return await run_in_threadpool(self._settle, db, payment, tx_hash, transfer, chain_id, background)

     def verify_and_complete_payment_from_receipt(
          self,
          db: Session,
          order_id: int,
          payment_id: int,
          tx_hash: str,
          receipt: Mapping,
          background: Optional[BackgroundTasks] = None,
     ) -> Payment:
          """
          Same policy as verify_and_complete_payment, fed with a receipt supplied
          by the caller. Only the ERC-20 log path applies. Disabled in production.

          Raises:
               Forbidden: When running in production
          """
          if self.settings.is_production:
               raise Forbidden("Receipt-based verification is disabled in production")

          tx_hash = validate_tx_hash(tx_hash)
          payment = self._load_for_order(db, order_id, payment_id)
          if payment.status == PaymentStatus.COMPLETED:
               return payment

          if receipt_status(receipt) != 1:
               return self._fail(db, payment, tx_hash, TxFailed(tx_hash=tx_hash))

          transfer = self._token_transfer(receipt)
          return self._settle(db, payment, tx_hash, transfer, self.chain.chain_id, background)

     def on_paid(
          self,
          db: Session,
          order_id: int,
          payment_id: int,
          provider_ref: Optional[str] = None,
          background: Optional[BackgroundTasks] = None,
     ) -> Payment:
          """Mark an off-chain (card/bank) payment as completed after the provider confirmed it."""
          payment = self._load_for_order(db, order_id, payment_id)
          if payment.status == PaymentStatus.COMPLETED:
               return payment

          values = {"provider_ref": provider_ref} if provider_ref else {}
          details = {
               "paymentId": payment.id,
               "provider": payment.provider.value,
               "providerRef": provider_ref,
               "amount": str(payment.amount),
               "currency": payment.currency,
          }
          return self._complete(db, payment, PAYMENT_COMPLETED, details, background, **values)

     # ------------------------------------------------------------------
     # Internals
     # ------------------------------------------------------------------

     def _load_for_order(self, db: Session, order_id: int, payment_id: int) -> Payment:
          payment = db.get(Payment, payment_id)
          if payment is None:
               raise PaymentNotFound(payment_id=payment_id)
          if payment.order_id != int(order_id):
               raise OrderMismatch(payment_id=payment_id, order_id=order_id)
          if payment.status == PaymentStatus.FAILED:
               raise PaymentNotPending(payment_id=payment_id, status=payment.status.value)
          return payment

     def _load_and_release(self, db: Session, order_id: int, payment_id: int) -> Payment:
          payment = self._load_for_order(db, order_id, payment_id)
          # End the read transaction so no pooled connection is held across the
          # chain calls. The status write re-checks PENDING on its own.
          db.commit()
          return payment

     async def _check_network(self, client) -> int:
          try:
               network_id = await client.get_network_id()
          except RPC_ERRORS as e:
               logger.warning("rpc_unavailable", rpc_url=getattr(client, "rpc_url", None), error=str(e))
               raise RpcUnavailable(error=str(e)) from e
          expected = self.chain.chain_id
          if expected is not None and network_id != expected:
               raise ChainMismatch(expected=expected, got=network_id)
          return network_id

     def _token_transfer(self, receipt: Mapping) -> Optional[Transfer]:
          if not self.chain.token_address:
               return None
          return find_token_transfer(receipt, self.chain.token_address, self.chain.platform_address)

     def _settle(
          self,
          db: Session,
          payment: Payment,
          tx_hash: str,
          transfer: Optional[Transfer],
          chain_id: Optional[int],
          background: Optional[BackgroundTasks],
     ) -> Payment:
          native = transfer is not None and transfer.is_native
          if native:
               decimals, token_label = self.chain.native_decimals, self.chain.native_symbol
          else:
               decimals, token_label = self.chain.token_decimals, self.chain.token_symbol

          try:
               if native:
                    check_destination(transfer.to, self.chain.platform_address)
               check_amount(
                    payment.amount,
                    transfer.amount if transfer is not None else None,
                    decimals,
                    self.chain.enforce_amount,
               )
          except (DestMismatch, AmountMismatch) as e:
               return self._fail(db, payment, tx_hash, e)

          details = {
               "paymentId": payment.id,
               "txHash": tx_hash,
               "network": self.chain.network_tag,
               "chainId": chain_id,
               "amount": str(payment.amount),
               "token": token_label,
               "observedAmount": str(transfer.amount) if transfer is not None else None,
          }
          return self._complete(db, payment, PAYMENT_COMPLETED_WEB3, details, background, tx_hash=tx_hash)

     def _swap_status(self, db: Session, payment_id: int, status: PaymentStatus, **values) -> bool:
          """UPDATE ... WHERE status = 'PENDING'; True if this caller made the transition."""
          result = db.execute(
               update(Payment)
               .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
               .values(status=status, **values)
               .execution_options(synchronize_session=False)
          )
          return result.rowcount == 1

     def _lost_race(self, db: Session, payment: Payment) -> Payment:
          db.rollback()
          db.refresh(payment)
          logger.info("payment_transition_lost_race", payment_id=payment.id, status=payment.status.value)
          if payment.status == PaymentStatus.COMPLETED:
               return payment
          raise PaymentNotPending(payment_id=payment.id, status=payment.status.value)

     def _complete(
          self,
          db: Session,
          payment: Payment,
          event: str,
          details: dict,
          background: Optional[BackgroundTasks],
          **values,
     ) -> Payment:
          try:
               if not self._swap_status(
                    db, payment.id, PaymentStatus.COMPLETED, completed_at=datetime.utcnow(), **values
               ):
                    return self._lost_race(db, payment)
               db.add(OrderTimeline(order_id=payment.order_id, event=event, details=details))
               db.commit()
          except ServiceError:
               raise
          except Exception:
               db.rollback()
               raise
          db.refresh(payment)

          logger.info(
               "payment_completed",
               payment_id=payment.id,
               order_id=payment.order_id,
               tx_hash=payment.tx_hash,
               provider=payment.provider.value,
          )

          if self.receipts is not None:
               schedule(background, self.receipts.generate_receipt_for_payment, payment.id)
          if self.notifier is not None:
               schedule(background, self.notifier.notify, "payment_completed", payment.order_id, payment.id)
          return payment

     def _fail(self, db: Session, payment: Payment, tx_hash: str, error: ServiceError) -> Payment:
          """Persist FAILED with the hash for audit, then raise ``error``."""
          try:
               if not self._swap_status(db, payment.id, PaymentStatus.FAILED, tx_hash=tx_hash):
                    return self._lost_race(db, payment)
               db.add(OrderTimeline(
                    order_id=payment.order_id,
                    event=PAYMENT_FAILED_WEB3,
                    details={
                         "paymentId": payment.id,
                         "txHash": tx_hash,
                         "network": self.chain.network_tag,
                         "code": error.code.value,
                         **error.details,
                    },
               ))
               db.commit()
          except ServiceError:
               raise
          except Exception:
               db.rollback()
               raise
          db.refresh(payment)

          logger.warning(
               "payment_failed",
               payment_id=payment.id,
               order_id=payment.order_id,
               tx_hash=tx_hash,
               code=error.code.value,
               details=error.details,
          )
          raise error
