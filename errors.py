# errors.py
"""
Service-layer error taxonomy.

Every failure a service can report is a ServiceError subclass carrying a
machine-readable code and an HTTP status hint. The API layer maps them to
JSON bodies in one exception handler (see main.py), so callers match on the
class or on ``code`` rather than on message text.
"""
import enum
from typing import Any, Optional


class ErrorCode(str, enum.Enum):
     INVALID_TX_HASH = "INVALID_TX_HASH"
     INVALID_AMOUNT = "INVALID_AMOUNT"
     PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
     ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
     ORDER_MISMATCH = "ORDER_MISMATCH"
     PAYMENT_NOT_PENDING = "PAYMENT_NOT_PENDING"
     RPC_UNAVAILABLE = "RPC_UNAVAILABLE"
     CHAIN_MISMATCH = "CHAIN_MISMATCH"
     TX_TIMEOUT = "TX_TIMEOUT"
     TX_FAILED = "TX_FAILED"
     AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
     DEST_MISMATCH = "DEST_MISMATCH"
     PROOF_NOT_FOUND = "PROOF_NOT_FOUND"
     FORBIDDEN = "FORBIDDEN"


class ServiceError(Exception):
     """Base class for errors surfaced to API callers."""
     code: ErrorCode
     status_code: int = 400
     retryable: bool = False
     default_message: str = "Request failed"

     def __init__(self, message: Optional[str] = None, **details: Any):
          self.message = message or self.default_message
          self.details = details
          super().__init__(self.message)

     def to_dict(self) -> dict:
          body = {"code": self.code.value, "message": self.message}
          body.update(self.details)
          return body

     def __repr__(self):
          return f"<{type(self).__name__}(code='{self.code.value}', details={self.details})>"


class InvalidTxHash(ServiceError):
     code = ErrorCode.INVALID_TX_HASH
     default_message = "Transaction hash must be 0x followed by 64 hex characters"


class InvalidAmount(ServiceError):
     code = ErrorCode.INVALID_AMOUNT
     default_message = "Amount must be a positive number"


class PaymentNotFound(ServiceError):
     code = ErrorCode.PAYMENT_NOT_FOUND
     status_code = 404
     default_message = "Payment not found"


class OrderNotFound(ServiceError):
     code = ErrorCode.ORDER_NOT_FOUND
     status_code = 404
     default_message = "Order not found"


class OrderMismatch(ServiceError):
     code = ErrorCode.ORDER_MISMATCH
     default_message = "Payment does not belong to this order"


class PaymentNotPending(ServiceError):
     code = ErrorCode.PAYMENT_NOT_PENDING
     status_code = 409
     default_message = "Payment is no longer pending"


class RpcUnavailable(ServiceError):
     code = ErrorCode.RPC_UNAVAILABLE
     status_code = 502
     retryable = True
     default_message = "Blockchain RPC endpoint is unavailable"


class ChainMismatch(ServiceError):
     code = ErrorCode.CHAIN_MISMATCH
     default_message = "Connected to an unexpected network"


class TxTimeout(ServiceError):
     code = ErrorCode.TX_TIMEOUT
     status_code = 504
     retryable = True
     default_message = "Timed out waiting for transaction confirmations"


class TxFailed(ServiceError):
     code = ErrorCode.TX_FAILED
     default_message = "Transaction failed on-chain"


class AmountMismatch(ServiceError):
     code = ErrorCode.AMOUNT_MISMATCH
     default_message = "Transferred amount does not match the invoice"


class DestMismatch(ServiceError):
     code = ErrorCode.DEST_MISMATCH
     default_message = "Transaction was not sent to the platform address"


class ProofNotFound(ServiceError):
     code = ErrorCode.PROOF_NOT_FOUND
     status_code = 404
     default_message = "No completion proof recorded for this order"


class Forbidden(ServiceError):
     code = ErrorCode.FORBIDDEN
     status_code = 403
     default_message = "Access denied"
