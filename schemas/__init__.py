# schemas/__init__.py
from .payment import (
     InvoiceCreateRequest,
     Web3VerifyRequest,
     Web3ReceiptRequest,
     PaymentWebhookEvent,
     PaymentResponse,
     InvoiceCreateResponse,
     PaymentEnvelope,
     ReceiptVerifyResponse,
     WebhookAck,
)
from .order import (
     Coords,
     CompletionEvidence,
     OrderResponse,
     OrderCompleteResponse,
     ProofResponse,
     TimelineEntryResponse,
)

__all__ = [
     "InvoiceCreateRequest",
     "Web3VerifyRequest",
     "Web3ReceiptRequest",
     "PaymentWebhookEvent",
     "PaymentResponse",
     "InvoiceCreateResponse",
     "PaymentEnvelope",
     "ReceiptVerifyResponse",
     "WebhookAck",
     "Coords",
     "CompletionEvidence",
     "OrderResponse",
     "OrderCompleteResponse",
     "ProofResponse",
     "TimelineEntryResponse",
]
