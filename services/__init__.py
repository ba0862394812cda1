# services/__init__.py
from .payment_service import PaymentService, validate_tx_hash
from .receipt_service import ReceiptService, ReceiptArtifact
from .notification_service import NotificationService
from .chain_client import ChainClient
from .proof_service import (
     build_completion_payload,
     compute_proof_hash,
     complete_order,
     get_order_proof,
     verify_order_proof,
)

__all__ = [
     "PaymentService",
     "validate_tx_hash",
     "ReceiptService",
     "ReceiptArtifact",
     "NotificationService",
     "ChainClient",
     "build_completion_payload",
     "compute_proof_hash",
     "complete_order",
     "get_order_proof",
     "verify_order_proof",
]
