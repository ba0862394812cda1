# models/payment.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from .base import Base, CreatedAtMixin


class PaymentStatus(str, enum.Enum):
     """
     PENDING moves exactly once, to COMPLETED or FAILED.
     Neither terminal state is ever left.
     """
     PENDING = "PENDING"
     COMPLETED = "COMPLETED"
     FAILED = "FAILED"


class PaymentProvider(str, enum.Enum):
     LIQPAY = "LIQPAY"
     STRIPE = "STRIPE"
     WEB3 = "WEB3"


class PaymentMethod(str, enum.Enum):
     CARD = "CARD"
     BANK_TRANSFER = "BANK_TRANSFER"
     CRYPTO = "CRYPTO"
     CASH = "CASH"


class PaymentPurpose(str, enum.Enum):
     ADVANCE = "ADVANCE"
     REPAIR = "REPAIR"
     INSURANCE = "INSURANCE"


class Payment(CreatedAtMixin, Base):
     """
     Payment model - one request for payment (invoice) against an order.

     Financial record: rows are never deleted. ``tx_hash`` is stored for both
     completed and failed on-chain attempts so disputes can be traced.
     """
     __tablename__ = "payments"

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     order_id = Column(
          Integer,
          ForeignKey("orders.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )

     # Invoice details
     amount = Column(Numeric(12, 2), nullable=False)  # major units
     currency = Column(String(10), default="UAH", nullable=False)
     provider = Column(
          Enum(PaymentProvider, name="payment_provider", create_constraint=True),
          default=PaymentProvider.LIQPAY,
          nullable=False
     )
     method = Column(
          Enum(PaymentMethod, name="payment_method", create_constraint=True),
          default=PaymentMethod.CARD,
          nullable=False
     )
     purpose = Column(
          Enum(PaymentPurpose, name="payment_purpose", create_constraint=True),
          default=PaymentPurpose.REPAIR,
          nullable=False
     )
     description = Column(String(200), nullable=True)
     status = Column(
          Enum(PaymentStatus, name="payment_status", create_constraint=True),
          default=PaymentStatus.PENDING,
          nullable=False,
          index=True
     )
     fingerprint = Column(String(64), nullable=True, index=True)  # SHA-256 hex of invoice terms
     provider_ref = Column(String(255), nullable=True)
     invoice_url = Column(String(500), nullable=True)

     # On-chain settlement
     tx_hash = Column(String(66), nullable=True, index=True)

     # Receipt artifact
     receipt_url = Column(String(500), nullable=True)
     receipt_hash = Column(String(64), nullable=True)

     completed_at = Column(DateTime, nullable=True)

     # Relationships
     order = relationship("Order", back_populates="payments")

     def __repr__(self):
          return f"<Payment(id={self.id}, order_id={self.order_id}, amount={self.amount}, status='{self.status.value}')>"
