# models/order_timeline.py
"""
OrderTimeline model - append-only audit log for an order.

Rows are only ever inserted; state transitions on payments and orders write
their entry in the same transaction as the transition itself.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, JSON
from sqlalchemy.orm import relationship
from .base import Base, CreatedAtMixin


# Well-known event labels
PAYMENT_INVOICE_CREATED = "Payment invoice created"
PAYMENT_COMPLETED = "Payment completed"
PAYMENT_COMPLETED_WEB3 = "Payment completed (web3)"
PAYMENT_FAILED_WEB3 = "Payment failed (web3)"
RECEIPT_GENERATED = "Receipt generated"
ORDER_COMPLETED = "Order completed"


class OrderTimeline(CreatedAtMixin, Base):
     __tablename__ = "order_timeline"

     id = Column(Integer, primary_key=True, autoincrement=True)
     order_id = Column(
          Integer,
          ForeignKey("orders.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     event = Column(String(255), nullable=False, index=True)
     details = Column(JSON, nullable=True)
     user_id = Column(Integer, nullable=True)

     # Relationships
     order = relationship("Order", back_populates="timeline")

     def __repr__(self):
          return f"<OrderTimeline(id={self.id}, order_id={self.order_id}, event='{self.event}')>"
