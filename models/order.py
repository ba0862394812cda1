# models/order.py
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from .base import Base, CreatedAtMixin


class OrderStatus(str, enum.Enum):
     """Repair order lifecycle."""
     NEW = "NEW"
     TRIAGE = "TRIAGE"
     QUOTE = "QUOTE"
     APPROVED = "APPROVED"
     SCHEDULED = "SCHEDULED"
     INSERVICE = "INSERVICE"
     READY = "READY"
     DELIVERED = "DELIVERED"
     CLOSED = "CLOSED"
     CANCELLED = "CANCELLED"


class Order(CreatedAtMixin, Base):
     """
     Order model - a customer's repair request.

     Payments and timeline entries hang off the order; closing the order
     records a completion proof in its timeline.
     """
     __tablename__ = "orders"

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     customer_id = Column(
          Integer,
          ForeignKey("users.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )

     # Order details
     status = Column(
          Enum(OrderStatus, name="order_status", create_constraint=True),
          default=OrderStatus.NEW,
          nullable=False,
          index=True
     )
     category = Column(String(100), nullable=False)
     description = Column(Text, nullable=True)
     channel = Column(String(50), default="web", nullable=False)
     priority = Column(String(20), default="normal", nullable=False)

     updated_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), onupdate=datetime.utcnow, nullable=False)

     # Relationships
     customer = relationship("User", back_populates="orders")
     payments = relationship("Payment", back_populates="order", order_by="Payment.id")
     timeline = relationship(
          "OrderTimeline",
          back_populates="order",
          order_by="OrderTimeline.id",
     )

     def __repr__(self):
          return f"<Order(id={self.id}, status='{self.status.value}', category='{self.category}')>"

     def is_owned_by(self, user_id) -> bool:
          return user_id is not None and self.customer_id == int(user_id)
