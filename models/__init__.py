# models/__init__.py
from .base import Base
from .user import User, UserRole
from .order import Order, OrderStatus
from .payment import Payment, PaymentStatus, PaymentProvider, PaymentMethod, PaymentPurpose
from .order_timeline import OrderTimeline

__all__ = [
     "Base",
     "User",
     "UserRole",
     "Order",
     "OrderStatus",
     "Payment",
     "PaymentStatus",
     "PaymentProvider",
     "PaymentMethod",
     "PaymentPurpose",
     "OrderTimeline",
]
