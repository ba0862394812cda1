# routers/__init__.py
from .payments import router as payments_router
from .orders import router as orders_router

__all__ = ["payments_router", "orders_router"]
