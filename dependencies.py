# dependencies.py
"""
Shared FastAPI dependencies: token auth, current user, and the service
instances built by main.py.
"""
from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import settings
from database import get_session
from errors import Forbidden, OrderNotFound
from models import Order, User


# Token Auth Dependency
def verify_token(request: Request) -> dict:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = auth.split(" ")[1]
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except JWTError:
        raise HTTPException(status_code=403, detail="Invalid token")


def get_current_user(
    token: dict = Depends(verify_token),
    db: Session = Depends(get_session),
) -> User:
    user_id = token.get("id") or token.get("sub")
    try:
        user = db.get(User, int(user_id)) if user_id is not None else None
    except (TypeError, ValueError):
        user = None
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Staff only")
    return user


def can_access_order(user: User, order: Order) -> bool:
    """Staff see every order; customers only their own."""
    return user.is_staff or order.is_owned_by(user.id)


def get_accessible_order(db: Session, user: User, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id=order_id)
    if not can_access_order(user, order):
        raise Forbidden("You do not have access to this order", order_id=order_id)
    return order


def get_payment_service(request: Request):
    return request.app.state.payment_service


def get_notifier(request: Request):
    return request.app.state.notification_service
