# services/proof_service.py
"""
Completion Proof Service - tamper-evident record that an order's work was done.

When staff close an order:
1. Build the evidence payload {orderId, completedAt, coords, photos, notes}
   with photo ids sorted ascending
2. Hash its canonical JSON form with SHA-256 ("proof hash")
3. Set the order CLOSED and append an "Order completed" timeline entry holding
   both the hash and the payload, in one transaction

Verification: recompute the hash from the stored payload and compare.
"""
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from fastapi import BackgroundTasks
from sqlalchemy import desc
from sqlalchemy.orm import Session

from errors import OrderNotFound, ProofNotFound
from logging_config import get_logger
from models import Order, OrderStatus, OrderTimeline
from models.order_timeline import ORDER_COMPLETED
from services.background import schedule
from utils.hashing import canonical_json, sha256_hex

logger = get_logger(__name__)


def _iso_utc(value: Any) -> str:
     """ISO-8601 in UTC with millisecond precision and a Z suffix."""
     if isinstance(value, datetime):
          if value.tzinfo is not None:
               value = value.astimezone(timezone.utc).replace(tzinfo=None)
          return value.isoformat(timespec="milliseconds") + "Z"
     return str(value)


def _normalize_coords(coords: Any) -> Optional[dict]:
     if not coords:
          return None
     if hasattr(coords, "model_dump"):
          coords = coords.model_dump()
     return {"lat": coords["lat"], "lng": coords["lng"]}


def build_completion_payload(order_id: int, evidence: Optional[dict] = None) -> dict:
     """
     Normalize free-form completion evidence into the payload that gets hashed.

     Args:
          order_id: ID of the order being completed
          evidence: Mapping with optional keys photos, coords, completedAt, notes

     Returns:
          Payload dict; completedAt defaults to the current UTC time
     """
     evidence = evidence or {}
     completed_at = evidence.get("completedAt") or datetime.utcnow()
     photos = evidence.get("photos") or []
     return {
          "orderId": int(order_id),
          "completedAt": _iso_utc(completed_at),
          "coords": _normalize_coords(evidence.get("coords")),
          "photos": sorted(int(photo_id) for photo_id in photos),
          "notes": evidence.get("notes") or None,
     }


def compute_proof_hash(payload: dict) -> str:
     """SHA-256 hex of the canonical JSON form of a completion payload."""
     return sha256_hex(canonical_json(payload))


def complete_order(
     db: Session,
     order_id: int,
     actor_id: Optional[int],
     evidence: Optional[dict] = None,
     notifier=None,
     background: Optional[BackgroundTasks] = None,
) -> Tuple[Order, str]:
     """
     Close an order and record its completion proof.

     Raises:
          OrderNotFound: If the order doesn't exist
     """
     order = db.get(Order, order_id)
     if order is None:
          raise OrderNotFound(order_id=order_id)

     payload = build_completion_payload(order.id, evidence)
     proof_hash = compute_proof_hash(payload)

     try:
          order.status = OrderStatus.CLOSED
          db.add(OrderTimeline(
               order_id=order.id,
               event=ORDER_COMPLETED,
               user_id=actor_id,
               details={"proofHash": proof_hash, "evidence": payload},
          ))
          db.commit()
     except Exception:
          db.rollback()
          raise
     db.refresh(order)

     logger.info("order_completed", order_id=order.id, actor_id=actor_id, proof_hash=proof_hash)

     if notifier is not None:
          schedule(background, notifier.notify, "order_closed", order.id)

     return order, proof_hash


def _latest_proof_entry(db: Session, order_id: int) -> Optional[OrderTimeline]:
     return (
          db.query(OrderTimeline)
          .filter(OrderTimeline.order_id == order_id, OrderTimeline.event == ORDER_COMPLETED)
          .order_by(desc(OrderTimeline.created_at), desc(OrderTimeline.id))
          .first()
     )


def get_order_proof(db: Session, order_id: int) -> dict:
     """
     Return the most recent completion proof for an order.

     Raises:
          OrderNotFound: If the order doesn't exist
          ProofNotFound: If the order was never completed
     """
     if db.get(Order, order_id) is None:
          raise OrderNotFound(order_id=order_id)

     entry = _latest_proof_entry(db, order_id)
     details = (entry.details or {}) if entry is not None else {}
     proof_hash = details.get("proofHash")
     if not proof_hash:
          raise ProofNotFound(order_id=order_id)

     return {
          "orderId": order_id,
          "proofHash": proof_hash,
          "evidence": details.get("evidence"),
          "createdAt": entry.created_at,
     }


def verify_order_proof(db: Session, order_id: int) -> Tuple[bool, str]:
     """
     Recompute the stored proof hash from the stored evidence.

     Returns:
          (success: bool, message: str)
     """
     try:
          proof = get_order_proof(db, order_id)
     except (OrderNotFound, ProofNotFound) as e:
          return False, e.message

     if proof["evidence"] is None:
          return False, "Evidence missing from proof entry"

     computed = compute_proof_hash(proof["evidence"])
     if computed != proof["proofHash"]:
          return False, f"Hash mismatch: stored={proof['proofHash'][:16]}..., computed={computed[:16]}..."
     return True, "Verification passed"
