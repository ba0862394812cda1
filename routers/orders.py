# routers/orders.py
"""
Order completion and audit API.

POST /api/orders/{order_id}/complete: staff close an order with evidence (records a proof hash).
GET  /api/orders/{order_id}/proof: latest completion proof, re-verified against its evidence.
GET  /api/orders/{order_id}/timeline: audit entries, oldest first.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.orm import Session

from database import get_session
from dependencies import get_accessible_order, get_current_user, get_notifier, require_staff
from models import OrderTimeline, User
from schemas.order import CompletionEvidence, OrderCompleteResponse, ProofResponse, TimelineEntryResponse
from services.proof_service import complete_order, get_order_proof, verify_order_proof

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post(
     "/{order_id}/complete",
     response_model=OrderCompleteResponse,
     summary="Complete order with proof",
)
def complete(
     order_id: int,
     background: BackgroundTasks,
     evidence: Optional[CompletionEvidence] = Body(None),
     db: Session = Depends(get_session),
     user: User = Depends(require_staff),
     notifier=Depends(get_notifier),
):
     order, proof_hash = complete_order(
          db,
          order_id=order_id,
          actor_id=user.id,
          evidence=evidence.model_dump(by_alias=True) if evidence else None,
          notifier=notifier,
          background=background,
     )
     return {"order": order, "proof_hash": proof_hash}


@router.get("/{order_id}/proof", response_model=ProofResponse, summary="Get completion proof")
def get_proof(
     order_id: int,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
):
     get_accessible_order(db, user, order_id)
     proof = get_order_proof(db, order_id)
     verified, _ = verify_order_proof(db, order_id)
     return {**proof, "verified": verified}


@router.get("/{order_id}/timeline", response_model=List[TimelineEntryResponse], summary="Order timeline")
def get_timeline(
     order_id: int,
     db: Session = Depends(get_session),
     user: User = Depends(get_current_user),
):
     get_accessible_order(db, user, order_id)
     return (
          db.query(OrderTimeline)
          .filter(OrderTimeline.order_id == order_id)
          .order_by(OrderTimeline.created_at, OrderTimeline.id)
          .all()
     )
