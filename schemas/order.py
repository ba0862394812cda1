# schemas/order.py
"""
Pydantic schemas for order completion, proof and timeline responses.
"""
from datetime import datetime
from typing import Any, Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.order import OrderStatus


class Coords(BaseModel):
     lat: float = Field(..., ge=-90, le=90)
     lng: float = Field(..., ge=-180, le=180)


class CompletionEvidence(BaseModel):
     """Evidence submitted when staff mark an order completed."""
     photos: List[int] = Field(default_factory=list, max_length=10, description="Attachment ids")
     coords: Optional[Coords] = None
     completed_at: Optional[datetime] = Field(None, alias="completedAt")
     notes: Optional[str] = Field(None, max_length=1000)

     model_config = ConfigDict(
          populate_by_name=True,
          json_schema_extra={
               "example": {
                    "photos": [12, 11],
                    "coords": {"lat": 50.4501, "lng": 30.5234},
                    "completedAt": "2026-03-01T14:05:00.000Z",
                    "notes": "Replaced front pads, test drive OK",
               }
          }
     )


class OrderResponse(BaseModel):
     id: int
     customer_id: int
     status: OrderStatus
     category: str
     description: Optional[str] = None
     channel: str
     priority: str
     created_at: datetime
     updated_at: datetime

     model_config = ConfigDict(from_attributes=True)


class OrderCompleteResponse(BaseModel):
     order: OrderResponse
     proof_hash: str = Field(..., serialization_alias="proofHash")


class ProofResponse(BaseModel):
     """Stored completion proof for an order."""
     order_id: int = Field(..., alias="orderId")
     proof_hash: str = Field(..., alias="proofHash")
     evidence: Optional[dict[str, Any]] = None
     created_at: datetime = Field(..., alias="createdAt")
     verified: bool  # stored evidence still hashes to proofHash

     model_config = ConfigDict(populate_by_name=True)


class TimelineEntryResponse(BaseModel):
     id: int
     order_id: int
     event: str
     details: Optional[dict[str, Any]] = None
     user_id: Optional[int] = None
     created_at: datetime

     model_config = ConfigDict(from_attributes=True)
