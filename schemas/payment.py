# schemas/payment.py
"""
Pydantic schemas for the payments API.

Request bodies use the client's camelCase keys (orderId, paymentId, txHash);
snake_case names are accepted too.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict

from models.payment import PaymentMethod, PaymentProvider, PaymentPurpose, PaymentStatus


class InvoiceCreateRequest(BaseModel):
     """Request body for POST /api/payments/invoice."""
     order_id: int = Field(..., gt=0, alias="orderId", description="Order to bill")
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount in major units")
     currency: str = Field(default="UAH", min_length=3, max_length=10)
     provider: PaymentProvider = Field(default=PaymentProvider.LIQPAY)
     method: PaymentMethod = Field(default=PaymentMethod.CARD)
     purpose: PaymentPurpose = Field(default=PaymentPurpose.REPAIR)
     description: Optional[str] = Field(None, max_length=200)

     model_config = ConfigDict(
          populate_by_name=True,
          json_schema_extra={
               "example": {
                    "orderId": 42,
                    "amount": 100.00,
                    "currency": "USDC",
                    "provider": "WEB3",
                    "method": "CRYPTO",
                    "purpose": "REPAIR",
                    "description": "Brake pads replacement",
               }
          }
     )


class Web3VerifyRequest(BaseModel):
     """Request body for POST /api/payments/web3/verify."""
     order_id: int = Field(..., gt=0, alias="orderId")
     payment_id: int = Field(..., gt=0, alias="paymentId")
     tx_hash: str = Field(..., alias="txHash", description="0x-prefixed 32-byte transaction hash")

     model_config = ConfigDict(
          populate_by_name=True,
          json_schema_extra={
               "example": {
                    "orderId": 42,
                    "paymentId": 7,
                    "txHash": "0x" + "ab" * 32,
               }
          }
     )


class Web3ReceiptRequest(Web3VerifyRequest):
     """Request body for POST /api/payments/test/web3-receipt (non-production only)."""
     receipt: dict[str, Any] = Field(..., description="Transaction receipt as returned by eth_getTransactionReceipt")


class PaymentWebhookEvent(BaseModel):
     """Normalized provider callback for off-chain payments."""
     order_id: int = Field(..., gt=0, alias="orderId")
     payment_id: int = Field(..., gt=0, alias="paymentId")
     status: str = Field(..., description="Provider status; only 'paid' completes the invoice")
     provider_ref: Optional[str] = Field(None, alias="providerRef", max_length=255)

     model_config = ConfigDict(populate_by_name=True)


class PaymentResponse(BaseModel):
     """Schema for payment response."""
     id: int
     order_id: int
     amount: Decimal
     currency: str
     provider: PaymentProvider
     method: PaymentMethod
     purpose: PaymentPurpose
     description: Optional[str] = None
     status: PaymentStatus
     tx_hash: Optional[str] = None
     invoice_url: Optional[str] = None
     receipt_url: Optional[str] = None
     receipt_hash: Optional[str] = None
     created_at: datetime
     completed_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)


class InvoiceCreateResponse(BaseModel):
     payment: PaymentResponse
     reused: bool = Field(..., description="True if an identical pending invoice was returned")


class PaymentEnvelope(BaseModel):
     payment: PaymentResponse


class ReceiptVerifyResponse(BaseModel):
     ok: bool = True
     payment: PaymentResponse


class WebhookAck(BaseModel):
     ok: bool
     message: str
     payment: Optional[PaymentResponse] = None
