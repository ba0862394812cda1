# services/receipt_service.py
"""
Receipt Service - renders a PDF receipt for a completed payment.

The receipt carries a QR code (block explorer link for on-chain payments,
order page otherwise) and a SHA-256 "receipt hash" over the key payment
attributes, embedded both in the PDF metadata and in the page footer.
"""
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from azure_blob import build_object_key, upload_bytes
from config import Settings
from database import get_session_context
from errors import PaymentNotFound
from logging_config import get_logger
from models import Order, OrderTimeline, Payment
from models.order_timeline import RECEIPT_GENERATED
from utils.hashing import canonical_json, sha256_hex

logger = get_logger(__name__)

INK = colors.HexColor("#0f172a")
SUB = colors.HexColor("#64748b")
BORDER = colors.HexColor("#dbe3ed")


@dataclass(frozen=True)
class ReceiptArtifact:
     url: str
     object_key: str
     receipt_hash: str
     size: int


def _format_ts(value: Optional[datetime]) -> str:
     return value.strftime("%Y-%m-%d %H:%M UTC") if value else "-"


def _qr_drawing(target: str, size: float = 38 * mm) -> Drawing:
     widget = QrCodeWidget(target)
     x1, y1, x2, y2 = widget.getBounds()
     width, height = x2 - x1, y2 - y1
     drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
     drawing.add(widget)
     return drawing


class ReceiptService:

     def __init__(self, settings: Settings, session_factory=get_session_context):
          self.settings = settings
          self.session_factory = session_factory

     @staticmethod
     def compute_receipt_hash(payment: Payment) -> str:
          issued_at = payment.completed_at or payment.created_at
          payload = {
               "paymentId": payment.id,
               "orderId": payment.order_id,
               "amount": payment.amount,
               "currency": payment.currency,
               "txHash": payment.tx_hash,
               "completedAt": issued_at.isoformat() if issued_at else None,
          }
          return sha256_hex(canonical_json(payload))

     def qr_target(self, payment: Payment) -> str:
          if payment.tx_hash:
               return f"{self.settings.chain.explorer_tx_base_url}{payment.tx_hash}"
          return f"{self.settings.public_base_url}/orders/{payment.order_id}/payments/{payment.id}"

     def render_receipt_pdf(self, payment: Payment, order: Order, receipt_hash: str) -> bytes:
          buffer = io.BytesIO()
          doc = SimpleDocTemplate(
               buffer,
               pagesize=A4,
               topMargin=18 * mm,
               bottomMargin=22 * mm,
               title=f"Receipt PAY-{payment.id}",
               subject=f"ReceiptHash:{receipt_hash}",
               creator=self.settings.receipt_issuer,
          )
          styles = getSampleStyleSheet()
          title_style = ParagraphStyle("ReceiptTitle", parent=styles["Heading1"], fontSize=22, textColor=INK)
          header_style = ParagraphStyle("ReceiptHeader", parent=styles["Normal"], fontSize=10, textColor=SUB)
          value_style = ParagraphStyle("ReceiptValue", parent=styles["Normal"], fontSize=11, textColor=INK)

          customer = order.customer
          rows = [
               ["Order", f"#{order.id} ({order.category})"],
               ["Customer", (customer.full_name or customer.email or "-") if customer else "-"],
               ["Amount", f"{payment.amount} {payment.currency}"],
               ["Provider", f"{payment.provider.value} / {payment.method.value}"],
               ["Purpose", payment.purpose.value],
               ["Status", payment.status.value],
               ["Paid at", _format_ts(payment.completed_at)],
          ]
          if payment.tx_hash:
               rows.append(["Transaction", payment.tx_hash])

          details = Table(
               [[Paragraph(escape(label), header_style), Paragraph(escape(str(value)), value_style)] for label, value in rows],
               colWidths=[35 * mm, 135 * mm],
          )
          details.setStyle(TableStyle([
               ("BOX", (0, 0), (-1, -1), 0.8, BORDER),
               ("LINEBELOW", (0, 0), (-1, -2), 0.5, BORDER),
               ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
               ("TOPPADDING", (0, 0), (-1, -1), 6),
               ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
          ]))

          elements = [
               Paragraph("Payment Receipt", title_style),
               Paragraph(escape(f"{self.settings.receipt_issuer} · PAY-{payment.id}"), header_style),
               Spacer(1, 10 * mm),
               details,
               Spacer(1, 8 * mm),
               _qr_drawing(self.qr_target(payment)),
               Paragraph("Scan to verify", header_style),
          ]

          def _footer(canvas, _doc):
               canvas.saveState()
               canvas.setFont("Helvetica", 8)
               canvas.setFillColor(SUB)
               canvas.drawString(_doc.leftMargin, 14 * mm, f"ReceiptHash: {receipt_hash}")
               canvas.drawString(_doc.leftMargin, 10 * mm, f"Generated: {datetime.utcnow().isoformat(timespec='seconds')}Z")
               canvas.restoreState()

          doc.build(elements, onFirstPage=_footer, onLaterPages=_footer)
          return buffer.getvalue()

     def generate_receipt_for_payment(self, payment_id: int) -> ReceiptArtifact:
          """
          Render, store and record the receipt for a payment.

          Sets ``receipt_url``/``receipt_hash`` on the payment and appends a
          "Receipt generated" timeline entry.

          Raises:
               PaymentNotFound: If the payment (or its order) doesn't exist
          """
          with self.session_factory() as db:
               payment = db.get(Payment, payment_id)
               if payment is None or payment.order is None:
                    raise PaymentNotFound(payment_id=payment_id)
               order = payment.order

               receipt_hash = self.compute_receipt_hash(payment)
               pdf_bytes = self.render_receipt_pdf(payment, order, receipt_hash)
               filename = f"receipt_order-{order.id}_payment-{payment.id}.pdf"

               if self.settings.disable_receipt_upload:
                    object_key = f"test/{filename}"
                    url = object_key
               else:
                    object_key = build_object_key(order.id, filename)
                    url = upload_bytes(
                         self.settings,
                         pdf_bytes,
                         self.settings.receipt_container,
                         object_key,
                         content_type="application/pdf",
                    )

               payment.receipt_url = url
               payment.receipt_hash = receipt_hash
               db.add(OrderTimeline(
                    order_id=order.id,
                    event=RECEIPT_GENERATED,
                    details={
                         "paymentId": payment.id,
                         "objectKey": object_key,
                         "receiptHash": receipt_hash,
                         "size": len(pdf_bytes),
                    },
               ))

          logger.info("receipt_generated", payment_id=payment_id, object_key=object_key, size=len(pdf_bytes))
          return ReceiptArtifact(url=url, object_key=object_key, receipt_hash=receipt_hash, size=len(pdf_bytes))
