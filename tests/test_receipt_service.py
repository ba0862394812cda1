"""Tests for receipt rendering and notifications."""

from dataclasses import replace
from datetime import datetime

import pytest

import services.notification_service as notification_module
from errors import PaymentNotFound
from models import OrderTimeline, Payment, PaymentStatus
from models.order_timeline import RECEIPT_GENERATED
from services.notification_service import NotificationService
from services.receipt_service import ReceiptService

from conftest import TX_HASH, make_settings


@pytest.fixture
def completed_payment(db, seed):
     payment = seed["payment"]
     payment.status = PaymentStatus.COMPLETED
     payment.tx_hash = TX_HASH
     payment.completed_at = datetime(2026, 3, 1, 12, 0, 0)
     db.commit()
     return payment


class TestReceiptService:

     def test_receipt_hash_is_stable_and_field_sensitive(self, completed_payment):
          first = ReceiptService.compute_receipt_hash(completed_payment)

          assert ReceiptService.compute_receipt_hash(completed_payment) == first
          completed_payment.tx_hash = "0x" + "cd" * 32
          assert ReceiptService.compute_receipt_hash(completed_payment) != first

     def test_pdf_embeds_receipt_hash(self, completed_payment, seed):
          service = ReceiptService(make_settings())
          receipt_hash = service.compute_receipt_hash(completed_payment)

          pdf = service.render_receipt_pdf(completed_payment, seed["order"], receipt_hash)

          assert pdf.startswith(b"%PDF")
          assert f"ReceiptHash:{receipt_hash}".encode() in pdf

     def test_qr_points_at_explorer_for_on_chain_payments(self, completed_payment):
          service = ReceiptService(make_settings())

          assert service.qr_target(completed_payment) == f"https://amoy.polygonscan.com/tx/{TX_HASH}"
          completed_payment.tx_hash = None
          assert service.qr_target(completed_payment).endswith(
               f"/orders/{completed_payment.order_id}/payments/{completed_payment.id}"
          )

     def test_generate_without_upload(self, db, completed_payment):
          artifact = ReceiptService(make_settings()).generate_receipt_for_payment(completed_payment.id)

          filename = f"receipt_order-{completed_payment.order_id}_payment-{completed_payment.id}.pdf"
          assert artifact.object_key == f"test/{filename}"
          assert artifact.size > 0

          db.expire_all()
          stored = db.get(Payment, completed_payment.id)
          assert stored.receipt_url == artifact.url
          assert stored.receipt_hash == artifact.receipt_hash
          entry = db.query(OrderTimeline).filter(OrderTimeline.event == RECEIPT_GENERATED).one()
          assert entry.details["paymentId"] == completed_payment.id
          assert entry.details["objectKey"] == artifact.object_key

     def test_generate_for_missing_payment(self, seed):
          with pytest.raises(PaymentNotFound):
               ReceiptService(make_settings()).generate_receipt_for_payment(9999)


class TestNotificationService:

     def test_skipped_without_api_key(self, seed):
          assert NotificationService(make_settings()).notify("order_closed", seed["order"].id) is False

     def test_sends_to_order_owner(self, seed, completed_payment, monkeypatch):
          sent = []
          monkeypatch.setattr(
               notification_module,
               "send_email",
               lambda api_key, sender, to_email, subject, html: sent.append((to_email, subject, html)),
          )
          service = NotificationService(replace(make_settings(), brevo_api_key="xkeysib-test"))

          assert service.notify("payment_completed", seed["order"].id, completed_payment.id) is True

          [(to_email, subject, html)] = sent
          assert to_email == "owner@autoassist.test"
          assert subject == f"Payment received for order #{seed['order'].id}"
          assert TX_HASH in html
          assert "Olena Shevchenko" in html
