"""API tests through FastAPI's TestClient."""

import pytest
from structlog.testing import capture_logs

from database import SessionLocal
from dependencies import get_notifier, get_payment_service
from main import app
from models import Order, OrderStatus, OrderTimeline, Payment, PaymentStatus
from models.order_timeline import ORDER_COMPLETED, PAYMENT_COMPLETED_WEB3, RECEIPT_GENERATED
from services.notification_service import NotificationService
from services.payment_service import PaymentService
from services.proof_service import compute_proof_hash
from services.receipt_service import ReceiptService

from conftest import (
     PLATFORM_ADDRESS,
     TOKEN_ADDRESS,
     TX_HASH,
     FakeChainClient,
     auth_headers,
     make_settings,
     token_receipt,
)

TOKEN_POLICY = {"token_address": TOKEN_ADDRESS, "platform_address": PLATFORM_ADDRESS, "enforce_amount": True}


def _install_service(chain_client=None, app_env="test", **chain_overrides):
     settings = make_settings(app_env=app_env, **chain_overrides)
     service = PaymentService(
          settings,
          chain_client=chain_client,
          receipts=ReceiptService(settings),
          notifier=NotificationService(settings),
     )
     app.dependency_overrides[get_payment_service] = lambda: service
     app.dependency_overrides[get_notifier] = lambda: NotificationService(settings)
     return service


def _payment(payment_id):
     with SessionLocal() as session:
          return session.get(Payment, payment_id)


def test_healthz(client):
     response = client.get("/healthz")

     assert response.status_code == 200
     assert response.json()["ok"] is True
     assert response.headers["X-Request-ID"]


class TestAuth:

     def test_missing_token(self, client, seed):
          response = client.get(f"/api/payments/{seed['payment'].id}")
          assert response.status_code == 401

     def test_invalid_token(self, client, seed):
          response = client.get(f"/api/payments/{seed['payment'].id}", headers={"Authorization": "Bearer nope"})
          assert response.status_code == 403

     def test_owner_can_read_payment(self, client, seed):
          response = client.get(f"/api/payments/{seed['payment'].id}", headers=auth_headers(seed["customer"]))

          assert response.status_code == 200
          body = response.json()
          assert body["status"] == "PENDING"
          assert body["order_id"] == seed["order"].id

     def test_other_customer_is_forbidden(self, client, seed):
          response = client.get(f"/api/payments/{seed['payment'].id}", headers=auth_headers(seed["stranger"]))

          assert response.status_code == 403
          assert response.json()["error"]["code"] == "FORBIDDEN"

     def test_unknown_payment(self, client, seed):
          response = client.get("/api/payments/9999", headers=auth_headers(seed["staff"]))

          assert response.status_code == 404
          assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"


class TestInvoiceEndpoint:

     def test_create_and_reuse(self, client, seed):
          _install_service()
          body = {"orderId": seed["order"].id, "amount": "45.50", "currency": "UAH", "purpose": "ADVANCE"}

          first = client.post("/api/payments/invoice", json=body, headers=auth_headers(seed["customer"]))
          second = client.post("/api/payments/invoice", json=body, headers=auth_headers(seed["customer"]))

          assert first.status_code == 201
          assert first.json()["reused"] is False
          assert second.json()["reused"] is True
          assert second.json()["payment"]["id"] == first.json()["payment"]["id"]

     def test_stranger_cannot_bill_order(self, client, seed):
          _install_service()
          response = client.post(
               "/api/payments/invoice",
               json={"orderId": seed["order"].id, "amount": "10.00"},
               headers=auth_headers(seed["stranger"]),
          )
          assert response.status_code == 403

     def test_non_positive_amount_rejected_by_schema(self, client, seed):
          _install_service()
          response = client.post(
               "/api/payments/invoice",
               json={"orderId": seed["order"].id, "amount": "0"},
               headers=auth_headers(seed["staff"]),
          )
          assert response.status_code == 422


class TestWeb3Verify:

     def test_verify_completes_and_generates_receipt(self, client, seed):
          _install_service(chain_client=FakeChainClient(receipt=token_receipt(100000000)), **TOKEN_POLICY)

          response = client.post(
               "/api/payments/web3/verify",
               json={"orderId": seed["order"].id, "paymentId": seed["payment"].id, "txHash": TX_HASH},
               headers=auth_headers(seed["customer"]),
          )

          assert response.status_code == 200
          assert response.json()["payment"]["status"] == "COMPLETED"
          assert response.json()["payment"]["tx_hash"] == TX_HASH

          # background receipt task has run by the time TestClient returns
          stored = _payment(seed["payment"].id)
          assert stored.receipt_url.startswith("test/receipt_order-")
          timeline = client.get(f"/api/orders/{seed['order'].id}/timeline", headers=auth_headers(seed["customer"]))
          assert [entry["event"] for entry in timeline.json()] == [PAYMENT_COMPLETED_WEB3, RECEIPT_GENERATED]

     def test_malformed_hash(self, client, seed):
          _install_service(chain_client=FakeChainClient())

          response = client.post(
               "/api/payments/web3/verify",
               json={"orderId": seed["order"].id, "paymentId": seed["payment"].id, "txHash": "0x1234"},
               headers=auth_headers(seed["customer"]),
          )

          assert response.status_code == 400
          assert response.json()["error"]["code"] == "INVALID_TX_HASH"

     def test_amount_mismatch_reports_and_fails(self, client, seed):
          _install_service(chain_client=FakeChainClient(receipt=token_receipt(1)), **TOKEN_POLICY)

          response = client.post(
               "/api/payments/web3/verify",
               json={"orderId": seed["order"].id, "paymentId": seed["payment"].id, "txHash": TX_HASH},
               headers=auth_headers(seed["customer"]),
          )

          assert response.status_code == 400
          error = response.json()["error"]
          assert error["code"] == "AMOUNT_MISMATCH"
          assert error["expected"] == "100000000"
          assert error["got"] == "1"
          assert _payment(seed["payment"].id).status == PaymentStatus.FAILED

     def test_timeout_is_504_and_retryable(self, client, seed):
          _install_service(chain_client=FakeChainClient(receipt=None))

          response = client.post(
               "/api/payments/web3/verify",
               json={"orderId": seed["order"].id, "paymentId": seed["payment"].id, "txHash": TX_HASH},
               headers=auth_headers(seed["customer"]),
          )

          assert response.status_code == 504
          assert response.json()["error"]["code"] == "TX_TIMEOUT"
          assert _payment(seed["payment"].id).status == PaymentStatus.PENDING


class TestReceiptVariantEndpoint:

     def test_supplied_receipt(self, client, seed):
          _install_service(**TOKEN_POLICY)

          response = client.post(
               "/api/payments/test/web3-receipt",
               json={
                    "orderId": seed["order"].id,
                    "paymentId": seed["payment"].id,
                    "txHash": TX_HASH,
                    "receipt": token_receipt(100000000),
               },
               headers=auth_headers(seed["staff"]),
          )

          assert response.status_code == 200
          assert response.json()["ok"] is True
          assert response.json()["payment"]["status"] == "COMPLETED"

     def test_forbidden_in_production(self, client, seed):
          _install_service(app_env="production", **TOKEN_POLICY)

          response = client.post(
               "/api/payments/test/web3-receipt",
               json={
                    "orderId": seed["order"].id,
                    "paymentId": seed["payment"].id,
                    "txHash": TX_HASH,
                    "receipt": token_receipt(100000000),
               },
               headers=auth_headers(seed["staff"]),
          )

          assert response.status_code == 403
          assert response.json()["error"]["code"] == "FORBIDDEN"


class TestWebhook:

     def _event(self, seed, status="paid"):
          return {"orderId": seed["order"].id, "paymentId": seed["payment"].id, "status": status, "providerRef": "lp-1"}

     def test_wrong_secret(self, client, seed):
          _install_service()
          response = client.post("/api/payments/webhook", json=self._event(seed), headers={"X-Webhook-Secret": "guess"})

          assert response.status_code == 401
          assert _payment(seed["payment"].id).status == PaymentStatus.PENDING

     def test_paid_event_completes(self, client, seed):
          _install_service()
          response = client.post("/api/payments/webhook", json=self._event(seed), headers={"X-Webhook-Secret": "whsec-test"})

          assert response.status_code == 200
          assert response.json()["payment"]["status"] == "COMPLETED"
          assert _payment(seed["payment"].id).provider_ref == "lp-1"

     def test_other_status_ignored(self, client, seed):
          _install_service()
          response = client.post(
               "/api/payments/webhook",
               json=self._event(seed, status="processing"),
               headers={"X-Webhook-Secret": "whsec-test"},
          )

          assert response.status_code == 200
          assert response.json()["payment"] is None
          assert _payment(seed["payment"].id).status == PaymentStatus.PENDING


class TestOrderProof:

     def test_complete_then_fetch_proof(self, client, seed):
          _install_service()
          evidence = {
               "photos": [3, 1, 2],
               "coords": {"lat": 50.4501, "lng": 30.5234},
               "completedAt": "2026-03-01T14:05:00.000Z",
               "notes": "Pads replaced",
          }

          completed = client.post(
               f"/api/orders/{seed['order'].id}/complete",
               json=evidence,
               headers=auth_headers(seed["staff"]),
          )
          assert completed.status_code == 200
          proof_hash = completed.json()["proofHash"]
          assert completed.json()["order"]["status"] == "CLOSED"

          proof = client.get(f"/api/orders/{seed['order'].id}/proof", headers=auth_headers(seed["customer"]))

          assert proof.status_code == 200
          body = proof.json()
          assert body["orderId"] == seed["order"].id
          assert body["proofHash"] == proof_hash
          assert body["evidence"]["photos"] == [1, 2, 3]
          assert body["evidence"]["completedAt"] == "2026-03-01T14:05:00.000Z"
          assert compute_proof_hash(body["evidence"]) == proof_hash
          assert body["verified"] is True

          with SessionLocal() as session:
               assert session.get(Order, seed["order"].id).status == OrderStatus.CLOSED

     def test_tampered_proof_reported_unverified(self, client, seed):
          _install_service()
          client.post(f"/api/orders/{seed['order'].id}/complete", json={"notes": "original"}, headers=auth_headers(seed["staff"]))
          with SessionLocal() as session:
               entry = session.query(OrderTimeline).filter(OrderTimeline.event == ORDER_COMPLETED).one()
               entry.details = {**entry.details, "evidence": {**entry.details["evidence"], "notes": "edited"}}
               session.commit()

          response = client.get(f"/api/orders/{seed['order'].id}/proof", headers=auth_headers(seed["customer"]))

          assert response.status_code == 200
          assert response.json()["verified"] is False
          assert response.json()["evidence"]["notes"] == "edited"

     def test_customer_cannot_complete(self, client, seed):
          _install_service()
          response = client.post(f"/api/orders/{seed['order'].id}/complete", json={}, headers=auth_headers(seed["customer"]))

          assert response.status_code == 403

     def test_stranger_cannot_read_proof(self, client, seed):
          response = client.get(f"/api/orders/{seed['order'].id}/proof", headers=auth_headers(seed["stranger"]))
          assert response.status_code == 403

     def test_proof_missing(self, client, seed):
          response = client.get(f"/api/orders/{seed['order'].id}/proof", headers=auth_headers(seed["staff"]))

          assert response.status_code == 404
          assert response.json()["error"]["code"] == "PROOF_NOT_FOUND"

     @pytest.mark.parametrize("coords", [{"lat": 91, "lng": 0}, {"lat": 0, "lng": -181}])
     def test_out_of_range_coords(self, client, seed, coords):
          _install_service()
          response = client.post(
               f"/api/orders/{seed['order'].id}/complete",
               json={"coords": coords},
               headers=auth_headers(seed["staff"]),
          )
          assert response.status_code == 422

     def test_timeline_lists_completion(self, client, seed):
          _install_service()
          client.post(f"/api/orders/{seed['order'].id}/complete", json={"notes": "ok"}, headers=auth_headers(seed["staff"]))

          response = client.get(f"/api/orders/{seed['order'].id}/timeline", headers=auth_headers(seed["staff"]))

          assert [entry["event"] for entry in response.json()] == [ORDER_COMPLETED]


class TestRequestLogging:

     def test_request_lifecycle_logged(self, client):
          with capture_logs() as logs:
               response = client.get("/healthz", headers={"X-Request-ID": "req-42"})

          assert response.headers["X-Request-ID"] == "req-42"
          [started] = [entry for entry in logs if entry["event"] == "request_started"]
          [completed] = [entry for entry in logs if entry["event"] == "request_completed"]
          assert started["method"] == "GET"
          assert started["path"] == "/healthz"
          assert completed["status_code"] == 200
          assert completed["duration_ms"] >= 0

     def test_unhandled_error_logged_and_reraised(self, client, seed):
          def broken_service():
               raise RuntimeError("payment service not wired")

          app.dependency_overrides[get_payment_service] = broken_service

          with capture_logs() as logs:
               with pytest.raises(RuntimeError):
                    client.get(f"/api/payments/{seed['payment'].id}", headers=auth_headers(seed["customer"]))

          [failed] = [entry for entry in logs if entry["event"] == "request_failed"]
          assert failed["path"] == f"/api/payments/{seed['payment'].id}"
          assert failed["exc_info"] is True
          assert not [entry for entry in logs if entry["event"] == "request_completed"]
