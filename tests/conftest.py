"""Pytest configuration and shared fixtures."""

import os

# Set required environment variables before importing any modules
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec-test")
os.environ.pop("WEB3_RPC_URL", None)
os.environ.pop("BREVO_API_KEY", None)

from dataclasses import replace  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from config import settings  # noqa: E402
from database import SessionLocal, engine  # noqa: E402
from models import (  # noqa: E402
     Base,
     Order,
     OrderStatus,
     Payment,
     PaymentMethod,
     PaymentProvider,
     PaymentStatus,
     User,
     UserRole,
)
from services.log_decoder import TRANSFER_TOPIC  # noqa: E402
from services.payment_service import PaymentService  # noqa: E402

TOKEN_ADDRESS = "0x" + "22" * 20
PLATFORM_ADDRESS = "0x" + "a1" * 20
PAYER_ADDRESS = "0x" + "33" * 20
OTHER_ADDRESS = "0x" + "44" * 20
TX_HASH = "0x" + "ab" * 32
CHAIN_ID = 80002


def _address_topic(address: str) -> str:
     return "0x" + "00" * 12 + address[2:].lower()


def token_receipt(amount: int, to: str = PLATFORM_ADDRESS, token: str = TOKEN_ADDRESS, status=1, block: int = 100):
     """A receipt holding one ERC-20 Transfer log, in eth_getTransactionReceipt JSON shape."""
     return {
          "status": status,
          "blockNumber": block,
          "logs": [
               {
                    "address": token,
                    "topics": [TRANSFER_TOPIC, _address_topic(PAYER_ADDRESS), _address_topic(to)],
                    "data": hex(amount),
               }
          ],
     }


def empty_receipt(status=1, block: int = 100):
     return {"status": status, "blockNumber": block, "logs": []}


class FakeChainClient:
     """Stand-in for ChainClient with canned answers; records every call."""

     def __init__(self, chain_id=CHAIN_ID, receipt=None, tx=None, network_error=None, tx_error=None):
          self.chain_id = chain_id
          self.receipt = receipt
          self.tx = tx
          self.network_error = network_error
          self.tx_error = tx_error
          self.calls = []
          self.rpc_url = "http://fake-rpc"

     async def get_network_id(self):
          self.calls.append("get_network_id")
          if self.network_error is not None:
               raise self.network_error
          return self.chain_id

     async def wait_for_receipt(self, tx_hash, confirmations, timeout_ms):
          self.calls.append(("wait_for_receipt", tx_hash, confirmations))
          return self.receipt

     async def get_transaction(self, tx_hash):
          self.calls.append(("get_transaction", tx_hash))
          if self.tx_error is not None:
               raise self.tx_error
          return self.tx


class Recorder:
     """Collects side-effect invocations; optionally fails on each one."""

     def __init__(self, fail: bool = False):
          self.fail = fail
          self.calls = []

     def generate_receipt_for_payment(self, payment_id):
          self.calls.append(("receipt", payment_id))
          if self.fail:
               raise RuntimeError("renderer exploded")

     def notify(self, event_type, order_id, payment_id=None):
          self.calls.append((event_type, order_id, payment_id))
          if self.fail:
               raise RuntimeError("mail provider down")
          return True


def make_settings(app_env: str = "test", **chain_overrides):
     chain = replace(
          settings.chain,
          chain_id=CHAIN_ID,
          confirmations=2,
          tx_timeout_ms=1000,
          token_address=None,
          platform_address=None,
          enforce_amount=False,
     )
     return replace(
          settings,
          app_env=app_env,
          webhook_secret="whsec-test",
          disable_receipt_upload=True,
          brevo_api_key=None,
          chain=replace(chain, **chain_overrides),
     )


@pytest.fixture
def make_service():
     def _make(chain_client=None, receipts=None, notifier=None, app_env="test", **chain_overrides):
          return PaymentService(
               make_settings(app_env=app_env, **chain_overrides),
               chain_client=chain_client,
               receipts=receipts,
               notifier=notifier,
          )
     return _make


@pytest.fixture(autouse=True)
def reset_db():
     Base.metadata.drop_all(bind=engine)
     Base.metadata.create_all(bind=engine)
     yield


@pytest.fixture
def db():
     session = SessionLocal()
     try:
          yield session
     finally:
          session.close()


@pytest.fixture
def seed(db):
     """Staff member, two customers, one order and a pending 100.00 USDC invoice."""
     staff = User(email="mechanic@autoassist.test", first_name="Ivan", last_name="Koval", role=UserRole.MECHANIC.value)
     customer = User(email="owner@autoassist.test", first_name="Olena", last_name="Shevchenko", role=UserRole.CUSTOMER.value)
     stranger = User(email="stranger@autoassist.test", first_name="Petro", role=UserRole.CUSTOMER.value)
     db.add_all([staff, customer, stranger])
     db.flush()

     order = Order(customer_id=customer.id, status=OrderStatus.APPROVED, category="brakes", description="Squeaking front brakes")
     db.add(order)
     db.flush()

     payment = Payment(
          order_id=order.id,
          amount=Decimal("100.00"),
          currency="USDC",
          provider=PaymentProvider.WEB3,
          method=PaymentMethod.CRYPTO,
          status=PaymentStatus.PENDING,
     )
     db.add(payment)
     db.commit()

     return {"staff": staff, "customer": customer, "stranger": stranger, "order": order, "payment": payment}


def make_token(user_id: int, role: str = "customer") -> str:
     return jwt.encode({"id": user_id, "role": role}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user) -> dict:
     return {"Authorization": f"Bearer {make_token(user.id, user.role)}"}


@pytest.fixture
def client():
     from main import app

     yield TestClient(app)
     app.dependency_overrides.clear()
