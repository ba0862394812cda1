# services/log_decoder.py
"""
Extract the transfer that settles an invoice from a transaction receipt.

Receipts arrive in two shapes: web3 AttributeDicts (topics/data as HexBytes)
from the live RPC path, and plain JSON dicts (hex strings) from operators and
tests. Everything is normalized to lowercase 0x-hex before comparison, and
addresses are compared in checksum form.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from web3 import Web3

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


@dataclass(frozen=True)
class Transfer:
     """An observed on-chain transfer, amount in the asset's smallest unit."""
     amount: int
     to: Optional[str]
     is_native: bool


def to_hex(value: Any) -> str:
     if isinstance(value, (bytes, bytearray)):
          return "0x" + bytes(value).hex()
     text = str(value).lower()
     return text if text.startswith("0x") else "0x" + text


def to_checksum(address: Optional[str]) -> Optional[str]:
     """Checksum-normalize an address; unparseable input is returned unchanged."""
     if not address:
          return None
     if isinstance(address, (bytes, bytearray)):
          address = to_hex(address)
     try:
          return Web3.to_checksum_address(address)
     except (ValueError, TypeError):
          return address


def topic_to_address(topic: Any) -> Optional[str]:
     """An indexed address topic is the address left-padded to 32 bytes."""
     hex_topic = to_hex(topic)
     if len(hex_topic) < 42:
          return None
     return to_checksum("0x" + hex_topic[-40:])


def receipt_status(receipt: Optional[Mapping]) -> Optional[int]:
     if not receipt:
          return None
     status = receipt.get("status")
     if status is None:
          return None
     if isinstance(status, str):
          try:
               return int(status, 16) if status.lower().startswith("0x") else int(status)
          except ValueError:
               return None
     return int(status)


def find_token_transfer(
     receipt: Optional[Mapping],
     token_address: str,
     platform_address: Optional[str] = None,
) -> Optional[Transfer]:
     """
     Find the first ERC-20 Transfer log in ``receipt`` emitted by ``token_address``.

     When ``platform_address`` is given, the log's ``to`` topic must match it.
     Logs are scanned in receipt order and the first match wins.

     Returns:
          Transfer with the integer amount, or None if no log qualifies
     """
     logs = (receipt or {}).get("logs")
     if not isinstance(logs, (list, tuple)):
          return None

     token = to_checksum(token_address)
     platform = to_checksum(platform_address)

     for log in logs:
          if to_checksum(log.get("address")) != token:
               continue
          topics = log.get("topics") or []
          if not topics or to_hex(topics[0]) != TRANSFER_TOPIC:
               continue
          recipient = topic_to_address(topics[2]) if len(topics) > 2 else None
          if platform and recipient != platform:
               continue
          try:
               amount = int(to_hex(log.get("data") or "0x"), 16)
          except ValueError:
               continue
          return Transfer(amount=amount, to=recipient, is_native=False)

     return None


def native_transfer(tx: Mapping) -> Transfer:
     """Read the native-coin value and destination straight from the transaction."""
     return Transfer(
          amount=int(tx.get("value") or 0),
          to=to_checksum(tx.get("to")),
          is_native=True,
     )
