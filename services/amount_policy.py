# services/amount_policy.py
"""
Decide whether an observed transfer satisfies a pending invoice.

Invoice amounts are stored as Numeric(12, 2) in major units. They are turned
into integer cents first and only then scaled to the asset's base unit, so no
float ever touches the comparison.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Optional, Union

from errors import AmountMismatch, DestMismatch
from services.log_decoder import to_checksum

CENT = Decimal("0.01")


def to_cents(amount: Union[Decimal, str, int]) -> int:
     """Major units with two decimals to integer cents (extra precision is truncated)."""
     value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_DOWN)
     return int(value * 100)


def to_base_units(amount: Union[Decimal, str, int], decimals: int) -> int:
     """
     Scale an invoice amount to the smallest unit of a token.

     Example: 19.99 with 6 decimals -> 19990000
     """
     return to_cents(amount) * (10 ** decimals) // 100


def check_amount(
     expected_amount: Union[Decimal, str, int],
     observed: Optional[int],
     decimals: int,
     enforce: bool,
) -> None:
     """
     Raises:
          AmountMismatch: If enforcement is on and ``observed`` is missing or differs
     """
     if not enforce:
          return
     expected = to_base_units(expected_amount, decimals)
     if observed is None or int(observed) != expected:
          raise AmountMismatch(
               expected=str(expected),
               got=None if observed is None else str(observed),
          )


def check_destination(observed_to: Optional[str], platform_address: Optional[str]) -> None:
     """
     Raises:
          DestMismatch: If a platform address is configured and ``observed_to`` differs
     """
     if not platform_address:
          return
     expected = to_checksum(platform_address)
     got = to_checksum(observed_to or "0x0000000000000000000000000000000000000000")
     if got != expected:
          raise DestMismatch(expected=expected, got=got)
