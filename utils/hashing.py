# utils/hashing.py
"""
Deterministic JSON serialization and SHA-256 helpers.

canonical_json() is the byte form that proof and receipt hashes are computed
over: keys sorted at every depth, no whitespace, non-finite floats as null.
The same input always yields the same string, so a stored hash can be
recomputed from its stored payload.
"""
import hashlib
import json
import math
from decimal import Decimal
from typing import Any


def _normalize(value: Any) -> Any:
     if isinstance(value, dict):
          return {str(key): _normalize(value[key]) for key in value}
     if isinstance(value, (list, tuple)):
          return [_normalize(item) for item in value]
     if isinstance(value, float) and not math.isfinite(value):
          return None
     if isinstance(value, Decimal):
          return str(value)
     return value


def canonical_json(value: Any) -> str:
     return json.dumps(
          _normalize(value),
          sort_keys=True,
          separators=(",", ":"),
          ensure_ascii=False,
     )


def sha256_hex(data) -> str:
     if isinstance(data, str):
          data = data.encode("utf-8")
     return hashlib.sha256(data).hexdigest()
