# services/chain_client.py
"""
Thin async wrapper around a single JSON-RPC endpoint.

The client keeps no state between calls beyond its HTTP provider. It is built
once by the composition root from ChainSettings and injected into the payment
service, so tests can pass a stand-in ``w3`` object.
"""
import asyncio
from typing import Any, Mapping, Optional

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound, Web3Exception

from logging_config import get_logger

logger = get_logger(__name__)

# Failures that mean "the node could not be reached or did not answer"
RPC_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, Web3Exception)


class ChainClient:
     """Network identity, transaction lookup and confirmation waits."""

     def __init__(
          self,
          rpc_url: Optional[str] = None,
          poll_interval: float = 1.0,
          request_timeout: float = 30.0,
          w3: Any = None,
     ):
          if w3 is None:
               if not rpc_url:
                    raise ValueError("rpc_url is required when no web3 instance is given")
               w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=request_timeout)},
               ))
          self.w3 = w3
          self.rpc_url = rpc_url
          self.poll_interval = poll_interval

     async def get_network_id(self) -> int:
          return int(await self.w3.eth.chain_id)

     async def get_transaction(self, tx_hash: str) -> Optional[dict]:
          """Return ``{"to", "value"}`` for a transaction, or None if the node doesn't know it."""
          try:
               tx = await self.w3.eth.get_transaction(tx_hash)
          except TransactionNotFound:
               return None
          if tx is None:
               return None
          return {"to": tx.get("to"), "value": int(tx.get("value") or 0)}

     async def wait_for_receipt(
          self,
          tx_hash: str,
          confirmations: int,
          timeout_ms: int,
     ) -> Optional[Mapping]:
          """
          Wait until ``tx_hash`` is mined with at least ``confirmations`` blocks.

          The block containing the transaction counts as the first confirmation.

          Returns:
               The receipt, or None if ``timeout_ms`` elapses first
          """
          try:
               return await asyncio.wait_for(
                    self._poll_receipt(tx_hash, confirmations),
                    timeout=timeout_ms / 1000,
               )
          except asyncio.TimeoutError:
               logger.warning("receipt_wait_timeout", tx_hash=tx_hash, confirmations=confirmations, timeout_ms=timeout_ms)
               return None

     async def _poll_receipt(self, tx_hash: str, confirmations: int) -> Mapping:
          while True:
               try:
                    receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
               except TransactionNotFound:
                    receipt = None
               except RPC_ERRORS as e:
                    logger.warning("receipt_poll_failed", tx_hash=tx_hash, error=str(e))
                    receipt = None

               if receipt is not None:
                    if confirmations <= 1:
                         return receipt
                    try:
                         head = int(await self.w3.eth.block_number)
                    except RPC_ERRORS as e:
                         logger.warning("block_number_poll_failed", tx_hash=tx_hash, error=str(e))
                    else:
                         if head - int(receipt["blockNumber"]) + 1 >= confirmations:
                              return receipt

               await asyncio.sleep(self.poll_interval)
