"""Aptos fullnode REST and indexer GraphQL client.

Transactions are built in the fullnode JSON format, BCS-encoded for signing
by the node's encode_submission endpoint, signed locally with the wallet's
Ed25519 key and submitted as JSON. Simulation uses a zeroed signature.
"""

import asyncio
import logging
import time
from typing import Any, Optional
from urllib.parse import quote

import httpx

from aptoswap.chain.account import Account
from aptoswap.chain.transactions import ZERO_SIGNATURE, EntryFunctionPayload, RawTransaction
from aptoswap.config import Settings, get_settings
from aptoswap.errors import ExecutionError, TransactionFailedError

logger = logging.getLogger(__name__)

ACCOUNT_COINS_QUERY = """
query getAccountCoinsData($where_condition: current_fungible_asset_balances_bool_exp!, $limit: Int) {
  current_fungible_asset_balances(where: $where_condition, limit: $limit) {
    amount
    asset_type
    is_frozen
    is_primary
    owner_address
    storage_id
    token_standard
    metadata {
      asset_type
      creator_address
      decimals
      icon_uri
      name
      project_uri
      symbol
      token_standard
    }
  }
}
"""


class AptosApiError(ExecutionError):
    """Fullnode or indexer rejected a request or returned an error payload."""


def _describe(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code} {error.response.text[:200]}"
    return type(error).__name__


class AptosClient:
    """Thin async wrapper over the Aptos REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = 1.0,
    ):
        self.settings = settings or get_settings()
        self.node_url = self.settings.node_url
        self.indexer_url = self.settings.indexer_url
        self.timeout = self.settings.aptos_request_timeout
        self.poll_interval = poll_interval
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_account(self, address: str) -> dict:
        async with self._http() as client:
            response = await client.get(f"{self.node_url}/accounts/{address}")
            response.raise_for_status()
            return response.json()

    async def get_account_resource(self, address: str, resource_type: str) -> Optional[dict]:
        """Fetch a Move resource; None when the account does not hold it."""
        url = f"{self.node_url}/accounts/{address}/resource/{quote(resource_type, safe='')}"
        async with self._http() as client:
            response = await client.get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    async def view(
        self,
        function: str,
        type_arguments: Optional[list[str]] = None,
        arguments: Optional[list[Any]] = None,
    ) -> list:
        """Call a view function and return its decoded return values."""
        payload = EntryFunctionPayload(function, type_arguments or [], arguments or [])
        async with self._http() as client:
            response = await client.post(f"{self.node_url}/view", json=payload.to_view_request())
            response.raise_for_status()
            return response.json()

    async def get_asset_balances(self, owner: str, asset_type: Optional[str] = None) -> list[dict]:
        """Balance rows (coin and FA) for an account from the indexer."""
        where: dict[str, Any] = {"owner_address": {"_eq": owner}}
        if asset_type:
            where["asset_type"] = {"_eq": asset_type}

        body = {
            "query": ACCOUNT_COINS_QUERY,
            "variables": {"where_condition": where, "limit": 100},
        }
        async with self._http() as client:
            response = await client.post(self.indexer_url, json=body)
            response.raise_for_status()
            data = response.json()

        if data.get("errors"):
            raise AptosApiError(f"Indexer query failed: {data['errors']}")
        return data.get("data", {}).get("current_fungible_asset_balances", [])

    async def get_transaction_by_hash(self, tx_hash: str) -> Optional[dict]:
        async with self._http() as client:
            response = await client.get(f"{self.node_url}/transactions/by_hash/{tx_hash}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def build_transaction(
        self,
        sender: str,
        payload: EntryFunctionPayload,
        max_gas_amount: Optional[int] = None,
        gas_unit_price: Optional[int] = None,
    ) -> RawTransaction:
        """Build an unsigned transaction at the sender's current sequence number."""
        account = await self.get_account(sender)
        return RawTransaction(
            sender=sender,
            sequence_number=int(account["sequence_number"]),
            max_gas_amount=max_gas_amount or self.settings.aptos_max_gas_amount,
            gas_unit_price=gas_unit_price or self.settings.aptos_gas_unit_price,
            expiration_timestamp_secs=int(time.time()) + self.settings.aptos_tx_expiration_seconds,
            payload=payload,
        )

    async def simulate(self, transaction: RawTransaction, public_key_hex: str) -> dict:
        """Simulate without submitting; returns the single simulated transaction."""
        body = transaction.with_signature(public_key_hex, ZERO_SIGNATURE)
        async with self._http() as client:
            response = await client.post(f"{self.node_url}/transactions/simulate", json=body)
            response.raise_for_status()
            results = response.json()

        if not results:
            raise AptosApiError("Simulation returned no results")
        return results[0]

    async def submit(self, transaction: RawTransaction, account: Account) -> str:
        """Sign and submit, returning the transaction hash.

        Raises:
            AptosApiError: If encoding or submission is rejected by the node
        """
        function = transaction.payload.module_function
        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.node_url}/transactions/encode_submission",
                    json=transaction.to_dict(),
                )
                response.raise_for_status()
                signing_message = response.json()

                signature = account.sign(bytes.fromhex(signing_message.removeprefix("0x")))
                response = await client.post(
                    f"{self.node_url}/transactions",
                    json=transaction.with_signature(account.public_key_hex, signature),
                )
                response.raise_for_status()
                tx_hash = response.json()["hash"]
        except httpx.HTTPError as e:
            raise AptosApiError(f"Submission of {function} from {account.address} failed: {_describe(e)}")

        logger.info(f"Submitted {function} from {account.address}: {tx_hash}")
        return tx_hash

    async def wait_for_transaction(self, tx_hash: str, timeout: Optional[float] = None) -> dict:
        """Poll until the transaction is committed.

        Raises:
            TransactionFailedError: If the VM aborted the transaction
            AptosApiError: If the node rejects a poll
            ExecutionError: If it is not committed within timeout
        """
        timeout = timeout if timeout is not None else self.settings.aptos_wait_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                transaction = await self.get_transaction_by_hash(tx_hash)
            except httpx.HTTPError as e:
                raise AptosApiError(f"Polling transaction {tx_hash} failed: {_describe(e)}")
            if transaction and transaction.get("type") != "pending_transaction":
                if not transaction.get("success", False):
                    vm_status = transaction.get("vm_status", "unknown")
                    raise TransactionFailedError(
                        f"Transaction {tx_hash} failed: {vm_status}",
                        tx_hash=tx_hash,
                        vm_status=vm_status,
                    )
                return transaction

            if loop.time() >= deadline:
                raise ExecutionError(f"Transaction {tx_hash} not confirmed after {timeout}s")
            await asyncio.sleep(self.poll_interval)
