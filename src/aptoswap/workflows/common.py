"""Helpers shared by the swap and transfer workflows."""

import logging
from typing import Any, Optional

import httpx
from langchain_core.runnables import RunnableConfig

from aptoswap.chain.account import Account
from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import RawTransaction
from aptoswap.errors import ExecutionError, InvalidRequestError, WalletNotFoundError
from aptoswap.services.backend import WalletService
from aptoswap.tokens import APT_DECIMALS, get_token_by_asset_type, normalize_native

logger = logging.getLogger(__name__)


def extract_user_id(config: Optional[RunnableConfig]) -> str:
    """Authenticated user id from the run config.

    Raises:
        InvalidRequestError: If no user identity is present
    """
    config = config or {}
    configurable = config.get("configurable") or {}
    metadata = config.get("metadata") or {}
    user_id = (
        configurable.get("langgraph_auth_user_id")
        or metadata.get("langgraph_auth_user_id")
        or configurable.get("user_id")
    )
    if not user_id:
        raise InvalidRequestError("User not authenticated - missing user identity in context")
    return str(user_id)


async def load_account(wallets: WalletService, user_id: str) -> Account:
    """Signing account for the user's custodial wallet."""
    wallet = await wallets.get_wallet(user_id)
    try:
        account = Account.from_private_key(wallet.private_key)
    except ValueError as e:
        raise WalletNotFoundError(f"Wallet for user {user_id} has an unusable private key: {e}")
    if wallet.address and wallet.address.lower() != account.address.lower():
        logger.warning(f"Wallet address {wallet.address} does not match derived {account.address}")
    return account


async def get_balance_row(client: AptosClient, owner: str, asset_type: str) -> Optional[dict]:
    """Indexer balance row for one asset, looked up under its canonical form."""
    rows = await client.get_asset_balances(owner, normalize_native(asset_type))
    return rows[0] if rows else None


def row_decimals(row: Optional[dict], asset_type: str) -> int:
    """Decimals from indexer metadata, else the registry, else 8."""
    metadata = (row or {}).get("metadata") or {}
    if metadata.get("decimals") is not None:
        return int(metadata["decimals"])
    token = get_token_by_asset_type(asset_type)
    return token.decimals if token else APT_DECIMALS


def row_metadata(row: Optional[dict]) -> dict[str, Any]:
    """Snapshot of the token metadata kept in workflow state."""
    row = row or {}
    metadata = row.get("metadata") or {}
    return {
        "symbol": metadata.get("symbol"),
        "name": metadata.get("name"),
        "decimals": metadata.get("decimals"),
        "token_standard": row.get("token_standard") or metadata.get("token_standard"),
    }


def ensure_signer(account: Account, prepared_address: str) -> None:
    """Refuse to sign for a wallet other than the one the transaction was prepared for.

    Raises:
        ExecutionError: If the resuming user's account differs
    """
    if account.address.lower() != prepared_address.lower():
        raise ExecutionError(
            f"Wallet {account.address} does not match the account {prepared_address} "
            "this transaction was prepared for"
        )


async def submit_and_wait(client: AptosClient, transaction: RawTransaction, account: Account) -> dict:
    """Sign, submit and wait for the committed transaction.

    Raises:
        ExecutionError: If the ledger rejects the submission or the finality poll
    """
    function = transaction.payload.module_function
    try:
        tx_hash = await client.submit(transaction, account)
        executed = await client.wait_for_transaction(tx_hash)
    except httpx.HTTPError as e:
        raise ExecutionError(f"Ledger request for {function} from {account.address} failed: {e}")
    return {"hash": tx_hash, **executed}
