"""Aptos ledger access: accounts, payloads and the REST client."""

from aptoswap.chain.account import Account, derive_address
from aptoswap.chain.client import AptosApiError, AptosClient
from aptoswap.chain.transactions import (
    EntryFunctionPayload,
    RawTransaction,
    transfer_apt_payload,
    transfer_coin_payload,
    transfer_fungible_asset_payload,
)

__all__ = [
    "Account",
    "AptosApiError",
    "AptosClient",
    "EntryFunctionPayload",
    "RawTransaction",
    "derive_address",
    "transfer_apt_payload",
    "transfer_coin_payload",
    "transfer_fungible_asset_payload",
]
