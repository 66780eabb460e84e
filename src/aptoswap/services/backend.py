"""Backend API clients: wallet custody and token/DEX catalogs.

All endpoints share one base URL and authenticate with an X-API-KEY header.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from aptoswap.config import Settings, get_settings
from aptoswap.errors import ExecutionError, WalletNotFoundError
from aptoswap.routing.base import DexInfo

logger = logging.getLogger(__name__)


class Wallet(BaseModel):
    """Signing material for a user's custodial wallet."""

    model_config = ConfigDict(populate_by_name=True)

    address: str
    private_key: str = Field(..., alias="privateKey", repr=False)
    public_key: Optional[str] = Field(default=None, alias="publicKey")


class CatalogToken(BaseModel):
    """Token metadata from the backend catalog."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    name: str = ""
    decimals: int = 8
    token_address: Optional[str] = Field(default=None, alias="tokenAddress")
    fa_address: Optional[str] = Field(default=None, alias="faAddress")
    tags: list[str] = Field(default_factory=list)
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")


class BackendClient:
    """Shared HTTP plumbing for backend services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.backend_base_url,
            headers={
                "X-API-KEY": self.settings.backend_api_key,
                "Content-Type": "application/json",
            },
            timeout=self.settings.backend_timeout,
            transport=self._transport,
        )

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        async with self._http() as client:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()


def _unwrap(payload: Any) -> Any:
    """Accept both bare payloads and {"data": ...} envelopes."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class WalletService(BackendClient):
    async def get_wallet(self, user_id: str) -> Wallet:
        """Fetch the user's wallet.

        Raises:
            WalletNotFoundError: If the user has no wallet or it lacks a key
            ExecutionError: If the wallet service is unreachable
        """
        try:
            data = _unwrap(await self._get(f"/wallet/{user_id}"))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise WalletNotFoundError(f"Wallet not found for user {user_id}")
            raise ExecutionError(f"Wallet service error: HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            raise ExecutionError(f"Wallet service unavailable: {type(e).__name__}")

        if not data or not data.get("privateKey"):
            raise WalletNotFoundError(f"Wallet not found or missing private key for user {user_id}")
        return Wallet.model_validate(data)


class TokenCatalog(BackendClient):
    async def get_token_list(
        self,
        symbol: Optional[str] = None,
        name: Optional[str] = None,
        address: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> list[CatalogToken]:
        params = {
            key: value
            for key, value in {
                "symbol": symbol,
                "name": name,
                "address": address,
                "tags": ",".join(tags) if tags else None,
            }.items()
            if value
        }
        data = _unwrap(await self._get("/token/list", params=params)) or []
        return [CatalogToken.model_validate(token) for token in data]


class DexCatalog(BackendClient):
    async def get_dexes(self) -> list[DexInfo]:
        """DEX metadata (name, method address, declared functions)."""
        try:
            data = _unwrap(await self._get("/dexes")) or []
        except httpx.HTTPError as e:
            raise ExecutionError(f"DEX catalog unavailable: {type(e).__name__}")
        dexes = [DexInfo.model_validate(dex) for dex in data]
        logger.debug(f"DEX catalog: {[dex.name for dex in dexes]}")
        return dexes
