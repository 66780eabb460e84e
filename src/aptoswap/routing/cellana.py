"""Cellana DEX adapter.

Route discovery is delegated to Cellana's HTTP router service, which returns
candidate paths of (pool, wrap_from, wrap_to, stable) hops. The best path is
chosen by on-chain get_amounts_out; per-hop fees come from swap_fee_bps.
"""

import logging
from typing import Optional

import httpx

from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import EntryFunctionPayload
from aptoswap.config import get_settings
from aptoswap.errors import ExecutionError
from aptoswap.routing.base import (
    DEFAULT_SLIPPAGE,
    PLACEHOLDER_AMOUNT_IN,
    AmountEstimation,
    DexAdapter,
    DexName,
    Pool,
    PoolSearchParams,
    Route,
    RouteType,
    SwapParams,
    SwapPlan,
    calculate_min_amount_out,
    validate_slippage,
)
from aptoswap.tokens import is_coin_type, normalize_native, pair_key

logger = logging.getLogger(__name__)

U64_MAX = 2**64 - 1
DEFAULT_FEE_BPS = 10


class CellanaAdapter(DexAdapter):
    """External-router adapter."""

    def __init__(self, client: AptosClient, router_url: Optional[str] = None):
        super().__init__(client)
        self.router_url = router_url or get_settings().cellana_router_url

    @property
    def name(self) -> DexName:
        return DexName.CELLANA

    async def fetch_paths(self, address_in: str, address_out: str) -> list[dict]:
        """Candidate paths from the router service (empty when it has none)."""
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                self.router_url,
                json={"address0": address_in, "address1": address_out},
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()

        if data.get("code") != 200:
            logger.debug(f"Cellana router returned code {data.get('code')}")
            return []
        paths = (data.get("data") or {}).get("path") or []
        return [path for path in paths if path.get("routers")]

    async def get_amounts_out(self, router_address: str, amount_in: int, routers: list[dict]) -> int:
        """On-chain quote for a path.

        Raises:
            ValueError: If amount_in is outside the u64 range
        """
        if amount_in <= 0 or amount_in > U64_MAX:
            raise ValueError(f"Amount {amount_in} must be within (0, {U64_MAX}]")

        result = await self.client.view(
            f"{router_address}::router::get_amounts_out",
            [],
            [
                str(amount_in),
                routers[0]["wrapFrom"],
                [router["wrapTo"] for router in routers],
                [bool(router.get("stable", False)) for router in routers],
            ],
        )
        if not result:
            raise ValueError("Invalid response from get_amounts_out")
        return int(result[0])

    async def get_fee_bps(self, router_address: str, pool_address: str) -> int:
        result = await self.client.view(
            f"{router_address}::liquidity_pool::swap_fee_bps", [], [pool_address]
        )
        return int(result[0])

    async def _total_fee_bps(self, router_address: str, routers: list[dict]) -> int:
        total = 0
        for router in routers:
            try:
                total += await self.get_fee_bps(router_address, router["poolAddress"])
            except Exception as e:
                logger.debug(f"Cellana fee lookup failed for {router.get('poolAddress')}: {e}")
                total += DEFAULT_FEE_BPS
        return total

    async def find_pools(self, params: PoolSearchParams) -> list[Pool]:
        router_address = params.dex.method_address
        address_in = normalize_native(params.address_in)
        address_out = normalize_native(params.address_out)
        if not router_address or not address_in or not address_out:
            return []

        try:
            paths = await self.fetch_paths(address_in, address_out)
        except Exception as e:
            logger.warning(f"Cellana router unavailable: {type(e).__name__}: {e}")
            return []
        if not paths:
            return []

        best_path, best_output = paths[0], 0
        for path in paths:
            try:
                amount_out = await self.get_amounts_out(router_address, PLACEHOLDER_AMOUNT_IN, path["routers"])
            except Exception as e:
                logger.debug(f"Cellana path quote failed: {e}")
                continue
            if amount_out > best_output:
                best_path, best_output = path, amount_out

        routers = best_path["routers"]
        fee_bps = await self._total_fee_bps(router_address, routers)
        return [
            Pool(
                id=routers[0]["poolAddress"],
                dex=params.dex,
                token_a=address_in,
                token_b=address_out,
                fee=fee_bps / 100,
                route=Route(
                    type=RouteType.MULTI_HOP,
                    path=[address_in, *(router["wrapTo"] for router in routers)],
                ),
                estimated_output=best_output,
                extra={
                    "routers": routers,
                    "fee_bps": fee_bps,
                    "stable": any(router.get("stable", False) for router in routers),
                },
            )
        ]

    async def estimate_amount_out(
        self,
        pool: Pool,
        amount_in: int,
        slippage: float = DEFAULT_SLIPPAGE,
    ) -> AmountEstimation:
        routers = pool.extra.get("routers") or []
        if not routers:
            return self._estimation(0, slippage)

        try:
            estimated_output = await self.get_amounts_out(pool.dex.method_address, amount_in, routers)
        except Exception as e:
            # Zero output removes the pool from ranking instead of inventing a price
            logger.warning(f"Cellana quote failed for pool {pool.id}: {type(e).__name__}: {e}")
            estimated_output = 0
        return self._estimation(estimated_output, slippage)

    async def create_swap_transaction(self, params: SwapParams, pool: Pool) -> SwapPlan:
        validate_slippage(params.slippage)
        routers = pool.extra.get("routers") or []
        if not routers:
            raise ValueError("No routers found for Cellana pool")

        estimation = await self.estimate_amount_out(pool, params.amount_in, params.slippage)
        if estimation.estimated_output <= 0:
            raise ExecutionError("Cellana quote unavailable for the selected route")
        min_amount_out = calculate_min_amount_out(estimation.estimated_output, params.slippage)

        address_in = pool.token_a or normalize_native(params.token_address_in)
        address_out = pool.token_b or normalize_native(params.token_address_out)
        wrap_to = [router["wrapTo"] for router in routers]
        stable = [bool(router.get("stable", False)) for router in routers]
        amounts = [str(params.amount_in), str(min_amount_out)]
        router = f"{pool.dex.method_address}::router"

        if is_coin_type(address_in) and is_coin_type(address_out):
            payload = EntryFunctionPayload(
                function=f"{router}::swap_route_entry_both_coins",
                type_arguments=[address_in, address_out],
                arguments=[*amounts, wrap_to, stable, params.to_address],
            )
        elif is_coin_type(address_in):
            payload = EntryFunctionPayload(
                function=f"{router}::swap_route_entry_from_coin",
                type_arguments=[address_in],
                arguments=[*amounts, wrap_to, stable, params.to_address],
            )
        elif is_coin_type(address_out):
            payload = EntryFunctionPayload(
                function=f"{router}::swap_route_entry_to_coin",
                type_arguments=[address_out],
                arguments=[*amounts, address_in, wrap_to, stable, params.to_address],
            )
        else:
            payload = EntryFunctionPayload(
                function=f"{router}::swap_route_entry",
                arguments=[*amounts, address_in, wrap_to, stable, params.to_address],
            )

        transaction = await self._build(params.sender, payload)
        return SwapPlan(
            transaction=transaction,
            estimated_output=estimation.estimated_output,
            min_amount_out=min_amount_out,
        )

    def validate_pool(self, pool: Pool, params: PoolSearchParams) -> bool:
        if not pool.extra.get("routers"):
            return False
        if not params.address_in or not params.address_out:
            return False
        return pair_key(pool.token_a, pool.token_b) == pair_key(params.address_in, params.address_out)
