"""Hyperion concentrated-liquidity DEX adapter.

Pools are listed by a view function declared in the DEX catalog and quoted
one by one against pool_v3::get_amount_out. Trades go through router_v3,
addressed by fungible-asset addresses (APT as "0xa").
"""

import asyncio
import logging
from typing import Any, Optional

from aptoswap.chain.transactions import EntryFunctionPayload
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
    fallback_output,
    validate_slippage,
)
from aptoswap.tokens import APT_COIN_TYPE, is_native, normalize_native, pair_key, same_token, to_fa_address

logger = logging.getLogger(__name__)

FIND_POOLS_FUNCTION = "find_pools"
# Pagination arguments (start, count) for the pool listing view
POOL_PAGE = ["0", "20"]
MAX_POOLS = 5


def _inner(value: Any) -> Any:
    """Object references come back either bare or wrapped as {"inner": addr}."""
    if isinstance(value, dict):
        return value.get("inner") or value.get("address")
    return value


class HyperionAdapter(DexAdapter):
    """Single-pool lookup against Hyperion's on-chain pool registry."""

    @property
    def name(self) -> DexName:
        return DexName.HYPERION

    async def find_pools(self, params: PoolSearchParams) -> list[Pool]:
        dex = params.dex
        function = dex.get_function(FIND_POOLS_FUNCTION)
        address_in, address_out = params.address_in, params.address_out

        if not function or not dex.method_address or not address_in or not address_out:
            return []
        if "::" not in function.function_name:
            logger.warning(
                f"Hyperion find_pools function must be 'module::function', got '{function.function_name}'"
            )
            return []

        module, func = function.function_name.split("::", 1)
        try:
            result = await self.client.view(f"{dex.method_address}::{module}::{func}", [], POOL_PAGE)
        except Exception as e:
            logger.warning(f"Hyperion pool listing failed: {type(e).__name__}: {e}")
            return []

        raw_pools = result[0] if result and isinstance(result[0], list) else []
        pools = [
            pool
            for pool in (self._to_pool(raw, params) for raw in raw_pools)
            if pool is not None
        ]
        if not pools:
            logger.debug(f"Hyperion: no pool for {address_in} <-> {address_out}")
            return []

        estimates = await asyncio.gather(
            *(self.estimate_amount_out(pool, PLACEHOLDER_AMOUNT_IN) for pool in pools)
        )
        quoted = [
            pool.with_estimate(estimate.estimated_output, estimate.min_amount_out)
            for pool, estimate in zip(pools, estimates)
            if estimate.estimated_output > 0
        ]
        quoted.sort(key=lambda p: p.estimated_output, reverse=True)
        return quoted[:MAX_POOLS]

    def _to_pool(self, raw: dict, params: PoolSearchParams) -> Optional[Pool]:
        """Map a listed pool, keeping it only if it trades the requested pair."""
        token_a = _inner(raw.get("token_a"))
        token_b = _inner(raw.get("token_b"))
        pool_id = _inner(raw.get("pool")) or _inner(raw.get("pool_address"))
        if not token_a or not token_b or not pool_id:
            return None

        # Orient input side first
        if same_token(token_b, params.address_in):
            token_a, token_b = token_b, token_a

        fee_rate = raw.get("fee_rate") or 0
        try:
            fee = float(fee_rate) / 10000
        except (TypeError, ValueError):
            fee = 0.0

        token_in, token_out = normalize_native(token_a), normalize_native(token_b)
        pool = Pool(
            id=str(pool_id),
            dex=params.dex,
            token_a=token_in,
            token_b=token_out,
            fee=fee,
            route=Route(type=RouteType.DIRECT, path=[token_in, token_out]),
            extra={"fee_rate": fee_rate},
        )
        return pool if self.validate_pool(pool, params) else None

    async def estimate_amount_out(
        self,
        pool: Pool,
        amount_in: int,
        slippage: float = DEFAULT_SLIPPAGE,
    ) -> AmountEstimation:
        if amount_in <= 0:
            return self._estimation(0, slippage)

        try:
            result = await self.client.view(
                f"{pool.dex.method_address}::pool_v3::get_amount_out",
                [],
                [pool.id, to_fa_address(pool.token_a), str(amount_in)],
            )
            estimated_output = int(result[0])
        except Exception as e:
            estimated_output = fallback_output(amount_in)
            logger.warning(
                f"Hyperion quote failed for pool {pool.id}, using fallback {estimated_output}: {e}"
            )
        return self._estimation(estimated_output, slippage)

    async def create_swap_transaction(self, params: SwapParams, pool: Pool) -> SwapPlan:
        validate_slippage(params.slippage)
        if not pool.id or not pool.dex.method_address:
            raise ValueError("Invalid pool information for Hyperion")

        estimation = await self.estimate_amount_out(pool, params.amount_in, params.slippage)
        min_amount_out = calculate_min_amount_out(estimation.estimated_output, params.slippage)

        fa_in = to_fa_address(params.fa_address_in or pool.token_a)
        fa_out = to_fa_address(params.fa_address_out or pool.token_b)
        router = f"{pool.dex.method_address}::router_v3"
        arguments = [
            [pool.id],
            fa_in,
            fa_out,
            str(params.amount_in),
            str(min_amount_out),
            params.to_address,
        ]

        if is_native(fa_in):
            payload = EntryFunctionPayload(
                function=f"{router}::swap_batch_coin_entry",
                type_arguments=[APT_COIN_TYPE],
                arguments=arguments,
            )
        else:
            payload = EntryFunctionPayload(function=f"{router}::swap_batch", arguments=arguments)

        transaction = await self._build(params.sender, payload)
        return SwapPlan(
            transaction=transaction,
            estimated_output=estimation.estimated_output,
            min_amount_out=min_amount_out,
        )

    def validate_pool(self, pool: Pool, params: PoolSearchParams) -> bool:
        if not params.address_in or not params.address_out:
            return False
        return pair_key(pool.token_a, pool.token_b) == pair_key(params.address_in, params.address_out)
