"""Pool aggregation across DEX adapters.

Fans a pair search out to every adapter the catalog lists, reconciles the
coin-type and fungible-asset addressing schemes, re-quotes the survivors
for the real trade size and ranks them by estimated output.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from aptoswap.errors import NoLiquidityError
from aptoswap.routing.base import (
    DexAdapter,
    DexInfo,
    DexName,
    MatchTier,
    Pool,
    PoolSearchParams,
    calculate_min_amount_out,
)
from aptoswap.tokens import APT_COIN_TYPE, canonical_key, is_native

logger = logging.getLogger(__name__)

DEFAULT_MAX_POOLS = 5


@dataclass
class PairRequest:
    """Requested pair; each side may be known by FA address, coin type or both."""

    fa_address_in: Optional[str] = None
    fa_address_out: Optional[str] = None
    token_address_in: Optional[str] = None
    token_address_out: Optional[str] = None

    def input_keys(self) -> set[str]:
        return {canonical_key(a) for a in (self.fa_address_in, self.token_address_in) if a}

    def output_keys(self) -> set[str]:
        return {canonical_key(a) for a in (self.fa_address_out, self.token_address_out) if a}

    def describe(self) -> str:
        token_in = self.token_address_in or self.fa_address_in
        token_out = self.token_address_out or self.fa_address_out
        return f"{token_in} -> {token_out}"


def _ranking_key(pool: Pool) -> tuple:
    # Ties broken on identity so ranking never depends on adapter response order
    return (-pool.estimated_output, pool.dex.name.lower(), pool.key[2], pool.id)


class PoolAggregator:
    """Aggregates pools from multiple DEX adapters and ranks them."""

    def __init__(self, adapters: Optional[list[DexAdapter]] = None, max_pools: int = DEFAULT_MAX_POOLS):
        self.adapters: list[DexAdapter] = adapters or []
        self.max_pools = max_pools

    def add_adapter(self, adapter: DexAdapter) -> None:
        """Add a DEX adapter."""
        self.adapters.append(adapter)

    def get_adapter(self, dex_name: str) -> Optional[DexAdapter]:
        for adapter in self.adapters:
            if adapter.name.value == dex_name.lower():
                return adapter
        return None

    def search_params(self, adapter: DexAdapter, dex: DexInfo, pair: PairRequest) -> PoolSearchParams:
        """PancakeSwap works on coin types; the other DEXes on FA addresses."""
        if adapter.name == DexName.PANCAKESWAP:
            token_in = pair.token_address_in or (APT_COIN_TYPE if is_native(pair.fa_address_in) else "")
            token_out = pair.token_address_out or (APT_COIN_TYPE if is_native(pair.fa_address_out) else "")
        else:
            token_in = pair.token_address_in or ""
            token_out = pair.token_address_out or ""
        return PoolSearchParams(
            dex=dex,
            fa_address_in=pair.fa_address_in or "",
            fa_address_out=pair.fa_address_out or "",
            token_address_in=token_in,
            token_address_out=token_out,
        )

    async def _discover(self, adapter: DexAdapter, params: PoolSearchParams) -> list[Pool]:
        try:
            logger.debug(f"Requesting pools from {params.dex.label}...")
            pools = await adapter.find_pools(params)
            logger.info(f"{params.dex.label}: {len(pools)} pool(s) found")
            return pools
        except Exception as e:
            logger.warning(f"{params.dex.label} pool search failed: {type(e).__name__}: {e}")
            return []

    async def find_all_pools(self, dexes: list[DexInfo], pair: PairRequest) -> list[Pool]:
        """Concurrent discovery across supported DEXes, deduplicated."""
        searches = []
        for dex in dexes:
            adapter = self.get_adapter(dex.name)
            if adapter is None:
                logger.debug(f"No adapter for DEX {dex.name}, skipping")
                continue
            searches.append(self._discover(adapter, self.search_params(adapter, dex, pair)))

        results = await asyncio.gather(*searches)

        unique: dict[tuple, Pool] = {}
        for pools in results:
            for pool in pools:
                unique.setdefault(pool.key, pool)
        return list(unique.values())

    @staticmethod
    def strict_matches(pools: list[Pool], pair: PairRequest) -> list[Pool]:
        """Pools whose pair equals the request under either addressing scheme per side."""
        inputs, outputs = pair.input_keys(), pair.output_keys()
        matched = []
        for pool in pools:
            key_a, key_b = canonical_key(pool.token_a), canonical_key(pool.token_b)
            if (key_a in inputs and key_b in outputs) or (key_a in outputs and key_b in inputs):
                matched.append(pool)
        return matched

    @staticmethod
    def partial_matches(pools: list[Pool], pair: PairRequest) -> list[Pool]:
        """Substring containment match, labeled as partial.

        Best effort only: short or prefix-overlapping addresses can match
        unrelated pools, which is why results carry MatchTier.PARTIAL.
        """
        requested = [
            address.lower()
            for address in (
                pair.fa_address_in,
                pair.fa_address_out,
                pair.token_address_in,
                pair.token_address_out,
            )
            if address
        ]
        matched = []
        for pool in pools:
            tokens = [token.lower() for token in (pool.token_a, pool.token_b) if token]
            if any(req in token or token in req for req in requested for token in tokens):
                matched.append(pool.model_copy(update={"match": MatchTier.PARTIAL}))
        return matched

    async def _quote(self, pool: Pool, amount_in: int, slippage: float) -> Pool:
        adapter = self.get_adapter(pool.dex.name)
        estimated_output = 0
        if adapter is not None:
            try:
                estimation = await adapter.estimate_amount_out(pool, amount_in, slippage)
                estimated_output = estimation.estimated_output
            except Exception as e:
                logger.warning(f"{pool.dex.label} re-quote failed for pool {pool.id}: {e}")
        return pool.with_estimate(estimated_output, calculate_min_amount_out(estimated_output, slippage))

    async def aggregate(
        self,
        dexes: list[DexInfo],
        pair: PairRequest,
        amount_in: int,
        slippage: float,
    ) -> list[Pool]:
        """Rank the best pools for trading amount_in across all DEXes.

        Raises:
            NoLiquidityError: If no pool quotes a positive output
        """
        logger.info(f"Aggregating pools: {amount_in} {pair.describe()} (slippage {slippage}%)")
        discovered = await self.find_all_pools(dexes, pair)
        if not discovered:
            raise NoLiquidityError(f"No pools found for {pair.describe()} on any supported DEX")

        candidates = self.strict_matches(discovered, pair)
        if not candidates:
            candidates = self.partial_matches(discovered, pair)
            if candidates:
                logger.warning(
                    f"No exact pair match for {pair.describe()}; "
                    f"falling back to {len(candidates)} partial match(es)"
                )

        quoted = await asyncio.gather(*(self._quote(pool, amount_in, slippage) for pool in candidates))
        ranked = sorted((pool for pool in quoted if pool.estimated_output > 0), key=_ranking_key)
        ranked = ranked[: self.max_pools]

        if not ranked:
            raise NoLiquidityError("No pools with valid estimated output found")

        best = ranked[0]
        logger.info(
            f"Found {len(ranked)} pool(s) for {pair.describe()}. "
            f"Best: {best.dex.label} ({best.estimated_output})"
        )
        return ranked
