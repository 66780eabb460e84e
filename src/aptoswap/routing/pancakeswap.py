"""PancakeSwap (Aptos) adapter.

PancakeSwap on Aptos is a Uniswap-v2 style AMM addressed by legacy coin
types. Pairs live as TokenPairReserve<X, Y> resources (X < Y) under the
DEX resource account, so pair existence and reserves are plain resource
reads. Routes are a direct pair or, failing that, the first token-list
intermediate that has a pair on both legs.
"""

import logging
from typing import Optional

import httpx

from aptoswap.cache import TTLCache, get_pair_cache, get_token_list_cache
from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import EntryFunctionPayload
from aptoswap.config import get_settings
from aptoswap.routing.base import (
    DEFAULT_SLIPPAGE,
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
from aptoswap.tokens import canonical_key, normalize_native, pair_key, sort_pair

logger = logging.getLogger(__name__)

FEE_DENOMINATOR = 10_000
DEFAULT_FEE_BPS = 25  # 0.25%

ROUTER_FUNCTIONS = {
    RouteType.DIRECT: "swap_exact_input",
    RouteType.DOUBLE_HOP: "swap_exact_input_doublehop",
    RouteType.TRIPLE_HOP: "swap_exact_input_triplehop",
}

TOKEN_LIST_CACHE_KEY = "pancakeswap:tokens"


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """Constant-product output after the proportional fee, in integer math.

    Raises:
        ValueError: On a non-positive input or an empty reserve
    """
    if amount_in <= 0:
        raise ValueError("ERROR_INSUFFICIENT_INPUT_AMOUNT")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError("ERROR_INSUFFICIENT_LIQUIDITY")

    amount_in_with_fee = amount_in * (FEE_DENOMINATOR - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


class PancakeSwapAdapter(DexAdapter):
    """Path-routed adapter over cached pair lookups."""

    def __init__(
        self,
        client: AptosClient,
        token_list_url: Optional[str] = None,
        pair_cache: Optional[TTLCache] = None,
        token_list_cache: Optional[TTLCache] = None,
        fee_bps: int = DEFAULT_FEE_BPS,
    ):
        super().__init__(client)
        self.token_list_url = token_list_url or get_settings().pancakeswap_token_list_url
        self.pair_cache = pair_cache if pair_cache is not None else get_pair_cache()
        self.token_list_cache = token_list_cache if token_list_cache is not None else get_token_list_cache()
        self.fee_bps = fee_bps

    @property
    def name(self) -> DexName:
        return DexName.PANCAKESWAP

    # ------------------------------------------------------------------
    # Token list
    # ------------------------------------------------------------------

    async def get_token_list(self) -> list[dict]:
        """PancakeSwap's published Aptos token list (empty on failure)."""
        cached = self.token_list_cache.get(TOKEN_LIST_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(self.token_list_url)
                response.raise_for_status()
                tokens = response.json().get("tokens", [])
        except Exception as e:
            logger.warning(f"PancakeSwap token list unavailable: {type(e).__name__}: {e}")
            return []

        self.token_list_cache.set(TOKEN_LIST_CACHE_KEY, tokens)
        return tokens

    async def is_token_supported(self, address: str) -> bool:
        key = canonical_key(address)
        tokens = await self.get_token_list()
        return any(canonical_key(token.get("address")) == key for token in tokens)

    async def _intermediates(self, token_in: str, token_out: str) -> list[str]:
        excluded = {canonical_key(token_in), canonical_key(token_out)}
        seen: set[str] = set()
        candidates = []
        for token in await self.get_token_list():
            address = normalize_native(token.get("address"))
            key = canonical_key(address)
            if not address or key in excluded or key in seen:
                continue
            seen.add(key)
            candidates.append(address)
        return candidates

    # ------------------------------------------------------------------
    # Pair resources
    # ------------------------------------------------------------------

    @staticmethod
    def _pair_cache_key(resource_account: str, token_a: str, token_b: str) -> str:
        x, y = sort_pair(token_a, token_b)
        return f"{resource_account}_{x}_{y}"

    @staticmethod
    def _reserve_type(resource_account: str, token_a: str, token_b: str) -> str:
        x, y = sort_pair(token_a, token_b)
        return f"{resource_account}::swap::TokenPairReserve<{x}, {y}>"

    def _cache_reserves(self, resource_account: str, token_a: str, token_b: str, resource: dict) -> dict:
        data = resource.get("data") or {}
        if "reserve_x" not in data or "reserve_y" not in data:
            raise ValueError("Malformed TokenPairReserve resource: missing reserve_x or reserve_y")
        reserves = {"reserve_x": int(data["reserve_x"]), "reserve_y": int(data["reserve_y"])}
        self.pair_cache.set(self._pair_cache_key(resource_account, token_a, token_b), reserves)
        return reserves

    async def pair_exists(self, resource_account: str, token_a: str, token_b: str) -> bool:
        """Whether a pair resource exists (cached, failures count as absent)."""
        key = f"exists_{self._pair_cache_key(resource_account, token_a, token_b)}"
        cached = self.pair_cache.get(key)
        if cached is not None:
            return cached

        try:
            resource = await self.client.get_account_resource(
                resource_account, self._reserve_type(resource_account, token_a, token_b)
            )
        except Exception as e:
            logger.debug(f"PancakeSwap pair check failed for {token_a} <-> {token_b}: {e}")
            return False

        exists = resource is not None
        self.pair_cache.set(key, exists)
        if resource is not None:
            try:
                self._cache_reserves(resource_account, token_a, token_b, resource)
            except ValueError as e:
                logger.debug(f"PancakeSwap: reserves not cached: {e}")
        return exists

    async def get_reserves(self, resource_account: str, token_in: str, token_out: str) -> tuple[int, int]:
        """(reserve_in, reserve_out) oriented to the trade direction.

        Raises:
            LookupError: If the pair does not exist
            ValueError: If the resource is malformed
        """
        reserves = self.pair_cache.get(self._pair_cache_key(resource_account, token_in, token_out))
        if reserves is None:
            resource = await self.client.get_account_resource(
                resource_account, self._reserve_type(resource_account, token_in, token_out)
            )
            if resource is None:
                raise LookupError(
                    f"TokenPairReserve not found for {token_in} <-> {token_out}. "
                    f"This pair might not exist on PancakeSwap."
                )
            reserves = self._cache_reserves(resource_account, token_in, token_out, resource)

        x, _ = sort_pair(token_in, token_out)
        if normalize_native(token_in) == x:
            return reserves["reserve_x"], reserves["reserve_y"]
        return reserves["reserve_y"], reserves["reserve_x"]

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def find_route(self, resource_account: str, token_in: str, token_out: str) -> Optional[Route]:
        """Direct pair first, else the first single-intermediate path."""
        token_in, token_out = normalize_native(token_in), normalize_native(token_out)

        if await self.pair_exists(resource_account, token_in, token_out):
            return Route(type=RouteType.DIRECT, path=[token_in, token_out])

        for intermediate in await self._intermediates(token_in, token_out):
            if await self.pair_exists(resource_account, token_in, intermediate) and await self.pair_exists(
                resource_account, intermediate, token_out
            ):
                logger.debug(f"PancakeSwap: routing {token_in} -> {token_out} via {intermediate}")
                return Route(type=RouteType.DOUBLE_HOP, path=[token_in, intermediate, token_out])

        return None

    async def find_pools(self, params: PoolSearchParams) -> list[Pool]:
        resource_account = params.dex.method_address
        token_in, token_out = params.token_address_in, params.token_address_out
        if not resource_account or not token_in or not token_out:
            return []

        if not await self.is_token_supported(token_in):
            logger.debug(f"PancakeSwap: token {token_in} is not supported")
            return []
        if not await self.is_token_supported(token_out):
            logger.debug(f"PancakeSwap: token {token_out} is not supported")
            return []

        try:
            route = await self.find_route(resource_account, token_in, token_out)
        except Exception as e:
            logger.warning(f"PancakeSwap routing failed: {type(e).__name__}: {e}")
            return []
        if route is None:
            return []

        return [
            Pool(
                id=resource_account,
                dex=params.dex,
                token_a=normalize_native(token_in),
                token_b=normalize_native(token_out),
                fee=self.fee_bps / 100,
                route=route,
                extra={"resource_account": resource_account},
            )
        ]

    async def estimate_amount_out(
        self,
        pool: Pool,
        amount_in: int,
        slippage: float = DEFAULT_SLIPPAGE,
    ) -> AmountEstimation:
        resource_account = pool.dex.method_address
        path = pool.route.path

        try:
            if pool.route.type not in ROUTER_FUNCTIONS or len(path) < 2:
                logger.warning(f"PancakeSwap: unsupported route {pool.route.type.value}, using fallback")
                return self._estimation(fallback_output(amount_in), slippage)

            amount = amount_in
            for hop_in, hop_out in zip(path, path[1:]):
                reserve_in, reserve_out = await self.get_reserves(resource_account, hop_in, hop_out)
                amount = get_amount_out(amount, reserve_in, reserve_out, self.fee_bps)
            return self._estimation(amount, slippage)
        except Exception as e:
            estimated_output = fallback_output(amount_in)
            logger.warning(f"PancakeSwap quote failed, using fallback {estimated_output}: {e}")
            return self._estimation(estimated_output, slippage)

    async def create_swap_transaction(self, params: SwapParams, pool: Pool) -> SwapPlan:
        validate_slippage(params.slippage)
        function = ROUTER_FUNCTIONS.get(pool.route.type)
        if function is None:
            raise ValueError(f"Unsupported PancakeSwap route type: {pool.route.type.value}")

        estimation = await self.estimate_amount_out(pool, params.amount_in, params.slippage)
        min_amount_out = calculate_min_amount_out(estimation.estimated_output, params.slippage)

        payload = EntryFunctionPayload(
            function=f"{pool.dex.method_address}::router::{function}",
            type_arguments=list(pool.route.path),
            arguments=[str(params.amount_in), str(min_amount_out)],
        )
        transaction = await self._build(params.sender, payload)
        return SwapPlan(
            transaction=transaction,
            estimated_output=estimation.estimated_output,
            min_amount_out=min_amount_out,
        )

    def validate_pool(self, pool: Pool, params: PoolSearchParams) -> bool:
        if not params.token_address_in or not params.token_address_out:
            return False
        return pair_key(pool.token_a, pool.token_b) == pair_key(
            params.token_address_in, params.token_address_out
        )
