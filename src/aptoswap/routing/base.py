"""Abstract DEX adapter interface and routing models."""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import EntryFunctionPayload, RawTransaction
from aptoswap.errors import InvalidSlippageError
from aptoswap.tokens import canonical_key, pair_key

logger = logging.getLogger(__name__)

MIN_SLIPPAGE = 0.1
MAX_SLIPPAGE = 50.0
DEFAULT_SLIPPAGE = 0.5

# Discovery-time quote size used to rank pools before the real amount is known
PLACEHOLDER_AMOUNT_IN = 1_000_000


class DexName(str, Enum):
    HYPERION = "hyperion"
    PANCAKESWAP = "pancakeswap"
    CELLANA = "cellana"


class RouteType(str, Enum):
    DIRECT = "direct"
    DOUBLE_HOP = "double-hop"
    TRIPLE_HOP = "triple-hop"
    MULTI_HOP = "multi-hop"


class MatchTier(str, Enum):
    """How a pool's token pair was matched to the request."""

    EXACT = "exact"
    PARTIAL = "partial"


class DexFunction(BaseModel):
    """A contract function the catalog declares for a DEX."""

    model_config = ConfigDict(populate_by_name=True)

    function_type: str = Field(..., alias="functionType")
    function_name: str = Field(..., alias="functionName")
    is_active: bool = Field(default=True, alias="isActive")
    description: Optional[str] = None


class DexInfo(BaseModel):
    """DEX metadata as published by the backend catalog."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(default="", alias="displayName")
    method_address: str = Field(default="", alias="methodAddress")
    functions: list[DexFunction] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def get_function(self, function_type: str) -> Optional[DexFunction]:
        """First active function of the given type (case-insensitive)."""
        wanted = function_type.lower()
        for function in self.functions:
            if function.is_active and function.function_type.lower() == wanted:
                return function
        return None


class Route(BaseModel):
    type: RouteType
    path: list[str]

    def describe(self) -> str:
        if self.type == RouteType.DIRECT:
            return "Direct swap"
        return f"Multi-hop ({len(self.path)} tokens)"


class Pool(BaseModel):
    """One adapter's route for a token pair.

    token_a is the input side and token_b the output side, both canonical.
    Pools are rebuilt on every search and never persisted beyond the
    workflow state that offers them for selection.
    """

    id: str
    dex: DexInfo
    token_a: str
    token_b: str
    fee: float = Field(default=0.0, description="Total fee in percent")
    route: Route
    estimated_output: int = 0
    min_amount_out: int = 0
    match: MatchTier = MatchTier.EXACT
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> tuple:
        """Dedup identity: adapter, normalized pair, normalized route path."""
        return (
            self.dex.name.lower(),
            pair_key(self.token_a, self.token_b),
            tuple(canonical_key(token) for token in self.route.path),
        )

    def with_estimate(self, estimated_output: int, min_amount_out: int) -> "Pool":
        return self.model_copy(
            update={"estimated_output": estimated_output, "min_amount_out": min_amount_out}
        )


@dataclass
class AmountEstimation:
    estimated_output: int
    min_amount_out: int
    slippage: float


@dataclass
class PoolSearchParams:
    """Token pair to search, in both addressing schemes where known."""

    dex: DexInfo
    fa_address_in: str = ""
    fa_address_out: str = ""
    token_address_in: str = ""
    token_address_out: str = ""

    @property
    def address_in(self) -> str:
        return self.fa_address_in or self.token_address_in

    @property
    def address_out(self) -> str:
        return self.fa_address_out or self.token_address_out


@dataclass
class SwapParams:
    sender: str
    amount_in: int
    slippage: float
    to_address: str
    fa_address_in: str = ""
    fa_address_out: str = ""
    token_address_in: str = ""
    token_address_out: str = ""


@dataclass
class SwapPlan:
    """A built, unsigned trade and the output it was priced at."""

    transaction: RawTransaction
    estimated_output: int
    min_amount_out: int


def calculate_min_amount_out(estimated_output: int, slippage: float) -> int:
    """floor(estimated_output * (1 - slippage / 100)), computed exactly."""
    factor = 1 - Decimal(str(slippage)) / 100
    return int((Decimal(estimated_output) * factor).to_integral_value(rounding=ROUND_FLOOR))


def fallback_output(amount_in: int) -> int:
    """Deterministic estimate used when a quote cannot be computed."""
    return amount_in * 9 // 10


def validate_slippage(slippage: float) -> None:
    """Reject slippage outside [0.1, 50] percent."""
    if slippage is None or math.isnan(slippage):
        raise InvalidSlippageError("Invalid slippage. Slippage must be a number")
    if slippage < MIN_SLIPPAGE or slippage > MAX_SLIPPAGE:
        raise InvalidSlippageError(
            f"Invalid slippage value: {slippage}%. "
            f"Slippage must be between {MIN_SLIPPAGE}% and {MAX_SLIPPAGE:g}%"
        )


class DexAdapter(ABC):
    """Abstract base class for DEX adapters.

    Every operation is total for recoverable conditions: discovery returns
    an empty list and estimation a fallback (or zero) instead of raising.
    Exceptions are reserved for invalid input such as out-of-range slippage.
    """

    def __init__(self, client: AptosClient):
        self.client = client

    @property
    @abstractmethod
    def name(self) -> DexName:
        """Adapter identifier, matched against catalog DEX names."""
        pass

    @abstractmethod
    async def find_pools(self, params: PoolSearchParams) -> list[Pool]:
        """Discover candidate pools for the pair (empty if unsupported)."""
        pass

    @abstractmethod
    async def estimate_amount_out(
        self,
        pool: Pool,
        amount_in: int,
        slippage: float = DEFAULT_SLIPPAGE,
    ) -> AmountEstimation:
        """Quote amount_in (smallest units) through the pool."""
        pass

    @abstractmethod
    async def create_swap_transaction(self, params: SwapParams, pool: Pool) -> SwapPlan:
        """Build the DEX-specific trade for the selected pool."""
        pass

    @abstractmethod
    def validate_pool(self, pool: Pool, params: PoolSearchParams) -> bool:
        """Check the pool trades the requested pair."""
        pass

    def _estimation(self, estimated_output: int, slippage: float) -> AmountEstimation:
        return AmountEstimation(
            estimated_output=estimated_output,
            min_amount_out=calculate_min_amount_out(estimated_output, slippage),
            slippage=slippage,
        )

    async def _build(self, sender: str, payload: EntryFunctionPayload) -> RawTransaction:
        logger.debug(f"{self.name.value}: building {payload.function}")
        return await self.client.build_transaction(sender, payload)
