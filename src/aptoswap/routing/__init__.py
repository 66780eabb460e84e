"""Routing module for DEX pool discovery and aggregation.

Adapters:
- Hyperion: single-pool lookup on the on-chain pool registry
- PancakeSwap: direct / double-hop routing over TokenPairReserve resources
- Cellana: route discovery through Cellana's HTTP router
"""

from aptoswap.routing.aggregator import PairRequest, PoolAggregator
from aptoswap.routing.base import (
    AmountEstimation,
    DexAdapter,
    DexFunction,
    DexInfo,
    DexName,
    MatchTier,
    Pool,
    PoolSearchParams,
    Route,
    RouteType,
    SwapParams,
    SwapPlan,
    calculate_min_amount_out,
)
from aptoswap.routing.factory import (
    create_aggregator,
    create_cellana_adapter,
    create_hyperion_adapter,
    create_pancakeswap_adapter,
    is_supported,
)

__all__ = [
    # Models
    "AmountEstimation",
    "DexFunction",
    "DexInfo",
    "DexName",
    "MatchTier",
    "PairRequest",
    "Pool",
    "PoolSearchParams",
    "Route",
    "RouteType",
    "SwapParams",
    "SwapPlan",
    "calculate_min_amount_out",
    # Adapters and aggregation
    "DexAdapter",
    "PoolAggregator",
    # Factory functions
    "create_aggregator",
    "create_cellana_adapter",
    "create_hyperion_adapter",
    "create_pancakeswap_adapter",
    "is_supported",
]
