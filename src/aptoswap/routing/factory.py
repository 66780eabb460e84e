"""Factory for creating DEX adapters and the pool aggregator."""

import logging
from typing import Callable, Optional

from aptoswap.chain.client import AptosClient
from aptoswap.config import get_settings
from aptoswap.routing.aggregator import PoolAggregator
from aptoswap.routing.base import DexAdapter, DexName

logger = logging.getLogger(__name__)


def create_hyperion_adapter(client: Optional[AptosClient] = None) -> DexAdapter:
    """Create Hyperion adapter (on-chain pool registry)."""
    from aptoswap.routing.hyperion import HyperionAdapter

    return HyperionAdapter(client or AptosClient())


def create_pancakeswap_adapter(client: Optional[AptosClient] = None) -> DexAdapter:
    """Create PancakeSwap adapter.

    Uses the process-wide pair and token-list caches.
    """
    from aptoswap.routing.pancakeswap import PancakeSwapAdapter

    return PancakeSwapAdapter(client or AptosClient())


def create_cellana_adapter(client: Optional[AptosClient] = None) -> DexAdapter:
    """Create Cellana adapter (external router service)."""
    from aptoswap.routing.cellana import CellanaAdapter

    return CellanaAdapter(client or AptosClient())


ADAPTER_FACTORIES: dict[DexName, Callable[[Optional[AptosClient]], DexAdapter]] = {
    DexName.HYPERION: create_hyperion_adapter,
    DexName.PANCAKESWAP: create_pancakeswap_adapter,
    DexName.CELLANA: create_cellana_adapter,
}


def is_supported(dex_name: str) -> bool:
    return dex_name.lower() in {name.value for name in ADAPTER_FACTORIES}


def create_aggregator(
    client: Optional[AptosClient] = None,
    dex_names: Optional[list[str]] = None,
) -> PoolAggregator:
    """Create an aggregator over the given DEXes (all supported by default).

    Args:
        client: Shared ledger client for all adapters
        dex_names: Restrict to these DEX names; unknown names are skipped
    """
    client = client or AptosClient()
    aggregator = PoolAggregator(max_pools=get_settings().max_candidate_pools)

    names = dex_names or [name.value for name in ADAPTER_FACTORIES]
    for name in names:
        if not is_supported(name):
            logger.warning(f"Unsupported DEX '{name}', skipping")
            continue
        aggregator.add_adapter(ADAPTER_FACTORIES[DexName(name.lower())](client))

    logger.info(
        f"Created pool aggregator with adapters: {[a.name.value for a in aggregator.adapters]}"
    )
    return aggregator
