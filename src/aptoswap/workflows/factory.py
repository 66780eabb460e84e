"""Factory functions wiring workflows to their default services."""

from typing import Optional

from langgraph.checkpoint.base import BaseCheckpointSaver

from aptoswap.chain.client import AptosClient
from aptoswap.routing.factory import create_aggregator
from aptoswap.services.backend import DexCatalog, WalletService
from aptoswap.workflows.swap import SwapWorkflow, build_swap_graph
from aptoswap.workflows.transfer import TransferWorkflow, build_transfer_graph


def create_swap_graph(
    checkpointer: Optional[BaseCheckpointSaver] = None,
    client: Optional[AptosClient] = None,
):
    """Compiled swap graph over all supported DEXes."""
    client = client or AptosClient()
    workflow = SwapWorkflow(
        client=client,
        aggregator=create_aggregator(client),
        wallets=WalletService(),
        dex_catalog=DexCatalog(),
    )
    return build_swap_graph(workflow, checkpointer)


def create_transfer_graph(
    checkpointer: Optional[BaseCheckpointSaver] = None,
    client: Optional[AptosClient] = None,
):
    """Compiled transfer graph."""
    workflow = TransferWorkflow(client=client or AptosClient(), wallets=WalletService())
    return build_transfer_graph(workflow, checkpointer)
