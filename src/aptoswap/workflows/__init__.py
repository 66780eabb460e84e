"""Suspendable swap and transfer workflows built on LangGraph."""

from aptoswap.workflows.factory import create_swap_graph, create_transfer_graph
from aptoswap.workflows.resume import HumanAnswer, ResumeChannel, parse_answer
from aptoswap.workflows.state import (
    SwapPhase,
    SwapRequest,
    SwapState,
    TransferPhase,
    TransferRequest,
    TransferState,
)
from aptoswap.workflows.swap import SwapWorkflow, build_swap_graph, route_swap_flow
from aptoswap.workflows.transfer import TransferWorkflow, build_transfer_graph, route_transfer_flow

__all__ = [
    # State
    "SwapPhase",
    "SwapRequest",
    "SwapState",
    "TransferPhase",
    "TransferRequest",
    "TransferState",
    # Resumption
    "HumanAnswer",
    "ResumeChannel",
    "parse_answer",
    # Workflows
    "SwapWorkflow",
    "TransferWorkflow",
    "build_swap_graph",
    "build_transfer_graph",
    "route_swap_flow",
    "route_transfer_flow",
    "create_swap_graph",
    "create_transfer_graph",
]
