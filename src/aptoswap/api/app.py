"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aptoswap.api.runner import WorkflowRunner
from aptoswap.config import get_settings
from aptoswap.services.backend import TokenCatalog
from aptoswap.workflows.factory import create_swap_graph, create_transfer_graph
from aptoswap.workflows.state import SwapState, TransferState


def create_app(swap_graph=None, transfer_graph=None, token_catalog=None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        swap_graph: Compiled swap graph (default services if omitted)
        transfer_graph: Compiled transfer graph (default services if omitted)
        token_catalog: Backend token catalog client
    """
    settings = get_settings()

    app = FastAPI(
        title="Aptoswap API",
        description="Aptos swap and transfer workflows with human-in-the-loop confirmation",
        version="0.1.0",
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if swap_graph is None:
        swap_graph = create_swap_graph()
    if transfer_graph is None:
        transfer_graph = create_transfer_graph()

    app.state.swap_runner = WorkflowRunner(swap_graph, "swap_state", SwapState)
    app.state.transfer_runner = WorkflowRunner(transfer_graph, "transfer_state", TransferState)
    app.state.token_catalog = token_catalog or TokenCatalog()

    # Register routes
    from aptoswap.api.routes import health, swaps, tokens, transfers

    app.include_router(health.router, tags=["Health"])
    app.include_router(swaps.router, tags=["Swaps"])
    app.include_router(transfers.router, tags=["Transfers"])
    app.include_router(tokens.router, tags=["Tokens"])

    return app


# Default app instance
app = create_app()
