"""Swap workflow endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from aptoswap.api.runner import (
    ThreadNotFoundError,
    ThreadNotSuspendedError,
    WorkflowResponse,
    WorkflowRunner,
)
from aptoswap.config import get_settings
from aptoswap.workflows.state import SwapRequest, SwapState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swaps")


class StartSwapRequest(BaseModel):
    """Swap request plus the user whose wallet trades."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(..., min_length=1, description="Authenticated user id")
    fa_address_in: Optional[str] = Field(None, description="Input fungible-asset address")
    fa_address_out: Optional[str] = Field(None, description="Output fungible-asset address")
    token_address_in: Optional[str] = Field(None, description="Input coin type")
    token_address_out: Optional[str] = Field(None, description="Output coin type")
    amount_in: str = Field(..., description="Human-readable input amount")
    to_address: Optional[str] = Field(None, description="Destination (defaults to the sender)")
    slippage: Optional[float] = Field(None, description="Slippage percent (defaults from settings)")

    def to_swap_request(self) -> SwapRequest:
        data = self.model_dump(exclude={"user_id", "slippage"})
        data["slippage"] = self.slippage if self.slippage is not None else get_settings().default_slippage
        return SwapRequest(**data)


class ResumeRequest(BaseModel):
    """Answer to a pending interrupt."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(..., min_length=1, description="Authenticated user id")
    cancelled: bool = Field(default=False, description="Decline the pending action")
    selected_pool_index: Optional[int] = Field(None, description="Index of the chosen pool")

    def to_answer(self) -> dict:
        return {"cancelled": self.cancelled, "selected_pool_index": self.selected_pool_index}


def get_swap_runner(request: Request) -> WorkflowRunner:
    return request.app.state.swap_runner


async def run_or_404(coro) -> WorkflowResponse:
    """Await a runner call, mapping thread errors to HTTP errors."""
    try:
        return await coro
    except ThreadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ThreadNotSuspendedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("", response_model=WorkflowResponse)
async def start_swap(body: StartSwapRequest, runner: WorkflowRunner = Depends(get_swap_runner)):
    """Start a swap thread; returns the pool-selection interrupt or a terminal result."""
    try:
        swap_request = body.to_swap_request()
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )
    return await runner.start(SwapState(request=swap_request), user_id=body.user_id)


@router.post("/{thread_id}/resume", response_model=WorkflowResponse)
async def resume_swap(
    thread_id: str,
    body: ResumeRequest,
    runner: WorkflowRunner = Depends(get_swap_runner),
):
    """Answer the pool selection of a suspended swap."""
    return await run_or_404(runner.resume(thread_id, body.user_id, body.to_answer()))


@router.get("/{thread_id}", response_model=WorkflowResponse)
async def get_swap(thread_id: str, runner: WorkflowRunner = Depends(get_swap_runner)):
    return await run_or_404(runner.status(thread_id))
