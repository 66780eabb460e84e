"""Transfer workflow endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from aptoswap.api.routes.swaps import ResumeRequest, run_or_404
from aptoswap.api.runner import WorkflowResponse, WorkflowRunner
from aptoswap.workflows.state import TransferRequest, TransferState

router = APIRouter(prefix="/transfers")


class StartTransferRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(..., min_length=1, description="Authenticated user id")
    to_address: str = Field(..., description="Recipient account address")
    amount: str = Field(..., description="Human-readable amount")
    fa_address: Optional[str] = Field(None, description="Fungible-asset address")
    token_address: Optional[str] = Field(None, description="Coin type (APT if neither is given)")

    def to_transfer_request(self) -> TransferRequest:
        return TransferRequest(**self.model_dump(exclude={"user_id"}))


def get_transfer_runner(request: Request) -> WorkflowRunner:
    return request.app.state.transfer_runner


@router.post("", response_model=WorkflowResponse)
async def start_transfer(
    body: StartTransferRequest,
    runner: WorkflowRunner = Depends(get_transfer_runner),
):
    """Start a transfer thread; returns the confirmation interrupt or an error."""
    state = TransferState(request=body.to_transfer_request())
    return await runner.start(state, user_id=body.user_id)


@router.post("/{thread_id}/resume", response_model=WorkflowResponse)
async def resume_transfer(
    thread_id: str,
    body: ResumeRequest,
    runner: WorkflowRunner = Depends(get_transfer_runner),
):
    """Confirm (or cancel with cancelled=true) a suspended transfer."""
    return await run_or_404(runner.resume(thread_id, body.user_id, body.to_answer()))


@router.get("/{thread_id}", response_model=WorkflowResponse)
async def get_transfer(thread_id: str, runner: WorkflowRunner = Depends(get_transfer_runner)):
    return await run_or_404(runner.status(thread_id))
