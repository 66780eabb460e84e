"""Workflow state models for swap and transfer graphs.

Both workflows keep one pydantic state object per thread, stored under a
single key of the LangGraph state so the checkpointer persists it between
suspension and resumption. Terminal states carry exactly one of result or
error.
"""

import logging
from enum import Enum
from typing import Annotated, Any, Optional

from langchain_core.messages import AnyMessage
from langgraph.graph.message import add_messages
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import TypedDict

from aptoswap.errors import ErrorCode, WorkflowError
from aptoswap.gas import GasEstimate
from aptoswap.routing.aggregator import PairRequest
from aptoswap.routing.base import DEFAULT_SLIPPAGE, MAX_SLIPPAGE, MIN_SLIPPAGE, Pool

logger = logging.getLogger(__name__)


class SwapPhase(str, Enum):
    PREPARING = "preparing"
    FIND_POOL = "findPool"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"


class TransferPhase(str, Enum):
    PREPARING = "preparing"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"


class _CamelModel(BaseModel):
    """Accepts and emits the camelCase field names hosts send."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def error_details(exc: Exception) -> tuple[str, ErrorCode]:
    """Human-readable message and code for an exception ending a workflow."""
    if isinstance(exc, WorkflowError):
        return str(exc), exc.code
    return f"Unexpected error: {type(exc).__name__}: {exc}", ErrorCode.INTERNAL


# ======================
# Swap
# ======================


class SwapRequest(_CamelModel):
    """What the user asked to trade."""

    model_config = ConfigDict(frozen=True)

    fa_address_in: Optional[str] = Field(None, description="Input fungible-asset address")
    fa_address_out: Optional[str] = Field(None, description="Output fungible-asset address")
    token_address_in: Optional[str] = Field(None, description="Input coin type")
    token_address_out: Optional[str] = Field(None, description="Output coin type")
    amount_in: str = Field(..., description="Human-readable input amount")
    to_address: Optional[str] = Field(None, description="Destination (defaults to the sender)")
    slippage: float = Field(
        default=DEFAULT_SLIPPAGE,
        ge=MIN_SLIPPAGE,
        le=MAX_SLIPPAGE,
        description="Slippage tolerance in percent",
    )

    @model_validator(mode="after")
    def _require_both_sides(self) -> "SwapRequest":
        if not (self.fa_address_in or self.token_address_in):
            raise ValueError("An input token address (FA or coin type) is required")
        if not (self.fa_address_out or self.token_address_out):
            raise ValueError("An output token address (FA or coin type) is required")
        return self

    @property
    def input_address(self) -> str:
        """Address used for balance lookups: coin type first, else FA.

        Coin type wins over FA here, unlike transfers, because the indexer
        keeps a paired coin's balance row under its coin type.
        """
        return self.token_address_in or self.fa_address_in or ""

    def to_pair_request(self) -> PairRequest:
        return PairRequest(
            fa_address_in=self.fa_address_in,
            fa_address_out=self.fa_address_out,
            token_address_in=self.token_address_in,
            token_address_out=self.token_address_out,
        )


class PreparedTransaction(_CamelModel):
    """Validated amount, balance snapshot and gas budget for a swap."""

    swap_amount: int = Field(..., description="Amount in smallest units")
    balance: int = Field(..., description="Balance at validation time")
    asset_type: str
    decimals: int = 8
    token_metadata: dict[str, Any] = Field(default_factory=dict)
    account_address: str = ""
    gas_estimate: GasEstimate


class SwapResult(_CamelModel):
    success: bool = True
    transaction_hash: str
    from_address: str
    to_address: str
    token_in: str
    token_out: str
    amount_in: str
    amount_out: int
    min_amount_out: int
    asset_type: str
    pool: dict[str, Any]
    slippage: float
    gas_estimation: dict[str, Any]
    message: str
    explorer_url: str


class SwapState(BaseModel):
    """Per-thread swap progress.

    Phase only moves forward; any failure (including cancellation) jumps to
    the error phase with a code.
    """

    phase: SwapPhase = SwapPhase.PREPARING
    request: SwapRequest
    prepared_transaction: Optional[PreparedTransaction] = None
    pools: list[Pool] = Field(default_factory=list)
    selected_pool: Optional[Pool] = None
    result: Optional[SwapResult] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (SwapPhase.COMPLETED, SwapPhase.ERROR)

    def advance(self, phase: SwapPhase, **updates: Any) -> "SwapState":
        logger.info(f"Swap phase {self.phase.value} -> {phase.value}")
        return self.model_copy(update={"phase": phase, **updates})

    def fail(self, exc: Exception) -> "SwapState":
        message, code = error_details(exc)
        return self.model_copy(
            update={
                "phase": SwapPhase.ERROR,
                "error": message,
                "error_code": code,
                "result": None,
            }
        )

    def to_event(self) -> Optional[dict]:
        """Result event for the host, or None while still in progress."""
        if self.phase == SwapPhase.COMPLETED and self.result is not None:
            return self.result.model_dump(mode="json", by_alias=True)
        if self.phase == SwapPhase.ERROR:
            return {
                "success": False,
                "error": self.error,
                "errorCode": self.error_code.value if self.error_code else None,
                "message": f"Swap failed: {self.error}",
            }
        return None


class SwapGraphState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]
    swap_state: SwapState


# ======================
# Transfer
# ======================


class TransferRequest(_CamelModel):
    model_config = ConfigDict(frozen=True)

    to_address: str = Field(..., description="Recipient account address")
    amount: str = Field(..., description="Human-readable amount")
    fa_address: Optional[str] = Field(None, description="Fungible-asset address")
    token_address: Optional[str] = Field(None, description="Coin type")


class PreparedTransfer(_CamelModel):
    transfer_amount: int
    balance: int
    asset_type: str
    decimals: int = 8
    token_standard: str = "v1"
    token_metadata: dict[str, Any] = Field(default_factory=dict)
    account_address: str
    gas_estimate: GasEstimate


class TransferResult(_CamelModel):
    success: bool = True
    transaction_hash: str
    from_address: str
    to_address: str
    amount: str
    asset_type: str
    token_name: Optional[str] = None
    symbol: Optional[str] = None
    gas_used: int
    gas_fee: dict[str, Any]
    message: str
    explorer_url: str


class TransferState(BaseModel):
    phase: TransferPhase = TransferPhase.PREPARING
    request: TransferRequest
    prepared_transaction: Optional[PreparedTransfer] = None
    result: Optional[TransferResult] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (TransferPhase.COMPLETED, TransferPhase.ERROR)

    def advance(self, phase: TransferPhase, **updates: Any) -> "TransferState":
        logger.info(f"Transfer phase {self.phase.value} -> {phase.value}")
        return self.model_copy(update={"phase": phase, **updates})

    def fail(self, exc: Exception) -> "TransferState":
        message, code = error_details(exc)
        return self.model_copy(
            update={
                "phase": TransferPhase.ERROR,
                "error": message,
                "error_code": code,
                "result": None,
            }
        )

    def to_event(self) -> Optional[dict]:
        if self.phase == TransferPhase.COMPLETED and self.result is not None:
            return self.result.model_dump(mode="json", by_alias=True)
        if self.phase == TransferPhase.ERROR:
            return {
                "success": False,
                "error": self.error,
                "errorCode": self.error_code.value if self.error_code else None,
                "message": f"Transfer failed: {self.error}",
            }
        return None


class TransferGraphState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]
    transfer_state: TransferState

