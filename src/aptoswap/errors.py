"""Workflow error taxonomy.

Every error a workflow can end in derives from WorkflowError and carries an
ErrorCode so hosts can tell validation failures, missing liquidity, failed
execution and user cancellation apart. Suspension is not modelled here: it
is LangGraph's GraphInterrupt and must never be caught by these handlers.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable reason attached to a terminal error phase."""

    VALIDATION = "validation"
    NO_LIQUIDITY = "no_liquidity"
    EXECUTION = "execution"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class WorkflowError(Exception):
    """Base class for errors that terminate a workflow."""

    code = ErrorCode.INTERNAL


class InvalidRequestError(WorkflowError):
    """Bad or missing request fields."""

    code = ErrorCode.VALIDATION


class InsufficientBalanceError(InvalidRequestError):
    """Requested amount exceeds the spendable balance."""


class InvalidSlippageError(InvalidRequestError):
    """Slippage outside the range accepted by DEX adapters."""


class InvalidSelectionError(InvalidRequestError):
    """Pool selection answer is not a valid index into the candidates."""


class NoLiquidityError(WorkflowError):
    """No adapter produced a pool with a positive estimated output."""

    code = ErrorCode.NO_LIQUIDITY


class ExecutionError(WorkflowError):
    """Signing, submission or finality failure."""

    code = ErrorCode.EXECUTION


class WalletNotFoundError(ExecutionError):
    """Wallet service has no signing material for the user."""


class TransactionFailedError(ExecutionError):
    """Transaction was committed but the VM reported failure."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, vm_status: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.vm_status = vm_status


class UserCancelledError(WorkflowError):
    """User declined at a suspension point."""

    code = ErrorCode.CANCELLED
