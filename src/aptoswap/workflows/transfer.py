"""Transfer workflow: prepare, confirm with the user, execute."""

import logging
from typing import Optional

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import MemorySaver
from langgraph.errors import GraphInterrupt
from langgraph.graph import END, START, StateGraph

from aptoswap.chain.account import Account
from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import (
    EntryFunctionPayload,
    transfer_coin_payload,
    transfer_fungible_asset_payload,
)
from aptoswap.config import Settings, get_settings
from aptoswap.errors import (
    InsufficientBalanceError,
    InvalidRequestError,
    UserCancelledError,
    WorkflowError,
)
from aptoswap.gas import GasEstimator, calculate_gas_fee
from aptoswap.services.backend import WalletService
from aptoswap.tokens import (
    APT_COIN_TYPE,
    format_amount,
    normalize_native,
    parse_amount,
    to_fa_address,
    to_smallest_unit,
)
from aptoswap.workflows.common import (
    ensure_signer,
    extract_user_id,
    get_balance_row,
    load_account,
    row_decimals,
    row_metadata,
    submit_and_wait,
)
from aptoswap.workflows.resume import ResumeChannel, interrupt_payload
from aptoswap.workflows.state import (
    PreparedTransfer,
    TransferGraphState,
    TransferPhase,
    TransferRequest,
    TransferResult,
    TransferState,
)

logger = logging.getLogger(__name__)

CONFIRM_ACTION = "Transfer Confirmation"
FUNGIBLE_ASSET_STANDARD = "v2"


def transfer_payload(
    asset_type: str, to_address: str, amount: int, token_standard: str
) -> EntryFunctionPayload:
    """FA transfers for v2 assets, coin transfers otherwise.

    APT is addressed as 0xa on the FA path and as its coin type on the coin
    path, whichever alias the request used.
    """
    if token_standard == FUNGIBLE_ASSET_STANDARD:
        return transfer_fungible_asset_payload(to_fa_address(asset_type), to_address, amount)
    return transfer_coin_payload(normalize_native(asset_type), to_address, amount)


def confirmation_description(
    request: TransferRequest, prepared: PreparedTransfer, network: str
) -> str:
    metadata = prepared.token_metadata
    name = metadata.get("name") or "Unknown Token"
    symbol = metadata.get("symbol") or "N/A"
    kind = "fungible_asset" if prepared.token_standard == FUNGIBLE_ASSET_STANDARD else "coin"
    gas = prepared.gas_estimate
    return (
        "**Token Details:**\n"
        f"- **Token:** [{symbol} ({name})](https://explorer.aptoslabs.com/{kind}/"
        f"{prepared.asset_type}?network={network})\n"
        f"- **Amount:** {request.amount}\n\n"
        "**Transaction Details:**\n"
        f"- **From:** {prepared.account_address}\n"
        f"- **To:** {request.to_address}\n"
        f"- **Network:** {network}\n"
        f"- **Estimated Gas:** {gas.total_cost:.6f} APT\n"
        f"- **Max Gas Cost:** {gas.max_cost:.6f} APT\n\n"
        "**Please review all details carefully before proceeding.**\n\n"
        "Click **Accept** to execute the transfer or **Ignore** to cancel."
    )


class TransferWorkflow:
    """Nodes of the transfer graph."""

    def __init__(
        self,
        client: AptosClient,
        wallets: WalletService,
        gas_estimator: Optional[GasEstimator] = None,
        resume_channel: Optional[ResumeChannel] = None,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.wallets = wallets
        self.gas_estimator = gas_estimator or GasEstimator(client)
        self.resume_channel = resume_channel or ResumeChannel()
        self.settings = settings or get_settings()

    async def _guarded(self, transfer_state: TransferState, step) -> dict:
        try:
            return {"transfer_state": await step}
        except GraphInterrupt:
            raise
        except WorkflowError as e:
            logger.error(f"Transfer failed in phase {transfer_state.phase.value}: {e}")
            return {"transfer_state": transfer_state.fail(e)}
        except Exception as e:
            logger.exception(f"Unexpected transfer failure in phase {transfer_state.phase.value}")
            return {"transfer_state": transfer_state.fail(e)}

    async def prepare_transfer(self, state: TransferGraphState, config: RunnableConfig) -> dict:
        transfer_state = state["transfer_state"]
        return await self._guarded(transfer_state, self._prepare(transfer_state, config))

    async def confirm_transfer(self, state: TransferGraphState, config: RunnableConfig) -> dict:
        transfer_state = state["transfer_state"]
        return await self._guarded(transfer_state, self._confirm(transfer_state))

    async def execute_transfer(self, state: TransferGraphState, config: RunnableConfig) -> dict:
        transfer_state = state["transfer_state"]
        return await self._guarded(transfer_state, self._execute(transfer_state, config))

    async def _prepare(self, transfer_state: TransferState, config: RunnableConfig) -> TransferState:
        request = transfer_state.request
        asset_type = request.fa_address or request.token_address or APT_COIN_TYPE
        user_id = extract_user_id(config)

        if not request.to_address or not request.to_address.startswith("0x"):
            raise InvalidRequestError(f"Invalid toAddress provided: {request.to_address!r}")
        amount = parse_amount(request.amount)

        account = await load_account(self.wallets, user_id)
        row = await get_balance_row(self.client, account.address, asset_type)
        if not row or not row.get("amount"):
            raise InsufficientBalanceError("Token not found or insufficient balance")

        balance = int(row["amount"])
        decimals = row_decimals(row, asset_type)
        transfer_amount = to_smallest_unit(amount, decimals)
        if transfer_amount <= 0:
            raise InvalidRequestError(f"Invalid amount: {request.amount} is below the token's smallest unit")
        if transfer_amount > balance:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {format_amount(balance, decimals)}, "
                f"Required: {request.amount}"
            )

        token_standard = row.get("token_standard") or "v1"
        transaction = await self.client.build_transaction(
            account.address,
            transfer_payload(asset_type, request.to_address, transfer_amount, token_standard),
        )
        gas_estimate = await self.gas_estimator.estimate(transaction, account.public_key_hex)

        return transfer_state.advance(
            TransferPhase.CONFIRMING,
            prepared_transaction=PreparedTransfer(
                transfer_amount=transfer_amount,
                balance=balance,
                asset_type=asset_type,
                decimals=decimals,
                token_standard=token_standard,
                token_metadata=row_metadata(row),
                account_address=account.address,
                gas_estimate=gas_estimate,
            ),
        )

    async def _confirm(self, transfer_state: TransferState) -> TransferState:
        request, prepared = transfer_state.request, transfer_state.prepared_transaction
        if prepared is None:
            raise InvalidRequestError("No prepared transaction found for confirmation")

        metadata = prepared.token_metadata
        args = {
            **request.model_dump(mode="json", by_alias=True),
            "tokenInfo": {
                "name": metadata.get("name") or "Unknown Token",
                "symbol": metadata.get("symbol"),
                "type": prepared.asset_type,
            },
            "gasEstimate": prepared.gas_estimate.model_dump(mode="json"),
            "fromAddress": prepared.account_address,
        }
        description = confirmation_description(request, prepared, self.settings.aptos_network)

        answer = self.resume_channel.ask(interrupt_payload(CONFIRM_ACTION, args, description))
        if answer.cancelled:
            raise UserCancelledError("User cancelled the transfer")
        return transfer_state.advance(TransferPhase.EXECUTING)

    async def _execute(self, transfer_state: TransferState, config: RunnableConfig) -> TransferState:
        request, prepared = transfer_state.request, transfer_state.prepared_transaction
        if prepared is None:
            raise InvalidRequestError("No prepared transaction found for execution")

        account: Account = await load_account(self.wallets, extract_user_id(config))
        ensure_signer(account, prepared.account_address)
        transaction = await self.client.build_transaction(
            account.address,
            transfer_payload(
                prepared.asset_type,
                request.to_address,
                prepared.transfer_amount,
                prepared.token_standard,
            ),
        )
        executed = await submit_and_wait(self.client, transaction, account)
        tx_hash = executed["hash"]

        gas_fee = calculate_gas_fee(executed)
        name = prepared.token_metadata.get("name")
        result = TransferResult(
            transaction_hash=tx_hash,
            from_address=account.address,
            to_address=request.to_address,
            amount=request.amount,
            asset_type=prepared.asset_type,
            token_name=name,
            symbol=prepared.token_metadata.get("symbol"),
            gas_used=gas_fee["gas_used"],
            gas_fee=gas_fee,
            message=(
                f"{name or 'Token'} transfer completed successfully! "
                f"Gas fee: {gas_fee['gas_fee_formatted']}"
            ),
            explorer_url=self.settings.explorer_url(tx_hash),
        )
        logger.info(f"Transfer completed: {tx_hash}")
        return transfer_state.advance(TransferPhase.COMPLETED, result=result)


def route_transfer_flow(state: TransferGraphState) -> str:
    phase = state["transfer_state"].phase
    if phase == TransferPhase.PREPARING:
        return "prepare_transfer"
    if phase == TransferPhase.CONFIRMING:
        return "confirm_transfer"
    if phase == TransferPhase.EXECUTING:
        return "execute_transfer"
    return END


def build_transfer_graph(
    workflow: TransferWorkflow,
    checkpointer: Optional[BaseCheckpointSaver] = None,
):
    graph_builder = StateGraph(TransferGraphState)
    graph_builder.add_node("prepare_transfer", workflow.prepare_transfer)
    graph_builder.add_node("confirm_transfer", workflow.confirm_transfer)
    graph_builder.add_node("execute_transfer", workflow.execute_transfer)

    destinations = ["prepare_transfer", "confirm_transfer", "execute_transfer", END]
    graph_builder.add_conditional_edges(START, route_transfer_flow, destinations)
    for node in ("prepare_transfer", "confirm_transfer", "execute_transfer"):
        graph_builder.add_conditional_edges(node, route_transfer_flow, destinations)

    return graph_builder.compile(checkpointer=checkpointer or MemorySaver())
