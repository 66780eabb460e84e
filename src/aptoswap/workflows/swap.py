"""Swap workflow: prepare, find pools, let the user pick one, execute.

Graph: prepare_swap -> find_pool -> select_pool -> execute_swap, with
route_swap_flow sending each node to the next one by phase. select_pool
suspends through the ResumeChannel when no answer is already available.
"""

import logging
from typing import Optional

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import MemorySaver
from langgraph.errors import GraphInterrupt
from langgraph.graph import END, START, StateGraph

from aptoswap.chain.account import Account
from aptoswap.chain.client import AptosClient
from aptoswap.config import Settings, get_settings
from aptoswap.errors import (
    ExecutionError,
    InsufficientBalanceError,
    InvalidRequestError,
    InvalidSelectionError,
    UserCancelledError,
    WorkflowError,
)
from aptoswap.gas import GasEstimate, GasEstimator
from aptoswap.routing.aggregator import PoolAggregator
from aptoswap.routing.base import DexName, MatchTier, Pool, SwapParams
from aptoswap.services.backend import DexCatalog, WalletService
from aptoswap.tokens import (
    APT_COIN_TYPE,
    APT_DECIMALS,
    format_amount,
    get_token_by_asset_type,
    get_token_symbol,
    is_native,
    parse_amount,
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
    PreparedTransaction,
    SwapGraphState,
    SwapPhase,
    SwapRequest,
    SwapResult,
    SwapState,
)

logger = logging.getLogger(__name__)

SELECT_POOL_ACTION = "Select Pool"


def _output_token(pool: Pool) -> tuple[str, int]:
    """Symbol and decimals of the pool's output side."""
    token = get_token_by_asset_type(pool.token_b)
    return get_token_symbol(pool.token_b), token.decimals if token else APT_DECIMALS


def describe_pool(index: int, pool: Pool, slippage: float) -> str:
    symbol, decimals = _output_token(pool)
    lines = [f"Pool {index}: {pool.dex.label}"]
    if pool.estimated_output:
        lines.append(
            f"Estimated output: {format_amount(pool.estimated_output, decimals)} {symbol} "
            f"(Min: {format_amount(pool.min_amount_out, decimals)} {symbol} "
            f"with {slippage}% slippage)"
        )
    lines.append(f"Route: {pool.route.describe()}")
    lines.append(f"Fee: {pool.fee:g}%")
    if pool.match == MatchTier.PARTIAL:
        lines.append("Note: partial token match, verify the pair before accepting")
    return "\n".join(lines)


def selection_description(pools: list[Pool], slippage: float) -> str:
    pools_text = "\n\n".join(describe_pool(i, pool, slippage) for i, pool in enumerate(pools))
    return (
        "Please select a pool to proceed with the swap. You can also ignore to cancel the swap.\n\n"
        f"Slippage Protection: {slippage}% (This protects you from price changes between "
        "transaction submission and execution)\n\n"
        f"Available Pools:\n{pools_text}\n\n"
        "**Direct swaps** are usually faster and have lower fees, while **Multi-hop swaps** "
        "go through intermediate tokens for better liquidity."
    )


def validate_selection(index, pool_count: int) -> int:
    """Selected index as an int within range.

    Raises:
        InvalidSelectionError: For non-integer or out-of-range values
    """
    valid = isinstance(index, int) and not isinstance(index, bool) and 0 <= index < pool_count
    if not valid:
        raise InvalidSelectionError(
            f"Invalid pool selection: selected_pool_index {index} is out of range "
            f"(0-{pool_count - 1})"
        )
    return index


def swap_params(request: SwapRequest, sender: str, amount_in: int) -> SwapParams:
    """Adapter parameters; coin-type sides fall back to AptosCoin for native APT."""

    def coin_side(token_address: Optional[str], fa_address: Optional[str]) -> str:
        if token_address:
            return token_address
        return APT_COIN_TYPE if is_native(fa_address) else ""

    return SwapParams(
        sender=sender,
        amount_in=amount_in,
        slippage=request.slippage,
        to_address=request.to_address or sender,
        fa_address_in=request.fa_address_in or "",
        fa_address_out=request.fa_address_out or "",
        token_address_in=coin_side(request.token_address_in, request.fa_address_in),
        token_address_out=coin_side(request.token_address_out, request.fa_address_out),
    )


def pool_side_addresses(request: SwapRequest, pool: Pool) -> tuple[str, str]:
    """Token identifiers in the addressing scheme the pool's DEX trades in."""
    if pool.dex.name.lower() == DexName.PANCAKESWAP.value:
        return (
            request.token_address_in or request.fa_address_in or "",
            request.token_address_out or request.fa_address_out or "",
        )
    return (
        request.fa_address_in or request.token_address_in or "",
        request.fa_address_out or request.token_address_out or "",
    )


class SwapWorkflow:
    """Nodes of the swap graph and the services they use."""

    def __init__(
        self,
        client: AptosClient,
        aggregator: PoolAggregator,
        wallets: WalletService,
        dex_catalog: DexCatalog,
        gas_estimator: Optional[GasEstimator] = None,
        resume_channel: Optional[ResumeChannel] = None,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.aggregator = aggregator
        self.wallets = wallets
        self.dex_catalog = dex_catalog
        self.gas_estimator = gas_estimator or GasEstimator(client)
        self.resume_channel = resume_channel or ResumeChannel()
        self.settings = settings or get_settings()

    async def _guarded(self, swap_state: SwapState, step) -> dict:
        """Run a node body; failures become the error phase, interrupts propagate."""
        try:
            return {"swap_state": await step}
        except GraphInterrupt:
            raise
        except WorkflowError as e:
            logger.error(f"Swap failed in phase {swap_state.phase.value}: {e}")
            return {"swap_state": swap_state.fail(e)}
        except Exception as e:
            logger.exception(f"Unexpected swap failure in phase {swap_state.phase.value}")
            return {"swap_state": swap_state.fail(e)}

    # ======================
    # Nodes
    # ======================

    async def prepare_swap(self, state: SwapGraphState, config: RunnableConfig) -> dict:
        swap_state = state["swap_state"]
        return await self._guarded(swap_state, self._prepare(swap_state, config))

    async def find_pool(self, state: SwapGraphState, config: RunnableConfig) -> dict:
        swap_state = state["swap_state"]
        return await self._guarded(swap_state, self._find_pools(swap_state))

    async def select_pool(self, state: SwapGraphState, config: RunnableConfig) -> dict:
        swap_state = state["swap_state"]
        messages = state.get("messages") or []
        return await self._guarded(swap_state, self._select(swap_state, config, messages))

    async def execute_swap(self, state: SwapGraphState, config: RunnableConfig) -> dict:
        swap_state = state["swap_state"]
        return await self._guarded(swap_state, self._execute(swap_state, config))

    # ======================
    # Steps
    # ======================

    async def _prepare(self, swap_state: SwapState, config: RunnableConfig) -> SwapState:
        request = swap_state.request
        account = await load_account(self.wallets, extract_user_id(config))

        asset_type = request.input_address
        row = await get_balance_row(self.client, account.address, asset_type)
        if not row or not row.get("amount"):
            raise InsufficientBalanceError(
                f"Input token not found or insufficient balance: {asset_type}"
            )

        balance = int(row["amount"])
        decimals = row_decimals(row, asset_type)
        amount = parse_amount(request.amount_in)
        swap_amount = to_smallest_unit(amount, decimals)
        if swap_amount <= 0:
            raise InvalidRequestError(
                f"Invalid swap amount: {request.amount_in} is below the token's smallest unit"
            )
        if swap_amount > balance:
            raise InsufficientBalanceError(
                "Insufficient balance. "
                f"Balance: {format_amount(balance, decimals)}, "
                f"Swap Amount: {amount:.{decimals}f}"
            )

        gas_estimate = await self.gas_estimator.estimate_network_gas(account)
        logger.info(f"Prepared swap of {swap_amount} units of {asset_type} for {account.address}")

        return swap_state.advance(
            SwapPhase.FIND_POOL,
            prepared_transaction=PreparedTransaction(
                swap_amount=swap_amount,
                balance=balance,
                asset_type=asset_type,
                decimals=decimals,
                token_metadata=row_metadata(row),
                account_address=account.address,
                gas_estimate=gas_estimate,
            ),
        )

    async def _find_pools(self, swap_state: SwapState) -> SwapState:
        prepared = swap_state.prepared_transaction
        if prepared is None:
            raise InvalidRequestError("No prepared transaction found for pool search")

        dexes = await self.dex_catalog.get_dexes()
        pools = await self.aggregator.aggregate(
            dexes,
            swap_state.request.to_pair_request(),
            prepared.swap_amount,
            swap_state.request.slippage,
        )
        # Phase stays findPool until a pool is chosen
        return swap_state.model_copy(update={"pools": pools})

    async def _select(self, swap_state: SwapState, config: RunnableConfig, messages) -> SwapState:
        pools = swap_state.pools
        prepared = swap_state.prepared_transaction
        if not pools or prepared is None:
            raise InvalidRequestError("No pools available for selection")

        slippage = swap_state.request.slippage
        payload = interrupt_payload(
            SELECT_POOL_ACTION,
            {"pools": [pool.model_dump(mode="json") for pool in pools]},
            selection_description(pools, slippage),
        )
        answer = self.resume_channel.resolve(payload, config, messages)
        if answer.cancelled:
            raise UserCancelledError("User cancelled pool selection")

        index = validate_selection(answer.selected_pool_index, len(pools))
        selected = pools[index]
        logger.info(
            f"Selected pool {index}: {selected.dex.label} {selected.id} "
            f"({selected.route.describe()}, est {selected.estimated_output})"
        )

        account = await load_account(self.wallets, extract_user_id(config))
        ensure_signer(account, prepared.account_address)
        gas_estimate = await self._estimate_swap_gas(account, swap_state.request, prepared, selected)

        return swap_state.advance(
            SwapPhase.EXECUTING,
            selected_pool=selected,
            prepared_transaction=prepared.model_copy(update={"gas_estimate": gas_estimate}),
        )

    async def _estimate_swap_gas(
        self,
        account: Account,
        request: SwapRequest,
        prepared: PreparedTransaction,
        pool: Pool,
    ) -> GasEstimate:
        """Simulate the selected pool's trade; baseline network gas if that fails."""
        adapter = self.aggregator.get_adapter(pool.dex.name)
        if adapter is not None:
            try:
                plan = await adapter.create_swap_transaction(
                    swap_params(request, account.address, prepared.swap_amount), pool
                )
                estimate = await self.gas_estimator.estimate(plan.transaction, account.public_key_hex)
                if not estimate.is_default:
                    return estimate
            except Exception as e:
                logger.warning(f"Swap gas estimation failed for {pool.dex.label}: {e}")
        return await self.gas_estimator.estimate_network_gas(account)

    async def _execute(self, swap_state: SwapState, config: RunnableConfig) -> SwapState:
        request = swap_state.request
        prepared = swap_state.prepared_transaction
        pool = swap_state.selected_pool
        if prepared is None or pool is None:
            raise InvalidRequestError("No prepared transaction or pool for execution")

        account = await load_account(self.wallets, extract_user_id(config))
        ensure_signer(account, prepared.account_address)
        token_in, token_out = pool_side_addresses(request, pool)

        row = await get_balance_row(self.client, account.address, token_in)
        balance = int((row or {}).get("amount") or 0)
        decimals = row_decimals(row, token_in)
        self._check_spendable(request, prepared, token_in, balance, decimals)

        adapter = self.aggregator.get_adapter(pool.dex.name)
        if adapter is None:
            raise ExecutionError(f"No adapter available for {pool.dex.label}")
        search = self.aggregator.search_params(adapter, pool.dex, request.to_pair_request())
        if pool.match == MatchTier.EXACT and not adapter.validate_pool(pool, search):
            raise ExecutionError(
                f"Selected pool {pool.id} does not trade the requested pair on {pool.dex.label}"
            )

        plan = await adapter.create_swap_transaction(
            swap_params(request, account.address, prepared.swap_amount), pool
        )
        executed = await submit_and_wait(self.client, plan.transaction, account)
        tx_hash = executed["hash"]

        gas = prepared.gas_estimate
        symbol, out_decimals = _output_token(pool)
        message = (
            f"Swap executed successfully on {pool.dex.label}!\n"
            f"Amount in: {request.amount_in}\n"
            f"Estimated out: {format_amount(plan.estimated_output, out_decimals)} {symbol}\n"
            f"Min out: {format_amount(plan.min_amount_out, out_decimals)} {symbol}\n"
            f"Gas cost: {gas.total_cost:.6f} APT"
        )
        result = SwapResult(
            transaction_hash=tx_hash,
            from_address=account.address,
            to_address=request.to_address or account.address,
            token_in=token_in,
            token_out=token_out,
            amount_in=request.amount_in,
            amount_out=plan.estimated_output,
            min_amount_out=plan.min_amount_out,
            asset_type=token_in,
            pool=pool.model_dump(mode="json"),
            slippage=request.slippage,
            gas_estimation=gas.model_dump(mode="json"),
            message=message,
            explorer_url=self.settings.explorer_url(tx_hash),
        )
        logger.info(f"Swap completed on {pool.dex.label}: {tx_hash}")
        return swap_state.advance(SwapPhase.COMPLETED, result=result)

    @staticmethod
    def _check_spendable(
        request: SwapRequest,
        prepared: PreparedTransaction,
        asset_type: str,
        balance: int,
        decimals: int,
    ) -> None:
        """APT keeps back the max gas cost; other tokens need the full amount."""
        gas = prepared.gas_estimate
        if is_native(asset_type):
            max_swappable = balance - gas.max_cost_octas
            if prepared.swap_amount > max_swappable:
                max_display = format_amount(max(max_swappable, 0), decimals, 6)
                raise InsufficientBalanceError(
                    "Insufficient balance for swap.\n"
                    f"Total APT balance: {format_amount(balance, decimals, 6)} APT\n"
                    f"Amount you want to swap: {parse_amount(request.amount_in):.6f} APT\n"
                    f"Estimated gas cost: {gas.total_cost:.6f} APT\n"
                    f"Max gas reserve: {gas.max_cost:.6f} APT\n"
                    f"Maximum you can swap: {max_display} APT\n\n"
                    f"Please reduce your swap amount to {max_display} APT or less."
                )
        elif prepared.swap_amount > balance:
            raise InsufficientBalanceError(
                "Insufficient token balance.\n"
                f"Total balance: {format_amount(balance, decimals, 6)}\n"
                f"Amount you want to swap: {parse_amount(request.amount_in):.6f}\n"
                "You don't have enough tokens for this swap."
            )


def route_swap_flow(state: SwapGraphState) -> str:
    """Next node for the current phase."""
    phase = state["swap_state"].phase
    if phase == SwapPhase.PREPARING:
        return "prepare_swap"
    if phase == SwapPhase.FIND_POOL:
        return "find_pool" if not state["swap_state"].pools else "select_pool"
    if phase == SwapPhase.EXECUTING:
        return "execute_swap"
    return END


def build_swap_graph(
    workflow: SwapWorkflow,
    checkpointer: Optional[BaseCheckpointSaver] = None,
):
    """Compile the swap graph; in-memory checkpoints unless one is given."""
    graph_builder = StateGraph(SwapGraphState)
    graph_builder.add_node("prepare_swap", workflow.prepare_swap)
    graph_builder.add_node("find_pool", workflow.find_pool)
    graph_builder.add_node("select_pool", workflow.select_pool)
    graph_builder.add_node("execute_swap", workflow.execute_swap)

    destinations = ["prepare_swap", "find_pool", "select_pool", "execute_swap", END]
    graph_builder.add_conditional_edges(START, route_swap_flow, destinations)
    for node in ("prepare_swap", "find_pool", "select_pool", "execute_swap"):
        graph_builder.add_conditional_edges(node, route_swap_flow, destinations)

    return graph_builder.compile(checkpointer=checkpointer or MemorySaver())
