"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["APTOS_NETWORK"] = "testnet"
os.environ["BACKEND_API_KEY"] = "test-key"
os.environ["BACKEND_BASE_URL"] = "http://backend.test/api"
os.environ["ENABLE_LEGACY_RESUME_DECODERS"] = "true"

from aptoswap.cache import clear_routing_caches
from aptoswap.chain.account import Account
from aptoswap.chain.transactions import EntryFunctionPayload, RawTransaction
from aptoswap.routing.aggregator import PoolAggregator
from aptoswap.routing.base import (
    DexAdapter,
    DexInfo,
    DexName,
    Pool,
    PoolSearchParams,
    Route,
    RouteType,
    SwapParams,
    SwapPlan,
)
from aptoswap.services.backend import Wallet
from aptoswap.tokens import APT_COIN_TYPE, APT_FA_ADDRESS, TOKEN_REGISTRY
from aptoswap.workflows.resume import ResumeChannel
from aptoswap.workflows.swap import SwapWorkflow
from aptoswap.workflows.transfer import TransferWorkflow

USDC = TOKEN_REGISTRY["USDC"].asset_type
TEST_PRIVATE_KEY = "0x" + "11" * 32
TEST_ACCOUNT = Account.from_private_key(TEST_PRIVATE_KEY)
OTHER_PRIVATE_KEY = "0x" + "22" * 32
RECIPIENT = "0x" + "ab" * 32

# 50 gas units at 100 octas; max gas 1000 -> 1200 buffered
SIMULATION_OK = {
    "success": True,
    "gas_unit_price": "100",
    "gas_used": "50",
    "max_gas_amount": "1000",
    "vm_status": "Executed successfully",
}


class FakeLedger:
    """In-memory stand-in for AptosClient."""

    def __init__(self, balances=None, metadata=None, simulation=None):
        self.balances: dict[str, int] = dict(balances or {})
        self.metadata: dict[str, dict] = dict(metadata or {})
        self.simulation = simulation or SIMULATION_OK
        self.built: list[RawTransaction] = []
        self.submitted: list[RawTransaction] = []

    async def get_asset_balances(self, owner, asset_type=None):
        if asset_type not in self.balances:
            return []
        return [
            {
                "amount": str(self.balances[asset_type]),
                "asset_type": asset_type,
                "owner_address": owner,
                "token_standard": self.metadata.get(asset_type, {}).get("token_standard", "v1"),
                "metadata": self.metadata.get(asset_type, {}),
            }
        ]

    async def build_transaction(self, sender, payload, max_gas_amount=None, gas_unit_price=None):
        transaction = RawTransaction(
            sender=sender,
            sequence_number=len(self.built),
            max_gas_amount=max_gas_amount or 20000,
            gas_unit_price=gas_unit_price or 100,
            expiration_timestamp_secs=1_700_000_000,
            payload=payload,
        )
        self.built.append(transaction)
        return transaction

    async def simulate(self, transaction, public_key_hex):
        return dict(self.simulation)

    async def submit(self, transaction, account):
        self.submitted.append(transaction)
        return f"0x{len(self.submitted):064x}"

    async def wait_for_transaction(self, tx_hash, timeout=None):
        return {
            "type": "user_transaction",
            "hash": tx_hash,
            "success": True,
            "gas_used": "50",
            "gas_unit_price": "100",
        }


class FakeWallets:
    """Every user gets the test key unless given their own in keys."""

    def __init__(self, private_key: str = TEST_PRIVATE_KEY, keys=None):
        self.private_key = private_key
        self.keys: dict[str, str] = dict(keys or {})
        self.requested: list[str] = []

    async def get_wallet(self, user_id):
        self.requested.append(user_id)
        if user_id in self.keys:
            private_key = self.keys[user_id]
            return Wallet(address=Account.from_private_key(private_key).address, private_key=private_key)
        return Wallet(address=TEST_ACCOUNT.address, private_key=self.private_key)


class FakeDexCatalog:
    def __init__(self, names=("hyperion", "cellana")):
        self.names = names

    async def get_dexes(self):
        return [make_dex(name) for name in self.names]


class FakeAdapter(DexAdapter):
    """Adapter returning fixed pools with fixed quotes keyed by pool id."""

    def __init__(self, client, dex_name: DexName, pools=None, outputs=None, fail_discovery=False):
        super().__init__(client)
        self._name = dex_name
        self.pools = pools or []
        self.outputs: dict[str, int] = outputs or {}
        self.fail_discovery = fail_discovery
        self.swaps: list[tuple[SwapParams, Pool]] = []

    @property
    def name(self) -> DexName:
        return self._name

    async def find_pools(self, params: PoolSearchParams):
        if self.fail_discovery:
            raise RuntimeError(f"{self._name.value} unavailable")
        return [pool.model_copy(update={"dex": params.dex}) for pool in self.pools]

    async def estimate_amount_out(self, pool, amount_in, slippage=0.5):
        return self._estimation(self.outputs.get(pool.id, 0), slippage)

    async def create_swap_transaction(self, params, pool):
        self.swaps.append((params, pool))
        estimation = await self.estimate_amount_out(pool, params.amount_in, params.slippage)
        payload = EntryFunctionPayload(
            function=f"0xdex::{self._name.value}::swap",
            arguments=[str(params.amount_in), str(estimation.min_amount_out), params.to_address],
        )
        transaction = await self._build(params.sender, payload)
        return SwapPlan(transaction, estimation.estimated_output, estimation.min_amount_out)

    def validate_pool(self, pool, params):
        return True


def make_dex(name: str) -> DexInfo:
    return DexInfo(name=name, display_name=name.title(), method_address=f"0x{name}")


def make_pool(pool_id: str, dex: str, token_a: str = APT_COIN_TYPE, token_b: str = USDC, path=None) -> Pool:
    path = path or [token_a, token_b]
    route_type = RouteType.DIRECT if len(path) == 2 else RouteType.MULTI_HOP
    return Pool(
        id=pool_id,
        dex=make_dex(dex),
        token_a=token_a,
        token_b=token_b,
        fee=0.3,
        route=Route(type=route_type, path=path),
    )


@pytest.fixture(autouse=True)
def clean_caches():
    """Routing caches are process-wide; reset them around each test."""
    clear_routing_caches()
    yield
    clear_routing_caches()


@pytest.fixture
def ledger() -> FakeLedger:
    """Account holding 5 APT and 10 USDC."""
    return FakeLedger(
        balances={APT_COIN_TYPE: 500_000_000, USDC: 10_000_000},
        metadata={
            APT_COIN_TYPE: {"symbol": "APT", "name": "Aptos Coin", "decimals": 8, "token_standard": "v1"},
            USDC: {"symbol": "USDC", "name": "USD Coin", "decimals": 6, "token_standard": "v2"},
        },
    )


@pytest.fixture
def wallets() -> FakeWallets:
    return FakeWallets()


@pytest.fixture
def aggregator(ledger) -> PoolAggregator:
    """Hyperion quotes 900000, Cellana 950000 for APT -> USDC."""
    return PoolAggregator(
        adapters=[
            FakeAdapter(ledger, DexName.HYPERION, [make_pool("hyp-1", "hyperion")], {"hyp-1": 900_000}),
            FakeAdapter(ledger, DexName.CELLANA, [make_pool("cel-1", "cellana")], {"cel-1": 950_000}),
        ]
    )


@pytest.fixture
def swap_workflow(ledger, aggregator, wallets) -> SwapWorkflow:
    return SwapWorkflow(
        client=ledger,
        aggregator=aggregator,
        wallets=wallets,
        dex_catalog=FakeDexCatalog(),
        resume_channel=ResumeChannel(enable_legacy=True),
    )


@pytest.fixture
def transfer_workflow(ledger, wallets) -> TransferWorkflow:
    return TransferWorkflow(client=ledger, wallets=wallets, resume_channel=ResumeChannel(enable_legacy=True))


@pytest.fixture
def swap_request_data() -> dict:
    """1 APT -> USDC, APT given by its FA alias."""
    return {
        "faAddressIn": APT_FA_ADDRESS,
        "faAddressOut": USDC,
        "amountIn": "1",
        "slippage": 0.5,
    }
