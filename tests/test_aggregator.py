"""Tests for cross-DEX pool aggregation."""

import pytest

from aptoswap.errors import NoLiquidityError
from aptoswap.routing.aggregator import PairRequest, PoolAggregator
from aptoswap.routing.base import DexName, MatchTier, PoolSearchParams
from aptoswap.tokens import APT_COIN_TYPE

from conftest import USDC, FakeAdapter, FakeLedger, make_dex, make_pool

APT_TO_USDC = PairRequest(fa_address_in="0xa", fa_address_out=USDC)
DEXES = [make_dex("hyperion"), make_dex("cellana"), make_dex("pancakeswap")]


def adapters(ledger):
    return [
        FakeAdapter(ledger, DexName.HYPERION, [make_pool("hyp-1", "hyperion")], {"hyp-1": 900_000}),
        FakeAdapter(ledger, DexName.CELLANA, [make_pool("cel-1", "cellana")], {"cel-1": 950_000}),
    ]


class TestPoolAggregator:
    """Tests for discovery, matching and ranking."""

    @pytest.mark.asyncio
    async def test_ranks_by_estimated_output(self):
        aggregator = PoolAggregator(adapters(FakeLedger()))

        pools = await aggregator.aggregate(DEXES, APT_TO_USDC, 100_000_000, 0.5)

        assert [pool.id for pool in pools] == ["cel-1", "hyp-1"]
        assert pools[0].estimated_output == 950_000
        assert pools[0].min_amount_out == 945_250
        assert pools[1].min_amount_out == 895_500

    @pytest.mark.asyncio
    async def test_result_independent_of_adapter_order(self):
        ledger = FakeLedger()
        forward = await PoolAggregator(adapters(ledger)).aggregate(DEXES, APT_TO_USDC, 1000, 0.5)
        backward = await PoolAggregator(list(reversed(adapters(ledger)))).aggregate(
            list(reversed(DEXES)), APT_TO_USDC, 1000, 0.5
        )

        assert [pool.key for pool in forward] == [pool.key for pool in backward]

    @pytest.mark.asyncio
    async def test_equal_outputs_tie_break_on_dex_name(self):
        ledger = FakeLedger()
        aggregator = PoolAggregator(
            [
                FakeAdapter(ledger, DexName.HYPERION, [make_pool("h", "hyperion")], {"h": 500}),
                FakeAdapter(ledger, DexName.CELLANA, [make_pool("c", "cellana")], {"c": 500}),
            ]
        )

        pools = await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

        assert [pool.dex.name for pool in pools] == ["cellana", "hyperion"]

    @pytest.mark.asyncio
    async def test_failing_adapter_is_isolated(self):
        ledger = FakeLedger()
        aggregator = PoolAggregator(
            [
                FakeAdapter(ledger, DexName.HYPERION, fail_discovery=True),
                FakeAdapter(ledger, DexName.CELLANA, [make_pool("cel-1", "cellana")], {"cel-1": 950_000}),
            ]
        )

        pools = await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

        assert [pool.id for pool in pools] == ["cel-1"]

    @pytest.mark.asyncio
    async def test_no_pools_anywhere(self):
        ledger = FakeLedger()
        aggregator = PoolAggregator([FakeAdapter(ledger, DexName.HYPERION, fail_discovery=True)])

        with pytest.raises(NoLiquidityError, match="No pools found"):
            await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

    @pytest.mark.asyncio
    async def test_zero_outputs_are_dropped(self):
        ledger = FakeLedger()
        aggregator = PoolAggregator(
            [FakeAdapter(ledger, DexName.HYPERION, [make_pool("hyp-1", "hyperion")], {"hyp-1": 0})]
        )

        with pytest.raises(NoLiquidityError, match="No pools with valid estimated output found"):
            await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

    @pytest.mark.asyncio
    async def test_keeps_top_five(self):
        ledger = FakeLedger()
        pools = [make_pool(f"p{i}", "hyperion", path=[APT_COIN_TYPE, f"0x{i}", USDC]) for i in range(7)]
        outputs = {f"p{i}": 1000 + i for i in range(7)}
        aggregator = PoolAggregator([FakeAdapter(ledger, DexName.HYPERION, pools, outputs)])

        ranked = await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

        assert [pool.id for pool in ranked] == ["p6", "p5", "p4", "p3", "p2"]

    @pytest.mark.asyncio
    async def test_duplicate_routes_are_merged(self):
        ledger = FakeLedger()
        duplicate = [make_pool("same", "hyperion"), make_pool("same-again", "hyperion", token_a="0xa")]
        aggregator = PoolAggregator(
            [FakeAdapter(ledger, DexName.HYPERION, duplicate, {"same": 10, "same-again": 20})]
        )

        pools = await aggregator.find_all_pools(DEXES, APT_TO_USDC)

        assert len(pools) == 1

    @pytest.mark.asyncio
    async def test_partial_matches_are_labeled(self):
        """Substring matches are only used when nothing matches exactly."""
        ledger = FakeLedger()
        prefixed = USDC + "::coin::USDC"
        aggregator = PoolAggregator(
            [
                FakeAdapter(
                    ledger,
                    DexName.HYPERION,
                    [make_pool("partial", "hyperion", token_b=prefixed)],
                    {"partial": 42},
                )
            ]
        )

        pools = await aggregator.aggregate(DEXES, APT_TO_USDC, 1000, 0.5)

        assert [pool.id for pool in pools] == ["partial"]
        assert pools[0].match == MatchTier.PARTIAL

    def test_pancakeswap_gets_coin_types(self):
        """Native APT given as FA becomes AptosCoin for coin-type adapters."""
        ledger = FakeLedger()
        pancake = FakeAdapter(ledger, DexName.PANCAKESWAP)
        hyperion = FakeAdapter(ledger, DexName.HYPERION)
        aggregator = PoolAggregator([pancake, hyperion])

        pancake_params = aggregator.search_params(pancake, make_dex("pancakeswap"), APT_TO_USDC)
        hyperion_params = aggregator.search_params(hyperion, make_dex("hyperion"), APT_TO_USDC)

        assert isinstance(pancake_params, PoolSearchParams)
        assert pancake_params.token_address_in == APT_COIN_TYPE
        assert pancake_params.token_address_out == ""
        assert hyperion_params.token_address_in == ""
        assert hyperion_params.fa_address_in == "0xa"
