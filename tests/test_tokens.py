"""Tests for token addressing and amount helpers."""

from decimal import Decimal

import pytest

from aptoswap.errors import InvalidRequestError
from aptoswap.tokens import (
    APT_COIN_TYPE,
    TOKEN_REGISTRY,
    format_amount,
    from_smallest_unit,
    get_token_by_asset_type,
    get_token_symbol,
    is_coin_type,
    is_native,
    normalize_native,
    pair_key,
    parse_amount,
    same_token,
    sort_pair,
    to_fa_address,
    to_smallest_unit,
)

USDC = TOKEN_REGISTRY["USDC"].asset_type


class TestNativeAlias:
    """Tests for APT alias normalization."""

    @pytest.mark.parametrize("alias", ["0xa", "0xA", "0x000000000000000a", APT_COIN_TYPE])
    def test_aliases_normalize_to_coin_type(self, alias):
        assert is_native(alias)
        assert normalize_native(alias) == APT_COIN_TYPE

    @pytest.mark.parametrize("address", ["0xa", "0x0a", USDC, APT_COIN_TYPE, "0x1::foo::Bar", ""])
    def test_normalization_is_idempotent(self, address):
        once = normalize_native(address)
        assert normalize_native(once) == once

    def test_other_addresses_pass_through(self):
        assert normalize_native(USDC) == USDC
        assert not is_native("0xab")
        assert not is_native(None)

    def test_same_token_across_schemes(self):
        assert same_token("0xa", APT_COIN_TYPE)
        assert same_token(USDC.upper().replace("0X", "0x"), USDC)
        assert not same_token("0xa", USDC)
        assert not same_token("", "")

    def test_to_fa_address(self):
        assert to_fa_address(APT_COIN_TYPE) == "0xa"
        assert to_fa_address(USDC) == USDC


class TestPairKeys:
    """Tests for order-independent pair identity."""

    def test_pair_key_is_order_independent(self):
        assert pair_key("0xa", USDC) == pair_key(USDC, APT_COIN_TYPE)

    def test_sort_pair_keeps_case(self):
        coin = "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::WETH"
        assert sort_pair(coin, "0xa") == (APT_COIN_TYPE, coin)
        assert sort_pair("0xa", coin) == (APT_COIN_TYPE, coin)

    def test_is_coin_type(self):
        assert is_coin_type(APT_COIN_TYPE)
        assert not is_coin_type(USDC)
        assert not is_coin_type(None)


class TestRegistry:
    def test_lookup_by_alias(self):
        token = get_token_by_asset_type("0xa")
        assert token is not None
        assert token.symbol == "APT"
        assert token.decimals == 8

    def test_symbol_fallbacks(self):
        assert get_token_symbol(USDC) == "USDC"
        assert get_token_symbol("0x1234::mod::FOO") == "FOO"
        assert get_token_symbol("0x" + "cd" * 32) == "0xcdcd...cdcd"


class TestAmounts:
    """Tests for amount parsing and scaling."""

    def test_parse_amount(self):
        assert parse_amount("1.5") == Decimal("1.5")
        assert parse_amount(2) == Decimal("2")

    @pytest.mark.parametrize("value", ["abc", "NaN", "inf", "-1", "0", ""])
    def test_parse_amount_rejects_invalid(self, value):
        with pytest.raises(InvalidRequestError, match="Invalid amount"):
            parse_amount(value)

    def test_to_smallest_unit_rounds_half_up(self):
        assert to_smallest_unit(Decimal("1"), 8) == 100_000_000
        assert to_smallest_unit(Decimal("0.0000000015"), 8) == 0
        assert to_smallest_unit(Decimal("0.000000005"), 8) == 1
        assert to_smallest_unit(Decimal("1.2345675"), 6) == 1_234_568

    def test_from_smallest_unit_and_format(self):
        assert from_smallest_unit(950_000, 6) == Decimal("0.95")
        assert format_amount(950_000, 6) == "0.950000"
        assert format_amount(123_456_789, 8, 2) == "1.23"
