"""Aptos token addressing and amount helpers.

Aptos assets have two coexisting addressing schemes: legacy coin types
("0x1::aptos_coin::AptosCoin") and fungible-asset (FA) object addresses.
APT itself also has the short FA alias "0xa". Everything that compares
token identifiers goes through normalize_native()/pair_key() so the alias
and the canonical coin type are treated as the same asset.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from aptoswap.errors import InvalidRequestError

APT_COIN_TYPE = "0x1::aptos_coin::AptosCoin"
APT_FA_ADDRESS = "0xa"
APT_DECIMALS = 8
OCTAS_PER_APT = 100_000_000

# "0xa", "0xA", "0x000...00a"
_NATIVE_ALIAS_RE = re.compile(r"^0x0*a$", re.IGNORECASE)


@dataclass(frozen=True)
class TokenInfo:
    """Known token metadata."""

    symbol: str
    name: str
    asset_type: str
    decimals: int


TOKEN_REGISTRY: dict[str, TokenInfo] = {
    # Native
    "APT": TokenInfo("APT", "Aptos Token", APT_COIN_TYPE, 8),
    # Stablecoins (FA)
    "USDC": TokenInfo(
        "USDC",
        "USD Coin",
        "0xbae207659db88bea0cbead6da0ed00aac12edcdda169e591cd41c94180b46f3b",
        6,
    ),
    "USDT": TokenInfo(
        "USDT",
        "Tether USD",
        "0x357b0b74bc833e95a115ad22604854d6b0fca151cecd94111770e5d6ffc9dc2b",
        6,
    ),
    # LayerZero wrapped
    "WETH": TokenInfo(
        "lzWETH",
        "Wrapped Ethereum (LayerZero WETH)",
        "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::WETH",
        8,
    ),
    "WBTC": TokenInfo(
        "lzWBTC",
        "Wrapped BTC (LayerZero WBTC)",
        "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::WBTC",
        8,
    ),
}


def is_native(address: Optional[str]) -> bool:
    """True for the APT alias or the APT coin type."""
    if not address:
        return False
    stripped = address.strip()
    return bool(_NATIVE_ALIAS_RE.match(stripped)) or stripped.lower() == APT_COIN_TYPE.lower()


def normalize_native(address: Optional[str]) -> str:
    """Canonicalize the APT alias to its coin type; other addresses pass through.

    Idempotent: normalize_native(normalize_native(x)) == normalize_native(x).
    """
    if not address:
        return ""
    if is_native(address):
        return APT_COIN_TYPE
    return address.strip()


def canonical_key(address: Optional[str]) -> str:
    """Case-insensitive comparison key for a token identifier."""
    return normalize_native(address).lower()


def same_token(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two identifiers after alias normalization."""
    key_a = canonical_key(a)
    return bool(key_a) and key_a == canonical_key(b)


def pair_key(a: Optional[str], b: Optional[str]) -> tuple[str, str]:
    """Order-independent key for a token pair."""
    key_a, key_b = canonical_key(a), canonical_key(b)
    return (key_a, key_b) if key_a <= key_b else (key_b, key_a)


def sort_pair(a: str, b: str) -> tuple[str, str]:
    """Sort two canonical identifiers the way pair resources are declared on-chain."""
    a, b = normalize_native(a), normalize_native(b)
    return (a, b) if a < b else (b, a)


def is_coin_type(address: Optional[str]) -> bool:
    """Legacy coin types are fully qualified Move struct tags."""
    return bool(address) and "::" in address


def to_fa_address(address: str) -> str:
    """Express APT in FA form; FA addresses and other coin types pass through."""
    return APT_FA_ADDRESS if is_native(address) else address


def get_token_by_asset_type(asset_type: str) -> Optional[TokenInfo]:
    """Look up registry metadata by coin type or FA address."""
    for token in TOKEN_REGISTRY.values():
        if same_token(token.asset_type, asset_type):
            return token
    return None


def get_token_symbol(asset_type: str) -> str:
    """Registry symbol, else the struct name of a coin type, else a short address."""
    token = get_token_by_asset_type(asset_type)
    if token:
        return token.symbol
    if is_coin_type(asset_type):
        return asset_type.split("::")[-1]
    return f"{asset_type[:6]}...{asset_type[-4:]}" if len(asset_type) > 12 else asset_type


def parse_amount(value: Union[str, int, float, Decimal]) -> Decimal:
    """Parse a human-readable amount, rejecting NaN, infinities and non-positive values."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidRequestError(f"Invalid amount: {value}")
    if not amount.is_finite() or amount <= 0:
        raise InvalidRequestError(f"Invalid amount: {value}. Amount must be a positive number")
    return amount


def to_smallest_unit(amount: Decimal, decimals: int) -> int:
    """Scale a human amount to integer smallest units, rounding half up."""
    scaled = amount * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_smallest_unit(value: int, decimals: int) -> Decimal:
    """Scale integer smallest units back to a human amount."""
    return Decimal(value) / (Decimal(10) ** decimals)


def format_amount(value: int, decimals: int, places: Optional[int] = None) -> str:
    """Format smallest units for display."""
    places = decimals if places is None else places
    return f"{from_smallest_unit(value, decimals):.{places}f}"


def octas_to_apt(octas: int) -> Decimal:
    """Convert octas to APT."""
    return Decimal(octas) / OCTAS_PER_APT
