"""External service clients."""

from aptoswap.services.backend import (
    CatalogToken,
    DexCatalog,
    TokenCatalog,
    Wallet,
    WalletService,
)

__all__ = [
    "CatalogToken",
    "DexCatalog",
    "TokenCatalog",
    "Wallet",
    "WalletService",
]
