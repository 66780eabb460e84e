"""Token catalog endpoints."""

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status

from aptoswap.services.backend import CatalogToken, TokenCatalog

router = APIRouter(prefix="/tokens")


def get_token_catalog(request: Request) -> TokenCatalog:
    return request.app.state.token_catalog


@router.get("", response_model=list[CatalogToken])
async def list_tokens(
    symbol: Optional[str] = None,
    name: Optional[str] = None,
    address: Optional[str] = None,
    tags: Optional[str] = None,
    catalog: TokenCatalog = Depends(get_token_catalog),
):
    """Tokens known to the backend catalog, optionally filtered.

    tags is a comma-separated list.
    """
    try:
        return await catalog.get_token_list(
            symbol=symbol,
            name=name,
            address=address,
            tags=tags.split(",") if tags else None,
        )
    except httpx.HTTPError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Token catalog unavailable: {type(e).__name__}",
        )
