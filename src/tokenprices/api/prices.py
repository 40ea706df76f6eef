from typing import Annotated

from fastapi import APIRouter, Depends, Query

from tokenprices.api.deps import get_resolver
from tokenprices.api.schemas.prices import PriceQuery, PriceResponse
from tokenprices.pricing.resolver import PriceResolver

router = APIRouter(prefix="/api/price", tags=["prices"])

ResolverDep = Annotated[PriceResolver, Depends(get_resolver)]


@router.post("", response_model=PriceResponse)
async def query_price(body: PriceQuery, resolver: ResolverDep) -> PriceResponse:
    """Price of a token at a timestamp: cache, then interpolation, then upstream."""
    quote = await resolver.resolve(body.token, body.network, body.timestamp)
    return PriceResponse(price=quote.price, source=quote.source, persisted=quote.persisted)


@router.get("", response_model=PriceResponse)
async def get_price(
    resolver: ResolverDep,
    token: str = Query(..., min_length=1),
    network: str = Query(..., min_length=1),
    timestamp: int = Query(..., gt=0),
) -> PriceResponse:
    quote = await resolver.resolve(token, network, timestamp)
    return PriceResponse(price=quote.price, source=quote.source, persisted=quote.persisted)
