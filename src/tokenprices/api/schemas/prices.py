from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from tokenprices.domain.enums import PriceSourceKind

# Prices go over the wire as JSON numbers, not strings
JsonPrice = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PriceQuery(BaseModel):
    token: str = Field(min_length=1)
    network: str = Field(min_length=1)
    timestamp: int = Field(gt=0)

    @field_validator("token", "network")
    @classmethod
    def normalize(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("must not be blank")
        return v


class PriceResponse(BaseModel):
    price: JsonPrice
    source: PriceSourceKind
    persisted: bool = True
