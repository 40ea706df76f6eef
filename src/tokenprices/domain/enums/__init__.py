from tokenprices.domain.enums.price_source import PriceSourceKind, StoredPriceOrigin
from tokenprices.domain.enums.status import JobStatus

__all__ = [
    "JobStatus",
    "PriceSourceKind",
    "StoredPriceOrigin",
]
