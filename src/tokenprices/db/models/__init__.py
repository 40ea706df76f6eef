from tokenprices.db.models.backfill_job import BackfillJob
from tokenprices.db.models.token_price import TokenPrice

__all__ = [
    "BackfillJob",
    "TokenPrice",
]
