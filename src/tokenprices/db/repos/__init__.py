from tokenprices.db.repos.job_repo import JobRepo
from tokenprices.db.repos.price_repo import PriceRepo

__all__ = ["JobRepo", "PriceRepo"]
