"""Error taxonomy shared by the resolver, the backfill runner and the API."""


class TokenPriceError(Exception):
    """Base class for all service errors."""


class ValidationError(TokenPriceError):
    """Missing or malformed input. Surfaced to the caller, never retried."""


class ExternalServiceError(TokenPriceError):
    """Retriable failure talking to an upstream API (rate limit, 5xx, transport)."""


class UpstreamUnavailable(TokenPriceError):
    """The external price source (or origin lookup) could not produce an answer."""


class InvalidBracket(TokenPriceError):
    """Interpolation was asked to work with an impossible bracket."""


class PersistenceError(TokenPriceError):
    """A write to the price store did not land."""


class JobNotFound(TokenPriceError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Backfill job {job_id} not found")
        self.job_id = job_id


class BackfillConflict(TokenPriceError):
    """A pending or running job already exists for the (token, network) pair."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Backfill job {job_id} is already active for this token")
        self.job_id = job_id
