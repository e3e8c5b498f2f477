class ScanError(Exception):
    """Base class for everything a buyer scan can fail with."""


class ConfigurationError(ScanError):
    pass


class TransportError(ScanError):
    """Network failure, bad HTTP status or a payload that can't be parsed."""


class RateLimited(ScanError):
    """Transient throttling, safe to retry after a backoff."""


class QuotaExhausted(ScanError):
    """Daily quota hit. Nothing more can be fetched in this run."""


class UpstreamError(ScanError):
    def __init__(self, message: str, result=None):
        self.message = message
        self.result = result
        detail = f": {result}" if isinstance(result, str) and result else ""
        super().__init__(f"API Error: {message}{detail}")


class RetriesExhausted(ScanError):
    def __init__(self, page: int, attempts: int):
        self.page = page
        self.attempts = attempts
        super().__init__(f"All {attempts} attempts failed for page {page}")


class CheckpointError(ScanError):
    pass
