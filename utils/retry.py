from typing import Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from config import MAX_RETRIES, STRICT_RETRIES
from utils.errors import RateLimited, RetriesExhausted, ScanError
from utils.fetch_base import FetchResult, PageFetcher
from utils.log import logger
from utils.rate_limiter import RateLimiter


class RetryWrapper:
    """
    Bounded retry around PageFetcher. Only RateLimited is retried; quota
    exhaustion and every other failure go straight back to the caller.

    When every attempt was rate limited the default is to hand back an empty
    result, which the collector reads as "no more data". That can end a scan
    early after a long outage. `strict=True` raises RetriesExhausted instead.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        limiter: Optional[RateLimiter] = None,
        max_retries: int = MAX_RETRIES,
        strict: bool = STRICT_RETRIES,
    ):
        self.fetcher = fetcher
        self.limiter = limiter or RateLimiter()
        self.max_retries = max_retries
        self.strict = strict

    def _attempt(self, address: str, page: int, start_block: int) -> FetchResult:
        try:
            result = self.fetcher.fetch_page(address, page, start_block)
        except ScanError:
            self.limiter.record_error()
            raise
        self.limiter.record_success()
        return result

    def _before_sleep(self, retry_state) -> None:
        logger.warning(
            f"[RETRY] Rate limited on attempt {retry_state.attempt_number}, "
            f"waiting {self.limiter.get_wait_time():.1f}s..."
        )

    def _on_exhausted(self, retry_state) -> FetchResult:
        page = retry_state.args[1]
        if self.strict:
            raise RetriesExhausted(page, retry_state.attempt_number)
        logger.warning(
            f"[RETRY] All {retry_state.attempt_number} attempts failed for page {page}, "
            f"returning an empty page (treated as end of data)"
        )
        return FetchResult.empty()

    def fetch_with_retry(
        self,
        address: str,
        page: int,
        start_block: int = 0,
        max_retries: Optional[int] = None,
    ) -> FetchResult:
        attempts = max_retries if max_retries is not None else self.max_retries
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type(RateLimited),
            wait=lambda rs: self.limiter.get_wait_time(),
            before=lambda rs: self.limiter.wait_if_needed(),
            before_sleep=self._before_sleep,
            sleep=self.limiter.sleep,
            retry_error_callback=self._on_exhausted,
        )
        return retrying(self._attempt, address, page, start_block)
