import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Set

from config import BATCH_SIZE, DELAYS, DUMP_RAW_PAGES
from storage import Checkpoint, JsonProgressStore, get_progress_store
from utils.errors import QuotaExhausted, ScanError
from utils.fetch_base import PageFetcher
from utils.log import logger
from utils.rate_limiter import RateLimiter
from utils.retry import RetryWrapper


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETE = "complete"
    QUOTA_PAUSED = "quota_paused"
    STOPPED = "stopped"  # max_batches reached
    FAILED = "failed"


@dataclass(frozen=True)
class ScanCursor:
    page: int = 1
    block: int = 0

    @classmethod
    def from_checkpoint(cls, checkpoint: Optional[Checkpoint]) -> "ScanCursor":
        if checkpoint is None:
            return cls()
        return cls(
            page=(checkpoint.last_processed_page or 0) + 1,
            block=checkpoint.last_processed_block or 0,
        )

    def advance_block(self, last_block_seen: int) -> "ScanCursor":
        return replace(self, block=max(self.block, last_block_seen + 1))

    def next_batch(self, size: int) -> "ScanCursor":
        return replace(self, page=self.page + size)


@dataclass
class ScanResult:
    buyer_addresses: List[str] = field(default_factory=list)
    last_processed_page: Optional[int] = None
    is_complete: bool = False
    state: ScanState = ScanState.IDLE

    @property
    def next_page(self) -> Optional[int]:
        if self.is_complete:
            return None
        return (self.last_processed_page or 0) + 1


class BuyerCollector:
    """
    Walks a contract's transaction history batch by batch and accumulates
    the senders of buy() calls.

    Stops on:
      * an empty raw page             -> COMPLETE
      * QuotaExhausted                -> QUOTA_PAUSED (resumable, not an error)
      * any other ScanError           -> FAILED, the error is re-raised
    """

    def __init__(
        self,
        client: RetryWrapper,
        store,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = DELAYS["BETWEEN_BATCHES"],
        sleep: Callable[[float], None] = time.sleep,
        max_batches: Optional[int] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.client = client
        self.store = store
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sleep = sleep
        self.max_batches = max_batches
        self.state = ScanState.IDLE
        self.cursor = ScanCursor()

    def _save(self, contract: str, addresses: Set[str], page: int, block: int) -> None:
        self.store.save(contract, Checkpoint.from_addresses(addresses, page, block))

    def collect(self, contract: str) -> ScanResult:
        contract = contract.lower()
        self.state = ScanState.IDLE

        checkpoint = self.store.load(contract)
        addresses: Set[str] = set(checkpoint.addresses) if checkpoint else set()
        cursor = ScanCursor.from_checkpoint(checkpoint)
        self.cursor = cursor

        if checkpoint:
            logger.info(
                f"[SCAN] Resuming {contract} from page {cursor.page} (block {cursor.block}) "
                f"with {len(addresses)} existing addresses"
            )
        else:
            logger.info(f"[SCAN] Starting new scan of {contract} from block 0")

        self.state = ScanState.SCANNING
        last_page = cursor.page - 1
        batches = 0

        try:
            while True:
                pages = range(cursor.page, cursor.page + self.batch_size)
                logger.info(f"[SCAN] Processing pages {pages[0]} to {pages[-1]}...")

                has_more = True
                added = 0

                for page in pages:
                    try:
                        result = self.client.fetch_with_retry(contract, page, cursor.block)
                    except QuotaExhausted:
                        logger.warning("[SCAN] Daily API limit reached. Saving current progress...")
                        if added > 0:
                            logger.info(f"[SCAN] Found {added} new addresses in this batch before limit")
                            self._save(contract, addresses, last_page, cursor.block)
                        self.state = ScanState.QUOTA_PAUSED
                        return ScanResult(sorted(addresses), last_page, False, self.state)

                    if result.is_empty:
                        has_more = False
                        break

                    before = len(addresses)
                    addresses.update(result.addresses)
                    added += len(addresses) - before
                    cursor = cursor.advance_block(result.last_block)
                    self.cursor = cursor
                    last_page = page
                    logger.info(f"[SCAN] Page {page}: added {len(addresses) - before} new unique addresses")

                if added > 0:
                    logger.info(f"[SCAN] Batch complete: added {added} new addresses (total: {len(addresses)})")
                    self._save(contract, addresses, last_page, cursor.block)

                if not has_more:
                    break

                batches += 1
                if self.max_batches is not None and batches >= self.max_batches:
                    logger.info(f"[SCAN] Stopping after {batches} batches, resume from page {last_page + 1}")
                    if added == 0:
                        self._save(contract, addresses, last_page, cursor.block)
                    self.state = ScanState.STOPPED
                    return ScanResult(sorted(addresses), last_page, False, self.state)

                self.sleep(self.batch_delay)
                cursor = cursor.next_batch(self.batch_size)
                self.cursor = cursor

            logger.info(f"[SCAN] No more transactions. Collection complete: {len(addresses)} unique buyers")
            self._save(contract, addresses, last_page, cursor.block)
        except ScanError as e:
            logger.error(f"[SCAN] Failed at page {last_page + 1}: {e}")
            self.state = ScanState.FAILED
            raise

        self.state = ScanState.COMPLETE
        return ScanResult(sorted(addresses), last_page, True, self.state)


def build_collector(
    backend: Optional[str] = None,
    apikey: Optional[str] = None,
    strict: Optional[bool] = None,
    dump_raw: bool = DUMP_RAW_PAGES,
    max_batches: Optional[int] = None,
) -> BuyerCollector:
    # raises ConfigurationError before anything touches disk or network
    raw_sink = JsonProgressStore().save_raw_page if dump_raw else None
    fetcher = PageFetcher(apikey=apikey, raw_sink=raw_sink)

    store = get_progress_store(backend) if backend else get_progress_store()
    client = RetryWrapper(fetcher, RateLimiter())
    if strict is not None:
        client.strict = strict
    return BuyerCollector(client, store, max_batches=max_batches)
