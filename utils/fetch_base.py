from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import requests

from config import API_URL, CHAIN_ID, PAGE_OFFSET, REQUEST_TIMEOUT, get_api_key
from utils.errors import (
    ConfigurationError,
    QuotaExhausted,
    RateLimited,
    TransportError,
    UpstreamError,
)
from utils.log import logger

# 4-byte selector of buy(...)
BUY_SELECTOR = "0x7deb6025"
END_BLOCK = 999999999

RawSink = Callable[[str, int, List[Dict]], None]


@dataclass(frozen=True)
class Transaction:
    sender: str
    input_data: str
    block_number: int

    @classmethod
    def from_raw(cls, tx: Dict) -> "Transaction":
        return cls(
            sender=tx["from"],
            input_data=tx.get("input") or "",
            block_number=int(tx["blockNumber"]),
        )


def is_buy_transaction(tx: Transaction) -> bool:
    return tx.input_data.lower().startswith(BUY_SELECTOR)


@dataclass
class FetchResult:
    addresses: List[str] = field(default_factory=list)
    last_block: int = 0
    raw_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.raw_count == 0

    @classmethod
    def empty(cls) -> "FetchResult":
        return cls()


class PageFetcher:
    """
    One request = one window of up to `offset` transactions starting at
    `start_block`, ascending. Pagination is done by moving the start block,
    the upstream `page` parameter always stays 1.
    """

    def __init__(
        self,
        apikey: Optional[str] = None,
        chainid: int = CHAIN_ID,
        base_url: str = API_URL,
        offset: int = PAGE_OFFSET,
        timeout: int = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        raw_sink: Optional[RawSink] = None,
    ):
        self.apikey = apikey if apikey is not None else get_api_key()
        if not self.apikey:
            raise ConfigurationError("Explorer API key is empty")
        self.chainid = chainid
        self.base_url = base_url
        self.offset = offset
        self.timeout = timeout
        self.session = session or requests.Session()
        self.raw_sink = raw_sink

    def _params(self, address: str, start_block: int) -> Dict:
        return {
            "chainid": self.chainid,
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": start_block,
            "endblock": END_BLOCK,
            "page": 1,
            "offset": self.offset,
            "sort": "asc",
            "apikey": self.apikey,
        }

    def _get(self, address: str, start_block: int) -> Dict:
        try:
            response = self.session.get(
                self.base_url,
                params=self._params(address, start_block),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimited("HTTP 429 Too Many Requests")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(f"HTTP error! status: {response.status_code}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Malformed payload: {e}") from e
        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected payload type: {type(payload).__name__}")
        return payload

    @staticmethod
    def _classify_failure(payload: Dict) -> None:
        message = str(payload.get("message") or "")
        result = payload.get("result")

        if "No transactions found" in message:
            return
        if "Max rate limit reached" in message or "daily limit" in message:
            raise QuotaExhausted(message)
        if message == "NOTOK" or "rate limit" in message.lower():
            raise RateLimited(message)
        raise UpstreamError(message, result)

    def fetch_page(self, address: str, page: int, start_block: int = 0) -> FetchResult:
        logger.debug(f"[FETCH] Fetching transactions from block {start_block} (page {page})")
        payload = self._get(address, start_block)

        if str(payload.get("status")) != "1":
            self._classify_failure(payload)
            logger.debug(f"[FETCH] Page {page}: no transactions from block {start_block}")
            return FetchResult.empty()

        raw = payload.get("result")
        if not isinstance(raw, list):
            raise TransportError(f"Unexpected result type: {type(raw).__name__}")
        if not raw:
            return FetchResult.empty()

        try:
            txs = [Transaction.from_raw(tx) for tx in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed transaction record: {e}") from e

        if self.raw_sink is not None:
            self.raw_sink(address, page, raw)

        # cursor comes from the raw batch so it moves even without buys
        last_block = txs[-1].block_number
        buyers = [tx.sender.lower() for tx in txs if is_buy_transaction(tx)]

        logger.info(
            f"[FETCH] Page {page}: {len(txs)} transactions, {len(buyers)} buys "
            f"(blocks {start_block} - {last_block})"
        )
        return FetchResult(addresses=buyers, last_block=last_block, raw_count=len(txs))


if __name__ == "__main__":
    address = "0xa69a396c45Bd525f8516a43242580c4E88BbA401"

    result = PageFetcher().fetch_page(address, page=1, start_block=0)
    print(f"Transactions: {result.raw_count}, buyers: {len(set(result.addresses))}")
    print(f"Next start block: {result.last_block + 1}")
