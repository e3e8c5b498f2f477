import os
import tempfile

# config is read at import time, so the environment has to be set first
os.environ["LOG_FILE"] = ""
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="buyer-scan-"))
os.environ.setdefault("BASESCAN_API_KEY", "test-key")

import pytest  # noqa: E402

from storage import Checkpoint  # noqa: E402
from utils.errors import ScanError  # noqa: E402
from utils.fetch_base import FetchResult  # noqa: E402

CONTRACT = "0xA69a396c45Bd525f8516a43242580c4E88BbA401"
BUY = "0x7deb6025" + "0" * 64
OTHER = "0xa9059cbb" + "0" * 64


def raw_tx(sender: str, block: int, data: str = BUY) -> dict:
    return {
        "hash": f"0x{block:064x}",
        "timeStamp": str(1700000000 + block),
        "blockNumber": str(block),
        "from": sender,
        "to": CONTRACT,
        "value": "0",
        "input": data,
        "functionName": "",
    }


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MemoryStore:
    def __init__(self, checkpoint: Checkpoint = None):
        self.data = {}
        self.saves = []
        if checkpoint is not None:
            self.data[CONTRACT.lower()] = checkpoint

    def load(self, contract):
        cp = self.data.get(contract.lower())
        if cp is None:
            return None
        return Checkpoint.from_addresses(cp.addresses, cp.last_processed_page, cp.last_processed_block)

    def save(self, contract, checkpoint):
        self.data[contract.lower()] = checkpoint
        self.saves.append(checkpoint)

    def delete(self, contract):
        return 1 if self.data.pop(contract.lower(), None) else 0


class ScriptedClient:
    """Plays back one FetchResult or exception per call, in order."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def fetch_with_retry(self, address, page, start_block=0, max_retries=None):
        self.calls.append((page, start_block))
        if not self.script:
            return FetchResult.empty()
        step = self.script.pop(0)
        if isinstance(step, ScanError):
            raise step
        return step


class FakeUpstream:
    """
    Deterministic explorer: every tx sits in its own block, a page is the
    next `size` txs at or after the start block.
    """

    def __init__(self, txs, size: int = 3, fail_on_call=None, error: ScanError = None):
        self.txs = sorted(txs, key=lambda t: t[0])
        self.size = size
        self.fail_on_call = fail_on_call
        self.error = error
        self.calls = []

    def fetch_with_retry(self, address, page, start_block=0, max_retries=None):
        self.calls.append((page, start_block))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            self.fail_on_call = None
            raise self.error
        window = [t for t in self.txs if t[0] >= start_block][: self.size]
        if not window:
            return FetchResult.empty()
        buyers = [sender.lower() for _, sender, is_buy in window if is_buy]
        return FetchResult(addresses=buyers, last_block=window[-1][0], raw_count=len(window))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()
