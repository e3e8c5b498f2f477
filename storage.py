# storage.py
import json
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from config import CHECKPOINT_BACKEND, DATA_DIR, DB_PATH
from utils.errors import CheckpointError, ConfigurationError
from utils.log import logger

CHECKPOINT_FILE = "unique_buyers.json"


@dataclass
class Checkpoint:
    total_buyers: int = 0
    addresses: List[str] = field(default_factory=list)
    last_processed_page: Optional[int] = None
    last_processed_block: Optional[int] = None

    @classmethod
    def from_addresses(
        cls,
        addresses: Iterable[str],
        last_processed_page: Optional[int] = None,
        last_processed_block: Optional[int] = None,
    ) -> "Checkpoint":
        unique = sorted({a.lower() for a in addresses})
        return cls(len(unique), unique, last_processed_page, last_processed_block)

    def to_dict(self) -> Dict:
        data = {"totalBuyers": self.total_buyers, "addresses": self.addresses}
        if self.last_processed_page is not None:
            data["lastProcessedPage"] = self.last_processed_page
        if self.last_processed_block is not None:
            data["lastProcessedBlock"] = self.last_processed_block
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "Checkpoint":
        if not isinstance(data, dict) or not isinstance(data.get("addresses", []), list):
            raise CheckpointError("Checkpoint must be an object with an 'addresses' list")
        if not all(isinstance(a, str) for a in data.get("addresses", [])):
            raise CheckpointError("Checkpoint addresses must all be strings")
        for key in ("lastProcessedPage", "lastProcessedBlock"):
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise CheckpointError(f"Checkpoint {key} must be an integer, got {value!r}")
        # totalBuyers is recomputed, files edited by hand may disagree
        return cls.from_addresses(
            data.get("addresses", []),
            data.get("lastProcessedPage"),
            data.get("lastProcessedBlock"),
        )


class JsonProgressStore:
    """One JSON file per contract: <root>/<contract>/unique_buyers.json"""

    def __init__(self, root: str = DATA_DIR):
        self.root = Path(root)

    def contract_dir(self, contract: str) -> Path:
        return self.root / contract.lower()

    def path(self, contract: str) -> Path:
        return self.contract_dir(contract) / CHECKPOINT_FILE

    def load(self, contract: str) -> Optional[Checkpoint]:
        path = self.path(contract)
        if not path.exists():
            logger.info(f"[STORE] No previous progress for {contract}")
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CheckpointError(f"Failed to read {path}: {e}") from e
        return Checkpoint.from_dict(data)

    def save(self, contract: str, checkpoint: Checkpoint) -> Path:
        path = self.path(contract)
        try:
            with _atomic_write(path) as f:
                json.dump(checkpoint.to_dict(), f, indent=2)
        except OSError as e:
            raise CheckpointError(f"Failed to save addresses: {e}") from e

        suffix = ""
        if checkpoint.last_processed_page:
            suffix += f" (up to page {checkpoint.last_processed_page})"
        if checkpoint.last_processed_block:
            suffix += f" (up to block {checkpoint.last_processed_block})"
        logger.info(f"[STORE] Saved {checkpoint.total_buyers} unique buyer addresses{suffix}")
        return path

    def delete(self, contract: str) -> int:
        path = self.path(contract)
        if not path.exists():
            return 0
        try:
            path.unlink()
        except OSError as e:
            raise CheckpointError(f"Failed to delete {path}: {e}") from e
        return 1

    def save_raw_page(self, contract: str, page: int, raw_txs: List[Dict]) -> Path:
        """Dump the upstream records of one page unchanged."""
        from utils.transform import transform_raw_base, unique_buyers

        path = self.contract_dir(contract) / f"raw_transactions_page_{page}.json"
        try:
            with _atomic_write(path) as f:
                json.dump(raw_txs, f)
            df = transform_raw_base(raw_txs, contract)
        except (OSError, TypeError, ValueError) as e:
            raise CheckpointError(f"Failed to save raw page {page}: {e}") from e
        logger.debug(
            f"[STORE] Saved {len(df)} transactions of page {page} "
            f"({len(unique_buyers(df))} buyers) to {path}"
        )
        return path


@contextmanager
def _atomic_write(path: Path):
    """Write to a temp file next to `path`, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def get_progress_store(backend: str = CHECKPOINT_BACKEND):
    if backend == "json":
        return JsonProgressStore(DATA_DIR)
    if backend == "sqlite":
        from database.manager import SqlProgressStore

        return SqlProgressStore(DB_PATH)
    raise ConfigurationError(f"Unknown checkpoint backend: {backend!r}")
