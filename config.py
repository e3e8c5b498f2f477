"""
Configuration via environment variables (.env is loaded when present).
Everything tunable lives here, the rest of the code imports from this module.
"""

import os

from dotenv import load_dotenv

from utils.errors import ConfigurationError

load_dotenv()


def _get_env(key: str, default: str | None = None) -> str | None:
    return os.getenv(key, default)


def _get_env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _get_env_float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _get_env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Upstream explorer (etherscan v2 serves every chain through one url)
API_URL = _get_env("API_URL", "https://api.etherscan.io/v2/api")
BASE_CHAIN_ID = 8453
CHAIN_ID = _get_env_int("CHAIN_ID", BASE_CHAIN_ID)
PAGE_OFFSET = _get_env_int("PAGE_OFFSET", 1000)
REQUEST_TIMEOUT = _get_env_int("REQUEST_TIMEOUT", 20)

# Scan loop
BATCH_SIZE = _get_env_int("BATCH_SIZE", 2)
MAX_RETRIES = _get_env_int("MAX_RETRIES", 3)
STRICT_RETRIES = _get_env_bool("STRICT_RETRIES", False)

# Seconds
DELAYS = {
    "BETWEEN_CALLS": _get_env_float("DELAY_BETWEEN_CALLS", 0.3),
    "MIN_RATE_LIMIT_WAIT": _get_env_float("MIN_RATE_LIMIT_WAIT", 6.0),
    "MAX_RATE_LIMIT_WAIT": _get_env_float("MAX_RATE_LIMIT_WAIT", 15.0),
    "BETWEEN_BATCHES": _get_env_float("DELAY_BETWEEN_BATCHES", 2.0),
}
BACKOFF_FACTOR = 1.5

# Storage
DATA_DIR = _get_env("DATA_DIR", "data")
DB_PATH = _get_env("DB_PATH", os.path.join(DATA_DIR, "progress.sqlite"))
CHECKPOINT_BACKEND = _get_env("CHECKPOINT_BACKEND", "json")  # "json" | "sqlite"
DUMP_RAW_PAGES = _get_env_bool("DUMP_RAW_PAGES", False)

# Logging
LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")
LOG_FILE = _get_env("LOG_FILE", os.path.join(DATA_DIR, "logs", "buyer_scan.log"))

# Scheduler
RESUME_INTERVAL_HOURS = _get_env_float("RESUME_INTERVAL_HOURS", 6.0)


def get_api_key() -> str:
    key = _get_env("BASESCAN_API_KEY") or _get_env("ETHERSCAN_API_KEY")
    if not key:
        raise ConfigurationError(
            "Explorer API key not found. Set BASESCAN_API_KEY (or ETHERSCAN_API_KEY) "
            "in the environment or in .env"
        )
    return key
