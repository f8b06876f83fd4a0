import hashlib
import os
from pathlib import Path


def cache_dir() -> Path:
    return Path(os.environ.get("PORTFOLIO_BACKTESTER_CACHE_DIR", "data_cache"))


def key_path(prefix: str, key: str, suffix: str = ".csv") -> Path:
    h = hashlib.sha256(key.encode()).hexdigest()[:16]
    return cache_dir() / f"{prefix}_{h}{suffix}"
