"""On-disk JSON cache for chain data that can no longer change.

Two kinds of entries are stored, each in its own directory:

    <cache root>/v<CACHE_VERSION>/logs/<sha256>.json   eth_getLogs results of final block ranges
    <cache root>/v<CACHE_VERSION>/pps/<sha256>.json    historical price per share of a vault at a block

Bumping CACHE_VERSION moves lookups to a fresh directory; clear_cache() removes every version.
The accounting pipeline never touches the cache; only the fetchers do.
"""

import hashlib
import json
import os
import shutil
import sys
from pathlib import Path
from typing import Any

from vaults_pnl.constants import CACHE_DIR_NAME, CACHE_VERSION

LOGS = "logs"
PRICES = "pps"


def get_cache_dir() -> Path:
    """Cache root: $XDG_CACHE_HOME/<CACHE_DIR_NAME>, or ~/.cache/<CACHE_DIR_NAME>."""
    cache_home = os.getenv("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    cache_dir = base / CACHE_DIR_NAME
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def cache_key(kind: str, *parts: Any) -> str:
    """
    Key of one entry: "<kind>/<sha256 of the parts>".

    Addresses are lower-cased first so a checksummed and a plain address share an entry.
    """
    normalized = [p.lower() if isinstance(p, str) and p.startswith("0x") else p for p in parts]
    digest = hashlib.sha256(":".join(str(p) for p in normalized).encode()).hexdigest()
    return f"{kind}/{digest}"


def cache_file(key: str) -> Path:
    return get_cache_dir() / f"v{CACHE_VERSION}" / f"{key}.json"


def count_entries() -> dict[str, int]:
    """Entries of the current version, per kind."""
    version_dir = get_cache_dir() / f"v{CACHE_VERSION}"
    if not version_dir.is_dir():
        return {}
    return {d.name: sum(1 for _ in d.glob("*.json")) for d in sorted(version_dir.iterdir()) if d.is_dir()}


def clear_cache() -> None:
    """Remove cached logs and prices of every cache version."""
    cache_dir = get_cache_dir()
    counts = count_entries()
    if not any(cache_dir.iterdir()):
        print("ℹ️  Cache is empty (nothing to clear).", file=sys.stderr)
        return
    shutil.rmtree(cache_dir)
    summary = ", ".join(f"{kind}: {n}" for kind, n in counts.items()) or "no current entries"
    print(f"✅ Cache cleared successfully ({summary}).", file=sys.stderr)


def get_cached(key: str) -> Any | None:
    """Cached value, or None when missing or unreadable (the caller refetches)."""
    path = cache_file(key)
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


def set_cached(key: str, data: Any) -> None:
    """Store a JSON-serializable value. A failed write only costs a refetch next run."""
    path = cache_file(key)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, separators=(",", ":"))
    except (OSError, TypeError) as ex:
        print(f"⚠️  Cache write failed ({key}): {ex}", file=sys.stderr)
