"""
Statistics Collector
Aggregates size, count and recency over both trees of a pool.

There is no index: every call walks all leaf entries, which makes this an
O(n) operation. Fine for monitoring, slow for pools with millions of files.
"""

import statistics
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from filepool.identity import SHARD_DEPTH, secured_root

_LEAF_PATTERN = "/".join(["*"] * (SHARD_DEPTH + 1))


@dataclass(frozen=True)
class PoolStats:
    """Snapshot of a pool's contents."""
    total_number: int
    total_size: int
    median_size: float | None
    last_add: datetime | None

    def to_dict(self) -> dict:
        return {
            "total_number": self.total_number,
            "total_size": self.total_size,
            "median_size": self.median_size,
            "last_add": self.last_add,
        }


def median(sizes: list[int]) -> float | None:
    """
    Median of entry sizes.

    Odd counts return the middle value, even counts the mean of the two
    central values. Empty input returns None.
    """
    if not sizes:
        return None
    return statistics.median(sizes)


def iter_entries(tree_root: str | Path):
    """Yield every stored file three directory levels below a tree root."""
    tree_root = Path(tree_root)
    if not tree_root.is_dir():
        return
    for path in tree_root.glob(_LEAF_PATTERN):
        if path.is_file():
            yield path


def collect_stats(root: str | Path) -> PoolStats:
    """Walk the secured and plain trees of a pool and summarize them."""
    sizes = []
    latest = None
    for tree in (secured_root(root), Path(root)):
        for entry in iter_entries(tree):
            try:
                st = entry.stat()
            except FileNotFoundError:
                continue  # removed during the walk
            sizes.append(st.st_size)
            if latest is None or st.st_ctime > latest:
                latest = st.st_ctime

    return PoolStats(
        total_number=len(sizes),
        total_size=sum(sizes),
        median_size=median(sizes),
        last_add=datetime.fromtimestamp(latest, tz=timezone.utc) if latest is not None else None,
    )
