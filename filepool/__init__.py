"""
FilePool — sharded, optionally encrypted blob storage on a local filesystem.

Files and streams are stored under random identifiers (type-4 UUIDs) in a
three-level directory tree. Configure a secrets file and every new entry
is encrypted with AES-256-CBC into a parallel "_secured" tree; reads
decrypt on demand.

Usage:
    from filepool import FilePool
    pool = FilePool.setup("/srv/pool", secrets_file="/etc/pool.key")
    fid = pool.add("report.pdf")
    with pool.stream(fid) as f:
        data = f.read()
    pool.remove(fid)
"""

from filepool.pool import FilePool
from filepool.config import PoolConfig
from filepool.cipher import StreamCipher, DecryptingReader, DEFAULT_BLOCK_SIZE
from filepool.keyfile import SecretMaterial, load_or_create_secret
from filepool.identity import new_identifier, is_valid, shard_dir, shard_path
from filepool.results import Outcome
from filepool.stats import PoolStats, collect_stats, median
from filepool.workers import Ingestion
from filepool.errors import (
    FilePoolError,
    InvalidIdentifier,
    NotFound,
    SourceNotFound,
    FilesystemError,
    SecretLoadError,
    CipherError,
    ConfigurationError,
)

__version__ = "1.0.0"
__all__ = [
    "FilePool",
    "PoolConfig",
    "StreamCipher",
    "DecryptingReader",
    "DEFAULT_BLOCK_SIZE",
    "SecretMaterial",
    "load_or_create_secret",
    "new_identifier",
    "is_valid",
    "shard_dir",
    "shard_path",
    "Outcome",
    "PoolStats",
    "collect_stats",
    "median",
    "Ingestion",
    "FilePoolError",
    "InvalidIdentifier",
    "NotFound",
    "SourceNotFound",
    "FilesystemError",
    "SecretLoadError",
    "CipherError",
    "ConfigurationError",
]
