"""
FilePool — the storage facade.

Ties identity, secrets, cipher, ingestion and statistics together behind
one object created by FilePool.setup(). A pool never changes its
configuration; call setup() again to get a differently configured pool.

Flow for adding a file:
1. Check the source exists (before an identifier is spent)
2. Allocate a random identifier and compute its shard path
3. Hand a PlacementJob to a worker process
4. Wait for it, or detach and return immediately

Flow for reading a file:
1. Validate the identifier
2. Look in the secured tree, then in the plain tree
3. Decrypt on demand (temporary file for path(), inline for stream())

Strict methods (add, remove) raise FilePoolError subclasses. The lenient
ones (try_add, try_remove) return False on any failure; the *_result
variants return an Outcome holding the error instead.
"""

import os
from pathlib import Path
from typing import BinaryIO

import structlog

from filepool.cipher import StreamCipher
from filepool.config import PoolConfig
from filepool.errors import (
    ConfigurationError,
    FilesystemError,
    InvalidIdentifier,
    NotFound,
    SourceNotFound,
)
from filepool.identity import is_valid, new_identifier, secured_root, shard_path
from filepool.ingest import FilePolicy, PlacementJob, place_file, write_stream
from filepool.keyfile import SecretMaterial, load_or_create_secret
from filepool.results import Outcome
from filepool.stats import PoolStats, collect_stats
from filepool.workers import Ingestion, WorkerPool

logger = structlog.get_logger(__name__)


class FilePool:
    """
    Sharded, optionally encrypted blob store rooted at one directory.

    Use FilePool.setup() rather than the constructor: it validates the
    options and loads (or creates) the secrets file.

    Args:
        root: Absolute path of the plain tree. The secured tree lives next
            to it as `<root>_secured`.
        config: Validated pool configuration.
        secret: Key/IV pair. Required when config.secured is true.
    """

    def __init__(self, root: str | Path, config: PoolConfig, secret: SecretMaterial | None = None):
        root = Path(root)
        if not root.is_absolute():
            raise ConfigurationError(f"Pool root must be an absolute path, got {str(root)!r}")
        if config.secured and secret is None:
            raise ConfigurationError("Secured pools need secret material")

        self.root = root
        self.secured_root = secured_root(root)
        self.config = config
        self._secret = secret if config.secured else None
        self._cipher = StreamCipher(secret, config.encryption_block_size) if self._secret else None
        self._policy = FilePolicy(mode=config.mode, owner=config.owner, group=config.group)
        self._workers = WorkerPool(max_workers=config.max_workers)

    @classmethod
    def setup(cls, root: str | Path, **options) -> "FilePool":
        """
        Create a pool rooted at `root`.

        Options:
            secrets_file: Key/IV file. Its presence turns on secured mode;
                a missing file is created with a new random key.
            encryption_block_size: Cipher chunk size in bytes (default 1 MiB).
            copy_source: Always copy instead of hardlinking (default False).
            mode, owner, group: Applied to stored files that are not
                hardlinks of the source.
            max_workers: Size of the ingestion process pool.

        Unknown options are logged as a warning and ignored.

        Raises:
            ConfigurationError: If an option value is invalid.
            SecretLoadError: If the secrets file exists but cannot be used.
        """
        config = PoolConfig.from_options(**options)
        secret = load_or_create_secret(config.secrets_file) if config.secured else None
        return cls(root, config, secret)

    @property
    def secured(self) -> bool:
        """True when new entries are encrypted into the secured tree."""
        return self.config.secured

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pools. With wait=True, finish pending adds first."""
        self._workers.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- layout -------------------------------------------------------

    def _current_tree(self) -> Path:
        return self.secured_root if self.secured else self.root

    def _check(self, identifier: str) -> None:
        if not is_valid(identifier):
            raise InvalidIdentifier(identifier)

    def _locate(self, identifier: str) -> tuple[Path, bool]:
        """
        Where the entry is, or would be.

        Returns:
            (path, found_in_secured_tree)
        """
        secured = shard_path(self.secured_root, identifier)
        if secured.is_file():
            return secured, True
        plain = shard_path(self.root, identifier)
        if plain.is_file():
            return plain, False
        return shard_path(self._current_tree(), identifier), False

    # --- ingestion ----------------------------------------------------

    def submit(self, source: str | Path) -> Ingestion:
        """
        Start storing a file and return its identifier with the pending task.

        Raises:
            SourceNotFound: If the source is missing or unreadable. No
                identifier is allocated in that case.
        """
        source = Path(source)
        if not source.is_file() or not os.access(source, os.R_OK):
            raise SourceNotFound(f"Cannot read source file {source}")

        identifier = new_identifier()
        job = PlacementJob(
            identifier=identifier,
            source=source.absolute(),
            target=shard_path(self._current_tree(), identifier),
            policy=self._policy,
            copy_source=self.config.copy_source,
            secret=self._secret,
            block_size=self.config.encryption_block_size,
        )
        future = self._workers.submit(place_file, job)
        logger.debug("Ingestion submitted", identifier=identifier, source=str(source))
        return Ingestion(identifier, future)

    def add(self, source: str | Path, background: bool = False) -> str:
        """
        Store a file and return its new identifier.

        The file is hardlinked into the pool when possible and copied
        otherwise; in secured mode an encrypted copy is stored.

        Args:
            source: Path of the file to add.
            background: Return before the file is stored. The entry may not
                be visible to path()/stream() yet, and failures are only
                logged.

        Returns:
            The identifier of the new entry.

        Raises:
            SourceNotFound: If the source is missing or unreadable.
            FilesystemError: If placement fails (only when not in background).
        """
        ingestion = self.submit(source)
        if background:
            self._workers.detach(ingestion)
        else:
            ingestion.wait()
        return ingestion.identifier

    def add_result(self, source: str | Path, background: bool = False) -> Outcome[str]:
        """Like add(), but returns an Outcome instead of raising."""
        try:
            return Outcome.success(self.add(source, background=background))
        except Exception as e:
            return Outcome.failure(e)

    def try_add(self, source: str | Path, background: bool = False) -> str | bool:
        """Like add(), but returns False instead of raising."""
        return self.add_result(source, background=background).value_or_false()

    def submit_stream(self, stream: BinaryIO) -> Ingestion:
        """
        Start storing the content of a binary stream.

        The stream is read on a worker thread; the caller must not use it
        until the returned task is done. A secured pool encrypts the content
        into the secured tree. A plain pool has no key: the content is
        stored unencrypted in the plain tree and a warning is logged.
        If the stream fails partway, no entry is left behind.
        """
        identifier = new_identifier()
        target = shard_path(self._current_tree(), identifier)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Could not create {target.parent}: {e}") from e

        if self._cipher is None:
            logger.warning("Stream stored without encryption, pool has no secrets", identifier=identifier)

        future = self._workers.submit_local(
            write_stream,
            identifier,
            stream,
            target,
            self._policy,
            self._cipher,
            self.config.encryption_block_size,
        )
        return Ingestion(identifier, future)

    def add_stream(self, stream: BinaryIO) -> str:
        """
        Store the content of a binary stream in the background.

        Returns the identifier immediately; the entry appears once the
        worker has drained the stream. Failures are logged, not raised.

        Only a secured pool encrypts the stream. In a plain pool it is
        stored as plaintext, with a warning logged for each call.
        """
        ingestion = self.submit_stream(stream)
        self._workers.detach(ingestion)
        return ingestion.identifier

    # --- retrieval ----------------------------------------------------

    def path(self, identifier: str, decrypt: bool = True) -> Path:
        """
        Filesystem path of an entry.

        Args:
            identifier: Identifier returned by add().
            decrypt: For encrypted entries, return a decrypted temporary
                copy (default). The caller deletes that copy when done.
                With decrypt=False the stored ciphertext path is returned.

        Returns:
            The entry's path. If nothing is stored under the identifier,
            the path it would have under the pool's current mode, which
            does not exist. Use exists() to tell the cases apart.

        Raises:
            InvalidIdentifier: If the identifier is malformed.
        """
        self._check(identifier)
        path, in_secured_tree = self._locate(identifier)
        if in_secured_tree and decrypt and self._cipher is not None:
            return self._cipher.decrypt_to_tempfile(path)
        return path

    def stream(self, identifier: str, decrypt: bool = True) -> BinaryIO:
        """
        Open an entry for reading.

        Encrypted entries are decrypted while being read unless
        decrypt=False. Close the returned stream when done.

        Raises:
            InvalidIdentifier: If the identifier is malformed.
            NotFound: If nothing is stored under the identifier.
        """
        self._check(identifier)
        path, in_secured_tree = self._locate(identifier)
        try:
            if in_secured_tree and decrypt and self._cipher is not None:
                return self._cipher.open_decrypted(path)
            return open(path, "rb")
        except FileNotFoundError as e:
            raise NotFound(identifier) from e

    def exists(self, identifier: str) -> bool:
        """True if an entry is stored under the identifier, in either tree."""
        if not is_valid(identifier):
            return False
        return (
            shard_path(self.secured_root, identifier).is_file()
            or shard_path(self.root, identifier).is_file()
        )

    def is_encrypted(self, identifier: str) -> bool:
        """
        True if the entry sits in the secured tree.

        This reports placement only; the content itself is not inspected.
        """
        if not is_valid(identifier):
            return False
        return shard_path(self.secured_root, identifier).is_file()

    # --- removal ------------------------------------------------------

    def remove(self, identifier: str) -> None:
        """
        Delete a stored entry.

        Raises:
            InvalidIdentifier: If the identifier is malformed.
            NotFound: If nothing is stored under the identifier.
            FilesystemError: If the file cannot be deleted.
        """
        path = self.path(identifier, decrypt=False)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFound(identifier) from e
        except OSError as e:
            raise FilesystemError(f"Could not remove {identifier}: {e}") from e
        logger.debug("Entry removed", identifier=identifier)

    def remove_result(self, identifier: str) -> Outcome[None]:
        """Like remove(), but returns an Outcome instead of raising."""
        try:
            self.remove(identifier)
        except Exception as e:
            return Outcome.failure(e)
        return Outcome.success(None)

    def try_remove(self, identifier: str) -> bool:
        """Like remove(), but returns True/False instead of raising."""
        return self.remove_result(identifier).ok

    # --- statistics ---------------------------------------------------

    def stat(self) -> PoolStats:
        """Count, total size, median size and latest ctime over both trees. Walks everything."""
        return collect_stats(self.root)
