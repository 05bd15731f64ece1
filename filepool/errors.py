"""
FilePool errors.

Strict operations (add, remove) raise these. Lenient variants (try_add,
try_remove) never raise; they collapse any failure into False.
"""


class FilePoolError(Exception):
    """Base class for every error raised by the pool."""


class InvalidIdentifier(FilePoolError, ValueError):
    """The identifier is not a canonical type-4 UUID string."""

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"Invalid file id: {identifier!r}")


class NotFound(FilePoolError, LookupError):
    """The identifier is well-formed but no entry exists for it."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"No entry stored under {identifier}")


class SourceNotFound(FilePoolError, FileNotFoundError):
    """The file handed to add() does not exist or cannot be read."""


class FilesystemError(FilePoolError):
    """Placement or removal failed at the OS level (permissions, disk full, ...)."""


class SecretLoadError(FilePoolError):
    """
    The secrets file exists but could not be used.

    Fatal at setup: a pool asked to run in secured mode never falls back
    to plain mode.
    """


class CipherError(FilePoolError):
    """Ciphertext could not be decrypted (wrong length or padding)."""


class ConfigurationError(FilePoolError, ValueError):
    """An option passed to FilePool.setup has an unusable value."""
