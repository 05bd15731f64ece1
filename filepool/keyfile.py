"""
Secret Lifecycle
Loads or initializes the key/IV pair that puts a pool into secured mode.

The secrets file is a small JSON document:

    {"key": "<base64 32 bytes>", "iv": "<base64 16 bytes>"}

When the configured file does not exist yet, a fresh random pair is
generated, written with owner-only permissions and then made read-only
(0400) before the pool encrypts anything with it. Every other failure is
fatal: the pool refuses to start in secured mode without usable secrets.
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from pathlib import Path

import structlog

from filepool.errors import SecretLoadError

logger = structlog.get_logger(__name__)

KEY_SIZE = 32   # AES-256
IV_SIZE = 16    # AES block size
SECRETS_FILE_MODE = 0o400


@dataclass(frozen=True)
class SecretMaterial:
    """Key and initialization vector for AES-256-CBC."""
    key: bytes
    iv: bytes

    def __post_init__(self):
        if len(self.key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(self.key)}")
        if len(self.iv) != IV_SIZE:
            raise ValueError(f"IV must be {IV_SIZE} bytes, got {len(self.iv)}")

    def __repr__(self) -> str:
        return "SecretMaterial(key=<hidden>, iv=<hidden>)"

    @classmethod
    def generate(cls) -> "SecretMaterial":
        """Create a new random key/IV pair."""
        return cls(key=os.urandom(KEY_SIZE), iv=os.urandom(IV_SIZE))

    def to_dict(self) -> dict:
        return {
            "key": base64.b64encode(self.key).decode(),
            "iv": base64.b64encode(self.iv).decode(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SecretMaterial":
        return cls(
            key=base64.b64decode(data["key"], validate=True),
            iv=base64.b64decode(data["iv"], validate=True),
        )


def write_secret(path: str | Path, secret: SecretMaterial) -> None:
    """
    Persist secret material to a new file readable only by its owner.

    Args:
        path: Destination. Must not exist yet.
        secret: The key/IV pair to store.
    """
    path = Path(path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(secret.to_dict(), f)
    os.chmod(path, SECRETS_FILE_MODE)


def load_secret(path: str | Path) -> SecretMaterial:
    """
    Read secret material from an existing file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SecretLoadError: If the file exists but is unreadable or malformed.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
        return SecretMaterial.from_dict(data)
    except FileNotFoundError:
        raise
    except (OSError, ValueError, KeyError, TypeError, binascii.Error) as e:
        raise SecretLoadError(f"Could not load secrets from {path}: {e}") from e


def load_or_create_secret(path: str | Path) -> SecretMaterial:
    """
    Load the secrets file, creating it on first use.

    Args:
        path: Location of the secrets file.

    Returns:
        The key/IV pair the pool encrypts with.

    Raises:
        SecretLoadError: If an existing file cannot be used, or a new one
            cannot be written.
    """
    path = Path(path)
    try:
        return load_secret(path)
    except FileNotFoundError:
        pass

    secret = SecretMaterial.generate()
    try:
        write_secret(path, secret)
    except OSError as e:
        raise SecretLoadError(f"Could not write secrets to {path}: {e}") from e

    logger.info("Generated new pool secrets", path=str(path))
    return secret
