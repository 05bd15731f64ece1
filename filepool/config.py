"""
Pool configuration.

A PoolConfig is built once by FilePool.setup and never changes afterwards.
Unknown option names are logged and ignored. Invalid values for known
options are rejected.
"""

import grp
import pwd
from dataclasses import dataclass, fields
from pathlib import Path

import structlog

from filepool.cipher import DEFAULT_BLOCK_SIZE
from filepool.errors import ConfigurationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PoolConfig:
    """
    Options recognized by FilePool.setup.

    Attributes:
        secrets_file: Key/IV file. Setting it puts the pool in secured mode.
        encryption_block_size: Bytes processed per cipher step.
        copy_source: Always copy sources instead of hardlinking them.
        mode: Permission bits for stored files (e.g. 0o640).
        owner: User name or uid for stored files.
        group: Group name or gid for stored files.
        max_workers: Size of the ingestion process pool (None = CPU count).

    mode, owner and group are not applied to hardlinked entries, since that
    would change the source file as well. Use copy_source=True to enforce them.
    """
    secrets_file: Path | None = None
    encryption_block_size: int = DEFAULT_BLOCK_SIZE
    copy_source: bool = False
    mode: int | None = None
    owner: str | int | None = None
    group: str | int | None = None
    max_workers: int | None = None

    def __post_init__(self):
        if self.secrets_file is not None:
            object.__setattr__(self, "secrets_file", Path(self.secrets_file))

        if not _is_int(self.encryption_block_size) or self.encryption_block_size <= 0:
            raise ConfigurationError(
                f"encryption_block_size must be a positive integer, got {self.encryption_block_size!r}"
            )
        if not isinstance(self.copy_source, bool):
            raise ConfigurationError(f"copy_source must be True or False, got {self.copy_source!r}")
        if self.mode is not None and (not _is_int(self.mode) or not 0 <= self.mode <= 0o7777):
            raise ConfigurationError(f"mode must be permission bits such as 0o640, got {self.mode!r}")
        for name, lookup in (("owner", pwd.getpwnam), ("group", grp.getgrnam)):
            value = getattr(self, name)
            if value is None or _is_int(value):
                continue
            if not isinstance(value, str):
                raise ConfigurationError(f"{name} must be a name or numeric id, got {value!r}")
            try:
                lookup(value)
            except KeyError:
                raise ConfigurationError(f"Unknown {name} {value!r}") from None
        if self.max_workers is not None and (not _is_int(self.max_workers) or self.max_workers <= 0):
            raise ConfigurationError(f"max_workers must be a positive integer, got {self.max_workers!r}")

    @classmethod
    def option_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_options(cls, **options) -> "PoolConfig":
        """
        Build a config from keyword options, warning about unknown ones.

        Options passed as None fall back to their defaults.
        """
        known = cls.option_names()
        unknown = sorted(set(options) - set(known))
        if unknown:
            logger.warning("Unknown option(s) passed to FilePool.setup", unknown_options=unknown)

        return cls(**{
            name: value
            for name, value in options.items()
            if name in known and value is not None
        })

    @property
    def secured(self) -> bool:
        """True when new entries are encrypted into the secured tree."""
        return self.secrets_file is not None

    @property
    def sets_ownership(self) -> bool:
        return self.owner is not None or self.group is not None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
