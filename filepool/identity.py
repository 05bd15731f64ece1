"""
Identity & Sharding
Random identifiers and the directory layout derived from them.

Identifiers are type-4 UUIDs, never content hashes. The pool addresses an
entry only through its identifier, and the on-disk location is a pure
function of it:

    <tree>/<id[0]>/<id[1]>/<id[2]>/<id>

Three single-character levels keep every leaf directory small, even for
pools holding millions of entries.
"""

import uuid
from pathlib import Path

SHARD_DEPTH = 3
SECURED_SUFFIX = "_secured"


def new_identifier() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


def is_valid(identifier) -> bool:
    """
    Tell whether a value is a well-formed identifier.

    Only the canonical form (lowercase, hyphenated) of a version 4,
    RFC 4122 variant UUID qualifies. Whether anything is stored under
    it is not checked.
    """
    if not isinstance(identifier, str) or len(identifier) != 36:
        return False
    try:
        parsed = uuid.UUID(identifier)
    except ValueError:
        return False
    return (
        parsed.version == 4
        and parsed.variant == uuid.RFC_4122
        and str(parsed) == identifier
    )


def shard_dir(tree_root: str | Path, identifier: str) -> Path:
    """Directory holding the entry, without the file name. No I/O."""
    return Path(tree_root).joinpath(*identifier[:SHARD_DEPTH])


def shard_path(tree_root: str | Path, identifier: str) -> Path:
    """Full path of the entry inside one tree."""
    return shard_dir(tree_root, identifier) / identifier


def secured_root(root: str | Path) -> Path:
    """Root of the encrypted tree living next to the plain one."""
    root = Path(root)
    return root.with_name(root.name + SECURED_SUFFIX)
