"""
Ingestion Pipeline
Places a source file or stream at its shard path.

Path-based placement (place_file) runs inside a worker process, so
everything it needs travels in a picklable PlacementJob. Placement tries a
hardlink first and falls back to a byte copy when source and pool live on
different filesystems. In secured mode the source is first encrypted into
a temporary file and that file is placed instead; the original is never
touched.

Permission and ownership policy is applied only to files the pool owns
outright. A hardlink shares its inode with the caller's file, and changing
its mode would change the caller's file too.
"""

import errno
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from filepool.cipher import DEFAULT_BLOCK_SIZE, StreamCipher
from filepool.errors import FilesystemError
from filepool.keyfile import SecretMaterial


@dataclass(frozen=True)
class FilePolicy:
    """Mode and ownership applied to stored files."""
    mode: int | None = None
    owner: str | int | None = None
    group: str | int | None = None

    def apply(self, path: Path) -> None:
        if self.mode is not None:
            os.chmod(path, self.mode)
        if self.owner is not None or self.group is not None:
            shutil.chown(path, user=self.owner, group=self.group)


@dataclass(frozen=True)
class PlacementJob:
    """Everything a worker process needs to store one file."""
    identifier: str
    source: Path
    target: Path
    policy: FilePolicy = FilePolicy()
    copy_source: bool = False
    secret: SecretMaterial | None = None
    block_size: int = DEFAULT_BLOCK_SIZE


def link_or_copy(source: Path, target: Path, force_copy: bool = False) -> bool:
    """
    Hardlink `source` to `target`, copying across filesystems.

    Returns:
        True if a hardlink was created, False if the content was copied.
    """
    if not force_copy:
        try:
            os.link(source, target)
            return True
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
    shutil.copyfile(source, target)
    return False


def place_file(job: PlacementJob) -> Path:
    """
    Store one file at its shard path. Runs in a worker process.

    Either the entry ends up complete, with its policy applied, or nothing
    is left at the shard path.

    Returns:
        The path of the stored entry.

    Raises:
        FilesystemError: If any filesystem step fails, including an unknown
            owner or group.
    """
    try:
        job.target.parent.mkdir(parents=True, exist_ok=True)

        if job.secret is not None:
            staged = StreamCipher(job.secret, job.block_size).encrypt_to_tempfile(job.source)
        else:
            staged = job.source

        try:
            try:
                linked = link_or_copy(staged, job.target, force_copy=job.copy_source)
                if staged != job.source and not linked:
                    # keep the owner-only mode of the staged ciphertext
                    shutil.copymode(staged, job.target)
                if not os.path.samefile(job.source, job.target):
                    job.policy.apply(job.target)
            except FileExistsError:
                raise
            except BaseException:
                job.target.unlink(missing_ok=True)
                raise
        finally:
            if staged != job.source:
                staged.unlink(missing_ok=True)
    except (OSError, LookupError) as e:
        raise FilesystemError(f"Could not store {job.source} as {job.identifier}: {e}") from e

    return job.target


def write_stream(
    identifier: str,
    stream: BinaryIO,
    target: Path,
    policy: FilePolicy,
    cipher: StreamCipher | None = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> Path:
    """
    Write a caller's stream to a new entry, encrypting when a cipher is given.

    The shard directory must already exist. If the stream, the cipher or
    the policy fails, the partly written entry is removed.

    Raises:
        FilesystemError: If the entry cannot be written.
        Whatever the stream itself raises while being read.
    """
    try:
        with open(target, "xb") as out:
            if cipher is not None:
                cipher.encrypt(stream, out)
            else:
                shutil.copyfileobj(stream, out, block_size)
        policy.apply(target)
    except FileExistsError as e:
        raise FilesystemError(f"Could not write stream as {identifier}: {e}") from e
    except BaseException as e:
        target.unlink(missing_ok=True)
        if isinstance(e, (OSError, LookupError)):
            raise FilesystemError(f"Could not write stream as {identifier}: {e}") from e
        raise

    return target
