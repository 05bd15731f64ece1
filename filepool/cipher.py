"""
Cipher Engine
Streams bytes through AES-256-CBC in bounded-memory chunks.

Both directions read the source in fixed-size blocks and write as they go,
so memory use depends on the block size, never on the file size. Padding
is PKCS7, the scheme OpenSSL applies by default, so a pool encrypted by any
OpenSSL-based tool with the same key/IV decrypts here and vice versa.

Decryption is also available as a file-like reader (DecryptingReader):
plaintext is produced while the caller reads, instead of being
materialized to a temporary file first.
"""

import io
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from filepool.errors import CipherError
from filepool.keyfile import SecretMaterial

DEFAULT_BLOCK_SIZE = 1024 * 1024  # 1 MiB
_AES_BLOCK_BITS = algorithms.AES.block_size


class _Encryption:
    """Pad-then-encrypt, fed chunk by chunk."""

    def __init__(self, secret: SecretMaterial):
        cipher = Cipher(algorithms.AES(secret.key), modes.CBC(secret.iv))
        self._encryptor = cipher.encryptor()
        self._padder = padding.PKCS7(_AES_BLOCK_BITS).padder()

    def update(self, chunk: bytes) -> bytes:
        return self._encryptor.update(self._padder.update(chunk))

    def finalize(self) -> bytes:
        return self._encryptor.update(self._padder.finalize()) + self._encryptor.finalize()


class _Decryption:
    """Decrypt-then-unpad, fed chunk by chunk."""

    def __init__(self, secret: SecretMaterial):
        cipher = Cipher(algorithms.AES(secret.key), modes.CBC(secret.iv))
        self._decryptor = cipher.decryptor()
        self._unpadder = padding.PKCS7(_AES_BLOCK_BITS).unpadder()

    def update(self, chunk: bytes) -> bytes:
        return self._unpadder.update(self._decryptor.update(chunk))

    def finalize(self) -> bytes:
        try:
            tail = self._decryptor.finalize()
            return self._unpadder.update(tail) + self._unpadder.finalize()
        except ValueError as e:
            raise CipherError(f"Ciphertext could not be decrypted: {e}") from e


class DecryptingReader(io.RawIOBase):
    """
    Read-only raw stream yielding the plaintext of an encrypted stream.

    Wrap it in io.BufferedReader for the usual read()/readline() API.
    Closing the reader closes the underlying ciphertext stream.

    Args:
        raw: Binary stream of ciphertext.
        secret: Key/IV the ciphertext was produced with.
        block_size: Bytes of ciphertext pulled from `raw` per refill.
    """

    def __init__(self, raw: BinaryIO, secret: SecretMaterial, block_size: int = DEFAULT_BLOCK_SIZE):
        super().__init__()
        self._raw = raw
        self._transform = _Decryption(secret)
        self._block_size = block_size
        self._pending = b""
        self._offset = 0
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while self._offset >= len(self._pending) and not self._eof:
            chunk = self._raw.read(self._block_size)
            if chunk:
                self._pending = self._transform.update(chunk)
            else:
                self._pending = self._transform.finalize()
                self._eof = True
            self._offset = 0

        available = len(self._pending) - self._offset
        count = min(len(buffer), available)
        buffer[:count] = self._pending[self._offset:self._offset + count]
        self._offset += count
        return count

    def close(self):
        if not self.closed:
            self._raw.close()
        super().close()


class StreamCipher:
    """
    Bidirectional chunked AES-256-CBC transform between binary streams.

    Args:
        secret: Key/IV pair used for both directions.
        block_size: Number of bytes read from the source per step.
    """

    def __init__(self, secret: SecretMaterial, block_size: int = DEFAULT_BLOCK_SIZE):
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self.secret = secret
        self.block_size = block_size

    def _pump(self, transform, src: BinaryIO, dst: BinaryIO) -> None:
        while True:
            chunk = src.read(self.block_size)
            if not chunk:
                break
            dst.write(transform.update(chunk))
        dst.write(transform.finalize())

    def encrypt(self, src: BinaryIO, dst: BinaryIO) -> None:
        """Encrypt everything readable from `src` into `dst`."""
        self._pump(_Encryption(self.secret), src, dst)

    def decrypt(self, src: BinaryIO, dst: BinaryIO) -> None:
        """
        Decrypt everything readable from `src` into `dst`.

        Raises:
            CipherError: If the ciphertext is truncated or its padding is wrong.
        """
        self._pump(_Decryption(self.secret), src, dst)

    def encrypt_to_tempfile(self, path: str | Path, dir: str | Path | None = None) -> Path:
        """
        Encrypt a file into a new temporary file.

        Returns:
            Path of the temporary ciphertext. The caller removes it.
        """
        return self._to_tempfile(self.encrypt, path, "filepool-encrypt-", dir)

    def decrypt_to_tempfile(self, path: str | Path, dir: str | Path | None = None) -> Path:
        """
        Decrypt a file into a new temporary file.

        Returns:
            Path of the temporary plaintext. The caller owns it.
        """
        return self._to_tempfile(self.decrypt, path, "filepool-decrypt-", dir)

    def _to_tempfile(self, direction, path, prefix: str, dir) -> Path:
        fd, tmp_name = tempfile.mkstemp(prefix=prefix, dir=dir)
        try:
            with os.fdopen(fd, "wb") as dst, open(path, "rb") as src:
                direction(src, dst)
        except BaseException:
            os.unlink(tmp_name)
            raise
        return Path(tmp_name)

    def open_decrypted(self, path: str | Path) -> io.BufferedReader:
        """Open an encrypted file for reading its plaintext."""
        raw = open(path, "rb", buffering=0)
        return io.BufferedReader(DecryptingReader(raw, self.secret, self.block_size))
