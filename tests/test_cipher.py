"""
Tests for the cipher engine and the secrets file lifecycle.
"""

import io
import json
import os
import stat
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from filepool.cipher import StreamCipher, DecryptingReader
from filepool.errors import CipherError, SecretLoadError
from filepool.keyfile import (
    SecretMaterial,
    load_or_create_secret,
    load_secret,
    KEY_SIZE,
    IV_SIZE,
)

LENGTHS = [0, 1, 15, 16, 17, 63, 64, 65, 1000, 4096 + 7]


def test_round_trip_all_lengths():
    """decrypt(encrypt(C)) == C for empty, sub-block and multi-block content."""
    print("Testing cipher round-trip...", end=" ")
    secret = SecretMaterial.generate()
    for block_size in [16, 64, 1024 * 1024]:
        cipher = StreamCipher(secret, block_size=block_size)
        for length in LENGTHS:
            plaintext = os.urandom(length)
            encrypted = io.BytesIO()
            cipher.encrypt(io.BytesIO(plaintext), encrypted)

            ciphertext = encrypted.getvalue()
            assert len(ciphertext) == (length // 16 + 1) * 16

            decrypted = io.BytesIO()
            cipher.decrypt(io.BytesIO(ciphertext), decrypted)
            assert decrypted.getvalue() == plaintext, f"length {length}, block {block_size}"
    print("PASS")


def test_chunking_does_not_change_ciphertext():
    """Block size is an I/O detail; the ciphertext is the same."""
    print("Testing chunk independence...", end=" ")
    secret = SecretMaterial.generate()
    plaintext = os.urandom(5000)
    outputs = set()
    for block_size in [1, 16, 100, 4096, 1024 * 1024]:
        out = io.BytesIO()
        StreamCipher(secret, block_size).encrypt(io.BytesIO(plaintext), out)
        outputs.add(out.getvalue())
    assert len(outputs) == 1
    print("PASS")


def test_decrypting_reader():
    """The inline reader yields the same plaintext as a full decrypt."""
    print("Testing decrypting reader...", end=" ")
    secret = SecretMaterial.generate()
    cipher = StreamCipher(secret, block_size=32)
    for length in LENGTHS:
        plaintext = os.urandom(length)
        encrypted = io.BytesIO()
        cipher.encrypt(io.BytesIO(plaintext), encrypted)
        encrypted.seek(0)

        reader = DecryptingReader(encrypted, secret, block_size=32)
        pieces = []
        while True:
            piece = reader.read(7)
            if not piece:
                break
            pieces.append(piece)
        assert b"".join(pieces) == plaintext
        reader.close()
        assert encrypted.closed
    print("PASS")


def test_open_decrypted_and_tempfiles():
    """File helpers: encrypt to a temp file, then read it back both ways."""
    print("Testing cipher file helpers...", end=" ")
    secret = SecretMaterial.generate()
    cipher = StreamCipher(secret, block_size=64)
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "plain.bin"
        plaintext = os.urandom(777)
        source.write_bytes(plaintext)

        encrypted = cipher.encrypt_to_tempfile(source, dir=tmpdir)
        decrypted = cipher.decrypt_to_tempfile(encrypted, dir=tmpdir)
        try:
            assert encrypted.read_bytes() != plaintext
            assert decrypted.read_bytes() == plaintext
            with cipher.open_decrypted(encrypted) as f:
                assert f.read() == plaintext
        finally:
            encrypted.unlink()
            decrypted.unlink()
    print("PASS")


def test_truncated_ciphertext_rejected():
    print("Testing truncated ciphertext...", end=" ")
    secret = SecretMaterial.generate()
    cipher = StreamCipher(secret)
    out = io.BytesIO()
    cipher.encrypt(io.BytesIO(b"some content worth protecting"), out)
    truncated = out.getvalue()[:-1]
    try:
        cipher.decrypt(io.BytesIO(truncated), io.BytesIO())
        assert False, "should have raised CipherError"
    except CipherError:
        pass
    print("PASS")


def test_secret_created_with_owner_read_only():
    """A missing secrets file is generated and locked down to 0400."""
    print("Testing secrets file creation...", end=" ")
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "secrets.json"
        secret = load_or_create_secret(path)

        assert len(secret.key) == KEY_SIZE
        assert len(secret.iv) == IV_SIZE
        assert stat.S_IMODE(path.stat().st_mode) == 0o400

        data = json.loads(path.read_text())
        assert set(data) == {"key", "iv"}

        # Second load returns the same material, does not regenerate
        again = load_or_create_secret(path)
        assert again == secret
        assert load_secret(path) == secret
    print("PASS")


def test_corrupt_secret_is_fatal():
    print("Testing corrupt secrets file...", end=" ")
    with tempfile.TemporaryDirectory() as tmpdir:
        cases = {
            "garbage.json": "this is not json",
            "missing-iv.json": json.dumps({"key": "AAAA"}),
            "short-key.json": json.dumps({"key": "AAAA", "iv": "AAAA"}),
        }
        for name, content in cases.items():
            path = Path(tmpdir) / name
            path.write_text(content)
            try:
                load_or_create_secret(path)
                assert False, f"{name} should have raised SecretLoadError"
            except SecretLoadError:
                pass
    print("PASS")


def test_secret_repr_hides_material():
    secret = SecretMaterial.generate()
    assert secret.key.hex() not in repr(secret)
    assert "hidden" in repr(secret)


def main():
    print("=" * 50)
    print("  FilePool Cipher Tests")
    print("=" * 50)

    tests = [
        test_round_trip_all_lengths,
        test_chunking_does_not_change_ciphertext,
        test_decrypting_reader,
        test_open_decrypted_and_tempfiles,
        test_truncated_ciphertext_rejected,
        test_secret_created_with_owner_read_only,
        test_corrupt_secret_is_fatal,
        test_secret_repr_hides_material,
    ]

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {e}")
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
