"""
FilePool — Basic Usage Example

Stores a file in a plain pool and in a secured (encrypted) pool, reads it
back both ways and prints pool statistics.
"""

import sys
import tempfile
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from filepool import FilePool
from filepool.logging import configure_logging


def main():
    configure_logging(level="INFO")

    print("=" * 50)
    print("  FilePool — Sharded + Encrypted Storage")
    print("=" * 50)

    with tempfile.TemporaryDirectory() as workdir:
        workdir = Path(workdir)
        document = workdir / "journal.txt"
        document.write_text("Had a breakthrough idea today.\nBuilt the prototype. It works.\n")

        # Plain pool: the document is hardlinked into the tree
        with FilePool.setup(str(workdir / "pool")) as pool:
            fid = pool.add(document)
            print(f"\n  Stored plain:     {fid}")
            print(f"  Located at:       {pool.path(fid)}")

        # Secured pool: new entries are encrypted into pool_secured/
        secrets = workdir / "pool-secrets.json"
        with FilePool.setup(str(workdir / "pool"), secrets_file=str(secrets)) as pool:
            sid = pool.add(document)
            print(f"\n  Stored encrypted: {sid}")
            print(f"  Ciphertext at:    {pool.path(sid, decrypt=False)}")
            print(f"  Encrypted?        {pool.is_encrypted(sid)}")

            with pool.stream(sid) as f:
                print(f"  Decrypted:        {f.read().decode().splitlines()[0]!r}")

            stats = pool.stat()
            print(f"\n  Entries:          {stats.total_number}")
            print(f"  Total bytes:      {stats.total_size}")
            print(f"  Median size:      {stats.median_size}")
            print(f"  Last added:       {stats.last_add:%Y-%m-%d %H:%M:%S}")

            pool.remove(sid)
            print(f"\n  Removed {sid}: {not pool.exists(sid)}")


if __name__ == "__main__":
    main()
