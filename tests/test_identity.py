"""
Tests for identifiers, shard layout and pool statistics helpers.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from filepool.identity import (
    is_valid,
    new_identifier,
    secured_root,
    shard_dir,
    shard_path,
    SHARD_DEPTH,
)
from filepool.stats import median, PoolStats


def test_new_identifiers_are_valid():
    """Every allocated identifier passes validation."""
    print("Testing identifier allocation...", end=" ")
    ids = [new_identifier() for _ in range(500)]
    assert all(is_valid(i) for i in ids)
    assert len(set(ids)) == 500
    print("PASS")


def test_malformed_identifiers_rejected():
    """Malformed values are invalid and never raise."""
    print("Testing malformed identifiers...", end=" ")
    bad = [
        "",
        "invalid-id",
        "not-a-uuid",
        "61e9b2d1-1738-440d-9b3d-e3c64876f2bz",    # non-hex
        "61e9b2d1-1738-440d-9b3d-e3c64876f2b",     # too short
        "61e9b2d1-1738-440d-9b3d-e3c64876f2b00",   # too long
        "61e9b2d1-1738-140d-9b3d-e3c64876f2b0",    # version 1
        "61e9b2d1-1738-440d-cb3d-e3c64876f2b0",    # wrong variant
        "61E9B2D1-1738-440D-9B3D-E3C64876F2B0",    # not canonical
        "61e9b2d11738440d9b3de3c64876f2b0",        # no hyphens
        None,
        42,
    ]
    for value in bad:
        assert not is_valid(value), f"{value!r} should be invalid"
    assert is_valid("61e9b2d1-1738-440d-9b3d-e3c64876f2b0")
    print("PASS")


def test_shard_layout():
    """Shard path uses the first three characters as directories."""
    print("Testing shard layout...", end=" ")
    fid = "61e9b2d1-1738-440d-9b3d-e3c64876f2b0"
    assert SHARD_DEPTH == 3
    assert shard_dir("/pool", fid) == Path("/pool/6/1/e")
    assert shard_path("/pool", fid) == Path(f"/pool/6/1/e/{fid}")
    assert shard_path(secured_root("/pool"), fid) == Path(f"/pool_secured/6/1/e/{fid}")
    # Pure: same input, same output
    assert shard_dir("/pool", fid) == shard_dir(Path("/pool"), fid)
    print("PASS")


def test_median():
    """Median picks the middle value, or averages the two central ones."""
    print("Testing median...", end=" ")
    assert median([10, 20, 30]) == 20
    assert median([10, 20, 30, 40]) == 25.0
    assert median([30, 10, 20]) == 20
    assert median([7]) == 7
    assert median([]) is None
    print("PASS")


def test_stats_to_dict():
    print("Testing stats dict...", end=" ")
    stats = PoolStats(total_number=2, total_size=30, median_size=15.0, last_add=None)
    assert stats.to_dict() == {
        "total_number": 2,
        "total_size": 30,
        "median_size": 15.0,
        "last_add": None,
    }
    print("PASS")


def main():
    print("=" * 50)
    print("  FilePool Identity Tests")
    print("=" * 50)

    tests = [
        test_new_identifiers_are_valid,
        test_malformed_identifiers_rejected,
        test_shard_layout,
        test_median,
        test_stats_to_dict,
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
