#!/usr/bin/env python3
# scripts/check_receipts.py
# WO-10: Run-receipt comparison tool

from __future__ import annotations
import argparse
import json
import sys

# Keys that legitimately differ between machines or are not part of a run's result
VOLATILE_KEYS = ("env", "config")


def load_jsonl(path: str) -> list[dict]:
    """
    Load JSONL file as list of records.

    Args:
        path: path to JSONL file

    Returns:
        list of parsed JSON objects
    """
    with open(path) as f:
        return [json.loads(line) for line in f if line.strip()]


def deep_diff(a, b, path: str = "") -> list[str]:
    """
    Recursively find differences between two JSON values.

    Returns:
        list of difference descriptions
    """
    if isinstance(a, dict) and isinstance(b, dict):
        diffs = []
        only_a = set(a) - set(b)
        only_b = set(b) - set(a)
        if only_a:
            diffs.append(f"{path}: keys only in A: {sorted(only_a)}")
        if only_b:
            diffs.append(f"{path}: keys only in B: {sorted(only_b)}")
        for key in sorted(set(a) & set(b)):
            diffs.extend(deep_diff(a[key], b[key], f"{path}.{key}" if path else key))
        return diffs

    if isinstance(a, list) and isinstance(b, list) and len(a) == len(b):
        diffs = []
        for i, (x, y) in enumerate(zip(a, b)):
            diffs.extend(deep_diff(x, y, f"{path}[{i}]"))
        return diffs

    return [] if a == b else [f"{path}: {a!r} != {b!r}"]


def strip_volatile(record: dict) -> dict:
    return {k: v for k, v in record.items() if k not in VOLATILE_KEYS}


def main():
    """
    Compare two run-receipt JSONL files.

    Usage:
        python scripts/check_receipts.py <a.jsonl> <b.jsonl> [--strict]

    Without --strict the env fingerprint and config echo are ignored, so runs
    from different machines can be compared on their section hashes.

    Exit codes:
        0: receipts match
        1: receipts differ
    """
    parser = argparse.ArgumentParser(description="Compare run receipts")
    parser.add_argument("file_a")
    parser.add_argument("file_b")
    parser.add_argument("--strict", action="store_true", help="Also compare env and config")
    args = parser.parse_args()

    print("Comparing receipts:")
    print(f"  A: {args.file_a}")
    print(f"  B: {args.file_b}")

    records_a = load_jsonl(args.file_a)
    records_b = load_jsonl(args.file_b)

    if len(records_a) != len(records_b):
        print(f"✗ RECEIPTS_DIFFER: record count mismatch ({len(records_a)} vs {len(records_b)})")
        sys.exit(1)

    all_match = True
    for i, (rec_a, rec_b) in enumerate(zip(records_a, records_b)):
        if not args.strict:
            rec_a, rec_b = strip_volatile(rec_a), strip_volatile(rec_b)
        if rec_a.get("table_hash") and rec_a.get("table_hash") == rec_b.get("table_hash"):
            continue
        diffs = deep_diff(rec_a, rec_b, f"record[{i}]")
        if diffs:
            all_match = False
            print(f"\n✗ Differences in record {i}:")
            for diff in diffs[:10]:
                print(f"  {diff}")
            if len(diffs) > 10:
                print(f"  ... and {len(diffs) - 10} more differences")

    if all_match:
        print(f"✓ RECEIPTS_MATCH ({len(records_a)} records)")
        return

    print("\n✗ RECEIPTS_DIFFER")
    sys.exit(1)


if __name__ == "__main__":
    main()
