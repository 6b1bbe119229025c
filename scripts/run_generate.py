#!/usr/bin/env python3
# scripts/run_generate.py
# WO-10: Generation CLI with J1 determinism harness

"""
Contract (WO-10):
Run generate() once (or twice with --determinism) and write receipts.

J1 Determinism:
- Run generate() twice with the same seed
- Compare all section hashes + table_hash + output_hash
- Fail if NONDETERMINISTIC_EXECUTION (hashes differ within same env)
- Warn if NONDETERMINISTIC_ENV (env fingerprints differ)

Output:
- Receipts to out/receipts/run.jsonl
- Optional PNG (--png) and terminal preview (--print)
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np

# Add project root to path
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from wfcgen.config import GenerationConfig
from wfcgen.errors import ContradictionError, ImageDecodeError
from wfcgen.io.load_data import load_config, load_image
from wfcgen.io.save import format_ansi, write_jsonl, write_png
from wfcgen.op.receipts import aggregate
from wfcgen.op.solver import fresh_seed
from wfcgen.op.world import MeshCounter, scan_obstacles
from wfcgen.runner import generate


def build_config(args: argparse.Namespace) -> GenerationConfig:
    """Flags override values from --config; unset flags keep config/defaults."""
    base: Dict[str, Any] = load_config(args.config) if args.config else {}
    overrides = {
        "source_image": args.image,
        "output_width": args.width,
        "output_height": args.height,
        "fragment_width": args.fragment_width,
        "fragment_height": args.fragment_height,
        "random_seed": args.seed,
        "max_attempts": args.max_attempts,
        "ground_policy": args.ground_policy,
    }
    for flag in ("reflection", "rotation", "periodic", "ground"):
        value = getattr(args, flag)
        if value is not None:
            key = {
                "reflection": "allow_reflection",
                "rotation": "allow_rotation",
                "ground": "contains_ground",
            }.get(flag, flag)
            overrides[key] = value
    if args.intern:
        overrides["intern_constraints"] = True
    if args.verify:
        overrides["verify_assignment"] = True

    base.update({k: v for k, v in overrides.items() if v is not None})
    return GenerationConfig.from_dict(base)


def run_with_determinism(config: GenerationConfig, image: np.ndarray) -> Dict[str, Any]:
    """
    Run generate() twice with one fixed seed and check J1 determinism.

    Returns:
        {"result": "PASS" | "NONDETERMINISTIC_EXECUTION" | "NONDETERMINISTIC_ENV",
         "error": str | None, "run1": {...}, "run2": {...}}
    """
    if config.random_seed is None:
        config = config.with_seed(fresh_seed())

    grid1, rc1 = generate(config, image=image)
    grid2, rc2 = generate(config, image=image)

    summary = {"result": "PASS", "error": None, "run1": aggregate(rc1), "run2": aggregate(rc2)}

    if rc1.env != rc2.env:
        summary["result"] = "NONDETERMINISTIC_ENV"
        summary["error"] = "Environment fingerprints differ between runs"
        return summary

    if rc1.hashes != rc2.hashes:
        diff_sections = [k for k in rc1.hashes if rc1.hashes.get(k) != rc2.hashes.get(k)]
        summary["result"] = "NONDETERMINISTIC_EXECUTION"
        summary["error"] = f"Section hashes differ between runs: {diff_sections}"
        return summary

    if rc1.table_hash != rc2.table_hash or rc1.final["output_hash"] != rc2.final["output_hash"]:
        summary["result"] = "NONDETERMINISTIC_EXECUTION"
        summary["error"] = "Table/output hashes differ between runs"
        return summary

    if not np.array_equal(grid1, grid2):
        summary["result"] = "NONDETERMINISTIC_EXECUTION"
        summary["error"] = "Outputs differ between runs (array mismatch)"

    return summary


def main():
    """
    Usage:
        python scripts/run_generate.py --image rooms.bmp [--seed 7] [--print] [--png out/map.png]
        python scripts/run_generate.py --config run.json --determinism
    """
    parser = argparse.ArgumentParser(description="Fragment-overlap map generator")
    parser.add_argument("--config", type=str, help="JSON config file")
    parser.add_argument("--image", type=str, help="Sample image path")
    parser.add_argument("--width", type=int, help="Output width (pixels)")
    parser.add_argument("--height", type=int, help="Output height (pixels)")
    parser.add_argument("--fragment-width", type=int)
    parser.add_argument("--fragment-height", type=int)
    parser.add_argument("--reflection", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--rotation", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--periodic", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--ground", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--ground-policy", choices=["base", "orbit"])
    parser.add_argument("--seed", type=int)
    parser.add_argument("--max-attempts", type=int)
    parser.add_argument("--intern", action="store_true", help="Share identical constraint sets")
    parser.add_argument("--verify", action="store_true", help="Re-check the assignment before reconstruction")
    parser.add_argument("--determinism", action="store_true", help="Run twice and compare receipts")
    parser.add_argument("--print", dest="print_grid", action="store_true", help="Truecolor terminal preview")
    parser.add_argument("--png", type=str, help="Write output PNG")
    parser.add_argument("--png-scale", type=int, default=8)
    parser.add_argument("--output", type=str, default="out/receipts/run.jsonl", help="Receipts JSONL path")

    args = parser.parse_args()

    try:
        config = build_config(args)
        config.validate()
        image = load_image(config.source_image)
    except (ValueError, ImageDecodeError) as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    print(f"Sample: {config.source_image} ({image.shape[1]}x{image.shape[0]})")
    print(f"Output: {config.output_width}x{config.output_height}, "
          f"fragment {config.fragment_width}x{config.fragment_height}")

    if args.determinism:
        summary = run_with_determinism(config, image)
        write_jsonl(args.output, [summary])
        print(f"J1: {summary['result']}")
        print(f"Receipts written to: {args.output}")
        if summary["result"] == "NONDETERMINISTIC_EXECUTION":
            print(f"\n❌ {summary['error']}")
            sys.exit(1)
        if summary["result"] == "NONDETERMINISTIC_ENV":
            print(f"\n⚠️  {summary['error']}")
        else:
            print("\n✓ Deterministic")
        sys.exit(0)

    try:
        grid, rc = generate(config, image=image)
    except ContradictionError as e:
        print(f"\n❌ {e}")
        sys.exit(1)

    catalog = rc.sections["catalog"]
    solve = rc.sections["solve"]
    print(f"Catalog: {catalog.fragment_count} fragments, total weight {catalog.total_weight}, "
          f"ground {catalog.ground_count}")
    print(f"Solve: seed {rc.final['seed']} after {solve.attempts} attempt(s)")

    obstacles = scan_obstacles(grid, MeshCounter(), wall_color=config.wall_color, scale=config.world_scale)
    print(f"Walls: {len(obstacles)} obstacle(s)")

    if args.print_grid:
        print(format_ansi(grid))
    if args.png:
        write_png(args.png, grid, scale=args.png_scale)
        print(f"PNG written to: {args.png}")

    write_jsonl(args.output, [aggregate(rc)])
    print(f"Receipts written to: {args.output}")
    print(f"table_hash: {rc.table_hash}")


if __name__ == "__main__":
    main()
