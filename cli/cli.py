#!/usr/bin/env python3
"""Command-line interface for running the slot permuter on a JSON catalog."""

import argparse
import json
import sys
import traceback
from pathlib import Path
import logging

# Ensure project root is on the import path when executing from the CLI folder
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from flags import FlagRegistry, Flags
from permutation import Catalog, KeyItemAssignment, KeyItemPlacementError, Permutation, PermutationValidator
from rng.random_number_generator import RandomNumberGenerator
from version import __version_display__

# Exit code for seeds where key items can't be placed, so scripts can retry
KEY_ITEM_FAILURE_EXIT_CODE = 2


def flag_epilog() -> str:
    """List every flag, grouped by category, for the --help text."""
    lines = ["flags:"]
    for category, definitions in sorted(FlagRegistry.get_flags_by_category().items()):
        lines.append(f"  {category.display_name}")
        for definition in sorted(definitions, key=lambda d: d.key):
            lines.append(f"    {definition.key} (default {definition.get_default()}): {definition.display_name}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Shuffle item placements of a catalog and write the mapping as JSON ({__version_display__}).",
        epilog=flag_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "--catalog",
        required=True,
        help="Path to the catalog JSON describing every slot and annotation.")
    parser.add_argument(
        "--assignment",
        help="Optional path to the key item assignment JSON. "
             "Without it, no key items are placed and lateness follows area order.")
    parser.add_argument(
        "--seed",
        type=int,
        required=True,
        help="Seed value to use when generating the permutation.")
    parser.add_argument(
        "--difficulty",
        type=int,
        help="Shorthand for --flag difficulty=N.")
    parser.add_argument(
        "--flag",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set a flag, e.g. --flag fog=true. May be repeated.")
    parser.add_argument(
        "--output-dir",
        default="outputs",
        help="Directory where the mapping will be written (default: outputs).")
    parser.add_argument(
        "--output-file",
        help="Optional filename or path for the mapping. "
             "If relative, it is placed inside --output-dir.")
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Check the finished permutation and fail if any problem is found.")
    parser.add_argument( '-log',
        '--loglevel',
        default='warning',
        help='Provide logging level. Example --loglevel debug, default=warning' )

    return parser


def build_flags(difficulty, assignments) -> Flags:
    flags = Flags()
    flags.parse_assignments(assignments)
    if difficulty is not None:
        flags.difficulty = difficulty
    return flags


def load_json(path: Path, description: str):
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"{description} not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"{description} is not valid JSON: {exc}") from exc


def resolve_output_path(seed: int, flags: Flags, output_dir: Path, output_file) -> Path:
    if output_file:
        candidate = Path(output_file)
        if candidate.is_absolute():
            return candidate
        return output_dir / candidate

    return output_dir / f"permutation_{seed}_{flags.to_file_string()}.json"


def run_permutation(
        seed: int,
        flags: Flags,
        catalog_path: Path,
        output_dir: Path,
        assignment_path=None,
        output_file=None,
        validate: bool = False) -> Path:
    catalog = Catalog.from_dict(load_json(catalog_path, "Catalog"))
    assignment = None
    if assignment_path is not None:
        assignment = KeyItemAssignment.from_dict(load_json(assignment_path, "Key item assignment"))

    permutation = Permutation(catalog)
    rng = RandomNumberGenerator(seed)
    if flags.item_logic == 'none':
        result = permutation.RandomizeWithoutLogic(rng)
    else:
        result = permutation.Randomize(rng, flags, assignment)

    if validate:
        problems = PermutationValidator(catalog, result).Validate()
        if problems:
            raise RuntimeError(f"Permutation has {len(problems)} problems, first: {problems[0]}")

    output = result.to_dict()
    output["seed"] = seed
    output["config"] = flags.config_string()
    output["config_hash"] = flags.config_hash()

    output_path = resolve_output_path(seed, flags, output_dir, output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(output, f, indent=2)

    return output_path


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        logging.basicConfig(level=args.loglevel.upper())

        flags = build_flags(args.difficulty, args.flag)
        output_path = run_permutation(
            seed=args.seed,
            flags=flags,
            catalog_path=Path(args.catalog),
            output_dir=Path(args.output_dir),
            assignment_path=Path(args.assignment) if args.assignment else None,
            output_file=args.output_file,
            validate=args.validate)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        parser.error(str(exc))
    except KeyItemPlacementError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return KEY_ITEM_FAILURE_EXIT_CODE
    except Exception as exc:  # pragma: no cover
        print(f"Error: {exc}", file=sys.stderr)
        traceback.print_exc()
        return 1
    else:
        print(f"Permutation written to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
