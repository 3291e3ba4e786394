#!/usr/bin/env python3
"""
Validate workflow YAML files before they are installed.

Usage:
    python scripts/validate_workflow.py [--strict] FILE [FILE ...]

Prints every error and warning per file.  Exits 1 if any file has
errors (or, with --strict, warnings); 2 if a file cannot be read.
"""

import argparse
import sys
from pathlib import Path

import yaml

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ticketflow_config.loader import compute_checksum, load_yaml_file
from ticketflow_config.validator import validate_workflow_document


def check_file(path: Path, strict: bool = False) -> int:
    """Validate one file and print the findings.  Returns its exit status."""
    try:
        document = load_yaml_file(path)
    except (OSError, yaml.YAMLError) as exc:
        print(f"{path}: cannot read: {exc}", file=sys.stderr)
        return 2

    result = validate_workflow_document(document)
    for err in result.errors:
        print(f"{path}: ERROR: {err}")
    for w in result.warnings:
        print(f"{path}: WARNING: {w}")

    if not result.is_valid:
        print(f"{path}: INVALID ({len(result.errors)} error(s))")
        return 1

    body = document.get("definition", document)
    print(f"{path}: OK  checksum {compute_checksum(body)[:16]}...")
    if strict and result.warnings:
        return 1
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Validate workflow definition YAML files.")
    parser.add_argument("files", nargs="+", type=Path, help="Workflow YAML files")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as failures",
    )
    args = parser.parse_args(argv)

    status = 0
    for path in args.files:
        status = max(status, check_file(path, strict=args.strict))
    return status


if __name__ == "__main__":
    sys.exit(main())
