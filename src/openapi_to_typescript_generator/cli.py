"""Command line interface for OpenAPI to TypeScript generation."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from .config import GeneratorConfig, load_config
from .errors import GeneratorError, ParseWarning
from .generator import run_generation, validate
from .writer import WriteError


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="openapi-to-typescript",
        description="Generate a TypeScript fetch client from an OpenAPI 3.1 document",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser("generate", help="Generate and write a client")
    generate_parser.add_argument("--input", required=True, help="Path to an OpenAPI document")
    generate_parser.add_argument(
        "--output", help="Output directory (defaults to the configured output_dir)"
    )
    generate_parser.add_argument("--config", help="Path to a YAML or JSON configuration file")
    generate_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Write into a non-empty output directory",
    )
    generate_parser.add_argument("--verbose", action="store_true", help="Show debug logs")

    validate_parser = subparsers.add_parser("validate", help="Check that a document would generate")
    validate_parser.add_argument("--input", required=True, help="Path to an OpenAPI document")
    validate_parser.add_argument("--config", help="Path to a YAML or JSON configuration file")
    validate_parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(Path(args.config)) if args.config else GeneratorConfig()
        if args.command == "generate":
            run = run_generation(
                input_path=Path(args.input),
                output_dir=Path(args.output) if args.output else config.output_dir,
                config=config,
                overwrite=True if args.overwrite else None,
            )
            _print_warnings(run.result.warnings)
            print(f"Wrote {len(run.written)} file(s)")
        else:
            _print_warnings(validate(Path(args.input), config=config))
            print("Document is valid")
    except GeneratorError as exc:
        print(exc.chain() if args.verbose else exc.summary())
        return 1
    except WriteError as exc:
        print(f"Write error: {exc}")
        return 1
    return 0


def _print_warnings(warnings: list[ParseWarning] | tuple[ParseWarning, ...]) -> None:
    for warning in warnings:
        print(f"Warning: {warning}")


if __name__ == "__main__":
    raise SystemExit(main())
