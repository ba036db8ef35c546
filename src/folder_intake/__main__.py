"""Application entry point and CLI for folder-intake.

This module implements the command-line front end: argument parsing,
configuration loading with CLI overrides, logging setup, one scan session
over the given paths, selection and the final report.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn, TextIO

from pydantic import ValidationError

from folder_intake import __version__
from folder_intake.core.config import IntakeConfig, format_validation_error, load_config
from folder_intake.core.exceptions import (
    ConfigurationError,
    EmptySelectionError,
    EnvironmentVariableError,
    NothingToIngestError,
)
from folder_intake.core.filesystem.entries import LocalEntry
from folder_intake.core.selection import SelectionAggregator, SelectionResult, SelectionSet
from folder_intake.core.session import IntakeController, require_files
from folder_intake.types import DirectoryNode, ScanResult
from folder_intake.utils.formatting import format_count, format_size
from folder_intake.utils.logging import configure_logging

__all__ = ["main"]

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1
EXIT_NOTHING_TO_INGEST = 2


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    CLI Arguments:
        paths: Files or folders to scan (one scan session for all of them)
        --config, -c: Path to YAML configuration file
        --log-level: Override log level from config
        --include-hidden: Admit dot-folders that are not version-control metadata
        --max-file-size: Override the size limit in bytes
        --extensions: Comma-separated allow-list overriding the configured one
        --select: Folder path to select (repeatable)
        --show-excluded: Print every exclusion with its reason
        --files: Print the final file list
        --json: Emit a JSON document instead of text
    """
    parser = argparse.ArgumentParser(
        prog="folder-intake",
        description="Scan dropped files and folders and list what is eligible for ingestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  folder-intake ./project
  folder-intake ./project ./notes.md --show-excluded
  folder-intake ./project --select project/src --files
  folder-intake ./project --extensions py,md,toml --max-file-size 1048576 --json
        """,
    )

    _ = parser.add_argument("paths", nargs="+", type=Path, metavar="PATH", help="Files or folders to scan")

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in settings)",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )

    _ = parser.add_argument(
        "--include-hidden",
        action="store_true",
        help="Admit hidden folders other than version-control metadata",
    )

    _ = parser.add_argument(
        "--max-file-size",
        type=int,
        help="Largest admitted file size in bytes (overrides config)",
        metavar="BYTES",
    )

    _ = parser.add_argument(
        "--extensions",
        type=str,
        help="Comma-separated extension allow-list (overrides config)",
        metavar="EXTS",
    )

    _ = parser.add_argument(
        "--select",
        action="append",
        default=None,
        help="Folder path to include, e.g. project/src (repeatable; default: every non-empty top-level folder)",
        metavar="DIR",
    )

    _ = parser.add_argument("--show-excluded", action="store_true", help="Print every exclusion with its reason")
    _ = parser.add_argument("--files", action="store_true", help="Print the final file list")
    _ = parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def parse_extensions(extensions_str: str) -> list[str]:
    """Parse a comma-separated extension list.

    Example:
        >>> parse_extensions("py, .md,TOML")
        ['py', '.md', 'TOML']
    """
    return [ext.strip() for ext in extensions_str.split(",") if ext.strip()]


def apply_overrides(
    config: IntakeConfig,
    *,
    log_level: str | None = None,
    include_hidden: bool = False,
    max_file_size: int | None = None,
    extensions: list[str] | None = None,
) -> IntakeConfig:
    """Apply CLI overrides and re-validate the configuration.

    Raises:
        ConfigurationError: If an override is invalid
    """
    data = config.model_dump()
    filters: dict[str, object] = data["filters"]  # pyright: ignore[reportAny]
    application: dict[str, object] = data["application"]  # pyright: ignore[reportAny]

    if log_level is not None:
        application["log_level"] = log_level
    if include_hidden:
        filters["include_hidden"] = True
    if max_file_size is not None:
        filters["max_file_size"] = max_file_size
    if extensions is not None:
        filters["allowed_extensions"] = extensions

    try:
        return IntakeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_error(e, source="command-line overrides")) from e


def render_tree(roots: Sequence[DirectoryNode], selection: SelectionSet) -> list[str]:
    """Render the forest with per-node counts and sizes.

    Folders below a root are prefixed with their selection state.
    """
    lines: list[str] = []

    def describe(node: DirectoryNode) -> str:
        return f"({format_count(node.file_count)}, {format_size(node.total_size)})"

    def walk(node: DirectoryNode, indent: int, inherited: bool) -> None:
        selected = inherited or node.path in selection
        marker = "[x]" if selected else "[ ]"
        lines.append(f"{'  ' * indent}{marker} {node.name}/ {describe(node)}")
        for child in node.children:
            walk(child, indent + 1, selected)

    for root in roots:
        if root.is_file_root:
            lines.append(f"{root.name} {describe(root)}")
            continue
        lines.append(f"{root.name}/ {describe(root)}")
        if root.files:
            lines.append(f"  root files: {format_count(len(root.files))}, always included")
        for child in root.children:
            walk(child, 1, root.path in selection)
    return lines


def render_report(
    result: ScanResult,
    selection: SelectionSet,
    selected: SelectionResult | None,
    *,
    show_excluded: bool,
    show_files: bool,
    out: TextIO,
) -> None:
    """Write the human-readable report."""
    for line in render_tree(result.roots, selection):
        print(line, file=out)

    if result.unsupported_patterns:
        print(f"Unsupported ignore patterns: {', '.join(result.unsupported_patterns)}", file=out)

    print(f"Excluded: {format_count(len(result.excluded), 'item')}", file=out)
    if show_excluded:
        for item in result.excluded:
            print(f"  {item.kind.value:<6} {item.path}: {item.message}", file=out)

    if selected is None:
        return

    summary = selected.summary
    largest = summary.largest_file
    largest_text = f", largest: {largest.path} ({format_size(largest.size)})" if largest else ""
    print(f"Selected: {format_count(summary.total_files)}, {format_size(summary.total_size)}{largest_text}", file=out)
    if show_files:
        for record in selected.files:
            print(f"  {record.path}", file=out)


def build_json_report(result: ScanResult, selection: SelectionSet, selected: SelectionResult | None) -> dict[str, object]:
    """Build the JSON document for ``--json``."""
    return {
        "session_id": result.session_id,
        "items_scanned": result.items_scanned,
        "roots": [asdict(root) for root in result.roots],
        "excluded": [asdict(item) | {"message": item.message} for item in result.excluded],
        "unsupported_patterns": list(result.unsupported_patterns),
        "selection": sorted(selection),
        "files": [asdict(record) for record in selected.files] if selected else [],
        "summary": asdict(selected.summary) if selected else None,
    }


async def async_main(
    *,
    paths: Sequence[Path],
    config: IntakeConfig,
    select: Sequence[str] | None = None,
    show_excluded: bool = False,
    show_files: bool = False,
    as_json: bool = False,
    out: TextIO | None = None,
) -> SelectionResult:
    """Scan the paths, resolve the selection and print the report.

    The report goes to ``out``, or to the current ``sys.stdout`` when omitted.

    Raises:
        NothingToIngestError: If no admitted file was found
        EmptySelectionError: If the selection resolves to no files
        FileNotFoundError: If a path does not exist
    """
    logger = logging.getLogger(__name__)
    stream = out if out is not None else sys.stdout

    entries =[LocalEntry.from_path(path, batch_size=config.scan.batch_size) for path in paths]
    controller = IntakeController(config)
    result = await controller.submit(entries)

    selection = SelectionSet(select) if select else SelectionSet.default_for(result.roots)
    for path in selection:
        if not any(root.find(path) for root in result.roots):
            logger.warning("Selected folder not found in scan result", extra={"path": path})

    def report(selected: SelectionResult | None) -> None:
        if as_json:
            json.dump(build_json_report(result, selection, selected), stream, indent=2)
            print(file=stream)
        else:
            render_report(
                result, selection, selected, show_excluded=show_excluded, show_files=show_files, out=stream
            )

    try:
        selected = SelectionAggregator().aggregate(require_files(result).roots, selection)
    except (NothingToIngestError, EmptySelectionError):
        report(None)
        raise

    report(selected)
    return selected


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for folder-intake.

    Exit Codes:
        0: Files selected for ingestion
        1: Configuration error or runtime error
        2: Nothing to ingest (empty scan or empty selection)
    """
    args = parse_arguments(argv)

    # Extract args with type annotations at the argparse boundary
    paths_arg: list[Path] = args.paths  # pyright: ignore[reportAny]
    config_path_arg: Path | None = args.config  # pyright: ignore[reportAny]
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]
    include_hidden_arg: bool = args.include_hidden  # pyright: ignore[reportAny]
    max_file_size_arg: int | None = args.max_file_size  # pyright: ignore[reportAny]
    extensions_arg: str | None = args.extensions  # pyright: ignore[reportAny]
    select_arg: list[str] | None = args.select  # pyright: ignore[reportAny]

    try:
        config = apply_overrides(
            load_config(config_path_arg),
            log_level=log_level_arg,
            include_hidden=include_hidden_arg,
            max_file_size=max_file_size_arg,
            extensions=parse_extensions(extensions_arg) if extensions_arg is not None else None,
        )
        configure_logging(
            log_level=config.application.log_level,
            log_file=config.application.log_file,
        )

        _ = asyncio.run(
            async_main(
                paths=paths_arg,
                config=config,
                select=select_arg,
                show_excluded=bool(args.show_excluded),  # pyright: ignore[reportAny]
                show_files=bool(args.files),  # pyright: ignore[reportAny]
                as_json=bool(args.json),  # pyright: ignore[reportAny]
            )
        )

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except (NothingToIngestError, EmptySelectionError) as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(EXIT_NOTHING_TO_INGEST)

    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    except KeyboardInterrupt:
        print("\nScan interrupted", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        logging.exception("Unexpected error during application execution")
        sys.exit(EXIT_RUNTIME_ERROR)

    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
