"""Helio CLI entry points.

This module exposes upload, listing, and correction commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from core.config import HelioConfig
from core.constants import MAX_PAGE_SIZE
from core.errors import HelioError, VersionConflictError
from core.types import RecordListFilters, RecordPatch, VersionedRecord
from store.record_payload import energy_record_to_payload, format_instant
from store.record_sdk import HelioClient

EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
EXIT_CONFLICT = 3


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="helio", description="Helio energy record CLI")
    parser.add_argument("--data-root", help="Override HELIO_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_upload_command(subparsers)
    _add_list_command(subparsers)
    _add_show_command(subparsers)
    _add_correct_command(subparsers)
    _add_delete_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Helio CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "list" and (args.page is None) != (args.page_size is None):
        parser.error("list: --page and --page-size must be given together")
    try:
        client = _build_client(args.data_root)
        if args.command == "upload":
            return _run_upload_command(client, args)
        if args.command == "list":
            return _run_list_command(client, args)
        if args.command == "show":
            return _run_show_command(client, args)
        if args.command == "correct":
            return _run_correct_command(client, args)
        if args.command == "delete":
            return _run_delete_command(client, args)
    except VersionConflictError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_CONFLICT
    except HelioError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_ERROR
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> HelioClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = HelioConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return HelioClient(config)


def _run_upload_command(client: HelioClient, args: argparse.Namespace) -> int:
    """Handle upload command."""
    result = client.upload(args.source)
    print(f"inserted={result.record_count}")
    print(f"devices={','.join(result.device_names)}")
    return 0


def _run_list_command(client: HelioClient, args: argparse.Namespace) -> int:
    """Handle list command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    filters = RecordListFilters(
        start=args.start,
        end=args.end,
        device=args.device,
        include_deleted=args.include_deleted,
        page=args.page,
        page_size=args.page_size,
    )
    result = client.list_records(filters)
    for record in result.records:
        outputs = json.dumps(dict(record.outputs), sort_keys=True)
        deleted = format_instant(record.deleted_at) if record.deleted_at else "-"
        print(f"{record.record_id}\t{format_instant(record.timestamp)}\t{outputs}\t{deleted}")
    summary = f"records={result.record_count}\ttotal_energy={result.total_energy:g}"
    if result.page_count is not None:
        summary += f"\tpage={result.page}\tpage_count={result.page_count}"
    print(summary)
    return 0


def _run_show_command(client: HelioClient, args: argparse.Namespace) -> int:
    """Handle show command."""
    versioned = client.get_record(args.record_id, include_deleted=args.include_deleted)
    if versioned is None:
        print(f"error: record '{args.record_id}' not found", file=sys.stderr)
        return EXIT_NOT_FOUND
    _print_versioned_record(versioned)
    return 0


def _run_correct_command(client: HelioClient, args: argparse.Namespace) -> int:
    """Handle correct command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    outputs: dict[str, float | None] = dict(args.set or [])
    for device_name in args.clear or []:
        outputs[device_name] = None
    if not outputs and not (args.reason or "").strip():
        print("error: provide --set, --clear, or a non-empty --reason", file=sys.stderr)
        return EXIT_ERROR
    patch = RecordPatch(outputs=outputs or None, correction_reason=args.reason)
    versioned = client.correct_record(args.record_id, patch, args.if_match)
    if versioned is None:
        print(f"error: record '{args.record_id}' not found", file=sys.stderr)
        return EXIT_NOT_FOUND
    _print_versioned_record(versioned)
    return 0


def _run_delete_command(client: HelioClient, args: argparse.Namespace) -> int:
    """Handle delete command."""
    if not client.delete_record(args.record_id):
        print(f"error: record '{args.record_id}' not found", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(f"deleted={args.record_id}")
    return 0


def _print_versioned_record(versioned: VersionedRecord) -> None:
    """Print a record payload with its version as JSON."""
    payload = energy_record_to_payload(versioned.record)
    payload["version"] = versioned.version
    print(json.dumps(payload, indent=2, sort_keys=True))


def _parse_instant_argument(raw_value: str) -> datetime:
    """Parse an ISO-8601 filter bound for argparse."""
    try:
        return datetime.fromisoformat(raw_value.replace("Z", "+00:00"))
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 instant: '{raw_value}'") from error


def _parse_assignment(raw_value: str) -> tuple[str, float]:
    """Parse a ``DEVICE=VALUE`` correction for argparse."""
    device_name, separator, raw_number = raw_value.partition("=")
    if not separator or not device_name.strip():
        raise argparse.ArgumentTypeError(f"expected DEVICE=VALUE, got '{raw_value}'")
    try:
        return device_name.strip(), float(raw_number)
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"invalid number in '{raw_value}'") from error


def _parse_page(raw_value: str) -> int:
    """Parse a zero-based page index for argparse."""
    page = _parse_int_argument(raw_value)
    if page < 0:
        raise argparse.ArgumentTypeError(f"page must be 0 or greater, got {page}")
    return page


def _parse_page_size(raw_value: str) -> int:
    """Parse a page size for argparse."""
    page_size = _parse_int_argument(raw_value)
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(
            f"page size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
        )
    return page_size


def _parse_int_argument(raw_value: str) -> int:
    try:
        return int(raw_value)
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"invalid integer: '{raw_value}'") from error


def _add_upload_command(subparsers: Any) -> None:
    """Register upload subcommand."""
    parser = subparsers.add_parser("upload", help="Replace all records with a CSV upload")
    parser.add_argument("source", help="CSV file path or s3://bucket/key")


def _add_list_command(subparsers: Any) -> None:
    """Register list subcommand."""
    parser = subparsers.add_parser("list", help="List records with energy totals")
    parser.add_argument("--start", type=_parse_instant_argument, help="Inclusive ISO-8601 start")
    parser.add_argument("--end", type=_parse_instant_argument, help="Inclusive ISO-8601 end")
    parser.add_argument("--device", help="Only records with a reading for this device")
    parser.add_argument(
        "--include-deleted",
        action="store_true",
        help="Include soft-deleted records",
    )
    parser.add_argument("--page", type=_parse_page, help="Zero-based page index")
    parser.add_argument(
        "--page-size",
        type=_parse_page_size,
        help=f"Records per page (1 to {MAX_PAGE_SIZE})",
    )


def _add_show_command(subparsers: Any) -> None:
    """Register show subcommand."""
    parser = subparsers.add_parser("show", help="Show one record and its version")
    parser.add_argument("record_id", help="Record id")
    parser.add_argument(
        "--include-deleted",
        action="store_true",
        help="Show the record even if soft-deleted",
    )


def _add_correct_command(subparsers: Any) -> None:
    """Register correct subcommand."""
    parser = subparsers.add_parser("correct", help="Correct device readings of one record")
    parser.add_argument("record_id", help="Record id")
    parser.add_argument("--if-match", required=True, help="Version from the show command")
    parser.add_argument(
        "--set",
        action="append",
        type=_parse_assignment,
        metavar="DEVICE=VALUE",
        help="Overwrite a device reading (repeatable)",
    )
    parser.add_argument(
        "--clear",
        action="append",
        metavar="DEVICE",
        help="Clear a device reading (repeatable)",
    )
    parser.add_argument("--reason", help="Audit note for the correction")


def _add_delete_command(subparsers: Any) -> None:
    """Register delete subcommand."""
    parser = subparsers.add_parser("delete", help="Soft-delete one record")
    parser.add_argument("record_id", help="Record id")
