"""
Command-line interface for tabflows.

Usage:
    tabflows load                    # Print the assembled document
    tabflows load --pretty           # ...indented
    tabflows save flows.json         # Split a flows file into per-tab files
    tabflows files                   # List discovered per-tab files
    tabflows --config tabflows.yaml load
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import StorageSettings, load_settings
from .errors import FlowStorageError
from .nodes import to_json
from .storage import LocalFilesystemStorage


def find_config_file() -> Optional[Path]:
    """Find a configuration file in common locations."""
    candidates = [
        Path("tabflows.yaml"),
        Path("tabflows.yml"),
        Path(".tabflows.yaml"),
        Path(".tabflows.yml"),
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _settings(args: argparse.Namespace) -> StorageSettings:
    source = args.config or find_config_file()
    settings = load_settings(source)
    # The CLI never talks to a broker.
    settings.mirror.enabled = False
    if args.user_dir:
        settings.user_dir = Path(args.user_dir).expanduser()
    return settings


async def _load(storage: LocalFilesystemStorage):
    await storage.init()
    try:
        return await storage.get_flows()
    finally:
        await storage.close()


async def _save(storage: LocalFilesystemStorage, flows):
    await storage.init()
    try:
        # Seed the tabless registry from disk so unchanged config nodes keep their _ts
        await storage.get_flows()
        return await storage.save_flows(flows)
    finally:
        await storage.close()


def cmd_load(args: argparse.Namespace) -> int:
    """Print the assembled document."""
    storage = LocalFilesystemStorage(_settings(args))
    flows = asyncio.run(_load(storage))
    print(to_json(flows, pretty=args.pretty))
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    """Split a monolithic flows file into per-tab files."""
    source = Path(args.file)
    try:
        flows = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Error: cannot read {source}: {e}", file=sys.stderr)
        return 2
    if not isinstance(flows, list):
        print(f"Error: {source} must contain a JSON array of nodes", file=sys.stderr)
        return 2

    settings = _settings(args)
    if args.sort:
        settings.sort_flows = True
    if args.pretty:
        settings.flow_file_pretty = True

    storage = LocalFilesystemStorage(settings)
    result = asyncio.run(_save(storage, flows))

    for path in result.written:
        print(f"wrote   {path}")
    for path in result.deleted:
        print(f"removed {path}")
    for path, error in result.failed.items():
        print(f"FAILED  {path}: {error}", file=sys.stderr)
    return 0 if result.ok else 1


def cmd_files(args: argparse.Namespace) -> int:
    """List per-tab files under the user directory."""
    storage = LocalFilesystemStorage(_settings(args))
    for path in storage.context.refresh_files():
        print(path)
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tabflows",
        description="Store a flow document as one JSON file per tab",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to YAML settings")
    parser.add_argument("--user-dir", help="Override the user directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")

    load_parser = subparsers.add_parser("load", help="Print the assembled document")
    load_parser.add_argument("--pretty", action="store_true", help="Indent output")
    load_parser.set_defaults(func=cmd_load)

    save_parser = subparsers.add_parser("save", help="Write a flows file as per-tab files")
    save_parser.add_argument("file", help="JSON array of nodes")
    save_parser.add_argument("--pretty", action="store_true", help="Indent saved files")
    save_parser.add_argument("--sort", action="store_true", help="Sort nodes in each file")
    save_parser.set_defaults(func=cmd_save)

    files_parser = subparsers.add_parser("files", help="List per-tab files")
    files_parser.set_defaults(func=cmd_files)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except FlowStorageError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
