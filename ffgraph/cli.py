"""
Command-line interface for ffgraph.

Usage:
    ffgraph parse "ffmpeg -i in.mp4 -vf scale=1280:-2 out.mp4" [-o graph.json]
    ffgraph emit graph.json [--selected-only] [--var name=value ...]
    ffgraph expand "ffmpeg -i 'clips/*.mp4' out_{name}.mp4"
    ffgraph merge a.json b.json [-o merged.json] [--jitter 200]
    ffgraph scan -o ffmpeg.yaml [--kind filter ...] [--no-general]

Examples:
    # Reconstruct a command read from a file
    ffgraph parse @command.txt -o graph.json

    # Emit the command of an edited graph with a variable filled in
    ffgraph emit graph.json --var suffix=final

    # Record what the local FFmpeg build offers, then use it as a manifest
    ffgraph scan -o ffmpeg.yaml
    ffgraph --manifest ffmpeg.yaml parse @command.txt
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .catalog.manifest_loader import load_manifest
from .catalog.registry import get_registry
from .catalog.scanner import LISTING_KINDS, CapabilityScanner, write_manifest
from .core.config import StudioConfig, load_config
from .core.errors import EmptyExpansionError, MissingOutputError
from .core.expander import ExpandOptions, expand
from .core.tokenizer import quote_arg
from .nodes.execution import emit
from .nodes.graph import Graph
from .nodes.merge import merge_graphs
from .nodes.reconstructor import GraphReconstructor

logger = logging.getLogger("ffgraph")


def _read_text(value: str) -> str:
    """Return ``value``, or the content of the file it names with a leading ``@``."""
    if value.startswith("@"):
        return Path(value[1:]).read_text(encoding="utf-8")
    return value


def _load_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(data: dict, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Invalid --var '{pair}', expected NAME=VALUE")
        variables[name] = value
    return variables


def cmd_parse(args, config: StudioConfig) -> int:
    reconstructor = GraphReconstructor(get_registry())
    graph = Graph()
    reconstructor.import_command(_read_text(args.command), graph)
    _write_json(graph.serialize(), args.output)
    return 0


def cmd_emit(args, config: StudioConfig) -> int:
    graph = Graph.from_serialized(_load_json(args.graph))
    try:
        command = emit(graph, args.selected_only, _parse_vars(args.var))
    except MissingOutputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"{quote_arg(config.ffmpeg_bin)} {command}")
    return 0


def cmd_expand(args, config: StudioConfig) -> int:
    options = ExpandOptions(
        hash_length=args.hash_length if args.hash_length is not None else config.hash_length,
        index_padding=args.index_padding if args.index_padding is not None else config.index_padding,
    )
    try:
        commands = asyncio.run(expand(_read_text(args.command), options))
    except EmptyExpansionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for command in commands:
        print(command)
    return 0


def cmd_merge(args, config: StudioConfig) -> int:
    jitter = args.jitter if args.jitter is not None else config.merge_jitter
    merged = merge_graphs(_load_json(args.first), _load_json(args.second), jitter)
    _write_json(merged, args.output)
    return 0


def cmd_scan(args, config: StudioConfig) -> int:
    scanner = CapabilityScanner(config.ffmpeg_bin, max_workers=config.scan_workers)
    entries = scanner.scan(args.kind or LISTING_KINDS, general=not args.no_general)
    if not entries:
        print(f"Error: {config.ffmpeg_bin} reported no capabilities", file=sys.stderr)
        return 1
    write_manifest(entries, args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffgraph",
        description="Convert FFmpeg commands to node graphs and back.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument(
        "--manifest", action="append", default=[],
        help="Extra capability manifest (file or directory); may be repeated",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command_name", required=True)

    p = sub.add_parser("parse", help="Reconstruct a command into graph JSON")
    p.add_argument("command", help="Command text, or @FILE to read it from a file")
    p.add_argument("-o", "--output", help="Write the graph here instead of stdout")
    p.set_defaults(func=cmd_parse)

    p = sub.add_parser("emit", help="Generate the command for a graph JSON file")
    p.add_argument("graph", help="Path to graph JSON")
    p.add_argument("--selected-only", action="store_true", help="Only emit selected nodes")
    p.add_argument("--var", action="append", default=[], metavar="NAME=VALUE",
                   help="Value for a {{NAME}} placeholder; may be repeated")
    p.set_defaults(func=cmd_emit)

    p = sub.add_parser("expand", help="Expand wildcards into one command per file")
    p.add_argument("command", help="Command text, or @FILE to read it from a file")
    p.add_argument("--hash-length", type=int, help="Length of the {hash} placeholder")
    p.add_argument("--index-padding", type=int, help="Zero padding of the {index} placeholder")
    p.set_defaults(func=cmd_expand)

    p = sub.add_parser("merge", help="Merge two graph JSON files")
    p.add_argument("first", help="Graph receiving the nodes")
    p.add_argument("second", help="Graph whose nodes are added")
    p.add_argument("-o", "--output", help="Write the merged graph here instead of stdout")
    p.add_argument("--jitter", type=int, help="Maximum random position offset")
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("scan", help="Write a manifest of the local FFmpeg build's capabilities")
    p.add_argument("-o", "--output", required=True, help="Manifest file to write")
    p.add_argument("--kind", action="append", choices=LISTING_KINDS,
                   help="Only scan this kind of item; may be repeated")
    p.add_argument("--no-general", action="store_true", help="Skip general flags and format lists")
    p.set_defaults(func=cmd_scan)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    registry = get_registry()
    for path in config.manifest_paths + args.manifest:
        load_manifest(path, registry)

    try:
        return args.func(args, config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
