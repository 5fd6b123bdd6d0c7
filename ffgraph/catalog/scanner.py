"""Capability scanner: builds manifest entries from ``ffmpeg`` help output.

The shipped manifests cover the common filters, codecs and formats. A
scan asks the local FFmpeg build for everything it offers::

    ffmpeg -filters              # listing, one line per filter
    ffmpeg -h filter=scale       # per-item AVOptions
    ffmpeg -h long               # general flag groups
    ffmpeg -h full               # codec/format context options
    ffmpeg -pix_fmts / -sample_fmts

The parsers are plain functions over help text, so they work on saved
output too. :class:`CapabilityScanner` runs the binary and fans the
per-item help calls out over a thread pool.
"""

import logging
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

import yaml

from .manifest_loader import ManifestEntry, ManifestOption, load_manifest_data
from .registry import NodeRegistry

logger = logging.getLogger("ffgraph")

LISTING_KINDS = ("filter", "encoder", "decoder", "muxer", "demuxer")
CONTEXT_SECTIONS = ("AVCodecContext", "AVFormatContext", "AVIOContext", "URLContext")

_SECTION = re.compile(r"^(\S+?)(?:\(\d+\))?\s+AVOptions:\s*$")
_OPTION_LINE = re.compile(r"^\s{1,4}(-?[\w][\w-]*)\s+(<\w+>)\s+([A-Z.]{4,})(?:\s+(.*))?$")
_ENUM_LINE = re.compile(r"^\s{5,}(\S+)")
_TIMELINE = re.compile(r"(?i)(timeline.*support|enable.*option)")
_GROUP_SPLIT = re.compile(r" {2,}")
_STREAM_SPEC_SUFFIX = "[:<"

Runner = Callable[[list[str]], str]


@dataclass
class ListingItem:
    """One row of an ``ffmpeg -<kind>s`` listing."""
    name: str
    category: str
    desc: str


def _listing_rows(lines: list[str]) -> list[str]:
    """Drop the legend printed above a listing."""
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped and set(stripped) == {"-"}:
            return lines[i + 1:]
    return [line for line in lines if " = " not in line and not line.rstrip().endswith(":")]


def _filter_category(io: str) -> str:
    media = "".join(letter for letter in "VA" if letter in io)
    return "..F" + media


def _codec_category(kind: str, flags: str) -> str:
    direction = "E" if kind == "encoder" else "D"
    letter = flags[:1] if flags[:1] in ("V", "A", "S") else ""
    return f"{direction}..{letter}"


def parse_listing(text: str, kind: str) -> list[ListingItem]:
    """Parse the output of ``ffmpeg -filters``, ``-encoders``, ``-muxers`` etc.

    Args:
        text: Listing output.
        kind: One of :data:`LISTING_KINDS`.

    Returns:
        Listing rows in output order. The category is a flag string in the
        same form as option categories (``..FV``, ``E..A``), so it maps to
        the same media sub-paths.
    """
    items = []
    for line in _listing_rows(text.splitlines()):
        words = line.split()
        if len(words) < 2:
            continue
        if kind == "filter":
            if len(words) < 3:
                continue
            category = _filter_category(words[2])
            desc = " ".join(words[3:])
        elif kind in ("encoder", "decoder"):
            category = _codec_category(kind, words[0])
            desc = " ".join(words[2:])
        else:
            category = ""
            desc = " ".join(words[2:])
        items.append(ListingItem(words[1], category, desc))
    return items


def parse_option_sections(lines: Iterable[str], sections: Optional[tuple[str, ...]] = None) -> dict[str, list[ManifestOption]]:
    """Collect the options of every ``<name> AVOptions:`` section.

    Options sharing a description with an earlier option of the same
    section are aliases (``w``/``width``) and are skipped together with
    their value lines.

    Args:
        lines: Help output lines.
        sections: Section names to keep; all sections when None.

    Returns:
        Mapping of section name to its options, in output order.
    """
    result: dict[str, list[ManifestOption]] = {}
    current: Optional[list[ManifestOption]] = None
    option: Optional[ManifestOption] = None
    seen_desc: set[str] = set()
    skipping = False

    for line in lines:
        if not line.strip():
            continue
        section = _SECTION.match(line)
        if section:
            name = section.group(1)
            if sections is None or name in sections:
                current = result.setdefault(name, [])
            else:
                current = None
            option = None
            seen_desc = set()
            continue
        if current is None:
            continue
        if not line[:1].isspace():
            current = None
            option = None
            continue

        match = _OPTION_LINE.match(line)
        if match:
            flag, type_tag, category, desc = match.groups()
            desc = (desc or "").strip()
            if desc and desc in seen_desc:
                skipping = True
                option = None
                continue
            skipping = False
            if desc:
                seen_desc.add(desc)
            option = ManifestOption(flag=flag, type=type_tag, category=category, desc=desc)
            current.append(option)
            continue

        enum_value = _ENUM_LINE.match(line)
        if enum_value and option is not None and not skipping:
            option.enum_vals.append(enum_value.group(1))

    return result


def _entry_category(options: list[ManifestOption], fallback: str) -> str:
    categories = {opt.category for opt in options if opt.category}
    if len(categories) == 1:
        return categories.pop()
    return fallback


def parse_help(text: str, kind: str, item: ListingItem) -> ManifestEntry:
    """Build a manifest entry from ``ffmpeg -h <kind>=<name>`` output.

    Options of every AVOptions section are merged into the one entry, so
    shared option sets (``framesync`` for ``overlay``) stay reachable.
    Filters that mention timeline support get an ``enable`` option.
    """
    options: list[ManifestOption] = []
    flags: set[str] = set()
    for section_options in parse_option_sections(text.splitlines()).values():
        for opt in section_options:
            if opt.flag not in flags:
                flags.add(opt.flag)
                options.append(opt)

    if _TIMELINE.search(text) and "enable" not in flags:
        options.append(ManifestOption(flag="enable", desc="Enable timeline support for this filter"))

    return ManifestEntry(
        name=item.name,
        is_av_option=True,
        category=_entry_category(options, item.category),
        pcategory=f"{kind}s",
        desc=item.desc,
        full_desc=[line for line in text.splitlines() if line.strip()],
        options=options,
    )


def _group_name(line: str) -> str:
    return line.strip().rstrip(":").split(" (")[0].strip()


def _is_group_header(line: str) -> bool:
    return bool(line.strip()) and "options" in line and line.rstrip().endswith(":")


def parse_general_help(text: str) -> list[ManifestEntry]:
    """Parse ``ffmpeg -h long`` into one general entry per option group.

    A flag followed by an argument name takes a value; a bare flag does
    not. ``[:<stream_spec>]`` suffixes are dropped from flag names.
    """
    entries: list[ManifestEntry] = []
    current: Optional[ManifestEntry] = None

    for line in text.splitlines():
        if _is_group_header(line):
            current = ManifestEntry(name=_group_name(line), is_av_option=False, pcategory="general")
            entries.append(current)
            continue
        if current is None or not line.strip().startswith("-"):
            continue

        parts = _GROUP_SPLIT.split(line.strip(), maxsplit=1)
        words = parts[0].split()
        flag = words[0]
        if _STREAM_SPEC_SUFFIX in flag:
            flag = flag[:flag.index(_STREAM_SPEC_SUFFIX)]
        current.options.append(ManifestOption(
            flag=flag,
            desc=parts[1].strip() if len(parts) > 1 else "",
            no_args=len(words) == 1,
        ))

    return [entry for entry in entries if entry.options]


def parse_contexts(text: str) -> list[ManifestEntry]:
    """Parse the context sections of ``ffmpeg -h full`` into general entries."""
    sections = parse_option_sections(text.splitlines(), CONTEXT_SECTIONS)
    return [
        ManifestEntry(name=name, is_av_option=False, pcategory="general", options=options)
        for name, options in sections.items()
        if options
    ]


def parse_pix_fmts(text: str) -> ManifestEntry:
    """Parse ``ffmpeg -pix_fmts`` into a ``-pix_fmt`` flag with its values."""
    values = [line.split()[1] for line in _listing_rows(text.splitlines()) if len(line.split()) >= 2]
    option = ManifestOption(flag="-pix_fmt", type="<pix_fmt>", desc="Set pixel format", enum_vals=values)
    return ManifestEntry(name="Pixel formats", is_av_option=False, pcategory="general", options=[option])


def parse_sample_fmts(text: str) -> ManifestEntry:
    """Parse ``ffmpeg -sample_fmts`` into a ``-sample_fmt`` flag with its values."""
    values = [line.split()[0] for line in text.splitlines()[1:] if line.strip()]
    option = ManifestOption(flag="-sample_fmt", type="<sample_fmt>", desc="Set sample format", enum_vals=values)
    return ManifestEntry(name="Sample formats", is_av_option=False, pcategory="general", options=[option])


def _split_aliases(entry: ManifestEntry) -> list[ManifestEntry]:
    names = [name for name in entry.name.split(",") if name]
    if len(names) <= 1:
        return [entry]
    return [entry.model_copy(update={"name": name}, deep=True) for name in names]


class CapabilityScanner:
    """Queries an FFmpeg binary for its filters, codecs, formats and flags.

    Args:
        ffmpeg_bin: FFmpeg executable.
        runner: Callable taking a full argv and returning the help text.
            Defaults to running the binary with :func:`subprocess.run`.
        max_workers: Concurrent ``-h`` calls.
        timeout: Seconds allowed per call.
    """

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        runner: Optional[Runner] = None,
        max_workers: int = 8,
        timeout: float = 30.0,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.runner = runner or self._run_process
        self.max_workers = max_workers
        self.timeout = timeout

    def _run_process(self, args: list[str]) -> str:
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("Failed to run %s: %s", " ".join(args), exc)
            return ""
        return result.stdout or result.stderr

    def run(self, *args: str) -> str:
        return self.runner([self.ffmpeg_bin, *args, "-hide_banner"])

    def scan_kind(self, kind: str) -> list[ManifestEntry]:
        """Scan every item of one listing kind, e.g. ``"filter"``."""
        items = parse_listing(self.run(f"-{kind}s"), kind)
        if not items:
            logger.warning("%s listed no %ss", self.ffmpeg_bin, kind)
            return []

        def describe(item: ListingItem) -> ManifestEntry:
            query = item.name.split(",")[0]
            return parse_help(self.run("-h", f"{kind}={query}"), kind, item)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            entries = list(executor.map(describe, items))

        logger.info("Scanned %d %ss", len(entries), kind)
        return [alias for entry in entries for alias in _split_aliases(entry)]

    def scan_general(self) -> list[ManifestEntry]:
        """Scan general flag groups, context options and format lists."""
        entries = parse_general_help(self.run("-h", "long"))
        entries.extend(parse_contexts(self.run("-h", "full")))
        pix_fmts = parse_pix_fmts(self.run("-pix_fmts"))
        if pix_fmts.options[0].enum_vals:
            entries.append(pix_fmts)
        sample_fmts = parse_sample_fmts(self.run("-sample_fmts"))
        if sample_fmts.options[0].enum_vals:
            entries.append(sample_fmts)
        return entries

    def scan(self, kinds: Iterable[str] = LISTING_KINDS, general: bool = True) -> list[ManifestEntry]:
        """Scan the given listing kinds and, optionally, the general flags.

        Raises:
            ValueError: If a kind is not one of :data:`LISTING_KINDS`.
        """
        entries: list[ManifestEntry] = []
        for kind in kinds:
            if kind not in LISTING_KINDS:
                raise ValueError(f"Unknown capability kind '{kind}'; expected one of {', '.join(LISTING_KINDS)}")
            entries.extend(self.scan_kind(kind))
        if general:
            entries.extend(self.scan_general())
        return entries


def manifest_data(entries: Iterable[ManifestEntry]) -> dict:
    """Manifest mapping for entries, in the shape the loader reads."""
    return {"nodes": [entry.model_dump() for entry in entries]}


def write_manifest(entries: Iterable[ManifestEntry], path: str | Path) -> int:
    """Write entries as a YAML manifest. Returns the number of entries."""
    data = manifest_data(entries)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, sort_keys=False, allow_unicode=True)
    logger.info("Wrote %d manifest entries to %s", len(data["nodes"]), path)
    return len(data["nodes"])


def scan_into(registry: NodeRegistry, scanner: Optional[CapabilityScanner] = None) -> int:
    """Scan an FFmpeg build and register the results. Returns schemas added."""
    scanner = scanner or CapabilityScanner()
    return load_manifest_data(manifest_data(scanner.scan()), registry, source=scanner.ffmpeg_bin)
