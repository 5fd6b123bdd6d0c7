"""Segmentation of an FFmpeg argument list into input and output slices."""

import logging
import re
from dataclasses import dataclass, field

from .filter_complex import FilterDescriptor, parse_filter_complex

logger = logging.getLogger("ffgraph")

_INVALID_FILENAME_CHARS = re.compile(r'[<>"/\\|?*\x00]')
_PIPE_TARGET = re.compile(r"^pipe:\d+$")
_FILE_EXTENSION = re.compile(r"\.[a-z0-9]{2,5}$", re.IGNORECASE)
_NUMERIC = re.compile(r"^[\d:.]+[kKmMgG]?$")

FILTER_COMPLEX_FLAG = "-filter_complex"


@dataclass
class ParsedCommand:
    """One pipeline segment split into its input/output argument slices."""
    inputs: list[list[str]] = field(default_factory=list)
    outputs: list[list[str]] = field(default_factory=list)
    filters: list[FilterDescriptor] = field(default_factory=list)
    trailing: list[str] = field(default_factory=list)


def is_filename(token: str) -> bool:
    """Return True if a token looks like an output destination.

    Accepts ``-`` (stdout), ``pipe:N`` and bare file names with a 2-5
    character extension. Anything containing a path separator or other
    reserved character is rejected, as are timestamps and bitrates like
    ``00:00:05.500`` or ``2.5M``.
    """
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        token = token[1:-1]
    if _INVALID_FILENAME_CHARS.search(token):
        return False
    if token == "-" or _PIPE_TARGET.match(token):
        return True
    if _NUMERIC.match(token):
        return False
    return bool(_FILE_EXTENSION.search(token))


def split_ffmpeg_args(args: list[str]) -> ParsedCommand:
    """Group a flat argument list into input slices, output slices and filters.

    Every ``-i <path>`` closes an input slice containing the arguments
    seen since the previous boundary. Every filename-like token closes an
    output slice the same way. ``-filter_complex`` consumes its argument
    and hands it to the filtergraph parser.

    Args:
        args: Tokens of one pipeline segment, without the program name.

    Returns:
        The segmented command. Arguments left after the last boundary are
        kept in ``trailing``.
    """
    parsed = ParsedCommand()
    buffer: list[str] = []
    i = 0

    while i < len(args):
        arg = args[i]

        if arg == FILTER_COMPLEX_FLAG:
            if i + 1 < len(args):
                parsed.filters.extend(parse_filter_complex(args[i + 1]))
                i += 2
            else:
                logger.warning("%s given without a filtergraph", FILTER_COMPLEX_FLAG)
                i += 1
            continue

        buffer.append(arg)

        if arg == "-i" and i + 1 < len(args):
            buffer.append(args[i + 1])
            parsed.inputs.append(buffer)
            buffer = []
            i += 2
            continue

        if is_filename(arg):
            parsed.outputs.append(buffer)
            buffer = []

        i += 1

    if buffer:
        logger.warning("Ignoring arguments after the last output: %s", " ".join(buffer))
        parsed.trailing = buffer

    return parsed
