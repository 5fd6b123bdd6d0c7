"""Shell-like tokenization of pasted FFmpeg command text.

The rules are deliberately narrower than POSIX shell: double and single
quotes group, a backslash outside single quotes escapes only a quote,
another backslash or a space, and a backslash followed by a line break
continues the line.
"""

import os
import re

_LINE_CONTINUATION = re.compile(r"\\\s*[\r\n]+\s*")
_WHITESPACE = frozenset(" \t\r\n")
_ESCAPABLE = frozenset("\"'\\ ")
_NEEDS_QUOTING = re.compile(r"[\s\"'\\|;&<>]")

PROGRAM_NAMES = ("ffmpeg", "ffmpeg.exe")


def tokenize(text: str) -> list[str]:
    """Split command text into arguments.

    Args:
        text: Raw command text, possibly spanning several lines.

    Returns:
        Argument tokens with quoting and escaping resolved. Empty tokens
        are dropped.
    """
    text = _LINE_CONTINUATION.sub(" ", text)

    tokens: list[str] = []
    current: list[str] = []
    in_double = False
    in_single = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch == "\\" and not in_single and i + 1 < n and text[i + 1] in _ESCAPABLE:
            current.append(text[i + 1])
            i += 2
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "'" and not in_double:
            in_single = not in_single
        elif ch in _WHITESPACE and not in_double and not in_single:
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(ch)
        i += 1

    if current:
        tokens.append("".join(current))
    return tokens


def split_pipe(text: str) -> list[str]:
    """Split command text on ``|`` characters that sit outside quotes.

    Quote characters and backslash escapes are kept in the segment text so
    each segment can be tokenized afterwards. Segments are trimmed and
    empty ones dropped.
    """
    segments: list[str] = []
    current: list[str] = []
    in_double = False
    in_single = False
    escaped = False

    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and not in_single:
            current.append(ch)
            escaped = True
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "'" and not in_double:
            in_single = not in_single

        if ch == "|" and not in_double and not in_single:
            segments.append("".join(current).strip())
            current = []
        else:
            current.append(ch)

    segments.append("".join(current).strip())
    return [s for s in segments if s]


def strip_program(tokens: list[str]) -> list[str]:
    """Drop a leading ``ffmpeg`` program token, with or without a path."""
    if tokens and os.path.basename(tokens[0]).lower() in PROGRAM_NAMES:
        return tokens[1:]
    return tokens


def quote_arg(arg: str) -> str:
    """Quote one argument so that :func:`tokenize` reads it back intact."""
    if arg and not _NEEDS_QUOTING.search(arg):
        return arg
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def join_args(args: list[str]) -> str:
    """Join arguments into command text, quoting where needed."""
    return " ".join(quote_arg(a) for a in args)
