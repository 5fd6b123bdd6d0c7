"""Parser for ``-filter_complex`` expressions.

A filtergraph is a ``;``-separated list of chains, each chain a
``,``-separated list of filters with optional ``[label]`` pads::

    [0:v]scale=1280:-2,fps=30[v];[0:a]volume=0.5[a]

Parsing first rewrites every chain-internal comma into an explicit pad
pair (``[x1a2b3c];[x1a2b3c]``) so that each ``;``-separated piece holds
exactly one filter.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

_LEADING_PAD = re.compile(r"^\[([^\]]+)\]")
_PAD = re.compile(r"\[([^\]]+)\]")
_FILTER_ID = re.compile(r"^([^@=]+)@([^=]+)(.*)$", re.DOTALL)


@dataclass
class FilterOption:
    """One ``name=value`` or positional value of a filter."""
    val: str
    name: Optional[str] = None

    def to_string(self) -> str:
        return f"{self.name}={self.val}" if self.name is not None else self.val


@dataclass
class FilterDescriptor:
    """A single filter with its pads, as read from a filtergraph."""
    filter: str
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    options: list[FilterOption] = field(default_factory=list)
    id: Optional[str] = None

    def to_string(self) -> str:
        """Convert the descriptor back to filtergraph text."""
        parts = [f"[{inp}]" for inp in self.inputs]

        name = f"{self.filter}@{self.id}" if self.id else self.filter
        if self.options:
            parts.append(f"{name}={':'.join(o.to_string() for o in self.options)}")
        else:
            parts.append(name)

        parts.extend(f"[{out}]" for out in self.outputs)
        return "".join(parts)


def random_label() -> str:
    """Generate a 6-character pad label for split chains."""
    return "x" + uuid.uuid4().hex[:5]


def _expand_commas(expr: str, make_label: Callable[[], str]) -> str:
    """Replace chain-internal commas with a fresh ``[h];[h]`` pad pair."""
    out: list[str] = []
    in_double = False
    in_single = False
    in_pad = False
    depth = 0
    i = 0
    n = len(expr)

    while i < n:
        ch = expr[i]

        if ch == "\\" and i + 1 < n:
            out.append(expr[i:i + 2])
            i += 2
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "'" and not in_double:
            in_single = not in_single
        elif not in_double and not in_single:
            if ch == "[":
                in_pad = True
            elif ch == "]":
                in_pad = False
            elif ch == "(":
                depth += 1
            elif ch == ")" and depth > 0:
                depth -= 1
            elif ch == "," and not in_pad and depth == 0:
                label = make_label()
                out.append(f"[{label}];[{label}]")
                i += 1
                continue

        out.append(ch)
        i += 1

    return "".join(out)


def _split_quoted(text: str, sep: str, track_depth: bool = False) -> list[str]:
    """Split on ``sep`` outside quotes (and parentheses when requested)."""
    parts: list[str] = []
    current: list[str] = []
    in_double = False
    in_single = False
    depth = 0
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch == "\\" and i + 1 < n:
            current.append(text[i:i + 2])
            i += 2
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "'" and not in_double:
            in_single = not in_single
        elif not in_double and not in_single and track_depth:
            if ch == "(":
                depth += 1
            elif ch == ")" and depth > 0:
                depth -= 1

        if ch == sep and not in_double and not in_single and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1

    parts.append("".join(current))
    return parts


def parse_filter_options(text: str) -> list[FilterOption]:
    """Split a filter's option text into named and positional options.

    Options are separated by ``:`` outside quotes and parentheses. Empty
    values are dropped.
    """
    options: list[FilterOption] = []
    for raw in _split_quoted(text, ":", track_depth=True):
        raw = raw.strip()
        if not raw:
            continue
        if "=" in raw:
            name, val = raw.split("=", 1)
            if val:
                options.append(FilterOption(name=name.strip(), val=val))
        else:
            options.append(FilterOption(val=raw))
    return options


def _parse_chain(chain: str) -> FilterDescriptor:
    inputs: list[str] = []
    rest = chain
    while True:
        m = _LEADING_PAD.match(rest)
        if not m:
            break
        inputs.append(m.group(1))
        rest = rest[m.end():]

    bracket = rest.find("[")
    filter_part = rest if bracket == -1 else rest[:bracket]
    pad_part = "" if bracket == -1 else rest[bracket:]
    filter_part = filter_part.strip()

    filter_id = None
    m = _FILTER_ID.match(filter_part)
    if m:
        filter_id = m.group(2)
        filter_part = m.group(1) + m.group(3)

    name, sep, option_text = filter_part.partition("=")
    options = parse_filter_options(option_text) if sep else []

    return FilterDescriptor(
        filter=name.strip(),
        inputs=inputs,
        outputs=_PAD.findall(pad_part),
        options=options,
        id=filter_id,
    )


def parse_filter_complex(
    expr: str,
    make_label: Optional[Callable[[], str]] = None,
) -> list[FilterDescriptor]:
    """Parse a filtergraph expression into one descriptor per filter.

    Args:
        expr: The ``-filter_complex`` argument, with shell quoting already
            removed.
        make_label: Factory for the synthetic pad labels that join
            comma-chained filters. Defaults to :func:`random_label`.

    Returns:
        Descriptors in textual order. Pads introduced for comma chains
        appear as ordinary output/input labels of adjacent descriptors.
    """
    expanded = _expand_commas(expr, make_label or random_label)
    descriptors: list[FilterDescriptor] = []
    for chain in _split_quoted(expanded, ";"):
        chain = chain.strip()
        if not chain:
            continue
        descriptors.append(_parse_chain(chain))
    return descriptors
