"""Accumulator that collects command sections while a graph executes."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from ..errors import MissingOutputError, UsageError

logger = logging.getLogger("ffgraph")


class RefType(str, Enum):
    """What a node reference on an ``n-streams`` port points at."""
    INPUT = "input"
    FILTER = "filter"


@dataclass(frozen=True)
class NodeRef:
    """Reference to an input section or a filter section by index."""
    type: RefType
    id: int


@dataclass(frozen=True)
class StreamRef:
    """A stream specifier produced by a stream selector.

    ``processed`` marks a filter pad label, which is emitted as
    ``-map [label]`` rather than ``-map label``.
    """
    data: str
    processed: bool = False

    def map_arg(self) -> str:
        return f"[{self.data}]" if self.processed else self.data


@dataclass
class FFmpegCommand:
    """Inputs, filter chains and outputs gathered during one emission pass."""
    inputs: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)
    selected_only: bool = False
    errors: list[UsageError] = field(default_factory=list)

    def add_input(self, section: str) -> NodeRef:
        self.inputs.append(section)
        return NodeRef(RefType.INPUT, len(self.inputs) - 1)

    def add_filter(self, section: str) -> NodeRef:
        self.filters.append(section)
        return NodeRef(RefType.FILTER, len(self.filters) - 1)

    def add_output(self, section: str) -> None:
        self.outputs.append(section)

    def append_filter_pad(self, index: int, label: str) -> None:
        """Attach an output pad label to an already emitted filter."""
        self.filters[index] += f"[{label}]"

    def usage_error(self, message: str, node_id: int | None = None) -> None:
        logger.error(message)
        self.errors.append(UsageError(message, node_id))

    def substitute_variables(self, text: str) -> str:
        """Replace every ``{{key}}`` placeholder with its variable value."""
        for key, value in self.variables.items():
            text = re.sub(r"\{\{" + re.escape(key) + r"\}\}", lambda _m: str(value), text)
        return text

    def to_string(self) -> str:
        """Assemble the command string, without the program name.

        Raises:
            MissingOutputError: If no output section was emitted.
        """
        if not self.outputs:
            err = MissingOutputError()
            logger.error(str(err))
            raise err

        parts = list(self.inputs)
        if self.filters:
            # Double quotes inside filter text are escaped so the section
            # tokenizes back to a single argument.
            joined = ";".join(self.filters).replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'-filter_complex "{joined}"')
        parts.extend(self.outputs)
        return self.substitute_variables(" ".join(parts))
