"""Error types shared across ffgraph.

Only ``MissingOutputError`` and ``EmptyExpansionError`` are raised to
callers. ``ParseAmbiguity``, ``UsageError`` and ``StaleSnapshotError``
are recorded as diagnostics next to a log record and never interrupt the
operation that produced them.
"""


class FFGraphError(Exception):
    """Base class for all ffgraph errors."""


class ParseAmbiguity(FFGraphError):
    """A command fragment was recovered best-effort during reconstruction."""


class MissingOutputError(FFGraphError):
    """The graph produced no output section, so no command can be built."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Failed to create ffmpeg transcode cmd! "
            "At least one Output node must be specified!"
        )


class UsageError(FFGraphError):
    """A node was wired in a way its emission contract does not allow."""

    def __init__(self, message: str, node_id: int | None = None):
        super().__init__(message)
        self.node_id = node_id


class EmptyExpansionError(FFGraphError):
    """A wildcard input pattern matched no files."""

    def __init__(self, pattern: str):
        super().__init__(f"No files matched wildcard pattern: {pattern}")
        self.pattern = pattern


class StaleSnapshotError(FFGraphError):
    """A history entry could not be restored onto the graph."""
