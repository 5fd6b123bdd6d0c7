"""
ffgraph - FFmpeg commands as editable node graphs.

Parses command lines into a typed node graph, generates commands back from
edited graphs, and expands wildcard command templates into batches.
"""

from .core.errors import (
    EmptyExpansionError,
    FFGraphError,
    MissingOutputError,
    ParseAmbiguity,
    UsageError,
)
from .nodes.execution import emit
from .nodes.graph import Graph
from .nodes.reconstructor import import_command
from .session import GraphSession

__version__ = "0.4.0"

__all__ = [
    "EmptyExpansionError",
    "FFGraphError",
    "Graph",
    "GraphSession",
    "MissingOutputError",
    "ParseAmbiguity",
    "UsageError",
    "emit",
    "import_command",
]
