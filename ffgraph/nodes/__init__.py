"""Node graph model, execution and editing."""

from .graph import Graph, InputSlot, Link, Node, NodeKind, OutputSlot, PortType
from .execution import GraphExecutor, emit, execution_order
from .reconstructor import GraphReconstructor, import_command
from .history import GraphUndoManager
from .merge import merge_graphs
from .layout import arrange_nodes, position_grid

__all__ = [
    "Graph",
    "GraphExecutor",
    "GraphReconstructor",
    "GraphUndoManager",
    "InputSlot",
    "Link",
    "Node",
    "NodeKind",
    "OutputSlot",
    "PortType",
    "arrange_nodes",
    "emit",
    "execution_order",
    "import_command",
    "merge_graphs",
    "position_grid",
]
