"""Editing session: one graph with history, clipboard and command output."""

import json
import logging
from typing import Optional

from .catalog.manifest_loader import load_manifest
from .catalog.registry import NodeRegistry, get_registry
from .core.config import StudioConfig
from .core.expander import ExpandOptions, GlobService, expand
from .core.tokenizer import quote_arg
from .nodes.execution import emit
from .nodes.graph import Graph
from .nodes.history import GraphUndoManager
from .nodes.merge import merge_graphs
from .nodes.reconstructor import GraphReconstructor

logger = logging.getLogger("ffgraph")


def is_ffmpeg_command(text: str) -> bool:
    """Return True if pasted text looks like an FFmpeg command line."""
    text = text.strip()
    return text.lower().startswith("ffmpeg") or "-i " in text


def _as_graph_data(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("nodes"), list):
        return data
    return None


class GraphSession:
    """Ties a graph to its history, the reconstructor and the executor."""

    def __init__(self, registry: Optional[NodeRegistry] = None, config: Optional[StudioConfig] = None):
        self.config = config or StudioConfig()
        self.registry = registry if registry is not None else get_registry()
        for path in self.config.manifest_paths:
            load_manifest(path, self.registry)

        self.graph = Graph()
        self.reconstructor = GraphReconstructor(self.registry)
        self.history = GraphUndoManager(
            self.graph,
            max_history=self.config.undo_max_history,
            debounce=self.config.undo_debounce_seconds,
            watch=True,
        )

    # ------------------------------------------------------------------ #
    #   Clipboard                                                        #
    # ------------------------------------------------------------------ #

    def copy_selection(self) -> str:
        """Serialize the selected nodes and the links between them."""
        selected = {node.id for node in self.graph.nodes if node.selected}
        data = {
            "nodes": [node.serialize() for node in self.graph.nodes if node.id in selected],
            "links": [
                link.to_list() for link in self.graph.links.values()
                if link.origin_id in selected and link.target_id in selected
            ],
        }
        return json.dumps(data)

    def paste(self, text: str) -> bool:
        """Paste graph JSON or an FFmpeg command into the graph.

        Returns:
            True if the text was recognized and applied.
        """
        data = _as_graph_data(text)
        if data is not None:
            with self.history.batch():
                merged = merge_graphs(self.graph.serialize(), data, self.config.merge_jitter)
                self.graph.configure(merged)
            return True

        if is_ffmpeg_command(text):
            with self.history.batch():
                self.reconstructor.import_command(text, self.graph)
            return True

        logger.error("Clipboard data is neither a graph nor an FFmpeg command")
        return False

    # ------------------------------------------------------------------ #
    #   Import / export                                                  #
    # ------------------------------------------------------------------ #

    def load(self, data: dict) -> None:
        """Replace the graph with serialized data and restart history."""
        self.graph.configure(data)
        self.history.reset_history()

    def import_graph(self, data: dict) -> None:
        """Merge a serialized graph into the current one and restart history."""
        self.graph.configure(merge_graphs(self.graph.serialize(), data, self.config.merge_jitter))
        self.history.reset_history()

    def export(self) -> dict:
        return self.graph.serialize()

    # ------------------------------------------------------------------ #
    #   Commands                                                         #
    # ------------------------------------------------------------------ #

    def command(self, selected_only: bool = False, variables: Optional[dict] = None) -> str:
        """Full command line for the graph, program name included.

        Raises:
            MissingOutputError: If the graph has no Output node.
        """
        return f"{quote_arg(self.config.ffmpeg_bin)} {emit(self.graph, selected_only, variables)}"

    async def expand_commands(self, glob_service: Optional[GlobService] = None) -> list[str]:
        """Expand wildcards in the graph's command into concrete commands."""
        options = ExpandOptions(
            hash_length=self.config.hash_length,
            index_padding=self.config.index_padding,
        )
        return await expand(self.command(), options, glob_service)

    # ------------------------------------------------------------------ #
    #   History                                                          #
    # ------------------------------------------------------------------ #

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()
