"""Graph executor: runs every node in dependency order and builds the command.

Each node kind has an emission contract. Input, filter and output nodes
append sections to the :class:`FFmpegCommand` accumulator; the others
pass a value (a codec spec, a stream reference, accumulated flags) along
their output links to the nodes that consume it.
"""

import heapq
import logging
from collections import defaultdict
from typing import Any, Callable, Optional

from ..core.executor.command_builder import FFmpegCommand, NodeRef, RefType, StreamRef
from ..core.tokenizer import quote_arg
from .factory import SELECT_BY, SelectMode, render_selector
from .graph import Graph, Node, NodeKind

logger = logging.getLogger("ffgraph")

# Widget names of positional filter options, emitted as bare values.
POSITIONAL_PREFIX = "#"
FILTER_ID_PROPERTY = "@id"


def execution_order(graph: Graph) -> list[Node]:
    """Order nodes so that every node runs after all nodes feeding it.

    Among nodes that are ready at the same time, the one placed earlier in
    the graph's node list runs first, which keeps the order stable. Nodes
    stuck in a cycle run last, in list order.
    """
    position = {node.id: i for i, node in enumerate(graph.nodes)}
    pending = {node.id: 0 for node in graph.nodes}
    successors: dict[int, list[int]] = defaultdict(list)

    for link in graph.links.values():
        if link.origin_id in position and link.target_id in position:
            pending[link.target_id] += 1
            successors[link.origin_id].append(link.target_id)

    ready = [position[node_id] for node_id, count in pending.items() if count == 0]
    heapq.heapify(ready)
    order: list[Node] = []

    while ready:
        node = graph.nodes[heapq.heappop(ready)]
        order.append(node)
        for succ in successors[node.id]:
            pending[succ] -= 1
            if pending[succ] == 0:
                heapq.heappush(ready, position[succ])

    if len(order) < len(graph.nodes):
        done = {node.id for node in order}
        rest = [node for node in graph.nodes if node.id not in done]
        logger.warning("Graph has a cycle; running %d node(s) in list order", len(rest))
        order.extend(rest)
    return order


def option_pairs(node: Node) -> list[str]:
    """Render ``<flag> <value>`` for every widget with a non-empty value."""
    pairs = []
    for widget in node.widgets:
        value = str(node.properties.get(widget, "") or "")
        if value:
            pairs.append(f"{widget} {quote_arg(value)}")
    return pairs


class GraphExecutor:
    """Runs one emission pass over a graph."""

    def __init__(self, graph: Graph):
        self.graph = graph
        self.command = FFmpegCommand()
        self._data: dict[tuple[int, int], Any] = {}
        self._handlers: dict[NodeKind, Callable[[Node], None]] = {
            NodeKind.INPUT: self._run_input,
            NodeKind.OUTPUT: self._run_output,
            NodeKind.FILTER: self._run_filter,
            NodeKind.ENCODER: self._run_codec,
            NodeKind.DECODER: self._run_codec,
            NodeKind.MUXER: self._run_format,
            NodeKind.DEMUXER: self._run_format,
            NodeKind.STREAM_SELECTOR: self._run_selector,
            NodeKind.GENERIC_FLAG: self._run_flag,
        }

    def run(self, selected_only: bool = False, variables: Optional[dict] = None) -> FFmpegCommand:
        """Execute every node once against a fresh accumulator.

        Args:
            selected_only: Only emit nodes flagged as selected.
            variables: Values for ``{{name}}`` placeholders. They override
                the graph's own ``extra["variables"]``.

        Returns:
            The filled accumulator, including any usage errors.
        """
        self.command = FFmpegCommand(selected_only=selected_only)
        self._data = {}

        seeded = self.graph.extra.get("variables") or {}
        self.command.variables.update({str(k): str(v) for k, v in seeded.items()})
        if variables:
            self.command.variables.update({str(k): str(v) for k, v in variables.items()})

        for node in execution_order(self.graph):
            self._handlers[node.kind](node)
        return self.command

    def emit(self, selected_only: bool = False, variables: Optional[dict] = None) -> str:
        """Run the graph and return the command text without the program name.

        Raises:
            MissingOutputError: If no Output node emitted a section.
        """
        return self.run(selected_only, variables).to_string()

    # ------------------------------------------------------------------ #
    #   Slot data                                                        #
    # ------------------------------------------------------------------ #

    def _set_output(self, node: Node, slot: int, value: Any) -> None:
        self._data[(node.id, slot)] = value

    def _input_data(self, node: Node, slot: int) -> Any:
        origin = self.graph.origin_of(node, slot)
        if origin is None:
            return None
        return self._data.get((origin[0].id, origin[1]))

    def _input_or_property(self, node: Node, name: str) -> Any:
        slot = node.find_input_slot(name)
        if slot >= 0 and node.inputs[slot].link is not None:
            return self._input_data(node, slot)
        return node.properties.get(name)

    def _skip(self, node: Node) -> bool:
        return self.command.selected_only and not node.selected

    # ------------------------------------------------------------------ #
    #   Emission contracts                                               #
    # ------------------------------------------------------------------ #

    def _run_input(self, node: Node) -> None:
        if self._skip(node):
            return

        parts = []
        dec_a = self._input_or_property(node, "dec:a")
        dec_v = self._input_or_property(node, "dec:v")
        if dec_a:
            parts.append(f"-c:a {dec_a}")
        if dec_v:
            parts.append(f"-c:v {dec_v}")
        for name in ("demuxer", "globals"):
            value = self._input_or_property(node, name)
            if value:
                parts.append(value)

        src = str(node.properties.get("src_path") or "")
        parts.append(f"-i {quote_arg(src)}")

        ref = self.command.add_input(" ".join(parts))
        self.command.variables.setdefault(f"input_{ref.id}", src)
        self._set_output(node, 0, ref)

    def _run_output(self, node: Node) -> None:
        if self._skip(node):
            return

        parts = []
        for i, slot in enumerate(node.inputs):
            if slot.name != "stream" or slot.link is None:
                continue
            stream = self._input_data(node, i)
            if isinstance(stream, StreamRef):
                if stream.data:
                    parts.append(f"-map {stream.map_arg()}")
            elif stream is not None:
                self.command.usage_error(
                    f"Output node {node.id} can only map streams from stream selectors", node.id
                )

        for name in ("muxer", "globals"):
            value = self._input_or_property(node, name)
            if value:
                parts.append(value)
        enc_a = self._input_or_property(node, "enc:a")
        enc_v = self._input_or_property(node, "enc:v")
        if enc_a:
            parts.append(f"-c:a {enc_a}")
        if enc_v:
            parts.append(f"-c:v {enc_v}")

        parts.append(quote_arg(str(node.properties.get("dst_path") or "")))
        self.command.add_output(" ".join(parts))

    def _run_filter(self, node: Node) -> None:
        if self._skip(node) or not node.is_output_connected():
            return

        pads = []
        for i, slot in enumerate(node.inputs):
            if slot.link is None:
                continue
            stream = self._input_data(node, i)
            if isinstance(stream, StreamRef) and stream.data:
                pads.append(f"[{stream.data}]")

        opts = []
        for widget in node.widgets:
            value = str(node.properties.get(widget, "") or "")
            if not value:
                continue
            opts.append(value if widget.startswith(POSITIONAL_PREFIX) else f"{widget}={value}")

        name = node.name
        filter_id = node.properties.get(FILTER_ID_PROPERTY)
        if filter_id:
            name = f"{name}@{filter_id}"
        text = "".join(pads) + name
        if opts:
            text += "=" + ":".join(opts)

        self._set_output(node, 0, self.command.add_filter(text))

    def _run_codec(self, node: Node) -> None:
        if self._skip(node) or not node.is_output_connected():
            return
        self._set_output(node, 0, " ".join([node.name] + option_pairs(node)))

    def _run_format(self, node: Node) -> None:
        if self._skip(node) or not node.is_output_connected():
            return
        self._set_output(node, 0, " ".join(["-f", node.name] + option_pairs(node)))

    def _run_selector(self, node: Node) -> None:
        if self._skip(node):
            return

        source = self._input_or_property(node, "n-streams")
        from_input = isinstance(source, NodeRef) and source.type == RefType.INPUT
        from_filter = isinstance(source, NodeRef) and source.type == RefType.FILTER
        mode = node.properties.get(SELECT_BY, SelectMode.ID.value)
        result, processed = render_selector(node.properties, source.id if from_input else None)

        if from_filter:
            if mode != SelectMode.NAME or not processed:
                self.command.usage_error("Stream selector after filters must use 'name' selection", node.id)
            else:
                self.command.append_filter_pad(source.id, result)
        elif processed and from_input:
            self.command.usage_error("Stream selector after an input cannot use 'name' selection", node.id)
        elif processed:
            self.command.usage_error("Stream selector using 'name' selection needs a filter upstream", node.id)

        self._set_output(node, 0, StreamRef(result, processed))

    def _run_flag(self, node: Node) -> None:
        if self._skip(node) or not node.is_output_connected():
            return

        globals_in = self._input_or_property(node, "globals")
        stream = self._input_or_property(node, "stream")
        spec = ""
        if isinstance(stream, StreamRef) and ":" in stream.data:
            spec = ":" + stream.data.split(":", 1)[1]

        if node.widgets:
            parts = [
                f"{w}{spec} {quote_arg(str(node.properties[w]))}"
                for w in node.widgets if node.properties.get(w)
            ]
        else:
            parts = [f"{node.properties.get('flag', node.name)}{spec}"]

        self._set_output(node, 0, " ".join(p for p in [globals_in] + parts if p))


def emit(graph: Graph, selected_only: bool = False, variables: Optional[dict] = None) -> str:
    """Generate the FFmpeg argument string for a graph.

    Raises:
        MissingOutputError: If the graph has no (selected) Output node.
    """
    return GraphExecutor(graph).emit(selected_only, variables)
