"""Reconstruction of a node graph from FFmpeg command text.

The reconstructor is best-effort: anything it cannot map exactly is
recovered locally (an ad-hoc node, a literal stream selector, a dropped
option), logged, and recorded in :attr:`GraphReconstructor.diagnostics`.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..catalog.registry import NodeCategory, NodeRegistry, get_registry
from ..core.errors import ParseAmbiguity
from ..core.filter_complex import FilterDescriptor
from ..core.segmenter import ParsedCommand, is_filename, split_ffmpeg_args
from ..core.tokenizer import split_pipe, strip_program, tokenize
from .execution import FILTER_ID_PROPERTY, POSITIONAL_PREFIX
from .factory import (
    CATEGORY_KINDS,
    STREAM_TYPES_BY_LETTER,
    SelectMode,
    create_adhoc_node,
    create_input_node,
    create_output_node,
    create_schema_node,
    create_stream_selector,
    render_selector,
)
from .graph import Graph, Node, NodeKind
from .layout import arrange_nodes, position_grid

logger = logging.getLogger("ffgraph")

VIDEO_CODEC_FLAGS = ("-c:v", "-codec:v", "-vcodec")
AUDIO_CODEC_FLAGS = ("-c:a", "-codec:a", "-acodec")
FORMAT_FLAG = "-f"
MAP_FLAG = "-map"
STREAM_COPY = "copy"

_NEGATIVE_NUMBER = re.compile(r"^-\d")


def infer_selector(spec: str) -> tuple[SelectMode, dict[str, str], Optional[int]]:
    """Infer a stream selector's mode and properties from a specifier.

    Args:
        spec: A stream specifier such as ``0:v:1``, ``1:m:language:ger``,
            ``0:p:2`` or ``:a``.

    Returns:
        Tuple of (mode, properties, input_index). The inferred selector
        always renders back to ``spec``; when no mode does, the result is a
        custom selector holding the literal text.
    """
    parts = spec.split(":")
    head = parts[0]
    input_index = int(head) if head.isdigit() else None
    mode: Optional[SelectMode] = None
    props: dict[str, str] = {}

    if input_index is not None and len(parts) > 1:
        kind = parts[1]
        if kind == "m" and len(parts) > 2 and parts[2] == "language":
            mode, props = SelectMode.LANGUAGE, {"Language": parts[3] if len(parts) > 3 else "eng"}
        elif kind == "p":
            mode, props = SelectMode.PROGRAM, {"Program": parts[2] if len(parts) > 2 else "1"}
        elif kind in STREAM_TYPES_BY_LETTER:
            mode, props = SelectMode.TYPE, {
                "Type": STREAM_TYPES_BY_LETTER[kind],
                "Id": parts[2] if len(parts) > 2 else "",
            }
        else:
            mode, props = SelectMode.ID, {"Id": ":".join(parts[1:])}
    elif head == "" and len(parts) > 1 and parts[1] in STREAM_TYPES_BY_LETTER:
        mode, props = SelectMode.TYPE, {
            "Type": STREAM_TYPES_BY_LETTER[parts[1]],
            "Id": parts[2] if len(parts) > 2 else "",
        }

    if mode is not None:
        rendered, _ = render_selector({"Select by": mode.value, **props}, input_index)
        if rendered == spec:
            return mode, props, input_index
    return SelectMode.CUSTOM, {"Custom": spec}, input_index


@dataclass
class _Segment:
    """Nodes created for one pipeline segment."""
    graph: Graph
    created: list[Node] = field(default_factory=list)
    inputs: list[Node] = field(default_factory=list)
    pads: dict[str, Node] = field(default_factory=dict)

    def add(self, node: Node) -> Node:
        self.graph.add(node)
        self.created.append(node)
        return node


@dataclass
class _Param:
    name: str
    stream_spec: str
    value: Optional[str]


class GraphReconstructor:
    """Builds graph nodes from segmented FFmpeg commands."""

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry if registry is not None else get_registry()
        self.diagnostics: list[ParseAmbiguity] = []

    def _ambiguity(self, message: str, *args) -> None:
        text = message % args if args else message
        logger.warning(text)
        self.diagnostics.append(ParseAmbiguity(text))

    # ------------------------------------------------------------------ #
    #   Entry points                                                     #
    # ------------------------------------------------------------------ #

    def import_command(self, text: str, graph: Graph, arrange: bool = True) -> list[Node]:
        """Parse command text, possibly a ``|`` pipeline, into the graph.

        Args:
            text: Pasted command text.
            graph: Graph receiving the new nodes.
            arrange: Run the automatic layout over the whole graph after
                the import.

        Returns:
            All nodes created, in creation order.
        """
        created: list[Node] = []
        for index, segment in enumerate(split_pipe(text)):
            tokens = strip_program(tokenize(segment))
            if not tokens:
                continue
            nodes = self.build(split_ffmpeg_args(tokens), graph)
            position_grid(nodes, index)
            logger.debug("Segment %d: created %d node(s)", index, len(nodes))
            created.extend(nodes)

        if arrange and created:
            arrange_nodes(graph)
        return created

    def build(self, parsed: ParsedCommand, graph: Graph) -> list[Node]:
        """Create the nodes of one segmented command.

        Returns:
            The nodes created, in creation order.
        """
        seg = _Segment(graph)
        for args in parsed.inputs:
            self._build_input(args, seg)
        for desc in parsed.filters:
            self._build_filter(desc, seg)
        for args in parsed.outputs:
            self._build_output(args, seg)
        if parsed.trailing:
            self._ambiguity("Arguments after the last output were ignored: %s", " ".join(parsed.trailing))
        return seg.created

    # ------------------------------------------------------------------ #
    #   Arguments                                                        #
    # ------------------------------------------------------------------ #

    def _takes_value(self, name: str, next_arg: Optional[str]) -> bool:
        if next_arg is None:
            return False
        if next_arg.startswith("-") and next_arg != "-" and not _NEGATIVE_NUMBER.match(next_arg):
            return False
        schema = self.registry.find_flag(name)
        if schema is not None and schema.options and schema.options[0].no_args:
            return False
        return True

    def _param(self, args: list[str], i: int) -> tuple[_Param, int]:
        """Read the flag at ``args[i]`` and its value, if it owns one."""
        name, sep, rest = args[i].partition(":")
        next_arg = args[i + 1] if i + 1 < len(args) else None
        if self._takes_value(name, next_arg):
            return _Param(name, sep + rest, next_arg), i + 2
        return _Param(name, sep + rest, None), i + 1

    # ------------------------------------------------------------------ #
    #   Node creation                                                    #
    # ------------------------------------------------------------------ #

    def _schema_node(self, category: NodeCategory, name: str, seg: _Segment) -> Node:
        schema = self.registry.find(category, name)
        if schema is not None:
            return seg.add(create_schema_node(schema))
        if name != STREAM_COPY:
            self._ambiguity("Unknown %s '%s'; created a node without options", category.value[:-1], name)
        return seg.add(create_adhoc_node(CATEGORY_KINDS[category], name))

    def _connect_to_input(self, spec: str, index: Optional[int], selector: Node, seg: _Segment) -> None:
        if index is None:
            return
        if index < len(seg.inputs):
            seg.graph.connect(seg.inputs[index], 0, selector, 0)
        else:
            self._ambiguity("Stream specifier '%s' refers to missing input %d", spec, index)

    def _selector(self, spec: str, seg: _Segment, pad: bool = False) -> Node:
        """Create a stream selector for a specifier, a pad label or a map."""
        if len(spec) > 2 and spec.startswith("[") and spec.endswith("]"):
            return seg.add(create_stream_selector(SelectMode.NAME, Name=spec[1:-1]))

        mode, props, index = infer_selector(spec)
        if pad and mode == SelectMode.CUSTOM and index is None:
            return seg.add(create_stream_selector(SelectMode.NAME, Name=spec))

        selector = seg.add(create_stream_selector(mode, **props))
        self._connect_to_input(spec, index, selector, seg)
        return selector

    def _attach_params(self, params: list[_Param], target: Node, owners: list[Node], seg: _Segment) -> None:
        """Create flag nodes for general parameters and chain them into ``target``.

        A parameter that is not a known general flag but is declared by one
        of ``owners`` (the codec and format nodes of the same slice) sets
        that node's property instead.
        """
        graph = seg.graph
        last: Optional[Node] = None

        for param in params:
            schema = self.registry.find_flag(param.name)
            if schema is None:
                owner = next((n for n in owners if param.name in n.properties), None)
                if owner is not None:
                    if param.stream_spec:
                        self._ambiguity("Stream specifier dropped from %s%s", param.name, param.stream_spec)
                    owner.properties[param.name] = param.value if param.value is not None else ""
                    continue
                self._ambiguity("Unknown option '%s'; keeping it as a custom flag", param.name)
                node = seg.add(create_adhoc_node(NodeKind.GENERIC_FLAG, param.name, param.value is not None))
            else:
                node = seg.add(create_schema_node(schema))
                opt = schema.options[0] if schema.options else None
                if opt is not None and param.value is not None:
                    valid, error = opt.validate(param.value)
                    if not valid:
                        self._ambiguity("%s", error)

            if param.value is not None:
                if param.name in node.properties:
                    node.properties[param.name] = param.value
                else:
                    node.properties["value"] = param.value
            elif node.widgets:
                self._ambiguity("Option '%s' is missing its value", param.name)

            if param.stream_spec:
                stream_slot = node.find_input_slot("stream")
                if stream_slot < 0:
                    self._ambiguity("Stream specifier dropped from %s%s", param.name, param.stream_spec)
                else:
                    selector = self._selector(param.stream_spec, seg)
                    graph.connect(selector, 0, node, stream_slot)

            if last is not None:
                graph.connect(last, 0, node, node.find_input_slot("globals"))
            last = node

        if last is not None:
            graph.connect(last, 0, target, target.find_input_slot("globals"))

    def _build_input(self, args: list[str], seg: _Segment) -> None:
        src = ""
        dec_v = dec_a = demuxer = None
        params: list[_Param] = []
        i = 0

        while i < len(args):
            arg = args[i]
            has_next = i + 1 < len(args)
            if arg == "-i" and has_next:
                src = args[i + 1]
                i += 2
            elif arg in VIDEO_CODEC_FLAGS and has_next:
                dec_v = args[i + 1]
                i += 2
            elif arg in AUDIO_CODEC_FLAGS and has_next:
                dec_a = args[i + 1]
                i += 2
            elif arg == FORMAT_FLAG and has_next:
                demuxer = args[i + 1]
                i += 2
            elif arg.startswith("-") and len(arg) > 1:
                param, i = self._param(args, i)
                params.append(param)
            else:
                self._ambiguity("Ignoring stray input argument '%s'", arg)
                i += 1

        node = seg.add(create_input_node(src))
        seg.inputs.append(node)
        graph = seg.graph
        owners: list[Node] = []

        if dec_v:
            dec = self._schema_node(NodeCategory.DECODERS, dec_v, seg)
            graph.connect(dec, 0, node, node.find_input_slot("dec:v"))
            owners.append(dec)
        if dec_a:
            dec = self._schema_node(NodeCategory.DECODERS, dec_a, seg)
            graph.connect(dec, 0, node, node.find_input_slot("dec:a"))
            owners.append(dec)
        if demuxer:
            fmt = self._schema_node(NodeCategory.DEMUXERS, demuxer, seg)
            graph.connect(fmt, 0, node, node.find_input_slot("demuxer"))
            owners.append(fmt)

        self._attach_params(params, node, owners, seg)

    def _build_filter(self, desc: FilterDescriptor, seg: _Segment) -> None:
        if not desc.filter:
            self._ambiguity("Skipping filtergraph entry without a filter name: %s", desc.to_string())
            return

        graph = seg.graph
        schema = self.registry.find(NodeCategory.FILTERS, desc.filter)
        if schema is not None:
            node = seg.add(create_schema_node(schema))
        else:
            self._ambiguity("Unknown filter '%s'; created a node without options", desc.filter)
            node = seg.add(create_adhoc_node(NodeKind.FILTER, desc.filter))

        if desc.id:
            node.properties[FILTER_ID_PROPERTY] = desc.id

        for i, opt in enumerate(desc.options):
            if opt.name is not None:
                if opt.name not in node.properties:
                    node.widgets.append(opt.name)
                node.properties[opt.name] = opt.val
            elif schema is None:
                key = f"{POSITIONAL_PREFIX}{i}"
                node.widgets.append(key)
                node.properties[key] = opt.val
            elif i < len(node.widgets):
                node.properties[node.widgets[i]] = opt.val
            else:
                self._ambiguity("Dropping extra positional option '%s' of filter '%s'", opt.val, desc.filter)

        for label in desc.inputs:
            selector = seg.pads.get(label)
            if selector is None:
                selector = self._selector(label, seg, pad=True)
                seg.pads[label] = selector
            graph.connect(selector, 0, node, graph.free_stream_slot(node))

        for label in desc.outputs:
            selector = seg.add(create_stream_selector(SelectMode.NAME, Name=label))
            graph.connect(node, 0, selector, 0)
            seg.pads[label] = selector

        if not desc.outputs:
            self._ambiguity("Filter '%s' has no output pad; it is only emitted once its output is connected", desc.filter)

    def _build_output(self, args: list[str], seg: _Segment) -> None:
        dst = args[-1] if args and is_filename(args[-1]) else ""
        body = args[:-1] if dst else args

        maps: list[str] = []
        enc_v = enc_a = muxer = None
        params: list[_Param] = []
        i = 0

        while i < len(body):
            arg = body[i]
            has_next = i + 1 < len(body)
            if arg == MAP_FLAG and has_next:
                maps.append(body[i + 1])
                i += 2
            elif arg in VIDEO_CODEC_FLAGS and has_next:
                enc_v = body[i + 1]
                i += 2
            elif arg in AUDIO_CODEC_FLAGS and has_next:
                enc_a = body[i + 1]
                i += 2
            elif arg == FORMAT_FLAG and has_next:
                muxer = body[i + 1]
                i += 2
            elif arg.startswith("-") and len(arg) > 1:
                param, i = self._param(body, i)
                params.append(param)
            else:
                self._ambiguity("Ignoring stray output argument '%s'", arg)
                i += 1

        node = seg.add(create_output_node(dst))
        graph = seg.graph
        owners: list[Node] = []

        if enc_v:
            enc = self._schema_node(NodeCategory.ENCODERS, enc_v, seg)
            graph.connect(enc, 0, node, node.find_input_slot("enc:v"))
            owners.append(enc)
        if enc_a:
            enc = self._schema_node(NodeCategory.ENCODERS, enc_a, seg)
            graph.connect(enc, 0, node, node.find_input_slot("enc:a"))
            owners.append(enc)
        if muxer:
            fmt = self._schema_node(NodeCategory.MUXERS, muxer, seg)
            graph.connect(fmt, 0, node, node.find_input_slot("muxer"))
            owners.append(fmt)

        self._attach_params(params, node, owners, seg)

        for value in maps:
            selector = self._map_selector(value, seg)
            graph.connect(selector, 0, node, graph.free_stream_slot(node))

        if not maps:
            for inp in seg.inputs:
                selector = seg.add(create_stream_selector(SelectMode.CUSTOM))
                graph.connect(inp, 0, selector, 0)
                graph.connect(selector, 0, node, graph.free_stream_slot(node))

    def _map_selector(self, value: str, seg: _Segment) -> Node:
        label = value[1:-1] if len(value) > 2 and value.startswith("[") and value.endswith("]") else value
        selector = seg.pads.get(label)
        if selector is not None:
            return selector
        return self._selector(value, seg)


def import_command(text: str, graph: Graph, registry: Optional[NodeRegistry] = None) -> list[Node]:
    """Reconstruct command text into ``graph`` with the default registry."""
    return GraphReconstructor(registry).import_command(text, graph)
