"""Construction of every node variant with its slots and properties."""

from enum import Enum

from ..catalog.registry import NodeCategory, NodeSchema, general_path
from .graph import InputSlot, Node, NodeKind, OutputSlot, PortType

INPUT_TYPE = "ffmpeg/input"
OUTPUT_TYPE = "ffmpeg/output"
STREAM_SELECTOR_TYPE = "ffmpeg/stream_selector"

ADHOC_GROUP = "custom"
SELECT_BY = "Select by"


class SelectMode(str, Enum):
    """How a stream selector addresses its streams."""
    ID = "id"
    TYPE = "type"
    NAME = "name"
    LANGUAGE = "language"
    PROGRAM = "program"
    CUSTOM = "custom"


# Mode-specific properties and their defaults.
MODE_DEFAULTS: dict[SelectMode, dict[str, str]] = {
    SelectMode.ID: {"Id": "0"},
    SelectMode.TYPE: {"Type": "video", "Id": ""},
    SelectMode.NAME: {"Name": ""},
    SelectMode.LANGUAGE: {"Language": "eng"},
    SelectMode.PROGRAM: {"Program": "1"},
    SelectMode.CUSTOM: {"Custom": ""},
}

STREAM_TYPE_LETTERS = {
    "video": "v",
    "audio": "a",
    "subtitle": "s",
    "data": "d",
    "attachment": "t",
}
STREAM_TYPES_BY_LETTER = {v: k for k, v in STREAM_TYPE_LETTERS.items()}

CATEGORY_KINDS = {
    NodeCategory.FILTERS: NodeKind.FILTER,
    NodeCategory.ENCODERS: NodeKind.ENCODER,
    NodeCategory.DECODERS: NodeKind.DECODER,
    NodeCategory.MUXERS: NodeKind.MUXER,
    NodeCategory.DEMUXERS: NodeKind.DEMUXER,
    NodeCategory.GENERAL: NodeKind.GENERIC_FLAG,
}
KIND_CATEGORIES = {v: k for k, v in CATEGORY_KINDS.items()}


def create_input_node(src_path: str = "") -> Node:
    return Node(
        kind=NodeKind.INPUT,
        type=INPUT_TYPE,
        name="Input",
        title="Input",
        inputs=[
            InputSlot("globals", PortType.IO_OPTION),
            InputSlot("dec:v", PortType.DECODER),
            InputSlot("dec:a", PortType.DECODER),
            InputSlot("demuxer", PortType.FORMAT),
        ],
        outputs=[OutputSlot("n-streams", PortType.N_STREAMS)],
        properties={"src_path": src_path},
        widgets=["src_path"],
    )


def create_output_node(dst_path: str = "") -> Node:
    return Node(
        kind=NodeKind.OUTPUT,
        type=OUTPUT_TYPE,
        name="Output",
        title="Output",
        inputs=[
            InputSlot("globals", PortType.IO_OPTION),
            InputSlot("enc:v", PortType.ENCODER),
            InputSlot("enc:a", PortType.ENCODER),
            InputSlot("muxer", PortType.FORMAT),
            InputSlot("stream", PortType.MAP_STREAM),
        ],
        properties={"dst_path": dst_path},
        widgets=["dst_path"],
    )


def set_select_mode(node: Node, mode: SelectMode | str) -> None:
    """Switch a stream selector's mode, resetting its mode properties."""
    mode = SelectMode(mode)
    defaults = MODE_DEFAULTS[mode]
    node.properties = {SELECT_BY: mode.value, **defaults}
    node.widgets = [SELECT_BY, *defaults]


def create_stream_selector(mode: SelectMode | str = SelectMode.ID, **values: str) -> Node:
    """Create a stream selector in the given mode.

    Keyword arguments override the mode properties, e.g.
    ``create_stream_selector("type", Type="audio", Id="1")``.
    """
    node = Node(
        kind=NodeKind.STREAM_SELECTOR,
        type=STREAM_SELECTOR_TYPE,
        name="Stream Selector",
        title="Stream Selector",
        inputs=[InputSlot("n-streams", PortType.N_STREAMS)],
        outputs=[OutputSlot("stream", PortType.MAP_STREAM)],
    )
    set_select_mode(node, mode)
    node.properties.update(values)
    return node


def _slots_for(kind: NodeKind, takes_value: bool = True) -> tuple[list[InputSlot], list[OutputSlot]]:
    if kind == NodeKind.FILTER:
        return [InputSlot("stream", PortType.MAP_STREAM)], [OutputSlot("n-streams", PortType.N_STREAMS)]
    if kind == NodeKind.ENCODER:
        return [], [OutputSlot("codec", PortType.ENCODER)]
    if kind == NodeKind.DECODER:
        return [], [OutputSlot("codec", PortType.DECODER)]
    if kind in (NodeKind.MUXER, NodeKind.DEMUXER):
        return [], [OutputSlot("format", PortType.FORMAT)]
    if kind == NodeKind.GENERIC_FLAG:
        inputs = [InputSlot("globals", PortType.IO_OPTION)]
        # only flags with a value take a stream specifier
        if takes_value:
            inputs.append(InputSlot("stream", PortType.MAP_STREAM))
        return inputs, [OutputSlot("globals", PortType.IO_OPTION)]
    raise ValueError(f"Node kind '{kind.value}' is not built from a schema")


def _flag_node(node: Node, flag: str, takes_value: bool) -> Node:
    if takes_value:
        node.properties = {flag: ""}
        node.widgets = [flag]
    else:
        node.properties = {"flag": flag}
        node.widgets = []
    return node


def create_schema_node(schema: NodeSchema) -> Node:
    """Create a filter, codec, format or flag node from its schema."""
    kind = CATEGORY_KINDS[schema.category]
    opt = schema.options[0] if schema.options else None
    takes_value = not (opt and opt.no_args)
    inputs, outputs = _slots_for(kind, takes_value)
    node = Node(
        kind=kind,
        type=schema.path,
        name=schema.name,
        title=schema.name,
        inputs=inputs,
        outputs=outputs,
    )

    if kind == NodeKind.GENERIC_FLAG:
        return _flag_node(node, schema.name, takes_value)

    node.properties = {opt.flag: "" for opt in schema.options}
    node.widgets = [opt.flag for opt in schema.options]
    return node


def create_adhoc_node(kind: NodeKind, name: str, takes_value: bool = True) -> Node:
    """Create a node for a name the registry does not know.

    The node declares no options; filter options can still be added as
    extra widgets afterwards.
    """
    category = KIND_CATEGORIES[kind]
    if kind == NodeKind.GENERIC_FLAG:
        path = general_path(ADHOC_GROUP, name)
    else:
        path = f"ffmpeg/{category.value}/{name}"

    inputs, outputs = _slots_for(kind, takes_value)
    node = Node(kind=kind, type=path, name=name, title=name, inputs=inputs, outputs=outputs)
    if kind == NodeKind.GENERIC_FLAG:
        return _flag_node(node, name, takes_value)
    return node


def render_selector(properties: dict, input_index: int | None) -> tuple[str, bool]:
    """Render a selector's stream specifier from its properties.

    Args:
        properties: The selector's properties.
        input_index: Index of the input section feeding the selector, or
            None when it is not fed by an Input node.

    Returns:
        Tuple of (specifier, processed). ``processed`` is True for filter
        pad labels selected by name.
    """
    mode = properties.get(SELECT_BY, SelectMode.ID.value)
    from_input = input_index is not None

    if mode == SelectMode.NAME:
        name = str(properties.get("Name") or "")
        return name, bool(name)

    if mode == SelectMode.LANGUAGE:
        lang = properties.get("Language")
        if lang and from_input:
            return f"{input_index}:m:language:{lang}", False

    elif mode == SelectMode.TYPE:
        stream_type = properties.get("Type")
        if stream_type is not None:
            result = str(input_index) if from_input else ""
            letter = STREAM_TYPE_LETTERS.get(stream_type)
            if letter:
                result += f":{letter}"
            stream_id = properties.get("Id")
            if stream_id:
                result += f":{stream_id}"
            return result, False

    elif mode == SelectMode.ID:
        stream_id = properties.get("Id")
        if stream_id is not None and from_input:
            return f"{input_index}:{stream_id}", False

    elif mode == SelectMode.PROGRAM:
        program = properties.get("Program")
        if program not in (None, "") and from_input:
            return f"{input_index}:p:{program}", False

    elif mode == SelectMode.CUSTOM:
        return str(properties.get("Custom") or ""), False

    return "", False
