"""Node graph model: nodes, typed slots, links and serialization."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger("ffgraph")

GRAPH_VERSION = 0.4
DEFAULT_NODE_SIZE = (210.0, 100.0)


class PortType(str, Enum):
    """Slot type tags. A link may only join slots of the same type."""
    FORMAT = "fmt"
    IO_OPTION = "ioopt"
    N_STREAMS = "streams"
    MAP_STREAM = "maps"
    DECODER = "dec"
    ENCODER = "enc"


class NodeKind(str, Enum):
    """Closed set of node variants."""
    INPUT = "input"
    OUTPUT = "output"
    FILTER = "filter"
    ENCODER = "encoder"
    DECODER = "decoder"
    MUXER = "muxer"
    DEMUXER = "demuxer"
    STREAM_SELECTOR = "stream_selector"
    GENERIC_FLAG = "flag"


# Node kinds whose map-stream inputs grow and shrink with their links.
STREAM_SLOT_KINDS = (NodeKind.FILTER, NodeKind.OUTPUT)

_KIND_BY_TYPE = {
    "ffmpeg/input": NodeKind.INPUT,
    "ffmpeg/output": NodeKind.OUTPUT,
    "ffmpeg/stream_selector": NodeKind.STREAM_SELECTOR,
}
_KIND_BY_CATEGORY = {
    "filters": NodeKind.FILTER,
    "encoders": NodeKind.ENCODER,
    "decoders": NodeKind.DECODER,
    "muxers": NodeKind.MUXER,
    "demuxers": NodeKind.DEMUXER,
    "general": NodeKind.GENERIC_FLAG,
}


def kind_from_type(node_type: str) -> Optional[NodeKind]:
    """Infer the node kind from its category path."""
    if node_type in _KIND_BY_TYPE:
        return _KIND_BY_TYPE[node_type]
    parts = node_type.split("/")
    if len(parts) >= 3:
        return _KIND_BY_CATEGORY.get(parts[1])
    return None


@dataclass
class InputSlot:
    name: str
    type: PortType
    link: Optional[int] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type.value, "link": self.link}


@dataclass
class OutputSlot:
    name: str
    type: PortType
    links: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type.value, "links": list(self.links)}


@dataclass
class Link:
    """A directed edge from an output slot to an input slot."""
    id: int
    origin_id: int
    origin_slot: int
    target_id: int
    target_slot: int
    type: PortType

    def to_list(self) -> list:
        return [self.id, self.origin_id, self.origin_slot, self.target_id, self.target_slot, self.type.value]

    @classmethod
    def from_data(cls, data: list | dict) -> "Link":
        """Build a link from its list form, or the dict form some editors write."""
        if isinstance(data, dict):
            data = [
                data["id"], data["origin_id"], data["origin_slot"],
                data["target_id"], data["target_slot"], data.get("type", PortType.MAP_STREAM.value),
            ]
        link_id, origin_id, origin_slot, target_id, target_slot, link_type = data[:6]
        return cls(int(link_id), int(origin_id), int(origin_slot), int(target_id), int(target_slot), PortType(link_type))


@dataclass
class Node:
    """A graph node.

    ``properties`` holds every option value; ``widgets`` lists, in order,
    the property names that are emitted as option pairs.
    """
    kind: NodeKind
    type: str
    name: str = ""
    title: str = ""
    id: int = -1
    inputs: list[InputSlot] = field(default_factory=list)
    outputs: list[OutputSlot] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
    widgets: list[str] = field(default_factory=list)
    pos: list[float] = field(default_factory=lambda: [0.0, 0.0])
    size: list[float] = field(default_factory=lambda: list(DEFAULT_NODE_SIZE))
    selected: bool = False

    def find_input_slot(self, name: str) -> int:
        for i, slot in enumerate(self.inputs):
            if slot.name == name:
                return i
        return -1

    def find_output_slot(self, name: str) -> int:
        for i, slot in enumerate(self.outputs):
            if slot.name == name:
                return i
        return -1

    def is_output_connected(self) -> bool:
        return any(out.links for out in self.outputs)

    def has_linked_inputs(self) -> bool:
        return any(slot.link is not None for slot in self.inputs)

    @property
    def widgets_values(self) -> list:
        return [self.properties.get(w, "") for w in self.widgets]

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "kind": self.kind.value,
            "name": self.name,
            "title": self.title,
            "pos": list(self.pos),
            "size": list(self.size),
            "inputs": [slot.to_dict() for slot in self.inputs],
            "outputs": [slot.to_dict() for slot in self.outputs],
            "properties": copy.deepcopy(self.properties),
            "widgets": list(self.widgets),
            "widgets_values": self.widgets_values,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        """Rebuild a node from its serialized form.

        Slot link fields are left empty; the owning graph restores them
        from its link table.

        Raises:
            ValueError: If the node kind cannot be determined.
        """
        node_type = str(data.get("type", ""))
        kind = NodeKind(data["kind"]) if "kind" in data else kind_from_type(node_type)
        if kind is None:
            raise ValueError(f"Unknown node type '{node_type}'")

        properties = dict(data.get("properties") or {})
        widgets = list(data.get("widgets", properties.keys()))
        name = data.get("name") or node_type.rsplit("/", 1)[-1]

        return cls(
            kind=kind,
            type=node_type,
            name=name,
            title=data.get("title") or name,
            id=int(data["id"]),
            inputs=[InputSlot(s["name"], PortType(s["type"])) for s in data.get("inputs") or []],
            outputs=[OutputSlot(s["name"], PortType(s["type"])) for s in data.get("outputs") or []],
            properties=properties,
            widgets=widgets,
            pos=list(data.get("pos") or [0.0, 0.0]),
            size=list(data.get("size") or DEFAULT_NODE_SIZE),
        )


class Graph:
    """Ordered nodes plus the link table joining their slots."""

    def __init__(self):
        self.nodes: list[Node] = []
        self.links: dict[int, Link] = {}
        self.last_node_id = 0
        self.last_link_id = 0
        self.extra: dict[str, Any] = {}
        self._listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------ #
    #   Change notification                                              #
    # ------------------------------------------------------------------ #

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _changed(self) -> None:
        for callback in list(self._listeners):
            callback()

    # ------------------------------------------------------------------ #
    #   Nodes                                                            #
    # ------------------------------------------------------------------ #

    def add(self, node: Node) -> Node:
        """Add a node, assigning it the next node id."""
        self.last_node_id += 1
        node.id = self.last_node_id
        self.nodes.append(node)
        self._changed()
        return node

    def remove(self, node: Node) -> None:
        """Remove a node and every link touching it."""
        for slot in node.inputs:
            if slot.link is not None:
                self._unlink(slot.link)
        for slot in node.outputs:
            for link_id in list(slot.links):
                self._unlink(link_id, rebalance=True)
        self.nodes.remove(node)
        self._changed()

    def get_node_by_id(self, node_id: int) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def index_of(self, node: Node) -> int:
        return self.nodes.index(node)

    def set_property(self, node: Node, name: str, value: Any) -> None:
        node.properties[name] = value
        self._changed()

    # ------------------------------------------------------------------ #
    #   Links and slots                                                  #
    # ------------------------------------------------------------------ #

    def connect(self, origin: Node, origin_slot: int, target: Node, target_slot: int) -> Link:
        """Link an output slot to an input slot.

        Any link already feeding the target slot is replaced.

        Raises:
            ValueError: If a slot index is out of range or the slot types
                differ.
        """
        if not 0 <= origin_slot < len(origin.outputs):
            raise ValueError(f"Node {origin.id} has no output slot {origin_slot}")
        if not 0 <= target_slot < len(target.inputs):
            raise ValueError(f"Node {target.id} has no input slot {target_slot}")

        out = origin.outputs[origin_slot]
        inp = target.inputs[target_slot]
        if out.type != inp.type:
            raise ValueError(
                f"Cannot connect {out.type.value} output of node {origin.id} "
                f"to {inp.type.value} input of node {target.id}"
            )

        if inp.link is not None:
            self._unlink(inp.link)

        self.last_link_id += 1
        link = Link(self.last_link_id, origin.id, origin_slot, target.id, target_slot, out.type)
        self.links[link.id] = link
        out.links.append(link.id)
        inp.link = link.id

        if target.kind in STREAM_SLOT_KINDS:
            self.balance_stream_slots(target)
        self._changed()
        return link

    def disconnect_input(self, node: Node, slot: int) -> None:
        link_id = node.inputs[slot].link
        if link_id is None:
            return
        self._unlink(link_id, rebalance=True)
        self._changed()

    def _unlink(self, link_id: int, rebalance: bool = False) -> None:
        link = self.links.pop(link_id, None)
        if link is None:
            return
        origin = self.get_node_by_id(link.origin_id)
        target = self.get_node_by_id(link.target_id)
        if origin is not None and link_id in origin.outputs[link.origin_slot].links:
            origin.outputs[link.origin_slot].links.remove(link_id)
        if target is not None:
            target.inputs[link.target_slot].link = None
            if rebalance and target.kind in STREAM_SLOT_KINDS:
                self.balance_stream_slots(target)

    def add_input(self, node: Node, name: str, slot_type: PortType) -> int:
        node.inputs.append(InputSlot(name, slot_type))
        return len(node.inputs) - 1

    def remove_input(self, node: Node, slot: int) -> None:
        """Remove an input slot, re-basing links into the slots after it."""
        link_id = node.inputs[slot].link
        if link_id is not None:
            self._unlink(link_id)
        node.inputs.pop(slot)
        for i in range(slot, len(node.inputs)):
            later = node.inputs[i].link
            if later is not None:
                self.links[later].target_slot = i

    def origin_of(self, node: Node, slot: int) -> Optional[tuple[Node, int]]:
        """Return the node and output slot feeding an input slot."""
        link_id = node.inputs[slot].link
        if link_id is None:
            return None
        link = self.links[link_id]
        origin = self.get_node_by_id(link.origin_id)
        if origin is None:
            return None
        return origin, link.origin_slot

    def free_stream_slot(self, node: Node) -> int:
        """Return the first unlinked map-stream input, adding one if needed."""
        for i, slot in enumerate(node.inputs):
            if slot.type == PortType.MAP_STREAM and slot.link is None:
                return i
        return self.add_input(node, "stream", PortType.MAP_STREAM)

    def balance_stream_slots(self, node: Node) -> None:
        """Keep exactly one unlinked map-stream input on the node."""
        free = [
            i for i, slot in enumerate(node.inputs)
            if slot.type == PortType.MAP_STREAM and slot.link is None
        ]
        if not free:
            self.add_input(node, "stream", PortType.MAP_STREAM)
            return
        for i in reversed(free[:-1]):
            self.remove_input(node, i)

    # ------------------------------------------------------------------ #
    #   Serialization                                                    #
    # ------------------------------------------------------------------ #

    def serialize(self) -> dict:
        """Serialize the graph to a JSON-compatible dict."""
        return {
            "last_node_id": self.last_node_id,
            "last_link_id": self.last_link_id,
            "nodes": [node.serialize() for node in self.nodes],
            "links": [self.links[k].to_list() for k in sorted(self.links)],
            "groups": [],
            "config": {},
            "extra": copy.deepcopy(self.extra),
            "version": GRAPH_VERSION,
        }

    def configure(self, data: dict) -> None:
        """Replace the graph content with serialized data.

        Slot link fields are rebuilt from the link table. Nodes of unknown
        kind and links with missing endpoints are dropped with a warning.
        """
        nodes: list[Node] = []
        for raw in data.get("nodes") or []:
            try:
                nodes.append(Node.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping node %s: %s", raw.get("id") if isinstance(raw, dict) else raw, exc)

        self.nodes = nodes
        self.links = {}
        by_id = {node.id: node for node in nodes}

        for raw in data.get("links") or []:
            try:
                link = Link.from_data(raw)
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed link %s: %s", raw, exc)
                continue
            origin = by_id.get(link.origin_id)
            target = by_id.get(link.target_id)
            if (
                origin is None or target is None
                or not 0 <= link.origin_slot < len(origin.outputs)
                or not 0 <= link.target_slot < len(target.inputs)
                or target.inputs[link.target_slot].link is not None
            ):
                logger.warning("Dropping dangling link %d", link.id)
                continue
            self.links[link.id] = link
            origin.outputs[link.origin_slot].links.append(link.id)
            target.inputs[link.target_slot].link = link.id

        self.last_node_id = max([int(data.get("last_node_id") or 0)] + [n.id for n in nodes])
        self.last_link_id = max([int(data.get("last_link_id") or 0)] + list(self.links))
        self.extra = copy.deepcopy(data.get("extra") or {})
        self._changed()

    @classmethod
    def from_serialized(cls, data: dict) -> "Graph":
        graph = cls()
        graph.configure(data)
        return graph
