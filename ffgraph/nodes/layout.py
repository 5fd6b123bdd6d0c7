"""Automatic node placement."""

from collections import defaultdict, deque

from .graph import Graph, Node

NODE_WIDTH = 210
NODE_HEIGHT = 100
H_SPACING = 250
V_SPACING = 150
MARGIN = 50

# Grid placement of freshly imported nodes, one block per pipe segment.
SEGMENT_OFFSET = 800
GRID_COLUMNS = 4
GRID_CELL_WIDTH = 200
GRID_CELL_HEIGHT = 150
GRID_SPACING = 50


def position_grid(nodes: list[Node], segment_index: int = 0) -> None:
    """Place nodes on a simple grid, offset horizontally per segment."""
    start_x = segment_index * SEGMENT_OFFSET
    for i, node in enumerate(nodes):
        row, col = divmod(i, GRID_COLUMNS)
        node.pos = [
            float(start_x + col * (GRID_CELL_WIDTH + GRID_SPACING)),
            float(row * (GRID_CELL_HEIGHT + GRID_SPACING)),
        ]


def _components(graph: Graph) -> list[list[Node]]:
    neighbours: dict[int, set[int]] = defaultdict(set)
    for link in graph.links.values():
        neighbours[link.origin_id].add(link.target_id)
        neighbours[link.target_id].add(link.origin_id)

    by_id = {node.id: node for node in graph.nodes}
    seen: set[int] = set()
    components = []
    for node in graph.nodes:
        if node.id in seen:
            continue
        component = []
        stack = [node.id]
        seen.add(node.id)
        while stack:
            current = stack.pop()
            component.append(by_id[current])
            for other in neighbours[current]:
                if other not in seen and other in by_id:
                    seen.add(other)
                    stack.append(other)
        components.append(component)
    return components


def _levels(graph: Graph, component: list[Node]) -> dict[int, int]:
    """Assign each node its longest-path distance from a source node."""
    members = {node.id for node in component}
    successors: dict[int, list[int]] = defaultdict(list)
    for link in graph.links.values():
        if link.origin_id in members and link.target_id in members:
            successors[link.origin_id].append(link.target_id)

    sources = [node.id for node in component if not node.has_linked_inputs()] or [component[0].id]
    level = {node_id: 0 for node_id in sources}
    limit = len(component)
    queue = deque(sources)

    while queue:
        current = queue.popleft()
        for succ in successors[current]:
            candidate = level[current] + 1
            # Bounded so that cycles terminate.
            if candidate > level.get(succ, -1) and candidate <= limit:
                level[succ] = candidate
                queue.append(succ)

    for node in component:
        level.setdefault(node.id, 0)
    return level


def arrange_nodes(graph: Graph) -> None:
    """Lay out the graph left to right by dependency level.

    Each connected component gets its own band; within a band, every level
    is a column whose nodes are centred vertically against the tallest
    column.
    """
    y_offset = float(MARGIN)
    for component in _components(graph):
        level = _levels(graph, component)
        columns: dict[int, list[Node]] = defaultdict(list)
        for node in component:
            columns[level[node.id]].append(node)

        tallest = max(len(nodes) for nodes in columns.values())
        band_height = tallest * NODE_HEIGHT + (tallest - 1) * V_SPACING

        for lvl, nodes in columns.items():
            column_height = len(nodes) * NODE_HEIGHT + (len(nodes) - 1) * V_SPACING
            top = y_offset + (band_height - column_height) / 2
            x = MARGIN + lvl * (NODE_WIDTH + H_SPACING)
            for i, node in enumerate(nodes):
                node.pos = [float(x), float(top + i * (NODE_HEIGHT + V_SPACING))]

        y_offset += band_height + MARGIN
