"""Tests for automatic node placement."""

from ffgraph.nodes.factory import (
    create_adhoc_node,
    create_input_node,
    create_output_node,
    create_stream_selector,
)
from ffgraph.nodes.graph import Graph, NodeKind
from ffgraph.nodes.layout import (
    GRID_CELL_HEIGHT,
    GRID_CELL_WIDTH,
    GRID_COLUMNS,
    GRID_SPACING,
    H_SPACING,
    MARGIN,
    NODE_WIDTH,
    SEGMENT_OFFSET,
    arrange_nodes,
    position_grid,
)


def _chain(graph):
    inp = graph.add(create_input_node("in.mp4"))
    sel = graph.add(create_stream_selector())
    out = graph.add(create_output_node("out.mp4"))
    graph.connect(inp, 0, sel, 0)
    graph.connect(sel, 0, out, graph.free_stream_slot(out))
    return inp, sel, out


class TestPositionGrid:
    """Tests for position_grid()."""

    def test_wraps_after_columns(self):
        """Nodes fill rows of GRID_COLUMNS cells."""
        nodes = [create_input_node() for _ in range(GRID_COLUMNS + 1)]
        position_grid(nodes)
        assert nodes[1].pos == [GRID_CELL_WIDTH + GRID_SPACING, 0.0]
        assert nodes[GRID_COLUMNS].pos == [0.0, GRID_CELL_HEIGHT + GRID_SPACING]

    def test_segment_offset(self):
        """Later segments are shifted right."""
        nodes = [create_input_node()]
        position_grid(nodes, segment_index=2)
        assert nodes[0].pos == [2 * SEGMENT_OFFSET, 0.0]


class TestArrangeNodes:
    """Tests for arrange_nodes()."""

    def test_levels_left_to_right(self):
        """Each dependency level is one column further right."""
        graph = Graph()
        inp, sel, out = _chain(graph)
        arrange_nodes(graph)
        step = NODE_WIDTH + H_SPACING
        assert [inp.pos[0], sel.pos[0], out.pos[0]] == [MARGIN, MARGIN + step, MARGIN + 2 * step]
        assert inp.pos[1] == sel.pos[1] == out.pos[1]

    def test_components_stacked(self):
        """Disconnected components get separate bands."""
        graph = Graph()
        first = _chain(graph)
        second = _chain(graph)
        arrange_nodes(graph)
        assert second[0].pos[1] > first[0].pos[1]
        assert second[0].pos[0] == first[0].pos[0]

    def test_cycle_terminates(self):
        """Cyclic graphs are still laid out."""
        graph = Graph()
        flt = graph.add(create_adhoc_node(NodeKind.FILTER, "hflip"))
        sel = graph.add(create_stream_selector())
        graph.connect(flt, 0, sel, 0)
        graph.connect(sel, 0, flt, graph.free_stream_slot(flt))
        arrange_nodes(graph)
        assert all(node.pos[0] >= MARGIN for node in graph.nodes)
        assert flt.pos != sel.pos
