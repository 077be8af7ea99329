# Copyright (c) 2019-2022 Varada, Inc.
# This file is part of Plan View.
#
# Plan View is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Plan View is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Plan View.  If not, see <https://www.gnu.org/licenses/>.

import collections

import logbook
import numpy

from planview.graph import tree_children

log = logbook.Logger("layout")

NODE_WIDTH = 140
NODE_HEIGHT = 50
HORIZONTAL_SPACING = 30
VERTICAL_SPACING = 70

MIN_EDGE_WIDTH = 1.5
MAX_EDGE_WIDTH = 8.0
EDGE_WIDTH_PER_DECADE = 0.75

LayoutPosition = collections.namedtuple("LayoutPosition", ["x", "y"])

Edge = collections.namedtuple(
    "Edge", ["parent", "child", "x0", "y0", "x1", "y1", "cx0", "cy0", "cx1", "cy1", "width"]
)


def edge_widths(rows):
    """Stroke width per edge, logarithmic in the rows flowing through it."""
    rows = numpy.maximum(numpy.asarray(rows, dtype=float), 0)
    widths = MIN_EDGE_WIDTH + EDGE_WIDTH_PER_DECADE * numpy.log10(rows + 1)
    return numpy.clip(widths, MIN_EDGE_WIDTH, MAX_EDGE_WIDTH)


class Layout:
    def __init__(self, positions, width, height):
        self.positions = positions
        self.width = width
        self.height = height

    def __len__(self):
        return len(self.positions)

    def __contains__(self, node_id):
        return node_id in self.positions

    def center(self, node_id):
        pos = self.positions[node_id]
        return pos.x + NODE_WIDTH / 2, pos.y + NODE_HEIGHT / 2

    def bounds(self, node_ids=None):
        """(min_x, min_y, max_x, max_y) of the given node boxes, None if none is laid out."""
        if node_ids is None:
            return 0.0, 0.0, float(self.width), float(self.height)
        points = [self.positions[n] for n in node_ids if n in self.positions]
        if not points:
            return None
        xy = numpy.array(points, dtype=float)
        min_x, min_y = xy.min(axis=0)
        max_x, max_y = xy.max(axis=0)
        return min_x, min_y, max_x + NODE_WIDTH, max_y + NODE_HEIGHT

    def edges(self, graph):
        pairs = [
            (parent, child)
            for parent, child in graph.edges()
            if parent in self.positions and child in self.positions
        ]
        widths = edge_widths([graph[child].output_rows for _, child in pairs])
        result = []
        for (parent, child), width in zip(pairs, widths):
            start, end = self.positions[parent], self.positions[child]
            x0, y0 = start.x + NODE_WIDTH / 2, start.y + NODE_HEIGHT
            x1, y1 = end.x + NODE_WIDTH / 2, end.y
            mid_y = (y0 + y1) / 2
            result.append(Edge(parent, child, x0, y0, x1, y1, x0, mid_y, x1, mid_y, float(width)))
        return result


def compute_layout(graph):
    """
    Two-pass tree layout: subtree widths bottom-up, then positions top-down with
    every node centered over the span of its subtree.
    """
    children = tree_children(graph.nodes, graph.root_id)

    widths = {}
    for node_id in reversed(children):
        kids = children[node_id]
        if not kids:
            widths[node_id] = NODE_WIDTH
            continue
        total = sum(widths[c] for c in kids) + HORIZONTAL_SPACING * (len(kids) - 1)
        widths[node_id] = max(NODE_WIDTH, total)

    positions = collections.OrderedDict()
    max_y = 0
    stack = [(graph.root_id, 0, 0)]
    while stack:
        node_id, left, y = stack.pop()
        positions[node_id] = LayoutPosition(left + (widths[node_id] - NODE_WIDTH) / 2, y)
        max_y = max(max_y, y)
        child_x = left
        placed = []
        for child_id in children[node_id]:
            placed.append((child_id, child_x, y + NODE_HEIGHT + VERTICAL_SPACING))
            child_x += widths[child_id] + HORIZONTAL_SPACING
        stack.extend(reversed(placed))

    layout = Layout(positions, widths[graph.root_id], max_y + NODE_HEIGHT)
    log.debug("laid out {} nodes in {}x{}", len(positions), layout.width, layout.height)
    return layout
