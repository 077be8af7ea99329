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

from planview.errors import ProfileError
from planview.metrics import OperatorClass, classify_operator

log = logbook.Logger("graph")


def iter_tree(nodes, root_id, visited=None):
    """
    Depth-first preorder walk yielding (node_id, parent_id, depth).
    Each id is yielded once; children missing from `nodes` are skipped,
    so duplicated or cyclic adjacency cannot loop forever.
    """
    if visited is None:
        visited = set()
    if root_id not in nodes:
        return
    stack = [(root_id, None, 0)]
    while stack:
        node_id, parent_id, depth = stack.pop()
        if node_id in visited:
            continue
        visited.add(node_id)
        yield node_id, parent_id, depth
        for child_id in reversed(nodes[node_id].children):
            if child_id in nodes and child_id not in visited:
                stack.append((child_id, node_id, depth + 1))


def iter_breadth_first(nodes, start_id, visited=None):
    if visited is None:
        visited = set()
    if start_id not in nodes:
        return
    queue = collections.deque([start_id])
    visited.add(start_id)
    while queue:
        node_id = queue.popleft()
        yield node_id
        for child_id in nodes[node_id].children:
            if child_id in nodes and child_id not in visited:
                visited.add(child_id)
                queue.append(child_id)


def tree_children(nodes, root_id):
    """
    The spanning tree walked from `root_id`: an ordered mapping of every reachable
    id (in preorder) to the children it claimed first.
    """
    children = collections.OrderedDict()
    for node_id, parent_id, _ in iter_tree(nodes, root_id):
        children[node_id] = []
        if parent_id is not None:
            children[parent_id].append(node_id)
    return children


def build_parent_map(nodes, root_id):
    return {
        node_id: parent_id
        for node_id, parent_id, _ in iter_tree(nodes, root_id)
        if parent_id is not None
    }


class GraphNode:
    __slots__ = ("id", "name", "children", "properties", "operator_class", "metrics")

    def __init__(self, id, name, children=(), properties=None, metrics=None):
        self.id = id
        self.name = name
        self.children = list(children)
        self.properties = properties or {}
        self.metrics = metrics
        operator_class = classify_operator(name)
        if operator_class is OperatorClass.OTHER and metrics is not None:
            operator_class = metrics.operator_class
        self.operator_class = operator_class

    @property
    def total_time(self):
        if self.metrics is None:
            return 0.0
        return self.metrics.total_time(self.operator_class)

    @property
    def output_rows(self):
        if self.metrics is None:
            return 0
        return self.metrics.output_rows(self.operator_class)

    @property
    def table_name(self):
        if self.operator_class is not OperatorClass.SCAN:
            return None
        table = None
        if self.metrics is not None:
            table = self.metrics.scan_view().table
        return table or self.properties.get("table")

    def detail_rows(self):
        if self.metrics is None:
            return []
        return self.metrics.detail_rows(self.operator_class)

    def __repr__(self):
        return "GraphNode({}, {!r}, children={})".format(self.id, self.name, self.children)


class PlanGraph:
    def __init__(self, nodes, root_id):
        self.nodes = nodes
        self.root_id = root_id
        self._parent_map = None

    def __len__(self):
        return len(self.nodes)

    def __contains__(self, node_id):
        return node_id in self.nodes

    def __getitem__(self, node_id):
        return self.nodes[node_id]

    @property
    def root(self):
        return self.nodes[self.root_id]

    @property
    def parent_map(self):
        if self._parent_map is None:
            self._parent_map = build_parent_map(self.nodes, self.root_id)
        return self._parent_map

    def iter_nodes(self):
        """Reachable nodes in preorder, then unreachable ones in topology order."""
        seen = set()
        for node_id, _, _ in iter_tree(self.nodes, self.root_id):
            seen.add(node_id)
            yield self.nodes[node_id]
        for node_id, node in self.nodes.items():
            if node_id not in seen:
                yield node

    def ancestors(self, node_id):
        result = []
        if node_id not in self.nodes:
            return result
        parents = self.parent_map
        visited = {node_id}
        while node_id in parents:
            node_id = parents[node_id]
            if node_id in visited:
                break
            visited.add(node_id)
            result.append(node_id)
        return result

    def descendants(self, node_id):
        return [n for n in iter_breadth_first(self.nodes, node_id) if n != node_id]

    def edges(self):
        """(parent_id, child_id) pairs of the tree walked from the root."""
        return [
            (parent_id, node_id)
            for node_id, parent_id, _ in iter_tree(self.nodes, self.root_id)
            if parent_id is not None
        ]


def build_graph(topology, node_metrics):
    nodes = collections.OrderedDict()
    for n in topology.nodes:
        if n.id in nodes:
            log.warning("duplicate plan node id {} ({}), keeping the first one", n.id, n.name)
            continue
        nodes[n.id] = GraphNode(
            id=n.id,
            name=n.name,
            children=n.children,
            properties=n.properties,
            metrics=node_metrics.get(n.id),
        )

    if topology.root_id not in nodes:
        raise ProfileError("root node {} is not in the topology".format(topology.root_id))

    missing = [node_id for node_id, node in nodes.items() if node.metrics is None]
    if missing:
        log.debug("no metrics for plan nodes {}", missing)
    return PlanGraph(nodes, topology.root_id)
