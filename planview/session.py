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

import logbook

from planview.camera import Viewport
from planview.errors import ProfileError
from planview.extract import extract_node_metrics, load_profile_sections
from planview.graph import build_graph
from planview.layout import compute_layout
from planview.query import FilterState
from planview.ranking import highlight_marks, rank_operators

log = logbook.Logger("session")

DEFAULT_VIEWPORT = (1200, 800)

NORMAL = "normal"
MATCHED = "matched"
DIMMED = "dimmed"
HIDDEN = "hidden"


class PlanViewSession:
    """
    Everything one loaded profile needs for its plan view: graph, layout, camera and
    filter state. Built as a unit per profile and thrown away on reload.
    """

    def __init__(self, graph, layout, viewport):
        self.graph = graph
        self.layout = layout
        self.viewport = viewport
        self.filter = FilterState(graph)

    @classmethod
    def from_profile(cls, document, viewport_size=DEFAULT_VIEWPORT, config=None):
        execution, topology = load_profile_sections(document)
        graph = build_graph(topology, extract_node_metrics(execution))
        layout = compute_layout(graph)
        viewport = Viewport(layout.width, layout.height, viewport_size[0], viewport_size[1], config)
        session = cls(graph, layout, viewport)
        session.fit_to_content()
        log.info("loaded plan with {} nodes ({} laid out)", len(graph), len(layout))
        return session

    @property
    def camera(self):
        return self.viewport.camera

    def pan_by(self, dx, dy, transient=False):
        self.viewport.pan_by(dx, dy, transient=transient)

    def end_gesture(self):
        self.viewport.end_gesture()

    def zoom_at_point(self, sx, sy, factor):
        self.viewport.zoom_at_point(sx, sy, factor)

    def fit_to_content(self):
        self.viewport.fit_to_content()

    def fit_to_subset(self, node_ids):
        return self.viewport.fit_to_subset(node_ids, self.layout)

    def navigate_to_node(self, node_id):
        found = self.fit_to_subset([node_id])
        if not found:
            log.debug("node {} is not in the plan", node_id)
        return found

    def apply_filter(self, text):
        return self.filter.apply(text)

    def preview_filter(self, text):
        return self.filter.preview(text)

    def remove_filter_term(self, term):
        return self.filter.remove_term(term)

    def clear_filter(self):
        self.filter.clear()

    def matching_nodes(self):
        if self.filter.result is None:
            return frozenset(self.graph.nodes)
        return self.filter.result.matching

    def slowest_operators(self):
        return rank_operators(self.graph)

    def highlights(self, top=5):
        return highlight_marks(self.slowest_operators(), top=top)

    def node_detail(self, node_id):
        if node_id not in self.graph:
            return None
        return self.graph[node_id].detail_rows()

    def edges(self):
        """Laid out edges; with a filter applied only those whose both ends match."""
        edges = self.layout.edges(self.graph)
        result = self.filter.result
        if result is None:
            return edges
        return [e for e in edges if result.edge_visible(e.parent, e.child)]

    def node_states(self):
        result = self.filter.result
        states = {}
        for node_id in self.layout.positions:
            if result is None:
                states[node_id] = NORMAL
            elif node_id in result.matching:
                states[node_id] = MATCHED
            elif node_id in result.hidden:
                states[node_id] = HIDDEN
            else:
                states[node_id] = DIMMED
        return states

    def close(self):
        self.viewport.reset()
        self.filter.clear()


class PlanViewer:
    """Holds the active session and swaps it whenever a new profile is loaded."""

    def __init__(self, viewport_size=DEFAULT_VIEWPORT, config=None):
        self.viewport_size = viewport_size
        self.config = config
        self.session = None

    def on_profile_changed(self, document):
        try:
            session = PlanViewSession.from_profile(document, self.viewport_size, self.config)
        except ProfileError as e:
            log.error("cannot display profile: {}", e)
            raise
        if self.session is not None:
            self.session.close()
        self.session = session
        return session

    def clear(self):
        if self.session is not None:
            self.session.close()
        self.session = None
