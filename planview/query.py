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

"""
Filter queries over the plan graph, e.g.

    type=scan & table=lineitem, +node=7+ --hide

OR-groups are separated by "," or "or", terms inside a group by "&" or "and".
"""

import collections
import re

import logbook

from planview.metrics import FILTERABLE_CLASSES, OperatorClass

log = logbook.Logger("query")

HIDE_FLAG = re.compile(r"(?:^|[\s,&])--hide(?=\s|$)", re.IGNORECASE)
OR_SEPARATOR = re.compile(r"\s*,\s*|\s+or\s+", re.IGNORECASE)
AND_SEPARATOR = re.compile(r"\s*&\s*|\s+and\s+", re.IGNORECASE)

NODE_TERM = re.compile(r"^(\+)?node\s*=\s*(-?\d+)(\+)?$", re.IGNORECASE)
TYPE_TERM = re.compile(r"^type\s*=\s*(\w+)$", re.IGNORECASE)
TABLE_TERM = re.compile(r"^table\s*=\s*(\S.*)$", re.IGNORECASE)

NodeSelector = collections.namedtuple("NodeSelector", ["node_id", "include_ancestors", "include_descendants"])
TypeSelector = collections.namedtuple("TypeSelector", ["operator_class"])
TableSelector = collections.namedtuple("TableSelector", ["table_name"])


def format_selector(selector):
    if isinstance(selector, NodeSelector):
        return "{}node={}{}".format(
            "+" if selector.include_ancestors else "",
            selector.node_id,
            "+" if selector.include_descendants else "",
        )
    if isinstance(selector, TypeSelector):
        return "type={}".format(selector.operator_class.value)
    return "table={}".format(selector.table_name)


class FilterSpec:
    def __init__(self, groups=(), hide_mode=False):
        self.groups = tuple(tuple(g) for g in groups)
        self.hide_mode = hide_mode

    def __bool__(self):
        return any(self.groups)

    def __eq__(self, other):
        return isinstance(other, FilterSpec) and (self.groups, self.hide_mode) == (other.groups, other.hide_mode)

    def __repr__(self):
        return "FilterSpec({!r}, hide_mode={})".format(self.groups, self.hide_mode)

    def terms(self):
        return [s for group in self.groups for s in group]

    def to_query(self):
        text = ", ".join(" & ".join(format_selector(s) for s in group) for group in self.groups if group)
        if self.hide_mode and text:
            text += " --hide"
        return text

    def without(self, selector):
        """A new spec with the first occurrence of `selector` removed."""
        groups, removed = [], False
        for group in self.groups:
            if not removed and selector in group:
                group = list(group)
                group.remove(selector)
                removed = True
            if group:
                groups.append(group)
        return FilterSpec(groups, self.hide_mode)


EMPTY = FilterSpec()


def parse_term(text):
    match = NODE_TERM.match(text)
    if match:
        return NodeSelector(int(match.group(2)), bool(match.group(1)), bool(match.group(3)))
    match = TYPE_TERM.match(text)
    if match:
        operator_class = FILTERABLE_CLASSES.get(match.group(1).lower())
        if operator_class is None:
            return None
        return TypeSelector(operator_class)
    match = TABLE_TERM.match(text)
    if match:
        return TableSelector(match.group(1).strip())
    return None


def parse_filter(text):
    """
    Parses a filter query. Empty or malformed input gives the empty spec,
    which callers treat as "no filter".
    """
    if not text or not text.strip():
        return EMPTY
    hide_mode = bool(HIDE_FLAG.search(text))
    text = HIDE_FLAG.sub(" ", text).strip()

    groups = []
    for group_text in OR_SEPARATOR.split(text):
        group = []
        for term_text in AND_SEPARATOR.split(group_text.strip()):
            term_text = term_text.strip()
            if not term_text:
                continue
            selector = parse_term(term_text)
            if selector is None:
                log.debug("unparseable filter term {!r} in {!r}", term_text, text)
                return EMPTY
            group.append(selector)
        if group:
            groups.append(group)
    if not groups:
        return EMPTY
    return FilterSpec(groups, hide_mode)


def select(graph, selector):
    if isinstance(selector, NodeSelector):
        if selector.node_id not in graph:
            return set()
        result = {selector.node_id}
        if selector.include_ancestors:
            result.update(graph.ancestors(selector.node_id))
        if selector.include_descendants:
            result.update(graph.descendants(selector.node_id))
        return result
    if isinstance(selector, TypeSelector):
        return {n.id for n in graph.iter_nodes() if n.operator_class is selector.operator_class}
    if isinstance(selector, TableSelector):
        name = selector.table_name.casefold()
        return {
            n.id
            for n in graph.iter_nodes()
            if n.operator_class is OperatorClass.SCAN and (n.table_name or "").casefold() == name
        }
    raise TypeError("unknown selector: {!r}".format(selector))


class FilterResult:
    def __init__(self, spec, matching, all_ids):
        self.spec = spec
        self.matching = frozenset(matching)
        rest = frozenset(all_ids) - self.matching
        self.hidden = rest if spec.hide_mode else frozenset()
        self.dimmed = frozenset() if spec.hide_mode else rest

    @property
    def hide_mode(self):
        return self.spec.hide_mode

    def edge_visible(self, parent, child):
        return parent in self.matching and child in self.matching


def evaluate(graph, spec):
    """AND-groups intersect their terms, OR-groups union the groups."""
    matching = set()
    for group in spec.groups:
        if not group:
            continue
        sets = [select(graph, s) for s in group]
        matching |= set.intersection(*sets)
    return FilterResult(spec, matching, graph.nodes.keys())


IDLE = "idle"
APPLIED = "applied"


class FilterState:
    """
    The filter applied to one plan view: idle until a non-empty query is committed,
    back to idle when it is cleared or loses its last term.
    """

    def __init__(self, graph):
        self.graph = graph
        self.query = ""
        self.spec = EMPTY
        self.result = None

    @property
    def state(self):
        return APPLIED if self.result is not None else IDLE

    def preview(self, text):
        return parse_filter(text)

    def apply(self, text):
        spec = parse_filter(text)
        if not spec:
            self.clear()
            return None
        self.query = text
        self.spec = spec
        self.result = evaluate(self.graph, spec)
        log.debug("filter {!r} matched {} of {} nodes", text, len(self.result.matching), len(self.graph))
        return self.result

    def remove_term(self, selector):
        if self.result is None:
            return None
        if isinstance(selector, str):
            selector = parse_term(selector.strip())
        return self.apply(self.spec.without(selector).to_query())

    def clear(self):
        self.query = ""
        self.spec = EMPTY
        self.result = None
