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

log = logbook.Logger("ranking")

RankedOperator = collections.namedtuple("RankedOperator", ["id", "name", "time_value"])

SLOWEST = "slowest"
TOP_FIVE = "top5"


def rank_operators(graph):
    """
    Nodes with a positive total time, slowest first.
    sorted() is stable, so equal times keep the graph's walk order.
    """
    items = [
        RankedOperator(node.id, node.name, node.total_time)
        for node in graph.iter_nodes()
    ]
    items = [item for item in items if item.time_value > 0]
    items.sort(key=lambda item: item.time_value, reverse=True)
    return items


def highlight_marks(ranking, top=5):
    marks = {}
    for i, item in enumerate(ranking[:top]):
        marks[item.id] = SLOWEST if i == 0 else TOP_FIVE
    return marks
