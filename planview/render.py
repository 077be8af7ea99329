#!/usr/bin/env python3

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


import argparse
import gzip
import json
import logbook
import pathlib
import sys
import zipfile

from bokeh.embed import file_html
from bokeh.models import ColumnDataSource, HoverTool, ranges
from bokeh.plotting import figure
from bokeh.resources import CDN

from planview.camera import ViewportConfig
from planview.errors import ProfileError
from planview.layout import NODE_HEIGHT, NODE_WIDTH
from planview.metrics import OperatorClass
from planview.ranking import SLOWEST, TOP_FIVE
from planview.session import DIMMED, HIDDEN, PlanViewSession
from planview.units import format_time

log = logbook.Logger("render")

TOOLS = "pan,wheel_zoom,box_zoom,save,reset"

CLASS_COLORS = {
    OperatorClass.SCAN: "#3fb950",
    OperatorClass.JOIN: "#d29922",
    OperatorClass.EXCHANGE: "#58a6ff",
    OperatorClass.AGGREGATE: "#bc8cff",
    OperatorClass.PROJECT: "#8b949e",
    OperatorClass.UNION: "#f778ba",
    OperatorClass.RESULT: "#ffa657",
    OperatorClass.OTHER: "#6e7681",
}

HIGHLIGHT_COLORS = {SLOWEST: "#f85149", TOP_FIVE: "#ff7b72"}

DIMMED_ALPHA = 0.2
EDGE_COLOR = "#30363d"


def shorten(s, size=18):
    if len(s) > size:
        s = s[: size - 2] + "..."
    return s


def node_data(session):
    states = session.node_states()
    marks = session.highlights()
    data = {}
    for node_id, pos in session.layout.positions.items():
        state = states[node_id]
        if state == HIDDEN:
            continue
        node = session.graph[node_id]
        mark = marks.get(node_id)
        data.setdefault("node_id", []).append(node_id)
        data.setdefault("name", []).append(node.name)
        data.setdefault("label", []).append(shorten(node.name))
        data.setdefault("sublabel", []).append(
            "#{}  {}".format(node_id, format_time(node.total_time)) if node.metrics else "#{}".format(node_id)
        )
        data.setdefault("left", []).append(pos.x)
        data.setdefault("right", []).append(pos.x + NODE_WIDTH)
        data.setdefault("top", []).append(pos.y)
        data.setdefault("bottom", []).append(pos.y + NODE_HEIGHT)
        data.setdefault("label_x", []).append(pos.x + NODE_WIDTH / 2)
        data.setdefault("label_y", []).append(pos.y + NODE_HEIGHT / 3)
        data.setdefault("sublabel_y", []).append(pos.y + 2 * NODE_HEIGHT / 3)
        data.setdefault("color", []).append(CLASS_COLORS[node.operator_class])
        data.setdefault("alpha", []).append(DIMMED_ALPHA if state == DIMMED else 1.0)
        data.setdefault("line_color", []).append(HIGHLIGHT_COLORS.get(mark, "#161b22"))
        data.setdefault("line_width", []).append(3 if mark else 1)
        data.setdefault("detail", []).append(
            "; ".join("{}: {}".format(k, v) for k, v in node.detail_rows()) or "no metrics"
        )
    return data


def edge_data(session):
    # with a filter applied only edges between two matching nodes are drawn
    data = {}
    for e in session.edges():
        for field in ("parent", "child", "x0", "y0", "x1", "y1", "cx0", "cy0", "cx1", "cy1", "width"):
            data.setdefault(field, []).append(getattr(e, field))
    return data


def plot_plan(session, title="Query plan"):
    """
    Draws the positioned plan: boxes per node colored by operator class, S-curve
    edges whose width grows with the rows flowing through them.
    The initial ranges follow the session's camera.
    """
    viewport = session.viewport
    camera = viewport.camera
    x_end = camera.x + viewport.width / camera.zoom
    y_end = camera.y + viewport.height / camera.zoom
    p = figure(
        title=title,
        width=viewport.width,
        height=viewport.height,
        x_range=ranges.Range1d(start=camera.x, end=x_end),
        y_range=ranges.Range1d(start=y_end, end=camera.y),  # y grows downwards
        tools=TOOLS,
        active_scroll="wheel_zoom",
    )
    p.axis.visible = False
    p.grid.grid_line_color = None

    edges = edge_data(session)
    if edges:
        p.bezier(
            x0="x0", y0="y0", x1="x1", y1="y1",
            cx0="cx0", cy0="cy0", cx1="cx1", cy1="cy1",
            line_width="width", line_color=EDGE_COLOR,
            source=ColumnDataSource(edges),
        )

    nodes = node_data(session)
    if not nodes:
        log.warning("every node is hidden by the filter")
        return p

    source = ColumnDataSource(nodes)
    boxes = p.quad(
        left="left", right="right", top="top", bottom="bottom",
        fill_color="color", fill_alpha="alpha",
        line_color="line_color", line_width="line_width", line_alpha="alpha",
        source=source,
    )
    p.text(
        x="label_x", y="label_y", text="label", text_align="center", text_baseline="middle",
        text_font_size="9pt", text_alpha="alpha", source=source,
    )
    p.text(
        x="label_x", y="sublabel_y", text="sublabel", text_align="center", text_baseline="middle",
        text_font_size="8pt", text_alpha="alpha", source=source,
    )
    p.add_tools(HoverTool(renderers=[boxes], tooltips=[("node", "@node_id"), ("name", "@name"), ("", "@detail")]))
    return p


def load_document(path):
    if path.name.endswith(".gz"):
        f = gzip.open(str(path), "rt")
    else:
        f = path.open("rt")
    with f:
        return json.load(f)


def main():
    logbook.StreamHandler(sys.stderr).push_application()
    p = argparse.ArgumentParser()
    p.add_argument(
        "-i",
        "--input-file",
        type=pathlib.Path,
        help="Path to a query profile JSON (optionally gzipped)",
    )
    p.add_argument(
        "-o",
        "--output-file",
        type=pathlib.Path,
        default="./plan.html",
        help="Path to the resulting HTML plan (.html or zipped .zip)",
    )
    p.add_argument("--filter", type=str, help='Filter query, e.g. "type=scan, +node=3 --hide"')
    p.add_argument("--node", type=int, help="Center the view on this plan node")
    p.add_argument("-t", "--top", type=int, default=5, help="Log the N slowest operators")
    p.add_argument("--viewport-width", type=int, default=1200)
    p.add_argument("--viewport-height", type=int, default=800)
    p.add_argument("--overscroll", type=float, default=0.5)
    p.add_argument("-q", "--quiet", action="store_true", default=False)
    args = p.parse_args()

    if not args.input_file:
        p.error("Input filename missing")

    log.info(
        "loading {} = {:.3f} MB", args.input_file, args.input_file.stat().st_size / 1e6
    )
    try:
        session = PlanViewSession.from_profile(
            load_document(args.input_file),
            viewport_size=(args.viewport_width, args.viewport_height),
            config=ViewportConfig(overscroll=args.overscroll),
        )
    except ProfileError as e:
        log.error("{}: {}", args.input_file, e)
        sys.exit(1)

    if args.filter:
        result = session.apply_filter(args.filter)
        if result is None:
            log.warning("filter {!r} is empty or invalid, showing the whole plan", args.filter)
        else:
            log.info("filter matched {} of {} nodes", len(result.matching), len(session.graph))
            session.fit_to_subset(result.matching)

    if args.node is not None and not session.navigate_to_node(args.node):
        log.warning("node {} not found", args.node)

    if not args.quiet:
        for item in session.slowest_operators()[: args.top]:
            log.info("{:>8} {:<24} {}", item.id, item.name, format_time(item.time_value))

    output = file_html(plot_plan(session, title=args.input_file.name), CDN, args.input_file.name)
    log.info("plan is written to {}", args.output_file)
    suffix = args.output_file.suffix
    if suffix == ".zip":
        with zipfile.ZipFile(args.output_file, "w") as f:
            f.writestr("output.html", data=output, compress_type=zipfile.ZIP_DEFLATED)
    elif suffix == ".html":
        with open(args.output_file, "w") as f:
            f.write(output)
    else:
        raise ValueError("Unsupport output file extension: {}".format(args.output_file))


if __name__ == "__main__":
    main()
