#!/usr/bin/env python3

# Copyright (c) 2019-2021 Varada, Inc.
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
import collections
import gzip
import json
import logbook
import pathlib
import re
import sys
import tqdm

from planview.errors import ProfileError
from planview.graph import build_graph
from planview.metrics import NodeMetrics, OperatorInstance
from planview.ranking import rank_operators
from planview.units import format_time

log = logbook.Logger("extract")

FRAGMENT_KEY = re.compile(r"^Fragment (\d+)$")
PIPELINE_KEY = re.compile(r"^Pipeline \(id=(\d+)\)$")
OPERATOR_KEY = re.compile(r"^(.+) \(plan_node_id=(-?\d+)\)$")

TopologyNode = collections.namedtuple("TopologyNode", ["id", "name", "children", "properties"])
Topology = collections.namedtuple("Topology", ["root_id", "nodes"])


def load_profile_sections(document):
    """
    Returns the execution section and the parsed topology of a profile document.
    Raises ProfileError when either is missing.
    """
    if not isinstance(document, dict):
        raise ProfileError("profile is not a JSON object")
    query = document.get("Query")
    if not isinstance(query, dict):
        raise ProfileError('missing "Query" section')
    execution = query.get("Execution")
    if not isinstance(execution, dict):
        raise ProfileError('missing "Query.Execution" section')
    return execution, parse_topology(execution)


def parse_topology(execution):
    raw = execution.get("Topology")
    if raw is None:
        raise ProfileError('missing "Execution.Topology" section')
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ProfileError("undecodable topology: {}".format(e)) from e
    if not isinstance(raw, dict) or "nodes" not in raw or "rootId" not in raw:
        raise ProfileError('topology must contain "rootId" and "nodes"')

    try:
        nodes = [
            TopologyNode(
                id=int(n["id"]),
                name=str(n.get("name") or ""),
                children=[int(c) for c in n.get("children") or []],
                properties=_properties(n),
            )
            for n in raw["nodes"]
        ]
        root_id = int(raw["rootId"])
    except (KeyError, TypeError, ValueError) as e:
        raise ProfileError("malformed topology node: {!r}".format(e)) from e
    return Topology(root_id=root_id, nodes=nodes)


def _properties(node):
    properties = node.get("properties") or {}
    if not isinstance(properties, dict):
        raise TypeError("node {} properties must be an object, got {!r}".format(node.get("id"), properties))
    return properties


def iter_operators(execution):
    """
    Depth-first walk over "Fragment N" > "Pipeline (id=N)" > "NAME (plan_node_id=N)",
    yielding (plan_node_id, OperatorInstance) in discovery order.
    """
    for fragment_key, fragment in execution.items():
        match = FRAGMENT_KEY.match(fragment_key)
        if not match or not isinstance(fragment, dict):
            continue
        fragment_id = int(match.group(1))
        for pipeline_key, pipeline in fragment.items():
            match = PIPELINE_KEY.match(pipeline_key)
            if not match or not isinstance(pipeline, dict):
                continue
            pipeline_id = int(match.group(1))
            for operator_key, operator in pipeline.items():
                match = OPERATOR_KEY.match(operator_key)
                if not match:
                    continue
                if not isinstance(operator, dict):
                    operator = {}
                yield int(match.group(2)), OperatorInstance(
                    name=match.group(1),
                    common_metrics=operator.get("CommonMetrics"),
                    unique_metrics=operator.get("UniqueMetrics"),
                    fragment_id=fragment_id,
                    pipeline_id=pipeline_id,
                )


def extract_node_metrics(execution):
    instances = collections.OrderedDict()
    for node_id, instance in iter_operators(execution):
        instances.setdefault(node_id, []).append(instance)
    log.debug("{} operator instances over {} plan nodes", sum(len(v) for v in instances.values()), len(instances))
    return {node_id: NodeMetrics(v) for node_id, v in instances.items()}


def summary(document, top=10):
    execution, topology = load_profile_sections(document)
    graph = build_graph(topology, extract_node_metrics(execution))
    ranking = rank_operators(graph)
    query_summary = document["Query"].get("Summary") or {}
    return dict(
        query_id=query_summary.get("Query ID"),
        state=query_summary.get("Query State"),
        nodes=len(graph),
        total_time=format_time(sum(r.time_value for r in ranking)),
        slowest=[
            dict(node_id=r.id, name=r.name, time=format_time(r.time_value))
            for r in ranking[:top]
        ],
    )


def main():
    logbook.StreamHandler(sys.stderr).push_application()
    p = argparse.ArgumentParser()
    p.add_argument("-i", "--input-dir", type=pathlib.Path, required=True)
    p.add_argument("-l", "--limit", type=int)
    p.add_argument("-t", "--top", type=int, default=10)
    p.add_argument("--fail-on-error", action="store_true", default=False)
    p.add_argument("-q", "--quiet", action="store_true", default=False)
    args = p.parse_args()

    paths = [
        p for pattern in ["*.json", "*.json.gz"] for p in args.input_dir.glob(pattern)
    ]
    log.info("{} JSONs found at {}", len(paths), args.input_dir.absolute())
    paths = sorted(paths)
    if args.limit is not None:
        paths = paths[: args.limit]

    items = [(p, p.stat().st_size) for p in paths]
    total_size = sum(i[1] for i in items)
    compressed_file = args.input_dir / "summary.jsonl.gz"
    extracted = 0
    with gzip.open(str(compressed_file), "wt") as output:
        with tqdm.tqdm(total=total_size, unit="B", unit_scale=True, disable=args.quiet) as pbar:
            for path, size in items:
                try:
                    input_file = (
                        gzip.open(str(path), "rt")
                        if path.name.endswith(".gz")
                        else path.open("rt")
                    )
                    with input_file as f:
                        s = summary(json.load(f), top=args.top)
                    json.dump(s, output)
                    output.write("\n")
                    extracted += 1
                except Exception:
                    log.exception("failed to extract {}", path)
                    if args.fail_on_error:
                        raise
                pbar.update(size)

    log.info(
        "Extracted {} of {} JSONs into {} ({:.3f} MB in GZipped JSONL format)",
        extracted,
        len(paths),
        compressed_file,
        compressed_file.stat().st_size / 1e6,
    )


if __name__ == "__main__":
    main()
