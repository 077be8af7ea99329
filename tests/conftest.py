import json

import pytest

from planview.extract import Topology, TopologyNode
from planview.graph import build_graph


def make_operator(total_time=None, common=None, unique=None):
    common = dict(common or {})
    if total_time is not None:
        common["OperatorTotalTime"] = total_time
    return {"CommonMetrics": common, "UniqueMetrics": dict(unique or {})}


def make_profile(nodes, root_id, fragments=None, topology_as_text=True, query_id="q-1"):
    """
    nodes: list of (id, name, children[, properties])
    fragments: {fragment_id: {pipeline_id: [(operator_key, operator), ...]}}
    """
    topology = {
        "rootId": root_id,
        "nodes": [
            {"id": n[0], "name": n[1], "children": list(n[2]), "properties": n[3] if len(n) > 3 else {}}
            for n in nodes
        ],
    }
    execution = {"Topology": json.dumps(topology) if topology_as_text else topology}
    for fragment_id, pipelines in (fragments or {}).items():
        fragment = execution.setdefault("Fragment {}".format(fragment_id), {})
        for pipeline_id, operators in pipelines.items():
            fragment["Pipeline (id={})".format(pipeline_id)] = dict(operators)
    return {"Query": {"Summary": {"Query ID": query_id, "Query State": "Finished"}, "Execution": execution}}


def make_graph(nodes, root_id, node_metrics=None):
    topology = Topology(
        root_id=root_id,
        nodes=[TopologyNode(n[0], n[1], list(n[2]), n[3] if len(n) > 3 else {}) for n in nodes],
    )
    return build_graph(topology, node_metrics or {})


@pytest.fixture
def operator():
    return make_operator


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def graph_factory():
    return make_graph


@pytest.fixture
def three_node_profile():
    """EXCHANGE(1) > HASH_JOIN(2) > OLAP_SCAN(3), as in a minimal two-fragment query."""
    return make_profile(
        nodes=[(1, "EXCHANGE", [2]), (2, "HASH_JOIN", [3]), (3, "OLAP_SCAN", [])],
        root_id=1,
        fragments={
            0: {
                0: [("EXCHANGE_SOURCE (plan_node_id=1)", make_operator("1ms", {"PullRowNum": "10"}))],
            },
            1: {
                0: [
                    ("EXCHANGE_SINK (plan_node_id=1)", make_operator("2ms", unique={"NetworkTime": "3ms"})),
                    ("HASH_JOIN_PROBE (plan_node_id=2)", make_operator("20ms", {"PullRowNum": "10"})),
                    ("OLAP_SCAN (plan_node_id=3)", make_operator(
                        "5ms",
                        {"PullRowNum": "207.615K (207615)"},
                        {"ScanTime": "100ms", "Table": "lineitem"},
                    )),
                ],
                1: [("HASH_JOIN_BUILD (plan_node_id=2)", make_operator("30ms"))],
            },
        },
    )


@pytest.fixture
def plan_graph():
    """
    1 EXCHANGE
    └── 2 HASH_JOIN
        ├── 3 OLAP_SCAN (lineitem)
        └── 4 EXCHANGE
            └── 5 PROJECT
                └── 6 CONNECTOR_SCAN (Orders)
    """
    return make_graph(
        [
            (1, "EXCHANGE", [2]),
            (2, "HASH_JOIN", [3, 4]),
            (3, "OLAP_SCAN", [], {"table": "lineitem"}),
            (4, "EXCHANGE", [5]),
            (5, "PROJECT", [6]),
            (6, "CONNECTOR_SCAN", [], {"table": "Orders"}),
        ],
        root_id=1,
    )


@pytest.fixture
def wide_tree():
    """Root with a three-way and a one-way subtree, every leaf a scan."""
    return [
        (1, "RESULT_SINK", [2, 3]),
        (2, "HASH_JOIN", [4, 5, 6]),
        (3, "AGGREGATE", [7]),
        (4, "OLAP_SCAN", []),
        (5, "OLAP_SCAN", []),
        (6, "OLAP_SCAN", []),
        (7, "OLAP_SCAN", []),
    ]
