import pytest

from planview.errors import ProfileError
from planview.metrics import NodeMetrics, OperatorInstance
from planview.ranking import SLOWEST, TOP_FIVE, highlight_marks, rank_operators
from planview.session import DIMMED, HIDDEN, MATCHED, NORMAL, PlanViewer, PlanViewSession


@pytest.fixture
def session(three_node_profile):
    return PlanViewSession.from_profile(three_node_profile)


def test_profile_to_view(session):
    assert len(session.graph) == 3
    assert len(session.layout) == 3
    assert session.layout.height == 290
    assert session.camera.zoom == 1.0
    assert set(session.node_states().values()) == {NORMAL}
    assert session.matching_nodes() == {1, 2, 3}


def test_filter_dims_the_rest(session):
    result = session.apply_filter("type=scan")
    assert result.matching == {3}
    assert session.matching_nodes() == {3}
    assert session.node_states() == {1: DIMMED, 2: DIMMED, 3: MATCHED}
    assert session.edges() == []

    session.apply_filter("node=2+ --hide")
    assert session.node_states() == {1: HIDDEN, 2: MATCHED, 3: MATCHED}
    assert [(e.parent, e.child) for e in session.edges()] == [(2, 3)]

    session.clear_filter()
    assert len(session.edges()) == 2


def test_remove_filter_term(session):
    session.apply_filter("type=scan, node=1")
    result = session.remove_filter_term("type=scan")
    assert result.matching == {1}
    assert session.preview_filter("type=join").terms()[0].operator_class.value == "join"


def test_ranking_is_slowest_first(session):
    ranking = session.slowest_operators()
    assert [r.id for r in ranking] == [3, 2, 1]
    assert ranking[0].time_value == pytest.approx(0.105)


def test_ranking_skips_idle_nodes_and_keeps_ties_stable(graph_factory):
    graph = graph_factory([(1, "EXCHANGE", [2, 3]), (2, "OLAP_SCAN", []), (3, "OLAP_SCAN", [])], root_id=1)
    assert rank_operators(graph) == []

    metrics = {
        n: NodeMetrics([OperatorInstance("OLAP_SCAN", {"OperatorTotalTime": "5ms"})]) for n in (2, 3)
    }
    graph = graph_factory([(1, "EXCHANGE", [2, 3]), (2, "OLAP_SCAN", []), (3, "OLAP_SCAN", [])], 1, metrics)
    assert [r.id for r in rank_operators(graph)] == [2, 3]


def test_highlights_are_idempotent(session):
    first = session.highlights()
    assert first == {3: SLOWEST, 2: TOP_FIVE, 1: TOP_FIVE}
    assert session.highlights() == first
    assert highlight_marks(session.slowest_operators(), top=1) == {3: SLOWEST}


def test_navigate_to_node(session):
    assert session.navigate_to_node(2)
    assert 2 in session.viewport.visible_nodes(session.layout.positions)

    camera = (session.camera.x, session.camera.y, session.camera.zoom)
    assert not session.navigate_to_node(99)
    assert (session.camera.x, session.camera.y, session.camera.zoom) == camera


def test_node_detail(session):
    rows = dict(session.node_detail(3))
    assert rows["Table"] == "lineitem"
    assert rows["Scan Time"] == "100ms"
    assert rows["Pull Rows"].endswith("K")
    assert session.node_detail(99) is None


def test_gestures_go_through_the_viewport(session):
    session.zoom_at_point(600, 400, 2)
    assert session.camera.zoom == 2
    session.pan_by(10, 0, transient=True)
    session.end_gesture()
    session.fit_to_content()
    assert session.camera.zoom == 1.0


def test_viewer_keeps_the_session_on_a_bad_profile(three_node_profile):
    viewer = PlanViewer(viewport_size=(800, 600))
    session = viewer.on_profile_changed(three_node_profile)
    assert viewer.session is session
    assert session.viewport.width == 800

    with pytest.raises(ProfileError):
        viewer.on_profile_changed({"Query": {}})
    assert viewer.session is session

    replacement = viewer.on_profile_changed(three_node_profile)
    assert replacement is not session
    viewer.clear()
    assert viewer.session is None
