import random

import pytest

from planview.camera import Camera, Viewport, ViewportConfig
from planview.layout import compute_layout


@pytest.fixture
def viewport():
    return Viewport(2000, 1000, 1000, 800)


@pytest.fixture
def wide_layout(graph_factory, wide_tree):
    return compute_layout(graph_factory(wide_tree, root_id=1))


def test_config_is_validated():
    with pytest.raises(ValueError):
        ViewportConfig(min_zoom=0)
    with pytest.raises(ValueError):
        ViewportConfig(min_zoom=2, max_zoom=1)
    with pytest.raises(ValueError):
        ViewportConfig(overscroll=-1)


def test_pan_moves_content_with_the_pointer(viewport):
    viewport.pan_by(100, 50)
    assert viewport.camera == Camera(-100, -50, 1.0)
    assert viewport.world_to_screen(0, 0) == (100, 50)


def test_zoom_keeps_the_anchor_still(viewport):
    viewport.zoom_at_point(500, 400, 2)
    assert viewport.camera.zoom == 2
    assert viewport.screen_to_world(500, 400) == pytest.approx((500, 400))

    viewport.zoom_at_point(130, 70, 0.8)
    before = viewport.screen_to_world(10, 20)
    viewport.zoom_at_point(10, 20, 1.1)
    assert viewport.screen_to_world(10, 20) == pytest.approx(before)


def test_zoom_is_clamped(viewport):
    viewport.zoom_at_point(0, 0, 100)
    assert viewport.camera.zoom == 3.0
    viewport.zoom_at_point(0, 0, 1e-6)
    assert viewport.camera.zoom == 0.1


def test_fit_small_content_is_centered_at_natural_size():
    v = Viewport(200, 100, 1000, 800)
    v.fit_to_content()
    assert v.camera == Camera(-400, -350, 1.0)
    assert v.transform() == (400, 350, 1.0)


def test_fit_large_content_shows_all_of_it(viewport):
    viewport.fit_to_content()
    zoom = viewport.camera.zoom
    assert zoom == pytest.approx(1000 / 2080)
    left, top = viewport.world_to_screen(0, 0)
    right, bottom = viewport.world_to_screen(2000, 1000)
    assert 0 <= left and right <= 1000
    assert 0 <= top and bottom <= 800


def test_transient_pan_is_clamped_when_the_gesture_ends(viewport):
    viewport.pan_by(5000, 0, transient=True)
    assert viewport.camera.x == -5000
    viewport.end_gesture()
    assert viewport.camera.x == -1000


def test_camera_stays_in_bounds_under_random_gestures(viewport):
    rnd = random.Random(7)
    for _ in range(200):
        if rnd.random() < 0.3:
            viewport.zoom_at_point(rnd.uniform(0, 1000), rnd.uniform(0, 800), rnd.uniform(0.5, 2))
        else:
            viewport.pan_by(rnd.uniform(-3000, 3000), rnd.uniform(-3000, 3000))
        min_x, max_x, min_y, max_y = viewport.camera_bounds()
        assert min_x <= viewport.camera.x <= max_x
        assert min_y <= viewport.camera.y <= max_y
        assert 0.1 <= viewport.camera.zoom <= 3.0


def test_content_is_centered_at_minimum_zoom(viewport):
    viewport.zoom_at_point(0, 0, 1e-6)
    rnd = random.Random(11)
    for _ in range(20):
        viewport.pan_by(rnd.uniform(-500, 500), rnd.uniform(-500, 500))
        assert viewport.world_to_screen(1000, 500) == pytest.approx((500, 400))


def test_screen_and_world_are_inverse(viewport):
    viewport.camera = Camera(-123.5, 42.25, 1.7)
    for sx, sy in [(0, 0), (1000, 800), (333, 17)]:
        assert viewport.world_to_screen(*viewport.screen_to_world(sx, sy)) == pytest.approx((sx, sy))


def test_fit_to_subset(wide_layout):
    v = Viewport(wide_layout.width, wide_layout.height, 1000, 800)
    assert v.fit_to_subset([4, 5], wide_layout)
    assert v.camera.zoom == 2.0
    assert {4, 5} <= set(v.visible_nodes(wide_layout.positions))

    v.fit_to_subset([7], wide_layout)
    assert v.camera.zoom <= 2.0


def test_fit_to_unknown_subset_leaves_camera_alone(wide_layout):
    v = Viewport(wide_layout.width, wide_layout.height, 1000, 800)
    v.fit_to_content()
    before = Camera(v.camera.x, v.camera.y, v.camera.zoom)
    assert not v.fit_to_subset([42], wide_layout)
    assert not v.fit_to_subset([], wide_layout)
    assert v.camera == before


def test_visible_nodes(wide_layout):
    v = Viewport(wide_layout.width, wide_layout.height, 1000, 800)
    v.fit_to_content()
    assert sorted(v.visible_nodes(wide_layout.positions)) == [1, 2, 3, 4, 5, 6, 7]
    v.camera = Camera(10000, 10000, 1.0)
    assert v.visible_nodes(wide_layout.positions) == []


def test_resize_reclamps(viewport):
    viewport.pan_by(-1000, 0)
    assert viewport.camera.x == 1000
    viewport.resize(4000, 800)
    min_x, max_x, _, _ = viewport.camera_bounds()
    assert min_x <= viewport.camera.x <= max_x


def test_reset(viewport):
    viewport.fit_to_content()
    viewport.reset()
    assert viewport.camera == Camera()
