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

from planview.layout import NODE_HEIGHT, NODE_WIDTH

log = logbook.Logger("camera")


class ViewportConfig:
    def __init__(
        self,
        min_zoom=0.1,
        max_zoom=3.0,
        fit_max_zoom=1.0,
        subset_max_zoom=2.0,
        overscroll=0.5,
        padding=40,
    ):
        if not 0 < min_zoom <= max_zoom:
            raise ValueError("invalid zoom range [{}, {}]".format(min_zoom, max_zoom))
        if overscroll < 0:
            raise ValueError("overscroll must not be negative: {}".format(overscroll))
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.fit_max_zoom = fit_max_zoom
        self.subset_max_zoom = subset_max_zoom
        self.overscroll = overscroll
        self.padding = padding


class Camera:
    """World point shown at the viewport's top-left corner, and the scale."""

    def __init__(self, x=0.0, y=0.0, zoom=1.0):
        self.x = x
        self.y = y
        self.zoom = zoom

    def reset(self):
        self.x, self.y, self.zoom = 0.0, 0.0, 1.0

    def __eq__(self, other):
        return isinstance(other, Camera) and (self.x, self.y, self.zoom) == (other.x, other.y, other.zoom)

    def __repr__(self):
        return "Camera(x={:.2f}, y={:.2f}, zoom={:.3f})".format(self.x, self.y, self.zoom)


def _clamp(value, low, high):
    return max(low, min(high, value))


class Viewport:
    def __init__(self, content_width, content_height, width, height, config=None):
        self.content_width = content_width
        self.content_height = content_height
        self.width = width
        self.height = height
        self.config = config or ViewportConfig()
        self.camera = Camera()

    def reset(self):
        self.camera.reset()

    def resize(self, width, height):
        self.width = width
        self.height = height
        self.clamp_to_bounds()

    def screen_to_world(self, sx, sy):
        c = self.camera
        return c.x + sx / c.zoom, c.y + sy / c.zoom

    def world_to_screen(self, wx, wy):
        c = self.camera
        return (wx - c.x) * c.zoom, (wy - c.y) * c.zoom

    def transform(self):
        """(translate_x, translate_y, scale) to apply to the world layer."""
        c = self.camera
        return -c.x * c.zoom, -c.y * c.zoom, c.zoom

    def pan_by(self, dx, dy, transient=False):
        c = self.camera
        c.x -= dx / c.zoom
        c.y -= dy / c.zoom
        if not transient:
            self.clamp_to_bounds()

    def end_gesture(self):
        self.clamp_to_bounds()

    def zoom_at_point(self, sx, sy, factor):
        wx, wy = self.screen_to_world(sx, sy)
        c = self.camera
        c.zoom = _clamp(c.zoom * factor, self.config.min_zoom, self.config.max_zoom)
        c.x = wx - sx / c.zoom
        c.y = wy - sy / c.zoom
        self.clamp_to_bounds()

    def _fit(self, min_x, min_y, max_x, max_y, zoom_ceiling):
        pad = self.config.padding
        box_width = max_x - min_x + 2 * pad
        box_height = max_y - min_y + 2 * pad
        zoom = min(self.width / box_width, self.height / box_height, zoom_ceiling)
        c = self.camera
        c.zoom = _clamp(zoom, self.config.min_zoom, self.config.max_zoom)
        c.x = (min_x + max_x) / 2 - self.width / (2 * c.zoom)
        c.y = (min_y + max_y) / 2 - self.height / (2 * c.zoom)
        self.clamp_to_bounds()

    def fit_to_content(self):
        self._fit(0, 0, self.content_width, self.content_height, zoom_ceiling=self.config.fit_max_zoom)

    def fit_to_subset(self, node_ids, layout):
        """
        Zooms onto the bounding box of the given nodes, returns False and leaves
        the camera alone when none of them is laid out.
        """
        bounds = layout.bounds(node_ids)
        if bounds is None:
            return False
        self._fit(*bounds, zoom_ceiling=self.config.subset_max_zoom)
        return True

    def camera_bounds(self):
        """Allowed (min_x, max_x, min_y, max_y) of the camera position at the current zoom."""
        zoom = self.camera.zoom
        x_range = self._axis_range(self.content_width, self.width / zoom)
        y_range = self._axis_range(self.content_height, self.height / zoom)
        return x_range + y_range

    def _axis_range(self, content_size, view_size):
        # margin wide enough to center content smaller than the view
        margin = max(self.config.overscroll * content_size, (view_size - content_size) / 2)
        return -margin, content_size + margin - view_size

    def clamp_to_bounds(self):
        min_x, max_x, min_y, max_y = self.camera_bounds()
        c = self.camera
        c.x = _clamp(c.x, min_x, max_x)
        c.y = _clamp(c.y, min_y, max_y)

    def visible_nodes(self, positions):
        c = self.camera
        left, top = c.x, c.y
        right, bottom = left + self.width / c.zoom, top + self.height / c.zoom
        return [
            node_id
            for node_id, p in positions.items()
            if p.x < right and p.x + NODE_WIDTH > left and p.y < bottom and p.y + NODE_HEIGHT > top
        ]
