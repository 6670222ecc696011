"""Low-resolution conservative occlusion buffer for chunk-level culling."""

from __future__ import annotations

import math

import numpy as np

# Occluders must be at least this much nearer to hide something.
_DEPTH_EPSILON = 0.005


class OcclusionBuffer:
    """Coarse grid of minimum depths over the screen.

    Each cell keeps the nearest depth recorded inside it, so a rectangle is
    occluded only when every cell it touches holds clearly nearer geometry.
    """

    def __init__(self, screen_width, screen_height, grid_width, grid_height):
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.grid_width = grid_width
        self.grid_height = grid_height
        self._cells = np.full((grid_height, grid_width), math.inf, dtype=np.float64)

    def resize(self, screen_width, screen_height):
        """Follow a new screen size, keeping the grid resolution, and clear."""
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.clear()

    def clear(self):
        """Reset every cell for a new frame."""
        self._cells.fill(math.inf)

    def update(self, x, y, depth):
        """Record ``depth`` at pixel ``(x, y)``; pixels off screen are ignored."""
        if not (0 <= x < self.screen_width and 0 <= y < self.screen_height):
            return
        cx = x * self.grid_width // self.screen_width
        cy = y * self.grid_height // self.screen_height
        if depth < self._cells[cy, cx]:
            self._cells[cy, cx] = depth

    def _cell_range(self, min_x, min_y, max_x, max_y):
        """Cell slices covered by a pixel rectangle, or None when off screen."""
        if self.screen_width == 0 or self.screen_height == 0:
            return None
        if (
            max_x < 0
            or max_y < 0
            or min_x >= self.screen_width
            or min_y >= self.screen_height
        ):
            return None

        min_x = max(min_x, 0)
        min_y = max(min_y, 0)
        max_x = min(max_x, self.screen_width - 1)
        max_y = min(max_y, self.screen_height - 1)
        if min_x > max_x or min_y > max_y:
            return None

        cx0 = min_x * self.grid_width // self.screen_width
        cx1 = max_x * self.grid_width // self.screen_width
        cy0 = min_y * self.grid_height // self.screen_height
        cy1 = max_y * self.grid_height // self.screen_height
        return slice(cy0, cy1 + 1), slice(cx0, cx1 + 1)

    def mark_rect(self, min_x, min_y, max_x, max_y, depth):
        """Record geometry at about ``depth`` over a pixel rectangle."""
        cells = self._cell_range(min_x, min_y, max_x, max_y)
        if cells is None:
            return
        region = self._cells[cells]
        np.minimum(region, depth, out=region, where=depth < region)

    def is_occluded(self, min_x, min_y, max_x, max_y, near_depth):
        """True when the rectangle is conservatively hidden by nearer geometry."""
        cells = self._cell_range(min_x, min_y, max_x, max_y)
        if cells is None:
            return False
        return bool(np.all(self._cells[cells] < near_depth - _DEPTH_EPSILON))