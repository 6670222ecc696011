"""Macrotile binning for cache-sized tile rendering.

The screen is cut into square macrotiles of ``MACROTILE_SIZE`` pixels. Each
tile keeps its own colour and depth buffers, so rasterising into it touches
only a small working set, and it is copied to the framebuffer once at the end.
Meshes are binned to the tiles their screen rectangle overlaps. Meshes that
cover much of the screen are kept in a separate list and drawn into every
tile.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

MACROTILE_SIZE = 128

# A mesh covering more than this fraction of the screen is not binned.
LARGE_PRIMITIVE_SCREEN_FRACTION = 0.25

_COLOR_DTYPE = np.uint32
_DEPTH_DTYPE = np.float32


def _tiles_along(extent):
    return -(-extent // MACROTILE_SIZE)


class MacroTile:
    """A rectangle of the framebuffer with its own colour and depth buffers.

    Pixel coordinates given to :meth:`test_depth` are framebuffer-global;
    the indices it returns are local to the tile's buffers.
    """

    def __init__(self, x0, y0, width, height, fb_width, fb_height):
        self.x0 = x0
        self.y0 = y0
        self.width = width
        self.height = height
        self.fb_width = fb_width
        self.fb_height = fb_height
        self.color = np.zeros(width * height, dtype=_COLOR_DTYPE)
        self.depth = np.full(width * height, np.inf, dtype=_DEPTH_DTYPE)

    @property
    def full_height(self):
        """Height of the whole framebuffer."""
        return self.fb_height

    def rect(self):
        """``(x0, y0, width, height)`` of the tile in framebuffer coordinates."""
        return (self.x0, self.y0, self.width, self.height)

    def clear(self, clear_color):
        """Fill colour with ``clear_color`` and reset depth to infinity."""
        self.color.fill(clear_color)
        self.depth.fill(np.inf)

    def test_depth(self, x, y, depth) -> Optional[int]:
        """Depth-test global pixel ``(x, y)``.

        When the pixel lies in the tile and ``depth`` is nearer than the stored
        value, the depth is written and the local index returned; otherwise
        None.
        """
        local_x = x - self.x0
        local_y = y - self.y0
        if not (0 <= local_x < self.width and 0 <= local_y < self.height):
            return None
        index = local_y * self.width + local_x
        if depth < self.depth[index]:
            self.depth[index] = depth
            return index
        return None

    def write_color(self, index, color):
        """Store ``color`` at a local index."""
        self.color[index] = color

    def flush_to_framebuffer(self, framebuffer, fb_width):
        """Copy the tile's colours into a flat row-major colour buffer."""
        if self.width == 0 or self.height == 0:
            return
        last = (self.y0 + self.height - 1) * fb_width + self.x0 + self.width
        if self.x0 + self.width > fb_width or last > len(framebuffer):
            raise IndexError("tile does not fit inside the framebuffer")
        rows = self.color.reshape(self.height, self.width)
        for y, row in enumerate(rows, start=self.y0):
            start = y * fb_width + self.x0
            framebuffer[start : start + self.width] = row


class MacroTileBins:
    """Per-tile lists of the mesh ids that overlap each macrotile."""

    def __init__(self, fb_width, fb_height):
        self.tiles_x = _tiles_along(fb_width)
        self.tiles_y = _tiles_along(fb_height)
        self.tile_count = self.tiles_x * self.tiles_y
        self.bins: list[list[int]] = [[] for _ in range(self.tile_count)]
        self.large_primitives: list[int] = []

    def clear(self):
        """Empty every bin and the large-primitive list."""
        for tile_bin in self.bins:
            tile_bin.clear()
        self.large_primitives.clear()

    def add_mesh(
        self,
        mesh_id,
        screen_min_x,
        screen_min_y,
        screen_max_x,
        screen_max_y,
        fb_width,
        fb_height,
    ):
        """Bin a mesh by its inclusive screen rectangle.

        Returns True when the mesh was put into tile bins. Returns False when
        it is off screen, or when it covers more than
        ``LARGE_PRIMITIVE_SCREEN_FRACTION`` of the screen, in which case it is
        appended to :attr:`large_primitives` instead.
        """
        min_x = max(screen_min_x, 0)
        min_y = max(screen_min_y, 0)
        max_x = min(screen_max_x, fb_width - 1)
        max_y = min(screen_max_y, fb_height - 1)
        if min_x > max_x or min_y > max_y:
            return False

        coverage = (max_x - min_x + 1) * (max_y - min_y + 1)
        total = fb_width * fb_height
        if coverage / total > LARGE_PRIMITIVE_SCREEN_FRACTION:
            self.large_primitives.append(mesh_id)
            return False

        first_tx = min_x // MACROTILE_SIZE
        first_ty = min_y // MACROTILE_SIZE
        last_tx = min(max_x // MACROTILE_SIZE, self.tiles_x - 1)
        last_ty = min(max_y // MACROTILE_SIZE, self.tiles_y - 1)
        for ty in range(first_ty, last_ty + 1):
            for tx in range(first_tx, last_tx + 1):
                self.bins[ty * self.tiles_x + tx].append(mesh_id)
        return True

    def get_bin(self, tile_x, tile_y):
        """The mesh ids binned to tile ``(tile_x, tile_y)``."""
        if not (0 <= tile_x < self.tiles_x and 0 <= tile_y < self.tiles_y):
            raise IndexError(
                f"tile ({tile_x}, {tile_y}) outside {self.tiles_x}x{self.tiles_y} grid"
            )
        return tuple(self.bins[tile_y * self.tiles_x + tile_x])

    def tile_rect(self, tile_x, tile_y, fb_width, fb_height):
        """``(x0, y0, width, height)`` of a tile, clipped to the framebuffer."""
        x0 = tile_x * MACROTILE_SIZE
        y0 = tile_y * MACROTILE_SIZE
        if x0 > fb_width or y0 > fb_height:
            raise ValueError(f"tile ({tile_x}, {tile_y}) starts outside the framebuffer")
        x1 = min(x0 + MACROTILE_SIZE, fb_width)
        y1 = min(y0 + MACROTILE_SIZE, fb_height)
        return (x0, y0, x1 - x0, y1 - y0)


class ThreadLocalBins:
    """One set of bins per worker, merged into a global set afterwards."""

    def __init__(self, fb_width, fb_height, thread_count):
        self._per_thread = [
            MacroTileBins(fb_width, fb_height) for _ in range(thread_count)
        ]

    def thread_bins(self, thread_id):
        """The bins belonging to worker ``thread_id``."""
        return self._per_thread[thread_id]

    def merge(self, global_bins):
        """Replace ``global_bins``' contents with all workers' bins, in worker order."""
        global_bins.clear()
        for worker in self._per_thread:
            global_bins.large_primitives.extend(worker.large_primitives)
        for tile_index in range(global_bins.tile_count):
            target = global_bins.bins[tile_index]
            for worker in self._per_thread:
                target.extend(worker.bins[tile_index])

    def clear_all(self):
        """Empty every worker's bins."""
        for worker in self._per_thread:
            worker.clear()