"""Colour and depth framebuffer for software rendering.

Pixels are stored row-major in flat arrays: ARGB colours as ``uint32`` and
depths as ``float32``. Stripes and tiles are views that share the
framebuffer's storage, so writes through them land in the framebuffer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

_COLOR_DTYPE = np.uint32
_DEPTH_DTYPE = np.float32


@dataclass(eq=False)
class FrameSlice:
    """A band of whole rows of a framebuffer.

    ``color`` and ``depth`` are views covering rows ``y0 .. y0 + height``;
    indices into them are local to the slice.
    """

    width: int
    full_height: int
    y0: int
    height: int
    color: np.ndarray
    depth: np.ndarray

    def test_depth(self, x, y_global, depth) -> Optional[int]:
        """Depth-test pixel ``(x, y_global)``.

        When the pixel lies in this slice and ``depth`` is nearer than the
        stored value, the depth is written and the local index returned;
        otherwise None.
        """
        if y_global < self.y0:
            return None
        y_local = y_global - self.y0
        if y_local >= self.height:
            return None
        index = y_local * self.width + x
        if depth < self.depth[index]:
            self.depth[index] = depth
            return index
        return None

    def write_color(self, index, color):
        """Store ``color`` at a local index."""
        self.color[index] = color

    def row_offset(self, y_local):
        """Index of the first pixel of local row ``y_local``."""
        if not 0 <= y_local < self.height:
            raise IndexError(f"row {y_local} outside slice of {self.height} rows")
        return y_local * self.width

    def bounds(self):
        """``(x0, y0, x1, y1)`` of the slice in framebuffer coordinates."""
        return (0, self.y0, self.width, self.y0 + self.height)


@dataclass(eq=False)
class FrameTile:
    """A rectangle of a framebuffer; indices are framebuffer-global.

    ``color`` and ``depth`` are the framebuffer's whole flat buffers.
    """

    width: int
    full_height: int
    x0: int
    y0: int
    tile_width: int
    tile_height: int
    color: np.ndarray
    depth: np.ndarray

    def test_depth(self, x, y, depth) -> Optional[int]:
        """Depth-test global pixel ``(x, y)``; return its global index if it passes."""
        if not self.x0 <= x < self.x0 + self.tile_width:
            return None
        if not self.y0 <= y < self.y0 + self.tile_height:
            return None
        index = y * self.width + x
        if depth < self.depth[index]:
            self.depth[index] = depth
            return index
        return None

    def write_color(self, index, color):
        """Store ``color`` at a global index."""
        self.color[index] = color

    def row_offset(self, y_global):
        """Global index of the first pixel of row ``y_global``."""
        if not 0 <= y_global < self.full_height:
            raise IndexError(
                f"row {y_global} outside framebuffer of {self.full_height} rows"
            )
        return y_global * self.width


class Framebuffer:
    """Colour (ARGB) and depth buffers of ``width`` x ``height`` pixels."""

    def __init__(self, width, height):
        self.width = width
        self.height = height
        count = width * height
        self.color_buffer = np.zeros(count, dtype=_COLOR_DTYPE)
        self.depth_buffer = np.full(count, np.inf, dtype=_DEPTH_DTYPE)

    def clear(self, clear_color):
        """Fill colour with ``clear_color`` and reset depth to infinity."""
        self.color_buffer.fill(clear_color)
        self.depth_buffer.fill(np.inf)

    def _in_bounds(self, x, y):
        return 0 <= x < self.width and 0 <= y < self.height

    def set_pixel(self, x, y, color, depth):
        """Write a pixel if it is on screen and passes the depth test."""
        if not self._in_bounds(x, y):
            return False
        index = y * self.width + x
        if depth < self.depth_buffer[index]:
            self.color_buffer[index] = color
            self.depth_buffer[index] = depth
            return True
        return False

    def set_pixel_no_depth(self, x, y, color):
        """Write a pixel's colour without touching depth; off-screen is ignored."""
        if self._in_bounds(x, y):
            self.color_buffer[y * self.width + x] = color

    def full_slice(self):
        """A :class:`FrameSlice` covering the whole framebuffer."""
        return FrameSlice(
            width=self.width,
            full_height=self.height,
            y0=0,
            height=self.height,
            color=self.color_buffer,
            depth=self.depth_buffer,
        )

    def resize(self, width, height):
        """Change dimensions; the flat buffers keep their leading contents.

        New pixels get colour 0 and infinite depth.
        """
        self.width = width
        self.height = height
        count = width * height
        self.color_buffer = _resized(self.color_buffer, count, 0)
        self.depth_buffer = _resized(self.depth_buffer, count, np.inf)

    def split_into_stripes(self, stripes):
        """Split into at most ``stripes`` bands of whole, disjoint rows."""
        stripes = max(stripes, 1)
        rows_per_stripe = -(-self.height // stripes)
        slices = []
        for y0 in range(0, self.height, max(rows_per_stripe, 1)):
            rows = min(self.height - y0, rows_per_stripe)
            start, stop = y0 * self.width, (y0 + rows) * self.width
            slices.append(
                FrameSlice(
                    width=self.width,
                    full_height=self.height,
                    y0=y0,
                    height=rows,
                    color=self.color_buffer[start:stop],
                    depth=self.depth_buffer[start:stop],
                )
            )
        return slices

    def split_into_tiles(self, tile_width, tile_height):
        """Split into disjoint rectangles, row by row; edge tiles may be smaller."""
        tile_width = max(tile_width, 1)
        tile_height = max(tile_height, 1)
        return [
            FrameTile(
                width=self.width,
                full_height=self.height,
                x0=x0,
                y0=y0,
                tile_width=min(self.width - x0, tile_width),
                tile_height=min(self.height - y0, tile_height),
                color=self.color_buffer,
                depth=self.depth_buffer,
            )
            for y0 in range(0, self.height, tile_height)
            for x0 in range(0, self.width, tile_width)
        ]


def _resized(buffer, count, fill):
    result = np.full(count, fill, dtype=buffer.dtype)
    kept = min(count, len(buffer))
    result[:kept] = buffer[:kept]
    return result


def _check_channel(name, value):
    if not 0 <= value <= 255:
        raise ValueError(f"{name} channel {value} outside 0..255")


def rgb_to_u32(r, g, b):
    """Pack an opaque RGB colour as ARGB."""
    for name, value in (("red", r), ("green", g), ("blue", b)):
        _check_channel(name, value)
    return 0xFF000000 | (r << 16) | (g << 8) | b


_AO_FACTORS = {0: 0.4, 1: 0.6, 2: 0.8}


def apply_ao(color, ao):
    """Darken an RGB colour by an ambient-occlusion level (0 darkest, 3+ none)."""
    factor = np.float32(_AO_FACTORS.get(ao, 1.0))
    r, g, b = (int(np.float32(channel) * factor) for channel in color)
    return rgb_to_u32(r, g, b)