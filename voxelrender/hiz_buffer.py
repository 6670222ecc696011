"""Hierarchical Z-buffer for conservative occlusion culling.

Three levels are kept:

* level 0: full-resolution depth (``width * height`` values),
* level 1: nearest depth of each 8x8 pixel block,
* level 2: nearest depth of each 8x8 group of level-1 blocks.

Every level stores the nearest depth seen, so a region is occluded only when
its own nearest depth lies behind everything already drawn there.
"""

from __future__ import annotations

import numpy as np

HIZ_BLOCK_SIZE = 8

_DEPTH_DTYPE = np.float32
_EVEN_BITS = 0x55555555
_COORD_MASK = 0xFFFF


def _spread_bits(value):
    value = (value | (value << 8)) & 0x00FF00FF
    value = (value | (value << 4)) & 0x0F0F0F0F
    value = (value | (value << 2)) & 0x33333333
    value = (value | (value << 1)) & 0x55555555
    return value


def _compact_bits(value):
    value &= _EVEN_BITS
    value = (value | (value >> 1)) & 0x33333333
    value = (value | (value >> 2)) & 0x0F0F0F0F
    value = (value | (value >> 4)) & 0x00FF00FF
    value = (value | (value >> 8)) & 0x0000FFFF
    return value


def morton_encode(x, y):
    """Interleave the low 16 bits of ``x`` and ``y`` into a 32-bit Z-order code.

    Bit ``i`` of ``x`` goes to bit ``2i`` and bit ``i`` of ``y`` to ``2i + 1``.
    """
    if x < 0 or y < 0:
        raise ValueError(f"morton coordinates must be non-negative, got ({x}, {y})")
    return _spread_bits(int(x) & _COORD_MASK) | (_spread_bits(int(y) & _COORD_MASK) << 1)


def morton_decode(morton):
    """Split a 32-bit Z-order code back into ``(x, y)``."""
    if not 0 <= morton <= 0xFFFFFFFF:
        raise ValueError(f"morton code {morton} outside 32-bit range")
    morton = int(morton)
    return _compact_bits(morton), _compact_bits(morton >> 1)


def _blocks(extent):
    return -(-extent // HIZ_BLOCK_SIZE)


def _resized(buffer, count):
    result = np.full(count, np.inf, dtype=_DEPTH_DTYPE)
    kept = min(count, len(buffer))
    result[:kept] = buffer[:kept]
    return result


class HiZBuffer:
    """Hierarchical nearest-depth buffer over a ``width`` x ``height`` screen."""

    def __init__(self, width, height):
        self.width = width
        self.height = height
        self.blocks_x = _blocks(width)
        self.blocks_y = _blocks(height)
        self.level0 = np.full(width * height, np.inf, dtype=_DEPTH_DTYPE)
        self.level1 = np.full(self.blocks_x * self.blocks_y, np.inf, dtype=_DEPTH_DTYPE)
        self.level2 = np.full(self._l2_width * self._l2_height, np.inf, dtype=_DEPTH_DTYPE)

    @property
    def _l2_width(self):
        return (self.blocks_x + 7) // 8

    @property
    def _l2_height(self):
        return (self.blocks_y + 7) // 8

    def _level1_grid(self):
        return self.level1.reshape(self.blocks_y, self.blocks_x)

    def _level2_grid(self):
        return self.level2.reshape(self._l2_height, self._l2_width)

    def clear(self):
        """Reset every level to infinite depth."""
        self.level0.fill(np.inf)
        self.level1.fill(np.inf)
        self.level2.fill(np.inf)

    def resize(self, width, height):
        """Change the screen size; each level keeps its leading contents."""
        self.width = width
        self.height = height
        self.blocks_x = _blocks(width)
        self.blocks_y = _blocks(height)
        self.level0 = _resized(self.level0, width * height)
        self.level1 = _resized(self.level1, self.blocks_x * self.blocks_y)
        self.level2 = _resized(self.level2, self._l2_width * self._l2_height)

    def _block_range(self, min_x, min_y, max_x, max_y):
        """Clamped inclusive block range of a pixel rectangle, or None if off screen."""
        min_x = max(min_x, 0)
        min_y = max(min_y, 0)
        max_x = min(max_x, self.width - 1)
        max_y = min(max_y, self.height - 1)
        if min_x > max_x or min_y > max_y:
            return None
        return (
            min_x // HIZ_BLOCK_SIZE,
            min_y // HIZ_BLOCK_SIZE,
            min(max_x // HIZ_BLOCK_SIZE, self.blocks_x - 1),
            min(max_y // HIZ_BLOCK_SIZE, self.blocks_y - 1),
        )

    def is_occluded(self, screen_min_x, screen_min_y, screen_max_x, screen_max_y, near_depth):
        """True when a screen rectangle with nearest depth ``near_depth`` is hidden.

        Rectangles entirely off screen count as occluded.
        """
        block_range = self._block_range(screen_min_x, screen_min_y, screen_max_x, screen_max_y)
        if block_range is None:
            return True
        bx0, by0, bx1, by1 = block_range

        # Coarse test against the level-2 cell holding the first block.
        l2_index = (by0 // 8) * self._l2_width + bx0 // 8
        if l2_index < len(self.level2) and near_depth > self.level2[l2_index]:
            return True

        region = self._level1_grid()[by0 : by1 + 1, bx0 : bx1 + 1]
        nearest = float(region.min()) if region.size else np.inf
        return bool(near_depth > nearest)

    def update_region(self, screen_min_x, screen_min_y, screen_max_x, screen_max_y, near_depth):
        """Record geometry at ``near_depth`` over a screen rectangle in levels 1 and 2."""
        block_range = self._block_range(screen_min_x, screen_min_y, screen_max_x, screen_max_y)
        if block_range is None:
            return
        bx0, by0, bx1, by1 = block_range
        if bx1 < bx0 or by1 < by0:
            return

        level1 = self._level1_grid()[by0 : by1 + 1, bx0 : bx1 + 1]
        np.minimum(level1, near_depth, out=level1)

        level2 = self._level2_grid()[by0 // 8 : by1 // 8 + 1, bx0 // 8 : bx1 // 8 + 1]
        np.minimum(level2, near_depth, out=level2)

    @staticmethod
    def xy_to_morton(x, y):
        """Z-order index of pixel ``(x, y)``."""
        return morton_encode(x, y)

    @staticmethod
    def morton_to_xy(morton):
        """Pixel ``(x, y)`` of a Z-order index."""
        return morton_decode(morton)