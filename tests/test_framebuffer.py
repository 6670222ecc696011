import math

import numpy as np
import pytest

from voxelrender.framebuffer import Framebuffer, apply_ao, rgb_to_u32


def test_new_framebuffer_is_black_and_infinitely_deep():
    fb = Framebuffer(8, 4)
    assert len(fb.color_buffer) == 32
    assert np.all(fb.color_buffer == 0)
    assert np.all(np.isinf(fb.depth_buffer))


def test_clear_fills_color_and_resets_depth():
    fb = Framebuffer(4, 4)
    assert fb.set_pixel(1, 1, 0xFF112233, 0.5) is True
    assert fb.set_pixel(1, 1, 0xFF445566, 0.9) is False
    fb.clear(0xFF87CEEB)
    assert np.all(fb.color_buffer == 0xFF87CEEB)
    assert np.all(np.isinf(fb.depth_buffer))
    # After clearing, a far depth passes the test again.
    assert fb.set_pixel(1, 1, 0xFF445566, 0.9) is True


def test_set_pixel_depth_test():
    fb = Framebuffer(4, 4)
    assert fb.set_pixel(2, 3, 0xFF000001, 0.5)
    assert not fb.set_pixel(2, 3, 0xFF000002, 0.7)
    assert fb.set_pixel(2, 3, 0xFF000003, 0.3)
    index = 3 * 4 + 2
    assert fb.color_buffer[index] == 0xFF000003
    assert fb.depth_buffer[index] == pytest.approx(0.3)


def test_set_pixel_out_of_bounds():
    fb = Framebuffer(4, 4)
    assert not fb.set_pixel(4, 0, 0xFFFFFFFF, 0.1)
    assert not fb.set_pixel(0, 4, 0xFFFFFFFF, 0.1)
    assert not fb.set_pixel(-1, 0, 0xFFFFFFFF, 0.1)
    assert np.all(fb.color_buffer == 0)


def test_set_pixel_no_depth_ignores_depth_and_bounds():
    fb = Framebuffer(4, 4)
    fb.set_pixel(1, 1, 0xFF000001, 0.1)
    fb.set_pixel_no_depth(1, 1, 0xFF000009)
    fb.set_pixel_no_depth(10, 10, 0xFF000009)
    assert fb.color_buffer[5] == 0xFF000009
    assert fb.depth_buffer[5] == pytest.approx(0.1)
    assert np.count_nonzero(fb.color_buffer) == 1


def test_resize_keeps_prefix_and_pads():
    fb = Framebuffer(2, 2)
    fb.set_pixel(0, 0, 0xFF0000AA, 0.2)
    fb.resize(3, 3)
    assert (fb.width, fb.height) == (3, 3)
    assert len(fb.color_buffer) == 9
    assert fb.color_buffer[0] == 0xFF0000AA
    assert np.all(fb.color_buffer[4:] == 0)
    assert np.all(np.isinf(fb.depth_buffer[4:]))


def test_stripes_partition_rows():
    fb = Framebuffer(5, 10)
    stripes = fb.split_into_stripes(3)
    assert [s.height for s in stripes] == [4, 4, 2]
    assert sum(s.height for s in stripes) == fb.height
    expected_y0 = 0
    for stripe in stripes:
        assert stripe.y0 == expected_y0
        assert stripe.bounds() == (0, stripe.y0, 5, stripe.y0 + stripe.height)
        expected_y0 += stripe.height


def test_stripes_zero_count_gives_one_stripe():
    fb = Framebuffer(3, 3)
    stripes = fb.split_into_stripes(0)
    assert len(stripes) == 1
    assert stripes[0].height == 3


def test_stripe_writes_reach_framebuffer():
    fb = Framebuffer(4, 6)
    stripe = fb.split_into_stripes(2)[1]
    assert stripe.test_depth(1, 2, 0.5) is None  # row belongs to first stripe
    index = stripe.test_depth(1, 4, 0.5)
    assert index == stripe.row_offset(1) + 1
    stripe.write_color(index, 0xFF123456)
    assert fb.color_buffer[4 * 4 + 1] == 0xFF123456
    assert fb.depth_buffer[4 * 4 + 1] == pytest.approx(0.5)
    assert stripe.test_depth(1, 4, 0.9) is None


def test_slice_row_offset_rejects_bad_row():
    fb = Framebuffer(4, 4)
    with pytest.raises(IndexError):
        fb.full_slice().row_offset(4)


def test_full_slice_covers_everything():
    fb = Framebuffer(6, 3)
    full = fb.full_slice()
    assert full.bounds() == (0, 0, 6, 3)
    index = full.test_depth(5, 2, 0.25)
    full.write_color(index, 0xFF00FF00)
    assert fb.color_buffer[2 * 6 + 5] == 0xFF00FF00


def test_tiles_cover_each_pixel_once():
    fb = Framebuffer(10, 7)
    tiles = fb.split_into_tiles(4, 3)
    assert len(tiles) == 9
    assert sorted({t.x0 for t in tiles}) == [0, 4, 8]
    assert sorted({t.y0 for t in tiles}) == [0, 3, 6]
    coverage = np.zeros((7, 10), dtype=int)
    for tile in tiles:
        coverage[tile.y0:tile.y0 + tile.tile_height, tile.x0:tile.x0 + tile.tile_width] += 1
    assert np.all(coverage == 1)


def test_tile_depth_test_respects_rect_and_uses_global_index():
    fb = Framebuffer(8, 8)
    tile = next(t for t in fb.split_into_tiles(4, 4) if (t.x0, t.y0) == (4, 4))
    assert tile.test_depth(1, 1, 0.1) is None
    index = tile.test_depth(5, 6, 0.4)
    assert index == tile.row_offset(6) + 5
    tile.write_color(index, 0xFFABCDEF)
    assert fb.color_buffer[6 * 8 + 5] == 0xFFABCDEF
    assert tile.test_depth(5, 6, 0.8) is None
    with pytest.raises(IndexError):
        tile.row_offset(8)


def test_rgb_to_u32_is_opaque_argb():
    assert rgb_to_u32(255, 0, 0) == 0xFFFF0000
    assert rgb_to_u32(0, 0, 0) >> 24 == 0xFF


def test_rgb_to_u32_rejects_out_of_range():
    with pytest.raises(ValueError):
        rgb_to_u32(256, 0, 0)


def test_apply_ao_full_light_is_unchanged():
    assert apply_ao([10, 20, 30], 3) == rgb_to_u32(10, 20, 30)
    assert apply_ao([10, 20, 30], 200) == rgb_to_u32(10, 20, 30)


def test_apply_ao_darkens_monotonically():
    levels = [apply_ao([200, 200, 200], ao) & 0xFF for ao in range(4)]
    assert levels == sorted(levels)
    assert levels[0] < levels[3]
    assert apply_ao([100, 100, 100], 0) == rgb_to_u32(40, 40, 40)
    assert not math.isnan(levels[1])