# voxelrender

Building blocks for a CPU software renderer aimed at chunked voxel worlds.
Chunks are 32 voxels on a side and geometry is given in world units. Depth
follows the usual convention: smaller values are nearer, and every depth
buffer starts at positive infinity.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `voxelrender.framebuffer`

- `Framebuffer(width, height)` holds `color_buffer` (flat `uint32` ARGB values)
  and `depth_buffer` (flat `float32`), both row-major.
  - `clear(clear_color)` fills colour and resets depth to infinity.
  - `set_pixel(x, y, color, depth)` writes only when the pixel is on screen and
    nearer than the stored depth; returns `True` when it wrote.
  - `set_pixel_no_depth(x, y, color)` writes colour only; off-screen is ignored.
  - `resize(width, height)` keeps the leading contents of the flat buffers; new
    pixels get colour 0 and infinite depth.
  - `full_slice()` returns a `FrameSlice` over the whole framebuffer.
  - `split_into_stripes(stripes)` returns at most `stripes` `FrameSlice` bands of
    whole, disjoint rows.
  - `split_into_tiles(tile_width, tile_height)` returns `FrameTile` rectangles,
    row by row; edge tiles may be smaller.
- `FrameSlice` and `FrameTile` share the framebuffer's storage, so writes
  through them land in the framebuffer. Both have `test_depth`, `write_color`
  and `row_offset`; `FrameSlice` also has `bounds()`. A slice works with
  indices local to its rows, a tile with framebuffer-global indices.
- `rgb_to_u32(r, g, b)` packs an opaque ARGB colour (channels must be 0..255,
  otherwise `ValueError`).
- `apply_ao(color, ao)` darkens an RGB triple by an ambient-occlusion level:
  0 → 0.4, 1 → 0.6, 2 → 0.8, anything else → unchanged.

### `voxelrender.differential_projection`

- `FaceDir` enumerates the six axis-aligned faces (`POS_X`, `NEG_X`, `POS_Y`,
  `NEG_Y`, `POS_Z`, `NEG_Z`), with `is_positive` and `normal`.
- `face_coordinate_system(face_dir, chunk_pos, slice_idx)` returns the
  world-space origin, tangent, bitangent and normal of a face slice.
- `FaceBasis.from_face_direction(face_dir, chunk_pos, slice_idx, view_proj)`
  transforms that coordinate system by a 4×4 view-projection matrix.
  `project_point(u, v)` then gives `origin + u * tangent + v * bitangent` in
  clip space; `is_front_facing()` is true when the clip-space normal has a
  negative z.
- `project_quad(packet, idx)` and `project_packet(packet)` compute NDC
  bounding boxes and nearest depth of quads. A packet is any object with
  `u_min`, `v_min`, `u_len`, `v_len` and `block_type` sequences and a
  `len()`; `project_packet` returns a `ProjectedPacket` holding up to 32 quads.

### `voxelrender.packet_pipeline`

`PacketPipeline.process_chunk_packets(face_packets, chunk_pos, view_proj)`
takes six lists of packets ordered as `FaceDir` (either a plain sequence or an
object with a `faces` attribute; each packet additionally needs `axis_pos`),
drops back-facing packets, projects the rest and keeps those with at least one
quad inside the NDC frustum, setting `visibility_mask` to one bit per visible
quad. Bases are cached per face, chunk and slice (`basis_for`, `cache_size`);
the cache is not keyed on the matrix, so call `clear_basis_cache()` when the
view changes. `frustum_cull_packet(packet)` returns the bitmask on its own.

### `voxelrender.culling`

`apply_horizon_culling(camera_pos, meshes, config=None)` takes `VisibleMesh`
entries (`mesh`, `center`, `distance_sq`), sorts them front to back and returns
a new list without chunks clearly below the horizon built by nearer chunks in
the same angular bin. `HorizonCullingConfig` sets `bins` (128), `base_margin`
(0.1), `margin_dist_factor` (0.05) and `min_dist_chunks` (2.0).

### `voxelrender.occlusion`

`OcclusionBuffer(screen_width, screen_height, grid_width, grid_height)` is a
coarse grid of minimum depths. `update(x, y, depth)` and
`mark_rect(min_x, min_y, max_x, max_y, depth)` record geometry;
`is_occluded(...)` is true only when every covered cell holds a depth at least
0.005 nearer. `clear()` and `resize()` reset it.

### `voxelrender.hiz_buffer`

`HiZBuffer(width, height)` keeps nearest depths per 8×8 pixel block
(`level1`) and per 8×8 group of blocks (`level2`); `level0` is a
full-resolution array that is allocated, cleared and resized but not written
by `update_region`. `update_region(...)` records a rectangle at a depth;
`is_occluded(...)` is true when the rectangle lies behind what was recorded,
or entirely off screen. `morton_encode(x, y)` / `morton_decode(code)`
interleave and split the low 16 bits of each coordinate (also available as
`HiZBuffer.xy_to_morton` and `HiZBuffer.morton_to_xy`).

### `voxelrender.macrotile`

- `MacroTile` is a rectangle of up to `MACROTILE_SIZE` (128) pixels a side
  with its own colour and depth buffers: `test_depth` (global coordinates in,
  local index out), `write_color`, `clear`, `rect` and
  `flush_to_framebuffer(buffer, fb_width)`.
- `MacroTileBins(fb_width, fb_height)` assigns mesh ids to the tiles their
  inclusive screen rectangle overlaps with `add_mesh`; meshes covering more
  than a quarter of the screen go to `large_primitives` instead. `get_bin`
  and `tile_rect` look up tiles.
- `ThreadLocalBins` keeps one `MacroTileBins` per worker (`thread_bins`),
  `merge`s them in worker order and `clear_all`s them.

## Example

```python
import numpy as np

from voxelrender.differential_projection import FaceBasis, FaceDir
from voxelrender.framebuffer import Framebuffer, rgb_to_u32
from voxelrender.hiz_buffer import HiZBuffer

fb = Framebuffer(320, 200)
fb.clear(rgb_to_u32(135, 206, 235))
assert fb.set_pixel(10, 10, rgb_to_u32(255, 0, 0), 0.5)
assert not fb.set_pixel(10, 10, rgb_to_u32(0, 255, 0), 0.7)  # farther

basis = FaceBasis.from_face_direction(FaceDir.POS_Y, (0, 0, 0), 0, np.eye(4))
print(basis.project_point(5.0, 10.0))  # [ 5.  0. 10.  1.]

hiz = HiZBuffer(1280, 720)
hiz.update_region(0, 0, 100, 100, 0.5)
assert hiz.is_occluded(0, 0, 100, 100, 0.7)
assert not hiz.is_occluded(0, 0, 100, 100, 0.3)
```

## What the package does not do

It provides the pieces of a renderer, not a renderer. There is no
rasteriser that draws triangles or quads into a `Framebuffer` or `MacroTile`,
no camera, no window or display output, and no mesher: face packets and
`VisibleMesh` entries must be built by the caller. Work is not spread over
threads by the package; `ThreadLocalBins` and the stripe and tile views only
make such a split possible.