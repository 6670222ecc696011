import math

import pytest

from voxelrender.culling import HorizonCullingConfig, VisibleMesh, apply_horizon_culling


def mesh_at(center, camera_pos, name=None):
    distance_sq = sum((c - p) ** 2 for c, p in zip(center, camera_pos))
    return VisibleMesh(mesh=name if name is not None else tuple(center),
                       center=tuple(center), distance_sq=distance_sq)


def chunk_mesh(cx, cy, cz, camera_pos):
    center = (cx * 32 + 16.0, cy * 32 + 16.0, cz * 32 + 16.0)
    return mesh_at(center, camera_pos, name=(cx, cy, cz))


def visible_names(result):
    return {m.mesh for m in result}


def test_empty_input():
    assert apply_horizon_culling((0.0, 0.0, 0.0), [], HorizonCullingConfig()) == []


def test_default_config_values():
    config = HorizonCullingConfig()
    assert (config.bins, config.base_margin, config.margin_dist_factor,
            config.min_dist_chunks) == (128, 0.1, 0.05, 2.0)


def test_result_is_sorted_front_to_back():
    cam = (0.0, 0.0, 0.0)
    meshes = [mesh_at((300.0, -10.0, 0.0), cam), mesh_at((100.0, -10.0, 50.0), cam),
              mesh_at((0.0, -10.0, 200.0), cam)]
    result = apply_horizon_culling(cam, meshes, HorizonCullingConfig())
    distances = [m.distance_sq for m in result]
    assert distances == sorted(distances)
    assert len(result) == 3


def test_chunk_behind_tall_occluder_is_culled():
    cam = (0.0, 0.0, 0.0)
    near = mesh_at((100.0, 50.0, 0.0), cam, "near")
    far = mesh_at((200.0, 20.0, 0.0), cam, "far")
    result = apply_horizon_culling(cam, [far, near], HorizonCullingConfig())
    assert [m.mesh for m in result] == ["near"]


def test_chunk_below_camera_is_never_culled():
    cam = (0.0, 0.0, 0.0)
    near = mesh_at((100.0, 50.0, 0.0), cam, "near")
    below = mesh_at((200.0, -20.0, 0.0), cam, "below")
    result = apply_horizon_culling(cam, [near, below], HorizonCullingConfig())
    assert visible_names(result) == {"near", "below"}


def test_close_chunks_do_not_build_horizon():
    cam = (0.0, 0.0, 0.0)
    close = mesh_at((40.0, 200.0, 0.0), cam, "close")
    far = mesh_at((200.0, 20.0, 0.0), cam, "far")
    result = apply_horizon_culling(cam, [close, far], HorizonCullingConfig())
    assert visible_names(result) == {"close", "far"}


def test_chunk_directly_above_camera_is_kept():
    cam = (16.0, 0.0, 16.0)
    above = mesh_at((16.0, 100.0, 16.0), cam, "above")
    result = apply_horizon_culling(cam, [above], HorizonCullingConfig())
    assert [m.mesh for m in result] == ["above"]


def test_adjacent_chunks_same_height():
    cam = (0.0, 100.0, 0.0)
    chunks = [chunk_mesh(x, 0, 5, cam) for x in range(10)]
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    assert len(result) == 10


def test_camera_pitch_downward():
    cam = (0.0, 150.0, 0.0)
    chunks = [chunk_mesh(x, 0, z, cam) for z in range(5) for x in range(5)]
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    assert len(result) >= 20


def test_bin_boundary_adjacent_chunks():
    bins = 64
    degrees_per_bin = 360.0 / bins
    cam = (0.0, 0.0, 0.0)
    for bin_idx in range(bins):
        angle_deg = bin_idx * degrees_per_bin
        meshes = []
        for name, offset in (("a", -0.5), ("b", 0.5)):
            angle = math.radians(angle_deg + offset)
            meshes.append(mesh_at((100.0 * math.cos(angle), 50.0,
                                   100.0 * math.sin(angle)), cam, name))
        result = apply_horizon_culling(cam, meshes, HorizonCullingConfig(bins=bins))
        assert visible_names(result) == {"a", "b"}, bin_idx


def test_slope_neighbours_all_visible():
    cam = (0.0, 100.0, 0.0)
    chunks = [chunk_mesh(5, 0, 5, cam), chunk_mesh(5, 0, 6, cam), chunk_mesh(6, 0, 5, cam)]
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    assert visible_names(result) == {(5, 0, 5), (5, 0, 6), (6, 0, 5)}


def test_terrain_with_small_elevation_changes_has_no_holes():
    cam = (0.0, 100.0, 0.0)
    chunks = [chunk_mesh(x, -(z // 3), z, cam) for z in range(10) for x in range(-5, 6)]
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    visible = {(n[0], n[2]) for n in visible_names(result)}
    for z in range(1, 9):
        for x in range(-4, 5):
            if (x, z) not in visible:
                neighbours = [(x - 1, z), (x + 1, z), (x, z - 1), (x, z + 1)]
                assert sum(n in visible for n in neighbours) < 3


@pytest.mark.parametrize("margin", [0.0, 0.01, 0.05])
def test_small_margins_keep_flat_neighbours(margin):
    cam = (0.0, 100.0, 0.0)
    chunks = [chunk_mesh(0, 0, 5, cam), chunk_mesh(1, 0, 6, cam)]
    result = apply_horizon_culling(
        cam, chunks, HorizonCullingConfig(bins=64, base_margin=margin))
    assert len(result) == 2


def test_horizon_update_order():
    cam = (0.0, 100.0, 0.0)
    chunks = [chunk_mesh(0, 0, 3, cam), chunk_mesh(0, 0, 5, cam),
              chunk_mesh(0, 0, 7, cam), chunk_mesh(0, 1, 7, cam)]
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    names = visible_names(result)
    assert (0, 0, 3) in names
    assert (0, 1, 7) in names


def test_realistic_camera_scenario_has_no_holes():
    cam = (0.0, 80.0, 0.0)
    chunks = []
    for z in range(12):
        for x in range(-6, 7):
            height = -2 + (1 if 3 <= z <= 6 else 0)
            chunks.append(chunk_mesh(x, height, z, cam))
    input_names = {c.mesh for c in chunks}
    result = apply_horizon_culling(cam, chunks, HorizonCullingConfig(bins=64))
    names = visible_names(result)

    assert names <= input_names
    # Chunks closer than min_dist_chunks are always kept.
    assert (0, -2, 0) in names
    assert (-1, -2, 0) in names
    assert (0, -2, 1) in names

    visible = {(n[0], n[2]) for n in names}
    holes = 0
    for chunk in chunks:
        x, _, z = chunk.mesh
        if (x, z) not in visible:
            neighbours = [(x - 1, z), (x + 1, z), (x, z - 1), (x, z + 1)]
            if sum(n in visible for n in neighbours) >= 3:
                holes += 1
    assert holes == 0