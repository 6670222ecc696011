"""Horizon culling of chunk meshes hidden behind nearer terrain."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

CHUNK_SIZE = 32


@dataclass(frozen=True)
class VisibleMesh:
    """A mesh that passed frustum culling, with its centre and squared distance."""

    mesh: Any
    center: Sequence[float]
    distance_sq: float


@dataclass
class HorizonCullingConfig:
    """Parameters for horizon culling."""

    bins: int = 128
    base_margin: float = 0.1
    margin_dist_factor: float = 0.05
    min_dist_chunks: float = 2.0


def apply_horizon_culling(camera_pos, meshes: Iterable[VisibleMesh], config=None):
    """Return the meshes sorted front to back, without those below the horizon.

    The horizon is tracked per angular bin around the camera as the steepest
    chunk-top slope seen so far.
    """
    config = config or HorizonCullingConfig()
    ordered = sorted(meshes, key=lambda m: m.distance_sq)
    if not ordered:
        return []

    cam_x, cam_y, cam_z = (float(c) for c in camera_pos)
    horizon = [-math.inf] * config.bins
    half_chunk = CHUNK_SIZE * 0.5
    kept = []

    for visible in ordered:
        cx, cy, cz = (float(c) for c in visible.center)
        dx, dz = cx - cam_x, cz - cam_z
        dist_xz = math.hypot(dx, dz)

        if dist_xz < 1e-3:
            kept.append(visible)
            continue

        dist_chunks = dist_xz / CHUNK_SIZE
        # Very close chunks neither build nor respect the horizon.
        if dist_chunks < config.min_dist_chunks:
            kept.append(visible)
            continue

        angle = math.atan2(dz, dx)
        bin_index = math.floor((angle + math.pi) / (2.0 * math.pi) * config.bins)
        bin_index %= config.bins

        slope = (cy - cam_y) / dist_xz
        margin = config.base_margin * (1.0 + dist_chunks * config.margin_dist_factor)
        current = horizon[bin_index]

        if slope >= 0.0 and slope + margin < current:
            continue

        kept.append(visible)
        top_slope = (cy + half_chunk - cam_y) / dist_xz
        if top_slope > current:
            horizon[bin_index] = top_slope

    return kept