"""Differential basis projection of axis-aligned voxel faces into clip space.

All quads of one face direction lie on parallel planes, so a face's clip-space
origin, tangent and bitangent are computed once and every quad corner is then
``origin + u * tangent + v * bitangent`` instead of a full matrix product.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import numpy as np

CHUNK_SIZE = 32
PACKET_CAPACITY = 32


class FaceDir(enum.IntEnum):
    """The six axis-aligned face directions of a voxel."""

    POS_X = 0
    NEG_X = 1
    POS_Y = 2
    NEG_Y = 3
    POS_Z = 4
    NEG_Z = 5

    @property
    def is_positive(self) -> bool:
        return self in (FaceDir.POS_X, FaceDir.POS_Y, FaceDir.POS_Z)

    @property
    def normal(self) -> tuple[float, float, float]:
        return tuple(_FRAMES[self][3])  # type: ignore[return-value]


_X = (1.0, 0.0, 0.0)
_Y = (0.0, 1.0, 0.0)
_Z = (0.0, 0.0, 1.0)
_NEG_X = (-1.0, 0.0, 0.0)
_NEG_Y = (0.0, -1.0, 0.0)
_NEG_Z = (0.0, 0.0, -1.0)

# face -> (slice axis, tangent, bitangent, normal); frames stay right-handed.
_FRAMES = {
    FaceDir.POS_X: (0, _Y, _Z, _X),
    FaceDir.NEG_X: (0, _Y, _NEG_Z, _NEG_X),
    FaceDir.POS_Y: (1, _X, _Z, _Y),
    FaceDir.NEG_Y: (1, _X, _NEG_Z, _NEG_Y),
    FaceDir.POS_Z: (2, _X, _Y, _Z),
    FaceDir.NEG_Z: (2, _NEG_X, _Y, _NEG_Z),
}


class _Packet(Protocol):
    """A batch of up to 32 quads on one face slice; ``len()`` gives its size."""

    u_min: Sequence[int]
    v_min: Sequence[int]
    u_len: Sequence[int]
    v_len: Sequence[int]
    block_type: Sequence[int]

    def __len__(self) -> int: ...


def face_coordinate_system(face_dir, chunk_pos, slice_idx):
    """Return world-space ``(origin, tangent, bitangent, normal)`` for a face slice."""
    axis, tangent, bitangent, normal = _FRAMES[FaceDir(face_dir)]
    origin = np.asarray(chunk_pos, dtype=np.float64) * float(CHUNK_SIZE)
    origin[axis] += float(slice_idx)
    return (
        origin,
        np.array(tangent, dtype=np.float64),
        np.array(bitangent, dtype=np.float64),
        np.array(normal, dtype=np.float64),
    )


@dataclass(frozen=True, eq=False)
class FaceBasis:
    """Clip-space basis vectors of one face slice."""

    origin: np.ndarray
    tangent: np.ndarray
    bitangent: np.ndarray
    normal: np.ndarray

    @classmethod
    def from_face_direction(cls, face_dir, chunk_pos, slice_idx, view_proj):
        """Transform a face's world coordinate system by ``view_proj``."""
        matrix = np.asarray(view_proj, dtype=np.float64)
        origin, tangent, bitangent, normal = face_coordinate_system(
            face_dir, chunk_pos, slice_idx
        )
        return cls(
            origin=matrix @ np.append(origin, 1.0),
            tangent=matrix @ np.append(tangent, 0.0),
            bitangent=matrix @ np.append(bitangent, 0.0),
            normal=matrix @ np.append(normal, 0.0),
        )

    def project_point(self, u, v):
        """Clip-space position of face coordinates ``(u, v)``."""
        return self.origin + u * self.tangent + v * self.bitangent

    def is_front_facing(self):
        """True when the clip-space normal points towards the near plane."""
        return bool(self.normal[2] < 0.0)

    def _project_bounds(self, u_min, v_min, u_len, v_len):
        u_max = u_min + u_len
        v_max = v_min + v_len
        us = np.stack([u_min, u_max, u_min, u_max])
        vs = np.stack([v_min, v_min, v_max, v_max])
        clip = (
            self.origin
            + us[..., None] * self.tangent
            + vs[..., None] * self.bitangent
        )
        with np.errstate(divide="ignore", invalid="ignore"):
            ndc = clip[..., :3] / clip[..., 3:4]
        return (
            np.fmin.reduce(ndc[..., 0], axis=0),
            np.fmin.reduce(ndc[..., 1], axis=0),
            np.fmax.reduce(ndc[..., 0], axis=0),
            np.fmax.reduce(ndc[..., 1], axis=0),
            np.fmin.reduce(ndc[..., 2], axis=0),
        )

    def project_quad(self, packet, idx):
        """Screen bounds of one quad: ``(x_min, y_min, x_max, y_max, depth_near)`` in NDC."""
        bounds = self._project_bounds(
            np.array([packet.u_min[idx]], dtype=np.float64),
            np.array([packet.v_min[idx]], dtype=np.float64),
            np.array([packet.u_len[idx]], dtype=np.float64),
            np.array([packet.v_len[idx]], dtype=np.float64),
        )
        return tuple(float(value[0]) for value in bounds)

    def project_packet(self, packet):
        """Project every quad of a packet into a new :class:`ProjectedPacket`."""
        total = len(packet)
        count = min(total, PACKET_CAPACITY)
        projected = ProjectedPacket(count=total)
        if count == 0:
            return projected

        def column(values):
            return np.asarray(list(values)[:count], dtype=np.float64)

        x_min, y_min, x_max, y_max, depth = self._project_bounds(
            column(packet.u_min),
            column(packet.v_min),
            column(packet.u_len),
            column(packet.v_len),
        )
        projected.screen_x_min[:count] = x_min
        projected.screen_y_min[:count] = y_min
        projected.screen_x_max[:count] = x_max
        projected.screen_y_max[:count] = y_max
        projected.depth_near[:count] = depth
        projected.block_type[:count] = list(packet.block_type)[:count]
        return projected


def _zeros():
    return np.zeros(PACKET_CAPACITY, dtype=np.float64)


@dataclass(eq=False)
class ProjectedPacket:
    """Screen-space bounding boxes for up to 32 quads."""

    count: int = 0
    screen_x_min: np.ndarray = field(default_factory=_zeros)
    screen_y_min: np.ndarray = field(default_factory=_zeros)
    screen_x_max: np.ndarray = field(default_factory=_zeros)
    screen_y_max: np.ndarray = field(default_factory=_zeros)
    depth_near: np.ndarray = field(default_factory=_zeros)
    block_type: np.ndarray = field(
        default_factory=lambda: np.zeros(PACKET_CAPACITY, dtype=np.uint8)
    )
    visibility_mask: int = 0xFFFFFFFF