"""Packet pipeline: differential projection, backface and frustum culling.

Face packets of a chunk are pushed through three stages:

1. A cached clip-space basis is computed for each face slice.
2. Packets whose face points away from the camera are dropped whole.
3. Each quad's screen bounds are tested against the NDC frustum, giving a
   per-packet visibility bitmask.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import numpy as np

from voxelrender.differential_projection import (
    PACKET_CAPACITY,
    FaceBasis,
    FaceDir,
    ProjectedPacket,
)

# NDC bounds: x and y in [-1, 1], depth in [0, 1].
_SCREEN_MIN = (-1.0, -1.0, 0.0)
_SCREEN_MAX = (1.0, 1.0, 1.0)


class PacketPipeline:
    """Projects and culls the face packets of chunks.

    Bases are cached per ``(face direction, chunk position, slice)``; the cache
    is not keyed on the view-projection matrix, so call
    :meth:`clear_basis_cache` when that matrix changes.
    """

    def __init__(self):
        self._basis_cache: dict[tuple[int, tuple[int, int, int], int], FaceBasis] = {}
        self.projected_packets: list[ProjectedPacket] = []

    def clear_basis_cache(self):
        """Forget every cached basis."""
        self._basis_cache.clear()

    def cache_size(self):
        """Number of cached bases."""
        return len(self._basis_cache)

    def basis_for(self, face_dir, chunk_pos, slice_idx, view_proj):
        """Return the cached basis for a face slice, computing it on a miss."""
        key = (
            int(FaceDir(face_dir)),
            tuple(int(c) for c in chunk_pos),
            int(slice_idx),
        )
        basis = self._basis_cache.get(key)
        if basis is None:
            basis = FaceBasis.from_face_direction(
                FaceDir(face_dir), chunk_pos, slice_idx, view_proj
            )
            self._basis_cache[key] = basis
        return basis

    def process_chunk_packets(self, face_packets, chunk_pos, view_proj):
        """Project and cull all packets of a chunk.

        ``face_packets`` is an object with a ``faces`` attribute, or a plain
        sequence, holding six lists of packets ordered as :class:`FaceDir`.
        Returns the packets with at least one visible quad.
        """
        faces: Sequence[Iterable[Any]] = getattr(face_packets, "faces", face_packets)
        self.projected_packets = []

        for face_dir, packets in zip(FaceDir, faces):
            for packet in packets:
                if len(packet) == 0:
                    continue

                # Every quad of a packet lies on the same slice.
                slice_idx = packet.axis_pos[0]
                basis = self.basis_for(face_dir, chunk_pos, slice_idx, view_proj)
                if not basis.is_front_facing():
                    continue

                projected = basis.project_packet(packet)
                mask = self.frustum_cull_packet(projected)
                if mask == 0:
                    continue

                projected.visibility_mask = mask
                self.projected_packets.append(projected)

        return self.projected_packets

    def frustum_cull_packet(self, packet):
        """Bitmask with bit ``i`` set when quad ``i`` overlaps the NDC frustum."""
        count = min(int(packet.count), PACKET_CAPACITY)
        if count <= 0:
            return 0

        x_min = np.asarray(packet.screen_x_min[:count], dtype=np.float64)
        y_min = np.asarray(packet.screen_y_min[:count], dtype=np.float64)
        x_max = np.asarray(packet.screen_x_max[:count], dtype=np.float64)
        y_max = np.asarray(packet.screen_y_max[:count], dtype=np.float64)
        depth = np.asarray(packet.depth_near[:count], dtype=np.float64)

        inside = (
            (x_max >= _SCREEN_MIN[0])
            & (x_min <= _SCREEN_MAX[0])
            & (y_max >= _SCREEN_MIN[1])
            & (y_min <= _SCREEN_MAX[1])
            & (depth >= _SCREEN_MIN[2])
            & (depth <= _SCREEN_MAX[2])
        )
        return sum(1 << int(i) for i in np.flatnonzero(inside))