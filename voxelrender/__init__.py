"""Software-rendering building blocks for chunked voxel worlds: framebuffers, face projection, culling, occlusion and tile binning."""

__version__ = "0.1.0"

__all__ = [
    "culling",
    "differential_projection",
    "framebuffer",
    "hiz_buffer",
    "macrotile",
    "occlusion",
    "packet_pipeline",
]