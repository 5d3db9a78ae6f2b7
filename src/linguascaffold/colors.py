from __future__ import annotations

__all__ = ["CHUNK_PALETTE", "chunk_color", "generate_chunk_colors", "color_with_opacity"]

CHUNK_PALETTE = (
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#10B981",  # green
    "#F59E0B",  # amber
    "#3B82F6",  # blue
    "#EF4444",  # red
    "#14B8A6",  # teal
    "#F97316",  # orange
    "#8B5A3C",  # brown
    "#6366F1",  # indigo
    "#84CC16",  # lime
    "#06B6D4",  # cyan
    "#A855F7",  # violet
    "#F43F5E",  # rose
    "#22D3EE",  # sky
)


def chunk_color(index: int) -> str:
    return CHUNK_PALETTE[index % len(CHUNK_PALETTE)]


def generate_chunk_colors(count: int) -> list[str]:
    return [chunk_color(index) for index in range(max(count, 0))]


def color_with_opacity(color: str, opacity: float) -> str:
    red = int(color[1:3], 16)
    green = int(color[3:5], 16)
    blue = int(color[5:7], 16)
    return f"rgba({red}, {green}, {blue}, {opacity})"
