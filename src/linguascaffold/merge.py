from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .colors import chunk_color, color_with_opacity
from .locator import (
    CURRENT_PROVENANCE,
    AlignedTranslation,
    LocatedChunk,
    locate_translation,
    sort_located,
)
from .models import TranslationResponse

__all__ = [
    "HISTORY_LIMIT",
    "CURRENT_OPACITY",
    "HISTORY_OPACITY",
    "MergedChunk",
    "history_opacity",
    "remember_translation",
    "merge_alignments",
]

HISTORY_LIMIT = 10
CURRENT_OPACITY = 0.25
HISTORY_OPACITY = 0.15


@dataclass(frozen=True)
class MergedChunk:
    located: LocatedChunk
    color: str
    opacity: float

    @property
    def provenance(self) -> int:
        return self.located.provenance

    @property
    def background(self) -> str:
        return color_with_opacity(self.color, self.opacity)


def history_opacity(provenance: int, limit: int = HISTORY_LIMIT) -> float:
    if provenance == CURRENT_PROVENANCE:
        return CURRENT_OPACITY
    limit = max(limit, 1)
    fade = (limit - min(provenance, limit) + 1) / limit
    return round(HISTORY_OPACITY * fade, 3)


def remember_translation(
    history: Sequence[TranslationResponse],
    response: TranslationResponse,
    limit: int = HISTORY_LIMIT,
) -> list[TranslationResponse]:
    """Return ``history`` (most recent first) with ``response`` prepended."""
    return [response, *history][: max(limit, 0)]


def merge_alignments(
    paragraph: str,
    current: AlignedTranslation | None,
    history: Sequence[AlignedTranslation] = (),
    *,
    limit: int = HISTORY_LIMIT,
) -> list[MergedChunk]:
    """
    Layer the current translation's chunks over those of earlier ones.

    Layers are accepted in order of recency, current first. Within a layer
    the usual position ordering and overlap removal apply; a chunk from an
    older layer is only kept where it overlaps nothing already accepted.
    ``history`` is ordered most recent first and cut to ``limit`` entries.
    """
    layers: list[list[LocatedChunk]] = []
    if current is not None:
        layers.append(locate_translation(paragraph, current, provenance=CURRENT_PROVENANCE))
    for offset, past in enumerate(history[: max(limit, 0)], start=1):
        layers.append(locate_translation(paragraph, past, provenance=offset))

    accepted: list[LocatedChunk] = []
    for layer in layers:
        for item in layer:
            if any(item.overlaps(kept) for kept in accepted):
                continue
            accepted.append(item)

    return [
        MergedChunk(
            located=item,
            color=chunk_color(item.chunk_index),
            opacity=history_opacity(item.provenance, limit),
        )
        for item in sort_located(accepted)
    ]
