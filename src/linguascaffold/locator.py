from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from .models import ChunkPair

__all__ = [
    "CURRENT_PROVENANCE",
    "AlignedTranslation",
    "LocatedChunk",
    "HighlightSegment",
    "fold_case",
    "find_span",
    "locate_chunks",
    "locate_translation",
    "sort_located",
    "remove_overlaps",
    "build_segments",
]

CURRENT_PROVENANCE = 0

# whitespace before these is dropped when matching loosely
_CLOSING_PUNCTUATION = frozenset(".,;:!?»)]}…%")
# whitespace after these is dropped when matching loosely
_OPENING_PUNCTUATION = frozenset("«([{")


class AlignedTranslation(Protocol):
    original: str
    chunk_pairs: Sequence[ChunkPair]


@dataclass(frozen=True)
class LocatedChunk:
    """
    A chunk resolved to a concrete span of one paragraph.

    ``chunk`` is the query as produced by the model; the paragraph's own
    casing lives at ``paragraph[absolute_position:end]``. ``provenance`` is
    0 for the current translation and k for the k-th most recent one kept
    in history.
    """

    chunk: str
    chunk_index: int
    absolute_position: int
    length: int
    translation: str = ""
    provenance: int = CURRENT_PROVENANCE

    @property
    def end(self) -> int:
        return self.absolute_position + self.length

    @property
    def is_current(self) -> bool:
        return self.provenance == CURRENT_PROVENANCE

    def overlaps(self, other: "LocatedChunk") -> bool:
        return self.absolute_position < other.end and other.absolute_position < self.end


@dataclass(frozen=True)
class HighlightSegment:
    text: str
    start: int
    end: int
    chunk: LocatedChunk | None = None


def _fold_char(char: str) -> str:
    lowered = char.lower()
    return lowered if len(lowered) == 1 else char


def fold_case(text: str) -> str:
    """Lowercase ``text`` without changing its length."""
    return "".join(_fold_char(char) for char in text)


def _normalize_with_offsets(text: str) -> tuple[str, list[int]]:
    chars: list[str] = []
    offsets: list[int] = []
    pending_space: int | None = None
    for index, char in enumerate(text):
        if char.isspace():
            if pending_space is None and chars and chars[-1] not in _OPENING_PUNCTUATION:
                pending_space = index
            continue
        if pending_space is not None and char not in _CLOSING_PUNCTUATION:
            chars.append(" ")
            offsets.append(pending_space)
        pending_space = None
        chars.append(_fold_char(char))
        offsets.append(index)
    return "".join(chars), offsets


def find_span(
    haystack: str,
    needle: str,
    start: int = 0,
    end: int | None = None,
) -> tuple[int, int] | None:
    """
    Find the first case-insensitive occurrence of ``needle`` in
    ``haystack[start:end]`` and return its absolute ``(start, end)``.

    When no exact occurrence exists, the search is repeated with whitespace
    runs collapsed and spacing around punctuation ignored, so ``"Bonjour !"``
    still finds ``"bonjour!"``.
    """
    if end is None:
        end = len(haystack)
    if not needle.strip():
        return None
    window = haystack[start:end]
    position = fold_case(window).find(fold_case(needle))
    if position != -1:
        return start + position, start + position + len(needle)

    loose_window, offsets = _normalize_with_offsets(window)
    loose_needle, _ = _normalize_with_offsets(needle)
    if not loose_needle:
        return None
    position = loose_window.find(loose_needle)
    if position == -1:
        return None
    first = offsets[position]
    last = offsets[position + len(loose_needle) - 1]
    return start + first, start + last + 1


def sort_located(located: Iterable[LocatedChunk]) -> list[LocatedChunk]:
    return sorted(
        located,
        key=lambda item: (item.absolute_position, item.provenance, item.chunk_index),
    )


def remove_overlaps(ordered: Iterable[LocatedChunk]) -> list[LocatedChunk]:
    kept: list[LocatedChunk] = []
    for item in ordered:
        if kept and item.absolute_position < kept[-1].end:
            continue
        kept.append(item)
    return kept


def _locate_all(
    paragraph: str,
    chunks: Sequence[str],
    translations: Sequence[str] | None,
    *,
    start: int,
    end: int,
    provenance: int,
) -> list[LocatedChunk]:
    located: list[LocatedChunk] = []
    for index, chunk in enumerate(chunks):
        span = find_span(paragraph, chunk, start, end)
        if span is None:
            continue
        located.append(
            LocatedChunk(
                chunk=chunk,
                chunk_index=index,
                absolute_position=span[0],
                length=span[1] - span[0],
                translation=translations[index] if translations is not None else "",
                provenance=provenance,
            )
        )
    return located


def locate_chunks(
    paragraph: str,
    chunks: Sequence[str],
    *,
    translations: Sequence[str] | None = None,
    span: tuple[int, int] | None = None,
    provenance: int = CURRENT_PROVENANCE,
) -> list[LocatedChunk]:
    """
    Place ``chunks`` on ``paragraph``, dropping the ones that do not occur.

    The result is ordered by position (ties favour lower provenance, then
    lower chunk index) and contains no overlapping spans: a chunk starting
    before the previous kept chunk ends is discarded.
    """
    start, end = span if span is not None else (0, len(paragraph))
    located = _locate_all(
        paragraph,
        chunks,
        translations,
        start=start,
        end=end,
        provenance=provenance,
    )
    return remove_overlaps(sort_located(located))


def locate_translation(
    paragraph: str,
    translation: AlignedTranslation,
    *,
    provenance: int = CURRENT_PROVENANCE,
) -> list[LocatedChunk]:
    """
    Two-stage placement: find the translation's source text in the
    paragraph, then place its chunk pairs inside that span only.
    """
    pairs = list(translation.chunk_pairs)
    if not pairs:
        return []
    span = find_span(paragraph, translation.original)
    if span is None:
        return []
    return locate_chunks(
        paragraph,
        [pair.original for pair in pairs],
        translations=[pair.translation for pair in pairs],
        span=span,
        provenance=provenance,
    )


def build_segments(paragraph: str, located: Iterable[LocatedChunk]) -> list[HighlightSegment]:
    """Cut ``paragraph`` into plain and highlighted runs using its own casing."""
    segments: list[HighlightSegment] = []
    cursor = 0
    for item in remove_overlaps(sort_located(located)):
        if item.absolute_position > cursor:
            segments.append(
                HighlightSegment(paragraph[cursor : item.absolute_position], cursor, item.absolute_position)
            )
        segments.append(
            HighlightSegment(
                paragraph[item.absolute_position : item.end],
                item.absolute_position,
                item.end,
                chunk=item,
            )
        )
        cursor = item.end
    if cursor < len(paragraph):
        segments.append(HighlightSegment(paragraph[cursor:], cursor, len(paragraph)))
    return segments
