from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Mapping, Union

__all__ = [
    "PayloadError",
    "ChunkPair",
    "TextPart",
    "WordPart",
    "LiteralPart",
    "PartialTranslation",
    "TranslationResponse",
    "serialize_literal_parts",
    "deserialize_literal_parts",
    "serialize_partial",
    "serialize_response",
    "deserialize_response",
    "deserialize_partial",
]


class PayloadError(ValueError):
    """Raised when a JSON payload does not describe a translation."""


@dataclass(frozen=True)
class ChunkPair:
    original: str
    translation: str

    def to_dict(self) -> dict[str, str]:
        return {"original": self.original, "translation": self.translation}


@dataclass(frozen=True)
class TextPart:
    content: str

    kind: ClassVar[str] = "text"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "content": self.content}


@dataclass(frozen=True)
class WordPart:
    content: str
    source_word: str

    kind: ClassVar[str] = "word"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "content": self.content, "sourceWord": self.source_word}


LiteralPart = Union[TextPart, WordPart]


@dataclass
class PartialTranslation:
    """
    Best-effort snapshot of a response that may still be streaming.

    A fresh instance is built for every parse; ``is_complete`` flips only
    once the literal block has closed, independently of the other fields.
    """

    original: str
    natural_translation: str | None = None
    direct_translation: str | None = None
    literal_parts: list[LiteralPart] = field(default_factory=list)
    chunk_pairs: list[ChunkPair] = field(default_factory=list)
    is_complete: bool = False


@dataclass(frozen=True)
class TranslationResponse:
    original: str
    natural_translation: str
    direct_translation: str
    chunk_pairs: tuple[ChunkPair, ...]
    literal_parts: tuple[LiteralPart, ...]


def serialize_literal_parts(parts: Iterable[LiteralPart]) -> list[dict[str, str]]:
    return [part.to_dict() for part in parts]


def serialize_partial(partial: PartialTranslation) -> dict[str, object]:
    return {
        "original": partial.original,
        "naturalTranslation": partial.natural_translation,
        "directTranslation": partial.direct_translation,
        "literalParts": serialize_literal_parts(partial.literal_parts),
        "chunkPairs": [pair.to_dict() for pair in partial.chunk_pairs],
        "isComplete": partial.is_complete,
    }


def serialize_response(response: TranslationResponse) -> dict[str, object]:
    return {
        "original": response.original,
        "naturalTranslation": response.natural_translation,
        "directTranslation": response.direct_translation,
        "chunkPairs": [pair.to_dict() for pair in response.chunk_pairs],
        "literalParts": serialize_literal_parts(response.literal_parts),
    }


def _require_str(payload: Mapping[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise PayloadError(f"{key} must be a string.")
    return value


def deserialize_literal_parts(data: object) -> list[LiteralPart]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise PayloadError("literalParts must be a list.")
    parts: list[LiteralPart] = []
    for entry in data:
        if not isinstance(entry, Mapping):
            raise PayloadError("literalParts entries must be objects.")
        kind = entry.get("type")
        content = _require_str(entry, "content")
        if kind == TextPart.kind:
            parts.append(TextPart(content))
        elif kind == WordPart.kind:
            parts.append(WordPart(content, _require_str(entry, "sourceWord")))
        else:
            raise PayloadError(f"Unknown literal part type: {kind!r}")
    return parts


def _deserialize_chunk_pairs(data: object) -> list[ChunkPair]:
    if not isinstance(data, list):
        raise PayloadError("chunkPairs must be a list.")
    pairs: list[ChunkPair] = []
    for entry in data:
        if not isinstance(entry, Mapping):
            raise PayloadError("chunkPairs entries must be objects.")
        pairs.append(ChunkPair(_require_str(entry, "original"), _require_str(entry, "translation")))
    return pairs


def deserialize_response(payload: object) -> TranslationResponse:
    """Validate a client-supplied translation payload into a ``TranslationResponse``."""
    if not isinstance(payload, Mapping):
        raise PayloadError("Translation payload must be an object.")
    return TranslationResponse(
        original=_require_str(payload, "original"),
        natural_translation=_require_str(payload, "naturalTranslation"),
        direct_translation=_require_str(payload, "directTranslation"),
        chunk_pairs=tuple(_deserialize_chunk_pairs(payload.get("chunkPairs"))),
        literal_parts=tuple(deserialize_literal_parts(payload.get("literalParts"))),
    )


def _optional_str(payload: Mapping[str, object], key: str) -> str | None:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise PayloadError(f"{key} must be a string or null.")


def deserialize_partial(payload: object) -> PartialTranslation:
    """Like ``deserialize_response`` but accepts a snapshot of a live stream."""
    if not isinstance(payload, Mapping):
        raise PayloadError("Translation payload must be an object.")
    is_complete = payload.get("isComplete", False)
    if not isinstance(is_complete, bool):
        raise PayloadError("isComplete must be a boolean.")
    chunk_pairs = payload.get("chunkPairs")
    return PartialTranslation(
        original=_require_str(payload, "original"),
        natural_translation=_optional_str(payload, "naturalTranslation"),
        direct_translation=_optional_str(payload, "directTranslation"),
        literal_parts=deserialize_literal_parts(payload.get("literalParts")),
        chunk_pairs=_deserialize_chunk_pairs(chunk_pairs) if chunk_pairs is not None else [],
        is_complete=is_complete,
    )
