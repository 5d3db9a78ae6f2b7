from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Iterable, Iterator
from uuid import uuid4

from .locator import LocatedChunk
from .logging_utils import debug_log
from .models import TranslationResponse

__all__ = [
    "Rating",
    "CardState",
    "ReviewLog",
    "DraftFlashcard",
    "Flashcard",
    "DRAG_MEDIA_TYPE",
    "serialize_drag_payload",
    "parse_drag_payload",
    "drafts_from_translation",
    "create_flashcard",
]

DRAG_MEDIA_TYPE = "application/json"
INITIAL_DIFFICULTY = 5.0


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class CardState(IntEnum):
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


@dataclass
class ReviewLog:
    rating: Rating
    state: CardState
    due: int
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    review: int


@dataclass(frozen=True)
class DraftFlashcard:
    target_word: str
    translation: str


@dataclass
class Flashcard:
    """A vocabulary card with the scheduling fields a review queue needs."""

    id: str
    target_word: str
    translation: str
    created_at: int
    due: int
    stability: float = 0.0
    difficulty: float = INITIAL_DIFFICULTY
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    last_review: int = 0
    review_log: list[ReviewLog] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["targetWord"] = payload.pop("target_word")
        payload["createdAt"] = payload.pop("created_at")
        payload["state"] = int(self.state)
        payload["review_log"] = [
            {**entry, "rating": int(entry["rating"]), "state": int(entry["state"])}
            for entry in payload["review_log"]
        ]
        return payload


def serialize_drag_payload(item: LocatedChunk | DraftFlashcard) -> str:
    if isinstance(item, LocatedChunk):
        target_word, translation = item.chunk, item.translation
    else:
        target_word, translation = item.target_word, item.translation
    return json.dumps({"targetWord": target_word, "translation": translation}, ensure_ascii=False)


def parse_drag_payload(raw: str | bytes | dict[str, object]) -> DraftFlashcard | None:
    """Read a dropped chunk back; anything unusable yields ``None``."""
    data: object = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            debug_log("flashcards", f"failed to parse drop data: {exc}")
            return None
    if not isinstance(data, dict):
        return None
    target_word = data.get("targetWord")
    translation = data.get("translation")
    if not isinstance(target_word, str) or not isinstance(translation, str):
        return None
    if not target_word or not translation:
        return None
    return DraftFlashcard(target_word=target_word, translation=translation)


def _word_key(word: str) -> str:
    return word.strip().casefold()


def drafts_from_translation(
    response: TranslationResponse,
    existing: Iterable[str] = (),
) -> Iterator[DraftFlashcard]:
    seen = {_word_key(word) for word in existing}
    for pair in response.chunk_pairs:
        key = _word_key(pair.original)
        if not key or key in seen:
            continue
        seen.add(key)
        yield DraftFlashcard(target_word=pair.original, translation=pair.translation)


def create_flashcard(draft: DraftFlashcard, now: int | None = None) -> Flashcard:
    if now is None:
        now = int(time.time() * 1000)
    return Flashcard(
        id=str(uuid4()),
        target_word=draft.target_word,
        translation=draft.translation,
        created_at=now,
        due=now,
    )
