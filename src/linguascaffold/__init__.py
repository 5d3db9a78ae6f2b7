from .flashcards import DraftFlashcard, Flashcard, create_flashcard, parse_drag_payload
from .literal import tokenize_literal
from .locator import LocatedChunk, build_segments, locate_chunks, locate_translation
from .merge import HISTORY_LIMIT, MergedChunk, merge_alignments, remember_translation
from .models import (
    ChunkPair,
    PartialTranslation,
    TextPart,
    TranslationResponse,
    WordPart,
)
from .parser import finalize_translation, parse_streaming
from .stream import StreamSession

__all__ = [
    "ChunkPair",
    "TextPart",
    "WordPart",
    "PartialTranslation",
    "TranslationResponse",
    "parse_streaming",
    "finalize_translation",
    "tokenize_literal",
    "LocatedChunk",
    "locate_chunks",
    "locate_translation",
    "build_segments",
    "HISTORY_LIMIT",
    "MergedChunk",
    "merge_alignments",
    "remember_translation",
    "StreamSession",
    "DraftFlashcard",
    "Flashcard",
    "create_flashcard",
    "parse_drag_payload",
]
