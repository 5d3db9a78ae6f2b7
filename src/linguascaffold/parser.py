from __future__ import annotations

from .literal import tokenize_literal
from .logging_utils import debug_log
from .models import ChunkPair, PartialTranslation, TranslationResponse
from .tags import (
    IDIOMATIC_TAG,
    LITERAL_TAG,
    WORDS_TAG,
    BlockSpan,
    find_block,
    scan_entries,
    scan_tags,
)

__all__ = ["PENDING_TRANSLATION", "parse_streaming", "finalize_translation"]

PENDING_TRANSLATION = "..."


def _chunk_pairs_from_block(block: BlockSpan) -> list[ChunkPair]:
    scan = scan_entries(block.content)
    pairs = [ChunkPair(entry.source, entry.target) for entry in scan.entries]
    if block.closed:
        return pairs
    pending = scan.pending
    if pending is None or not pending.opener_closed or not pending.source:
        return pairs
    if any(pair.original == pending.source for pair in pairs):
        return pairs
    pairs.append(ChunkPair(pending.source, pending.target or PENDING_TRANSLATION))
    return pairs


def parse_streaming(text: str, original: str) -> PartialTranslation:
    """
    Parse the accumulated model output into a ``PartialTranslation``.

    ``text`` may end anywhere, including inside a tag. The result depends
    only on the arguments, so callers simply re-parse the whole buffer after
    every chunk. Malformed pieces are skipped rather than reported.
    """
    tokens = scan_tags(text)
    result = PartialTranslation(original=original)

    idiomatic = find_block(text, IDIOMATIC_TAG, tokens)
    if idiomatic is not None:
        value = idiomatic.content.strip()
        result.natural_translation = value if idiomatic.closed else (value or None)

    words = find_block(text, WORDS_TAG, tokens)
    if words is not None:
        result.chunk_pairs = _chunk_pairs_from_block(words)

    literal = find_block(text, LITERAL_TAG, tokens)
    if literal is not None:
        content = literal.content.strip()
        if literal.closed:
            result.direct_translation = content
            result.literal_parts = tokenize_literal(content)
            result.is_complete = True
        elif content:
            result.direct_translation = content
            result.literal_parts = tokenize_literal(content)

    debug_log(
        "parser",
        f"{len(text)} chars -> {len(result.chunk_pairs)} pairs, "
        f"{len(result.literal_parts)} literal parts, complete={result.is_complete}",
    )
    return result


def finalize_translation(partial: PartialTranslation) -> TranslationResponse | None:
    if not partial.is_complete:
        return None
    if not partial.natural_translation or not partial.direct_translation or not partial.chunk_pairs:
        return None
    return TranslationResponse(
        original=partial.original,
        natural_translation=partial.natural_translation,
        direct_translation=partial.direct_translation,
        chunk_pairs=tuple(partial.chunk_pairs),
        literal_parts=tuple(partial.literal_parts),
    )
