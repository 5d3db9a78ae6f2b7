from __future__ import annotations

from .models import LiteralPart, TextPart, WordPart
from .tags import scan_entries

__all__ = ["tokenize_literal"]


def tokenize_literal(text: str) -> list[LiteralPart]:
    """
    Split a literal translation into plain text and tagged word parts.

    Text between complete ``<w=SOURCE>TARGET</w>`` entries is kept verbatim.
    An entry still being streamed at the end contributes the plain text in
    front of it, plus a word part once both its source and some target text
    are known.
    """
    scan = scan_entries(text)
    parts: list[LiteralPart] = []
    cursor = 0
    for entry in scan.entries:
        if entry.start > cursor:
            parts.append(TextPart(text[cursor : entry.start]))
        parts.append(WordPart(entry.target, entry.source))
        cursor = entry.end

    pending = scan.pending
    if pending is not None:
        if pending.start > cursor:
            parts.append(TextPart(text[cursor : pending.start]))
        if pending.source and pending.target:
            parts.append(WordPart(pending.target, pending.source))
    elif cursor < len(text):
        parts.append(TextPart(text[cursor:]))
    return parts