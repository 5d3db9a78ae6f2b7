from __future__ import annotations

from typing import Iterable

from linguascaffold.literal import tokenize_literal
from linguascaffold.models import LiteralPart, TextPart, WordPart, serialize_literal_parts


def _join(parts: Iterable[LiteralPart]) -> str:
    return "".join(part.content for part in parts)


def test_tokenize_literal_splits_words_and_text() -> None:
    parts = tokenize_literal("<w=Le chat>The cat</w> is <w=dort>sleeping</w>.")
    assert parts == [
        WordPart("The cat", "Le chat"),
        TextPart(" is "),
        WordPart("sleeping", "dort"),
        TextPart("."),
    ]
    assert _join(parts) == "The cat is sleeping."


def test_plain_literal_round_trips() -> None:
    text = "Nothing tagged here, just prose."
    assert tokenize_literal(text) == [TextPart(text)]
    assert _join(tokenize_literal(text)) == text


def test_empty_literal_has_no_parts() -> None:
    assert tokenize_literal("") == []


def test_entry_with_empty_target_is_kept() -> None:
    assert tokenize_literal("<w=a></w>") == [WordPart("", "a")]


def test_in_progress_entry_shows_partial_word() -> None:
    assert tokenize_literal("The <w=chat>ca") == [TextPart("The "), WordPart("ca", "chat")]


def test_in_progress_entry_without_target_emits_only_leading_text() -> None:
    assert tokenize_literal("The <w=chat>") == [TextPart("The ")]
    assert tokenize_literal("The <w=ch") == [TextPart("The ")]


def test_cut_off_closer_keeps_the_word() -> None:
    assert tokenize_literal("<w=chat>cat</") == [WordPart("cat", "chat")]


def test_bare_angle_bracket_tail_stays_text() -> None:
    assert tokenize_literal("The <w") == [TextPart("The <w")]


def test_stray_bracket_before_pending_entry_stays_in_text() -> None:
    assert tokenize_literal("a < b <w=x>y") == [TextPart("a < b "), WordPart("y", "x")]


def test_serialized_parts_use_client_field_names() -> None:
    payload = serialize_literal_parts(tokenize_literal("<w=chat>cat</w>!"))
    assert payload == [
        {"type": "word", "content": "cat", "sourceWord": "chat"},
        {"type": "text", "content": "!"},
    ]
