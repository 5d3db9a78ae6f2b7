from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Sequence

__all__ = [
    "IDIOMATIC_TAG",
    "WORDS_TAG",
    "LITERAL_TAG",
    "BLOCK_TAGS",
    "ENTRY_TAG",
    "TokenKind",
    "TagToken",
    "BlockSpan",
    "WordEntry",
    "PendingEntry",
    "EntryScan",
    "scan_tags",
    "find_block",
    "scan_entries",
]

IDIOMATIC_TAG = "idio"
WORDS_TAG = "words"
LITERAL_TAG = "literal"
BLOCK_TAGS = (IDIOMATIC_TAG, WORDS_TAG, LITERAL_TAG)

ENTRY_TAG = "w"
_ENTRY_PREFIX = "w="
_ENTRY_CLOSE = "</w>"


class TokenKind(Enum):
    TEXT = "text"
    OPEN = "open"
    CLOSE = "close"
    FRAGMENT = "fragment"


class _State(Enum):
    TEXT = auto()
    OPEN_TAG = auto()
    CLOSE_TAG = auto()


@dataclass(frozen=True)
class TagToken:
    """
    One lexical unit of a tagged model response.

    ``body`` holds the plain text for TEXT tokens, the text between the
    brackets for OPEN tokens (``w=chat``), the tag name for CLOSE tokens
    (``w``) and the raw characters for a FRAGMENT cut off by the end of
    the buffer (``<w=ch``).
    """

    kind: TokenKind
    body: str
    start: int
    end: int

    @property
    def is_entry_opener(self) -> bool:
        if self.kind is TokenKind.OPEN:
            return self.body.startswith(_ENTRY_PREFIX)
        if self.kind is TokenKind.FRAGMENT:
            return self.body.startswith("<" + _ENTRY_PREFIX)
        return False

    @property
    def entry_source(self) -> str:
        if self.kind is TokenKind.FRAGMENT:
            return self.body[len(_ENTRY_PREFIX) + 1 :]
        return self.body[len(_ENTRY_PREFIX) :]


@dataclass(frozen=True)
class BlockSpan:
    name: str
    content: str
    closed: bool
    content_start: int


@dataclass(frozen=True)
class WordEntry:
    source: str
    target: str
    start: int
    end: int


@dataclass(frozen=True)
class PendingEntry:
    source: str
    target: str
    start: int
    opener_closed: bool


@dataclass
class EntryScan:
    entries: list[WordEntry]
    pending: PendingEntry | None


def _append_text(tokens: list[TagToken], text: str, start: int, end: int) -> None:
    if end <= start:
        return
    if tokens and tokens[-1].kind is TokenKind.TEXT and tokens[-1].end == start:
        start = tokens.pop().start
    tokens.append(TagToken(TokenKind.TEXT, text[start:end], start, end))


def scan_tags(text: str) -> list[TagToken]:
    """
    Split ``text`` into text and tag tokens in a single left-to-right pass.

    A ``<`` met while a tag is still open abandons that tag: its characters
    become plain text and a new tag starts at the ``<``. Whatever tag is
    still open when the buffer ends is returned as a trailing FRAGMENT.
    """
    tokens: list[TagToken] = []
    state = _State.TEXT
    mark = 0
    for index, char in enumerate(text):
        if state is _State.TEXT:
            if char == "<":
                _append_text(tokens, text, mark, index)
                mark = index
                state = _State.OPEN_TAG
        elif char == "<":
            _append_text(tokens, text, mark, index)
            mark = index
            state = _State.OPEN_TAG
        elif char == ">":
            if state is _State.OPEN_TAG:
                tokens.append(TagToken(TokenKind.OPEN, text[mark + 1 : index], mark, index + 1))
            else:
                tokens.append(TagToken(TokenKind.CLOSE, text[mark + 2 : index], mark, index + 1))
            mark = index + 1
            state = _State.TEXT
        elif char == "/" and state is _State.OPEN_TAG and index == mark + 1:
            state = _State.CLOSE_TAG
    if state is _State.TEXT:
        _append_text(tokens, text, mark, len(text))
    else:
        tokens.append(TagToken(TokenKind.FRAGMENT, text[mark:], mark, len(text)))
    return tokens


def find_block(
    text: str,
    name: str,
    tokens: Sequence[TagToken] | None = None,
) -> BlockSpan | None:
    """Locate the first ``<name>`` block, closed or still streaming."""
    if tokens is None:
        tokens = scan_tags(text)
    opener: TagToken | None = None
    for token in tokens:
        if opener is None:
            if token.kind is TokenKind.OPEN and token.body == name:
                opener = token
        elif token.kind is TokenKind.CLOSE and token.body == name:
            return BlockSpan(name, text[opener.end : token.start], True, opener.end)
    if opener is None:
        return None
    return BlockSpan(name, text[opener.end :], False, opener.end)


def _plain_target(token: TagToken) -> bool:
    # abandoned tags come back as text starting with "<"; targets never hold one
    return token.kind is TokenKind.TEXT and "<" not in token.body


def _match_entry(tokens: Sequence[TagToken], index: int) -> tuple[WordEntry | None, int]:
    opener = tokens[index]
    if opener.kind is not TokenKind.OPEN or not opener.is_entry_opener:
        return None, index + 1
    source = opener.entry_source
    if not source:
        return None, index + 1
    cursor = index + 1
    target = ""
    if cursor < len(tokens) and _plain_target(tokens[cursor]):
        target = tokens[cursor].body
        cursor += 1
    if cursor < len(tokens):
        closer = tokens[cursor]
        if closer.kind is TokenKind.CLOSE and closer.body == ENTRY_TAG:
            return WordEntry(source, target, opener.start, closer.end), cursor + 1
    return None, index + 1


def _match_pending(tokens: Sequence[TagToken]) -> PendingEntry | None:
    for position in range(len(tokens) - 1, -1, -1):
        if tokens[position].is_entry_opener:
            break
    else:
        return None
    opener = tokens[position]
    if opener.kind is TokenKind.FRAGMENT:
        return PendingEntry(opener.entry_source, "", opener.start, False)
    rest = list(tokens[position + 1 :])
    target = ""
    if rest and _plain_target(rest[0]):
        target = rest.pop(0).body
    if not rest:
        return PendingEntry(opener.entry_source, target, opener.start, True)
    if len(rest) == 1 and rest[0].kind is TokenKind.FRAGMENT and _ENTRY_CLOSE.startswith(rest[0].body):
        return PendingEntry(opener.entry_source, target, opener.start, True)
    return None


def scan_entries(text: str) -> EntryScan:
    """
    Collect complete ``<w=SOURCE>TARGET</w>`` entries in document order and
    the in-progress entry, if any, trailing the last complete one.
    """
    tokens = scan_tags(text)
    entries: list[WordEntry] = []
    tail = 0
    index = 0
    while index < len(tokens):
        entry, index = _match_entry(tokens, index)
        if entry is not None:
            entries.append(entry)
            tail = index
    return EntryScan(entries=entries, pending=_match_pending(tokens[tail:]))
