from __future__ import annotations

import asyncio
from typing import AsyncIterator, Iterator

from linguascaffold.models import ChunkPair
from linguascaffold.stream import StreamSession, iter_partials

PIECES = [
    "<idio>The cat sle",
    "eps</idio><words><w=chat>cat</w></words><lit",
    "eral><w=chat>cat</w> sleeps</literal>",
]


def test_session_reparses_accumulated_buffer() -> None:
    session = StreamSession()
    generation = session.begin("Le chat dort")
    first = session.feed(generation, PIECES[0])
    assert first is not None
    assert first.natural_translation == "The cat sle"

    for piece in PIECES[1:]:
        session.feed(generation, piece)
    assert session.buffer == "".join(PIECES)
    assert session.latest is not None
    assert session.latest.is_complete

    response = session.finish(generation)
    assert response is not None
    assert response.chunk_pairs == (ChunkPair("chat", "cat"),)


def test_superseded_generation_is_ignored() -> None:
    session = StreamSession()
    old = session.begin("first")
    session.feed(old, "<idio>old")
    new = session.begin("second")

    assert not session.is_current(old)
    assert session.feed(old, " text</idio>") is None
    assert session.finish(old) is None

    partial = session.feed(new, "<idio>new</idio>")
    assert partial is not None
    assert partial.original == "second"
    assert partial.natural_translation == "new"


def test_consume_stops_when_a_new_request_begins() -> None:
    session = StreamSession()

    def chunks() -> Iterator[str]:
        yield "<idio>one"
        session.begin("other")
        yield "</idio>"

    results = list(session.consume(chunks(), "first"))
    assert [partial.natural_translation for partial in results] == ["one"]
    assert session.buffer == ""


def test_bytes_split_inside_a_character_are_decoded() -> None:
    encoded = "<idio>café</idio>".encode("utf-8")
    split = encoded.index("é".encode("utf-8")) + 1
    partials = list(iter_partials([encoded[:split], encoded[split:]], "café"))
    assert partials[0].natural_translation == "caf"
    assert partials[-1].natural_translation == "café"


def test_aconsume_yields_partials() -> None:
    async def chunks() -> AsyncIterator[str]:
        for piece in PIECES:
            yield piece

    async def collect() -> list[bool]:
        session = StreamSession()
        return [partial.is_complete async for partial in session.aconsume(chunks(), "Le chat dort")]

    assert asyncio.run(collect()) == [False, False, True]
