from __future__ import annotations

import codecs
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

from .logging_utils import debug_log
from .models import PartialTranslation, TranslationResponse
from .parser import finalize_translation, parse_streaming

__all__ = ["StreamSession", "iter_partials"]


class StreamSession:
    """
    Accumulates one streamed response at a time and re-parses it per chunk.

    Every ``begin`` starts a new generation and abandons the previous one;
    chunks fed with a stale generation number are ignored, so a reader left
    over from a superseded request can never overwrite newer output.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._original = ""
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.latest: PartialTranslation | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def buffer(self) -> str:
        return self._buffer

    def begin(self, original: str) -> int:
        self._generation += 1
        self._original = original
        self._buffer = ""
        self._decoder.reset()
        self.latest = PartialTranslation(original=original)
        debug_log("stream", f"generation {self._generation} started")
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def feed(self, generation: int, chunk: str | bytes) -> PartialTranslation | None:
        if not self.is_current(generation):
            debug_log(
                "stream",
                f"dropping chunk for generation {generation} (current {self._generation})",
            )
            return None
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        self.latest = parse_streaming(self._buffer, self._original)
        return self.latest

    def finish(self, generation: int) -> TranslationResponse | None:
        if not self.is_current(generation):
            return None
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._buffer += tail
            self.latest = parse_streaming(self._buffer, self._original)
        if self.latest is None:
            return None
        return finalize_translation(self.latest)

    def consume(self, chunks: Iterable[str | bytes], original: str) -> Iterator[PartialTranslation]:
        generation = self.begin(original)
        for chunk in chunks:
            partial = self.feed(generation, chunk)
            if partial is None:
                return
            yield partial

    async def aconsume(
        self,
        chunks: AsyncIterable[str | bytes],
        original: str,
    ) -> AsyncIterator[PartialTranslation]:
        generation = self.begin(original)
        async for chunk in chunks:
            partial = self.feed(generation, chunk)
            if partial is None:
                return
            yield partial


def iter_partials(chunks: Iterable[str | bytes], original: str) -> Iterator[PartialTranslation]:
    return StreamSession().consume(chunks, original)
