from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, Iterator

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from .flashcards import (
    create_flashcard,
    drafts_from_translation,
    parse_drag_payload,
    serialize_drag_payload,
)
from .locator import HighlightSegment, build_segments
from .logging_utils import debug_log
from .merge import HISTORY_LIMIT, MergedChunk, merge_alignments
from .models import (
    PartialTranslation,
    PayloadError,
    TranslationResponse,
    deserialize_partial,
    deserialize_response,
    serialize_partial,
)
from .parser import parse_streaming
from .stream import StreamSession
from .upstream import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    ClientSettings,
    TranslationClient,
    TranslationServiceError,
    TranslationServiceUnavailableError,
)


@dataclass(slots=True)
class WebConfig:
    api_key: str | None = None
    base_url: str | None = None
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = 60.0
    history_limit: int = HISTORY_LIMIT
    client_factory: Callable[[ClientSettings], TranslationClient] | None = None

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            api_key=self.api_key,
            base_url=self.base_url,
            model=self.model,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )


PLAIN_TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
NDJSON_MEDIA_TYPE = "application/x-ndjson"
_UPSTREAM_ERRORS = (TranslationServiceUnavailableError, TranslationServiceError)


def _require_text(payload: dict[str, object], key: str, message: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=message)
    return value


def _merged_chunk_payload(item: MergedChunk) -> dict[str, object]:
    located = item.located
    return {
        "chunk": located.chunk,
        "chunkIndex": located.chunk_index,
        "absolutePosition": located.absolute_position,
        "length": located.length,
        "translation": located.translation,
        "provenance": located.provenance,
        "isCurrent": located.is_current,
        "color": item.color,
        "opacity": item.opacity,
        "background": item.background,
        "dragPayload": serialize_drag_payload(located),
    }


def _segments_payload(
    segments: list[HighlightSegment],
    merged: list[MergedChunk],
) -> list[dict[str, object]]:
    by_span = {(item.located.absolute_position, item.located.end): item for item in merged}
    payload: list[dict[str, object]] = []
    for segment in segments:
        entry: dict[str, object] = {
            "text": segment.text,
            "start": segment.start,
            "end": segment.end,
            "chunk": None,
        }
        if segment.chunk is not None:
            entry["chunk"] = _merged_chunk_payload(by_span[(segment.start, segment.end)])
        payload.append(entry)
    return payload


def create_app(config: WebConfig | None = None) -> FastAPI:
    if config is None:
        config = WebConfig()

    app = FastAPI(title="LinguaScaffold")
    app.state.config = config

    def _client() -> TranslationClient:
        settings = config.client_settings()
        if config.client_factory is not None:
            return config.client_factory(settings)
        return TranslationClient(settings)

    def _open_stream(text: str) -> Iterator[str]:
        try:
            return _client().open_stream(text)
        except _UPSTREAM_ERRORS as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.post("/api/translate")
    def api_translate(payload: dict[str, object] = Body(...)) -> StreamingResponse:
        text = _require_text(payload, "text", "Text is required")
        chunks = _open_stream(text)

        def body() -> Iterator[str]:
            try:
                yield from chunks
            except _UPSTREAM_ERRORS as exc:
                # headers are already sent; the client sees a truncated body
                debug_log("web", f"translation stream failed: {exc}")

        return StreamingResponse(body(), media_type=PLAIN_TEXT_MEDIA_TYPE)

    @app.post("/api/translate/partials")
    def api_translate_partials(payload: dict[str, object] = Body(...)) -> StreamingResponse:
        text = _require_text(payload, "text", "Text is required")
        chunks = _open_stream(text)

        def lines() -> Iterator[str]:
            try:
                for partial in StreamSession().consume(chunks, text):
                    yield json.dumps(serialize_partial(partial), ensure_ascii=False) + "\n"
            except _UPSTREAM_ERRORS as exc:
                debug_log("web", f"translation stream failed: {exc}")
                failure = {"error": "Translation failed", "details": str(exc)}
                yield json.dumps(failure, ensure_ascii=False) + "\n"

        return StreamingResponse(lines(), media_type=NDJSON_MEDIA_TYPE)

    @app.post("/api/parse")
    def api_parse(payload: dict[str, object] = Body(...)) -> JSONResponse:
        text = payload.get("text")
        original = payload.get("original", "")
        if not isinstance(text, str):
            raise HTTPException(status_code=400, detail="text must be a string.")
        if not isinstance(original, str):
            raise HTTPException(status_code=400, detail="original must be a string.")
        return JSONResponse(serialize_partial(parse_streaming(text, original)))

    @app.post("/api/highlight")
    def api_highlight(payload: dict[str, object] = Body(...)) -> JSONResponse:
        paragraph = payload.get("paragraph")
        if not isinstance(paragraph, str):
            raise HTTPException(status_code=400, detail="paragraph must be a string.")
        history_payload = payload.get("history") or []
        if not isinstance(history_payload, list):
            raise HTTPException(status_code=400, detail="history must be a list.")
        current: PartialTranslation | None = None
        try:
            if payload.get("current") is not None:
                current = deserialize_partial(payload["current"])
            history = [deserialize_response(entry) for entry in history_payload]
        except PayloadError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        merged = merge_alignments(paragraph, current, history, limit=config.history_limit)
        segments = build_segments(paragraph, [item.located for item in merged])
        return JSONResponse(
            {
                "paragraph": paragraph,
                "segments": _segments_payload(segments, merged),
                "chunks": [_merged_chunk_payload(item) for item in merged],
            }
        )

    @app.post("/api/flashcards/draft")
    def api_flashcard_from_drop(payload: dict[str, object] = Body(...)) -> JSONResponse:
        draft = parse_drag_payload(payload)
        if draft is None:
            raise HTTPException(status_code=400, detail="targetWord and translation are required.")
        return JSONResponse(create_flashcard(draft).to_dict())

    @app.post("/api/flashcards/from-translation")
    def api_flashcards_from_translation(payload: dict[str, object] = Body(...)) -> JSONResponse:
        existing = payload.get("existing") or []
        if not isinstance(existing, list) or not all(isinstance(word, str) for word in existing):
            raise HTTPException(status_code=400, detail="existing must be a list of strings.")
        try:
            translation: TranslationResponse = deserialize_response(payload.get("translation"))
        except PayloadError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        cards = [create_flashcard(draft) for draft in drafts_from_translation(translation, existing)]
        return JSONResponse({"flashcards": [card.to_dict() for card in cards]})

    return app
