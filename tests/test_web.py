from __future__ import annotations

import asyncio
import json
from typing import Iterator

import pytest
from fastapi import HTTPException

from linguascaffold.upstream import (
    ClientSettings,
    TranslationServiceError,
    TranslationServiceUnavailableError,
)
from linguascaffold.web import WebConfig, create_app

FULL_RESPONSE = (
    "<idio>The black cat sleeps</idio>"
    "<words><w=chat>cat</w><w=noir>black</w><w=dort>sleeps</w></words>"
    "<literal>The <w=chat>cat</w> <w=noir>black</w> <w=dort>sleeps</w></literal>"
)


def _find_route(app, path: str, method: str):
    method = method.upper()
    for route in app.router.routes:
        if getattr(route, "path", None) == path and method in getattr(route, "methods", set()):
            return route.endpoint
    raise RuntimeError(f"Route {method} {path} not found")


def _failing_after(pieces: list[str], error: Exception) -> Iterator[str]:
    yield from pieces
    raise error


class _FakeClient:
    def __init__(
        self,
        settings: ClientSettings,
        pieces: list[str],
        error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.settings = settings
        self.pieces = pieces
        self.error = error
        self.stream_error = stream_error
        self.requested: list[str] = []

    def open_stream(self, text: str) -> Iterator[str]:
        self.requested.append(text)
        if self.error is not None:
            raise self.error
        if self.stream_error is not None:
            return _failing_after(self.pieces, self.stream_error)
        return iter(self.pieces)


def _app_with_client(
    pieces: list[str],
    error: Exception | None = None,
    stream_error: Exception | None = None,
):
    clients: list[_FakeClient] = []

    def factory(settings: ClientSettings) -> _FakeClient:
        client = _FakeClient(settings, pieces, error, stream_error)
        clients.append(client)
        return client

    app = create_app(WebConfig(api_key="secret", model="test-model", client_factory=factory))
    return app, clients


def _collect_body(response) -> str:
    async def collect() -> str:
        parts = []
        async for chunk in response.body_iterator:
            parts.append(chunk.decode("utf-8") if isinstance(chunk, bytes) else chunk)
        return "".join(parts)

    return asyncio.run(collect())


def _response_payload(original: str, pairs: list[tuple[str, str]]) -> dict[str, object]:
    return {
        "original": original,
        "naturalTranslation": original,
        "directTranslation": original,
        "chunkPairs": [{"original": source, "translation": target} for source, target in pairs],
        "literalParts": [],
    }


def test_translate_endpoint_streams_raw_text() -> None:
    pieces = ["<idio>The cat", " sleeps</idio>"]
    app, clients = _app_with_client(pieces)
    route = _find_route(app, "/api/translate", "POST")

    response = route({"text": "Le chat dort"})

    assert response.media_type.startswith("text/plain")
    assert _collect_body(response) == "".join(pieces)
    assert clients[0].requested == ["Le chat dort"]
    assert clients[0].settings.model == "test-model"


def test_translate_endpoint_requires_text() -> None:
    app, clients = _app_with_client([])
    route = _find_route(app, "/api/translate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        route({"text": "   "})
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Text is required"
    assert clients == []


def test_translate_endpoint_maps_upstream_failure() -> None:
    app, _ = _app_with_client([], error=TranslationServiceUnavailableError("down"))
    route = _find_route(app, "/api/translate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        route({"text": "Le chat dort"})
    assert excinfo.value.status_code == 502


def test_partials_endpoint_emits_one_snapshot_per_chunk() -> None:
    pieces = [FULL_RESPONSE[:40], FULL_RESPONSE[40:]]
    app, _ = _app_with_client(pieces)
    route = _find_route(app, "/api/translate/partials", "POST")

    body = _collect_body(route({"text": "Le chat noir dort"}))
    snapshots = [json.loads(line) for line in body.splitlines()]

    assert len(snapshots) == 2
    assert snapshots[0]["isComplete"] is False
    assert snapshots[-1]["isComplete"] is True
    assert snapshots[-1]["naturalTranslation"] == "The black cat sleeps"


def test_parse_endpoint_returns_partial() -> None:
    app = create_app()
    route = _find_route(app, "/api/parse", "POST")
    response = route({"text": "<words><w=chat>cat</w><w=noir>", "original": "Le chat noir"})
    payload = json.loads(response.body)
    assert payload["chunkPairs"] == [
        {"original": "chat", "translation": "cat"},
        {"original": "noir", "translation": "..."},
    ]
    assert payload["isComplete"] is False

    with pytest.raises(HTTPException):
        route({"text": 3})


def test_highlight_endpoint_layers_current_over_history() -> None:
    app = create_app()
    route = _find_route(app, "/api/highlight", "POST")
    paragraph = "Le chat noir dort."
    current = {
        "original": paragraph,
        "naturalTranslation": None,
        "directTranslation": None,
        "literalParts": [],
        "chunkPairs": [{"original": "chat", "translation": "cat"}],
        "isComplete": False,
    }
    history = [_response_payload("chat noir dort", [("chat noir", "black cat"), ("dort", "sleeps")])]

    payload = json.loads(route({"paragraph": paragraph, "current": current, "history": history}).body)

    assert [segment["text"] for segment in payload["segments"]] == ["Le ", "chat", " noir ", "dort", "."]
    chunks = payload["chunks"]
    assert [(chunk["chunk"], chunk["provenance"], chunk["isCurrent"]) for chunk in chunks] == [
        ("chat", 0, True),
        ("dort", 1, False),
    ]
    assert chunks[0]["opacity"] == 0.25
    assert json.loads(chunks[1]["dragPayload"]) == {"targetWord": "dort", "translation": "sleeps"}
    assert payload["segments"][1]["chunk"]["translation"] == "cat"


def test_highlight_endpoint_rejects_malformed_history() -> None:
    app = create_app()
    route = _find_route(app, "/api/highlight", "POST")
    with pytest.raises(HTTPException) as excinfo:
        route({"paragraph": "Le chat", "history": [{"original": "chat"}]})
    assert excinfo.value.status_code == 400


def test_flashcard_draft_endpoint() -> None:
    app = create_app()
    route = _find_route(app, "/api/flashcards/draft", "POST")
    card = json.loads(route({"targetWord": "chat", "translation": "cat"}).body)
    assert card["targetWord"] == "chat"
    assert card["translation"] == "cat"
    assert card["state"] == 0

    with pytest.raises(HTTPException) as excinfo:
        route({"targetWord": "chat"})
    assert excinfo.value.status_code == 400


def test_flashcards_from_translation_skips_existing() -> None:
    app = create_app()
    route = _find_route(app, "/api/flashcards/from-translation", "POST")
    translation = _response_payload("Le chat noir", [("chat", "cat"), ("noir", "black")])
    payload = json.loads(route({"translation": translation, "existing": ["CHAT"]}).body)
    assert [card["targetWord"] for card in payload["flashcards"]] == ["noir"]


def test_partials_endpoint_reports_mid_stream_failure() -> None:
    app, _ = _app_with_client(["<idio>The cat"], stream_error=TranslationServiceError("overloaded"))
    route = _find_route(app, "/api/translate/partials", "POST")

    body = _collect_body(route({"text": "Le chat dort"}))
    records = [json.loads(line) for line in body.splitlines()]

    assert records[0]["naturalTranslation"] == "The cat"
    assert records[-1] == {"error": "Translation failed", "details": "overloaded"}


def test_translate_endpoint_ends_cleanly_on_mid_stream_failure() -> None:
    app, _ = _app_with_client(["<idio>The cat"], stream_error=TranslationServiceUnavailableError("reset"))
    route = _find_route(app, "/api/translate", "POST")

    assert _collect_body(route({"text": "Le chat dort"})) == "<idio>The cat"
