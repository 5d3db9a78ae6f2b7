from __future__ import annotations

import os
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Iterator, Mapping

import anthropic
from anthropic.lib.streaming import MessageStream

from .logging_utils import debug_log

__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_MAX_TOKENS",
    "TranslationServiceError",
    "TranslationServiceUnavailableError",
    "ClientSettings",
    "TranslationClient",
    "build_prompt",
]

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 2000

PROMPT_TEMPLATE = """You are a language learning assistant. Translate the following text into English using XML format.

Text to translate: "{text}"

Respond with ONLY this XML structure (no other text):

<idio>Natural, idiomatic English translation that reads smoothly</idio>
<words>
<w=word1_in_source>word1_in_english</w>
<w=word2_in_source>word2_in_english</w>
...more word pairs...
</words>
<literal>Tagged literal translation with each word wrapped in its source tag</literal>

Rules:
- <idio>: A natural, fluent English translation
- <words>: Map each meaningful lexical item (word/phrase) from source to English. Focus on content words. The source word goes in the = attribute, the English translation goes inside the tag.
- <literal>: A direct translation where EACH translated word/phrase is wrapped with <w=source>word</w> tags matching the words section. Non-content words (articles, prepositions) stay untagged.

Example for "今日のおやつどうしようか。":
<idio>What snack do you want today?</idio>
<words>
<w=今日>today</w>
<w=おやつ>snack</w>
<w=どうしよう>what to do</w>
</words>
<literal><w=どうしよう>What to do</w> for <w=今日>today</w>'s <w=おやつ>snack</w>?</literal>

Output ONLY the XML, nothing else."""


class TranslationServiceError(RuntimeError):
    """Raised when the text-generation service returns an unexpected response."""


class TranslationServiceUnavailableError(ConnectionError):
    """Raised when the text-generation service is unreachable."""


def build_prompt(text: str) -> str:
    return PROMPT_TEMPLATE.format(text=text)


@dataclass(slots=True)
class ClientSettings:
    api_key: str | None = None
    base_url: str | None = None
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = 60.0
    max_retries: int = 2

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClientSettings":
        if environ is None:
            environ = os.environ
        max_tokens = DEFAULT_MAX_TOKENS
        raw_tokens = environ.get("LINGUASCAFFOLD_MAX_TOKENS")
        if raw_tokens:
            try:
                max_tokens = int(raw_tokens)
            except ValueError as exc:
                raise ValueError(
                    f"LINGUASCAFFOLD_MAX_TOKENS must be an integer, got {raw_tokens!r}"
                ) from exc
        return cls(
            api_key=environ.get("ANTHROPIC_API_KEY") or None,
            base_url=environ.get("LINGUASCAFFOLD_BASE_URL") or None,
            model=environ.get("LINGUASCAFFOLD_MODEL") or DEFAULT_MODEL,
            max_tokens=max_tokens,
        )


def _status_message(exc: anthropic.APIStatusError) -> str:
    return f"Translation request failed with status {exc.status_code}: {exc.message}"


class TranslationClient:
    """
    Streams translations from the Messages API through the ``anthropic`` SDK.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        self.settings = settings or ClientSettings.from_env()
        if client is None:
            client = anthropic.Anthropic(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=self.settings.max_retries,
            )
        self._client = client

    def open_stream(self, text: str) -> Iterator[str]:
        """
        Start a translation request and return an iterator over its text.

        Connection and status failures before the first event surface here.
        Failures later in the stream are raised from the returned iterator,
        mapped to the same exception types. The iterator closes the HTTP
        response when it is exhausted or closed.
        """
        stack = ExitStack()
        try:
            stream = stack.enter_context(
                self._client.messages.stream(
                    model=self.settings.model,
                    max_tokens=self.settings.max_tokens,
                    messages=[{"role": "user", "content": build_prompt(text)}],
                )
            )
        except anthropic.APIConnectionError as exc:
            raise TranslationServiceUnavailableError(
                f"Failed to contact translation service: {exc}"
            ) from exc
        except anthropic.APIStatusError as exc:
            raise TranslationServiceError(_status_message(exc)) from exc
        debug_log("upstream", f"streaming translation for {len(text)} chars with {self.settings.model}")
        return self._iter_text(stack, stream)

    def _iter_text(self, stack: ExitStack, stream: MessageStream) -> Iterator[str]:
        with stack:
            try:
                yield from stream.text_stream
            except anthropic.APIConnectionError as exc:
                raise TranslationServiceUnavailableError("Translation stream was interrupted") from exc
            except anthropic.APIStatusError as exc:
                raise TranslationServiceError(_status_message(exc)) from exc

    def translate_text(self, text: str) -> str:
        return "".join(self.open_stream(text))
