from __future__ import annotations

import argparse
import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Iterable, Iterator

import tomllib
import uvicorn
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .colors import generate_chunk_colors
from .logging_utils import build_uvicorn_log_config, set_debug_logging
from .merge import HISTORY_LIMIT
from .models import PartialTranslation, WordPart, serialize_partial
from .stream import StreamSession, iter_partials
from .upstream import (
    ClientSettings,
    TranslationClient,
    TranslationServiceError,
    TranslationServiceUnavailableError,
)
from .web import WebConfig, create_app


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("linguascaffold")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"linguascaffold {__version__}",
    )


def _add_debug_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging (parser snapshots, stream generations, upstream events).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description=(
            "Streamed translation parsing and word alignment. "
            "Use `linguascaffold parse`, `linguascaffold translate` or `linguascaffold web`."
        ),
    )
    _add_version_flag(ap)
    return ap


def build_parse_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Replay a saved tagged response through the streaming parser.",
    )
    _add_version_flag(ap)
    _add_debug_flag(ap)
    ap.add_argument(
        "input_path",
        help="Path to a file holding the raw model output, or '-' for stdin.",
    )
    ap.add_argument(
        "--original",
        default="",
        help="Source text the response translates (default: empty).",
    )
    ap.add_argument(
        "--chunk-size",
        type=int,
        default=0,
        help="Replay the response in chunks of this many characters (default: parse once).",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the final snapshot as JSON instead of a table.",
    )
    return ap


def build_translate_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Translate text with the configured model and render the stream live.",
    )
    _add_version_flag(ap)
    _add_debug_flag(ap)
    ap.add_argument("text", help="Source text to translate.")
    ap.add_argument(
        "--model",
        help="Override the model name (default: LINGUASCAFFOLD_MODEL or built-in default).",
    )
    ap.add_argument(
        "--base-url",
        help="Override the API base URL (default: LINGUASCAFFOLD_BASE_URL or the SDK default).",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the final snapshot as JSON instead of rendering live.",
    )
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Serve the translation, highlight and flashcard API.",
    )
    _add_version_flag(ap)
    _add_debug_flag(ap)
    ap.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=2047,
        help="Port for the web server (default: 2047).",
    )
    ap.add_argument(
        "--model",
        help="Override the model name used for /api/translate.",
    )
    ap.add_argument(
        "--history-limit",
        type=int,
        default=HISTORY_LIMIT,
        help=f"Number of earlier translations layered under the current one (default: {HISTORY_LIMIT}).",
    )
    return ap


def _split_chunks(text: str, size: int) -> Iterator[str]:
    if size <= 0:
        yield text
        return
    for start in range(0, len(text), size):
        yield text[start : start + size]


def render_partial(partial: PartialTranslation) -> Table:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold", no_wrap=True)
    table.add_column()
    status = "complete" if partial.is_complete else "streaming"
    table.add_row("Status", status)
    if partial.original:
        table.add_row("Original", partial.original)
    table.add_row("Natural", partial.natural_translation or "…")

    colors = generate_chunk_colors(len(partial.chunk_pairs))
    color_by_source: dict[str, str] = {}
    for pair, color in zip(partial.chunk_pairs, colors):
        color_by_source.setdefault(pair.original, color)

    literal = Text()
    for part in partial.literal_parts:
        if isinstance(part, WordPart):
            color = color_by_source.get(part.source_word, "default")
            literal.append(part.content, style=f"bold {color}")
        else:
            literal.append(part.content)
    table.add_row("Literal", literal if partial.literal_parts else Text("…"))

    for pair, color in zip(partial.chunk_pairs, colors):
        table.add_row("", Text.assemble((pair.original, f"bold {color}"), "  →  ", pair.translation))
    return table


def _emit_final(console: Console, partial: PartialTranslation | None, as_json: bool) -> None:
    if partial is None:
        return
    if as_json:
        print(json.dumps(serialize_partial(partial), ensure_ascii=False, indent=2))
    else:
        console.print(render_partial(partial))


def _run_parse(args: argparse.Namespace) -> int:
    if args.input_path == "-":
        raw = sys.stdin.read()
    else:
        input_path = Path(args.input_path).expanduser()
        if not input_path.exists():
            raise FileNotFoundError(f"Input path not found: {input_path}")
        raw = input_path.read_text(encoding="utf-8")

    console = Console()
    last: PartialTranslation | None = None
    chunks = _split_chunks(raw, args.chunk_size)
    for index, partial in enumerate(iter_partials(chunks, args.original), start=1):
        last = partial
        if args.chunk_size > 0 and not args.json:
            console.rule(f"chunk {index}")
            console.print(render_partial(partial))
    if args.chunk_size <= 0 or args.json:
        _emit_final(console, last, args.json)
    return 0 if last is not None and last.is_complete else 1


def _consume_live(
    console: Console,
    session: StreamSession,
    chunks: Iterable[str],
    original: str,
) -> PartialTranslation | None:
    last: PartialTranslation | None = None
    placeholder = render_partial(PartialTranslation(original=original))
    with Live(placeholder, console=console, refresh_per_second=12) as live:
        for partial in session.consume(chunks, original):
            last = partial
            live.update(render_partial(partial))
    return last


def _run_translate(args: argparse.Namespace) -> int:
    settings = ClientSettings.from_env()
    if args.model:
        settings.model = args.model
    if args.base_url:
        settings.base_url = args.base_url
    if not settings.api_key:
        raise SystemExit("ANTHROPIC_API_KEY is not set.")

    client = TranslationClient(settings)
    console = Console()
    session = StreamSession()
    try:
        chunks = client.open_stream(args.text)
        if args.json:
            last = None
            for partial in session.consume(chunks, args.text):
                last = partial
            _emit_final(console, last, True)
        else:
            last = _consume_live(console, session, chunks, args.text)
    except (TranslationServiceUnavailableError, TranslationServiceError) as exc:
        raise SystemExit(str(exc)) from exc
    return 0 if last is not None and last.is_complete else 1


def _run_web(args: argparse.Namespace) -> None:
    settings = ClientSettings.from_env()
    config = WebConfig(
        api_key=settings.api_key,
        base_url=settings.base_url,
        model=args.model or settings.model,
        max_tokens=settings.max_tokens,
        history_limit=args.history_limit,
    )
    app = create_app(config)
    print(f"Serving linguascaffold API on http://{args.host}:{args.port}/")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(app, host=args.host, port=args.port, log_config=build_uvicorn_log_config())


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "parse":
        parse_args = build_parse_parser().parse_args(argv[1:])
        set_debug_logging(parse_args.debug)
        return _run_parse(parse_args)
    if argv and argv[0] == "translate":
        translate_args = build_translate_parser().parse_args(argv[1:])
        set_debug_logging(translate_args.debug)
        return _run_translate(translate_args)
    if argv and argv[0] == "web":
        web_args = build_web_parser().parse_args(argv[1:])
        set_debug_logging(web_args.debug)
        _run_web(web_args)
        return 0

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    parser.error(f"unknown command: {argv[0]}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
