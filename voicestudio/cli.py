"""Command line interface for the voicestudio application."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import config as config_mod
from .audio import AudioBlob
from .config import ConfigError, api_key_for, recordings_root
from .dispatcher import transcribe_audio
from .models import DEFAULT_MODELS, Provider, TranscriptionOptions, TranscriptionResult
from .storage import StorageError, open_store, recording_metadata
from .transcriber import TranscriptionError

app = typer.Typer(add_completion=False, help="Multi-provider voice transcription studio.")
recordings_app = typer.Typer(help="Manage stored audio recordings.")
app.add_typer(recordings_app, name="recordings")

console = Console()


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _format_time(value: Optional[float]) -> str:
    if value is None:
        return "-"
    minutes, seconds = divmod(value, 60)
    return f"{int(minutes):02d}:{seconds:05.2f}"


def render_result(result: TranscriptionResult, out: Console) -> None:
    """Print a transcription result as text and tables."""

    out.print(f"[bold]Provider:[/bold] {result.provider or '-'} ({result.model or '-'})")
    out.print(f"[bold]Language:[/bold] {result.language or '-'}   [bold]Confidence:[/bold] {result.confidence:.2f}")
    out.print()
    out.print(result.text or "(No speech detected)")

    if result.speakers:
        out.print()
        out.print("[bold]Speakers:[/bold] " + ", ".join(str(s) for s in result.speakers))

    timed = [s for s in result.segments if s.start is not None]
    if timed:
        rows = [p for p in result.paragraphs if p.start is not None] or timed
        table = Table(title="Segments")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Speaker")
        table.add_column("Text")
        for row in rows:
            speaker = "-" if row.speaker is None else str(row.speaker)
            table.add_row(_format_time(row.start), _format_time(row.end), speaker, row.text)
        out.print(table)

    if result.topics:
        table = Table(title="Topics")
        table.add_column("Topic")
        table.add_column("Confidence", justify="right")
        for topic in result.topics:
            table.add_row(topic.topic, f"{topic.confidence:.2f}")
        out.print(table)

    if result.sentiment is not None:
        overall = result.sentiment.overall
        counts = ", ".join(f"{label}={count}" for label, count in overall.distribution.items())
        out.print(f"[bold]Sentiment:[/bold] {overall.sentiment} ({overall.confidence:.2f}; {counts})")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging."),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format="%(levelname)s %(message)s")


@app.command()
def transcribe(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Path to the audio file."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="openai, deepgram or gemini."),
    model: Optional[str] = typer.Option(None, "--model", help="Override the provider's default model."),
    language: Optional[str] = typer.Option(None, "--language", help="Language code, or 'auto'."),
    diarize: bool = typer.Option(True, "--diarize/--no-diarize", help="Label distinct speakers."),
    sentiment: bool = typer.Option(True, "--sentiment/--no-sentiment", help="Score sentiment."),
    topics: bool = typer.Option(True, "--topics/--no-topics", help="Detect topics."),
    detect_language: bool = typer.Option(False, "--detect-language", help="Let the provider detect the language."),
    topic: List[str] = typer.Option([], "--topic", help="Custom topic (repeatable)."),
    preset: Optional[str] = typer.Option(None, "--preset", help="Add a preset topic list."),
    topic_mode: str = typer.Option("default", "--topic-mode", help="strict, extended or default."),
    as_json: bool = typer.Option(False, "--json", help="Print the normalized result as JSON."),
    save: bool = typer.Option(False, "--save", help="Also store the audio in the recordings library."),
) -> None:
    """Transcribe an audio file with one of the supported providers."""

    try:
        cfg = config_mod.load_config()
        options = TranscriptionOptions(
            provider=provider or cfg.default_provider,
            language=language or cfg.language,
            diarize=diarize,
            sentiment=sentiment,
            topics=topics,
            detect_language=detect_language,
            custom_topic_mode=topic_mode,
        )
    except (ConfigError, ValueError) as exc:
        _fail(str(exc))
    if model:
        options.model = model
    for name in topic:
        options = options.add_topic(name)
    if preset:
        options = options.add_preset_topics(preset)

    blob = AudioBlob.from_path(audio)
    try:
        result = asyncio.run(transcribe_audio(blob, options, config=cfg))
    except (TranscriptionError, ValueError) as exc:
        _fail(str(exc))

    if as_json:
        payload = result.to_dict()
        payload.pop("raw", None)
        typer.echo(json.dumps(payload, indent=2, default=str))
    else:
        render_result(result, console)

    if save:
        record = open_store(recordings_root(cfg)).save(blob.data, f"upload_{audio.name}", blob.content_type)
        typer.secho(f"\nSaved recording as {record.pathname}.", fg=typer.colors.BLUE)


@app.command()
def providers() -> None:
    """List providers, their default models and whether a key is configured."""

    cfg = config_mod.load_config()
    for item in Provider:
        state = "configured" if api_key_for(item, cfg) else "missing key"
        marker = "*" if item.value == cfg.default_provider else " "
        typer.echo(f"{marker} {item.value:<9} {DEFAULT_MODELS[item]:<20} {state}")


@recordings_app.command("list")
def list_recordings() -> None:
    """List stored recordings, newest first."""

    store = open_store(recordings_root(config_mod.load_config()))
    records = store.list()
    if not records:
        typer.echo("No recordings found. Use `voicestudio recordings save` to add one.")
        return
    table = Table()
    for column in ("Name", "Type", "Size", "Date", "Path"):
        table.add_column(column)
    for record in records:
        meta = recording_metadata(record)
        table.add_row(meta["display_name"], meta["type"], meta["size"], meta["date"], record.pathname)
    console.print(table)


@recordings_app.command("save")
def save_recording(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Path to the audio file."),
) -> None:
    """Copy an audio file into the recordings library."""

    blob = AudioBlob.from_path(audio)
    store = open_store(recordings_root(config_mod.load_config()))
    record = store.save(blob.data, f"upload_{audio.name}", blob.content_type)
    typer.secho(f"Saved recording as {record.pathname}.", fg=typer.colors.BLUE)


@recordings_app.command("delete")
def delete_recording(
    pathname: str = typer.Argument(..., help="Path of the recording, as shown by `recordings list`."),
) -> None:
    """Delete a stored recording."""

    store = open_store(recordings_root(config_mod.load_config()))
    try:
        deleted = store.delete(pathname)
    except StorageError as exc:
        _fail(str(exc))
    if not deleted:
        _fail(f"Recording {pathname} not found.")
    typer.secho(f"Recording {pathname} deleted.", fg=typer.colors.BLUE)


@app.command()
def config(
    default_provider: Optional[str] = typer.Option(None, help="Provider used when none is given."),
    language: Optional[str] = typer.Option(None, help="Default language code."),
    openai_api_key: Optional[str] = typer.Option(None, help="API key for OpenAI Whisper."),
    deepgram_api_key: Optional[str] = typer.Option(None, help="API key for Deepgram."),
    gemini_api_key: Optional[str] = typer.Option(None, help="API key for Gemini."),
    max_chunk_seconds: Optional[float] = typer.Option(None, help="Longest audio chunk sent to OpenAI."),
    recordings_dir: Optional[str] = typer.Option(None, help="Directory holding stored recordings."),
    api_timeout: Optional[float] = typer.Option(None, help="HTTP timeout (seconds) for provider calls."),
    show: bool = typer.Option(False, "--show", help="Display the active configuration."),
) -> None:
    """Update or inspect configuration settings."""

    updates: Dict[str, object] = {
        key: value
        for key, value in {
            "default_provider": default_provider,
            "language": language,
            "openai_api_key": openai_api_key,
            "deepgram_api_key": deepgram_api_key,
            "gemini_api_key": gemini_api_key,
            "max_chunk_seconds": max_chunk_seconds,
            "recordings_dir": recordings_dir,
            "api_timeout": api_timeout,
        }.items()
        if value is not None
    }

    if show or not updates:
        try:
            cfg = config_mod.load_config()
        except ConfigError as exc:
            _fail(str(exc))
        typer.echo(json.dumps(asdict(cfg), indent=2, default=str))
        return

    try:
        config_mod.update_config(**updates)
    except ConfigError as exc:
        _fail(str(exc))
    typer.secho("Configuration updated.", fg=typer.colors.BLUE)


if __name__ == "__main__":  # pragma: no cover
    app()
