"""Routing of audio chunks to a transcription backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from .audio import AudioBlob, chunk_audio
from .combiner import combine_results
from .config import load_config
from .models import Config, Provider, TranscriptionOptions, TranscriptionResult
from .normalizer import normalize
from .transcriber import TranscriptionBackend, TranscriptionError, get_backend


async def transcribe_chunks(
    chunks: Sequence[AudioBlob],
    options: TranscriptionOptions,
    backend: Optional[TranscriptionBackend] = None,
    config: Optional[Config] = None,
) -> TranscriptionResult:
    """Transcribe ``chunks`` with the provider selected in ``options``.

    Deepgram and Gemini accept whole files, so only the first chunk is sent
    to them. OpenAI chunks are sent concurrently and merged; if any request
    fails the whole batch fails and the finished chunks are dropped.
    """

    if not chunks:
        raise TranscriptionError("No audio chunks to transcribe")
    backend = backend or get_backend(options.provider, config)

    if options.provider is not Provider.OPENAI:
        logging.debug("Sending %s to %s (%s)", chunks[0].filename, options.provider.value, options.model)
        raw = await backend.transcribe(chunks[0], options)
        return normalize(raw, options)

    logging.debug("Sending %d chunk(s) to openai (%s)", len(chunks), options.model)
    raws = await asyncio.gather(*(backend.transcribe(chunk, options) for chunk in chunks))
    return combine_results([normalize(raw, options) for raw in raws])


async def transcribe_audio(
    audio: AudioBlob,
    options: TranscriptionOptions,
    backend: Optional[TranscriptionBackend] = None,
    config: Optional[Config] = None,
) -> TranscriptionResult:
    """Chunk ``audio`` when the provider needs it, then transcribe."""

    config = config or load_config()
    if options.provider is Provider.OPENAI:
        chunks = chunk_audio(audio, config.max_chunk_seconds)
    else:
        chunks = [audio]
    return await transcribe_chunks(chunks, options, backend=backend, config=config)
