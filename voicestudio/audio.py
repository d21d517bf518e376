"""Audio blobs and duration based chunking."""

from __future__ import annotations

import io
import logging
import math
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

DEFAULT_CONTENT_TYPE = "audio/webm"
MAX_CHUNK_SECONDS = 100.0

_CONTENT_TYPES = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".webm": "audio/webm",
}


@dataclass(frozen=True, slots=True)
class AudioBlob:
    """Raw audio bytes together with their MIME type and a file name."""

    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE
    filename: str = "audio.webm"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_wav(self) -> bool:
        return self.data[:4] == b"RIFF" and self.data[8:12] == b"WAVE"

    @classmethod
    def from_path(cls, path: Path) -> "AudioBlob":
        path = Path(path)
        content_type = _CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)
        return cls(data=path.read_bytes(), content_type=content_type, filename=path.name)


def wav_duration(blob: AudioBlob) -> Optional[float]:
    """Return the duration in seconds of a WAV blob, or ``None`` for other formats."""

    if not blob.is_wav:
        return None
    try:
        with wave.open(io.BytesIO(blob.data), "rb") as reader:
            rate = reader.getframerate()
            return reader.getnframes() / rate if rate else None
    except (wave.Error, EOFError) as exc:
        logging.debug("Unreadable WAV header in %s: %s", blob.filename, exc)
        return None


def chunk_audio(blob: AudioBlob, max_chunk_seconds: float = MAX_CHUNK_SECONDS) -> List[AudioBlob]:
    """Split ``blob`` into pieces no longer than ``max_chunk_seconds``.

    Only WAV input is split, on frame boundaries. Compressed containers are
    returned whole because cutting them needs a decoder.
    """

    if max_chunk_seconds <= 0:
        raise ValueError("max_chunk_seconds must be positive")
    duration = wav_duration(blob)
    if duration is None or duration <= max_chunk_seconds:
        return [blob]

    with wave.open(io.BytesIO(blob.data), "rb") as reader:
        params = reader.getparams()
        frames_per_chunk = max(1, int(max_chunk_seconds * params.framerate))
        count = math.ceil(params.nframes / frames_per_chunk)
        stem = Path(blob.filename).stem
        chunks = []
        for index in range(count):
            frames = reader.readframes(frames_per_chunk)
            buffer = io.BytesIO()
            with wave.open(buffer, "wb") as writer:
                writer.setnchannels(params.nchannels)
                writer.setsampwidth(params.sampwidth)
                writer.setframerate(params.framerate)
                writer.writeframes(frames)
            chunks.append(
                AudioBlob(data=buffer.getvalue(), content_type="audio/wav", filename=f"{stem}_part{index + 1}.wav")
            )
    logging.debug("Split %s (%.1fs) into %d chunks", blob.filename, duration, len(chunks))
    return chunks
