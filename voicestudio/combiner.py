"""Merging of per-chunk transcription results."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

from .models import Segment, TranscriptionResult


def _shift(segment: Segment, offset: float) -> Segment:
    if not offset:
        return segment
    return replace(
        segment,
        start=None if segment.start is None else segment.start + offset,
        end=None if segment.end is None else segment.end + offset,
    )


def combine_results(results: Sequence[TranscriptionResult]) -> TranscriptionResult:
    """Join chunk results into one transcript on a single timeline.

    Chunk timestamps start at zero, so every chunk after the first is shifted
    by the accumulated end time of the previous chunks' final segments. The
    nominal chunk length is not used.
    """

    if not results:
        return TranscriptionResult.empty()
    if len(results) == 1:
        return results[0]

    text = " ".join(result.text for result in results)
    segments: List[Segment] = []
    offset = 0.0
    for result in results:
        segments.extend(_shift(segment, offset) for segment in result.segments)
        if result.segments and result.segments[-1].end is not None:
            offset += result.segments[-1].end

    segments.sort(key=lambda seg: seg.start if seg.start is not None else 0.0)

    first = results[0]
    return TranscriptionResult(
        text=text,
        confidence=sum(r.confidence for r in results) / len(results),
        language=first.language,
        segments=tuple(segments),
        provider=first.provider,
        model=first.model,
        metadata={"chunks": len(results)},
        raw=[r.raw for r in results],
    )
