"""Conversion of provider responses into :class:`TranscriptionResult`."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Protocol

from . import heuristics
from .models import (
    OverallSentiment,
    Paragraph,
    Provider,
    Segment,
    Sentiment,
    SentimentSpan,
    Topic,
    TranscriptionOptions,
    TranscriptionResult,
)

SENTIMENT_CLASSES = ("positive", "negative", "neutral")
GEMINI_CONFIDENCE = 0.85


class ResponseNormalizer(Protocol):
    """Common interface for provider specific normalizers."""

    def normalize(self, raw: Any, options: TranscriptionOptions) -> TranscriptionResult:
        """Return the canonical result for a raw provider response."""


def overall_sentiment(spans: List[Dict[str, Any]]) -> Optional[OverallSentiment]:
    """Majority vote over segment labels.

    Ties go to the first class holding the highest count in the order
    positive, negative, neutral. The confidence is the plain mean of every
    segment's score.
    """

    if not spans:
        return None
    counts = {label: 0 for label in SENTIMENT_CLASSES}
    for span in spans:
        label = span.get("sentiment")
        if label in counts:
            counts[label] += 1
    best = SENTIMENT_CLASSES[0]
    for label in SENTIMENT_CLASSES[1:]:
        if counts[label] > counts[best]:
            best = label
    confidence = sum(span.get("sentiment_score") or 0.0 for span in spans) / len(spans)
    return OverallSentiment(sentiment=best, confidence=confidence, distribution=counts)


def _paragraph_text(paragraph: Dict[str, Any]) -> str:
    if paragraph.get("text"):
        return paragraph["text"]
    sentences = paragraph.get("sentences") or []
    return " ".join(s.get("text", "") for s in sentences if s.get("text"))


class DeepgramNormalizer:
    """Map the nested Deepgram ``/v1/listen`` JSON body."""

    def normalize(self, raw: Any, options: TranscriptionOptions) -> TranscriptionResult:
        provider = Provider.DEEPGRAM.value
        results = (raw or {}).get("results") if isinstance(raw, dict) else None
        channels = (results or {}).get("channels") or []
        if not channels:
            logging.debug("Deepgram response has no channels")
            return TranscriptionResult.empty(raw, provider, options.model)
        channel = channels[0] or {}
        alternatives = channel.get("alternatives") or []
        if not alternatives or not alternatives[0]:
            logging.debug("Deepgram response has no alternatives")
            return TranscriptionResult.empty(raw, provider, options.model)
        best = alternatives[0]

        speakers = []
        segments = []
        for word in best.get("words") or []:
            speaker = word.get("speaker")
            if speaker is not None and speaker not in speakers:
                speakers.append(speaker)
            segments.append(
                Segment(
                    text=word.get("punctuated_word") or word.get("word", ""),
                    start=word.get("start"),
                    end=word.get("end"),
                    speaker=speaker,
                    confidence=word.get("confidence"),
                )
            )

        paragraphs = [
            Paragraph(
                text=_paragraph_text(p),
                start=p.get("start"),
                end=p.get("end"),
                speaker=p.get("speaker"),
                sentiment=p.get("sentiment"),
            )
            for p in (best.get("paragraphs") or {}).get("paragraphs") or []
        ]

        sentiment = None
        spans = (results.get("sentiment") or {}).get("segments") or []
        if spans:
            sentiment = Sentiment(
                overall=overall_sentiment(spans),
                segments=tuple(
                    SentimentSpan(
                        sentiment=s.get("sentiment", "neutral"),
                        confidence=s.get("sentiment_score") or 0.0,
                        start=s.get("start"),
                        end=s.get("end"),
                        text=s.get("text"),
                    )
                    for s in spans
                ),
            )

        metadata = results.get("metadata") or (raw.get("metadata") or {})
        language = metadata.get("detected_language") or channel.get("detected_language")

        return TranscriptionResult(
            text=best.get("transcript") or "",
            confidence=best.get("confidence") or 0.0,
            language=language,
            speakers=tuple(sorted(speakers, key=_speaker_key)),
            segments=tuple(segments),
            paragraphs=tuple(paragraphs),
            topics=tuple(self._topics(results.get("topics") or {})),
            sentiment=sentiment,
            provider=provider,
            model=options.model,
            metadata=metadata,
            raw=raw,
        )

    @staticmethod
    def _topics(block: Dict[str, Any]) -> List[Topic]:
        entries = list(block.get("topics") or [])
        for segment in block.get("segments") or []:
            entries.extend(segment.get("topics") or [])
        topics: Dict[str, Topic] = {}
        for entry in entries:
            name = entry.get("topic")
            if name and name not in topics:
                topics[name] = Topic(topic=name, confidence=entry.get("confidence_score") or 0.0)
        return list(topics.values())


def _speaker_key(speaker: Any):
    # numeric labels sort before textual ones
    return (isinstance(speaker, str), speaker)


class GeminiNormalizer:
    """Recover structure from Gemini's plain text answer."""

    def __init__(self, topic_jitter=None) -> None:
        self._topic_jitter = topic_jitter

    def normalize(self, raw: Any, options: TranscriptionOptions) -> TranscriptionResult:
        text = raw if isinstance(raw, str) else ""
        segments, speakers = heuristics.split_speaker_lines(text)
        paragraphs = [Paragraph(text=s.text, speaker=s.speaker) for s in segments if s.text]
        return TranscriptionResult(
            text=text,
            confidence=GEMINI_CONFIDENCE,
            language=heuristics.detect_language(text),
            speakers=tuple(speakers),
            segments=tuple(segments),
            paragraphs=tuple(paragraphs),
            topics=tuple(heuristics.extract_topics(text, jitter=self._topic_jitter)),
            sentiment=heuristics.analyse_sentiment(text),
            timestamps=tuple(heuristics.find_timestamps(text)),
            provider=Provider.GEMINI.value,
            model=options.model,
            raw={"text": text},
        )


class WhisperNormalizer:
    """Map an OpenAI ``verbose_json`` transcription."""

    def normalize(self, raw: Any, options: TranscriptionOptions) -> TranscriptionResult:
        if not isinstance(raw, dict):
            return TranscriptionResult.empty(raw, Provider.OPENAI.value, options.model)
        segments = []
        probabilities = []
        for seg in raw.get("segments") or []:
            segments.append(Segment(text=(seg.get("text") or "").strip(), start=seg.get("start"), end=seg.get("end")))
            if seg.get("avg_logprob") is not None:
                probabilities.append(min(1.0, math.exp(seg["avg_logprob"])))
        confidence = sum(probabilities) / len(probabilities) if probabilities else 0.0
        return TranscriptionResult(
            text=(raw.get("text") or "").strip(),
            confidence=confidence,
            language=raw.get("language"),
            segments=tuple(segments),
            provider=Provider.OPENAI.value,
            model=options.model,
            metadata={"duration": raw["duration"]} if raw.get("duration") is not None else {},
            raw=raw,
        )


NORMALIZERS: Dict[Provider, ResponseNormalizer] = {
    Provider.OPENAI: WhisperNormalizer(),
    Provider.DEEPGRAM: DeepgramNormalizer(),
    Provider.GEMINI: GeminiNormalizer(),
}


def normalize(raw: Any, options: TranscriptionOptions) -> TranscriptionResult:
    """Normalize ``raw`` with the normalizer registered for ``options.provider``."""

    return NORMALIZERS[options.provider].normalize(raw, options)
