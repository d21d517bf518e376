"""Keyword heuristics applied to free-form transcripts.

Gemini answers with prose rather than structured data, so speakers, sentiment,
topics and language are recovered here with fixed word lists and regular
expressions. Every function is pure and deterministic unless a jitter source is
passed to :func:`extract_topics`.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Tuple

from .models import OverallSentiment, Segment, Sentiment, SpeakerId, TimestampMark, Topic

_SPEAKER_RE = re.compile(r"^(Speaker \d+|Person [A-Z]|[A-Z][a-z]+ \d*):(.+)")
_TIMESTAMP_RE = re.compile(r"\[(\d+:\d+(?:\.\d+)?)\]")
_TOPIC_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")

POSITIVE_WORDS = ("good", "great", "excellent", "amazing", "wonderful", "fantastic", "love", "like", "happy", "pleased")
NEGATIVE_WORDS = ("bad", "terrible", "awful", "hate", "dislike", "angry", "frustrated", "disappointed", "sad", "upset")

TOPIC_STOP_WORDS = frozenset(
    {"The", "This", "That", "And", "But", "Or", "So", "If", "When", "Where", "How", "What", "Who", "Why"}
)
MAX_TOPICS = 10
TOPIC_REPEAT_BONUS = 0.1

LANGUAGE_VOCABULARIES: Dict[str, frozenset] = {
    "en": frozenset({"the", "and", "is", "in", "to", "of", "a", "that", "it", "with", "for", "as", "was", "on", "are"}),
    "es": frozenset({"el", "la", "de", "que", "y", "en", "un", "es", "se", "no", "te", "lo", "le", "da", "su"}),
    "fr": frozenset({"le", "de", "et", "à", "un", "il", "être", "en", "avoir", "que", "pour", "dans", "ce", "son"}),
}
DEFAULT_LANGUAGE = "en"


def _midpoint_jitter() -> float:
    return 0.5


def split_speaker_lines(text: str) -> Tuple[List[Segment], List[SpeakerId]]:
    """Turn each non-blank line into a segment, picking up ``Speaker 1:`` style labels."""

    segments: List[Segment] = []
    speakers: Dict[SpeakerId, None] = {}
    for line in text.split("\n"):
        if not line.strip():
            continue
        match = _SPEAKER_RE.match(line)
        if match:
            speaker = match.group(1).strip()
            speakers.setdefault(speaker)
            segments.append(Segment(text=match.group(2).strip(), speaker=speaker))
        else:
            segments.append(Segment(text=line.strip()))
    return segments, list(speakers)


def find_timestamps(text: str) -> List[TimestampMark]:
    return [TimestampMark(time=m.group(1), position=m.start()) for m in _TIMESTAMP_RE.finditer(text)]


def analyse_sentiment(text: str) -> Sentiment:
    """Label text by counting positive and negative keywords.

    A word counts as a hit when a keyword is a substring of it, so ``loved``
    scores as positive. The confidence is ``|pos - neg| / words * 10`` capped
    at 0.9, which is a rough scale rather than a probability.
    """

    words = text.lower().split()
    positive = sum(1 for word in words if any(keyword in word for keyword in POSITIVE_WORDS))
    negative = sum(1 for word in words if any(keyword in word for keyword in NEGATIVE_WORDS))

    label = "neutral"
    if positive > negative:
        label = "positive"
    elif negative > positive:
        label = "negative"

    confidence = min(0.9, abs(positive - negative) / len(words) * 10) if words else 0.0
    distribution = {
        "positive": positive,
        "negative": negative,
        "neutral": max(0, len(words) - positive - negative),
    }
    return Sentiment(overall=OverallSentiment(sentiment=label, confidence=confidence, distribution=distribution))


def extract_topics(text: str, jitter: Optional[Callable[[], float]] = None) -> List[Topic]:
    """Rank capitalised phrases as candidate topics.

    Each distinct phrase starts at ``0.6 + jitter() * 0.3`` and gains 0.1 per
    repeat. Ranking uses the uncapped score and only the reported confidence
    is capped at 1.0. The default jitter is a constant, which keeps ranking
    stable; pass ``random.random`` for varied scores.
    """

    jitter = jitter or _midpoint_jitter
    scores: Dict[str, float] = {}
    for match in _TOPIC_RE.findall(text):
        if len(match) <= 2 or match in TOPIC_STOP_WORDS:
            continue
        if match in scores:
            scores[match] += TOPIC_REPEAT_BONUS
        else:
            scores[match] = 0.6 + jitter() * 0.3

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [Topic(topic=topic, confidence=round(min(1.0, score), 4)) for topic, score in ranked[:MAX_TOPICS]]


def detect_language(text: str) -> str:
    """Guess ``en``, ``es`` or ``fr`` from common function words."""

    words = text.lower().split()
    counts = {code: sum(1 for word in words if word in vocab) for code, vocab in LANGUAGE_VOCABULARIES.items()}
    best = max(counts.values())
    leaders = [code for code, count in counts.items() if count == best]
    if best == 0 or len(leaders) > 1:
        return DEFAULT_LANGUAGE
    return leaders[0]
