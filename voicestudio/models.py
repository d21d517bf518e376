"""Dataclasses describing transcription requests, results and stored audio."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class Provider(str, Enum):
    OPENAI = "openai"
    DEEPGRAM = "deepgram"
    GEMINI = "gemini"


DEFAULT_MODELS: Dict[Provider, str] = {
    Provider.OPENAI: "whisper-1",
    Provider.DEEPGRAM: "nova-3",
    Provider.GEMINI: "gemini-2.5-flash",
}

TOPIC_MODES = ("strict", "extended", "default")

TOPIC_PRESETS: Dict[str, List[str]] = {
    "medical": ["medicine", "doctor", "surgeon", "nurse", "patient", "diagnosis", "treatment", "symptoms"],
    "business": ["meeting", "project", "deadline", "budget", "strategy", "client", "revenue", "marketing"],
    "education": ["student", "teacher", "lesson", "homework", "exam", "grade", "curriculum", "learning"],
    "legal": ["law", "court", "judge", "lawyer", "case", "evidence", "contract", "litigation"],
    "technology": ["software", "development", "programming", "database", "security", "cloud", "AI", "API"],
}

# camelCase keys sent by the browser client
_PAYLOAD_KEYS = {
    "detectLanguage": "detect_language",
    "customTopicMode": "custom_topic_mode",
    "customTopics": "custom_topics",
    "includeTimestamps": "include_timestamps",
    "speakerLabels": "speaker_labels",
}

SpeakerId = Union[int, str]


@dataclass(slots=True)
class TranscriptionOptions:
    """Settings chosen before a transcription request."""

    provider: Provider = Provider.OPENAI
    model: str = ""
    language: str = "en"
    diarize: bool = True
    sentiment: bool = True
    topics: bool = True
    detect_language: bool = False
    custom_topic_mode: str = "default"
    custom_topics: List[str] = field(default_factory=list)
    include_timestamps: bool = True
    speaker_labels: bool = True
    punctuation: bool = True

    def __post_init__(self) -> None:
        self.provider = Provider(self.provider)
        if not self.model:
            self.model = DEFAULT_MODELS[self.provider]
        if self.custom_topic_mode not in TOPIC_MODES:
            raise ValueError(f"Unknown topic mode: {self.custom_topic_mode}")

    def with_provider(self, provider: Union[Provider, str]) -> "TranscriptionOptions":
        """Switch provider, resetting the model to that provider's default."""
        provider = Provider(provider)
        return replace(self, provider=provider, model=DEFAULT_MODELS[provider])

    def add_topic(self, topic: str) -> "TranscriptionOptions":
        topic = topic.strip()
        if not topic or topic in self.custom_topics:
            return self
        return replace(self, custom_topics=[*self.custom_topics, topic])

    def remove_topic(self, topic: str) -> "TranscriptionOptions":
        return replace(self, custom_topics=[t for t in self.custom_topics if t != topic])

    def add_preset_topics(self, preset: str) -> "TranscriptionOptions":
        merged = list(dict.fromkeys([*self.custom_topics, *TOPIC_PRESETS.get(preset, [])]))
        return replace(self, custom_topics=merged)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TranscriptionOptions":
        """Build options from a JSON payload using either camelCase or snake_case keys."""
        known = {f for f in cls.__dataclass_fields__}
        kwargs: Dict[str, Any] = {}
        for key, value in payload.items():
            name = _PAYLOAD_KEYS.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class Segment:
    text: str
    start: Optional[float] = None
    end: Optional[float] = None
    speaker: Optional[SpeakerId] = None
    confidence: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Paragraph:
    text: str
    start: Optional[float] = None
    end: Optional[float] = None
    speaker: Optional[SpeakerId] = None
    sentiment: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Topic:
    topic: str
    confidence: float


@dataclass(frozen=True, slots=True)
class SentimentSpan:
    sentiment: str
    confidence: float
    start: Optional[float] = None
    end: Optional[float] = None
    text: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OverallSentiment:
    sentiment: str
    confidence: float
    distribution: Dict[str, int]


@dataclass(frozen=True, slots=True)
class Sentiment:
    overall: OverallSentiment
    segments: Tuple[SentimentSpan, ...] = ()


@dataclass(frozen=True, slots=True)
class TimestampMark:
    """A bracketed ``[mm:ss]`` token found somewhere in free-form text."""

    time: str
    position: int


@dataclass(frozen=True, slots=True)
class TranscriptionResult:
    """Provider independent transcription result."""

    text: str = ""
    confidence: float = 0.0
    language: Optional[str] = None
    speakers: Tuple[SpeakerId, ...] = ()
    segments: Tuple[Segment, ...] = ()
    paragraphs: Tuple[Paragraph, ...] = ()
    topics: Tuple[Topic, ...] = ()
    sentiment: Optional[Sentiment] = None
    timestamps: Tuple[TimestampMark, ...] = ()
    provider: Optional[str] = None
    model: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Any = None

    @classmethod
    def empty(cls, raw: Any = None, provider: Optional[str] = None, model: Optional[str] = None) -> "TranscriptionResult":
        return cls(raw=raw, provider=provider, model=model)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class StoredRecording:
    """An audio blob held by a recording store."""

    url: str
    pathname: str
    size: int
    uploaded_at: datetime
    content_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "pathname": self.pathname,
            "size": self.size,
            "uploadedAt": self.uploaded_at.isoformat(),
            "contentType": self.content_type,
        }


@dataclass(slots=True)
class Config:
    """User configuration stored on disk."""

    default_provider: str = Provider.OPENAI.value
    language: str = "en"
    openai_api_key: Optional[str] = None
    deepgram_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    max_chunk_seconds: float = 100.0
    recordings_dir: Optional[str] = None
    api_timeout: Optional[float] = None
