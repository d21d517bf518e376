"""Remote transcription backends."""

from __future__ import annotations

import base64
import contextlib
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Tuple

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from .audio import AudioBlob
from .config import API_KEY_ENV, api_key_for, load_config
from .models import Config, Provider, TranscriptionOptions

DEEPGRAM_URL = "https://api.deepgram.com/v1/listen"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_PROVIDER_LABELS = {
    Provider.OPENAI: "OpenAI",
    Provider.DEEPGRAM: "Deepgram",
    Provider.GEMINI: "Gemini",
}


class TranscriptionError(RuntimeError):
    """Raised when a transcription request cannot be completed."""


class MissingCredentialError(TranscriptionError):
    """Raised when no API key is configured for a provider."""


class ProviderHTTPError(TranscriptionError):
    """Raised when a provider answers with a non-success status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranscriptionBackend(Protocol):
    """Common interface for transcription backends."""

    provider: Provider

    async def transcribe(self, audio: AudioBlob, options: TranscriptionOptions) -> Any:
        """Send ``audio`` to the provider and return its raw response."""


def _client_kwargs(timeout: Optional[float]) -> Dict[str, Any]:
    return {"timeout": timeout} if timeout is not None else {}


def _raise_for_status(
    response: httpx.Response,
    provider: Provider,
    extract: Callable[[Any], Optional[str]],
) -> None:
    if response.is_success:
        return
    message = f"{_PROVIDER_LABELS[provider]} API error: {response.status_code} {response.reason_phrase}"
    try:
        detail = extract(response.json())
    except ValueError:
        detail = None
    if detail:
        message = detail
    logging.warning("%s request failed (%s): %s", provider.value, response.status_code, response.text[:500])
    raise ProviderHTTPError(message, status_code=response.status_code)


class _HTTPBackend:
    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(**_client_kwargs(self._timeout)) as client:
            yield client


def deepgram_params(options: TranscriptionOptions) -> List[Tuple[str, str]]:
    """Query parameters for ``/v1/listen``."""

    def flag(value: bool) -> str:
        return "true" if value else "false"

    params = [
        ("model", options.model),
        ("smart_format", "true"),
        ("paragraphs", "true"),
        ("punctuate", "true"),
        ("diarize", flag(options.diarize)),
        ("sentiment", flag(options.sentiment)),
        ("topics", flag(options.topics)),
        ("detect_language", flag(options.detect_language)),
        ("language", options.language or "en"),
    ]
    if options.custom_topic_mode:
        params.append(("custom_topic_mode", options.custom_topic_mode))
    params.extend(("custom_topic", topic) for topic in options.custom_topics)
    return params


class DeepgramBackend(_HTTPBackend):
    """Pre-recorded audio through Deepgram's REST API."""

    provider = Provider.DEEPGRAM

    async def transcribe(self, audio: AudioBlob, options: TranscriptionOptions) -> Dict[str, Any]:
        async with self._session() as client:
            response = await client.post(
                DEEPGRAM_URL,
                params=deepgram_params(options),
                headers={
                    "Authorization": f"Token {self._api_key}",
                    "Content-Type": audio.content_type or "audio/wav",
                },
                content=audio.data,
            )
        _raise_for_status(response, self.provider, lambda body: body.get("err_msg") if isinstance(body, dict) else None)
        return response.json()


def build_gemini_prompt(options: TranscriptionOptions) -> str:
    prompt = "Generate a complete, detailed transcript of this audio."
    if options.include_timestamps:
        prompt += " Include approximate timestamps where possible."
    if options.speaker_labels:
        prompt += " Identify and label different speakers if multiple people are speaking."
    if options.punctuation:
        prompt += " Include proper punctuation and formatting."
    if options.language and options.language != "auto":
        prompt += f" The audio is in {options.language}."
    return prompt


def gemini_error_message(message: str) -> str:
    """Translate well known Gemini failures into friendlier text."""

    if "API key" in message:
        return "Invalid Gemini API key"
    if "quota" in message:
        return "Gemini API quota exceeded"
    if "safety" in message:
        return "Content blocked by Gemini safety filters"
    return message


def _gemini_error(body: Any) -> Optional[str]:
    if isinstance(body, dict) and isinstance(body.get("error"), dict) and body["error"].get("message"):
        return gemini_error_message(body["error"]["message"])
    return None


class GeminiBackend(_HTTPBackend):
    """Audio understanding through the Gemini ``generateContent`` endpoint."""

    provider = Provider.GEMINI

    async def transcribe(self, audio: AudioBlob, options: TranscriptionOptions) -> str:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": build_gemini_prompt(options)},
                        {
                            "inline_data": {
                                "mime_type": audio.content_type or "audio/webm",
                                "data": base64.b64encode(audio.data).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }
        async with self._session() as client:
            response = await client.post(
                GEMINI_URL.format(model=options.model),
                headers={"x-goog-api-key": self._api_key},
                json=payload,
            )
        _raise_for_status(response, self.provider, _gemini_error)

        body = response.json()
        if (body.get("promptFeedback") or {}).get("blockReason"):
            raise TranscriptionError(gemini_error_message("safety"))
        candidates = body.get("candidates") or []
        parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise TranscriptionError("Transcription failed or returned empty")
        return text


def _openai_error(exc: APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    return f"OpenAI API error: {exc.status_code} {exc.response.reason_phrase}"


class OpenAIBackend:
    """Whisper transcription through the official OpenAI SDK."""

    provider = Provider.OPENAI

    def __init__(self, api_key: str, client: Optional[AsyncOpenAI] = None, timeout: Optional[float] = None) -> None:
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncOpenAI]:
        if self._client is not None:
            yield self._client
            return
        # single attempt per request, the SDK retries twice by default
        async with AsyncOpenAI(api_key=self._api_key, max_retries=0, **_client_kwargs(self._timeout)) as client:
            yield client

    async def transcribe(self, audio: AudioBlob, options: TranscriptionOptions) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        if options.language and options.language != "auto":
            extra["language"] = options.language
        try:
            async with self._session() as client:
                response = await client.audio.transcriptions.create(
                    model=options.model,
                    file=(audio.filename, audio.data, audio.content_type),
                    response_format="verbose_json",
                    timestamp_granularities=["segment"],
                    **extra,
                )
        except APIStatusError as exc:
            logging.warning("openai request failed (%s): %s", exc.status_code, exc)
            raise ProviderHTTPError(_openai_error(exc), status_code=exc.status_code) from exc
        except APIConnectionError as exc:
            raise TranscriptionError(f"Transcription failed: {exc}") from exc
        return response.model_dump()


_BACKENDS = {
    Provider.OPENAI: OpenAIBackend,
    Provider.DEEPGRAM: DeepgramBackend,
    Provider.GEMINI: GeminiBackend,
}


def get_backend(provider: Provider, config: Optional[Config] = None) -> TranscriptionBackend:
    """Return the backend for ``provider`` using credentials from ``config``."""

    provider = Provider(provider)
    config = config or load_config()
    api_key = api_key_for(provider, config)
    if not api_key:
        raise MissingCredentialError(
            f"{_PROVIDER_LABELS[provider]} API key not configured. "
            f"Please set {API_KEY_ENV[provider]} environment variable."
        )
    return _BACKENDS[provider](api_key, timeout=config.api_timeout)
