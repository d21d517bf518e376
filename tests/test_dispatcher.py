import asyncio
import io
import wave

from voicestudio.audio import AudioBlob
from voicestudio.dispatcher import transcribe_audio, transcribe_chunks
from voicestudio.models import Config, Provider, TranscriptionOptions
from voicestudio.transcriber import MissingCredentialError, ProviderHTTPError, TranscriptionError


class RecordingBackend:
    """Returns a canned payload per chunk and remembers what it was sent."""

    def __init__(self, payloads, fail_on=None):
        self.payloads = payloads
        self.fail_on = fail_on
        self.sent = []

    async def transcribe(self, audio, options):
        index = len(self.sent)
        self.sent.append(audio)
        await asyncio.sleep(0)
        if index == self.fail_on:
            raise ProviderHTTPError("Rate limit reached", status_code=429)
        return self.payloads[index]


def make_wav(seconds, rate=8000):
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(rate)
        writer.writeframes(b"\x00\x00" * int(seconds * rate))
    return AudioBlob(data=buffer.getvalue(), content_type="audio/wav", filename="take.wav")


def chunks(count):
    return [AudioBlob(data=f"chunk{i}".encode(), filename=f"c{i}.webm") for i in range(count)]


def whisper_payload(text, end):
    return {"text": text, "segments": [{"start": 0.0, "end": end, "text": text}]}


def test_openai_chunks_are_sent_and_combined():
    backend = RecordingBackend([whisper_payload("one", 30.0), whisper_payload("two", 20.0)])
    result = asyncio.run(transcribe_chunks(chunks(2), TranscriptionOptions(provider=Provider.OPENAI), backend=backend))

    assert len(backend.sent) == 2
    assert result.text == "one two"
    assert [(s.start, s.end) for s in result.segments] == [(0.0, 30.0), (30.0, 50.0)]


def test_openai_single_chunk_short_circuits():
    backend = RecordingBackend([whisper_payload("solo", 4.0)])
    result = asyncio.run(transcribe_chunks(chunks(1), TranscriptionOptions(), backend=backend))

    assert result.text == "solo"
    assert result.raw == whisper_payload("solo", 4.0)


def test_one_failed_chunk_fails_the_batch():
    backend = RecordingBackend([whisper_payload("one", 1.0), None, whisper_payload("three", 1.0)], fail_on=1)

    try:
        asyncio.run(transcribe_chunks(chunks(3), TranscriptionOptions(), backend=backend))
    except ProviderHTTPError as exc:
        assert str(exc) == "Rate limit reached"
    else:
        raise AssertionError("A failed chunk must abort the whole transcription")


def test_deepgram_and_gemini_only_receive_first_chunk():
    deepgram = RecordingBackend([{"results": {"channels": []}}])
    result = asyncio.run(transcribe_chunks(chunks(3), TranscriptionOptions(provider="deepgram"), backend=deepgram))
    assert [c.filename for c in deepgram.sent] == ["c0.webm"]
    assert result.provider == "deepgram"

    gemini = RecordingBackend(["Speaker 1: Hello"])
    result = asyncio.run(transcribe_chunks(chunks(2), TranscriptionOptions(provider="gemini"), backend=gemini))
    assert len(gemini.sent) == 1
    assert result.speakers == ("Speaker 1",)


def test_no_chunks_is_an_error():
    try:
        asyncio.run(transcribe_chunks([], TranscriptionOptions(), backend=RecordingBackend([])))
    except TranscriptionError as exc:
        assert "No audio chunks" in str(exc)
    else:
        raise AssertionError("Expected TranscriptionError")


def test_missing_credentials_fail_before_any_request(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    try:
        asyncio.run(transcribe_chunks(chunks(1), TranscriptionOptions(), config=Config()))
    except MissingCredentialError as exc:
        assert "OpenAI API key not configured" in str(exc)
    else:
        raise AssertionError("Expected MissingCredentialError")


def test_transcribe_audio_chunks_long_wav_for_openai():
    backend = RecordingBackend([whisper_payload("a", 10.0), whisper_payload("b", 10.0), whisper_payload("c", 5.0)])
    config = Config(max_chunk_seconds=10.0)
    result = asyncio.run(transcribe_audio(make_wav(25), TranscriptionOptions(), backend=backend, config=config))

    assert len(backend.sent) == 3
    assert result.text == "a b c"
    assert result.segments[-1].end == 25.0


def test_transcribe_audio_sends_whole_file_to_deepgram():
    backend = RecordingBackend([{"results": {"channels": []}}])
    blob = make_wav(25)
    asyncio.run(
        transcribe_audio(blob, TranscriptionOptions(provider="deepgram"), backend=backend, config=Config(max_chunk_seconds=10.0))
    )
    assert backend.sent == [blob]
