import json

from fastapi.testclient import TestClient

from voicestudio import api
from voicestudio.config import ConfigError
from voicestudio.models import Config
from voicestudio.storage import MemoryRecordingStore
from voicestudio.transcriber import MissingCredentialError, ProviderHTTPError


class StaticBackend:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error

    async def transcribe(self, audio, options):
        if self.error is not None:
            raise self.error
        return self.payload


def make_client(backend=None, store=None):
    store = store or MemoryRecordingStore()
    api.app.dependency_overrides[api.get_config] = lambda: Config(max_chunk_seconds=100.0)
    api.app.dependency_overrides[api.get_store] = lambda: store
    api.app.dependency_overrides[api.get_backend_factory] = lambda: (lambda provider, config: backend)
    return TestClient(api.app)


def teardown_function():
    api.app.dependency_overrides.clear()


def test_health():
    response = make_client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "default_provider": "openai", "storage": "MemoryRecordingStore"}


def test_transcribe_with_deepgram():
    payload = {
        "results": {
            "channels": [{"alternatives": [{"transcript": "hi all", "confidence": 0.9, "words": [{"word": "hi", "start": 0, "end": 0.5, "speaker": 0}]}]}],
        }
    }
    client = make_client(StaticBackend(payload))
    response = client.post(
        "/api/transcribe",
        files={"file": ("clip.webm", b"audio-bytes", "audio/webm")},
        data={"options": json.dumps({"provider": "deepgram", "diarize": True})},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "hi all"
    assert body["speakers"] == [0]
    assert body["provider"] == "deepgram"
    assert body["segments"][0]["text"] == "hi"


def test_transcribe_rejects_bad_options_and_empty_file():
    client = make_client(StaticBackend({}))
    bad = client.post("/api/transcribe", files={"file": ("a.webm", b"x")}, data={"options": "{oops"})
    assert bad.status_code == 400

    unknown = client.post("/api/transcribe", files={"file": ("a.webm", b"x")}, data={"options": '{"provider": "azure"}'})
    assert unknown.status_code == 400

    empty = client.post("/api/transcribe", files={"file": ("a.webm", b"")})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No audio file provided"


def test_transcribe_reports_provider_errors():
    client = make_client(StaticBackend(error=ProviderHTTPError("Unsupported audio format.", status_code=400)))
    response = client.post("/api/transcribe", files={"file": ("a.webm", b"x")}, data={"options": '{"provider": "deepgram"}'})

    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported audio format."


def test_transcribe_reports_missing_credentials():
    def factory(provider, config):
        raise MissingCredentialError("Gemini API key not configured. Please set GEMINI_API_KEY environment variable.")

    client = make_client()
    api.app.dependency_overrides[api.get_backend_factory] = lambda: factory
    response = client.post("/api/transcribe", files={"file": ("a.webm", b"x")}, data={"options": '{"provider": "gemini"}'})

    assert response.status_code == 500
    assert "GEMINI_API_KEY" in response.json()["detail"]


def test_recordings_lifecycle():
    store = MemoryRecordingStore()
    client = make_client(store=store)

    saved = client.post("/api/recordings", files={"file": ("take.webm", b"abc", "audio/webm")}, data={"filename": "recording_take.webm"})
    assert saved.status_code == 200
    record = saved.json()
    assert record["pathname"].startswith("recordings/")
    assert record["pathname"].endswith("_recording_take.webm")
    assert record["size"] == 3
    assert record["contentType"] == "audio/webm"

    listed = client.get("/api/recordings").json()["recordings"]
    assert [r["pathname"] for r in listed] == [record["pathname"]]

    audio = client.get("/api/recordings/audio", params={"pathname": record["pathname"]})
    assert audio.content == b"abc"

    deleted = client.delete("/api/recordings", params={"pathname": record["pathname"]})
    assert deleted.json() == {"success": True}
    assert client.get("/api/recordings").json() == {"recordings": []}

    missing = client.delete("/api/recordings", params={"pathname": record["pathname"]})
    assert missing.status_code == 404


def test_delete_requires_pathname():
    client = make_client()
    assert client.delete("/api/recordings").status_code == 400
    assert client.delete("/api/recordings", params={"pathname": "../secret"}).status_code == 400


def test_transcribe_reports_bad_chunk_setting():
    client = make_client(StaticBackend({"text": "unused", "segments": []}))
    api.app.dependency_overrides[api.get_config] = lambda: Config(max_chunk_seconds=0)
    response = client.post("/api/transcribe", files={"file": ("a.wav", b"x")}, data={"options": '{"provider": "openai"}'})

    assert response.status_code == 500
    assert response.json()["detail"] == "Invalid configuration: max_chunk_seconds must be positive"


def test_unreadable_config_file_is_reported(monkeypatch):
    def broken():
        raise ConfigError("Failed to parse configuration file: bad json")

    monkeypatch.setattr(api, "load_config", broken)
    client = make_client()
    del api.app.dependency_overrides[api.get_config]
    response = client.get("/health")

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to parse configuration file: bad json"}
