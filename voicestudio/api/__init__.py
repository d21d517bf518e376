"""FastAPI application for the voicestudio transcription service."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from ..audio import DEFAULT_CONTENT_TYPE, AudioBlob
from ..config import ConfigError, load_config, recordings_root
from ..dispatcher import transcribe_audio
from ..models import Config, Provider, StoredRecording, TranscriptionOptions
from ..storage import RecordingStore, StorageError, open_store
from ..transcriber import (
    MissingCredentialError,
    ProviderHTTPError,
    TranscriptionBackend,
    TranscriptionError,
    get_backend,
)

app = FastAPI(
    title="voicestudio API",
    description="Multi-provider transcription and recording storage backend.",
    version="0.1.0",
)

_store_lock = threading.Lock()
_store: Optional[RecordingStore] = None

BackendFactory = Callable[[Provider, Config], TranscriptionBackend]


class HealthResponse(BaseModel):
    status: str = "ok"
    default_provider: str
    storage: str


class RecordingPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    pathname: str
    size: int
    uploaded_at: datetime = Field(alias="uploadedAt")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class RecordingListResponse(BaseModel):
    recordings: List[RecordingPayload]


class DeleteResponse(BaseModel):
    success: bool


def get_config() -> Config:
    try:
        return load_config()
    except ConfigError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def get_store(config: Config = Depends(get_config)) -> RecordingStore:
    global _store
    if _store is not None:
        return _store
    with _store_lock:
        if _store is None:
            _store = open_store(recordings_root(config))
    return _store


def get_backend_factory() -> BackendFactory:
    return get_backend


def _record_to_payload(record: StoredRecording) -> RecordingPayload:
    return RecordingPayload(**record.to_dict())


def _parse_options(raw: Optional[str]) -> TranscriptionOptions:
    try:
        payload = json.loads(raw or "{}")
        return TranscriptionOptions.from_payload(payload)
    except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid options: {exc}") from exc


@app.get("/health", response_model=HealthResponse)
async def healthcheck(
    config: Config = Depends(get_config),
    store: RecordingStore = Depends(get_store),
) -> HealthResponse:
    return HealthResponse(default_provider=config.default_provider, storage=type(store).__name__)


@app.post("/api/transcribe")
async def transcribe(
    file: UploadFile = File(...),
    options: Optional[str] = Form(None),
    config: Config = Depends(get_config),
    backend_factory: BackendFactory = Depends(get_backend_factory),
) -> Dict[str, Any]:
    parsed = _parse_options(options)
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")
    audio = AudioBlob(
        data=data,
        content_type=file.content_type or DEFAULT_CONTENT_TYPE,
        filename=file.filename or "audio.webm",
    )

    try:
        backend = backend_factory(parsed.provider, config)
        result = await transcribe_audio(audio, parsed, backend=backend, config=config)
    except MissingCredentialError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except ProviderHTTPError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except TranscriptionError as exc:
        logging.exception("Transcription with %s failed", parsed.provider.value)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Invalid configuration: {exc}"
        ) from exc
    return result.to_dict()


@app.get("/api/recordings", response_model=RecordingListResponse)
async def list_recordings(store: RecordingStore = Depends(get_store)) -> RecordingListResponse:
    records = await run_in_threadpool(store.list)
    return RecordingListResponse(recordings=[_record_to_payload(r) for r in records])


@app.post("/api/recordings", response_model=RecordingPayload)
async def save_recording(
    file: UploadFile = File(...),
    filename: Optional[str] = Form(None),
    store: RecordingStore = Depends(get_store),
) -> RecordingPayload:
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    record = await run_in_threadpool(
        store.save, data, filename or file.filename or "recording.webm", file.content_type or DEFAULT_CONTENT_TYPE
    )
    return _record_to_payload(record)


@app.delete("/api/recordings", response_model=DeleteResponse)
async def delete_recording(
    pathname: Optional[str] = Query(None),
    store: RecordingStore = Depends(get_store),
) -> DeleteResponse:
    if not pathname:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No pathname provided")
    try:
        deleted = await run_in_threadpool(store.delete, pathname)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Recording {pathname} not found")
    return DeleteResponse(success=True)


@app.get("/api/recordings/audio")
async def recording_audio(
    pathname: str = Query(...),
    store: RecordingStore = Depends(get_store),
) -> Response:
    try:
        data, content_type = await run_in_threadpool(store.load, pathname)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(content=data, media_type=content_type)
