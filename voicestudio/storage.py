"""Persistence of raw audio recordings."""

from __future__ import annotations

import base64
import logging
import mimetypes
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Protocol, Tuple

from .audio import DEFAULT_CONTENT_TYPE
from .models import StoredRecording

PREFIX = "recordings"
LOCAL_URL_TEMPLATE = "/api/recordings/audio?pathname={pathname}"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_TIMESTAMP_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z_")


class StorageError(RuntimeError):
    """Raised when something goes wrong while accessing the storage."""


class RecordingStore(Protocol):
    """Operations every recording backend offers."""

    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredRecording:
        ...

    def list(self) -> List[StoredRecording]:
        ...

    def delete(self, pathname: str) -> bool:
        ...

    def load(self, pathname: str) -> Tuple[bytes, str]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_pathname(filename: str, now: Optional[datetime] = None) -> str:
    """Return ``recordings/<timestamp>_<sanitised name>`` for a new upload."""

    now = now or _utcnow()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    safe = _UNSAFE_CHARS.sub("_", filename or "recording.webm")
    return f"{PREFIX}/{stamp}_{safe}"


def _check_pathname(pathname: str) -> PurePosixPath:
    path = PurePosixPath(pathname)
    if path.is_absolute() or ".." in path.parts or len(path.parts) != 2 or path.parts[0] != PREFIX:
        raise StorageError(f"Invalid recording path: {pathname}")
    return path


class LocalRecordingStore:
    """Keep recordings as files below ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        (self.root / PREFIX).mkdir(parents=True, exist_ok=True)

    def _file(self, pathname: str) -> Path:
        return self.root.joinpath(*_check_pathname(pathname).parts)

    def _record(self, file: Path) -> StoredRecording:
        stat = file.stat()
        pathname = f"{PREFIX}/{file.name}"
        return StoredRecording(
            url=LOCAL_URL_TEMPLATE.format(pathname=pathname),
            pathname=pathname,
            size=stat.st_size,
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_type=mimetypes.guess_type(file.name)[0] or DEFAULT_CONTENT_TYPE,
        )

    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredRecording:
        pathname = build_pathname(filename)
        file = self._file(pathname)
        file.write_bytes(data)
        record = self._record(file)
        if content_type:
            record.content_type = content_type
        logging.debug("Saved recording %s (%d bytes)", pathname, len(data))
        return record

    def list(self) -> List[StoredRecording]:
        records = [self._record(f) for f in (self.root / PREFIX).iterdir() if f.is_file()]
        return sorted(records, key=lambda r: r.uploaded_at, reverse=True)

    def delete(self, pathname: str) -> bool:
        file = self._file(pathname)
        if not file.exists():
            return False
        file.unlink()
        return True

    def load(self, pathname: str) -> Tuple[bytes, str]:
        file = self._file(pathname)
        if not file.exists():
            raise StorageError(f"Recording {pathname} not found")
        return file.read_bytes(), mimetypes.guess_type(file.name)[0] or DEFAULT_CONTENT_TYPE


class MemoryRecordingStore:
    """Process-lifetime store used when no directory is available."""

    def __init__(self) -> None:
        self._blobs: Dict[str, Tuple[bytes, StoredRecording]] = {}

    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredRecording:
        pathname = build_pathname(filename)
        content_type = content_type or DEFAULT_CONTENT_TYPE
        record = StoredRecording(
            url=f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}",
            pathname=pathname,
            size=len(data),
            uploaded_at=_utcnow(),
            content_type=content_type,
        )
        self._blobs[pathname] = (data, record)
        return record

    def list(self) -> List[StoredRecording]:
        return sorted((record for _, record in self._blobs.values()), key=lambda r: r.uploaded_at, reverse=True)

    def delete(self, pathname: str) -> bool:
        _check_pathname(pathname)
        return self._blobs.pop(pathname, None) is not None

    def load(self, pathname: str) -> Tuple[bytes, str]:
        _check_pathname(pathname)
        try:
            data, record = self._blobs[pathname]
        except KeyError as exc:
            raise StorageError(f"Recording {pathname} not found") from exc
        return data, record.content_type or DEFAULT_CONTENT_TYPE


def open_store(root: Path) -> RecordingStore:
    """Return a directory backed store, or an in-memory one if ``root`` is unusable."""

    try:
        return LocalRecordingStore(root)
    except OSError as exc:
        logging.warning("Recording directory %s unavailable (%s); keeping recordings in memory.", root, exc)
        return MemoryRecordingStore()


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    while size >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = round(size / 1024**index, 2)
    return f"{value:g} {units[index]}"


def recording_metadata(record: StoredRecording) -> Dict[str, str]:
    """Display fields derived from a stored recording's path and size."""

    filename = record.pathname.rsplit("/", 1)[-1] or "unknown"
    if "upload_" in filename or "file_" in filename:
        kind = "upload"
    elif "recording_" in filename or "live_" in filename:
        kind = "recording"
    else:
        kind = "unknown"
    return {
        "filename": filename,
        "display_name": _TIMESTAMP_PREFIX.sub("", filename),
        "type": kind,
        "size": format_file_size(record.size),
        "date": record.uploaded_at.strftime("%b %d, %Y, %I:%M %p"),
    }
