"""
Conversion store: durable home of conversion and voice-dubbing records.

Every conversion write goes through ``check_transition`` so the stored
status/progress pair never breaks its ordering rules. Both implementations
serialize writes with a lock; readers may poll while workers write.
"""

import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import NotFoundError
from .models import (
    ConversionStatus,
    DubbingStatus,
    VideoConversion,
    VoiceDubbing,
    VoiceType,
    check_consistency,
    check_transition,
    utc_now,
)

logger = logging.getLogger("videodub")

_CONVERSION_FIELDS = {f.name for f in fields(VideoConversion)}
_DUBBING_FIELDS = {f.name for f in fields(VoiceDubbing)}


def _prepare_conversion(current: VideoConversion, updates: dict[str, Any]) -> VideoConversion:
    unknown = set(updates) - _CONVERSION_FIELDS
    if unknown:
        raise ValueError(f"unknown conversion fields: {', '.join(sorted(unknown))}")
    updates = dict(updates)
    updates.pop("updated_at", None)
    check_transition(current, updates)
    if "status" in updates:
        updates["status"] = ConversionStatus(updates["status"])
    if "voice_type" in updates:
        updates["voice_type"] = VoiceType(updates["voice_type"])
    return replace(current, **updates, updated_at=utc_now())


def _new_conversion(data: dict[str, Any]) -> VideoConversion:
    unknown = set(data) - _CONVERSION_FIELDS
    if unknown:
        raise ValueError(f"unknown conversion fields: {', '.join(sorted(unknown))}")
    if not data.get("target_language"):
        raise ValueError("target_language is required")
    if not data.get("original_url") and not data.get("original_file_name"):
        raise ValueError("original_url or original_file_name is required")
    now = utc_now()
    conv = VideoConversion(**{"id": str(uuid.uuid4()), **data, "created_at": now, "updated_at": now})
    conv.status = ConversionStatus(conv.status)
    conv.voice_type = VoiceType(conv.voice_type)
    check_consistency(conv.status, conv.progress)
    return conv


def _new_dubbing(data: dict[str, Any]) -> VoiceDubbing:
    unknown = set(data) - _DUBBING_FIELDS
    if unknown:
        raise ValueError(f"unknown dubbing fields: {', '.join(sorted(unknown))}")
    dub = VoiceDubbing(**{"id": str(uuid.uuid4()), **data, "created_at": utc_now()})
    dub.voice_type = VoiceType(dub.voice_type)
    dub.status = DubbingStatus(dub.status)
    return dub


def _prepare_dubbing(current: VoiceDubbing, updates: dict[str, Any]) -> VoiceDubbing:
    unknown = set(updates) - _DUBBING_FIELDS
    if unknown or {"id", "created_at"} & set(updates):
        raise ValueError("invalid dubbing update")
    if "status" in updates:
        updates = {**updates, "status": DubbingStatus(updates["status"])}
    return replace(current, **updates)


class ConversionStore(ABC):
    """Key -> record persistence with partial updates and aggregate stats."""

    @abstractmethod
    def create_conversion(self, **data: Any) -> VideoConversion: ...

    @abstractmethod
    def get_conversion(self, conversion_id: str) -> VideoConversion | None: ...

    @abstractmethod
    def update_conversion(self, conversion_id: str, **updates: Any) -> VideoConversion:
        """Apply a partial update; raises NotFoundError or InvalidTransitionError."""

    @abstractmethod
    def delete_conversion(self, conversion_id: str) -> bool: ...

    @abstractmethod
    def list_conversions_by_user(self, user_id: str) -> list[VideoConversion]: ...

    @abstractmethod
    def create_voice_dubbing(self, **data: Any) -> VoiceDubbing: ...

    @abstractmethod
    def get_voice_dubbing(self, dubbing_id: str) -> VoiceDubbing | None: ...

    @abstractmethod
    def update_voice_dubbing(self, dubbing_id: str, **updates: Any) -> VoiceDubbing: ...

    @abstractmethod
    def get_conversion_stats(self) -> dict[str, int]:
        """``{"total_conversions": n, "today_conversions": m}`` (UTC day)."""

    def require_conversion(self, conversion_id: str) -> VideoConversion:
        conv = self.get_conversion(conversion_id)
        if conv is None:
            raise NotFoundError("Conversion", conversion_id)
        return conv

    def close(self) -> None:
        pass


class MemoryConversionStore(ConversionStore):
    """Process-local store. Records are copied in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conversions: dict[str, VideoConversion] = {}
        self._dubbings: dict[str, VoiceDubbing] = {}

    def create_conversion(self, **data: Any) -> VideoConversion:
        conv = _new_conversion(data)
        with self._lock:
            self._conversions[conv.id] = conv
        return replace(conv)

    def get_conversion(self, conversion_id: str) -> VideoConversion | None:
        with self._lock:
            conv = self._conversions.get(conversion_id)
            return replace(conv) if conv else None

    def update_conversion(self, conversion_id: str, **updates: Any) -> VideoConversion:
        with self._lock:
            current = self._conversions.get(conversion_id)
            if current is None:
                raise NotFoundError("Conversion", conversion_id)
            updated = _prepare_conversion(current, updates)
            self._conversions[conversion_id] = updated
            return replace(updated)

    def delete_conversion(self, conversion_id: str) -> bool:
        with self._lock:
            return self._conversions.pop(conversion_id, None) is not None

    def list_conversions_by_user(self, user_id: str) -> list[VideoConversion]:
        with self._lock:
            items = [replace(c) for c in self._conversions.values() if c.user_id == user_id]
        return sorted(items, key=lambda c: c.created_at, reverse=True)

    def create_voice_dubbing(self, **data: Any) -> VoiceDubbing:
        dub = _new_dubbing(data)
        with self._lock:
            self._dubbings[dub.id] = dub
        return replace(dub)

    def get_voice_dubbing(self, dubbing_id: str) -> VoiceDubbing | None:
        with self._lock:
            dub = self._dubbings.get(dubbing_id)
            return replace(dub) if dub else None

    def update_voice_dubbing(self, dubbing_id: str, **updates: Any) -> VoiceDubbing:
        with self._lock:
            current = self._dubbings.get(dubbing_id)
            if current is None:
                raise NotFoundError("Voice dubbing", dubbing_id)
            updated = _prepare_dubbing(current, updates)
            self._dubbings[dubbing_id] = updated
            return replace(updated)

    def get_conversion_stats(self) -> dict[str, int]:
        today = utc_now().date()
        with self._lock:
            total = len(self._conversions)
            today_count = sum(1 for c in self._conversions.values() if c.created_at.date() == today)
        return {"total_conversions": total, "today_conversions": today_count}


_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS conversions (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    original_url TEXT,
    original_file_name TEXT,
    source_language TEXT,
    target_language TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    progress INTEGER NOT NULL DEFAULT 0,
    transcript TEXT,
    translated_text TEXT,
    output_audio_url TEXT,
    output_video_url TEXT,
    subtitles_srt TEXT,
    subtitles_vtt TEXT,
    voice_type TEXT NOT NULL DEFAULT 'generic',
    error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversions_user ON conversions(user_id);
CREATE INDEX IF NOT EXISTS idx_conversions_created_at ON conversions(created_at DESC);

CREATE TABLE IF NOT EXISTS voice_dubbings (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    input_text TEXT NOT NULL,
    source_language TEXT,
    target_language TEXT NOT NULL,
    voice_type TEXT NOT NULL DEFAULT 'generic',
    status TEXT NOT NULL DEFAULT 'pending',
    output_audio_url TEXT,
    error TEXT,
    created_at TEXT NOT NULL
);
"""


def _to_row(record: VideoConversion | VoiceDubbing) -> dict[str, Any]:
    row = asdict(record)
    for key, value in row.items():
        if isinstance(value, datetime):
            row[key] = value.isoformat()
        elif hasattr(value, "value"):
            row[key] = value.value
    return row


def _row_to_conversion(row: sqlite3.Row) -> VideoConversion:
    data = dict(row)
    data["status"] = ConversionStatus(data["status"])
    data["voice_type"] = VoiceType(data["voice_type"])
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    data["updated_at"] = datetime.fromisoformat(data["updated_at"])
    return VideoConversion(**data)


def _row_to_dubbing(row: sqlite3.Row) -> VoiceDubbing:
    data = dict(row)
    data["status"] = DubbingStatus(data["status"])
    data["voice_type"] = VoiceType(data["voice_type"])
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    return VoiceDubbing(**data)


class SqliteConversionStore(ConversionStore):
    """SQLite-backed store. Thread-safe via check_same_thread=False + explicit locking."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_CREATE_TABLES)
        self.conn.commit()
        logger.info("Using SQLite store at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _insert(self, table: str, row: dict[str, Any]) -> None:
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        self.conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})", tuple(row.values()))
        self.conn.commit()

    def _write(self, table: str, record_id: str, row: dict[str, Any]) -> None:
        row = {k: v for k, v in row.items() if k != "id"}
        assignments = ", ".join(f"{k} = ?" for k in row)
        self.conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?", (*row.values(), record_id)
        )
        self.conn.commit()

    def _fetch_conversion(self, conversion_id: str) -> VideoConversion | None:
        row = self.conn.execute("SELECT * FROM conversions WHERE id = ?", (conversion_id,)).fetchone()
        return _row_to_conversion(row) if row else None

    def _fetch_dubbing(self, dubbing_id: str) -> VoiceDubbing | None:
        row = self.conn.execute("SELECT * FROM voice_dubbings WHERE id = ?", (dubbing_id,)).fetchone()
        return _row_to_dubbing(row) if row else None

    def create_conversion(self, **data: Any) -> VideoConversion:
        conv = _new_conversion(data)
        with self._lock:
            self._insert("conversions", _to_row(conv))
        return conv

    def get_conversion(self, conversion_id: str) -> VideoConversion | None:
        with self._lock:
            return self._fetch_conversion(conversion_id)

    def update_conversion(self, conversion_id: str, **updates: Any) -> VideoConversion:
        with self._lock:
            current = self._fetch_conversion(conversion_id)
            if current is None:
                raise NotFoundError("Conversion", conversion_id)
            updated = _prepare_conversion(current, updates)
            self._write("conversions", conversion_id, _to_row(updated))
            return updated

    def delete_conversion(self, conversion_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM conversions WHERE id = ?", (conversion_id,))
            self.conn.commit()
            return cur.rowcount > 0

    def list_conversions_by_user(self, user_id: str) -> list[VideoConversion]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM conversions WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
            ).fetchall()
        return [_row_to_conversion(r) for r in rows]

    def create_voice_dubbing(self, **data: Any) -> VoiceDubbing:
        dub = _new_dubbing(data)
        with self._lock:
            self._insert("voice_dubbings", _to_row(dub))
        return dub

    def get_voice_dubbing(self, dubbing_id: str) -> VoiceDubbing | None:
        with self._lock:
            return self._fetch_dubbing(dubbing_id)

    def update_voice_dubbing(self, dubbing_id: str, **updates: Any) -> VoiceDubbing:
        with self._lock:
            current = self._fetch_dubbing(dubbing_id)
            if current is None:
                raise NotFoundError("Voice dubbing", dubbing_id)
            updated = _prepare_dubbing(current, updates)
            self._write("voice_dubbings", dubbing_id, _to_row(updated))
            return updated

    def get_conversion_stats(self) -> dict[str, int]:
        today = utc_now().date().isoformat()
        with self._lock:
            total = self.conn.execute("SELECT COUNT(*) FROM conversions").fetchone()[0]
            today_count = self.conn.execute(
                "SELECT COUNT(*) FROM conversions WHERE substr(created_at, 1, 10) = ?", (today,)
            ).fetchone()[0]
        return {"total_conversions": int(total), "today_conversions": int(today_count)}


def open_store(db_path: str | Path | None) -> ConversionStore:
    """SQLite when a path is given, in-memory otherwise."""
    if db_path:
        return SqliteConversionStore(db_path)
    return MemoryConversionStore()
