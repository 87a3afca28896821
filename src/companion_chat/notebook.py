"""Persistent notebook of user-curated snippets."""

from __future__ import annotations

from datetime import datetime
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .exceptions import EmptyInputError
from .models import Note, new_id, utc_now

LOGGER = logging.getLogger(__name__)

NOTEBOOK_KEY = "companion_notes"


class NoteStorage(Protocol):
    """Persistence port: the whole collection is loaded and saved as one unit."""

    def load(self) -> list[Note]: ...

    def save(self, notes: list[Note]) -> None: ...


def _parse_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


def notes_from_records(records: Any) -> list[Note]:
    """Rebuild notes from a decoded record array, skipping malformed rows."""
    if not isinstance(records, list):
        return []
    notes: list[Note] = []
    for item in records:
        if not isinstance(item, dict):
            continue
        note_id = item.get("id")
        content = item.get("content")
        created_at = _parse_timestamp(item.get("created_at"))
        if isinstance(note_id, str) and isinstance(content, str) and created_at:
            notes.append(Note(id=note_id, content=content, created_at=created_at))
    return notes


class InMemoryNoteStorage:
    """Storage that keeps the serialized collection in memory."""

    def __init__(self, notes: list[Note] | None = None) -> None:
        self.blob: str | None = None
        self.saves = 0
        if notes is not None:
            self.save(notes)

    def load(self) -> list[Note]:
        if self.blob is None:
            return []
        try:
            return notes_from_records(json.loads(self.blob))
        except ValueError:
            return []

    def save(self, notes: list[Note]) -> None:
        self.blob = json.dumps([note.to_record() for note in notes], ensure_ascii=False)
        self.saves += 1


class JsonFileNoteStorage:
    """Key-value JSON document on disk; the notebook lives under one key."""

    def __init__(self, path: str | Path, key: str = NOTEBOOK_KEY) -> None:
        self.path = Path(path).expanduser()
        self.key = key

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _read_document(self) -> dict[str, Any]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "notebook.load.corrupt",
                extra={
                    "event": "notebook.load.corrupt",
                    "path": str(self.path),
                    "reason": str(exc),
                },
            )
            return {}
        return payload if isinstance(payload, dict) else {}

    def load(self) -> list[Note]:
        return notes_from_records(self._read_document().get(self.key))

    def save(self, notes: list[Note]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.path.parent, 0o700)
        document = self._read_document()
        document[self.key] = [note.to_record() for note in notes]

        scratch = self.path.with_name(f".{self.path.name}.tmp")
        scratch.write_text(
            json.dumps(document, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._enforce_permissions(scratch)
        scratch.replace(self.path)


class NotebookStore:
    """Most-recent-first collection of notes, persisted on every change."""

    def __init__(self, storage: NoteStorage) -> None:
        self._storage = storage
        try:
            self._notes: list[Note] = list(storage.load())
        except Exception as exc:
            LOGGER.warning(
                "notebook.load.failed",
                extra={"event": "notebook.load.failed", "reason": str(exc)},
            )
            self._notes = []

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def add(self, content: str) -> Note:
        """Prepend a new note and persist the collection."""
        text = content.strip()
        if not text:
            raise EmptyInputError("Note content must not be empty.")
        note = Note(id=new_id(), content=text, created_at=utc_now())
        self._notes.insert(0, note)
        self._persist()
        return note

    def remove(self, note_id: str) -> None:
        """Delete a note by id; unknown ids are ignored."""
        remaining = [note for note in self._notes if note.id != note_id]
        if len(remaining) == len(self._notes):
            return
        self._notes = remaining
        self._persist()

    def _persist(self) -> None:
        try:
            self._storage.save(list(self._notes))
        except Exception as exc:
            LOGGER.error(
                "notebook.save.failed",
                extra={"event": "notebook.save.failed", "reason": str(exc)},
            )
