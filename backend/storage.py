"""Filesystem-backed storage for notes and their embeddings."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

import config
from models import NoteRecord

logger = logging.getLogger(__name__)


class NoteStorage:
    """Local JSON storage, one file per note."""

    SEQUENCE_FILE = "sequence.json"

    def __init__(self, root: Optional[Path] = None):
        base_dir = Path(root) if root else Path(config.NOTES_DIR)
        base_dir.mkdir(parents=True, exist_ok=True)
        self.notes_dir = base_dir
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_all(self) -> List[NoteRecord]:
        """All notes, most recent first."""
        records = self._load_all_records()
        records.sort(key=lambda r: (r.timestamp, r.id), reverse=True)
        return records

    def get_by_id(self, note_id: int) -> Optional[NoteRecord]:
        path = self._note_path(note_id)
        if not path.exists():
            return None
        return self._read_record(path)

    def insert(self, text: str, embedding: Sequence[float]) -> int:
        if not text or not isinstance(text, str):
            raise ValueError("Note text is required and must be a string")
        if embedding is None or len(embedding) == 0:
            raise ValueError("Embedding is required and must be a non-empty array")

        with self._lock:
            note_id = self._next_id()
            record = NoteRecord(
                id=note_id,
                text=text,
                embedding=[float(x) for x in embedding],
                timestamp=int(time.time() * 1000),
            )
            self._write_record(record)

        logger.debug("Note saved with ID: %d", note_id)
        return note_id

    def delete_by_id(self, note_id: int) -> bool:
        with self._lock:
            path = self._note_path(note_id)
            if not path.exists():
                return False
            path.unlink()

        logger.debug("Note deleted: %d", note_id)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _note_path(self, note_id: int) -> Path:
        return self.notes_dir / f"note_{int(note_id)}.json"

    def _next_id(self) -> int:
        # Ids are never reused, even after the newest note is deleted.
        sequence_path = self.notes_dir / self.SEQUENCE_FILE
        last_id = 0
        if sequence_path.exists():
            with open(sequence_path, "r", encoding="utf-8") as handle:
                last_id = int(json.load(handle).get("last_id", 0))

        existing = [r.id for r in self._load_all_records()]
        next_id = max([last_id, *existing]) + 1

        with open(sequence_path, "w", encoding="utf-8") as handle:
            json.dump({"last_id": next_id}, handle)
        return next_id

    def _load_all_records(self) -> List[NoteRecord]:
        records: List[NoteRecord] = []
        for path in self.notes_dir.glob("note_*.json"):
            try:
                records.append(self._read_record(path))
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable note file %s: %s", path.name, exc)
        return records

    def _read_record(self, path: Path) -> NoteRecord:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)

        return NoteRecord(
            id=int(raw["id"]),
            text=raw["text"],
            embedding=[float(x) for x in raw["embedding"]],
            timestamp=int(raw.get("timestamp", 0)),
        )

    def _write_record(self, record: NoteRecord):
        payload = {
            "id": record.id,
            "text": record.text,
            "embedding": record.embedding,
            "timestamp": record.timestamp,
        }

        path = self._note_path(record.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle)
