"""Backend application state: one set of services per process."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from embedder import Embedder
from retriever import Retriever
from services import NoteService, RagService
from storage import NoteStorage


@dataclass
class VaultServices:
    storage: NoteStorage
    embedder: Embedder
    retriever: Retriever
    notes: NoteService
    rag: RagService


class VaultAppState:
    """Builds and holds the long-lived services shared by all requests."""

    def __init__(
        self,
        notes_dir: Optional[Path] = None,
        embedder: Optional[Embedder] = None,
    ):
        self._lock = threading.RLock()
        self._notes_dir = notes_dir
        self._embedder = embedder
        self._services: Optional[VaultServices] = None

    def current(self) -> VaultServices:
        with self._lock:
            if self._services is None:
                self._services = self._build()
            return self._services

    def _build(self) -> VaultServices:
        storage = NoteStorage(root=self._notes_dir)
        embedder = self._embedder or Embedder()
        retriever = Retriever(embedder=embedder, storage=storage)

        return VaultServices(
            storage=storage,
            embedder=embedder,
            retriever=retriever,
            notes=NoteService(storage=storage, embedder=embedder),
            rag=RagService(retriever=retriever),
        )
