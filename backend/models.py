"""Shared backend models for Knowledge Vault."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class NoteRecord:
    """A stored note with its embedding."""

    id: int
    text: str
    embedding: List[float]
    timestamp: int = field(default_factory=_timestamp_ms)


@dataclass(frozen=True)
class ScoredNote:
    """A note paired with a query-dependent relevance score."""

    note: NoteRecord
    score: float


@dataclass(frozen=True)
class BuiltContext:
    """Merged context text and the notes it was drawn from."""

    text: str
    source_notes: List[NoteRecord] = field(default_factory=list)


@dataclass(frozen=True)
class RagResult:
    query: str
    results: List[ScoredNote]
    context: BuiltContext
    summary: str
    keywords: List[str] = field(default_factory=list)


class RetrievalMode(str, Enum):
    PLAIN = "plain"
    HYBRID = "hybrid"
    STRICT = "strict"
    THRESHOLD = "threshold"


# API payloads

class NotePayload(BaseModel):
    id: int
    text: str
    timestamp: int


class NotesResponsePayload(BaseModel):
    notes: List[NotePayload] = Field(default_factory=list)


class SearchHitPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: int = Field(alias="note_id")
    text: str
    score: float
    timestamp: int


class SearchResponsePayload(BaseModel):
    results: List[SearchHitPayload] = Field(default_factory=list)


class RagResponsePayload(BaseModel):
    query: str
    context: str
    summary: str
    keywords: List[str] = Field(default_factory=list)
    results: List[SearchHitPayload] = Field(default_factory=list)
    source_note_ids: List[int] = Field(default_factory=list)


class SummarizeResponsePayload(BaseModel):
    summary: str
    keywords: List[str] = Field(default_factory=list)


# Request payloads

class AddNoteRequest(BaseModel):
    text: str = Field(min_length=1)


class DeleteNoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: int = Field(alias="note_id")


class SearchRequest(BaseModel):
    query: str
    mode: RetrievalMode = RetrievalMode.HYBRID
    top_k: int = Field(default=5, ge=1, le=50)
    semantic_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    min_score: Optional[float] = None
    diverse: bool = False
    mmr_lambda: float = Field(default=0.7, ge=0.0, le=1.0)


class RagRequest(BaseModel):
    query: str = Field(min_length=1)


class SummarizeRequest(BaseModel):
    text: str
    num_sentences: int = Field(default=3, ge=1, le=20)
    position_bias: bool = False
    num_keywords: int = Field(default=5, ge=0, le=50)
