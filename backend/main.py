"""FastAPI entrypoint for the Knowledge Vault backend."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI, HTTPException

import config
from app_state import VaultAppState
from errors import InputError, ModelLoadError
from models import (
    AddNoteRequest,
    DeleteNoteRequest,
    NotePayload,
    NoteRecord,
    NotesResponsePayload,
    RagRequest,
    RagResponsePayload,
    ScoredNote,
    SearchHitPayload,
    SearchRequest,
    SearchResponsePayload,
    SummarizeRequest,
    SummarizeResponsePayload,
)
from summarizer import extract_keywords

logger = logging.getLogger(__name__)

app = FastAPI(title="Knowledge Vault Backend", description="Local semantic notes and RAG API")

state = VaultAppState()


def _note_payload(record: NoteRecord) -> NotePayload:
    return NotePayload(id=record.id, text=record.text, timestamp=record.timestamp)


def _hit_payload(result: ScoredNote) -> SearchHitPayload:
    return SearchHitPayload(
        note_id=result.note.id,
        text=result.note.text,
        score=float(result.score),
        timestamp=result.note.timestamp,
    )


def _server_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ModelLoadError):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, (InputError, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    logger.exception("Request failed")
    return HTTPException(status_code=500, detail=str(exc))


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok", "message": "Knowledge Vault backend is running"}


@app.get("/health", tags=["health"])
async def health():
    embedder = state.current().embedder
    return {"status": "ok", "model_state": embedder.state.value}


@app.get("/notes", response_model=NotesResponsePayload, tags=["notes"])
async def notes():
    try:
        records = await state.current().notes.list_notes()
        return NotesResponsePayload(notes=[_note_payload(r) for r in records])
    except Exception as exc:
        raise _server_error(exc)


@app.get("/note/{note_id}", response_model=NotePayload, tags=["notes"])
async def get_note(note_id: int):
    try:
        record = await state.current().notes.get_note(note_id)
        return _note_payload(record)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")
    except Exception as exc:
        raise _server_error(exc)


@app.post("/add-note", tags=["notes"])
async def add_note(request: AddNoteRequest):
    try:
        record = await state.current().notes.add_note(request.text)
        return {"success": True, "note_id": record.id, "note": _note_payload(record)}
    except Exception as exc:
        raise _server_error(exc)


@app.post("/delete-note", tags=["notes"])
async def delete_note(request: DeleteNoteRequest):
    try:
        deleted = await state.current().notes.delete_note(request.note_id)
    except Exception as exc:
        raise _server_error(exc)
    if not deleted:
        raise HTTPException(status_code=404, detail="Note not found")
    return {"success": True, "deleted": request.note_id}


@app.post("/search", response_model=SearchResponsePayload, tags=["search"])
async def search(request: SearchRequest):
    try:
        results = await state.current().rag.search(
            request.query,
            mode=request.mode,
            top_k_results=request.top_k,
            semantic_weight=request.semantic_weight,
            min_score=request.min_score,
            diverse=request.diverse,
            mmr_lambda=request.mmr_lambda,
        )
        return SearchResponsePayload(results=[_hit_payload(r) for r in results])
    except Exception as exc:
        raise _server_error(exc)


@app.post("/rag", response_model=RagResponsePayload, tags=["search"])
async def rag(request: RagRequest):
    try:
        result = await state.current().rag.answer(request.query)
        return RagResponsePayload(
            query=result.query,
            context=result.context.text,
            summary=result.summary,
            keywords=result.keywords,
            results=[_hit_payload(r) for r in result.results],
            source_note_ids=[note.id for note in result.context.source_notes],
        )
    except Exception as exc:
        raise _server_error(exc)


@app.post("/summarize", response_model=SummarizeResponsePayload, tags=["search"])
async def summarize_text(request: SummarizeRequest):
    summary = state.current().rag.summarize(
        request.text, request.num_sentences, request.position_bias
    )
    return SummarizeResponsePayload(
        summary=summary, keywords=extract_keywords(request.text, request.num_keywords)
    )


@app.post("/admin/warmup", tags=["admin"])
async def warmup():
    embedder = state.current().embedder
    try:
        await embedder.preload()
    except Exception as exc:
        raise _server_error(exc)
    return {"success": True, "model_state": embedder.state.value, "backend": embedder.backend}


if __name__ == "__main__":
    config.configure_logging()
    for issue in config.validate_config():
        logger.warning("Configuration issue: %s", issue)
    uvicorn.run(app, host="127.0.0.1", port=8000)
