"""
Integration tests for the FastAPI backend API.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add backend to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

import main
from app_state import VaultAppState
from embedder import Embedder
from errors import ModelLoadError


class TestFastAPIEndpoints:
    """Test suite for FastAPI endpoints."""

    @pytest.fixture(autouse=True)
    def _setup(self, monkeypatch, tmp_path, embedder):
        self.state = VaultAppState(notes_dir=tmp_path / "notes", embedder=embedder)
        monkeypatch.setattr(main, "state", self.state)
        self.client = TestClient(main.app)

    def _add(self, text):
        response = self.client.post("/add-note", json={"text": text})
        assert response.status_code == 200
        return response.json()["note_id"]

    def test_root_endpoint(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_reports_model_state(self):
        assert self.client.get("/health").json()["model_state"] == "unloaded"

        self._add("hello world")
        assert self.client.get("/health").json()["model_state"] == "loaded"

    def test_add_and_get_note(self):
        note_id = self._add("water the tomato plant")

        response = self.client.get(f"/note/{note_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == note_id
        assert data["text"] == "water the tomato plant"
        assert "embedding" not in data

    def test_get_note_not_found(self):
        response = self.client.get("/note/999")
        assert response.status_code == 404

    def test_list_notes(self):
        self._add("first")
        self._add("second")

        notes = self.client.get("/notes").json()["notes"]
        assert [n["text"] for n in notes] == ["second", "first"]

    def test_empty_note_rejected(self):
        assert self.client.post("/add-note", json={"text": ""}).status_code == 422
        assert self.client.post("/add-note", json={"text": "   "}).status_code == 400

    def test_delete_note(self):
        note_id = self._add("coffee morning")

        response = self.client.post("/delete-note", json={"note_id": note_id})
        assert response.status_code == 200
        assert response.json()["deleted"] == note_id
        assert self.client.get(f"/note/{note_id}").status_code == 404

        assert self.client.post("/delete-note", json={"note_id": note_id}).status_code == 404

    def test_search_endpoint(self):
        self._add("python code and snake")
        self._add("tomato garden plant")

        response = self.client.post("/search", json={"query": "python code", "top_k": 1})
        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 1
        assert results[0]["text"] == "python code and snake"
        assert results[0]["score"] > 0

    def test_search_strict_mode(self):
        self._add("python code and snake")
        self._add("tomato garden plant")

        response = self.client.post("/search", json={"query": "garden", "mode": "strict"})
        assert [r["text"] for r in response.json()["results"]] == ["tomato garden plant"]

    def test_search_invalid_mode(self):
        response = self.client.post("/search", json={"query": "x", "mode": "fuzzy"})
        assert response.status_code == 422

    def test_rag_endpoint(self):
        note_id = self._add("python code and snake")
        self._add("coffee morning meeting")

        response = self.client.post("/rag", json={"query": "python code"})
        assert response.status_code == 200
        data = response.json()
        assert data["source_note_ids"] == [note_id]
        assert data["context"].startswith("[Source 1 - High relevance]")
        assert data["summary"]
        assert "python" in data["keywords"]

    def test_rag_empty_store(self):
        data = self.client.post("/rag", json={"query": "anything"}).json()
        assert data["results"] == []
        assert data["context"] == ""

    def test_summarize_endpoint(self):
        text = "Alpha bravo charlie delta. Echo foxtrot golf hotel. Mike november oscar."
        response = self.client.post(
            "/summarize", json={"text": text, "num_sentences": 1, "position_bias": True}
        )
        assert response.status_code == 200
        assert response.json()["summary"] == "Alpha bravo charlie delta."
        assert len(response.json()["keywords"]) == 5

    def test_warmup(self):
        response = self.client.post("/admin/warmup")
        assert response.status_code == 200
        assert response.json()["model_state"] == "loaded"

    def test_model_load_failure_is_503(self, monkeypatch, tmp_path, tokenizer):
        def loader(model_path, backend):
            raise ModelLoadError("ONNX model file not found at: missing.onnx")

        broken = Embedder(model_path="missing.onnx", tokenizer=tokenizer, loader=loader)
        monkeypatch.setattr(main, "state", VaultAppState(notes_dir=tmp_path / "b", embedder=broken))

        response = self.client.post("/add-note", json={"text": "hello"})
        assert response.status_code == 503
        assert "not found" in response.json()["detail"]

        assert self.client.post("/admin/warmup").status_code == 503
