"""
Unit tests for the AI routes.

Tests cover:
- Upload checks (auth, quota, type, size) with S3 mocked
- Transcription errors mapped to HTTP statuses
- Extraction request checks
- Ingestion and chat streams
- Conversations, dependency suggestions, aliases, documents and triage
"""

import json
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from opengmao.api import ai_router
from opengmao.api.rate_limiter import extraction_limiter, upload_limiter
from opengmao.api.utils import create_access_token
from opengmao.database.core import funcs
from opengmao.rag import conversation_memory

ORG = str(uuid.uuid4())


@pytest.fixture
def app():
    application = FastAPI()
    application.include_router(ai_router.router)
    return application


@pytest.fixture
def user(db_engine):
    return funcs.register_user(email="tech@plant.ma", password="secret123", organization_id=ORG)["user_details"]


@pytest.fixture
def client(app, user):
    return TestClient(app, cookies={"token": create_access_token({"sub": user["id"]})})


@pytest.fixture
def anonymous(app, db_engine):
    return TestClient(app)


@pytest.fixture
def asset(user):
    return funcs.create_asset(data={"name": "Compresseur GA37", "code": "CMP-001", "location": "Atelier A"},
                              organization_id=ORG)["asset"]


def frames(response):
    """Payloads of the `data: ...` frames of an SSE body."""
    return [json.loads(line[len("data: "):]) for line in response.text.splitlines() if line.startswith("data: ")]


PDF = ("manuel.pdf", b"%PDF-1.7 manual", "application/pdf")


class TestUploadRoute:
    """Test /api/assets/upload."""

    def test_unauthorized(self, anonymous):
        """Test the 401 body."""
        response = anonymous.post("/api/assets/upload", files={"file": PDF})
        assert response.status_code == 401
        assert response.json() == {"error": "Non autorisé", "success": False}

    def test_quota(self, client, user):
        """Test the hourly upload quota."""
        for _ in range(10):
            upload_limiter.record(user["id"])
        response = client.post("/api/assets/upload", files={"file": PDF})
        assert response.status_code == 429

    def test_missing_file(self, client):
        """Test a request without a file."""
        response = client.post("/api/assets/upload")
        assert response.status_code == 400
        assert response.json()["error"] == "Aucun fichier fourni"

    def test_wrong_type(self, client):
        """Test that only PDF, JPEG and PNG are accepted."""
        response = client.post("/api/assets/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert response.status_code == 400

    def test_too_large(self, client):
        """Test the size limit."""
        with patch("opengmao.api.ai_router.MAX_UPLOAD_BYTES", 4):
            response = client.post("/api/assets/upload", files={"file": PDF})
        assert response.status_code == 413
        assert response.json()["error"].startswith("Fichier trop volumineux (max: 50MB")

    def test_success(self, client, user):
        """Test the stored key, the presigned URL and the quota count."""
        with patch("opengmao.api.ai_router.get_client"), \
                patch("opengmao.api.ai_router.upload_bytes") as upload, \
                patch("opengmao.api.ai_router.download", return_value="https://s3/presigned"):
            response = client.post("/api/assets/upload", files={"file": ("Manuel GA37.pdf", b"%PDF", "application/pdf")})

        body = response.json()
        assert body["success"] is True
        assert body["file_url"] == "https://s3/presigned"
        assert body["file_size_bytes"] == 4
        key = upload.call_args[0][1]
        assert key.startswith(f"{user['id']}/")
        assert " " not in key
        assert upload_limiter.is_limited(user["id"]) is False

    def test_storage_error(self, client):
        """Test that a storage failure is reported."""
        with patch("opengmao.api.ai_router.get_client"), \
                patch("opengmao.api.ai_router.upload_bytes", side_effect=RuntimeError("denied")):
            response = client.post("/api/assets/upload", files={"file": PDF})
        assert response.status_code == 500
        assert response.json()["error"] == "Échec de l'upload. Veuillez réessayer."


class ApiError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class TestTranscribeRoute:
    """Test /api/transcribe."""

    AUDIO = {"audio": ("note.webm", b"audio", "audio/webm")}

    def test_missing_audio(self, anonymous):
        """Test a request without audio."""
        response = anonymous.post("/api/transcribe", data={"language": "auto"})
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}

    def test_too_large(self, anonymous):
        """Test the 25MB limit."""
        with patch("opengmao.api.ai_router.MAX_AUDIO_BYTES", 2):
            response = anonymous.post("/api/transcribe", files=self.AUDIO)
        assert response.json() == {"error": "File too large. Max size is 25MB"}

    def test_success(self, anonymous):
        """Test that the transcription is returned as is."""
        result = {"success": True, "text": "le moteur chauffe", "detectedLanguage": "fr"}
        with patch("opengmao.api.ai_router.transcribe_multilingual", AsyncMock(return_value=result)) as transcribe:
            response = anonymous.post("/api/transcribe", files=self.AUDIO, data={"language": "fr"})
        assert response.json() == result
        assert transcribe.call_args.kwargs["language_hint"] == "fr"

    @pytest.mark.parametrize("status, error", [(401, "Invalid API key"), (429, "Rate limit exceeded")])
    def test_provider_errors(self, anonymous, status, error):
        """Test that provider auth and rate limit errors keep their status."""
        with patch("opengmao.api.ai_router.transcribe_multilingual", AsyncMock(side_effect=ApiError(status))):
            response = anonymous.post("/api/transcribe", files=self.AUDIO)
        assert response.status_code == status
        assert response.json() == {"error": error}

    def test_other_error(self, anonymous):
        """Test the generic failure body."""
        with patch("opengmao.api.ai_router.transcribe_multilingual", AsyncMock(side_effect=RuntimeError("boom"))):
            response = anonymous.post("/api/transcribe", files=self.AUDIO)
        assert response.status_code == 500
        assert response.json() == {"error": "Transcription failed", "details": "boom"}


class TestExtractRoute:
    """Test /api/assets/ai-extract."""

    def test_missing_url(self, anonymous):
        """Test that the URL is checked first."""
        response = anonymous.post("/api/assets/ai-extract", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "URL du fichier requise", "success": False}

    def test_unauthorized(self, anonymous):
        """Test the 401 body."""
        response = anonymous.post("/api/assets/ai-extract", json={"file_url": "https://s3/manual.pdf"})
        assert response.status_code == 401

    def test_quota(self, client, user):
        """Test the hourly extraction quota."""
        for _ in range(10):
            extraction_limiter.record(user["id"])
        response = client.post("/api/assets/ai-extract", json={"file_url": "https://s3/manual.pdf"})
        assert response.status_code == 429
        assert response.json()["error"] == "Limite d'extractions atteinte (10/heure)"

    def test_download_error(self, client):
        """Test that a failed download is reported with its message."""
        with patch("opengmao.api.ai_router.fetch_file", side_effect=RuntimeError("HTTP 404")):
            response = client.post("/api/assets/ai-extract", json={"file_url": "https://s3/manual.pdf"})
        assert response.status_code == 500
        assert response.json() == {"error": "HTTP 404", "success": False}


class TestIngestRoute:
    """Test /api/ingest."""

    def test_unauthorized(self, anonymous):
        """Test that the error is sent as a stream event."""
        response = anonymous.post("/api/ingest", files={"file": PDF})
        assert response.headers["content-type"].startswith("text/event-stream")
        assert frames(response) == [{"stage": "error", "progress": 0, "message": "Non autorisé"}]

    def test_missing_file(self, client):
        """Test an authenticated request without a file."""
        response = client.post("/api/ingest", data={"assetId": "a1"})
        assert frames(response) == [{"stage": "error", "progress": 0, "message": "Aucun fichier fourni"}]

    def test_events_are_streamed(self, client, user):
        """Test that pipeline events are forwarded in order."""
        events = [{"stage": "parsing", "progress": 10, "message": "Lecture"},
                  {"stage": "complete", "progress": 100, "message": "Terminé"}]
        with patch("opengmao.api.ai_router.ingest_document", return_value=iter(events)) as ingest:
            response = client.post("/api/ingest", files={"file": PDF}, data={"assetId": "a1"})

        assert frames(response) == events
        assert ingest.call_args.kwargs["organization_id"] == ORG
        assert ingest.call_args.kwargs["asset_id"] == "a1"


class FakeStreamingModel:
    def __init__(self, parts):
        self.parts = parts

    async def astream(self, messages):
        for part in self.parts:
            yield MagicMock(content=part)


class TestChatRoute:
    """Test /api/chat."""

    PREPARED = {
        "system_prompt": "system",
        "analysis": {"intent": "troubleshooting", "urgency": "emergency", "response_format": "diagnostic"},
        "results": [{"source_type": "manual", "similarity": 0.8}],
    }

    def test_checks(self, client, anonymous):
        """Test auth, required fields and unknown assets."""
        assert anonymous.post("/api/chat", json={"message": "?", "asset_id": "a"}).status_code == 401
        assert client.post("/api/chat", json={"message": "?"}).json() == {"error": "Message and asset_id required"}
        response = client.post("/api/chat", json={"message": "?", "asset_id": str(uuid.uuid4())})
        assert response.status_code == 404

    def test_malformed_asset_id(self, client):
        """Test that an asset id which is not a UUID is an unknown asset."""
        response = client.post("/api/chat", json={"message": "bonjour", "asset_id": "not-a-uuid"})
        assert response.status_code == 404
        assert response.json() == {"error": "Asset not found"}

    def test_stream_and_memory(self, client, user, asset):
        """Test the content frames, the final frame and the stored conversation."""
        model = FakeStreamingModel(["Vérifiez ", "le filtre."])
        with patch("opengmao.api.ai_router.prepare_chat", return_value=self.PREPARED), \
                patch("opengmao.api.ai_router.get_chat_model", return_value=model) as get_model:
            response = client.post("/api/chat", json={"message": "Le moteur chauffe", "asset_id": asset["id"],
                                                      "use_memory": True})

        body = frames(response)
        assert body[:2] == [{"content": "Vérifiez "}, {"content": "le filtre."}]
        assert body[-1]["done"] is True
        assert body[-1]["analysis"]["urgency"] == "emergency"
        assert body[-1]["search"]["sources_used"] == 1
        assert get_model.call_args.kwargs["temperature"] == 0.3

        stored = conversation_memory.get_context_messages(user_id=user["id"], asset_id=asset["id"])
        assert stored == [{"role": "user", "content": "Le moteur chauffe"},
                          {"role": "assistant", "content": "Vérifiez le filtre."}]

    def test_preparation_error(self, client, asset):
        """Test that a retrieval failure is a 500."""
        with patch("opengmao.api.ai_router.prepare_chat", side_effect=RuntimeError("db down")):
            response = client.post("/api/chat", json={"message": "Bonjour", "asset_id": asset["id"]})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "db down"}


class TestConversationRoutes:
    """Test /api/conversations."""

    def test_get_and_clear(self, client, user, asset):
        """Test reading then clearing a conversation."""
        assert client.get(f"/api/conversations/{asset['id']}").json() == {"messages": [], "summary": None}
        conversation_memory.add_message(user_id=user["id"], asset_id=asset["id"], role="user", content="Bonjour")

        assert len(client.get(f"/api/conversations/{asset['id']}").json()["messages"]) == 1
        assert client.delete(f"/api/conversations/{asset['id']}").json() == {"success": True}


class TestDependencyRoutes:
    """Test dependency suggestions."""

    def test_list_requires_asset(self, client):
        """Test the assetId query parameter."""
        assert client.get("/api/dependencies/suggestions").json() == {"error": "assetId required"}

    def test_unknown_suggestion(self, client):
        """Test approving, rejecting and deleting an unknown suggestion."""
        unknown = str(uuid.uuid4())
        assert client.post(f"/api/dependencies/suggestions/{unknown}").json() == {"error": "Suggestion not found"}
        assert client.patch(f"/api/dependencies/suggestions/{unknown}").status_code == 404
        assert client.delete(f"/api/dependencies/suggestions/{unknown}").status_code == 404

    def test_suggest(self, client, asset):
        """Test that the model suggestions are returned."""
        suggestions = {"upstream": [{"depends_on_name": "Sécheur"}], "downstream": []}
        with patch("opengmao.api.ai_router.suggest_dependencies", return_value=suggestions) as suggest:
            response = client.post("/api/suggest-dependencies", json={"asset_id": asset["id"]})
        assert response.json() == suggestions
        assert suggest.call_args[0][0] == "Compresseur GA37"

    def test_suggest_unknown_asset(self, client):
        """Test the 404 of an unknown asset."""
        response = client.post("/api/suggest-dependencies", json={"asset_id": str(uuid.uuid4())})
        assert response.status_code == 404
        malformed = client.post("/api/suggest-dependencies", json={"asset_id": "not-a-uuid"})
        assert malformed.status_code == 404


class TestAliasRoutes:
    """Test the alias routes."""

    def test_lifecycle(self, client, asset):
        """Test validation, creation, duplicates, listing and deletion."""
        url = f"/api/assets/{asset['id']}/aliases"
        assert client.post(url, json={"alias": "a"}).json() == {"error": "Alias must be at least 2 characters"}

        response = client.post(url, json={"alias": "le gros"})
        assert response.status_code == 201
        alias_id = response.json()["alias"]["id"]

        assert client.post(url, json={"alias": "LE GROS"}).status_code == 409
        assert len(client.get(url).json()["aliases"]) == 1

        assert client.delete(url).json() == {"error": "Alias ID required"}
        assert client.delete(url, params={"aliasId": alias_id}).json()["success"] is True
        assert client.get(url).json() == {"aliases": []}


class TestDocumentRoutes:
    """Test the document routes."""

    def test_unknown_document(self, client):
        """Test the 404 body."""
        unknown = str(uuid.uuid4())
        assert client.get(f"/api/documents/{unknown}").json() == {"error": "Document non trouvé"}
        assert client.delete(f"/api/documents/{unknown}").status_code == 404

    def test_empty_types(self, client):
        """Test that an empty type list is refused."""
        response = client.patch(f"/api/documents/{uuid.uuid4()}", json={"document_types": []})
        assert response.status_code == 400

    def test_asset_without_documents(self, client, asset):
        """Test the empty document list."""
        assert client.get(f"/api/assets/{asset['id']}/documents").json() == {"documents": []}


class TestTriageRoute:
    """Test /api/ai-triage."""

    def test_assets_are_sorted(self, client, asset):
        """Test that the organization's assets are passed sorted by name."""
        funcs.create_asset(data={"name": "Aspirateur", "code": "ASP-1", "location": "Atelier B"}, organization_id=ORG)
        answer = {"response": {"type": "text", "content": "ok"}, "rawText": "ok", "detectedLanguage": "French"}
        with patch("opengmao.api.ai_router.triage", return_value=answer) as triage:
            response = client.post("/api/ai-triage", json={"message": "Le compresseur vibre"})

        assert response.json() == answer
        assert [a["name"] for a in triage.call_args[0][2]] == ["Aspirateur", "Compresseur GA37"]

    def test_model_error(self, client):
        """Test the 500 body."""
        with patch("opengmao.api.ai_router.triage", side_effect=RuntimeError("timeout")):
            response = client.post("/api/ai-triage", json={"message": "Bonjour"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process AI triage request"
