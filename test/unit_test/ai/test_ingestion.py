"""
Unit tests for document ingestion and relationship extraction.

Tests cover:
- Paragraph rebuilding of extracted PDF text
- The ingestion event stream with the model calls mocked
- Duplicate uploads, short documents and failures
- Fingerprints stored only for completed imports
- Relationship extraction and the suggestions it stores
"""

import json
import uuid
from contextlib import ExitStack
from unittest.mock import MagicMock, patch

import pytest

from opengmao.ai.dependency_extractor import extract_dependencies
from opengmao.ai.ingestion import clean_document_text, ingest_document
from opengmao.cache.document_fingerprint import check_duplicate_document, generate_file_fingerprint
from opengmao.database.core import funcs
from opengmao.dependencies.suggestions import count_pending_suggestions, generate_dependency_suggestions

ORG = str(uuid.uuid4())
USER = str(uuid.uuid4())

MANUAL_TEXT = "\n".join(["Le compresseur GA37 doit être entretenu toutes les 500 heures."] * 10)
METADATA = {
    "name": "Compresseur GA37",
    "manufacturer": "Atlas Copco",
    "model": "GA37",
    "serial_number": None,
    "category": "Compressor",
    "description": None,
    "from_cache": False,
}


class TestCleanDocumentText:
    """Test clean_document_text."""

    def test_headings_and_page_markers(self):
        """Test that markers are dropped and headings keep their own line."""
        raw = "[Page 1]\nCONSIGNES DE SECURITE GENERALES\nLire le manuel.\nPage 1/3\n1. Installation\nPoser sur un sol plat."
        assert clean_document_text(raw) == (
            "CONSIGNES DE SECURITE GENERALES\n\nLire le manuel.\n\n1. Installation\n\nPoser sur un sol plat."
        )

    def test_short_lines_are_merged(self):
        """Test that wrapped lines become one paragraph."""
        assert clean_document_text("Vérifier le niveau\nd'huile   chaque jour.") == "Vérifier le niveau d'huile chaque jour."


@pytest.fixture
def mocked_models():
    """Text extraction and every model call of the ingestion replaced."""
    with ExitStack() as stack:
        mocks = {
            name: stack.enter_context(patch(f"opengmao.ai.ingestion.{name}"))
            for name in ("extract_text_from_pdf", "extract_asset_metadata_cached", "classify_document",
                         "classify_document_types", "generate_embeddings", "generate_dependency_suggestions")
        }
        mocks["extract_text_from_pdf"].return_value = (MANUAL_TEXT, ["page 1", "page 2"])
        mocks["extract_asset_metadata_cached"].return_value = METADATA
        mocks["classify_document"].return_value = {"type": "manual", "confidence": 0.9, "reasoning": ""}
        mocks["classify_document_types"].return_value = ["maintenance"]
        mocks["generate_embeddings"].side_effect = lambda batch: [[0.1, 0.2, 0.3]] * len(batch)
        mocks["generate_dependency_suggestions"].return_value = 0
        yield mocks


class TestIngestDocument:
    """Test ingest_document."""

    def test_new_asset(self, db_engine, mocked_models):
        """Test the event stream and what is stored for a new asset."""
        events = list(ingest_document(data=b"%PDF-1.7", filename="ga37.pdf", user_id=USER, organization_id=ORG))

        assert events[0]["stage"] == "uploading"
        assert events[-1]["stage"] == "complete"
        assert events[-1]["progress"] == 100
        progress = [e["progress"] for e in events[:-1]]
        assert all(0 < p < 100 for p in progress)

        result = events[-1]["result"]
        assert result["chunks_created"] == 1
        assert result["document_types"] == ["maintenance"]
        assert result["extraction"] == {"method": "text", "pages": 2}

        asset = funcs.get_asset(asset_id=result["asset_id"])
        assert asset["name"] == "Compresseur GA37"
        assert asset["location"] == "À définir"
        assert asset["code"].startswith("GA37-")

        documents = funcs.list_documents(asset_id=result["asset_id"])
        assert documents[0]["processing_status"] == "completed"
        assert documents[0]["total_chunks"] == 1
        assert documents[0]["document_type"] == "manual"
        assert funcs.get_asset_document_text(asset_id=result["asset_id"]).startswith("Le compresseur GA37")

    def test_existing_asset_and_user_type(self, db_engine, mocked_models):
        """Test attaching a document to an existing asset with a chosen type."""
        asset = funcs.create_asset(data={"name": "Sécheur", "code": "SEC-1", "location": "Atelier"},
                                   organization_id=ORG)["asset"]
        events = list(ingest_document(data=b"%PDF", filename="fd120.pdf", user_id=USER, organization_id=ORG,
                                      asset_id=asset["id"], document_type="datasheet"))

        assert events[-1]["result"]["asset_id"] == asset["id"]
        assert any(e["message"] == "Ajout du document à l'équipement..." for e in events)
        document = funcs.list_documents(asset_id=asset["id"])[0]
        assert document["document_type"] == "datasheet"
        assert document["user_confirmed"] is True

    def test_duplicate_upload(self, db_engine, mocked_models):
        """Test that the same file is refused the second time."""
        list(ingest_document(data=b"%PDF-1.7", filename="ga37.pdf", user_id=USER, organization_id=ORG))
        events = list(ingest_document(data=b"%PDF-1.7", filename="copie.pdf", user_id=USER, organization_id=ORG))

        assert events[-1]["stage"] == "error"
        assert events[-1]["message"] == "Document déjà importé pour Compresseur GA37"
        assert events[-1]["duplicate"]["file_name"] == "ga37.pdf"

    def test_short_document(self, db_engine, mocked_models):
        """Test that a scan without text is refused."""
        mocked_models["extract_text_from_pdf"].return_value = ("court", ["court"])
        events = list(ingest_document(data=b"%PDF", filename="scan.pdf", user_id=USER, organization_id=ORG))
        assert events[-1] == {"stage": "error", "progress": 0, "message": "PDF contient trop peu de texte"}
        mocked_models["extract_asset_metadata_cached"].assert_not_called()

    def test_failure_becomes_error_event(self, db_engine, mocked_models):
        """Test that an exception ends the stream with an error event."""
        mocked_models["extract_text_from_pdf"].side_effect = ValueError("PDF illisible")
        events = list(ingest_document(data=b"%PDF", filename="broken.pdf", user_id=USER, organization_id=ORG))
        assert events[-1] == {"stage": "error", "progress": 0, "message": "PDF illisible"}

    def test_suggestion_failure_is_ignored(self, db_engine, mocked_models):
        """Test that the import completes when dependency suggestion fails."""
        mocked_models["generate_dependency_suggestions"].side_effect = RuntimeError("model down")
        events = list(ingest_document(data=b"%PDF", filename="ga37.pdf", user_id=USER, organization_id=ORG))
        assert events[-1]["stage"] == "complete"

    def test_failed_chunk_insert_is_skipped(self, db_engine, mocked_models):
        """Test that a failing chunk insert is logged and the import still completes."""
        with patch("opengmao.ai.ingestion.store_chunks", side_effect=RuntimeError("insert failed")) as store:
            events = list(ingest_document(data=b"%PDF", filename="ga37.pdf", user_id=USER, organization_id=ORG))

        store.assert_called_once()
        assert events[-1]["stage"] == "complete"
        result = events[-1]["result"]
        assert result["chunks_created"] == 0
        document = funcs.get_document(document_id=result["document_id"])
        assert document["processing_status"] == "completed"
        assert document["total_chunks"] == 0

    def test_fingerprint_is_stored_once_completed(self, db_engine, mocked_models):
        """Test that only a completed import makes the file a duplicate."""
        asset = funcs.create_asset(data={"name": "Sécheur", "code": "SEC-1", "location": "Atelier"},
                                   organization_id=ORG)["asset"]
        mocked_models["classify_document_types"].side_effect = RuntimeError("model down")
        failed = list(ingest_document(data=b"%PDF-1.7", filename="ga37.pdf", user_id=USER, organization_id=ORG,
                                      asset_id=asset["id"]))
        assert failed[-1] == {"stage": "error", "progress": 0, "message": "model down"}
        assert check_duplicate_document(fingerprint=generate_file_fingerprint(b"%PDF-1.7"),
                                        organization_id=ORG)["is_duplicate"] is False

        mocked_models["classify_document_types"].side_effect = None
        retried = list(ingest_document(data=b"%PDF-1.7", filename="ga37.pdf", user_id=USER, organization_id=ORG,
                                       asset_id=asset["id"]))
        assert retried[-1]["stage"] == "complete"
        duplicate = check_duplicate_document(fingerprint=generate_file_fingerprint(b"%PDF-1.7"), organization_id=ORG)
        assert duplicate["existing_document"]["id"] == retried[-1]["result"]["document_id"]

    def test_suggestions_use_the_existing_asset_name(self, db_engine, mocked_models):
        """Test that suggestions for an existing asset name it, not the detected equipment."""
        asset = funcs.create_asset(data={"name": "Sécheur", "code": "SEC-1", "location": "Atelier"},
                                   organization_id=ORG)["asset"]
        list(ingest_document(data=b"%PDF", filename="fd120.pdf", user_id=USER, organization_id=ORG,
                             asset_id=asset["id"]))

        kwargs = mocked_models["generate_dependency_suggestions"].call_args.kwargs
        assert kwargs["source_asset_id"] == asset["id"]
        assert kwargs["source_asset_name"] == "Sécheur"

    def test_unknown_asset(self, db_engine, mocked_models):
        """Test that a document cannot be attached to a missing asset."""
        events = list(ingest_document(data=b"%PDF", filename="fd120.pdf", user_id=USER, organization_id=ORG,
                                      asset_id=str(uuid.uuid4())))
        assert events[-1] == {"stage": "error", "progress": 0, "message": "Équipement introuvable"}
        mocked_models["generate_embeddings"].assert_not_called()


def mocked_model(content):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=content)
    return llm


class TestExtractDependencies:
    """Test extract_dependencies."""

    def test_invalid_entries_are_dropped(self):
        """Test that empty targets, unknown types and low confidences are dropped."""
        reply = json.dumps({"relationships": [
            {"target_equipment": "Filter F-200", "relationship_type": "upstream", "confidence": 0.95},
            {"target_equipment": " ", "relationship_type": "upstream", "confidence": 0.9},
            {"target_equipment": "Pompe P-1", "relationship_type": "feeds", "confidence": 0.9},
            {"target_equipment": "Tour T-1", "relationship_type": "related", "confidence": 0.3},
            {"target_equipment": "Vanne V-1", "relationship_type": "parallel", "confidence": "high"},
        ]})
        with patch("opengmao.ai.dependency_extractor.get_chat_model", return_value=mocked_model(reply)):
            result = extract_dependencies("manual", "Dryer D-100")

        assert result["source_equipment"] == "Dryer D-100"
        assert [r["target_equipment"] for r in result["relationships"]] == ["Filter F-200"]

    def test_error(self):
        """Test that a failure gives no relationships."""
        with patch("opengmao.ai.dependency_extractor.get_chat_model", side_effect=RuntimeError("down")):
            assert extract_dependencies("manual", "Dryer D-100")["relationships"] == []


class TestGenerateDependencySuggestions:
    """Test generate_dependency_suggestions."""

    def test_relationships_become_pending_suggestions(self, db_engine):
        """Test that matched and unmatched relationships are stored."""
        source = funcs.create_asset(data={"name": "Dryer D-100", "code": "D-100", "location": "Usine"},
                                    organization_id=ORG)["asset"]
        funcs.create_asset(data={"name": "Filter F-200", "code": "F-200", "location": "Usine"}, organization_id=ORG)
        extraction = {"source_equipment": "Dryer D-100", "relationships": [
            {"target_equipment": "Filter F-200", "relationship_type": "upstream", "confidence": 0.95},
            {"target_equipment": "Cooling Tower", "relationship_type": "downstream", "confidence": 0.7},
        ]}
        with patch("opengmao.dependencies.suggestions.extract_dependencies", return_value=extraction):
            created = generate_dependency_suggestions(document_id=None, source_asset_id=source["id"],
                                                      source_asset_name="Dryer D-100", document_text="manual",
                                                      organization_id=ORG)

        assert created == 2
        assert count_pending_suggestions(asset_id=source["id"]) == 2

    def test_no_relationships(self, db_engine):
        """Test that nothing is stored without relationships."""
        extraction = {"source_equipment": "Dryer", "relationships": []}
        with patch("opengmao.dependencies.suggestions.extract_dependencies", return_value=extraction):
            assert generate_dependency_suggestions(document_id=None, source_asset_id=str(uuid.uuid4()),
                                                   source_asset_name="Dryer", document_text="manual",
                                                   organization_id=ORG) == 0
