"""
Unit tests for document analysis helpers.

Tests cover:
- Section detection in full text and page by page
- Chunk grouping and section priority
- Document and chunk classification
- Dependency suggestion and asset matching
- Metadata extraction and its cache
"""

import json
from unittest.mock import MagicMock, patch

from opengmao.ai import document_classifier, metadata_extractor
from opengmao.ai.dependency_suggester import match_existing_asset, suggest_dependencies
from opengmao.ai.section_detector import (
    detect_sections,
    detect_sections_by_page,
    estimate_page_count,
    get_section_text,
    prioritize_sections,
    split_into_large_chunks,
)


def mocked_model(content):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=content)
    return llm


class TestSectionDetector:
    """Test the section detector."""

    def test_full_text(self):
        """Test that a section starts at its heading."""
        text = "Introduction\nTECHNICAL SPECIFICATIONS\nPower 37 kW\nMaintenance schedule\nEvery 500h"
        sections = detect_sections(text)

        assert set(sections) == {"specifications", "maintenance"}
        assert sections["specifications"]["text"].startswith("TECHNICAL SPECIFICATIONS")
        assert sections["maintenance"]["text"] == "Maintenance schedule\nEvery 500h"
        assert sections["specifications"]["confidence"] == 0.7
        assert sections["specifications"]["start_page"] == 0

    def test_by_page(self):
        """Test page ranges and the ten page window."""
        pages = ["Cover", "Electrical diagrams"] + ["filler"] * 12
        section = detect_sections_by_page(pages)["electrical"]

        assert section["start_page"] == 2
        assert section["end_page"] == 12
        assert section["confidence"] == 0.9
        assert section["text"].startswith("Electrical diagrams\nfiller")

    def test_large_chunks(self):
        """Test that page blocks are grouped under the size limit."""
        text = "a" * 30 + "\n\n\n" + "b" * 30
        assert split_into_large_chunks(text, max_chars=40) == ["a" * 30, "b" * 30]
        assert split_into_large_chunks(text) == ["a" * 30 + "\n\n" + "b" * 30]

    def test_priority_and_page_count(self):
        """Test extraction priority and the page estimate."""
        assert prioritize_sections({"maintenance": {}, "specifications": {}}) == ["specifications", "maintenance"]
        assert estimate_page_count("x" * 3001) == 2

    def test_section_text(self):
        """Test the text of a detected, an empty and a missing section."""
        sections = detect_sections("Introduction\nTECHNICAL SPECIFICATIONS\nPower 37 kW")
        sections["maintenance"] = {"text": "", "confidence": 0.7}

        assert get_section_text(sections, "specifications") == "TECHNICAL SPECIFICATIONS\nPower 37 kW"
        assert get_section_text(sections, "maintenance") is None
        assert get_section_text(sections, "electrical") is None


class TestDocumentClassifier:
    """Test document_classifier."""

    def test_section_type(self):
        """Test the ordered keyword chain."""
        assert document_classifier.detect_section_type("Consignes de sécurité avant maintenance") == "safety"
        assert document_classifier.detect_section_type("Procédure de graissage") == "maintenance"
        assert document_classifier.detect_section_type("Tableau des pièces de rechange") == "parts_list"
        assert document_classifier.detect_section_type("Bonjour") == "general"

    def test_classify_document(self):
        """Test a valid classification."""
        llm = mocked_model('{"type": "datasheet", "confidence": 0.8, "reasoning": "specs"}')
        with patch("opengmao.ai.document_classifier.get_chat_model", return_value=llm):
            result = document_classifier.classify_document("Technical data")
        assert result == {"type": "datasheet", "confidence": 0.8, "reasoning": "specs"}

    def test_classify_document_fallbacks(self):
        """Test unknown types and model errors."""
        with patch("opengmao.ai.document_classifier.get_chat_model", return_value=mocked_model('{"type": "brochure"}')):
            assert document_classifier.classify_document("x")["type"] == "manual"
        with patch("opengmao.ai.document_classifier.get_chat_model", side_effect=RuntimeError("down")):
            assert document_classifier.classify_document("x")["confidence"] == 0.5

    def test_content_types(self):
        """Test that unknown and repeated types are dropped."""
        llm = mocked_model('["maintenance", "parts", "brochure", "parts"]')
        with patch("opengmao.ai.document_classifier.get_chat_model", return_value=llm):
            assert document_classifier.classify_document_types("text", {"name": "GA37"}) == ["maintenance", "parts"]
        assert "- Name: GA37" in llm.invoke.call_args[0][0]

    def test_content_types_fallback(self):
        """Test the manual fallback."""
        with patch("opengmao.ai.document_classifier.get_chat_model", return_value=mocked_model("[]")):
            assert document_classifier.classify_document_types("text") == ["manual"]
        with patch("opengmao.ai.document_classifier.get_chat_model", side_effect=RuntimeError("down")):
            assert document_classifier.classify_document_types("text") == ["manual"]


EXISTING = [
    {"id": "1", "name": "Centrale à Béton", "level": "line"},
    {"id": "2", "name": "Presse"},
]


class TestDependencySuggester:
    """Test match_existing_asset and suggest_dependencies."""

    def test_match_existing_asset(self):
        """Test containment in both directions."""
        assert match_existing_asset("centrale à béton principale", EXISTING) == "1"
        assert match_existing_asset("Presse hydraulique", EXISTING) == "2"
        assert match_existing_asset("Tour de refroidissement", EXISTING) is None
        assert match_existing_asset("", EXISTING) is None

    def test_suggestions_are_matched(self):
        """Test that suggested names are linked to existing assets."""
        reply = json.dumps({
            "upstream": [
                {"depends_on_name": "Centrale à Béton", "dependency_type": "feeds", "confidence": 0.9},
                {"dependency_type": "powers"},
            ],
            "downstream": [{"depends_on_name": "Convoyeur", "dependency_type": "feeds", "confidence": 0.6}],
        })
        llm = mocked_model(reply)
        with patch("opengmao.ai.dependency_suggester.get_chat_model", return_value=llm):
            result = suggest_dependencies("Malaxeur", "Manuel du malaxeur", EXISTING)

        assert len(result["upstream"]) == 1
        assert result["upstream"][0]["depends_on_id"] == "1"
        assert "depends_on_id" not in result["downstream"][0]
        assert "- Centrale à Béton (line)" in llm.invoke.call_args[0][0]

    def test_no_existing_assets_and_errors(self):
        """Test the empty listing and the error fallback."""
        llm = mocked_model('{"upstream": [], "downstream": []}')
        with patch("opengmao.ai.dependency_suggester.get_chat_model", return_value=llm):
            suggest_dependencies("Malaxeur", "Manuel", [])
        assert "Aucun autre asset pour le moment" in llm.invoke.call_args[0][0]

        with patch("opengmao.ai.dependency_suggester.get_chat_model", side_effect=RuntimeError("down")):
            assert suggest_dependencies("Malaxeur", "Manuel", EXISTING) == {"upstream": [], "downstream": []}


class TestMetadataExtractor:
    """Test extract_asset_metadata and its cached variant."""

    REPLY = '{"name": "Compresseur GA37", "manufacturer": "Atlas Copco", "model": null}'

    def test_defaults_fill_missing_fields(self):
        """Test the default category and null fields."""
        with patch("opengmao.ai.metadata_extractor.get_chat_model", return_value=mocked_model(self.REPLY)):
            metadata = metadata_extractor.extract_asset_metadata("manual")
        assert metadata["name"] == "Compresseur GA37"
        assert metadata["model"] is None
        assert metadata["category"] == "Equipment"

    def test_error_returns_defaults(self):
        """Test the failure fallback."""
        with patch("opengmao.ai.metadata_extractor.get_chat_model", side_effect=RuntimeError("down")):
            assert metadata_extractor.extract_asset_metadata("manual") == metadata_extractor.default_metadata()

    def test_second_extraction_is_cached(self, db_engine):
        """Test that the same document is only sent to the model once."""
        llm = mocked_model(self.REPLY)
        with patch("opengmao.ai.metadata_extractor.get_chat_model", return_value=llm):
            first = metadata_extractor.extract_asset_metadata_cached("GA37 manual")
            second = metadata_extractor.extract_asset_metadata_cached("GA37 manual")

        assert first["from_cache"] is False
        assert second["from_cache"] is True
        assert second["manufacturer"] == "Atlas Copco"
        assert llm.invoke.call_count == 1

    def test_unknown_equipment_is_not_cached(self, db_engine):
        """Test that a failed extraction is not stored."""
        with patch("opengmao.ai.metadata_extractor.get_chat_model", side_effect=RuntimeError("down")):
            metadata_extractor.extract_asset_metadata_cached("manual")
        llm = mocked_model(self.REPLY)
        with patch("opengmao.ai.metadata_extractor.get_chat_model", return_value=llm):
            assert metadata_extractor.extract_asset_metadata_cached("manual")["from_cache"] is False
