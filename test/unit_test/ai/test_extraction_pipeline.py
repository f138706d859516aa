"""
Unit tests for the multi-pass extraction pipeline.

Tests cover:
- Pass input selection and truncation
- Merging, cross-validation and completeness scoring
- Single pass execution with a mocked chat model
- The complete pipeline with mocked passes, including retries
- The legacy single-pass shape and cost estimates
"""

from unittest.mock import MagicMock, patch

import pytest

from opengmao.ai import extraction_pipeline as pipeline


def outcome(data, tokens=100):
    return {"success": data is not None, "data": data, "error": None, "tokens_used": tokens, "time_ms": 1}


def complete_extraction():
    """Merged result passing every completeness check."""
    return {
        "main_asset": {"name": "Compresseur GA37", "manufacturer": "Atlas Copco", "model_number": "GA37"},
        "model_configurations": [{"model": "GA37", "configurations": [{"hp": 50}, {"hp": 60}]}],
        "components": [{"name": "Moteur"}, {"name": "Filtre"}, {"name": "Vanne"}],
        "integrated_subsystems": [{"name": "Sécheur"}],
        "electrical_components": [{"name": "K1"}, {"name": "F1"}, {"name": "Q1"}],
        "motor_protection_settings": [{"hp": 50, "setting": "95A"}],
        "control_sequences": [],
        "specification_tables": [{"title": "Caractéristiques"}],
        "maintenance_schedule": {"routine": [{"interval_description": "500h"}, {"interval_description": "2000h"}]},
        "spare_parts": [{"name": p, "replacement_interval_hours": 2000} for p in ("Filtre", "Huile", "Joint")],
        "diagnostic_codes": [{"code": c} for c in ("E01", "E02", "E03")],
    }


class TestPassInputs:
    """Test truncate and select_pass_texts."""

    def test_truncate(self):
        """Test the truncation marker."""
        assert pipeline.truncate("abc") == "abc"
        assert pipeline.truncate("x" * 10, limit=5) == "xxxxx\n[Texte tronqué...]"

    def test_without_sections(self):
        """Test the document halves used when no section is detected."""
        texts = pipeline.select_pass_texts("abcdef", {})
        assert texts == {"specs": "abc", "subsystems": "abcdef", "electrical": "def", "maintenance": "abcdef"}

    def test_with_sections(self):
        """Test that detected sections come first."""
        sections = {"specifications": {"text": "SPECS"}, "troubleshooting": {"text": "FAULTS"}}
        texts = pipeline.select_pass_texts("abcdef", sections)
        assert texts["specs"] == "SPECS\n\nabc"
        assert texts["subsystems"] == "SPECS"
        assert texts["maintenance"] == "FAULTS"


class TestMergeAndValidate:
    """Test merge_pass_results, cross_validate_extraction and validate_completeness."""

    def test_merge_defaults(self):
        """Test that failed passes leave default values."""
        merged = pipeline.merge_pass_results(None, None, None, None, None)
        assert merged["main_asset"]["name"] == "Unknown Asset"
        assert merged["maintenance_schedule"] == {"routine": []}
        assert all(merged[field] == [] for field in pipeline.LIST_FIELDS)

    def test_merge_takes_each_field_from_its_pass(self):
        """Test the pass owning each field."""
        merged = pipeline.merge_pass_results(
            {"main_asset": {"name": "GA37"}, "components": [{"name": "Moteur"}]},
            {"integrated_subsystems": [{"name": "Sécheur"}]},
            {"control_sequences": [{"step": 1}]},
            {"specification_tables": [{"title": "Gamme"}]},
            {"diagnostic_codes": [{"code": "E01"}]},
        )
        assert merged["main_asset"] == {"name": "GA37"}
        assert merged["components"] == [{"name": "Moteur"}]
        assert merged["integrated_subsystems"] == [{"name": "Sécheur"}]
        assert merged["control_sequences"] == [{"step": 1}]
        assert merged["specification_tables"] == [{"title": "Gamme"}]
        assert merged["diagnostic_codes"] == [{"code": "E01"}]

    def test_merge_wraps_string_items(self):
        """Test that plain strings become objects and other values are dropped."""
        merged = pipeline.merge_pass_results(
            {"main_asset": "GA37", "model_configurations": ["GA37", "GA45"], "components": ["moteur", 3, " "]},
            {"integrated_subsystems": "sécheur"},
            None,
            None,
            {"diagnostic_codes": ["E01"], "maintenance_schedule": {"routine": ["500h"]}},
        )
        assert merged["main_asset"]["name"] == "Unknown Asset"
        assert merged["model_configurations"] == [{"model": "GA37"}, {"model": "GA45"}]
        assert merged["components"] == [{"name": "moteur"}]
        assert merged["integrated_subsystems"] == []
        assert merged["diagnostic_codes"] == [{"code": "E01"}]
        assert merged["maintenance_schedule"] == {"routine": [{"interval_description": "500h"}]}

    def test_cross_validation(self):
        """Test the warnings and suggestions of an inconsistent extraction."""
        data = {
            "main_asset": {"name": "Compresseur 5.5", "manufacturer": " "},
            "electrical_components": [{}] * 6,
        }
        result = pipeline.cross_validate_extraction(data)

        assert len(result["warnings"]) == 2
        assert result["warnings"][0].startswith("Composants électriques trouvés")
        assert result["warnings"][1] == "Fabricant non identifié. Vérifiez la page de couverture."
        assert any("model_number est vide" in s for s in result["suggestions"])

    def test_consistent_extraction(self):
        """Test that a complete extraction raises no warning."""
        data = complete_extraction()
        data["control_sequences"] = [{"step": 1}]
        assert pipeline.cross_validate_extraction(data) == {"warnings": [], "suggestions": []}

    def test_empty_extraction_scores_zero(self):
        """Test the score and missing sections of an empty result."""
        validation = pipeline.validate_completeness(pipeline.merge_pass_results(None, None, None, None, None))

        assert validation["completeness_score"] == 0
        assert validation["confidence_score"] == 0
        assert validation["missing_critical_sections"] == [
            "Main asset identified",
            "Model configurations extracted",
            "Core components extracted",
            "Subsystems detected",
            "Electrical components",
        ]
        assert "Section critique manquante: Subsystems detected" in validation["extraction_warnings"]

    def test_complete_extraction_scores_full(self):
        """Test a result passing every check."""
        validation = pipeline.validate_completeness(complete_extraction())
        assert validation["completeness_score"] == 100
        assert validation["confidence_score"] == 1
        assert validation["missing_optional_sections"] == []


class TestExecutePass:
    """Test execute_pass."""

    def run(self, llm):
        with patch("opengmao.ai.extraction_pipeline.get_chat_model", return_value=llm):
            return pipeline.execute_pass("system", "user")

    def test_success(self):
        """Test JSON extraction and token counting."""
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content='Résultat: {"components": []}',
                                            usage_metadata={"total_tokens": 120})
        result = self.run(llm)
        assert result["success"] is True
        assert result["data"] == {"components": []}
        assert result["tokens_used"] == 120

    def test_reply_without_json(self):
        """Test that the tokens of a reply without JSON are still counted."""
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content="Aucune donnée", usage_metadata={"total_tokens": 50})
        result = self.run(llm)
        assert result["success"] is False
        assert result["error"] == "No JSON in response"
        assert result["tokens_used"] == 50

    def test_model_error(self):
        """Test that a model error is reported without tokens."""
        llm = MagicMock()
        llm.invoke.side_effect = RuntimeError("rate limited")
        result = self.run(llm)
        assert result == {"success": False, "data": None, "error": "rate limited", "tokens_used": 0,
                          "time_ms": result["time_ms"]}


class TestMultiPass:
    """Test extract_equipment_data_multi_pass and convert_to_legacy_format."""

    def passes(self):
        data = complete_extraction()
        return [
            outcome({key: data[key] for key in ("main_asset", "model_configurations", "components")}),
            outcome({"integrated_subsystems": data["integrated_subsystems"]}),
            outcome({key: data[key] for key in ("electrical_components", "motor_protection_settings",
                                                "control_sequences")}),
            outcome({"specification_tables": data["specification_tables"]}),
            outcome({key: data[key] for key in ("maintenance_schedule", "spare_parts", "diagnostic_codes")}),
        ]

    def test_pipeline(self):
        """Test the assembled result of five successful passes."""
        with patch("opengmao.ai.extraction_pipeline.execute_pass", side_effect=self.passes()) as execute:
            result = pipeline.extract_equipment_data_multi_pass("Technical data\nModel GA37", enable_retry=False)

        assert execute.call_count == 5
        assert result["main_asset"]["name"] == "Compresseur GA37"
        assert result["extraction_metadata"]["total_tokens"] == 500
        assert result["extraction_metadata"]["extraction_passes"] == 5
        assert result["extraction_metadata"]["completeness_score"] == 100
        assert result["extraction_metadata"]["cost_usd"] == pytest.approx(pipeline.calculate_cost(500))
        assert result["extraction_notes"][0] == "Sections détectées: specifications"

    def test_retry_fills_empty_sections(self):
        """Test that empty model configurations are retried."""
        outcomes = self.passes()
        outcomes[0]["data"]["model_configurations"] = []
        retried = outcome({"model_configurations": [{"model": "GA37", "configurations": []}]}, tokens=40)
        with patch("opengmao.ai.extraction_pipeline.execute_pass", side_effect=outcomes + [retried]) as execute:
            result = pipeline.extract_equipment_data_multi_pass("Technical data")

        assert execute.call_count == 6
        assert result["model_configurations"] == [{"model": "GA37", "configurations": []}]
        assert result["extraction_metadata"]["total_tokens"] == 540

    def test_legacy_format(self):
        """Test the flattened single-pass shape."""
        with patch("opengmao.ai.extraction_pipeline.execute_pass", side_effect=self.passes()):
            result = pipeline.extract_equipment_data_multi_pass("Technical data", enable_retry=False)
        result["main_asset"]["model_number"] = ["GA37", "GA45"]
        result["spare_parts"][0]["part_number"] = "1613-6105-00"
        result["maintenance_schedule"]["routine"][0]["tasks"] = [{"task": "Vidange"}, "Nettoyage"]

        legacy = pipeline.convert_to_legacy_format(result)

        assert legacy["main_asset"]["model_number"] == "GA37"
        assert legacy["spare_parts"][0]["reference"] == "1613-6105-00"
        assert legacy["spare_parts"][1]["reference"] == ""
        assert legacy["spare_parts"][0]["unit"] == "pièce"
        assert legacy["maintenance_schedules"][0] == {"type": "routine", "interval": "500h",
                                                      "tasks": ["Vidange", "Nettoyage"]}
        assert legacy["confidence_score"] == result["validation"]["confidence_score"]

    def test_string_lists_from_the_model(self):
        """Test that lists of plain strings are scored and flattened like objects."""
        first = outcome({"main_asset": {"name": "GA37"}, "model_configurations": ["GA37", "GA45"],
                         "components": ["moteur", "filtre", "vanne"]})
        outcomes = [first, outcome({}), outcome({}), outcome({}), outcome({"spare_parts": ["Joint"]})]
        with patch("opengmao.ai.extraction_pipeline.execute_pass", side_effect=outcomes):
            result = pipeline.extract_equipment_data_multi_pass("Technical data", enable_retry=False)

        assert result["components"] == [{"name": "moteur"}, {"name": "filtre"}, {"name": "vanne"}]
        checks = {c["name"]: c["present"] for c in result["validation"]["checks"]}
        assert checks["Model configurations extracted"] is True
        assert checks["Multiple configurations per model"] is False
        assert checks["Core components extracted"] is True

        legacy = pipeline.convert_to_legacy_format(result)
        assert [c["name"] for c in legacy["components"]] == ["moteur", "filtre", "vanne"]
        assert legacy["spare_parts"][0]["name"] == "Joint"


class TestCost:
    """Test calculate_cost and estimate_cost_mad."""

    def test_cost(self):
        """Test the 70/30 token split."""
        assert pipeline.calculate_cost(1_000_000) == pytest.approx(0.7 * 3 + 0.3 * 15)
        assert pipeline.estimate_cost_mad(6.6) == pytest.approx(66)
