"""
Multi-Pass Extraction Pipeline
==============================

Turns the text of an equipment manual into a structured asset record with
five specialised model calls, then merges, cross-checks and scores the
result.

Passes
------
1. main asset, model configurations, mechanical components
2. integrated subsystems
3. electrical components, motor protection settings, control sequences
4. raw specification tables
5. maintenance schedule, spare parts, diagnostic codes

Each pass reads the part of the document most likely to hold its data (see
``select_pass_texts``). Empty critical sections can be retried once with a
narrower prompt. ``validate_completeness`` scores the merged result.

Dependencies
------------
LangChain (langchain-openai, langchain-core) through ``get_chat_model``.
"""

from langchain_core.messages import HumanMessage, SystemMessage
from opengmao.ai import extraction_prompts as prompts
from opengmao.ai.section_detector import detect_sections, get_section_text
from opengmao.api.prompt_utilities import get_chat_model, lc_text_from_content, extract_json_object, token_usage
from opengmao.database.config.config import settings
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging
import re
import time

logger = logging.getLogger("uvicorn")

PASS_TEXT_LIMIT = 60000
RETRY_TEXT_LIMIT = 40000
SUBSYSTEM_FALLBACK_CHARS = 50000
TRUNCATION_SUFFIX = "\n[Texte tronqué...]"
DEFAULT_MAX_TOKENS = 8000
EXTRACTION_PASSES = 5

INPUT_COST_PER_1M = 3.0
OUTPUT_COST_PER_1M = 15.0
USD_TO_MAD = 10

LIST_FIELDS = (
    "model_configurations",
    "components",
    "integrated_subsystems",
    "electrical_components",
    "motor_protection_settings",
    "control_sequences",
    "specification_tables",
    "spare_parts",
    "diagnostic_codes",
)

# Key a bare string item is stored under when the model returns strings
# instead of objects.
STRING_ITEM_KEYS = {"model_configurations": "model", "diagnostic_codes": "code"}


def default_main_asset() -> dict:
    return {
        "name": "Unknown Asset",
        "model_number": "Unknown",
        "category": "other",
        "criticality": "medium",
        "specifications": {},
    }


def truncate(text: str, limit: int = PASS_TEXT_LIMIT) -> str:
    return text[:limit] + TRUNCATION_SUFFIX if len(text) > limit else text


def select_pass_texts(full_text: str, sections: dict) -> Dict[str, str]:
    """
    Pick the input text of each pass.

    Model range tables usually sit in the first half of a manual and wiring
    diagrams in the second half, so those halves back up the detected
    sections.

    Returns
    -------
    dict[str, str]
        Keys 'specs', 'subsystems', 'electrical', 'maintenance' (untruncated).
    """
    half = len(full_text) // 2
    first_half, second_half = full_text[:half], full_text[half:]

    specs = get_section_text(sections, "specifications")
    electrical = get_section_text(sections, "electrical")
    return {
        "specs": f"{specs}\n\n{first_half}" if specs else first_half,
        "subsystems": (get_section_text(sections, "dryer")
                       or specs
                       or full_text[:SUBSYSTEM_FALLBACK_CHARS]),
        "electrical": f"{electrical}\n\n{second_half}" if electrical else second_half,
        "maintenance": (get_section_text(sections, "maintenance")
                        or get_section_text(sections, "troubleshooting")
                        or full_text),
    }


def execute_pass(system_prompt: str, user_prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> dict:
    """
    Run one extraction call at temperature 0.

    Returns
    -------
    dict
        {'success', 'data', 'error', 'tokens_used', 'time_ms'}. A reply with
        no JSON object gives ``success=False`` with the tokens still counted;
        a model or parsing error gives ``success=False`` and 0 tokens.
    """
    started = time.time()
    try:
        llm = get_chat_model(temperature=0, max_tokens=max_tokens)
        response = llm.invoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
        tokens = token_usage(response)
        data = extract_json_object(lc_text_from_content(response.content))
        if data is None:
            logger.error("❌ [Pass] No JSON found in response")
            return {"success": False, "data": None, "error": "No JSON in response",
                    "tokens_used": tokens, "time_ms": int((time.time() - started) * 1000)}
        return {"success": True, "data": data, "error": None,
                "tokens_used": tokens, "time_ms": int((time.time() - started) * 1000)}
    except Exception as e:
        logger.error(f"❌ [Pass] Error: {e}")
        return {"success": False, "data": None, "error": str(e),
                "tokens_used": 0, "time_ms": int((time.time() - started) * 1000)}


def normalize_items(items, key: str = "name") -> List[dict]:
    """
    Objects of an extracted list.

    Dicts are kept, non-empty strings become `{key: text}` and anything else
    is dropped; a value that is not a list gives an empty list.
    """
    if not isinstance(items, list):
        return []
    normalized = []
    for item in items:
        if isinstance(item, dict):
            normalized.append(item)
        elif isinstance(item, str) and item.strip():
            normalized.append({key: item.strip()})
    return normalized


def merge_pass_results(pass1: Optional[dict], pass2: Optional[dict], pass3: Optional[dict],
                       pass4: Optional[dict], pass5: Optional[dict]) -> dict:
    """Combine the five pass payloads, filling every missing field with its default."""
    sources = {
        "model_configurations": pass1,
        "components": pass1,
        "integrated_subsystems": pass2,
        "electrical_components": pass3,
        "motor_protection_settings": pass3,
        "control_sequences": pass3,
        "specification_tables": pass4,
        "spare_parts": pass5,
        "diagnostic_codes": pass5,
    }
    main_asset = (pass1 or {}).get("main_asset")
    merged = {"main_asset": main_asset if isinstance(main_asset, dict) and main_asset else default_main_asset()}
    for field in LIST_FIELDS:
        merged[field] = normalize_items((sources[field] or {}).get(field), STRING_ITEM_KEYS.get(field, "name"))
    schedule = (pass5 or {}).get("maintenance_schedule")
    if not isinstance(schedule, dict):
        schedule = {}
    merged["maintenance_schedule"] = {**schedule, "routine": normalize_items(schedule.get("routine"), "interval_description")}
    return merged


def cross_validate_extraction(data: dict) -> Dict[str, List[str]]:
    """
    Consistency checks between sections.

    Returns
    -------
    dict
        {'warnings': [...], 'suggestions': [...]} with French messages.
    """
    warnings = []
    suggestions = []
    main_asset = data.get("main_asset") or {}
    electrical = data.get("electrical_components") or []
    protection = data.get("motor_protection_settings") or []
    subsystems = data.get("integrated_subsystems") or []
    configurations = data.get("model_configurations") or []

    if len(electrical) > 5 and not protection:
        warnings.append(
            "Composants électriques trouvés mais pas de réglages protection moteur. "
            "Vérifiez les pages 'Electrical Diagrams' pour les tableaux F1/Thermal Relay."
        )
        suggestions.append(
            "Chercher des petits tableaux (3-10 lignes) avec colonnes HP, Voltage, Ampères "
            "près des schémas électriques."
        )

    if subsystems and not configurations:
        warnings.append(
            "Sous-systèmes trouvés mais pas de configurations de modèles. "
            "Les équipements avec sous-systèmes ont généralement plusieurs variantes."
        )
        suggestions.append(
            "Re-vérifier les 10 premières pages pour un tableau avec modèles et spécifications. "
            "Colonnes: Model, HP, Pressure, Flow."
        )

    if main_asset and not (main_asset.get("manufacturer") or "").strip():
        warnings.append("Fabricant non identifié. Vérifiez la page de couverture.")

    name = main_asset.get("name")
    if main_asset and not main_asset.get("model_number") and name and re.search(r"\d+", name):
        suggestions.append(
            "Le nom de l'actif contient des chiffres mais model_number est vide. "
            "Extraire le modèle spécifique (ex: '5.5 HP', 'XL 9.2')."
        )

    if len(electrical) > 10 and not data.get("control_sequences"):
        suggestions.append(
            "Beaucoup de composants électriques mais pas de séquences de contrôle. "
            "Chercher la section 'Starting Sequence' ou 'Séquence de démarrage'."
        )

    if configurations and not data.get("specification_tables"):
        suggestions.append(
            "Configurations de modèles trouvées mais pas de tableaux de spécifications bruts. "
            "Considérer l'extraction des tableaux sources pour référence."
        )

    return {"warnings": warnings, "suggestions": suggestions}


def retry_failed_sections(data: dict, texts: Dict[str, str], max_tokens: int = DEFAULT_MAX_TOKENS) -> dict:
    """
    Retry model configurations and motor protection settings when empty.

    Each retry reads the first 40 000 characters of its pass text with a
    focused prompt.

    Returns
    -------
    dict
        'tokens_used' plus 'model_configurations' and/or
        'motor_protection_settings' when a retry found data.
    """
    result = {"tokens_used": 0}
    retries = (
        ("model_configurations", "specs",
         prompts.RETRY_MODEL_CONFIGURATIONS_SYSTEM_PROMPT, prompts.RETRY_MODEL_CONFIGURATIONS_PROMPT),
        ("motor_protection_settings", "electrical",
         prompts.RETRY_MOTOR_PROTECTION_SYSTEM_PROMPT, prompts.RETRY_MOTOR_PROTECTION_PROMPT),
    )
    for field, text_key, system_prompt, template in retries:
        if data.get(field):
            continue
        logger.info(f"🔄 [Retry] Retrying {field} extraction...")
        outcome = execute_pass(
            system_prompt,
            prompts.build_user_prompt(template, texts[text_key][:RETRY_TEXT_LIMIT]),
            max_tokens,
        )
        result["tokens_used"] += outcome["tokens_used"]
        found = normalize_items((outcome["data"] or {}).get(field), STRING_ITEM_KEYS.get(field, "name"))
        if found:
            logger.info(f"✅ [Retry] {field}: found {len(found)} entries")
            result[field] = found
        else:
            logger.info(f"⚠️ [Retry] {field}: no data found")
    return result


def _completeness_checks(data: dict) -> List[dict]:
    main_asset = data.get("main_asset") or {}
    configurations = data.get("model_configurations") or []
    schedule = data.get("maintenance_schedule") or {}
    spare_parts = data.get("spare_parts") or []

    def check(name, present, critical, weight):
        return {"name": name, "present": bool(present), "critical": critical, "weight": weight}

    return [
        check("Main asset identified",
              main_asset.get("name") and main_asset.get("name") != "Unknown Asset", True, 10),
        check("Model configurations extracted", len(configurations) >= 1, True, 15),
        check("Multiple configurations per model",
              any(len(m.get("configurations") or []) >= 2 for m in configurations), False, 10),
        check("Core components extracted", len(data.get("components") or []) >= 3, True, 10),
        check("Subsystems detected", len(data.get("integrated_subsystems") or []) > 0, True, 15),
        check("Electrical components", len(data.get("electrical_components") or []) >= 3, True, 10),
        check("Motor protection settings", len(data.get("motor_protection_settings") or []) >= 1, False, 5),
        check("Specification tables complete", len(data.get("specification_tables") or []) >= 1, False, 5),
        check("Maintenance schedule exists", len(schedule.get("routine") or []) >= 2, False, 5),
        check("Spare parts with intervals",
              len([p for p in spare_parts if p.get("replacement_interval_hours")]) >= 3, False, 5),
        check("Diagnostic codes extracted", len(data.get("diagnostic_codes") or []) >= 3, False, 10),
    ]


def calculate_confidence(data: dict, checks: List[dict]) -> float:
    """Share of passed checks, plus 0.05 per richly detailed section, capped at 1."""
    confidence = sum(1 for c in checks if c["present"]) / len(checks)
    configurations = [
        entry
        for model in data.get("model_configurations") or []
        for entry in (model.get("configurations") or [])
    ]
    if len(configurations) >= 5:
        confidence += 0.05
    if len(data.get("electrical_components") or []) >= 10:
        confidence += 0.05
    if len(data.get("diagnostic_codes") or []) >= 10:
        confidence += 0.05
    return min(1, round(confidence * 100) / 100)


def validate_completeness(data: dict) -> dict:
    """
    Score a merged extraction.

    Returns
    -------
    dict
        {'completeness_score' (0-100), 'confidence_score' (0-1),
        'missing_critical_sections', 'missing_optional_sections',
        'extraction_warnings', 'checks'}.
    """
    checks = _completeness_checks(data)
    max_score = sum(c["weight"] for c in checks)
    score = 0
    missing_critical = []
    missing_optional = []
    warnings = []
    for c in checks:
        if c["present"]:
            score += c["weight"]
        elif c["critical"]:
            missing_critical.append(c["name"])
            warnings.append(f"Section critique manquante: {c['name']}")
        else:
            missing_optional.append(c["name"])

    return {
        "completeness_score": round(score / max_score * 100),
        "confidence_score": calculate_confidence(data, checks),
        "missing_critical_sections": missing_critical,
        "missing_optional_sections": missing_optional,
        "extraction_warnings": warnings,
        "checks": checks,
    }


def calculate_cost(total_tokens: int) -> float:
    """Estimated USD cost, assuming 70% input and 30% output tokens."""
    input_tokens = total_tokens * 0.7
    output_tokens = total_tokens * 0.3
    return input_tokens / 1_000_000 * INPUT_COST_PER_1M + output_tokens / 1_000_000 * OUTPUT_COST_PER_1M


def extract_equipment_data_multi_pass(full_text: str, max_tokens_per_pass: int = DEFAULT_MAX_TOKENS,
                                      enable_retry: bool = True) -> dict:
    """
    Run the five passes over a manual and assemble the complete result.

    Parameters
    ----------
    full_text : str
        Whole manual text.
    max_tokens_per_pass : int
        Completion cap of each call.
    enable_retry : bool
        Retry empty model configurations and motor protection settings.

    Returns
    -------
    dict
        Every extracted section plus 'extraction_metadata' (tokens, scores,
        cost, cross-validation messages), 'validation', 'warnings' and
        'extraction_notes'.
    """
    started = time.time()
    logger.info("🚀 [Extraction Pipeline] Starting multi-pass extraction...")

    sections = detect_sections(full_text)
    texts = select_pass_texts(full_text, sections)

    passes = (
        ("Main Asset & Components", prompts.PASS1_SYSTEM_PROMPT, prompts.PASS1_USER_PROMPT, "specs"),
        ("Subsystems", prompts.PASS2_SYSTEM_PROMPT, prompts.PASS2_USER_PROMPT, "subsystems"),
        ("Electrical", prompts.PASS3_SYSTEM_PROMPT, prompts.PASS3_USER_PROMPT, "electrical"),
        ("Spec Tables", prompts.PASS4_SYSTEM_PROMPT, prompts.PASS4_USER_PROMPT, "specs"),
        ("Maintenance & Diagnostics", prompts.PASS5_SYSTEM_PROMPT, prompts.PASS5_USER_PROMPT, "maintenance"),
    )
    total_tokens = 0
    payloads = []
    for number, (label, system_prompt, template, text_key) in enumerate(passes, start=1):
        logger.info(f"📄 [Extraction Pipeline] Pass {number}: {label}...")
        outcome = execute_pass(
            system_prompt,
            prompts.build_user_prompt(template, truncate(texts[text_key])),
            max_tokens_per_pass,
        )
        total_tokens += outcome["tokens_used"]
        payloads.append(outcome["data"])
        logger.info(f"✅ [Extraction Pipeline] Pass {number} complete: {outcome['tokens_used']} tokens")

    merged = merge_pass_results(*payloads)

    cross_validation = cross_validate_extraction(merged)
    if cross_validation["warnings"]:
        logger.warning(f"⚠️ [Extraction Pipeline] Cross-validation warnings: {cross_validation['warnings']}")

    if enable_retry:
        retried = retry_failed_sections(merged, texts, max_tokens_per_pass)
        total_tokens += retried["tokens_used"]
        for field in ("model_configurations", "motor_protection_settings"):
            if retried.get(field):
                merged[field] = retried[field]

    validation = validate_completeness(merged)
    processing_time = int((time.time() - started) * 1000)
    cost_usd = calculate_cost(total_tokens)

    result = {
        "extraction_metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "model_used": settings.OPEN_AI_MODEL,
            "total_tokens": total_tokens,
            "extraction_passes": EXTRACTION_PASSES,
            "completeness_score": validation["completeness_score"],
            "confidence_score": validation["confidence_score"],
            "processing_time_ms": processing_time,
            "cost_usd": cost_usd,
            "validation_warnings": cross_validation["warnings"],
            "validation_suggestions": cross_validation["suggestions"],
        },
        **merged,
        "validation": validation,
        "warnings": validation["extraction_warnings"] + cross_validation["warnings"],
        "extraction_notes": [
            f"Sections détectées: {', '.join(sections)}",
            f"Tokens totaux: {total_tokens}",
            f"Temps de traitement: {processing_time}ms",
            f"Retry enabled: {enable_retry}",
        ],
    }
    logger.info(f"🎯 [Extraction Pipeline] Complete! Score: {validation['completeness_score']}%, "
                f"Cost: ${cost_usd:.4f}")
    return result


def convert_to_legacy_format(result: dict) -> dict:
    """
    Flatten a multi-pass result into the single-pass shape (main asset,
    components, spare parts, maintenance schedules) still read by the bulk
    import form.
    """
    main_asset = result["main_asset"]
    model_number = main_asset.get("model_number")
    if isinstance(model_number, list):
        model_number = model_number[0] if model_number else None
    return {
        "main_asset": {
            "name": main_asset.get("name"),
            "manufacturer": main_asset.get("manufacturer") or "",
            "model_number": model_number,
            "category": main_asset.get("category"),
            "criticality": main_asset.get("criticality"),
            "specifications": main_asset.get("specifications"),
        },
        "components": [
            {key: c.get(key) for key in ("id", "name", "type", "location", "specifications")}
            for c in result.get("components") or []
        ],
        "spare_parts": [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "reference": p.get("part_number") or "",
                "quantity_recommended": p.get("quantity"),
                "unit": p.get("unit") or "pièce",
                "replacement_frequency": p.get("replacement_interval_description"),
            }
            for p in result.get("spare_parts") or []
        ],
        "maintenance_schedules": [
            {
                "type": "routine",
                "interval": r.get("interval_description"),
                "tasks": [t.get("task") if isinstance(t, dict) else t for t in r.get("tasks") or []],
            }
            for r in (result.get("maintenance_schedule") or {}).get("routine") or []
        ],
        "confidence_score": result["validation"]["confidence_score"],
        "extraction_metadata": result["extraction_metadata"],
    }


def estimate_cost_mad(cost_usd: float) -> float:
    return cost_usd * USD_TO_MAD
