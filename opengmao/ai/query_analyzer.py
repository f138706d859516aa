"""
Chat query analysis.

``quick_analyze`` classifies a technician's question locally (French, Darija
in Latin script, English keywords): intent, urgency, mentioned components,
error codes, answer format and which extra sources to search.
``analyze_query`` asks the mini model for a richer analysis and falls back to
the quick one.
"""

from opengmao.api.prompt_utilities import get_chat_model, parse_llm_json
from opengmao.database.config.config import settings
from typing import List, Optional
import logging
import re

logger = logging.getLogger("uvicorn")

EMERGENCY_PATTERNS = (
    "ne marche pas", "ne fonctionne pas", "ma khdamch", "wa9ef", "arrêté",
    "en panne", "bloqué", "urgent", "erreur", "alarme", "défaut", "mochkil",
    "khsara", "problème", "cassé", "broken", "down", "stopped",
)

INTENT_CHAIN = (
    ("troubleshooting", ("problème", "panne", "erreur", "ne marche", "diagnostic", "mochkil", "défaut", "alarme")),
    ("maintenance", ("maintenance", "entretien", "vidange", "graissage", "préventif", "périodique")),
    ("installation", ("installer", "installation", "mise en service", "configurer", "brancher", "démarrage")),
    ("parts", ("pièce", "référence", "code", "rechange", "commander", "article")),
    ("specs", ("caractéristique", "spec", "dimension", "puissance", "capacité", "poids")),
    ("procedure", ("comment", "kifach", "procédure", "étapes", "faire", "méthode")),
)
"""Ordered keyword chain; the first intent with a matching keyword wins."""

COMPONENT_PATTERNS = (
    "moteur", "pompe", "vanne", "capteur", "relais", "contacteur", "fusible",
    "courroie", "roulement", "joint", "filtre", "vérin", "compresseur", "variateur",
    "automate", "plc", "disjoncteur", "transformateur", "résistance", "condensateur",
)

ERROR_CODE_PATTERN = re.compile(r"\b[A-Z]{1,3}[-_]?\d{1,4}\b", re.IGNORECASE)

RESPONSE_FORMATS = {
    "troubleshooting": "diagnostic",
    "procedure": "steps",
    "installation": "steps",
    "maintenance": "steps",
    "parts": "table",
    "specs": "list",
}

ANALYSIS_PROMPT = """You are an industrial maintenance query analyzer. Analyze this user question to determine the best search and response strategy.

CURRENT CONTEXT:
- Asset: {name}
- Level: {level}
- Category: {category}{extra}

USER QUESTION:
"{query}"

Analyze and respond with JSON:
{{
  "intent": "troubleshooting|maintenance|installation|parts|specs|procedure|general",
  "urgency": "emergency|planning|information",
  "scope": "component|equipment|subsystem|line|site|unknown",
  "equipment_mentioned": ["equipment names mentioned"],
  "components_mentioned": ["components like motor, pump, valve"],
  "error_codes": ["error codes like E01, F23"],
  "symptoms": ["described symptoms like 'ne démarre pas', 'bruit anormal'"],
  "search_document_types": ["manual", "installation", "catalogue", "schematic"],
  "search_in_schematics": true,
  "search_in_dependencies": false,
  "response_format": "steps|list|table|explanation|diagnostic",
  "include_safety_warning": true,
  "include_parts_list": false,
  "confidence": 0.0,
  "reasoning": "Brief explanation of analysis"
}}

GUIDELINES:
- troubleshooting + emergency: search schematics and dependencies, diagnostic format
- maintenance: search the manual, steps format
- parts: search the catalogue, table format
- installation: search installation documents, steps format
- Safety warning for electrical work, high pressure, hot surfaces, moving parts
- Parts list for repairs, replacements, maintenance"""


def quick_analyze(query: str) -> dict:
    """
    Local keyword analysis of a query (no model call).

    Returns
    -------
    dict
        intent, urgency ('emergency' | 'information'), components_mentioned,
        error_codes, response_format, search_in_schematics,
        search_in_dependencies, include_safety_warning, include_parts_list.
    """
    q = query.lower()
    is_emergency = any(pattern in q for pattern in EMERGENCY_PATTERNS)

    intent = "general"
    for name, keywords in INTENT_CHAIN:
        if any(keyword in q for keyword in keywords):
            intent = name
            break

    components = [c for c in COMPONENT_PATTERNS if c in q]
    return {
        "intent": intent,
        "urgency": "emergency" if is_emergency else "information",
        "components_mentioned": components,
        "error_codes": ERROR_CODE_PATTERN.findall(query),
        "response_format": RESPONSE_FORMATS.get(intent, "explanation"),
        "search_in_schematics": intent == "troubleshooting" or bool(components),
        "search_in_dependencies": intent == "troubleshooting",
        "include_safety_warning": intent in ("troubleshooting", "installation"),
        "include_parts_list": intent in ("parts", "maintenance"),
    }


def default_analysis(query: str = "") -> dict:
    """Full analysis shape filled from the quick analysis."""
    analysis = {
        "scope": "equipment",
        "equipment_mentioned": [],
        "symptoms": [],
        "search_document_types": ["manual"],
        "confidence": 0.5,
        "reasoning": "Default analysis",
    }
    analysis.update(quick_analyze(query))
    return analysis


def analysis_from_quick(query: str, level: Optional[str] = None) -> dict:
    """Full analysis used for simple questions, scoped to the asset's hierarchy level."""
    analysis = default_analysis(query)
    analysis.update({"scope": level or "equipment", "confidence": 0.7, "reasoning": "Quick local analysis"})
    return analysis


def needs_full_analysis(query: str, quick: dict) -> bool:
    """Troubleshooting, emergencies and long questions go to the model."""
    return quick["intent"] == "troubleshooting" or quick["urgency"] == "emergency" or len(query) > 100


def analyze_query(query: str, asset_name: str, level: str = "equipment", category: Optional[str] = None,
                  children: Optional[List[str]] = None, aliases: Optional[List[str]] = None) -> dict:
    """
    LLM analysis of a query in the context of the selected asset.

    Parameters
    ----------
    query : str
        User question.
    asset_name : str
        Selected asset.
    level, category : str
        Asset hierarchy level and category.
    children, aliases : list[str], optional
        Sub-assets and nicknames shown to the model.

    Returns
    -------
    dict
        The model's analysis, or `default_analysis(query)` on any failure.
    """
    extra = ""
    if children:
        extra += f"\n- Contains: {', '.join(children)}"
    if aliases:
        extra += f"\n- Also known as: {', '.join(aliases)}"
    prompt = ANALYSIS_PROMPT.format(name=asset_name, level=level, category=category or "unknown",
                                    extra=extra, query=query)
    try:
        llm = get_chat_model(model=settings.OPEN_AI_MINI_MODEL, temperature=0.1, json_mode=True, max_tokens=800)
        analysis = parse_llm_json(llm.invoke(prompt))
        if not isinstance(analysis, dict):
            raise ValueError("Analysis is not a JSON object")
        return {**default_analysis(query), **analysis}
    except Exception as e:
        logger.error(f"Query analysis error: {e}")
        return default_analysis(query)
