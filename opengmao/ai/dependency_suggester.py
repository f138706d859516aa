"""
Dependency suggestion from an equipment manual.

The chat model reads the beginning of the asset's documentation and the list
of the other assets of the plant, and proposes what feeds, powers, controls,
cools or lubricates the asset (upstream) and what the asset feeds
(downstream). Suggested names are matched back to existing assets.
"""

from opengmao.api.prompt_utilities import get_chat_model, parse_llm_json
from typing import Dict, List, Optional
import logging

logger = logging.getLogger("uvicorn")

DOCUMENT_SAMPLE_CHARS = 4000
DEPENDENCY_TYPES = ("feeds", "powers", "controls", "cools", "lubricates")
CRITICALITIES = ("critical", "high", "medium", "low")

SUGGEST_PROMPT = """Tu es un expert en maintenance industrielle. Analyse cet équipement et suggère ses dépendances.

ÉQUIPEMENT:
- Nom: {asset_name}
- Type: {asset_type}

ASSETS EXISTANTS DANS LE SYSTÈME:
{existing_assets}

EXTRAIT DU MANUEL:
\"\"\"
{text}
\"\"\"

À partir du document et de tes connaissances industrielles, propose:
1. les dépendances amont: ce qui fournit la matière, l'énergie ou le contrôle de cet équipement;
2. les dépendances aval: ce qui reçoit la sortie de cet équipement ou dépend de son fonctionnement.

Utilise les noms EXACTS de la liste quand un asset existant correspond, sinon le nom du composant.

Réponds UNIQUEMENT en JSON:
{{
  "upstream": [
    {{"depends_on_name": "Centrale à Béton", "dependency_type": "feeds", "criticality": "critical",
      "reasoning": "Le malaxeur reçoit le béton de la centrale", "confidence": 0.9}}
  ],
  "downstream": [
    {{"depends_on_name": "Presse", "dependency_type": "feeds", "criticality": "critical",
      "reasoning": "Le malaxeur alimente la presse en béton mélangé", "confidence": 0.85}}
  ]
}}

Types de dépendance: feeds, powers, controls, cools, lubricates
Criticité: critical (ne peut pas fonctionner sans), high, medium, low"""


def match_existing_asset(name: str, existing_assets: List[dict]) -> Optional[str]:
    """Id of the first asset whose name contains, or is contained in, `name` (case-insensitive)."""
    wanted = (name or "").lower()
    if not wanted:
        return None
    for asset in existing_assets:
        candidate = (asset.get("name") or "").lower()
        if candidate and (wanted in candidate or candidate in wanted):
            return asset["id"]
    return None


def suggest_dependencies(asset_name: str, document_text: str, existing_assets: List[dict],
                         asset_type: str = "equipment") -> Dict[str, List[dict]]:
    """
    Suggest upstream and downstream dependencies of an asset.

    Parameters
    ----------
    asset_name : str
        Asset being analysed.
    document_text : str
        Its documentation; the first 4000 characters are sent.
    existing_assets : list[dict]
        Other assets, each with 'id', 'name' and optional 'level'.
    asset_type : str
        Category shown to the model.

    Returns
    -------
    dict
        {'upstream': [...], 'downstream': [...]}; entries carry
        'depends_on_name', 'depends_on_id' (when matched), 'dependency_type',
        'criticality', 'reasoning', 'confidence'. Empty lists on any error.
    """
    listing = "\n".join(f"- {a['name']} ({a.get('level') or 'equipment'})" for a in existing_assets)
    prompt = SUGGEST_PROMPT.format(
        asset_name=asset_name,
        asset_type=asset_type,
        existing_assets=listing or "Aucun autre asset pour le moment",
        text=document_text[:DOCUMENT_SAMPLE_CHARS],
    )
    try:
        llm = get_chat_model(temperature=0.2, max_tokens=1500)
        suggestions = parse_llm_json(llm.invoke(prompt))
        result = {"upstream": [], "downstream": []}
        for direction in result:
            for dep in suggestions.get(direction) or []:
                if not isinstance(dep, dict) or not dep.get("depends_on_name"):
                    continue
                matched = match_existing_asset(dep["depends_on_name"], existing_assets)
                if matched:
                    dep["depends_on_id"] = matched
                result[direction].append(dep)
        logger.info(f"🔗 Found {len(result['upstream'])} upstream, "
                    f"{len(result['downstream'])} downstream suggestions")
        return result
    except Exception as e:
        logger.error(f"Dependency suggestion error: {e}")
        return {"upstream": [], "downstream": []}
