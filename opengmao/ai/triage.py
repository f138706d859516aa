"""
Maintenance triage assistant.

A short guided conversation that narrows a reported problem down to an asset,
then a component, then a work order draft. The model answers with one of four
JSON shapes the front end renders: suggestion chips, a confirmation, a work
order draft or plain text.
"""

from opengmao.api.prompt_utilities import build_chat_messages, get_chat_model, lc_text_from_content, parse_llm_text
from typing import List, Optional
import json
import logging
import re

logger = logging.getLogger("uvicorn")

MAX_COMPONENTS_PER_ASSET = 10

DARIJA_LABEL = "Darija (Moroccan Arabic with French/Arabic mix)"
DARIJA_KEYWORDS = (
    "شنو", "كيفاش", "واش", "اللي", "ديال", "غادي", "عندنا", "دابا",
    "chno", "kifach", "wach", "lli", "li", "dial", "ghadi", "bghit", "3and",
)
FRENCH_HINTS = ("le", "la", "les", "un", "une", "des", "est", "problème", "compresseur")

TRIAGE_RULES = """You are an Expert Maintenance Triage Assistant for industrial equipment.

# LANGUAGE
Always answer in the language of the user: French, Arabic, English, or Darija
(Arabic script with French technical terms).

# MISSION
Help technicians identify:
1. which equipment (asset) has an issue,
2. which component of that equipment is affected,
3. what maintenance intervention is needed.

# CONVERSATION RULES
1. Problem without equipment: offer the 2-4 most likely assets as suggestion chips.
2. A location is mentioned: keep the assets of that location; a single match is confirmed directly.
3. Asset identified: offer its main components as suggestion chips and ask which part is affected.
4. Symptoms: vibration → bearings, motor, belt; leak → seals, gaskets, hoses; noise → motor,
   bearings, fan; overheating → cooling system, motor; not starting → electrical, motor, control.
5. Asset, component and issue known: produce a work order draft.

# OUTPUT FORMAT
Answer with valid JSON in ONE of these formats and nothing outside it.

Suggestion chips:
{"type": "suggestion_chips", "title": "Which equipment are you referring to?",
 "items": [{"id": "asset-123", "label": "Compresseur FIAC 5.5HP", "value": "compressor", "metadata": {"location": "Zone A"}}]}

Confirmation:
{"type": "confirmation", "assetId": "asset-123", "assetName": "Compresseur FIAC 5.5HP",
 "componentName": "Moteur électrique", "issue": "Vibrations anormales"}

Work order draft:
{"type": "work_order_draft", "assetId": "asset-123", "assetName": "Compresseur FIAC 5.5HP",
 "componentName": "Moteur électrique", "issue": "Vibrations anormales", "priority": "high",
 "estimatedTime": 90, "suggestedActions": ["Arrêter le compresseur", "Vérifier l'alignement"]}

Text:
{"type": "text", "content": "Your helpful response here"}
"""


def detect_message_language(text: str) -> str:
    """
    Language label passed to the model.

    Darija keywords win, then an Arabic character ratio above 0.3, then French
    function words; English otherwise.
    """
    lower = text.lower()
    if any(keyword in lower for keyword in DARIJA_KEYWORDS):
        return DARIJA_LABEL
    arabic = len(re.findall(r"[؀-ۿ]", text))
    if text and arabic / len(text) > 0.3:
        return "Arabic"
    if any(re.search(rf"\b{word}\b", text, re.IGNORECASE) for word in FRENCH_HINTS):
        return "French"
    return "English"


def asset_context(assets: List[dict]) -> List[dict]:
    """Compact asset list for the prompt, with at most 10 components each."""
    context = []
    for asset in assets:
        components = asset.get("components")
        if isinstance(components, str):
            try:
                components = json.loads(components)
            except ValueError:
                components = []
        if not isinstance(components, list):
            components = []
        context.append({
            "id": asset["id"],
            "name": asset["name"],
            "code": asset.get("code"),
            "location": asset.get("location") or "Unknown",
            "status": asset.get("status") or "operational",
            "manufacturer": asset.get("manufacturer"),
            "model": asset.get("model_number"),
            "components": [
                {"name": c.get("name"), "type": c.get("type")} if isinstance(c, dict)
                else {"name": str(c), "type": "component"}
                for c in components[:MAX_COMPONENTS_PER_ASSET]
            ],
        })
    return context


def build_triage_prompt(assets: List[dict], language: str) -> str:
    return (
        TRIAGE_RULES
        + "\n# AVAILABLE EQUIPMENT\n"
        + json.dumps(asset_context(assets), ensure_ascii=False, indent=2)
        + f"\n\nIMPORTANT: The user is speaking in {language}. You MUST respond in {language}."
    )


def parse_triage_output(raw: str) -> dict:
    """JSON from a ```json fence or the first {...} span; `{'type': 'text', 'content': raw}` otherwise."""
    match = re.search(r"```json\s*([\s\S]*?)\s*```", raw) or re.search(r"\{[\s\S]*\}", raw)
    if match:
        try:
            parsed = parse_llm_text(match.group(1) if match.lastindex else match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
    return {"type": "text", "content": raw}


def triage(message: str, history: Optional[List[dict]], assets: List[dict]) -> dict:
    """
    Answer one triage turn.

    Parameters
    ----------
    message : str
        New user message.
    history : list[dict], optional
        Previous turns as {'role': 'user' | 'assistant', 'content'}.
    assets : list[dict]
        Assets of the plant (see `asset_context`).

    Returns
    -------
    dict
        {'response': structured output, 'rawText', 'detectedLanguage'}.
        Model errors propagate to the caller.
    """
    language = detect_message_language(message)
    logger.info(f"[AI Triage] Detected user language: {language}")

    messages = build_chat_messages(build_triage_prompt(assets, language), history, message)

    llm = get_chat_model(max_tokens=4096)
    raw = lc_text_from_content(llm.invoke(messages).content)
    return {"response": parse_triage_output(raw), "rawText": raw, "detectedLanguage": language}
