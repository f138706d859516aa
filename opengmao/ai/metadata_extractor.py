"""
Equipment metadata extraction.

A single cheap model call reads the first 5000 characters of a manual and
returns the nameplate fields. Results are cached by document hash.
"""

from opengmao.api.prompt_utilities import get_chat_model, parse_llm_json
from opengmao.cache.metadata_cache import generate_document_hash, get_cached_metadata, set_cached_metadata
from opengmao.database.config.config import settings
import logging

logger = logging.getLogger("uvicorn")

SAMPLE_CHARS = 5000

METADATA_PROMPT = """You are a technical document analyzer. Extract the following information from this equipment manual excerpt.

IMPORTANT: Return ONLY a valid JSON object, no markdown, no explanation.

Extract:
- name: Equipment/Asset name (e.g., "FIAC V30 Compressor")
- manufacturer: Company that made it (e.g., "FIAC", "Atlas Copco")
- model: Model number/name (e.g., "V30", "GA30+")
- serial_number: If mentioned (usually null in manuals)
- category: Equipment category (e.g., "Compressor", "Pump", "Motor", "Generator")
- description: One-line description in French

If information is not found, use null.

Document excerpt:
\"\"\"
{text}
\"\"\"

JSON Response:"""


def default_metadata() -> dict:
    return {
        "name": "Unknown Equipment",
        "manufacturer": None,
        "model": None,
        "serial_number": None,
        "category": "Equipment",
        "description": None,
    }


def extract_asset_metadata(text: str) -> dict:
    """
    Extract name, manufacturer, model, serial number, category and a French
    description from a document.

    Parameters
    ----------
    text : str
        Document text; only the first 5000 characters are sent.

    Returns
    -------
    dict
        Metadata with defaults (`Unknown Equipment`, `Equipment`) for missing
        fields. Any model or parsing failure returns the defaults.
    """
    try:
        llm = get_chat_model(model=settings.OPEN_AI_MINI_MODEL, temperature=0.1, json_mode=True, max_tokens=300)
        parsed = parse_llm_json(llm.invoke(METADATA_PROMPT.format(text=text[:SAMPLE_CHARS])))
        defaults = default_metadata()
        return {key: parsed.get(key) or defaults[key] for key in defaults}
    except Exception as e:
        logger.error(f"Metadata extraction error: {e}")
        return default_metadata()


def extract_asset_metadata_cached(text: str) -> dict:
    """
    `extract_asset_metadata` behind the metadata cache.

    Returns
    -------
    dict
        Metadata plus `from_cache` (bool). Cache failures fall through to a
        fresh extraction.
    """
    document_hash = generate_document_hash(text)
    try:
        cached = get_cached_metadata(document_hash=document_hash)
    except Exception as e:
        logger.warning(f"Metadata cache lookup failed: {e}")
        cached = None
    if cached:
        metadata = {key: cached.get(key) for key in default_metadata()}
        return {**metadata, "from_cache": True}

    metadata = extract_asset_metadata(text)
    if metadata["name"] != "Unknown Equipment":
        try:
            set_cached_metadata(document_hash=document_hash, metadata=metadata, extraction_method="ai", confidence=0.85)
        except Exception as e:
            logger.warning(f"Metadata cache write failed: {e}")
    return {**metadata, "from_cache": False}
