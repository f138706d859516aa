"""
Prompt & Upload Utilities (Uploads → Text → LLM JSON)
=====================================================

Purpose
-------
Helpers shared by the routers and the AI pipelines: reading uploaded PDFs,
sanitizing storage file names, building chat models, and turning model
replies into Python objects.

Key Functions
-------------
- extract_text_from_pdf : Extract plain text (whole document and per page) from PDF bytes.
- sanitize_filename     : Storage-safe file name (lowercase, `_` separated, extension kept).
- get_chat_model        : `ChatOpenAI` configured from settings.
- lc_text_from_content  : Normalize LangChain message content to plain text.
- parse_llm_text        : Parse JSON text (fence stripping, json_repair fallback).
- parse_llm_json        : Same, from a LangChain message.
- extract_json_object   : First `{...}` span of a reply, parsed.
- process_file          : Text of an uploaded PDF or image (vision OCR).

Dependencies
------------
pypdf, LangChain (langchain-openai, langchain-core), json-repair, httpx.
"""

from pypdf import PdfReader
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from json_repair import repair_json
from opengmao.database.config.config import settings
from typing import Any, List, Optional, Tuple
import base64
import httpx
import io
import json
import re


def extract_text_from_pdf(data: bytes) -> Tuple[str, List[str]]:
    """
    Extract text from a PDF.

    Args:
        data (bytes): Raw PDF content.

    Returns:
        tuple[str, list[str]]: The full text (pages joined by blank lines) and
        the text of each page.
    """
    reader = PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or "") for page in reader.pages]
    return "\n\n".join(pages), pages


def sanitize_filename(filename: str) -> str:
    """
    Make a file name safe for object storage keys.

    The extension (after the last dot, when the dot is not the first
    character) is kept lowercase; the base name is lowercased and every run
    of characters outside `[a-z0-9]` becomes a single `_`, trimmed at both
    ends.

    Args:
        filename (str): Original name, e.g. "Manuel Compresseur (v2).PDF".

    Returns:
        str: e.g. "manuel_compresseur_v2.pdf".
    """
    dot = filename.rfind(".")
    if dot > 0:
        name, ext = filename[:dot], filename[dot + 1:]
    else:
        name, ext = filename, ""
    safe = re.sub(r"[^a-z0-9]", "_", name.lower())
    safe = re.sub(r"_+", "_", safe).strip("_")
    return f"{safe}.{ext.lower()}" if ext else safe


def get_chat_model(model: Optional[str] = None, temperature: float = 0.7, json_mode: bool = False,
                   max_tokens: Optional[int] = None):
    """
    Build a chat model.

    Args:
        model (str, optional): Model name; defaults to `settings.OPEN_AI_MODEL`.
        temperature (float): Sampling temperature.
        json_mode (bool): Force a JSON object reply (`response_format`).
        max_tokens (int, optional): Completion cap.

    Returns:
        ChatOpenAI | Runnable: The model, bound to the JSON response format when requested.
    """
    kwargs = {"model": model or settings.OPEN_AI_MODEL, "api_key": settings.API_KEY, "temperature": temperature}
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    llm = ChatOpenAI(**kwargs)
    if json_mode:
        return llm.bind(response_format={"type": "json_object"})
    return llm


def lc_text_from_content(content) -> str:
    """Normalize LangChain message content to plain text.

    - If string → return as-is.
    - If list of content parts → concatenates only 'text' parts.
    - Else → str(content).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(p.get("text", "") for p in content if isinstance(p, dict) and p.get("type") == "text")
    return str(content)


def parse_llm_text(raw: str) -> Any:
    """Parse model text into JSON with optional repair.

    Steps:
        1) Strip markdown code fences.
        2) Try `json.loads`.
        3) Fallback: `json_repair.repair_json` then `json.loads`.

    Raises:
        ValueError with first 500 chars of raw text if parsing still fails.
    """
    raw = raw.strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*\n", "", raw)
        raw = re.sub(r"\n?```$", "", raw)
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        try:
            return json.loads(repair_json(raw))
        except Exception as e:
            raise ValueError(f"Failed to parse LLM JSON: {e}\nRAW:\n{raw[:500]}")


def parse_llm_json(resp) -> Any:
    """Parse a LangChain message into JSON (see `parse_llm_text`)."""
    return parse_llm_text(lc_text_from_content(resp.content))


def extract_json_object(raw: str) -> Optional[dict]:
    """
    Parse the outermost `{...}` span of a reply.

    Returns:
        dict | None: The parsed object, or None when the reply holds no braces.

    Raises:
        ValueError: If a span is found but cannot be parsed even after repair.
    """
    match = re.search(r"\{[\s\S]*\}", raw)
    if not match:
        return None
    return parse_llm_text(match.group(0))


def token_usage(resp) -> int:
    """Total tokens reported on a LangChain message (0 when unavailable)."""
    usage = getattr(resp, "usage_metadata", None) or {}
    if usage.get("total_tokens"):
        return int(usage["total_tokens"])
    metadata = getattr(resp, "response_metadata", None) or {}
    return int((metadata.get("token_usage") or {}).get("total_tokens") or 0)


MAX_EXTRACTED_CHARS = 100000
OCR_PROMPT = ("Transcris fidèlement tout le texte visible sur cette image (plaque signalétique, étiquette, "
              "page de manuel). Conserve les références, valeurs et unités. Réponds uniquement avec le texte.")


def to_data_url(data: bytes, mime: str) -> str:
    """
    Encode file content as a base64 data URL.

    Args:
        data (bytes): File content.
        mime (str): MIME type of the file.

    Returns:
        str: Data URL string (data:{mime};base64,...).
    """
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:{mime};base64,{b64}"


def fetch_file(url: str, timeout: float = 60.0) -> bytes:
    """Download a file (e.g. a presigned storage URL); HTTP errors raise."""
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        response = client.get(url)
        response.raise_for_status()
        return response.content


def ocr_image(data: bytes, mime: str) -> str:
    """Read the text of an image with the vision model."""
    message = HumanMessage(content=[
        {"type": "text", "text": OCR_PROMPT},
        {"type": "image_url", "image_url": {"url": to_data_url(data, mime)}},
    ])
    llm = get_chat_model(temperature=0, max_tokens=4000)
    return lc_text_from_content(llm.invoke([message]).content)


def process_file(data: bytes, file_type: str) -> str:
    """
    Text of an uploaded PDF or image, truncated to 100 000 characters.

    Args:
        data (bytes): File content.
        file_type (str): MIME type; `application/pdf` or `image/*`.

    Raises:
        ValueError: For any other file type.
    """
    if file_type == "application/pdf":
        text, _ = extract_text_from_pdf(data)
    elif file_type.startswith("image/"):
        text = ocr_image(data, file_type)
    else:
        raise ValueError(f"Unsupported file type: {file_type}")
    if len(text) > MAX_EXTRACTED_CHARS:
        text = text[:MAX_EXTRACTED_CHARS] + "\n\n[Texte tronqué...]"
    return text


def estimate_tokens(text: str) -> int:
    """Rough token count (one token per four characters)."""
    return -(-len(text) // 4)


def build_chat_messages(system_prompt: str, history: Optional[List[dict]], message: str) -> list:
    """
    LangChain messages for a chat turn.

    Args:
        system_prompt (str): Instructions sent first.
        history (list[dict], optional): Previous turns `{role, content}`;
            'assistant' turns become AIMessage, everything else HumanMessage.
        message (str): The new user message.
    """
    messages = [SystemMessage(content=system_prompt)]
    for turn in history or []:
        if turn.get("role") == "assistant":
            messages.append(AIMessage(content=turn.get("content", "")))
        else:
            messages.append(HumanMessage(content=turn.get("content", "")))
    messages.append(HumanMessage(content=message))
    return messages
