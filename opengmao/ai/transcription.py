"""
Multilingual voice transcription.

Moroccan technicians speak Darija, a mix of Arabic, French and some Berber.
Whisper is asked for an Arabic, a French and an English transcription of the
same recording at once; each result is scored for how plausible it is in its
language and the best one wins. When the winner looks like Darija, the chat
model merges the candidates into natural Darija text.

Dependencies
------------
OpenAI SDK (`audio.transcriptions`, whisper-1), LangChain `ChatOpenAI`.
"""

from openai import OpenAI
from opengmao.api.prompt_utilities import get_chat_model, lc_text_from_content
from opengmao.database.config.config import settings
from typing import List, Optional
import asyncio
import logging
import re
import time

logger = logging.getLogger("uvicorn")

MAX_AUDIO_BYTES = 25 * 1024 * 1024
AUTO_LANGUAGES = ("ar", "fr", "en")

ARABIC_CHAR = re.compile(r"[؀-ۿ]")
LATIN_CHAR = re.compile(r"[a-zA-Z]")
NON_ASCII_CHAR = re.compile(r"[^\x00-\x7F]")

ARABIC_HINTS = ("في", "من", "على", "هو", "هي", "ما", "شنو", "اللي", "عند")
FRENCH_HINTS = ("le", "la", "les", "de", "un", "une", "des", "est", "sont", "compresseur")
ENGLISH_HINTS = ("the", "is", "are", "what", "where", "how", "compressor", "machine")

DARIJA_KEYWORDS = (
    "شنو", "كيفاش", "فين", "واش", "اللي", "ديال", "غادي", "بغيت",
    "كاين", "عندنا", "عندي", "عندك", "دابا", "دغيا", "بزاف",
    "chno", "chnou", "kifach", "fin", "wach", "wash", "lli", "li",
    "dial", "dyal", "ghadi", "bghit", "kayn", "3and", "daba", "bzaf",
)

ENHANCE_PROMPT = """You are a Darija (Moroccan Arabic) transcription expert.

I have multiple transcriptions of the same audio in different languages. The speaker was speaking in Darija (Moroccan dialectal Arabic), which is a mix of Arabic, French, and some Berber words.

Transcriptions:
{transcriptions}

Your task:
1. Combine the best parts of each transcription
2. Preserve the original Darija meaning
3. Use Arabic script for Arabic words
4. Use Latin script for French/English technical terms
5. Output natural Darija text that a Moroccan would write

Example:
Input (AR): "شنو هما لي كومبريسور اللي عندنا"
Input (FR): "chnou homa li compresseur li 3andna"
Output: "شنو هوما الكومبريسور اللي عندنا؟"

Return ONLY the enhanced transcription, nothing else."""


def _count_words(text: str, words) -> int:
    return sum(len(re.findall(rf"\b{re.escape(w)}\b", text, re.IGNORECASE)) for w in words)


def calculate_language_score(text: str, language: str) -> float:
    """
    Plausibility of `text` as a transcription in `language`.

    Base score min(len/10, 50), then:
    - ar: +2 per Arabic character, +10 per common Arabic word present
    - fr: +5 per French function-word occurrence, +20 when under 30% of the
      characters are non-ASCII
    - en: +5 per English function-word occurrence
    """
    score = min(len(text) / 10, 50)
    if language == "ar":
        score += len(ARABIC_CHAR.findall(text)) * 2
        score += sum(10 for word in ARABIC_HINTS if word in text)
    elif language == "fr":
        score += _count_words(text, FRENCH_HINTS) * 5
        if len(NON_ASCII_CHAR.findall(text)) < len(text) * 0.3:
            score += 20
    elif language == "en":
        score += _count_words(text, ENGLISH_HINTS) * 5
    return score


def detect_darija(text: str) -> bool:
    """Darija keyword, mixed Arabic/Latin script, or Latin letters with digits (3, 7, 9 transliteration)."""
    lower = text.lower()
    if any(keyword in lower for keyword in DARIJA_KEYWORDS):
        return True
    has_latin = bool(LATIN_CHAR.search(text))
    if ARABIC_CHAR.search(text) and has_latin:
        return True
    return has_latin and bool(re.search(r"[0-9]", text))


def _transcribe_once(client: OpenAI, audio: bytes, filename: str, language: str) -> dict:
    result = client.audio.transcriptions.create(
        model="whisper-1",
        file=(filename, audio),
        language=language,
        response_format="verbose_json",
        temperature=0.0,
    )
    return {
        "language": language,
        "text": getattr(result, "text", "") or "",
        "duration": getattr(result, "duration", None),
    }


async def _transcribe_safe(client: OpenAI, audio: bytes, filename: str, language: str):
    try:
        return await asyncio.to_thread(_transcribe_once, client, audio, filename, language)
    except Exception as e:
        logger.error(f"Transcription failed for {language}: {e}")
        return e


def enhance_darija_transcription(candidates: List[dict]) -> Optional[str]:
    """Merge the per-language candidates into Darija text; None on failure."""
    listing = "\n".join(f'- {c["language"].upper()}: "{c["text"]}"' for c in candidates)
    try:
        llm = get_chat_model(temperature=0.3, max_tokens=500)
        text = lc_text_from_content(llm.invoke(ENHANCE_PROMPT.format(transcriptions=listing)).content).strip()
        return text or None
    except Exception as e:
        logger.error(f"[Darija Enhancement Error] {e}")
        return None


async def transcribe_multilingual(audio: bytes, filename: str, language_hint: str = "auto") -> dict:
    """
    Transcribe a recording, picking the most plausible language.

    Parameters
    ----------
    audio : bytes
        Recording content.
    filename : str
        Original file name (Whisper infers the format from its extension).
    language_hint : str
        'auto' tries ar, fr and en concurrently; any other value is the only
        language attempted.

    Returns
    -------
    dict
        {'success', 'text', 'detectedLanguage', 'isDarija', 'confidence',
        'alternatives', 'duration', 'metadata'}.

    Raises
    ------
    Exception
        The first failure when every attempt failed (OpenAI errors keep their
        status code for the caller).
    """
    started = time.time()
    languages = list(AUTO_LANGUAGES) if language_hint == "auto" else [language_hint]
    client = OpenAI(api_key=settings.API_KEY)

    outcomes = await asyncio.gather(*(_transcribe_safe(client, audio, filename, lang) for lang in languages))
    results = [o for o in outcomes if isinstance(o, dict)]
    if not results:
        raise next(o for o in outcomes if isinstance(o, Exception))

    scored = sorted(
        ({**r, "score": calculate_language_score(r["text"], r["language"])} for r in results),
        key=lambda r: r["score"],
        reverse=True,
    )
    best = scored[0]
    logger.info(f"🎙️ [Language Detection] Scores: {[(s['language'], round(s['score'], 2)) for s in scored]}")

    is_darija = detect_darija(best["text"])
    text = best["text"]
    detected_language = best["language"]
    if is_darija:
        logger.info("🇲🇦 [Darija Detected] Enhancing transcription...")
        enhanced = await asyncio.to_thread(enhance_darija_transcription, scored)
        if enhanced:
            text = enhanced
            detected_language = "ar-MA"

    return {
        "success": True,
        "text": text,
        "detectedLanguage": detected_language,
        "isDarija": is_darija,
        "confidence": best["score"],
        "alternatives": [
            {"language": s["language"], "text": s["text"], "score": s["score"]} for s in scored[1:]
        ],
        "duration": best["duration"],
        "metadata": {
            "originalLanguageHint": language_hint,
            "languagesAttempted": languages,
            "processingTimeMs": int((time.time() - started) * 1000),
        },
    }
