"""
Overlapping text chunker used before embedding.

Chunks target `chunk_size` characters and try to end on a paragraph, a
sentence or a line break found past the middle of the window. Consecutive
chunks overlap by `overlap` characters.
"""

import re
from typing import List

MAX_TEXT_LENGTH = 500000
MAX_CHUNKS = 500
MIN_CHUNK_LENGTH = 50


def clean_text(text: str) -> str:
    """Cap the length, normalize line endings and collapse blank runs."""
    cleaned = text[:MAX_TEXT_LENGTH].replace("\r\n", "\n")
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def _break_point(window: str, chunk_size: int) -> int:
    half = chunk_size * 0.5
    last_paragraph = window.rfind("\n\n")
    if last_paragraph > half:
        return last_paragraph
    last_sentence = window.rfind(". ")
    if last_sentence > half:
        return last_sentence + 1
    last_newline = window.rfind("\n")
    if last_newline > half:
        return last_newline
    return -1


def split_text_into_chunks(text: str, chunk_size: int = 1500, overlap: int = 150) -> List[dict]:
    """
    Split a document into overlapping chunks.

    Parameters
    ----------
    text : str
        Full document text.
    chunk_size : int
        Target chunk size in characters.
    overlap : int
        Characters shared by consecutive chunks.

    Returns
    -------
    list[dict]
        `{"content": str, "metadata": {"chunk_index", "char_start", "char_end"}}`
        where offsets refer to the cleaned text. Chunks of 50 characters or
        fewer are dropped; at most 500 chunks are produced.
    """
    if not text:
        return []
    cleaned = clean_text(text)
    if len(cleaned) <= chunk_size:
        return [{"content": cleaned, "metadata": {"chunk_index": 0, "char_start": 0, "char_end": len(cleaned)}}]

    chunks = []
    start = 0
    while start < len(cleaned) and len(chunks) < MAX_CHUNKS:
        end = min(start + chunk_size, len(cleaned))
        if end < len(cleaned):
            point = _break_point(cleaned[start:end], chunk_size)
            if point > 0:
                end = start + point + 1

        content = cleaned[start:end].strip()
        if len(content) > MIN_CHUNK_LENGTH:
            chunks.append({
                "content": content,
                "metadata": {"chunk_index": len(chunks), "char_start": start, "char_end": end},
            })

        if end >= len(cleaned):
            break
        next_start = end - overlap
        start = next_start if next_start > start else end
        if start >= len(cleaned) - MIN_CHUNK_LENGTH:
            break
    return chunks


def estimate_page_number(char_position: int, chars_per_page: int = 3000) -> int:
    """Rough page number of a character offset (about 3000 characters per page)."""
    return char_position // chars_per_page + 1
