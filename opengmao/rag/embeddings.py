"""
Embeddings
==========

OpenAI embeddings through LangChain (`text-embedding-3-small` by default) and
the cosine similarity used to score stored chunk vectors against a query.
"""

from langchain_openai import OpenAIEmbeddings
from opengmao.database.config.config import settings
from typing import List, Sequence
import numpy as np


def get_embedder() -> OpenAIEmbeddings:
    return OpenAIEmbeddings(model=settings.EMBEDDING_MODEL, api_key=settings.API_KEY)


def _prepare(text: str) -> str:
    return text.replace("\n", " ").strip()


def generate_embedding(text: str) -> List[float]:
    """Embed a single text (newlines replaced by spaces)."""
    return get_embedder().embed_query(_prepare(text))


def generate_embeddings(texts: List[str]) -> List[List[float]]:
    """Embed a batch of texts in one request."""
    if not texts:
        return []
    return get_embedder().embed_documents([_prepare(text) for text in texts])


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either vector is empty, zero, or the dimensions differ.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    v1 = np.asarray(a, dtype=float)
    v2 = np.asarray(b, dtype=float)
    norm = np.linalg.norm(v1) * np.linalg.norm(v2)
    if norm == 0:
        return 0.0
    return float(np.dot(v1, v2) / norm)
