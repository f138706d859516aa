"""
Metadata Cache
==============

Caches AI-extracted equipment metadata so re-importing the same manual does
not call the model again. The key is the SHA-256 of the document's first 5000
characters, where the nameplate information usually sits.

Functions
---------
- generate_document_hash : cache key for a document text
- get_cached_metadata    : fresh entry or None (miss / older than 30 days)
- set_cached_metadata    : upsert an entry
- clear_expired_cache    : purge entries older than 30 days
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.daos.metadata_cache_dao import MetadataCacheDao
from sqlalchemy.orm import Session
from datetime import datetime, timezone, timedelta
from typing import Optional
import hashlib
import logging

logger = logging.getLogger("uvicorn")

HASH_SAMPLE_CHARS = 5000
MAX_AGE = timedelta(days=30)
EXTRACTION_METHODS = ("regex", "ai", "hybrid")


def generate_document_hash(text: str) -> str:
    """SHA-256 hex digest of the first 5000 characters of `text`."""
    return hashlib.sha256(text[:HASH_SAMPLE_CHARS].encode("utf-8")).hexdigest()


def _as_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


@transactional
def get_cached_metadata(session: Session, document_hash: str) -> Optional[dict]:
    """
    Look up cached metadata.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    document_hash : str
        Key produced by `generate_document_hash`.

    Returns
    -------
    dict | None
        Metadata fields plus confidence, extraction_method and cached_at, or
        None on a miss or when the entry is older than 30 days.
    """
    logger.info("💾 Checking metadata cache...")
    entry = MetadataCacheDao().fetchEntry(session, document_hash)
    if entry is None:
        logger.info("💾 Cache MISS")
        return None
    if datetime.now(timezone.utc) - _as_utc(entry.cached_at) > MAX_AGE:
        logger.info("💾 Cache expired (>30 days)")
        return None
    logger.info(f"💾 Cache HIT: {entry.name or 'N/A'} ({entry.extraction_method})")
    return {
        **entry.to_metadata(),
        "confidence": entry.confidence,
        "extraction_method": entry.extraction_method,
        "cached_at": _as_utc(entry.cached_at).isoformat(),
    }


@transactional
def set_cached_metadata(session: Session, document_hash: str, metadata: dict,
                        extraction_method: str = "ai", confidence: float = 0.85) -> None:
    """
    Insert or refresh a cache entry.

    Raises
    ------
    ValueError
        If `extraction_method` is not one of regex, ai, hybrid.
    """
    if extraction_method not in EXTRACTION_METHODS:
        raise ValueError(f"Unknown extraction method: {extraction_method}")
    MetadataCacheDao().upsertEntry(session, document_hash, metadata, confidence, extraction_method)
    logger.info("💾 Metadata cached for future imports")


@transactional
def clear_expired_cache(session: Session) -> int:
    """Delete entries older than 30 days and return how many were removed."""
    count = MetadataCacheDao().deleteEntriesOlderThan(session, datetime.now(timezone.utc) - MAX_AGE)
    if count > 0:
        logger.info(f"🗑️ Cleared {count} expired cache entries")
    return count
