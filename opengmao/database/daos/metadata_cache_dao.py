"""
Metadata Cache DAO

Purpose
-------
Read, upsert and purge `MetadataCacheEntry` rows. Age checks are left to the
cache module; this DAO only knows about rows and cut-off timestamps.
"""

from sqlalchemy.orm import Session
from opengmao.database.entities.metadata_cache import MetadataCacheEntry
from typing import Optional
from datetime import datetime, timezone


class MetadataCacheDao:
    """Data Access Object for `MetadataCacheEntry`."""

    def fetchEntry(self, session: Session, document_hash: str) -> Optional[MetadataCacheEntry]:
        try:
            return (
                session.query(MetadataCacheEntry)
                .filter(MetadataCacheEntry.document_hash == document_hash)
                .one_or_none()
            )
        except Exception as e:
            print(f"Error in MetadataCacheDao.fetchEntry. Error: {e}")
            raise e

    def upsertEntry(self, session: Session, document_hash: str, metadata: dict,
                    confidence: float, extraction_method: str) -> MetadataCacheEntry:
        """
        Insert the entry, or refresh it when the hash is already cached.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        document_hash : str
            Cache key.
        metadata : dict
            Extracted metadata fields.
        confidence : float
            Extraction confidence.
        extraction_method : str
            "regex", "ai" or "hybrid".

        Returns
        -------
        MetadataCacheEntry
        """
        try:
            entry = self.fetchEntry(session, document_hash)
            if entry is None:
                entry = MetadataCacheEntry(document_hash, metadata, confidence, extraction_method)
                session.add(entry)
            else:
                entry.apply(metadata)
                entry.confidence = confidence
                entry.extraction_method = extraction_method
                entry.cached_at = datetime.now(timezone.utc)
            return entry
        except Exception as e:
            print(f"Error in MetadataCacheDao.upsertEntry. Error: {e}")
            raise e

    def deleteEntriesOlderThan(self, session: Session, cutoff: datetime) -> int:
        """Delete rows cached before `cutoff`; returns the number removed."""
        try:
            return (
                session.query(MetadataCacheEntry)
                .filter(MetadataCacheEntry.cached_at < cutoff)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            print(f"Error in MetadataCacheDao.deleteEntriesOlderThan. Error: {e}")
            raise e
