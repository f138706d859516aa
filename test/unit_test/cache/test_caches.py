"""
Unit tests for the caches.

Tests cover:
- TTL cache expiry on read and statistics
- Metadata cache hits, expiry, upsert and purge
- Document fingerprints
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from opengmao.cache import metadata_cache, ttl_cache
from opengmao.cache.document_fingerprint import (check_duplicate_document, generate_file_fingerprint,
                                                 store_document_fingerprint)
from opengmao.database.entities.asset import Asset
from opengmao.database.entities.asset_document import AssetDocument
from opengmao.database.entities.metadata_cache import MetadataCacheEntry

METADATA = {
    "name": "Compresseur GA37",
    "manufacturer": "Atlas Copco",
    "model": "GA37",
    "serial_number": None,
    "category": "Compressor",
    "description": "Compresseur à vis",
}


class TestTtlCache:
    """Test the process-local TTL cache."""

    def test_hit_and_stats(self):
        """Test a fresh entry and the statistics."""
        key = ttl_cache.get_cache_key("abc", 3)
        assert key == "dep_chain_abc_d3"
        ttl_cache.set_cached(key, {"upstream": []})

        assert ttl_cache.get_cached(key) == {"upstream": []}
        assert ttl_cache.get_cache_stats() == {"size": 1, "keys": [key]}

    def test_expired_entry_is_removed_on_read(self):
        """Test that an entry older than five minutes is dropped when read."""
        with patch("opengmao.cache.ttl_cache.time.time", return_value=1000.0):
            ttl_cache.set_cached("k", "v")
        with patch("opengmao.cache.ttl_cache.time.time", return_value=1000.0 + 301):
            assert ttl_cache.get_cached("k") is None
        assert ttl_cache.get_cache_stats()["size"] == 0

    def test_miss_and_clear(self):
        """Test a missing key and clearing."""
        assert ttl_cache.get_cached("missing") is None
        ttl_cache.set_cached("k", 1)
        ttl_cache.clear_cache()
        assert ttl_cache.get_cached("k") is None


class TestMetadataCache:
    """Test the metadata cache table."""

    def test_hash_uses_first_5000_characters(self):
        """Test that only the document prefix is hashed."""
        prefix = "a" * 5000
        assert metadata_cache.generate_document_hash(prefix + "tail one") == \
            metadata_cache.generate_document_hash(prefix + "tail two")
        assert metadata_cache.generate_document_hash("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_miss_then_hit(self, db_engine):
        """Test that a stored entry is returned with its provenance."""
        assert metadata_cache.get_cached_metadata(document_hash="h1") is None
        metadata_cache.set_cached_metadata(document_hash="h1", metadata=METADATA, extraction_method="hybrid",
                                           confidence=0.9)

        cached = metadata_cache.get_cached_metadata(document_hash="h1")
        assert cached["name"] == "Compresseur GA37"
        assert cached["manufacturer"] == "Atlas Copco"
        assert cached["extraction_method"] == "hybrid"
        assert cached["confidence"] == 0.9

    def test_upsert_replaces_fields(self, db_engine):
        """Test that storing the same hash again refreshes the entry."""
        metadata_cache.set_cached_metadata(document_hash="h1", metadata=METADATA)
        metadata_cache.set_cached_metadata(document_hash="h1", metadata={**METADATA, "name": "GA37 VSD"})
        assert metadata_cache.get_cached_metadata(document_hash="h1")["name"] == "GA37 VSD"

    def test_unknown_extraction_method(self, db_engine):
        """Test that only regex, ai and hybrid are accepted."""
        with pytest.raises(ValueError):
            metadata_cache.set_cached_metadata(document_hash="h1", metadata=METADATA, extraction_method="ocr")

    def test_expired_entries(self, db_engine):
        """Test that entries older than 30 days are ignored and purged."""
        metadata_cache.set_cached_metadata(document_hash="old", metadata=METADATA)
        metadata_cache.set_cached_metadata(document_hash="new", metadata=METADATA)
        with Session(db_engine) as session:
            entry = session.get(MetadataCacheEntry, "old")
            entry.cached_at = datetime.now(timezone.utc) - timedelta(days=31)
            session.commit()

        assert metadata_cache.get_cached_metadata(document_hash="old") is None
        assert metadata_cache.clear_expired_cache() == 1
        assert metadata_cache.get_cached_metadata(document_hash="new") is not None


class TestDocumentFingerprint:
    """Test duplicate detection."""

    def test_fingerprint_is_sha256(self):
        """Test the fingerprint digest."""
        assert generate_file_fingerprint(b"%PDF-1.7") == hashlib.sha256(b"%PDF-1.7").hexdigest()

    def test_unknown_file_is_not_duplicate(self, db_engine):
        """Test a fingerprint nobody uploaded."""
        result = check_duplicate_document(fingerprint="0" * 64, organization_id=None)
        assert result == {"is_duplicate": False, "existing_document": None}

    def test_stored_fingerprint_is_found(self, db_engine):
        """Test that a stored fingerprint makes the same file a duplicate within the organization only."""
        organization = uuid.uuid4()
        asset = Asset(name="Compresseur GA37", code="CMP-001", location="Atelier A", organization_id=organization)
        document = AssetDocument(asset_id=asset.id, file_name="ga37.pdf")
        document_id = str(document.id)
        with Session(db_engine) as session:
            session.add_all([asset, document])
            session.commit()
        fingerprint = generate_file_fingerprint(b"%PDF-1.7")

        assert check_duplicate_document(fingerprint=fingerprint, organization_id=str(organization))["is_duplicate"] is False
        assert store_document_fingerprint(document_id=document_id, fingerprint=fingerprint) is True

        result = check_duplicate_document(fingerprint=fingerprint, organization_id=str(organization))
        assert result["is_duplicate"] is True
        assert result["existing_document"]["file_name"] == "ga37.pdf"
        assert result["existing_document"]["asset_name"] == "Compresseur GA37"
        assert check_duplicate_document(fingerprint=fingerprint, organization_id=str(uuid.uuid4()))["is_duplicate"] is False

    def test_fingerprint_of_unknown_document(self, db_engine):
        """Test that storing a fingerprint for a missing document reports it."""
        assert store_document_fingerprint(document_id=str(uuid.uuid4()), fingerprint="0" * 64) is False
