"""
Caches
======

- metadata_cache        Database-backed cache of extracted equipment metadata (30 days)
- document_fingerprint  SHA-256 file fingerprints and duplicate detection
- ttl_cache             Process-local map with a 5 minute wall-clock expiry
"""
