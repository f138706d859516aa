"""
OpenGMAO backend
================

Maintenance-management (GMAO) backend: equipment tracking, technical document
ingestion, multilingual RAG chat, work orders, inventory and equipment
dependency mapping.

Subpackages
-----------
- api           FastAPI routers, request models, JWT helpers, S3 helpers
- ai            LLM-backed extraction, classification, analysis, transcription, ingestion
- rag           Text helpers, intent detection, chunking, embeddings, retrieval, memory
- cache         Metadata cache, document fingerprints, in-process TTL cache
- dependencies  Equipment matching, dependency graph, dependency suggestions
- crypt         Password hashing
- database      Settings, engine, entities, DAOs and transactional services
"""
