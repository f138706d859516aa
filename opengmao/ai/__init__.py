"""
LLM-backed pipelines
====================

- metadata_extractor    Equipment metadata from document text (cached)
- document_classifier   Document type, section type and multi-type classification
- section_detector      Manual section detection and prioritization
- extraction_prompts    French prompts for the multi-pass extraction
- extraction_pipeline   Five-pass structured extraction with validation and cost
- dependency_suggester  Upstream/downstream dependency suggestions for an asset
- dependency_extractor  Equipment relationships mentioned in a document
- query_analyzer        Quick (regex) and full (LLM) chat query analysis
- transcription         Multilingual Whisper transcription with Darija handling
- triage                Guided problem triage ending in a work order draft
- ingestion             PDF ingestion pipeline reporting SSE progress
"""
