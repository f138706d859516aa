"""
Retrieval-augmented generation helpers
======================================

- text_utils           Text normalization and language detection
- intent_detection     Multilingual keyword intent detection
- chunker              Overlapping text chunks for embedding
- embeddings           OpenAI embeddings and cosine similarity
- alias_resolution     Equipment alias resolution for queries
- equipment_detector   Equipment mentions in free text
- conversation_memory  Persisted rolling chat history
- smart_search         Vector retrieval, dependency context, prompt building
"""
