"""
API Package — FastAPI Routers • Models • JWT Utils • Uploads & S3
=================================================================

Mission
-------
This package defines the backend's HTTP interface and its support stack:
FastAPI routing, JWT auth, request validation, upload rate limiting, S3
delivery and the helpers shared with the AI pipelines.

Contents
--------
- fast_api
    FastAPI router for the maintenance records:
      • Auth: login, register, logout, current user
      • Assets: CRUD, bulk import of an AI extraction, QR scan lookup
      • Work orders: CRUD, status, consumed parts
      • Inventory and dashboard counters

- ai_router
    FastAPI router for the AI features:
      • Upload of manuals/photos to S3 (presigned URL returned)
      • Voice transcription (Whisper, ar/fr/en, Darija clean-up)
      • Multi-pass extraction, document ingestion (SSE progress)
      • Chat over the equipment documentation (SSE answer)
      • Dependency suggestions, aliases, documents, triage

- models
    Pydantic data contracts for request validation.

- utils
    JWT helpers:
      • create_access_token(payload) — issues signed JWTs with exp
      • verify_token(token) — validates JWTs and extracts the user id

- rate_limiter
    In-process hourly counters per user (uploads, extractions).

- prompt_utilities
    PDF/image text extraction, file name sanitizing, chat model factory and
    LLM JSON parsing.

- aws_bucket_funcs
    S3 integration helpers (module: aws_bucket_funcs/funcs.py):
      • get_client() — initializes a Signature V4 S3 client (uses settings)
      • upload_bytes(data, key, content_type, s3_client) — uploads a file with its headers
      • download(key, s3_client, expires=3600) — generates a presigned GET URL

Operational Notes
-----------------
- Streaming: chat and ingestion endpoints stream SSE frames as `data: {json}\\n\\n`.
- Security: Auth via HttpOnly `token` cookie (JWT). Guard protected routes and never log secrets.
- Localization: user-facing errors are French where the web client shows them.
"""
