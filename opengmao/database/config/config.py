"""
Configuration — Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed application configuration for the OpenGMAO backend:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- Missing required fields raise a validation error at import time.
- `extra="ignore"`: unknown env vars are ignored (not an error).

Usage
-----
from opengmao.database.config.config import settings

db_host = settings.DB_HOST
chat_model = settings.OPEN_AI_MODEL
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    FRONTEND_URL: str = Field("http://localhost:3000", description="Base URL of the frontend client application.")

    DB_DRIVER_NAME: str = Field(..., description="Database driver (e.g., `postgresql+psycopg2`, `sqlite`).")
    DB_USERNAME: Optional[str] = Field(None, description="Database username credential.")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password credential.")
    DB_HOST: Optional[str] = Field(None, description="Hostname or IP address of the database server.")
    DB_DATABASE_NAME: str = Field(..., description="Name of the application's database (or file path for SQLite).")

    SECRET_KEY: str = Field(..., description="Secret key for signing session tokens.")
    ALGORITHM: str = Field("HS256", description="JWT signing algorithm.")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, description="Duration (in minutes) before access tokens expire.")

    API_KEY: str = Field(..., description="OpenAI API key (chat, embeddings, Whisper).")
    OPEN_AI_MODEL: str = Field("gpt-4o", description="Chat model used for answers and multi-pass extraction.")
    OPEN_AI_MINI_MODEL: str = Field("gpt-4o-mini", description="Small model used for classification and metadata.")
    EMBEDDING_MODEL: str = Field("text-embedding-3-small", description="Embedding model for document chunks.")

    AWS_ACCESS_KEY: Optional[str] = Field(None, description="AWS access key ID.")
    AWS_SECRET_KEY: Optional[str] = Field(None, description="AWS secret access key.")
    REGION: str = Field("eu-west-3", description="AWS region name.")
    BUCKET_NAME: str = Field("ai-uploads", description="S3 bucket receiving uploaded manuals and images.")

    UPLOAD_DIR: str = Field("uploads", description="Local directory for temporary uploads.")


settings = Settings()
"""Singleton Settings object holding the contents of the environment / .env file"""
