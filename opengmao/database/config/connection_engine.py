"""
Connection Engine (SQLAlchemy)

Purpose
-------
Centralizes database initialization for the application:
- Builds the SQLAlchemy connection URL from environment-backed settings.
- Creates the Engine (connection pool + SQL execution entry point).
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.

Notes
-----
- `URL.create(...)` keeps credentials out of source code.
- All ORM models inherit from `declarativeBase`.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base
from sqlalchemy.schema import MetaData
from opengmao.database.config.config import settings

connection_url = URL.create(
    drivername=settings.DB_DRIVER_NAME,
    username=settings.DB_USERNAME,
    password=settings.DB_PASSWORD,
    host=settings.DB_HOST,
    database=settings.DB_DATABASE_NAME
)
"""SQLAlchemy connection URL built from Settings."""

connection_engine = create_engine(connection_url)
"""Engine object: core interface to the database."""

metadata = MetaData()
"""Schema-level information (tables, constraints, indexes) shared across all models."""

declarativeBase = declarative_base(metadata=metadata)
"""Root class for ORM models."""
