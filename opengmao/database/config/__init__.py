"""Settings and SQLAlchemy engine configuration."""
