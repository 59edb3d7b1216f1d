"""SQLAlchemy models and repository."""
