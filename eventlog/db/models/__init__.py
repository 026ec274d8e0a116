"""Database model registry. Import all models here so Alembic can discover them."""

from eventlog.db.models.event import Event

__all__ = ["Event"]
