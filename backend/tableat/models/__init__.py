"""SQLAlchemy models."""

from tableat.models.document import Document

__all__ = ["Document"]
