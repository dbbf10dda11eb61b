"""Generic document row backing the sql document store."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tableat.db.base import Base, RowStampsMixin


class Document(Base, RowStampsMixin):
    """One document of a hierarchical collection.

    ``path`` is the collection path (``restaurants`` or
    ``restaurants/BY_THE_WAY/tables``), ``doc_id`` the id within it.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("path", "doc_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Document {self.path}/{self.doc_id}>"
