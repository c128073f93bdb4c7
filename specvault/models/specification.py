"""Specification version model."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, LargeBinary, String, UniqueConstraint
from ..database import Base


class Specification(Base):
    """One saved version of one tracked document.

    ``diff`` holds a gzip-compressed JSON payload: the whole document when
    ``is_full`` is set, otherwise a delta against the previous record of the
    same path (by id).
    """

    __tablename__ = "specifications"
    __table_args__ = (
        Index("ix_specifications_path", "path"),
        UniqueConstraint("path", "version", name="uq_specifications_path_version"),
        # Never reuse ids, even after the highest one is deleted.
        {"sqlite_autoincrement": True},
    )

    # Primary key, assigned by the store in creation order
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Tracked document
    path = Column(String(500), nullable=False)

    # User-facing label and semantic version ("1.2.0")
    name = Column(String(255), nullable=False)
    version = Column(String(50), nullable=False)

    # Payload
    diff = Column(LargeBinary, nullable=False)
    is_full = Column(Boolean, nullable=False, default=False)

    # Timestamp, set by the caller at save time
    created_at = Column(DateTime(timezone=True), nullable=False)

    # Soft delete (hidden from listings, still part of the chain)
    soft_deleted = Column(Boolean, nullable=False, default=False)
