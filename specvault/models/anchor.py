"""Anchor model."""

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text, UniqueConstraint
from ..database import Base


class Anchor(Base):
    """Line/position bookmark inside a tracked document. Not versioned."""

    __tablename__ = "anchors"
    __table_args__ = (
        Index("ix_anchors_path", "path"),
        UniqueConstraint("path", "line", "pos", name="uq_anchors_path_line_pos"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(500), nullable=False)
    line = Column(Integer, nullable=False)
    pos = Column(Integer, nullable=False)

    # Creation time in epoch milliseconds, as sent by the client
    time = Column(BigInteger, nullable=False)

    label = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
