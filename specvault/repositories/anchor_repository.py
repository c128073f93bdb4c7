"""Anchor repository for database operations."""

from typing import List

from ..exceptions import ValidationError
from ..models import Anchor
from ..schemas.anchor import AnchorData
from .base import BaseRepository


class AnchorRepository(BaseRepository[Anchor]):
    """Repository for document anchors, keyed by (path, line, pos)."""

    model_class = Anchor

    def create(self, path: str, data: AnchorData) -> Anchor:
        """Add an anchor. Raises ValidationError if the position is taken."""
        existing = self.db.query(Anchor).filter(
            Anchor.path == path,
            Anchor.line == data.line,
            Anchor.pos == data.pos,
        ).first()
        if existing:
            raise ValidationError(
                f"Anchor already exists at line {data.line}, pos {data.pos}", field="line"
            )

        anchor = Anchor(
            path=path,
            line=data.line,
            pos=data.pos,
            time=data.time,
            label=data.label,
            comment=data.comment,
        )
        self.db.add(anchor)
        self.db.flush()
        self.db.refresh(anchor)
        return anchor

    def get_by_path(self, path: str) -> List[Anchor]:
        """Anchors of a document in reading order."""
        return self.db.query(Anchor).filter(
            Anchor.path == path
        ).order_by(Anchor.line.asc(), Anchor.pos.asc()).all()

    def delete(self, path: str, line: int, pos: int) -> bool:
        """Remove the anchor at (line, pos). Idempotent; returns whether one existed."""
        count = self.db.query(Anchor).filter(
            Anchor.path == path,
            Anchor.line == line,
            Anchor.pos == pos,
        ).delete(synchronize_session=False)
        return count > 0

    def delete_by_path(self, path: str) -> int:
        """Remove every anchor of a document."""
        return self.db.query(Anchor).filter(
            Anchor.path == path
        ).delete(synchronize_session=False)

    def rename_path(self, old_path: str, new_path: str) -> int:
        """Move anchors along with their document."""
        return self.db.query(Anchor).filter(
            Anchor.path == old_path
        ).update({Anchor.path: new_path}, synchronize_session=False)
