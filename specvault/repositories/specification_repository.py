"""Specification repository for database operations."""

from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import func

from ..engine.semver import ensure_newer
from ..exceptions import ChainIntegrityError, StaleBaseError, ValidationError, VersionNotFoundError
from ..models import Specification
from ..schemas.specification import NewSpecification, TrackedFileSummary
from .base import BaseRepository


class SpecificationRepository(BaseRepository[Specification]):
    """Repository for version records.

    Owns the store-side invariants of a chain: the first record of a path is
    full, versions strictly increase, and no record that a later diff is
    based on can be removed.
    """

    model_class = Specification
    not_found_error = VersionNotFoundError

    def create(self, spec: NewSpecification, base_id: Optional[int] = None) -> Specification:
        """Append a record to the chain of ``spec.path``.

        A diff record must name the current latest record of the path as
        *base_id*. Raises StaleBaseError otherwise.
        """
        existing = self.get_by_path(spec.path)
        if not existing and not spec.is_full:
            raise ValidationError(
                f"First version of '{spec.path}' must be a full snapshot", field="is_full"
            )
        ensure_newer(spec.version, [r.version for r in existing])
        if not spec.is_full and base_id != existing[-1].id:
            raise StaleBaseError(spec.path, base_id, existing[-1].id)

        db_spec = Specification(
            path=spec.path,
            name=spec.name,
            version=spec.version,
            diff=spec.diff,
            is_full=spec.is_full,
            created_at=spec.created_at,
            soft_deleted=spec.soft_deleted,
        )
        self.db.add(db_spec)
        self.db.flush()
        self.db.refresh(db_spec)
        return db_spec

    def get_by_path(self, path: str) -> List[Specification]:
        """All records of a path in chain (id) order, soft-deleted included."""
        return self.db.query(Specification).filter(
            Specification.path == path
        ).order_by(Specification.id.asc()).all()

    def get_last(self, path: str) -> Optional[Specification]:
        """Most recently created record of a path."""
        return self.db.query(Specification).filter(
            Specification.path == path
        ).order_by(Specification.id.desc()).first()

    def set_soft_deleted(self, spec_id: int, deleted: bool) -> Specification:
        """Flip the soft-delete flag. Idempotent for existing records."""
        spec = self.get_by_id(spec_id)
        if spec.soft_deleted != deleted:
            spec.soft_deleted = deleted
            self.db.flush()
        return spec

    def next_in_chain(self, spec: Specification) -> Optional[Specification]:
        """The record created right after *spec* on the same path."""
        return self.db.query(Specification).filter(
            Specification.path == spec.path,
            Specification.id > spec.id,
        ).order_by(Specification.id.asc()).first()

    def permanent_delete(self, spec_id: int) -> None:
        """Hard delete a record that no later diff depends on.

        Raises ChainIntegrityError when the next record of the path is a diff.
        """
        spec = self.get_by_id(spec_id)
        successor = self.next_in_chain(spec)
        if successor is not None and not successor.is_full:
            raise ChainIntegrityError(spec.id, successor.id)
        self.db.delete(spec)
        self.db.flush()

    def is_next_version_full(self, path: str, rebaseline_interval: int) -> bool:
        """Whether the next record of *path* should be a full snapshot.

        True for a new path, and whenever the chain since the latest full
        record (inclusive) has reached ``rebaseline_interval`` records.
        """
        last_full = self.db.query(Specification).filter(
            Specification.path == path,
            Specification.is_full.is_(True),
        ).order_by(Specification.id.desc()).first()
        if last_full is None:
            return True

        chain_length = self.db.query(func.count(Specification.id)).filter(
            Specification.path == path,
            Specification.id >= last_full.id,
        ).scalar()
        return chain_length >= rebaseline_interval

    def get_entry_view_data(self) -> Dict[str, TrackedFileSummary]:
        """Record count and newest creation time for every tracked path."""
        rows = self.db.query(
            Specification.path,
            func.count(Specification.id),
            func.max(Specification.created_at),
        ).group_by(Specification.path).all()

        data: Dict[str, TrackedFileSummary] = {}
        for path, count, last_created in rows:
            if last_created.tzinfo is None:
                last_created = last_created.replace(tzinfo=timezone.utc)
            data[path] = TrackedFileSummary(
                count=count,
                last_update=int(last_created.timestamp() * 1000),
            )
        return data

    def is_tracked(self, path: str) -> bool:
        """Whether any record exists for *path*."""
        return self.db.query(Specification.id).filter(
            Specification.path == path
        ).first() is not None

    def rename_path(self, old_path: str, new_path: str) -> int:
        """Move a whole chain to *new_path*. Returns the number of records moved."""
        if old_path == new_path:
            return 0
        if self.is_tracked(new_path):
            raise ValidationError(f"Path '{new_path}' already has a version history", field="new_path")
        count = self.db.query(Specification).filter(
            Specification.path == old_path
        ).update({Specification.path: new_path}, synchronize_session=False)
        self.db.flush()
        return count

    def set_path_soft_deleted(self, path: str, deleted: bool) -> int:
        """Set the soft-delete flag on every record of a path."""
        count = self.db.query(Specification).filter(
            Specification.path == path
        ).update({Specification.soft_deleted: deleted}, synchronize_session=False)
        self.db.flush()
        return count

    def delete_path(self, path: str) -> int:
        """Permanently delete a whole chain. Safe because nothing outlives it."""
        count = self.db.query(Specification).filter(
            Specification.path == path
        ).delete(synchronize_session=False)
        self.db.flush()
        return count
