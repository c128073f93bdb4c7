"""Base repository for the store's SQLAlchemy models."""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy.orm import Session

from ..database import Base
from ..exceptions import SpecVaultException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Holds the session; subclasses set ``model_class`` and ``not_found_error``."""

    model_class: Type[ModelT]
    not_found_error: Type[SpecVaultException]

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, entity_id: Any) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.db.get(self.model_class, entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity
