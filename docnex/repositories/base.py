"""Common lookups shared by the DOCNEX repositories."""

from typing import Generic, Optional, Type, TypeVar, Union

from sqlalchemy.orm import Query, Session

from ..database import Base
from ..exceptions import DocnexException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Lookup by ``id`` over ``_base_query()``.

    Subclasses set ``model_class`` and the ``not_found_error`` raised by
    ``get_by_id``. ``BlockRepository`` narrows ``_base_query`` so that
    soft-deleted blocks are invisible unless asked for.
    """

    model_class: Type[ModelT]
    not_found_error: Type[DocnexException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def get_by_id_optional(self, entity_id: Union[str, int, None]) -> Optional[ModelT]:
        if entity_id is None:
            return None
        return self._base_query().filter(self.model_class.id == entity_id).first()

    def get_by_id(self, entity_id: Union[str, int]) -> ModelT:
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(str(entity_id))
        return entity

    def add(self, entity: ModelT) -> ModelT:
        """Stage *entity* and flush so its defaults and id are populated."""
        self.db.add(entity)
        self.db.flush()
        return entity
