"""
Record store used by the reconciliation engine.

A thin layer over the SQLAlchemy session that speaks in entity names and
plain dicts, so entity profiles never handle ORM instances directly. Each
create/update commits on its own: an import is not one transaction, and a
failure part-way leaves earlier rows in place.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from import_engine.db.models import RECORD_MODELS
from import_engine.domain.imports.errors import RecordConflictError

logger = logging.getLogger(__name__)


def _to_dict(instance) -> Dict[str, Any]:
    return {column.key: getattr(instance, column.key) for column in inspect(instance).mapper.column_attrs}


class RecordStore:
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _model(entity: str):
        try:
            return RECORD_MODELS[entity]
        except KeyError:
            raise ValueError(f"Unknown record entity: {entity}")

    def _build_query(
        self,
        entity: str,
        equals: Optional[Dict[str, Any]] = None,
        iequals: Optional[Dict[str, str]] = None,
        between: Optional[Dict[str, Tuple[Any, Any]]] = None,
        exclude_id: Optional[str] = None,
    ):
        model = self._model(entity)
        query = select(model)
        for name, value in (equals or {}).items():
            query = query.where(getattr(model, name) == value)
        for name, value in (iequals or {}).items():
            query = query.where(func.lower(getattr(model, name)) == (value or "").strip().lower())
        for name, (start, end) in (between or {}).items():
            column = getattr(model, name)
            query = query.where(column >= start, column <= end)
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        return query

    def find_unique(self, entity: str, **equals) -> Optional[Dict[str, Any]]:
        return self.find_first(entity, equals=equals)

    def find_first(
        self,
        entity: str,
        *,
        equals: Optional[Dict[str, Any]] = None,
        iequals: Optional[Dict[str, str]] = None,
        between: Optional[Dict[str, Tuple[Any, Any]]] = None,
        exclude_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """First matching record; ``iequals`` compares strings case-insensitively."""
        query = self._build_query(entity, equals, iequals, between, exclude_id)
        instance = self.session.execute(query.limit(1)).scalars().first()
        return _to_dict(instance) if instance is not None else None

    def find_many(self, entity: str, *, equals: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        query = self._build_query(entity, equals)
        return [_to_dict(instance) for instance in self.session.execute(query).scalars()]

    def exists(self, entity: str, record_id: str) -> bool:
        return self.session.get(self._model(entity), record_id) is not None

    def create(self, entity: str, data: Dict[str, Any]) -> Dict[str, Any]:
        instance = self._model(entity)(**data)
        self.session.add(instance)
        self._commit(entity)
        self.session.refresh(instance)
        return _to_dict(instance)

    def update(self, entity: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        instance = self.session.get(self._model(entity), record_id)
        if instance is None:
            raise RecordConflictError(f"{entity} record {record_id} no longer exists.")
        for name, value in data.items():
            setattr(instance, name, value)
        self._commit(entity)
        self.session.refresh(instance)
        return _to_dict(instance)

    def _commit(self, entity: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.debug("Integrity violation writing %s: %s", entity, exc.orig)
            raise RecordConflictError(f"The {entity} record conflicts with an existing record: {exc.orig}")
