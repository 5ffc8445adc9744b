# shop_ledger/db/interface.py
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
import enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import httpx
from postgrest.exceptions import APIError
from sqlalchemy import Boolean, DateTime, Integer, Numeric
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from supabase import AuthError

from shop_ledger.exceptions import NotAuthenticatedError, StoreUnavailableError, UnsupportedQueryError
from shop_ledger.models import Base, COLLECTIONS, generate_id
from shop_ledger.utils.date_utils import parse_timestamp
from shop_ledger.utils.math_utils import to_decimal

logger = logging.getLogger(__name__)

OPERATORS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'in', 'ilike')

Filters = Dict[str, Any]
Order = Sequence[Tuple[str, bool]]


class FieldRef:
    """Reference to another column of the same row, e.g. ``('lte', FieldRef('low_stock_threshold'))``."""

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, FieldRef) and other.name == self.name

    def __hash__(self):
        return hash(('FieldRef', self.name))

    def __repr__(self):
        return f"FieldRef({self.name!r})"


def normalize_filters(filters: Optional[Filters]) -> List[Tuple[str, str, Any]]:
    """Flatten a filter mapping into (field, operator, value) triples.

    A filter value is either a bare value (equality), an ``(operator, value)``
    tuple, or a list of such tuples for several conditions on one field.
    """
    conditions = []
    for field, condition in (filters or {}).items():
        parts = condition if isinstance(condition, list) else [condition]
        for part in parts:
            if isinstance(part, tuple) and len(part) == 2 and part[0] in OPERATORS:
                conditions.append((field, part[0], part[1]))
            else:
                conditions.append((field, 'eq', part))
    return conditions


def get_model(collection: str) -> Type[Base]:
    """Get the model class backing a collection."""
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}")


def coerce_value(column, value: Any) -> Any:
    """Coerce a raw store value to the Python type of ``column``."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        value = value.value

    column_type = column.type
    if isinstance(column_type, Numeric):
        return to_decimal(value)
    if isinstance(column_type, DateTime):
        return parse_timestamp(value)
    if isinstance(column_type, Boolean):
        return bool(value)
    if isinstance(column_type, Integer):
        return int(value)
    return value


def coerce_record(model_class: Type[Base], data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce every known column of ``data``; unknown keys are rejected."""
    columns = model_class.__table__.columns
    unknown = set(data) - set(columns.keys())
    if unknown:
        raise ValueError(f"Unknown fields for {model_class.__tablename__}: {', '.join(sorted(unknown))}")
    return {name: coerce_value(columns[name], value) for name, value in data.items()}


def dict_to_model(model_class: Type[Base], data: Dict[str, Any]) -> Base:
    """Convert a store record to a (transient) model instance.

    Args:
        model_class: Model class
        data: Record as returned by a store

    Returns:
        Model instance with coerced column values
    """
    instance = model_class()
    for column in model_class.__table__.columns:
        if column.name in data:
            setattr(instance, column.name, coerce_value(column, data[column.name]))
    return instance


def model_to_dict(instance: Base) -> Dict[str, Any]:
    """Convert a model instance to a record dictionary."""
    result = {}
    for column in instance.__table__.columns:
        value = getattr(instance, column.name)
        if isinstance(value, enum.Enum):
            value = value.value
        result[column.name] = value
    return result


def to_json_value(value: Any) -> Any:
    """Render a value for a JSON/REST payload."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


class RecordStore(ABC):
    """Abstract record store the ledger reads and writes through."""

    @abstractmethod
    def find(self, collection: str, filters: Optional[Filters] = None,
             order: Optional[Order] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Query records from a collection."""
        pass

    @abstractmethod
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its generated id."""
        pass

    @abstractmethod
    def update(self, collection: str, record_id: str, patch: Dict[str, Any],
               match: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Update one record.

        Args:
            collection: Collection name
            record_id: Record id
            patch: Fields to change
            match: Extra equality conditions the row must satisfy

        Returns:
            Updated record, or None if no row matched
        """
        pass

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Delete one record."""
        pass

    @abstractmethod
    def current_owner_id(self) -> Optional[str]:
        """Get the authenticated owner, or None when signed out."""
        pass

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Get a record by id."""
        results = self.find(collection, {'id': record_id}, limit=1)
        return results[0] if results else None


class SupabaseStore(RecordStore):
    """Record store backed by hosted Supabase tables."""

    def __init__(self, client):
        """Initialize with Supabase client."""
        self.client = client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as e:
            raise StoreUnavailableError(f"Supabase {action} error: {e.message}",
                                        code=getattr(e, 'code', None)) from e
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"Supabase {action} failed: {str(e)}") from e

    @staticmethod
    def _apply_filter(query, field: str, op: str, value: Any):
        if isinstance(value, FieldRef):
            raise UnsupportedQueryError(
                f"Supabase filters cannot compare {field} with column {value.name}"
            )
        value = to_json_value(value)
        if op == 'in':
            return query.in_(field, value)
        # eq/neq/gt/gte/lt/lte/ilike map 1:1 onto the filter builder
        return getattr(query, op)(field, value)

    def find(self, collection, filters=None, order=None, limit=None):
        """Query data from a table using Supabase."""
        query = self.client.table(collection).select('*')

        for field, op, value in normalize_filters(filters):
            query = self._apply_filter(query, field, op, value)

        for field, ascending in order or ():
            query = query.order(field, desc=not ascending)

        if limit:
            query = query.limit(limit)

        result = self._execute(query, 'query')
        return result.data if result.data else []

    def insert(self, collection, record):
        """Insert data into a table using Supabase."""
        payload = {key: to_json_value(value) for key, value in record.items()}
        result = self._execute(self.client.table(collection).insert(payload), 'insert')

        if not result.data:
            raise StoreUnavailableError(f"Supabase insert into {collection} returned no row")
        return result.data[0]

    def update(self, collection, record_id, patch, match=None):
        """Update data in a table using Supabase."""
        payload = {key: to_json_value(value) for key, value in patch.items()}
        query = self.client.table(collection).update(payload).eq('id', record_id)

        for key, value in (match or {}).items():
            query = query.eq(key, to_json_value(value))

        result = self._execute(query, 'update')
        return result.data[0] if result.data else None

    def delete(self, collection, record_id):
        """Delete data from a table using Supabase."""
        self._execute(self.client.table(collection).delete().eq('id', record_id), 'delete')

    def current_owner_id(self):
        """Get the signed-in user's id from the Supabase auth session."""
        try:
            response = self.client.auth.get_user()
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"Supabase auth request failed: {str(e)}") from e
        except AuthError as e:
            # Expired, revoked or missing session
            raise NotAuthenticatedError(f"Supabase auth error: {str(e)}") from e

        if response is None or getattr(response, 'user', None) is None:
            return None
        return response.user.id


class SqlAlchemyStore(RecordStore):
    """Record store backed by a SQL database through SQLAlchemy."""

    def __init__(self, engine, owner_id: Optional[str] = None):
        """Initialize with a SQLAlchemy engine.

        Args:
            engine: SQLAlchemy engine
            owner_id: Owner identity stamped on reads and writes
        """
        self.engine = engine
        self.owner_id = owner_id
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=engine
        )

    @contextmanager
    def session_scope(self) -> Session:
        """Provide transaction scope for database operations."""
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailableError(f"Database error: {str(e)}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self):
        """Create all tables."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to create tables: {str(e)}") from e

    def drop_all(self):
        """Drop all tables."""
        try:
            Base.metadata.drop_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to drop tables: {str(e)}") from e

    @staticmethod
    def _column(model, field: str):
        if field not in model.__table__.columns:
            raise ValueError(f"Unknown field for {model.__tablename__}: {field}")
        return getattr(model, field)

    def _condition(self, model, field: str, op: str, value: Any):
        column = self._column(model, field)
        if isinstance(value, FieldRef):
            value = self._column(model, value.name)
        elif op == 'in':
            value = [coerce_value(column, v) for v in value]
        elif op != 'ilike':
            value = coerce_value(column, value)

        if op == 'eq':
            return column == value
        if op == 'neq':
            return column != value
        if op == 'gt':
            return column > value
        if op == 'gte':
            return column >= value
        if op == 'lt':
            return column < value
        if op == 'lte':
            return column <= value
        if op == 'in':
            return column.in_(value)
        return column.ilike(value)

    def find(self, collection, filters=None, order=None, limit=None):
        model = get_model(collection)
        with self.session_scope() as session:
            query = session.query(model)

            for field, op, value in normalize_filters(filters):
                query = query.filter(self._condition(model, field, op, value))

            for field, ascending in order or ():
                column = self._column(model, field)
                query = query.order_by(column.asc() if ascending else column.desc())

            if limit:
                query = query.limit(limit)

            return [model_to_dict(row) for row in query.all()]

    def insert(self, collection, record):
        model = get_model(collection)
        with self.session_scope() as session:
            instance = model(**coerce_record(model, record))
            if not instance.id:
                instance.id = generate_id()
            session.add(instance)
            session.flush()
            session.refresh(instance)
            return model_to_dict(instance)

    def update(self, collection, record_id, patch, match=None):
        model = get_model(collection)
        values = coerce_record(model, patch)
        with self.session_scope() as session:
            query = session.query(model).filter(model.id == record_id)
            for field, value in (match or {}).items():
                query = query.filter(self._condition(model, field, 'eq', value))

            # Single conditional UPDATE, so a version match is a compare-and-swap
            updated = query.update(values, synchronize_session=False)
            if not updated:
                return None

            instance = session.get(model, record_id)
            return model_to_dict(instance)

    def delete(self, collection, record_id):
        model = get_model(collection)
        with self.session_scope() as session:
            session.query(model).filter(model.id == record_id).delete(synchronize_session=False)

    def current_owner_id(self):
        return self.owner_id
