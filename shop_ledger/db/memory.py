# shop_ledger/db/memory.py
import re
from typing import Any, Dict, Optional

from shop_ledger.db.interface import (
    FieldRef, RecordStore, coerce_record, get_model, normalize_filters
)
from shop_ledger.exceptions import UnsupportedQueryError
from shop_ledger.models import COLLECTIONS, generate_id
from shop_ledger.utils.date_utils import utc_now


def _like_to_regex(pattern: str):
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op == 'eq':
        return actual == expected
    if op == 'neq':
        return actual != expected
    if op == 'in':
        return actual in expected
    if actual is None or expected is None:
        return False
    if op == 'gt':
        return actual > expected
    if op == 'gte':
        return actual >= expected
    if op == 'lt':
        return actual < expected
    if op == 'lte':
        return actual <= expected
    if op == 'ilike':
        return bool(_like_to_regex(expected).fullmatch(str(actual)))
    raise ValueError(f"Unknown operator: {op}")


class MemoryStore(RecordStore):
    """In-process record store.

    Records are kept per collection in insertion order. Values are coerced
    to the model column types on write, so reads look like the SQL store's.
    """

    def __init__(self, owner_id: Optional[str] = None, supports_field_refs: bool = True):
        """Initialize an empty store.

        Args:
            owner_id: Owner identity reported as the signed-in user
            supports_field_refs: Whether column-to-column filters are allowed
        """
        self.owner_id = owner_id
        self.supports_field_refs = supports_field_refs
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}

    def _table(self, collection: str) -> Dict[str, Dict[str, Any]]:
        get_model(collection)
        return self._tables[collection]

    def _matches(self, record: Dict[str, Any], conditions) -> bool:
        for field, op, value in conditions:
            if isinstance(value, FieldRef):
                if not self.supports_field_refs:
                    raise UnsupportedQueryError(
                        f"Memory store configured without column comparisons ({field} vs {value.name})"
                    )
                value = record.get(value.name)
            if not _compare(record.get(field), op, value):
                return False
        return True

    def find(self, collection, filters=None, order=None, limit=None):
        model = get_model(collection)
        conditions = [
            (field, op, value if isinstance(value, FieldRef) or op == 'ilike'
             else self._coerce_filter_value(model, field, op, value))
            for field, op, value in normalize_filters(filters)
        ]
        rows = [dict(record) for record in self._table(collection).values()
                if self._matches(record, conditions)]

        # Stable sorts applied last key first give a multi-key ordering
        for field, ascending in reversed(list(order or ())):
            present = [row for row in rows if row.get(field) is not None]
            missing = [row for row in rows if row.get(field) is None]
            present.sort(key=lambda row: row[field], reverse=not ascending)
            rows = present + missing

        if limit:
            rows = rows[:limit]
        return rows

    @staticmethod
    def _coerce_filter_value(model, field, op, value):
        if op == 'in':
            return [coerce_record(model, {field: v})[field] for v in value]
        return coerce_record(model, {field: value})[field]

    def insert(self, collection, record):
        model = get_model(collection)
        row = coerce_record(model, record)

        for column in model.__table__.columns:
            if column.name in row:
                continue
            if column.default is not None and column.default.is_scalar:
                row[column.name] = column.default.arg
            else:
                row[column.name] = None

        if not row.get('id'):
            row['id'] = generate_id()
        if 'created_at' in row and row['created_at'] is None:
            row['created_at'] = utc_now()

        self._table(collection)[row['id']] = row
        return dict(row)

    def update(self, collection, record_id, patch, match=None):
        model = get_model(collection)
        table = self._table(collection)
        row = table.get(record_id)
        if row is None:
            return None

        for field, value in coerce_record(model, match or {}).items():
            if row.get(field) != value:
                return None

        row.update(coerce_record(model, patch))
        return dict(row)

    def delete(self, collection, record_id):
        self._table(collection).pop(record_id, None)

    def current_owner_id(self):
        return self.owner_id
