# shop_ledger/db/__init__.py
from .interface import (
    FieldRef,
    RecordStore,
    SqlAlchemyStore,
    SupabaseStore,
    dict_to_model,
    model_to_dict
)
from .memory import MemoryStore
from .connection import StoreConnection, connection, get_store


def initialize():
    """Connect to the configured store and create tables where the store allows it."""
    store = get_store()
    if isinstance(store, SqlAlchemyStore):
        store.create_all()
    # Supabase tables are created through SQL migrations, not from here
    return store


__all__ = [
    'FieldRef',
    'RecordStore',
    'MemoryStore',
    'SqlAlchemyStore',
    'SupabaseStore',
    'StoreConnection',
    'connection',
    'get_store',
    'initialize',
    'dict_to_model',
    'model_to_dict'
]
