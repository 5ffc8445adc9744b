# shop_ledger/db/connection.py
import os
import logging
from typing import Dict, Literal, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from supabase import create_client, Client

from shop_ledger.config import config
from shop_ledger.db.interface import RecordStore, SqlAlchemyStore, SupabaseStore
from shop_ledger.db.memory import MemoryStore
from shop_ledger.exceptions import ConfigError, StoreUnavailableError

logger = logging.getLogger(__name__)

StoreType = Literal["memory", "sqlite", "postgresql", "supabase"]


class StoreConfig:
    """Configuration for record store connections."""

    @staticmethod
    def get_store_type() -> StoreType:
        """Get store type from configuration."""
        return config.store_config['type']

    @staticmethod
    def get_supabase_config() -> Dict[str, str]:
        """Get Supabase connection configuration."""
        # Try environment variables first
        if os.getenv('SUPABASE_URL') and os.getenv('SUPABASE_KEY'):
            return {
                'url': os.getenv('SUPABASE_URL'),
                'key': os.getenv('SUPABASE_KEY')
            }

        # Fall back to config file
        return {
            'url': config.get('SUPABASE', 'url', default=''),
            'key': config.get('SUPABASE', 'key', default='')
        }


class StoreConnection:
    """Builds and holds the configured record store."""

    _instance = None
    _store: Optional[RecordStore] = None

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_store(self) -> RecordStore:
        """Get the record store, connecting on first use."""
        if self._store is None:
            self._store = self._create_store(StoreConfig.get_store_type())
        return self._store

    def set_store(self, store: Optional[RecordStore]) -> None:
        """Replace the record store (None forces a reconnect on next use)."""
        self._store = store

    def _create_store(self, store_type: str) -> RecordStore:
        store_config = config.store_config
        logger.info(f"Connecting to {store_type} record store")

        if store_type == "memory":
            return MemoryStore(owner_id=store_config['owner_id'])
        if store_type in ("sqlite", "postgresql"):
            return self._create_sql_store(store_type, store_config)
        if store_type == "supabase":
            return SupabaseStore(self._create_supabase_client())

        raise ConfigError(f"Unknown store type: {store_type}")

    def _create_sql_store(self, store_type: str, store_config: Dict) -> SqlAlchemyStore:
        """Initialize a SQLAlchemy-backed store."""
        options = {'echo': store_config['echo']}
        if store_type == "postgresql":
            options['pool_size'] = store_config['pool_size']

        try:
            engine = create_engine(config.get_db_url(), **options)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to initialize {store_type} connection: {str(e)}") from e

        return SqlAlchemyStore(engine, owner_id=store_config['owner_id'])

    def _create_supabase_client(self) -> Client:
        """Initialize Supabase client."""
        supabase_config = StoreConfig.get_supabase_config()

        if not supabase_config['url'] or not supabase_config['key']:
            raise ConfigError("Supabase URL and key must be provided")

        return create_client(supabase_config['url'], supabase_config['key'])

# Singleton instance
connection = StoreConnection()

def get_store() -> RecordStore:
    """Get the configured record store."""
    return connection.get_store()
