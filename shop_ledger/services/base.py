# shop_ledger/services/base.py
from typing import Any, Dict, Optional, Type

from shop_ledger.config import config
from shop_ledger.db.interface import RecordStore, dict_to_model
from shop_ledger.exceptions import NotAuthenticatedError, NotFoundError
from shop_ledger.models import Base


class StoreService:
    """Shared plumbing for services that work against a record store."""

    def __init__(self, store: RecordStore, settings: Optional[Dict[str, Any]] = None):
        """Initialize the service.

        Args:
            store: Record store
            settings: Business rules, defaults to the configured ones
        """
        self.store = store
        self._settings = settings

    @property
    def settings(self) -> Dict[str, Any]:
        """Get business rule settings."""
        if self._settings is None:
            self._settings = config.business_rules
        return self._settings

    def _owner(self, owner_id: Optional[str] = None) -> str:
        """Resolve the owner for a call; defaults to the signed-in user."""
        if owner_id:
            return owner_id

        owner_id = self.store.current_owner_id()
        if not owner_id:
            raise NotAuthenticatedError("No signed-in user; sign in to continue")
        return owner_id

    def _get_owned(self, model_class: Type[Base], record_id: str, owner_id: str, label: str):
        """Fetch one record owned by ``owner_id`` or raise NotFoundError."""
        results = self.store.find(
            model_class.__tablename__,
            {'id': record_id, 'user_id': owner_id},
            limit=1
        )
        if not results:
            raise NotFoundError(f"{label} {record_id} not found", details={'id': record_id})
        return dict_to_model(model_class, results[0])
