# shop_ledger/services/inventory_service.py
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from shop_ledger.db.interface import FieldRef, RecordStore, dict_to_model
from shop_ledger.exceptions import (
    ConflictError, InsufficientStockError, UnsupportedQueryError, ValidationError
)
from shop_ledger.models import Product
from shop_ledger.services.base import StoreService
from shop_ledger.utils.date_utils import utc_now
from shop_ledger.utils.math_utils import to_decimal
from shop_ledger.utils.validation import ensure_valid, validate_product

logger = logging.getLogger(__name__)

PRODUCTS = Product.__tablename__


class InventoryLedger(StoreService):
    """Owns product stock levels and the low-stock view."""

    def __init__(self, store: RecordStore, settings: Optional[Dict[str, Any]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the inventory ledger.

        Args:
            store: Record store
            settings: Business rules, defaults to the configured ones
            clock: Callable returning the current aware datetime
        """
        super().__init__(store, settings)
        self.clock = clock or utc_now

    @staticmethod
    def is_low_stock(product) -> bool:
        """Check whether a product (model or record) is at or below its threshold."""
        if isinstance(product, dict):
            quantity, threshold = product.get('quantity'), product.get('low_stock_threshold')
        else:
            quantity, threshold = product.quantity, product.low_stock_threshold
        if quantity is None or threshold is None:
            return False
        return int(quantity) <= int(threshold)

    def create_product(
        self,
        name: str,
        cost_price,
        selling_price,
        quantity: int = 0,
        low_stock_threshold: Optional[int] = None,
        description: Optional[str] = None,
        sku: Optional[str] = None,
        owner_id: Optional[str] = None
    ) -> Product:
        """Add a product to the owner's inventory.

        Args:
            name: Product name
            cost_price: Unit cost price
            selling_price: Default unit selling price
            quantity: Opening stock
            low_stock_threshold: Restock threshold, defaults to the business rule
            description: Optional description
            sku: Optional stock keeping unit code
            owner_id: Owner, defaults to the signed-in user

        Returns:
            Created product
        """
        if low_stock_threshold is None:
            low_stock_threshold = self.settings['default_low_stock_threshold']

        ensure_valid(validate_product({
            'name': name,
            'cost_price': cost_price,
            'selling_price': selling_price,
            'quantity': quantity,
            'low_stock_threshold': low_stock_threshold
        }), "Invalid product")

        owner = self._owner(owner_id)
        record = self.store.insert(PRODUCTS, {
            'user_id': owner,
            'name': name.strip(),
            'description': description or None,
            'sku': sku or None,
            'cost_price': to_decimal(cost_price),
            'selling_price': to_decimal(selling_price),
            'quantity': quantity,
            'low_stock_threshold': low_stock_threshold,
            'version': 1,
            'created_at': self.clock()
        })

        product = dict_to_model(Product, record)
        logger.info(f"Created product {product.id} ({product.name}) with {product.quantity} in stock")
        return product

    def get_product(self, product_id: str, owner_id: Optional[str] = None) -> Product:
        """Get a product owned by the caller.

        Raises:
            NotFoundError if absent or owned by someone else
        """
        return self._get_owned(Product, product_id, self._owner(owner_id), 'Product')

    def list_products(self, owner_id: Optional[str] = None, in_stock_only: bool = False) -> List[Product]:
        """List the owner's products.

        Args:
            owner_id: Owner, defaults to the signed-in user
            in_stock_only: Only products with stock, ordered by name (sale picker);
                otherwise all products, newest first

        Returns:
            List of products
        """
        filters = {'user_id': self._owner(owner_id)}
        if in_stock_only:
            filters['quantity'] = ('gt', 0)
            order = [('name', True)]
        else:
            order = [('created_at', False)]

        records = self.store.find(PRODUCTS, filters, order=order)
        return [dict_to_model(Product, record) for record in records]

    def update_product(self, product_id: str, owner_id: Optional[str] = None, **changes) -> Product:
        """Edit product details.

        Stock quantity is not editable here; it only moves through adjust_stock.
        Past sales keep the profit computed at sale time.

        Args:
            product_id: Product ID
            owner_id: Owner, defaults to the signed-in user
            **changes: name, description, sku, cost_price, selling_price, low_stock_threshold

        Returns:
            Updated product
        """
        if not changes:
            raise ValidationError("No product changes given")
        ensure_valid(validate_product(changes, partial=True), "Invalid product update")

        owner = self._owner(owner_id)
        product = self._get_owned(Product, product_id, owner, 'Product')

        patch = dict(changes)
        for field in ('cost_price', 'selling_price'):
            if field in patch:
                patch[field] = to_decimal(patch[field])
        if 'name' in patch:
            patch['name'] = patch['name'].strip()

        record = self.store.update(PRODUCTS, product.id, patch, match={'user_id': owner})
        if record is None:
            # Deleted between the read and the write
            return self._get_owned(Product, product_id, owner, 'Product')

        logger.info(f"Updated product {product_id}: {', '.join(sorted(changes))}")
        return dict_to_model(Product, record)

    def delete_product(self, product_id: str, owner_id: Optional[str] = None) -> None:
        """Delete a product. Its historical sales are kept."""
        product = self._get_owned(Product, product_id, self._owner(owner_id), 'Product')
        self.store.delete(PRODUCTS, product.id)
        logger.info(f"Deleted product {product_id} ({product.name})")

    def get_available_stock(self, product_id: str, owner_id: Optional[str] = None) -> int:
        """Get the current stock quantity of a product.

        Raises:
            NotFoundError if absent or owned by someone else
        """
        return self.get_product(product_id, owner_id).quantity

    def adjust_stock(self, product_id: str, delta: int, owner_id: Optional[str] = None) -> Product:
        """Apply ``quantity += delta`` to a product.

        The write is conditional on the product version read just before it.
        When another writer got there first the product is re-read and the
        adjustment retried, up to ``stock_update_retries`` extra attempts.

        Args:
            product_id: Product ID
            delta: Signed change in units
            owner_id: Owner, defaults to the signed-in user

        Returns:
            Product after the adjustment

        Raises:
            ValidationError if delta is not an integer
            NotFoundError if the product is absent or not owned
            InsufficientStockError if stock would go negative
            ConflictError if every attempt lost to a concurrent write
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError(f"Stock delta must be a whole number, got {delta!r}",
                                  details={'delta': 'must be a whole number'})

        owner = self._owner(owner_id)
        attempts = 1 + max(0, self.settings['stock_update_retries'])

        for attempt in range(1, attempts + 1):
            product = self._get_owned(Product, product_id, owner, 'Product')
            new_quantity = product.quantity + delta

            if new_quantity < 0:
                raise InsufficientStockError(
                    f"Only {product.quantity} units of {product.name} in stock",
                    details={'product_id': product_id, 'available': product.quantity, 'delta': delta},
                    available=product.quantity,
                    requested=-delta
                )

            record = self.store.update(
                PRODUCTS,
                product.id,
                {'quantity': new_quantity, 'version': product.version + 1},
                match={'version': product.version, 'user_id': owner}
            )
            if record is not None:
                logger.info(f"Stock of product {product_id} moved {product.quantity} -> {new_quantity}")
                return dict_to_model(Product, record)

            logger.warning(
                f"Concurrent update on product {product_id} (attempt {attempt}/{attempts})"
            )

        raise ConflictError(
            f"Stock of product {product_id} kept changing; gave up after {attempts} attempts",
            details={'product_id': product_id, 'delta': delta, 'attempts': attempts}
        )

    def list_low_stock(self, owner_id: Optional[str] = None, limit: Optional[int] = None) -> List[Product]:
        """List products at or below their low-stock threshold.

        The threshold comparison runs in the store when it can express a
        column-to-column filter. Otherwise a window of the lowest-quantity
        products is fetched and filtered here; low-stock products outside
        that window are missed.

        Args:
            owner_id: Owner, defaults to the signed-in user
            limit: Maximum number of products, defaults to ``low_stock_limit``

        Returns:
            Products ordered by ascending quantity
        """
        if limit is None:
            limit = self.settings['low_stock_limit']
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError(f"Limit must be a non-negative whole number, got {limit!r}")
        if limit == 0:
            return []

        owner = self._owner(owner_id)
        order = [('quantity', True), ('name', True)]

        try:
            records = self.store.find(
                PRODUCTS,
                {'user_id': owner, 'quantity': ('lte', FieldRef('low_stock_threshold'))},
                order=order,
                limit=limit
            )
        except UnsupportedQueryError:
            window = max(self.settings['low_stock_candidate_window'], limit)
            logger.warning(
                f"Store cannot compare quantity to threshold; filtering the {window} lowest-stock products"
            )
            candidates = self.store.find(PRODUCTS, {'user_id': owner}, order=order, limit=window)
            records = [record for record in candidates if self.is_low_stock(record)][:limit]

        return [dict_to_model(Product, record) for record in records]
