"""
Tests for the inventory ledger.
"""
import unittest
from decimal import Decimal
from unittest.mock import patch

from shop_ledger.db.memory import MemoryStore
from shop_ledger.exceptions import (
    ConflictError, InsufficientStockError, NotAuthenticatedError, NotFoundError, ValidationError
)
from shop_ledger.services.inventory_service import InventoryLedger
from shop_ledger.services.transaction_service import TransactionEngine

SETTINGS = {
    'default_low_stock_threshold': 5,
    'low_stock_limit': 5,
    'low_stock_candidate_window': 10,
    'stock_update_retries': 2,
    'timezone': 'UTC',
    'default_currency': 'NGN'
}


class TestInventoryLedger(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.store = MemoryStore(owner_id='owner-1')
        self.ledger = InventoryLedger(self.store, settings=dict(SETTINGS))

    def _product(self, name='Sneakers', quantity=10, threshold=5, cost='6.00', price='10.00', owner_id=None):
        return self.ledger.create_product(
            name=name, cost_price=cost, selling_price=price,
            quantity=quantity, low_stock_threshold=threshold, owner_id=owner_id
        )

    def test_create_product_defaults(self):
        """New products get the default threshold, version 1 and decimal prices."""
        product = self.ledger.create_product(name='  Cap ', cost_price=2, selling_price='3.5', quantity=4)

        self.assertEqual(product.name, 'Cap')
        self.assertEqual(product.low_stock_threshold, 5)
        self.assertEqual(product.version, 1)
        self.assertEqual(product.cost_price, Decimal('2'))
        self.assertEqual(product.selling_price, Decimal('3.5'))
        self.assertEqual(product.user_id, 'owner-1')
        self.assertIsNotNone(product.created_at)

    def test_create_product_rejects_bad_fields(self):
        """Negative prices, negative stock and empty names are rejected."""
        with self.assertRaises(ValidationError) as ctx:
            self.ledger.create_product(name='', cost_price=-1, selling_price=5, quantity=-2)

        self.assertIn('name', ctx.exception.details)
        self.assertIn('cost_price', ctx.exception.details)
        self.assertIn('quantity', ctx.exception.details)
        self.assertEqual(self.store.find('products'), [])

    def test_get_available_stock(self):
        product = self._product(quantity=7)
        self.assertEqual(self.ledger.get_available_stock(product.id), 7)

    def test_get_available_stock_not_found(self):
        with self.assertRaises(NotFoundError):
            self.ledger.get_available_stock('missing')

    def test_other_owner_product_is_not_found(self):
        """A product owned by someone else looks absent."""
        product = self._product(owner_id='owner-2')

        with self.assertRaises(NotFoundError):
            self.ledger.get_available_stock(product.id)
        with self.assertRaises(NotFoundError):
            self.ledger.adjust_stock(product.id, -1)

    def test_requires_signed_in_owner(self):
        ledger = InventoryLedger(MemoryStore(owner_id=None), settings=dict(SETTINGS))
        with self.assertRaises(NotAuthenticatedError):
            ledger.list_products()

    def test_adjust_stock_moves_quantity_and_version(self):
        product = self._product(quantity=10)

        updated = self.ledger.adjust_stock(product.id, -4)
        self.assertEqual(updated.quantity, 6)
        self.assertEqual(updated.version, 2)

        updated = self.ledger.adjust_stock(product.id, 3)
        self.assertEqual(updated.quantity, 9)
        self.assertEqual(updated.version, 3)

    def test_adjust_stock_to_exactly_zero(self):
        product = self._product(quantity=3)
        self.assertEqual(self.ledger.adjust_stock(product.id, -3).quantity, 0)

    def test_adjust_stock_insufficient(self):
        """A decrement past zero fails and leaves the product untouched."""
        product = self._product(quantity=2)

        with self.assertRaises(InsufficientStockError) as ctx:
            self.ledger.adjust_stock(product.id, -3)

        self.assertEqual(ctx.exception.available, 2)
        self.assertEqual(ctx.exception.requested, 3)
        stored = self.ledger.get_product(product.id)
        self.assertEqual(stored.quantity, 2)
        self.assertEqual(stored.version, 1)

    def test_adjust_stock_rejects_non_integer_delta(self):
        product = self._product()
        for delta in (1.5, '2', True):
            with self.assertRaises(ValidationError):
                self.ledger.adjust_stock(product.id, delta)

    def test_adjust_stock_retries_after_concurrent_write(self):
        """A lost compare-and-swap is retried against the fresh row."""
        product = self._product(quantity=10)
        real_update = self.store.update
        calls = []

        def racing_update(collection, record_id, patch, match=None):
            calls.append(match)
            if len(calls) == 1:
                # Another tab sells 4 units between our read and our write
                real_update(collection, record_id, {'quantity': 6, 'version': 2})
            return real_update(collection, record_id, patch, match)

        with patch.object(self.store, 'update', side_effect=racing_update):
            updated = self.ledger.adjust_stock(product.id, -5)

        self.assertEqual(updated.quantity, 1)
        self.assertEqual(updated.version, 3)
        self.assertEqual(len(calls), 2)
        self.assertEqual(calls[1]['version'], 2)

    def test_adjust_stock_retry_sees_insufficient_stock(self):
        """After losing the race the re-read can reveal there is no longer enough stock."""
        product = self._product(quantity=5)
        real_update = self.store.update

        def racing_update(collection, record_id, patch, match=None):
            real_update(collection, record_id, {'quantity': 1, 'version': 2})
            return real_update(collection, record_id, patch, match)

        with patch.object(self.store, 'update', side_effect=racing_update):
            with self.assertRaises(InsufficientStockError):
                self.ledger.adjust_stock(product.id, -3)

        self.assertEqual(self.ledger.get_available_stock(product.id), 1)

    def test_adjust_stock_conflict_after_bounded_retries(self):
        product = self._product(quantity=10)

        with patch.object(self.store, 'update', return_value=None) as mock_update:
            with self.assertRaises(ConflictError) as ctx:
                self.ledger.adjust_stock(product.id, -1)

        # One attempt plus stock_update_retries
        self.assertEqual(mock_update.call_count, 3)
        self.assertEqual(ctx.exception.details['attempts'], 3)
        self.assertEqual(self.ledger.get_available_stock(product.id), 10)

    def test_list_low_stock_filters_orders_and_limits(self):
        self._product(name='A', quantity=3, threshold=5)
        self._product(name='B', quantity=20, threshold=5)
        self._product(name='C', quantity=0, threshold=2)
        self._product(name='D', quantity=5, threshold=5)
        self._product(name='E', quantity=6, threshold=5)
        self._product(name='F', quantity=1, threshold=1)

        low = self.ledger.list_low_stock()
        self.assertEqual([p.name for p in low], ['C', 'F', 'A', 'D'])
        self.assertTrue(all(p.quantity <= p.low_stock_threshold for p in low))

        self.assertEqual([p.name for p in self.ledger.list_low_stock(limit=2)], ['C', 'F'])
        self.assertEqual(self.ledger.list_low_stock(limit=0), [])

    def test_list_low_stock_is_owner_scoped(self):
        self._product(name='Mine', quantity=1)
        self._product(name='Theirs', quantity=0, owner_id='owner-2')

        self.assertEqual([p.name for p in self.ledger.list_low_stock()], ['Mine'])

    def test_list_low_stock_rejects_negative_limit(self):
        with self.assertRaises(ValidationError):
            self.ledger.list_low_stock(limit=-1)

    def test_list_low_stock_is_idempotent(self):
        for i in range(4):
            self._product(name=f'P{i}', quantity=i, threshold=2)

        first = [(p.id, p.quantity) for p in self.ledger.list_low_stock()]
        second = [(p.id, p.quantity) for p in self.ledger.list_low_stock()]
        self.assertEqual(first, second)

    def test_list_low_stock_fallback_window(self):
        """Without column comparison the ledger filters a candidate window in memory."""
        store = MemoryStore(owner_id='owner-1', supports_field_refs=False)
        settings = dict(SETTINGS, low_stock_candidate_window=3)
        ledger = InventoryLedger(store, settings=settings)

        # Three low-quantity products with tiny thresholds fill the window
        for name in ('W1', 'W2', 'W3'):
            ledger.create_product(name=name, cost_price=1, selling_price=2, quantity=1, low_stock_threshold=0)
        ledger.create_product(name='Low', cost_price=1, selling_price=2, quantity=2, low_stock_threshold=5)
        ledger.create_product(name='AlsoLow', cost_price=1, selling_price=2, quantity=0, low_stock_threshold=0)

        with self.assertLogs('shop_ledger.services.inventory_service', level='WARNING'):
            low = ledger.list_low_stock(limit=3)

        # 'Low' sits outside the 3-row window and is missed
        self.assertEqual([p.name for p in low], ['AlsoLow'])

    def test_list_products_orders(self):
        self._product(name='Zed', quantity=0)
        self._product(name='Alpha', quantity=3)
        self._product(name='Mid', quantity=1)

        in_stock = self.ledger.list_products(in_stock_only=True)
        self.assertEqual([p.name for p in in_stock], ['Alpha', 'Mid'])
        self.assertEqual(len(self.ledger.list_products()), 3)

    def test_update_product_prices(self):
        product = self._product(cost='6.00')

        updated = self.ledger.update_product(product.id, cost_price='7.25', name='Runner')

        self.assertEqual(updated.cost_price, Decimal('7.25'))
        self.assertEqual(updated.name, 'Runner')
        self.assertEqual(updated.quantity, product.quantity)

    def test_update_product_cannot_touch_quantity(self):
        product = self._product()
        with self.assertRaises(ValidationError) as ctx:
            self.ledger.update_product(product.id, quantity=100)
        self.assertIn('quantity', ctx.exception.details)

    def test_update_product_rejects_null_threshold(self):
        product = self._product(quantity=2, threshold=5)

        with self.assertRaises(ValidationError) as ctx:
            self.ledger.update_product(product.id, low_stock_threshold=None)

        self.assertIn('low_stock_threshold', ctx.exception.details)
        self.assertEqual(self.ledger.get_product(product.id).low_stock_threshold, 5)
        self.assertEqual([p.id for p in self.ledger.list_low_stock()], [product.id])

    def test_create_product_null_threshold_uses_default(self):
        product = self.ledger.create_product(name='Cap', cost_price=1, selling_price=2,
                                             low_stock_threshold=None)
        self.assertEqual(product.low_stock_threshold, 5)

    def test_update_product_requires_changes(self):
        product = self._product()
        with self.assertRaises(ValidationError):
            self.ledger.update_product(product.id)

    def test_delete_product_keeps_sales(self):
        product = self._product(quantity=5)
        engine = TransactionEngine(self.store, ledger=self.ledger, settings=dict(SETTINGS))
        engine.record_sale(product.id, 2, '10')

        self.ledger.delete_product(product.id)

        with self.assertRaises(NotFoundError):
            self.ledger.get_product(product.id)
        self.assertEqual(len(self.store.find('sales', {'product_id': product.id})), 1)

    def test_is_low_stock(self):
        self.assertTrue(InventoryLedger.is_low_stock({'quantity': 5, 'low_stock_threshold': 5}))
        self.assertFalse(InventoryLedger.is_low_stock({'quantity': 6, 'low_stock_threshold': 5}))
        self.assertFalse(InventoryLedger.is_low_stock({'quantity': None, 'low_stock_threshold': 5}))


if __name__ == '__main__':
    unittest.main()
