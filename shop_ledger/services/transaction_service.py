# shop_ledger/services/transaction_service.py
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from shop_ledger.db.interface import RecordStore, dict_to_model
from shop_ledger.exceptions import InsufficientStockError, LedgerError, PartialCommitError
from shop_ledger.models import Expense, ExpenseCategory, Sale
from shop_ledger.services.base import StoreService
from shop_ledger.services.inventory_service import InventoryLedger
from shop_ledger.utils.date_utils import utc_now
from shop_ledger.utils.math_utils import round_money, to_decimal
from shop_ledger.utils.validation import ensure_valid, validate_expense, validate_sale

logger = logging.getLogger(__name__)

SALES = Sale.__tablename__
EXPENSES = Expense.__tablename__


def _describe(error: Exception) -> str:
    return error.message if isinstance(error, LedgerError) else str(error)


def _cause(error: Exception):
    return error.to_dict() if isinstance(error, LedgerError) else str(error)


class TransactionEngine(StoreService):
    """Compound writes for sales and expenses.

    A sale is two writes against a store without multi-record transactions:
    the sale row, then the stock decrement. The sale row carries a
    ``stock_applied`` flag so a half-finished sale can be completed later
    without decrementing twice.
    """

    def __init__(self, store: RecordStore, ledger: Optional[InventoryLedger] = None,
                 settings: Optional[Dict[str, Any]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the transaction engine.

        Args:
            store: Record store
            ledger: Inventory ledger, built on the same store if omitted
            settings: Business rules, defaults to the configured ones
            clock: Callable returning the current aware datetime
        """
        super().__init__(store, settings)
        self.clock = clock or utc_now
        self.ledger = ledger or InventoryLedger(store, settings=settings, clock=self.clock)

    def record_sale(self, product_id: str, quantity_sold: int, unit_price,
                    owner_id: Optional[str] = None) -> Sale:
        """Record a sale and take the units out of stock.

        Args:
            product_id: Product sold
            quantity_sold: Units sold (> 0)
            unit_price: Price per unit (>= 0)
            owner_id: Owner, defaults to the signed-in user

        Returns:
            Created sale

        Raises:
            ValidationError for a bad quantity or price
            NotFoundError if the product is absent or not owned
            InsufficientStockError if quantity_sold exceeds stock; nothing is written
            PartialCommitError if the sale was saved but the stock step failed
        """
        ensure_valid(validate_sale(quantity_sold, unit_price), "Invalid sale")

        owner = self._owner(owner_id)
        product = self.ledger.get_product(product_id, owner)

        if quantity_sold > product.quantity:
            raise InsufficientStockError(
                f"Only {product.quantity} units of {product.name} available in stock",
                details={'product_id': product_id, 'available': product.quantity,
                         'requested': quantity_sold},
                available=product.quantity,
                requested=quantity_sold
            )

        unit_price = to_decimal(unit_price)
        total_price = round_money(quantity_sold * unit_price)
        # Cost at the moment of sale; later cost edits must not touch this
        profit = round_money(total_price - quantity_sold * to_decimal(product.cost_price))

        # A failed insert propagates as-is and nothing else is attempted
        record = self.store.insert(SALES, {
            'user_id': owner,
            'product_id': product.id,
            'quantity': quantity_sold,
            'unit_price': unit_price,
            'total_price': total_price,
            'profit': profit,
            'sale_date': self.clock(),
            'stock_applied': False
        })
        sale = dict_to_model(Sale, record)
        logger.info(
            f"Recorded sale {sale.id}: {quantity_sold} x {product.name} "
            f"total={total_price} profit={profit}"
        )

        return self._apply_sale_stock(sale, owner)

    def _apply_sale_stock(self, sale: Sale, owner: str) -> Sale:
        """Decrement stock for a saved sale and mark it applied."""
        try:
            self.ledger.adjust_stock(sale.product_id, -sale.quantity, owner)
        except Exception as e:
            logger.error(f"Sale {sale.id} saved but stock not decremented: {e}")
            raise PartialCommitError(
                f"Sale {sale.id} was recorded but stock was not updated: {_describe(e)}",
                details={'sale_id': sale.id, 'product_id': sale.product_id,
                         'pending_delta': -sale.quantity, 'cause': _cause(e)},
                sale=sale,
                pending_delta=-sale.quantity,
                stock_applied=False
            ) from e

        try:
            record = self.store.update(SALES, sale.id, {'stock_applied': True},
                                       match={'user_id': owner})
        except Exception as e:
            logger.error(f"Stock for sale {sale.id} decremented but sale not marked: {e}")
            raise PartialCommitError(
                f"Stock for sale {sale.id} was updated but the sale could not be marked: {_describe(e)}",
                details={'sale_id': sale.id, 'product_id': sale.product_id,
                         'pending_delta': 0, 'cause': _cause(e)},
                sale=sale,
                pending_delta=0,
                stock_applied=True
            ) from e

        if record is not None:
            return dict_to_model(Sale, record)
        sale.stock_applied = True
        return sale

    def reconcile_sale(self, sale_id: str, owner_id: Optional[str] = None) -> Sale:
        """Finish a sale whose stock decrement did not go through.

        Safe to call repeatedly: a sale already marked as applied is returned
        untouched.

        Args:
            sale_id: Sale ID from a PartialCommitError
            owner_id: Owner, defaults to the signed-in user

        Returns:
            Sale with stock applied
        """
        owner = self._owner(owner_id)
        sale = self._get_owned(Sale, sale_id, owner, 'Sale')

        if sale.stock_applied:
            logger.info(f"Sale {sale_id} already reconciled")
            return sale

        logger.info(f"Reconciling stock for sale {sale_id}")
        return self._apply_sale_stock(sale, owner)

    def pending_sales(self, owner_id: Optional[str] = None) -> List[Sale]:
        """List sales whose stock decrement has not been applied, oldest first."""
        records = self.store.find(
            SALES,
            {'user_id': self._owner(owner_id), 'stock_applied': False},
            order=[('sale_date', True)]
        )
        return [dict_to_model(Sale, record) for record in records]

    def record_expense(self, description: str, amount, category: Optional[str] = None,
                       owner_id: Optional[str] = None) -> Expense:
        """Record a business expense.

        Args:
            description: What the money was spent on
            amount: Amount spent (>= 0)
            category: rent, utilities, stock, transport, salaries or other (default)
            owner_id: Owner, defaults to the signed-in user

        Returns:
            Created expense
        """
        if category == '':
            category = None
        ensure_valid(validate_expense(description, amount, category), "Invalid expense")

        owner = self._owner(owner_id)
        category = ExpenseCategory.from_string(category) if category else ExpenseCategory.OTHER

        record = self.store.insert(EXPENSES, {
            'user_id': owner,
            'description': description.strip(),
            'amount': round_money(amount),
            'category': category.value,
            'expense_date': self.clock()
        })

        expense = dict_to_model(Expense, record)
        logger.info(f"Recorded {category.value} expense {expense.id}: {expense.amount}")
        return expense

    def list_expenses(self, owner_id: Optional[str] = None, start: Optional[datetime] = None,
                      end: Optional[datetime] = None) -> List[Expense]:
        """List expenses in [start, end), newest first."""
        date_filter = []
        if start is not None:
            date_filter.append(('gte', start))
        if end is not None:
            date_filter.append(('lt', end))

        filters = {'user_id': self._owner(owner_id)}
        if date_filter:
            filters['expense_date'] = date_filter

        records = self.store.find(EXPENSES, filters, order=[('expense_date', False)])
        return [dict_to_model(Expense, record) for record in records]
