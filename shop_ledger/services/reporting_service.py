# shop_ledger/services/reporting_service.py
from dataclasses import dataclass, asdict
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from shop_ledger.db.interface import RecordStore, dict_to_model
from shop_ledger.models import Expense, Product, Sale
from shop_ledger.services.base import StoreService
from shop_ledger.utils.date_utils import day_window, period_bounds, utc_now
from shop_ledger.utils.math_utils import margin_percent, percent_change, sum_decimal

logger = logging.getLogger(__name__)

TimeZone = Union[str, tzinfo, None]


@dataclass(frozen=True)
class DashboardStats:
    """Today's totals and their change against yesterday."""
    total_sales: Decimal
    net_profit: Decimal
    expenses: Decimal
    sales_change: int
    profit_change: int
    expenses_change: int

    def to_dict(self) -> Dict[str, Any]:
        """Render with the dashboard's camelCase keys."""
        return {
            'totalSales': self.total_sales,
            'netProfit': self.net_profit,
            'expenses': self.expenses,
            'salesChange': self.sales_change,
            'profitChange': self.profit_change,
            'expensesChange': self.expenses_change,
        }


def profit_margin(product: Product) -> Decimal:
    """Profit margin of a product as a percentage of its selling price (0 if unpriced)."""
    return margin_percent(product.selling_price or 0, product.cost_price or 0)


class StatisticsAggregator(StoreService):
    """Service for dashboard statistics and sales reports."""

    def __init__(self, store: RecordStore, settings: Optional[Dict[str, Any]] = None):
        """Initialize the statistics aggregator.

        Args:
            store: Record store
            settings: Business rules, defaults to the configured ones
        """
        super().__init__(store, settings)

    def _timezone(self, tz: TimeZone) -> TimeZone:
        return tz if tz is not None else self.settings['timezone']

    def _window_filter(self, window: Tuple[Optional[datetime], Optional[datetime]]) -> List[Tuple[str, datetime]]:
        start, end = window
        conditions = []
        if start is not None:
            conditions.append(('gte', start))
        if end is not None:
            conditions.append(('lt', end))
        return conditions

    def _sales_in(self, owner: str, window, order=None) -> List[Sale]:
        filters = {'user_id': owner}
        conditions = self._window_filter(window)
        if conditions:
            filters['sale_date'] = conditions
        records = self.store.find(Sale.__tablename__, filters, order=order)
        return [dict_to_model(Sale, record) for record in records]

    def _expenses_in(self, owner: str, window) -> List[Expense]:
        filters = {'user_id': owner, 'expense_date': self._window_filter(window)}
        records = self.store.find(Expense.__tablename__, filters)
        return [dict_to_model(Expense, record) for record in records]

    def compute_dashboard_stats(self, owner_id: Optional[str] = None,
                                as_of: Optional[datetime] = None,
                                tz: TimeZone = None) -> DashboardStats:
        """Compute today's sales, profit and expenses against yesterday's.

        Today is [local midnight of as_of, next midnight); yesterday is the
        calendar day before it. A metric whose yesterday value is zero
        reports a 0% change.

        Args:
            owner_id: Owner, defaults to the signed-in user
            as_of: Reference instant, defaults to now
            tz: Timezone defining midnight, defaults to the business rule

        Returns:
            DashboardStats
        """
        owner = self._owner(owner_id)
        as_of = as_of or utc_now()
        tz = self._timezone(tz)

        today = day_window(as_of, tz)
        yesterday = day_window(as_of, tz, days_back=1)

        today_sales = self._sales_in(owner, today)
        yesterday_sales = self._sales_in(owner, yesterday)
        today_expenses = self._expenses_in(owner, today)
        yesterday_expenses = self._expenses_in(owner, yesterday)

        total_sales = sum_decimal(sale.total_price for sale in today_sales)
        net_profit = sum_decimal(sale.profit for sale in today_sales)
        expenses = sum_decimal(expense.amount for expense in today_expenses)

        previous_sales = sum_decimal(sale.total_price for sale in yesterday_sales)
        previous_profit = sum_decimal(sale.profit for sale in yesterday_sales)
        previous_expenses = sum_decimal(expense.amount for expense in yesterday_expenses)

        stats = DashboardStats(
            total_sales=total_sales,
            net_profit=net_profit,
            expenses=expenses,
            sales_change=percent_change(total_sales, previous_sales),
            profit_change=percent_change(net_profit, previous_profit),
            expenses_change=percent_change(expenses, previous_expenses),
        )
        logger.debug(f"Dashboard stats for {owner} as of {as_of.isoformat()}: {asdict(stats)}")
        return stats

    def profit_margin(self, product: Product) -> Decimal:
        """Profit margin of a product as a percentage of its selling price."""
        return profit_margin(product)

    def sales_history(self, period: str = 'all', search: Optional[str] = None,
                      owner_id: Optional[str] = None, as_of: Optional[datetime] = None,
                      tz: TimeZone = None) -> Dict[str, Any]:
        """Generate the sales history report.

        Args:
            period: 'all', 'today', 'yesterday', 'week' (last 7 days) or 'month' (last month)
            search: Case-insensitive product name filter
            owner_id: Owner, defaults to the signed-in user
            as_of: Reference instant, defaults to now
            tz: Timezone defining midnight, defaults to the business rule

        Returns:
            Dictionary with the sale rows (newest first) and their totals
        """
        owner = self._owner(owner_id)
        as_of = as_of or utc_now()
        window = period_bounds(period, as_of, self._timezone(tz))

        sales = self._sales_in(owner, window, order=[('sale_date', False)])

        product_records = self.store.find(Product.__tablename__, {'user_id': owner})
        names = {record['id']: record.get('name') for record in product_records}

        needle = search.strip().lower() if search else None
        rows = []
        for sale in sales:
            product_name = names.get(sale.product_id)
            if needle and (product_name is None or needle not in product_name.lower()):
                continue
            rows.append({
                'id': sale.id,
                'product_id': sale.product_id,
                'product_name': product_name,
                'quantity': sale.quantity,
                'unit_price': sale.unit_price,
                'total_price': sale.total_price,
                'profit': sale.profit,
                'sale_date': sale.sale_date,
            })

        return {
            'period': period,
            'sales': rows,
            'count': len(rows),
            'total_sales': sum_decimal(row['total_price'] for row in rows),
            'total_profit': sum_decimal(row['profit'] for row in rows),
        }
