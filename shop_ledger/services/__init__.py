# shop_ledger/services/__init__.py
from .inventory_service import InventoryLedger
from .transaction_service import TransactionEngine
from .reporting_service import DashboardStats, StatisticsAggregator, profit_margin

__all__ = [
    'InventoryLedger',
    'TransactionEngine',
    'StatisticsAggregator',
    'DashboardStats',
    'profit_margin'
]
