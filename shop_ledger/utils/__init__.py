from .date_utils import utc_now, parse_timestamp, day_window, period_bounds
from .math_utils import to_decimal, percent_change, margin_percent, round_half_away
from .validation import validate_product, validate_sale, validate_expense, ensure_valid
from .currency import CURRENCIES, DEFAULT_CURRENCY, format_currency

__all__ = [
    'utc_now',
    'parse_timestamp',
    'day_window',
    'period_bounds',
    'to_decimal',
    'percent_change',
    'margin_percent',
    'round_half_away',
    'validate_product',
    'validate_sale',
    'validate_expense',
    'ensure_valid',
    'CURRENCIES',
    'DEFAULT_CURRENCY',
    'format_currency'
]
