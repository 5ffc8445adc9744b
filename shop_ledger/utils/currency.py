from typing import Optional

from shop_ledger.exceptions import ValidationError
from shop_ledger.utils.math_utils import Number, round_money

CURRENCIES = {
    'NGN': {'symbol': '₦', 'code': 'NGN', 'name': 'Nigerian Naira'},
    'USD': {'symbol': '$', 'code': 'USD', 'name': 'US Dollar'},
    'EUR': {'symbol': '€', 'code': 'EUR', 'name': 'Euro'},
    'GBP': {'symbol': '£', 'code': 'GBP', 'name': 'British Pound'},
}

DEFAULT_CURRENCY = 'NGN'


def format_currency(amount: Number, currency_code: Optional[str] = None) -> str:
    """Format an amount with the currency symbol, e.g. '₦1,234.50'.

    Args:
        amount: Amount to format
        currency_code: ISO code from CURRENCIES, defaults to DEFAULT_CURRENCY

    Returns:
        Formatted string
    """
    code = (currency_code or DEFAULT_CURRENCY).upper()
    currency = CURRENCIES.get(code)
    if currency is None:
        raise ValidationError(
            f"Unsupported currency: {currency_code}",
            details={'currency': currency_code, 'supported': sorted(CURRENCIES)}
        )

    value = round_money(amount)
    sign = '-' if value < 0 else ''
    return f"{sign}{currency['symbol']}{abs(value):,.2f}"
