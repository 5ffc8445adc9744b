"""
Tests for money, date, currency and validation helpers.
"""
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from shop_ledger.exceptions import ValidationError
from shop_ledger.models import ExpenseCategory
from shop_ledger.utils.currency import format_currency
from shop_ledger.utils.date_utils import day_window, parse_timestamp, period_bounds, subtract_months
from shop_ledger.utils.math_utils import margin_percent, percent_change, round_half_away, round_money, to_decimal
from shop_ledger.utils.validation import ensure_valid, validate_expense, validate_product, validate_sale


class TestMathUtils(unittest.TestCase):
    def test_percent_change(self):
        self.assertEqual(percent_change(120, 100), 20)
        self.assertEqual(percent_change(80, 100), -20)
        self.assertEqual(percent_change(50, 0), 0)
        self.assertEqual(percent_change(0, 0), 0)
        self.assertEqual(percent_change(0, 40), -100)

    def test_percent_change_rounds_half_away_from_zero(self):
        self.assertEqual(percent_change(Decimal('8.2'), 8), 3)
        self.assertEqual(percent_change(Decimal('7.8'), 8), -3)
        self.assertEqual(percent_change(Decimal('1.004'), 1), 0)

    def test_round_half_away(self):
        self.assertEqual(round_half_away(Decimal('2.5')), 3)
        self.assertEqual(round_half_away(Decimal('-2.5')), -3)
        self.assertEqual(round_half_away(Decimal('2.49')), 2)

    def test_round_money(self):
        self.assertEqual(round_money('1.005'), Decimal('1.01'))
        self.assertEqual(round_money(0.1 + 0.2), Decimal('0.30'))

    def test_to_decimal_rejects_non_numbers(self):
        for value in ('abc', None, True, float('nan'), float('inf')):
            with self.assertRaises(ValueError):
                to_decimal(value)

    def test_margin_percent(self):
        self.assertEqual(margin_percent(10, 6), Decimal('40.00'))
        self.assertEqual(margin_percent(10, 12), Decimal('-20.00'))
        self.assertEqual(margin_percent(0, 5), Decimal('0'))


class TestDateUtils(unittest.TestCase):
    def test_parse_timestamp(self):
        expected = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(parse_timestamp('2024-05-10T12:00:00Z'), expected)
        self.assertEqual(parse_timestamp('2024-05-10T13:00:00+01:00'), expected)
        self.assertEqual(parse_timestamp(datetime(2024, 5, 10, 12, 0)), expected)
        self.assertIsNone(parse_timestamp(None))

    def test_day_window(self):
        as_of = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

        start, end = day_window(as_of)
        self.assertEqual(start, datetime(2024, 5, 10, tzinfo=timezone.utc))
        self.assertEqual(end, datetime(2024, 5, 11, tzinfo=timezone.utc))

        start, end = day_window(as_of, days_back=1)
        self.assertEqual(start, datetime(2024, 5, 9, tzinfo=timezone.utc))
        self.assertEqual(end, datetime(2024, 5, 10, tzinfo=timezone.utc))

    def test_day_window_across_month(self):
        start, end = day_window(datetime(2024, 3, 1, 5, 0, tzinfo=timezone.utc), days_back=1)
        self.assertEqual(start, datetime(2024, 2, 29, tzinfo=timezone.utc))
        self.assertEqual(end, datetime(2024, 3, 1, tzinfo=timezone.utc))

    def test_day_window_in_offset_zone(self):
        tz = timezone(timedelta(hours=1))
        start, _ = day_window(datetime(2024, 5, 9, 23, 30, tzinfo=timezone.utc), tz)
        self.assertEqual(start, datetime(2024, 5, 9, 23, 0, tzinfo=timezone.utc))

    def test_subtract_months_clamps_day(self):
        moment = datetime(2024, 3, 31, 9, 0, tzinfo=timezone.utc)
        self.assertEqual(subtract_months(moment, 1), datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc))
        self.assertEqual(subtract_months(datetime(2024, 1, 15), 1), datetime(2023, 12, 15))

    def test_period_bounds(self):
        as_of = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

        self.assertEqual(period_bounds('all', as_of), (None, None))
        self.assertEqual(period_bounds('today', as_of), (datetime(2024, 5, 10, tzinfo=timezone.utc), None))
        self.assertEqual(period_bounds('week', as_of), (datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc), None))
        self.assertEqual(period_bounds('month', as_of), (datetime(2024, 4, 10, 12, 0, tzinfo=timezone.utc), None))
        with self.assertRaises(ValidationError):
            period_bounds('decade', as_of)


@pytest.mark.parametrize("amount,code,expected", [
    (Decimal('1234.5'), 'NGN', '₦1,234.50'),
    (0, 'USD', '$0.00'),
    ('-12.345', 'EUR', '-€12.35'),
    (1000000, 'gbp', '£1,000,000.00'),
    (5, None, '₦5.00'),
])
def test_format_currency(amount, code, expected):
    assert format_currency(amount, code) == expected


def test_format_currency_unknown_code():
    with pytest.raises(ValidationError):
        format_currency(1, 'JPY')


class TestValidation(unittest.TestCase):
    def test_validate_product(self):
        self.assertEqual(validate_product({
            'name': 'Cap', 'cost_price': 1, 'selling_price': 2, 'quantity': 0
        }), {})

        errors = validate_product({'name': 'Cap', 'cost_price': 'x', 'selling_price': 2, 'quantity': 1.5})
        self.assertEqual(set(errors), {'cost_price', 'quantity'})

    def test_validate_product_partial(self):
        self.assertEqual(validate_product({'selling_price': 3}, partial=True), {})
        errors = validate_product({'user_id': 'someone', 'version': 9}, partial=True)
        self.assertEqual(set(errors), {'user_id', 'version'})

    def test_validate_sale(self):
        self.assertEqual(validate_sale(1, 0), {})
        self.assertIn('quantity', validate_sale(0, 5))

    def test_validate_expense(self):
        self.assertEqual(validate_expense('Rent', 10, 'rent'), {})
        errors = validate_expense('', -1, 'party')
        self.assertEqual(set(errors), {'description', 'amount', 'category'})

    def test_ensure_valid(self):
        ensure_valid({}, "Nothing wrong")
        with self.assertRaises(ValidationError) as ctx:
            ensure_valid({'amount': 'amount cannot be negative'}, "Invalid expense")
        self.assertEqual(ctx.exception.message, "Invalid expense: amount: amount cannot be negative")

    def test_expense_category_from_string(self):
        self.assertEqual(ExpenseCategory.from_string(' Utilities '), ExpenseCategory.UTILITIES)
        with self.assertRaises(ValueError):
            ExpenseCategory.from_string('marketing')


if __name__ == '__main__':
    unittest.main()
