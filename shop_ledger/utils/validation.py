from typing import Any, Dict, Optional

from shop_ledger.exceptions import ValidationError
from shop_ledger.models import ExpenseCategory
from shop_ledger.utils.math_utils import to_decimal

PRODUCT_EDITABLE_FIELDS = (
    'name', 'description', 'sku', 'cost_price', 'selling_price', 'low_stock_threshold'
)


def _check_money(errors: Dict[str, str], field: str, value: Any, required: bool = True) -> None:
    if value is None:
        if required:
            errors[field] = f'{field} is required'
        return
    try:
        amount = to_decimal(value)
    except ValueError:
        errors[field] = f'{field} must be a number'
        return
    if amount < 0:
        errors[field] = f'{field} cannot be negative'


def _check_count(errors: Dict[str, str], field: str, value: Any, minimum: int = 0) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        errors[field] = f'{field} must be a whole number'
    elif value < minimum:
        errors[field] = f'{field} must be at least {minimum}'


def validate_product(data: Dict[str, Any], partial: bool = False) -> Dict[str, str]:
    """Validate product fields.

    Args:
        data: Product fields to validate
        partial: Only check the fields present (updates)

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not partial or 'name' in data:
        name = data.get('name')
        if not name or not str(name).strip():
            errors['name'] = 'Product name is required'

    for field in ('cost_price', 'selling_price'):
        if not partial or field in data:
            _check_money(errors, field, data.get(field))

    if not partial or 'quantity' in data:
        _check_count(errors, 'quantity', data.get('quantity', 0))

    if 'low_stock_threshold' in data:
        threshold = data['low_stock_threshold']
        # None means "use the default" on create only
        if threshold is not None or partial:
            _check_count(errors, 'low_stock_threshold', threshold)

    if partial:
        unknown = set(data) - set(PRODUCT_EDITABLE_FIELDS)
        for field in sorted(unknown):
            errors[field] = f'{field} cannot be changed'

    return errors


def validate_sale(quantity: Any, unit_price: Any) -> Dict[str, str]:
    """Validate a sale request.

    Args:
        quantity: Units sold
        unit_price: Price per unit

    Returns:
        Dictionary with validation errors
    """
    errors = {}
    _check_count(errors, 'quantity', quantity, minimum=1)
    _check_money(errors, 'unit_price', unit_price)
    return errors


def validate_expense(description: Any, amount: Any, category: Optional[str]) -> Dict[str, str]:
    """Validate an expense.

    Args:
        description: What the money was spent on
        amount: Amount spent
        category: Optional category name

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not description or not str(description).strip():
        errors['description'] = 'Description is required'

    _check_money(errors, 'amount', amount)

    if category is not None:
        try:
            ExpenseCategory.from_string(category)
        except ValueError as e:
            errors['category'] = str(e)

    return errors


def ensure_valid(errors: Dict[str, str], message: str) -> None:
    """Raise a ValidationError carrying ``errors`` if there are any."""
    if errors:
        summary = '; '.join(f"{field}: {error}" for field, error in errors.items())
        raise ValidationError(f"{message}: {summary}", details=errors)
