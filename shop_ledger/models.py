# shop_ledger/models.py
import enum
import uuid

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Text, Index, CheckConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def generate_id() -> str:
    """Generate a record id in the hosted store's UUID text format."""
    return str(uuid.uuid4())


class ExpenseCategory(enum.Enum):
    """Enum for expense categories.

    Values:
        RENT ('rent'): Shop or office rent
        UTILITIES ('utilities'): Power, water, internet
        STOCK ('stock'): Stock/inventory purchases
        TRANSPORT ('transport'): Transportation
        SALARIES ('salaries'): Staff salaries
        OTHER ('other'): Anything else
    """
    RENT = 'rent'
    UTILITIES = 'utilities'
    STOCK = 'stock'
    TRANSPORT = 'transport'
    SALARIES = 'salaries'
    OTHER = 'other'

    def __str__(self):
        """Return the string value of the enum."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'ExpenseCategory':
        """Create an ExpenseCategory from a string value.

        Args:
            value: Category name, case-insensitive

        Returns:
            ExpenseCategory enum value

        Raises:
            ValueError if the string value is not valid
        """
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            valid = ', '.join(c.value for c in cls)
            raise ValueError(f"Invalid expense category: {value}. Valid values are: {valid}")


class Product(Base):
    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    sku = Column(String(100))

    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)

    # Bumped on every stock write; conditional updates match on it
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        CheckConstraint('cost_price >= 0', name='ck_products_cost_price_non_negative'),
        CheckConstraint('selling_price >= 0', name='ck_products_selling_price_non_negative'),
        Index('ix_products_user_quantity', 'user_id', 'quantity'),
    )

    def __repr__(self):
        return f"<Product {self.name} qty={self.quantity}>"


class Sale(Base):
    __tablename__ = 'sales'

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), nullable=False, index=True)
    # Not a foreign key: deleting a product keeps its sales history
    product_id = Column(String(36), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    # Snapshot at sale time, never recomputed from the product
    profit = Column(Numeric(14, 2), nullable=False)

    sale_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    stock_applied = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_sales_quantity_positive'),
        Index('ix_sales_user_date', 'user_id', 'sale_date'),
    )

    def __repr__(self):
        return f"<Sale {self.id} product={self.product_id} qty={self.quantity}>"


class Expense(Base):
    __tablename__ = 'expenses'

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(20), nullable=False, default=ExpenseCategory.OTHER.value)
    expense_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint('amount >= 0', name='ck_expenses_amount_non_negative'),
        Index('ix_expenses_user_date', 'user_id', 'expense_date'),
    )

    def __repr__(self):
        return f"<Expense {self.category} {self.amount}>"


# Collection name -> model class
COLLECTIONS = {
    Product.__tablename__: Product,
    Sale.__tablename__: Sale,
    Expense.__tablename__: Expense,
}
