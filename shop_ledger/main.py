import argparse
import sys
from datetime import datetime, time

from tabulate import tabulate

from shop_ledger.config import config
from shop_ledger.db import get_store, initialize
from shop_ledger.exceptions import LedgerError, PartialCommitError
from shop_ledger.logging_setup import logger, get_logger, log_exception
from shop_ledger.services import InventoryLedger, StatisticsAggregator, TransactionEngine, profit_margin
from shop_ledger.utils.currency import format_currency
from shop_ledger.utils.date_utils import resolve_timezone

log = get_logger('cli')


def _currency(args):
    return args.currency or config.business_rules['default_currency']


def _report_date(value):
    """Parse a YYYY-MM-DD argument."""
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def _signed(change):
    return f"{change:+d}%"


def init_db(args):
    """Create tables on SQL stores."""
    store = initialize()
    print(f"Store ready: {type(store).__name__}")


def list_products(args):
    """Print the product list."""
    ledger = InventoryLedger(get_store())
    products = ledger.list_products(in_stock_only=args.in_stock)

    if not products:
        print("No products found")
        return

    currency = _currency(args)
    table_data = []
    for product in products:
        table_data.append([
            product.id,
            product.name,
            product.sku or '',
            format_currency(product.cost_price, currency),
            format_currency(product.selling_price, currency),
            f"{profit_margin(product)}%",
            product.quantity,
            'LOW' if ledger.is_low_stock(product) else ''
        ])

    print(tabulate(table_data, headers=['ID', 'Name', 'SKU', 'Cost', 'Price', 'Margin', 'Qty', 'Stock']))
    print(f"\nTotal Products: {len(products)}")


def add_product(args):
    """Add a product."""
    ledger = InventoryLedger(get_store())
    product = ledger.create_product(
        name=args.name,
        cost_price=args.cost,
        selling_price=args.price,
        quantity=args.quantity,
        low_stock_threshold=args.threshold,
        description=args.description,
        sku=args.sku
    )
    print(f"Product added: {product.id} ({product.name})")


def low_stock(args):
    """Print products at or below their restock threshold."""
    ledger = InventoryLedger(get_store())
    products = ledger.list_low_stock(limit=args.limit)

    if not products:
        print("No low-stock products")
        return

    table_data = [
        [product.id, product.name, product.sku or '', product.quantity, product.low_stock_threshold]
        for product in products
    ]
    print(tabulate(table_data, headers=['ID', 'Name', 'SKU', 'Qty', 'Threshold']))


def record_sale(args):
    """Record a sale; the unit price defaults to the product's selling price."""
    engine = TransactionEngine(get_store())
    unit_price = args.price
    if unit_price is None:
        unit_price = engine.ledger.get_product(args.product_id).selling_price

    sale = engine.record_sale(args.product_id, args.quantity, unit_price)
    currency = _currency(args)
    print(f"Sale recorded successfully! Total: {format_currency(sale.total_price, currency)} "
          f"Profit: {format_currency(sale.profit, currency)}")


def record_expense(args):
    """Record an expense."""
    engine = TransactionEngine(get_store())
    expense = engine.record_expense(args.description, args.amount, args.category)
    print(f"Expense recorded successfully! Amount: {format_currency(expense.amount, _currency(args))}")


def reconcile(args):
    """Apply pending stock decrements."""
    engine = TransactionEngine(get_store())
    sale_ids = [args.sale_id] if args.sale_id else [sale.id for sale in engine.pending_sales()]

    if not sale_ids:
        print("Nothing to reconcile")
        return

    for sale_id in sale_ids:
        sale = engine.reconcile_sale(sale_id)
        print(f"Sale {sale.id}: stock applied")


def show_stats(args):
    """Print today's dashboard numbers."""
    tz = args.tz or config.business_rules['timezone']
    as_of = None
    if args.date:
        as_of = datetime.combine(args.date, time(12),
                                 tzinfo=resolve_timezone(tz))

    stats = StatisticsAggregator(get_store()).compute_dashboard_stats(as_of=as_of, tz=tz)
    currency = _currency(args)
    table_data = [
        ['Total Sales', format_currency(stats.total_sales, currency), _signed(stats.sales_change)],
        ['Net Profit', format_currency(stats.net_profit, currency), _signed(stats.profit_change)],
        ['Expenses', format_currency(stats.expenses, currency), _signed(stats.expenses_change)],
    ]
    print(tabulate(table_data, headers=['Metric', 'Today', 'vs Yesterday']))


def sales_history(args):
    """Print the sales history report."""
    report = StatisticsAggregator(get_store()).sales_history(period=args.period, search=args.search)

    if not report['sales']:
        print("No sales found")
        return

    currency = _currency(args)
    table_data = [
        [
            row['sale_date'].strftime('%Y-%m-%d %H:%M'),
            row['product_name'] or '(deleted product)',
            row['quantity'],
            format_currency(row['unit_price'], currency),
            format_currency(row['total_price'], currency),
            format_currency(row['profit'], currency)
        ]
        for row in report['sales']
    ]
    print(tabulate(table_data, headers=['Date', 'Product', 'Qty', 'Unit Price', 'Total', 'Profit']))
    print(f"\nSales: {report['count']}  Total: {format_currency(report['total_sales'], currency)}  "
          f"Profit: {format_currency(report['total_profit'], currency)}")


def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(description='Shop ledger: sales, expenses and inventory')
    parser.add_argument('--currency', type=str, help='Currency code for display (NGN, USD, EUR, GBP)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    init_parser = subparsers.add_parser('init-db', help='Create tables on SQL stores')
    init_parser.set_defaults(func=init_db)

    products_parser = subparsers.add_parser('products', help='List products')
    products_parser.add_argument('--in-stock', action='store_true', help='Only products with stock')
    products_parser.set_defaults(func=list_products)

    add_parser = subparsers.add_parser('add-product', help='Add a product')
    add_parser.add_argument('--name', required=True, help='Product name')
    add_parser.add_argument('--cost', required=True, help='Unit cost price')
    add_parser.add_argument('--price', required=True, help='Unit selling price')
    add_parser.add_argument('--quantity', type=int, default=0, help='Opening stock')
    add_parser.add_argument('--threshold', type=int, help='Low-stock threshold')
    add_parser.add_argument('--sku', help='SKU code')
    add_parser.add_argument('--description', help='Description')
    add_parser.set_defaults(func=add_product)

    low_parser = subparsers.add_parser('low-stock', help='List low-stock products')
    low_parser.add_argument('--limit', type=int, help='Maximum number of products')
    low_parser.set_defaults(func=low_stock)

    sale_parser = subparsers.add_parser('record-sale', help='Record a sale')
    sale_parser.add_argument('product_id', help='Product ID')
    sale_parser.add_argument('quantity', type=int, help='Units sold')
    sale_parser.add_argument('--price', help='Unit price (defaults to the selling price)')
    sale_parser.set_defaults(func=record_sale)

    expense_parser = subparsers.add_parser('record-expense', help='Record an expense')
    expense_parser.add_argument('description', help='What the money was spent on')
    expense_parser.add_argument('amount', help='Amount spent')
    expense_parser.add_argument('--category', help='rent, utilities, stock, transport, salaries or other')
    expense_parser.set_defaults(func=record_expense)

    reconcile_parser = subparsers.add_parser('reconcile', help='Apply pending stock decrements')
    reconcile_parser.add_argument('sale_id', nargs='?', help='Sale ID (all pending sales if omitted)')
    reconcile_parser.set_defaults(func=reconcile)

    stats_parser = subparsers.add_parser('stats', help="Show today's dashboard statistics")
    stats_parser.add_argument('--date', type=_report_date, help='Day to report (YYYY-MM-DD), defaults to today')
    stats_parser.add_argument('--tz', help='Timezone, e.g. Africa/Lagos')
    stats_parser.set_defaults(func=show_stats)

    history_parser = subparsers.add_parser('sales', help='Show sales history')
    history_parser.add_argument('--period', default='all',
                                choices=['all', 'today', 'yesterday', 'week', 'month'])
    history_parser.add_argument('--search', help='Filter by product name')
    history_parser.set_defaults(func=sales_history)

    return parser


def main(argv=None):
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        return 1

    try:
        args.func(args)
    except PartialCommitError as e:
        log_exception('cli', e, "Partial commit")
        print(f"Error: {e.message}")
        print("Run 'reconcile' to finish the stock update.")
        return 3
    except LedgerError as e:
        log.error(f"{args.command} failed: {e}")
        print(f"Error: {e.message}")
        return 2

    logger.app_logger.debug(f"Command {args.command} completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
