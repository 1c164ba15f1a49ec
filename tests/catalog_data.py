"""Seed catalog shared by the test suites."""
from decimal import Decimal

WIDGET = "sku-widget"     # price 10.00, stock 5
GADGET = "sku-gadget"     # price 3.50, stock 2
LAST_ONE = "sku-last"     # price 99.99, stock 1
RETIRED = "sku-retired"   # inactive

CATALOG = [
    dict(id=WIDGET, name="Widget", price=Decimal("10.00"), stock=5, is_active=True),
    dict(id=GADGET, name="Gadget", price=Decimal("3.50"), stock=2, is_active=True),
    dict(id=LAST_ONE, name="Last one", price=Decimal("99.99"), stock=1, is_active=True),
    dict(id=RETIRED, name="Retired", price=Decimal("1.00"), stock=10, is_active=False),
]
