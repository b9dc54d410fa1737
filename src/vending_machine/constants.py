"""Enumerations and fixed tables shared across the vending machine modules.

Centralises domain constants so that the catalog, the dispensing controller,
and the operator shell rely on a single source of truth for categories,
failure reasons, and the seed stock loaded into every new machine.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Mapping


DEFAULT_CURRENCY_SYMBOL = "$"
DEFAULT_MACHINE_NAME = "Vending Machine"


class ItemCategory(str, Enum):
    """Enumerate the closed set of item categories sold by the machine."""

    SNACK = "Snack"
    BEVERAGE = "Beverage"
    PERISHABLE_FOOD = "Perishable Food"


class PurchaseFailure(str, Enum):
    """Enumerate the expected reasons a purchase can be declined."""

    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"


class ReportSheet(str, Enum):
    """Enumerate the worksheet names written to a session report."""

    CATALOG = "Catalog"
    SALES = "Sales"
    SUMMARY = "Summary"


USAGE_INSTRUCTIONS: Mapping[ItemCategory, str] = {
    ItemCategory.SNACK: "Just open the wrapper and enjoy!",
    ItemCategory.BEVERAGE: "Open the cap and sip carefully.",
    ItemCategory.PERISHABLE_FOOD: "Please heat in a microwave for 2 minutes.",
}


# (name, category, price, quantity) in display order.
DEFAULT_CATALOG: tuple[tuple[str, ItemCategory, Decimal, int], ...] = (
    ("Soda", ItemCategory.BEVERAGE, Decimal("1.50"), 10),
    ("Chips", ItemCategory.SNACK, Decimal("1.00"), 5),
    ("Candy", ItemCategory.SNACK, Decimal("0.75"), 20),
    ("Sandwich", ItemCategory.PERISHABLE_FOOD, Decimal("3.50"), 7),
)


__all__ = [
    "DEFAULT_CURRENCY_SYMBOL",
    "DEFAULT_MACHINE_NAME",
    "ItemCategory",
    "PurchaseFailure",
    "ReportSheet",
    "USAGE_INSTRUCTIONS",
    "DEFAULT_CATALOG",
]
