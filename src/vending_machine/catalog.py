"""Catalog entries stocked in a vending machine.

Each :class:`CatalogItem` carries an immutable name, price, and category plus
a mutable stock counter. Callers outside the dispensing controller only ever
see :class:`ItemSnapshot` copies so the live counters cannot be altered from
presentation code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .constants import DEFAULT_CURRENCY_SYMBOL, USAGE_INSTRUCTIONS, ItemCategory
from .ledger import MoneyLike, to_money


class CatalogError(ValueError):
    """Raised when a catalog entry or seed violates a catalog constraint."""


def format_money(amount: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Render ``amount`` with two decimal places, e.g. ``$1.50``."""

    return f"{symbol}{amount:.2f}"


@dataclass(frozen=True)
class ItemSnapshot:
    """Read-only view of a catalog entry at a point in time."""

    name: str
    price: Decimal
    category: ItemCategory
    remaining_stock: int
    usage_instructions: str

    def describe(self, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
        return (
            f"Product: {self.name:<10} | Price: {format_money(self.price, symbol)}"
            f" | In Stock: {self.remaining_stock}"
        )

    def __str__(self) -> str:
        return self.describe()


class CatalogItem:
    """A purchasable item and its remaining stock.

    Args:
        name (str): Display name, also the lookup key (case-insensitive).
        price (Decimal | int | float | str): Non-negative unit price.
        remaining_stock (int): Non-negative initial quantity.
        category (ItemCategory | str): Category value or enum member.

    Raises:
        CatalogError: If any attribute violates its constraint.
    """

    def __init__(
        self,
        name: str,
        price: MoneyLike,
        remaining_stock: int,
        category: ItemCategory | str,
    ) -> None:
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise CatalogError("Item name cannot be empty")
        try:
            price_value = to_money(price)
        except ValueError as exc:
            raise CatalogError(f"Invalid price for '{name}': {price!r}") from exc
        if price_value < 0:
            raise CatalogError(f"Price for '{name}' cannot be negative")
        if isinstance(remaining_stock, bool) or not isinstance(remaining_stock, int) or remaining_stock < 0:
            raise CatalogError(f"Stock for '{name}' must be a non-negative integer")
        try:
            category_value = ItemCategory(category)
        except ValueError as exc:
            raise CatalogError(f"Unknown category for '{name}': {category!r}") from exc

        self._name = name
        self._price = price_value
        self._remaining_stock = remaining_stock
        self._category = category_value

    @property
    def name(self) -> str:
        return self._name

    @property
    def price(self) -> Decimal:
        return self._price

    @property
    def category(self) -> ItemCategory:
        return self._category

    @property
    def remaining_stock(self) -> int:
        return self._remaining_stock

    @property
    def key(self) -> str:
        """Case-folded name used for lookups."""
        return self._name.casefold()

    def is_available(self) -> bool:
        return self._remaining_stock > 0

    def dispense_one(self) -> bool:
        """Remove one unit from stock.

        Returns:
            bool: ``True`` if a unit was dispensed, ``False`` when the item was
                already out of stock (stock is left at zero).
        """

        if self._remaining_stock > 0:
            self._remaining_stock -= 1
            return True
        return False

    def usage_instructions(self) -> str:
        return USAGE_INSTRUCTIONS[self._category]

    def snapshot(self) -> ItemSnapshot:
        return ItemSnapshot(
            name=self._name,
            price=self._price,
            category=self._category,
            remaining_stock=self._remaining_stock,
            usage_instructions=self.usage_instructions(),
        )

    def __repr__(self) -> str:
        return (
            f"CatalogItem(name={self._name!r}, price={self._price}, "
            f"remaining_stock={self._remaining_stock}, category={self._category.name})"
        )

    def __str__(self) -> str:
        return self.snapshot().describe()


__all__ = ["CatalogError", "CatalogItem", "ItemSnapshot", "format_money"]
