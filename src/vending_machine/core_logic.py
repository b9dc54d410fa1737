"""Dispensing controller for the vending machine.

This module contains the purchase protocol that ties the catalog and the
payment ledger together. Expected business failures (unknown item, empty
slot, not enough money) are returned as :class:`PurchaseResult` values rather
than raised, so an operator shell can render them and keep going.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from . import data_manager, log
from .catalog import CatalogError, CatalogItem, ItemSnapshot
from .constants import DEFAULT_CATALOG, ItemCategory, PurchaseFailure
from .ledger import MoneyLike, PaymentLedger


SeedEntry = Tuple[str, ItemCategory, Decimal, int]


@dataclass(frozen=True)
class PurchaseResult:
    """Outcome of a single purchase request."""

    succeeded: bool
    reason: str
    dispensed_item: Optional[ItemSnapshot] = None
    failure: Optional[PurchaseFailure] = None

    def __post_init__(self) -> None:
        if self.succeeded:
            if self.dispensed_item is None or self.failure is not None:
                raise ValueError("A successful purchase needs a dispensed item and no failure")
        elif self.failure is None or self.dispensed_item is not None:
            raise ValueError("A declined purchase needs a failure and no dispensed item")

    @classmethod
    def success(cls, item: ItemSnapshot, reason: str) -> "PurchaseResult":
        return cls(succeeded=True, reason=reason, dispensed_item=item)

    @classmethod
    def declined(cls, failure: PurchaseFailure, reason: str) -> "PurchaseResult":
        return cls(succeeded=False, reason=reason, failure=failure)


@dataclass(frozen=True)
class SaleRecord:
    """Journal entry describing a completed sale."""

    sale_id: str
    timestamp: datetime
    item_name: str
    category: ItemCategory
    price: Decimal
    balance_after: Decimal


@dataclass(frozen=True)
class RuntimeContext:
    """Container for the settings and the live machine used by the CLI."""

    settings: data_manager.ConfigSettings
    machine: VendingMachine


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_sale_id(sequence: int, *, prefix: str = "S", when: Optional[datetime] = None) -> str:
    """Generate a sortable sale identifier using UTC timestamps.

    Args:
        sequence (int): Position of the sale in the machine journal, appended
            so that two sales within the same microsecond stay distinct.
        prefix (str): Designator prepended to the identifier.
        when (datetime | None): Timestamp used for the identifier. When
            ``None`` the current UTC time is used.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}-{sequence:04d}``.
    """
    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{sequence:04d}"


def build_catalog(seed: Iterable[Union[SeedEntry, CatalogItem]]) -> List[CatalogItem]:
    """Instantiate catalog entries from seed tuples, rejecting duplicates.

    Args:
        seed (Iterable): ``(name, category, price, quantity)`` tuples or
            ready-made :class:`CatalogItem` objects, in display order.

    Returns:
        list[CatalogItem]: Fresh entries owned by the caller.

    Raises:
        CatalogError: If two entries share a name (ignoring case) or an entry
            is invalid.
    """
    items: List[CatalogItem] = []
    seen: Dict[str, str] = {}
    for entry in seed:
        if isinstance(entry, CatalogItem):
            # Copy so stock is never shared with the caller or another machine.
            item = CatalogItem(entry.name, entry.price, entry.remaining_stock, entry.category)
        else:
            name, category, price, quantity = entry
            item = CatalogItem(name, price, quantity, category)
        if item.key in seen:
            raise CatalogError(f"Duplicate catalog item: {item.name} (already stocked as {seen[item.key]})")
        seen[item.key] = item.name
        items.append(item)
    return items


class VendingMachine:
    """A machine instance owning its catalog and payment ledger.

    Every instance is independent: it is seeded fresh at construction and
    shares no state with other machines. Deposits, purchases, and refunds are
    serialized by one lock per instance so the stock check, the payment, and
    the stock decrement of a purchase are observed as a single step.

    Args:
        ledger (PaymentLedger | None): Ledger to collect payments into. A new
            empty ledger is created when omitted.
        seed (Iterable | None): Catalog seed; defaults to
            :data:`~vending_machine.constants.DEFAULT_CATALOG`.
    """

    def __init__(
        self,
        ledger: Optional[PaymentLedger] = None,
        seed: Optional[Iterable[Union[SeedEntry, CatalogItem]]] = None,
    ) -> None:
        self._ledger = ledger if ledger is not None else PaymentLedger()
        self._items = build_catalog(DEFAULT_CATALOG if seed is None else seed)
        self._by_key = {item.key: item for item in self._items}
        self._total_revenue = Decimal("0")
        self._sales: List[SaleRecord] = []
        self._lock = threading.Lock()
        log.debug("Machine stocked with %d catalog items", len(self._items))

    @property
    def inventory(self) -> Tuple[ItemSnapshot, ...]:
        """Snapshot of every catalog entry in display order."""
        return tuple(item.snapshot() for item in self._items)

    @property
    def total_revenue(self) -> Decimal:
        return self._total_revenue

    @property
    def sales(self) -> Tuple[SaleRecord, ...]:
        return tuple(self._sales)

    def find_item(self, item_name: str) -> Optional[ItemSnapshot]:
        item = self._lookup(item_name)
        return item.snapshot() if item is not None else None

    def current_balance(self) -> Decimal:
        return self._ledger.current_balance()

    def deposit(self, amount: MoneyLike) -> None:
        with self._lock:
            self._ledger.deposit(amount)

    def refund_all(self) -> Decimal:
        with self._lock:
            return self._ledger.refund_all()

    def purchase(self, item_name: str, *, timestamp: Optional[datetime] = None) -> PurchaseResult:
        """Sell one unit of ``item_name`` if it exists, is stocked, and is affordable.

        The checks run in a fixed order and stop at the first failure: name
        lookup (case-insensitive), stock, then funds. A declined purchase
        leaves stock, balance, and revenue exactly as they were.

        Args:
            item_name (str): Free-text item name entered by the operator.
            timestamp (datetime | None): Time recorded in the sales journal;
                defaults to now (UTC).

        Returns:
            PurchaseResult: Success with a snapshot of the dispensed item, or
                a declined result carrying a :class:`PurchaseFailure`.
        """
        with self._lock:
            item = self._lookup(item_name)
            if item is None:
                log.warning("Purchase declined: unknown item '%s'", item_name)
                return PurchaseResult.declined(
                    PurchaseFailure.ITEM_NOT_FOUND,
                    f"Error: Product '{item_name}' not found.",
                )

            if not item.is_available():
                log.warning("Purchase declined: '%s' is out of stock", item.name)
                return PurchaseResult.declined(
                    PurchaseFailure.OUT_OF_STOCK,
                    f"Error: Product '{item_name}' is out of stock.",
                )

            if not self._ledger.try_consume(item.price):
                log.warning(
                    "Purchase declined: insufficient funds for '%s' (price=%s, balance=%s)",
                    item.name,
                    item.price,
                    self._ledger.current_balance(),
                )
                return PurchaseResult.declined(
                    PurchaseFailure.INSUFFICIENT_FUNDS,
                    f"Error: Insufficient funds for '{item_name}'.",
                )

            # Stock was checked above under the same lock.
            item.dispense_one()
            self._total_revenue += item.price
            self._record_sale(item, timestamp)
            log.info(
                "Sold '%s' for %s (remaining=%d, balance=%s)",
                item.name,
                item.price,
                item.remaining_stock,
                self._ledger.current_balance(),
            )
            return PurchaseResult.success(item.snapshot(), f"Thank you for purchasing '{item_name}'.")

    def _lookup(self, item_name: str) -> Optional[CatalogItem]:
        if not isinstance(item_name, str):
            return None
        return self._by_key.get(item_name.strip().casefold())

    def _record_sale(self, item: CatalogItem, timestamp: Optional[datetime]) -> None:
        moment = _resolve_timestamp(timestamp)
        record = SaleRecord(
            sale_id=generate_sale_id(len(self._sales) + 1, when=moment),
            timestamp=moment,
            item_name=item.name,
            category=item.category,
            price=item.price,
            balance_after=self._ledger.current_balance(),
        )
        self._sales.append(record)


def load_runtime_context(config_path: Optional[Path] = None, *, seed: Optional[Sequence[SeedEntry]] = None) -> RuntimeContext:
    """Load settings and stock a fresh machine.

    Args:
        config_path (Path | None): Optional explicit path to ``config.ini``.
            When omitted the data layer searches upward from the working
            directory and falls back to default settings.
        seed (Sequence | None): Optional catalog seed override.

    Returns:
        RuntimeContext: Settings bundled with a newly constructed machine.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        KeyError: When mandatory configuration options are missing.
    """
    settings = data_manager.load_settings(config_path)
    machine = VendingMachine(seed=seed)
    log.info("Loaded runtime context for machine '%s'", settings.machine_name)
    return RuntimeContext(settings=settings, machine=machine)


def export_report(context: RuntimeContext, destination: Optional[Path] = None) -> Optional[Path]:
    """Write the session report for ``context`` if a destination is known.

    Args:
        context (RuntimeContext): Context whose machine should be reported.
        destination (Path | None): Explicit report path; falls back to the
            configured ``ReportFile``.

    Returns:
        Path | None: Resolved path of the written workbook, or ``None`` when
            neither an explicit nor a configured destination exists.
    """
    target = destination if destination is not None else context.settings.report_file
    if target is None:
        log.debug("No report destination configured; skipping export")
        return None
    written = data_manager.export_session_report(context.machine, target, settings=context.settings)
    log.info("Exported session report to '%s'", written)
    return written


__all__ = [
    "PurchaseResult",
    "RuntimeContext",
    "SaleRecord",
    "VendingMachine",
    "build_catalog",
    "export_report",
    "generate_sale_id",
    "load_runtime_context",
]
