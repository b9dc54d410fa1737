"""Configuration and report I/O for the vending machine.

This module owns every interaction with the filesystem. Business logic
belongs elsewhere.

The public API covers two responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Session reports: writing a machine's catalog, sales journal, and totals to
   an Excel workbook, and reading a sheet back for inspection.

Reports are output only. Nothing here restores machine state from disk; every
machine is stocked fresh from the seed catalog.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.workbook import Workbook

from . import log
from .constants import DEFAULT_CURRENCY_SYMBOL, DEFAULT_MACHINE_NAME, ReportSheet

if TYPE_CHECKING:
    from .core_logic import SaleRecord, VendingMachine
    from .catalog import ItemSnapshot


CONFIG_FILE_NAME = "config.ini"
CATALOG_SHEET = ReportSheet.CATALOG.value
SALES_SHEET = ReportSheet.SALES.value
SUMMARY_SHEET = ReportSheet.SUMMARY.value

REPORT_COLUMNS = {
    CATALOG_SHEET: ["Name", "Category", "Price", "RemainingStock", "UsageInstructions"],
    SALES_SHEET: ["SaleID", "Timestamp", "ItemName", "Category", "Price", "BalanceAfter"],
    SUMMARY_SHEET: ["Metric", "Value"],
}


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    machine_name: str
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    report_file: Optional[Path] = None


def default_settings() -> ConfigSettings:
    """Settings used when no configuration file can be discovered."""

    return ConfigSettings(machine_name=DEFAULT_MACHINE_NAME)


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file for the machine.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser holding the raw configuration data.
            Validation of individual entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[Machine] MachineName`` is required. ``[Machine] CurrencySymbol`` falls
    back to ``$`` and ``[Report] ReportFile`` is optional. A relative report
    path is anchored to ``base_path`` (or the current working directory).

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to resolve relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If the ``Machine`` section or its ``MachineName`` option is
            missing or blank.
    """

    try:
        machine_name = parser.get("Machine", "MachineName").strip()
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc
    if not machine_name:
        raise KeyError("Missing required configuration entry: MachineName is blank")

    currency_symbol = parser.get("Machine", "CurrencySymbol", fallback=DEFAULT_CURRENCY_SYMBOL).strip()
    report_raw = parser.get("Report", "ReportFile", fallback="").strip()

    report_file: Optional[Path] = None
    if report_raw:
        report_file = Path(report_raw).expanduser()
        if not report_file.is_absolute():
            if base_path is None:
                base_path = Path.cwd()
            report_file = (base_path / report_file).resolve()

    return ConfigSettings(
        machine_name=machine_name,
        currency_symbol=currency_symbol or DEFAULT_CURRENCY_SYMBOL,
        report_file=report_file,
    )


def load_settings(config_path: Optional[Path] = None) -> ConfigSettings:
    """Resolve, read, and parse the configuration in one step.

    An explicit ``config_path`` must exist. Without one, a failed upward
    search falls back to :func:`default_settings`.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        KeyError: When mandatory configuration options are missing.
    """

    try:
        located = find_config_file(config_path)
    except FileNotFoundError:
        log.info("No %s found; using default settings", CONFIG_FILE_NAME)
        return default_settings()

    resolved = Path(located).expanduser().resolve()
    parser = read_config(resolved)
    settings = parse_settings(parser, base_path=resolved.parent)
    log.info("Loaded settings from '%s'", resolved)
    return settings


def serialize_item(item: ItemSnapshot) -> list[object]:
    """Arrange an item snapshot in the ``Catalog`` sheet column order."""

    return [
        item.name,
        item.category.value,
        item.price,
        item.remaining_stock,
        item.usage_instructions,
    ]


def serialize_sale(record: SaleRecord) -> list[object]:
    """Arrange a sale record in the ``Sales`` sheet column order.

    Timestamps are written as ISO-8601 strings so the timezone survives the
    round trip through Excel.
    """

    return [
        record.sale_id,
        record.timestamp.isoformat(),
        record.item_name,
        record.category.value,
        record.price,
        record.balance_after,
    ]


def _write_sheet(workbook: Workbook, title: str, rows: Iterable[Sequence[object]]) -> None:
    sheet = workbook.create_sheet(title=title)
    bold_font = Font(bold=True)
    for col_idx, column_name in enumerate(REPORT_COLUMNS[title], 1):
        cell = sheet.cell(row=1, column=col_idx)
        cell.value = column_name
        cell.font = bold_font
    for row in rows:
        sheet.append(list(row))


def build_session_report(machine: VendingMachine, *, settings: Optional[ConfigSettings] = None) -> Workbook:
    """Assemble an in-memory report workbook for ``machine``.

    Args:
        machine (VendingMachine): Machine whose current catalog, sales
            journal, revenue, and balance are reported.
        settings (ConfigSettings | None): Supplies the machine name for the
            summary sheet; defaults to :func:`default_settings`.

    Returns:
        Workbook: Workbook with ``Catalog``, ``Sales``, and ``Summary`` sheets.
    """

    settings = settings or default_settings()
    workbook = openpyxl.Workbook()
    # Remove the default sheet openpyxl generates so we can create ours.
    if "Sheet" in workbook.sheetnames:
        del workbook["Sheet"]

    sales = machine.sales
    _write_sheet(workbook, CATALOG_SHEET, (serialize_item(item) for item in machine.inventory))
    _write_sheet(workbook, SALES_SHEET, (serialize_sale(record) for record in sales))
    _write_sheet(
        workbook,
        SUMMARY_SHEET,
        [
            ("MachineName", settings.machine_name),
            ("TotalRevenue", machine.total_revenue),
            ("SalesCount", len(sales)),
            ("Balance", machine.current_balance()),
        ],
    )
    return workbook


def export_session_report(
    machine: VendingMachine,
    destination: Path,
    *,
    settings: Optional[ConfigSettings] = None,
) -> Path:
    """Write the session report for ``machine`` to ``destination``.

    The destination is expanded and resolved; parent directories are created
    on demand and an existing file is replaced.

    Returns:
        Path: The resolved destination.
    """

    workbook = build_session_report(machine, settings=settings)
    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)
    return dest


def read_report_rows(report_path: Path, sheet_name: str) -> List[tuple]:
    """Return the data rows (header excluded) of one report sheet.

    Raises:
        FileNotFoundError: If ``report_path`` does not exist.
        KeyError: If the workbook has no sheet called ``sheet_name``.
    """

    report_path = Path(report_path).expanduser().resolve()
    if not report_path.exists():
        raise FileNotFoundError(f"Report not found: {report_path}")

    workbook = openpyxl.load_workbook(report_path, read_only=True)
    try:
        sheet = workbook[sheet_name]
        return [
            tuple(raw)
            for raw in sheet.iter_rows(min_row=2, values_only=True)
            # skip fully empty rows
            if any(cell is not None for cell in raw)
        ]
    finally:
        workbook.close()
