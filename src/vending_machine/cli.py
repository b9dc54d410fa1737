"""Command-line entry points for the vending machine.

All orchestration in this module is limited to argparse wiring, parsing
operator input, and rendering :class:`~vending_machine.core_logic.PurchaseResult`
values. Keeping the CLI thin means every rule about stock and money lives in
the core and the same machine can be driven by tests or another front-end.
"""

from __future__ import annotations

import argparse
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .catalog import CatalogError, format_money
from .constants import DEFAULT_CURRENCY_SYMBOL
from .ledger import to_money


EXIT_OK = 0
EXIT_PURCHASE_DECLINED = 4

MENU_INSERT_MONEY = "1"
MENU_PURCHASE = "2"
MENU_EXIT = "3"

# Plain decimal notation only: no exponents, digit separators, or special values.
AMOUNT_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

Reader = Callable[[str], str]
Writer = Callable[[str], None]


class InputError(ValueError):
    """Raised when operator input cannot be turned into a valid request."""


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vending-cli",
        description="Operate a Vending Machine session from the terminal.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to searching from ./).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    specs = {
        "catalog": register_catalog_command(subparsers),
        "buy": register_buy_command(subparsers),
        "shell": register_shell_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return build_command_table(specs.values())


def register_catalog_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``catalog``."""
    name = "catalog"
    help_text = "List the items stocked in a fresh machine."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_catalog)


def register_buy_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``buy``."""
    name = "buy"
    help_text = "Deposit money and purchase one or more items in a single session."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--deposit", action="append", default=[], metavar="AMOUNT")
        parser.add_argument("--item", action="append", required=True, metavar="NAME")
        parser.add_argument("--report", type=Path, default=None, help="Write a session report workbook.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_buy)


def register_shell_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``shell``."""
    name = "shell"
    help_text = "Start an interactive operator session."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--report", type=Path, default=None, help="Write a session report workbook on exit.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_shell)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    return core_logic.load_runtime_context(config_path)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_amount(raw: Optional[str]) -> Decimal:
    """Turn operator text into a strictly positive deposit amount.

    Raises:
        InputError: With the message shown to the operator when the text is
            empty, not a number, or not greater than zero.
    """
    text = (raw or "").strip()
    if not text:
        raise InputError("Amount cannot be empty.")
    if not AMOUNT_PATTERN.fullmatch(text):
        raise InputError("Cannot parse amount. Please enter a valid decimal number.")
    try:
        amount = to_money(text)
    except ValueError as exc:
        raise InputError("Cannot parse amount. Please enter a valid decimal number.") from exc
    if amount <= 0:
        raise InputError("Amount cannot be negative or zero.")
    return amount


def render_catalog(machine: core_logic.VendingMachine, symbol: str) -> list[str]:
    """Return the product table lines shown above every menu."""
    lines = ["--------------- Available Products ---------------"]
    lines.extend(item.describe(symbol) for item in machine.inventory)
    lines.append("--------------------------------------------------")
    return lines


def render_result(result: core_logic.PurchaseResult) -> list[str]:
    """Return the lines describing a purchase outcome."""
    lines = [result.reason]
    if result.succeeded and result.dispensed_item is not None:
        lines.append(result.dispensed_item.usage_instructions)
    return lines


def render_balance(machine: core_logic.VendingMachine, symbol: str) -> str:
    return f"Your balance: {format_money(machine.current_balance(), symbol)}"


def run_catalog(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print every catalog entry with its usage instructions."""
    symbol = context.settings.currency_symbol
    for item in context.machine.inventory:
        print(item.describe(symbol))
        print(f"    {item.usage_instructions}")
    return EXIT_OK


def run_buy(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute a scripted deposit-and-purchase session."""
    machine = context.machine
    symbol = context.settings.currency_symbol
    amounts = [parse_amount(raw) for raw in args.deposit]
    for amount in amounts:
        machine.deposit(amount)
    print(render_balance(machine, symbol))

    declined = 0
    for name in args.item:
        result = machine.purchase(name)
        for line in render_result(result):
            print(line)
        if not result.succeeded:
            declined += 1

    change = machine.refund_all()
    print(f"Change returned: {format_money(change, symbol)}")
    return EXIT_PURCHASE_DECLINED if declined else EXIT_OK


def run_shell(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the interactive operator loop on stdin/stdout."""
    interactive_session(context.machine, symbol=context.settings.currency_symbol)
    return EXIT_OK


def interactive_session(
    machine: core_logic.VendingMachine,
    *,
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
    read: Reader = input,
    write: Writer = print,
) -> Decimal:
    """Drive ``machine`` from a menu until the operator chooses to exit.

    Args:
        machine (VendingMachine): Machine to operate.
        symbol (str): Currency symbol used when rendering amounts.
        read (Callable[[str], str]): Prompt function returning one line.
        write (Callable[[str], None]): Output function receiving one line.

    Returns:
        Decimal: Change refunded when the session ends. End of input is
            treated as choosing to exit.
    """

    def prompt(message: str) -> Optional[str]:
        try:
            return read(f"{message}: ").strip()
        except EOFError:
            return None

    while True:
        write("")
        write("==================================================")
        write("      Vending Machine")
        write("==================================================")
        for line in render_catalog(machine, symbol):
            write(line)
        write(render_balance(machine, symbol))
        write("Choose an option:")
        write("  1. Insert Money")
        write("  2. Purchase Product")
        write("  3. Exit")

        choice = prompt("Select Option")
        while choice is not None and choice not in (MENU_INSERT_MONEY, MENU_PURCHASE, MENU_EXIT):
            choice = prompt("Invalid choice. Please try again")

        if choice is None or choice == MENU_EXIT:
            break

        if choice == MENU_INSERT_MONEY:
            raw = prompt("Enter amount to insert (e.g., 1.00)")
            if raw is None:
                break
            try:
                machine.deposit(parse_amount(raw))
            except InputError as error:
                write(str(error))
            continue

        name = prompt("Insert product name")
        if name is None:
            break
        if not name:
            write("Product name cannot be empty.")
            continue
        for line in render_result(machine.purchase(name)):
            write(line)

    change = machine.refund_all()
    write(f"Change returned: {format_money(change, symbol)}")
    return change


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (CatalogError, InputError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_report(context: core_logic.RuntimeContext, destination: Optional[Path] = None) -> Optional[Path]:
    """Write the session report after a command has finished."""
    try:
        return core_logic.export_report(context, destination)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code in (EXIT_OK, EXIT_PURCHASE_DECLINED) and args.command != "catalog":
            persist_report(context, getattr(args, "report", None))
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
