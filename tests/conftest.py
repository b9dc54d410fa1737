"""Shared pytest fixtures and utilities for vending machine tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from vending_machine import cli, constants, core_logic, data_manager  # noqa: E402
from vending_machine.ledger import PaymentLedger  # noqa: E402

_CONFIG_TEMPLATE = (
    "[Machine]\n"
    "MachineName = {machine_name}\n"
    "CurrencySymbol = {currency_symbol}\n\n"
    "[Report]\n"
    "ReportFile = {report_file}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    report_path: Path
    machine_name: str
    currency_symbol: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that writes config.ini bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        machine_name: str = "Test Machine",
        currency_symbol: str = "$",
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        report_path = bundle_dir / "reports" / "session.xlsx"
        report_entry = "reports/session.xlsx" if make_relative else str(report_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                machine_name=machine_name,
                currency_symbol=currency_symbol,
                report_file=report_entry,
            ),
            encoding="utf-8",
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            report_path=report_path,
            machine_name=machine_name,
            currency_symbol=currency_symbol,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    return core_logic.load_runtime_context(config_file)


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ledger() -> PaymentLedger:
    """Return an empty payment ledger."""

    return PaymentLedger()


@pytest.fixture
def machine(ledger: PaymentLedger) -> core_logic.VendingMachine:
    """Return a machine stocked with the default catalog."""

    return core_logic.VendingMachine(ledger)


@pytest.fixture
def sparse_machine() -> core_logic.VendingMachine:
    """Return a machine whose only item has a single unit left."""

    return core_logic.VendingMachine(
        seed=[("Gum", constants.ItemCategory.SNACK, Decimal("0.50"), 1)],
    )


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide configuration settings pointing at a temporary report file."""

    return data_manager.ConfigSettings(
        machine_name="Test Machine",
        currency_symbol="$",
        report_file=tmp_path / "session.xlsx",
    )


@pytest.fixture
def context(settings: data_manager.ConfigSettings, machine: core_logic.VendingMachine) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and a fresh machine."""

    return core_logic.RuntimeContext(settings=settings, machine=machine)


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="vending-cli", description="Vending CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def scripted_io() -> Callable[[list[str]], tuple[Callable[[str], str], list[str]]]:
    """Build ``read``/``write`` callables that replay operator input."""

    def _build(answers: list[str]) -> tuple[Callable[[str], str], list[str]]:
        pending = list(answers)
        output: list[str] = []

        def read(prompt: str) -> str:
            output.append(prompt)
            if not pending:
                raise EOFError
            return pending.pop(0)

        return read, output

    return _build


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
