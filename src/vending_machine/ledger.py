"""Payment ledger that accumulates deposited funds for one machine session.

The ledger keeps a single running balance. Deposits add to it, purchases try
to consume from it, and a refund hands the whole balance back. It is the only
place that decides whether a price can be afforded.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from . import log


MoneyLike = Union[Decimal, int, float, str]

ZERO = Decimal("0")


def to_money(value: MoneyLike) -> Decimal:
    """Normalize a monetary amount into a finite :class:`~decimal.Decimal`.

    Floats are converted through ``str`` so ``1.1`` becomes ``Decimal("1.1")``
    rather than its binary approximation. Strings are stripped before parsing.

    Args:
        value (Decimal | int | float | str): Amount supplied by a caller.

    Returns:
        Decimal: The normalized amount. The sign is preserved; range checks
            belong to the caller.

    Raises:
        ValueError: If ``value`` is a boolean, cannot be parsed, or is not a
            finite number.
    """

    if isinstance(value, bool):
        raise ValueError(f"Invalid monetary amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return amount


class PaymentLedger:
    """Running balance of funds deposited into a machine."""

    def __init__(self) -> None:
        self._balance = ZERO

    def __repr__(self) -> str:
        return f"PaymentLedger(balance={self._balance})"

    def deposit(self, amount: MoneyLike) -> None:
        """Add a strictly positive amount to the balance.

        Amounts less than or equal to zero leave the balance untouched and
        are only reported through the log; callers that need to reject them
        must validate before depositing.

        Raises:
            ValueError: If ``amount`` is not a number at all.
        """

        value = to_money(amount)
        if value <= ZERO:
            log.warning("Ignoring non-positive deposit of %s", value)
            return
        self._balance += value
        log.info("Deposited %s (balance=%s)", value, self._balance)

    def current_balance(self) -> Decimal:
        return self._balance

    def try_consume(self, price: MoneyLike) -> bool:
        """Subtract ``price`` from the balance when it can be afforded.

        Returns:
            bool: ``True`` when the balance covered ``price`` and was reduced,
                ``False`` when funds were insufficient and nothing changed.
        """

        value = to_money(price)
        if value < ZERO:
            raise ValueError(f"Price cannot be negative: {value}")
        if value > self._balance:
            log.debug("Cannot consume %s from balance %s", value, self._balance)
            return False
        self._balance -= value
        return True

    def refund_all(self) -> Decimal:
        """Return the whole balance and reset it to zero."""

        change = self._balance
        self._balance = ZERO
        if change > ZERO:
            log.info("Refunded %s", change)
        return change


__all__ = ["MoneyLike", "PaymentLedger", "to_money"]
