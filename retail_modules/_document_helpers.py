"""
Shared helpers for document workflows (``retail_modules._document_helpers``).

Responsibility
--------------
Small pieces every document service needs: line and header amount
arithmetic, the workflow lookup that turns an action into the next status
(or an ``InvalidTransitionError``), payment status derivation, wiring of
the kernel ledger services from a ``RetailConfig``, and the decorator that
tags log records with the document being worked on.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``retail_kernel`` and
``retail_config`` only; never from a sibling module package.

Invariants enforced
-------------------
* Amounts are Decimal and rounded half-up to cents.
* line total = qty * price - discount + tax, where
  discount = qty * price * discount% and tax = (qty * price - discount) * tax%.
* A status change is legal only if the module's Workflow declares it.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from retail_config import RetailConfig
from retail_kernel.db.types import round_money, to_decimal
from retail_kernel.domain.clock import Clock
from retail_kernel.domain.numbering import DocumentNumberFormat
from retail_kernel.domain.workflow import Workflow
from retail_kernel.exceptions import InvalidTransitionError
from retail_kernel.logging_config import LogContext
from retail_kernel.services.movement_log import MovementLog
from retail_kernel.services.sequence_service import SequenceService
from retail_kernel.services.stock_ledger_service import StockLedgerService

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    """Monetary breakdown of one document line or a whole document."""

    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO

    def __add__(self, other: LineAmounts) -> LineAmounts:
        return LineAmounts(
            subtotal=self.subtotal + other.subtotal,
            discount_amount=self.discount_amount + other.discount_amount,
            tax_amount=self.tax_amount + other.tax_amount,
            total=self.total + other.total,
        )


def line_amounts(
    quantity: int,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    tax_rate: Decimal = ZERO,
) -> LineAmounts:
    """
    Amounts of one line.

    >>> line_amounts(2, Decimal("10.00"), Decimal("10"), Decimal("5")).total
    Decimal('18.90')
    """
    gross = to_decimal(unit_price) * quantity
    discount = round_money(gross * to_decimal(discount_percent) / HUNDRED)
    subtotal = round_money(gross)
    tax = round_money((subtotal - discount) * to_decimal(tax_rate) / HUNDRED)
    return LineAmounts(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total=subtotal - discount + tax,
    )


def sum_amounts(lines: Iterable[LineAmounts]) -> LineAmounts:
    total = LineAmounts()
    for line in lines:
        total = total + line
    return total


def next_status(
    workflow: Workflow,
    document_type: str,
    document_id,
    current_status: str,
    action: str,
    to_state: str | None = None,
) -> str:
    """Status after ``action``; raises InvalidTransitionError if undeclared."""
    transition = workflow.find(current_status, action, to_state)
    if transition is None:
        raise InvalidTransitionError(
            document_type=document_type,
            document_id=str(document_id),
            current_status=current_status,
            action=action,
        )
    return transition.to_state


def payment_status(
    paid: Decimal,
    total: Decimal,
    *,
    paid_state: str,
    partial_state: str,
    unpaid_state: str,
) -> str:
    """``paid`` once paid >= total, ``partial`` once anything is paid."""
    if paid >= total:
        return paid_state
    if paid > ZERO:
        return partial_state
    return unpaid_state


def resolve_config(config: RetailConfig | None) -> RetailConfig:
    return config if config is not None else RetailConfig()


def build_stock_ledger(session, clock: Clock, config: RetailConfig) -> StockLedgerService:
    """Kernel ledger service configured from the inventory settings."""
    sequences = SequenceService(session, clock=clock)
    return StockLedgerService(
        session,
        movement_log=MovementLog(session, sequences=sequences),
        clock=clock,
        allow_negative_stock=config.inventory.allow_negative_stock,
        cost_decimal_places=config.inventory.cost_decimal_places,
    )


def number_format(config: RetailConfig, counter: str) -> DocumentNumberFormat:
    return config.numbering.format_for(counter)


def logs_document(document_type: str):
    """
    Bind ``actor_id`` and ``document`` into the log context of a service call.

    The decorated method takes the document id as its first positional
    argument and ``actor_id`` as a keyword.
    """

    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, document_id, *args, **kwargs):
            with LogContext.bind(
                actor_id=kwargs.get("actor_id"),
                document=f"{document_type}:{document_id}",
            ):
                return method(self, document_id, *args, **kwargs)

        return wrapper

    return decorator
