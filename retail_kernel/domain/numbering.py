"""
Document number formats.

Responsibility:
    Pure description of how a human-readable document number is rendered
    from a counter value, and which counter it draws from.  Allocation of
    the counter value itself is done atomically by SequenceService.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - A template containing ``{year}`` draws from one counter per year, so
      ``OC-2025-0042`` and ``OC-2026-0001`` never collide.
    - Templates must contain ``{seq}``.
"""

from __future__ import annotations

from dataclasses import dataclass


# Default formats used by the shop front end.
PURCHASE_ORDER_FORMAT = "OC-{year}-{seq:04d}"
SUPPLIER_INVOICE_FORMAT = "NF-FOR-{year}-{seq:04d}"
SALES_INVOICE_FORMAT = "FAT-{seq:06d}"
SERVICE_ORDER_FORMAT = "OS-{seq:04d}"


@dataclass(frozen=True)
class DocumentNumberFormat:
    """A named counter plus the template that renders its values."""

    counter: str
    template: str

    def __post_init__(self) -> None:
        if "{seq" not in self.template:
            raise ValueError(f"number template {self.template!r} has no {{seq}} field")

    @property
    def yearly(self) -> bool:
        return "{year" in self.template

    def counter_name(self, year: int) -> str:
        """Name of the SequenceCounter row this format draws from."""
        return f"{self.counter}:{year}" if self.yearly else self.counter

    def render(self, seq: int, year: int) -> str:
        return self.template.format(seq=seq, year=year)


DEFAULT_TEMPLATES: dict[str, str] = {
    "purchase_order": PURCHASE_ORDER_FORMAT,
    "supplier_invoice": SUPPLIER_INVOICE_FORMAT,
    "sales_invoice": SALES_INVOICE_FORMAT,
    "service_order": SERVICE_ORDER_FORMAT,
}


def build_formats(templates: dict[str, str] | None = None) -> dict[str, DocumentNumberFormat]:
    """Number formats keyed by counter name, with overrides applied."""
    merged = {**DEFAULT_TEMPLATES, **(templates or {})}
    return {name: DocumentNumberFormat(name, template) for name, template in merged.items()}
