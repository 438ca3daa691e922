"""
DocumentRef - typed pointer from a stock movement to its source document.

===============================================================================
PURPOSE
===============================================================================

Every movement in the log exists because some business document caused it:
a purchase order receipt, a POS sale, a service order consuming parts, a
stock adjustment.  The movement records that cause as a (document type,
document id) pair.  Passing a free-form ``reference_type`` string around
invites typos ("purchase-order" vs "purchase_order") and dangling links, so
the pair is a value object with an enumerated type.

    PurchaseOrder --(receive)--> StockMovement[receipt]   ref purchase_order:<id>
    SalesInvoice  --(checkout)-> StockMovement[sale]      ref sales_invoice:<id>
    ServiceOrder  --(consume)--> StockMovement[issue]     ref service_order:<id>

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY NOT FOREIGN KEYS TO EVERY DOCUMENT TABLE?
   One movement table serves every document kind.  Polymorphic foreign keys
   are dialect-specific; the enumerated type plus the id is self-describing
   and is validated at construction.

2. WHY str ENUM?
   The enum value is what is stored in ``stock_movements.reference_type`` and
   what appears in logs, so it must be a stable lowercase string.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class DocumentType(str, Enum):
    """Kinds of business documents that can move stock."""

    PURCHASE_ORDER = "purchase_order"
    SALES_INVOICE = "sales_invoice"
    SERVICE_ORDER = "service_order"
    STOCK_ADJUSTMENT = "stock_adjustment"
    STOCK_TRANSFER = "stock_transfer"
    STOCK_COUNT = "stock_count"


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """
    Immutable reference to a business document.

    Format of ``str(ref)``: ``"document_type:uuid"``.
    """

    document_type: DocumentType
    document_id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.document_type, DocumentType):
            raise ValueError(
                f"document_type must be DocumentType, got {type(self.document_type)}"
            )
        if not isinstance(self.document_id, UUID):
            raise ValueError(
                f"document_id must be UUID, got {type(self.document_id)}"
            )

    def __str__(self) -> str:
        return f"{self.document_type.value}:{self.document_id}"

    @classmethod
    def parse(cls, ref_string: str) -> DocumentRef:
        """Parse ``"document_type:uuid"`` back to a DocumentRef."""
        try:
            type_str, id_str = ref_string.split(":", 1)
            return cls(DocumentType(type_str), UUID(id_str))
        except ValueError as e:
            raise ValueError(f"Invalid document ref string: {ref_string}") from e

    @classmethod
    def purchase_order(cls, order_id: UUID) -> DocumentRef:
        return cls(DocumentType.PURCHASE_ORDER, order_id)

    @classmethod
    def sales_invoice(cls, invoice_id: UUID) -> DocumentRef:
        return cls(DocumentType.SALES_INVOICE, invoice_id)

    @classmethod
    def service_order(cls, order_id: UUID) -> DocumentRef:
        return cls(DocumentType.SERVICE_ORDER, order_id)

    @classmethod
    def adjustment(cls, adjustment_id: UUID) -> DocumentRef:
        return cls(DocumentType.STOCK_ADJUSTMENT, adjustment_id)

    @classmethod
    def transfer(cls, transfer_id: UUID) -> DocumentRef:
        return cls(DocumentType.STOCK_TRANSFER, transfer_id)

    @classmethod
    def count(cls, count_id: UUID) -> DocumentRef:
        return cls(DocumentType.STOCK_COUNT, count_id)
