"""
Payables Module (``retail_modules.payables``).

Suppliers, the invoices they send, and the payments made against them.
"""

from retail_modules.payables.models import (
    Supplier,
    SupplierInvoice,
    SupplierInvoiceStatus,
    SupplierPayment,
)
from retail_modules.payables.service import PayablesService
from retail_modules.payables.workflows import SUPPLIER_INVOICE_WORKFLOW

__all__ = [
    "PayablesService",
    "Supplier",
    "SupplierInvoice",
    "SupplierInvoiceStatus",
    "SupplierPayment",
    "SUPPLIER_INVOICE_WORKFLOW",
]
