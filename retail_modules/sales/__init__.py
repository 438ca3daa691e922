"""
Sales Module (``retail_modules.sales``).

Point-of-sale checkout, customer payments and returns.
"""

from retail_modules.sales.models import (
    CartLine,
    PaymentInput,
    PaymentMethod,
    ReturnLine,
    SalesInvoice,
    SalesInvoiceItem,
    SalesInvoiceStatus,
    SalesPayment,
)
from retail_modules.sales.service import SalesService
from retail_modules.sales.workflows import SALES_INVOICE_WORKFLOW

__all__ = [
    "CartLine",
    "PaymentInput",
    "PaymentMethod",
    "ReturnLine",
    "SalesInvoice",
    "SalesInvoiceItem",
    "SalesInvoiceStatus",
    "SalesPayment",
    "SalesService",
    "SALES_INVOICE_WORKFLOW",
]
