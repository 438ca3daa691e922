"""
Typed Exception Hierarchy for the Retail Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A sale that fails because the shelf is empty and a sale that fails because
another terminal touched the same ledger row at the same instant need very
different handling.  The first is a business answer ("not enough stock");
the second is transient and simply worth another attempt.  Callers must be
able to tell them apart without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a RETRYABLE flag (transient vs permanent)
  4. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        sales.checkout(location_id, cart, payments)
    except InsufficientStockError as e:
        show_message(f"Only {e.available} left of {e.product_id}")
    except ConcurrencyError:
        ...  # retryable -- see services.retry.call_with_retry

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RetailKernelError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |   +-- StockItemNotFoundError
    |   +-- NoDefaultLocationError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- InvalidTransitionError
    |   +-- DocumentNotEditableError
    |   +-- EmptyDocumentError
    |   +-- PurchaseOrderHasReceiptsError
    |   +-- ConsumptionShortageError
    |   +-- ReturnExceedsSaleError
    |   +-- InvalidDiscountError
    |
    +-- PaymentError
    |   +-- InvalidPaymentError
    |   +-- InvoiceCancelledError
    |   +-- InvoiceAlreadyPaidError
    |
    +-- ConcurrencyError              (retryable)
    |   +-- OptimisticLockError       (retryable)
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------
Stock        | INSUFFICIENT_STOCK            | Delta would drive on-hand below 0
             | INVALID_QUANTITY              | Zero/negative where positive needed
             | STOCK_ITEM_NOT_FOUND          | Ledger row required but absent
             | NO_DEFAULT_LOCATION           | No active default location
-------------|-------------------------------|----------------------------------
Document     | DOCUMENT_NOT_FOUND            | Order / invoice id unknown
             | INVALID_TRANSITION            | Action illegal in current status
             | DOCUMENT_NOT_EDITABLE         | Edit outside the draft status
             | EMPTY_DOCUMENT                | Document without lines
             | PURCHASE_ORDER_HAS_RECEIPTS   | Cancel after goods were received
             | CONSUMPTION_SHORTAGE          | Service parts batch short on stock
             | RETURN_EXCEEDS_SALE           | Returning more than was sold
-------------|-------------------------------|----------------------------------
Payment      | INVALID_PAYMENT               | Amount is zero or negative
             | INVOICE_CANCELLED             | Payment against cancelled invoice
             | INVOICE_ALREADY_PAID          | Payment against settled invoice
-------------|-------------------------------|----------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Ledger row changed underneath us
-------------|-------------------------------|----------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Update/delete of append-only row
-------------|-------------------------------|----------------------------------
Config       | CONFIGURATION_ERROR           | Invalid configuration value
"""

from decimal import Decimal


class RetailKernelError(Exception):
    """
    Base exception for all retail kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification and a ``retryable`` flag that separates transient
    failures from permanent ones.
    """

    code: str = "RETAIL_KERNEL_ERROR"
    retryable: bool = False


# Stock-related exceptions


class StockError(RetailKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Applying the delta would leave less than zero on hand (or available)."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        location_id: str,
        available: int,
        requested: int,
    ):
        self.product_id = product_id
        self.location_id = location_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} at {location_id}: "
            f"available {available}, requested {requested}"
        )


class InvalidQuantityError(StockError):
    """Quantity is zero or has the wrong sign for the operation."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class StockItemNotFoundError(StockError):
    """No ledger row exists for the given stock key."""

    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, stock_key: str):
        self.stock_key = stock_key
        super().__init__(f"Stock item not found: {stock_key}")


class NoDefaultLocationError(StockError):
    """No active location is flagged as default."""

    code: str = "NO_DEFAULT_LOCATION"

    def __init__(self):
        super().__init__("No active default stock location is configured")


# Document-related exceptions


class DocumentError(RetailKernelError):
    """Base exception for business document errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} not found: {document_id}")


class InvalidTransitionError(DocumentError):
    """The requested action is not allowed from the document's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        current_status: str,
        action: str,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {document_type} {document_id} "
            f"in status '{current_status}'"
        )


class DocumentNotEditableError(DocumentError):
    """Only draft documents may have their lines replaced."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, document_type: str, document_id: str, status: str):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"{document_type} {document_id} is not editable in status '{status}'"
        )


class EmptyDocumentError(DocumentError):
    """A document was submitted without any lines."""

    code: str = "EMPTY_DOCUMENT"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"{document_type} must have at least one line")


class PurchaseOrderHasReceiptsError(DocumentError):
    """A purchase order with received goods cannot be cancelled."""

    code: str = "PURCHASE_ORDER_HAS_RECEIPTS"

    def __init__(self, order_id: str, received_quantity: int):
        self.order_id = order_id
        self.received_quantity = received_quantity
        super().__init__(
            f"Cannot cancel purchase order {order_id} with received items "
            f"({received_quantity} units received)"
        )


class ConsumptionShortageError(DocumentError):
    """
    A service-order parts batch has at least one item short on stock.

    The whole batch is rejected; ``shortages`` lists every short item as
    ``(name, available, required)``.
    """

    code: str = "CONSUMPTION_SHORTAGE"

    def __init__(self, order_id: str, shortages: list[tuple[str, int, int]]):
        self.order_id = order_id
        self.shortages = shortages
        details = "; ".join(
            f"Insufficient stock for {name}. Available: {available}, "
            f"Required: {required}"
            for name, available, required in shortages
        )
        super().__init__(details)


class ReturnExceedsSaleError(DocumentError):
    """Returned quantity exceeds what was sold and not yet returned."""

    code: str = "RETURN_EXCEEDS_SALE"

    def __init__(self, invoice_id: str, item_id: str, returnable: int, requested: int):
        self.invoice_id = invoice_id
        self.item_id = item_id
        self.returnable = returnable
        self.requested = requested
        super().__init__(
            f"Cannot return {requested} of item {item_id} on invoice "
            f"{invoice_id}: only {returnable} returnable"
        )


class InvalidDiscountError(DocumentError):
    """A discount on a document is negative."""

    code: str = "INVALID_DISCOUNT"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Discount must not be negative, got {amount}")


# Payment-related exceptions


class PaymentError(RetailKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentError(PaymentError):
    """Payment amount is zero or negative."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Payment amount must be positive, got {amount}")


class InvoiceCancelledError(PaymentError):
    """Payments cannot be registered against a cancelled invoice."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is cancelled")


class InvoiceAlreadyPaidError(PaymentError):
    """The invoice is already fully settled."""

    code: str = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already paid")


# Concurrency-related exceptions


class ConcurrencyError(RetailKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(RetailKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Stock movements, payments and service-order log entries are
    append-only once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(RetailKernelError):
    """Invalid configuration value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
