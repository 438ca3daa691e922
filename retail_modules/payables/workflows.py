"""
Payables Workflows.

State machine for supplier invoices.  A payment moves the invoice to
``partial`` or ``paid`` depending on the amount paid so far.
"""

from retail_kernel.domain.workflow import Guard, Transition, Workflow
from retail_kernel.logging_config import get_logger

logger = get_logger("modules.payables.workflows")


FULLY_PAID = Guard(
    name="fully_paid",
    description="Sum of payments is at least the invoice total",
)


SUPPLIER_INVOICE_WORKFLOW = Workflow(
    name="supplier_invoice",
    description="Supplier invoice lifecycle",
    initial_state="unpaid",
    states=(
        "unpaid",
        "partial",
        "paid",
        "cancelled",
    ),
    transitions=(
        Transition("unpaid", "partial", action="payment"),
        Transition("unpaid", "paid", action="payment", guard=FULLY_PAID),
        Transition("partial", "partial", action="payment"),
        Transition("partial", "paid", action="payment", guard=FULLY_PAID),
        Transition("unpaid", "cancelled", action="cancel"),
        Transition("partial", "cancelled", action="cancel"),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "payables_invoice_workflow_registered",
    extra={
        "workflow_name": SUPPLIER_INVOICE_WORKFLOW.name,
        "state_count": len(SUPPLIER_INVOICE_WORKFLOW.states),
        "transition_count": len(SUPPLIER_INVOICE_WORKFLOW.transitions),
        "initial_state": SUPPLIER_INVOICE_WORKFLOW.initial_state,
    },
)
