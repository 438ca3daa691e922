"""
Sales Workflows.

State machine for POS invoices.  Checkout confirms the draft and, in the
same step, lands on ``confirmed``, ``partial`` or ``paid`` according to the
payments taken at the till.
"""

from retail_kernel.domain.workflow import Guard, Transition, Workflow
from retail_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")


STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Every cart line is covered by on-hand stock",
)

FULLY_PAID = Guard(
    name="fully_paid",
    description="Sum of payments is at least the invoice total",
)


SALES_INVOICE_WORKFLOW = Workflow(
    name="sales_invoice",
    description="Point-of-sale invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "confirmed",
        "partial",
        "paid",
    ),
    transitions=(
        Transition("draft", "confirmed", action="confirm", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("draft", "partial", action="confirm", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("draft", "paid", action="confirm", guard=STOCK_AVAILABLE, moves_stock=True),
        Transition("confirmed", "partial", action="payment"),
        Transition("confirmed", "paid", action="payment", guard=FULLY_PAID),
        Transition("partial", "partial", action="payment"),
        Transition("partial", "paid", action="payment", guard=FULLY_PAID),
    ),
    terminal_states=("paid",),
)

logger.info(
    "sales_invoice_workflow_registered",
    extra={
        "workflow_name": SALES_INVOICE_WORKFLOW.name,
        "state_count": len(SALES_INVOICE_WORKFLOW.states),
        "transition_count": len(SALES_INVOICE_WORKFLOW.transitions),
        "initial_state": SALES_INVOICE_WORKFLOW.initial_state,
    },
)
