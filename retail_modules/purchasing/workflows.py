"""
Purchasing Workflows.

State machine for purchase orders.  Receiving may leave an order
``partial`` or ``received``; the service picks the target from the
received quantities and validates it here.
"""

from retail_kernel.domain.workflow import Guard, Transition, Workflow
from retail_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NOTHING_RECEIVED = Guard(
    name="nothing_received",
    description="No order item has a received quantity",
)

ALL_LINES_RECEIVED = Guard(
    name="all_lines_received",
    description="Every order item is fully received",
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "approved",
        "partial",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "approved", action="approve"),
        Transition("approved", "partial", action="receive", moves_stock=True),
        Transition("approved", "received", action="receive", guard=ALL_LINES_RECEIVED, moves_stock=True),
        Transition("partial", "partial", action="receive", moves_stock=True),
        Transition("partial", "received", action="receive", guard=ALL_LINES_RECEIVED, moves_stock=True),
        Transition("draft", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
        Transition("approved", "cancelled", action="cancel", guard=NOTHING_RECEIVED),
    ),
    terminal_states=("received", "cancelled"),
)

logger.info(
    "purchasing_po_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
