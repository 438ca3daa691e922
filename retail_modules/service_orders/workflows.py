"""
Service Order Workflows.

State machine for repair jobs.  A completed job can be reopened for more
work until it is invoiced.
"""

from retail_kernel.domain.workflow import Transition, Workflow
from retail_kernel.logging_config import get_logger

logger = get_logger("modules.service_orders.workflows")


SERVICE_ORDER_WORKFLOW = Workflow(
    name="service_order",
    description="Service order lifecycle",
    initial_state="open",
    states=(
        "open",
        "in_progress",
        "completed",
        "invoiced",
        "cancelled",
    ),
    transitions=(
        Transition("open", "in_progress", action="start"),
        Transition("in_progress", "completed", action="complete"),
        Transition("completed", "invoiced", action="invoice"),
        Transition("completed", "in_progress", action="reopen"),
        Transition("open", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel"),
    ),
    terminal_states=("invoiced", "cancelled"),
)

logger.info(
    "service_order_workflow_registered",
    extra={
        "workflow_name": SERVICE_ORDER_WORKFLOW.name,
        "state_count": len(SERVICE_ORDER_WORKFLOW.states),
        "transition_count": len(SERVICE_ORDER_WORKFLOW.transitions),
        "initial_state": SERVICE_ORDER_WORKFLOW.initial_state,
    },
)
