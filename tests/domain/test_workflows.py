"""
Document state machines.

Every module declares its lifecycle as a frozen ``Workflow``; services ask
``next_status`` for the target state and get ``InvalidTransitionError``
for anything undeclared.
"""

import pytest

from retail_kernel.domain.workflow import Transition, Workflow
from retail_kernel.exceptions import InvalidTransitionError
from retail_modules._document_helpers import next_status, payment_status
from retail_modules.payables.workflows import SUPPLIER_INVOICE_WORKFLOW
from retail_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW
from retail_modules.sales.workflows import SALES_INVOICE_WORKFLOW
from retail_modules.service_orders.workflows import SERVICE_ORDER_WORKFLOW

ALL_WORKFLOWS = [
    PURCHASE_ORDER_WORKFLOW,
    SUPPLIER_INVOICE_WORKFLOW,
    SALES_INVOICE_WORKFLOW,
    SERVICE_ORDER_WORKFLOW,
]


class TestWorkflowDefinition:
    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="nowhere",
                states=("a",),
                transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_terminal_states_have_no_outgoing_transitions(self, workflow):
        for state in workflow.terminal_states:
            assert workflow.actions_from(state) == ()

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_every_non_terminal_state_has_an_exit(self, workflow):
        for state in workflow.states:
            if state not in workflow.terminal_states:
                assert workflow.actions_from(state), state


class TestDeclaredTransitions:
    @pytest.mark.parametrize(
        "workflow, from_state, action, to_state",
        [
            (PURCHASE_ORDER_WORKFLOW, "draft", "approve", "approved"),
            (PURCHASE_ORDER_WORKFLOW, "approved", "receive", "partial"),
            (PURCHASE_ORDER_WORKFLOW, "approved", "receive", "received"),
            (PURCHASE_ORDER_WORKFLOW, "partial", "receive", "received"),
            (PURCHASE_ORDER_WORKFLOW, "draft", "cancel", "cancelled"),
            (PURCHASE_ORDER_WORKFLOW, "approved", "cancel", "cancelled"),
            (SUPPLIER_INVOICE_WORKFLOW, "unpaid", "payment", "partial"),
            (SUPPLIER_INVOICE_WORKFLOW, "partial", "payment", "paid"),
            (SUPPLIER_INVOICE_WORKFLOW, "partial", "cancel", "cancelled"),
            (SALES_INVOICE_WORKFLOW, "draft", "confirm", "paid"),
            (SALES_INVOICE_WORKFLOW, "confirmed", "payment", "partial"),
            (SERVICE_ORDER_WORKFLOW, "open", "start", "in_progress"),
            (SERVICE_ORDER_WORKFLOW, "completed", "reopen", "in_progress"),
            (SERVICE_ORDER_WORKFLOW, "completed", "invoice", "invoiced"),
        ],
    )
    def test_allowed(self, workflow, from_state, action, to_state):
        assert workflow.allows(from_state, action, to_state)
        assert next_status(workflow, workflow.name, "id", from_state, action, to_state) == to_state

    @pytest.mark.parametrize(
        "workflow, from_state, action",
        [
            (PURCHASE_ORDER_WORKFLOW, "draft", "receive"),
            (PURCHASE_ORDER_WORKFLOW, "received", "cancel"),
            (PURCHASE_ORDER_WORKFLOW, "partial", "cancel"),
            (PURCHASE_ORDER_WORKFLOW, "cancelled", "approve"),
            (SUPPLIER_INVOICE_WORKFLOW, "paid", "payment"),
            (SUPPLIER_INVOICE_WORKFLOW, "paid", "cancel"),
            (SALES_INVOICE_WORKFLOW, "paid", "payment"),
            (SERVICE_ORDER_WORKFLOW, "open", "complete"),
            (SERVICE_ORDER_WORKFLOW, "invoiced", "reopen"),
            (SERVICE_ORDER_WORKFLOW, "completed", "cancel"),
        ],
    )
    def test_rejected(self, workflow, from_state, action):
        assert not workflow.allows(from_state, action)
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_status(workflow, workflow.name, "doc-1", from_state, action)
        assert exc_info.value.current_status == from_state
        assert exc_info.value.action == action

    def test_receipt_outcomes_are_stock_moving(self):
        receipts = [
            t for t in PURCHASE_ORDER_WORKFLOW.transitions if t.action == "receive"
        ]
        assert receipts
        assert all(t.moves_stock for t in receipts)

    def test_actions_from_keeps_declaration_order(self):
        assert PURCHASE_ORDER_WORKFLOW.actions_from("approved") == ("receive", "cancel")


class TestPaymentStatus:
    @pytest.mark.parametrize(
        "paid, total, expected",
        [
            ("0", "100", "unpaid"),
            ("0.01", "100", "partial"),
            ("99.99", "100", "partial"),
            ("100", "100", "paid"),
            ("150", "100", "paid"),
            ("0", "0", "paid"),
        ],
    )
    def test_derivation(self, paid, total, expected):
        from decimal import Decimal

        status = payment_status(
            Decimal(paid),
            Decimal(total),
            paid_state="paid",
            partial_state="partial",
            unpaid_state="unpaid",
        )
        assert status == expected
