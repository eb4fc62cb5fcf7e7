"""
Tests for the execution state machine.
"""
import pytest

from services.errors import InvalidTransition
from services.transaction import ExecutionState, Phase


@pytest.mark.unit
class TestExecutionState:
    """Tests for allowed and forbidden transitions."""

    def test_two_approvals_then_action(self):
        state = ExecutionState("plan-1", approval_total=2)
        state.transition(Phase.AWAITING_APPROVAL, approval_index=0)
        state.transition(Phase.APPROVING, approval_index=0)
        state.transition(Phase.AWAITING_APPROVAL, approval_index=1)
        state.transition(Phase.APPROVING, approval_index=1)
        state.transition(Phase.ACTION_PENDING)
        state.transition(Phase.CONFIRMED)

        assert state.is_terminal
        assert state.history == [
            "Idle",
            "AwaitingApproval(1 of 2)",
            "Approving(1 of 2)",
            "AwaitingApproval(2 of 2)",
            "Approving(2 of 2)",
            "ActionPending",
            "Confirmed",
        ]

    def test_no_approvals_goes_straight_to_action(self):
        state = ExecutionState("plan-1", approval_total=0)
        state.transition(Phase.ACTION_PENDING)
        assert state.step == "action"

    def test_action_cannot_skip_pending_approvals(self):
        state = ExecutionState("plan-1", approval_total=2)
        state.transition(Phase.AWAITING_APPROVAL)
        state.transition(Phase.APPROVING)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.ACTION_PENDING)

    def test_approvals_are_strictly_sequential(self):
        state = ExecutionState("plan-1", approval_total=2)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.AWAITING_APPROVAL, approval_index=1)
        state.transition(Phase.AWAITING_APPROVAL, approval_index=0)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.APPROVING, approval_index=1)

    def test_failed_records_reason(self):
        state = ExecutionState("plan-1", approval_total=0)
        state.transition(Phase.ACTION_PENDING)
        state.transition(Phase.FAILED, reason="expired")
        assert state.label == "Failed(expired)"
        assert state.failure_reason == "expired"

    @pytest.mark.parametrize("terminal", [Phase.CONFIRMED, Phase.FAILED, Phase.CANCELLED])
    def test_terminal_states_are_final(self, terminal):
        state = ExecutionState("plan-1", approval_total=0)
        state.transition(Phase.ACTION_PENDING)
        state.transition(terminal)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.ACTION_PENDING)

    def test_cancel_from_approving_keeps_step(self):
        state = ExecutionState("plan-1", approval_total=1)
        state.transition(Phase.AWAITING_APPROVAL)
        state.transition(Phase.APPROVING)
        assert state.step == "approval 1/1"
        state.transition(Phase.CANCELLED)
        assert state.label == "Cancelled"

    def test_idle_cannot_fail_or_confirm(self):
        state = ExecutionState("plan-1", approval_total=0)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.CONFIRMED)
        with pytest.raises(InvalidTransition):
            state.transition(Phase.FAILED)
