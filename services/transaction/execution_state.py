"""
Execution state machine for a single execution plan.

    Idle -> AwaitingApproval(k) | ActionPending
    AwaitingApproval(k) -> Approving(k)
    Approving(k) -> AwaitingApproval(k+1) | ActionPending | Failed
    ActionPending -> Confirmed | Failed
    any non-terminal -> Cancelled
"""
import logging
import time
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from services.errors import InvalidTransition

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Possible phases of a plan execution."""
    IDLE = "idle"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVING = "approving"
    ACTION_PENDING = "action_pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_PHASES: FrozenSet[Phase] = frozenset({Phase.CONFIRMED, Phase.FAILED, Phase.CANCELLED})

ALLOWED_TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.IDLE: frozenset({Phase.AWAITING_APPROVAL, Phase.ACTION_PENDING, Phase.CANCELLED}),
    Phase.AWAITING_APPROVAL: frozenset({Phase.APPROVING, Phase.CANCELLED}),
    Phase.APPROVING: frozenset({Phase.AWAITING_APPROVAL, Phase.ACTION_PENDING, Phase.FAILED, Phase.CANCELLED}),
    Phase.ACTION_PENDING: frozenset({Phase.CONFIRMED, Phase.FAILED, Phase.CANCELLED}),
    Phase.CONFIRMED: frozenset(),
    Phase.FAILED: frozenset(),
    Phase.CANCELLED: frozenset(),
}


class ExecutionState:
    """Tracks where one plan is in its approve -> execute lifecycle.

    Owned by the orchestrator for the lifetime of one execution and discarded
    once the terminal outcome has been reported.
    """

    def __init__(self, plan_id: str, approval_total: int) -> None:
        self.plan_id = plan_id
        self.approval_total = approval_total
        self.approval_index = 0
        self.phase = Phase.IDLE
        self.failure_reason: Optional[str] = None
        self.updated_at = time.time()
        self.history: List[str] = [self.label]

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def label(self) -> str:
        """Readable phase name, e.g. 'Approving(1 of 2)' or 'Failed(expired)'."""
        if self.phase in (Phase.AWAITING_APPROVAL, Phase.APPROVING):
            name = "AwaitingApproval" if self.phase == Phase.AWAITING_APPROVAL else "Approving"
            return f"{name}({self.approval_index + 1} of {self.approval_total})"
        if self.phase == Phase.FAILED and self.failure_reason:
            return f"Failed({self.failure_reason})"
        return "".join(part.capitalize() for part in self.phase.value.split("_"))

    @property
    def step(self) -> str:
        """Step name used in diagnostics."""
        if self.phase in (Phase.AWAITING_APPROVAL, Phase.APPROVING):
            return f"approval {self.approval_index + 1}/{self.approval_total}"
        if self.phase == Phase.IDLE:
            return "preflight"
        return "action"

    def transition(self, new_phase: Phase, approval_index: Optional[int] = None, reason: Optional[str] = None) -> None:
        """Move to a new phase, enforcing the allowed transitions.

        Args:
            new_phase: Target phase
            approval_index: Zero-based approval index for approval phases
            reason: Failure reason when moving to FAILED

        Raises:
            InvalidTransition: If the transition is not permitted
        """
        if new_phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransition(
                f"Cannot move from {self.label} to {new_phase.value}",
                plan_id=self.plan_id,
                step=self.step,
            )

        if new_phase == Phase.AWAITING_APPROVAL:
            expected = 0 if self.phase == Phase.IDLE else self.approval_index + 1
            index = expected if approval_index is None else approval_index
            if index != expected or index >= self.approval_total:
                raise InvalidTransition(
                    f"Approval {index + 1} cannot follow {self.label}",
                    plan_id=self.plan_id,
                    step=self.step,
                )
            self.approval_index = index
        elif new_phase == Phase.APPROVING:
            if approval_index is not None and approval_index != self.approval_index:
                raise InvalidTransition(
                    f"Cannot submit approval {approval_index + 1} while awaiting approval {self.approval_index + 1}",
                    plan_id=self.plan_id,
                    step=self.step,
                )
        elif new_phase == Phase.ACTION_PENDING and self.phase == Phase.APPROVING:
            if self.approval_index + 1 != self.approval_total:
                raise InvalidTransition(
                    f"{self.approval_total - self.approval_index - 1} approval(s) still pending",
                    plan_id=self.plan_id,
                    step=self.step,
                )

        previous = self.label
        self.phase = new_phase
        if new_phase == Phase.FAILED:
            self.failure_reason = reason or "unknown"
        self.updated_at = time.time()
        self.history.append(self.label)
        logger.info(f"Plan {self.plan_id}: {previous} -> {self.label}")
