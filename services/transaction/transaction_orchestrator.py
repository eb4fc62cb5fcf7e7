"""
Sequences approval and action transactions for one execution plan.

Approvals are submitted strictly one at a time and each must be confirmed on
chain before the next one (or the action) is submitted. Failed and reverted
transactions are never resubmitted; a new attempt needs a fresh plan.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from services.approval import ApprovalGate
from services.chain import ChainClient
from services.errors import (
    ActionFailed,
    ApprovalFailed,
    ChainClientError,
    ConfirmationTimeout,
    DuplicateExecution,
    EngineError,
    StaleQuote,
    TransactionReverted,
    UserRejectedError,
    is_user_rejection,
)
from services.models import (
    ApprovalRequirement,
    ExecutionPlan,
    ExecutionResult,
    TransactionHandle,
    TransactionReceipt,
)
from services.pools import PoolResolver
from services.transaction.execution_state import ExecutionState, Phase
from utils.config import (
    APPROVAL_MULTIPLIER,
    CONFIRMATION_TIMEOUT_SECONDS,
    EXPLORER_URL,
    REFRESH_RETRY_DELAY_SECONDS,
)
from utils.status_updates import StatusCallback, notify

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[ExecutionPlan], Awaitable[Any]]

EXPIRED_MARKERS = ("expired", "deadline")


class TransactionOrchestrator:
    """Drives an ExecutionPlan through approvals and the action transaction."""

    def __init__(
        self,
        chain_client: ChainClient,
        approval_gate: ApprovalGate,
        pool_resolver: Optional[PoolResolver] = None,
        refresh_callback: Optional[RefreshCallback] = None,
        approval_multiplier: int = APPROVAL_MULTIPLIER,
        confirmation_timeout: Optional[float] = CONFIRMATION_TIMEOUT_SECONDS,
        refresh_retry_delay: float = REFRESH_RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            chain_client: Client used to submit and confirm transactions
            approval_gate: Allowance checks, re-run at the start of every execution
            pool_resolver: Used to detect stale reserve snapshots before submission
            refresh_callback: Called with the plan after confirmation to refresh balances
            approval_multiplier: Requested allowance as a multiple of the required amount
            confirmation_timeout: Seconds to wait for each receipt; None waits indefinitely
            refresh_retry_delay: Delay before the second post-confirmation refresh
            clock: Wall-clock source, seconds since the epoch
        """
        self.chain_client = chain_client
        self.approval_gate = approval_gate
        self.pool_resolver = pool_resolver
        self.refresh_callback = refresh_callback
        self.approval_multiplier = approval_multiplier
        self.confirmation_timeout = confirmation_timeout
        self.refresh_retry_delay = refresh_retry_delay
        self.clock = clock
        self._in_flight: Dict[str, ExecutionState] = {}
        self._refresh_tasks: Set["asyncio.Task[None]"] = set()

    def in_flight(self, plan_id: str) -> Optional[ExecutionState]:
        """Current state of a running plan, or None if it is not executing."""
        return self._in_flight.get(plan_id)

    async def execute(self, plan: ExecutionPlan, status_callback: Optional[StatusCallback] = None) -> ExecutionResult:
        """Execute a plan and resolve to exactly one terminal result.

        Args:
            plan: Validated execution plan
            status_callback: Optional callback for progress lines

        Returns:
            ExecutionResult: SUCCESS, REJECTED, FAILED or CANCELLED
        """
        if plan.plan_id in self._in_flight:
            error = DuplicateExecution(
                f"Plan {plan.plan_id} is already executing ({self._in_flight[plan.plan_id].label})",
                plan_id=plan.plan_id,
            )
            logger.warning(error.message)
            return ExecutionResult.from_error(error)

        # Registered before the first suspension point so a concurrent call sees it
        state = ExecutionState(plan.plan_id, approval_total=len(plan.approvals))
        self._in_flight[plan.plan_id] = state
        try:
            return await self._run(plan, state, status_callback)
        except Exception as e:
            logger.exception(f"Unexpected error executing plan {plan.plan_id}")
            return ExecutionResult.failed(
                plan_id=plan.plan_id,
                reason="unexpected_error",
                step=state.step,
                message=str(e),
                transitions=tuple(state.history),
            )
        finally:
            self._in_flight.pop(plan.plan_id, None)

    async def _run(
        self,
        plan: ExecutionPlan,
        state: ExecutionState,
        status_callback: Optional[StatusCallback],
    ) -> ExecutionResult:
        try:
            await notify(status_callback, "Checking pool reserves...")
            await self._ensure_fresh(plan)
            await notify(status_callback, "Checking token allowance...")
            pending = await self._pending_approvals(plan)
        except EngineError as e:
            e.plan_id = plan.plan_id
            e.step = state.step
            logger.info(f"Plan {plan.plan_id} rejected before submission: {e.message}")
            return ExecutionResult.from_error(e, transitions=tuple(state.history))
        except ChainClientError as e:
            logger.error(f"Chain read failed during preflight of plan {plan.plan_id}: {e}")
            return ExecutionResult.failed(
                plan_id=plan.plan_id,
                reason="chain_error",
                step=state.step,
                message=str(e),
                transitions=tuple(state.history),
            )

        state.approval_total = len(pending)

        try:
            for index, requirement in enumerate(pending):
                state.transition(Phase.AWAITING_APPROVAL, approval_index=index)
                await self._approve(plan, state, requirement, status_callback)

            state.transition(Phase.ACTION_PENDING)
            receipt = await self._submit_action(plan, state, status_callback)
            state.transition(Phase.CONFIRMED)
        except UserRejectedError as e:
            step = state.step
            state.transition(Phase.CANCELLED)
            logger.info(f"Plan {plan.plan_id} cancelled by user at {step}")
            await notify(status_callback, "Signature request rejected. Nothing else was submitted.")
            return ExecutionResult.cancelled(
                plan_id=plan.plan_id,
                reason="user_cancelled",
                step=step,
                message=e.message,
                transitions=tuple(state.history),
            )
        except (ApprovalFailed, ActionFailed, StaleQuote) as e:
            step = state.step
            state.transition(Phase.FAILED, reason=e.reason)
            logger.error(f"Plan {plan.plan_id} failed at {step}: {e.message} ({e.detail})")
            await notify(status_callback, f"Error: {e.message}")
            return ExecutionResult.failed(
                plan_id=plan.plan_id,
                reason=e.reason,
                step=step,
                message=e.message if not e.detail else f"{e.message}: {e.detail}",
                ambiguous=e.reason == "timeout",
                transitions=tuple(state.history),
            )

        await notify(status_callback, f"Hash: {receipt.tx_hash}\n{EXPLORER_URL}/tx/{receipt.tx_hash}")
        await notify(status_callback, "Transaction completed successfully!")
        await self._refresh(plan)
        return ExecutionResult.success(
            plan_id=plan.plan_id,
            receipt=receipt,
            step="action",
            transitions=tuple(state.history),
        )

    async def _ensure_fresh(self, plan: ExecutionPlan) -> None:
        """Raise StaleQuote if the pool moved since the plan's snapshot."""
        if self.pool_resolver is None:
            return
        current = await self.pool_resolver.fetch_snapshot(plan.pool.address)
        if not plan.pool.same_snapshot(current):
            raise StaleQuote(
                "Pool reserves changed since the quote was built; rebuild the plan",
                plan_id=plan.plan_id,
                detail=(
                    f"quoted {plan.pool.reserve0}/{plan.pool.reserve1}, "
                    f"now {current.reserve0}/{current.reserve1}"
                ),
            )

    async def _pending_approvals(self, plan: ExecutionPlan) -> List[ApprovalRequirement]:
        """Re-read the allowance of every input token; never trust an earlier read.

        Tokens whose allowance covered the amount at planning time are read
        again too, since an over-approval may have been spent or revoked since.
        """
        pending: List[ApprovalRequirement] = []
        for token, amount in zip(plan.tokens_in, plan.amounts_in):
            fresh = await self.approval_gate.requirement(plan.owner, plan.spender, token, amount)
            if fresh is not None:
                pending.append(fresh)
        return pending

    async def _await_receipt(self, handle: TransactionHandle) -> TransactionReceipt:
        """Wait for a receipt, bounded by the client-side confirmation timeout."""
        if self.confirmation_timeout is None:
            return await self.chain_client.wait_for_confirmation(handle)
        try:
            return await asyncio.wait_for(
                self.chain_client.wait_for_confirmation(handle, timeout=self.confirmation_timeout),
                timeout=self.confirmation_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConfirmationTimeout(
                f"No receipt for {handle.tx_hash} after {self.confirmation_timeout}s",
                tx_hash=handle.tx_hash,
            ) from e

    async def _approve(
        self,
        plan: ExecutionPlan,
        state: ExecutionState,
        requirement: ApprovalRequirement,
        status_callback: Optional[StatusCallback],
    ) -> None:
        state.transition(Phase.APPROVING, approval_index=state.approval_index)
        token = requirement.token
        amount = self.approval_gate.approval_amount(requirement, self.approval_multiplier)
        step = state.step

        await notify(
            status_callback,
            f"Approving {token.symbol} spending ({state.approval_index + 1} of {state.approval_total})...",
        )

        try:
            handle = await self.chain_client.write_contract(
                token.address, "approve", [requirement.spender, amount]
            )
            receipt = await self._await_receipt(handle)
        except UserRejectedError:
            raise
        except ConfirmationTimeout as e:
            raise ApprovalFailed(
                f"{token.symbol} approval not confirmed in time; its outcome is unknown",
                reason="timeout", plan_id=plan.plan_id, step=step, detail=e.tx_hash,
            ) from e
        except TransactionReverted as e:
            raise ApprovalFailed(
                f"{token.symbol} approval reverted",
                reason="reverted", plan_id=plan.plan_id, step=step, detail=e.message,
            ) from e
        except ChainClientError as e:
            if is_user_rejection(e):
                raise UserRejectedError(e.message) from e
            raise ApprovalFailed(
                f"{token.symbol} approval could not be submitted",
                reason="rejected", plan_id=plan.plan_id, step=step, detail=e.message,
            ) from e

        if not receipt.succeeded:
            raise ApprovalFailed(
                f"{token.symbol} approval reverted",
                reason="reverted", plan_id=plan.plan_id, step=step, detail=receipt.tx_hash,
            )

        logger.info(f"Plan {plan.plan_id}: {token.symbol} approval confirmed in {receipt.tx_hash}")
        await notify(status_callback, f"{token.symbol} spending approved")

    def _failure_reason(self, plan: ExecutionPlan, message: str) -> str:
        if self.clock() >= plan.deadline:
            return "expired"
        if any(marker in message.lower() for marker in EXPIRED_MARKERS):
            return "expired"
        return "reverted"

    async def _submit_action(
        self,
        plan: ExecutionPlan,
        state: ExecutionState,
        status_callback: Optional[StatusCallback],
    ) -> TransactionReceipt:
        action = plan.action
        step = state.step

        # Approvals take time; the pool may have moved meanwhile
        if state.approval_total:
            try:
                await self._ensure_fresh(plan)
            except ChainClientError as e:
                raise ActionFailed(
                    "Could not re-read pool reserves after approval",
                    reason="chain_error", plan_id=plan.plan_id, step=step, detail=str(e),
                ) from e

        if self.clock() >= plan.deadline:
            raise ActionFailed(
                "Transaction deadline passed before submission",
                reason="expired", plan_id=plan.plan_id, step=step, detail=f"deadline {plan.deadline}",
            )

        await notify(status_callback, f"Submitting {action.function_name}...")
        try:
            handle = await self.chain_client.write_contract(
                action.address, action.function_name, list(action.args), action.value
            )
            await notify(status_callback, f"Transaction sent! Hash: {handle.tx_hash}")
            await notify(status_callback, "Waiting for confirmation...")
            receipt = await self._await_receipt(handle)
        except UserRejectedError:
            raise
        except ConfirmationTimeout as e:
            raise ActionFailed(
                f"{action.function_name} not confirmed in time; it may still be mined",
                reason="timeout", plan_id=plan.plan_id, step=step, detail=e.tx_hash,
            ) from e
        except TransactionReverted as e:
            raise ActionFailed(
                f"{action.function_name} reverted",
                reason=self._failure_reason(plan, e.message), plan_id=plan.plan_id, step=step, detail=e.message,
            ) from e
        except ChainClientError as e:
            if is_user_rejection(e):
                raise UserRejectedError(e.message) from e
            raise ActionFailed(
                f"{action.function_name} could not be submitted",
                reason="rejected", plan_id=plan.plan_id, step=step, detail=e.message,
            ) from e

        if not receipt.succeeded:
            raise ActionFailed(
                f"{action.function_name} reverted",
                reason=self._failure_reason(plan, ""), plan_id=plan.plan_id, step=step, detail=receipt.tx_hash,
            )

        logger.info(f"Plan {plan.plan_id}: {action.function_name} confirmed in block {receipt.block_number}")
        return receipt

    async def _run_refresh(self, plan: ExecutionPlan) -> None:
        if self.refresh_callback is None:
            return
        try:
            await self.refresh_callback(plan)
        except Exception as e:
            logger.warning(f"Balance refresh after plan {plan.plan_id} failed: {e}")

    async def _delayed_refresh(self, plan: ExecutionPlan) -> None:
        await asyncio.sleep(self.refresh_retry_delay)
        await self._run_refresh(plan)

    async def _refresh(self, plan: ExecutionPlan) -> None:
        """Refresh now, and once more after a delay to ride out provider indexing lag."""
        if self.refresh_callback is None:
            return
        await self._run_refresh(plan)
        task = asyncio.create_task(self._delayed_refresh(plan))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def wait_for_refreshes(self) -> None:
        """Wait until every scheduled follow-up refresh has run."""
        if self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks))
