"""
Transaction formatting service for creating human-readable plan and result summaries.
"""
import logging
from typing import Any, Dict, List, Optional

from services.models import ExecutionPlan, ExecutionResult, ResultStatus, Token
from services.transaction.number_converter import NumberConverter
from utils.config import EXPLORER_URL

logger = logging.getLogger(__name__)


class TransactionFormatter:
    """Format execution plans and results into chat-friendly text."""

    def __init__(self, explorer_url: str = EXPLORER_URL):
        self.explorer_url = explorer_url
        self.number_converter = NumberConverter()

    def _amount(self, raw_amount: int, token: Token) -> str:
        return f"{self.number_converter.to_human_readable(raw_amount, token.decimals)} {token.symbol}"

    def format_plan_summary(self, plan: ExecutionPlan) -> str:
        """Generate a confirmation summary for a plan before it is executed.

        Args:
            plan: Execution plan to describe

        Returns:
            str: Multi-line summary
        """
        lines: List[str] = []
        if plan.kind.is_swap:
            token_in = plan.tokens_in[0]
            lines.append(f"Swap {self._amount(plan.amounts_in[0], token_in)} for {plan.token_out.symbol}")
            if plan.quoted_amount_out is not None:
                lines.append(f"Expected: {self._amount(plan.quoted_amount_out, plan.token_out)}")
            lines.append(f"Minimum received: {self._amount(plan.min_amounts[0], plan.token_out)}")
            if plan.price_impact_bps is not None:
                lines.append(f"Price impact: {plan.price_impact_bps / 100:.2f}%")
        else:
            deposits = " + ".join(
                self._amount(amount, token) for token, amount in zip(plan.tokens_in, plan.amounts_in)
            )
            lines.append(f"Add liquidity: {deposits}")
            minimums = " + ".join(
                self._amount(amount, token) for token, amount in zip(plan.tokens_in, plan.min_amounts)
            )
            lines.append(f"Minimum deposited: {minimums}")

        lines.append(f"Slippage tolerance: {plan.slippage_bps / 100:.2f}%")
        if plan.approvals:
            symbols = ", ".join(req.token.symbol for req in plan.approvals)
            lines.append(f"Approvals needed: {len(plan.approvals)} ({symbols})")
        lines.append(f"Pool: {plan.pool.address}")
        return "\n".join(lines)

    def format_result(self, result: ExecutionResult, plan: Optional[ExecutionPlan] = None) -> str:
        """Render a terminal execution result.

        Args:
            result: Outcome of an engine invocation
            plan: The plan that produced it, if any

        Returns:
            str: Message text
        """
        if result.status == ResultStatus.SUCCESS:
            if result.report is not None:
                return self.format_report(result.report)
            lines = ["✅ Transaction confirmed"]
            if plan is not None:
                lines.append(self.format_plan_summary(plan))
            if result.receipt is not None:
                lines.append(f"Hash: {result.receipt.tx_hash}")
                lines.append(f"{self.explorer_url}/tx/{result.receipt.tx_hash}")
            return "\n".join(lines)

        if result.status == ResultStatus.CANCELLED:
            return f"🚫 Cancelled at {result.step}. No further transactions were sent."

        if result.status == ResultStatus.REJECTED:
            return f"⚠️ Not executed ({result.reason}): {result.message}"

        text = f"❌ Failed at {result.step} ({result.reason}): {result.message}"
        if result.ambiguous:
            text += "\nThe transaction may still confirm. Check the explorer before retrying."
        return text

    def format_report(self, report: Dict[str, Any]) -> str:
        """Render a read-only pool report as `key: value` lines."""
        lines = [f"📊 {report.get('query', 'report')}"]
        for key, value in report.items():
            if key == 'query':
                continue
            if key == "buckets":
                lines.append("buckets:")
                for bucket in value:
                    lines.append(f"  {bucket['low']:.6g}-{bucket['high']:.6g}: {bucket['count']}")
            elif isinstance(value, list):
                lines.append(f"{key}:")
                lines.extend(f"  {item}" for item in value)
            else:
                lines.append(f"{key}: {value}")
        return "\n".join(lines)
