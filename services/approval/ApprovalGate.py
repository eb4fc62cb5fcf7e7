"""
Allowance checks gating the action transaction of a plan.
"""
import logging
from typing import Optional

from services.chain import ChainClient
from services.models import ApprovalRequirement, Token

logger = logging.getLogger(__name__)


class ApprovalGate:
    """Decides whether an allowance increase is needed before an action.

    Allowances are re-read on every call. A previous over-approval is only
    trusted after it has been observed on chain.
    """

    def __init__(self, chain_client: ChainClient) -> None:
        self.chain_client = chain_client

    async def current_allowance(self, owner: str, spender: str, token: Token) -> int:
        allowance = await self.chain_client.read_contract(token.address, "allowance", [owner, spender])
        return int(allowance)

    async def needs_approval(self, owner: str, spender: str, token: Token, amount: int) -> bool:
        """Return True iff the spender's allowance is below amount.

        The native asset is never approved.
        """
        if token.is_native:
            return False
        allowance = await self.current_allowance(owner, spender, token)
        return allowance < amount

    async def requirement(
        self,
        owner: str,
        spender: str,
        token: Token,
        amount: int,
    ) -> Optional[ApprovalRequirement]:
        """Build the approval requirement for a token, or None if nothing is needed.

        Args:
            owner: Address whose tokens are spent
            spender: Contract that pulls the tokens (the router)
            token: Token being spent
            amount: Amount the current plan needs, in minor units

        Returns:
            Optional[ApprovalRequirement]: Pending requirement, or None
        """
        if token.is_native:
            return None

        allowance = await self.current_allowance(owner, spender, token)
        if allowance >= amount:
            logger.debug(f"Allowance {allowance} of {token.symbol} covers {amount}")
            return None

        logger.info(f"{token.symbol} allowance {allowance} below required {amount} for spender {spender}")
        return ApprovalRequirement(
            token=token,
            owner=owner,
            spender=spender,
            current_allowance=allowance,
            required_amount=amount,
        )

    @staticmethod
    def approval_amount(requirement: ApprovalRequirement, multiplier: int = 1) -> int:
        """Allowance to request; a multiple of the requirement to avoid repeat approvals."""
        return requirement.required_amount * max(1, int(multiplier))
