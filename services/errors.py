"""
Error taxonomy for trade intent resolution and execution.

Validation errors are raised before any network call. On-chain errors are
raised from the write/confirmation steps and are never retried automatically.
"""
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for every failure the trade engine reports."""

    reason: str = "engine_error"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        plan_id: Optional[str] = None,
        step: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason
        self.plan_id = plan_id
        self.step = step
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in logs and caller-facing results."""
        return {
            "error": type(self).__name__,
            "reason": self.reason,
            "message": self.message,
            "plan_id": self.plan_id,
            "step": self.step,
            "detail": self.detail,
        }


class InvalidIntent(EngineError):
    """Malformed, incomplete or low-confidence trade intent."""
    reason = "invalid_intent"


class InvalidQuote(EngineError):
    """Quote inputs outside the domain of the constant-product formula."""
    reason = "invalid_quote"


class UnknownToken(EngineError):
    """A symbol or address could not be resolved to a token."""
    reason = "unknown_token"


class PoolNotFound(EngineError):
    """No pool exists for the pair; the remedy is creating one."""
    reason = "pool_not_found"


class InsufficientBalance(EngineError):
    reason = "insufficient_balance"


class ExcessivePriceImpact(EngineError):
    """Price impact above the configured threshold and not acknowledged."""
    reason = "excessive_price_impact"


class StaleQuote(EngineError):
    """Reserves moved since the plan was built; the plan must be rebuilt."""
    reason = "stale_quote"


class DuplicateExecution(EngineError):
    """The plan already has an execution in flight."""
    reason = "duplicate_execution"


class InvalidTransition(EngineError):
    reason = "invalid_transition"


class ApprovalFailed(EngineError):
    reason = "approval_failed"


class ActionFailed(EngineError):
    reason = "action_failed"


class UserCancelled(EngineError):
    """Wallet-level signature rejection. Terminal, but not an error for UX purposes."""
    reason = "user_cancelled"


class ChainClientError(Exception):
    """Base class for failures raised by a chain client."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class UserRejectedError(ChainClientError):
    """The signer refused to sign (EIP-1193 code 4001)."""

    def __init__(self, message: str = "User rejected the request", code: Optional[int] = 4001) -> None:
        super().__init__(message, code)


class TransactionReverted(ChainClientError):
    """A mined transaction finished with status 0."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfirmationTimeout(ChainClientError):
    """No receipt arrived in time. The on-chain outcome is unknown."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


USER_REJECTED_CODES = (4001, "ACTION_REJECTED")
USER_REJECTED_MARKERS = ("user rejected", "user denied", "rejected by user")


def is_user_rejection(error: BaseException) -> bool:
    """Return True if a wallet/provider error means the user refused to sign."""
    if isinstance(error, UserRejectedError):
        return True
    code = getattr(error, "code", None)
    if code in USER_REJECTED_CODES:
        return True
    text = str(error).lower()
    return any(marker in text for marker in USER_REJECTED_MARKERS)
