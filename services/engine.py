"""
Trade engine: parser -> intent validation -> router -> orchestrator or reporter.

Every entry point resolves to exactly one ExecutionResult: SUCCESS, REJECTED,
FAILED or CANCELLED.
"""
import logging
from typing import Any, Dict, Optional, Union

from services.approval import ApprovalGate
from services.chain import ChainClient, Web3ChainClient
from services.errors import ActionFailed, ChainClientError, EngineError, InvalidIntent, UserRejectedError
from services.intent import IntentRouter, TradeIntent, parse_intent
from services.llm import IntentParser, create_intent_parser
from services.models import ExecutionPlan, ExecutionResult, QueryRequest
from services.pools import PoolResolver
from services.query import PoolQueryReporter
from services.tokens import TokenRegistry, token_registry
from services.transaction import TransactionFormatter, TransactionOrchestrator
from utils.balance_tracker import BalanceTracker
from utils.config import INTENT_CONFIDENCE_THRESHOLD, LLM_PROVIDER, WALLET_PRIVATE_KEY
from utils.status_updates import StatusCallback, notify

logger = logging.getLogger(__name__)


class TradeEngine:
    """Wires the trade services together around one chain client."""

    def __init__(
        self,
        chain_client: ChainClient,
        registry: Optional[TokenRegistry] = None,
        intent_parser: Optional[IntentParser] = None,
        confidence_threshold: float = INTENT_CONFIDENCE_THRESHOLD,
        router_kwargs: Optional[Dict[str, Any]] = None,
        orchestrator_kwargs: Optional[Dict[str, Any]] = None,
        reporter_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the engine and its collaborators.

        Args:
            chain_client: Client used for every chain read and write
            registry: Token registry; defaults to the shared registry
            intent_parser: Natural-language parser; handle_command needs one
            confidence_threshold: Minimum parser confidence accepted
            router_kwargs: Overrides for IntentRouter (fees, clock, thresholds)
            orchestrator_kwargs: Overrides for TransactionOrchestrator (timeouts, clock)
            reporter_kwargs: Overrides for PoolQueryReporter
        """
        self.chain_client = chain_client
        self.registry = registry or token_registry
        self.balances = BalanceTracker(chain_client)
        self.intent_parser = intent_parser
        self.confidence_threshold = confidence_threshold

        self.pool_resolver = PoolResolver(chain_client, self.registry)
        self.approval_gate = ApprovalGate(chain_client)
        self.router = IntentRouter(
            self.registry,
            self.pool_resolver,
            self.approval_gate,
            chain_client,
            **(router_kwargs or {}),
        )
        orchestrator_options = {"refresh_callback": self.refresh_after_confirmation}
        orchestrator_options.update(orchestrator_kwargs or {})
        self.orchestrator = TransactionOrchestrator(
            chain_client,
            self.approval_gate,
            self.pool_resolver,
            **orchestrator_options,
        )
        self.reporter = PoolQueryReporter(chain_client, self.registry, self.pool_resolver, **(reporter_kwargs or {}))
        self.formatter = TransactionFormatter()

    async def refresh_after_confirmation(self, plan: ExecutionPlan) -> Dict[str, int]:
        """Re-read balances and allowances of every token the plan touched."""
        return await self.balances.refresh(plan.owner, plan.touched_tokens, plan.spender)

    async def handle_command(
        self,
        command: str,
        owner: Optional[str] = None,
        status_callback: Optional[StatusCallback] = None,
    ) -> ExecutionResult:
        """Parse free text and run the resulting intent.

        Args:
            command: User's command
            owner: Trading address; defaults to the chain client's signer
            status_callback: Optional callback for progress lines

        Returns:
            ExecutionResult: Terminal outcome
        """
        if self.intent_parser is None:
            return ExecutionResult.from_error(
                InvalidIntent("Natural-language commands are not configured", detail="no intent parser")
            )

        await notify(status_callback, "Understanding your command...")
        raw_intent = await self.intent_parser.process_command(command)
        return await self.handle_intent(raw_intent, owner=owner, status_callback=status_callback)

    async def plan(
        self,
        intent: Union[Dict[str, Any], TradeIntent],
        owner: Optional[str] = None,
    ) -> Union[ExecutionPlan, QueryRequest]:
        """Validate and route an intent without executing anything.

        Raises:
            EngineError: On any validation failure
        """
        typed = parse_intent(intent, self.confidence_threshold) if isinstance(intent, dict) else intent
        return await self.router.route(typed, owner)

    async def handle_intent(
        self,
        intent: Union[Dict[str, Any], TradeIntent],
        owner: Optional[str] = None,
        status_callback: Optional[StatusCallback] = None,
    ) -> ExecutionResult:
        """Validate, route and execute (or report) one intent.

        Args:
            intent: Raw parser output or an already typed intent (form input)
            owner: Trading address
            status_callback: Optional callback for progress lines

        Returns:
            ExecutionResult: Terminal outcome
        """
        try:
            target = await self.plan(intent, owner)
        except EngineError as e:
            logger.info(f"Intent rejected ({e.reason}): {e.message}")
            return ExecutionResult.from_error(e)
        except ChainClientError as e:
            logger.error(f"Chain read failed while planning: {e}")
            return ExecutionResult.failed(reason="chain_error", step="planning", message=str(e))
        except Exception as e:
            logger.exception("Unexpected error while planning")
            return ExecutionResult.failed(reason="unexpected_error", step="planning", message=str(e))

        if isinstance(target, QueryRequest):
            return await self.run_query(target)

        await notify(status_callback, self.formatter.format_plan_summary(target))
        return await self.execute_plan(target, status_callback)

    async def run_query(self, query: QueryRequest) -> ExecutionResult:
        try:
            report = await self.reporter.report(query)
        except EngineError as e:
            return ExecutionResult.from_error(e)
        except ChainClientError as e:
            logger.error(f"Pool query failed: {e}")
            return ExecutionResult.failed(reason="chain_error", step="query", message=str(e))
        except Exception as e:
            logger.exception("Unexpected error while running pool query")
            return ExecutionResult.failed(reason="unexpected_error", step="query", message=str(e))
        return ExecutionResult.success(report=report, step="query")

    async def execute_plan(
        self,
        plan: ExecutionPlan,
        status_callback: Optional[StatusCallback] = None,
    ) -> ExecutionResult:
        """Hand a validated plan to the orchestrator."""
        return await self.orchestrator.execute(plan, status_callback)

    async def create_pool(
        self,
        token_a: str,
        token_b: str,
        status_callback: Optional[StatusCallback] = None,
    ) -> ExecutionResult:
        """Explicitly create the pool for a pair (never done implicitly by trades)."""
        try:
            first = await self.registry.resolve(token_a, self.chain_client)
            second = await self.registry.resolve(token_b, self.chain_client)
            pool_address = await self.pool_resolver.create_pool(first, second, status_callback)
        except ActionFailed as e:
            logger.error(f"Pool creation failed: {e.message}")
            return ExecutionResult.failed(reason=e.reason, step=e.step, message=e.message)
        except EngineError as e:
            return ExecutionResult.from_error(e)
        except UserRejectedError as e:
            return ExecutionResult.cancelled(reason="user_cancelled", step="create_pool", message=e.message)
        except ChainClientError as e:
            logger.error(f"Pool creation failed: {e}")
            return ExecutionResult.failed(reason="chain_error", step="create_pool", message=str(e))
        return ExecutionResult.success(report={"query": "createPool", "pool": pool_address}, step="create_pool")


# Singleton instance (lazy initialization)
_trade_engine_instance: Optional[TradeEngine] = None


def get_trade_engine() -> TradeEngine:
    """Get or create the engine backed by the configured RPC and signer.

    Returns:
        TradeEngine instance
    """
    global _trade_engine_instance
    if _trade_engine_instance is None:
        from utils.web3_connection import w3

        try:
            parser: Optional[IntentParser] = create_intent_parser(LLM_PROVIDER)
        except ValueError as e:
            logger.warning(f"Natural-language commands disabled: {e}")
            parser = None

        chain_client = Web3ChainClient(w3, WALLET_PRIVATE_KEY)
        _trade_engine_instance = TradeEngine(chain_client, intent_parser=parser)
    return _trade_engine_instance
