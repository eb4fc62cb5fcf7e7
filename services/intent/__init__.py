"""
Trade intent validation and routing.
"""
from .intent_models import AddLiquidityIntent, QueryIntent, SwapIntent, TradeIntent, parse_intent
from .IntentRouter import IntentRouter

__all__ = ['AddLiquidityIntent', 'QueryIntent', 'SwapIntent', 'TradeIntent', 'parse_intent', 'IntentRouter']
