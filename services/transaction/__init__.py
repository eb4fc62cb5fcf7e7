"""
Transaction services: execution state machine, orchestration and formatting.
"""
from .execution_state import ExecutionState, Phase
from .transaction_orchestrator import TransactionOrchestrator
from .transaction_formatter import TransactionFormatter
from .number_converter import NumberConverter

__all__ = ['ExecutionState', 'Phase', 'TransactionOrchestrator', 'TransactionFormatter', 'NumberConverter']

# Create singleton instances
transaction_formatter = TransactionFormatter()
number_converter = NumberConverter()
