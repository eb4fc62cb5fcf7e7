"""
Token registry service.
"""
from .TokenRegistry import TokenRegistry, COMMON_TOKENS

# Create singleton instance
token_registry = TokenRegistry()

__all__ = ['TokenRegistry', 'COMMON_TOKENS', 'token_registry']
