"""
Trade intent resolution and execution services.
"""
from services.tokens import token_registry

__all__ = ['token_registry']
