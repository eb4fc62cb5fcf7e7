"""
Pool resolution service.
"""
from .PoolResolver import PoolResolver, ZERO_ADDRESS

__all__ = ['PoolResolver', 'ZERO_ADDRESS']
