"""
Read-only pool reporting.
"""
from .pool_query import PoolQueryReporter, price_histogram, start_of_day

__all__ = ['PoolQueryReporter', 'price_histogram', 'start_of_day']
