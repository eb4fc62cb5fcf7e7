"""
Approval gating service.
"""
from .ApprovalGate import ApprovalGate

__all__ = ['ApprovalGate']
