"""
Chain client interface and the web3.py implementation.
"""
from .chain_client import ChainClient, Web3ChainClient, SignaturePrompt

__all__ = ['ChainClient', 'Web3ChainClient', 'SignaturePrompt']
