"""
Mock objects for testing the AMM trade broker.
"""
from tests.mocks.mock_chain_client import MockChainClient, OWNER, ROUTER, FACTORY, ZERO_ADDRESS
from tests.mocks.mock_httpx_client import (
    MockHttpxClient,
    MockHttpResponse,
    create_mock_chat_response,
    create_mock_httpx_client,
)

__all__ = [
    'MockChainClient',
    'OWNER',
    'ROUTER',
    'FACTORY',
    'ZERO_ADDRESS',
    'MockHttpxClient',
    'MockHttpResponse',
    'create_mock_chat_response',
    'create_mock_httpx_client',
]
