"""
Tests for token resolution and native/wrapped substitution.
"""
from unittest.mock import patch

import pytest

from services.errors import UnknownToken
from services.models import Token
from services.tokens import TokenRegistry
from tests.mocks import MockChainClient, MockHttpxClient
from tests.mocks.mock_market import AAA, TEST_TOKENS
from utils.config import WETH_ADDRESS

UNKNOWN = "0x" + "d4" * 20


@pytest.mark.unit
class TestTokenResolution:
    """Tests for resolve_token and resolve."""

    @pytest.fixture
    def registry(self) -> TokenRegistry:
        return TokenRegistry(tokens=TEST_TOKENS)

    def test_symbol_lookup_is_case_insensitive(self, registry):
        assert registry.resolve_token("aaa").address == AAA
        assert registry.resolve_token("TESTUSDC").symbol == "testUSDC"
        assert registry.resolve_token("testusdc").decimals == 6

    def test_address_lookup_is_literal(self, registry):
        assert registry.resolve_token(AAA.upper().replace("0X", "0x")).symbol == "AAA"

    def test_native_symbol_resolves_to_native_token(self, registry):
        eth = registry.resolve_token("ETH")
        assert eth.is_native
        assert eth.decimals == 18

    @pytest.mark.parametrize("ref", ["NOPE", "", None, "0x1234"])
    def test_unknown_reference_raises(self, registry, ref):
        with pytest.raises(UnknownToken):
            registry.resolve_token(ref)

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_never_guessed(self, registry):
        client = MockChainClient()
        with pytest.raises(UnknownToken):
            await registry.resolve("SHIB", client)
        assert client.reads == []

    @pytest.mark.asyncio
    async def test_unknown_address_is_read_from_chain_and_cached(self, registry):
        client = MockChainClient()
        client.set_token_meta(UNKNOWN, "DDD", 8)

        token = await registry.resolve(UNKNOWN, client)

        assert token.symbol == "DDD"
        assert token.decimals == 8
        assert registry.resolve_token("ddd").address.lower() == UNKNOWN
        reads_after_first = len(client.reads)
        await registry.resolve(UNKNOWN, client)
        assert len(client.reads) == reads_after_first

    @pytest.mark.asyncio
    async def test_unknown_address_that_is_not_a_token_raises(self, registry):
        client = MockChainClient()
        with pytest.raises(UnknownToken):
            await registry.resolve(UNKNOWN, client)

    @pytest.mark.asyncio
    async def test_unknown_address_without_chain_client_raises(self, registry):
        with pytest.raises(UnknownToken):
            await registry.resolve(UNKNOWN)


@pytest.mark.unit
class TestNativeSubstitution:
    """Tests for wrapping the native asset."""

    @pytest.fixture
    def registry(self) -> TokenRegistry:
        return TokenRegistry(tokens=TEST_TOKENS)

    def test_native_becomes_wrapped_for_chain_calls(self, registry):
        assert registry.to_tradable_address(registry.native) == WETH_ADDRESS

    def test_erc20_address_is_unchanged(self, registry):
        token = registry.resolve_token("AAA")
        assert registry.to_tradable_address(token) == AAA

    def test_wrapped_reads_as_native_for_display(self, registry):
        assert registry.from_tradable_address(WETH_ADDRESS.upper().replace("0X", "0x")).is_native
        assert registry.from_tradable_address(AAA).symbol == "AAA"


@pytest.mark.unit
class TestCustomTokens:
    """Tests for adding tokens."""

    def test_add_custom_token(self):
        registry = TokenRegistry()
        registry.add_custom_token(Token(address=UNKNOWN, symbol="DDD", decimals=9))
        assert registry.resolve_token("DDD").decimals == 9
        assert any(t.symbol == "DDD" for t in registry.all_tokens())

    def test_first_entry_wins(self):
        registry = TokenRegistry()
        registry.add_custom_token(Token(address=UNKNOWN, symbol="USDT", decimals=9))
        assert registry.resolve_token("USDT").decimals == 6

    @pytest.mark.asyncio
    async def test_load_token_list(self):
        registry = TokenRegistry()
        token_list = {
            "name": "Test list",
            "tokens": [
                {"address": UNKNOWN, "symbol": "DDD", "name": "Token D", "decimals": 8, "chainId": 11155111},
                {"address": "not-an-address", "symbol": "BAD", "decimals": 18},
            ],
        }
        mock_client = MockHttpxClient(response_content=token_list)

        with patch("httpx.AsyncClient", return_value=mock_client):
            count = await registry.load_token_list("https://tokens.example/list.json")

        assert count == 1
        assert registry.resolve_token("DDD").decimals == 8
        assert registry.lookup("BAD") is None
        assert mock_client.last_url == "https://tokens.example/list.json"

    @pytest.mark.asyncio
    async def test_load_token_list_without_url_does_nothing(self):
        registry = TokenRegistry()
        assert await registry.load_token_list(None) == 0
