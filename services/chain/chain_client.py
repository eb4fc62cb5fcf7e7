"""
Chain client boundary.

The engine talks to the chain only through function names and ordered
arguments; ABI encoding, signing and nonce handling live behind this
interface.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.types import Wei

from services.errors import (
    ChainClientError,
    ConfirmationTimeout,
    TransactionReverted,
    UserRejectedError,
    is_user_rejection,
)
from services.models import TransactionHandle, TransactionReceipt
from utils.load_abi import load_combined_abi

logger = logging.getLogger(__name__)

# Asked before every signature: (contract address, function name, args, value) -> approve?
SignaturePrompt = Callable[[str, str, Sequence[Any], int], Awaitable[bool]]

# Raised by web3 for undecodable results, RPC errors and dropped connections
READ_ERRORS = (Web3Exception, OSError, ValueError)


class ChainClient:
    """Interface every chain client implements. All calls may suspend."""

    @property
    def address(self) -> str:
        """Address of the account that signs write calls."""
        raise NotImplementedError

    async def read_contract(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        raise NotImplementedError

    async def write_contract(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> TransactionHandle:
        raise NotImplementedError

    async def wait_for_confirmation(
        self,
        handle: TransactionHandle,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """Wait until the transaction is mined.

        Returns the receipt whatever its status; a revert is a receipt with
        status 0. Raises ConfirmationTimeout when no receipt arrives in time.
        """
        raise NotImplementedError

    async def get_native_balance(self, address: str) -> int:
        raise NotImplementedError

    async def get_block_number(self) -> int:
        raise NotImplementedError

    async def get_logs(
        self,
        address: str,
        event_name: str,
        from_block: int,
        to_block: int,
    ) -> List[Dict[str, Any]]:
        """Decoded event logs: dicts with 'args', 'blockNumber' and 'transactionHash'."""
        raise NotImplementedError


class Web3ChainClient(ChainClient):
    """Chain client backed by web3.py and a local private key.

    Every read wraps web3 and transport failures in ChainClientError, so
    callers only ever see the chain client's own exception types.
    """

    def __init__(
        self,
        web3: Web3,
        private_key: Optional[str] = None,
        signature_prompt: Optional[SignaturePrompt] = None,
        abi: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Initialize the client.

        Args:
            web3: Connected Web3 instance
            private_key: Signer key; without it the client is read-only
            signature_prompt: Optional hook asked before each signature
            abi: Combined ABI; defaults to ERC20 + factory + pair + router
        """
        self.web3 = web3
        self._private_key = private_key
        self._account = Account.from_key(private_key) if private_key else None
        self._signature_prompt = signature_prompt
        self._abi = abi or load_combined_abi("ERC20", "UniswapV2Factory", "UniswapV2Pair", "UniswapV2Router02")

    @property
    def address(self) -> str:
        if self._account is None:
            raise ChainClientError("No signer configured; set WALLET_PRIVATE_KEY")
        return self._account.address

    def _contract(self, address: str) -> Any:
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=self._abi)

    @staticmethod
    def _normalize_arg(arg: Any) -> Any:
        # Router paths and address arguments must be checksummed
        if isinstance(arg, str) and Web3.is_address(arg):
            return Web3.to_checksum_address(arg)
        if isinstance(arg, (list, tuple)):
            return [Web3ChainClient._normalize_arg(a) for a in arg]
        return arg

    async def read_contract(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        try:
            contract = self._contract(address)
            call_args = [self._normalize_arg(a) for a in args]
            function = contract.functions[function_name](*call_args)
            return await asyncio.to_thread(function.call)
        except ContractLogicError as e:
            raise ChainClientError(f"{function_name} reverted on {address}: {e}") from e
        except READ_ERRORS as e:
            raise ChainClientError(f"{function_name} call on {address} failed: {e}") from e

    async def write_contract(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> TransactionHandle:
        if self._account is None:
            raise ChainClientError("No signer configured; set WALLET_PRIVATE_KEY")

        if self._signature_prompt is not None:
            approved = await self._signature_prompt(address, function_name, args, value)
            if not approved:
                raise UserRejectedError()

        contract = self._contract(address)
        call_args = [self._normalize_arg(a) for a in args]
        contract_function = contract.functions[function_name](*call_args)
        from_address = self._account.address

        try:
            gas_estimate = await asyncio.to_thread(
                contract_function.estimate_gas, {'from': from_address, 'value': Wei(value)}
            )
            gas_price = await asyncio.to_thread(lambda: self.web3.eth.gas_price)
            nonce = await asyncio.to_thread(self.web3.eth.get_transaction_count, from_address)
            chain_id = await asyncio.to_thread(lambda: self.web3.eth.chain_id)

            tx = contract_function.build_transaction({
                'from': from_address,
                'nonce': nonce,
                'gas': int(gas_estimate),
                'gasPrice': Wei(int(gas_price)),
                'chainId': chain_id,
                'value': Wei(value),
            })
            signed_tx = self.web3.eth.account.sign_transaction(tx, self._private_key)
            tx_hash = await asyncio.to_thread(self.web3.eth.send_raw_transaction, signed_tx.raw_transaction)
        except ContractLogicError as e:
            # Reverts during gas estimation never reach the mempool
            raise TransactionReverted(f"{function_name} would revert: {e}") from e
        except ChainClientError:
            raise
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejectedError(str(e)) from e
            raise ChainClientError(f"Failed to submit {function_name}: {e}") from e

        tx_hash_hex = tx_hash.hex()
        logger.info(f"Submitted {function_name} to {address}: {tx_hash_hex}")
        return TransactionHandle(tx_hash=tx_hash_hex)

    async def wait_for_confirmation(
        self,
        handle: TransactionHandle,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        try:
            receipt = await asyncio.to_thread(
                self.web3.eth.wait_for_transaction_receipt,
                handle.tx_hash,
                timeout if timeout is not None else 120,
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(
                f"No receipt for {handle.tx_hash} after {timeout}s", tx_hash=handle.tx_hash
            ) from e
        except READ_ERRORS as e:
            raise ChainClientError(f"Could not fetch receipt for {handle.tx_hash}: {e}") from e

        return TransactionReceipt(
            tx_hash=handle.tx_hash,
            status=int(receipt['status']),
            block_number=int(receipt['blockNumber']),
            gas_used=int(receipt.get('gasUsed', 0)),
        )

    async def get_native_balance(self, address: str) -> int:
        try:
            return int(await asyncio.to_thread(self.web3.eth.get_balance, Web3.to_checksum_address(address)))
        except READ_ERRORS as e:
            raise ChainClientError(f"Could not read native balance of {address}: {e}") from e

    async def get_block_number(self) -> int:
        try:
            return int(await asyncio.to_thread(lambda: self.web3.eth.block_number))
        except READ_ERRORS as e:
            raise ChainClientError(f"Could not read block number: {e}") from e

    async def get_logs(
        self,
        address: str,
        event_name: str,
        from_block: int,
        to_block: int,
    ) -> List[Dict[str, Any]]:
        try:
            event = getattr(self._contract(address).events, event_name)()
            logs = await asyncio.to_thread(event.get_logs, from_block=from_block, to_block=to_block)
        except READ_ERRORS as e:
            raise ChainClientError(f"Could not fetch {event_name} logs from {address}: {e}") from e
        return [
            {
                'args': dict(log['args']),
                'blockNumber': int(log['blockNumber']),
                'transactionHash': log['transactionHash'].hex(),
            }
            for log in logs
        ]
