import asyncio
import logging
import threading
from typing import Dict, Optional

import requests
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .adapters import ChainAdapter
from .config import NetworkConfig
from .errors import ConfigurationError, EncodingError, RevertError, RpcError
from .evm_utils import ERC20_ABI, ESCROW_ABI, ESCROW_FACTORY_ABI, ZERO_ADDRESS, _send_tx


class EvmAdapter(ChainAdapter):
    """Adapter for EVM networks, escrow-capable when an escrow factory is configured."""

    def __init__(
        self,
        network: NetworkConfig,
        private_key: str = "",
        address: str = "",
        tx_timeout: float = 120.0,
        escrow_gas_limit: int = 2_000_000,
        transfer_gas_limit: int = 1_000_000,
    ):
        self.account = Account.from_key(private_key) if private_key else None
        resolver_address = self.account.address if self.account else address
        super().__init__(network, Web3.to_checksum_address(resolver_address) if resolver_address else "")
        self.w3 = Web3(Web3.HTTPProvider(network.rpc_url, request_kwargs={"timeout": 60}))
        self.tx_timeout = tx_timeout
        self.escrow_gas_limit = escrow_gas_limit
        self.transfer_gas_limit = transfer_gas_limit
        self.log = logging.getLogger(f"EvmAdapter[{network.name}]")
        self._nonce_lock = threading.Lock()
        self._tokens: Dict[str, object] = {}
        self.factory = (
            self.w3.eth.contract(
                address=Web3.to_checksum_address(network.escrow_factory), abi=ESCROW_FACTORY_ABI
            )
            if network.escrow_factory
            else None
        )

    def supports_escrow(self) -> bool:
        return self.factory is not None

    def normalize_address(self, address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (ValueError, TypeError) as err:
            raise EncodingError(f"Malformed {self.name} address {address!r}") from err

    def _token(self, token: str):
        if token not in self._tokens:
            self._tokens[token] = self.w3.eth.contract(
                address=Web3.to_checksum_address(token), abi=ERC20_ABI
            )
        return self._tokens[token]

    def _translate(self, action: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ContractLogicError as err:
            reason = getattr(err, "message", None) or str(err)
            raise RevertError(f"{action} reverted on {self.name}: {reason}", reason=reason) from err
        except TimeExhausted as err:
            raise RpcError(f"{action} not confirmed on {self.name} within {self.tx_timeout}s") from err
        except (Web3Exception, requests.RequestException, OSError) as err:
            raise RpcError(f"{action} failed on {self.name}: {err}") from err

    async def _run(self, action: str, func, *args, **kwargs):
        return await asyncio.to_thread(self._translate, action, func, *args, **kwargs)

    async def _send(self, action: str, fn, value: int = 0, gas: Optional[int] = None) -> str:
        if self.account is None:
            raise ConfigurationError(f"No resolver key configured for {self.name}")
        receipt = await self._run(
            action,
            _send_tx,
            self.w3,
            self.account,
            fn,
            self.network.chain_id,
            self._nonce_lock,
            value=value,
            gas=gas or self.transfer_gas_limit,
            timeout=self.tx_timeout,
        )
        return Web3.to_hex(receipt["transactionHash"])

    async def get_balance(self, address: str) -> int:
        return await self._run("getBalance", self.w3.eth.get_balance, self.normalize_address(address))

    async def get_token_balance(self, token: str, address: str) -> int:
        fn = self._token(token).functions.balanceOf(self.normalize_address(address))
        return await self._run("balanceOf", fn.call)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        fn = self._token(token).functions.allowance(
            self.normalize_address(owner), self.normalize_address(spender)
        )
        return await self._run("allowance", fn.call)

    async def approve(self, token: str, spender: str, amount: int) -> str:
        fn = self._token(token).functions.approve(self.normalize_address(spender), amount)
        return await self._send("approve", fn)

    async def transfer(self, token: str, to: str, amount: int) -> str:
        fn = self._token(token).functions.transfer(self.normalize_address(to), amount)
        return await self._send("transfer", fn)

    async def transfer_from(self, token: str, sender: str, to: str, amount: int) -> str:
        fn = self._token(token).functions.transferFrom(
            self.normalize_address(sender), self.normalize_address(to), amount
        )
        return await self._send("transferFrom", fn)

    async def create_escrow(
        self,
        order_hash: bytes,
        asset: str,
        amount: int,
        hash_lock: bytes,
        time_locks: int,
        depositor: str,
        beneficiary: str,
        safety_deposit: int = 0,
    ) -> str:
        if self.factory is None:
            return await super().create_escrow(
                order_hash, asset, amount, hash_lock, time_locks, depositor, beneficiary, safety_deposit
            )
        fn = self.factory.functions.createEscrow(
            order_hash,
            self.normalize_address(asset),
            amount,
            hash_lock,
            time_locks,
            self.normalize_address(depositor),
            self.normalize_address(beneficiary),
        )
        return await self._send("createEscrow", fn, value=safety_deposit, gas=self.escrow_gas_limit)

    async def get_escrow(self, order_hash: bytes) -> Optional[str]:
        if self.factory is None:
            return await super().get_escrow(order_hash)
        address = await self._run("getEscrow", self.factory.functions.getEscrow(order_hash).call)
        return None if address == ZERO_ADDRESS else address

    async def withdraw(self, escrow: str, secret: bytes) -> str:
        if self.factory is None:
            return await super().withdraw(escrow, secret)
        contract = self.w3.eth.contract(address=self.normalize_address(escrow), abi=ESCROW_ABI)
        return await self._send("withdraw", contract.functions.withdraw(HexBytes(secret)))

    async def cancel(self, escrow: str) -> str:
        if self.factory is None:
            return await super().cancel(escrow)
        contract = self.w3.eth.contract(address=self.normalize_address(escrow), abi=ESCROW_ABI)
        return await self._send("cancel", contract.functions.cancel())
