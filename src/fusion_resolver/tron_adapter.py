import asyncio
import logging
from decimal import Decimal
from typing import Dict

import httpx
from tronpy import Tron
from tronpy.exceptions import (
    AddressNotFound,
    ApiError,
    BadAddress,
    BadSignature,
    TaposError,
    TransactionError,
    TransactionNotFound,
    TvmError,
    UnknownError,
    ValidationError,
)
from tronpy.keys import PrivateKey, to_base58check_address
from tronpy.providers import HTTPProvider

from .adapters import ChainAdapter
from .config import NetworkConfig
from .errors import ConfigurationError, EncodingError, RevertError, RpcError

SUN_PER_TRX = Decimal(1_000_000)


class TronAdapter(ChainAdapter):
    """TRC-20 adapter. No escrow contract is deployed on TRON, so this adapter
    only offers direct transfers and the orchestrator runs TRON legs in
    degraded mode."""

    def __init__(
        self,
        network: NetworkConfig,
        private_key: str = "",
        address: str = "",
        tx_timeout: float = 120.0,
        fee_limit: int = 100_000_000,
    ):
        self.private_key = PrivateKey(bytes.fromhex(private_key)) if private_key else None
        resolver_address = (
            self.private_key.public_key.to_base58check_address() if self.private_key else address
        )
        super().__init__(network, resolver_address)
        self.client = Tron(HTTPProvider(network.rpc_url, api_key=network.api_key))
        self.tx_timeout = tx_timeout
        self.fee_limit = fee_limit
        self.log = logging.getLogger(f"TronAdapter[{network.name}]")
        self._contracts: Dict[str, object] = {}

    def normalize_address(self, address: str) -> str:
        try:
            return to_base58check_address(address)
        except (BadAddress, ValueError, TypeError) as err:
            raise EncodingError(f"Malformed {self.name} address {address!r}") from err

    def _translate(self, action: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (TvmError, TransactionError, ValidationError, BadSignature, TaposError) as err:
            raise RevertError(f"{action} reverted on {self.name}: {err}", reason=str(err)) from err
        except TransactionNotFound as err:
            raise RpcError(f"{action} not confirmed on {self.name} within {self.tx_timeout}s") from err
        except (ApiError, UnknownError, httpx.HTTPError) as err:
            raise RpcError(f"{action} failed on {self.name}: {err}") from err

    async def _run(self, action: str, func, *args, **kwargs):
        return await asyncio.to_thread(self._translate, action, func, *args, **kwargs)

    def _contract(self, token: str):
        if token not in self._contracts:
            self._contracts[token] = self.client.get_contract(token)
        return self._contracts[token]

    def _read(self, token: str, method: str, *args):
        return getattr(self._contract(token).functions, method)(*args)

    def _write(self, token: str, method: str, *args) -> str:
        call = getattr(self._contract(token).functions, method)(*args)
        txn = (
            call.with_owner(self.resolver_address)
            .fee_limit(self.fee_limit)
            .build()
            .sign(self.private_key)
            .broadcast()
        )
        txn.result(timeout=self.tx_timeout)
        self.log.info(f"✓ {method} {txn.txid} confirmed")
        return txn.txid

    async def _send(self, action: str, token: str, *args) -> str:
        if self.private_key is None:
            raise ConfigurationError(f"No resolver key configured for {self.name}")
        return await self._run(action, self._write, token, action, *args)

    def _native_balance(self, address: str) -> int:
        try:
            return int(self.client.get_account_balance(address) * SUN_PER_TRX)
        except AddressNotFound:
            # accounts only exist on-chain once they have received TRX
            return 0

    async def get_balance(self, address: str) -> int:
        return await self._run("getBalance", self._native_balance, self.normalize_address(address))

    async def get_token_balance(self, token: str, address: str) -> int:
        return await self._run("balanceOf", self._read, token, "balanceOf", self.normalize_address(address))

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return await self._run(
            "allowance",
            self._read,
            token,
            "allowance",
            self.normalize_address(owner),
            self.normalize_address(spender),
        )

    async def approve(self, token: str, spender: str, amount: int) -> str:
        return await self._send("approve", token, self.normalize_address(spender), amount)

    async def transfer(self, token: str, to: str, amount: int) -> str:
        return await self._send("transfer", token, self.normalize_address(to), amount)

    async def transfer_from(self, token: str, sender: str, to: str, amount: int) -> str:
        return await self._send(
            "transferFrom", token, self.normalize_address(sender), self.normalize_address(to), amount
        )
