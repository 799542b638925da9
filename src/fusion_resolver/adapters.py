import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .config import EVM, TRON, NetworkConfig, ResolverConfig
from .errors import ConfigurationError, UnsupportedOperationError

log = logging.getLogger("adapters")


class ChainAdapter(ABC):
    """Capability set for one network.

    Every method that touches the chain is a coroutine. Writes return the
    transaction hash once the transaction is confirmed, and raise
    ``RpcError`` or ``RevertError`` otherwise. Escrow operations are only
    available when :meth:`supports_escrow` is true; degraded adapters raise
    ``UnsupportedOperationError`` for them.
    """

    def __init__(self, network: NetworkConfig, resolver_address: str):
        self.network = network
        self.resolver_address = resolver_address

    @property
    def name(self) -> str:
        return self.network.name

    def supports_escrow(self) -> bool:
        return False

    def normalize_address(self, address: str) -> str:
        return address

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance in the smallest unit (wei, sun)."""

    @abstractmethod
    async def get_token_balance(self, token: str, address: str) -> int:
        pass

    @abstractmethod
    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    async def approve(self, token: str, spender: str, amount: int) -> str:
        pass

    @abstractmethod
    async def transfer(self, token: str, to: str, amount: int) -> str:
        pass

    @abstractmethod
    async def transfer_from(self, token: str, sender: str, to: str, amount: int) -> str:
        pass

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
        raise UnsupportedOperationError(f"{self.name} has no escrow contract")

    async def get_escrow(self, order_hash: bytes) -> Optional[str]:
        raise UnsupportedOperationError(f"{self.name} has no escrow contract")

    async def withdraw(self, escrow: str, secret: bytes) -> str:
        raise UnsupportedOperationError(f"{self.name} has no escrow contract")

    async def cancel(self, escrow: str) -> str:
        raise UnsupportedOperationError(f"{self.name} has no escrow contract")


def build_adapters(config: ResolverConfig) -> Dict[str, ChainAdapter]:
    """Build one adapter per configured network."""
    adapters: Dict[str, ChainAdapter] = {}
    for name, network in config.networks.items():
        if network.kind == EVM:
            from .evm_adapter import EvmAdapter

            adapters[name] = EvmAdapter(
                network,
                private_key=config.evm_private_key,
                address=config.evm_address,
                tx_timeout=config.tx_timeout,
                escrow_gas_limit=config.escrow_gas_limit,
                transfer_gas_limit=config.transfer_gas_limit,
            )
        elif network.kind == TRON:
            from .tron_adapter import TronAdapter

            adapters[name] = TronAdapter(
                network,
                private_key=config.tron_private_key,
                address=config.tron_address,
                tx_timeout=config.tx_timeout,
                fee_limit=config.tron_fee_limit,
            )
        else:
            raise ConfigurationError(f"Network {name} has unknown kind {network.kind!r}")
        log.info(
            f"Initialized {name} adapter "
            f"({'escrow' if adapters[name].supports_escrow() else 'direct transfer'})"
        )
    return adapters
