"""Pytest configuration and fixtures."""

import itertools
from typing import Dict, List, Optional, Tuple

import pytest

from fusion_resolver.adapters import ChainAdapter
from fusion_resolver.config import EVM, TRON, AssetConfig, NetworkConfig, ResolverConfig
from fusion_resolver.db import OrderRegistry
from fusion_resolver.models import SwapRequest
from fusion_resolver.orchestrator import SwapOrchestrator
from fusion_resolver.timelocks import TimeLockSchedule

USER = "0x" + "11" * 20
RECEIVER = "0x" + "33" * 20
RESOLVER = "0x" + "22" * 20
TRON_USER = "TLsV52sRDL79HXGGm9yzwKibb6BeruhUzy"
TRON_RESOLVER = "TXYZopYRdj2D9XRtbG411XZZ3kM5VkAeBf"

ALPHA_USDC = "0x" + "aa" * 20
BETA_USDC = "0x" + "bb" * 20
TRON_USDC = "TSdZwNqpHofzP6BsBKGQUWdBeJphLmF6id"

START = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(ChainAdapter):
    """In-memory adapter that records every call.

    ``failures`` maps a method name to the exception it raises until the
    entry is removed.
    """

    def __init__(self, network: NetworkConfig, resolver_address: str, escrow: bool = True):
        super().__init__(network, resolver_address)
        self.escrow = escrow
        self.allowance = 10**30
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.escrows: Dict[bytes, str] = {}
        self._seq = itertools.count(1)

    def supports_escrow(self) -> bool:
        return self.escrow

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))
        if method in self.failures:
            raise self.failures[method]

    def _tx(self, method: str) -> str:
        return f"{self.name}:{method}:{next(self._seq)}"

    def called(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    async def get_balance(self, address: str) -> int:
        self._record("get_balance", address)
        return 10**18

    async def get_token_balance(self, token: str, address: str) -> int:
        self._record("get_token_balance", token, address)
        return 10**12

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        self._record("get_allowance", token, owner, spender)
        return self.allowance

    async def approve(self, token: str, spender: str, amount: int) -> str:
        self._record("approve", token, spender, amount)
        return self._tx("approve")

    async def transfer(self, token: str, to: str, amount: int) -> str:
        self._record("transfer", token, to, amount)
        return self._tx("transfer")

    async def transfer_from(self, token: str, sender: str, to: str, amount: int) -> str:
        self._record("transfer_from", token, sender, to, amount)
        return self._tx("transfer_from")

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
        if not self.escrow:
            return await super().create_escrow(
                order_hash, asset, amount, hash_lock, time_locks, depositor, beneficiary, safety_deposit
            )
        self._record(
            "create_escrow",
            order_hash, asset, amount, hash_lock, time_locks, depositor, beneficiary, safety_deposit,
        )
        self.escrows[order_hash] = "0x" + f"{len(self.escrows) + 1:040x}"
        return self._tx("create_escrow")

    async def get_escrow(self, order_hash: bytes) -> Optional[str]:
        if not self.escrow:
            return await super().get_escrow(order_hash)
        self._record("get_escrow", order_hash)
        return self.escrows.get(order_hash)

    async def withdraw(self, escrow: str, secret: bytes) -> str:
        if not self.escrow:
            return await super().withdraw(escrow, secret)
        self._record("withdraw", escrow, secret)
        return self._tx("withdraw")


def _network(name: str, kind: str, chain_id: int, usdc: str, factory: Optional[str]) -> NetworkConfig:
    return NetworkConfig(
        name=name,
        display_name=name.title(),
        kind=kind,
        chain_id=chain_id,
        rpc_url=f"http://{name}.invalid",
        assets={"usdc": AssetConfig("USDC", usdc, 6)},
        escrow_factory=factory,
    )


@pytest.fixture
def config() -> ResolverConfig:
    return ResolverConfig(
        networks={
            "alpha": _network("alpha", EVM, 1, ALPHA_USDC, "0x" + "f1" * 20),
            "beta": _network("beta", EVM, 2, BETA_USDC, "0x" + "f2" * 20),
            "tron": _network("tron", TRON, 3, TRON_USDC, None),
        },
        src_time_locks=TimeLockSchedule(120, 300, 600, 900, 1200),
        dst_time_locks=TimeLockSchedule(60, 240, 480, 720, 960),
        src_safety_deposit=1000,
        dst_safety_deposit=2000,
        monitor_interval=0.01,
        order_retention=3600,
        approval_threshold=1000,
        approval_amount=10000,
    )


@pytest.fixture
def adapters(config) -> Dict[str, FakeAdapter]:
    return {
        "alpha": FakeAdapter(config.networks["alpha"], RESOLVER),
        "beta": FakeAdapter(config.networks["beta"], RESOLVER),
        "tron": FakeAdapter(config.networks["tron"], TRON_RESOLVER, escrow=False),
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> OrderRegistry:
    return OrderRegistry()


@pytest.fixture
def orchestrator(config, adapters, registry, clock) -> SwapOrchestrator:
    return SwapOrchestrator(config, adapters, registry, clock=clock)


def make_request(**overrides) -> SwapRequest:
    fields = {
        "from_network": "alpha",
        "to_network": "beta",
        "from_token": "USDC",
        "to_token": "USDC",
        "amount": "100",
        "user_address": USER,
        "destination_address": RECEIVER,
    }
    fields.update(overrides)
    return SwapRequest(**fields)
