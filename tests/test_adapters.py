"""Tests for the concrete chain adapters that need no live node."""

from unittest.mock import MagicMock

import pytest
import requests
from eth_account import Account
from tronpy.exceptions import (
    ApiError,
    BadSignature,
    TaposError,
    TransactionNotFound,
    TvmError,
    UnknownError,
    ValidationError,
)
from tronpy.keys import PrivateKey, to_hex_address
from web3.exceptions import ContractLogicError, TimeExhausted

from fusion_resolver.adapters import build_adapters
from fusion_resolver.config import EVM, TRON, AssetConfig, NetworkConfig, ResolverConfig
from fusion_resolver.errors import (
    ConfigurationError,
    EncodingError,
    RevertError,
    RpcError,
    UnsupportedOperationError,
)
from fusion_resolver.evm_adapter import EvmAdapter
from fusion_resolver.timelocks import TimeLockSchedule
from fusion_resolver.tron_adapter import TronAdapter

TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
FACTORY = "0x" + "f1" * 20


def evm_network(factory=FACTORY) -> NetworkConfig:
    return NetworkConfig(
        name="sepolia",
        display_name="Ethereum Sepolia",
        kind=EVM,
        chain_id=11155111,
        rpc_url="http://127.0.0.1:1",
        assets={"usdc": AssetConfig("USDC", "0x" + "aa" * 20, 6)},
        escrow_factory=factory,
    )


def tron_network() -> NetworkConfig:
    return NetworkConfig(
        name="tron",
        display_name="Tron Shasta",
        kind=TRON,
        chain_id=2,
        rpc_url="http://127.0.0.1:1",
        assets={"usdc": AssetConfig("USDC", "TSdZwNqpHofzP6BsBKGQUWdBeJphLmF6id", 6)},
    )


class TestEvmAdapter:
    def test_escrow_capability_follows_factory(self):
        assert EvmAdapter(evm_network()).supports_escrow() is True
        assert EvmAdapter(evm_network(factory=None)).supports_escrow() is False

    def test_resolver_address_from_key(self):
        adapter = EvmAdapter(evm_network(), private_key=TEST_KEY)

        assert adapter.resolver_address == Account.from_key(TEST_KEY).address

    def test_normalize_address_checksums(self):
        adapter = EvmAdapter(evm_network())
        address = Account.from_key(TEST_KEY).address

        assert adapter.normalize_address(address.lower()) == address

    def test_malformed_address(self):
        with pytest.raises(EncodingError):
            EvmAdapter(evm_network()).normalize_address("TLsV52sRDL79HXGGm9yzwKibb6BeruhUzy")

    @pytest.mark.parametrize(
        "raised, expected",
        [
            (ContractLogicError("execution reverted: paused"), RevertError),
            (TimeExhausted("no receipt"), RpcError),
            (requests.ConnectionError("refused"), RpcError),
            (ConnectionRefusedError("refused"), RpcError),
        ],
    )
    def test_error_translation(self, raised, expected):
        adapter = EvmAdapter(evm_network())

        with pytest.raises(expected):
            adapter._translate("transfer", MagicMock(side_effect=raised))

    def test_revert_reason_kept(self):
        adapter = EvmAdapter(evm_network())

        with pytest.raises(RevertError) as exc_info:
            adapter._translate("transfer", MagicMock(side_effect=ContractLogicError("paused")))

        assert "paused" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_writes_need_a_key(self):
        adapter = EvmAdapter(evm_network())

        with pytest.raises(ConfigurationError):
            await adapter.transfer("0x" + "aa" * 20, "0x" + "bb" * 20, 1)

    @pytest.mark.asyncio
    async def test_escrow_operations_without_factory(self):
        adapter = EvmAdapter(evm_network(factory=None))

        with pytest.raises(UnsupportedOperationError):
            await adapter.create_escrow(b"\x00" * 32, "0x" + "aa" * 20, 1, b"\x00" * 32, 0, "", "")
        with pytest.raises(UnsupportedOperationError):
            await adapter.get_escrow(b"\x00" * 32)
        with pytest.raises(UnsupportedOperationError):
            await adapter.withdraw("0x" + "aa" * 20, b"\x00" * 32)


class TestTronAdapter:
    def test_never_escrow_capable(self):
        assert TronAdapter(tron_network()).supports_escrow() is False

    def test_resolver_address_from_key(self):
        key = PrivateKey.random()

        adapter = TronAdapter(tron_network(), private_key=key.hex())

        assert adapter.resolver_address == key.public_key.to_base58check_address()

    def test_normalize_hex_address(self):
        address = PrivateKey.random().public_key.to_base58check_address()
        adapter = TronAdapter(tron_network())

        assert adapter.normalize_address(to_hex_address(address)) == address
        assert adapter.normalize_address(address) == address

    def test_malformed_address(self):
        with pytest.raises(EncodingError):
            TronAdapter(tron_network()).normalize_address("not-an-address")

    @pytest.mark.parametrize(
        "raised, expected",
        [
            (TvmError("REVERT opcode executed"), RevertError),
            (TransactionNotFound("not found"), RpcError),
            (ApiError("rate limited"), RpcError),
            (ValidationError("CONTRACT_VALIDATE_ERROR: balance is not sufficient"), RevertError),
            (BadSignature("SIGERROR"), RevertError),
            (TaposError("TAPOS_ERROR"), RevertError),
            (UnknownError("SERVER_BUSY"), RpcError),
        ],
    )
    def test_error_translation(self, raised, expected):
        adapter = TronAdapter(tron_network())

        with pytest.raises(expected):
            adapter._translate("transfer", MagicMock(side_effect=raised))

    @pytest.mark.asyncio
    async def test_escrow_operations_unsupported(self):
        adapter = TronAdapter(tron_network())

        with pytest.raises(UnsupportedOperationError):
            await adapter.get_escrow(b"\x00" * 32)
        with pytest.raises(UnsupportedOperationError):
            await adapter.cancel("TSdZwNqpHofzP6BsBKGQUWdBeJphLmF6id")


class TestBuildAdapters:
    def test_one_adapter_per_network(self):
        config = ResolverConfig(
            networks={"sepolia": evm_network(), "tron": tron_network()},
            src_time_locks=TimeLockSchedule(1, 2, 3, 4, 5),
            dst_time_locks=TimeLockSchedule(1, 2, 3, 4, 5),
        )

        adapters = build_adapters(config)

        assert isinstance(adapters["sepolia"], EvmAdapter)
        assert isinstance(adapters["tron"], TronAdapter)

    def test_unknown_kind(self):
        network = NetworkConfig(
            name="sol", display_name="Solana", kind="svm", chain_id=0, rpc_url="", assets={}
        )
        config = ResolverConfig(
            networks={"sol": network},
            src_time_locks=TimeLockSchedule(1, 2, 3, 4, 5),
            dst_time_locks=TimeLockSchedule(1, 2, 3, 4, 5),
        )

        with pytest.raises(ConfigurationError):
            build_adapters(config)
