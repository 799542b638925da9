import os
from typing import Dict, Optional

import dotenv
from attr import dataclass

from .errors import ConfigurationError
from .timelocks import TimeLockSchedule

EVM = "evm"
TRON = "tron"


@dataclass(frozen=True)
class AssetConfig:
    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    display_name: str
    kind: str
    chain_id: int
    rpc_url: str
    assets: Dict[str, AssetConfig]
    escrow_factory: Optional[str] = None
    api_key: Optional[str] = None

    def asset(self, token: str) -> Optional[AssetConfig]:
        return self.assets.get(token.lower())


@dataclass(frozen=True)
class ResolverConfig:
    networks: Dict[str, NetworkConfig]
    src_time_locks: TimeLockSchedule
    dst_time_locks: TimeLockSchedule
    evm_private_key: str = ""
    evm_address: str = ""
    tron_private_key: str = ""
    tron_address: str = ""
    src_safety_deposit: int = 10**15
    dst_safety_deposit: int = 10**15
    monitor_interval: float = 30.0
    tx_timeout: float = 120.0
    order_retention: float = 7 * 86400
    approval_threshold: int = 1000
    approval_amount: int = 10000
    escrow_gas_limit: int = 2_000_000
    transfer_gas_limit: int = 1_000_000
    tron_fee_limit: int = 100_000_000
    port: int = 3001

    @property
    def reveal_delay(self) -> int:
        """Seconds an order must age before its secret is used on-chain."""
        return max(self.src_time_locks.finality_lock, self.dst_time_locks.finality_lock)


def _usdc(address: str) -> Dict[str, AssetConfig]:
    return {"usdc": AssetConfig("USDC", address, 6)}


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from err


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as err:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from err


def _schedule(prefix: str, defaults: TimeLockSchedule) -> TimeLockSchedule:
    schedule = TimeLockSchedule(
        finality_lock=_int(f"{prefix}_FINALITY_LOCK", defaults.finality_lock),
        private_withdrawal=_int(f"{prefix}_PRIVATE_WITHDRAWAL", defaults.private_withdrawal),
        public_withdrawal=_int(f"{prefix}_PUBLIC_WITHDRAWAL", defaults.public_withdrawal),
        private_cancellation=_int(f"{prefix}_PRIVATE_CANCELLATION", defaults.private_cancellation),
        public_cancellation=_int(f"{prefix}_PUBLIC_CANCELLATION", defaults.public_cancellation),
    )
    return schedule.validate(prefix.lower())


DEFAULT_SRC_TIME_LOCKS = TimeLockSchedule(300, 600, 1200, 1800, 86400)
DEFAULT_DST_TIME_LOCKS = TimeLockSchedule(300, 600, 1200, 1800, 1800)


def default_networks() -> Dict[str, NetworkConfig]:
    return {
        "sepolia": NetworkConfig(
            name="sepolia",
            display_name="Ethereum Sepolia",
            kind=EVM,
            chain_id=11155111,
            rpc_url=os.getenv("SEPOLIA_RPC_URL", "https://ethereum-sepolia-rpc.publicnode.com"),
            assets=_usdc(os.getenv("SEPOLIA_USDC", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")),
            escrow_factory=os.getenv("SEPOLIA_ESCROW_FACTORY", "0xcBcFEe91Bbd4A12533Fc72a3D286B6d86ab2B9D5") or None,
        ),
        "tron": NetworkConfig(
            name="tron",
            display_name="Tron Shasta",
            kind=TRON,
            chain_id=2,
            rpc_url=os.getenv("TRON_FULL_NODE", "https://api.shasta.trongrid.io"),
            assets=_usdc(os.getenv("TRON_USDC", "TSdZwNqpHofzP6BsBKGQUWdBeJphLmF6id")),
            api_key=os.getenv("TRON_API_KEY") or None,
        ),
    }


def load_config() -> ResolverConfig:
    dotenv.load_dotenv()
    return ResolverConfig(
        networks=default_networks(),
        src_time_locks=_schedule("SRC", DEFAULT_SRC_TIME_LOCKS),
        dst_time_locks=_schedule("DST", DEFAULT_DST_TIME_LOCKS),
        evm_private_key=os.getenv("RESOLVER_PRIVATE_KEY", ""),
        evm_address=os.getenv("RESOLVER_ADDRESS", ""),
        tron_private_key=os.getenv("TRON_PRIVATE_KEY", ""),
        tron_address=os.getenv("TRON_RESOLVER_ADDRESS", ""),
        src_safety_deposit=_int("SRC_SAFETY_DEPOSIT", 10**15),
        dst_safety_deposit=_int("DST_SAFETY_DEPOSIT", 10**15),
        monitor_interval=_float("MONITOR_INTERVAL_SECONDS", 30.0),
        tx_timeout=_float("TX_TIMEOUT_SECONDS", 120.0),
        order_retention=_float("ORDER_RETENTION_SECONDS", 7 * 86400),
        approval_threshold=_int("APPROVAL_THRESHOLD", 1000),
        approval_amount=_int("APPROVAL_AMOUNT", 10000),
        port=_int("PORT", 3001),
    )
