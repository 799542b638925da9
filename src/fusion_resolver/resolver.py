import logging
from typing import Dict, Optional

from .adapters import ChainAdapter
from .config import ResolverConfig
from .db import OrderRecord, OrderRegistry
from .errors import ResolverError
from .models import (
    NetworkInfo,
    OrderStatusView,
    OrderSummary,
    SupportedView,
    SwapRequest,
    SwapResult,
)
from .monitor import SecretRevealMonitor
from .orchestrator import SwapOrchestrator
from .orders import to_hex
from .state_machine import STATUS_DESCRIPTIONS, OrderStatus


class Resolver:
    """Entry point used by the HTTP layer.

    Owns the registry and wires the orchestrator and the monitor to the same
    adapter mapping. Nothing here is process-global: a second ``Resolver``
    built from another config is fully independent.
    """

    def __init__(self, config: ResolverConfig, adapters: Dict[str, ChainAdapter], clock=None):
        self.config = config
        self.adapters = adapters
        self.registry = OrderRegistry()
        extra = {"clock": clock} if clock is not None else {}
        self.orchestrator = SwapOrchestrator(config, adapters, self.registry, **extra)
        self.monitor = SecretRevealMonitor(
            self.registry,
            adapters,
            reveal_delay=config.reveal_delay,
            interval=config.monitor_interval,
            retention=config.order_retention,
            **extra,
        )
        self.log = logging.getLogger("resolver")

    async def start(self) -> None:
        self.log.info("🚀 Starting Fusion+ resolver")
        await self.check_balances()
        await self.check_approvals()
        self.monitor.start()
        self.log.info("✅ Resolver is running and monitoring for orders")

    async def stop(self) -> None:
        await self.monitor.stop()
        self.log.info("⏹️ Resolver stopped")

    async def check_balances(self) -> None:
        for name, adapter in self.adapters.items():
            if not adapter.resolver_address:
                self.log.warning(f"{name.upper()}: no resolver address configured")
                continue
            try:
                native = await adapter.get_balance(adapter.resolver_address)
                self.log.info(f"{name.upper()} native balance: {native}")
                for asset in self.config.networks[name].assets.values():
                    balance = await adapter.get_token_balance(asset.address, adapter.resolver_address)
                    self.log.info(f"{name.upper()} {asset.symbol}: {balance / 10 ** asset.decimals}")
            except ResolverError as e:
                self.log.error(f"Error checking {name} balance: {e}")

    async def check_approvals(self) -> None:
        """Make sure each escrow factory can pull the resolver's tokens."""
        for name, adapter in self.adapters.items():
            network = self.config.networks[name]
            if not adapter.supports_escrow() or not adapter.resolver_address:
                continue
            for asset in network.assets.values():
                unit = 10 ** asset.decimals
                try:
                    allowance = await adapter.get_allowance(
                        asset.address, adapter.resolver_address, network.escrow_factory
                    )
                    self.log.info(f"{name.upper()} {asset.symbol} -> EscrowFactory: {allowance / unit}")
                    if allowance < self.config.approval_threshold * unit:
                        self.log.info(f"  Approving {asset.symbol} on {name}...")
                        await adapter.approve(
                            asset.address, network.escrow_factory, self.config.approval_amount * unit
                        )
                        self.log.info(f"  ✅ Approved {asset.symbol} on {name}")
                except ResolverError as e:
                    self.log.error(f"Error checking {name} approvals: {e}")

    async def process_swap_request(self, request: SwapRequest) -> SwapResult:
        try:
            outcome = await self.orchestrator.process_swap_request(request)
        except ResolverError as err:
            return SwapResult(success=False, error_kind=err.kind, error=str(err))
        except Exception as err:
            self.log.exception(f"Unexpected error processing swap request: {err}")
            return SwapResult(success=False, error_kind="InternalError", error=str(err))
        message = (
            "Cross-chain escrows created successfully"
            if outcome.atomic
            else "Direct transfer completed (non-atomic degraded mode)"
        )
        return SwapResult(
            success=True,
            order_hash=outcome.order_hash,
            hash_lock=outcome.hash_lock,
            secret=outcome.secret,
            src_escrow=outcome.src_escrow,
            dst_escrow=outcome.dst_escrow,
            src_tx_hash=outcome.src_tx_hash,
            dst_tx_hash=outcome.dst_tx_hash,
            settlement_mode=outcome.settlement_mode,
            atomic=outcome.atomic,
            message=message,
        )

    def get_order_status(self, order_hash: str) -> Optional[OrderStatusView]:
        record = self.registry.get(order_hash.lower())
        if record is None:
            return None
        return _status_view(record)

    def get_all_orders(self) -> Dict[str, OrderSummary]:
        return {
            r.order_hash: OrderSummary(
                status=r.status.value,
                from_network=r.from_network,
                to_network=r.to_network,
                created_at=r.created_at,
                completed_at=r.completed_at,
                partial_settlement=r.partial_settlement,
            )
            for r in self.registry.snapshot()
        }

    def supported(self) -> SupportedView:
        networks = {
            name: NetworkInfo(
                name=network.display_name,
                chain_id=network.chain_id,
                escrow=self.adapters[name].supports_escrow(),
                tokens=[a.symbol for a in network.assets.values()],
            )
            for name, network in self.config.networks.items()
            if name in self.adapters
        }
        pairs = []
        for src, src_info in networks.items():
            for dst, dst_info in networks.items():
                common = sorted(set(src_info.tokens) & set(dst_info.tokens))
                if src != dst and common:
                    pairs.append({"from": src, "to": dst, "tokens": common})
        return SupportedView(networks=networks, pairs=pairs)


def _status_view(record: OrderRecord) -> OrderStatusView:
    description = STATUS_DESCRIPTIONS[record.status]
    if record.partial_settlement:
        description = "Partially settled: source funds held by the resolver, operator action required"
    elif not record.atomic and record.status == OrderStatus.ESCROWS_CREATED:
        description = "Direct transfer sent, awaiting finality (non-atomic)"
    return OrderStatusView(
        order_hash=record.order_hash,
        status=record.status.value,
        status_description=description,
        hash_lock=to_hex(record.hash_lock),
        from_network=record.from_network,
        to_network=record.to_network,
        settlement_mode=record.settlement_mode,
        atomic=record.atomic,
        partial_settlement=record.partial_settlement,
        created_at=record.created_at,
        completed_at=record.completed_at,
        deposit_tx_hash=record.deposit_tx_hash,
        src_tx_hash=record.src_tx_hash,
        dst_tx_hash=record.dst_tx_hash,
        src_escrow_address=record.src_escrow_address,
        dst_escrow_address=record.dst_escrow_address,
        dst_payout_tx=record.dst_payout_tx,
        src_claim_tx=record.src_claim_tx,
        payout_attempts=record.payout_attempts,
        last_payout_error=record.last_payout_error,
        error_kind=record.error_kind,
        error_message=record.error_message,
    )
