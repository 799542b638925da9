"""Turns a swap request into an order with escrows (or transfers) on two chains.

Value moves in a fixed order: the user's tokens are pulled into resolver
custody on the source chain first, then the resolver commits on the
destination chain. Once the pull has confirmed, any later failure is a
:class:`PartialSettlementError`: the record is marked failed with the
partial flag set and every transaction reference gathered so far.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from attr import dataclass

from .adapters import ChainAdapter
from .config import AssetConfig, ResolverConfig
from .db import DIRECT_TRANSFER, ESCROW, OrderRecord, OrderRegistry
from .errors import (
    InsufficientAllowanceError,
    PartialSettlementError,
    ResolverError,
    RpcError,
    UnknownAssetError,
    UnsupportedOperationError,
)
from .models import SwapRequest
from .orders import (
    Order,
    compute_hash_lock,
    generate_salt,
    generate_secret,
    order_hash,
    to_base_units,
    to_hex,
)
from .state_machine import OrderStatus
from .timelocks import pack


@dataclass(frozen=True)
class SwapOutcome:
    order_hash: str
    hash_lock: str
    secret: str
    settlement_mode: str
    src_escrow: Optional[str] = None
    dst_escrow: Optional[str] = None
    src_tx_hash: Optional[str] = None
    dst_tx_hash: Optional[str] = None

    @property
    def atomic(self) -> bool:
        return self.settlement_mode == ESCROW


class SwapOrchestrator:
    def __init__(
        self,
        config: ResolverConfig,
        adapters: Dict[str, ChainAdapter],
        registry: OrderRegistry,
        clock=time.time,
    ):
        self.config = config
        self.adapters = adapters
        self.registry = registry
        self.clock = clock
        self.log = logging.getLogger("SwapOrchestrator")

    def _adapter(self, network: str) -> ChainAdapter:
        adapter = self.adapters.get(network)
        if adapter is None:
            raise UnsupportedOperationError(f"Unsupported network {network}")
        return adapter

    def _asset(self, network: str, token: str) -> AssetConfig:
        asset = self.config.networks[network].asset(token)
        if asset is None:
            raise UnknownAssetError(network, token)
        return asset

    def build_order(
        self, request: SwapRequest, src: ChainAdapter, dst: ChainAdapter
    ) -> Tuple[Order, AssetConfig, AssetConfig]:
        src_asset = self._asset(request.from_network, request.from_token)
        dst_asset = self._asset(request.to_network, request.to_token)
        order = Order(
            maker=src.normalize_address(request.user_address),
            maker_asset=src.normalize_address(src_asset.address),
            taker_asset=dst.normalize_address(dst_asset.address),
            making_amount=to_base_units(request.amount, src_asset.decimals),
            taking_amount=to_base_units(request.amount, dst_asset.decimals),
            receiver=dst.normalize_address(request.destination_address or request.user_address),
            salt=generate_salt(),
        )
        return order, src_asset, dst_asset

    async def process_swap_request(self, request: SwapRequest) -> SwapOutcome:
        if request.from_network == request.to_network:
            raise UnsupportedOperationError("Source and destination networks must be different")
        src = self._adapter(request.from_network)
        dst = self._adapter(request.to_network)

        self.log.info(
            f"Processing {request.amount} {request.from_token} ({request.from_network}) -> "
            f"{request.to_token} ({request.to_network}) for {request.user_address}"
        )

        secret = generate_secret()
        hash_lock = compute_hash_lock(secret)
        order, _, _ = self.build_order(request, src, dst)
        digest = order_hash(order)
        key = to_hex(digest)

        deployed_at = int(self.clock())
        record = OrderRecord(
            order_hash=key,
            order=order,
            hash_lock=hash_lock,
            secret=secret,
            from_network=request.from_network,
            to_network=request.to_network,
            src_time_locks=pack(deployed_at, self.config.src_time_locks),
            dst_time_locks=pack(deployed_at, self.config.dst_time_locks),
            created_at=self.clock(),
        )
        self.registry.add(record)
        self.log.info(f"📝 Order {key[:10]}… registered, hash lock {to_hex(hash_lock)[:10]}…")

        try:
            if src.supports_escrow() and dst.supports_escrow():
                await self._create_escrows(key, digest, record, src, dst)
            else:
                await self._direct_transfer(key, record, src, dst)
        except ResolverError as err:
            self._fail(key, err)
            raise
        except Exception as err:
            self.registry.update(
                key, status=OrderStatus.FAILED, error_kind="InternalError", error_message=str(err)
            )
            self.log.error(f"❌ Order {key[:10]}… failed: InternalError: {err}", exc_info=True)
            raise

        final = self.registry.update(key, status=OrderStatus.ESCROWS_CREATED)
        self.log.info(f"✅ Order {key[:10]}… {final.settlement_mode} legs in place")
        return SwapOutcome(
            order_hash=key,
            hash_lock=to_hex(hash_lock),
            secret=to_hex(secret),
            settlement_mode=final.settlement_mode,
            src_escrow=final.src_escrow_address,
            dst_escrow=final.dst_escrow_address,
            src_tx_hash=final.src_tx_hash,
            dst_tx_hash=final.dst_tx_hash,
        )

    def _fail(self, key: str, err: ResolverError) -> None:
        partial = isinstance(err, PartialSettlementError)
        self.registry.update(
            key,
            status=OrderStatus.FAILED,
            error_kind=err.kind,
            error_message=str(err),
            partial_settlement=partial,
        )
        if partial:
            self.log.error(f"⚠️  Order {key[:10]}… partially settled: {err}")
        else:
            self.log.warning(f"❌ Order {key[:10]}… failed: {err.kind}: {err}")

    async def _pull_deposit(self, key: str, order: Order, src: ChainAdapter) -> str:
        """Move the user's tokens into resolver custody on the source chain."""
        allowance = await src.get_allowance(order.maker_asset, order.maker, src.resolver_address)
        if allowance < order.making_amount:
            raise InsufficientAllowanceError(
                order.maker, src.resolver_address, allowance, order.making_amount
            )
        tx = await src.transfer_from(
            order.maker_asset, order.maker, src.resolver_address, order.making_amount
        )
        self.registry.update(key, deposit_tx_hash=tx)
        self.log.info(f"📤 Took {order.making_amount} units from {order.maker} on {src.name}: {tx}")
        return tx

    def _partial(self, key: str, step: str, err: Exception) -> PartialSettlementError:
        record = self.registry.get(key)
        src_ref = record.src_tx_hash or record.deposit_tx_hash
        return PartialSettlementError(
            f"Source funds held ({src_ref}) but {step} failed: {err}", src_ref, err
        )

    async def _create_escrows(
        self, key: str, digest: bytes, record: OrderRecord, src: ChainAdapter, dst: ChainAdapter
    ) -> None:
        order = record.order
        self.registry.update(key, settlement_mode=ESCROW, atomic=True)
        await self._pull_deposit(key, order, src)

        try:
            src_tx = await src.create_escrow(
                digest,
                order.maker_asset,
                order.making_amount,
                record.hash_lock,
                record.src_time_locks,
                depositor=order.maker,
                beneficiary=src.resolver_address,
                safety_deposit=self.config.src_safety_deposit,
            )
            self.registry.update(key, src_tx_hash=src_tx)
            self.log.info(f"✅ Source escrow created on {src.name}: {src_tx}")
        except Exception as err:
            raise self._partial(key, f"source escrow creation on {src.name}", err) from err

        try:
            dst_tx = await dst.create_escrow(
                digest,
                order.taker_asset,
                order.taking_amount,
                record.hash_lock,
                record.dst_time_locks,
                depositor=dst.resolver_address,
                beneficiary=order.receiver,
                safety_deposit=self.config.dst_safety_deposit,
            )
            self.registry.update(key, dst_tx_hash=dst_tx)
            self.log.info(f"✅ Destination escrow created on {dst.name}: {dst_tx}")
        except Exception as err:
            raise self._partial(key, f"destination escrow creation on {dst.name}", err) from err

        # Both legs are committed; a failed read-back only delays the monitor,
        # which looks the addresses up again before paying out.
        addresses = {}
        for field, adapter in (("src_escrow_address", src), ("dst_escrow_address", dst)):
            try:
                addresses[field] = await adapter.get_escrow(digest)
            except RpcError as err:
                self.log.warning(f"Could not read escrow address on {adapter.name}: {err}")
        self.registry.update(key, **addresses)
        self.log.info(
            f"📝 Escrow addresses - Source: {addresses.get('src_escrow_address')}, "
            f"Destination: {addresses.get('dst_escrow_address')}"
        )

    async def _direct_transfer(
        self, key: str, record: OrderRecord, src: ChainAdapter, dst: ChainAdapter
    ) -> None:
        order = record.order
        self.registry.update(key, settlement_mode=DIRECT_TRANSFER, atomic=False)
        self.log.info(f"🔧 {src.name} -> {dst.name} has no escrow on both sides, using direct transfer")
        deposit_tx = await self._pull_deposit(key, order, src)
        self.registry.update(key, src_tx_hash=deposit_tx)

        try:
            dst_tx = await dst.transfer(order.taker_asset, order.receiver, order.taking_amount)
        except Exception as err:
            raise self._partial(key, f"destination transfer on {dst.name}", err) from err
        self.registry.update(key, dst_tx_hash=dst_tx, dst_payout_tx=dst_tx)
        self.log.info(f"💸 Transferred {order.taking_amount} units to {order.receiver} on {dst.name}: {dst_tx}")
