import asyncio
import logging
import time
from typing import Dict, Optional

from .adapters import ChainAdapter
from .db import ESCROW, OrderRecord, OrderRegistry
from .errors import ResolverError, RpcError
from .orders import from_hex
from .state_machine import OrderStatus


class SecretRevealMonitor:
    """Periodically settles orders whose escrows have aged past the reveal delay.

    Each payout step is recorded as soon as it confirms, so a tick that fails
    halfway is resumed by the next one without repeating the finished step.
    Payout errors never fail an order: both parties' funds are already
    committed, so the monitor keeps retrying.
    """

    def __init__(
        self,
        registry: OrderRegistry,
        adapters: Dict[str, ChainAdapter],
        reveal_delay: float,
        interval: float = 30.0,
        retention: float = 0,
        clock=time.time,
    ):
        self.registry = registry
        self.adapters = adapters
        self.reveal_delay = reveal_delay
        self.interval = interval
        self.retention = retention
        self.clock = clock
        self.log = logging.getLogger("SecretRevealMonitor")
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        self.log.info(f"Monitoring orders every {self.interval}s (reveal delay {self.reveal_delay}s)")

    async def stop(self) -> None:
        """Stop scheduling ticks; a tick already in progress runs to completion."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        self.log.info("Monitor stopped")

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception as e:
                self.log.error(f"Monitor tick failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def is_due(self, record: OrderRecord, now: float) -> bool:
        return now - record.created_at > self.reveal_delay

    async def tick(self) -> int:
        """Run one pass over the registry. Returns the number of orders completed."""
        now = self.clock()
        completed = 0
        for record in self.registry.snapshot(OrderStatus.ESCROWS_CREATED):
            if not self.is_due(record, now):
                continue
            if await self.settle(record):
                completed += 1
        pruned = self.registry.prune(self.retention, now=now)
        if pruned:
            self.log.info(f"Evicted {len(pruned)} finished orders past retention")
        return completed

    async def settle(self, record: OrderRecord) -> bool:
        key = record.order_hash
        self.log.info(f"🔓 Revealing secret for order {key[:10]}…")
        try:
            if record.settlement_mode == ESCROW:
                await self._settle_escrows(record)
            else:
                await self._settle_direct(record)
        except ResolverError as err:
            self._record_failure(record, err.kind, err)
            self.log.warning(f"Payout for order {key[:10]}… failed, retrying next tick: {err}")
            return False
        except Exception as err:
            # other due orders still settle this tick
            self._record_failure(record, "InternalError", err)
            self.log.error(f"Payout for order {key[:10]}… raised unexpectedly: {err}", exc_info=True)
            return False

        self.registry.update(
            key,
            status=OrderStatus.COMPLETED,
            completed_at=self.clock(),
            secret=None,
            payout_attempts=record.payout_attempts + 1,
            last_payout_error=None,
        )
        self.log.info(f"✅ Order {key[:10]}… completed")
        return True

    def _record_failure(self, record: OrderRecord, kind: str, err: Exception) -> None:
        self.registry.update(
            record.order_hash,
            payout_attempts=record.payout_attempts + 1,
            last_payout_error=f"{kind}: {err}",
        )

    async def _escrow_address(self, record: OrderRecord, side: str) -> str:
        field = f"{side}_escrow_address"
        address = getattr(record, field)
        if address:
            return address
        network = record.from_network if side == "src" else record.to_network
        address = await self.adapters[network].get_escrow(from_hex(record.order_hash))
        if not address:
            raise RpcError(f"{side} escrow for {record.order_hash[:10]} not visible on {network} yet")
        self.registry.update(record.order_hash, **{field: address})
        return address

    async def _settle_escrows(self, record: OrderRecord) -> None:
        key = record.order_hash
        if record.dst_payout_tx is None:
            escrow = await self._escrow_address(record, "dst")
            tx = await self.adapters[record.to_network].withdraw(escrow, record.secret)
            self.registry.update(key, dst_payout_tx=tx)
            self.log.info(f"💰 Released destination escrow {escrow} on {record.to_network}: {tx}")
        if record.src_claim_tx is None:
            escrow = await self._escrow_address(record, "src")
            tx = await self.adapters[record.from_network].withdraw(escrow, record.secret)
            self.registry.update(key, src_claim_tx=tx)
            self.log.info(f"💰 Claimed source escrow {escrow} on {record.from_network}: {tx}")

    async def _settle_direct(self, record: OrderRecord) -> None:
        if record.dst_payout_tx is not None:
            return
        order = record.order
        tx = await self.adapters[record.to_network].transfer(
            order.taker_asset, order.receiver, order.taking_amount
        )
        self.registry.update(record.order_hash, dst_payout_tx=tx, dst_tx_hash=record.dst_tx_hash or tx)
        self.log.info(f"💸 Transferred {order.taking_amount} units to {order.receiver} on {record.to_network}: {tx}")
