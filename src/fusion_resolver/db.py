import threading
import time
from typing import Dict, List, Optional

import attr
from attr import dataclass

from .errors import OrderNotFoundError, ResolverError
from .orders import Order
from .state_machine import OrderStatus, SwapStateMachine

ESCROW = "escrow"
DIRECT_TRANSFER = "direct_transfer"


@dataclass
class OrderRecord:
    order_hash: str
    order: Order
    hash_lock: bytes
    secret: Optional[bytes]  # held by the resolver only, cleared on completion
    from_network: str
    to_network: str
    src_time_locks: int
    dst_time_locks: int
    created_at: float
    status: OrderStatus = OrderStatus.PENDING
    settlement_mode: Optional[str] = None
    atomic: bool = True
    completed_at: Optional[float] = None
    deposit_tx_hash: Optional[str] = None  # user funds pulled into resolver custody
    src_tx_hash: Optional[str] = None
    dst_tx_hash: Optional[str] = None
    src_escrow_address: Optional[str] = None
    dst_escrow_address: Optional[str] = None
    dst_payout_tx: Optional[str] = None
    src_claim_tx: Optional[str] = None
    payout_attempts: int = 0
    last_payout_error: Optional[str] = None
    partial_settlement: bool = False
    error_kind: Optional[str] = None
    error_message: Optional[str] = None


class OrderRegistry:
    """In-memory table of swap orders keyed by order hash.

    The registry owns every record. Readers get copies; all mutation goes
    through :meth:`update`, which validates the status transition under the
    same lock that applies the change.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Dict[str, OrderRecord] = {}
        self._fsm = SwapStateMachine()

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def __contains__(self, order_hash: str) -> bool:
        with self._lock:
            return order_hash in self._orders

    def add(self, record: OrderRecord) -> None:
        with self._lock:
            if record.order_hash in self._orders:
                raise ResolverError(f"Order {record.order_hash} already registered")
            self._orders[record.order_hash] = attr.evolve(record)

    def get(self, order_hash: str) -> Optional[OrderRecord]:
        with self._lock:
            record = self._orders.get(order_hash)
            return attr.evolve(record) if record is not None else None

    def update(self, order_hash: str, **changes) -> OrderRecord:
        with self._lock:
            record = self._orders.get(order_hash)
            if record is None:
                raise OrderNotFoundError(f"Order {order_hash} not found")
            if "status" in changes:
                self._fsm.check(order_hash, record.status, changes["status"])
            updated = attr.evolve(record, **changes)
            self._orders[order_hash] = updated
            return attr.evolve(updated)

    def snapshot(self, status: Optional[OrderStatus] = None) -> List[OrderRecord]:
        with self._lock:
            return [
                attr.evolve(r)
                for r in self._orders.values()
                if status is None or r.status == status
            ]

    def prune(self, retention: float, now: Optional[float] = None) -> List[str]:
        """Drop terminal orders that finished more than ``retention`` seconds ago."""
        if retention <= 0:
            return []
        cutoff = (now if now is not None else time.time()) - retention
        with self._lock:
            expired = [
                h
                for h, r in self._orders.items()
                if r.status.is_terminal and (r.completed_at or r.created_at) < cutoff
            ]
            for h in expired:
                del self._orders[h]
        return expired
