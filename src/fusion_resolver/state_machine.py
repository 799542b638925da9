import enum
import logging

from .errors import InvalidTransitionError


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ESCROWS_CREATED = "escrows_created"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL


TERMINAL = frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED})

TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.ESCROWS_CREATED, OrderStatus.FAILED}),
    OrderStatus.ESCROWS_CREATED: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

STATUS_DESCRIPTIONS = {
    OrderStatus.PENDING: "Order created, preparing escrows",
    OrderStatus.ESCROWS_CREATED: "Escrows deployed, waiting for finality",
    OrderStatus.COMPLETED: "Atomic swap completed successfully",
    OrderStatus.FAILED: "Swap failed, funds can be recovered",
}


class SwapStateMachine:
    def __init__(self):
        self.log = logging.getLogger("FSM")

    def check(self, order_hash: str, current: OrderStatus, new: OrderStatus) -> None:
        if current == new:
            return
        if new not in TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Order {order_hash[:10]} cannot move from {current.value} to {new.value}"
            )
        self.log.info(f"Order {order_hash[:10]}… {current.value} -> {new.value}")
