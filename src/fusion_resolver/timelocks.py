from typing import NamedTuple, Tuple

from .errors import ConfigurationError, EncodingError

UINT32_MAX = (1 << 32) - 1

# Slot order inside the packed value, 32 bits each starting at bit 0.
# Finality lock sits above the four withdrawal/cancellation offsets so that
# contracts reading only the low 160 bits still see the classic layout.
SLOTS = (
    "deployed_at",
    "private_withdrawal",
    "public_withdrawal",
    "private_cancellation",
    "public_cancellation",
    "finality_lock",
)


class TimeLockSchedule(NamedTuple):
    """Offsets in seconds relative to escrow deployment, for one side of a swap."""

    finality_lock: int
    private_withdrawal: int
    public_withdrawal: int
    private_cancellation: int
    public_cancellation: int

    def validate(self, side: str = "") -> "TimeLockSchedule":
        prefix = f"{side} " if side else ""
        previous_name, previous = None, 0
        for name, value in zip(self._fields, self):
            if not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{prefix}timelock {name} must be a non-negative integer, got {value!r}")
            if value < previous:
                raise ConfigurationError(
                    f"{prefix}timelock {name} ({value}s) precedes {previous_name} ({previous}s)"
                )
            previous_name, previous = name, value
        return self


def _check_u32(name: str, value: int) -> int:
    if not isinstance(value, int) or value < 0 or value > UINT32_MAX:
        raise EncodingError(f"{name}={value!r} does not fit in 32 unsigned bits")
    return value


def pack(deployed_at: int, offsets: TimeLockSchedule) -> int:
    """Pack a deployment timestamp and its schedule into one uint256."""
    values = (
        deployed_at,
        offsets.private_withdrawal,
        offsets.public_withdrawal,
        offsets.private_cancellation,
        offsets.public_cancellation,
        offsets.finality_lock,
    )
    packed = 0
    for i, (name, value) in enumerate(zip(SLOTS, values)):
        packed |= _check_u32(name, value) << (i * 32)
    return packed


def unpack(packed: int) -> Tuple[int, TimeLockSchedule]:
    if not isinstance(packed, int) or packed < 0 or packed >> 256:
        raise EncodingError(f"packed timelocks {packed!r} is not a uint256")
    if packed >> (len(SLOTS) * 32):
        raise EncodingError("packed timelocks has bits set above the finality slot")
    fields = {name: (packed >> (i * 32)) & UINT32_MAX for i, name in enumerate(SLOTS)}
    deployed_at = fields.pop("deployed_at")
    return deployed_at, TimeLockSchedule(**fields)
