"""Tests for the timelock codec."""

import pytest

from fusion_resolver.errors import ConfigurationError, EncodingError
from fusion_resolver.timelocks import UINT32_MAX, TimeLockSchedule, pack, unpack

SCHEDULE = TimeLockSchedule(
    finality_lock=30,
    private_withdrawal=60,
    public_withdrawal=120,
    private_cancellation=600,
    public_cancellation=900,
)


class TestPack:
    def test_slot_layout(self):
        packed = pack(1_700_000_000, SCHEDULE)

        assert packed & UINT32_MAX == 1_700_000_000
        assert (packed >> 32) & UINT32_MAX == 60
        assert (packed >> 64) & UINT32_MAX == 120
        assert (packed >> 96) & UINT32_MAX == 600
        assert (packed >> 128) & UINT32_MAX == 900
        assert packed >> 160 == 30

    def test_unpack_inverts_pack(self):
        deployed_at, schedule = unpack(pack(1_700_000_000, SCHEDULE))

        assert deployed_at == 1_700_000_000
        assert schedule == SCHEDULE

    def test_max_values_fit(self):
        full = TimeLockSchedule(*([UINT32_MAX] * 5))
        packed = pack(UINT32_MAX, full)

        assert packed == (1 << 192) - 1
        assert unpack(packed) == (UINT32_MAX, full)

    def test_offset_over_32_bits_rejected(self):
        with pytest.raises(EncodingError):
            pack(0, SCHEDULE._replace(public_cancellation=UINT32_MAX + 1))

    def test_deployed_at_over_32_bits_rejected(self):
        with pytest.raises(EncodingError):
            pack(1 << 32, SCHEDULE)

    def test_negative_rejected(self):
        with pytest.raises(EncodingError):
            pack(-1, SCHEDULE)


class TestUnpack:
    def test_bits_above_finality_slot_rejected(self):
        with pytest.raises(EncodingError):
            unpack(1 << 192)

    def test_non_uint256_rejected(self):
        with pytest.raises(EncodingError):
            unpack(-5)
        with pytest.raises(EncodingError):
            unpack(1 << 256)


class TestSchedule:
    def test_monotonic_schedule_is_valid(self):
        assert SCHEDULE.validate() is SCHEDULE

    def test_equal_neighbours_allowed(self):
        TimeLockSchedule(10, 10, 10, 10, 10).validate()

    def test_decreasing_offset_rejected(self):
        with pytest.raises(ConfigurationError, match="private_cancellation"):
            SCHEDULE._replace(private_cancellation=100).validate("src")

    def test_negative_offset_rejected(self):
        with pytest.raises(ConfigurationError):
            TimeLockSchedule(-1, 0, 0, 0, 0).validate()
