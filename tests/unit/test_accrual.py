"""Unit tests for simple daily interest accrual"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pawn_gateway.domain.accrual import accrue_interest, round_half_up_cents

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_ten_days_at_24_percent():
    """1000.00 at 24% APR for 10 days -> 6.58"""
    result = accrue_interest(100_000, 24.0, START, START + timedelta(days=10))

    assert result.interest_delta_cents == 658
    assert result.whole_days == 10
    assert result.checkpoint == START + timedelta(days=10)


def test_less_than_a_day_is_a_no_op():
    now = START + timedelta(hours=23, minutes=59)
    result = accrue_interest(100_000, 24.0, START, now)

    assert result.interest_delta_cents == 0
    assert result.whole_days == 0
    assert result.checkpoint == START  # Checkpoint not advanced


def test_clock_behind_checkpoint_is_a_no_op():
    result = accrue_interest(100_000, 24.0, START, START - timedelta(days=2))

    assert result.interest_delta_cents == 0
    assert result.checkpoint == START


def test_partial_days_are_floored():
    """10.5 days counts as 10 whole days"""
    now = START + timedelta(days=10, hours=12)
    result = accrue_interest(100_000, 24.0, START, now)

    assert result.whole_days == 10
    assert result.interest_delta_cents == 658
    assert result.checkpoint == now


def test_repeat_call_with_same_instant_adds_nothing():
    now = START + timedelta(days=3)
    first = accrue_interest(50_000, 18.0, START, now)
    second = accrue_interest(50_000, 18.0, first.checkpoint, now)

    assert first.interest_delta_cents > 0
    assert second.interest_delta_cents == 0


def test_zero_principal_accrues_zero():
    result = accrue_interest(0, 24.0, START, START + timedelta(days=30))

    assert result.interest_delta_cents == 0
    assert result.whole_days == 30


def test_naive_datetimes_treated_as_utc():
    naive_start = START.replace(tzinfo=None)
    result = accrue_interest(100_000, 24.0, naive_start, START + timedelta(days=10))

    assert result.interest_delta_cents == 658


def test_round_half_up_cents():
    assert round_half_up_cents(Decimal("0.5")) == 1
    assert round_half_up_cents(Decimal("2.5")) == 3
    assert round_half_up_cents(Decimal("657.534")) == 658
    assert round_half_up_cents(Decimal("657.49")) == 657
