"""Unit tests for installment planning and the paid-session ledger."""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from booking_engine.core.exceptions import InvalidAmountError, UnsupportedSessionCountError
from booking_engine.domain.installments import (
    fold_paid_sessions,
    installment_count,
    next_installment_number,
    pinned_plan,
    plan,
)
from booking_engine.models.enums import InstallmentStatus


def _row(status: InstallmentStatus, sessions_unlocked: int = 3):
    return SimpleNamespace(status=status, sessions_unlocked=sessions_unlocked)


@pytest.mark.parametrize("sessions", [0, 1, 5])
def test_short_courses_are_paid_in_full(sessions):
    assert plan(sessions, Decimal("100")) is None


@pytest.mark.parametrize(
    "sessions, expected",
    [(6, 2), (10, 2), (11, 4), (20, 4), (21, 6), (50, 6)],
)
def test_bracket_boundaries(sessions, expected):
    assert installment_count(sessions) == expected


def test_more_than_fifty_sessions_unsupported():
    with pytest.raises(UnsupportedSessionCountError):
        plan(51, Decimal("500"))


def test_six_sessions():
    p = plan(6, Decimal("100"))
    assert p.num_installments == 2
    assert p.sessions_per_installment == 3
    assert p.amount_per_installment == Decimal("50.00")


def test_fifteen_sessions_last_block_is_capped():
    p = plan(15, Decimal("300"))
    assert p.num_installments == 4
    assert p.sessions_per_installment == 4
    assert p.amount_per_installment == Decimal("75.00")
    assert [p.sessions_unlocked_by(n) for n in range(1, 5)] == [4, 4, 4, 3]
    assert list(p.sessions_for(4)) == [13, 14, 15]


def test_twelve_sessions():
    p = plan(12, Decimal("240"))
    assert p.num_installments == 4
    assert p.sessions_per_installment == 3
    assert p.amount_per_installment == Decimal("60.00")
    assert p.rounding_overshoot == Decimal("0")


def test_amount_rounds_up_to_the_cent():
    p = plan(25, Decimal("100"))
    assert p.amount_per_installment == Decimal("16.67")
    assert p.total_amount == Decimal("100.02")
    assert p.rounding_overshoot == Decimal("0.02")
    assert p.total_amount >= p.total_price


def test_plan_may_end_with_an_empty_block():
    p = plan(25, Decimal("100"))
    assert p.sessions_per_installment == 5
    assert p.sessions_unlocked_by(5) == 5
    assert p.sessions_unlocked_by(6) == 0
    assert sum(p.sessions_unlocked_by(n) for n in range(1, 7)) == 25


def test_blocks_cover_every_session_exactly_once():
    for sessions in range(6, 51):
        p = plan(sessions, Decimal("123.45"))
        covered = [s for n in range(1, p.num_installments + 1) for s in p.sessions_for(n)]
        assert covered == list(range(1, sessions + 1))


def test_installment_number_out_of_range():
    p = plan(6, Decimal("100"))
    with pytest.raises(ValueError):
        p.sessions_for(3)


@pytest.mark.parametrize("price", [Decimal("0"), Decimal("-10")])
def test_non_positive_price_rejected(price):
    with pytest.raises(InvalidAmountError):
        plan(12, price)


def test_pinned_plan_ignores_current_price():
    booking = SimpleNamespace(
        is_installment=True,
        total_sessions=12,
        amount=Decimal("240.00"),
        total_installments=4,
        sessions_per_installment=3,
        installment_amount=Decimal("60.00"),
    )
    p = pinned_plan(booking)
    assert p.amount_per_installment == Decimal("60.00")
    assert p.sessions_unlocked_by(4) == 3


def test_pinned_plan_absent_for_full_payment():
    assert pinned_plan(SimpleNamespace(is_installment=False)) is None


def test_next_number_skips_rejected_rows():
    rows = [_row(InstallmentStatus.PAID), _row(InstallmentStatus.REJECTED)]
    assert next_installment_number([]) == 2
    assert next_installment_number(rows) == 3


def test_fold_counts_only_paid_rows():
    rows = [
        _row(InstallmentStatus.PAID),
        _row(InstallmentStatus.REJECTED),
        _row(InstallmentStatus.PENDING),
    ]
    assert fold_paid_sessions(3, rows, 12) == 6


def test_fold_is_capped_at_total_sessions():
    rows = [_row(InstallmentStatus.PAID, 5)] * 3
    assert fold_paid_sessions(5, rows, 12) == 12


def test_fold_is_stable_when_replayed():
    rows = [_row(InstallmentStatus.PAID)]
    first = fold_paid_sessions(3, rows, 12)
    assert fold_paid_sessions(3, rows, 12) == first
