"""
Installment planning for multi-session courses.

A course of more than five sessions can be paid in installments. Each paid
installment unlocks the next fixed-size block of sessions; installment #1 is
the initiating purchase. The plan is computed once at purchase and pinned on
the booking, so later installments never depend on the course's current price.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING
from typing import Iterable, Optional, Union

from booking_engine.core.exceptions import InvalidAmountError, UnsupportedSessionCountError
from booking_engine.models.enums import InstallmentStatus

MIN_INSTALLMENT_SESSIONS = 6
MAX_INSTALLMENT_SESSIONS = 50

# (first session count, last session count, number of installments)
INSTALLMENT_BRACKETS = (
    (6, 10, 2),
    (11, 20, 4),
    (21, 50, 6),
)

CENT = Decimal("0.01")

Number = Union[int, float, Decimal, str]


@dataclass(frozen=True)
class InstallmentPlan:
    total_sessions: int
    total_price: Decimal
    num_installments: int
    sessions_per_installment: int
    amount_per_installment: Decimal

    @property
    def total_amount(self) -> Decimal:
        """What the student pays over the whole plan; never below total_price."""
        return self.amount_per_installment * self.num_installments

    @property
    def rounding_overshoot(self) -> Decimal:
        return self.total_amount - self.total_price

    def sessions_for(self, installment_number: int) -> range:
        """
        Session numbers unlocked by one installment (1-based).

        Every block has sessions_per_installment sessions except the last,
        which is capped to what remains and can be empty.
        """
        if not 1 <= installment_number <= self.num_installments:
            raise ValueError(
                f"installment_number must be in 1..{self.num_installments}, got {installment_number}"
            )
        first = (installment_number - 1) * self.sessions_per_installment + 1
        last = min(installment_number * self.sessions_per_installment, self.total_sessions)
        return range(first, last + 1)

    def sessions_unlocked_by(self, installment_number: int) -> int:
        return len(self.sessions_for(installment_number))


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def installment_count(total_sessions: int) -> Optional[int]:
    """Number of installments for a session count, None when the course is too short."""
    if total_sessions < MIN_INSTALLMENT_SESSIONS:
        return None
    for low, high, count in INSTALLMENT_BRACKETS:
        if low <= total_sessions <= high:
            return count
    raise UnsupportedSessionCountError(total_sessions)


def plan(total_sessions: int, total_price: Number) -> Optional[InstallmentPlan]:
    """
    Compute the installment schedule for a course.

    Returns None for courses of five sessions or fewer (full payment only).
    Courses above fifty sessions are rejected with UnsupportedSessionCountError
    instead of extrapolating the brackets.
    """
    count = installment_count(total_sessions)
    if count is None:
        return None

    price = _to_decimal(total_price)
    if price <= 0:
        raise InvalidAmountError(f"Course price must be positive, got {price}")

    sessions_per_installment = -(-total_sessions // count)
    # Round up to the minor unit so the installments cover the full price
    cents = (price * 100 / count).to_integral_value(rounding=ROUND_CEILING)
    amount = (cents / 100).quantize(CENT)

    return InstallmentPlan(
        total_sessions=total_sessions,
        total_price=price,
        num_installments=count,
        sessions_per_installment=sessions_per_installment,
        amount_per_installment=amount,
    )


def pinned_plan(booking) -> Optional[InstallmentPlan]:
    """Rebuild the plan stored on a booking at first purchase."""
    if not booking.is_installment:
        return None
    return InstallmentPlan(
        total_sessions=booking.total_sessions,
        total_price=_to_decimal(booking.amount),
        num_installments=booking.total_installments,
        sessions_per_installment=booking.sessions_per_installment,
        amount_per_installment=_to_decimal(booking.installment_amount),
    )


def next_installment_number(installments: Iterable) -> int:
    """
    Number of the next installment row.

    Installment #1 is the initiating purchase, so stored rows start at 2.
    Rejected rows do not count, which lets a rejected number be retried.
    """
    live = sum(1 for i in installments if i.status != InstallmentStatus.REJECTED)
    return live + 2


def fold_paid_sessions(
    initial_sessions_unlocked: int,
    installments: Iterable,
    total_sessions: Optional[int] = None,
) -> int:
    """
    Derive a booking's paid-session counter from its installment ledger.

    The counter is always recomputed from the rows, never incremented, so
    replaying a confirmation cannot unlock sessions twice.
    """
    paid = initial_sessions_unlocked + sum(
        i.sessions_unlocked for i in installments if i.status == InstallmentStatus.PAID
    )
    if total_sessions is not None:
        paid = min(paid, total_sessions)
    return paid
