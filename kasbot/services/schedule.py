"""Installment schedules, late fees and payoff projections.

Everything here is pure: no store access, no clock. Callers pass ``today``.
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date

from kasbot.models.schemas import Installment, Loan


def add_months(start: date, months: int, day: int | None = None) -> date:
    """Shift ``start`` by whole months and set the day, clamped to month end.

    ``day`` defaults to the day of ``start``; 31 in a 30-day month lands on
    the 30th rather than spilling into the next month.
    """
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day or start.day, last_day))


def generate_schedule(
    total_installments: int,
    monthly_amount: float,
    due_day: int,
    start_date: date,
) -> list[Installment]:
    if total_installments < 1:
        raise ValueError("total_installments must be at least 1")
    if not 1 <= due_day <= 31:
        raise ValueError("due_day must be between 1 and 31")
    return [
        Installment(
            installment_no=i,
            amount=monthly_amount,
            due_date=add_months(start_date, i, due_day),
        )
        for i in range(1, total_installments + 1)
    ]


def days_late(due_date: date, today: date) -> int:
    """Whole days past due; zero or negative when not yet overdue."""
    return (today - due_date).days


def late_fee(fee_type: str, value: float, amount: float, days_late: int) -> float:
    """Penalty accrued on one installment ``days_late`` days past due.

    ``percent_monthly`` charges a full month for every started 30-day block.
    """
    if days_late <= 0:
        return 0.0
    if fee_type == "percent_monthly":
        return amount * (value / 100) * math.ceil(days_late / 30)
    if fee_type == "percent_daily":
        return amount * (value / 100) * days_late
    if fee_type == "fixed":
        return float(value)
    return 0.0


def next_open_installment(loan: Loan) -> Installment | None:
    open_ones = [inst for inst in loan.installments if inst.is_open]
    if not open_ones:
        return None
    return min(open_ones, key=lambda inst: inst.installment_no)


@dataclass
class OverdueCharge:
    loan: Loan
    installment: Installment
    days_late: int
    fee: float

    @property
    def total(self) -> float:
        return self.installment.amount + self.fee


def overdue_charges(loans: list[Loan], today: date) -> list[OverdueCharge]:
    """Every open installment of an active loan whose due date has passed."""
    charges = []
    for loan in loans:
        if loan.status != "active":
            continue
        for inst in loan.installments:
            if not inst.is_open:
                continue
            late = days_late(inst.due_date, today)
            if late > 0:
                fee = late_fee(loan.late_fee_type, loan.late_fee_value, inst.amount, late)
                charges.append(OverdueCharge(loan=loan, installment=inst, days_late=late, fee=fee))
    return charges


@dataclass
class LoanProgress:
    loan: Loan
    paid_count: int
    paid_amount: float
    late_fees_paid: float
    remaining_amount: float
    percent: int
    next_due: date | None
    first_paid: date | None = None
    last_paid: date | None = None

    @property
    def total_debt(self) -> float:
        """Total repayable; falls back to the schedule sum when interest is unknown."""
        if self.loan.total_with_interest > 0:
            return self.loan.total_with_interest
        return self.loan.monthly_amount * self.loan.total_installments

    @property
    def months_left(self) -> int:
        if self.loan.monthly_amount <= 0 or self.remaining_amount <= 0:
            return 0
        return math.ceil(self.remaining_amount / self.loan.monthly_amount)


def loan_progress(loan: Loan) -> LoanProgress:
    paid = [inst for inst in loan.installments if inst.status == "paid"]
    unpaid = [inst for inst in loan.installments if inst.status != "paid"]
    paid_dates = sorted(inst.paid_date for inst in paid if inst.paid_date)
    next_due = min((inst.due_date for inst in unpaid), default=None)
    percent = round(loan.paid_installments / loan.total_installments * 100)
    return LoanProgress(
        loan=loan,
        paid_count=loan.paid_installments,
        paid_amount=sum(inst.paid_amount or inst.amount for inst in paid),
        late_fees_paid=sum(inst.late_fee for inst in paid),
        # Fees on future installments are only realised when paid
        remaining_amount=sum(inst.amount for inst in unpaid),
        percent=percent,
        next_due=next_due,
        first_paid=paid_dates[0] if paid_dates else None,
        last_paid=paid_dates[-1] if paid_dates else None,
    )


@dataclass
class PayoffProjection:
    loans: list[LoanProgress] = field(default_factory=list)
    total_debt: float = 0
    paid_amount: float = 0
    late_fees_paid: float = 0
    remaining_amount: float = 0
    paid_installments: int = 0
    total_installments: int = 0
    monthly_obligation: float = 0
    months_left: int | None = None
    payoff_date: date | None = None

    @property
    def percent(self) -> int:
        if self.total_installments == 0:
            return 0
        return round(self.paid_installments / self.total_installments * 100)

    @property
    def active(self) -> list[LoanProgress]:
        return [p for p in self.loans if p.loan.status == "active"]

    @property
    def paid_off(self) -> list[LoanProgress]:
        return [p for p in self.loans if p.loan.status == "paid_off"]


def payoff_projection(loans: list[Loan], today: date) -> PayoffProjection:
    """Aggregate progress over all loans and a linear payoff estimate.

    The estimate is ``today + ceil(remaining / monthly obligation)`` months,
    assuming no further lateness and no prepayment.
    """
    projection = PayoffProjection(loans=[loan_progress(loan) for loan in loans])
    for progress in projection.loans:
        projection.total_debt += progress.total_debt
        projection.paid_amount += progress.paid_amount
        projection.late_fees_paid += progress.late_fees_paid
        projection.paid_installments += progress.paid_count
        projection.total_installments += progress.loan.total_installments

    active = projection.active
    projection.remaining_amount = sum(p.remaining_amount for p in active)
    projection.monthly_obligation = sum(p.loan.monthly_amount for p in active)
    if projection.remaining_amount > 0 and projection.monthly_obligation > 0:
        projection.months_left = math.ceil(projection.remaining_amount / projection.monthly_obligation)
        projection.payoff_date = add_months(today, projection.months_left)
    return projection
