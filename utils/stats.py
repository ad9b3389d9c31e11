from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional

from models import ZERO, Receipt, Student, format_money, parse_money

UNASSIGNED = "Unassigned"


def _percent(part: Decimal, whole: Decimal) -> str:
    if whole <= 0:
        return "0.00%"
    return f"{format_money(part / whole * 100)}%"


def compute_roster_stats(students: Iterable[Student]) -> dict:
    """Aggregate fees, payments and course/batch distribution over a snapshot.

    ``totalFees`` is the gross fee and ``completionRate`` is paid over it.
    ``netFees`` (fees minus discounts) reconciles with ``totalPaid + totalBalance``
    when nobody has overpaid.
    """
    students = list(students)
    total_fees = ZERO
    net_fees = ZERO
    total_discount = ZERO
    total_paid = ZERO
    total_balance = ZERO
    courses: Counter[str] = Counter()
    batches: Counter[str] = Counter()
    statuses: Counter[str] = Counter()

    for s in students:
        total_fees += s.total_fee
        net_fees += s.total_fee - s.discount
        total_discount += s.discount
        total_paid += s.amount_paid
        total_balance += Decimal(s.remaining_balance or "0")
        courses[s.course.strip() or UNASSIGNED] += 1
        batches[s.batch_time.strip() or UNASSIGNED] += 1
        statuses[s.status or UNASSIGNED] += 1

    return {
        "totalStudents": len(students),
        "totalFees": format_money(total_fees),
        "totalDiscount": format_money(total_discount),
        "netFees": format_money(net_fees),
        "totalPaid": format_money(total_paid),
        "totalBalance": format_money(total_balance),
        "courseDistribution": dict(courses),
        "batchDistribution": dict(batches),
        "statusDistribution": dict(statuses),
        "completionRate": _percent(total_paid, total_fees),
    }


def compute_receipt_stats(receipts: Iterable[Receipt]) -> dict:
    receipts = list(receipts)
    total = sum((parse_money(r.amount) for r in receipts), ZERO)
    latest: Optional[str] = max((r.date for r in receipts if r.date), default=None)
    count = len(receipts)
    return {
        "totalReceipts": count,
        "totalAmount": format_money(total),
        "averageAmount": format_money(total / count) if count else "0.00",
        "uniqueStudents": len({str(r.student_id) for r in receipts}),
        "latestReceiptDate": latest,
    }
