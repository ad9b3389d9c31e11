"""
models.py
Roster and receipt records, plus the money helpers shared by the stores.

Records are plain dataclasses; the JSON/spreadsheet shape uses camelCase keys
(``totalFee``, ``batchTime``...) and is produced by ``to_dict``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
# Whole-number digits accepted for an amount
MAX_MONEY_DIGITS = 15


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_money(value: Any) -> Decimal:
    """Parse a non-negative amount. Raises ``ValueError`` for anything else."""
    if isinstance(value, bool) or value is None:
        raise ValueError("not a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("not a finite number")
    text = str(value).strip().replace(",", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a number") from None
    if not amount.is_finite():
        raise ValueError("not a finite number")
    if amount < 0:
        raise ValueError("must not be negative")
    if amount.adjusted() >= MAX_MONEY_DIGITS:
        raise ValueError("amount is too large")
    return amount


def format_money(value: Decimal) -> str:
    return str(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def remaining_balance(total_fee: Decimal, discount: Decimal, amount_paid: Decimal) -> Decimal:
    return max(ZERO, total_fee - discount - amount_paid)


def _money_or_zero(value: Any) -> Decimal:
    if value is None or str(value).strip() == "":
        return ZERO
    try:
        return parse_money(value)
    except ValueError:
        return ZERO


# attribute name -> external (JSON / spreadsheet header) name
STUDENT_COLUMNS = {
    "id": "id",
    "name": "name",
    "phone": "phone",
    "email": "email",
    "course": "course",
    "batch_time": "batchTime",
    "total_fee": "totalFee",
    "discount": "discount",
    "amount_paid": "amountPaid",
    "remaining_balance": "remainingBalance",
    "status": "status",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}
MONEY_ATTRS = ("total_fee", "discount", "amount_paid")


@dataclass
class Student:
    id: int
    name: str
    phone: str = ""
    email: str = ""
    course: str = ""
    batch_time: str = ""
    total_fee: Decimal = ZERO
    discount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    remaining_balance: str = "0.00"
    status: str = "active"
    created_at: str = ""
    updated_at: str = ""

    def recompute_balance(self) -> None:
        self.remaining_balance = format_money(
            remaining_balance(self.total_fee, self.discount, self.amount_paid)
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for attr, key in STUDENT_COLUMNS.items():
            value = getattr(self, attr)
            if attr in MONEY_ATTRS:
                value = float(value)
            out[key] = value
        return out

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Student":
        """Build a record from a stored row (spreadsheet cells or JSON)."""

        def text(key: str, default: str = "") -> str:
            value = row.get(key)
            return default if value is None else str(value)

        student = cls(
            id=int(row["id"]),
            name=text("name"),
            phone=text("phone"),
            email=text("email"),
            course=text("course"),
            batch_time=text("batchTime"),
            total_fee=_money_or_zero(row.get("totalFee")),
            discount=_money_or_zero(row.get("discount")),
            amount_paid=_money_or_zero(row.get("amountPaid")),
            status=text("status", "active") or "active",
            created_at=text("createdAt"),
            updated_at=text("updatedAt"),
        )
        stored = row.get("remainingBalance")
        if stored is None or str(stored).strip() == "":
            student.recompute_balance()
        else:
            student.remaining_balance = format_money(_money_or_zero(stored))
        return student


@dataclass(frozen=True)
class Receipt:
    receipt_id: str
    student_id: Any
    student_name: str
    student_email: str
    amount: str  # 2-decimal string, e.g. "400.00"
    description: str
    date: str
    file_name: str
    file_path: str
    generated_by: Optional[str] = None

    def to_dict(self, include_path: bool = True) -> dict[str, Any]:
        out = {
            "receiptId": self.receipt_id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "studentEmail": self.student_email,
            "amount": self.amount,
            "description": self.description,
            "date": self.date,
            "fileName": self.file_name,
            "generatedBy": self.generated_by,
        }
        if include_path:
            out["filePath"] = self.file_path
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Receipt":
        amount = data.get("amount")
        return cls(
            receipt_id=str(data["receiptId"]),
            student_id=data.get("studentId"),
            student_name=str(data.get("studentName") or ""),
            student_email=str(data.get("studentEmail") or ""),
            amount=format_money(_money_or_zero(amount)),
            description=str(data.get("description") or ""),
            date=str(data.get("date") or ""),
            file_name=str(data.get("fileName") or ""),
            file_path=str(data.get("filePath") or ""),
            generated_by=data.get("generatedBy"),
        )
