"""
Student roster persisted as a single spreadsheet.

Every mutation reads the whole sheet, changes one record and writes the whole
sheet back. ``RosterStore`` serialises those cycles behind a per-store lock and
replaces the file atomically, so concurrent requests cannot lose each other's
writes and readers never observe a half-written workbook.
"""

from __future__ import annotations

import csv
import logging
import os
import random
import tempfile
import threading
import time
import zipfile
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from models import MONEY_ATTRS, STUDENT_COLUMNS, Student, format_money, parse_money, utc_now_iso
from utils.errors import EmptyError, NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

SHEET_NAME = "Students"
HEADERS = list(STUDENT_COLUMNS.values())
DEFAULT_REQUIRED_FIELDS = ("name", "phone", "email", "totalFee", "amountPaid")
SEARCH_KEYS = ("name", "email", "phone", "course")
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIMETYPE = "text/csv"

# Fields a caller may set; id and timestamps are owned by the store.
PATCHABLE = {
    attr: key for attr, key in STUDENT_COLUMNS.items() if attr not in ("id", "created_at", "updated_at")
}


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


@dataclass(frozen=True)
class StudentPatch:
    """Named optional fields merged over a record; ``None`` means "not provided"."""

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    course: Optional[str] = None
    batch_time: Optional[str] = None
    total_fee: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = None
    remaining_balance: Optional[Decimal] = None
    status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StudentPatch":
        """Map a camelCase JSON body onto a patch. Unknown keys are ignored."""
        values: dict[str, Any] = {}
        for attr, key in PATCHABLE.items():
            raw = payload.get(key)
            if raw is None:
                continue
            if attr in MONEY_ATTRS or attr == "remaining_balance":
                if _blank(raw):
                    continue
                try:
                    values[attr] = parse_money(raw)
                except ValueError as exc:
                    raise ValidationError(
                        f"{key} must be a non-negative number", code="InvalidValue", error=str(exc)
                    ) from None
            elif attr == "status" and _blank(raw):
                continue
            else:
                text = str(raw).strip()
                if ILLEGAL_CHARACTERS_RE.search(text):
                    raise ValidationError(f"{key} contains control characters", code="InvalidValue")
                values[attr] = text
        return cls(**values)

    def touches_fees(self) -> bool:
        return any(getattr(self, attr) is not None for attr in MONEY_ATTRS)

    def apply(self, student: Student, now: str, recompute: bool = False) -> Student:
        updated = replace(student)
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or f.name == "remaining_balance":
                continue
            setattr(updated, f.name, value)
        if self.remaining_balance is not None:
            updated.remaining_balance = format_money(self.remaining_balance)
        elif recompute or self.touches_fees():
            updated.recompute_balance()
        updated.updated_at = now
        return updated


class ExportFile(NamedTuple):
    content: bytes
    mimetype: str
    filename: str


def _row_values(student: Student) -> list[Any]:
    data = student.to_dict()
    return [data[h] for h in HEADERS]


def _workbook_for(students: Iterable[Student]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME
    ws.append(HEADERS)
    for s in students:
        ws.append(_row_values(s))
        # Text is stored as text, never as a formula
        for cell in ws[ws.max_row]:
            if isinstance(cell.value, str):
                cell.data_type = "s"
    return wb


class RosterStore:
    def __init__(self, path: str | os.PathLike, required_fields: Iterable[str] = DEFAULT_REQUIRED_FIELDS):
        self.path = Path(path)
        self.required_fields = tuple(required_fields)
        self._lock = threading.RLock()

    # ---------- persistence ----------
    def _read(self) -> list[Student]:
        if not self.path.exists():
            return []
        try:
            wb = load_workbook(self.path, read_only=True, data_only=True)
        except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
            logger.exception("Error reading students file %s", self.path)
            raise StorageError.wrap("Error reading students file", exc) from exc
        try:
            ws = wb[SHEET_NAME] if SHEET_NAME in wb.sheetnames else wb.worksheets[0]
            rows = ws.iter_rows(values_only=True)
            header = next(rows, None)
            if not header:
                return []
            keys = ["" if h is None else str(h).strip() for h in header]
            students: list[Student] = []
            for values in rows:
                if not values or all(_blank(v) for v in values):
                    continue
                try:
                    students.append(Student.from_row(dict(zip(keys, values))))
                except (KeyError, TypeError, ValueError) as exc:
                    raise StorageError.wrap("Malformed row in students file", exc) from exc
            return students
        finally:
            wb.close()

    def _write(self, students: list[Student]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        wb = _workbook_for(students)
        fd, tmp = tempfile.mkstemp(prefix=".students-", suffix=".xlsx", dir=str(self.path.parent))
        os.close(fd)
        try:
            wb.save(tmp)
            os.replace(tmp, self.path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            logger.exception("Error writing students file %s", self.path)
            raise StorageError.wrap("Error saving students file", exc) from exc
        logger.info("Saved %d students to %s", len(students), self.path)

    @staticmethod
    def _new_id(taken: set[int]) -> int:
        while True:
            candidate = int(time.time() * 1000) + random.randint(0, 999)
            if candidate not in taken:
                return candidate

    # ---------- queries ----------
    def list_all(self) -> list[Student]:
        with self._lock:
            return self._read()

    def get(self, student_id: int) -> Student:
        for s in self.list_all():
            if s.id == student_id:
                return s
        raise NotFoundError("Student not found", code="StudentNotFound")

    def search(self, query: Optional[str]) -> list[Student]:
        students = self.list_all()
        q = (query or "").strip().lower()
        if not q:
            return students
        matches = []
        for s in students:
            data = s.to_dict()
            if any(q in str(data.get(k) or "").lower() for k in SEARCH_KEYS):
                matches.append(s)
        return matches

    def export(self, fmt: Optional[str] = "xlsx") -> ExportFile:
        fmt = (fmt or "xlsx").strip().lower()
        if fmt not in ("xlsx", "csv"):
            raise ValidationError(f"Unsupported export format: {fmt}", code="UnsupportedFormat")
        students = self.list_all()
        if not students:
            raise EmptyError("No students found to export", code="NothingToExport")
        if fmt == "csv":
            output = StringIO()
            writer = csv.writer(output)
            writer.writerow(HEADERS)
            for s in students:
                writer.writerow(_row_values(s))
            return ExportFile(output.getvalue().encode("utf-8"), CSV_MIMETYPE, "students_export.csv")
        mem = BytesIO()
        _workbook_for(students).save(mem)
        return ExportFile(mem.getvalue(), XLSX_MIMETYPE, "students_export.xlsx")

    # ---------- mutations ----------
    def add(self, payload: Mapping[str, Any]) -> tuple[Student, int]:
        """Insert a student; returns the new record and the roster size."""
        missing = [key for key in self.required_fields if _blank(payload.get(key))]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", code="MissingRequiredFields"
            )
        patch = StudentPatch.from_payload(payload)
        now = utc_now_iso()
        with self._lock:
            students = self._read()
            fresh = Student(id=self._new_id({s.id for s in students}), name="", created_at=now)
            student = patch.apply(fresh, now, recompute=True)
            students.append(student)
            self._write(students)
            return student, len(students)

    def update(self, student_id: int, payload: Mapping[str, Any]) -> Student:
        blanked = [key for key in self.required_fields if key in payload and _blank(payload[key])]
        if blanked:
            raise ValidationError(
                f"Required fields cannot be blank: {', '.join(blanked)}", code="MissingRequiredFields"
            )
        patch = StudentPatch.from_payload(payload)
        with self._lock:
            students = self._read()
            for index, s in enumerate(students):
                if s.id == student_id:
                    updated = patch.apply(s, utc_now_iso())
                    students[index] = updated
                    self._write(students)
                    return updated
        raise NotFoundError("Student not found", code="StudentNotFound")

    def remove(self, student_id: int) -> int:
        """Delete a student; returns how many remain."""
        with self._lock:
            students = self._read()
            remaining = [s for s in students if s.id != student_id]
            if len(remaining) == len(students):
                raise NotFoundError("Student not found", code="StudentNotFound")
            self._write(remaining)
            return len(remaining)
