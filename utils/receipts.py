"""
Payment receipts: PDF rendering (reportlab), the JSON ledger that indexes
them, and the lookups used by download/view/email.

Lookup policy: for serving a document the file on disk is the primary truth
(``receipt_<id>.pdf`` in the receipts dir), with the ledger's ``filePath`` as
fallback. Listing and statistics read the ledger only.
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
import string
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any, Mapping, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from models import Receipt, format_money, parse_money
from utils.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Course Fee Payment"
LEDGER_FILE_NAME = "receipts.json"
RECEIPT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_receipt_id(now: Optional[float] = None) -> str:
    """``REC<ms timestamp>_<9 random base36 chars>``."""
    ms = int((now if now is not None else time.time()) * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"REC{ms}_{suffix}"


def receipt_file_name(receipt_id: str) -> str:
    return f"receipt_{receipt_id}.pdf"


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


@dataclass(frozen=True)
class Branding:
    name: str = "Training Institute"
    tagline: str = "Payment Receipt"
    address: str = ""
    phone: str = ""
    email: str = ""
    currency: str = "$"
    color: str = "#2c3e50"

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "Branding":
        return cls(
            name=cfg.get("BRAND_NAME") or cls.name,
            tagline=cfg.get("BRAND_TAGLINE") or cls.tagline,
            address=cfg.get("BRAND_ADDRESS") or "",
            phone=cfg.get("SUPPORT_PHONE") or "",
            email=cfg.get("SUPPORT_EMAIL") or "",
            currency=cfg.get("CURRENCY_SYMBOL") or "$",
            color=cfg.get("BRAND_COLOR") or cls.color,
        )


def render_receipt_pdf(receipt: Receipt, branding: Branding, issued_at: datetime) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    x = 20 * mm
    right = width - 20 * mm
    y = height - 25 * mm

    brand = colors.HexColor(branding.color)
    muted = colors.HexColor("#7f8c8d")
    accent = colors.HexColor("#3498db")
    success = colors.HexColor("#27ae60")

    # Header
    c.setFillColor(brand)
    c.setFont("Helvetica-Bold", 24)
    c.drawCentredString(width / 2, y, branding.name.upper())
    y -= 10 * mm
    c.setFillColor(muted)
    c.setFont("Helvetica", 15)
    c.drawCentredString(width / 2, y, branding.tagline)
    y -= 8 * mm
    c.setStrokeColor(accent)
    c.setLineWidth(2)
    c.line(x, y, right, y)
    y -= 12 * mm

    def draw_kv(label: str, value: str):
        nonlocal y
        c.setFillColor(brand)
        c.setFont("Helvetica-Bold", 12)
        c.drawString(x, y, label)
        c.setFont("Helvetica", 12)
        c.drawString(x + 35 * mm, y, value)
        y -= 7 * mm

    def draw_section(title: str):
        nonlocal y
        y -= 5 * mm
        c.setFillColor(brand)
        c.setFont("Helvetica-Bold", 13)
        c.drawString(x, y, title)
        c.setLineWidth(0.5)
        c.setStrokeColor(brand)
        c.line(x, y - 1.5 * mm, x + c.stringWidth(title, "Helvetica-Bold", 13), y - 1.5 * mm)
        y -= 9 * mm

    draw_kv("Receipt ID:", receipt.receipt_id)
    draw_kv("Date:", issued_at.strftime("%A, %B %d, %Y %I:%M %p"))

    draw_section("STUDENT INFORMATION")
    draw_kv("Name:", receipt.student_name)
    draw_kv("ID:", str(receipt.student_id))
    draw_kv("Email:", receipt.student_email)

    draw_section("PAYMENT DETAILS")
    draw_kv("Amount:", f"{branding.currency}{receipt.amount}")
    draw_kv("Description:", receipt.description)
    y -= 10 * mm

    # Success stamp
    stamp_w, stamp_h = 75 * mm, 28 * mm
    stamp_x = (width - stamp_w) / 2
    stamp_y = y - stamp_h
    c.setStrokeColor(success)
    c.setLineWidth(3)
    c.roundRect(stamp_x, stamp_y, stamp_w, stamp_h, 3 * mm, fill=0, stroke=1)
    c.setFillColor(success)
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, stamp_y + stamp_h - 12 * mm, "PAYMENT SUCCESSFUL")
    c.setFillColor(muted)
    c.setFont("Helvetica", 11)
    c.drawCentredString(width / 2, stamp_y + 6 * mm, "Amount Received")

    # Footer
    fy = 40 * mm
    c.setFillColor(colors.HexColor("#95a5a6"))
    c.setFont("Helvetica", 9)
    lines = [" - ".join(filter(None, [branding.name, branding.address]))]
    contact = " | ".join(filter(None, [
        f"Contact: {branding.phone}" if branding.phone else "",
        f"Email: {branding.email}" if branding.email else "",
    ]))
    if contact:
        lines.append(contact)
    lines.append(f"This is an official payment receipt from {branding.name}")
    lines.append("")
    lines.append("Thank you for your business!")
    for line in lines:
        c.drawCentredString(width / 2, fy, line)
        fy -= 5 * mm

    c.showPage()
    c.save()
    pdf = buf.getvalue()
    buf.close()
    return pdf


class ReceiptLedger:
    """Append-only list of receipt records kept in one JSON file."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _read(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.exception("Error reading receipt ledger %s", self.path)
            raise StorageError.wrap("Error reading receipt ledger", exc) from exc
        if not isinstance(data, list):
            raise StorageError("Receipt ledger is not a list")
        return data

    def _write(self, records: list[dict]) -> None:
        try:
            _atomic_write(self.path, json.dumps(records, indent=2).encode("utf-8"))
        except OSError as exc:
            logger.exception("Error writing receipt ledger %s", self.path)
            raise StorageError.wrap("Error saving receipt ledger", exc) from exc

    def append(self, receipt: Receipt) -> None:
        with self._lock:
            records = self._read()
            if any(r.get("receiptId") == receipt.receipt_id for r in records):
                raise StorageError(f"Receipt {receipt.receipt_id} already exists")
            records.append(receipt.to_dict())
            self._write(records)

    def list_all(self) -> list[Receipt]:
        with self._lock:
            records = self._read()
        try:
            return [Receipt.from_dict(r) for r in records]
        except (KeyError, TypeError) as exc:
            raise StorageError.wrap("Malformed receipt ledger entry", exc) from exc

    def find_by_id(self, receipt_id: str) -> Receipt:
        for r in self.list_all():
            if r.receipt_id == receipt_id:
                return r
        raise NotFoundError("Receipt not found", code="ReceiptNotFound")


class ReceiptService:
    def __init__(self, receipts_dir: str | os.PathLike, ledger: ReceiptLedger, branding: Branding):
        self.receipts_dir = Path(receipts_dir)
        self.ledger = ledger
        self.branding = branding

    def generate(self, payload: Mapping[str, Any], issuer: Optional[Mapping[str, Any]] = None) -> Receipt:
        required = {
            "studentId": "Student ID",
            "studentName": "Name",
            "studentEmail": "Email",
            "amount": "Amount",
        }
        missing = [key for key in required if payload.get(key) is None or str(payload.get(key)).strip() == ""]
        if missing:
            raise ValidationError(
                "Student ID, Name, Email, and Amount are required",
                code="MissingRequiredFields",
                error=", ".join(missing),
            )
        try:
            amount = parse_money(payload["amount"])
        except ValueError as exc:
            raise ValidationError("Amount must be a non-negative number", code="InvalidValue", error=str(exc)) from None

        issued_at = datetime.now(timezone.utc)
        receipt_id = new_receipt_id(issued_at.timestamp())
        file_name = receipt_file_name(receipt_id)
        file_path = self.receipts_dir / file_name
        receipt = Receipt(
            receipt_id=receipt_id,
            student_id=payload["studentId"],
            student_name=str(payload["studentName"]).strip(),
            student_email=str(payload["studentEmail"]).strip(),
            amount=format_money(amount),
            description=str(payload.get("description") or "").strip() or DEFAULT_DESCRIPTION,
            date=issued_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            file_name=file_name,
            file_path=str(file_path),
            generated_by=(issuer or {}).get("email"),
        )

        try:
            pdf = render_receipt_pdf(receipt, self.branding, issued_at)
            _atomic_write(file_path, pdf)
        except Exception as exc:
            logger.exception("Error generating receipt %s", receipt_id)
            raise StorageError.wrap("Error generating receipt", exc, code="RenderError") from exc

        try:
            self.ledger.append(receipt)
        except StorageError:
            file_path.unlink(missing_ok=True)
            raise
        logger.info("Receipt generated: %s (%s bytes)", file_path, len(pdf))
        return receipt

    def locate_document(self, receipt_id: str) -> Path:
        if not receipt_id or not RECEIPT_ID_RE.match(receipt_id):
            raise NotFoundError("Receipt not found", code="ReceiptNotFound")
        direct = self.receipts_dir / receipt_file_name(receipt_id)
        if direct.is_file():
            return direct
        record = self.record_for(receipt_id)
        if record and record.file_path and Path(record.file_path).is_file():
            return Path(record.file_path)
        raise NotFoundError("Receipt not found", code="ReceiptNotFound")

    def record_for(self, receipt_id: str) -> Optional[Receipt]:
        try:
            return self.ledger.find_by_id(receipt_id)
        except NotFoundError:
            return None

    def list_receipts(self) -> list[dict]:
        out = []
        for r in self.ledger.list_all():
            item = r.to_dict(include_path=False)
            path = Path(r.file_path) if r.file_path else self.receipts_dir / r.file_name
            item["available"] = path.is_file()
            item["size"] = path.stat().st_size if item["available"] else 0
            out.append(item)
        return out
