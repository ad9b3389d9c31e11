"""
Receipt delivery by email.

Two transports share one ``deliver`` interface:

- ``MailTransport`` sends through Flask-Mail (single attempt, failures raise
  ``DeliveryError``).
- ``SimulatedTransport`` is used when SMTP is not configured; it waits a short
  moment and reports a simulated success without contacting anything.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from html import escape
from pathlib import Path
from smtplib import SMTPException
from typing import Any, Mapping, Optional

from flask_mail import Mail, Message

from utils.errors import StorageError, ValidationError
from utils.receipts import ReceiptService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptEmail:
    receipt_id: str
    recipient_email: str
    recipient_name: str
    attachment: Path


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    simulated: bool


def mail_configured(cfg: Mapping[str, Any]) -> bool:
    return bool((cfg.get("MAIL_SERVER") or "").strip() and (cfg.get("MAIL_USERNAME") or "").strip())


def render_email_html(message: ReceiptEmail, brand_name: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2c3e50;">Payment Receipt</h2>
  <p>Dear {escape(message.recipient_name)},</p>
  <p>Thank you for your payment. Please find attached your payment receipt.</p>
  <p><strong>Receipt ID:</strong> {escape(message.receipt_id)}</p>
  <p>If you have any questions, please contact us.</p>
  <br>
  <p>Best regards,<br>{escape(brand_name)} Team</p>
</div>
"""


class SimulatedTransport:
    def __init__(self, delay: float = 1.5):
        self.delay = max(0.0, float(delay))

    def deliver(self, message: ReceiptEmail) -> DeliveryResult:
        logger.info("Simulating email send of %s to %s", message.receipt_id, message.recipient_email)
        if self.delay:
            time.sleep(self.delay)
        return DeliveryResult(delivered=True, simulated=True)


class MailTransport:
    def __init__(self, mail: Mail, sender: Optional[str], brand_name: str):
        self.mail = mail
        self.sender = sender
        self.brand_name = brand_name

    def deliver(self, message: ReceiptEmail) -> DeliveryResult:
        msg = Message(
            subject=f"Payment Receipt - {message.receipt_id}",
            sender=(self.brand_name, self.sender) if self.sender else None,
            recipients=[message.recipient_email],
        )
        msg.html = render_email_html(message, self.brand_name)
        try:
            msg.attach(message.attachment.name, "application/pdf", message.attachment.read_bytes())
            self.mail.send(msg)
        except (SMTPException, OSError) as exc:
            logger.exception("Error sending receipt %s to %s", message.receipt_id, message.recipient_email)
            raise StorageError.wrap("Error sending email", exc, code="DeliveryError") from exc
        logger.info("Sent receipt %s to %s", message.receipt_id, message.recipient_email)
        return DeliveryResult(delivered=True, simulated=False)


class Notifier:
    def __init__(self, receipts: ReceiptService, transport):
        self.receipts = receipts
        self.transport = transport

    def send(self, receipt_id: Optional[str], recipient_email: Optional[str], recipient_name: Optional[str] = None) -> DeliveryResult:
        receipt_id = str(receipt_id or "").strip()
        recipient_email = str(recipient_email or "").strip()
        if not receipt_id or not recipient_email:
            raise ValidationError("Receipt ID and student email are required", code="MissingFields")
        document = self.receipts.locate_document(receipt_id)
        name = str(recipient_name or "").strip()
        if not name:
            record = self.receipts.record_for(receipt_id)
            name = (record.student_name if record else "") or "Student"
        return self.transport.deliver(ReceiptEmail(receipt_id, recipient_email, name, document))


def build_notifier(app, receipts: ReceiptService, mail: Mail) -> Notifier:
    cfg = app.config
    if mail_configured(cfg):
        transport = MailTransport(mail, cfg.get("MAIL_DEFAULT_SENDER") or cfg.get("MAIL_USERNAME"), cfg.get("BRAND_NAME", ""))
        app.logger.info("Email transport: SMTP via %s", cfg.get("MAIL_SERVER"))
    else:
        transport = SimulatedTransport(cfg.get("MAIL_SIMULATION_DELAY", 1.5))
        app.logger.info("Email transport not configured; receipt emails will be simulated")
    return Notifier(receipts, transport)
