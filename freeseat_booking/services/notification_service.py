"""
Notification service for delivering reservation receipts.

Delivery happens strictly after commit and is best effort: a failed
delivery is logged (and optionally retried in the background) but never
undoes or hides a committed order.
"""

import asyncio
import logging
import re
import smtplib
import time
from abc import ABC, abstractmethod
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional, Sequence, TYPE_CHECKING

from ..config import Settings, get_settings
from ..models.order import Order
from ..utils.exceptions import EmailServiceError, FreeSeatError
from ..utils.logging_config import log_business_event
from .receipt_renderer import ReceiptArtifact, ReceiptRenderer, format_guest_lines

if TYPE_CHECKING:
    from .reservation_service import ReservationEngine

logger = logging.getLogger(__name__)

RECEIPT_SUBJECT = "Your Seat Reservation"
EMAIL_FOOTER = "(If you did not request this, ignore.)"


class Notifier(ABC):
    """Transport that delivers one message; raises EmailServiceError on failure."""

    @abstractmethod
    async def deliver(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[ReceiptArtifact] = (),
    ) -> None:
        ...


class SmtpNotifier(Notifier):
    """Sends mail through the configured SMTP server."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def _build_message(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[ReceiptArtifact],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = self.settings.email_from or self.settings.smtp_username
        msg["To"] = to
        msg.attach(MIMEText(body, "plain", "utf-8"))

        for artifact in attachments:
            maintype, _, subtype = artifact.mime.partition("/")
            if maintype == "text":
                part = MIMEText(artifact.content.decode("utf-8"), subtype or "plain", "utf-8")
            else:
                part = MIMEApplication(artifact.content, _subtype=subtype or "octet-stream")
            part.add_header("Content-Disposition", "attachment", filename=artifact.filename)
            msg.attach(part)

        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(
            self.settings.smtp_server,
            self.settings.smtp_port,
            timeout=self.settings.smtp_timeout_seconds,
        ) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            server.login(self.settings.smtp_username, self.settings.smtp_password)
            server.send_message(msg)

    async def deliver(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[ReceiptArtifact] = (),
    ) -> None:
        msg = self._build_message(to, subject, body, attachments)
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailServiceError(f"SMTP delivery to {to} failed: {e}") from e
        logger.info(f"Email sent successfully to {to}")


class OutboxNotifier(Notifier):
    """Writes each message to a text file when no SMTP server is configured."""

    def __init__(self, outbox_dir: Optional[str] = None):
        self.outbox_dir = Path(outbox_dir or get_settings().outbox_dir)

    def _filename(self, to: str, subject: str) -> str:
        safe_subject = re.sub(r"[^\w.-]+", "_", subject)[:80]
        safe_to = re.sub(r"[^\w@.-]+", "_", to or "unknown")
        return f"{time.time_ns() // 1_000_000}_{safe_subject}_{safe_to}.txt"

    async def deliver(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[ReceiptArtifact] = (),
    ) -> None:
        lines = [f"To: {to}", f"Subject: {subject}", "", body]
        if attachments:
            lines.append("")
            for artifact in attachments:
                location = str(artifact.path) if artifact.path else "inline"
                lines.append(f"ATTACHMENT: {artifact.filename} ({location})")

        path = self.outbox_dir / self._filename(to, subject)
        try:
            await asyncio.to_thread(self._write, path, "\n".join(lines) + "\n")
        except OSError as e:
            raise EmailServiceError(f"Could not write outbox file {path}: {e}") from e
        logger.info(f"Email for {to} written to outbox {path}")

    def _write(self, path: Path, text: str) -> None:
        self.outbox_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def build_notifier(settings: Optional[Settings] = None) -> Notifier:
    """SMTP when it is configured, otherwise the file outbox."""
    settings = settings or get_settings()
    if settings.smtp_configured:
        return SmtpNotifier(settings)
    logger.warning("SMTP not configured, receipts will be written to the outbox directory")
    return OutboxNotifier(settings.outbox_dir)


class NotificationService:
    """Renders and delivers receipts for committed orders."""

    def __init__(
        self,
        engine: "ReservationEngine",
        notifier: Optional[Notifier] = None,
        renderer: Optional[ReceiptRenderer] = None,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine
        self.settings = settings or get_settings()
        self.notifier = notifier or build_notifier(self.settings)
        self.renderer = renderer or ReceiptRenderer(self.settings)

    def render_email_body(self, order: Order) -> str:
        return (
            f"Thanks! Your seats are: {', '.join(order.seats)}\n"
            f"Guests:\n{format_guest_lines(order.guests)}\n"
            f"All tickets are free.\n"
            f"Order ID: {order.order_id}\n"
            f"Show: {self.settings.show_time}\n\n"
            f"{EMAIL_FOOTER}"
        )

    async def dispatch(self, order: Order) -> bool:
        """
        Deliver the receipt for a freshly committed order.

        Never raises. On failure the order stands, the caller reports
        ``email_sent: false`` and a background resend may be scheduled.

        Returns:
            bool: True if the receipt was delivered
        """
        sent = await self._deliver_receipt(order)
        if not sent and self.settings.enable_background_resend:
            self._schedule_background_resend(order.order_id)
        return sent

    async def resend(self, order_id: str) -> bool:
        """
        Re-deliver the receipt for an existing order.

        Each call is one delivery attempt derived from the stored order; it
        never touches inventory or orders.

        Raises:
            OrderNotFoundError: No order has this id
            InternalError: Storage failure during lookup
        """
        order = await self.engine.lookup(order_id)
        return await self._deliver_receipt(order)

    async def _deliver_receipt(self, order: Order) -> bool:
        try:
            artifact = await self.renderer.render(order)
            await self.notifier.deliver(
                to=order.contact_email,
                subject=RECEIPT_SUBJECT,
                body=self.render_email_body(order),
                attachments=[artifact],
            )
        except FreeSeatError as e:
            logger.error(f"Receipt delivery failed for order {order.order_id}: {e.message}")
            log_business_event(
                "receipt_delivery_failed",
                {"order_id": order.order_id, "error_code": e.error_code.value},
            )
            return False
        except Exception as e:
            logger.exception(f"Unexpected error delivering receipt for order {order.order_id}: {e}")
            return False

        log_business_event("receipt_delivered", {"order_id": order.order_id})
        return True

    def _schedule_background_resend(self, order_id: str) -> None:
        try:
            from ..tasks.notification_tasks import resend_receipt_task
            resend_receipt_task.apply_async(
                args=[order_id],
                countdown=self.settings.background_resend_delay_seconds,
            )
            logger.info(f"Scheduled background receipt resend for order {order_id}")
        except Exception as e:
            logger.warning(f"Failed to schedule background resend for order {order_id}: {e}")
