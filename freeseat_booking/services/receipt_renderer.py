"""
Plain-text receipt rendering for committed orders.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config import Settings, get_settings
from ..models.order import Order
from ..utils.exceptions import ReceiptRenderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptArtifact:
    """A rendered receipt, ready to attach to an email."""
    filename: str
    mime: str
    content: bytes
    path: Optional[Path] = None


def format_guest_lines(guests: List[tuple]) -> str:
    if not guests:
        return "(No guest names provided)"
    return "\n".join(
        f"{index}. {name} - {seat_id}"
        for index, (seat_id, name) in enumerate(guests, start=1)
    )


def format_reserved_at(created_at: datetime) -> str:
    return created_at.strftime("%B %d, %Y at %I:%M %p %Z").strip()


class ReceiptRenderer:
    """Renders a receipt from an order alone; rendering never touches storage."""

    mime = "text/plain"

    def __init__(self, settings: Optional[Settings] = None, output_dir: Optional[str] = None):
        self.settings = settings or get_settings()
        self.output_dir = Path(output_dir or self.settings.receipts_dir)

    def render_text(self, order: Order) -> str:
        return "\n".join([
            "Ticket Receipt",
            f"Event: {self.settings.event_name}",
            f"Order ID: {order.order_id}",
            f"Email: {order.contact_email}",
            f"Show Time: {self.settings.show_time}",
            f"Reserved At: {format_reserved_at(order.created_at)}",
            f"Seats: {', '.join(order.seats)}",
            f"Guests:\n{format_guest_lines(order.guests)}",
            "All tickets are free.",
        ])

    async def render(self, order: Order) -> ReceiptArtifact:
        """
        Render the receipt for an order and keep a copy in the receipts directory.

        Raises:
            ReceiptRenderError: The receipt could not be produced
        """
        filename = f"ticket_receipt_{order.order_id}.txt"
        try:
            content = self.render_text(order).encode("utf-8")
        except (AttributeError, TypeError, ValueError) as e:
            raise ReceiptRenderError(f"Could not render receipt for {order.order_id}: {e}") from e

        path = self.output_dir / filename
        try:
            await asyncio.to_thread(self._save_copy, path, content)
        except OSError as e:
            # The attachment is still deliverable from memory
            logger.warning(f"Could not save receipt copy {path}: {e}")
            path = None

        return ReceiptArtifact(filename=filename, mime=self.mime, content=content, path=path)

    def _save_copy(self, path: Path, content: bytes) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
