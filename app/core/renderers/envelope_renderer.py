"""Envelope renderer: the content wrapped as a calendar event, contact card or email."""

import mailbox
import uuid
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import format_datetime
from pathlib import Path

from app.core.logging import get_logger
from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.markup_renderer import markdown_to_plain
from app.core.schemas_export import RenderFamily

logger = get_logger(__name__)

SENDER = "export@chat-export.local"
RECIPIENT = "user@example.com"
FOLD_WIDTH = 75


def escape_ical_text(text: str) -> str:
    """Escape a TEXT value for iCalendar and vCard."""
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\n")
        .replace("\n", "\\n")
    )


def fold_line(line: str) -> str:
    """Fold a content line at 75 octets; continuation lines start with a space."""
    encoded = line.encode("utf-8")
    if len(encoded) <= FOLD_WIDTH:
        return line

    parts: list[str] = []
    current = ""
    limit = FOLD_WIDTH
    for char in line:
        if len((current + char).encode("utf-8")) > limit:
            parts.append(current)
            current = char
            limit = FOLD_WIDTH - 1
        else:
            current += char
    parts.append(current)
    return "\r\n ".join(parts)


def build_ics(text: str, title: str, now: datetime) -> str:
    stamp = now.strftime("%Y%m%dT%H%M%SZ")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Chat Export Engine//EN",
        "BEGIN:VEVENT",
        f"UID:{uuid.uuid4()}@chat-export.local",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{stamp}",
        f"SUMMARY:{escape_ical_text(title)}",
        f"DESCRIPTION:{escape_ical_text(text)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(fold_line(line) for line in lines) + "\r\n"


def build_vcf(text: str, title: str) -> str:
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"FN:{escape_ical_text(title)}",
        f"NOTE:{escape_ical_text(text)}",
        "END:VCARD",
    ]
    return "\r\n".join(fold_line(line) for line in lines) + "\r\n"


def build_email(text: str, title: str, now: datetime) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = SENDER
    msg["To"] = RECIPIENT
    msg["Subject"] = title
    msg["Date"] = format_datetime(now)
    msg.set_content(text)
    return msg


def write_mbox(message: EmailMessage, path: Path) -> None:
    box = mailbox.mbox(str(path), create=True)
    box.lock()
    try:
        box.add(message)
        box.flush()
    finally:
        box.unlock()
        box.close()


class EnvelopeRenderer(BaseRenderer):
    family = RenderFamily.ENVELOPE

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        text = markdown_to_plain(content)
        now = datetime.now(timezone.utc)

        if descriptor.id == "ics":
            output_path.write_bytes(build_ics(text, title, now).encode("utf-8"))
        elif descriptor.id == "vcf":
            output_path.write_bytes(build_vcf(text, title).encode("utf-8"))
        elif descriptor.id == "eml":
            output_path.write_bytes(build_email(text, title, now).as_bytes())
        elif descriptor.id == "mbox":
            write_mbox(build_email(text, title, now), output_path)
        elif descriptor.id == "msg":
            # No Outlook compound-file writer; RFC 822 text under the .msg name
            output_path.write_bytes(build_email(text, title, now).as_bytes())
            note = (
                "Outlook Message was written as a plain RFC 822 email; "
                "Outlook may ask to open it as text. Use EML for full compatibility."
            )
            logger.info(note)
            return [note]
        else:
            raise ValueError(f"No envelope writer for {descriptor.id}")
        return []


RendererRegistry.register(EnvelopeRenderer())
