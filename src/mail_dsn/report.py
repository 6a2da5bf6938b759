# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Assembly of Delivery Status Notifications (RFC 3464, RFC 3462).

A DSN is a ``multipart/report`` message with exactly three parts, always in
this order:

1. a human-readable notice (``text/plain``);
2. the machine-readable delivery status (``message/delivery-status``, or
   ``message/global-delivery-status`` in UTF-8 mode);
3. the header of the undelivered message (``message/rfc822-headers``, or
   ``message/global-headers`` in UTF-8 mode).

:func:`generate_dsn` writes the multipart body to a binary stream and returns
the top-level header separately, so callers can prepend it or hand both to an
SMTP client. The body is assembled in memory first: when any field fails to
encode, nothing reaches the stream.

Example::

    buffer = io.BytesIO()
    header = generate_dsn(
        False,
        Envelope(message_id="<dsn-1@mx.example.com>", from_addr="postmaster@example.com",
                 to_addr="sender@example.org"),
        ReportingMTAInfo(reporting_mta="mx.example.com"),
        [RecipientInfo(final_recipient="rcpt@example.net", action=Action.FAILED,
                       status=(5, 1, 1))],
        original_header,
        buffer,
    )
"""

from __future__ import annotations

import io
from collections.abc import Sequence
from datetime import datetime, timezone
from email.message import Message
from email.utils import format_datetime
from string import Template
from typing import BinaryIO

from .config import DSNConfig
from .fields import encode_recipient, encode_reporting_mta, resolve_mta_label, single_line
from .logger import get_logger
from .mime import MultipartWriter, header_bytes, new_header, write_header
from .models import Envelope, RecipientInfo, ReportingMTAInfo

FAILED_TEMPLATE_TEXT = """
This is the mail delivery system at $reporting_mta.

Unfortunately, your message could not be delivered to one or more
recipients. The usual cause of this problem is invalid
recipient address or maintenance at the recipient side.

Contact the postmaster for further assistance, provide the Message ID (below):

Message ID: $sender_message_id
Arrival: $arrival_date
Last delivery attempt: $last_attempt_date

"""
"""Text of the human-readable part; ``string.Template`` placeholders."""

UNKNOWN_DIAGNOSTIC = "unknown error"

logger = get_logger("DSNReport")


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return str(value.replace(microsecond=0))


def render_notice(mta_info: ReportingMTAInfo, rcpts_info: Sequence[RecipientInfo], template_text: str | None = None) -> str:
    """Render the human-readable notice followed by one line per recipient."""
    template = Template(template_text if template_text is not None else FAILED_TEMPLATE_TEXT)
    text = template.safe_substitute(
        reporting_mta=mta_info.reporting_mta,
        sender_message_id=mta_info.sender_message_id,
        arrival_date=_format_timestamp(mta_info.arrival_date),
        last_attempt_date=_format_timestamp(mta_info.last_attempt_date),
    )
    lines = [
        f"Delivery to {rcpt.final_recipient} failed with error: "
        f"{rcpt.diagnostic if rcpt.diagnostic is not None else UNKNOWN_DIAGNOSTIC}\n"
        for rcpt in rcpts_info
    ]
    return text + "".join(lines)


def _write_human_readable_part(
    writer: MultipartWriter,
    mta_info: ReportingMTAInfo,
    rcpts_info: Sequence[RecipientInfo],
    config: DSNConfig,
) -> None:
    part = writer.create_part(new_header(
        ("Content-Transfer-Encoding", "8bit"),
        ("Content-Type", 'text/plain; charset="utf-8"'),
        ("Content-Description", "Notification"),
    ))
    part.write(render_notice(mta_info, rcpts_info, config.template_text).encode("utf-8"))


def _write_machine_readable_part(
    utf8: bool,
    writer: MultipartWriter,
    mta_info: ReportingMTAInfo,
    rcpts_info: Sequence[RecipientInfo],
    config: DSNConfig,
) -> None:
    # Encode every block before opening the part.
    label = resolve_mta_label(mta_info, config.mta_label)
    blocks = [encode_reporting_mta(mta_info, utf8, label)]
    blocks.extend(encode_recipient(rcpt, utf8, label) for rcpt in rcpts_info)

    content_type = "message/global-delivery-status" if utf8 else "message/delivery-status"
    part = writer.create_part(new_header(
        ("Content-Type", content_type),
        ("Content-Description", "Delivery report"),
    ))
    for block in blocks:
        write_header(part, block)


def _write_original_headers_part(utf8: bool, writer: MultipartWriter, failed_header: Message | None) -> None:
    content_type = "message/global-headers" if utf8 else "message/rfc822-headers"
    part = writer.create_part(new_header(
        ("Content-Description", "Undelivered message header"),
        ("Content-Type", content_type),
        ("Content-Transfer-Encoding", "8bit"),
    ))
    write_header(part, failed_header if failed_header is not None else new_header())


def _report_header(envelope: Envelope, boundary: str, config: DSNConfig, now: datetime | None) -> Message:
    return new_header(
        ("Date", format_datetime(now or datetime.now(timezone.utc))),
        ("Message-Id", single_line("Message-Id", envelope.message_id)),
        ("Content-Transfer-Encoding", "8bit"),
        ("Content-Type", f"multipart/report; report-type=delivery-status; boundary={boundary}"),
        ("MIME-Version", "1.0"),
        ("Auto-Submitted", "auto-replied"),
        ("To", single_line("To", envelope.to_addr)),
        ("From", single_line("From", envelope.from_addr)),
        ("Subject", single_line("Subject", config.subject)),
    )


def generate_dsn(
    utf8: bool,
    envelope: Envelope,
    mta_info: ReportingMTAInfo,
    rcpts_info: Sequence[RecipientInfo],
    failed_header: Message | None,
    out: BinaryIO,
    *,
    config: DSNConfig | None = None,
    now: datetime | None = None,
) -> Message:
    """Generate a DSN, writing its multipart body to ``out``.

    Args:
        utf8: Produce a UTF-8 report (RFC 6533) instead of an ASCII one.
        envelope: Identity of the DSN message.
        mta_info: Per-message delivery status fields.
        rcpts_info: One record per affected recipient.
        failed_header: Header of the undelivered message, written verbatim.
        out: Binary stream receiving the body.
        config: Labels, subject and template. Defaults to ``DSNConfig()``.
        now: Value of the ``Date`` header. Defaults to the current time.

    Returns:
        The top-level header of the report.

    Raises:
        DSNValidationError: If a mandatory field is missing or a value
            contains a line break.
        TranscodingError: If an address or domain cannot be converted.
        OSError: If writing to ``out`` fails.
    """
    config = config or DSNConfig()
    body = io.BytesIO()
    writer = MultipartWriter(body)

    _write_human_readable_part(writer, mta_info, rcpts_info, config)
    _write_machine_readable_part(utf8, writer, mta_info, rcpts_info, config)
    _write_original_headers_part(utf8, writer, failed_header)
    writer.close()

    report_header = _report_header(envelope, writer.boundary, config, now)
    out.write(body.getvalue())
    logger.debug(
        "Generated %s DSN %s for %d recipient(s)",
        "UTF-8" if utf8 else "ASCII",
        envelope.message_id,
        len(rcpts_info),
    )
    return report_header


def build_dsn(
    utf8: bool,
    envelope: Envelope,
    mta_info: ReportingMTAInfo,
    rcpts_info: Sequence[RecipientInfo],
    failed_header: Message | None,
    *,
    config: DSNConfig | None = None,
    now: datetime | None = None,
) -> bytes:
    """Generate a DSN and return the complete message, header included."""
    body = io.BytesIO()
    report_header = generate_dsn(
        utf8, envelope, mta_info, rcpts_info, failed_header, body, config=config, now=now
    )
    return header_bytes(report_header) + body.getvalue()


__all__ = ["FAILED_TEMPLATE_TEXT", "UNKNOWN_DIAGNOSTIC", "build_dsn", "generate_dsn", "render_notice"]
