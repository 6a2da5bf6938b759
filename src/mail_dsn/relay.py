# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Relay of generated DSNs through an SMTP server.

:func:`send_dsn` generates a report and hands it to a relay in one strictly
sequential SMTP exchange: greeting, EHLO, ``MAIL FROM:<>``, one ``RCPT TO`` per
recipient record, ``DATA``. The envelope sender is the null path so that the
DSN itself can never bounce (RFC 3461 section 6.2).

Nothing is retried: any failure raises :class:`~mail_dsn.errors.DispatchError`
naming the SMTP stage and chained to the transport exception. Timeout and
retry policy belong to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from email.message import Message

import aiosmtplib

from .config import DSNConfig
from .address import to_ace
from .errors import DispatchError, TranscodingError
from .logger import get_logger
from .models import Envelope, RecipientInfo, ReportingMTAInfo
from .report import build_dsn

DEFAULT_SMTP_PORT = 25
NULL_SENDER = ""

logger = get_logger("DSNRelay")


def parse_relay_address(relay_addr: str) -> tuple[str, int]:
    """Split ``host[:port]`` into host and port. IPv6 hosts go in brackets.

    Raises:
        ValueError: If the port is not a number.
    """
    if relay_addr.startswith("[") and relay_addr.endswith("]"):
        return relay_addr[1:-1], DEFAULT_SMTP_PORT
    host, sep, port = relay_addr.rpartition(":")
    if not sep or (":" in host and not host.endswith("]")):
        return relay_addr, DEFAULT_SMTP_PORT
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


async def send_dsn(
    relay_addr: str,
    utf8: bool,
    envelope: Envelope,
    mta_info: ReportingMTAInfo,
    rcpts_info: Sequence[RecipientInfo],
    failed_header: Message | None,
    *,
    config: DSNConfig | None = None,
) -> None:
    """Generate a DSN and deliver it through the relay at ``relay_addr``.

    The ``From`` header is replaced by ``config.admin_from`` and every
    recipient record's ``final_recipient`` becomes an SMTP recipient, with its
    domain in ACE form unless the session uses SMTPUTF8.

    Raises:
        DSNValidationError: If a mandatory field is missing; nothing is sent.
        TranscodingError: If a field cannot be converted; nothing is sent.
        ValueError: If ``relay_addr`` has an invalid port.
        DispatchError: If any SMTP stage fails.
    """
    config = config or DSNConfig()
    envelope = envelope.model_copy(update={"from_addr": config.admin_from})
    message = build_dsn(utf8, envelope, mta_info, rcpts_info, failed_header, config=config)
    # Without SMTPUTF8 the envelope carries ACE domains, as in the report.
    ace_rcpts = None if utf8 else [to_ace(rcpt.final_recipient) for rcpt in rcpts_info]
    host, port = parse_relay_address(relay_addr)

    smtp = aiosmtplib.SMTP(
        hostname=host,
        port=port,
        local_hostname=config.local_hostname,
        use_tls=False,
        start_tls=False,
        timeout=config.relay_timeout,
    )
    stage = "connect"
    try:
        await smtp.connect()
        stage = "hello"
        await smtp.ehlo()

        options: list[str] = []
        encoding = "ascii"
        if utf8 and smtp.supports_extension("smtputf8"):
            options.append("SMTPUTF8")
            encoding = "utf-8"
            recipients = [rcpt.final_recipient for rcpt in rcpts_info]
        elif ace_rcpts is not None:
            recipients = ace_rcpts
        else:
            stage = "rcpt"
            recipients = [to_ace(rcpt.final_recipient) for rcpt in rcpts_info]

        stage = "mail"
        await smtp.mail(NULL_SENDER, options=options, encoding=encoding)
        stage = "rcpt"
        for recipient in recipients:
            await smtp.rcpt(recipient, encoding=encoding)
        stage = "data"
        await smtp.data(message)
    except (aiosmtplib.SMTPException, OSError, UnicodeError, TranscodingError) as exc:
        logger.warning("DSN %s relay to %s failed during %s: %s", envelope.message_id, relay_addr, stage, exc)
        if smtp.is_connected:
            smtp.close()
        raise DispatchError(stage, exc) from exc

    try:
        await smtp.quit()
    except aiosmtplib.SMTPException as exc:
        # The message is already accepted.
        logger.debug("QUIT to %s failed: %s", relay_addr, exc)
        if smtp.is_connected:
            smtp.close()

    logger.info("DSN %s relayed to %s for %d recipient(s)", envelope.message_id, relay_addr, len(rcpts_info))


__all__ = ["DEFAULT_SMTP_PORT", "parse_relay_address", "send_dsn"]
