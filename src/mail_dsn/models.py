# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models describing a Delivery Status Notification.

Models:
    - Envelope: identity of the DSN message itself
    - ReportingMTAInfo: per-message fields (RFC 3464 section 2.2)
    - RecipientInfo: per-recipient fields (RFC 3464 section 2.3)
    - SMTPDiagnostic / PlainDiagnostic: the two shapes of a diagnostic code

All models are frozen: a generation call never modifies caller records.
Mandatory fields default to empty values so that a missing field is reported
by the field encoder as a ``DSNValidationError`` when the report is built.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

import aiosmtplib
from pydantic import BaseModel, ConfigDict, Field

EnhancedCode = tuple[int, int, int]
"""Enhanced status code as (class, subject, detail)."""

_ENHANCED_CODE_RE = re.compile(r"^\s*([245])\.(\d{1,3})\.(\d{1,3})\b")


class Action(str, Enum):
    """Value of the ``Action`` field (RFC 3464 section 2.3.3)."""

    FAILED = "failed"
    DELAYED = "delayed"
    DELIVERED = "delivered"
    RELAYED = "relayed"
    EXPANDED = "expanded"


class Envelope(BaseModel):
    """Identity of the generated DSN message (not of the failed message).

    Attributes:
        message_id: Value of the DSN's ``Message-Id`` header.
        from_addr: Value of the DSN's ``From`` header.
        to_addr: Value of the DSN's ``To`` header.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    message_id: Annotated[str, Field(default="", description="Message-Id of the DSN")]
    from_addr: Annotated[str, Field(default="", description="From header of the DSN")]
    to_addr: Annotated[str, Field(default="", description="To header of the DSN")]


class ReportingMTAInfo(BaseModel):
    """Per-message DSN fields describing the reporting MTA.

    Attributes:
        reporting_mta: Domain of the MTA generating the report (mandatory).
        received_from_mta: Domain of the MTA the message was received from.
        mta_label: Name used in extension fields such as ``X-<label>-Sender``
            (RFC 3464 section 2.4). Empty means the configured default.
        sender_address: Original sender, written as ``X-<label>-Sender``.
        sender_message_id: Original message identifier, written as
            ``X-<label>-MsgID``.
        arrival_date: When the reporting MTA enqueued the message.
        last_attempt_date: When delivery was last attempted.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    reporting_mta: Annotated[str, Field(default="", description="Reporting MTA domain")]
    received_from_mta: Annotated[str, Field(default="", description="Received-From MTA domain")]
    mta_label: Annotated[str, Field(default="", description="Label for X- extension fields")]
    sender_address: Annotated[str, Field(default="", description="Original sender address")]
    sender_message_id: Annotated[str, Field(default="", description="Original message identifier")]
    arrival_date: Annotated[datetime | None, Field(default=None, description="Arrival time")]
    last_attempt_date: Annotated[datetime | None, Field(default=None, description="Last delivery attempt")]


class SMTPDiagnostic(BaseModel):
    """Structured SMTP reply that caused the delivery outcome."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["smtp"] = "smtp"
    code: Annotated[int, Field(ge=200, le=599, description="SMTP reply code")]
    enhanced_code: Annotated[EnhancedCode, Field(description="Enhanced status code")]
    message: Annotated[str, Field(default="", description="Reply text")]

    def __str__(self) -> str:
        c, s, d = self.enhanced_code
        return f"{self.code} {c}.{s}.{d} {self.message}"


class PlainDiagnostic(BaseModel):
    """Unstructured error description, possibly containing non-ASCII text."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["plain"] = "plain"
    message: str

    def __str__(self) -> str:
        return self.message


Diagnostic = Annotated[Union[SMTPDiagnostic, PlainDiagnostic], Field(discriminator="kind")]


class RecipientInfo(BaseModel):
    """Per-recipient DSN fields.

    Attributes:
        final_recipient: Recipient address the report is about (mandatory).
        remote_mta: Domain of the MTA that reported the outcome.
        action: Delivery outcome (mandatory).
        status: Enhanced status code; a zero class means "not set".
        diagnostic: Reply or error behind the outcome, if any.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    final_recipient: Annotated[str, Field(default="", description="Final recipient address")]
    remote_mta: Annotated[str, Field(default="", description="Remote MTA domain")]
    action: Annotated[Action | None, Field(default=None, description="Delivery action")]
    status: Annotated[EnhancedCode, Field(default=(0, 0, 0), description="Enhanced status code")]
    diagnostic: Annotated[Diagnostic | None, Field(default=None, description="Diagnostic code")]


def diagnostic_from_exception(exc: BaseException) -> SMTPDiagnostic | PlainDiagnostic:
    """Build a diagnostic from an exception raised while delivering a message.

    SMTP replies (``aiosmtplib.SMTPResponseException``) become an
    :class:`SMTPDiagnostic`. The enhanced status code is taken from the start
    of the reply text when present, otherwise derived from the reply class
    (``5.0.0`` or ``4.0.0``). Anything else becomes a :class:`PlainDiagnostic`.
    """
    if isinstance(exc, aiosmtplib.SMTPResponseException) and 200 <= exc.code <= 599:
        message = exc.message or ""
        match = _ENHANCED_CODE_RE.match(message)
        if match:
            enhanced = (int(match.group(1)), int(match.group(2)), int(match.group(3)))
            message = message[match.end():].lstrip()
        else:
            enhanced = (exc.code // 100, 0, 0)
        return SMTPDiagnostic(code=exc.code, enhanced_code=enhanced, message=message)
    return PlainDiagnostic(message=str(exc))


__all__ = [
    "Action",
    "Diagnostic",
    "EnhancedCode",
    "Envelope",
    "PlainDiagnostic",
    "RecipientInfo",
    "ReportingMTAInfo",
    "SMTPDiagnostic",
    "diagnostic_from_exception",
]
