# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Encoding of DSN records into RFC 3464 field blocks.

The delivery-status body is a sequence of header-like blocks: one per-message
block describing the reporting MTA, then one block per recipient. This module
turns the records from :mod:`mail_dsn.models` into ordered header blocks.

The encoding mode is a single flag for the whole report:

- ``utf8=False``: addresses and domains in ACE form, ``rfc822`` address tags,
  only SMTP diagnostics are reported;
- ``utf8=True``: NFC-normalized Unicode, ``utf8`` address tags, free-text
  diagnostics reported under the ``X-<label>`` tag (RFC 6533).

Field order follows RFC 3464 and is stable; some DSN consumers parse blocks
positionally.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.message import Message
from email.utils import format_datetime

from .address import select_address_encoding
from .config import DEFAULT_MTA_LABEL
from .domain import select_domain_encoding
from .errors import DSNValidationError, FieldEncodingError, InvalidFieldError, TranscodingError
from .mime import new_header
from .models import RecipientInfo, ReportingMTAInfo

# Written for Last-Attempt-Date when only the arrival date is known.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_NEWLINES = str.maketrans({"\r": " ", "\n": " "})


def resolve_mta_label(info: ReportingMTAInfo, default: str = DEFAULT_MTA_LABEL) -> str:
    """Return the label for X- extension fields, falling back to ``default``."""
    return single_line("MTA label", info.mta_label.strip() or default.strip())


def _address_tag(utf8: bool) -> str:
    return "utf8" if utf8 else "rfc822"


def _encode_domain(utf8: bool, field: str, domain: str) -> str:
    try:
        return single_line(field, select_domain_encoding(utf8, domain))
    except TranscodingError as exc:
        raise FieldEncodingError(field, exc) from exc


def _encode_address(utf8: bool, field: str, address: str) -> str:
    try:
        return single_line(field, select_address_encoding(utf8, address))
    except TranscodingError as exc:
        raise FieldEncodingError(field, exc) from exc


def collapse_newlines(text: str) -> str:
    """Replace every CR and LF in ``text`` with a space."""
    return text.translate(_NEWLINES)


def single_line(field: str, value: str) -> str:
    """Return ``value``, rejecting it if a CR or LF would end the field early.

    Raises:
        InvalidFieldError: If ``value`` contains CR or LF.
    """
    if "\r" in value or "\n" in value:
        raise InvalidFieldError(field)
    return value


def encode_reporting_mta(info: ReportingMTAInfo, utf8: bool, mta_label: str | None = None) -> Message:
    """Build the per-message block.

    Args:
        info: Reporting MTA record.
        utf8: Encoding mode of the report.
        mta_label: Label for X- fields. Defaults to the label resolved from
            ``info``.

    Raises:
        DSNValidationError: If ``reporting_mta`` is empty.
        FieldEncodingError: If a domain or address cannot be converted.
    """
    if not info.reporting_mta:
        raise DSNValidationError("Reporting-MTA", "dsn: Reporting-MTA field is mandatory")

    label = single_line("MTA label", mta_label) if mta_label else resolve_mta_label(info)
    x_prefix = f"X-{label}"

    header = new_header()
    header["Reporting-MTA"] = "dns; " + _encode_domain(utf8, "Reporting-MTA", info.reporting_mta)

    if info.received_from_mta:
        header["Received-From-MTA"] = "dns; " + _encode_domain(
            utf8, "Received-From-MTA", info.received_from_mta
        )

    if info.sender_address:
        sender = _encode_address(utf8, f"{x_prefix}-Sender", info.sender_address)
        header[f"{x_prefix}-Sender"] = f"{_address_tag(utf8)}; {sender}"

    if info.sender_message_id:
        header[f"{x_prefix}-MsgID"] = single_line(f"{x_prefix}-MsgID", info.sender_message_id)

    if info.arrival_date is not None:
        header["Arrival-Date"] = format_datetime(info.arrival_date)
    # Gated on the arrival date, not on last_attempt_date.
    if info.arrival_date is not None:
        header["Last-Attempt-Date"] = format_datetime(info.last_attempt_date or ZERO_TIME)

    return header


def _diagnostic_code(info: RecipientInfo, utf8: bool, label: str) -> str | None:
    diagnostic = info.diagnostic
    if diagnostic is None:
        return None
    if diagnostic.kind == "smtp":
        # Structured replies stay machine-readable in both modes.
        c, s, d = diagnostic.enhanced_code
        return f"smtp; {diagnostic.code} {c}.{s}.{d} {collapse_newlines(diagnostic.message)}"
    if utf8:
        return f"X-{label}; {collapse_newlines(diagnostic.message)}"
    # No standard tag for free text in an ASCII report.
    return None


def encode_recipient(info: RecipientInfo, utf8: bool, mta_label: str = DEFAULT_MTA_LABEL) -> Message:
    """Build the per-recipient block.

    Args:
        info: Recipient record.
        utf8: Encoding mode of the report.
        mta_label: Label of the reporting MTA, used for free-text diagnostics.

    Raises:
        DSNValidationError: If final recipient, action or status is missing.
        FieldEncodingError: If an address or domain cannot be converted.
    """
    if not info.final_recipient:
        raise DSNValidationError("Final-Recipient")

    header = new_header()
    final_rcpt = _encode_address(utf8, "Final-Recipient", info.final_recipient)
    header["Final-Recipient"] = f"{_address_tag(utf8)}; {final_rcpt}"

    if info.action is None:
        raise DSNValidationError("Action")
    header["Action"] = info.action.value

    if info.status[0] == 0:
        raise DSNValidationError("Status")
    header["Status"] = "%d.%d.%d" % info.status

    label = single_line("MTA label", mta_label.strip() or DEFAULT_MTA_LABEL)
    diagnostic_code = _diagnostic_code(info, utf8, label)
    if diagnostic_code is not None:
        header["Diagnostic-Code"] = diagnostic_code

    if info.remote_mta:
        header["Remote-MTA"] = "dns; " + _encode_domain(utf8, "Remote-MTA", info.remote_mta)

    return header


__all__ = [
    "ZERO_TIME",
    "collapse_newlines",
    "encode_recipient",
    "encode_reporting_mta",
    "resolve_mta_label",
    "single_line",
]
