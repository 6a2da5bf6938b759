# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Delivery Status Notification generation and relay.

This package builds RFC 3464/3462 bounce reports and optionally relays them
over SMTP.

Components:
    domain / address: Unicode and ACE (IDNA 2008) transcoding of MTA domains
        and recipient addresses.
    models: Pydantic records describing the reporting MTA and each recipient.
    fields: Encoding of records into ordered delivery-status field blocks.
    report: Three-part ``multipart/report`` assembly.
    relay: SMTP delivery of a generated report through a relay.

Example:
    Generate a report and relay it::

        from mail_dsn import Action, Envelope, RecipientInfo, ReportingMTAInfo, send_dsn

        await send_dsn(
            "relay.example.com:25",
            False,
            Envelope(message_id="<dsn-1@mx.example.com>", to_addr="sender@example.org"),
            ReportingMTAInfo(reporting_mta="mx.example.com"),
            [RecipientInfo(final_recipient="rcpt@example.net", action=Action.FAILED, status=(5, 1, 1))],
            original_header,
        )
"""

from .address import select_address_encoding, split, to_ace, to_unicode
from .config import DEFAULT_MTA_LABEL, DSNConfig
from .domain import domain_to_ace, domain_to_unicode, select_domain_encoding
from .errors import (
    DispatchError,
    DomainEncodingError,
    DSNError,
    DSNValidationError,
    FieldEncodingError,
    InvalidFieldError,
    MalformedAddressError,
    TranscodingError,
    UnicodeLocalPartError,
)
from .fields import encode_recipient, encode_reporting_mta, resolve_mta_label
from .models import (
    Action,
    Envelope,
    PlainDiagnostic,
    RecipientInfo,
    ReportingMTAInfo,
    SMTPDiagnostic,
    diagnostic_from_exception,
)
from .relay import send_dsn
from .report import FAILED_TEMPLATE_TEXT, build_dsn, generate_dsn

__all__ = [
    "Action",
    "DEFAULT_MTA_LABEL",
    "DSNConfig",
    "DSNError",
    "DSNValidationError",
    "DispatchError",
    "DomainEncodingError",
    "Envelope",
    "FAILED_TEMPLATE_TEXT",
    "FieldEncodingError",
    "InvalidFieldError",
    "MalformedAddressError",
    "PlainDiagnostic",
    "RecipientInfo",
    "ReportingMTAInfo",
    "SMTPDiagnostic",
    "TranscodingError",
    "UnicodeLocalPartError",
    "build_dsn",
    "diagnostic_from_exception",
    "domain_to_ace",
    "domain_to_unicode",
    "encode_recipient",
    "encode_reporting_mta",
    "generate_dsn",
    "resolve_mta_label",
    "select_address_encoding",
    "select_domain_encoding",
    "send_dsn",
    "split",
    "to_ace",
    "to_unicode",
]
