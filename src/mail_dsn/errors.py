# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised while generating and relaying DSNs.

Every exception carries a short machine-readable ``code`` next to its message,
so callers can report failures without parsing text.

Hierarchy::

    DSNError
    ├── DSNValidationError        missing mandatory field
    │   └── InvalidFieldError     field value spanning several lines
    ├── TranscodingError          Unicode/ACE conversion failures
    │   ├── MalformedAddressError
    │   ├── UnicodeLocalPartError
    │   ├── DomainEncodingError
    │   └── FieldEncodingError    conversion failure of a named DSN field
    └── DispatchError             SMTP relay failure
"""

from __future__ import annotations


class DSNError(Exception):
    """Base class for all DSN errors."""

    code = "dsn_error"


class DSNValidationError(DSNError, ValueError):
    """Raised when a mandatory DSN field is missing."""

    code = "missing_field"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"dsn: {field} is required")
        self.field = field


class InvalidFieldError(DSNValidationError):
    """Raised when a field value contains a line break."""

    code = "invalid_field"

    def __init__(self, field: str):
        super().__init__(field, f"dsn: {field} must not contain CR or LF")


class TranscodingError(DSNError, ValueError):
    """Raised when an address or domain cannot be converted."""

    code = "transcoding_failed"


class MalformedAddressError(TranscodingError):
    """Raised when an address cannot be split into local-part and domain."""

    code = "malformed_address"

    def __init__(self, address: str, reason: str):
        super().__init__(f"address: {reason}")
        self.address = address
        self.reason = reason
        self.fallback: str | None = None


class UnicodeLocalPartError(TranscodingError):
    """Raised when a non-ASCII local-part is requested in ACE form."""

    code = "unicode_local_part"

    def __init__(self, address: str):
        super().__init__("address: cannot convert the Unicode local-part to the ACE form")
        self.address = address


class DomainEncodingError(TranscodingError):
    """Raised when IDNA conversion of a domain fails.

    Attributes:
        address: The address or domain as supplied by the caller.
        fallback: NFC-normalized original value, set for Unicode-direction
            conversions so callers may continue with a degraded value.
    """

    code = "domain_encoding_failed"

    def __init__(self, address: str, reason: str, fallback: str | None = None):
        super().__init__(f"idna: cannot convert {address!r}: {reason}")
        self.address = address
        self.reason = reason
        self.fallback = fallback


class FieldEncodingError(TranscodingError):
    """Raised when a DSN field value cannot be converted to the active encoding."""

    code = "field_encoding_failed"

    def __init__(self, field: str, cause: Exception):
        super().__init__(f"dsn: cannot convert {field} to a suitable representation: {cause}")
        self.field = field


class DispatchError(DSNError, RuntimeError):
    """Raised when relaying a DSN fails at any SMTP stage."""

    code = "dispatch_failed"

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"dsn relay failed during {stage}: {cause}")
        self.stage = stage


__all__ = [
    "DSNError",
    "DSNValidationError",
    "DispatchError",
    "DomainEncodingError",
    "FieldEncodingError",
    "InvalidFieldError",
    "MalformedAddressError",
    "TranscodingError",
    "UnicodeLocalPartError",
]
