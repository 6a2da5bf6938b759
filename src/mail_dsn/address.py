# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Unicode/ACE conversion of email addresses.

Only the domain part of an address has an ASCII-compatible encoding. A
local-part containing non-ASCII characters cannot be represented in ACE form,
so :func:`to_ace` refuses it instead of mangling the mailbox name.

The special ``postmaster`` address (RFC 5321 forward-path without a domain)
passes through both directions unchanged.

Example::

    >>> to_ace("user@münchen.de")
    'user@xn--mnchen-3ya.de'
    >>> to_unicode("user@xn--mnchen-3ya.de")
    'user@münchen.de'
"""

from __future__ import annotations

import unicodedata

from .domain import domain_to_ace, domain_to_unicode
from .errors import DomainEncodingError, MalformedAddressError, UnicodeLocalPartError

POSTMASTER = "postmaster"


def split(address: str) -> tuple[str, str]:
    """Split an address into local-part and domain at the last ``@``.

    The check is intentionally naive: it only locates the separator.

    Returns:
        Tuple of (local_part, domain). The domain is empty for ``postmaster``.

    Raises:
        MalformedAddressError: If the at-sign is missing, or the local-part or
            the domain is empty.
    """
    if address.lower() == POSTMASTER:
        return address, ""

    local_part, sep, domain = address.rpartition("@")
    if not sep:
        raise MalformedAddressError(address, "missing at-sign")
    if not local_part:
        raise MalformedAddressError(address, "empty local-part")
    if not domain:
        raise MalformedAddressError(address, "empty domain")
    return local_part, domain


def to_ace(address: str) -> str:
    """Convert the domain of ``address`` to its A-label form.

    Raises:
        MalformedAddressError: If the address cannot be split.
        UnicodeLocalPartError: If the local-part contains non-ASCII characters.
        DomainEncodingError: If IDNA conversion of the domain fails.
    """
    local_part, domain = split(address)
    if not local_part.isascii():
        raise UnicodeLocalPartError(address)
    if not domain:
        return local_part

    try:
        a_domain = domain_to_ace(domain)
    except DomainEncodingError as exc:
        raise DomainEncodingError(address, exc.reason) from exc
    return f"{local_part}@{a_domain}"


def to_unicode(address: str) -> str:
    """Convert the domain of ``address`` to its NFC-normalized U-label form.

    On failure the raised error carries ``fallback``: the NFC normalization of
    the original address, usable as a best-effort value.

    Raises:
        MalformedAddressError: If the address cannot be split.
        DomainEncodingError: If IDNA conversion of the domain fails.
    """
    fallback = unicodedata.normalize("NFC", address)
    try:
        local_part, domain = split(address)
    except MalformedAddressError as exc:
        exc.fallback = fallback
        raise
    if not domain:
        return local_part

    try:
        u_domain = domain_to_unicode(domain)
    except DomainEncodingError as exc:
        raise DomainEncodingError(address, exc.reason, fallback=fallback) from exc
    return f"{local_part}@{u_domain}"


def select_address_encoding(want_unicode: bool, address: str) -> str:
    """Return ``address`` converted with :func:`to_unicode` or :func:`to_ace`."""
    if want_unicode:
        return to_unicode(address)
    return to_ace(address)


__all__ = ["POSTMASTER", "select_address_encoding", "split", "to_ace", "to_unicode"]
