# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Unicode/ACE conversion of bare domain names.

MTA identities in a DSN (``Reporting-MTA``, ``Received-From-MTA``,
``Remote-MTA``) are domains, not mailboxes. They are written as A-labels
(``xn--`` form) in ASCII reports and as NFC-normalized U-labels in UTF-8
reports.

Conversion works label by label, via the ``idna`` package:

- to ACE, only non-ASCII labels are converted (UTS #46 mapped, then encoded
  as IDNA 2008 A-labels);
- to Unicode, only ``xn--`` labels are decoded.

Every other label, and address literals such as ``[192.0.2.1]``, pass through
unchanged: RFC 5321 hostnames may contain characters IDNA rejects (``_``) and
their case is preserved.
"""

from __future__ import annotations

import unicodedata

import idna

from .errors import DomainEncodingError

ACE_PREFIX = "xn--"


def _is_address_literal(domain: str) -> bool:
    return domain.startswith("[") and domain.endswith("]")


def _label_to_ace(label: str) -> str:
    if label.isascii():
        return label
    mapped = idna.uts46_remap(label, std3_rules=False, transitional=False)
    return idna.alabel(mapped).decode("ascii")


def _label_to_unicode(label: str) -> str:
    if label[:len(ACE_PREFIX)].lower() != ACE_PREFIX:
        return label
    return idna.ulabel(label)


def domain_to_ace(domain: str) -> str:
    """Convert the non-ASCII labels of ``domain`` to A-labels.

    Raises:
        DomainEncodingError: If a label is not a valid IDN.
    """
    if _is_address_literal(domain):
        return domain
    try:
        return ".".join(_label_to_ace(label) for label in domain.split("."))
    except idna.IDNAError as exc:
        raise DomainEncodingError(domain, str(exc)) from exc


def domain_to_unicode(domain: str) -> str:
    """Convert the A-labels of ``domain`` to U-labels, normalized to NFC.

    Raises:
        DomainEncodingError: If an ``xn--`` label is not a valid A-label. The
            error's ``fallback`` holds the NFC normalization of the input.
    """
    u_domain = unicodedata.normalize("NFC", domain)
    if _is_address_literal(domain):
        return u_domain
    try:
        labels = [_label_to_unicode(label) for label in u_domain.split(".")]
    except idna.IDNAError as exc:
        raise DomainEncodingError(domain, str(exc), fallback=u_domain) from exc
    return unicodedata.normalize("NFC", ".".join(labels))


def select_domain_encoding(want_unicode: bool, domain: str) -> str:
    """Return ``domain`` as a U-label (``want_unicode``) or as an A-label."""
    if want_unicode:
        return domain_to_unicode(domain)
    return domain_to_ace(domain)


__all__ = ["domain_to_ace", "domain_to_unicode", "select_domain_encoding"]
