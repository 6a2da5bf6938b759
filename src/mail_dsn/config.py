# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration for DSN generation and relay.

The library reads no configuration file. ``DSNConfig`` holds the defaults and
can be overridden field by field, or from environment variables::

    config = DSNConfig(mta_label="Relay", relay_timeout=30.0)
    config = DSNConfig.from_env()

Environment variables (all prefixed with GMD_):
    GMD_MTA_LABEL - Label for X- extension fields (default: MailDsn)
    GMD_ADMIN_FROM - From header of relayed DSNs
    GMD_SUBJECT - Subject of generated DSNs
    GMD_LOCAL_HOSTNAME - Name announced in EHLO
    GMD_RELAY_TIMEOUT - SMTP timeout in seconds (default: no timeout)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

from .logger import get_logger

DEFAULT_MTA_LABEL = "MailDsn"
DEFAULT_ADMIN_FROM = "MAILER-DAEMON (Mail Delivery System)"
DEFAULT_SUBJECT = "Undelivered Mail Returned to Sender"

ENV_PREFIX = "GMD_"

logger = get_logger("DSNConfig")


@dataclass(frozen=True)
class DSNConfig:
    """Settings shared by generation and relay calls."""

    mta_label: str = DEFAULT_MTA_LABEL
    """Label used in X- fields when the reporting record sets none."""

    admin_from: str = DEFAULT_ADMIN_FROM
    """From header forced on DSNs sent through the relay."""

    subject: str = DEFAULT_SUBJECT
    """Subject header of generated DSNs."""

    local_hostname: str | None = None
    """Name announced in EHLO. None lets the SMTP client pick the host FQDN."""

    relay_timeout: float | None = None
    """Timeout in seconds for relay operations. None waits indefinitely."""

    template_text: str | None = None
    """Human-readable notice template. None uses FAILED_TEMPLATE_TEXT."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DSNConfig:
        """Build a config overriding defaults with GMD_* environment variables.

        Invalid numeric values are logged and ignored.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            if f.name == "template_text":
                continue
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name == "relay_timeout":
                try:
                    overrides[f.name] = float(raw)
                except ValueError:
                    logger.warning("Ignoring invalid %s%s value: %s", ENV_PREFIX, f.name.upper(), raw)
                continue
            overrides[f.name] = raw
        return replace(cls(), **overrides)


__all__ = ["DEFAULT_ADMIN_FROM", "DEFAULT_MTA_LABEL", "DEFAULT_SUBJECT", "DSNConfig"]
