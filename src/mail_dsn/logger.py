# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging helper for the DSN library.

The library never installs handlers. Applications configure logging with
``logging.basicConfig()`` (or their own setup) and every module obtains its
logger through :func:`get_logger`.

Example::

    from mail_dsn.logger import get_logger

    logger = get_logger("DSNRelay")
    logger.info("DSN relayed to %s", relay)
"""

import logging


def get_logger(name: str = "MailDSN") -> logging.Logger:
    """Return the standard library logger bound to ``name``.

    Args:
        name: The logger name. Defaults to "MailDSN".

    Returns:
        A ``logging.Logger`` instance; repeated calls return the same object.
    """
    return logging.getLogger(name)
