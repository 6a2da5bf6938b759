# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Header block and multipart serialization used to assemble DSNs.

Header blocks are plain ``email.message.Message`` objects used as ordered,
repeatable-key field containers. They are serialized verbatim, one
``Name: value`` line per field in insertion order followed by an empty line,
without RFC 2047 encoding or refolding: a UTF-8 report (RFC 6533) carries raw
UTF-8 in its delivery-status fields, and field order is part of the contract
with positional DSN parsers.
"""

from __future__ import annotations

import secrets
from email.message import Message
from typing import BinaryIO

CRLF = b"\r\n"


def new_header(*fields: tuple[str, str]) -> Message:
    """Create a header block holding ``fields`` in the given order."""
    header = Message()
    for name, value in fields:
        header[name] = value
    return header


def header_bytes(header: Message) -> bytes:
    """Serialize ``header`` as CRLF-terminated lines plus the closing empty line.

    Values parsed from 8-bit sources keep their original bytes.
    """
    lines = [
        f"{name}: {value}".encode("utf-8", "surrogateescape") + CRLF
        for name, value in header.raw_items()
    ]
    return b"".join(lines) + CRLF


def write_header(out: BinaryIO, header: Message) -> None:
    """Write ``header`` to ``out``."""
    out.write(header_bytes(header))


def make_boundary() -> str:
    """Return a random boundary token safe to use unquoted."""
    return secrets.token_hex(30)


# Not email.generator: it quotes the boundary and refolds long or 8-bit fields,
# and report bytes must keep every field on one line as written.
class MultipartWriter:
    """Writes the body of a multipart entity, one part at a time.

    Each :meth:`create_part` call emits the delimiter line and the part header,
    then returns the stream the part body has to be written to. :meth:`close`
    emits the closing delimiter.

    Example::

        writer = MultipartWriter(buffer)
        part = writer.create_part(new_header(("Content-Type", "text/plain")))
        part.write(b"hello")
        writer.close()
    """

    def __init__(self, out: BinaryIO, boundary: str | None = None):
        self.out = out
        self.boundary = boundary or make_boundary()
        self._parts = 0
        self._closed = False

    def create_part(self, header: Message) -> BinaryIO:
        if self._closed:
            raise ValueError("multipart writer is closed")
        if self._parts:
            self.out.write(CRLF)
        self.out.write(b"--" + self.boundary.encode("ascii") + CRLF)
        write_header(self.out, header)
        self._parts += 1
        return self.out

    def close(self) -> None:
        if self._closed:
            return
        if self._parts:
            self.out.write(CRLF)
        self.out.write(b"--" + self.boundary.encode("ascii") + b"--" + CRLF)
        self._closed = True


__all__ = ["CRLF", "MultipartWriter", "header_bytes", "make_boundary", "new_header", "write_header"]
