from __future__ import annotations

import logging
import re
import typing

if typing.TYPE_CHECKING:
    from ._base_message import BaseResponse

__all__ = ["ResponseAssembler"]

log = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^([^:\s]+)\s*:\s*(.*)$")
_STATUS_LINE_RE = re.compile(r"^HTTP/([0-9.]+)\s+([0-9]{3})(?:\s+(.*))?$", re.IGNORECASE)


class ResponseAssembler:
    """
    Builds a response from the header lines and body chunks a transport
    engine streams for one operation.

    :meth:`write_header` and :meth:`write_body` are the callbacks handed to
    the engine. They run synchronously inside
    :meth:`~curlmux.client.Client.tick` and return the number of bytes they
    consumed, as libcurl expects.

    >>> from curlmux.response import Response
    >>> assembler = ResponseAssembler(Response())
    >>> for line in (b"HTTP/1.1 200 OK\\r\\n", b"X-Test: a\\r\\n", b"\\r\\n"):
    ...     _ = assembler.write_header(line)
    >>> _ = assembler.write_body(b"{}")
    >>> response = assembler.finish()
    >>> response.status, response.headers["x-test"], response.data
    (200, 'a', b'{}')
    """

    def __init__(self, response: BaseResponse) -> None:
        self.response = response

    def write_header(self, line: bytes | str) -> int:
        size = len(line)
        if isinstance(line, bytes):
            # HTTP header octets, see RFC 7230 section 3.2.4.
            line = line.decode("iso-8859-1")
        line = line.rstrip("\r\n")

        header = _HEADER_RE.match(line)
        if header is not None:
            self.response.add_header(header.group(1), header.group(2).strip())
            return size

        status = _STATUS_LINE_RE.match(line)
        if status is not None:
            version, code, reason = status.groups()
            self.response = self.response.with_protocol_version(version)
            self.response = self.response.with_status(int(code), (reason or "").strip())
        elif line:
            log.debug("Ignoring unparseable header line: %r", line)

        return size

    def write_body(self, chunk: bytes) -> int:
        written = self.response.body.write(chunk)
        return len(chunk) if written is None else written

    def finish(self) -> BaseResponse:
        """Rewind the body and return the assembled response."""
        self.response.body.seek(0)
        return self.response
