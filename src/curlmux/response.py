from __future__ import annotations

import io
import json as _json
import typing

from ._collections import HTTPHeaderDict

__all__ = ["Response", "ResponseFactory"]


class Response:
    """
    HTTP response built incrementally while the transport engine streams it.

    The :class:`~curlmux.assembler.ResponseAssembler` fills in the status
    line, the headers and the body of a fresh instance; once the operation
    completes the body is rewound and the response handed to the caller.

    :param body:
        Sink the body is written to, an empty :class:`io.BytesIO` by default.
    """

    def __init__(self, body: typing.BinaryIO | None = None) -> None:
        self.headers = HTTPHeaderDict()
        self.status = 0
        self.reason = ""
        self.version = ""
        self._body: typing.BinaryIO = body if body is not None else io.BytesIO()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} [{self.status}]>"

    @property
    def body(self) -> typing.BinaryIO:
        return self._body

    def add_header(self, name: str, value: str) -> None:
        self.headers.add(name, value)

    def with_protocol_version(self, version: str) -> Response:
        self.version = version
        return self

    def with_status(self, code: int, reason: str = "") -> Response:
        self.status = code
        self.reason = reason
        return self

    @property
    def data(self) -> bytes:
        """The whole body. Reading it leaves the body positioned at its start."""
        self._body.seek(0)
        data = self._body.read()
        self._body.seek(0)
        return data

    def json(self) -> typing.Any:
        """
        Parses the body of the HTTP response as JSON.

        This method can raise either `UnicodeDecodeError` or `json.JSONDecodeError`.
        """
        data = self.data.decode("utf-8")
        return _json.loads(data)

    def read(self, amt: int | None = -1) -> bytes:
        return self._body.read(amt)

    # Compatibility methods for http.client.HTTPResponse
    def getheaders(self) -> list[tuple[str, str]]:
        return list(self.headers.iteritems())

    def getheader(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name, default)


class ResponseFactory:
    """Creates the empty responses :class:`~curlmux.client.Client` fills in."""

    def __init__(self, response_cls: type[Response] = Response) -> None:
        self.response_cls = response_cls

    def create_response(self) -> Response:
        return self.response_cls()
