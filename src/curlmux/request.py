from __future__ import annotations

import io
import typing

__all__ = ["Request", "UploadedFile"]

_TYPE_BODY = typing.Union[bytes, str, typing.BinaryIO, None]
_TYPE_HEADERS = typing.Mapping[str, typing.Union[str, typing.Sequence[str]]]


class UploadedFile:
    """
    A file to send as part of a multipart form submission.

    :param stream:
        An open file object. Its ``name`` attribute is the location the
        transport engine reads the upload from.

    :param content_type:
        Media type of the part, guessed from the filename when omitted.

    :param filename:
        Name reported to the server, the basename of the stream location
        when omitted.
    """

    def __init__(
        self,
        stream: typing.BinaryIO,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> None:
        self.stream = stream
        self.content_type = content_type
        self.filename = filename

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.filename or self.stream!r})"


class Request:
    """
    An outgoing HTTP request as understood by :class:`~curlmux.client.Client`.

    Header values may be given as a single string or as a sequence of
    strings; they are stored as ordered lists, one entry per header line.

    ``attributes`` and ``uploaded_files`` turn the request into a form
    submission and take precedence over ``body``.

    >>> r = Request("POST", "http://example.com/", headers={"Accept": "text/plain"}, body=b"hi")
    >>> r.headers
    {'Accept': ['text/plain']}
    >>> r.body.read()
    b'hi'
    """

    def __init__(
        self,
        method: str,
        url: str,
        headers: _TYPE_HEADERS | None = None,
        body: _TYPE_BODY = None,
        attributes: typing.Mapping[str, typing.Any] | None = None,
        uploaded_files: typing.Mapping[str, UploadedFile] | None = None,
    ) -> None:
        self.method = method.upper()
        self.url = url
        self.headers: dict[str, list[str]] = {}
        for name, value in (headers or {}).items():
            self.add_header(name, value)

        if body is None:
            body = b""
        if isinstance(body, str):
            body = body.encode("utf-8")
        if isinstance(body, bytes):
            body = io.BytesIO(body)
        self.body: typing.BinaryIO = body

        self.attributes: dict[str, typing.Any] = dict(attributes or {})
        self.uploaded_files: dict[str, UploadedFile] = dict(uploaded_files or {})

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.method} {self.url}>"

    def add_header(self, name: str, value: str | typing.Sequence[str]) -> None:
        """Append one or more values for ``name``, keeping existing ones."""
        values = [value] if isinstance(value, str) else list(value)
        self.headers.setdefault(name, []).extend(values)

    def has_header(self, name: str) -> bool:
        return any(key.lower() == name.lower() for key in self.headers)

    def get_header(self, name: str, default: str | None = None) -> str | None:
        for key, values in self.headers.items():
            if key.lower() == name.lower():
                return ", ".join(values)
        return default
