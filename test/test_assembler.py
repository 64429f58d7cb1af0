from __future__ import annotations

import io
import typing

import pytest

from curlmux.assembler import ResponseAssembler
from curlmux.response import Response


class ImmutableResponse:
    """Response builder returning a modified copy from its ``with_*`` methods."""

    def __init__(self, version: str = "", status: int = 0, reason: str = "") -> None:
        self.version = version
        self.status = status
        self.reason = reason
        self.headers: list[tuple[str, str]] = []
        self.body = io.BytesIO()

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def _copy(self, **changes: typing.Any) -> ImmutableResponse:
        attrs = {"version": self.version, "status": self.status, "reason": self.reason}
        attrs.update(changes)
        clone = type(self)(**attrs)
        clone.headers = list(self.headers)
        clone.body = self.body
        return clone

    def with_protocol_version(self, version: str) -> ImmutableResponse:
        return self._copy(version=version)

    def with_status(self, code: int, reason: str = "") -> ImmutableResponse:
        return self._copy(status=code, reason=reason)


class TestResponseAssembler:
    def test_headers_accumulate(self) -> None:
        assembler = ResponseAssembler(Response())
        for line in (b"X-Test: a", b"X-Test: b", b"HTTP/1.1 200 OK"):
            assembler.write_header(line)
        for chunk in (b"{", b"}"):
            assembler.write_body(chunk)
        response = assembler.finish()

        assert response.headers.getlist("X-Test") == ["a", "b"]
        assert response.status == 200
        assert response.reason == "OK"
        assert response.version == "1.1"
        assert response.body.read() == b"{}"

    def test_returns_consumed_sizes(self) -> None:
        assembler = ResponseAssembler(Response())
        assert assembler.write_header(b"HTTP/1.1 204 No Content\r\n") == 25
        assert assembler.write_header(b"\r\n") == 2
        assert assembler.write_body(b"abc") == 3

    def test_crlf_and_whitespace_are_stripped(self) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header(b"Content-Type:   text/plain  \r\n")
        assert assembler.response.headers["content-type"] == "text/plain"

    def test_value_may_contain_colons(self) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header(b"Location: http://example.com:8080/a\r\n")
        assert assembler.response.headers["Location"] == "http://example.com:8080/a"

    @pytest.mark.parametrize(
        "line, version, code, reason",
        [
            (b"HTTP/1.1 200 OK\r\n", "1.1", 200, "OK"),
            (b"HTTP/1.0 404 Not Found\r\n", "1.0", 404, "Not Found"),
            (b"HTTP/2 201\r\n", "2", 201, ""),
            (b"http/1.1 500 Internal Server Error\r\n", "1.1", 500, "Internal Server Error"),
        ],
    )
    def test_status_line(self, line: bytes, version: str, code: int, reason: str) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header(line)
        response = assembler.response
        assert (response.version, response.status, response.reason) == (
            version,
            code,
            reason,
        )

    def test_ignores_other_lines(self) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header(b"\r\n")
        assembler.write_header(b"garbage without separator\r\n")
        assert assembler.response.status == 0
        assert len(assembler.response.headers) == 0

    def test_headers_of_every_response_are_kept(self) -> None:
        assembler = ResponseAssembler(Response())
        for line in (
            b"HTTP/1.1 302 Found\r\n",
            b"Set-Cookie: a=1\r\n",
            b"\r\n",
            b"HTTP/1.1 200 OK\r\n",
            b"Set-Cookie: b=2\r\n",
            b"\r\n",
        ):
            assembler.write_header(line)

        assert assembler.response.status == 200
        assert assembler.response.headers.getlist("set-cookie") == ["a=1", "b=2"]

    def test_accepts_text_lines(self) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header("X-Text: yes\r\n")
        assert assembler.response.headers["x-text"] == "yes"

    def test_decodes_latin1(self) -> None:
        assembler = ResponseAssembler(Response())
        assembler.write_header("X-Name: café\r\n".encode("iso-8859-1"))
        assert assembler.response.headers["x-name"] == "café"

    def test_body_chunks_in_order(self) -> None:
        assembler = ResponseAssembler(Response())
        for chunk in (b"one ", b"two ", b"three"):
            assembler.write_body(chunk)
        assert assembler.response.body.tell() == 13

        response = assembler.finish()
        assert response.body.tell() == 0
        assert response.data == b"one two three"

    def test_immutable_builder(self) -> None:
        original = ImmutableResponse()
        assembler = ResponseAssembler(original)  # type: ignore[arg-type]
        assembler.write_header(b"X-A: 1\r\n")
        assembler.write_header(b"HTTP/1.1 201 Created\r\n")
        assembler.write_header(b"X-B: 2\r\n")
        response = assembler.finish()

        assert response is not original
        assert response.status == 201  # type: ignore[attr-defined]
        assert response.headers == [("X-A", "1"), ("X-B", "2")]  # type: ignore[attr-defined]
