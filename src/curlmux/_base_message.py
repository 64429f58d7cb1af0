from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from typing_extensions import Protocol

    class BaseUploadedFile(Protocol):
        stream: typing.BinaryIO
        content_type: str | None
        filename: str | None

    class BaseRequest(Protocol):
        method: str
        url: str
        headers: typing.Mapping[str, typing.Sequence[str]]
        body: typing.BinaryIO

        # Form submissions, both optional for plain requests.
        attributes: typing.Mapping[str, typing.Any]
        uploaded_files: typing.Mapping[str, BaseUploadedFile]

    class BaseResponse(Protocol):
        @property
        def body(self) -> typing.BinaryIO:
            """Writable and seekable sink the response body is streamed into."""

        def add_header(self, name: str, value: str) -> None:
            ...

        def with_protocol_version(self, version: str) -> BaseResponse:
            ...

        def with_status(self, code: int, reason: str = "") -> BaseResponse:
            ...

    class BaseResponseFactory(Protocol):
        def create_response(self) -> BaseResponse:
            ...
