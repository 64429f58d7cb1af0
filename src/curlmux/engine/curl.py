"""Transport engine running operations on libcurl's multi interface via pycurl."""

from __future__ import annotations

import collections
import logging
import typing

import pycurl

from ..fields import FileReference
from ._base import BaseEngine, Completion, OperationOptions, TransportStats

__all__ = ["CurlEngine"]

log = logging.getLogger(__name__)

_TYPE_OPTION_SETTER = typing.Callable[[pycurl.Curl, typing.Any], None]


def _set_ms(option: int) -> _TYPE_OPTION_SETTER:
    def setter(curl: pycurl.Curl, seconds: typing.Any) -> None:
        curl.setopt(option, int(1000 * float(seconds)))

    return setter


def _set(option: int, cast: typing.Callable[[typing.Any], typing.Any] = lambda v: v) -> _TYPE_OPTION_SETTER:
    def setter(curl: pycurl.Curl, value: typing.Any) -> None:
        curl.setopt(option, cast(value))

    return setter


def _set_verify(curl: pycurl.Curl, verify: typing.Any) -> None:
    curl.setopt(pycurl.SSL_VERIFYPEER, 1 if verify else 0)
    curl.setopt(pycurl.SSL_VERIFYHOST, 2 if verify else 0)


#: Generic transport option names and how they map onto libcurl options.
TRANSPORT_OPTIONS: dict[str, _TYPE_OPTION_SETTER] = {
    "connect_timeout": _set_ms(pycurl.CONNECTTIMEOUT_MS),
    "timeout": _set_ms(pycurl.TIMEOUT_MS),
    "follow_redirects": _set(pycurl.FOLLOWLOCATION, bool),
    "max_redirects": _set(pycurl.MAXREDIRS, int),
    "encoding": _set(pycurl.ENCODING, str),
    "proxy": _set(pycurl.PROXY, str),
    "user_agent": _set(pycurl.USERAGENT, str),
    "verify": _set_verify,
}


class _CurlContext:
    def __init__(self) -> None:
        self.multi = pycurl.CurlMulti()
        # info_read() hands out finished handles in batches, keep the rest
        # for the following read_completed() calls.
        self.finished: collections.deque[Completion] = collections.deque()


class CurlEngine(BaseEngine):
    """
    :class:`~curlmux.engine.BaseEngine` on top of ``pycurl.CurlMulti``.

    Handles are ``pycurl.Curl`` objects. The operation id of the request a
    handle is running is stored on the handle itself so completions can be
    matched back to their operation.
    """

    def create_context(self) -> _CurlContext:
        return _CurlContext()

    def close_context(self, context: _CurlContext) -> None:
        context.finished.clear()
        context.multi.close()

    def create_handle(self) -> pycurl.Curl:
        return pycurl.Curl()

    def reset_handle(self, handle: pycurl.Curl) -> None:
        # reset() also drops the header and write callbacks, which would
        # otherwise keep the finished response alive.
        handle.reset()
        handle.op_id = None

    def close_handle(self, handle: pycurl.Curl) -> None:
        handle.close()

    def add_operation(
        self, context: _CurlContext, handle: pycurl.Curl, options: OperationOptions
    ) -> None:
        self.configure(handle, options)
        handle.op_id = options.op_id
        context.multi.add_handle(handle)

    def configure(self, curl: pycurl.Curl, options: OperationOptions) -> None:
        """Translate ``options`` into ``setopt`` calls on ``curl``."""
        curl.setopt(pycurl.URL, options.url)
        curl.setopt(pycurl.HTTPHEADER, list(options.headers))
        curl.setopt(pycurl.HEADERFUNCTION, options.header_callback)
        curl.setopt(pycurl.WRITEFUNCTION, options.body_callback)

        body = options.body
        method = options.method.upper()
        if isinstance(body, (bytes, str)):
            if method == "HEAD":
                curl.setopt(pycurl.NOBODY, True)
            elif body or method not in ("GET", "DELETE", "OPTIONS"):
                curl.setopt(pycurl.POSTFIELDS, body)
            else:
                curl.setopt(pycurl.HTTPGET, True)
        else:
            curl.setopt(pycurl.HTTPPOST, self._form_fields(body))
        curl.setopt(pycurl.CUSTOMREQUEST, method)

        for name, value in options.transport_options.items():
            if value is None:
                continue
            if isinstance(name, int):
                # Raw libcurl option id, e.g. pycurl.VERBOSE.
                curl.setopt(name, value)
                continue
            try:
                setter = TRANSPORT_OPTIONS[name]
            except KeyError:
                raise ValueError(f"Unknown transport option {name!r}") from None
            setter(curl, value)

    def _form_fields(self, fields: typing.Mapping[str, typing.Any]) -> list[tuple[str, typing.Any]]:
        form: list[tuple[str, typing.Any]] = []
        for name, value in fields.items():
            if isinstance(value, FileReference):
                form.append(
                    (
                        name,
                        (
                            pycurl.FORM_FILE,
                            value.path,
                            pycurl.FORM_CONTENTTYPE,
                            value.content_type,
                            pycurl.FORM_FILENAME,
                            value.filename,
                        ),
                    )
                )
            elif isinstance(value, bytes):
                form.append((name, value.decode("utf-8")))
            else:
                form.append((name, str(value)))
        return form

    def remove_operation(self, context: _CurlContext, handle: pycurl.Curl) -> None:
        context.multi.remove_handle(handle)

    def perform(self, context: _CurlContext) -> int:
        while True:
            ret, num_handles = context.multi.perform()
            if ret != pycurl.E_CALL_MULTI_PERFORM:
                break
        return num_handles

    def read_completed(self, context: _CurlContext) -> Completion | None:
        if not context.finished:
            _, ok_list, err_list = context.multi.info_read()
            for curl in ok_list:
                context.finished.append(Completion(curl.op_id, curl))
            for curl, errnum, errmsg in err_list:
                context.finished.append(Completion(curl.op_id, curl, errnum, errmsg))

        if context.finished:
            return context.finished.popleft()
        return None

    def get_info(self, handle: pycurl.Curl) -> TransportStats:
        return TransportStats(
            total_time=handle.getinfo(pycurl.TOTAL_TIME),
            namelookup_time=handle.getinfo(pycurl.NAMELOOKUP_TIME),
            connect_time=handle.getinfo(pycurl.CONNECT_TIME),
            starttransfer_time=handle.getinfo(pycurl.STARTTRANSFER_TIME),
            size_download=handle.getinfo(pycurl.SIZE_DOWNLOAD),
            response_code=handle.getinfo(pycurl.RESPONSE_CODE),
            effective_url=handle.getinfo(pycurl.EFFECTIVE_URL),
        )

    def wait(self, context: _CurlContext, timeout: float) -> None:
        context.multi.select(timeout)
