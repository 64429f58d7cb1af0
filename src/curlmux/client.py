from __future__ import annotations

import functools
import itertools
import logging
import time
import typing
from collections.abc import Mapping

from ._collections import merge_config
from .assembler import ResponseAssembler
from .engine import BaseEngine, Completion, OperationOptions, TransportStats
from .exceptions import (
    CancellationError,
    ClientError,
    ClosedPoolError,
    NetworkError,
    ReentrantWaitError,
)
from .fields import FileReference
from .futures import Promise
from .pool import HandlePool
from .response import ResponseFactory

if typing.TYPE_CHECKING:
    from ._base_message import BaseRequest, BaseResponse, BaseResponseFactory
    from .engine._base import _TYPE_BODY

__all__ = ["Client", "OperationRecord", "DEFAULT_CONFIG"]

log = logging.getLogger(__name__)

DEFAULT_CONFIG: typing.Mapping[str, typing.Any] = {
    # Idle transport handles kept for reuse.
    "cache_size": 15,
    # Upper bound, in seconds, tick() blocks waiting for transport activity.
    "tick_interval": 0.125,
    "transport_options": {
        "connect_timeout": 5,
        "follow_redirects": True,
        "timeout": 30,
    },
}


class OperationRecord:
    """Book-keeping for one in-flight operation, keyed by ``op_id``."""

    __slots__ = (
        "op_id",
        "handle",
        "request",
        "assembler",
        "promise",
        "start_time",
        "stats",
    )

    def __init__(
        self,
        op_id: int,
        handle: typing.Any,
        request: BaseRequest,
        assembler: ResponseAssembler,
        promise: Promise,
    ) -> None:
        self.op_id = op_id
        self.handle = handle
        self.request = request
        self.assembler = assembler
        self.promise = promise
        self.start_time = time.time()
        self.stats: TransportStats | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.op_id}: {self.request.method} {self.request.url}>"

    @property
    def response(self) -> BaseResponse:
        return self.assembler.response


class Client:
    """
    HTTP client multiplexing any number of requests over one transport context.

    :param response_factory:
        Creates the empty response every operation is assembled into,
        :class:`~curlmux.response.ResponseFactory` by default.

    :param engine:
        The :class:`~curlmux.engine.BaseEngine` running the operations,
        :class:`~curlmux.engine.curl.CurlEngine` by default.

    :param config:
        Options merged over :data:`DEFAULT_CONFIG`, see :meth:`set_config`.

    Nothing runs in the background. Operations only make progress while
    :meth:`tick` is called, which happens whenever a promise returned by
    :meth:`send_request_async` is waited on. Waiting on one promise advances
    every other in-flight operation too::

        with Client() as client:
            first = client.send_request_async(Request("GET", "http://example.com/a"))
            second = client.send_request_async(Request("GET", "http://example.com/b"))
            print(first.wait().status, second.wait().status)
    """

    def __init__(
        self,
        response_factory: BaseResponseFactory | None = None,
        engine: BaseEngine | None = None,
        config: typing.Mapping[str, typing.Any] | None = None,
    ) -> None:
        if engine is None:
            from .engine.curl import CurlEngine

            engine = CurlEngine()

        self.response_factory = response_factory or ResponseFactory()
        self.engine = engine
        self._config = _checked(merge_config(DEFAULT_CONFIG, config or {}))

        self._context: typing.Any = None
        self._pool: HandlePool | None = None
        self._operations: dict[int, OperationRecord] = {}
        self._op_ids = itertools.count(1)
        self._ticking = False
        self._closed = False

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type: typing.Any, exc_val: typing.Any, exc_tb: typing.Any) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_closed", True) is False:
            self.close()

    @property
    def pending(self) -> int:
        """Number of operations still in flight."""
        return len(self._operations)

    @property
    def pool(self) -> HandlePool | None:
        return self._pool

    def _get_context(self) -> typing.Any:
        if self._closed:
            raise ClosedPoolError(None, "Client has been closed.")

        if self._context is None:
            pool = HandlePool(self.engine, maxsize=self._config["cache_size"])
            self._context = self.engine.create_context()
            self._pool = pool
            log.debug("Opened transport context on %s", type(self.engine).__name__)
        return self._context

    def send_request(self, request: BaseRequest) -> BaseResponse:
        """
        Send ``request`` and block until its response is complete.

        :raises ClientError: for any failure, with the original error as
            ``original_error`` and ``__cause__``.
        """
        try:
            promise = self.send_request_async(request)
            result = promise.wait()
        except Exception as e:
            raise ClientError(str(e), e) from e

        if promise.rejected:
            cause = result if isinstance(result, BaseException) else None
            raise ClientError(str(result), cause) from cause

        return result  # type: ignore[no-any-return]

    def send_request_async(self, request: BaseRequest) -> Promise:
        """
        Start sending ``request`` and return a pending
        :class:`~curlmux.futures.Promise` of its response.

        The promise is fulfilled with the response, or rejected with a
        :class:`~curlmux.exceptions.NetworkError` when the transport fails.
        Cancelling it abandons the operation immediately.
        """
        context = self._get_context()
        assert self._pool is not None

        op_id = next(self._op_ids)
        assembler = ResponseAssembler(self.response_factory.create_response())
        options = OperationOptions(
            op_id=op_id,
            url=str(request.url),
            method=request.method,
            headers=self._header_lines(request),
            body=self._request_body(request),
            header_callback=assembler.write_header,
            body_callback=assembler.write_body,
            transport_options=self._config.get("transport_options") or {},
        )

        handle = self._pool.get()
        try:
            self.engine.add_operation(context, handle, options)
        except BaseException:
            self._pool.put(handle)
            raise

        promise = Promise(
            functools.partial(self._wait, op_id),
            functools.partial(self._cancel, op_id),
        )
        record = OperationRecord(op_id, handle, request, assembler, promise)
        promise["operation_id"] = op_id
        promise["request"] = request
        promise["assembler"] = assembler
        promise["start_time"] = record.start_time
        self._operations[op_id] = record
        log.debug("Starting operation %d: %s %s", op_id, request.method, request.url)

        return promise

    @staticmethod
    def _header_lines(request: BaseRequest) -> list[str]:
        lines = []
        for name, values in request.headers.items():
            if isinstance(values, str):
                values = [values]
            for value in values:
                lines.append(f"{name}: {value}")
        return lines

    @staticmethod
    def _request_body(request: BaseRequest) -> _TYPE_BODY:
        """
        The body to send: uploaded files (merged with any scalar attributes)
        as multipart fields, else the scalar attributes, else the raw body.
        """
        attributes = getattr(request, "attributes", None) or {}
        uploaded_files = getattr(request, "uploaded_files", None) or {}

        if uploaded_files:
            fields = dict(attributes)
            for name, uploaded in uploaded_files.items():
                location = getattr(uploaded.stream, "name", None)
                if not isinstance(location, str):
                    raise ValueError(
                        f"Uploaded file {name!r} is not backed by a file on disk"
                    )
                fields[name] = FileReference.from_path(
                    location, uploaded.content_type, uploaded.filename
                )
            return fields

        if attributes:
            return dict(attributes)

        body = request.body
        body.seek(0)
        return body.read()

    def tick(self) -> int:
        """
        Make one pass over the transport context.

        Runs pending transport work, settles the promise of every operation
        the engine reports as finished and recycles their handles. When
        operations are still active afterwards, blocks for at most
        ``tick_interval`` seconds waiting for more activity.

        Returns the number of operations the engine still reports active.
        """
        if self._ticking:
            raise ReentrantWaitError(
                "tick() must not be called from a transport callback"
            )
        if self._context is None:
            return 0

        self._ticking = True
        try:
            active = self.engine.perform(self._context)
            while True:
                completion = self.engine.read_completed(self._context)
                if completion is None:
                    break
                self._complete(completion)
        finally:
            self._ticking = False

        if active:
            # Wait a short time for more activity
            self.engine.wait(self._context, self._config["tick_interval"])

        return active

    def _complete(self, completion: Completion) -> None:
        record = self._operations.pop(completion.op_id, None)
        if record is None:
            # Cancelled while in flight, its handle was recycled already.
            log.debug("Discarding result of abandoned operation %d", completion.op_id)
            return

        record.stats = self.engine.get_info(record.handle)
        self._release(record)

        promise = record.promise
        promise["stats"] = record.stats
        if not promise.pending:
            return

        if completion.ok:
            response = record.assembler.finish()
            log.debug(
                'Operation %d: "%s %s" %s (%.3fs)',
                record.op_id,
                record.request.method,
                record.request.url,
                getattr(response, "status", None),
                record.stats.total_time,
            )
            promise.resolve(response)
        else:
            log.debug(
                "Operation %d failed: %s (code %d)",
                record.op_id,
                completion.message,
                completion.code,
            )
            promise.reject(NetworkError(completion.message, completion.code))

    def _release(self, record: OperationRecord) -> None:
        self.engine.remove_operation(self._context, record.handle)
        assert self._pool is not None
        self._pool.put(record.handle)

    def _wait(self, op_id: int, promise: Promise) -> None:
        while promise.pending:
            active = self.tick()
            if promise.pending and not active:
                record = self._operations.pop(op_id, None)
                if record is not None:
                    self._release(record)
                raise NetworkError(
                    f"Operation {op_id} is no longer known to the transport engine"
                )

    def _cancel(self, op_id: int, promise: Promise) -> None:
        record = self._operations.pop(op_id, None)
        if record is not None:
            # The transport may still be mid-flight, whatever it reports
            # for this handle from now on is ignored.
            self._release(record)
        log.debug("Cancelled operation %d", op_id)
        promise.reject(CancellationError("Promise was cancelled"))

    def get_config(self, option: str | None = None, default: typing.Any = None) -> typing.Any:
        """
        Return the value of ``option``, or ``default`` when it is not set.
        Without ``option`` a copy of the whole configuration is returned.
        """
        if option is None:
            return merge_config(self._config)
        return self._config.get(option, default)

    def set_config(
        self,
        option: str | typing.Mapping[str, typing.Any],
        value: typing.Any = None,
    ) -> None:
        """
        Set a single option, or merge a mapping of options recursively over
        the current configuration. Options absent from the mapping keep
        their values.

        Recognized options: ``cache_size`` (idle handles kept for reuse),
        ``tick_interval`` (seconds) and ``transport_options`` (a mapping
        handed to the engine, see :data:`curlmux.engine.curl.TRANSPORT_OPTIONS`).

        :raises ValueError: when ``cache_size`` is not an integer >= 0, the
            configuration is left unchanged.
        """
        if isinstance(option, Mapping):
            config = merge_config(DEFAULT_CONFIG, self._config, option)
        else:
            config = merge_config(self._config)
            config[option] = value
        self._config = _checked(config)

        if self._pool is not None:
            self._pool.maxsize = self._config["cache_size"]

    def close(self) -> None:
        """
        Abandon every in-flight operation and release the transport context.
        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        records = list(self._operations.values())
        self._operations.clear()
        for record in records:
            self._release(record)
            if record.promise.pending:
                record.promise.reject(CancellationError("Client was closed"))

        if self._pool is not None:
            self._pool.close()

        if self._context is not None:
            context, self._context = self._context, None
            self.engine.close_context(context)
            log.debug("Closed transport context")


def _checked(config: dict[str, typing.Any]) -> dict[str, typing.Any]:
    cache_size = config.get("cache_size")
    if isinstance(cache_size, bool) or not isinstance(cache_size, int) or cache_size < 0:
        raise ValueError(f"cache_size must be an integer >= 0, got {cache_size!r}")
    return config
