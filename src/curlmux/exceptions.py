from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .pool import HandlePool

_TYPE_REDUCE_RESULT = typing.Tuple[
    typing.Callable[..., object], typing.Tuple[object, ...]
]

# Base Exceptions


class CurlmuxError(Exception):
    """Base exception used by this module."""

    pass


class PromiseError(CurlmuxError):
    """Base exception for errors raised by :class:`~curlmux.futures.Promise`."""

    pass


class HTTPError(CurlmuxError):
    """Base exception for errors raised while performing HTTP operations."""

    pass


class PoolError(HTTPError):
    """Base exception for errors caused within a handle pool."""

    def __init__(self, pool: HandlePool | None, message: str) -> None:
        self.pool = pool
        super().__init__(f"{pool}: {message}" if pool is not None else message)

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (None, None)


# Leaf Exceptions


class PromiseStateError(PromiseError):
    """Raised when a promise is used in a way its state does not allow.

    Settling an already settled promise with a different value, waiting on a
    promise that cannot be waited on, or a cancel callback that leaves the
    promise pending are all programming errors and are never retried.
    """

    pass


class MissingCallbackError(PromiseStateError):
    """Raised when waiting on a pending promise that has no wait callback."""

    pass


class WaitNotSettledError(PromiseStateError):
    """Raised when a wait callback returns without settling its promise."""

    pass


class InvalidPromiseArgument(PromiseStateError, ValueError):
    """Raised when :meth:`~curlmux.futures.Promise.then` gets no handler."""

    pass


class ReentrantWaitError(PromiseStateError, RuntimeError):
    """Raised when a promise is waited on from a callback its own wait
    function is running, e.g. a transport callback inside
    :meth:`~curlmux.client.Client.tick`.

    :meth:`~curlmux.futures.Promise.wait` lets it through instead of
    rejecting the promise, which is left pending.
    """

    pass


class CancellationError(PromiseError):
    """The reason a promise is rejected with when it gets cancelled."""

    pass


class NetworkError(HTTPError):
    """Raised when the transport engine reports a failed operation.

    :param message: The error text reported by the engine.
    :param code: The engine error number (a libcurl ``CURLE_*`` code for
        :class:`~curlmux.engine.curl.CurlEngine`).
    """

    def __init__(self, message: str, code: int = 0) -> None:
        self.code = code
        super().__init__(message)

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (str(self), self.code)


class ClientError(HTTPError):
    """Raised by :meth:`~curlmux.client.Client.send_request` for any failure.

    The original error is also available as __cause__.
    """

    original_error: BaseException | None

    def __init__(self, message: str, error: BaseException | None = None) -> None:
        super().__init__(message)
        self.original_error = error

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (str(self), self.original_error)


class ClosedPoolError(PoolError):
    """Raised when a handle is requested from a pool after it has been closed."""

    pass
