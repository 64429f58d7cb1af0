from __future__ import annotations

import pickle

import pytest

from curlmux.exceptions import (
    CancellationError,
    ClientError,
    ClosedPoolError,
    CurlmuxError,
    HTTPError,
    InvalidPromiseArgument,
    MissingCallbackError,
    NetworkError,
    PoolError,
    PromiseError,
    PromiseStateError,
    ReentrantWaitError,
    WaitNotSettledError,
)
from curlmux.pool import HandlePool

from . import FakeEngine


class TestPickle:
    @pytest.mark.parametrize(
        "exception",
        [
            HTTPError(None),
            HTTPError("foo"),
            PromiseStateError("The promise is already fulfilled"),
            CancellationError("Promise was cancelled"),
            ReentrantWaitError("tick() must not be called from a transport callback"),
            NetworkError("Could not resolve host", 6),
            ClientError("boom", ValueError("boom")),
            ClientError("boom"),
            PoolError(HandlePool(FakeEngine()), ""),
            ClosedPoolError(HandlePool(FakeEngine()), "Pool is closed."),
            ClosedPoolError(None, "Client has been closed."),
        ],
    )
    def test_exceptions(self, exception: Exception) -> None:
        result = pickle.loads(pickle.dumps(exception))
        assert isinstance(result, type(exception))

    def test_network_error_keeps_code(self) -> None:
        result = pickle.loads(pickle.dumps(NetworkError("Timeout was reached", 28)))
        assert result.code == 28
        assert str(result) == "Timeout was reached"

    def test_client_error_keeps_original(self) -> None:
        result = pickle.loads(pickle.dumps(ClientError("boom", KeyError("k"))))
        assert isinstance(result.original_error, KeyError)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_cls, bases",
        [
            (PromiseStateError, (PromiseError, CurlmuxError)),
            (MissingCallbackError, (PromiseStateError,)),
            (WaitNotSettledError, (PromiseStateError,)),
            (InvalidPromiseArgument, (PromiseStateError, ValueError)),
            (ReentrantWaitError, (PromiseStateError, RuntimeError)),
            (CancellationError, (PromiseError,)),
            (NetworkError, (HTTPError, CurlmuxError)),
            (ClientError, (HTTPError,)),
            (ClosedPoolError, (PoolError, HTTPError)),
        ],
    )
    def test_subclasses(self, exc_cls: type[Exception], bases: tuple[type, ...]) -> None:
        for base in bases:
            assert issubclass(exc_cls, base)

    def test_cancellation_is_not_a_state_error(self) -> None:
        assert not issubclass(CancellationError, PromiseStateError)


class TestFormat:
    def test_pool_error_mentions_pool(self) -> None:
        pool = HandlePool(FakeEngine(), maxsize=2)
        err = ClosedPoolError(pool, "Pool is closed.")
        assert str(err) == "HandlePool(maxsize=2): Pool is closed."
        assert err.pool is pool

    def test_pool_error_without_pool(self) -> None:
        err = ClosedPoolError(None, "Client has been closed.")
        assert str(err) == "Client has been closed."
        assert err.pool is None

    def test_network_error_defaults(self) -> None:
        err = NetworkError("failed")
        assert err.code == 0
        assert str(err) == "failed"

    def test_client_error_without_original(self) -> None:
        assert ClientError("failed").original_error is None
