"""
Single-assignment promises driven by cooperative wait and cancel callbacks.

A :class:`Promise` does not run anything by itself. Whoever creates it hands
in a ``wait_fn`` that knows how to make progress until the promise settles
(the :class:`~curlmux.client.Client` ticks its transport engine) and an
optional ``cancel_fn`` that knows how to abandon the work.
"""

from __future__ import annotations

import enum
import logging
import typing

from .exceptions import (
    CancellationError,
    InvalidPromiseArgument,
    MissingCallbackError,
    PromiseStateError,
    ReentrantWaitError,
    WaitNotSettledError,
)

__all__ = ["Promise", "PromiseState", "unwrap"]

log = logging.getLogger(__name__)

_TYPE_CALLBACK = typing.Callable[["Promise"], typing.Any]
_TYPE_HANDLER = typing.Callable[[typing.Any], typing.Any]


class PromiseState(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class Promise:
    """
    A deferred result that is settled exactly once.

    :param wait_fn:
        Called with the promise by :meth:`wait` while the promise is pending.
        It must settle the promise before returning.

    :param cancel_fn:
        Called with the promise by :meth:`cancel` while the promise is
        pending. It must settle the promise, conventionally by rejecting it
        with a :class:`~curlmux.exceptions.CancellationError`.

    Promises also carry an open property bag for caller metadata::

        >>> p = Promise()
        >>> p["request_id"] = 7
        >>> "request_id" in p, p["request_id"]
        (True, 7)
        >>> p.resolve("done")
        >>> p.wait()
        'done'
    """

    def __init__(
        self,
        wait_fn: _TYPE_CALLBACK | None = None,
        cancel_fn: _TYPE_CALLBACK | None = None,
    ) -> None:
        self._state = PromiseState.PENDING
        self._result: typing.Any = None
        self._wait_fn = wait_fn
        self._cancel_fn = cancel_fn
        self.properties: dict[str, typing.Any] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} [{self._state.value}]>"

    @property
    def state(self) -> PromiseState:
        return self._state

    @property
    def result(self) -> typing.Any:
        """The settled value or rejection reason, ``None`` while pending."""
        return self._result

    @property
    def pending(self) -> bool:
        return self._state is PromiseState.PENDING

    @property
    def fulfilled(self) -> bool:
        return self._state is PromiseState.FULFILLED

    @property
    def rejected(self) -> bool:
        return self._state is PromiseState.REJECTED

    def resolve(self, value: typing.Any) -> None:
        """Fulfill the promise with ``value``."""
        self._settle(PromiseState.FULFILLED, value)

    def reject(self, reason: typing.Any) -> None:
        """Reject the promise with ``reason``, usually an exception."""
        self._settle(PromiseState.REJECTED, reason)

    def _settle(self, state: PromiseState, value: typing.Any) -> None:
        if self._state is PromiseState.PENDING:
            self._state = state
            self._result = value
            return

        if self._state is state and _same_value(self._result, value):
            return

        if self._state is state:
            raise PromiseStateError(f"The promise is already {state.value}")
        raise PromiseStateError(
            f"Cannot change a {self._state.value} promise to {state.value}"
        )

    def cancel(self) -> None:
        """
        Cancel the promise if it is still pending.

        Without a cancel callback the promise is rejected with a
        :class:`~curlmux.exceptions.CancellationError`. A cancel callback that
        raises rejects the promise with its error.
        """
        if self._state is not PromiseState.PENDING:
            return

        if self._cancel_fn is None:
            self.reject(CancellationError("Promise has been cancelled"))
            return

        try:
            self._cancel_fn(self)
        except Exception as e:
            if self._state is not PromiseState.PENDING:
                raise PromiseStateError(str(e)) from e
            self.reject(e)

        if self._state is PromiseState.PENDING:
            raise PromiseStateError("Cancel callback did not settle the promise")

    def wait(self) -> typing.Any:
        """
        Block until the promise is settled and return its result.

        The result of a rejected promise is the rejection reason; it is
        returned, not raised. Nested promises are not unwrapped, use
        :meth:`unwrap` for that.

        :raises ReentrantWaitError: when called from inside a callback run by
            a wait function; the promise stays pending.
        """
        if self._state is not PromiseState.PENDING:
            return self._result

        if self._wait_fn is None:
            raise MissingCallbackError(
                "Cannot wait on a promise that has no wait function"
            )

        try:
            self._wait_fn(self)
        except ReentrantWaitError:
            raise
        except Exception as e:
            if self._state is not PromiseState.PENDING:
                # The promise got settled before the wait function blew up,
                # the error belongs to the application.
                raise PromiseStateError(str(e)) from e
            self.reject(e)

        if self._state is PromiseState.PENDING:
            raise WaitNotSettledError("Wait function did not settle the promise")

        return self._result

    def unwrap(self) -> typing.Any:
        """Wait on this promise and on every promise it settles with."""
        return unwrap(self)

    def then(
        self,
        on_fulfilled: _TYPE_HANDLER | None = None,
        on_rejected: _TYPE_HANDLER | None = None,
    ) -> Promise:
        """
        Chain handlers onto this promise.

        :param on_fulfilled:
            Transforms the value of this promise into the value of the
            returned promise. Values pass through when omitted.

        :param on_rejected:
            Transforms the reason of this promise into the reason of the
            returned promise. Reasons pass through when omitted.

        An exception raised by either handler rejects the returned promise.
        Cancelling the returned promise cancels this one.
        """
        if on_fulfilled is None and on_rejected is None:
            raise InvalidPromiseArgument(
                "then() requires an on_fulfilled or an on_rejected handler"
            )

        parent = self

        def wait_fn(derived: Promise) -> None:
            result = parent.wait()
            if parent.fulfilled:
                if on_fulfilled is not None:
                    result = on_fulfilled(result)
                derived.resolve(result)
            else:
                if on_rejected is not None:
                    result = on_rejected(result)
                derived.reject(result)

        def cancel_fn(derived: Promise) -> None:
            parent.cancel()
            if parent.rejected:
                derived.reject(parent.result)
            else:
                derived.reject(CancellationError("Promise has been cancelled"))

        return type(self)(wait_fn, cancel_fn)

    # Property bag

    def __getitem__(self, key: str) -> typing.Any:
        return self.properties[key]

    def __setitem__(self, key: str, value: typing.Any) -> None:
        self.properties[key] = value

    def __delitem__(self, key: str) -> None:
        del self.properties[key]

    def __contains__(self, key: object) -> bool:
        return key in self.properties

    def __iter__(self) -> typing.Iterator[str]:
        return iter(self.properties)

    def get(self, key: str, default: typing.Any = None) -> typing.Any:
        return self.properties.get(key, default)


def unwrap(value: typing.Any) -> typing.Any:
    """Wait on ``value`` while it is a :class:`Promise`.

    >>> inner = Promise()
    >>> inner.resolve(42)
    >>> outer = Promise()
    >>> outer.resolve(inner)
    >>> unwrap(outer)
    42
    """
    while isinstance(value, Promise):
        value = value.wait()
    return value


def _same_value(current: typing.Any, value: typing.Any) -> bool:
    if current is value:
        return True
    try:
        return bool(current == value)
    except Exception:
        # Objects with exotic comparisons (e.g. arrays) are never "the same".
        log.debug("Could not compare promise results %r and %r", current, value)
        return False
