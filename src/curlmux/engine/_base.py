from __future__ import annotations

import typing

from ..fields import _TYPE_FIELDS

_TYPE_HEADER_CALLBACK = typing.Callable[[bytes], int]
_TYPE_BODY_CALLBACK = typing.Callable[[bytes], int]
_TYPE_BODY = typing.Union[bytes, _TYPE_FIELDS]


class OperationOptions(typing.NamedTuple):
    """Everything a transport engine needs to run one HTTP operation."""

    op_id: int
    url: str
    method: str
    #: One ``"Name: value"`` line per header value.
    headers: list[str]
    #: Raw bytes, or a form field mapping (possibly holding
    #: :class:`~curlmux.fields.FileReference` values) sent as multipart.
    body: _TYPE_BODY
    header_callback: _TYPE_HEADER_CALLBACK
    body_callback: _TYPE_BODY_CALLBACK
    #: Generic transport options (``connect_timeout``, ``timeout``,
    #: ``follow_redirects``, ...) merged from the client configuration.
    transport_options: typing.Mapping[typing.Any, typing.Any] = {}


class Completion(typing.NamedTuple):
    """A finished operation as reported by :meth:`BaseEngine.read_completed`."""

    op_id: int
    handle: typing.Any
    #: Engine error number, ``0`` on success.
    code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0


class TransportStats(typing.NamedTuple):
    """Timings and counters collected by the engine for one operation."""

    total_time: float = 0.0
    namelookup_time: float = 0.0
    connect_time: float = 0.0
    starttransfer_time: float = 0.0
    size_download: float = 0.0
    response_code: int = 0
    effective_url: str = ""


class BaseEngine:
    """
    A multiplexer running many HTTP operations inside one polling context.

    The interface follows libcurl's multi API. A context is created once per
    :class:`~curlmux.client.Client`; handles are created by the engine, reused
    through a :class:`~curlmux.pool.HandlePool` and configured for a single
    operation at a time. Extend this class to ship another transport.
    """

    def create_context(self) -> typing.Any:
        """Create the polling context operations are registered with."""
        raise NotImplementedError

    def close_context(self, context: typing.Any) -> None:
        raise NotImplementedError

    def create_handle(self) -> typing.Any:
        """Create a fresh, unconfigured operation handle."""
        raise NotImplementedError

    def reset_handle(self, handle: typing.Any) -> None:
        """Forget the configuration of a finished operation so the handle can be reused."""
        raise NotImplementedError

    def close_handle(self, handle: typing.Any) -> None:
        raise NotImplementedError

    def add_operation(
        self, context: typing.Any, handle: typing.Any, options: OperationOptions
    ) -> None:
        """Configure ``handle`` from ``options`` and register it with ``context``."""
        raise NotImplementedError

    def remove_operation(self, context: typing.Any, handle: typing.Any) -> None:
        raise NotImplementedError

    def perform(self, context: typing.Any) -> int:
        """Run pending work without blocking, return the number of active operations."""
        raise NotImplementedError

    def read_completed(self, context: typing.Any) -> Completion | None:
        """Pop one finished operation, ``None`` when there is nothing to report."""
        raise NotImplementedError

    def get_info(self, handle: typing.Any) -> TransportStats:
        raise NotImplementedError

    def wait(self, context: typing.Any, timeout: float) -> None:
        """Block up to ``timeout`` seconds until there is activity on ``context``."""
        raise NotImplementedError
