"""
Multiplexed HTTP client with promise-based asynchronous requests
"""

from __future__ import annotations

# Set default logging handler to avoid "No handler found" warnings.
import logging
import typing
from logging import NullHandler

from . import exceptions
from ._collections import HTTPHeaderDict
from ._version import __version__
from .assembler import ResponseAssembler
from .client import DEFAULT_CONFIG, Client
from .engine import BaseEngine, Completion, OperationOptions, TransportStats
from .fields import FileReference
from .futures import Promise, PromiseState, unwrap
from .pool import HandlePool
from .request import Request, UploadedFile
from .response import Response, ResponseFactory

__license__ = "MIT"
__version__ = __version__

__all__ = (
    "BaseEngine",
    "Client",
    "Completion",
    "DEFAULT_CONFIG",
    "FileReference",
    "HTTPHeaderDict",
    "HandlePool",
    "OperationOptions",
    "Promise",
    "PromiseState",
    "Request",
    "Response",
    "ResponseAssembler",
    "ResponseFactory",
    "TransportStats",
    "UploadedFile",
    "add_stderr_logger",
    "exceptions",
    "request",
    "unwrap",
)

logging.getLogger(__name__).addHandler(NullHandler())


def add_stderr_logger(level: int = logging.DEBUG) -> logging.StreamHandler[typing.TextIO]:
    """
    Helper for quickly adding a StreamHandler to the logger. Useful for
    debugging.

    Returns the handler after adding it.
    """
    # This method needs to be in this __init__.py to get the __name__ correct
    # even if curlmux is vendored within another package.
    logger = logging.getLogger(__name__)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("Added a stderr logging handler to logger: %s", __name__)
    return handler


# ... Clean up.
del NullHandler


_DEFAULT_CLIENT: Client | None = None


def request(
    method: str,
    url: str,
    *,
    headers: typing.Mapping[str, str | typing.Sequence[str]] | None = None,
    body: bytes | str | typing.BinaryIO | None = None,
    fields: typing.Mapping[str, typing.Any] | None = None,
) -> Response:
    """
    A convenience, top-level blocking request method. It uses a module-global
    :class:`~curlmux.client.Client` instance created on first use.
    Therefore, its side effects could be shared across dependencies relying on it.
    To avoid side effects create a new ``Client`` instance and use it instead.
    """
    global _DEFAULT_CLIENT
    if _DEFAULT_CLIENT is None:
        _DEFAULT_CLIENT = Client()

    return _DEFAULT_CLIENT.send_request(  # type: ignore[return-value]
        Request(method, url, headers=headers, body=body, attributes=fields)
    )
