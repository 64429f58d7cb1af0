from __future__ import annotations

import logging
import queue
import typing

from .exceptions import ClosedPoolError

if typing.TYPE_CHECKING:
    from .engine import BaseEngine

__all__ = ["HandlePool"]

log = logging.getLogger(__name__)


class HandlePool:
    """
    Freelist of idle transport handles.

    :param engine:
        The :class:`~curlmux.engine.BaseEngine` handles are created by, reset
        with and closed through.

    :param maxsize:
        Number of idle handles to save for reuse. Handles released while the
        pool already holds ``maxsize`` of them are closed. ``0`` disables
        reuse altogether.

    The most recently released handle is handed out first, it is the one
    most likely to still hold warm connections in the engine.
    """

    QueueCls = queue.LifoQueue

    def __init__(self, engine: BaseEngine, maxsize: int = 15) -> None:
        self.engine = engine
        self.pool: queue.LifoQueue[typing.Any] | None = self.QueueCls()
        self._maxsize = 0
        self.maxsize = maxsize

        # Handles created by this pool, for logging.
        self.num_handles = 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}(maxsize={self._maxsize})"

    def __len__(self) -> int:
        """Number of idle handles currently held."""
        return self.pool.qsize() if self.pool is not None else 0

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @maxsize.setter
    def maxsize(self, value: int) -> None:
        value = int(value)
        if value < 0:
            raise ValueError(f"maxsize must be >= 0, got {value}")
        self._maxsize = value
        if self.pool is None:
            return

        # Shrinking the pool closes the surplus idle handles right away.
        while self.pool.qsize() > value:
            self.engine.close_handle(self.pool.get(block=False))

    def _new_handle(self) -> typing.Any:
        self.num_handles += 1
        log.debug("Starting new transport handle (%d)", self.num_handles)
        return self.engine.create_handle()

    def get(self) -> typing.Any:
        """
        Get a handle. Will return a pooled handle if one is available.
        Otherwise, a fresh handle is returned.
        """
        if self.pool is None:
            raise ClosedPoolError(self, "Pool is closed.")

        try:
            return self.pool.get(block=False)
        except queue.Empty:
            return self._new_handle()

    def put(self, handle: typing.Any) -> None:
        """
        Put a handle back into the pool.

        The handle is reset first. If the pool is already full (or closed),
        the handle is closed instead because we exceeded maxsize. If handles
        are discarded frequently, then maxsize should be increased.
        """
        if self.pool is not None and self.pool.qsize() < self._maxsize:
            self.engine.reset_handle(handle)
            self.pool.put(handle, block=False)
            return

        if self.pool is not None and self._maxsize:
            log.warning(
                "Handle pool is full, discarding handle. Handle pool size: %s",
                self._maxsize,
            )
        self.engine.close_handle(handle)

    def close(self) -> None:
        """Close all pooled handles and disable the pool."""
        if self.pool is None:
            return
        # Disable access to the pool
        old_pool, self.pool = self.pool, None

        while True:
            try:
                handle = old_pool.get(block=False)
            except queue.Empty:
                break
            self.engine.close_handle(handle)
