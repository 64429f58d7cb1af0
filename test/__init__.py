from __future__ import annotations

import collections
import itertools
import typing

from curlmux.engine import BaseEngine, Completion, OperationOptions, TransportStats

# libcurl error numbers used by the fake transport.
CURLE_COULDNT_CONNECT = 7
CURLE_OPERATION_TIMEDOUT = 28


class FakeHandle:
    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.id = next(self._ids)
        self.options: OperationOptions | None = None
        self.resets = 0
        self.closed = False

    def __repr__(self) -> str:
        return f"<FakeHandle {self.id}>"


class FakeContext:
    def __init__(self) -> None:
        self.active: dict[FakeHandle, OperationOptions] = {}
        self.finished: collections.deque[Completion] = collections.deque()
        self.closed = False


class ScriptedResponse(typing.NamedTuple):
    url: str
    header_lines: list[bytes]
    chunks: list[bytes]
    code: int
    message: str


class FakeEngine(BaseEngine):
    """
    In-memory transport engine.

    Responses are scripted per URL with :meth:`respond` and :meth:`fail`.
    Every :meth:`perform` call delivers up to ``per_perform`` scripted
    responses, in the order they were scripted, to the matching active
    operations: header lines and body chunks go through the operation's
    callbacks and a completion is queued for :meth:`read_completed`.
    """

    def __init__(self, per_perform: int | None = None) -> None:
        self.per_perform = per_perform
        self.script: list[ScriptedResponse] = []
        self.contexts: list[FakeContext] = []
        self.handles: list[FakeHandle] = []
        self.removed: list[FakeHandle] = []
        self.waits: list[float] = []
        self.performs = 0

    def respond(
        self,
        url: str,
        status: int = 200,
        headers: typing.Sequence[tuple[str, str]] = (),
        body: typing.Sequence[bytes] = (),
        reason: str = "OK",
    ) -> None:
        lines = [f"HTTP/1.1 {status} {reason}\r\n".encode("latin-1")]
        lines += [f"{name}: {value}\r\n".encode("latin-1") for name, value in headers]
        lines.append(b"\r\n")
        self.script.append(ScriptedResponse(url, lines, list(body), 0, ""))

    def respond_raw(
        self, url: str, header_lines: typing.Sequence[bytes], chunks: typing.Sequence[bytes]
    ) -> None:
        self.script.append(ScriptedResponse(url, list(header_lines), list(chunks), 0, ""))

    def fail(self, url: str, code: int = CURLE_COULDNT_CONNECT, message: str = "Failed to connect") -> None:
        self.script.append(ScriptedResponse(url, [], [], code, message))

    def drop(self, url: str) -> None:
        """Forget an active operation without reporting a completion."""
        for context in self.contexts:
            for handle, options in list(context.active.items()):
                if options.url == url:
                    del context.active[handle]

    def create_context(self) -> FakeContext:
        context = FakeContext()
        self.contexts.append(context)
        return context

    def close_context(self, context: FakeContext) -> None:
        assert not context.closed, "context closed twice"
        context.closed = True

    def create_handle(self) -> FakeHandle:
        handle = FakeHandle()
        self.handles.append(handle)
        return handle

    def reset_handle(self, handle: FakeHandle) -> None:
        handle.options = None
        handle.resets += 1

    def close_handle(self, handle: FakeHandle) -> None:
        handle.closed = True

    def add_operation(
        self, context: FakeContext, handle: FakeHandle, options: OperationOptions
    ) -> None:
        assert handle not in context.active
        handle.options = options
        context.active[handle] = options

    def remove_operation(self, context: FakeContext, handle: FakeHandle) -> None:
        context.active.pop(handle, None)
        self.removed.append(handle)

    def perform(self, context: FakeContext) -> int:
        self.performs += 1
        delivered = 0
        for scripted in list(self.script):
            if self.per_perform is not None and delivered >= self.per_perform:
                break
            handle = self._find(context, scripted.url)
            if handle is None:
                continue
            self.script.remove(scripted)
            options = context.active.pop(handle)
            for line in scripted.header_lines:
                assert options.header_callback(line) == len(line)
            for chunk in scripted.chunks:
                assert options.body_callback(chunk) == len(chunk)
            context.finished.append(
                Completion(options.op_id, handle, scripted.code, scripted.message)
            )
            delivered += 1
        return len(context.active)

    def _find(self, context: FakeContext, url: str) -> FakeHandle | None:
        for handle, options in context.active.items():
            if options.url == url:
                return handle
        return None

    def read_completed(self, context: FakeContext) -> Completion | None:
        if context.finished:
            return context.finished.popleft()
        return None

    def get_info(self, handle: FakeHandle) -> TransportStats:
        url = handle.options.url if handle.options is not None else ""
        return TransportStats(total_time=0.25, effective_url=url)

    def wait(self, context: FakeContext, timeout: float) -> None:
        self.waits.append(timeout)
