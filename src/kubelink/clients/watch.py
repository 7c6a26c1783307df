"""Turn a streaming watch or log response into events.

Watch endpoints deliver newline-delimited JSON ``{"type": ..., "object": ...}``; each line is
published on the lowercased type (``added``, ``modified``, ``deleted``...). Endpoints ending in
``/log`` deliver plain text; each line is published on ``line``. ``error`` and ``end`` report
stream failures and the end of the stream.
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import aclosing
from typing import Any

import httpx
import structlog

from kubelink.models import LogLine, WatchEvent

log = structlog.get_logger()

EventHandler = Callable[[Any], Any]
StreamItem = WatchEvent | LogLine

_END = object()


def is_log_url(url: str) -> bool:
    return url.endswith("/log")


async def iter_lines(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Assemble text chunks into lines.

    A trailing ``\\r`` is dropped. A final line without a newline is yielded once the chunks
    are exhausted; the empty remainder after a trailing newline is not.
    """
    pending: list[str] = []
    async for chunk in chunks:
        *lines, rest = chunk.split("\n")
        for line in lines:
            if pending:
                pending.append(line)
                line = "".join(pending)
                pending = []
            yield line.removesuffix("\r")
        if rest:
            pending.append(rest)
    if pending:
        yield "".join(pending).removesuffix("\r")


class ResourceWatcher:
    """Owns one streaming response and republishes its lines as events.

    Create with :meth:`open`. Subscribe with :meth:`on`, or iterate with ``async for``. Events
    are delivered strictly in arrival order and are not buffered for late subscribers.
    :meth:`unwatch` is the only way to stop the stream; there is no built-in deadline.
    """

    def __init__(self, response: httpx.Response, url: str, *, log_mode: bool) -> None:
        self.url = url
        self.response = response
        self.log_mode = log_mode
        self._listeners: dict[str, list[EventHandler]] = defaultdict(list)
        self._queues: list[asyncio.Queue[Any]] = []
        self._task: asyncio.Task[None] | None = None
        self._closing: asyncio.Task[None] | None = None
        self._unwatched = False
        self._finished = False

    @classmethod
    async def open(
        cls,
        http: httpx.AsyncClient,
        url: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: httpx.Timeout | None = None,
    ) -> ResourceWatcher:
        """Issue the streaming GET and start publishing.

        ``follow=1`` (log URLs) or ``watch=1`` (everything else) is merged into the caller's
        query parameters.

        Raises:
            httpx.HTTPStatusError: The server answered with an error status.
            httpx.HTTPError: The request could not be sent.
        """
        log_mode = is_log_url(url)
        query = dict(params or {})
        query["follow" if log_mode else "watch"] = 1

        request = http.build_request("GET", url, params=query, timeout=timeout or httpx.Timeout(None))
        response = await http.send(request, stream=True)
        if response.is_error:
            await response.aread()
            await response.aclose()
            log.error("watch_open_failed", url=url, status_code=response.status_code)
            response.raise_for_status()

        watcher = cls(response, url, log_mode=log_mode)
        watcher._start()
        log.debug("watch_opened", url=url, log_mode=log_mode)
        return watcher

    # --- subscription ---

    def on(self, event: str, handler: EventHandler) -> ResourceWatcher:
        if not self._unwatched:
            self._listeners[event].append(handler)
        return self

    def off(self, event: str, handler: EventHandler) -> ResourceWatcher:
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
        return self

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def __aiter__(self) -> AsyncIterator[StreamItem]:
        return self.events()

    async def events(self) -> AsyncIterator[StreamItem]:
        """Yield events in arrival order until the stream ends or is unwatched.

        A transport failure is raised from the iteration.
        """
        if self._finished:
            return
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    # --- teardown ---

    @property
    def closed(self) -> bool:
        return self._unwatched or self._finished

    def unwatch(self) -> None:
        """Remove every subscriber and close the connection.

        Idempotent, and safe to call from inside an event handler.
        """
        if self._unwatched:
            return
        self._unwatched = True
        self._listeners.clear()
        self._finish_queues()
        if self._task is not None and self._task is not _current_task():
            self._task.cancel()
        log.debug("watch_closed", url=self.url)

    async def aclose(self) -> None:
        """Unwatch and wait until the connection is closed. Not for use inside handlers."""
        self.unwatch()
        if self._task is not None:
            await asyncio.wait({self._task})
        if self._closing is not None:
            await self._closing
        await self.response.aclose()

    async def __aenter__(self) -> ResourceWatcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- pump ---

    def _start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._pump())
        self._task.add_done_callback(self._on_pump_done)

    async def _pump(self) -> None:
        try:
            async with aclosing(iter_lines(self.response.aiter_text())) as lines:
                async for line in lines:
                    self._dispatch(line)
                    if self._unwatched:
                        break
        except httpx.HTTPError as exc:
            if not self._unwatched:
                log.warning("watch_stream_failed", url=self.url, error=str(exc))
                self._emit("error", exc)
                self._publish(exc)
        finally:
            if not self._unwatched:
                self._emit("end", None)
            self._finished = True
            self._finish_queues()
            await self.response.aclose()

    def _on_pump_done(self, task: asyncio.Task[None]) -> None:
        self._finished = True
        self._finish_queues()
        # A pump cancelled before it ever ran never reached its own cleanup.
        if not self.response.is_closed:
            self._closing = asyncio.ensure_future(self.response.aclose())
            self._closing.add_done_callback(self._on_closed)

    def _on_closed(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.warning("watch_response_close_failed", url=self.url, error=str(error))

    def _dispatch(self, line: str) -> None:
        if self.log_mode:
            self._emit("line", line)
            self._publish(LogLine(text=line))
            return

        if not line.strip():
            return
        try:
            data = json.loads(line)
            kind = str(data["type"]).lower()
            resource = data.get("object")
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            log.warning("watch_line_unparseable", url=self.url, error=str(exc))
            self._emit("error", exc)
            return

        self._emit(kind, resource)
        self._publish(WatchEvent(type=kind, object=resource))

    def _emit(self, event: str, payload: Any) -> None:
        for handler in list(self._listeners.get(event, ())):
            if self._unwatched:
                return
            try:
                handler(payload)
            except Exception as exc:
                log.exception("watch_handler_failed", url=self.url, watch_event=event)
                if event != "error":
                    self._emit("error", exc)

    def _publish(self, item: Any) -> None:
        for queue in self._queues:
            queue.put_nowait(item)

    def _finish_queues(self) -> None:
        queues, self._queues = self._queues, []
        for queue in queues:
            queue.put_nowait(_END)


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
