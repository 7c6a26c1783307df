"""Wait until a watched resource satisfies a predicate."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog

from kubelink.clients.watch import ResourceWatcher
from kubelink.exceptions import WatchClosedError

log = structlog.get_logger()

Predicate = Callable[[Any, str], bool]

WATCHED_EVENTS = ("added", "modified", "deleted")


async def wait_for(
    http: httpx.AsyncClient,
    predicate: Predicate,
    url: str,
    params: Mapping[str, Any] | None = None,
    *,
    timeout: httpx.Timeout | None = None,
) -> Any:
    """Watch ``url`` and return the first resource for which ``predicate(resource, event)`` is true.

    The predicate runs once per added/modified/deleted event, in arrival order. The watch is torn
    down exactly once, whether the wait succeeds, fails or is cancelled by the caller (for example
    through ``asyncio.timeout``). There is no built-in deadline.

    Raises:
        httpx.HTTPError: The watch could not be opened. Nothing is torn down in that case.
        WatchClosedError: The stream ended before any resource matched.
        Exception: Whatever the predicate raised.
    """
    watcher = await ResourceWatcher.open(http, url, params, timeout=timeout)

    outcome: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    def settle(result: Any = None, error: BaseException | None = None) -> None:
        if outcome.done():
            return
        # Stop evaluating the rest of a burst; teardown happens once, below.
        watcher.remove_all_listeners()
        if error is not None:
            outcome.set_exception(error)
        else:
            outcome.set_result(result)

    def on_change(event: str) -> Callable[[Any], None]:
        def handler(resource: Any) -> None:
            if outcome.done():
                return
            try:
                matched = predicate(resource, event)
            except Exception as exc:
                settle(error=exc)
                return
            if matched:
                log.debug("wait_for_matched", url=url, watch_event=event)
                settle(result=resource)

        return handler

    def on_error(error: Any) -> None:
        # Unparseable lines do not end the wait; a broken connection does.
        if isinstance(error, httpx.HTTPError):
            settle(error=error)

    def on_end(_: Any) -> None:
        settle(error=WatchClosedError(url))

    for event in WATCHED_EVENTS:
        watcher.on(event, on_change(event))
    watcher.on("error", on_error)
    watcher.on("end", on_end)

    try:
        return await outcome
    finally:
        watcher.unwatch()
