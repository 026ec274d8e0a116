"""
Deadline and cancellation-signal support for store operations.

A storage coroutine runs as its own task and is raced against the caller's
deadline and optional ``asyncio.Event``. Whichever finishes first wins; the
losing storage task is cancelled so its transaction rolls back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import structlog

from eventlog.core.errors import OperationCancelledError

_log = structlog.get_logger(__name__)

T = TypeVar("T")


async def run_cancellable(
    operation: str,
    coro: Coroutine[Any, Any, T],
    *,
    timeout: float | None = None,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """
    Await ``coro`` unless the deadline passes or ``cancel_event`` is set.

    Raises:
        OperationCancelledError: the deadline expired or the event fired
            before the storage work completed.
    """
    if timeout is None and cancel_event is None:
        return await coro

    if cancel_event is not None and cancel_event.is_set():
        coro.close()
        raise OperationCancelledError(operation, "cancel_requested")

    work = asyncio.ensure_future(coro)
    waiters: set[asyncio.Future[Any]] = {work}
    signal: asyncio.Future[Any] | None = None
    if cancel_event is not None:
        signal = asyncio.ensure_future(cancel_event.wait())
        waiters.add(signal)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        if signal is not None:
            signal.cancel()

    if work in done:
        return work.result()

    await _abandon(work)
    reason = "cancel_requested" if signal is not None and signal in done else "deadline_exceeded"
    raise OperationCancelledError(operation, reason)


async def _abandon(work: asyncio.Future[Any]) -> None:
    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        _log.warning("abandoned_operation_failed", error=str(exc))
