"""Bounded, cancellable retry around a single handler.

:class:`RetryExecutor` invokes a handler up to
:attr:`RetryPolicy.max_attempts <skillrun_core.RetryPolicy.max_attempts>`
times.  Only ``RETRYABLE`` results trigger another attempt; ``SUCCESS``
and ``TERMINAL`` results end the loop immediately.

Cancellation is cooperative.  The caller passes an
:class:`asyncio.Event`; it is checked before every attempt and wakes
the executor out of a backoff wait.  A handler that is already running
is never interrupted -- cancellation takes effect at the next retry
decision point.  Cancellation does not consume an attempt.

Plain (non-coroutine) handlers are run with :func:`asyncio.to_thread`,
so blocking work in one invocation does not hold up the others.

Example::

    executor = RetryExecutor()
    execution = await executor.execute(handler, params, policy, cancel=stop_event)
    if execution.cancelled:
        ...
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from skillrun_core.handler import Handler, HandlerResult, ResultKind
from skillrun_core.schema import RetryPolicy

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    """What the executor observed for one invocation.

    Attributes:
        result: The last handler result, or ``None`` when cancellation
            was observed before the first attempt.
        attempts: Number of handler invocations made.
        cancelled: Whether the run stopped because of cancellation.
        delays_ms: Backoff waits that preceded attempts 2, 3, ...
    """

    result: HandlerResult | None
    attempts: int
    cancelled: bool = False
    delays_ms: tuple[int, ...] = ()


class RetryExecutor:
    """Runs handlers under a :class:`~skillrun_core.RetryPolicy`.

    The executor holds no per-invocation state and can be shared by any
    number of concurrent dispatches.
    """

    async def execute(
        self,
        handler: Handler,
        params: Mapping[str, Any],
        policy: RetryPolicy,
        *,
        cancel: asyncio.Event | None = None,
        label: str = "",
    ) -> ExecutionResult:
        """Invoke *handler* with *params* until success, a terminal failure,
        cancellation, or ``policy.max_attempts`` attempts.

        Args:
            handler: Sync or async callable taking the parameter mapping.
            params: Validated parameters, passed through unchanged.
            policy: Attempt bound and backoff schedule.
            cancel: Optional cancellation signal.
            label: Name used in log records, e.g. ``"databases/QUERY"``.

        Returns:
            An :class:`ExecutionResult`.
        """
        attempts = 0
        delays: list[int] = []
        last: HandlerResult | None = None

        for attempt in range(1, policy.max_attempts + 1):
            if attempt > 1:
                delay_ms = policy.delay_before(attempt)
                delays.append(delay_ms)
                _logger.debug(
                    "%s: waiting %d ms before attempt %d/%d",
                    label,
                    delay_ms,
                    attempt,
                    policy.max_attempts,
                )
                if await _wait_or_cancel(delay_ms, cancel):
                    _logger.info("%s: cancelled during backoff", label)
                    return ExecutionResult(last, attempts, cancelled=True, delays_ms=tuple(delays))
            if cancel is not None and cancel.is_set():
                _logger.info("%s: cancelled before attempt %d", label, attempt)
                return ExecutionResult(last, attempts, cancelled=True, delays_ms=tuple(delays))

            attempts += 1
            last = await self._invoke(handler, params, label)

            if last.kind is ResultKind.RETRYABLE:
                _logger.warning(
                    "%s: attempt %d/%d failed (retryable): %s",
                    label,
                    attempt,
                    policy.max_attempts,
                    last.cause,
                )
                continue
            if last.kind is ResultKind.TERMINAL:
                _logger.warning("%s: attempt %d failed (terminal): %s", label, attempt, last.cause)
            break

        return ExecutionResult(last, attempts, delays_ms=tuple(delays))

    @staticmethod
    async def _invoke(handler: Handler, params: Mapping[str, Any], label: str) -> HandlerResult:
        """Call the handler once and normalize whatever it produces.

        Coroutine functions run on the event loop; anything else runs in
        a worker thread so a blocking handler cannot stall other
        invocations.
        """
        try:
            if _is_async(handler):
                value = handler(params)
            else:
                value = await asyncio.to_thread(handler, params)
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _logger.warning("%s: handler raised %s", label, type(exc).__name__, exc_info=True)
            return HandlerResult.retryable(f"{type(exc).__name__}: {exc}")
        if isinstance(value, HandlerResult):
            return value
        return HandlerResult.success(value)


def _is_async(handler: Handler) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))


async def _wait_or_cancel(delay_ms: int, cancel: asyncio.Event | None) -> bool:
    """Sleep for *delay_ms*; return ``True`` if *cancel* fired first."""
    if cancel is None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        return False
    if cancel.is_set():
        return True
    if delay_ms <= 0:
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay_ms / 1000)
    except asyncio.TimeoutError:
        return False
    return True
