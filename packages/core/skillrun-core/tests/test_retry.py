"""Tests for RetryExecutor."""

import asyncio
import time

from skillrun_core import HandlerResult, ResultKind, RetryExecutor, RetryPolicy


class _Scripted:
    """Handler returning a scripted sequence of results."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    def __call__(self, params):
        self.calls += 1
        if self._results:
            return self._results.pop(0)
        return HandlerResult.retryable("exhausted script")


class TestRetryExecutor:
    async def test_success_on_first_attempt(self):
        handler = _Scripted(HandlerResult.success({"rows": 1}))
        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=3))
        assert execution.attempts == 1
        assert execution.result.ok
        assert execution.result.value == {"rows": 1}
        assert execution.delays_ms == ()

    async def test_retry_bound_is_honored(self):
        handler = _Scripted(*[HandlerResult.retryable("connection refused")] * 5)
        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=3))
        assert handler.calls == 3
        assert execution.attempts == 3
        assert execution.result.kind is ResultKind.RETRYABLE
        assert execution.result.cause == "connection refused"

    async def test_terminal_short_circuits(self):
        handler = _Scripted(HandlerResult.terminal("access denied"))
        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=5))
        assert handler.calls == 1
        assert execution.attempts == 1
        assert execution.result.kind is ResultKind.TERMINAL

    async def test_success_after_two_failures(self):
        handler = _Scripted(
            HandlerResult.retryable("timeout"),
            HandlerResult.retryable("timeout"),
            HandlerResult.success("ok"),
        )
        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=3))
        assert handler.calls == 3
        assert execution.result.ok
        assert execution.result.value == "ok"

    async def test_exponential_delays_recorded(self):
        handler = _Scripted(*[HandlerResult.retryable("busy")] * 3)
        policy = RetryPolicy(max_attempts=3, backoff="exponential", initial_delay_ms=1)
        execution = await RetryExecutor().execute(handler, {}, policy)
        assert execution.delays_ms == (1, 2)

    async def test_no_wait_after_final_attempt(self):
        handler = _Scripted(HandlerResult.retryable("busy"))
        policy = RetryPolicy(max_attempts=1, backoff="fixed", initial_delay_ms=10_000)
        started = time.monotonic()
        execution = await RetryExecutor().execute(handler, {}, policy)
        assert time.monotonic() - started < 1
        assert execution.delays_ms == ()

    async def test_params_passed_through(self):
        seen = []

        def handler(params):
            seen.append(dict(params))
            return HandlerResult.success()

        await RetryExecutor().execute(handler, {"query": "SELECT 1"}, RetryPolicy())
        assert seen == [{"query": "SELECT 1"}]


class TestHandlerNormalization:
    async def test_async_handler(self):
        async def handler(params):
            await asyncio.sleep(0)
            return HandlerResult.success(42)

        execution = await RetryExecutor().execute(handler, {}, RetryPolicy())
        assert execution.result.value == 42

    async def test_plain_value_is_success(self):
        execution = await RetryExecutor().execute(lambda p: {"plan": "seq scan"}, {}, RetryPolicy())
        assert execution.result.ok
        assert execution.result.value == {"plan": "seq scan"}

    async def test_exception_is_retryable(self):
        calls = 0

        def handler(params):
            nonlocal calls
            calls += 1
            raise ConnectionError("db unreachable")

        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=2))
        assert calls == 2
        assert execution.result.kind is ResultKind.RETRYABLE
        assert execution.result.cause == "ConnectionError: db unreachable"

    async def test_string_kind_is_retried(self):
        handler = _Scripted(*[HandlerResult("retryable", cause="busy")] * 3)
        execution = await RetryExecutor().execute(handler, {}, RetryPolicy(max_attempts=3))
        assert handler.calls == 3
        assert execution.result.kind is ResultKind.RETRYABLE

    async def test_sync_handler_runs_off_the_event_loop(self):
        seen = []

        def handler(params):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                seen.append("worker")
            else:
                seen.append("loop")
            return HandlerResult.success()

        await RetryExecutor().execute(handler, {}, RetryPolicy())
        assert seen == ["worker"]


class TestCancellation:
    async def test_cancel_before_first_attempt(self):
        handler = _Scripted(HandlerResult.success())
        cancel = asyncio.Event()
        cancel.set()
        execution = await RetryExecutor().execute(
            handler, {}, RetryPolicy(max_attempts=3), cancel=cancel
        )
        assert execution.cancelled
        assert execution.attempts == 0
        assert execution.result is None
        assert handler.calls == 0

    async def test_cancel_interrupts_backoff(self):
        handler = _Scripted(*[HandlerResult.retryable("busy")] * 3)
        policy = RetryPolicy(max_attempts=3, backoff="fixed", initial_delay_ms=10_000)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        started = time.monotonic()
        execution = await RetryExecutor().execute(handler, {}, policy, cancel=cancel)
        elapsed = time.monotonic() - started

        assert execution.cancelled
        assert execution.attempts == 1
        assert handler.calls == 1
        assert elapsed < 5
        assert execution.result.cause == "busy"

    async def test_cancel_does_not_interrupt_running_handler(self):
        cancel = asyncio.Event()

        async def handler(params):
            cancel.set()
            await asyncio.sleep(0)
            return HandlerResult.success("finished")

        execution = await RetryExecutor().execute(
            handler, {}, RetryPolicy(max_attempts=3), cancel=cancel
        )
        assert not execution.cancelled
        assert execution.result.value == "finished"

    async def test_cancel_observed_at_next_decision_point(self):
        cancel = asyncio.Event()

        async def handler(params):
            cancel.set()
            return HandlerResult.retryable("busy")

        execution = await RetryExecutor().execute(
            handler, {}, RetryPolicy(max_attempts=5), cancel=cancel
        )
        assert execution.cancelled
        assert execution.attempts == 1
