import asyncio
from typing import Any

import pytest
from aplus import (
	PromiseRejected,
	TimerScheduler,
	create_deferred,
	reject_wrap,
	use_scheduler,
	wrap,
)
from aplus.test_helpers import wait_for


@pytest.mark.asyncio
async def test_await_fulfilled_promise_returns_value():
	assert await wrap(1) == 1


@pytest.mark.asyncio
async def test_await_rejected_promise_raises_exception_reason():
	with pytest.raises(ValueError, match="bad value"):
		await reject_wrap(ValueError("bad value"))


@pytest.mark.asyncio
async def test_await_wraps_non_exception_reasons():
	with pytest.raises(PromiseRejected) as info:
		await reject_wrap("boom")

	assert info.value.reason == "boom"


@pytest.mark.asyncio
async def test_await_waits_for_settlement_on_the_loop():
	deferred = create_deferred()
	asyncio.get_running_loop().call_later(0.01, deferred.resolve, "later")

	assert await deferred.promise == "later"


@pytest.mark.asyncio
async def test_callbacks_run_after_the_registering_code_on_the_loop():
	log: list[str] = []

	log.append("before")
	wrap(1).then(lambda _: log.append("inside"))
	log.append("after")

	assert log == ["before", "after"]
	assert await wait_for(lambda: len(log) == 3, timeout=0.2)
	assert log == ["before", "after", "inside"]


@pytest.mark.asyncio
async def test_chain_settles_through_the_loop():
	def explode(_: Any) -> None:
		raise RuntimeError("err")

	result = await (
		wrap(1)
		.then(lambda x: wrap(x + 1))
		.then(explode)
		.then(None, lambda reason: f"caught {reason}")
	)

	assert result == "caught err"


@pytest.mark.asyncio
async def test_to_future_mirrors_promise():
	deferred = create_deferred()
	future = deferred.promise.to_future()

	assert not future.done()
	deferred.reject(KeyError("k"))

	with pytest.raises(KeyError):
		await future


@pytest.mark.asyncio
async def test_promises_on_timer_scheduler_are_awaitable():
	with use_scheduler(TimerScheduler(0.001)):
		promise = wrap(2).then(lambda x: x * 21)

	assert await promise == 42


@pytest.mark.asyncio
async def test_await_wraps_stop_iteration_reasons():
	reason = StopIteration("done")

	with pytest.raises(PromiseRejected) as info:
		await asyncio.wait_for(reject_wrap(reason).to_future(), 0.5)

	assert info.value.reason is reason


@pytest.mark.asyncio
async def test_await_wraps_cancelled_reasons():
	reason = asyncio.CancelledError()

	with pytest.raises(PromiseRejected) as info:
		await reject_wrap(reason)

	assert info.value.reason is reason
