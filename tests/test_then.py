import asyncio
from typing import Any

import pytest
from aplus import (
	PromiseState,
	QueueScheduler,
	SelfResolutionError,
	create_deferred,
	reject_wrap,
	wrap,
)


def test_returned_promise_is_flattened(scheduler: QueueScheduler):
	result: list[Any] = []

	wrap(1).then(lambda x: wrap(x + 1)).then(result.append)
	scheduler.run_until_idle()

	assert result == [2]


def test_returned_pending_promise_is_adopted_when_it_settles(
	scheduler: QueueScheduler,
):
	inner = create_deferred()
	result: list[Any] = []

	derived = wrap("outer").then(lambda _: inner.promise)
	derived.then(result.append)
	scheduler.run_until_idle()

	assert derived.is_pending
	assert result == []

	inner.resolve("inner")
	scheduler.run_until_idle()
	assert result == ["inner"]


def test_missing_fulfill_handler_passes_rejection_through(
	scheduler: QueueScheduler,
):
	reasons: list[Any] = []

	chained = reject_wrap("boom").then(lambda x: x)
	chained.then(None, reasons.append)
	scheduler.run_until_idle()

	assert chained.state is PromiseState.rejected
	assert reasons == ["boom"]


def test_missing_reject_handler_passes_value_through(scheduler: QueueScheduler):
	values: list[Any] = []

	wrap(7).then(None, lambda _: "unused").then(values.append)
	scheduler.run_until_idle()

	assert values == [7]


def test_non_callable_handlers_are_ignored(scheduler: QueueScheduler):
	values: list[Any] = []
	reasons: list[Any] = []

	wrap(1).then(5, "x").then(values.append)  # pyright: ignore[reportArgumentType]
	reject_wrap(2).then({}, None).then(None, reasons.append)  # pyright: ignore[reportArgumentType]
	scheduler.run_until_idle()

	assert values == [1]
	assert reasons == [2]


def test_handler_fault_becomes_rejection(scheduler: QueueScheduler):
	error = ValueError("err")
	result: list[Any] = []

	def explode(_: Any) -> None:
		raise error

	wrap(1).then(explode).then(None, result.append)
	scheduler.run_until_idle()

	assert result == [error]


def test_reject_handler_fault_becomes_rejection(scheduler: QueueScheduler):
	result: list[Any] = []

	def explode(reason: Any) -> None:
		raise KeyError(reason)

	reject_wrap("missing").then(None, explode).catch(result.append)
	scheduler.run_until_idle()

	assert isinstance(result[0], KeyError)
	assert result[0].args == ("missing",)


def test_reject_handler_return_value_fulfills(scheduler: QueueScheduler):
	values: list[Any] = []

	reject_wrap("bad").then(None, lambda reason: f"recovered from {reason}").then(
		values.append
	)
	scheduler.run_until_idle()

	assert values == ["recovered from bad"]


def test_rejection_skips_fulfill_handlers_until_caught(scheduler: QueueScheduler):
	log: list[str] = []

	(
		reject_wrap("stop")
		.then(lambda _: log.append("skipped 1"))
		.then(lambda _: log.append("skipped 2"))
		.catch(lambda reason: log.append(f"caught {reason}"))
		.then(lambda _: log.append("continued"))
	)
	scheduler.run_until_idle()

	assert log == ["caught stop", "continued"]


def test_handler_returning_its_own_promise_is_rejected(scheduler: QueueScheduler):
	reasons: list[Any] = []
	holder: list[Any] = []

	derived = wrap(1).then(lambda _: holder[0])
	holder.append(derived)
	derived.catch(reasons.append)
	scheduler.run_until_idle()

	assert len(reasons) == 1
	assert isinstance(reasons[0], SelfResolutionError)
	assert isinstance(reasons[0], TypeError)


def test_then_returns_a_new_pending_promise(scheduler: QueueScheduler):
	promise = wrap(1)

	derived = promise.then(lambda x: x)

	assert derived is not promise
	assert derived.is_pending
	scheduler.run_until_idle()
	assert derived.is_fulfilled


def test_derived_promises_inherit_the_parent_scheduler():
	scheduler = QueueScheduler()
	deferred = create_deferred(scheduler)
	values: list[Any] = []

	deferred.promise.then(lambda x: x * 2).then(values.append)
	deferred.resolve(4)
	scheduler.run_until_idle()

	assert values == [8]


def test_base_exceptions_are_not_captured(scheduler: QueueScheduler):
	def interrupt(_: Any) -> None:
		raise KeyboardInterrupt

	derived = wrap(1).then(interrupt)

	with pytest.raises(KeyboardInterrupt):
		scheduler.run_until_idle()
	assert derived.is_pending


def test_sibling_handlers_survive_an_escaping_handler(scheduler: QueueScheduler):
	log: list[str] = []

	def interrupt(_: Any) -> None:
		raise KeyboardInterrupt

	promise = wrap(1)
	derived = promise.then(interrupt)
	promise.then(lambda _: log.append("sibling"))

	with pytest.raises(KeyboardInterrupt):
		scheduler.run_until_idle()
	assert log == []

	scheduler.run_until_idle()
	assert log == ["sibling"]
	assert derived.is_pending


def test_cancelled_handler_rejects_derived_promise(scheduler: QueueScheduler):
	log: list[str] = []
	reasons: list[Any] = []

	def cancelled(_: Any) -> None:
		raise asyncio.CancelledError()

	promise = wrap(1)
	derived = promise.then(cancelled)
	promise.then(lambda _: log.append("sibling"))
	derived.catch(reasons.append)

	scheduler.run_until_idle()

	assert log == ["sibling"]
	assert derived.is_rejected
	assert len(reasons) == 1
	assert isinstance(reasons[0], asyncio.CancelledError)
