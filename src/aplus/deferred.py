"""
Deferred values and their promises.

A ``Deferred`` is the producer side: it is settled exactly once, either
fulfilled with a value or rejected with a reason. Its ``Promise`` is the
consumer side: ``then`` registers continuations that always run on a later turn
of the deferred's scheduler and returns a new promise for the handler's result.

Example:
	deferred = create_deferred()
	deferred.promise.then(lambda value: value + 1).then(print)
	deferred.resolve(1)  # prints 2 on a later turn
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar, overload, override

from aplus.callbacks import CallbackQueue
from aplus.errors import SelfResolutionError, as_exception
from aplus.scheduling import Scheduler, current_scheduler
from aplus.thenable import OnFulfilled, OnRejected, get_then

T = TypeVar("T")

logger = logging.getLogger(__name__)


class PromiseState(StrEnum):
	pending = "pending"
	fulfilled = "fulfilled"
	rejected = "rejected"


@dataclass(frozen=True, slots=True)
class _Pending:
	fulfill_queue: CallbackQueue
	reject_queue: CallbackQueue


@dataclass(frozen=True, slots=True)
class _Fulfilled:
	value: Any
	queue: CallbackQueue


@dataclass(frozen=True, slots=True)
class _Rejected:
	reason: Any
	queue: CallbackQueue


_State = _Pending | _Fulfilled | _Rejected


class Deferred(Generic[T]):
	"""Settle-once container backing a ``Promise``.

	``resolve`` and ``reject`` never raise: only the first call has an effect,
	and a scheduler that cannot run the queued handlers is reported through
	logging (or the loop exception handler) instead.
	Resolving with a thenable (native or foreign) adopts its eventual outcome,
	and from then on outside calls to ``resolve``/``reject`` are ignored.
	"""

	__slots__: tuple[str, ...] = ("_promise", "_state", "_scheduler", "_locked")

	_promise: Promise[T]
	_state: _State
	_scheduler: Scheduler
	_locked: bool

	def __init__(self, scheduler: Scheduler | None = None) -> None:
		self._scheduler = scheduler if scheduler is not None else current_scheduler()
		self._state = _Pending(
			fulfill_queue=CallbackQueue(self._scheduler),
			reject_queue=CallbackQueue(self._scheduler),
		)
		self._locked = False
		self._promise = Promise(self)

	@property
	def promise(self) -> Promise[T]:
		return self._promise

	@property
	def scheduler(self) -> Scheduler:
		return self._scheduler

	@property
	def state(self) -> PromiseState:
		match self._state:
			case _Pending():
				return PromiseState.pending
			case _Fulfilled():
				return PromiseState.fulfilled
			case _Rejected():
				return PromiseState.rejected

	@property
	def is_pending(self) -> bool:
		return isinstance(self._state, _Pending)

	@property
	def is_fulfilled(self) -> bool:
		return isinstance(self._state, _Fulfilled)

	@property
	def is_rejected(self) -> bool:
		return isinstance(self._state, _Rejected)

	def resolve(self, value: Any = None) -> None:
		if self._locked:
			return
		self._locked = True
		self._resolve(value)

	def reject(self, reason: Any = None) -> None:
		if self._locked:
			return
		self._locked = True
		self._reject(reason)

	# Resolution procedure. Internal entry points skip the lock, which only
	# guards calls coming from the producer.

	def _resolve(self, value: Any) -> None:
		if not isinstance(self._state, _Pending):
			return

		if value is self._promise:
			self._reject(SelfResolutionError())
			return

		if isinstance(value, Promise):
			logger.debug("Deferred %x adopting native promise %x", id(self), id(value))
			value._deferred._subscribe(self._fulfill, self._reject)  # pyright: ignore[reportPrivateUsage]
			return

		try:
			then = get_then(value)
		except Exception as exc:
			self._reject(exc)
			return

		if then is None:
			self._fulfill(value)
			return

		logger.debug("Deferred %x adopting thenable %r", id(self), value)
		self._adopt(then)

	def _adopt(self, then: Callable[..., Any]) -> None:
		called = False

		def resolve_promise(value: Any = None) -> None:
			nonlocal called
			if called:
				return
			called = True
			self._resolve(value)

		def reject_promise(reason: Any = None) -> None:
			nonlocal called
			if called:
				return
			called = True
			self._reject(reason)

		try:
			then(resolve_promise, reject_promise)
		except Exception as exc:
			if not called:
				called = True
				self._reject(exc)

	def _fulfill(self, value: Any) -> None:
		state = self._state
		if not isinstance(state, _Pending):
			return
		self._state = _Fulfilled(value=value, queue=state.fulfill_queue)
		state.fulfill_queue.start()

	def _reject(self, reason: Any) -> None:
		state = self._state
		if not isinstance(state, _Pending):
			return
		self._state = _Rejected(reason=reason, queue=state.reject_queue)
		state.reject_queue.start()

	def _payload(self) -> Any:
		match self._state:
			case _Fulfilled(value=value):
				return value
			case _Rejected(reason=reason):
				return reason
			case _Pending():
				raise RuntimeError("Internal error: pending deferred has no payload")

	def _subscribe(
		self,
		on_fulfilled: Callable[[Any], None],
		on_rejected: Callable[[Any], None],
	) -> None:
		"""Register continuations for both outcomes; only the matching one runs."""
		match self._state:
			case _Pending(fulfill_queue=fulfill_queue, reject_queue=reject_queue):
				fulfill_queue.enqueue(lambda: on_fulfilled(self._payload()))
				reject_queue.enqueue(lambda: on_rejected(self._payload()))
			case _Fulfilled(value=value, queue=queue):
				queue.enqueue(lambda: on_fulfilled(value))
			case _Rejected(reason=reason, queue=queue):
				queue.enqueue(lambda: on_rejected(reason))

	def _run_handler(self, handler: Callable[[Any], Any], argument: Any) -> None:
		try:
			result = handler(argument)
		except (Exception, asyncio.CancelledError) as exc:
			logger.debug(
				"Promise handler %r raised, rejecting derived promise", handler, exc_info=exc
			)
			self._reject(exc)
			return
		self._resolve(result)

	@override
	def __repr__(self) -> str:
		return f"Deferred({_describe(self._state)})"


class Promise(Generic[T]):
	"""Read-only view of a ``Deferred``.

	Promises are awaitable from asyncio code. Awaiting a rejected promise
	raises its reason, wrapped in ``PromiseRejected`` when the reason is not an ordinary
	exception (for example a string, ``StopIteration`` or ``CancelledError``).
	"""

	__slots__: tuple[str, ...] = ("_deferred",)
	_deferred: Deferred[T]

	def __init__(self, deferred: Deferred[T]) -> None:
		self._deferred = deferred

	@property
	def state(self) -> PromiseState:
		return self._deferred.state

	@property
	def is_pending(self) -> bool:
		return self._deferred.is_pending

	@property
	def is_fulfilled(self) -> bool:
		return self._deferred.is_fulfilled

	@property
	def is_rejected(self) -> bool:
		return self._deferred.is_rejected

	def then(
		self,
		on_fulfilled: OnFulfilled | None = None,
		on_rejected: OnRejected | None = None,
	) -> Promise[Any]:
		"""Register continuations and return a promise for their result.

		A handler's return value resolves the returned promise (thenables are
		adopted); an exception raised by a handler rejects it. A missing or
		non-callable handler passes the outcome through unchanged.
		"""
		child: Deferred[Any] = Deferred(self._deferred._scheduler)  # pyright: ignore[reportPrivateUsage]

		def _fulfilled(value: Any) -> None:
			if callable(on_fulfilled):
				child._run_handler(on_fulfilled, value)  # pyright: ignore[reportPrivateUsage]
			else:
				child._resolve(value)  # pyright: ignore[reportPrivateUsage]

		def _rejected(reason: Any) -> None:
			if callable(on_rejected):
				child._run_handler(on_rejected, reason)  # pyright: ignore[reportPrivateUsage]
			else:
				child._reject(reason)  # pyright: ignore[reportPrivateUsage]

		self._deferred._subscribe(_fulfilled, _rejected)  # pyright: ignore[reportPrivateUsage]
		return child.promise

	def catch(self, on_rejected: OnRejected) -> Promise[Any]:
		return self.then(None, on_rejected)

	def to_future(self) -> asyncio.Future[T]:
		"""Return a future on the running loop that mirrors this promise."""
		future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

		def _set_result(value: Any) -> None:
			if not future.done():
				future.set_result(value)

		def _set_exception(reason: Any) -> None:
			if not future.done():
				future.set_exception(as_exception(reason))

		self._deferred._subscribe(_set_result, _set_exception)  # pyright: ignore[reportPrivateUsage]
		return future

	def __await__(self) -> Generator[Any, None, T]:
		return self.to_future().__await__()

	@override
	def __repr__(self) -> str:
		return f"Promise({_describe(self._deferred._state)})"  # pyright: ignore[reportPrivateUsage]


def _describe(state: _State) -> str:
	match state:
		case _Pending():
			return "pending"
		case _Fulfilled(value=value):
			return f"fulfilled: {value!r}"
		case _Rejected(reason=reason):
			return f"rejected: {reason!r}"


def is_native(value: Any) -> bool:
	"""True if ``value`` is a promise created by this package."""
	return isinstance(value, Promise)


def create_deferred(scheduler: Scheduler | None = None) -> Deferred[Any]:
	return Deferred(scheduler)


@overload
def wrap(value: Promise[T], scheduler: Scheduler | None = None) -> Promise[T]: ...


@overload
def wrap(value: T, scheduler: Scheduler | None = None) -> Promise[T]: ...


def wrap(value: Any, scheduler: Scheduler | None = None) -> Promise[Any]:
	"""Return a promise for ``value``.

	Native promises are returned unchanged. Foreign thenables are adopted and
	any other value becomes the fulfillment value.
	"""
	if is_native(value):
		return value
	deferred: Deferred[Any] = Deferred(scheduler)
	deferred.resolve(value)
	return deferred.promise


def reject_wrap(reason: Any, scheduler: Scheduler | None = None) -> Promise[Any]:
	"""Return a promise rejected with ``reason``. Reasons are never unwrapped."""
	deferred: Deferred[Any] = Deferred(scheduler)
	deferred.reject(reason)
	return deferred.promise


__all__ = [
	"Deferred",
	"Promise",
	"PromiseState",
	"create_deferred",
	"is_native",
	"reject_wrap",
	"wrap",
]
