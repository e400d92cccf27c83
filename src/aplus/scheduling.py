import asyncio
import logging
from collections import deque
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Protocol

from anyio import from_thread

from aplus.env import SchedulerName, env
from aplus.errors import SchedulerUnavailableError

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Scheduler(Protocol):
	"""Runs a callback after the current synchronous execution unwinds.

	Callbacks scheduled through the same scheduler run in FIFO order.
	"""

	def schedule(self, callback: Callback) -> None: ...


def _running_loop() -> asyncio.AbstractEventLoop | None:
	try:
		return asyncio.get_running_loop()
	except RuntimeError:
		return None


class LoopScheduler:
	"""Schedule callbacks with ``call_soon`` on the asyncio event loop.

	Unbound, it targets the loop running in the calling thread, or hops onto the
	loop from an anyio worker thread. Bound to a loop, it always goes through
	``call_soon_threadsafe`` so it can be used from any thread.
	"""

	__slots__: tuple[str, ...] = ("_loop",)
	_loop: asyncio.AbstractEventLoop | None

	def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
		self._loop = loop

	def schedule(self, callback: Callback) -> None:
		if self._loop is not None:
			try:
				self._loop.call_soon_threadsafe(callback)
			except RuntimeError as exc:
				raise SchedulerUnavailableError(
					"The bound event loop is closed"
				) from exc
			return

		loop = _running_loop()
		if loop is not None:
			loop.call_soon(callback)
			return

		async def _runner():
			loop = asyncio.get_running_loop()
			loop.call_soon(callback)

		try:
			from_thread.run(_runner)
		except RuntimeError as exc:
			raise SchedulerUnavailableError(
				"The 'loop' scheduler requires a running event loop"
			) from exc

	def __repr__(self) -> str:
		return f"LoopScheduler(loop={self._loop!r})"


class TimerScheduler:
	"""Schedule callbacks with ``call_later`` on the running asyncio loop."""

	__slots__: tuple[str, ...] = ("delay", "_loop")
	delay: float
	_loop: asyncio.AbstractEventLoop | None

	def __init__(
		self, delay: float = 0.0, loop: asyncio.AbstractEventLoop | None = None
	) -> None:
		if delay < 0:
			raise ValueError("TimerScheduler delay must be >= 0")
		self.delay = delay
		self._loop = loop

	def schedule(self, callback: Callback) -> None:
		if self._loop is not None:
			try:
				self._loop.call_soon_threadsafe(self._loop.call_later, self.delay, callback)
			except RuntimeError as exc:
				raise SchedulerUnavailableError(
					"The bound event loop is closed"
				) from exc
			return

		loop = _running_loop()
		if loop is None:
			raise SchedulerUnavailableError(
				"The 'timer' scheduler requires a running event loop"
			)
		loop.call_later(self.delay, callback)

	def __repr__(self) -> str:
		return f"TimerScheduler(delay={self.delay!r})"


class QueueScheduler:
	"""FIFO of callbacks that only run when drained explicitly.

	Useful for synchronous programs and for tests that need to control turns.
	"""

	__slots__: tuple[str, ...] = ("_callbacks", "_running")
	_callbacks: deque[Callback]
	_running: bool

	def __init__(self) -> None:
		self._callbacks = deque()
		self._running = False

	@property
	def pending(self) -> int:
		return len(self._callbacks)

	def schedule(self, callback: Callback) -> None:
		self._callbacks.append(callback)

	def run_once(self) -> int:
		"""Run the callbacks that were queued when the call started.

		Callbacks they schedule wait for the next turn. Returns how many ran.
		"""
		return self._run(len(self._callbacks))

	def run_until_idle(self, max_callbacks: int | None = None) -> int:
		"""Run callbacks until the queue is empty (or ``max_callbacks`` ran)."""
		return self._run(max_callbacks)

	def _run(self, limit: int | None) -> int:
		if self._running:
			raise RuntimeError("QueueScheduler cannot be drained from one of its callbacks")
		self._running = True
		ran = 0
		try:
			while self._callbacks and (limit is None or ran < limit):
				callback = self._callbacks.popleft()
				ran += 1
				try:
					callback()
				except Exception:
					logger.exception("Unhandled exception in scheduled callback %r", callback)
		finally:
			self._running = False
		return ran

	def __repr__(self) -> str:
		return f"QueueScheduler(pending={len(self._callbacks)})"


def build_scheduler(name: SchedulerName, *, delay: float | None = None) -> Scheduler:
	"""Create the scheduling mechanism registered under ``name``."""
	if name == "loop":
		return LoopScheduler()
	if name == "timer":
		return TimerScheduler(env.timer_delay if delay is None else delay)
	if name == "queue":
		return QueueScheduler()
	raise ValueError(f"Unknown scheduler {name!r}")


_default: Scheduler | None = None


def default_scheduler() -> Scheduler:
	"""Return the process-wide scheduler, selecting it from the environment once."""
	global _default
	if _default is None:
		_default = build_scheduler(env.scheduler)
		logger.debug("Selected default scheduler %r", _default)
	return _default


def configure_scheduler(scheduler: Scheduler) -> None:
	"""Install the process-wide scheduler. Must happen before it is first used."""
	global _default
	if _default is not None and _default is not scheduler:
		raise RuntimeError(
			"The default scheduler was already selected; use use_scheduler() to override it for a scope"
		)
	_default = scheduler


SCHEDULER: ContextVar[Scheduler | None] = ContextVar("aplus_scheduler", default=None)


@contextmanager
def use_scheduler(scheduler: Scheduler) -> Generator[Scheduler, None, None]:
	"""Use ``scheduler`` for deferreds created inside the block.

	Example:
		with use_scheduler(QueueScheduler()) as scheduler:
			wrap(1).then(print)
			scheduler.run_until_idle()
	"""
	token = SCHEDULER.set(scheduler)
	try:
		yield scheduler
	finally:
		SCHEDULER.reset(token)


def current_scheduler() -> Scheduler:
	scheduler = SCHEDULER.get()
	if scheduler is not None:
		return scheduler
	return default_scheduler()


__all__ = [
	"SCHEDULER",
	"Callback",
	"LoopScheduler",
	"QueueScheduler",
	"Scheduler",
	"TimerScheduler",
	"build_scheduler",
	"configure_scheduler",
	"current_scheduler",
	"default_scheduler",
	"use_scheduler",
]
