import asyncio
import logging

from aplus.scheduling import Callback, Scheduler

logger = logging.getLogger(__name__)


def _report_error(
	exc: Exception,
	callback: Callback,
	message: str = "Unhandled exception in promise callback",
) -> None:
	try:
		loop = asyncio.get_running_loop()
	except RuntimeError:
		logger.error(message, exc_info=exc)
		return
	loop.call_exception_handler(
		{
			"message": message,
			"exception": exc,
			"context": {"callback": callback},
		}
	)


class CallbackQueue:
	"""Callbacks waiting on one settlement outcome.

	Before ``start()`` callbacks only accumulate. Starting schedules them as a
	single batch; afterwards every callback enqueued while no drain is pending
	schedules a new drain, and enqueues that land before it fires join it.

	Scheduling failures are reported, not raised: the callbacks stay queued and
	the next ``enqueue`` tries to schedule them again.
	"""

	__slots__: tuple[str, ...] = ("_pending", "_started", "_scheduled", "_scheduler")
	_pending: list[Callback]
	_started: bool
	_scheduled: bool
	_scheduler: Scheduler

	def __init__(self, scheduler: Scheduler) -> None:
		self._pending = []
		self._started = False
		self._scheduled = False
		self._scheduler = scheduler

	@property
	def started(self) -> bool:
		return self._started

	def __len__(self) -> int:
		return len(self._pending)

	def enqueue(self, callback: Callback) -> None:
		if not callable(callback):
			raise TypeError("CallbackQueue.enqueue() requires a callable")
		self._pending.append(callback)
		if self._started and not self._scheduled:
			self._drain_later()

	def start(self) -> None:
		if self._started:
			return
		self._started = True
		if self._pending:
			self._drain_later()

	def _drain_later(self) -> None:
		self._scheduled = True
		try:
			self._scheduler.schedule(self._drain)
		except Exception as exc:
			self._scheduled = False
			_report_error(exc, self._drain, "Failed to schedule promise callbacks")

	def _drain(self) -> None:
		batch = self._pending
		self._pending = []
		self._scheduled = False
		for index, callback in enumerate(batch):
			try:
				callback()
			except Exception as exc:
				_report_error(exc, callback)
			except BaseException:
				# Callbacks behind the one that raised keep their place for the next turn
				self._pending[:0] = batch[index + 1 :]
				if self._pending and not self._scheduled:
					self._drain_later()
				raise

	def __repr__(self) -> str:
		return f"CallbackQueue(pending={len(self._pending)}, started={self._started})"


__all__ = ["CallbackQueue"]
