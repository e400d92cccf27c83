from __future__ import annotations

from typing import Any


class PromiseError(Exception):
	"""Base class for errors raised by aplus."""


class SelfResolutionError(PromiseError, TypeError):
	"""Raised (as a rejection reason) when a promise is resolved with itself."""

	def __init__(self, message: str = "A promise cannot be resolved with itself") -> None:
		super().__init__(message)


class PromiseRejected(PromiseError):
	"""Carries a non-exception rejection reason across an ``await``."""

	reason: Any

	def __init__(self, reason: Any) -> None:
		super().__init__(f"Promise rejected with {reason!r}")
		self.reason = reason


class SchedulerUnavailableError(PromiseError, RuntimeError):
	"""Raised when a scheduling mechanism cannot run in the current context."""


def as_exception(reason: Any) -> Exception:
	"""Return ``reason`` as an exception a future can hold and ``await`` can raise."""
	if isinstance(reason, Exception) and not isinstance(
		reason, (StopIteration, StopAsyncIteration)
	):
		return reason
	return PromiseRejected(reason)


__all__ = [
	"PromiseError",
	"PromiseRejected",
	"SchedulerUnavailableError",
	"SelfResolutionError",
	"as_exception",
]
