import inspect
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

OnFulfilled = Callable[[Any], Any]
OnRejected = Callable[[Any], Any]


@runtime_checkable
class Thenable(Protocol):
	"""Anything that accepts continuations through ``then``.

	Values satisfying this protocol are adopted when used to resolve a
	deferred, whether they come from aplus or from another library.
	"""

	def then(
		self,
		on_fulfilled: OnFulfilled | None = None,
		on_rejected: OnRejected | None = None,
	) -> Any: ...


def is_callable(value: Any) -> bool:
	return value is not None and callable(value)


def get_then(value: Any) -> Callable[..., Any] | None:
	"""Read ``value.then`` once, returning it only if it is callable.

	Attribute access may run arbitrary code (properties, ``__getattr__``) and
	any exception it raises propagates to the caller.
	"""
	if value is None or inspect.isclass(value):
		return None
	then = getattr(value, "then", None)
	if is_callable(then):
		return then
	return None


def is_thenable(value: Any) -> bool:
	try:
		return get_then(value) is not None
	except Exception:
		return False


__all__ = [
	"OnFulfilled",
	"OnRejected",
	"Thenable",
	"get_then",
	"is_callable",
	"is_thenable",
]
