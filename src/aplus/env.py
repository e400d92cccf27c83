"""
Environment-backed settings for aplus.

Settings are read from (and written to) ``os.environ`` so that child processes
and late imports observe the same configuration.
"""

import math
import os
from typing import Literal, cast, get_args

SchedulerName = Literal["loop", "timer", "queue"]

ENV_APLUS_SCHEDULER = "APLUS_SCHEDULER"
ENV_APLUS_TIMER_DELAY = "APLUS_TIMER_DELAY"

SCHEDULER_NAMES: tuple[SchedulerName, ...] = get_args(SchedulerName)


class EnvVars:
	def _get(self, key: str) -> str | None:
		return os.environ.get(key)

	def _set(self, key: str, value: str | None) -> None:
		if value is None:
			os.environ.pop(key, None)
		else:
			os.environ[key] = value

	@property
	def scheduler(self) -> SchedulerName:
		value = (self._get(ENV_APLUS_SCHEDULER) or "loop").strip().lower()
		if value not in SCHEDULER_NAMES:
			raise ValueError(
				f"Invalid {ENV_APLUS_SCHEDULER}={value!r}, expected one of {', '.join(SCHEDULER_NAMES)}"
			)
		return cast(SchedulerName, value)

	@scheduler.setter
	def scheduler(self, value: SchedulerName | None) -> None:
		self._set(ENV_APLUS_SCHEDULER, value)

	@property
	def timer_delay(self) -> float:
		raw = self._get(ENV_APLUS_TIMER_DELAY)
		if raw is None or raw.strip() == "":
			return 0.0
		try:
			delay = float(raw)
		except ValueError as exc:
			raise ValueError(f"Invalid {ENV_APLUS_TIMER_DELAY}={raw!r}") from exc
		if not math.isfinite(delay) or delay < 0:
			raise ValueError(f"{ENV_APLUS_TIMER_DELAY} must be finite and >= 0")
		return delay

	@timer_delay.setter
	def timer_delay(self, value: float | None) -> None:
		self._set(ENV_APLUS_TIMER_DELAY, None if value is None else str(value))


env = EnvVars()


__all__ = [
	"ENV_APLUS_SCHEDULER",
	"ENV_APLUS_TIMER_DELAY",
	"SCHEDULER_NAMES",
	"EnvVars",
	"SchedulerName",
	"env",
]
