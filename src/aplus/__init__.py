from .callbacks import CallbackQueue
from .deferred import (
	Deferred,
	Promise,
	PromiseState,
	create_deferred,
	is_native,
	reject_wrap,
	wrap,
)
from .env import SchedulerName, env
from .errors import (
	PromiseError,
	PromiseRejected,
	SchedulerUnavailableError,
	SelfResolutionError,
)
from .scheduling import (
	LoopScheduler,
	QueueScheduler,
	Scheduler,
	TimerScheduler,
	configure_scheduler,
	current_scheduler,
	default_scheduler,
	use_scheduler,
)
from .thenable import Thenable, is_thenable

# Public API re-exports
__all__ = [
	# Deferred values
	"Deferred",
	"Promise",
	"PromiseState",
	"CallbackQueue",
	"create_deferred",
	"wrap",
	"reject_wrap",
	"is_native",
	# Thenables
	"Thenable",
	"is_thenable",
	# Scheduling
	"Scheduler",
	"LoopScheduler",
	"TimerScheduler",
	"QueueScheduler",
	"configure_scheduler",
	"current_scheduler",
	"default_scheduler",
	"use_scheduler",
	# Environment
	"env",
	"SchedulerName",
	# Errors
	"PromiseError",
	"PromiseRejected",
	"SchedulerUnavailableError",
	"SelfResolutionError",
]
