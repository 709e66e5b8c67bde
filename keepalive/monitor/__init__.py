"""Monitor subsystem — target registry, stats, rounds, scheduler."""

from .context import MonitorContext
from .coordinator import RoundCoordinator
from .registry import TargetRegistry
from .scheduler import KeepAliveScheduler, SchedulerFault, SchedulerState, next_cron_fire
from .stats import StatsAggregator, StatsSnapshot
