"""Entry point for the FanFik keep-alive service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from rich.console import Console
from rich.panel import Panel

from keepalive.config import LOG_LEVELS, Settings, settings
from keepalive.console import ConsoleReporter
from keepalive.events import EventKind, EventSink, log_event
from keepalive.monitor import (
    KeepAliveScheduler,
    MonitorContext,
    RoundCoordinator,
    SchedulerFault,
    TargetRegistry,
)
from keepalive.notifications import NotificationManager
from keepalive.probes import ProbeExecutor

console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(cfg: Settings, level: str | None = None) -> None:
    """Root logging from settings; optional log file next to the console."""
    logging.basicConfig(
        level=(level or cfg.log_level).upper(),
        format=LOG_FORMAT,
    )
    if cfg.log_to_file:
        handler = logging.FileHandler(cfg.log_file_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def build_coordinator(cfg: Settings, sink: EventSink | None) -> RoundCoordinator:
    """Wire registry, stats, executor and notifier into a round coordinator."""
    context = MonitorContext(registry=TargetRegistry(cfg.initial_urls()), on_event=sink)
    executor = ProbeExecutor.from_settings(cfg, context.registry, on_event=sink)
    return RoundCoordinator(
        context,
        executor,
        inter_probe_delay=cfg.inter_probe_delay_ms / 1000,
        notifier=NotificationManager.from_settings(cfg),
    )


def build_scheduler(cfg: Settings, sink: EventSink | None) -> KeepAliveScheduler:
    coordinator = build_coordinator(cfg, sink)
    return KeepAliveScheduler(
        coordinator.context,
        coordinator,
        interval_seconds=cfg.check_interval_ms / 1000,
        cron_step_minutes=cfg.cron_step_minutes,
        stats_interval_seconds=cfg.stats_interval_minutes * 60,
        allow_overlap=cfg.allow_overlapping_rounds,
    )


async def serve(scheduler: KeepAliveScheduler) -> int:
    """Run until SIGINT/SIGTERM (exit 0) or a scheduler fault (exit 1)."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        scheduler.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            pass  # Windows event loops

    try:
        await scheduler.run()
    except SchedulerFault as e:
        logger.error("Unrecoverable error: %s", e.__cause__ or e)
        return 1
    return 0


def run_service(cfg: Settings, quiet: bool = False) -> int:
    sink: EventSink = log_event if quiet else ConsoleReporter(console)
    scheduler = build_scheduler(cfg, sink)

    if not quiet:
        console.print(
            Panel.fit(
                f"[bold]FanFik keep-alive[/bold]\n"
                f"Targets:  {', '.join(scheduler.context.registry.urls)}\n"
                f"Schedule: every {cfg.cron_step_minutes} min (cron) "
                f"+ every {cfg.check_interval_ms / 1000:.0f}s\n"
                f"Stats:    every {cfg.stats_interval_minutes} min",
                title="fanfik-keepalive",
                border_style="green",
            )
        )
    return asyncio.run(serve(scheduler))


def run_once(cfg: Settings, quiet: bool = False) -> int:
    """Single round; exit 0 if at least one target answered."""
    sink: EventSink = log_event if quiet else ConsoleReporter(console)
    coordinator = build_coordinator(cfg, sink)
    outcomes = asyncio.run(coordinator.run_round())

    snapshot = coordinator.context.stats.snapshot()
    coordinator.context.emit(EventKind.STATS_SNAPSHOT, {**snapshot.to_dict(), "final": True})
    return 0 if any(o.ok for o in outcomes) else 1


def show_targets(cfg: Settings) -> int:
    registry = TargetRegistry(cfg.initial_urls())
    for i, url in enumerate(registry, 1):
        console.print(f"{i}. {url}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="FanFik keep-alive service")
    parser.add_argument("--quiet", action="store_true", help="Log events instead of rich output")
    parser.add_argument(
        "--log-level", default=None, type=str.upper, choices=LOG_LEVELS,
        help="Override LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Probe on schedule until interrupted (default)")
    sub.add_parser("once", help="Run a single round and print statistics")
    sub.add_parser("targets", help="List the configured target URLs")

    args = parser.parse_args(argv)
    configure_logging(settings, args.log_level)

    if args.command in (None, "run"):
        code = run_service(settings, quiet=args.quiet)
    elif args.command == "once":
        code = run_once(settings, quiet=args.quiet)
    else:
        code = show_targets(settings)
    sys.exit(code)


if __name__ == "__main__":
    main()
