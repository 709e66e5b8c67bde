"""Probe subsystem — single-URL probes, health sub-check, scheme fallback."""

from .engine import (
    HealthCheckResult,
    OutcomeKind,
    ProbeExecutor,
    ProbeOutcome,
    ProbeReport,
    swap_scheme,
)
