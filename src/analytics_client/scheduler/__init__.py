"""Flush scheduling module for the analytics client."""

from .flush_scheduler import FlushScheduler, SchedulerConfig, SchedulerState

__all__ = ["FlushScheduler", "SchedulerConfig", "SchedulerState"]
