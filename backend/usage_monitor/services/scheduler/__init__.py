"""
Scheduler service for the periodic upstream sync.
"""
from usage_monitor.services.scheduler.scheduler_service import (
    build_trigger,
    get_scheduler,
    run_scheduled_sync,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "build_trigger",
    "get_scheduler",
    "run_scheduled_sync",
    "start_scheduler",
    "stop_scheduler",
]
