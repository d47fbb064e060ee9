"""Shared FastAPI dependencies."""

from subflash.config import settings
from subflash.srs.parameters import SchedulerParameters
from subflash.srs.scheduler import Scheduler


def get_scheduler() -> Scheduler:
    """Build a scheduler from the current settings for one request."""
    return Scheduler(SchedulerParameters.from_settings(settings))
