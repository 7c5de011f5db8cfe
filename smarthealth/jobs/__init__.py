from smarthealth.jobs.scheduler import SweepScheduler, get_scheduler
from smarthealth.jobs.sweeps import run_all

__all__ = ["SweepScheduler", "get_scheduler", "run_all"]
