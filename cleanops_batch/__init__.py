"""
cleanops_batch -- scheduled background work.

Holds the polling scheduler that runs the auto-approval sweep and the
``python -m cleanops_batch`` entry point.  Nothing in kernel/, engines/ or
services/ imports from this package.
"""

from cleanops_batch.scheduler import SweepScheduler

__all__ = ["SweepScheduler"]
