"""
Run the auto-approval sweep (and optionally the reconciliation pass).

Usage:
    python -m cleanops_batch                       # poll forever
    python -m cleanops_batch --once                # one sweep, then exit
    python -m cleanops_batch --once --reconcile    # sweep, then repair drift
    python -m cleanops_batch --config prod.yaml
"""

from __future__ import annotations

import argparse
import sys

from cleanops_batch.scheduler import SweepScheduler
from cleanops_config import get_active_config
from cleanops_kernel.logging_config import get_logger
from cleanops_services.operations import OperationsEngine

logger = get_logger("batch.main")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the cleanops auto-approval sweep")
    parser.add_argument("--config", help="YAML override for the default configuration")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--reconcile", action="store_true", help="Run the reconciliation pass after the sweep"
    )
    args = parser.parse_args(argv)

    config = get_active_config(args.config)
    engine = OperationsEngine.from_config(config)
    scheduler = SweepScheduler(
        engine.sweep, engine.clock, interval_seconds=config.sweep.interval_seconds
    )

    if args.once:
        result = scheduler.tick()
        if args.reconcile:
            engine.reconciliation.reconcile_all()
        return 0 if result is not None and not result.failures else 1

    if not config.sweep.enabled:
        logger.warning("sweep_disabled")
        return 0

    scheduler.start()
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
