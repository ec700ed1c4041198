"""Run TasteSphere background jobs by hand.

The schedule itself runs inside the API process (see app.py), where the live
hub lives. This command is for operators: run one job now and print what it
did, or show the schedule. Live broadcasts from here reach no connected
client; the printed result is the output.

Usage:
    python src/worker.py --once weekly-settlement   # Run one job now and exit
    python src/worker.py --list                     # Show the schedule
"""

import argparse
import json
import sys

import structlog


def _init():
    from marketplace.domain import marketplace
    from marketplace.utils.logging import configure_logging

    configure_logging()
    marketplace.init()
    return marketplace


def run_once(job_name: str):
    from marketplace.notification.dispatcher import reset_dispatcher
    from marketplace.scheduling.jobs import JOBS

    _init()
    logger = structlog.get_logger("worker")
    logger.info("Running job", job_id=job_name)
    try:
        result = JOBS[job_name]()
    finally:
        reset_dispatcher(wait=True)
    print(json.dumps(result, indent=2, default=str))
    return result


def main():
    from marketplace.scheduling.jobs import JOBS
    from marketplace.scheduling.scheduler import SCHEDULE

    parser = argparse.ArgumentParser(description="TasteSphere background jobs")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--once", choices=sorted(JOBS), help="Run a single job immediately and exit")
    group.add_argument("--list", action="store_true", help="List scheduled jobs and exit")
    args = parser.parse_args()

    if args.list:
        for job_id, _, fields in SCHEDULE:
            print(f"{job_id:<22} {fields}")
        sys.exit(0)

    run_once(args.once)


if __name__ == "__main__":
    main()
