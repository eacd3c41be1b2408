#!/usr/bin/env python3
"""Reset import jobs stuck in `processing` after a worker loss and queue them again."""

import argparse
from datetime import timedelta

from bulk_import.db.session import SessionLocal
from bulk_import.services.job_store import release_stale_jobs
from bulk_import.services.orchestrator import enqueue_job


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--minutes",
        type=int,
        default=60,
        help="Release jobs without a progress write for this many minutes (default: 60)",
    )
    parser.add_argument(
        "--no-enqueue",
        action="store_true",
        help="Only reset the status, leave queueing to an operator",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        released = release_stale_jobs(db, timedelta(minutes=args.minutes))
    finally:
        db.close()

    if not released:
        print("No stuck jobs")
        return

    for job_id in released:
        if args.no_enqueue:
            print(f"Released {job_id}")
        else:
            enqueue_job(job_id)
            print(f"Released and re-queued {job_id}")


if __name__ == "__main__":
    main()
