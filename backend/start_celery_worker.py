#!/usr/bin/env python3
"""Start a Celery worker for the imports queue, silencing the container root-user warning."""

import sys
import warnings

warnings.filterwarnings("ignore", category=UserWarning, message=".*superuser privileges.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from bulk_import.workers.celery_app import IMPORT_QUEUE, celery_app  # noqa: E402

if __name__ == "__main__":
    celery_app.worker_main(
        argv=[
            "worker",
            "--loglevel=info",
            f"--queues={IMPORT_QUEUE}",
            "--pool=solo",
            "--without-mingle",
            "--without-gossip",
        ]
        + sys.argv[1:]
    )
