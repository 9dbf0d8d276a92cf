#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Local Celery worker for the booking sweeps.

Pass ``--beat`` to embed the beat scheduler so the expiry and payout
sweeps fire without a separate process.
"""
import os
from pathlib import Path
import subprocess
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

if __name__ == "__main__":
    queues = os.getenv("CELERY_QUEUES") or "bookings,celery"
    print(f"Starting Celery worker (ENVIRONMENT={os.environ['ENVIRONMENT']}), queues: {queues}")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "rentitforward.tasks.celery_app",
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "-Q",
        queues,
    ]
    if "--beat" in sys.argv[1:]:
        cmd.append("--beat")

    subprocess.run(cmd)
