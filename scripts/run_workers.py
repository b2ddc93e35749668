#!/usr/bin/env python3
"""
RQ Worker Startup Script
Consumes the appraisal queue when SCHEDULER_BACKEND=rq.

Usage:
    python scripts/run_workers.py                    # One worker on the appraisal queue
    python scripts/run_workers.py --workers 4        # 4 worker processes
    python scripts/run_workers.py --check            # Check Redis and exit
"""

import argparse
import logging
import os
import sys
import signal
from multiprocessing import Process
from typing import List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rq import Worker, Queue

from app.core.database import init_db
from app.core.logging import setup_logging
from app.core.redis import get_redis, Queues, redis_health_check

logger = logging.getLogger("rq.worker")


def start_worker(queues: List[str], worker_name: Optional[str] = None, burst: bool = False):
    """
    Start a single RQ worker.

    Args:
        queues: Queue names to listen to
        worker_name: Optional worker identifier
        burst: Exit once the queues are empty
    """
    redis_conn = get_redis()
    queue_objs = [Queue(name, connection=redis_conn) for name in queues]

    worker = Worker(
        queues=queue_objs,
        connection=redis_conn,
        name=worker_name,
        log_job_description=True,
        job_monitoring_interval=5
    )

    logger.info(f"Worker {worker_name or 'default'} starting on queues: {queues}")
    worker.work(burst=burst)


def run_worker_process(queues: List[str], process_id: int, burst: bool):
    """Target function for worker processes."""
    setup_logging()
    worker_name = f"appraisal-worker-{process_id}"

    def signal_handler(signum, frame):
        logger.info(f"{worker_name}: Received shutdown signal")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    start_worker(queues, worker_name, burst)


def main():
    parser = argparse.ArgumentParser(description="Start RQ workers for the appraisal queue")
    parser.add_argument(
        "--queues", "-q",
        nargs="+",
        default=[Queues.APPRAISAL],
        help="Queue names to listen to (default: appraisal)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=1,
        help="Number of worker processes (default: 1)"
    )
    parser.add_argument(
        "--burst", "-b",
        action="store_true",
        help="Run in burst mode (exit when queue is empty)"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check Redis connection and exit"
    )

    args = parser.parse_args()
    setup_logging()

    health = redis_health_check()
    if args.check:
        print(f"Redis Status: {health}")
        sys.exit(0 if health.get("connected") else 1)

    if not health.get("connected"):
        logger.error(f"Cannot connect to Redis: {health.get('error')}")
        logger.error(f"Redis URL: {health.get('url')}")
        sys.exit(1)

    logger.info(f"Redis connected: {health.get('redis_version')}")
    init_db()
    logger.info(f"Starting {args.workers} worker(s) on queues: {args.queues}")

    if args.workers == 1:
        start_worker(args.queues, "appraisal-worker-main", args.burst)
        return

    processes: List[Process] = []

    def shutdown_all(signum, frame):
        logger.info("Shutting down all workers...")
        for p in processes:
            if p.is_alive():
                p.terminate()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown_all)
    signal.signal(signal.SIGINT, shutdown_all)

    for i in range(args.workers):
        p = Process(
            target=run_worker_process,
            args=(args.queues, i + 1, args.burst),
            name=f"appraisal-worker-{i + 1}"
        )
        p.start()
        processes.append(p)
        logger.info(f"Started worker process {i + 1}/{args.workers} (PID: {p.pid})")

    for p in processes:
        p.join()


if __name__ == "__main__":
    main()
