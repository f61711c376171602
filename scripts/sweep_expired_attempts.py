#!/usr/bin/env python3
"""
Expiry sweep, one pass.

Closes every attempt whose deadline has passed. Meant for cron or another
scheduler when the in-process sweeper is disabled (SWEEP_ENABLED=false).
Running it next to the in-process sweeper is safe.

Usage:
    python scripts/sweep_expired_attempts.py [--batch-size N]
"""

import argparse
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exam_platform.core.config import settings
from exam_platform.core.database import SessionLocal
from exam_platform.core.logging_config import configure_logging
from exam_platform.services.sweeper import ExpirySweeper


def main():
    parser = argparse.ArgumentParser(description="Time out exam attempts past their deadline")
    parser.add_argument("--batch-size", type=int, default=settings.SWEEP_BATCH_SIZE,
                        help=f"max attempts per pass (default: {settings.SWEEP_BATCH_SIZE})")
    args = parser.parse_args()

    logger = configure_logging(settings.LOG_LEVEL)
    sweeper = ExpirySweeper(SessionLocal, settings=settings, batch_size=args.batch_size)
    result = sweeper.run_once()
    logger.info(f"Sweep finished: processed_count={result.processed_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
