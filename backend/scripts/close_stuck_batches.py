"""
Mark batches left in 'processing' by a crashed API process as 'error'.
Run with: python -m scripts.close_stuck_batches [--older-than-minutes 120]
"""
import argparse
import os
import sys
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from radiocheck.db.session import SessionLocal  # noqa: E402
from radiocheck.models import BatchJob  # noqa: E402
from radiocheck.models.batch_job import BATCH_ERROR, BATCH_PROCESSING  # noqa: E402
from radiocheck.models.common import utcnow  # noqa: E402


def close_stuck_batches(older_than_minutes: int) -> int:
    cutoff = utcnow() - timedelta(minutes=older_than_minutes)
    db = SessionLocal()
    try:
        stuck = (
            db.query(BatchJob)
            .filter(BatchJob.status == BATCH_PROCESSING, BatchJob.updated_at < cutoff)
            .all()
        )
        if not stuck:
            print("No stuck batches found.")
            return 0

        for batch in stuck:
            print(
                f"  - batch {batch.id} '{batch.name}': "
                f"{batch.processed_files}/{batch.total_files} done, {batch.failed_files} failed"
            )
            batch.status = BATCH_ERROR
        db.commit()
        print(f"Marked {len(stuck)} batch(es) as '{BATCH_ERROR}'")
        return len(stuck)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--older-than-minutes", type=int, default=120)
    args = parser.parse_args()
    close_stuck_batches(args.older_than_minutes)
