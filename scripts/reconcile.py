"""
Fail resumes stuck in pending/processing and report credit balance drift.
Run: python -m scripts.reconcile
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.services.credit_ledger import find_balance_drift
from app.services.resume_pipeline import sweep_stuck_resumes
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reconcile() -> int:
    """Run both maintenance passes. Returns the number of drifted profiles."""
    db = SessionLocal()
    try:
        demoted = sweep_stuck_resumes(db)
        logger.info(f"Marked {demoted} stuck resume(s) as failed")

        drift = find_balance_drift(db)
        for d in drift:
            logger.warning(
                f"Balance drift: user_id={d.user_id} email={d.email} "
                f"cached={d.cached_balance} ledger={d.ledger_balance} diff={d.difference}"
            )
        return len(drift)
    finally:
        db.close()


if __name__ == "__main__":
    drifted = reconcile()
    if drifted:
        print(f"\n[WARN] {drifted} profile(s) disagree with the credit ledger")
        sys.exit(1)
    print("\n[OK] Ledger and cached balances agree")
