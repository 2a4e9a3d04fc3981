#!/usr/bin/env python3
# sweep_cli.py
import argparse
import logging
from datetime import datetime
from typing import Optional, Sequence

from config import LendingConfig
from db import Base, SessionLocal, engine
from errors import LendingError
from sweeper import ExpirySweeper

import orm  # noqa: F401  registers tables on Base.metadata


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Recalculate late fees and expire stale reservations (safe to re-run).")
    ap.add_argument("--now", default=None, help="ISO-8601 timestamp to sweep at (default: current UTC time)")
    ap.add_argument("--fees-only", action="store_true", help="Only recalculate late fees")
    ap.add_argument("--reservations-only", action="store_true", help="Only expire reservations")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger = logging.getLogger("sweep")

    if args.fees_only and args.reservations_only:
        ap.error("--fees-only and --reservations-only are mutually exclusive")

    now = datetime.fromisoformat(args.now) if args.now else None

    Base.metadata.create_all(bind=engine)
    sweeper = ExpirySweeper(LendingConfig())

    db = SessionLocal()
    try:
        if args.fees_only:
            result = sweeper.recalculate_fees(db, now=now)
        elif args.reservations_only:
            result = sweeper.expire_reservations(db, now=now)
        else:
            result = sweeper.run(db, now=now)
    except LendingError as exc:
        logger.error("sweep failed: %s", exc.detail)
        return 1
    finally:
        db.close()

    print(
        f"ran_at={result.ran_at.isoformat()} "
        f"fees_updated={result.fees_updated} "
        f"reservations_expired={result.reservations_expired}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
