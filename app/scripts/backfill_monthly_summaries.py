"""
One-shot monthly cost summary backfill.

Run from the app directory:
    python -m scripts.backfill_monthly_summaries [--clear] [--as-of YYYY-MM-DD]

Without --clear only missing (project, user, month) summaries are added.
--clear drops every stored summary first, which is the only way to pick up
entries that were added to a month after it had been summarized.
"""
import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, timezone

from db import db, ensure_indexes
from utils.summary_utils import clear_monthly_summaries, generate_monthly_summaries

logger = logging.getLogger("backfill_monthly_summaries")


def print_progress(processed: int, total: int):
    width = 30
    filled = int(width * processed / total) if total else width
    bar = "#" * filled + "-" * (width - filled)
    sys.stdout.write(f"\r[{bar}] {processed}/{total}")
    if processed == total:
        sys.stdout.write("\n")
    sys.stdout.flush()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Backfill historical monthly cost summaries.")
    parser.add_argument("--clear", action="store_true",
                        help="delete all stored summaries before regenerating them")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None,
                        help="treat this day as today (months before its month are closed)")
    return parser.parse_args(argv)


async def backfill(database, clear: bool = False, as_of=None, on_progress=print_progress) -> int:
    await ensure_indexes(database)
    if clear:
        await clear_monthly_summaries(database)
    return await generate_monthly_summaries(database, as_of or datetime.now(timezone.utc), on_progress)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = parse_args(argv)

    print("Running historical monthly cost summary backfill ...")
    inserted = asyncio.run(backfill(db, clear=args.clear, as_of=args.as_of))
    print(f"Backfill complete! {inserted} summaries inserted.")


if __name__ == "__main__":
    main()
