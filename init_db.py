"""Prepare the chore database before the app starts.

    python init_db.py            create missing tables
    python init_db.py --seed     ... and load the sample household
    python init_db.py --reset    drop everything, recreate and reseed
"""
import argparse
import logging
import os
import time

from dotenv import load_dotenv

from chorely.database import SessionLocal, init_db, reset_db
from chorely.seed_data import seed_database

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _prepare(seed: bool, reset: bool) -> int:
    if reset:
        return reset_db(seed=True)

    init_db()
    if not seed:
        return 0
    with SessionLocal() as db:
        return seed_database(db)


def init_database(seed: bool = False, reset: bool = False, attempts: int = 5, delay: float = 5) -> int:
    """Run the preparation, retrying while the database comes up.

    Returns the number of chores seeded.
    """
    load_dotenv()
    for attempt in range(1, attempts + 1):
        try:
            return _prepare(seed, reset)
        except Exception as e:
            if attempt == attempts:
                logger.error(f"Database preparation failed after {attempts} attempts: {e}")
                raise
            logger.warning(f"Database not ready ({e}), attempt {attempt}/{attempts}; waiting {delay}s")
            time.sleep(delay)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create, seed or reset the chore database.")
    parser.add_argument("--seed", action="store_true", help="load the sample household after creating tables")
    parser.add_argument("--reset", action="store_true", help="drop every table first (implies --seed)")
    args = parser.parse_args(argv)

    seed = args.seed or os.getenv("SEED_ON_STARTUP", "").lower() == "true"
    seeded = init_database(seed=seed, reset=args.reset)
    logger.info(f"Database ready ({seeded} sample chores loaded)")


if __name__ == "__main__":
    main()
