from sqlalchemy.orm import Session
from .frequency import Frequency
from .models import Chore, ChoreAssignment, ChoreCompletion, Schedule
import logging

# Configure logging
logger = logging.getLogger(__name__)

SAMPLE_CHORES = [
    # Daily
    ("Wash dishes", Frequency.DAILY, "Hand-wash or load dishwasher"),
    ("Wipe kitchen counters", Frequency.DAILY, None),
    ("Take out trash", Frequency.DAILY, None),
    ("Make the bed", Frequency.DAILY, None),
    ("Tidy living room", Frequency.DAILY, "Pick up clutter, fluff pillows"),
    # Weekly
    ("Vacuum floors", Frequency.WEEKLY, "All rooms including under furniture"),
    ("Mop kitchen floor", Frequency.WEEKLY, None),
    ("Clean bathroom", Frequency.WEEKLY, "Toilet, sink, shower, mirror"),
    ("Do laundry", Frequency.WEEKLY, "Wash, dry, fold, and put away"),
    ("Water plants", Frequency.WEEKLY, None),
    # Bi-weekly
    ("Clean out car", Frequency.BIWEEKLY, "Remove trash, vacuum seats"),
    ("Wipe down appliances", Frequency.BIWEEKLY, None),
    # Monthly
    ("Deep clean fridge", Frequency.MONTHLY, "Remove expired items, wipe shelves"),
    ("Clean windows", Frequency.MONTHLY, None),
    ("Dust ceiling fans", Frequency.MONTHLY, None),
    ("Organize pantry", Frequency.MONTHLY, "Check expiration dates, reorganize"),
    # Bi-monthly
    ("Deep clean bathroom tiles", Frequency.BIMONTHLY, "Scrub grout and reseal"),
    ("Rotate seasonal clothes", Frequency.BIMONTHLY, None),
    # Semi-annual
    ("Service HVAC system", Frequency.SEMIANNUAL, "Change filters, check ducts"),
    ("Deep clean carpets", Frequency.SEMIANNUAL, "Steam clean all carpeted rooms"),
    # Yearly
    ("Deep clean oven", Frequency.YEARLY, "Full interior cleaning cycle"),
    ("Clean gutters", Frequency.YEARLY, None),
    ("Flip/rotate mattresses", Frequency.YEARLY, None),
]


def seed_database(db: Session) -> int:
    """Replace all chore data with the sample household. Users are kept."""
    logger.info("Starting database seeding...")

    try:
        db.query(ChoreCompletion).delete()
        db.query(Schedule).delete()
        db.query(ChoreAssignment).delete()
        db.query(Chore).delete()

        chores = [
            Chore(title=title, frequency=frequency, description=description)
            for title, frequency, description in SAMPLE_CHORES
        ]
        db.add_all(chores)
        db.commit()
        logger.info(f"Created {len(chores)} chores")
        return len(chores)
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding database: {str(e)}", exc_info=True)
        raise
