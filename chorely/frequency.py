"""Recurrence tiers and the cascade between them.

Tiers form a strict chain from finest to coarsest. A chore of one tier can be
pulled ("cascaded") into a slot exactly one tier finer, e.g. one WEEKLY chore
fills a DAILY slot.
"""
import enum
from typing import List, Optional


class Frequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    BIMONTHLY = "BIMONTHLY"
    SEMIANNUAL = "SEMIANNUAL"
    YEARLY = "YEARLY"


# Finest first
FREQUENCY_ORDER: List[Frequency] = list(Frequency)

# Tiers that have a finer tier to cascade into
CASCADE_SOURCES: List[Frequency] = FREQUENCY_ORDER[1:]


def parse_frequency(value: str) -> Frequency:
    """Return the tier named by ``value`` or raise ValueError."""
    try:
        return Frequency(value)
    except ValueError:
        raise ValueError(f"Must be one of: {', '.join(f.value for f in Frequency)}")


def cascade_source(slot_type: Frequency) -> Optional[Frequency]:
    """Tier whose chores may fill a ``slot_type`` slot, or None for YEARLY."""
    index = FREQUENCY_ORDER.index(Frequency(slot_type))
    if index + 1 < len(FREQUENCY_ORDER):
        return FREQUENCY_ORDER[index + 1]
    return None


def cascade_target(source: Frequency) -> Optional[Frequency]:
    """Inverse of cascade_source: the slot tier a ``source`` chore fills."""
    index = FREQUENCY_ORDER.index(Frequency(source))
    if index == 0:
        return None
    return FREQUENCY_ORDER[index - 1]


def is_compatible(chore_frequency: Frequency, slot_type: Frequency) -> bool:
    """True when a chore can be cascaded into a slot of ``slot_type``."""
    source = cascade_source(slot_type)
    return source is not None and source == Frequency(chore_frequency)


def can_fill_slot(chore_frequency: Frequency, slot_type: Frequency) -> bool:
    """A chore fills a slot of its own tier or one it can cascade into."""
    return Frequency(chore_frequency) == Frequency(slot_type) or is_compatible(chore_frequency, slot_type)
