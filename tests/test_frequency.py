import pytest

from chorely.frequency import (
    CASCADE_SOURCES,
    FREQUENCY_ORDER,
    Frequency,
    can_fill_slot,
    cascade_source,
    cascade_target,
    is_compatible,
    parse_frequency,
)


def test_order_is_finest_first():
    assert FREQUENCY_ORDER[0] == Frequency.DAILY
    assert FREQUENCY_ORDER[-1] == Frequency.YEARLY
    assert Frequency.DAILY not in CASCADE_SOURCES


def test_cascade_chain():
    assert cascade_source(Frequency.DAILY) == Frequency.WEEKLY
    assert cascade_source(Frequency.WEEKLY) == Frequency.BIWEEKLY
    assert cascade_source(Frequency.BIWEEKLY) == Frequency.MONTHLY
    assert cascade_source(Frequency.MONTHLY) == Frequency.BIMONTHLY
    assert cascade_source(Frequency.BIMONTHLY) == Frequency.SEMIANNUAL
    assert cascade_source(Frequency.SEMIANNUAL) == Frequency.YEARLY
    assert cascade_source(Frequency.YEARLY) is None


def test_cascade_target_inverts_source():
    for source in CASCADE_SOURCES:
        assert cascade_source(cascade_target(source)) == source
    assert cascade_target(Frequency.DAILY) is None


def test_is_compatible_only_one_tier_down():
    assert is_compatible(Frequency.WEEKLY, Frequency.DAILY)
    assert is_compatible(Frequency.YEARLY, Frequency.SEMIANNUAL)
    assert not is_compatible(Frequency.MONTHLY, Frequency.DAILY)
    assert not is_compatible(Frequency.DAILY, Frequency.DAILY)
    assert not is_compatible(Frequency.DAILY, Frequency.WEEKLY)


def test_can_fill_own_tier_or_cascade_slot():
    assert can_fill_slot(Frequency.DAILY, Frequency.DAILY)
    assert can_fill_slot(Frequency.WEEKLY, Frequency.DAILY)
    assert can_fill_slot(Frequency.YEARLY, Frequency.YEARLY)
    assert not can_fill_slot(Frequency.MONTHLY, Frequency.DAILY)
    assert not can_fill_slot(Frequency.DAILY, Frequency.WEEKLY)


def test_parse_frequency():
    assert parse_frequency("BIMONTHLY") == Frequency.BIMONTHLY
    with pytest.raises(ValueError, match="Must be one of"):
        parse_frequency("FORTNIGHTLY")
