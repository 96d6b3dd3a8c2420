from chorely.frequency import Frequency
from chorely.models import Chore
from chorely.suggestions import Candidate, rank_candidates, suggest_cascaded_chore
from tests.helpers import at, make_chore, make_completion, make_schedule, make_user

NOW = at("2026-02-07T14:30:00")


def test_never_completed_comes_first(db):
    alice = make_user(db, "alice")
    done = make_chore(db, "Alpha", Frequency.WEEKLY)
    make_chore(db, "Zulu", Frequency.WEEKLY)
    make_completion(db, done, alice, at("2026-02-06T09:00:00"))

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW)
    assert suggestion.chore.title == "Zulu"
    assert suggestion.last_completed_at is None
    assert suggestion.source_frequency == Frequency.WEEKLY


def test_longest_neglected_comes_next(db):
    alice = make_user(db, "alice")
    recent = make_chore(db, "Recent", Frequency.WEEKLY)
    stale = make_chore(db, "Stale", Frequency.WEEKLY)
    make_completion(db, recent, alice, at("2026-02-05T09:00:00"))
    make_completion(db, stale, alice, at("2026-01-28T09:00:00"))
    make_completion(db, stale, alice, at("2026-01-20T09:00:00"))

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW)
    assert suggestion.chore.id == stale.id
    assert suggestion.last_completed_at == at("2026-01-28T09:00:00")


def test_assignment_breaks_ties(db):
    user = make_user(db, "user-1")
    other = make_chore(db, "Apples", Frequency.WEEKLY)
    mine = make_chore(db, "Zebra", Frequency.WEEKLY, assignees=[user])
    same_time = at("2025-01-02T10:00:00")
    make_completion(db, other, user, same_time)
    make_completion(db, mine, user, same_time)

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW, user_id="user-1")
    assert suggestion.chore.id == mine.id
    assert suggestion.assigned_to_user is True

    # Without a user the title decides
    assert suggest_cascaded_chore(db, Frequency.DAILY, NOW).chore.id == other.id


def test_assignment_does_not_beat_coverage(db):
    user = make_user(db, "user-1")
    mine = make_chore(db, "Mine", Frequency.WEEKLY, assignees=[user])
    make_chore(db, "Nobody's", Frequency.WEEKLY)
    make_completion(db, mine, user, at("2025-01-02T10:00:00"))

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW, user_id="user-1")
    assert suggestion.chore.title == "Nobody's"


def test_chores_scheduled_this_cycle_are_skipped(db):
    vacuum = make_chore(db, "Vacuum", Frequency.WEEKLY)
    mop = make_chore(db, "Mop", Frequency.WEEKLY)
    make_schedule(db, vacuum, at("2026-02-03T00:00:00"), slot_type=Frequency.DAILY)

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW)
    assert suggestion.chore.id == mop.id

    make_schedule(db, mop, at("2026-02-08T00:00:00"), slot_type=Frequency.DAILY)
    assert suggest_cascaded_chore(db, Frequency.DAILY, NOW) is None


def test_last_cycle_and_hidden_schedules_do_not_exclude(db):
    vacuum = make_chore(db, "Vacuum", Frequency.WEEKLY)
    make_schedule(db, vacuum, at("2026-02-01T00:00:00"), slot_type=Frequency.DAILY)
    make_schedule(db, vacuum, at("2026-02-04T00:00:00"), slot_type=Frequency.DAILY, hidden=True)

    suggestion = suggest_cascaded_chore(db, Frequency.DAILY, NOW)
    assert suggestion.chore.id == vacuum.id
    assert suggestion.cycle_start == at("2026-02-02T00:00:00")
    assert suggestion.cycle_end == at("2026-02-09T00:00:00")


def test_only_the_source_tier_is_considered(db):
    make_chore(db, "Dishes", Frequency.DAILY)
    make_chore(db, "Fridge", Frequency.MONTHLY)
    assert suggest_cascaded_chore(db, Frequency.DAILY, NOW) is None

    suggestion = suggest_cascaded_chore(db, Frequency.BIWEEKLY, NOW)
    assert suggestion.chore.title == "Fridge"
    assert suggestion.source_frequency == Frequency.MONTHLY


def test_yearly_slot_has_no_source(db):
    make_chore(db, "Gutters", Frequency.YEARLY)
    assert suggest_cascaded_chore(db, Frequency.YEARLY, NOW) is None


def test_rank_candidates_ordering():
    candidates = [
        Candidate(Chore(title="recent"), at("2026-02-06T00:00:00")),
        Candidate(Chore(title="old-mine"), at("2026-01-01T00:00:00"), assigned_to_user=True),
        Candidate(Chore(title="b-never"), None),
        Candidate(Chore(title="old"), at("2026-01-01T00:00:00")),
        Candidate(Chore(title="a-never"), None),
    ]
    titles = [candidate.chore.title for candidate in rank_candidates(candidates)]
    assert titles == ["a-never", "b-never", "old-mine", "old", "recent"]
