import pytest

from chorely import operations
from chorely.dates import parse_datetime
from chorely.errors import ConflictError, NotFoundError, ValidationFailed
from chorely.frequency import Frequency
from chorely.models import Chore, ChoreAssignment, ChoreCompletion, Schedule
from tests.helpers import at, make_chore, make_schedule, make_user

NOW = at("2026-02-07T14:30:00")


class TestSchedules:
    def test_same_day_returns_the_same_schedule(self, db):
        chore = make_chore(db, "Vacuum", Frequency.WEEKLY)

        first, created = operations.create_schedule(
            db, chore.id, parse_datetime("2026-02-07T23:59:59Z"), Frequency.DAILY
        )
        second, created_again = operations.create_schedule(
            db, chore.id, parse_datetime("2026-02-07T00:00:00Z"), Frequency.DAILY
        )

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert first.scheduled_for == at("2026-02-07T00:00:00")
        assert db.query(Schedule).count() == 1

    def test_suggested_only_narrows(self, db):
        chore = make_chore(db, "Vacuum", Frequency.WEEKLY)
        schedule, _ = operations.create_schedule(db, chore.id, NOW, Frequency.DAILY, suggested=True)
        assert schedule.suggested is True

        schedule, _ = operations.create_schedule(db, chore.id, NOW, Frequency.DAILY, suggested=False)
        assert schedule.suggested is False

        schedule, _ = operations.create_schedule(db, chore.id, NOW, Frequency.DAILY, suggested=True)
        assert schedule.suggested is False

    def test_recreating_a_hidden_schedule_unhides_it(self, db):
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"), hidden=True)

        again, created = operations.create_schedule(db, chore.id, NOW, Frequency.DAILY)
        assert created is False
        assert again.id == schedule.id
        assert again.hidden is False

    def test_unknown_chore(self, db):
        with pytest.raises(NotFoundError):
            operations.create_schedule(db, 999, NOW, Frequency.DAILY)

    def test_incompatible_slot_is_rejected(self, db):
        chore = make_chore(db, "Fridge", Frequency.MONTHLY)
        with pytest.raises(ValidationFailed) as excinfo:
            operations.create_schedule(db, chore.id, NOW, Frequency.DAILY)
        assert "chore_id" in excinfo.value.field_errors
        assert db.query(Schedule).count() == 0

    def test_own_tier_slot_is_allowed(self, db):
        chore = make_chore(db, "Fridge", Frequency.MONTHLY)
        schedule, created = operations.create_schedule(db, chore.id, NOW, Frequency.MONTHLY)
        assert created is True
        assert schedule.slot_type == Frequency.MONTHLY

    def test_losing_the_insert_race_returns_the_winner(self, db, monkeypatch):
        chore = make_chore(db, "Vacuum", Frequency.WEEKLY)
        winner = make_schedule(db, chore, at("2026-02-07T00:00:00"), suggested=True)

        real_lookup = operations._schedule_for
        calls = []

        def stale_lookup(session, chore_id, day):
            calls.append(day)
            if len(calls) == 1:
                return None
            return real_lookup(session, chore_id, day)

        monkeypatch.setattr(operations, "_schedule_for", stale_lookup)

        schedule, created = operations.create_schedule(db, chore.id, NOW, Frequency.DAILY)
        assert created is False
        assert schedule.id == winner.id
        assert schedule.suggested is False
        assert db.query(Schedule).count() == 1

    def test_delete_keeps_completion_history(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))
        completion, _ = operations.create_completion(db, alice, chore.id, NOW, schedule_id=schedule.id)

        operations.delete_schedule(db, schedule.id)

        db.expire_all()
        assert db.query(Schedule).count() == 0
        assert db.get(ChoreCompletion, completion.id).schedule_id is None

    def test_hide_and_missing(self, db):
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))
        assert operations.hide_schedule(db, schedule.id).hidden is True

        with pytest.raises(NotFoundError):
            operations.delete_schedule(db, 999)
        with pytest.raises(NotFoundError):
            operations.hide_schedule(db, 999)


class TestCompletions:
    def test_first_completer_wins(self, db):
        alice = make_user(db, "alice")
        bob = make_user(db, "bob")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))

        first, created = operations.create_completion(
            db, alice, chore.id, NOW, schedule_id=schedule.id, notes="done"
        )
        second, created_again = operations.create_completion(
            db, bob, chore.id, at("2026-02-07T15:00:00"), schedule_id=schedule.id, notes="me too"
        )

        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.user_id == "alice"
        assert second.notes == "done"
        assert db.query(ChoreCompletion).count() == 1

    def test_losing_the_insert_race_returns_the_winner(self, db, monkeypatch):
        alice = make_user(db, "alice")
        bob = make_user(db, "bob")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))
        winner, _ = operations.create_completion(db, alice, chore.id, NOW, schedule_id=schedule.id)

        real_lookup = operations._completion_for_schedule
        calls = []

        def stale_lookup(session, schedule_id):
            calls.append(schedule_id)
            if len(calls) == 1:
                return None
            return real_lookup(session, schedule_id)

        monkeypatch.setattr(operations, "_completion_for_schedule", stale_lookup)

        completion, created = operations.create_completion(db, bob, chore.id, NOW, schedule_id=schedule.id)
        assert created is False
        assert completion.id == winner.id
        assert completion.user_id == "alice"

    def test_schedule_must_belong_to_chore(self, db):
        alice = make_user(db, "alice")
        dishes = make_chore(db, "Dishes", Frequency.DAILY)
        trash = make_chore(db, "Trash", Frequency.DAILY)
        schedule = make_schedule(db, dishes, at("2026-02-07T00:00:00"))

        with pytest.raises(ValidationFailed) as excinfo:
            operations.create_completion(db, alice, trash.id, NOW, schedule_id=schedule.id)
        assert "schedule_id" in excinfo.value.field_errors

    def test_missing_chore_or_schedule(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        with pytest.raises(NotFoundError):
            operations.create_completion(db, alice, 999, NOW)
        with pytest.raises(NotFoundError):
            operations.create_completion(db, alice, chore.id, NOW, schedule_id=999)

    def test_ad_hoc_completions_accumulate(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        first, created = operations.create_completion(db, alice, chore.id, NOW)
        second, created_again = operations.create_completion(db, alice, chore.id, NOW)
        assert created and created_again
        assert first.id != second.id
        assert first.completed_at == NOW

    def test_explicit_completed_at_is_stored_as_utc(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        completion, _ = operations.create_completion(
            db, alice, chore.id, NOW, completed_at=parse_datetime("2026-02-07T10:00:00+02:00")
        )
        assert completion.completed_at == at("2026-02-07T08:00:00")

    def test_only_the_completer_can_undo(self, db):
        alice = make_user(db, "alice")
        bob = make_user(db, "bob")
        chore = make_chore(db, "Dishes", Frequency.DAILY)
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))
        operations.create_completion(db, alice, chore.id, NOW, schedule_id=schedule.id)

        with pytest.raises(NotFoundError):
            operations.delete_completion(db, bob, schedule.id)
        assert db.query(ChoreCompletion).count() == 1

        operations.delete_completion(db, alice, schedule.id)
        assert db.query(ChoreCompletion).count() == 0
        assert db.query(Schedule).count() == 1


class TestChores:
    def test_create_with_assignees(self, db):
        make_user(db, "alice")
        chore = operations.create_chore(db, "Laundry", Frequency.WEEKLY, assignee_ids=["alice", "alice"])
        assert [user.id for user in chore.assignees] == ["alice"]

    def test_unknown_assignee(self, db):
        with pytest.raises(ValidationFailed) as excinfo:
            operations.create_chore(db, "Laundry", Frequency.WEEKLY, assignee_ids=["ghost"])
        assert "assignee_ids" in excinfo.value.field_errors
        assert db.query(Chore).count() == 0

    def test_update_replaces_assignees(self, db):
        alice = make_user(db, "alice")
        make_user(db, "bob")
        chore = make_chore(db, "Laundry", Frequency.WEEKLY, assignees=[alice])

        updated = operations.update_chore(db, chore.id, {"title": "Do laundry", "assignee_ids": ["bob"]})
        assert updated.title == "Do laundry"
        assert [user.id for user in updated.assignees] == ["bob"]

        cleared = operations.update_chore(db, chore.id, {"assignee_ids": []})
        assert cleared.assignees == []

    def test_failed_update_changes_nothing(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Laundry", Frequency.WEEKLY, assignees=[alice])

        with pytest.raises(ValidationFailed):
            operations.update_chore(db, chore.id, {"title": "Renamed", "assignee_ids": ["ghost"]})

        db.expire_all()
        chore = db.get(Chore, chore.id)
        assert chore.title == "Laundry"
        assert [user.id for user in chore.assignees] == ["alice"]

    def test_delete_removes_dependents(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Dishes", Frequency.DAILY, assignees=[alice])
        schedule = make_schedule(db, chore, at("2026-02-07T00:00:00"))
        operations.create_completion(db, alice, chore.id, NOW, schedule_id=schedule.id)

        operations.delete_chore(db, chore.id)

        assert db.query(Chore).count() == 0
        assert db.query(Schedule).count() == 0
        assert db.query(ChoreCompletion).count() == 0
        assert db.query(ChoreAssignment).count() == 0

        with pytest.raises(NotFoundError):
            operations.delete_chore(db, chore.id)


class TestAssignments:
    def test_assign_twice_conflicts(self, db):
        make_user(db, "alice")
        chore = make_chore(db, "Laundry", Frequency.WEEKLY)
        operations.assign_user(db, chore.id, "alice")
        with pytest.raises(ConflictError):
            operations.assign_user(db, chore.id, "alice")

    def test_unknown_user_or_chore(self, db):
        make_user(db, "alice")
        chore = make_chore(db, "Laundry", Frequency.WEEKLY)
        with pytest.raises(NotFoundError, match="User not found"):
            operations.assign_user(db, chore.id, "ghost")
        with pytest.raises(NotFoundError, match="Chore not found"):
            operations.assign_user(db, 999, "alice")

    def test_unassign(self, db):
        alice = make_user(db, "alice")
        chore = make_chore(db, "Laundry", Frequency.WEEKLY, assignees=[alice])
        operations.unassign_user(db, chore.id, "alice")
        assert db.query(ChoreAssignment).count() == 0
        with pytest.raises(NotFoundError, match="Assignment not found"):
            operations.unassign_user(db, chore.id, "alice")
