"""Habit service tests: CRUD, completion flows and streak upkeep."""

from __future__ import annotations

import random
import threading
from datetime import date, datetime, timedelta

import pytest

from habitstreak.infra.repositories import InMemoryHabitRepository
from habitstreak.services.habits import HabitService
from habitstreak.services.streaks import recompute

OWNER_ID = 1
TODAY = date(2024, 3, 15)


def day(offset: int) -> date:
    return TODAY - timedelta(days=offset)


@pytest.fixture
def habit(service):
    return service.create_habit({"title": "Push-ups", "target_value": 20, "unit": "reps"}, owner_id=OWNER_ID)


class TestCreateAndRead:
    def test_create_applies_defaults(self, service):
        habit = service.create_habit({"title": "  Drink water  "}, owner_id=OWNER_ID)

        assert habit.title == "Drink water"
        assert habit.category == "Personal"
        assert habit.frequency == "daily"
        assert habit.target_value == 1
        assert habit.unit == "times"
        assert habit.color == "#8B5CF6"
        assert habit.is_active is True
        assert (habit.streak_current, habit.streak_longest, habit.streak_last_completed) == (0, 0, None)

    def test_create_rejects_non_positive_target(self, service):
        with pytest.raises(ValueError, match="target_value"):
            service.create_habit({"title": "Nothing", "target_value": 0}, owner_id=OWNER_ID)

    def test_create_stores_reminders(self, service):
        habit = service.create_habit(
            {
                "title": "Stretch",
                "reminders": [{"time": "07:15", "days": ["Monday", "friday"]}],
            },
            owner_id=OWNER_ID,
        )

        reminders = service.list_reminders(habit.id, owner_id=OWNER_ID)
        assert [(r.time, r.day_list) for r in reminders] == [("07:15", ["monday", "friday"])]

    def test_get_missing_habit_raises(self, service):
        with pytest.raises(ValueError, match="Habit not found"):
            service.get_habit(999, owner_id=OWNER_ID)

    def test_habits_are_scoped_to_owner(self, service, habit):
        with pytest.raises(ValueError, match="Habit not found"):
            service.complete_habit(habit.id, owner_id=OWNER_ID + 1)
        assert service.list_habits(owner_id=OWNER_ID + 1) == []

    def test_list_filters_by_category(self, service):
        service.create_habit({"title": "Run", "category": "Health"}, owner_id=OWNER_ID)
        service.create_habit({"title": "Read", "category": "Learning"}, owner_id=OWNER_ID)

        titles = [h.title for h in service.list_habits(owner_id=OWNER_ID, category="Learning")]
        assert titles == ["Read"]


class TestCompletionFlow:
    def test_complete_today_starts_streak(self, service, habit):
        updated = service.complete_habit(habit.id, owner_id=OWNER_ID, value=25)

        assert updated.streak_current == 1
        assert updated.streak_longest == 1
        assert updated.streak_last_completed == TODAY

    def test_streak_persists_across_reads(self, service, habit):
        for offset in (2, 1, 0):
            service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(offset), value=20)

        stored = service.get_habit(habit.id, owner_id=OWNER_ID)
        assert (stored.streak_current, stored.streak_longest) == (3, 3)

    def test_partial_completion_does_not_count(self, service, habit):
        updated = service.complete_habit(habit.id, owner_id=OWNER_ID, value=10)

        assert updated.streak_current == 0
        assert updated.streak_longest == 0
        assert len(service.get_completions(habit.id, owner_id=OWNER_ID)) == 1

    def test_completing_same_day_overwrites(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID, value=25, notes="morning")
        updated = service.complete_habit(habit.id, owner_id=OWNER_ID, value=5, notes="redo")

        completions = service.get_completions(habit.id, owner_id=OWNER_ID)
        assert [(c.value, c.notes) for c in completions] == [(5, "redo")]
        assert updated.streak_current == 0

    def test_datetime_and_string_dates_are_normalized(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID, on=datetime(2024, 3, 14, 22, 45), value=20)
        updated = service.complete_habit(habit.id, owner_id=OWNER_ID, on="2024-03-15", value=20)

        assert updated.streak_current == 2
        assert {c.occurred_on for c in service.get_completions(habit.id, owner_id=OWNER_ID)} == {
            day(1),
            day(0),
        }

    def test_negative_value_rejected(self, service, habit):
        with pytest.raises(ValueError):
            service.complete_habit(habit.id, owner_id=OWNER_ID, value=-1)

    def test_uncomplete_middle_day_splits_run(self, service, habit):
        for offset in (4, 3, 2, 1, 0):
            service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(offset), value=20)

        updated = service.uncomplete_habit(habit.id, owner_id=OWNER_ID, on=day(2))

        assert updated.streak_current == 2
        assert updated.streak_longest == 2
        assert updated.streak_last_completed == TODAY

    def test_uncomplete_today_keeps_yesterday_active(self, service, habit):
        for offset in (3, 2, 1, 0):
            service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(offset), value=20)

        updated = service.uncomplete_habit(habit.id, owner_id=OWNER_ID)

        assert updated.streak_current == 3
        assert updated.streak_last_completed == day(1)

    def test_uncomplete_last_record_resets_everything(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID, value=20)
        updated = service.uncomplete_habit(habit.id, owner_id=OWNER_ID)

        assert (updated.streak_current, updated.streak_longest, updated.streak_last_completed) == (0, 0, None)

    def test_uncomplete_missing_day_is_harmless(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID, value=20)
        updated = service.uncomplete_habit(habit.id, owner_id=OWNER_ID, on=day(9))

        assert updated.streak_current == 1


class TestUpdatesAndDeletes:
    def test_raising_target_recomputes_streak(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(1), value=20)
        service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(0), value=30)

        updated = service.update_habit(habit.id, {"target_value": 25}, owner_id=OWNER_ID)

        assert updated.target_value == 25
        assert (updated.streak_current, updated.streak_longest) == (1, 1)

    def test_partial_update_leaves_other_fields(self, service, habit):
        updated = service.update_habit(habit.id, {"title": "Pull-ups", "icon": "💪"}, owner_id=OWNER_ID)

        assert updated.title == "Pull-ups"
        assert updated.icon == "💪"
        assert updated.unit == "reps"
        assert updated.target_value == 20

    def test_update_validates_payload(self, service, habit):
        with pytest.raises(ValueError):
            service.update_habit(habit.id, {"frequency": "hourly"}, owner_id=OWNER_ID)

    def test_update_replaces_reminders(self, service, habit):
        service.update_habit(habit.id, {"reminders": [{"time": "18:00", "days": "monday"}]}, owner_id=OWNER_ID)

        reminders = service.list_reminders(habit.id, owner_id=OWNER_ID)
        assert [r.time for r in reminders] == ["18:00"]

    def test_delete_habit(self, service, habit):
        service.delete_habit(habit.id, owner_id=OWNER_ID)

        with pytest.raises(ValueError, match="Habit not found"):
            service.get_habit(habit.id, owner_id=OWNER_ID)
        with pytest.raises(ValueError, match="Habit not found"):
            service.delete_habit(habit.id, owner_id=OWNER_ID)


class TestLockingAndAtomicity:
    def test_missing_habits_leave_no_lock_entries(self, service):
        for missing_id in range(1000, 1100):
            with pytest.raises(ValueError, match="Habit not found"):
                service.complete_habit(missing_id, owner_id=OWNER_ID)
            with pytest.raises(ValueError, match="Habit not found"):
                service.uncomplete_habit(missing_id, owner_id=OWNER_ID)
            with pytest.raises(ValueError, match="Habit not found"):
                service.update_habit(missing_id, {"title": "Ghost"}, owner_id=OWNER_ID)

        assert service._locks == {}

    def test_lock_entries_released_after_success(self, service, habit):
        service.complete_habit(habit.id, owner_id=OWNER_ID)
        service.uncomplete_habit(habit.id, owner_id=OWNER_ID)
        service.update_habit(habit.id, {"title": "Sit-ups"}, owner_id=OWNER_ID)

        assert service._locks == {}

    def test_failed_streak_write_discards_completion(self, service, habit, monkeypatch):
        service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(1), value=20)

        def broken_update(*args, **kwargs):
            raise RuntimeError("write failed")

        monkeypatch.setattr(service.repository, "update", broken_update)
        with pytest.raises(RuntimeError, match="write failed"):
            service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(0), value=20)
        with pytest.raises(RuntimeError, match="write failed"):
            service.uncomplete_habit(habit.id, owner_id=OWNER_ID, on=day(1))
        monkeypatch.undo()

        completions = service.get_completions(habit.id, owner_id=OWNER_ID)
        assert [c.occurred_on for c in completions] == [day(1)]
        stored = service.get_habit(habit.id, owner_id=OWNER_ID)
        assert (stored.streak_current, stored.streak_last_completed) == (1, day(1))


class TestStreakForToday:
    def test_streak_for_reflects_passing_days(self, repo):
        current_day = {"value": TODAY}
        service = HabitService(repo, today=lambda: current_day["value"])
        habit = service.create_habit({"title": "Journal"}, owner_id=OWNER_ID)
        for offset in (2, 1, 0):
            service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(offset))

        current_day["value"] = TODAY + timedelta(days=2)
        state = service.streak_for(habit.id, owner_id=OWNER_ID)

        assert state.current == 0
        assert state.longest == 3
        # the stored columns are untouched until the next mutation
        assert service.get_habit(habit.id, owner_id=OWNER_ID).streak_current == 3


def test_concurrent_complete_and_uncomplete_stay_consistent():
    repo = InMemoryHabitRepository()
    service = HabitService(repo, today=lambda: TODAY)
    habit = service.create_habit({"title": "Walk"}, owner_id=OWNER_ID)

    def worker(seed: int) -> None:
        rng = random.Random(seed)
        for _ in range(50):
            offset = rng.randint(0, 6)
            if rng.random() < 0.6:
                service.complete_habit(habit.id, owner_id=OWNER_ID, on=day(offset))
            else:
                service.uncomplete_habit(habit.id, owner_id=OWNER_ID, on=day(offset))

    threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = service.get_habit(habit.id, owner_id=OWNER_ID)
    expected = recompute(
        [c.to_record() for c in repo.get_completions(habit.id)], stored.target_value, TODAY
    )
    assert stored.streak == expected
