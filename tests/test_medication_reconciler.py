"""Tests for the unified day medication view."""

import pytest

from services.medication_reconciler import (
    parse_time_to_minutes,
    medication_time_label,
    time_bucket,
    group_medications_by_time,
    is_active_on_day,
    reconcile_day,
    get_medication_count_for_day,
    get_schedule_overview,
    get_cycle_with_medications,
)
from conftest import make_state, make_cycle


GONAL_F = {
    "id": "gonal",
    "name": "Gonal-F",
    "dosage": "225 IU",
    "hour": "8",
    "minute": "00",
    "ampm": "PM",
    "refrigerated": True,
    "trigger": False,
    "startDay": 1,
    "endDay": 10,
}


def _schedule(*medications, cycle_id="c1"):
    return {"id": "s1", "cycleId": cycle_id, "medications": list(medications), "createdAt": "2024-03-01T00:00:00Z"}


def _status(day, overrides=None, day_specific=None, cycle_id="c1"):
    return {
        "id": f"status-{day}",
        "cycleId": cycle_id,
        "cycleDay": day,
        "date": None,
        "medications": overrides or [],
        "daySpecificMedications": day_specific or [],
        "createdAt": "2024-03-01T00:00:00Z",
    }


class TestTimeParsing:
    def test_twelve_hour_times(self):
        assert parse_time_to_minutes("8:00 PM") == 20 * 60
        assert parse_time_to_minutes("08:30 am") == 8 * 60 + 30
        assert parse_time_to_minutes("12:00 PM") == 12 * 60
        assert parse_time_to_minutes("12:15 AM") == 15

    def test_twenty_four_hour_times(self):
        assert parse_time_to_minutes("21:45") == 21 * 60 + 45
        assert parse_time_to_minutes("7") == 7 * 60

    def test_unparsable_times_sort_first(self):
        assert parse_time_to_minutes("") == 0
        assert parse_time_to_minutes(None) == 0
        assert parse_time_to_minutes("evening") == 0
        assert parse_time_to_minutes("13:00 PM") == 0
        assert parse_time_to_minutes("10:75") == 0

    def test_time_label_prefers_split_fields(self):
        assert medication_time_label({"hour": "8", "minute": "5", "ampm": "pm", "time": "9:00 AM"}) == "8:05 PM"
        assert medication_time_label({"time": "9:00 AM"}) == "9:00 AM"
        assert medication_time_label({"timing": "morning"}) == "morning"
        assert medication_time_label({}) == ""


class TestTimeBuckets:
    def test_noon_is_evening_with_two_buckets(self):
        assert time_bucket(11 * 60 + 59, 2) == "morning"
        assert time_bucket(12 * 60, 2) == "evening"

    def test_three_bucket_boundaries(self):
        assert time_bucket(12 * 60, 3) == "afternoon"
        assert time_bucket(16 * 60 + 59, 3) == "afternoon"
        assert time_bucket(17 * 60, 3) == "evening"

    def test_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("MEDICATION_TIME_BUCKETS", "3")
        groups = group_medications_by_time([{"time": "1:00 PM"}])
        assert list(groups) == ["morning", "afternoon", "evening"]
        assert len(groups["afternoon"]) == 1

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            time_bucket(0, 4)


class TestRangeMatching:
    def test_range_is_inclusive(self):
        medication = {"startDay": 3, "endDay": 5}
        assert [d for d in range(1, 8) if is_active_on_day(medication, d)] == [3, 4, 5]

    def test_inverted_or_missing_range_matches_nothing(self):
        assert not is_active_on_day({"startDay": 6, "endDay": 3}, 4)
        assert not is_active_on_day({"startDay": 1}, 1)


class TestReconcileDay:
    def test_scheduled_medication_on_day_three(self):
        """A Gonal-F schedule over days 1-10 yields one evening entry on day 3."""
        state = make_state(cycles=[make_cycle()], medicationSchedules=[_schedule(GONAL_F)])

        view = reconcile_day(state, "c1", 3)

        assert view["totalCount"] == 1
        assert view["date"] == "2024-03-03"
        entry = view["medications"][0]
        assert entry["id"] == "gonal"
        assert entry["source"] == "scheduled"
        assert entry["dosage"] == "225 IU"
        assert entry["timeOfDay"] == "evening"
        assert entry["taken"] is False
        assert view["groups"]["evening"] == [entry]
        assert view["groups"]["morning"] == []

    def test_override_applies_status_and_dosage(self):
        overrides = [{
            "scheduledMedicationId": "gonal",
            "taken": True,
            "skipped": False,
            "takenAt": "2024-03-03T20:05:00Z",
            "actualDosage": "150 IU",
        }]
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(GONAL_F)],
            dailyMedicationStatuses=[_status(3, overrides=overrides)],
        )

        entry = reconcile_day(state, "c1", 3)["medications"][0]

        assert entry["taken"] is True
        assert entry["takenAt"] == "2024-03-03T20:05:00Z"
        assert entry["dosage"] == "150 IU"
        assert entry["scheduledDosage"] == "225 IU"
        assert reconcile_day(state, "c1", 3)["completedCount"] == 1

    def test_day_specific_sorted_before_evening_schedule(self):
        """Medrol added for day 10 at 8 AM appears before Gonal-F at 8 PM."""
        medrol = {"id": "medrol", "name": "Medrol", "dosage": "16 mg", "time": "8:00 AM", "taken": False}
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(GONAL_F)],
            dailyMedicationStatuses=[_status(10, day_specific=[medrol])],
        )

        view = reconcile_day(state, "c1", 10)

        assert [m["name"] for m in view["medications"]] == ["Medrol", "Gonal-F"]
        assert view["medications"][0]["source"] == "day-specific"
        assert view["medications"][0]["timeOfDay"] == "morning"

    def test_legacy_medications_used_without_schedule(self):
        """Estrace stored on the cycle day shows up when the cycle has no schedule."""
        day = {"id": "d5", "cycleDay": 5, "date": "2024-03-05",
               "medications": [{"name": "Estrace", "dosage": "2 mg", "time": "9:00 AM", "taken": True}]}
        state = make_state(cycles=[make_cycle(days=[day])])

        view = reconcile_day(state, "c1", 5)

        assert view["hasSchedule"] is False
        assert view["totalCount"] == 1
        entry = view["medications"][0]
        assert entry["id"] == "legacy-5-0"
        assert entry["source"] == "legacy"
        assert entry["taken"] is True
        assert entry["skipped"] is False

    def test_legacy_medications_hidden_once_a_schedule_exists(self):
        day = {"id": "d3", "cycleDay": 3, "medications": [{"name": "Estrace", "dosage": "2 mg", "taken": False}]}
        state = make_state(cycles=[make_cycle(days=[day])], medicationSchedules=[_schedule(GONAL_F)])

        view = reconcile_day(state, "c1", 3)

        assert [m["source"] for m in view["medications"]] == ["scheduled"]

    def test_range_three_to_five(self):
        medication = {**GONAL_F, "startDay": 3, "endDay": 5}
        state = make_state(cycles=[make_cycle()], medicationSchedules=[_schedule(medication)])

        counts = {day: get_medication_count_for_day(state, "c1", day) for day in range(1, 8)}

        assert counts == {1: 0, 2: 0, 3: 1, 4: 1, 5: 1, 6: 0, 7: 0}

    def test_inverted_range_yields_nothing(self):
        medication = {**GONAL_F, "startDay": 6, "endDay": 3}
        state = make_state(cycles=[make_cycle()], medicationSchedules=[_schedule(medication)])

        assert reconcile_day(state, "c1", 4)["totalCount"] == 0

    def test_unknown_cycle_gives_empty_view(self):
        view = reconcile_day(make_state(), "missing", 1)

        assert view["medications"] == []
        assert view["totalCount"] == 0
        assert view["completedCount"] == 0

    def test_duplicate_identities_collapse(self):
        medrol = {"id": "medrol", "name": "Medrol", "dosage": "16 mg", "time": "8:00 AM"}
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(GONAL_F, dict(GONAL_F))],
            dailyMedicationStatuses=[_status(2, day_specific=[medrol, dict(medrol)])],
        )

        view = reconcile_day(state, "c1", 2)

        assert view["totalCount"] == 2

    def test_reconcile_is_idempotent(self):
        medrol = {"id": "medrol", "name": "Medrol", "dosage": "16 mg", "time": "8:00 AM"}
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(GONAL_F)],
            dailyMedicationStatuses=[_status(4, day_specific=[medrol])],
        )

        assert reconcile_day(state, "c1", 4) == reconcile_day(state, "c1", 4)

    def test_same_time_orders_scheduled_first(self):
        extra = {"id": "x", "name": "Cetrotide", "dosage": "0.25 mg", "time": "8:00 PM"}
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(GONAL_F)],
            dailyMedicationStatuses=[_status(6, day_specific=[extra])],
        )

        view = reconcile_day(state, "c1", 6)

        assert [m["source"] for m in view["medications"]] == ["scheduled", "day-specific"]


class TestScheduleOverview:
    def test_no_schedule_and_no_status_returns_none(self):
        state = make_state(cycles=[make_cycle()])
        assert get_schedule_overview(state, "c1") is None

    def test_breakdown_covers_schedule_range(self):
        medication = {**GONAL_F, "startDay": 1, "endDay": 3}
        overrides = [{"scheduledMedicationId": "gonal", "taken": True, "skipped": False}]
        state = make_state(
            cycles=[make_cycle()],
            medicationSchedules=[_schedule(medication)],
            dailyMedicationStatuses=[_status(2, overrides=overrides)],
        )

        overview = get_schedule_overview(state, "c1")

        assert [d["day"] for d in overview["dailyBreakdown"]] == [1, 2, 3]
        assert overview["totalMedications"] == 3
        assert overview["completedMedications"] == 1


class TestCycleWithMedications:
    def test_days_carry_reconciled_medications(self):
        day = {"id": "d2", "cycleDay": 2, "date": "2024-03-02"}
        state = make_state(cycles=[make_cycle(days=[day])], medicationSchedules=[_schedule(GONAL_F)])

        cycle = get_cycle_with_medications(state, "c1")

        medications = cycle["days"][0]["medications"]
        assert medications == [{
            "name": "Gonal-F",
            "dosage": "225 IU",
            "timing": "8:00 PM",
            "taken": False,
            "skipped": False,
            "trigger": False,
            "source": "scheduled",
        }]
        # The stored cycle is untouched
        assert "medications" not in state["cycles"][0]["days"][0]

    def test_unknown_cycle(self):
        assert get_cycle_with_medications(make_state(), "nope") is None
