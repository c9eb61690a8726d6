"""Tests for flat medication records, templates and migration."""

import pytest

from services.errors import InvalidOperationError
from services.medication_catalog import (
    format_time,
    parse_time_parts,
    is_medication_active_on_day,
    get_medication_completion_rate,
    get_flat_day_view,
    build_flat_medication,
    expand_template,
)
from services.medication_migration import (
    combine_notes,
    migrate_legacy_medication_data,
    validate_migrated_data,
    deduplicate_medications,
)


class TestTimeFormatting:
    def test_format_time(self):
        assert format_time(8, 0, "pm") == "08:00 PM"
        assert format_time("7", "5", "AM") == "07:05 AM"

    def test_parse_time_parts(self):
        assert parse_time_parts("08:00 PM") == {"hour": 8, "minute": 0, "ampm": "PM"}
        assert parse_time_parts("12:30 PM") == {"hour": 12, "minute": 30, "ampm": "PM"}
        assert parse_time_parts("garbage") == {"hour": 12, "minute": 0, "ampm": "AM"}


class TestFlatRecords:
    def test_build_requires_name_and_day(self):
        with pytest.raises(InvalidOperationError):
            build_flat_medication("c1", {"name": "", "cycleDay": 1})
        with pytest.raises(InvalidOperationError):
            build_flat_medication("c1", {"name": "Menopur", "cycleDay": 0})

    def test_scheduled_range_validated(self):
        with pytest.raises(InvalidOperationError):
            build_flat_medication("c1", {"name": "Menopur", "cycleDay": 5, "type": "scheduled",
                                         "startDay": 6, "endDay": 2})

    def test_build_defaults(self):
        record = build_flat_medication("c1", {"name": " Menopur ", "cycleDay": 2}, now="2024-03-02T00:00:00Z")

        assert record["name"] == "Menopur"
        assert record["type"] == "one-time"
        assert record["taken"] is False
        assert record["createdAt"] == "2024-03-02T00:00:00Z"
        assert "startDay" not in record

    def test_active_on_day(self):
        assert is_medication_active_on_day({"type": "one-time", "cycleDay": 3}, 3)
        assert not is_medication_active_on_day({"type": "one-time", "cycleDay": 3}, 4)
        assert is_medication_active_on_day({"type": "scheduled", "startDay": 2, "endDay": 4}, 4)
        assert not is_medication_active_on_day({"type": "other"}, 1)

    def test_completion_rate(self):
        assert get_medication_completion_rate([]) == 0.0
        assert get_medication_completion_rate([{"taken": True}, {"skipped": True}, {}, {}]) == 0.5

    def test_day_view(self):
        medications = [
            build_flat_medication("c1", {"name": "Gonal-F", "cycleDay": 2, "time": "08:00 PM"}),
            build_flat_medication("c1", {"name": "Medrol", "cycleDay": 2, "time": "08:00 AM", "taken": True}),
            build_flat_medication("c1", {"name": "Medrol", "cycleDay": 3, "time": "08:00 AM"}),
            build_flat_medication("c2", {"name": "Lupron", "cycleDay": 2, "time": "09:00 AM"}),
        ]

        view = get_flat_day_view(medications, "c1", 2)

        assert [m["name"] for m in view["medications"]] == ["Medrol", "Gonal-F"]
        assert view["completed"] == 1
        assert view["total"] == 2
        assert [m["name"] for m in view["groups"]["evening"]] == ["Gonal-F"]


class TestTemplates:
    def test_antagonist_template_expands_per_day(self):
        records = expand_template("c1", "antagonist-protocol")

        assert len(records) == 10 + 10 + 5
        cetrotide_days = [r["cycleDay"] for r in records if r["name"] == "Cetrotide"]
        assert cetrotide_days == [6, 7, 8, 9, 10]
        assert all(r["type"] == "scheduled" for r in records)

    def test_unknown_template(self):
        with pytest.raises(InvalidOperationError):
            expand_template("c1", "made-up")


class TestMigration:
    def _data(self):
        schedules = [{
            "id": "s1",
            "cycleId": "c1",
            "createdAt": "2024-03-01T00:00:00Z",
            "medications": [{
                "id": "gonal", "name": "Gonal-F", "dosage": "225 IU",
                "hour": "8", "minute": "00", "ampm": "PM",
                "startDay": 1, "endDay": 3, "notes": "with food",
            }],
        }]
        statuses = [{
            "id": "st2",
            "cycleId": "c1",
            "cycleDay": 2,
            "createdAt": "2024-03-02T00:00:00Z",
            "medications": [{
                "scheduledMedicationId": "gonal", "taken": True, "skipped": False,
                "takenAt": "2024-03-02T20:10:00Z", "actualDosage": "150 IU", "notes": "late",
            }],
            "daySpecificMedications": [
                {"id": "medrol", "name": "Medrol", "dosage": "16 mg", "time": "8:00 AM"},
                {"id": "blank", "name": "Mystery", "dosage": ""},
            ],
        }]
        return schedules, statuses

    def test_scheduled_expanded_with_overrides(self):
        schedules, statuses = self._data()

        result = migrate_legacy_medication_data("c1", schedules, statuses)

        gonal = [m for m in result["migratedMedications"] if m["name"] == "Gonal-F"]
        assert [m["cycleDay"] for m in gonal] == [1, 2, 3]
        day_two = gonal[1]
        assert day_two["dosage"] == "150 IU"
        assert day_two["taken"] is True
        assert day_two["takenAt"] == "2024-03-02T20:10:00Z"
        assert day_two["notes"] == "with food | late"
        assert day_two["time"] == "08:00 PM"
        assert gonal[0]["dosage"] == "225 IU"
        assert gonal[0]["createdAt"] == "2024-03-01T00:00:00Z"
        assert result["summary"] == {"scheduledMedications": 3, "daySpecificMedications": 2, "totalMigrated": 5}

    def test_day_specific_keep_ids(self):
        schedules, statuses = self._data()

        result = migrate_legacy_medication_data("c1", schedules, statuses)

        medrol = next(m for m in result["migratedMedications"] if m["name"] == "Medrol")
        assert medrol["id"] == "medrol"
        assert medrol["type"] == "one-time"
        assert medrol["time"] == "08:00 AM"

    def test_skip_incomplete(self):
        schedules, statuses = self._data()

        result = migrate_legacy_medication_data("c1", schedules, statuses, skip_incomplete_data=True)

        assert result["skippedCount"] == 1
        assert result["summary"]["daySpecificMedications"] == 1

    def test_other_cycles_ignored(self):
        schedules, statuses = self._data()

        result = migrate_legacy_medication_data("c2", schedules, statuses)

        assert result["migratedMedications"] == []

    def test_validation(self):
        schedules, statuses = self._data()
        migrated = migrate_legacy_medication_data("c1", schedules, statuses, skip_incomplete_data=True)

        assert validate_migrated_data(migrated["migratedMedications"])["isValid"] is True

        broken = validate_migrated_data([{"id": "x", "cycleId": "c1", "name": "A", "dosage": "1",
                                          "time": "8pm", "cycleDay": 1, "taken": True, "skipped": True}])
        assert broken["isValid"] is False
        assert any("Invalid time format" in e for e in broken["errors"])
        assert broken["warnings"] == ["Medication A: Both taken and skipped"]

    def test_deduplicate_first_wins(self):
        first = {"id": "1", "cycleId": "c1", "cycleDay": 1, "name": "A", "time": "08:00 AM", "type": "one-time"}
        second = {**first, "id": "2"}

        assert deduplicate_medications([first, second]) == [first]

    def test_combine_notes(self):
        assert combine_notes(None, None) is None
        assert combine_notes("a", None) == "a"
        assert combine_notes("a", "b") == "a | b"
