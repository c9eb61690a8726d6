"""Tests for protocol details derived from cycle days."""

from services.protocol_extraction import leading_number, extract_protocol_details, format_protocol_summary
from conftest import make_cycle


def _retrieval_cycle():
    days = [
        {
            "cycleDay": 1,
            "clinicVisit": {"type": "baseline"},
            "bloodwork": [{"test": "Estradiol", "value": "35"}],
            "medications": [{"name": "Gonal-F", "dosage": "225 IU"}],
        },
        {
            "cycleDay": 2,
            "clinicVisit": {"type": "monitoring"},
            "bloodwork": [{"test": "E2", "value": "450 pg/mL"}],
            "medications": [{"name": "Gonal-F", "dosage": "225 IU"}],
        },
        {
            "cycleDay": 3,
            "notes": "Trigger at night",
            "medications": [{"name": "Ovidrel", "dosage": "250 mcg", "trigger": True}],
        },
    ]
    return make_cycle(days=days)


class TestLeadingNumber:
    def test_values(self):
        assert leading_number("225 IU") == 225.0
        assert leading_number("0.25 mg") == 0.25
        assert leading_number(12) == 12.0
        assert leading_number("n/a") is None
        assert leading_number(None) is None


class TestRetrievalProtocol:
    def test_stim_and_trigger(self):
        details = extract_protocol_details(_retrieval_cycle())

        assert details["stimDuration"] == 3
        assert details["triggerDay"] == 3
        assert details["triggerType"] == "hcg-only"
        assert details["triggerTiming"] == "day-3-evening"

    def test_medication_totals(self):
        medications = {m["name"]: m for m in extract_protocol_details(_retrieval_cycle())["medications"]}

        assert medications["Gonal-F"]["totalUnits"] == 450
        assert medications["Gonal-F"]["dailyDose"] == 225
        assert medications["Gonal-F"]["days"] == 2
        assert medications["Ovidrel"]["days"] == 1

    def test_estradiol_levels(self):
        details = extract_protocol_details(_retrieval_cycle())

        assert details["baselineE2"] == 35
        assert details["peakE2"] == 450
        assert details["monitoringVisits"] == 1
        assert details["specialNotes"] == ["Day 3: Trigger at night"]

    def test_trigger_from_monitoring_notes(self):
        days = [
            {"cycleDay": 9, "clinicVisit": {"type": "monitoring", "notes": "Dual trigger, retrieval at 7am"}},
        ]

        details = extract_protocol_details(make_cycle(days=days))

        assert details["triggerDay"] == 9
        assert details["triggerType"] == "dual-trigger"
        assert details["triggerTiming"] == "day-9"

    def test_summary_text(self):
        details = extract_protocol_details(_retrieval_cycle())

        assert format_protocol_summary(details, "retrieval") == "3 days stim, hcg-only trigger, 2 medications"


class TestTransferProtocol:
    def test_modified_natural_fet(self):
        days = [
            {"cycleDay": 2, "bloodwork": [{"test": "LH", "value": "10"}]},
            {"cycleDay": 4, "bloodwork": [{"test": "LH", "value": "22"}]},
            {"cycleDay": 9, "clinicVisit": {"type": "transfer"},
             "medications": [{"name": "PIO", "dosage": "1 mL"}]},
        ]
        cycle = make_cycle(goal="transfer", days=days, cycleType="frozen-modified-natural")

        details = extract_protocol_details(cycle)

        assert details["fetType"] == "modified-natural"
        assert details["lhMonitoring"] is True
        assert details["ovulationTiming"] == "Day 4 (LH: 22)"
        assert details["transferDay"] == 9
        assert details["medications"] == [{"name": "PIO", "totalUnits": 1.0, "dailyDose": 1.0, "days": 1}]
        assert format_protocol_summary(details, "transfer") == "modified-natural FET, Ovulation: Day 4 (LH: 22), Transfer: Day 9"

    def test_medicated_fet(self):
        cycle = make_cycle(goal="transfer", days=[{"cycleDay": 1}], cycleType="frozen-medicated")

        assert extract_protocol_details(cycle)["fetType"] == "medicated"

    def test_no_days(self):
        assert extract_protocol_details(make_cycle(goal="transfer")) == {}
