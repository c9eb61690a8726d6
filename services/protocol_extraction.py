# services/protocol_extraction.py
"""
Derives protocol details (stim length, trigger, E2 levels, FET type) from a
cycle whose days carry medication lists, as produced by
medication_reconciler.get_cycle_with_medications.
"""
import re
from typing import Dict, List, Optional, Any

_LEADING_NUMBER = re.compile(r'^\s*([-+]?\d*\.?\d+)')

LH_SURGE_LEVEL = 15


def leading_number(value: Any) -> Optional[float]:
    """Number at the start of a string ("225 IU" -> 225.0), None when there is none"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _LEADING_NUMBER.match(value)
    return float(match.group(1)) if match else None


def _is_e2_test(test: Dict[str, Any]) -> bool:
    name = (test.get('test') or '').lower()
    return 'estradiol' in name or 'e2' in name


def _is_lh_test(test: Dict[str, Any]) -> bool:
    return 'lh' in (test.get('test') or '').lower()


def _visit_type(day: Dict[str, Any]) -> Optional[str]:
    return (day.get('clinicVisit') or {}).get('type')


def _fet_type(cycle_type: str) -> str:
    if 'natural' in cycle_type:
        return 'modified-natural' if 'modified' in cycle_type else 'natural'
    return 'medicated'


def _aggregate_medications(days: List[Dict[str, Any]], round_daily_dose: int) -> List[Dict[str, Any]]:
    totals: Dict[str, Dict[str, float]] = {}
    for day in days:
        for med in day.get('medications') or []:
            entry = totals.setdefault(med.get('name', ''), {'totalUnits': 0, 'days': 0})
            entry['totalUnits'] += leading_number(med.get('dosage')) or 0
            entry['days'] += 1

    return [
        {
            'name': name,
            'totalUnits': data['totalUnits'],
            'dailyDose': round(data['totalUnits'] / data['days'], round_daily_dose) if round_daily_dose
            else round(data['totalUnits'] / data['days']),
            'days': data['days'],
        }
        for name, data in totals.items()
    ]


def _baseline_e2(days: List[Dict[str, Any]]) -> Optional[float]:
    for day in days:
        if _visit_type(day) != 'baseline':
            continue
        for test in day.get('bloodwork') or []:
            if _is_e2_test(test):
                return leading_number(test.get('value'))
    return None


def _trigger_type_from_name(name: str) -> str:
    name = name.lower()
    if 'lupron' in name:
        return 'lupron'
    if 'pregnyl' in name or 'novarel' in name or 'ovidrel' in name:
        return 'hcg-only'
    return 'trigger'


def _trigger_type_from_notes(notes: str) -> str:
    if 'lupron' in notes:
        return 'lupron'
    if 'dual' in notes:
        return 'dual-trigger'
    if 'hcg' in notes:
        return 'hcg-only'
    return 'trigger'


def extract_protocol_details(cycle: Dict[str, Any]) -> Dict[str, Any]:
    days = sorted(cycle.get('days') or [], key=lambda d: d.get('cycleDay') or 0)
    if not days:
        return {}

    details: Dict[str, Any] = {}
    cycle_type = cycle.get('cycleType') or ''
    medication_days = [d for d in days if d.get('medications')]

    if cycle.get('cycleGoal') == 'transfer':
        details['fetType'] = _fet_type(cycle_type)

        details['lhMonitoring'] = any(
            _is_lh_test(test) and (leading_number(test.get('value')) or 0) > 0
            for day in days for test in day.get('bloodwork') or []
        )

        for day in days:
            surge = next(
                (t for t in day.get('bloodwork') or []
                 if _is_lh_test(t) and (leading_number(t.get('value')) or 0) > LH_SURGE_LEVEL),
                None
            )
            if surge:
                details['ovulationTiming'] = f"Day {day.get('cycleDay')} (LH: {surge.get('value')})"
                break

        transfer_day = next((d for d in days if _visit_type(d) == 'transfer'), None)
        if transfer_day:
            details['transferDay'] = transfer_day.get('cycleDay')

        if medication_days:
            details['medications'] = _aggregate_medications(medication_days, round_daily_dose=2)

        baseline = _baseline_e2(days)
        if baseline is not None:
            details['baselineE2'] = baseline

    elif cycle.get('cycleGoal') == 'retrieval':
        if medication_days:
            details['stimDuration'] = len(medication_days)
            details['medications'] = _aggregate_medications(medication_days, round_daily_dose=0)

        trigger_day = next(
            (d for d in days if any(m.get('trigger') for m in d.get('medications') or [])),
            None
        )
        if trigger_day is None:
            trigger_day = next(
                (d for d in days
                 if _visit_type(d) == 'monitoring'
                 and ('trigger' in (d.get('notes') or '').lower()
                      or 'trigger' in ((d.get('clinicVisit') or {}).get('notes') or '').lower())),
                None
            )

        if trigger_day:
            details['triggerDay'] = trigger_day.get('cycleDay')
            trigger_notes = (trigger_day.get('notes') or (trigger_day.get('clinicVisit') or {}).get('notes') or '').lower()

            trigger_med = next((m for m in trigger_day.get('medications') or [] if m.get('trigger')), None)
            if trigger_med:
                details['triggerType'] = _trigger_type_from_name(trigger_med.get('name') or '')
            else:
                details['triggerType'] = _trigger_type_from_notes(trigger_notes)

            if 'evening' in trigger_notes or 'night' in trigger_notes:
                details['triggerTiming'] = f"day-{trigger_day.get('cycleDay')}-evening"
            else:
                details['triggerTiming'] = f"day-{trigger_day.get('cycleDay')}"

        baseline = _baseline_e2(days)
        if baseline is not None:
            details['baselineE2'] = baseline

        peak = 0
        for day in days:
            e2_test = next((t for t in day.get('bloodwork') or [] if _is_e2_test(t)), None)
            value = leading_number(e2_test.get('value')) if e2_test else None
            if value is not None and value > peak:
                peak = value
        if peak > 0:
            details['peakE2'] = peak

    details['monitoringVisits'] = sum(1 for d in days if _visit_type(d) == 'monitoring')

    notes = []
    for day in days:
        if (day.get('notes') or '').strip():
            notes.append(f"Day {day.get('cycleDay')}: {day['notes']}")
        visit_notes = (day.get('clinicVisit') or {}).get('notes') or ''
        if visit_notes.strip():
            notes.append(f"Day {day.get('cycleDay')}: {visit_notes}")
    if notes:
        details['specialNotes'] = notes

    return details


def format_protocol_summary(details: Dict[str, Any], cycle_goal: str) -> str:
    parts = []
    if cycle_goal == 'transfer':
        if details.get('fetType'):
            parts.append(f"{details['fetType']} FET")
        if details.get('ovulationTiming'):
            parts.append(f"Ovulation: {details['ovulationTiming']}")
        if details.get('transferDay'):
            parts.append(f"Transfer: Day {details['transferDay']}")
        return ", ".join(parts) or "Transfer cycle"

    if details.get('stimDuration'):
        parts.append(f"{details['stimDuration']} days stim")
    if details.get('triggerType'):
        parts.append(f"{details['triggerType']} trigger")
    if details.get('medications'):
        parts.append(f"{len(details['medications'])} medications")
    return ", ".join(parts) or "Retrieval cycle"
