# services/medication_reconciler.py
"""
Unified medication view for a single cycle day.

A day's medications can come from three places in a user's state:
  - the cycle's medication schedule (recurring over [startDay, endDay]), with
    per-day status overrides stored in dailyMedicationStatuses
  - one-off day-specific medications stored on the day's status record
  - legacy inline medications stored directly on the cycle day, only used
    when the cycle has no schedule at all

Everything in this module is read-only over the state dict.
"""
import os
import re
from typing import Dict, List, Optional, Any, Iterable

from utils.date_utils import cycle_day_date

SOURCE_SCHEDULED = 'scheduled'
SOURCE_DAY_SPECIFIC = 'day-specific'
SOURCE_LEGACY = 'legacy'

# Tie-break order for medications at the same time of day
SOURCE_ORDER = {
    SOURCE_SCHEDULED: 0,
    SOURCE_DAY_SPECIFIC: 1,
    SOURCE_LEGACY: 2,
}

NOON_MINUTES = 12 * 60
EVENING_START_MINUTES = 17 * 60

_TIME_PATTERN = re.compile(r'^(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?$')


def get_time_bucket_policy() -> int:
    """Number of display buckets: 2 (morning/evening) or 3 (morning/afternoon/evening)"""
    value = os.getenv("MEDICATION_TIME_BUCKETS", "2").strip()
    return 3 if value == "3" else 2


def parse_time_to_minutes(value: Optional[str]) -> int:
    """
    Minutes past midnight for "h:mm AM/PM" (or 24-hour "HH:MM").
    Empty or unparsable values return 0 so they sort first.
    """
    if not value or not isinstance(value, str):
        return 0

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return 0

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    ampm = (match.group(3) or '').upper()

    if minute > 59:
        return 0

    if ampm:
        if hour < 1 or hour > 12:
            return 0
        hour = hour % 12
        if ampm == 'PM':
            hour += 12
    elif hour > 23:
        return 0

    return hour * 60 + minute


def medication_time_label(record: Dict[str, Any]) -> str:
    """Display time for any medication shape (hour/minute/ampm fields or a free-text time)"""
    hour = str(record.get('hour') or '').strip()
    if hour:
        minute = str(record.get('minute') or '00').strip().zfill(2)
        ampm = str(record.get('ampm') or '').strip().upper()
        return f"{hour}:{minute} {ampm}".strip()

    return str(record.get('time') or record.get('timing') or '').strip()


def time_bucket(minutes: int, policy: Optional[int] = None) -> str:
    policy = policy or get_time_bucket_policy()
    if policy not in (2, 3):
        raise ValueError(f"Unsupported time bucket policy: {policy}")

    if minutes < NOON_MINUTES:
        return 'morning'
    if policy == 3 and minutes < EVENING_START_MINUTES:
        return 'afternoon'
    return 'evening'


def group_medications_by_time(medications: Iterable[Dict[str, Any]], policy: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
    policy = policy or get_time_bucket_policy()
    groups: Dict[str, List[Dict[str, Any]]] = {'morning': []}
    if policy == 3:
        groups['afternoon'] = []
    groups['evening'] = []

    for med in medications:
        minutes = med.get('minutes')
        if minutes is None:
            minutes = parse_time_to_minutes(medication_time_label(med))
        groups[time_bucket(minutes, policy)].append(med)

    return groups


# State lookups

def find_cycle(state: Dict[str, Any], cycle_id: str) -> Optional[Dict[str, Any]]:
    return next((c for c in state.get('cycles') or [] if c.get('id') == cycle_id), None)


def find_cycle_day(cycle: Dict[str, Any], day_number: int) -> Optional[Dict[str, Any]]:
    return next((d for d in cycle.get('days') or [] if _as_int(d.get('cycleDay')) == day_number), None)


def find_schedule(state: Dict[str, Any], cycle_id: str) -> Optional[Dict[str, Any]]:
    return next((s for s in state.get('medicationSchedules') or [] if s.get('cycleId') == cycle_id), None)


def find_daily_status(state: Dict[str, Any], cycle_id: str, day_number: int) -> Optional[Dict[str, Any]]:
    return next(
        (s for s in state.get('dailyMedicationStatuses') or []
         if s.get('cycleId') == cycle_id and _as_int(s.get('cycleDay')) == day_number),
        None
    )


def is_active_on_day(medication: Dict[str, Any], day_number: int) -> bool:
    """Inclusive range check; a missing bound or startDay > endDay matches nothing"""
    start = _as_int(medication.get('startDay'))
    end = _as_int(medication.get('endDay'))
    if start is None or end is None:
        return False
    return start <= day_number <= end


def legacy_medication_id(medication: Dict[str, Any], day_number: int, index: int) -> str:
    return medication.get('id') or f"legacy-{day_number}-{index}"


def resolve_day_date(state: Dict[str, Any], cycle_id: str, day_number: int) -> Optional[str]:
    """Stored date of the cycle day when recorded, otherwise start date + day - 1"""
    cycle = find_cycle(state, cycle_id)
    if cycle is None:
        return None
    day = find_cycle_day(cycle, day_number)
    if day and day.get('date'):
        return day['date']
    return cycle_day_date(cycle.get('startDate'), day_number)


# Entry builders

def _scheduled_entry(medication: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    override = override or {}
    time_label = medication_time_label(medication)
    actual_dosage = override.get('actualDosage') or None

    return {
        'id': medication.get('id'),
        'source': SOURCE_SCHEDULED,
        'name': medication.get('name', ''),
        'dosage': actual_dosage or medication.get('dosage', ''),
        'scheduledDosage': medication.get('dosage', ''),
        'actualDosage': actual_dosage,
        'time': time_label,
        'minutes': parse_time_to_minutes(time_label),
        'refrigerated': bool(medication.get('refrigerated', False)),
        'trigger': bool(medication.get('trigger', False)),
        'startDay': medication.get('startDay'),
        'endDay': medication.get('endDay'),
        'taken': bool(override.get('taken', False)),
        'skipped': bool(override.get('skipped', False)),
        'takenAt': override.get('takenAt'),
        'notes': override.get('notes') or medication.get('notes'),
    }


def _day_specific_entry(medication: Dict[str, Any]) -> Dict[str, Any]:
    time_label = medication_time_label(medication)

    return {
        'id': medication.get('id'),
        'source': SOURCE_DAY_SPECIFIC,
        'name': medication.get('name', ''),
        'dosage': medication.get('dosage', ''),
        'time': time_label,
        'minutes': parse_time_to_minutes(time_label),
        'refrigerated': bool(medication.get('refrigerated', False)),
        'trigger': bool(medication.get('trigger', False)),
        'taken': bool(medication.get('taken', False)),
        'skipped': bool(medication.get('skipped', False)),
        'takenAt': medication.get('takenAt'),
        'notes': medication.get('notes'),
    }


def _legacy_entry(medication: Dict[str, Any], day_number: int, index: int) -> Dict[str, Any]:
    time_label = medication_time_label(medication)

    return {
        'id': legacy_medication_id(medication, day_number, index),
        'source': SOURCE_LEGACY,
        'name': medication.get('name', ''),
        'dosage': medication.get('dosage', ''),
        'time': time_label,
        'minutes': parse_time_to_minutes(time_label),
        'refrigerated': bool(medication.get('refrigerated', False)),
        'trigger': bool(medication.get('trigger', False)),
        'taken': bool(medication.get('taken', False)),
        # Legacy inline medications have no skip concept
        'skipped': False,
        'takenAt': None,
        'notes': medication.get('notes'),
    }


def reconcile_day(
    state: Dict[str, Any],
    cycle_id: str,
    day_number: int,
    date: Optional[str] = None,
    bucket_policy: Optional[int] = None
) -> Dict[str, Any]:
    """
    Merged, de-duplicated, time-sorted medications for one cycle day.

    Returns a dict with the ordered `medications`, their `groups` by time of
    day, `totalCount` and `completedCount` (taken or skipped). An unknown
    cycle gives an empty view.
    """
    policy = bucket_policy or get_time_bucket_policy()
    cycle = find_cycle(state, cycle_id)

    if cycle is None:
        return _build_view(cycle_id, day_number, date, [], policy, has_schedule=False)

    if date is None:
        date = resolve_day_date(state, cycle_id, day_number)

    schedule = find_schedule(state, cycle_id)
    daily_status = find_daily_status(state, cycle_id, day_number)

    entries: List[Dict[str, Any]] = []
    seen = set()

    def add(entry: Dict[str, Any]):
        key = (entry['source'], entry['id'])
        if entry['id'] is not None and key in seen:
            return
        seen.add(key)
        entry['timeOfDay'] = time_bucket(entry['minutes'], policy)
        entries.append(entry)

    if schedule is not None:
        overrides: Dict[str, Dict[str, Any]] = {}
        for override in (daily_status or {}).get('medications') or []:
            overrides.setdefault(override.get('scheduledMedicationId'), override)

        for medication in schedule.get('medications') or []:
            if is_active_on_day(medication, day_number):
                add(_scheduled_entry(medication, overrides.get(medication.get('id'))))

    for medication in (daily_status or {}).get('daySpecificMedications') or []:
        add(_day_specific_entry(medication))

    if schedule is None:
        cycle_day = find_cycle_day(cycle, day_number)
        for index, medication in enumerate((cycle_day or {}).get('medications') or []):
            add(_legacy_entry(medication, day_number, index))

    # sort() is stable, so insertion order survives within a source
    entries.sort(key=lambda e: (e['minutes'], SOURCE_ORDER[e['source']]))

    return _build_view(cycle_id, day_number, date, entries, policy, has_schedule=schedule is not None)


def _build_view(cycle_id, day_number, date, entries, policy, has_schedule) -> Dict[str, Any]:
    return {
        'cycleId': cycle_id,
        'cycleDay': day_number,
        'date': date,
        'hasSchedule': has_schedule,
        'medications': entries,
        'groups': group_medications_by_time(entries, policy),
        'totalCount': len(entries),
        'completedCount': sum(1 for e in entries if e['taken'] or e['skipped']),
    }


def get_medication_count_for_day(state: Dict[str, Any], cycle_id: str, day_number: int) -> int:
    return reconcile_day(state, cycle_id, day_number)['totalCount']


def get_schedule_overview(
    state: Dict[str, Any],
    cycle_id: str,
    cycle_days: Optional[List[int]] = None,
    bucket_policy: Optional[int] = None
) -> Optional[Dict[str, Any]]:
    """
    Per-day breakdown for a cycle. Without explicit days, covers every recorded
    cycle day, every day inside a valid schedule range and every day with status.
    Returns None when the cycle has neither a schedule nor any daily status.
    """
    cycle = find_cycle(state, cycle_id)
    if cycle is None:
        return None

    schedule = find_schedule(state, cycle_id)
    statuses = [s for s in state.get('dailyMedicationStatuses') or [] if s.get('cycleId') == cycle_id]

    if schedule is None and not statuses:
        return None

    if cycle_days is None:
        days = set()
        for day in cycle.get('days') or []:
            number = _as_int(day.get('cycleDay'))
            if number:
                days.add(number)
        for medication in (schedule or {}).get('medications') or []:
            start = _as_int(medication.get('startDay'))
            end = _as_int(medication.get('endDay'))
            if start is not None and end is not None and 1 <= start <= end:
                days.update(range(start, end + 1))
        for status in statuses:
            number = _as_int(status.get('cycleDay'))
            if number:
                days.add(number)
        cycle_days = sorted(days)

    daily_breakdown = []
    for day_number in cycle_days:
        view = reconcile_day(state, cycle_id, day_number, bucket_policy=bucket_policy)
        daily_breakdown.append({
            'day': day_number,
            'date': view['date'],
            'medications': view['medications'],
            'completed': view['completedCount'],
            'total': view['totalCount'],
        })

    return {
        'cycleId': cycle_id,
        'schedule': schedule or {'id': '', 'cycleId': cycle_id, 'medications': [], 'createdAt': ''},
        'totalMedications': sum(d['total'] for d in daily_breakdown),
        'completedMedications': sum(d['completed'] for d in daily_breakdown),
        'dailyBreakdown': daily_breakdown,
    }


def get_cycle_with_medications(state: Dict[str, Any], cycle_id: str) -> Optional[Dict[str, Any]]:
    """Copy of the cycle whose recorded days carry their reconciled medication lists"""
    cycle = find_cycle(state, cycle_id)
    if cycle is None:
        return None

    days = []
    for day in cycle.get('days') or []:
        day_number = _as_int(day.get('cycleDay'))
        medications = []
        if day_number:
            view = reconcile_day(state, cycle_id, day_number, date=day.get('date'))
            medications = [
                {
                    'name': m['name'],
                    'dosage': m['dosage'],
                    'timing': m['time'] or None,
                    'taken': m['taken'],
                    'skipped': m['skipped'],
                    'trigger': m['trigger'],
                    'source': m['source'],
                }
                for m in view['medications']
            ]
        days.append({**day, 'medications': medications})

    return {**cycle, 'days': days}


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
