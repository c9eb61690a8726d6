# services/medication_catalog.py
"""Flat per-occurrence medication records, common names and protocol templates"""
import uuid
from typing import Dict, List, Optional, Any

from services.errors import InvalidOperationError
from services.medication_reconciler import parse_time_to_minutes, group_medications_by_time
from utils.date_utils import now_iso

MEDICATION_TYPE_SCHEDULED = 'scheduled'
MEDICATION_TYPE_ONE_TIME = 'one-time'

COMMON_MEDICATIONS = [
    "Gonal-F",
    "Menopur",
    "Cetrotide",
    "Lupron",
    "Estrace",
    "Progesterone",
    "Follistim",
    "Ganirelix",
    "Ovidrel",
    "Pregnyl",
    "Crinone",
    "Endometrin",
    "Medrol",
    "Estradiol",
    "Prometrium Inserts",
    "Progesterone in Oil (PIO)",
]

MEDICATION_TEMPLATES: Dict[str, List[Dict[str, Any]]] = {
    "antagonist-protocol": [
        {"name": "Gonal-F", "dosage": "225 IU", "time": "08:00 PM", "refrigerated": True, "startDay": 1, "endDay": 10},
        {"name": "Menopur", "dosage": "150 IU", "time": "08:00 PM", "refrigerated": False, "startDay": 1, "endDay": 10},
        {"name": "Cetrotide", "dosage": "0.25 mg", "time": "08:00 PM", "refrigerated": True, "startDay": 6, "endDay": 10},
    ],
    "lupron-protocol": [
        {"name": "Lupron", "dosage": "10 units", "time": "08:00 PM", "refrigerated": True, "startDay": 1, "endDay": 14},
    ],
    "transfer-protocol": [
        {"name": "Medrol", "dosage": "16 mg", "time": "08:00 AM", "refrigerated": False, "startDay": 1, "endDay": 5},
        {"name": "Estradiol", "dosage": "2 mg", "time": "08:00 AM", "refrigerated": False, "startDay": 1, "endDay": 10},
        {"name": "Progesterone in Oil (PIO)", "dosage": "1 mL", "time": "08:00 PM", "refrigerated": False, "startDay": 1, "endDay": 10},
    ],
}


def format_time(hour: int, minute: int, ampm: str) -> str:
    """"08:00 PM" style time used by flat records"""
    return f"{int(hour):02d}:{int(minute):02d} {ampm.upper()}"


def parse_time_parts(time_string: str) -> Dict[str, Any]:
    """Split "08:00 PM" into hour / minute / ampm; unparsable input gives 12:00 AM"""
    minutes = parse_time_to_minutes(time_string)
    hour_24, minute = divmod(minutes, 60)
    ampm = 'PM' if hour_24 >= 12 else 'AM'
    hour = hour_24 % 12 or 12
    return {'hour': hour, 'minute': minute, 'ampm': ampm}


def is_medication_active_on_day(medication: Dict[str, Any], cycle_day: int) -> bool:
    if medication.get('type') == MEDICATION_TYPE_ONE_TIME:
        return medication.get('cycleDay') == cycle_day

    if medication.get('type') == MEDICATION_TYPE_SCHEDULED:
        start = medication.get('startDay') or 1
        end = medication.get('endDay') or cycle_day
        return start <= cycle_day <= end

    return False


def get_medication_completion_rate(medications: List[Dict[str, Any]]) -> float:
    if not medications:
        return 0.0
    completed = sum(1 for m in medications if m.get('taken') or m.get('skipped'))
    return completed / len(medications)


def get_flat_day_view(
    medications: List[Dict[str, Any]],
    cycle_id: str,
    cycle_day: int,
    date: Optional[str] = None,
    bucket_policy: Optional[int] = None
) -> Dict[str, Any]:
    """
    Day view over flat records. Scheduled records are stored one per day, so a
    record counts when it belongs to this day; range-only records (no cycleDay)
    fall back to their start/end range.
    """
    todays = []
    for medication in medications:
        if medication.get('cycleId') != cycle_id:
            continue
        if medication.get('cycleDay') is not None:
            if medication.get('cycleDay') == cycle_day:
                todays.append(medication)
        elif is_medication_active_on_day(medication, cycle_day):
            todays.append(medication)

    todays = sorted(todays, key=lambda m: parse_time_to_minutes(m.get('time')))

    return {
        'cycleId': cycle_id,
        'cycleDay': cycle_day,
        'date': date,
        'medications': todays,
        'groups': group_medications_by_time(todays, bucket_policy),
        'completed': sum(1 for m in todays if m.get('taken') or m.get('skipped')),
        'total': len(todays),
    }


def build_flat_medication(cycle_id: str, data: Dict[str, Any], now: Optional[str] = None) -> Dict[str, Any]:
    """Validated flat record from request data"""
    now = now or now_iso()
    name = (data.get('name') or '').strip()
    if not name:
        raise InvalidOperationError("Medication name is required")

    med_type = data.get('type') or MEDICATION_TYPE_ONE_TIME
    if med_type not in (MEDICATION_TYPE_SCHEDULED, MEDICATION_TYPE_ONE_TIME):
        raise InvalidOperationError(f"Unknown medication type: {med_type}")

    cycle_day = data.get('cycleDay')
    if cycle_day is None or cycle_day < 1:
        raise InvalidOperationError("cycleDay must be a positive integer")

    record = {
        'id': data.get('id') or str(uuid.uuid4()),
        'cycleId': cycle_id,
        'cycleDay': cycle_day,
        'name': name,
        'dosage': data.get('dosage') or '',
        'time': data.get('time') or '',
        'refrigerated': bool(data.get('refrigerated', False)),
        'type': med_type,
        'taken': bool(data.get('taken', False)),
        'skipped': bool(data.get('skipped', False)),
        'createdAt': data.get('createdAt') or now,
    }

    if med_type == MEDICATION_TYPE_SCHEDULED:
        start = data.get('startDay') or cycle_day
        end = data.get('endDay') or cycle_day
        if start > end:
            raise InvalidOperationError("startDay must not be after endDay")
        record['startDay'] = start
        record['endDay'] = end

    for key in ('takenAt', 'notes', 'updatedAt'):
        if data.get(key):
            record[key] = data[key]

    return record


def expand_template(cycle_id: str, template_name: str, now: Optional[str] = None) -> List[Dict[str, Any]]:
    """One scheduled flat record per active day for every medication in the template"""
    template = MEDICATION_TEMPLATES.get(template_name)
    if template is None:
        raise InvalidOperationError(f"Unknown medication template: {template_name}")

    now = now or now_iso()
    records = []
    for item in template:
        for day in range(item['startDay'], item['endDay'] + 1):
            records.append(build_flat_medication(cycle_id, {
                **item,
                'cycleDay': day,
                'type': MEDICATION_TYPE_SCHEDULED,
            }, now))
    return records
