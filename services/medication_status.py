# services/medication_status.py
"""
Status transitions for a day's medications (taken / skipped / reset / retime /
dosage override). Functions mutate the state dict in place; the tracker store
loads and saves it around each call.
"""
import uuid
from datetime import datetime
from typing import Dict, Optional, Any, Tuple

from services.errors import RecordNotFoundError, InvalidOperationError
from services.medication_reconciler import (
    SOURCE_SCHEDULED,
    SOURCE_DAY_SPECIFIC,
    SOURCE_LEGACY,
    find_cycle,
    find_cycle_day,
    find_schedule,
    find_daily_status,
    is_active_on_day,
    legacy_medication_id,
    resolve_day_date,
)
from utils.date_utils import now_iso

DAY_SPECIFIC_FIELDS = ('name', 'dosage', 'hour', 'minute', 'ampm', 'time',
                       'refrigerated', 'trigger', 'taken', 'skipped', 'takenAt', 'notes')


def create_empty_daily_status(cycle_id: str, day_number: int, date: Optional[str], now: Optional[str] = None) -> Dict[str, Any]:
    return {
        'id': str(uuid.uuid4()),
        'cycleId': cycle_id,
        'cycleDay': day_number,
        'date': date,
        'medications': [],
        'daySpecificMedications': [],
        'createdAt': now or now_iso(),
    }


def ensure_daily_status(
    state: Dict[str, Any],
    cycle_id: str,
    day_number: int,
    date: Optional[str] = None,
    now: Optional[str] = None
) -> Dict[str, Any]:
    """Existing status record for (cycle, day), or a new empty one appended to the state"""
    if find_cycle(state, cycle_id) is None:
        raise RecordNotFoundError(f"Cycle {cycle_id} not found")
    if day_number < 1:
        raise InvalidOperationError("Cycle day must be a positive integer")

    existing = find_daily_status(state, cycle_id, day_number)
    if existing is not None:
        existing.setdefault('medications', [])
        existing.setdefault('daySpecificMedications', [])
        return existing

    if date is None:
        date = resolve_day_date(state, cycle_id, day_number)

    status = create_empty_daily_status(cycle_id, day_number, date, now)
    state.setdefault('dailyMedicationStatuses', []).append(status)
    print(f"📋 Created daily medication status for cycle {cycle_id} day {day_number}")
    return status


def _resolve_target(state: Dict[str, Any], cycle_id: str, day_number: int, medication_id: str) -> Tuple[str, Dict[str, Any]]:
    cycle = find_cycle(state, cycle_id)
    if cycle is None:
        raise RecordNotFoundError(f"Cycle {cycle_id} not found")

    daily_status = find_daily_status(state, cycle_id, day_number)
    for medication in (daily_status or {}).get('daySpecificMedications') or []:
        if medication.get('id') == medication_id:
            return SOURCE_DAY_SPECIFIC, medication

    schedule = find_schedule(state, cycle_id)
    if schedule is not None:
        for medication in schedule.get('medications') or []:
            if medication.get('id') == medication_id:
                if not is_active_on_day(medication, day_number):
                    raise InvalidOperationError(
                        f"{medication.get('name', 'Medication')} is not scheduled on day {day_number}"
                    )
                return SOURCE_SCHEDULED, medication
    else:
        cycle_day = find_cycle_day(cycle, day_number)
        for index, medication in enumerate((cycle_day or {}).get('medications') or []):
            if legacy_medication_id(medication, day_number, index) == medication_id:
                return SOURCE_LEGACY, medication

    raise RecordNotFoundError(f"Medication {medication_id} not found on cycle day {day_number}")


def _upsert_override(daily_status: Dict[str, Any], medication_id: str) -> Dict[str, Any]:
    """The single override for medication_id; stray duplicates are dropped"""
    overrides = daily_status.setdefault('medications', [])
    matches = [o for o in overrides if o.get('scheduledMedicationId') == medication_id]

    if matches:
        override = matches[0]
        if len(matches) > 1:
            daily_status['medications'] = [
                o for o in overrides
                if o.get('scheduledMedicationId') != medication_id or o is override
            ]
        return override

    override = {'scheduledMedicationId': medication_id, 'taken': False, 'skipped': False}
    overrides.append(override)
    return override


def _apply_updates(record: Dict[str, Any], updates: Dict[str, Any]):
    for key, value in updates.items():
        if value is None:
            record.pop(key, None)
        else:
            record[key] = value


def update_medication_status(
    state: Dict[str, Any],
    cycle_id: str,
    day_number: int,
    medication_id: str,
    updates: Dict[str, Any],
    date: Optional[str] = None,
    now: Optional[str] = None
) -> Dict[str, Any]:
    """
    Apply status fields to the record behind medication_id. A None value clears
    the field. Returns {'source', 'record'} where record is the override, the
    day-specific medication or the legacy inline medication that changed.
    """
    now = now or now_iso()
    source, medication = _resolve_target(state, cycle_id, day_number, medication_id)

    if source == SOURCE_LEGACY:
        unsupported = set(updates) - {'taken', 'dosage', 'notes'}
        if unsupported or updates.get('skipped'):
            raise InvalidOperationError("Legacy medications only track whether they were taken")
        _apply_updates(medication, updates)
        cycle = find_cycle(state, cycle_id)
        cycle['updatedAt'] = now
        return {'source': source, 'record': medication}

    daily_status = ensure_daily_status(state, cycle_id, day_number, date, now)

    if source == SOURCE_SCHEDULED:
        record = _upsert_override(daily_status, medication_id)
    else:
        record = medication

    _apply_updates(record, updates)
    daily_status['updatedAt'] = now
    return {'source': source, 'record': record}


def mark_taken(state, cycle_id, day_number, medication_id, taken_at: Optional[str] = None, date=None, now=None):
    now = now or now_iso()
    if taken_at:
        _validate_timestamp(taken_at)
    source, _ = _resolve_target(state, cycle_id, day_number, medication_id)

    if source == SOURCE_LEGACY:
        updates = {'taken': True}
    else:
        updates = {'taken': True, 'skipped': False, 'takenAt': taken_at or now}

    return update_medication_status(state, cycle_id, day_number, medication_id, updates, date, now)


def mark_skipped(state, cycle_id, day_number, medication_id, date=None, now=None):
    source, _ = _resolve_target(state, cycle_id, day_number, medication_id)
    if source == SOURCE_LEGACY:
        raise InvalidOperationError("Legacy medications cannot be skipped")

    updates = {'taken': False, 'skipped': True, 'takenAt': None}
    return update_medication_status(state, cycle_id, day_number, medication_id, updates, date, now)


def reset_medication(state, cycle_id, day_number, medication_id, date=None, now=None):
    source, _ = _resolve_target(state, cycle_id, day_number, medication_id)

    if source == SOURCE_LEGACY:
        updates = {'taken': False}
    else:
        updates = {'taken': False, 'skipped': False, 'takenAt': None}

    return update_medication_status(state, cycle_id, day_number, medication_id, updates, date, now)


def edit_taken_time(state, cycle_id, day_number, medication_id, new_timestamp: str, date=None, now=None):
    """Overwrite takenAt of a medication that is already marked taken"""
    _validate_timestamp(new_timestamp)
    source, medication = _resolve_target(state, cycle_id, day_number, medication_id)

    if source == SOURCE_LEGACY:
        raise InvalidOperationError("Legacy medications do not record a taken time")

    if source == SOURCE_SCHEDULED:
        daily_status = find_daily_status(state, cycle_id, day_number) or {}
        override = next(
            (o for o in daily_status.get('medications') or [] if o.get('scheduledMedicationId') == medication_id),
            None
        )
        taken = bool(override and override.get('taken'))
    else:
        taken = bool(medication.get('taken'))

    if not taken:
        raise InvalidOperationError("Medication must be marked as taken before editing the taken time")

    return update_medication_status(
        state, cycle_id, day_number, medication_id, {'takenAt': new_timestamp}, date, now
    )


def edit_dosage(state, cycle_id, day_number, medication_id, dosage: Optional[str], date=None, now=None):
    """
    Scheduled medications get an actualDosage override (empty clears it);
    day-specific and legacy medications have their dosage replaced.
    """
    dosage = (dosage or '').strip() or None
    source, _ = _resolve_target(state, cycle_id, day_number, medication_id)

    if source == SOURCE_SCHEDULED:
        updates = {'actualDosage': dosage}
    else:
        if dosage is None:
            raise InvalidOperationError("Dosage cannot be empty")
        updates = {'dosage': dosage}

    return update_medication_status(state, cycle_id, day_number, medication_id, updates, date, now)


def edit_notes(state, cycle_id, day_number, medication_id, notes: Optional[str], date=None, now=None):
    notes = (notes or '').strip() or None
    return update_medication_status(state, cycle_id, day_number, medication_id, {'notes': notes}, date, now)


# Day-specific medications

def add_day_specific_medication(
    state: Dict[str, Any],
    cycle_id: str,
    day_number: int,
    medication: Dict[str, Any],
    date: Optional[str] = None,
    now: Optional[str] = None
) -> Dict[str, Any]:
    now = now or now_iso()
    if not (medication.get('name') or '').strip():
        raise InvalidOperationError("Medication name is required")

    daily_status = ensure_daily_status(state, cycle_id, day_number, date, now)

    record = {key: medication[key] for key in DAY_SPECIFIC_FIELDS if medication.get(key) is not None}
    record['id'] = str(uuid.uuid4())
    record.setdefault('dosage', '')
    record.setdefault('refrigerated', False)
    record.setdefault('trigger', False)
    record.setdefault('taken', False)
    record.setdefault('skipped', False)

    daily_status['daySpecificMedications'].append(record)
    daily_status['updatedAt'] = now
    print(f"💊 Added day-specific medication {record['name']} to cycle {cycle_id} day {day_number}")
    return record


def _find_day_specific(state, cycle_id, day_number, medication_id) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    if find_cycle(state, cycle_id) is None:
        raise RecordNotFoundError(f"Cycle {cycle_id} not found")

    daily_status = find_daily_status(state, cycle_id, day_number)
    for medication in (daily_status or {}).get('daySpecificMedications') or []:
        if medication.get('id') == medication_id:
            return daily_status, medication

    raise RecordNotFoundError(f"Day-specific medication {medication_id} not found on cycle day {day_number}")


def update_day_specific_medication(state, cycle_id, day_number, medication_id, updates: Dict[str, Any], now=None):
    now = now or now_iso()
    daily_status, medication = _find_day_specific(state, cycle_id, day_number, medication_id)

    for key in DAY_SPECIFIC_FIELDS:
        if key in updates and updates[key] is not None:
            medication[key] = updates[key]

    daily_status['updatedAt'] = now
    return medication


def delete_day_specific_medication(state, cycle_id, day_number, medication_id, now=None) -> Dict[str, Any]:
    now = now or now_iso()
    daily_status, medication = _find_day_specific(state, cycle_id, day_number, medication_id)

    daily_status['daySpecificMedications'] = [
        m for m in daily_status['daySpecificMedications'] if m.get('id') != medication_id
    ]
    daily_status['updatedAt'] = now
    print(f"🗑️ Deleted day-specific medication {medication.get('name')} from cycle {cycle_id} day {day_number}")
    return medication


def _validate_timestamp(value: Optional[str]):
    if not value:
        raise InvalidOperationError("A taken-at timestamp is required")
    try:
        datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise InvalidOperationError(f"Invalid timestamp: {value}")
