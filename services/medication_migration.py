# services/medication_migration.py
"""
Converts a cycle's schedule + daily statuses into flat per-occurrence
medication records.
"""
import re
import uuid
from typing import Dict, List, Optional, Any

from services.medication_catalog import (
    MEDICATION_TYPE_SCHEDULED,
    MEDICATION_TYPE_ONE_TIME,
    format_time,
    parse_time_parts,
)
from services.medication_reconciler import medication_time_label
from utils.date_utils import now_iso

_FLAT_TIME_PATTERN = re.compile(r'^\d{2}:\d{2} (AM|PM)$')


def _flat_time(record: Dict[str, Any]) -> str:
    parts = parse_time_parts(medication_time_label(record))
    return format_time(parts['hour'], parts['minute'], parts['ampm'])


def combine_notes(schedule_notes: Optional[str], status_notes: Optional[str]) -> Optional[str]:
    notes = [n for n in (schedule_notes, status_notes) if n]
    return " | ".join(notes) if notes else None


def migrate_legacy_medication_data(
    cycle_id: str,
    schedules: List[Dict[str, Any]],
    daily_statuses: List[Dict[str, Any]],
    preserve_timestamps: bool = True,
    skip_incomplete_data: bool = False
) -> Dict[str, Any]:
    """
    Returns {'migratedMedications', 'skippedCount', 'errorCount', 'summary'}.
    Scheduled medications produce one record per day in their range with that
    day's override applied; day-specific medications keep their ids.
    """
    print(f"🔄 Starting medication migration for cycle: {cycle_id}")

    result = {
        'migratedMedications': [],
        'skippedCount': 0,
        'errorCount': 0,
        'summary': {
            'scheduledMedications': 0,
            'daySpecificMedications': 0,
            'totalMigrated': 0,
        },
    }

    cycle_statuses = [s for s in daily_statuses if s.get('cycleId') == cycle_id]
    statuses_by_day = {}
    for status in cycle_statuses:
        statuses_by_day.setdefault(status.get('cycleDay'), status)

    schedule = next((s for s in schedules if s.get('cycleId') == cycle_id), None)
    if schedule:
        for legacy_med in schedule.get('medications') or []:
            try:
                start = int(legacy_med['startDay'])
                end = int(legacy_med['endDay'])
                for day in range(start, end + 1):
                    status = statuses_by_day.get(day) or {}
                    override = next(
                        (o for o in status.get('medications') or []
                         if o.get('scheduledMedicationId') == legacy_med.get('id')),
                        {}
                    )

                    record = {
                        'id': str(uuid.uuid4()),
                        'cycleId': cycle_id,
                        'cycleDay': day,
                        'name': legacy_med.get('name', ''),
                        'dosage': override.get('actualDosage') or legacy_med.get('dosage', ''),
                        'time': _flat_time(legacy_med),
                        'refrigerated': bool(legacy_med.get('refrigerated', False)),
                        'type': MEDICATION_TYPE_SCHEDULED,
                        'startDay': start,
                        'endDay': end,
                        'taken': bool(override.get('taken', False)),
                        'skipped': bool(override.get('skipped', False)),
                        'createdAt': schedule.get('createdAt') if preserve_timestamps else now_iso(),
                    }
                    notes = combine_notes(legacy_med.get('notes'), override.get('notes'))
                    if notes:
                        record['notes'] = notes
                    if override.get('takenAt'):
                        record['takenAt'] = override['takenAt']
                        record['updatedAt'] = override['takenAt']

                    result['migratedMedications'].append(record)
                    result['summary']['scheduledMedications'] += 1
            except (KeyError, TypeError, ValueError) as e:
                print(f"❌ Error migrating scheduled medication {legacy_med.get('name')}: {e}")
                result['errorCount'] += 1

    for status in cycle_statuses:
        for legacy_med in status.get('daySpecificMedications') or []:
            if not legacy_med.get('name') or not legacy_med.get('dosage'):
                if skip_incomplete_data:
                    result['skippedCount'] += 1
                    continue

            record = {
                'id': legacy_med.get('id') or str(uuid.uuid4()),
                'cycleId': cycle_id,
                'cycleDay': status.get('cycleDay'),
                'name': legacy_med.get('name', ''),
                'dosage': legacy_med.get('dosage', ''),
                'time': _flat_time(legacy_med),
                'refrigerated': bool(legacy_med.get('refrigerated', False)),
                'type': MEDICATION_TYPE_ONE_TIME,
                'taken': bool(legacy_med.get('taken', False)),
                'skipped': bool(legacy_med.get('skipped', False)),
                'createdAt': status.get('createdAt') if preserve_timestamps else now_iso(),
            }
            if legacy_med.get('notes'):
                record['notes'] = legacy_med['notes']
            if legacy_med.get('takenAt'):
                record['takenAt'] = legacy_med['takenAt']
                record['updatedAt'] = legacy_med['takenAt']

            result['migratedMedications'].append(record)
            result['summary']['daySpecificMedications'] += 1

    result['summary']['totalMigrated'] = len(result['migratedMedications'])
    print(f"✅ Migration complete: {result['summary']}")
    return result


def validate_migrated_data(medications: List[Dict[str, Any]]) -> Dict[str, Any]:
    errors = []
    warnings = []

    for index, med in enumerate(medications):
        if not med.get('id'):
            errors.append(f"Medication {index}: Missing ID")
        if not med.get('cycleId'):
            errors.append(f"Medication {index}: Missing cycleId")
        if not med.get('name'):
            errors.append(f"Medication {index}: Missing name")
        if not med.get('dosage'):
            errors.append(f"Medication {index}: Missing dosage")
        if not med.get('time'):
            errors.append(f"Medication {index}: Missing time")
        if (med.get('cycleDay') or 0) < 1:
            errors.append(f"Medication {index}: Invalid cycleDay")

        if med.get('type') == MEDICATION_TYPE_SCHEDULED:
            start, end = med.get('startDay'), med.get('endDay')
            if not start or not end:
                warnings.append(f"Scheduled medication {med.get('name')}: Missing startDay/endDay")
            elif start > end:
                errors.append(f"Scheduled medication {med.get('name')}: startDay > endDay")

        if med.get('time') and not _FLAT_TIME_PATTERN.match(med['time']):
            errors.append(f"Medication {med.get('name')}: Invalid time format: {med['time']}")

        if med.get('taken') and med.get('skipped'):
            warnings.append(f"Medication {med.get('name')}: Both taken and skipped")

    return {
        'isValid': not errors,
        'errors': errors,
        'warnings': warnings,
    }


def deduplicate_medications(medications: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """First record wins per (cycle, day, name, time, type)"""
    seen = set()
    deduplicated = []

    for med in medications:
        key = (med.get('cycleId'), med.get('cycleDay'), med.get('name'), med.get('time'), med.get('type'))
        if key not in seen:
            seen.add(key)
            deduplicated.append(med)

    return deduplicated
