# services/tracker_store.py
import uuid
from typing import Dict, List, Optional, Any, Callable

from services.storage_service import StorageService, get_storage_service
from services.errors import RecordNotFoundError, InvalidOperationError
from services import medication_status
from services.medication_reconciler import (
    find_cycle,
    find_cycle_day,
    find_schedule,
    find_daily_status,
    reconcile_day,
    get_schedule_overview,
    get_cycle_with_medications,
)
from services.medication_catalog import build_flat_medication, expand_template, get_flat_day_view
from services.medication_migration import migrate_legacy_medication_data, deduplicate_medications, validate_migrated_data
from services.journey_summary import build_journey_summary
from services.protocol_extraction import extract_protocol_details, format_protocol_summary
from utils.date_utils import now_iso, parse_date, cycle_day_date, cycle_day_number

STORAGE_KEY_PREFIX = "ivf-tracker-storage"

STATE_LIST_KEYS = ('cycles', 'procedures', 'naturalPregnancies', 'medicationSchedules',
                   'dailyMedicationStatuses', 'medications')


def storage_key(user_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}-{user_id}"


def empty_state() -> Dict[str, Any]:
    return {
        'cycles': [],
        'procedures': [],
        'naturalPregnancies': [],
        'medicationSchedules': [],
        'dailyMedicationStatuses': [],
        'medications': [],
        'userProfile': None,
    }


def _find_by_id(items: List[Dict[str, Any]], item_id: str, label: str) -> Dict[str, Any]:
    item = next((i for i in items if i.get('id') == item_id), None)
    if item is None:
        raise RecordNotFoundError(f"{label} {item_id} not found")
    return item


def _check_day_date(cycle: Dict[str, Any], day_number: int, day_date: str):
    """A day's date must fall day_number - 1 days after the cycle start"""
    expected = cycle_day_date(cycle.get('startDate'), day_number)
    if expected is None:
        return
    given = parse_date(day_date)
    if given is None or given.isoformat() != expected:
        raise InvalidOperationError(f"Date {day_date} does not match cycle day {day_number} (expected {expected})")


def _validate_range(medication: Dict[str, Any]):
    start, end = medication.get('startDay'), medication.get('endDay')
    if start is None or end is None:
        raise InvalidOperationError("startDay and endDay are required")
    if start < 1 or start > end:
        raise InvalidOperationError(f"Invalid day range {start}-{end} for {medication.get('name', 'medication')}")


class TrackerStoreService:
    """
    Per-user tracker state. Each operation loads the user's blob, changes it and
    writes it back; nothing awaits between the read and the write.
    """

    def __init__(self, storage: Optional[StorageService] = None):
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        return self._storage or get_storage_service()

    # State blob

    async def load_state(self, user_id: str) -> Dict[str, Any]:
        state = self.storage.get(storage_key(user_id))
        if not isinstance(state, dict):
            return empty_state()

        # Older blobs may be wrapped as {"state": {...}, "version": 0}
        if 'state' in state and isinstance(state['state'], dict):
            state = state['state']

        for key in STATE_LIST_KEYS:
            if not isinstance(state.get(key), list):
                state[key] = []
        state.setdefault('userProfile', None)
        return state

    async def save_state(self, user_id: str, state: Dict[str, Any]) -> None:
        self.storage.set(storage_key(user_id), state)

    async def initialize_state(self, user_id: str) -> Dict[str, Any]:
        state = empty_state()
        await self.save_state(user_id, state)
        return state

    async def remove_state(self, user_id: str) -> None:
        self.storage.remove(storage_key(user_id))

    async def _mutate(self, user_id: str, change: Callable[[Dict[str, Any]], Any]) -> Any:
        state = await self.load_state(user_id)
        result = change(state)
        await self.save_state(user_id, state)
        return result

    # Cycles

    async def list_cycles(self, user_id: str) -> List[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return sorted(state['cycles'], key=lambda c: c.get('startDate') or '', reverse=True)

    async def get_cycle(self, user_id: str, cycle_id: str) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return find_cycle(state, cycle_id)

    async def create_cycle(self, user_id: str, cycle_data: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            cycle = {**cycle_data}
            cycle['id'] = str(uuid.uuid4())
            cycle.setdefault('status', 'active')
            cycle['days'] = []
            cycle['createdAt'] = now_iso()
            for day in cycle_data.get('days') or []:
                cycle['days'].append(self._build_day(cycle, day))
            state['cycles'].append(cycle)
            print(f"✅ Created cycle {cycle.get('name')} ({cycle['id']})")
            return cycle

        return await self._mutate(user_id, change)

    async def update_cycle(self, user_id: str, cycle_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            previous_start = cycle.get('startDate')
            for key, value in updates.items():
                if key in ('id', 'days'):
                    continue
                cycle[key] = value
            if cycle.get('startDate') and cycle['startDate'] != previous_start:
                for day in cycle.get('days') or []:
                    if day.get('cycleDay') is not None:
                        day['date'] = cycle_day_date(cycle.get('startDate'), day['cycleDay'])
            cycle['updatedAt'] = now_iso()
            return cycle

        return await self._mutate(user_id, change)

    async def delete_cycle(self, user_id: str, cycle_id: str) -> None:
        """Removes the cycle together with its schedule, daily statuses and flat medications"""
        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            state['cycles'] = [c for c in state['cycles'] if c.get('id') != cycle_id]
            for key in ('medicationSchedules', 'dailyMedicationStatuses', 'medications'):
                state[key] = [r for r in state[key] if r.get('cycleId') != cycle_id]
            print(f"🗑️ Deleted cycle {cycle_id}")

        await self._mutate(user_id, change)

    async def update_cycle_outcome(self, user_id: str, cycle_id: str, outcome: Dict[str, Any]) -> Dict[str, Any]:
        """Merges the given fields into the existing outcome"""
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            cycle['outcome'] = {**(cycle.get('outcome') or {}), **outcome}
            cycle['updatedAt'] = now_iso()
            return cycle['outcome']

        return await self._mutate(user_id, change)

    async def update_cycle_costs(self, user_id: str, cycle_id: str, costs: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            cycle['costs'] = costs
            cycle['updatedAt'] = now_iso()
            return cycle['costs']

        return await self._mutate(user_id, change)

    # Cycle days

    def _build_day(self, cycle: Dict[str, Any], day_data: Dict[str, Any]) -> Dict[str, Any]:
        day = {**day_data}
        day['id'] = day.get('id') or str(uuid.uuid4())

        if day.get('cycleDay') is None and day.get('date'):
            day['cycleDay'] = cycle_day_number(cycle.get('startDate'), day['date'])
        if day.get('cycleDay') is None or day['cycleDay'] < 1:
            raise InvalidOperationError("cycleDay must be a positive integer")
        if day.get('date'):
            _check_day_date(cycle, day['cycleDay'], day['date'])
        else:
            day['date'] = cycle_day_date(cycle.get('startDate'), day['cycleDay'])

        if find_cycle_day(cycle, day['cycleDay']) is not None:
            raise InvalidOperationError(f"Day {day['cycleDay']} already exists in this cycle")
        return day

    async def add_day(self, user_id: str, cycle_id: str, day_data: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            day = self._build_day(cycle, day_data)
            cycle.setdefault('days', []).append(day)
            cycle['days'].sort(key=lambda d: d.get('cycleDay') or 0)
            return day

        return await self._mutate(user_id, change)

    async def update_day(self, user_id: str, cycle_id: str, day_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            day = _find_by_id(cycle.get('days') or [], day_id, "Day")

            changes = {**updates}
            new_number = changes.get('cycleDay')
            if new_number is None and changes.get('date'):
                new_number = cycle_day_number(cycle.get('startDate'), changes['date'])
                changes['cycleDay'] = new_number
            if new_number is not None and new_number != day.get('cycleDay'):
                if new_number < 1 or find_cycle_day(cycle, new_number) is not None:
                    raise InvalidOperationError(f"Cannot move day to cycle day {new_number}")
                if not changes.get('date'):
                    changes['date'] = cycle_day_date(cycle.get('startDate'), new_number)
            if changes.get('date'):
                _check_day_date(cycle, changes.get('cycleDay') or day.get('cycleDay'), changes['date'])

            for key, value in changes.items():
                if key == 'id' or (key in ('cycleDay', 'date') and value is None):
                    continue
                day[key] = value
            cycle['days'].sort(key=lambda d: d.get('cycleDay') or 0)
            return day

        return await self._mutate(user_id, change)

    async def delete_day(self, user_id: str, cycle_id: str, day_id: str) -> None:
        def change(state):
            cycle = find_cycle(state, cycle_id)
            if cycle is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            _find_by_id(cycle.get('days') or [], day_id, "Day")
            cycle['days'] = [d for d in cycle['days'] if d.get('id') != day_id]

        await self._mutate(user_id, change)

    async def get_cycle_with_medications(self, user_id: str, cycle_id: str) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return get_cycle_with_medications(state, cycle_id)

    # Medication schedule

    async def get_medication_schedule(self, user_id: str, cycle_id: str) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return find_schedule(state, cycle_id)

    async def save_medication_schedule(self, user_id: str, cycle_id: str, medications: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Creates the cycle's schedule or replaces its medication list"""
        for medication in medications:
            _validate_range(medication)

        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")

            records = [{**m, 'id': m.get('id') or str(uuid.uuid4())} for m in medications]
            schedule = find_schedule(state, cycle_id)
            if schedule is None:
                schedule = {
                    'id': str(uuid.uuid4()),
                    'cycleId': cycle_id,
                    'medications': records,
                    'createdAt': now_iso(),
                }
                state['medicationSchedules'].append(schedule)
            else:
                schedule['medications'] = records
                schedule['updatedAt'] = now_iso()
            print(f"💊 Saved medication schedule for cycle {cycle_id} with {len(records)} medications")
            return schedule

        return await self._mutate(user_id, change)

    async def delete_medication_schedule(self, user_id: str, cycle_id: str) -> None:
        def change(state):
            if find_schedule(state, cycle_id) is None:
                raise RecordNotFoundError(f"No medication schedule for cycle {cycle_id}")
            state['medicationSchedules'] = [s for s in state['medicationSchedules'] if s.get('cycleId') != cycle_id]

        await self._mutate(user_id, change)

    async def add_scheduled_medication(self, user_id: str, cycle_id: str, medication: Dict[str, Any]) -> Dict[str, Any]:
        _validate_range(medication)

        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            schedule = find_schedule(state, cycle_id)
            if schedule is None:
                schedule = {
                    'id': str(uuid.uuid4()),
                    'cycleId': cycle_id,
                    'medications': [],
                    'createdAt': now_iso(),
                }
                state['medicationSchedules'].append(schedule)
            record = {**medication, 'id': str(uuid.uuid4())}
            schedule['medications'].append(record)
            schedule['updatedAt'] = now_iso()
            return record

        return await self._mutate(user_id, change)

    async def update_scheduled_medication(self, user_id: str, cycle_id: str, medication_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            schedule = find_schedule(state, cycle_id)
            if schedule is None:
                raise RecordNotFoundError(f"No medication schedule for cycle {cycle_id}")
            medication = _find_by_id(schedule['medications'], medication_id, "Scheduled medication")
            merged = {**medication, **{k: v for k, v in updates.items() if v is not None and k != 'id'}}
            _validate_range(merged)
            medication.update(merged)
            schedule['updatedAt'] = now_iso()
            return medication

        return await self._mutate(user_id, change)

    async def delete_scheduled_medication(self, user_id: str, cycle_id: str, medication_id: str) -> None:
        """Removes the medication and its per-day overrides"""
        def change(state):
            schedule = find_schedule(state, cycle_id)
            if schedule is None:
                raise RecordNotFoundError(f"No medication schedule for cycle {cycle_id}")
            _find_by_id(schedule['medications'], medication_id, "Scheduled medication")
            schedule['medications'] = [m for m in schedule['medications'] if m.get('id') != medication_id]
            schedule['updatedAt'] = now_iso()
            for status in state['dailyMedicationStatuses']:
                if status.get('cycleId') == cycle_id:
                    status['medications'] = [
                        o for o in status.get('medications') or []
                        if o.get('scheduledMedicationId') != medication_id
                    ]

        await self._mutate(user_id, change)

    # Day medication view and status

    async def get_day_medications(self, user_id: str, cycle_id: str, day_number: int,
                                  date: Optional[str] = None, bucket_policy: Optional[int] = None) -> Dict[str, Any]:
        state = await self.load_state(user_id)
        return reconcile_day(state, cycle_id, day_number, date, bucket_policy)

    async def get_medication_overview(self, user_id: str, cycle_id: str,
                                      cycle_days: Optional[List[int]] = None) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return get_schedule_overview(state, cycle_id, cycle_days)

    async def get_daily_status(self, user_id: str, cycle_id: str, day_number: int) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return find_daily_status(state, cycle_id, day_number)

    async def ensure_daily_status(self, user_id: str, cycle_id: str, day_number: int,
                                  date: Optional[str] = None) -> Dict[str, Any]:
        return await self._mutate(
            user_id,
            lambda state: medication_status.ensure_daily_status(state, cycle_id, day_number, date)
        )

    async def apply_status_action(self, user_id: str, cycle_id: str, day_number: int, action: str,
                                  medication_id: str, value: Optional[str] = None,
                                  date: Optional[str] = None) -> Dict[str, Any]:
        """
        Runs one status transition and returns the refreshed day view.
        Actions: taken, skipped, reset, taken-time, dosage, notes.
        """
        def change(state):
            if action == 'taken':
                medication_status.mark_taken(state, cycle_id, day_number, medication_id, taken_at=value, date=date)
            elif action == 'skipped':
                medication_status.mark_skipped(state, cycle_id, day_number, medication_id, date=date)
            elif action == 'reset':
                medication_status.reset_medication(state, cycle_id, day_number, medication_id, date=date)
            elif action == 'taken-time':
                medication_status.edit_taken_time(state, cycle_id, day_number, medication_id, value, date=date)
            elif action == 'dosage':
                medication_status.edit_dosage(state, cycle_id, day_number, medication_id, value, date=date)
            elif action == 'notes':
                medication_status.edit_notes(state, cycle_id, day_number, medication_id, value, date=date)
            else:
                raise InvalidOperationError(f"Unknown medication action: {action}")
            return reconcile_day(state, cycle_id, day_number, date)

        print(f"💊 {action} -> medication {medication_id} (cycle {cycle_id}, day {day_number})")
        return await self._mutate(user_id, change)

    async def add_day_specific_medication(self, user_id: str, cycle_id: str, day_number: int,
                                          medication: Dict[str, Any], date: Optional[str] = None) -> Dict[str, Any]:
        return await self._mutate(
            user_id,
            lambda state: medication_status.add_day_specific_medication(state, cycle_id, day_number, medication, date)
        )

    async def update_day_specific_medication(self, user_id: str, cycle_id: str, day_number: int,
                                             medication_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return await self._mutate(
            user_id,
            lambda state: medication_status.update_day_specific_medication(state, cycle_id, day_number, medication_id, updates)
        )

    async def delete_day_specific_medication(self, user_id: str, cycle_id: str, day_number: int,
                                             medication_id: str) -> Dict[str, Any]:
        return await self._mutate(
            user_id,
            lambda state: medication_status.delete_day_specific_medication(state, cycle_id, day_number, medication_id)
        )

    # Flat medication records

    async def list_flat_medications(self, user_id: str, cycle_id: str) -> List[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return [m for m in state['medications'] if m.get('cycleId') == cycle_id]

    async def get_flat_day_view(self, user_id: str, cycle_id: str, day_number: int) -> Dict[str, Any]:
        state = await self.load_state(user_id)
        cycle = find_cycle(state, cycle_id)
        date = cycle_day_date(cycle.get('startDate'), day_number) if cycle else None
        return get_flat_day_view(state['medications'], cycle_id, day_number, date)

    async def add_flat_medication(self, user_id: str, cycle_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            record = build_flat_medication(cycle_id, {**data, 'id': None})
            state['medications'].append(record)
            return record

        return await self._mutate(user_id, change)

    async def update_flat_medication(self, user_id: str, cycle_id: str, medication_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            medication = _find_by_id(
                [m for m in state['medications'] if m.get('cycleId') == cycle_id], medication_id, "Medication"
            )
            merged = {**medication, **{k: v for k, v in updates.items() if v is not None}}
            if updates.get('taken'):
                merged['skipped'] = False
                merged.setdefault('takenAt', now_iso())
            elif updates.get('skipped') or updates.get('taken') is False:
                merged['taken'] = False
                merged.pop('takenAt', None)
            merged['updatedAt'] = now_iso()
            rebuilt = build_flat_medication(cycle_id, {**merged, 'id': medication_id})
            medication.clear()
            medication.update(rebuilt)
            return medication

        return await self._mutate(user_id, change)

    async def delete_flat_medication(self, user_id: str, cycle_id: str, medication_id: str) -> None:
        def change(state):
            _find_by_id([m for m in state['medications'] if m.get('cycleId') == cycle_id], medication_id, "Medication")
            state['medications'] = [m for m in state['medications'] if m.get('id') != medication_id]

        await self._mutate(user_id, change)

    async def apply_medication_template(self, user_id: str, cycle_id: str, template_name: str) -> List[Dict[str, Any]]:
        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            records = expand_template(cycle_id, template_name)
            combined = deduplicate_medications(state['medications'] + records)
            added = [r for r in records if any(r is c for c in combined)]
            state['medications'] = combined
            return added

        return await self._mutate(user_id, change)

    async def migrate_cycle_medications(self, user_id: str, cycle_id: str,
                                        preserve_timestamps: bool = True,
                                        skip_incomplete_data: bool = False) -> Dict[str, Any]:
        """Copies schedule/status medications into flat records, skipping duplicates"""
        def change(state):
            if find_cycle(state, cycle_id) is None:
                raise RecordNotFoundError(f"Cycle {cycle_id} not found")
            result = migrate_legacy_medication_data(
                cycle_id,
                state['medicationSchedules'],
                state['dailyMedicationStatuses'],
                preserve_timestamps=preserve_timestamps,
                skip_incomplete_data=skip_incomplete_data,
            )
            before = len(state['medications'])
            state['medications'] = deduplicate_medications(state['medications'] + result['migratedMedications'])
            result['addedCount'] = len(state['medications']) - before
            result['validation'] = validate_migrated_data(result['migratedMedications'])
            return result

        return await self._mutate(user_id, change)

    # Summaries

    async def get_journey_summary(self, user_id: str) -> Dict[str, Any]:
        state = await self.load_state(user_id)
        return build_journey_summary(state)

    async def get_protocol_details(self, user_id: str, cycle_id: str) -> Dict[str, Any]:
        state = await self.load_state(user_id)
        cycle = get_cycle_with_medications(state, cycle_id)
        if cycle is None:
            raise RecordNotFoundError(f"Cycle {cycle_id} not found")
        details = extract_protocol_details(cycle)
        return {
            'cycleId': cycle_id,
            'details': details,
            'summary': format_protocol_summary(details, cycle.get('cycleGoal')),
        }

    # Procedures, natural pregnancies, profile

    async def list_records(self, user_id: str, collection: str) -> List[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return state[collection]

    async def get_record(self, user_id: str, collection: str, record_id: str) -> Dict[str, Any]:
        state = await self.load_state(user_id)
        return _find_by_id(state[collection], record_id, "Record")

    async def create_record(self, user_id: str, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            record = {**data, 'id': str(uuid.uuid4())}
            if collection == 'naturalPregnancies':
                record['createdAt'] = now_iso()
            state[collection].append(record)
            return record

        return await self._mutate(user_id, change)

    async def update_record(self, user_id: str, collection: str, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            record = _find_by_id(state[collection], record_id, "Record")
            for key, value in updates.items():
                if key != 'id' and value is not None:
                    record[key] = value
            if collection == 'naturalPregnancies':
                record['updatedAt'] = now_iso()
            return record

        return await self._mutate(user_id, change)

    async def delete_record(self, user_id: str, collection: str, record_id: str) -> None:
        def change(state):
            _find_by_id(state[collection], record_id, "Record")
            state[collection] = [r for r in state[collection] if r.get('id') != record_id]

        await self._mutate(user_id, change)

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        state = await self.load_state(user_id)
        return state.get('userProfile')

    async def save_user_profile(self, user_id: str, profile: Dict[str, Any]) -> Dict[str, Any]:
        def change(state):
            existing = state.get('userProfile') or {}
            state['userProfile'] = {
                **existing,
                **profile,
                'id': existing.get('id') or str(uuid.uuid4()),
                'createdAt': existing.get('createdAt') or now_iso(),
            }
            return state['userProfile']

        return await self._mutate(user_id, change)


# Global store instance
tracker_store: Optional[TrackerStoreService] = None

def get_tracker_store() -> TrackerStoreService:
    """Get the global tracker store instance"""
    global tracker_store
    if tracker_store is None:
        tracker_store = TrackerStoreService()
    return tracker_store

def init_tracker_store(storage: Optional[StorageService] = None) -> TrackerStoreService:
    """Initialize the global tracker store"""
    global tracker_store
    tracker_store = TrackerStoreService(storage)
    return tracker_store
