# api/medications.py
from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from models.medication_schemas import (
    MedicationScheduleSave,
    ScheduledMedicationCreate,
    ScheduledMedicationUpdate,
    DaySpecificMedicationCreate,
    DaySpecificMedicationUpdate,
    MedicationStatusAction,
    FlatMedicationCreate,
    FlatMedicationUpdate,
    TemplateApply,
    MigrationOptions,
)
from services.tracker_store import get_tracker_store
from services.medication_catalog import COMMON_MEDICATIONS, MEDICATION_TEMPLATES
from api.users import get_active_user_id
from utils.date_utils import get_timezone_offset, get_user_today, cycle_day_number
from utils.error_utils import to_http_exception

router = APIRouter()

@router.get("/catalog/medications")
async def get_medication_catalog():
    """Common medication names and the protocol templates flat records can be built from"""
    return {
        "success": True,
        "medications": COMMON_MEDICATIONS,
        "templates": MEDICATION_TEMPLATES,
    }

# Medication schedule

@router.get("/{cycle_id}/medication-schedule")
async def get_medication_schedule(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        schedule = await get_tracker_store().get_medication_schedule(user_id, cycle_id)
        return {"success": True, "schedule": schedule}

    except Exception as e:
        raise to_http_exception(e, "getting medication schedule")

@router.put("/{cycle_id}/medication-schedule")
async def save_medication_schedule(cycle_id: str, schedule_data: MedicationScheduleSave,
                                   user_id: str = Depends(get_active_user_id)):
    """Create the schedule or replace its medication list"""
    try:
        medications = [m.model_dump(exclude_none=True) for m in schedule_data.medications]
        schedule = await get_tracker_store().save_medication_schedule(user_id, cycle_id, medications)
        return {"success": True, "schedule": schedule}

    except Exception as e:
        raise to_http_exception(e, "saving medication schedule")

@router.delete("/{cycle_id}/medication-schedule")
async def delete_medication_schedule(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_medication_schedule(user_id, cycle_id)
        return {"success": True, "message": "Medication schedule deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting medication schedule")

@router.post("/{cycle_id}/medication-schedule/medications")
async def add_scheduled_medication(cycle_id: str, medication: ScheduledMedicationCreate,
                                   user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().add_scheduled_medication(
            user_id, cycle_id, medication.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "adding scheduled medication")

@router.put("/{cycle_id}/medication-schedule/medications/{medication_id}")
async def update_scheduled_medication(cycle_id: str, medication_id: str, updates: ScheduledMedicationUpdate,
                                      user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().update_scheduled_medication(
            user_id, cycle_id, medication_id, updates.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "updating scheduled medication")

@router.delete("/{cycle_id}/medication-schedule/medications/{medication_id}")
async def delete_scheduled_medication(cycle_id: str, medication_id: str,
                                      user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_scheduled_medication(user_id, cycle_id, medication_id)
        return {"success": True, "message": "Scheduled medication deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting scheduled medication")

# Reconciled day view

@router.get("/{cycle_id}/medication-overview")
async def get_medication_overview(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    """Per-day totals across the cycle's schedule and daily statuses"""
    try:
        overview = await get_tracker_store().get_medication_overview(user_id, cycle_id)
        return {"success": True, "overview": overview}

    except Exception as e:
        raise to_http_exception(e, "building medication overview")

@router.get("/{cycle_id}/today/medications")
async def get_today_medications(cycle_id: str, user_id: str = Depends(get_active_user_id),
                                timezone_offset: int = Depends(get_timezone_offset)):
    """Day view for the cycle day that falls on the user's local today"""
    try:
        store = get_tracker_store()
        cycle = await store.get_cycle(user_id, cycle_id)
        if not cycle:
            raise HTTPException(status_code=404, detail="Cycle not found")

        today = get_user_today(timezone_offset)
        day_number = cycle_day_number(cycle.get('startDate'), today)
        if day_number is None or day_number < 1:
            return {"success": True, "day": None, "message": "Cycle has not started yet"}

        print(f"🔍 Today ({today}) is day {day_number} of cycle {cycle_id}")
        day = await store.get_day_medications(user_id, cycle_id, day_number, today.isoformat())
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, "getting today's medications")

@router.get("/{cycle_id}/days/{day_number}/medications")
async def get_day_medications(cycle_id: str, day_number: int, buckets: Optional[int] = None,
                              user_id: str = Depends(get_active_user_id)):
    try:
        day = await get_tracker_store().get_day_medications(user_id, cycle_id, day_number, bucket_policy=buckets)
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, "getting day medications")

@router.post("/{cycle_id}/days/{day_number}/medications/{medication_id}/status")
async def update_medication_status(cycle_id: str, day_number: int, medication_id: str,
                                   status: MedicationStatusAction, user_id: str = Depends(get_active_user_id)):
    """Mark taken / skipped, reset, retime, override dosage or annotate; returns the refreshed day"""
    try:
        day = await get_tracker_store().apply_status_action(
            user_id, cycle_id, day_number, status.action, medication_id, status.value
        )
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, f"applying {status.action} to medication")

@router.post("/{cycle_id}/days/{day_number}/medications")
async def add_day_specific_medication(cycle_id: str, day_number: int, medication: DaySpecificMedicationCreate,
                                      user_id: str = Depends(get_active_user_id)):
    """One-off medication for a single day"""
    try:
        record = await get_tracker_store().add_day_specific_medication(
            user_id, cycle_id, day_number, medication.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "adding day-specific medication")

@router.put("/{cycle_id}/days/{day_number}/medications/{medication_id}")
async def update_day_specific_medication(cycle_id: str, day_number: int, medication_id: str,
                                         updates: DaySpecificMedicationUpdate,
                                         user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().update_day_specific_medication(
            user_id, cycle_id, day_number, medication_id, updates.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "updating day-specific medication")

@router.delete("/{cycle_id}/days/{day_number}/medications/{medication_id}")
async def delete_day_specific_medication(cycle_id: str, day_number: int, medication_id: str,
                                         user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_day_specific_medication(user_id, cycle_id, day_number, medication_id)
        return {"success": True, "message": "Medication deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting day-specific medication")

# Flat medication records

@router.get("/{cycle_id}/flat-medications")
async def list_flat_medications(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        medications = await get_tracker_store().list_flat_medications(user_id, cycle_id)
        return {"success": True, "medications": medications, "count": len(medications)}

    except Exception as e:
        raise to_http_exception(e, "listing flat medications")

@router.post("/{cycle_id}/flat-medications")
async def add_flat_medication(cycle_id: str, medication: FlatMedicationCreate,
                              user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().add_flat_medication(
            user_id, cycle_id, medication.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "adding flat medication")

@router.get("/{cycle_id}/flat-medications/day/{day_number}")
async def get_flat_day_view(cycle_id: str, day_number: int, user_id: str = Depends(get_active_user_id)):
    try:
        day = await get_tracker_store().get_flat_day_view(user_id, cycle_id, day_number)
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, "getting flat day view")

@router.post("/{cycle_id}/flat-medications/template")
async def apply_medication_template(cycle_id: str, template: TemplateApply,
                                    user_id: str = Depends(get_active_user_id)):
    try:
        added = await get_tracker_store().apply_medication_template(user_id, cycle_id, template.template)
        print(f"💊 Applied {template.template}: {len(added)} records added")
        return {"success": True, "medications": added, "count": len(added)}

    except Exception as e:
        raise to_http_exception(e, "applying medication template")

@router.post("/{cycle_id}/flat-medications/migrate")
async def migrate_cycle_medications(cycle_id: str, options: Optional[MigrationOptions] = None,
                                    user_id: str = Depends(get_active_user_id)):
    """Copy the schedule and daily statuses into flat records"""
    try:
        options = options or MigrationOptions()
        result = await get_tracker_store().migrate_cycle_medications(
            user_id, cycle_id,
            preserve_timestamps=options.preserveTimestamps,
            skip_incomplete_data=options.skipIncompleteData
        )
        return {"success": True, **result}

    except Exception as e:
        raise to_http_exception(e, "migrating medications")

@router.put("/{cycle_id}/flat-medications/{medication_id}")
async def update_flat_medication(cycle_id: str, medication_id: str, updates: FlatMedicationUpdate,
                                 user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().update_flat_medication(
            user_id, cycle_id, medication_id, updates.model_dump(exclude_none=True)
        )
        return {"success": True, "medication": record}

    except Exception as e:
        raise to_http_exception(e, "updating flat medication")

@router.delete("/{cycle_id}/flat-medications/{medication_id}")
async def delete_flat_medication(cycle_id: str, medication_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_flat_medication(user_id, cycle_id, medication_id)
        return {"success": True, "message": "Medication deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting flat medication")
