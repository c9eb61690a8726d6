# api/records.py
from fastapi import APIRouter, HTTPException, Depends

from models.record_schemas import (
    ProcedureCreate,
    ProcedureUpdate,
    NaturalPregnancyCreate,
    NaturalPregnancyUpdate,
    UserProfileSave,
    DatePreferenceSave,
)
from services.tracker_store import get_tracker_store
from services.date_preferences import get_date_preferences_service
from api.users import get_active_user_id
from utils.error_utils import to_http_exception

router = APIRouter()

PROCEDURES = 'procedures'
NATURAL_PREGNANCIES = 'naturalPregnancies'

# Procedures

@router.get("/procedures")
async def list_procedures(user_id: str = Depends(get_active_user_id)):
    try:
        procedures = await get_tracker_store().list_records(user_id, PROCEDURES)
        return {"success": True, "procedures": procedures}

    except Exception as e:
        raise to_http_exception(e, "listing procedures")

@router.post("/procedures")
async def create_procedure(procedure: ProcedureCreate, user_id: str = Depends(get_active_user_id)):
    try:
        print(f"🔍 Saving procedure: {procedure.procedureType} on {procedure.procedureDate}")
        record = await get_tracker_store().create_record(user_id, PROCEDURES, procedure.model_dump(exclude_none=True))
        return {"success": True, "procedure": record}

    except Exception as e:
        raise to_http_exception(e, "creating procedure")

@router.put("/procedures/{procedure_id}")
async def update_procedure(procedure_id: str, updates: ProcedureUpdate, user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().update_record(
            user_id, PROCEDURES, procedure_id, updates.model_dump(exclude_none=True)
        )
        return {"success": True, "procedure": record}

    except Exception as e:
        raise to_http_exception(e, "updating procedure")

@router.delete("/procedures/{procedure_id}")
async def delete_procedure(procedure_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_record(user_id, PROCEDURES, procedure_id)
        return {"success": True, "message": "Procedure deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting procedure")

# Natural pregnancies

@router.get("/natural-pregnancies")
async def list_natural_pregnancies(user_id: str = Depends(get_active_user_id)):
    try:
        pregnancies = await get_tracker_store().list_records(user_id, NATURAL_PREGNANCIES)
        return {"success": True, "naturalPregnancies": pregnancies}

    except Exception as e:
        raise to_http_exception(e, "listing natural pregnancies")

@router.post("/natural-pregnancies")
async def create_natural_pregnancy(pregnancy: NaturalPregnancyCreate, user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().create_record(
            user_id, NATURAL_PREGNANCIES, pregnancy.model_dump(exclude_none=True)
        )
        return {"success": True, "naturalPregnancy": record}

    except Exception as e:
        raise to_http_exception(e, "creating natural pregnancy")

@router.put("/natural-pregnancies/{pregnancy_id}")
async def update_natural_pregnancy(pregnancy_id: str, updates: NaturalPregnancyUpdate,
                                   user_id: str = Depends(get_active_user_id)):
    try:
        record = await get_tracker_store().update_record(
            user_id, NATURAL_PREGNANCIES, pregnancy_id, updates.model_dump(exclude_none=True)
        )
        return {"success": True, "naturalPregnancy": record}

    except Exception as e:
        raise to_http_exception(e, "updating natural pregnancy")

@router.delete("/natural-pregnancies/{pregnancy_id}")
async def delete_natural_pregnancy(pregnancy_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_record(user_id, NATURAL_PREGNANCIES, pregnancy_id)
        return {"success": True, "message": "Natural pregnancy deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting natural pregnancy")

# Profile

@router.get("/profile")
async def get_user_profile(user_id: str = Depends(get_active_user_id)):
    try:
        profile = await get_tracker_store().get_user_profile(user_id)
        return {"success": True, "profile": profile}

    except Exception as e:
        raise to_http_exception(e, "getting profile")

@router.put("/profile")
async def save_user_profile(profile: UserProfileSave, user_id: str = Depends(get_active_user_id)):
    try:
        saved = await get_tracker_store().save_user_profile(user_id, profile.model_dump(exclude_none=True))
        return {"success": True, "profile": saved}

    except Exception as e:
        raise to_http_exception(e, "saving profile")

# Date picker preferences

@router.get("/date-preferences")
async def get_date_preferences(user_id: str = Depends(get_active_user_id)):
    preferences = get_date_preferences_service().get_preferences(user_id)
    return {"success": True, "preferences": preferences}

@router.put("/date-preferences")
async def save_date_preference(preference: DatePreferenceSave, user_id: str = Depends(get_active_user_id)):
    try:
        preferences = get_date_preferences_service().save_date(user_id, preference.dateType, preference.date)
        return {"success": True, "preferences": preferences}

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/date-preferences/{date_type}/default-month")
async def get_default_month(date_type: str, user_id: str = Depends(get_active_user_id)):
    """Month a date picker should open on"""
    month = get_date_preferences_service().get_default_month(user_id, date_type)
    return {"success": True, "month": month}
