# api/cycles.py
from fastapi import APIRouter, HTTPException, Depends

from models.cycle_schemas import CycleCreate, CycleUpdate, CycleOutcome, CycleCosts, CycleDayCreate, CycleDayUpdate
from services.tracker_store import get_tracker_store
from api.users import get_active_user_id
from utils.error_utils import to_http_exception

router = APIRouter()

@router.get("")
async def list_cycles(user_id: str = Depends(get_active_user_id)):
    """All cycles for the active user, newest start date first"""
    try:
        cycles = await get_tracker_store().list_cycles(user_id)
        return {"success": True, "cycles": cycles, "count": len(cycles)}

    except Exception as e:
        raise to_http_exception(e, "listing cycles")

@router.post("")
async def create_cycle(cycle_data: CycleCreate, user_id: str = Depends(get_active_user_id)):
    try:
        print(f"🔍 Creating {cycle_data.cycleGoal} cycle: {cycle_data.name}")
        cycle = await get_tracker_store().create_cycle(user_id, cycle_data.model_dump(exclude_none=True))
        return {"success": True, "cycle": cycle}

    except Exception as e:
        raise to_http_exception(e, "creating cycle")

@router.get("/{cycle_id}")
async def get_cycle(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        cycle = await get_tracker_store().get_cycle(user_id, cycle_id)
        if not cycle:
            raise HTTPException(status_code=404, detail="Cycle not found")
        return {"success": True, "cycle": cycle}

    except Exception as e:
        raise to_http_exception(e, "getting cycle")

@router.put("/{cycle_id}")
async def update_cycle(cycle_id: str, cycle_data: CycleUpdate, user_id: str = Depends(get_active_user_id)):
    try:
        updates = cycle_data.model_dump(exclude_unset=True)
        cycle = await get_tracker_store().update_cycle(user_id, cycle_id, updates)
        return {"success": True, "cycle": cycle}

    except Exception as e:
        raise to_http_exception(e, "updating cycle")

@router.delete("/{cycle_id}")
async def delete_cycle(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_cycle(user_id, cycle_id)
        return {"success": True, "message": "Cycle deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting cycle")

@router.put("/{cycle_id}/outcome")
async def update_cycle_outcome(cycle_id: str, outcome: CycleOutcome, user_id: str = Depends(get_active_user_id)):
    """Merge outcome fields into the cycle's existing outcome"""
    try:
        merged = await get_tracker_store().update_cycle_outcome(
            user_id, cycle_id, outcome.model_dump(exclude_unset=True)
        )
        return {"success": True, "outcome": merged}

    except Exception as e:
        raise to_http_exception(e, "updating cycle outcome")

@router.put("/{cycle_id}/costs")
async def update_cycle_costs(cycle_id: str, costs: CycleCosts, user_id: str = Depends(get_active_user_id)):
    try:
        saved = await get_tracker_store().update_cycle_costs(user_id, cycle_id, costs.model_dump(exclude_none=True))
        return {"success": True, "costs": saved}

    except Exception as e:
        raise to_http_exception(e, "updating cycle costs")

# Cycle days

@router.post("/{cycle_id}/days")
async def add_cycle_day(cycle_id: str, day_data: CycleDayCreate, user_id: str = Depends(get_active_user_id)):
    """Add a day; cycleDay and date are derived from each other when one is missing"""
    try:
        day = await get_tracker_store().add_day(user_id, cycle_id, day_data.model_dump(exclude_none=True))
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, "adding cycle day")

@router.put("/{cycle_id}/days/{day_id}")
async def update_cycle_day(cycle_id: str, day_id: str, day_data: CycleDayUpdate,
                           user_id: str = Depends(get_active_user_id)):
    try:
        day = await get_tracker_store().update_day(
            user_id, cycle_id, day_id, day_data.model_dump(exclude_unset=True)
        )
        return {"success": True, "day": day}

    except Exception as e:
        raise to_http_exception(e, "updating cycle day")

@router.delete("/{cycle_id}/days/{day_id}")
async def delete_cycle_day(cycle_id: str, day_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        await get_tracker_store().delete_day(user_id, cycle_id, day_id)
        return {"success": True, "message": "Day deleted"}

    except Exception as e:
        raise to_http_exception(e, "deleting cycle day")

# Derived views

@router.get("/{cycle_id}/with-medications")
async def get_cycle_with_medications(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    """The cycle with every day's reconciled medications attached"""
    try:
        cycle = await get_tracker_store().get_cycle_with_medications(user_id, cycle_id)
        if not cycle:
            raise HTTPException(status_code=404, detail="Cycle not found")
        return {"success": True, "cycle": cycle}

    except Exception as e:
        raise to_http_exception(e, "getting cycle with medications")

@router.get("/{cycle_id}/protocol")
async def get_protocol_details(cycle_id: str, user_id: str = Depends(get_active_user_id)):
    try:
        protocol = await get_tracker_store().get_protocol_details(user_id, cycle_id)
        return {"success": True, **protocol}

    except Exception as e:
        raise to_http_exception(e, "extracting protocol details")
