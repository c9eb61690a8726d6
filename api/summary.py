# api/summary.py
from fastapi import APIRouter, HTTPException, Depends

from models.cycle_schemas import CycleComparisonRequest
from services.tracker_store import get_tracker_store
from services.journey_summary import cycle_cost_breakdown, total_costs
from services.cycle_ranking import (
    METRIC_KEYS,
    find_best_cycles,
    compare_best_cycles,
    get_available_metrics,
    get_available_metrics_for_comparison,
)
from api.users import get_active_user_id
from utils.error_utils import to_http_exception

router = APIRouter()

def _check_metric(metric: str):
    if metric not in METRIC_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown metric: {metric}")

@router.get("/journey")
async def get_journey_summary(user_id: str = Depends(get_active_user_id)):
    """Whole-journey rollup: totals, success rates, transfers, costs, protocols"""
    try:
        summary = await get_tracker_store().get_journey_summary(user_id)
        return {"success": True, "summary": summary}

    except Exception as e:
        raise to_http_exception(e, "building journey summary")

@router.get("/costs")
async def get_cycle_costs(user_id: str = Depends(get_active_user_id)):
    try:
        state = await get_tracker_store().load_state(user_id)
        cycles = [cycle_cost_breakdown(c) for c in state['cycles'] if c.get('costs')]
        return {
            "success": True,
            "cycles": cycles,
            "totals": total_costs(state['cycles'], state['procedures']),
        }

    except Exception as e:
        raise to_http_exception(e, "summarizing costs")

@router.get("/metrics")
async def get_metrics(user_id: str = Depends(get_active_user_id)):
    """Metrics that apply to the active user's cycles"""
    try:
        cycles = await get_tracker_store().list_cycles(user_id)
        return {"success": True, "metrics": get_available_metrics(cycles)}

    except Exception as e:
        raise to_http_exception(e, "listing metrics")

@router.get("/best-cycles/{metric}")
async def get_best_cycles(metric: str, user_id: str = Depends(get_active_user_id)):
    try:
        _check_metric(metric)
        cycles = await get_tracker_store().list_cycles(user_id)
        return {"success": True, "best": find_best_cycles(cycles, metric)}

    except Exception as e:
        raise to_http_exception(e, "ranking cycles")

@router.post("/compare")
async def compare_cycles(request: CycleComparisonRequest, user_id: str = Depends(get_active_user_id)):
    """Compare the active user's best cycle with the best of the supplied cycles"""
    try:
        _check_metric(request.metric)
        cycles = await get_tracker_store().list_cycles(user_id)
        their_cycles = [cycle.model_dump(exclude_none=True) for cycle in request.theirCycles]
        return {
            "success": True,
            "comparison": compare_best_cycles(cycles, their_cycles, request.metric),
            "availableMetrics": get_available_metrics_for_comparison(cycles, their_cycles),
        }

    except Exception as e:
        raise to_http_exception(e, "comparing cycles")
