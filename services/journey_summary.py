# services/journey_summary.py
"""Cross-cycle rollups for the summary and comparison screens"""
from datetime import date
from typing import Dict, List, Optional, Any

from utils.date_utils import parse_date, months_between

RETRIEVAL_TOTAL_FIELDS = {
    'totalEggs': 'eggsRetrieved',
    'totalMatureEggs': 'matureEggs',
    'totalFertilized': 'fertilized',
    'totalEmbryos': 'day3Embryos',
    'totalBlastocysts': 'blastocysts',
    'totalFrozenEmbryos': 'frozen',
    'totalTested': 'embryosTested',
    'totalNormal': 'euploidBlastocysts',
}

CYCLE_COST_FIELDS = ('cycleCost', 'pgtCost', 'medicationsCost', 'storageCost')


def as_number(value: Any) -> float:
    """Numeric value of a stored field; numeric strings are parsed, anything else is 0"""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value) if isinstance(value, str) else 0
    except ValueError:
        return 0


def percentage(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator * 100, or None when the denominator is 0"""
    if not denominator:
        return None
    return numerator / denominator * 100


def retrieval_totals(cycles: List[Dict[str, Any]]) -> Dict[str, float]:
    totals = {key: 0 for key in RETRIEVAL_TOTAL_FIELDS}
    for cycle in cycles:
        if cycle.get('cycleGoal') != 'retrieval':
            continue
        outcome = cycle.get('outcome')
        if not outcome:
            continue
        for key, field in RETRIEVAL_TOTAL_FIELDS.items():
            totals[key] += as_number(outcome.get(field))
    return totals


def success_rates(totals: Dict[str, float]) -> Optional[Dict[str, Optional[float]]]:
    """
    Maturity, fertilization and blastocyst rates. None overall when no eggs were
    retrieved; an individual rate is None when its own denominator is 0.
    """
    if not totals.get('totalEggs'):
        return None

    return {
        'matureRate': percentage(totals['totalMatureEggs'], totals['totalEggs']),
        'fertilizationRate': percentage(totals['totalFertilized'], totals['totalMatureEggs']),
        'blastocystRate': percentage(totals['totalBlastocysts'], totals['totalFertilized']),
    }


def transfer_outcomes(cycles: List[Dict[str, Any]]) -> Dict[str, int]:
    transfers = [c for c in cycles if c.get('cycleGoal') == 'transfer']
    pregnancies = 0
    live_births = 0
    for cycle in transfers:
        outcome = cycle.get('outcome') or {}
        if outcome.get('transferStatus') == 'successful':
            pregnancies += 1
            if outcome.get('liveBirth') == 'yes':
                live_births += 1
    return {'pregnancies': pregnancies, 'liveBirths': live_births, 'total': len(transfers)}


def cycle_cost_breakdown(cycle: Dict[str, Any]) -> Dict[str, Any]:
    costs = cycle.get('costs') or {}
    total = sum(as_number(costs.get(field)) for field in CYCLE_COST_FIELDS)
    insurance = as_number(costs.get('insuranceCoverage'))
    return {
        'cycleId': cycle.get('id'),
        'costs': {field: costs.get(field) for field in CYCLE_COST_FIELDS + ('insuranceCoverage',)},
        'totalCost': total,
        'insuranceCoverage': insurance,
        'netCost': total - insurance,
    }


def total_costs(cycles: List[Dict[str, Any]], procedures: List[Dict[str, Any]]) -> Dict[str, float]:
    spent = 0
    insurance = 0

    for cycle in cycles:
        if cycle.get('costs'):
            breakdown = cycle_cost_breakdown(cycle)
            spent += breakdown['totalCost']
            insurance += breakdown['insuranceCoverage']

    for procedure in procedures:
        spent += as_number(procedure.get('cost'))
        insurance += as_number(procedure.get('insuranceCoverage'))

    return {'totalSpent': spent, 'totalInsurance': insurance, 'netCost': spent - insurance}


def protocol_tallies(cycles: List[Dict[str, Any]], goal: str) -> Dict[str, int]:
    tallies: Dict[str, int] = {}
    for cycle in cycles:
        if cycle.get('cycleGoal') != goal:
            continue
        protocol = cycle.get('cycleType') or 'other'
        tallies[protocol] = tallies.get(protocol, 0) + 1
    return tallies


def journey_timeline(cycles, procedures, natural_pregnancies, today: Optional[date] = None) -> Dict[str, Any]:
    dates = [parse_date(c.get('startDate')) for c in cycles]
    dates += [parse_date(p.get('procedureDate')) for p in procedures]
    dates += [parse_date(p.get('dateOfConception')) for p in natural_pregnancies]
    dates = sorted(d for d in dates if d is not None)

    start = dates[0] if dates else None
    most_recent = dates[-1] if dates else (today or date.today())

    return {
        'startDate': start.isoformat() if start else None,
        'mostRecentDate': most_recent.isoformat(),
        'journeyDuration': months_between(start, most_recent) if start else 0,
        'totalActivities': len(cycles) + len(procedures) + len(natural_pregnancies),
    }


def build_journey_summary(state: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Whole-journey summary recomputed from the current state snapshot"""
    cycles = state.get('cycles') or []
    procedures = state.get('procedures') or []
    natural_pregnancies = state.get('naturalPregnancies') or []

    totals = retrieval_totals(cycles)

    procedures_by_type: Dict[str, int] = {}
    for procedure in procedures:
        procedure_type = procedure.get('procedureType') or 'Other'
        procedures_by_type[procedure_type] = procedures_by_type.get(procedure_type, 0) + 1

    return {
        'timeline': journey_timeline(cycles, procedures, natural_pregnancies, today),
        'cycles': {
            'total': len(cycles),
            'retrievals': sum(1 for c in cycles if c.get('cycleGoal') == 'retrieval'),
            'transfers': sum(1 for c in cycles if c.get('cycleGoal') == 'transfer'),
            'completed': sum(1 for c in cycles if c.get('status') == 'completed'),
            'active': sum(1 for c in cycles if c.get('status') == 'active'),
        },
        'retrievals': totals,
        'successRates': success_rates(totals),
        'transfers': transfer_outcomes(cycles),
        'procedures': {
            'total': len(procedures),
            'byType': procedures_by_type,
        },
        'costs': total_costs(cycles, procedures),
        'retrievalProtocols': protocol_tallies(cycles, 'retrieval'),
        'transferProtocols': protocol_tallies(cycles, 'transfer'),
        'naturalPregnancies': len(natural_pregnancies),
    }
