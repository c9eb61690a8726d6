# services/cycle_ranking.py
from typing import Dict, List, Optional, Any

from services.journey_summary import as_number
from utils.date_utils import parse_date

RETRIEVAL_METRICS = ('mature-eggs', 'blastocysts', 'euploids')
TRANSFER_METRICS = ('transfer-success',)

# A beta hCG at or above this level counts as a positive transfer
POSITIVE_BETA_HCG = 25

CYCLE_METRICS = [
    {
        'key': 'mature-eggs',
        'label': 'Mature Eggs',
        'description': 'Number of mature (MII) eggs - the foundation of a successful cycle',
        'availableFor': ['retrieval'],
        'requiresOutcome': True,
    },
    {
        'key': 'blastocysts',
        'label': 'Blastocysts',
        'description': 'Number of embryos that reached blastocyst stage - quality indicator',
        'availableFor': ['retrieval'],
        'requiresOutcome': True,
    },
    {
        'key': 'euploids',
        'label': 'Euploid Embryos',
        'description': 'Number of chromosomally normal embryos - your transferable options',
        'availableFor': ['retrieval'],
        'requiresOutcome': True,
    },
    {
        'key': 'transfer-success',
        'label': 'Transfer Success',
        'description': 'Positive beta hCG (pregnancy achieved)',
        'availableFor': ['transfer'],
        'requiresOutcome': True,
    },
]

METRIC_KEYS = [m['key'] for m in CYCLE_METRICS]


def get_cycle_metric_value(cycle: Dict[str, Any], metric: str) -> float:
    outcome = cycle.get('outcome')
    if not outcome:
        return 0

    if metric == 'mature-eggs':
        return as_number(outcome.get('matureEggs'))
    if metric == 'blastocysts':
        return as_number(outcome.get('blastocysts'))
    if metric == 'euploids':
        return as_number(outcome.get('euploidBlastocysts'))
    if metric == 'transfer-success':
        positive = (
            outcome.get('transferStatus') == 'successful'
            or outcome.get('liveBirth') == 'yes'
            or as_number(outcome.get('betaHcg1')) >= POSITIVE_BETA_HCG
            or as_number(outcome.get('betaHcg2')) >= POSITIVE_BETA_HCG
        )
        return 1 if positive else 0
    return 0


def _is_eligible(cycle: Dict[str, Any], metric: str) -> bool:
    if not cycle.get('outcome'):
        return False
    if metric in RETRIEVAL_METRICS:
        return cycle.get('cycleGoal') == 'retrieval'
    if metric in TRANSFER_METRICS:
        return cycle.get('cycleGoal') == 'transfer'
    return True


def _start_key(cycle: Dict[str, Any]):
    start = parse_date(cycle.get('startDate'))
    return start.toordinal() if start else 0


def find_best_cycles(cycles: List[Dict[str, Any]], metric: str) -> Optional[Dict[str, Any]]:
    """
    Every eligible cycle tied at the best value, with its chronological rank
    among all cycles (1 = first cycle), most recent first.
    """
    eligible = [c for c in cycles if _is_eligible(c, metric)]
    if not eligible:
        return None

    best_value = max(get_cycle_metric_value(c, metric) for c in eligible)
    best = [c for c in eligible if get_cycle_metric_value(c, metric) == best_value]

    chronological = sorted(cycles, key=_start_key)
    ranks = {c.get('id'): index + 1 for index, c in enumerate(chronological)}

    ranked = [
        {'cycle': c, 'value': best_value, 'rank': ranks.get(c.get('id'))}
        for c in best
    ]
    ranked.sort(key=lambda r: _start_key(r['cycle']), reverse=True)

    return {'cycles': ranked, 'hasTies': len(ranked) > 1}


def find_best_cycle(cycles: List[Dict[str, Any]], metric: str) -> Optional[Dict[str, Any]]:
    result = find_best_cycles(cycles, metric)
    return result['cycles'][0] if result else None


def compare_best_cycles(your_cycles, their_cycles, metric: str) -> Optional[Dict[str, Any]]:
    your_best = find_best_cycle(your_cycles, metric)
    their_best = find_best_cycle(their_cycles, metric)

    if not your_best or not their_best:
        return None

    # Retrieval and transfer cycles are not comparable
    if your_best['cycle'].get('cycleGoal') != their_best['cycle'].get('cycleGoal'):
        return None

    difference = your_best['value'] - their_best['value']
    if their_best['value'] == 0:
        percentage_difference = 100 if your_best['value'] > 0 else 0
    else:
        percentage_difference = round(difference / their_best['value'] * 100)

    if your_best['value'] > their_best['value']:
        winner = 'you'
    elif their_best['value'] > your_best['value']:
        winner = 'them'
    else:
        winner = 'tie'

    return {
        'metric': metric,
        'yourBestCycle': your_best,
        'theirBestCycle': their_best,
        'comparison': {
            'winner': winner,
            'difference': abs(difference),
            'percentageDifference': abs(percentage_difference),
        },
    }


def get_available_metrics(cycles: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    has_outcomes = any(c.get('outcome') for c in cycles)
    goals = {c.get('cycleGoal') for c in cycles}

    return [
        metric for metric in CYCLE_METRICS
        if any(goal in goals for goal in metric['availableFor'])
        and (not metric['requiresOutcome'] or has_outcomes)
    ]


def get_available_metrics_for_comparison(your_cycles, their_cycles) -> List[Dict[str, Any]]:
    your_goals = {c.get('cycleGoal') for c in your_cycles}
    their_goals = {c.get('cycleGoal') for c in their_cycles}
    both_have_outcomes = any(c.get('outcome') for c in your_cycles) and any(c.get('outcome') for c in their_cycles)

    return [
        metric for metric in CYCLE_METRICS
        if any(goal in your_goals and goal in their_goals for goal in metric['availableFor'])
        and (not metric['requiresOutcome'] or both_have_outcomes)
    ]
