import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union
from ..config import settings
from ..models.labor import (
    CategoryRate, CompositeRateInfo, CraftType, LaborActualRecord, NormalizedActual,
    RateTrendPoint, RunningAverage, LABOR_CATEGORIES
)
from ..utils.dates import today as current_date, week_ending_date
from ..utils.numeric import finite, safe_divide
from .category_resolver import craft_lookup, normalize_actuals, as_record_dict

RawActual = Union[LaborActualRecord, Dict]


def to_actual_records(actuals: Iterable[RawActual]) -> List[LaborActualRecord]:
    records = []
    for raw in actuals or []:
        records.append(raw if isinstance(raw, LaborActualRecord) else LaborActualRecord(**as_record_dict(raw)))
    return records


def _has_hours(hours: Optional[float]) -> bool:
    return hours is not None and finite(hours) > 0


def calculate_labor_rates_by_craft(actuals: Iterable[RawActual]) -> Dict[str, float]:
    """Weighted average rate per craft: sum(cost) / sum(hours).

    Cost prefers the burdened figure. Records without positive hours are left
    out of both sums so they cannot drag the average toward zero.
    """
    totals: Dict[str, List[float]] = {}
    for record in to_actual_records(actuals):
        if not record.craft_type_id or not _has_hours(record.actual_hours):
            continue
        bucket = totals.setdefault(record.craft_type_id, [0.0, 0.0])
        bucket[0] += finite(record.effective_cost)
        bucket[1] += finite(record.actual_hours)

    return {craft_id: cost / hours for craft_id, (cost, hours) in totals.items() if hours > 0}


def calculate_labor_rates_by_category(
    actuals: Iterable[RawActual],
    craft_types: Optional[Iterable] = None
) -> Dict[str, float]:
    totals: Dict[str, List[float]] = {}
    for record in normalize_actuals(actuals, craft_types):
        if record.hours <= 0:
            continue
        bucket = totals.setdefault(record.category, [0.0, 0.0])
        bucket[0] += record.cost
        bucket[1] += record.hours

    return {category: cost / hours for category, (cost, hours) in totals.items() if hours > 0}


def apply_burden(cost: float, burden_rate: Optional[float] = None) -> float:
    rate = settings.BURDEN_RATE if burden_rate is None else burden_rate
    return finite(cost) * (1 + rate)


def _window_start(reference: date, weeks_back: int) -> date:
    return reference - timedelta(days=weeks_back * 7)


def calculate_running_averages(
    actuals: Iterable[RawActual],
    craft_types: Optional[Sequence[Union[CraftType, Dict]]] = None,
    weeks_back: int = 12,
    today: Optional[date] = None
) -> List[RunningAverage]:
    """Per-craft average rates over the trailing window, with weekly trends"""
    reference = today or current_date()
    start = _window_start(reference, weeks_back)
    end = week_ending_date(reference)
    lookup = craft_lookup(craft_types)

    weekly: Dict[str, Dict[date, List[float]]] = defaultdict(lambda: defaultdict(lambda: [0.0, 0.0]))
    for record in to_actual_records(actuals):
        if not record.craft_type_id or not record.week_ending or not _has_hours(record.actual_hours):
            continue
        week = week_ending_date(record.week_ending)
        if week < start or week > end:
            continue
        bucket = weekly[record.craft_type_id][week]
        bucket[0] += finite(record.effective_cost)
        bucket[1] += finite(record.actual_hours)

    craft_ids = list(lookup.keys()) + [craft_id for craft_id in weekly if craft_id not in lookup]
    averages: List[RunningAverage] = []
    for craft_id in craft_ids:
        craft = lookup.get(craft_id)
        weeks = weekly.get(craft_id, {})
        trends = [
            RateTrendPoint(week_ending=week, cost=cost, hours=hours, rate=safe_divide(cost, hours))
            for week, (cost, hours) in sorted(weeks.items())
        ]
        total_cost = sum(point.cost for point in trends)
        total_hours = sum(point.hours for point in trends)
        averages.append(RunningAverage(
            craft_type_id=craft_id,
            craft_name=craft.name if craft else None,
            craft_code=craft.code if craft else None,
            labor_category=(craft.category if craft and craft.category else 'direct'),
            avg_rate=safe_divide(total_cost, total_hours),
            total_hours=total_hours,
            total_cost=total_cost,
            weeks_of_data=len(trends),
            last_actual_week=trends[-1].week_ending if trends else None,
            trends=trends
        ))
    return averages


def category_rates_from_running_averages(averages: Iterable[RunningAverage]) -> Dict[str, float]:
    """Mean of the positive craft rates in each category"""
    rates: Dict[str, List[float]] = defaultdict(list)
    for average in averages:
        category = (average.labor_category or '').lower()
        if category in LABOR_CATEGORIES and average.avg_rate > 0:
            rates[category].append(average.avg_rate)
    return {category: sum(values) / len(values) for category, values in rates.items()}


def calculate_composite_rate(
    actuals: Iterable[RawActual],
    craft_types: Optional[Iterable] = None,
    weeks_back: int = 12,
    today: Optional[date] = None,
    categories: Optional[Sequence[str]] = None
) -> CompositeRateInfo:
    """Blended cost per hour across categories, overall and for recent weeks"""
    reference = today or current_date()
    start = _window_start(reference, weeks_back)
    recent_start = _window_start(reference, settings.RECENT_RATE_WEEKS)
    end = week_ending_date(reference)
    included = set(categories or LABOR_CATEGORIES)

    records: List[NormalizedActual] = [
        record for record in normalize_actuals(actuals, craft_types)
        if record.hours > 0 and record.category in included and start <= record.week_ending <= end
    ]

    weekly: Dict[date, List[float]] = defaultdict(lambda: [0.0, 0.0])
    category_rates = {category: CategoryRate() for category in LABOR_CATEGORIES}
    recent_cost = recent_hours = 0.0

    for record in records:
        weekly[record.week_ending][0] += record.cost
        weekly[record.week_ending][1] += record.hours
        category_rates[record.category].cost += record.cost
        category_rates[record.category].hours += record.hours
        if record.week_ending >= recent_start:
            recent_cost += record.cost
            recent_hours += record.hours

    for rate in category_rates.values():
        rate.rate = safe_divide(rate.cost, rate.hours)

    total_cost = sum(record.cost for record in records)
    total_hours = sum(record.hours for record in records)
    logging.info(f"Composite rate over {len(weekly)} weeks from {len(records)} actuals")

    return CompositeRateInfo(
        overall=safe_divide(total_cost, total_hours),
        recent=safe_divide(recent_cost, recent_hours),
        total_hours=total_hours,
        total_cost=total_cost,
        weeks_of_data=len(weekly),
        category_rates=category_rates,
        weekly_trend=[
            RateTrendPoint(week_ending=week, cost=cost, hours=hours, rate=safe_divide(cost, hours))
            for week, (cost, hours) in sorted(weekly.items())
        ]
    )
