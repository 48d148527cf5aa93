import logging
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, Optional
from ..config import settings
from ..models.analytics import (
    CraftBreakdown, LaborAnalytics, LaborKPIs, PeriodBreakdown, WeeklyTrend
)
from ..models.labor import CraftType, HeadcountForecastRecord
from ..utils.dates import week_ending_date
from ..utils.numeric import finite, round_cents, safe_divide, sanitize
from .category_resolver import as_record_dict, craft_lookup
from .labor_rate_service import RawActual, calculate_labor_rates_by_craft, to_actual_records


def _forecast_records(forecasts: Iterable) -> List[HeadcountForecastRecord]:
    return [
        raw if isinstance(raw, HeadcountForecastRecord) else HeadcountForecastRecord(**as_record_dict(raw))
        for raw in forecasts or []
    ]


def forecast_rate(
    forecast: HeadcountForecastRecord,
    craft: Optional[CraftType],
    craft_rates: Dict[str, float]
) -> float:
    """Supplied rate, then the craft's realized rate, then its billing or default rate"""
    return (
        forecast.rate
        or craft_rates.get(forecast.craft_type_id or '')
        or (craft.billing_rate if craft else None)
        or (craft.default_rate if craft else None)
        or settings.DEFAULT_LABOR_RATE
    )


def _craft_key(craft_id: Optional[str], craft: Optional[CraftType]) -> Optional[str]:
    if craft is not None and craft.code:
        return craft.code
    return craft_id


def build_labor_analytics(
    actuals: Iterable[RawActual],
    forecasts: Iterable,
    craft_types: Optional[Iterable] = None,
    budgeted_cost: float = 0.0,
    completion_percent: float = 0.0,
    period_limit: int = 8
) -> LaborAnalytics:
    """Roll labor actuals and headcount forecasts into KPI, craft and weekly views.

    Every number in the result is finite; zero denominators come out as 0.
    """
    crafts = craft_lookup(craft_types)
    actual_records = to_actual_records(actuals)
    forecast_records = _forecast_records(forecasts)
    craft_rates = calculate_labor_rates_by_craft(actual_records)

    breakdown: "OrderedDict[str, CraftBreakdown]" = OrderedDict()
    weeks: Dict[date, WeeklyTrend] = {}

    def craft_row(craft_id: Optional[str]) -> Optional[CraftBreakdown]:
        craft = crafts.get(craft_id) if craft_id else None
        key = _craft_key(craft_id, craft)
        if key is None:
            return None
        if key not in breakdown:
            breakdown[key] = CraftBreakdown(
                craft_code=key,
                craft_name=craft.name if craft else None,
                labor_category=craft.category if craft else None
            )
        return breakdown[key]

    def week_row(value) -> Optional[WeeklyTrend]:
        if not value:
            return None
        try:
            week = week_ending_date(value)
        except ValueError:
            logging.warning(f"Skipping record with unreadable week: {value}")
            return None
        if week not in weeks:
            weeks[week] = WeeklyTrend(week_ending=week)
        return weeks[week]

    total_actual_cost = total_actual_hours = 0.0
    for record in actual_records:
        hours = finite(record.actual_hours)
        cost = finite(record.effective_cost)
        total_actual_hours += hours
        total_actual_cost += cost

        row = craft_row(record.craft_type_id)
        if row is not None:
            row.actual_hours += hours
            row.actual_cost += cost
        week = week_row(record.week_ending)
        if week is not None:
            week.actual_hours += hours
            week.actual_cost += cost

    total_forecast_cost = total_forecast_hours = 0.0
    for forecast in forecast_records:
        craft = crafts.get(forecast.craft_type_id) if forecast.craft_type_id else None
        hours = finite(forecast.headcount) * (finite(forecast.avg_weekly_hours) or settings.HOURS_PER_PERSON)
        cost = hours * forecast_rate(forecast, craft, craft_rates)
        total_forecast_hours += hours
        total_forecast_cost += cost

        row = craft_row(forecast.craft_type_id)
        if row is not None:
            row.forecast_hours += hours
            row.forecast_cost += cost
        week = week_row(forecast.week_starting or forecast.week_ending)
        if week is not None:
            week.forecast_hours += hours
            week.forecast_cost += cost

    budget = finite(budgeted_cost)
    variance = total_actual_cost - budget
    kpis = LaborKPIs(
        total_actual_cost=total_actual_cost,
        total_forecasted_cost=total_forecast_cost,
        total_budgeted_cost=budget,
        variance_dollars=variance,
        variance_percent=safe_divide(variance, budget) * 100,
        total_actual_hours=total_actual_hours,
        total_forecasted_hours=total_forecast_hours,
        average_actual_rate=safe_divide(total_actual_cost, total_actual_hours),
        average_forecast_rate=safe_divide(total_forecast_cost, total_forecast_hours),
        labor_burn_percent=safe_divide(total_actual_cost, budget) * 100,
        project_completion_percent=finite(completion_percent)
    )

    for row in breakdown.values():
        row.variance_hours = row.actual_hours - row.forecast_hours
        row.variance_cost = row.actual_cost - row.forecast_cost
        row.variance_percent = safe_divide(row.variance_cost, row.forecast_cost) * 100

    trends = []
    for week in sorted(weeks.values(), key=lambda w: w.week_ending):
        week.composite_rate = round_cents(safe_divide(week.actual_cost, week.actual_hours))
        week.actual_cost = round_cents(week.actual_cost)
        week.forecast_cost = round_cents(week.forecast_cost)
        week.actual_hours = round_cents(week.actual_hours)
        week.forecast_hours = round_cents(week.forecast_hours)
        trends.append(week)

    periods = [
        PeriodBreakdown(
            week_ending=week.week_ending,
            actual_hours=week.actual_hours,
            actual_cost=week.actual_cost,
            forecast_hours=week.forecast_hours,
            forecast_cost=week.forecast_cost,
            variance_cost=round_cents(week.actual_cost - week.forecast_cost)
        )
        for week in sorted(trends, key=lambda w: w.week_ending, reverse=True)[:period_limit]
    ]

    logging.info(
        f"Labor analytics: {len(actual_records)} actuals, {len(forecast_records)} forecasts, "
        f"{len(trends)} weeks"
    )
    return LaborAnalytics(**sanitize({
        'kpis': kpis,
        'craft_breakdown': list(breakdown.values()),
        'weekly_trends': trends,
        'period_breakdown': periods,
    }))
