import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional
from ..config import settings
from ..models.labor import (
    CategoryEntry, CumulativeTotals, NormalizedActual, NormalizedForecast, WeekData, WeekTotals,
    LABOR_CATEGORIES
)
from ..utils.dates import today as current_date, week_ending_date
from ..utils.numeric import safe_divide
from .category_resolver import normalize_actuals, normalize_forecasts

ONE_WEEK = timedelta(days=7)


def recompute_totals(week: WeekData) -> WeekData:
    entries = week.categories.values()
    hours = sum(entry.hours for entry in entries)
    cost = sum(entry.cost for entry in entries)
    week.totals = WeekTotals(
        headcount=sum(entry.headcount for entry in entries),
        hours=hours,
        cost=cost,
        avg_rate=safe_divide(cost, hours)
    )
    return week


class ForecastSheet:
    """Continuous weekly series of actual and forecast labor for one project.

    Actual weeks are read-only. Every edit recomputes the touched week's
    totals and then the cumulative suffix from that week on, which is O(n)
    in the number of weeks.
    """

    def __init__(self, weeks: List[WeekData], rates: Dict[str, float]):
        self.weeks = weeks
        self.rates = rates

    def rate_for(self, category: str) -> float:
        return self.rates.get(category) or settings.DEFAULT_LABOR_RATE

    def _editable_week(self, index: int) -> WeekData:
        if index < 0 or index >= len(self.weeks):
            raise IndexError(f"Week index {index} is out of range")
        week = self.weeks[index]
        if week.is_actual:
            raise ValueError(f"Week ending {week.week_ending} holds actuals and cannot be edited")
        return week

    def _reprice(self, week: WeekData, category: str) -> None:
        entry = week.categories[category]
        entry.hours = entry.headcount * week.hours_per_week
        if not entry.rate:
            entry.rate = self.rate_for(category)
        entry.cost = entry.hours * entry.rate

    def recompute_cumulative(self, start: int = 0) -> None:
        start = max(0, start)
        if start >= len(self.weeks):
            return
        running_hours = self.weeks[start - 1].cumulative.hours if start > 0 else 0.0
        running_cost = self.weeks[start - 1].cumulative.cost if start > 0 else 0.0
        for week in self.weeks[start:]:
            running_hours += week.totals.hours
            running_cost += week.totals.cost
            week.cumulative = CumulativeTotals(hours=running_hours, cost=running_cost)

    def update_headcount(self, index: int, category: str, headcount: float) -> WeekData:
        if category not in LABOR_CATEGORIES:
            raise ValueError(f"Unknown labor category: {category}")
        if headcount < 0:
            raise ValueError("Headcount cannot be negative")
        week = self._editable_week(index)
        week.categories[category].headcount = headcount
        self._reprice(week, category)
        recompute_totals(week)
        self.recompute_cumulative(index)
        return week

    def update_hours_per_week(self, index: int, hours: float) -> WeekData:
        if hours < 0:
            raise ValueError("Hours per week cannot be negative")
        week = self._editable_week(index)
        week.hours_per_week = hours
        for category in LABOR_CATEGORIES:
            self._reprice(week, category)
        recompute_totals(week)
        self.recompute_cumulative(index)
        return week

    def copy_forward(self, index: int, to_end: bool = False) -> int:
        """Copy one week's headcount, rates and hours per week onto later forecast weeks.

        Covers the next COPY_FORWARD_WEEKS weeks, or every remaining week when
        to_end is set. Actual weeks in the range are left alone. Returns the
        number of weeks changed.
        """
        if index < 0 or index >= len(self.weeks):
            raise IndexError(f"Week index {index} is out of range")
        source = self.weeks[index]
        last = len(self.weeks) if to_end else min(len(self.weeks), index + 1 + settings.COPY_FORWARD_WEEKS)

        copied = 0
        for target in self.weeks[index + 1:last]:
            if target.is_actual:
                continue
            target.hours_per_week = source.hours_per_week
            for category in LABOR_CATEGORIES:
                target.categories[category].headcount = source.categories[category].headcount
                target.categories[category].rate = source.categories[category].rate
                self._reprice(target, category)
            recompute_totals(target)
            copied += 1

        self.recompute_cumulative(index + 1)
        logging.info(f"Copied week {source.week_ending} forward into {copied} weeks")
        return copied

    def clear_all_forecasts(self) -> None:
        for week in self.weeks:
            if week.is_actual:
                continue
            for entry in week.categories.values():
                entry.headcount = 0.0
                entry.hours = 0.0
                entry.cost = 0.0
            recompute_totals(week)
        self.recompute_cumulative(0)

    def week_index(self, week_ending: date) -> Optional[int]:
        target = week_ending_date(week_ending)
        for index, week in enumerate(self.weeks):
            if week.week_ending == target:
                return index
        return None

    def to_forecast_rows(self) -> List[Dict]:
        """Save rows for every forecast week and category with staff assigned"""
        rows = []
        for week in self.weeks:
            if week.is_actual:
                continue
            for category in LABOR_CATEGORIES:
                entry = week.categories[category]
                if entry.headcount > 0:
                    rows.append({
                        'week_ending': week.week_ending.isoformat(),
                        'labor_category': category,
                        'headcount': entry.headcount,
                        'hours_per_person': week.hours_per_week,
                    })
        return rows


def _actual_week(week_ending: date, actuals: List[NormalizedActual], hours_per_week: float) -> WeekData:
    week = WeekData(week_ending=week_ending, is_actual=True, hours_per_week=hours_per_week)
    for actual in actuals:
        entry = week.categories[actual.category]
        entry.headcount += actual.hours / settings.HOURS_PER_PERSON
        entry.hours += actual.hours
        entry.cost += actual.cost
    for entry in week.categories.values():
        entry.rate = safe_divide(entry.cost, entry.hours)
    return recompute_totals(week)


def _forecast_week(
    week_ending: date,
    forecasts: List[NormalizedForecast],
    rates: Dict[str, float],
    hours_per_week: float
) -> WeekData:
    week_hours = forecasts[0].hours_per_person if forecasts else hours_per_week
    week = WeekData(week_ending=week_ending, is_actual=False, hours_per_week=week_hours)
    for category in LABOR_CATEGORIES:
        week.categories[category].rate = rates[category]

    # Every category in a week shares the week's hours per person
    for forecast in forecasts:
        entry = week.categories[forecast.category]
        hours = forecast.headcount * week_hours
        entry.headcount += forecast.headcount
        entry.hours += hours
        entry.cost += hours * (forecast.rate or rates[forecast.category])

    for entry in week.categories.values():
        if entry.hours > 0:
            entry.rate = entry.cost / entry.hours
    return recompute_totals(week)


def build_forecast_sheet(
    actuals: Iterable,
    forecasts: Iterable,
    rates: Optional[Dict[str, float]] = None,
    craft_types: Optional[Iterable] = None,
    today: Optional[date] = None,
    weeks_ahead: Optional[int] = None,
    hours_per_week: Optional[float] = None,
    historical_weeks: Optional[int] = None
) -> ForecastSheet:
    """Merge actual and forecast labor into one week-by-week series.

    The span starts two weeks before the earliest actual (or the historical
    window before today when there are no actuals) and runs weeks_ahead weeks
    past the later of today's week and the last actual week. A week is an
    actual week exactly when actuals exist for it.
    """
    weeks_ahead = settings.FORECAST_WEEKS_AHEAD if weeks_ahead is None else weeks_ahead
    hours_per_week = settings.HOURS_PER_PERSON if hours_per_week is None else hours_per_week
    historical_weeks = settings.HISTORICAL_WEEKS if historical_weeks is None else historical_weeks

    normalized_actuals = normalize_actuals(actuals, craft_types)
    normalized_forecasts = normalize_forecasts(forecasts, craft_types)

    actuals_by_week: Dict[date, List[NormalizedActual]] = defaultdict(list)
    for actual in normalized_actuals:
        actuals_by_week[actual.week_ending].append(actual)
    forecasts_by_week: Dict[date, List[NormalizedForecast]] = defaultdict(list)
    for forecast in normalized_forecasts:
        forecasts_by_week[forecast.week_ending].append(forecast)

    resolved_rates = _resolve_rates(rates, normalized_actuals)

    current_week = week_ending_date(today or current_date())
    if actuals_by_week:
        start = min(actuals_by_week) - 2 * ONE_WEEK
        end = max(current_week, max(actuals_by_week)) + weeks_ahead * ONE_WEEK
    else:
        start = current_week - historical_weeks * ONE_WEEK
        end = current_week + weeks_ahead * ONE_WEEK

    weeks: List[WeekData] = []
    week_ending = start
    while week_ending <= end:
        if week_ending in actuals_by_week:
            weeks.append(_actual_week(week_ending, actuals_by_week[week_ending], hours_per_week))
        else:
            weeks.append(_forecast_week(
                week_ending, forecasts_by_week.get(week_ending, []), resolved_rates, hours_per_week
            ))
        week_ending += ONE_WEEK

    sheet = ForecastSheet(weeks, resolved_rates)
    sheet.recompute_cumulative(0)
    logging.info(
        f"Built forecast sheet: {len(weeks)} weeks, {len(actuals_by_week)} actual weeks, "
        f"{len(normalized_forecasts)} forecast rows"
    )
    return sheet


def _resolve_rates(rates: Optional[Dict[str, float]], actuals: List[NormalizedActual]) -> Dict[str, float]:
    """Category rate: supplied rate, then the realized rate from actuals, then the default"""
    realized: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0.0])
    for actual in actuals:
        if actual.hours > 0:
            realized[actual.category][0] += actual.cost
            realized[actual.category][1] += actual.hours

    resolved = {}
    for category in LABOR_CATEGORIES:
        supplied = (rates or {}).get(category)
        if supplied and supplied > 0:
            resolved[category] = supplied
        elif category in realized:
            cost, hours = realized[category]
            resolved[category] = cost / hours
        else:
            resolved[category] = settings.DEFAULT_LABOR_RATE
    return resolved
