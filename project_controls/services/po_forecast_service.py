import logging
from typing import Dict, Iterable, List, Optional, Union
from ..config import settings
from ..models.labor import HeadcountForecastRecord, LABOR_CATEGORIES
from ..models.purchase_order import (
    CategoryForecast, LaborCostSummary, POForecastTotals, ProjectEAC, PurchaseOrder
)
from ..utils.numeric import finite
from .category_resolver import as_record_dict, craft_lookup, normalize_category_label
from .labor_rate_service import RawActual, calculate_labor_rates_by_craft, to_actual_records

RawPO = Union[PurchaseOrder, Dict]


def _po(raw: RawPO) -> PurchaseOrder:
    return raw if isinstance(raw, PurchaseOrder) else PurchaseOrder(**raw)


def calculate_po_forecast(po: RawPO) -> float:
    """Best available forecast for a PO, never below what is already invoiced.

    Priority is forecasted_final_cost, forecast_amount, committed_amount; the
    first that is present wins even when it is zero.
    """
    po = _po(po)
    invoiced = finite(po.invoiced_amount)
    forecast = next(
        (value for value in (po.forecasted_final_cost, po.forecast_amount, po.committed_amount)
         if value is not None),
        0.0
    )
    return max(finite(forecast), invoiced)


def calculate_total_po_forecast(purchase_orders: Iterable[RawPO]) -> POForecastTotals:
    orders = [_po(po) for po in purchase_orders or []]
    committed = sum(finite(po.committed_amount) for po in orders)
    invoiced = sum(finite(po.invoiced_amount) for po in orders)
    return POForecastTotals(
        total_committed=committed,
        total_invoiced=invoiced,
        total_forecasted=sum(calculate_po_forecast(po) for po in orders),
        remaining_commitments=max(0.0, committed - invoiced)
    )


def _empty_categories() -> Dict[str, float]:
    return {category: 0.0 for category in LABOR_CATEGORIES}


def _summary_category(label: Optional[str], craft) -> str:
    return (
        normalize_category_label(label)
        or normalize_category_label(craft.category if craft else None)
        or 'direct'
    )


def calculate_future_labor_cost(
    forecasts: Iterable[Union[HeadcountForecastRecord, Dict]],
    running_average_rates: Optional[Dict[str, float]] = None,
    craft_types: Optional[Iterable] = None
) -> LaborCostSummary:
    """Cost of forecast headcount: craft running average, else craft default rate, else the fallback"""
    rates = running_average_rates or {}
    crafts = craft_lookup(craft_types)
    summary = LaborCostSummary(by_category=_empty_categories())

    for raw in forecasts or []:
        forecast = raw if isinstance(raw, HeadcountForecastRecord) else HeadcountForecastRecord(**as_record_dict(raw))
        craft = crafts.get(forecast.craft_type_id) if forecast.craft_type_id else None
        rate = (
            forecast.rate
            or rates.get(forecast.craft_type_id or '')
            or (craft.default_rate if craft else None)
            or settings.DEFAULT_LABOR_RATE
        )
        hours = (finite(forecast.avg_weekly_hours) or settings.HOURS_PER_PERSON) * finite(forecast.headcount)
        cost = hours * rate

        category = _summary_category(forecast.labor_category, craft)
        summary.total_hours += hours
        summary.total_cost += cost
        summary.by_category[category] = summary.by_category.get(category, 0.0) + cost
    return summary


def calculate_total_labor_actuals(
    actuals: Iterable[RawActual],
    craft_types: Optional[Iterable] = None
) -> LaborCostSummary:
    crafts = craft_lookup(craft_types)
    summary = LaborCostSummary(by_category=_empty_categories())
    for record in to_actual_records(actuals):
        cost = finite(record.effective_cost)
        craft = crafts.get(record.craft_type_id) if record.craft_type_id else None
        category = _summary_category(record.labor_category, craft)
        summary.total_hours += finite(record.actual_hours)
        summary.total_cost += cost
        summary.by_category[category] = summary.by_category.get(category, 0.0) + cost
    return summary


def calculate_project_eac(
    purchase_orders: Iterable[RawPO],
    actuals: Iterable[RawActual],
    forecasts: Iterable,
    craft_types: Optional[Iterable] = None
) -> ProjectEAC:
    actuals = list(actuals or [])
    craft_types = list(craft_types or [])
    po_totals = calculate_total_po_forecast(purchase_orders)
    labor_actual = calculate_total_labor_actuals(actuals, craft_types)
    labor_future = calculate_future_labor_cost(
        forecasts, calculate_labor_rates_by_craft(actuals), craft_types
    )

    actual_cost_to_date = po_totals.total_invoiced + labor_actual.total_cost
    estimate_to_complete = po_totals.remaining_commitments + labor_future.total_cost
    logging.info(f"EAC: actual ${actual_cost_to_date:,.2f}, to complete ${estimate_to_complete:,.2f}")

    return ProjectEAC(
        actual_cost_to_date=actual_cost_to_date,
        estimate_to_complete=estimate_to_complete,
        estimate_at_completion=actual_cost_to_date + estimate_to_complete,
        po_committed=po_totals.total_committed,
        po_invoiced=po_totals.total_invoiced,
        po_remaining=po_totals.remaining_commitments,
        labor_actual=labor_actual.total_cost,
        labor_future=labor_future.total_cost,
        labor_by_category={
            category: labor_actual.by_category.get(category, 0.0) + labor_future.by_category.get(category, 0.0)
            for category in set(labor_actual.by_category) | set(labor_future.by_category)
        }
    )


def calculate_category_forecast(
    category: str,
    budget: float,
    purchase_orders: Iterable[RawPO] = (),
    actuals: Optional[Iterable[RawActual]] = None,
    forecasts: Optional[Iterable] = None,
    labor_category: Optional[str] = None,
    craft_types: Optional[Iterable] = None
) -> CategoryForecast:
    """Budget against committed, actual and forecast final cost for one budget category.

    LABOR uses labor actuals plus forecast headcount cost; anything else uses
    its purchase orders. The forecast final never drops below actuals and a
    positive variance means under budget.
    """
    orders = [_po(po) for po in purchase_orders or []]
    committed = spent = 0.0
    forecasted_final = finite(budget)

    if category.upper() == 'LABOR' and actuals is not None and forecasts is not None:
        actuals = list(actuals)
        craft_types = list(craft_types or [])
        labor_actual = calculate_total_labor_actuals(actuals, craft_types)
        labor_future = calculate_future_labor_cost(
            forecasts, calculate_labor_rates_by_craft(actuals), craft_types
        )
        if labor_category:
            spent = labor_actual.by_category.get(labor_category, 0.0)
            future = labor_future.by_category.get(labor_category, 0.0)
        else:
            spent = labor_actual.total_cost
            future = labor_future.total_cost
        committed = spent
        forecasted_final = spent + future
    elif orders:
        totals = calculate_total_po_forecast(orders)
        committed = totals.total_committed
        spent = totals.total_invoiced
        forecasted_final = totals.total_forecasted

    forecasted_final = max(forecasted_final, spent)
    return CategoryForecast(
        category=category,
        budget=finite(budget),
        committed=committed,
        actuals=spent,
        forecasted_final=forecasted_final,
        variance=finite(budget) - forecasted_final
    )
