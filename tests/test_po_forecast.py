import pytest
from project_controls.models.purchase_order import PurchaseOrder
from project_controls.services.po_forecast_service import (
    calculate_category_forecast, calculate_future_labor_cost, calculate_po_forecast,
    calculate_project_eac, calculate_total_labor_actuals, calculate_total_po_forecast
)

ORDERS = [
    {'po_number': 'PO-1', 'committed_amount': 1000, 'invoiced_amount': 1500, 'forecast_amount': 1200},
    {'po_number': 'PO-2', 'committed_amount': 2000, 'invoiced_amount': 500, 'forecasted_final_cost': 1900},
    {'po_number': 'PO-3', 'committed_amount': 500, 'invoiced_amount': 300},
]

CRAFT_TYPES = [
    {'id': 'pf', 'code': 'PF', 'category': 'direct', 'default_rate': 55},
    {'id': 'gf', 'code': 'GF', 'category': 'indirect'},
]


def test_invoiced_floor_beats_forecast_amount():
    po = PurchaseOrder(committed_amount=1000, invoiced_amount=1500, forecast_amount=1200)
    assert calculate_po_forecast(po) == 1500


def test_forecast_priority_order():
    assert calculate_po_forecast({'forecasted_final_cost': 900, 'forecast_amount': 800, 'committed_amount': 700}) == 900
    assert calculate_po_forecast({'forecast_amount': 800, 'committed_amount': 700}) == 800
    assert calculate_po_forecast({'committed_amount': 700}) == 700
    assert calculate_po_forecast({}) == 0


def test_present_zero_forecast_is_respected():
    assert calculate_po_forecast({'forecasted_final_cost': 0, 'committed_amount': 700}) == 0


@pytest.mark.parametrize("po", ORDERS)
def test_forecast_never_below_invoiced(po):
    assert calculate_po_forecast(po) >= po['invoiced_amount']


def test_total_po_forecast():
    totals = calculate_total_po_forecast(ORDERS)

    assert totals.total_committed == 3500
    assert totals.total_invoiced == 2300
    assert totals.total_forecasted == 3900
    assert totals.remaining_commitments == 1200


def test_remaining_commitments_never_negative():
    totals = calculate_total_po_forecast([{'committed_amount': 100, 'invoiced_amount': 400}])
    assert totals.remaining_commitments == 0
    assert calculate_total_po_forecast([]).total_forecasted == 0


def test_future_labor_cost_rate_fallbacks():
    forecasts = [
        {'craft_type_id': 'pf', 'headcount': 2, 'avg_weekly_hours': 40},
        {'craft_type_id': 'gf', 'headcount': 1, 'avg_weekly_hours': 40},
        {'labor_category': 'staff', 'headcount': 1},
    ]

    summary = calculate_future_labor_cost(forecasts, {'gf': 75}, CRAFT_TYPES)

    assert summary.total_hours == 80 + 40 + 50
    assert summary.by_category['direct'] == 80 * 55
    assert summary.by_category['indirect'] == 40 * 75
    assert summary.by_category['staff'] == 50 * 50
    assert summary.total_cost == pytest.approx(4400 + 3000 + 2500)


def test_total_labor_actuals_by_category():
    actuals = [
        {'week_ending': '2025-01-05', 'craft_type_id': 'pf', 'actual_hours': 10, 'actual_cost': 500,
         'actual_cost_with_burden': 640},
        {'week_ending': '2025-01-05', 'labor_category': 'Indirect', 'actual_hours': 5, 'actual_cost': 300},
    ]

    summary = calculate_total_labor_actuals(actuals, CRAFT_TYPES)

    assert summary.total_cost == 940
    assert summary.by_category == {'direct': 640, 'indirect': 300, 'staff': 0}


def test_project_eac():
    actuals = [{'week_ending': '2025-01-05', 'craft_type_id': 'pf', 'actual_hours': 10, 'actual_cost': 600}]
    forecasts = [{'craft_type_id': 'pf', 'headcount': 1, 'avg_weekly_hours': 40}]

    eac = calculate_project_eac(ORDERS, actuals, forecasts, CRAFT_TYPES)

    assert eac.actual_cost_to_date == 2300 + 600
    assert eac.labor_future == 40 * 60
    assert eac.estimate_to_complete == 1200 + 2400
    assert eac.estimate_at_completion == eac.actual_cost_to_date + eac.estimate_to_complete
    assert eac.labor_by_category['direct'] == 3000


def test_category_forecast_for_purchase_orders():
    forecast = calculate_category_forecast('MATERIALS', 5000, ORDERS)

    assert forecast.committed == 3500
    assert forecast.actuals == 2300
    assert forecast.forecasted_final == 3900
    assert forecast.variance == 1100


def test_category_forecast_for_labor():
    actuals = [{'week_ending': '2025-01-05', 'craft_type_id': 'pf', 'actual_hours': 10, 'actual_cost': 600}]
    forecasts = [{'craft_type_id': 'pf', 'headcount': 1, 'avg_weekly_hours': 40}]

    forecast = calculate_category_forecast(
        'LABOR', 2000, actuals=actuals, forecasts=forecasts, labor_category='direct', craft_types=CRAFT_TYPES
    )

    assert forecast.actuals == 600
    assert forecast.forecasted_final == 3000
    assert forecast.variance == -1000


def test_category_forecast_without_data_keeps_budget():
    forecast = calculate_category_forecast('EQUIPMENT', 800)
    assert forecast.forecasted_final == 800
    assert forecast.variance == 0
