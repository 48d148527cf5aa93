from io import BytesIO
import httpx
import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from project_controls import main
from project_controls.services.store_client import StoreClient
from project_controls.utils.cache import craft_type_cache

ACTUALS = [
    {'week_ending': '2025-01-05', 'craft_type_id': 'pf', 'actual_hours': 40, 'actual_cost': 2000},
    {'week_ending': '2025-01-05', 'craft_type_id': 'gf', 'actual_hours': 20, 'actual_cost': 1200},
]

CRAFT_TYPES = [
    {'id': 'pf', 'code': 'PF', 'name': 'Pipefitter', 'category': 'direct'},
    {'id': 'gf', 'code': 'GF', 'name': 'General Foreman', 'category': 'indirect'},
]

SHEET_ACTUALS = [
    {'week_ending': '2025-01-05', 'labor_category': 'direct', 'actual_hours': 100, 'actual_cost': 5000},
    {'week_ending': '2025-01-05', 'labor_category': 'indirect', 'actual_hours': 50, 'actual_cost': 3000},
    {'week_ending': '2025-01-12', 'labor_category': 'direct', 'actual_hours': 100, 'actual_cost': 5500},
]

SHEET_FORECASTS = [
    {'week_starting': '2025-01-20', 'labor_category': 'direct', 'headcount': 3, 'avg_weekly_hours': 40},
]


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def headers(api_key):
    return {"key-authorization": api_key}


@pytest.fixture
def store(monkeypatch, api_key):
    """Route project fetches to an in-memory handler and disable Redis"""
    craft_type_cache.clear()
    monkeypatch.setattr(main.analytics_cache, 'redis_client', None)
    routes = {}

    def handler(request):
        for suffix, respond in routes.items():
            if request.url.path.endswith(suffix):
                return respond(request)
        return httpx.Response(404)

    def client_for(key):
        return StoreClient(
            "http://store.test",
            key,
            transport=httpx.MockTransport(handler),
            sequencer=main.store_sequencer,
            backoff_seconds=0
        )

    monkeypatch.setattr(main, 'store_client_for', client_for)
    yield routes
    craft_type_cache.clear()


def _workbook_bytes():
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = 'DIRECTS'
    for row in [
        ['DIRECT LABOR ESTIMATE'],
        ['WBS', 'Description', 'Crew', 'Hours', 'Total'],
        ['01-100', 'Pipe fitting', 4, 160, 8000],
        [None, 'Weld out', 2, 40, 2000],
        [None, 'Total', None, 200, 10000],
    ]:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_missing_key_header_is_rejected(client):
    response = client.post("/api/purchase-orders/forecast", json={"purchase_orders": []})
    assert response.status_code == 422


def test_short_key_is_rejected(client):
    response = client.post(
        "/api/purchase-orders/forecast",
        json={"purchase_orders": []},
        headers={"key-authorization": "short"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid API key format"


def test_purchase_order_forecast(client, headers):
    orders = [
        {'id': '1', 'po_number': 'PO-1', 'committed_amount': 1000, 'invoiced_amount': 1500, 'forecast_amount': 1200},
        {'id': '2', 'po_number': 'PO-2', 'committed_amount': 2000, 'invoiced_amount': 500,
         'forecasted_final_cost': 1900},
        {'id': '3', 'po_number': 'PO-3', 'committed_amount': 500, 'invoiced_amount': 300},
    ]

    response = client.post("/api/purchase-orders/forecast", json={"purchase_orders": orders}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["totals"] == {
        'total_committed': 3500,
        'total_invoiced': 2300,
        'total_forecasted': 3900,
        'remaining_commitments': 1200,
    }
    assert [row["forecast"] for row in body["forecasts"]] == [1500, 1900, 500]


def test_labor_rates(client, headers):
    payload = {"actuals": ACTUALS, "craft_types": CRAFT_TYPES, "today": "2025-01-15"}

    response = client.post("/api/labor/rates", json=payload, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["by_craft"] == {'pf': 50, 'gf': 60}
    assert body["by_category"] == {'direct': 50, 'indirect': 60}
    assert {row["craft_type_id"] for row in body["running_averages"]} == {'pf', 'gf'}
    assert "composite" in body


def test_forecast_sheet_with_edits(client, headers):
    payload = {
        "actuals": SHEET_ACTUALS,
        "forecasts": SHEET_FORECASTS,
        "today": "2025-01-15",
        "weeks_ahead": 4,
        "edits": [
            {"action": "update_headcount", "week_ending": "2025-02-02", "category": "indirect", "value": 2},
        ],
    }

    response = client.post("/api/labor/forecast-sheet", json=payload, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert len(body["weeks"]) == 9
    assert body["weeks"][6]["categories"]["indirect"]["hours"] == 100
    assert body["forecast_rows"] == [
        {'week_ending': '2025-01-26', 'labor_category': 'direct', 'headcount': 3, 'hours_per_person': 40},
        {'week_ending': '2025-02-02', 'labor_category': 'indirect', 'headcount': 2, 'hours_per_person': 50},
    ]


@pytest.mark.parametrize("edit", [
    {"action": "update_headcount", "week_ending": "2025-01-12", "category": "direct", "value": 1},
    {"action": "update_headcount", "week_ending": "2030-01-06", "category": "direct", "value": 1},
    {"action": "copy_forward"},
])
def test_forecast_sheet_rejects_bad_edits(client, headers, edit):
    payload = {"actuals": SHEET_ACTUALS, "today": "2025-01-15", "weeks_ahead": 4, "edits": [edit]}

    response = client.post("/api/labor/forecast-sheet", json=payload, headers=headers)

    assert response.status_code == 400


def test_labor_analytics(client, headers):
    payload = {"actuals": ACTUALS, "craft_types": CRAFT_TYPES, "budgeted_cost": 10000, "completion_percent": 25}

    response = client.post("/api/labor/analytics", json=payload, headers=headers)

    assert response.status_code == 200
    kpis = response.json()["kpis"]
    assert kpis["total_actual_cost"] == 3200
    assert kpis["variance_dollars"] == -6800


def test_analyze_budget_workbook(client, headers):
    response = client.post(
        "/api/budgets/analyze",
        params={"project_id": "project-1"},
        content=_workbook_bytes(),
        headers=headers
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["description"] for item in body["details"]["DIRECTS"]] == ['Pipe fitting', 'Weld out']
    assert body["totals"]["grand_total"] == pytest.approx(10000)
    assert len(body["rows"]["line_items"]) == 2
    assert body["rows"]["line_items"][0]["project_id"] == 'project-1'


def test_analyze_budget_without_project_has_no_rows(client, headers):
    response = client.post("/api/budgets/analyze", content=_workbook_bytes(), headers=headers)

    assert response.status_code == 200
    assert "rows" not in response.json()


@pytest.mark.parametrize("content", [b"", b"not a workbook"])
def test_analyze_budget_rejects_bad_bodies(client, headers, content):
    response = client.post("/api/budgets/analyze", content=content, headers=headers)
    assert response.status_code == 400


def test_project_labor_analytics(client, headers, store):
    store["labor-actuals"] = lambda request: httpx.Response(200, json={"data": ACTUALS})
    store["headcount-forecasts"] = lambda request: httpx.Response(200, json=[])
    store["craft-types"] = lambda request: httpx.Response(200, json=CRAFT_TYPES)

    response = client.get(
        "/api/projects/p1/labor-analytics",
        params={"budgeted_cost": 10000},
        headers=headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["kpis"]["total_actual_cost"] == 3200
    assert {row["craft_code"] for row in body["craft_breakdown"]} == {'PF', 'GF'}


def test_project_labor_analytics_auth_failure(client, headers, store):
    store["labor-actuals"] = lambda request: httpx.Response(401)
    store["headcount-forecasts"] = lambda request: httpx.Response(200, json=[])
    store["craft-types"] = lambda request: httpx.Response(200, json=[])

    response = client.get("/api/projects/p1/labor-analytics", headers=headers)

    assert response.status_code == 401


def test_project_labor_analytics_store_unavailable(client, headers, store):
    store["labor-actuals"] = lambda request: httpx.Response(503)
    store["headcount-forecasts"] = lambda request: httpx.Response(200, json=[])
    store["craft-types"] = lambda request: httpx.Response(200, json=[])

    response = client.get("/api/projects/p1/labor-analytics", headers=headers)

    assert response.status_code == 503


def test_project_labor_analytics_superseded(client, headers, store, api_key):
    sequence_key = main.store_client_for(api_key).sequence_key("p1")

    def superseding(request):
        main.store_sequencer.issue(sequence_key)
        return httpx.Response(200, json=[])

    store["labor-actuals"] = superseding
    store["headcount-forecasts"] = lambda request: httpx.Response(200, json=[])
    store["craft-types"] = lambda request: httpx.Response(200, json=[])

    response = client.get("/api/projects/p1/labor-analytics", headers=headers)

    assert response.status_code == 409
