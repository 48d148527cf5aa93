from fastapi import FastAPI, HTTPException, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging
import asyncio
from .config import settings
from .models.requests import (
    ForecastEdit, ForecastSheetRequest, LaborAnalyticsRequest, LaborRatesRequest, POForecastRequest
)
from .models.sheet_mappings import default_sheet_mappings
from .services.analytics_service import build_labor_analytics
from .services.budget_import_service import BudgetImportService, SheetMappingError
from .services.forecast_service import ForecastSheet, build_forecast_sheet
from .services.labor_rate_service import (
    calculate_composite_rate, calculate_labor_rates_by_category, calculate_labor_rates_by_craft,
    calculate_running_averages, category_rates_from_running_averages
)
from .services.po_forecast_service import calculate_po_forecast, calculate_total_po_forecast
from .services.store_client import (
    RequestSequencer, StaleResponseError, StoreAuthenticationError, StoreClient, StoreError,
    StoreUnavailableError
)
from .utils.redis_cache import RedisCache

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG_MODE else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

STORE_TIMEOUT = 180  # 3 minutes for a whole project fetch

app = FastAPI(
    title=settings.APP_NAME,
    description="Budget import, labor forecasting and cost analytics for construction projects",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

analytics_cache = RedisCache()
store_sequencer = RequestSequencer()


def store_client_for(api_key: str) -> StoreClient:
    return StoreClient(settings.STORE_URL, api_key, sequencer=store_sequencer)


def check_api_key(api_key: Optional[str]) -> None:
    if not api_key or len(api_key) < 20:  # Basic validation
        raise HTTPException(status_code=401, detail="Invalid API key format")


def apply_edit(sheet: ForecastSheet, edit: ForecastEdit) -> None:
    if edit.action == 'clear_all':
        sheet.clear_all_forecasts()
        return

    if edit.week_ending is None:
        raise ValueError(f"{edit.action} needs a week_ending")
    index = sheet.week_index(edit.week_ending)
    if index is None:
        raise ValueError(f"Week ending {edit.week_ending} is not on the forecast sheet")

    if edit.action == 'update_headcount':
        sheet.update_headcount(index, edit.category or '', edit.value or 0.0)
    elif edit.action == 'update_hours_per_week':
        sheet.update_hours_per_week(index, edit.value or 0.0)
    elif edit.action == 'copy_forward':
        sheet.copy_forward(index, to_end=edit.to_end)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.post("/api/budgets/analyze")
async def analyze_budget(
    request: Request,
    project_id: Optional[str] = Query(None),
    api_key: str = Header(..., alias="key-authorization")
):
    """Parse an estimate workbook sent as the raw request body"""
    try:
        check_api_key(api_key)

        content = await request.body()
        if not content:
            raise HTTPException(status_code=400, detail="Request body must contain an .xlsx workbook")

        service = BudgetImportService(default_sheet_mappings())
        logging.info(f"Starting budget analysis of {len(content)} bytes")
        result = service.analyze_bytes(content)

        response = result.model_dump(mode="json")
        if project_id:
            response["rows"] = service.to_rows(result, project_id)
        return response

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SheetMappingError as e:
        logging.exception("Sheet mapping configuration is invalid")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logging.exception("Error in analyze_budget")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/purchase-orders/forecast")
async def forecast_purchase_orders(
    body: POForecastRequest,
    api_key: str = Header(..., alias="key-authorization")
):
    try:
        check_api_key(api_key)

        orders = body.purchase_orders
        logging.info(f"Forecasting {len(orders)} purchase orders")
        return {
            "totals": calculate_total_po_forecast(orders),
            "forecasts": [
                {"id": po.id, "po_number": po.po_number, "forecast": calculate_po_forecast(po)}
                for po in orders
            ],
        }

    except HTTPException:
        raise
    except Exception as e:
        logging.exception("Error in forecast_purchase_orders")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/labor/rates")
async def labor_rates(
    body: LaborRatesRequest,
    api_key: str = Header(..., alias="key-authorization")
):
    try:
        check_api_key(api_key)

        running = calculate_running_averages(body.actuals, body.craft_types, body.weeks_back, body.today)
        return {
            "by_craft": calculate_labor_rates_by_craft(body.actuals),
            "by_category": calculate_labor_rates_by_category(body.actuals, body.craft_types),
            "running_averages": running,
            "running_average_category_rates": category_rates_from_running_averages(running),
            "composite": calculate_composite_rate(body.actuals, body.craft_types, body.weeks_back, body.today),
        }

    except HTTPException:
        raise
    except Exception as e:
        logging.exception("Error in labor_rates")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/labor/forecast-sheet")
async def forecast_sheet(
    body: ForecastSheetRequest,
    api_key: str = Header(..., alias="key-authorization")
):
    """Build the weekly labor sheet and replay any edits on it"""
    try:
        check_api_key(api_key)

        sheet = build_forecast_sheet(
            body.actuals,
            body.forecasts,
            rates=body.rates,
            craft_types=body.craft_types,
            today=body.today,
            weeks_ahead=body.weeks_ahead,
            hours_per_week=body.hours_per_week
        )
        for edit in body.edits:
            apply_edit(sheet, edit)

        return {
            "weeks": sheet.weeks,
            "rates": sheet.rates,
            "forecast_rows": sheet.to_forecast_rows(),
        }

    except HTTPException:
        raise
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logging.exception("Error in forecast_sheet")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/labor/analytics")
async def labor_analytics(
    body: LaborAnalyticsRequest,
    api_key: str = Header(..., alias="key-authorization")
):
    try:
        check_api_key(api_key)

        return build_labor_analytics(
            body.actuals,
            body.forecasts,
            body.craft_types,
            budgeted_cost=body.budgeted_cost,
            completion_percent=body.completion_percent
        )

    except HTTPException:
        raise
    except Exception as e:
        logging.exception("Error in labor_analytics")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/projects/{project_id}/labor-analytics")
async def project_labor_analytics(
    project_id: str,
    budgeted_cost: float = Query(0.0),
    completion_percent: float = Query(0.0),
    refresh: bool = Query(False),
    api_key: str = Header(..., alias="key-authorization")
):
    """Labor analytics for a stored project, cached in Redis"""
    try:
        check_api_key(api_key)

        cache_key = f"{RedisCache.analytics_key(project_id)}:{budgeted_cost}:{completion_percent}"
        if refresh:
            await analytics_cache.invalidate(cache_key)
        else:
            cached = await analytics_cache.get_cached_data(cache_key)
            if cached is not None:
                logging.info(f"Serving cached labor analytics for {project_id}")
                return cached

        client = store_client_for(api_key)
        try:
            inputs = await asyncio.wait_for(client.fetch_project_inputs(project_id), timeout=STORE_TIMEOUT)
        except asyncio.TimeoutError:
            raise HTTPException(
                status_code=504,
                detail=f"Request timed out after {STORE_TIMEOUT} seconds"
            )

        analytics = build_labor_analytics(
            inputs["actuals"],
            inputs["forecasts"],
            inputs["craft_types"],
            budgeted_cost=budgeted_cost,
            completion_percent=completion_percent
        )
        data = analytics.model_dump(mode="json")
        await analytics_cache.set_cached_data(cache_key, data)
        return data

    except HTTPException:
        raise
    except StoreAuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except StoreUnavailableError as e:
        logging.error(f"Store unavailable for {project_id}: {str(e)}")
        raise HTTPException(status_code=503, detail=str(e))
    except StaleResponseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        logging.exception("Store error in project_labor_analytics")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logging.exception("Error in project_labor_analytics")
        raise HTTPException(status_code=500, detail=str(e))
