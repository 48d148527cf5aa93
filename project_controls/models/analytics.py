from typing import List, Optional
from datetime import date
from pydantic import BaseModel, Field


class LaborKPIs(BaseModel):
    total_actual_cost: float = 0.0
    total_forecasted_cost: float = 0.0
    total_budgeted_cost: float = 0.0
    variance_dollars: float = 0.0
    variance_percent: float = 0.0
    total_actual_hours: float = 0.0
    total_forecasted_hours: float = 0.0
    average_actual_rate: float = 0.0
    average_forecast_rate: float = 0.0
    labor_burn_percent: float = 0.0
    project_completion_percent: float = 0.0


class CraftBreakdown(BaseModel):
    craft_code: str
    craft_name: Optional[str] = None
    labor_category: Optional[str] = None
    actual_hours: float = 0.0
    actual_cost: float = 0.0
    forecast_hours: float = 0.0
    forecast_cost: float = 0.0
    variance_hours: float = 0.0
    variance_cost: float = 0.0
    variance_percent: float = 0.0


class WeeklyTrend(BaseModel):
    week_ending: date
    actual_cost: float = 0.0
    forecast_cost: float = 0.0
    actual_hours: float = 0.0
    forecast_hours: float = 0.0
    composite_rate: float = 0.0


class PeriodBreakdown(BaseModel):
    week_ending: date
    actual_hours: float = 0.0
    actual_cost: float = 0.0
    forecast_hours: float = 0.0
    forecast_cost: float = 0.0
    variance_cost: float = 0.0


class LaborAnalytics(BaseModel):
    kpis: LaborKPIs = Field(default_factory=LaborKPIs)
    craft_breakdown: List[CraftBreakdown] = Field(default_factory=list)
    weekly_trends: List[WeeklyTrend] = Field(default_factory=list)
    period_breakdown: List[PeriodBreakdown] = Field(default_factory=list)
