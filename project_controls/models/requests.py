from typing import Optional, List, Dict, Any, Literal
from datetime import date
from pydantic import BaseModel, Field
from .labor import CraftType
from .purchase_order import PurchaseOrder


class POForecastRequest(BaseModel):
    purchase_orders: List[PurchaseOrder] = Field(default_factory=list)


class LaborRatesRequest(BaseModel):
    actuals: List[Dict[str, Any]] = Field(default_factory=list)
    craft_types: List[CraftType] = Field(default_factory=list)
    weeks_back: int = 12
    today: Optional[date] = None


class ForecastEdit(BaseModel):
    action: Literal['update_headcount', 'update_hours_per_week', 'copy_forward', 'clear_all']
    week_ending: Optional[date] = None
    category: Optional[str] = None
    value: Optional[float] = None
    to_end: bool = False


class ForecastSheetRequest(BaseModel):
    actuals: List[Dict[str, Any]] = Field(default_factory=list)
    forecasts: List[Dict[str, Any]] = Field(default_factory=list)
    craft_types: List[CraftType] = Field(default_factory=list)
    rates: Optional[Dict[str, float]] = None
    today: Optional[date] = None
    weeks_ahead: Optional[int] = None
    hours_per_week: Optional[float] = None
    edits: List[ForecastEdit] = Field(default_factory=list)


class LaborAnalyticsRequest(BaseModel):
    actuals: List[Dict[str, Any]] = Field(default_factory=list)
    forecasts: List[Dict[str, Any]] = Field(default_factory=list)
    craft_types: List[CraftType] = Field(default_factory=list)
    budgeted_cost: float = 0.0
    completion_percent: float = 0.0
