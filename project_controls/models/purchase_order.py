from typing import Optional, Dict
from pydantic import BaseModel, Field


class PurchaseOrder(BaseModel):
    id: Optional[str] = None
    po_number: Optional[str] = None
    committed_amount: Optional[float] = None
    invoiced_amount: Optional[float] = None
    forecast_amount: Optional[float] = None
    forecasted_final_cost: Optional[float] = None
    budget_category: Optional[str] = None


class POForecastTotals(BaseModel):
    total_committed: float = 0.0
    total_invoiced: float = 0.0
    total_forecasted: float = 0.0
    remaining_commitments: float = 0.0


class LaborCostSummary(BaseModel):
    total_hours: float = 0.0
    total_cost: float = 0.0
    by_category: Dict[str, float] = Field(default_factory=dict)


class ProjectEAC(BaseModel):
    actual_cost_to_date: float = 0.0
    estimate_to_complete: float = 0.0
    estimate_at_completion: float = 0.0
    po_committed: float = 0.0
    po_invoiced: float = 0.0
    po_remaining: float = 0.0
    labor_actual: float = 0.0
    labor_future: float = 0.0
    labor_by_category: Dict[str, float] = Field(default_factory=dict)


class CategoryForecast(BaseModel):
    category: str
    budget: float = 0.0
    committed: float = 0.0
    actuals: float = 0.0
    forecasted_final: float = 0.0
    variance: float = 0.0
