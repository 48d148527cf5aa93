from typing import Optional, List, Dict, Literal, Union, Annotated
from datetime import date
from pydantic import BaseModel, Field

LaborCategory = Literal['direct', 'indirect', 'staff']
LABOR_CATEGORIES: List[str] = ['direct', 'indirect', 'staff']


class CraftType(BaseModel):
    id: str
    code: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    default_rate: Optional[float] = None
    billing_rate: Optional[float] = None


class LaborActualRecord(BaseModel):
    week_ending: Optional[Union[date, str]] = None
    actual_hours: Optional[float] = None
    actual_cost: Optional[float] = None
    actual_cost_with_burden: Optional[float] = None
    burden_amount: Optional[float] = None
    craft_type_id: Optional[str] = None
    labor_category: Optional[str] = None
    description: Optional[str] = None

    @property
    def effective_cost(self) -> float:
        """Burdened cost when recorded, otherwise the plain cost"""
        if self.actual_cost_with_burden is not None:
            return self.actual_cost_with_burden
        return self.actual_cost or 0.0


class HeadcountForecastRecord(BaseModel):
    week_starting: Optional[Union[date, str]] = None
    week_ending: Optional[Union[date, str]] = None
    headcount: Optional[float] = None
    avg_weekly_hours: Optional[float] = None
    craft_type_id: Optional[str] = None
    labor_category: Optional[str] = None
    rate: Optional[float] = None
    description: Optional[str] = None


class CategoryActual(BaseModel):
    kind: Literal['category'] = 'category'
    category: str
    week_ending: date
    hours: float = 0.0
    cost: float = 0.0
    burden_amount: float = 0.0
    description: str = ''


class CraftActual(BaseModel):
    kind: Literal['craft'] = 'craft'
    craft_type_id: str
    week_ending: date
    hours: float = 0.0
    cost: float = 0.0
    burden_amount: float = 0.0
    description: str = ''


ActualRecord = Annotated[Union[CategoryActual, CraftActual], Field(discriminator='kind')]


class NormalizedActual(BaseModel):
    week_ending: date
    category: LaborCategory
    hours: float = 0.0
    cost: float = 0.0
    burden_amount: float = 0.0
    craft_type_id: Optional[str] = None


class NormalizedForecast(BaseModel):
    week_ending: date
    category: LaborCategory
    headcount: float = 0.0
    hours_per_person: float = 0.0
    rate: Optional[float] = None
    craft_type_id: Optional[str] = None


class CategoryEntry(BaseModel):
    headcount: float = 0.0
    hours: float = 0.0
    cost: float = 0.0
    rate: float = 0.0


class WeekTotals(BaseModel):
    headcount: float = 0.0
    hours: float = 0.0
    cost: float = 0.0
    avg_rate: float = 0.0


class CumulativeTotals(BaseModel):
    hours: float = 0.0
    cost: float = 0.0


class WeekData(BaseModel):
    week_ending: date
    is_actual: bool = False
    hours_per_week: float = 0.0
    categories: Dict[str, CategoryEntry] = Field(
        default_factory=lambda: {category: CategoryEntry() for category in LABOR_CATEGORIES}
    )
    totals: WeekTotals = Field(default_factory=WeekTotals)
    cumulative: CumulativeTotals = Field(default_factory=CumulativeTotals)


class RateTrendPoint(BaseModel):
    week_ending: date
    hours: float = 0.0
    cost: float = 0.0
    rate: float = 0.0


class RunningAverage(BaseModel):
    craft_type_id: str
    craft_name: Optional[str] = None
    craft_code: Optional[str] = None
    labor_category: Optional[str] = None
    avg_rate: float = 0.0
    total_hours: float = 0.0
    total_cost: float = 0.0
    weeks_of_data: int = 0
    last_actual_week: Optional[date] = None
    trends: List[RateTrendPoint] = Field(default_factory=list)


class CategoryRate(BaseModel):
    hours: float = 0.0
    cost: float = 0.0
    rate: float = 0.0


class CompositeRateInfo(BaseModel):
    overall: float = 0.0
    recent: float = 0.0
    total_hours: float = 0.0
    total_cost: float = 0.0
    weeks_of_data: int = 0
    category_rates: Dict[str, CategoryRate] = Field(default_factory=dict)
    weekly_trend: List[RateTrendPoint] = Field(default_factory=list)
