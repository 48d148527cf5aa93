from typing import Optional, List, Dict
from pydantic import BaseModel, Field, model_validator

COST_BUCKETS = [
    'labor_direct_cost',
    'labor_indirect_cost',
    'labor_staff_cost',
    'materials_cost',
    'equipment_cost',
    'subcontracts_cost',
    'small_tools_cost',
]

# Buckets each subcategory is allowed to populate
SUBCATEGORY_BUCKETS = {
    'DIRECT': 'labor_direct_cost',
    'INDIRECT': 'labor_indirect_cost',
    'STAFF': 'labor_staff_cost',
    'MATERIALS': 'materials_cost',
    'EQUIPMENT': 'equipment_cost',
    'SUBCONTRACTS': 'subcontracts_cost',
    'SMALL_TOOLS': 'small_tools_cost',
}


class ValidationReport(BaseModel):
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class SheetMapping(BaseModel):
    sheet_name: str
    category: str
    subcategory: Optional[str] = None
    column_mappings: Dict[str, int] = Field(default_factory=dict)
    parsing_rules: Dict[str, object] = Field(default_factory=dict)


class SheetStructure(BaseModel):
    header_row: int
    data_columns: Dict[str, int] = Field(default_factory=dict)
    data_start_row: int
    data_end_row: int


class BudgetLineItem(BaseModel):
    source_sheet: str
    source_row: int
    wbs_code: Optional[str] = None
    discipline: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    cost_type: Optional[str] = None
    description: str = ''
    quantity: Optional[float] = None
    unit_of_measure: Optional[str] = None
    unit_rate: Optional[float] = None
    manhours: Optional[float] = None
    crew_size: Optional[int] = None
    duration_days: Optional[float] = None
    labor_direct_cost: float = 0.0
    labor_indirect_cost: float = 0.0
    labor_staff_cost: float = 0.0
    materials_cost: float = 0.0
    equipment_cost: float = 0.0
    subcontracts_cost: float = 0.0
    small_tools_cost: float = 0.0
    total_cost: float = 0.0

    model_config = {'frozen': True}

    @model_validator(mode='before')
    @classmethod
    def _derive_total(cls, data):
        # total_cost is always the sum of the typed buckets
        if isinstance(data, dict):
            data = dict(data)
            data['total_cost'] = sum(float(data.get(bucket) or 0) for bucket in COST_BUCKETS)
        return data


class CategoryAmount(BaseModel):
    manhours: float = 0.0
    value: float = 0.0
    percentage: float = 0.0


class EquipmentDetail(BaseModel):
    used: Optional[str] = None
    equipment_type: str = ''
    description: str = ''
    quantity: float = 0.0
    duration: float = 0.0
    duration_type: str = ''
    fueled: str = ''
    each_rate: float = 0.0
    hourly_rate: float = 0.0
    daily_rate: float = 0.0
    weekly_rate: float = 0.0
    monthly_rate: float = 0.0
    fog_multiplier: float = 0.0
    maintenance_multiplier: float = 0.0
    rate_used: float = 0.0
    equipment_cost: float = 0.0
    fog_cost: float = 0.0
    maintenance_cost: float = 0.0
    total_cost: float = 0.0
    source_discipline: Optional[str] = None
    source_row: int


class EquipmentCostBreakdown(BaseModel):
    rental_cost: float = 0.0
    fog_cost: float = 0.0
    maintenance_cost: float = 0.0
    total: float = 0.0


class BudgetSheetDiscipline(BaseModel):
    discipline: str
    discipline_number: Optional[str] = None
    direct_labor_hours: float = 0.0
    indirect_labor_hours: float = 0.0
    manhours: float = 0.0
    value: float = 0.0
    cost_per_hour: Optional[float] = None
    categories: Dict[str, CategoryAmount] = Field(default_factory=dict)
    equipment_details: List[EquipmentDetail] = Field(default_factory=list)
    equipment_cost_breakdown: Optional[EquipmentCostBreakdown] = None

    def category_value(self, name: str) -> float:
        amount = self.categories.get(name)
        return amount.value if amount else 0.0

    def category_manhours(self, name: str) -> float:
        amount = self.categories.get(name)
        return amount.manhours if amount else 0.0


class WBSNode(BaseModel):
    code: str
    parent_code: Optional[str] = None
    level: int
    description: Optional[str] = None
    discipline: Optional[str] = None
    children: List['WBSNode'] = Field(default_factory=list)
    direct_total: float = 0.0
    budget_total: float = 0.0
    direct_manhours: float = 0.0
    manhours_total: Optional[float] = None
    direct_material_cost: float = 0.0
    material_cost: Optional[float] = None


class AllocationBreakdown(BaseModel):
    discipline: str
    base: Dict[str, float] = Field(default_factory=dict)
    additions: Dict[str, float] = Field(default_factory=dict)
    final: Dict[str, float] = Field(default_factory=dict)
    add_ons: Dict[str, float] = Field(default_factory=dict)


class BudgetSheetTotals(BaseModel):
    labor_total: float = 0.0
    materials_total: float = 0.0
    equipment_total: float = 0.0
    subcontracts_total: float = 0.0
    grand_total: float = 0.0
    direct_labor_manhours: float = 0.0
    indirect_labor_manhours: float = 0.0
    total_manhours: float = 0.0


class BudgetTotals(BaseModel):
    labor_direct: float = 0.0
    labor_indirect: float = 0.0
    labor_staff: float = 0.0
    materials: float = 0.0
    equipment: float = 0.0
    subcontracts: float = 0.0
    small_tools: float = 0.0
    total_labor: float = 0.0
    total_non_labor: float = 0.0
    grand_total: float = 0.0
    direct_labor_manhours: float = 0.0
    indirect_labor_manhours: float = 0.0
    total_manhours: float = 0.0


class BudgetImportResult(BaseModel):
    details: Dict[str, List[BudgetLineItem]] = Field(default_factory=dict)
    wbs_structure: List[WBSNode] = Field(default_factory=list)
    totals: BudgetTotals = Field(default_factory=BudgetTotals)
    discipline_budgets: List[BudgetSheetDiscipline] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)

    def all_items(self) -> List[BudgetLineItem]:
        return [item for items in self.details.values() for item in items]


WBSNode.model_rebuild()
