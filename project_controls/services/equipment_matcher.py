import logging
from typing import Dict, List, Optional, Sequence
from ..config import settings
from ..models.budget import (
    BudgetSheetDiscipline, EquipmentCostBreakdown, EquipmentDetail, ValidationReport
)

DEFAULT_EQUIPMENT_DISCIPLINE_MAPPING = {
    'CIVIL': 'STEEL',
    'GENERAL': '',
    '': '',
}

PROJECT_WIDE_SOURCES = {'', 'GENERAL'}


class EquipmentMatcher:
    """Best-effort reconciliation of equipment detail rows to discipline budgets"""

    def __init__(self, discipline_mapping: Optional[Dict[str, str]] = None, epsilon: Optional[float] = None):
        self.discipline_mapping = (
            DEFAULT_EQUIPMENT_DISCIPLINE_MAPPING if discipline_mapping is None else discipline_mapping
        )
        self.epsilon = settings.RECONCILIATION_EPSILON if epsilon is None else epsilon

    def mapped_discipline(self, detail: EquipmentDetail) -> str:
        source = detail.source_discipline or ''
        return self.discipline_mapping.get(source, source)

    @staticmethod
    def is_project_wide(detail: EquipmentDetail) -> bool:
        return (detail.source_discipline or '') in PROJECT_WIDE_SOURCES

    def _differs(self, matched_total: float, target: float) -> bool:
        return abs(matched_total - target) > self.epsilon

    def match_discipline(
        self,
        discipline: BudgetSheetDiscipline,
        equipment: Sequence[EquipmentDetail],
        report: Optional[ValidationReport] = None
    ) -> List[EquipmentDetail]:
        target = discipline.category_value('EQUIPMENT')
        if target == 0:
            return []

        matched = [d for d in equipment if self.mapped_discipline(d) == discipline.discipline]
        matched_total = sum(d.total_cost for d in matched)

        if matched_total == 0 or self._differs(matched_total, target):
            project_wide = [d for d in equipment if self.is_project_wide(d)]
            if not matched and not project_wide:
                logging.info(f"{discipline.discipline}: no specific or project-wide equipment, using all items")
                matched = list(equipment)
            else:
                # Mapped project-wide rows may already be in the matched set
                seen = {id(d) for d in matched}
                matched = matched + [d for d in project_wide if id(d) not in seen]
            matched_total = sum(d.total_cost for d in matched)

        discipline.equipment_details = matched
        discipline.equipment_cost_breakdown = EquipmentCostBreakdown(
            rental_cost=sum(d.equipment_cost for d in matched),
            fog_cost=sum(d.fog_cost for d in matched),
            maintenance_cost=sum(d.maintenance_cost for d in matched),
            total=matched_total
        )

        if self._differs(matched_total, target):
            message = (
                f"Equipment for {discipline.discipline} totals ${matched_total:,.2f} "
                f"but the budget shows ${target:,.2f}"
            )
            logging.warning(message)
            if report is not None:
                report.warn(message)
        return matched

    def match(
        self,
        disciplines: Sequence[BudgetSheetDiscipline],
        equipment: Sequence[EquipmentDetail],
        report: Optional[ValidationReport] = None
    ) -> Sequence[BudgetSheetDiscipline]:
        if not equipment:
            return disciplines
        for discipline in disciplines:
            self.match_discipline(discipline, equipment, report)
        return disciplines
