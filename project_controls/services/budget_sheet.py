import logging
from typing import Any, List, Optional, Sequence
from ..models.budget import (
    BudgetSheetDiscipline, BudgetSheetTotals, CategoryAmount, EquipmentDetail, ValidationReport
)
from ..utils.numeric import parse_numeric
from .sheet_structure import Grid, cell, is_blank

BUDGET_CATEGORIES = [
    'DIRECT LABOR',
    'INDIRECT LABOR',
    'ALL LABOR',
    'TAXES & INSURANCE',
    'PERDIEM',
    'ADD ONS',
    'SMALL TOOLS & CONSUMABLES',
    'MATERIALS',
    'EQUIPMENT',
    'SUBCONTRACTS',
    'RISK',
    'DISCIPLINE TOTALS',
]
BLOCK_SIZE = len(BUDGET_CATEGORIES)
SUBTOTAL_CATEGORIES = {'ALL LABOR', 'DISCIPLINE TOTALS'}

# Column positions inside the BUDGETS sheet
COL_NUMBER, COL_NAME, COL_BLANK, COL_CATEGORY = 0, 1, 2, 3
COL_MANHOURS, COL_VALUE, COL_PERCENT = 4, 5, 6


def _text(value: Any) -> str:
    return '' if is_blank(value) else str(value).strip()


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(_text(value))
        return True
    except ValueError:
        return False


def is_discipline_header(grid: Grid, index: int) -> bool:
    """A block starts with: number in A, name in B, nothing in C, DIRECT LABOR in D"""
    if index < 0 or index + BLOCK_SIZE - 1 >= len(grid):
        return False
    row = grid[index]
    if not row:
        return False
    number = _text(cell(row, COL_NUMBER))
    return (
        number != ''
        and _is_number(number)
        and _text(cell(row, COL_NAME)) != ''
        and _text(cell(row, COL_BLANK)) == ''
        and _text(cell(row, COL_CATEGORY)).upper() == 'DIRECT LABOR'
    )


def _block_matches(grid: Grid, start: int) -> bool:
    for offset, expected in enumerate(BUDGET_CATEGORIES):
        label = _text(cell(grid[start + offset], COL_CATEGORY)).upper()
        if label != expected:
            logging.debug(
                f"Category mismatch at row {start + offset + 1}: expected '{expected}', got '{label}'"
            )
            return False
    return True


def _read_block(grid: Grid, start: int) -> BudgetSheetDiscipline:
    header = grid[start]
    discipline = BudgetSheetDiscipline(
        discipline=_text(cell(header, COL_NAME)),
        discipline_number=_text(cell(header, COL_NUMBER))
    )

    for offset in range(BLOCK_SIZE):
        row = grid[start + offset]
        label = _text(cell(row, COL_CATEGORY)).upper()
        amount = CategoryAmount(
            manhours=parse_numeric(cell(row, COL_MANHOURS)),
            value=parse_numeric(cell(row, COL_VALUE)),
            percentage=parse_numeric(cell(row, COL_PERCENT))
        )
        if label not in SUBTOTAL_CATEGORIES:
            discipline.categories[label] = amount

        if label == 'DIRECT LABOR':
            discipline.direct_labor_hours = amount.manhours
        elif label == 'INDIRECT LABOR':
            discipline.indirect_labor_hours = amount.manhours
        elif label == 'DISCIPLINE TOTALS':
            discipline.value = amount.value

    discipline.manhours = discipline.direct_labor_hours + discipline.indirect_labor_hours
    if discipline.manhours > 0:
        labor_value = (
            discipline.category_value('DIRECT LABOR') + discipline.category_value('INDIRECT LABOR')
        )
        discipline.cost_per_hour = labor_value / discipline.manhours
    return discipline


def extract_budget_disciplines(
    grid: Grid,
    report: Optional[ValidationReport] = None
) -> List[BudgetSheetDiscipline]:
    """Walk the BUDGETS sheet and return one record per valid 12-row block.

    A candidate header whose following rows do not carry the category labels
    in the exact expected order is skipped one row at a time; partial blocks
    are never read.
    """
    disciplines: List[BudgetSheetDiscipline] = []
    if not grid:
        if report is not None:
            report.error("BUDGETS sheet is empty")
        return disciplines

    index = 1
    while index < len(grid):
        if not is_discipline_header(grid, index):
            index += 1
            continue

        if not _block_matches(grid, index):
            logging.info(f"Invalid discipline block at row {index + 1}, skipping")
            index += 1
            continue

        discipline = _read_block(grid, index)
        logging.info(
            f"Discipline #{discipline.discipline_number} {discipline.discipline}: "
            f"direct={discipline.direct_labor_hours}hrs, indirect={discipline.indirect_labor_hours}hrs, "
            f"value=${discipline.value}"
        )
        disciplines.append(discipline)
        index += BLOCK_SIZE

    if not disciplines and report is not None:
        report.error("No discipline blocks found in BUDGETS sheet")

    logging.info(f"Extracted {len(disciplines)} disciplines from BUDGETS sheet")
    return disciplines


def summarize_budget_disciplines(disciplines: Sequence[BudgetSheetDiscipline]) -> BudgetSheetTotals:
    totals = BudgetSheetTotals()
    for discipline in disciplines:
        totals.labor_total += sum(
            discipline.category_value(name)
            for name in ('DIRECT LABOR', 'INDIRECT LABOR', 'TAXES & INSURANCE', 'PERDIEM', 'ADD ONS')
        )
        totals.materials_total += discipline.category_value('MATERIALS')
        totals.equipment_total += discipline.category_value('EQUIPMENT')
        totals.subcontracts_total += discipline.category_value('SUBCONTRACTS')
        totals.grand_total += discipline.value
        totals.direct_labor_manhours += discipline.direct_labor_hours
        totals.indirect_labor_manhours += discipline.indirect_labor_hours
        totals.total_manhours += discipline.manhours
    return totals


def extract_general_equipment(grid: Grid) -> List[EquipmentDetail]:
    """Read costed equipment rows (columns A..S) from the GENERAL EQUIPMENT sheet"""
    details: List[EquipmentDetail] = []

    for index in range(1, len(grid)):
        row = grid[index]
        if not row:
            continue

        equipment_cost = parse_numeric(cell(row, 16))
        fog_cost = parse_numeric(cell(row, 17))
        maintenance_cost = parse_numeric(cell(row, 18))
        if equipment_cost <= 0 and fog_cost <= 0 and maintenance_cost <= 0:
            continue

        used = cell(row, 0)
        details.append(EquipmentDetail(
            used=None if is_blank(used) else str(used).strip(),
            source_discipline=_text(cell(row, 1)) or None,
            equipment_type=_text(cell(row, 2)),
            description=_text(cell(row, 3)),
            quantity=parse_numeric(cell(row, 4)),
            duration=parse_numeric(cell(row, 5)),
            duration_type=_text(cell(row, 6)),
            fueled=_text(cell(row, 7)),
            each_rate=parse_numeric(cell(row, 8)),
            hourly_rate=parse_numeric(cell(row, 9)),
            daily_rate=parse_numeric(cell(row, 10)),
            weekly_rate=parse_numeric(cell(row, 11)),
            monthly_rate=parse_numeric(cell(row, 12)),
            fog_multiplier=parse_numeric(cell(row, 13)),
            maintenance_multiplier=parse_numeric(cell(row, 14)),
            rate_used=parse_numeric(cell(row, 15)),
            equipment_cost=equipment_cost,
            fog_cost=fog_cost,
            maintenance_cost=maintenance_cost,
            total_cost=equipment_cost + fog_cost + maintenance_cost,
            source_row=index + 1
        ))

    logging.info(
        f"GENERAL EQUIPMENT: {len(details)} items, total ${sum(d.total_cost for d in details)}"
    )
    return details
