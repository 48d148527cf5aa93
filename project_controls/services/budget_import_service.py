import logging
import uuid
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
from openpyxl import load_workbook
from ..models.budget import (
    BudgetImportResult, BudgetLineItem, BudgetSheetDiscipline, SheetMapping, ValidationReport, WBSNode
)
from .budget_sheet import extract_budget_disciplines, extract_general_equipment
from .category_resolver import resolve_discipline
from .cost_allocator import allocate_disciplines, summarize_line_items
from .discipline_mapper import DisciplineMapper, extract_disciplines_from_input
from .equipment_matcher import EquipmentMatcher
from .sheet_structure import Grid, detect_sheet_structure, extract_sheet_items
from .wbs_builder import (
    build_wbs_from_codes, build_wbs_from_disciplines, flatten_wbs, populate_wbs
)

ALLOWED_SHEETS = [
    'CONSTRUCTABILITY',
    'DISC. EQUIPMENT',
    'GENERAL EQUIPMENT',
    'SCAFFOLDING',
    'SUBS',
    'MATERIALS',
    'STAFF',
    'INDIRECTS',
    'DIRECTS',
]

BUDGETS_SHEET = 'BUDGETS'
EQUIPMENT_SHEET = 'GENERAL EQUIPMENT'
INPUT_SHEETS = {'INPUT', 'INPUTS'}

# Columns that may hold an explicit discipline on detail sheets
DISCIPLINE_COLUMN_ROLE = 'discipline'


class SheetMappingError(Exception):
    """The injected sheet mapping table cannot be used"""


def read_workbook(content: bytes) -> Dict[str, List[List[Any]]]:
    """Load .xlsx bytes into one value grid per sheet"""
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        logging.error(f"Unable to open workbook: {str(e)}")
        raise ValueError(f"Unable to read workbook: {str(e)}")

    try:
        grids = {}
        for worksheet in workbook.worksheets:
            grids[worksheet.title] = [list(row) for row in worksheet.iter_rows(values_only=True)]
        logging.info(f"Read workbook with sheets: {', '.join(grids.keys())}")
        return grids
    finally:
        workbook.close()


class BudgetImportService:
    def __init__(
        self,
        sheet_mappings: Dict[str, SheetMapping],
        discipline_mapper: Optional[DisciplineMapper] = None,
        predefined_wbs: Optional[Sequence[WBSNode]] = None,
        equipment_matcher: Optional[EquipmentMatcher] = None
    ):
        if not isinstance(sheet_mappings, dict) or not all(
            isinstance(mapping, SheetMapping) for mapping in sheet_mappings.values()
        ):
            raise SheetMappingError("Sheet mappings must be a dict of SheetMapping entries")

        self.sheet_mappings = {name.strip().upper(): mapping for name, mapping in sheet_mappings.items()}
        self.discipline_mapper = discipline_mapper or DisciplineMapper()
        self.predefined_wbs = list(predefined_wbs or [])
        self.equipment_matcher = equipment_matcher or EquipmentMatcher()

    def _discipline_resolver(self, mapping: SheetMapping):
        keywords = self.discipline_mapper.keywords()
        column = mapping.column_mappings.get(DISCIPLINE_COLUMN_ROLE)

        def resolve(row: Sequence[Any], description: str, wbs_code: Optional[str]) -> Optional[str]:
            row_value = row[column] if column is not None and column < len(row) else None
            discipline = resolve_discipline(row_value, description, wbs_code, keywords)
            if discipline and self.discipline_mapper.is_known(discipline):
                return self.discipline_mapper.parent_of(discipline)
            return discipline
        return resolve

    def _parse_sheet(self, sheet_name: str, grid: Grid, report: ValidationReport) -> List[BudgetLineItem]:
        mapping = self.sheet_mappings.get(sheet_name.strip().upper())
        if mapping is None:
            report.error(f"No mapping configuration found for required sheet: {sheet_name}")
            return []

        structure = detect_sheet_structure(grid, sheet_name=sheet_name)
        if structure.header_row == -1:
            report.warn(f"Could not detect header row in sheet: {sheet_name}")
            return []

        items = extract_sheet_items(grid, sheet_name, structure, mapping, self._discipline_resolver(mapping))
        if not items:
            report.warn(f"No valid data found in sheet: {sheet_name}")
        return items

    def analyze(self, workbook_grids: Dict[str, Grid]) -> BudgetImportResult:
        """Run every parser over a workbook and assemble the import result.

        Problems with individual sheets end up in the validation report; only
        the sheets that parsed contribute line items.
        """
        report = ValidationReport()
        details: Dict[str, List[BudgetLineItem]] = {}
        sheets = {name.strip().upper(): (name, grid) for name, grid in workbook_grids.items()}

        disciplines: List[BudgetSheetDiscipline] = []
        if BUDGETS_SHEET in sheets:
            disciplines = extract_budget_disciplines(sheets[BUDGETS_SHEET][1], report)
            if EQUIPMENT_SHEET in sheets:
                equipment = extract_general_equipment(sheets[EQUIPMENT_SHEET][1])
                self.equipment_matcher.match(disciplines, equipment, report)
            if disciplines:
                details[BUDGETS_SHEET] = allocate_disciplines(disciplines)

        for key, (sheet_name, grid) in sheets.items():
            if key == BUDGETS_SHEET or key in INPUT_SHEETS:
                continue
            if key not in ALLOWED_SHEETS:
                report.warn(f"Sheet '{sheet_name}' was skipped (not in allowed list)")
                continue
            # Already folded into the discipline equipment budgets
            if key == EQUIPMENT_SHEET and disciplines:
                continue
            try:
                items = self._parse_sheet(sheet_name, grid, report)
            except Exception as e:
                logging.error(f"Error processing sheet {sheet_name}: {str(e)}", exc_info=True)
                report.error(f"Error processing sheet {sheet_name}: {str(e)}")
                continue
            if items:
                details[sheet_name] = items

        all_items = [item for items in details.values() for item in items]

        if disciplines:
            wbs = build_wbs_from_disciplines(disciplines, self.discipline_mapper)
        elif self.predefined_wbs:
            wbs = populate_wbs(self.predefined_wbs, all_items)
        else:
            wbs = build_wbs_from_codes(all_items)

        missing = sum(1 for item in all_items if not item.wbs_code)
        if missing:
            report.warn(f"{missing} items do not have WBS codes assigned")

        input_key = next((key for key in INPUT_SHEETS if key in sheets), None)
        if input_key and disciplines:
            budgeted = {discipline.discipline.upper().strip() for discipline in disciplines}
            for name in extract_disciplines_from_input(sheets[input_key][1]):
                if name not in budgeted:
                    report.warn(f"Discipline {name} is included on INPUT but has no BUDGETS block")

        totals = summarize_line_items(all_items)
        logging.info(
            f"Budget import: {len(all_items)} items from {len(details)} sheets, "
            f"grand total ${totals.grand_total:,.2f}, {len(report.warnings)} warnings, "
            f"{len(report.errors)} errors"
        )
        return BudgetImportResult(
            details=details,
            wbs_structure=wbs,
            totals=totals,
            discipline_budgets=disciplines,
            validation=report
        )

    def analyze_bytes(self, content: bytes) -> BudgetImportResult:
        return self.analyze(read_workbook(content))

    @staticmethod
    def to_rows(
        result: BudgetImportResult,
        project_id: str,
        import_batch_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Flat rows for persisting one import, keyed by project and batch"""
        batch_id = import_batch_id or str(uuid.uuid4())
        keys = {'project_id': project_id, 'import_batch_id': batch_id}

        line_items = [{**keys, **item.model_dump()} for item in result.all_items()]
        wbs_nodes = [{**keys, **node} for node in flatten_wbs(result.wbs_structure)]
        summary = {**keys, **result.totals.model_dump()}
        summary['discipline_count'] = len(result.discipline_budgets)
        summary['line_item_count'] = len(line_items)

        return {
            'import_batch_id': batch_id,
            'line_items': line_items,
            'wbs_nodes': wbs_nodes,
            'budget_summary': summary,
        }
