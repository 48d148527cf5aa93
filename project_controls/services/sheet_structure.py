import re
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from ..models.budget import (
    BudgetLineItem, SheetMapping, SheetStructure, ValidationReport, SUBCATEGORY_BUCKETS
)
from ..utils.numeric import parse_numeric

Grid = Sequence[Sequence[Any]]

HEADER_SCAN_ROWS = 20
MIN_HEADER_MATCHES = 3

HEADER_PATTERNS: Dict[str, List[str]] = {
    'wbs': ['wbs', 'code', 'item'],
    'description': ['description', 'desc', 'item', 'scope', 'work'],
    'quantity': ['qty', 'quantity', 'quant', 'ea', 'count'],
    'unit': ['unit', 'um', 'measure'],
    'rate': ['rate', 'price', 'cost', 'unit cost', 'unit price'],
    'hours': ['hours', 'hrs', 'manhours', 'mh'],
    'crew': ['crew', 'crew size', 'men'],
    'duration': ['duration', 'days', 'weeks', 'months'],
    'total': ['total', 'amount', 'extended', 'cost'],
}

# Used when a mapping has no subcategory
CATEGORY_BUCKETS = {
    'LABOR': 'labor_direct_cost',
    'MATERIAL': 'materials_cost',
    'MATERIALS': 'materials_cost',
    'EQUIPMENT': 'equipment_cost',
    'SUBCONTRACT': 'subcontracts_cost',
    'SUBCONTRACTS': 'subcontracts_cost',
}

_WBS_PATTERN = re.compile(r'^\d{2,3}[-.]\d{2,3}([-.]\d{2,3})?')
_WBS_SPLIT = re.compile(r'[-.]')


def is_blank(cell: Any) -> bool:
    if cell is None:
        return True
    if isinstance(cell, str):
        return cell.strip() == ''
    return False


def is_blank_row(row: Optional[Sequence[Any]]) -> bool:
    return not row or all(is_blank(cell) for cell in row)


def cell(row: Optional[Sequence[Any]], index: Optional[int]) -> Any:
    """Safe positional access into a possibly short row"""
    if row is None or index is None or index < 0 or index >= len(row):
        return None
    return row[index]


def _match_header_row(row: Sequence[Any]) -> Dict[str, int]:
    column_map: Dict[str, int] = {}
    for col_idx, value in enumerate(row):
        if is_blank(value):
            continue
        text = str(value).lower().strip()
        for role, patterns in HEADER_PATTERNS.items():
            # First column to claim a role keeps it
            if role not in column_map and any(pattern in text for pattern in patterns):
                column_map[role] = col_idx
    return column_map


def detect_sheet_structure(
    grid: Grid,
    report: Optional[ValidationReport] = None,
    sheet_name: str = ''
) -> SheetStructure:
    """Locate the header row and column roles of a free-form detail sheet.

    Only the first rows are scanned; the first row where at least three
    roles match becomes the header. When nothing qualifies the returned
    structure has header_row == -1 and a warning is recorded instead of
    raising, so the caller can skip the sheet.
    """
    header_row = -1
    column_map: Dict[str, int] = {}

    for index in range(min(HEADER_SCAN_ROWS, len(grid))):
        row = grid[index]
        if not row:
            continue
        matches = _match_header_row(row)
        if len(matches) >= MIN_HEADER_MATCHES:
            header_row = index
            column_map = matches
            break

    if header_row == -1:
        message = f"No header detected in sheet: {sheet_name}" if sheet_name else "No header detected"
        logging.warning(message)
        if report is not None:
            report.warn(message)
        return SheetStructure(
            header_row=-1,
            data_columns={},
            data_start_row=len(grid),
            data_end_row=len(grid) - 1
        )

    data_start = header_row + 1
    while data_start < len(grid) and is_blank_row(grid[data_start]):
        data_start += 1

    data_end = len(grid) - 1
    for index in range(len(grid) - 1, data_start - 1, -1):
        row = grid[index]
        if row and any(
            'total' in str(value).lower() or 'grand' in str(value).lower()
            for value in row if not is_blank(value)
        ):
            data_end = index - 1
            break

    return SheetStructure(
        header_row=header_row,
        data_columns=column_map,
        data_start_row=data_start,
        data_end_row=data_end
    )


def extract_wbs_code(value: Any) -> Optional[str]:
    """Return a leading WBS code such as 01-100, 02.200 or 01-100-001"""
    if is_blank(value):
        return None
    match = _WBS_PATTERN.match(str(value).strip())
    return match.group(0) if match else None


def parse_wbs_levels(code: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    parts = [part for part in _WBS_SPLIT.split(code or '') if part]
    parts += [None] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def _bucket_for(mapping: SheetMapping) -> str:
    if mapping.subcategory and mapping.subcategory.upper() in SUBCATEGORY_BUCKETS:
        return SUBCATEGORY_BUCKETS[mapping.subcategory.upper()]
    # OTHER sheets such as CONSTRUCTABILITY have no bucket of their own; they count as small tools
    return CATEGORY_BUCKETS.get((mapping.category or '').upper(), 'small_tools_cost')


def extract_sheet_items(
    grid: Grid,
    sheet_name: str,
    structure: SheetStructure,
    mapping: SheetMapping,
    discipline_resolver: Optional[Callable[[Sequence[Any], str, Optional[str]], Optional[str]]] = None
) -> List[BudgetLineItem]:
    """Turn the data region of a detail sheet into line items"""
    columns = structure.data_columns
    description_col = columns.get('description', 1)
    total_col = columns.get('total', 0)
    bucket = _bucket_for(mapping)
    items: List[BudgetLineItem] = []

    last = min(structure.data_end_row, len(grid) - 1)
    for index in range(structure.data_start_row, last + 1):
        row = grid[index]
        if is_blank_row(row):
            continue

        description_cell = cell(row, description_col)
        if not is_blank(description_cell) and 'total' in str(description_cell).lower():
            continue

        total_cost = parse_numeric(cell(row, total_col))
        if total_cost <= 0:
            continue

        description = '' if is_blank(description_cell) else str(description_cell).strip()
        fields: Dict[str, Any] = {
            'source_sheet': sheet_name,
            'source_row': index + 1,
            'category': mapping.category,
            'subcategory': mapping.subcategory,
            'description': description,
            bucket: total_cost,
        }

        if 'wbs' in columns:
            fields['wbs_code'] = extract_wbs_code(cell(row, columns['wbs']))
        if 'quantity' in columns:
            fields['quantity'] = parse_numeric(cell(row, columns['quantity']))
        if 'unit' in columns:
            unit = cell(row, columns['unit'])
            fields['unit_of_measure'] = '' if is_blank(unit) else str(unit).strip()
        if 'rate' in columns:
            fields['unit_rate'] = parse_numeric(cell(row, columns['rate']))
        if 'hours' in columns:
            fields['manhours'] = parse_numeric(cell(row, columns['hours']))
        if 'crew' in columns:
            fields['crew_size'] = int(round(parse_numeric(cell(row, columns['crew']))))
        if 'duration' in columns:
            fields['duration_days'] = parse_numeric(cell(row, columns['duration']))

        if discipline_resolver is not None:
            fields['discipline'] = discipline_resolver(row, description, fields.get('wbs_code'))

        items.append(BudgetLineItem(**fields))

    logging.info(f"Extracted {len(items)} items from sheet {sheet_name}")
    return items
