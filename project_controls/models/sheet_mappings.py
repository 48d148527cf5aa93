from typing import Dict
from .budget import SheetMapping


def default_sheet_mappings() -> Dict[str, SheetMapping]:
    """Mapping table for the standard estimate workbook.

    Column positions are zero based. Header detection takes precedence for
    locating data; the `discipline` column, where present, feeds discipline
    resolution of each row.
    """
    mappings = [
        SheetMapping(
            sheet_name='CONSTRUCTABILITY', category='OTHER', subcategory='RISK',
            column_mappings={'wbs_code': 0, 'description': 1, 'mitigation': 2, 'cost_impact': 3, 'total_cost': 4}
        ),
        SheetMapping(
            sheet_name='DISC. EQUIPMENT', category='EQUIPMENT', subcategory='DISCIPLINE',
            column_mappings={
                'wbs_code': 0, 'discipline': 1, 'description': 2, 'quantity': 3,
                'duration': 4, 'rate': 5, 'total_cost': 6,
            }
        ),
        SheetMapping(
            sheet_name='GENERAL EQUIPMENT', category='EQUIPMENT',
            column_mappings={
                'wbs_code': 0, 'description': 1, 'quantity': 2, 'duration': 3,
                'rate': 4, 'total_cost': 5, 'owned_rented': 6,
            }
        ),
        SheetMapping(
            sheet_name='SCAFFOLDING', category='SUBCONTRACT', subcategory='SCAFFOLDING',
            column_mappings={
                'wbs_code': 0, 'description': 1, 'area': 2, 'duration': 3,
                'unit_rate': 4, 'total_cost': 5, 'contractor': 6,
            }
        ),
        SheetMapping(
            sheet_name='SUBS', category='SUBCONTRACT',
            column_mappings={
                'wbs_code': 0, 'description': 1, 'contractor': 2, 'lump_sum': 3,
                'unit_price': 4, 'total_cost': 5,
            }
        ),
        SheetMapping(
            sheet_name='MATERIALS', category='MATERIAL',
            column_mappings={
                'wbs_code': 0, 'description': 1, 'quantity': 2, 'unit': 3,
                'unit_price': 4, 'total_cost': 5, 'supplier': 6,
            }
        ),
        SheetMapping(
            sheet_name='STAFF', category='LABOR', subcategory='STAFF',
            column_mappings={
                'wbs_code': 0, 'position': 1, 'quantity': 2, 'duration': 3,
                'monthly_rate': 4, 'total_cost': 5,
            }
        ),
        SheetMapping(
            sheet_name='INDIRECTS', category='LABOR', subcategory='INDIRECT',
            column_mappings={'wbs_code': 0, 'description': 1, 'quantity': 2, 'duration': 3, 'rate': 4, 'total_cost': 5}
        ),
        SheetMapping(
            sheet_name='DIRECTS', category='LABOR', subcategory='DIRECT',
            column_mappings={
                'wbs_code': 0, 'description': 1, 'crew_size': 2, 'duration': 3,
                'manhours': 4, 'rate': 5, 'total_cost': 6,
            }
        ),
    ]
    return {mapping.sheet_name: mapping for mapping in mappings}
