import logging
from typing import Dict, List, Sequence
from ..models.budget import (
    AllocationBreakdown, BudgetLineItem, BudgetSheetDiscipline, BudgetTotals, SUBCATEGORY_BUCKETS
)

# base key -> category label in the BUDGETS sheet
BASE_CATEGORIES = {
    'direct_labor': 'DIRECT LABOR',
    'indirect_labor': 'INDIRECT LABOR',
    'materials': 'MATERIALS',
    'equipment': 'EQUIPMENT',
    'subcontracts': 'SUBCONTRACTS',
    'small_tools': 'SMALL TOOLS & CONSUMABLES',
}

ADD_ON_CATEGORIES = {
    'taxes_insurance': 'TAXES & INSURANCE',
    'perdiem': 'PERDIEM',
    'add_ons': 'ADD ONS',
    'scaffolding': 'SCAFFOLDING',
    'risk': 'RISK',
}

# final key, category, subcategory, wbs code, cost type, description suffix, manhours label
LINE_ITEM_LAYOUT = [
    ('direct_labor', 'LABOR', 'DIRECT', 'L-001', 'Direct Labor',
     'Direct Labor (incl. proportional add-ons)', 'DIRECT LABOR'),
    ('indirect_labor', 'LABOR', 'INDIRECT', 'L-002', 'Indirect Labor',
     'Indirect Labor (incl. add-ons, perdiem, proportional others)', 'INDIRECT LABOR'),
    ('staff_labor', 'LABOR', 'STAFF', 'L-003', 'Staff Labor', 'Staff Labor', None),
    ('materials', 'NON_LABOR', 'MATERIALS', 'N-001', 'Materials',
     'Materials (incl. proportional risk)', None),
    ('equipment', 'NON_LABOR', 'EQUIPMENT', 'N-002', 'Equipment',
     'Equipment (incl. proportional risk)', None),
    ('subcontracts', 'NON_LABOR', 'SUBCONTRACTS', 'N-003', 'Subcontracts',
     'Subcontracts (incl. scaffolding, proportional risk)', None),
    ('small_tools', 'NON_LABOR', 'SMALL_TOOLS', 'N-004', 'Small Tools & Consumables',
     'Small Tools & Consumables (incl. proportional risk)', None),
]


def allocation_breakdown(discipline: BudgetSheetDiscipline) -> AllocationBreakdown:
    """Distribute the add-on categories of one discipline onto its base categories.

    Taxes & insurance and per diem follow the direct/indirect labor split,
    add ons land on indirect labor, scaffolding on subcontracts, and risk is
    spread over all six bases by their share of the combined base.
    """
    base = {key: discipline.category_value(label) for key, label in BASE_CATEGORIES.items()}
    add_ons = {key: discipline.category_value(label) for key, label in ADD_ON_CATEGORIES.items()}
    additions = {key: 0.0 for key in base}
    additions['staff_labor'] = 0.0

    labor_base = base['direct_labor'] + base['indirect_labor']
    all_base = sum(base.values())

    for key in ('taxes_insurance', 'perdiem'):
        if add_ons[key] > 0 and labor_base > 0:
            additions['direct_labor'] += base['direct_labor'] / labor_base * add_ons[key]
            additions['indirect_labor'] += base['indirect_labor'] / labor_base * add_ons[key]

    additions['indirect_labor'] += add_ons['add_ons']
    additions['subcontracts'] += add_ons['scaffolding']

    if add_ons['risk'] > 0 and all_base > 0:
        for key, amount in base.items():
            additions[key] += amount / all_base * add_ons['risk']

    final = {key: base.get(key, 0.0) + additions[key] for key in additions}
    return AllocationBreakdown(
        discipline=discipline.discipline,
        base=base,
        additions=additions,
        final=final,
        add_ons=add_ons
    )


def allocate_discipline(discipline: BudgetSheetDiscipline, row_start: int = 1) -> List[BudgetLineItem]:
    breakdown = allocation_breakdown(discipline)
    items: List[BudgetLineItem] = []
    row = row_start

    for key, category, subcategory, wbs_code, cost_type, suffix, hours_label in LINE_ITEM_LAYOUT:
        amount = breakdown.final[key]
        if amount <= 0:
            continue
        items.append(BudgetLineItem(**{
            'source_sheet': 'BUDGETS',
            'source_row': row,
            'discipline': discipline.discipline,
            'category': category,
            'subcategory': subcategory,
            'wbs_code': wbs_code,
            'cost_type': cost_type,
            'description': f"{discipline.discipline} - {suffix}",
            'manhours': discipline.category_manhours(hours_label) if hours_label else 0.0,
            SUBCATEGORY_BUCKETS[subcategory]: amount,
        }))
        row += 1
    return items


def allocate_disciplines(disciplines: Sequence[BudgetSheetDiscipline]) -> List[BudgetLineItem]:
    items: List[BudgetLineItem] = []
    for discipline in disciplines:
        items.extend(allocate_discipline(discipline, row_start=len(items) + 1))
    logging.info(f"Allocated {len(disciplines)} disciplines into {len(items)} line items")
    return items


def summarize_line_items(items: Sequence[BudgetLineItem]) -> BudgetTotals:
    totals = BudgetTotals()
    for item in items:
        totals.labor_direct += item.labor_direct_cost
        totals.labor_indirect += item.labor_indirect_cost
        totals.labor_staff += item.labor_staff_cost
        totals.materials += item.materials_cost
        totals.equipment += item.equipment_cost
        totals.subcontracts += item.subcontracts_cost
        totals.small_tools += item.small_tools_cost
        totals.total_labor += item.labor_direct_cost + item.labor_indirect_cost + item.labor_staff_cost
        totals.total_non_labor += (
            item.materials_cost + item.equipment_cost + item.subcontracts_cost + item.small_tools_cost
        )
        totals.grand_total += item.total_cost

        if item.manhours:
            if item.subcategory == 'DIRECT':
                totals.direct_labor_manhours += item.manhours
            elif item.subcategory == 'INDIRECT':
                totals.indirect_labor_manhours += item.manhours
            totals.total_manhours += item.manhours
    return totals
