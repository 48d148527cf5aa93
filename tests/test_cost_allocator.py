import pytest
from project_controls.models.budget import BudgetSheetDiscipline, CategoryAmount
from project_controls.services.budget_sheet import extract_budget_disciplines
from project_controls.services.cost_allocator import (
    allocate_discipline, allocate_disciplines, allocation_breakdown, summarize_line_items
)


def _discipline(values, manhours=None):
    manhours = manhours or {}
    return BudgetSheetDiscipline(
        discipline='PIPING',
        categories={
            label: CategoryAmount(value=value, manhours=manhours.get(label, 0))
            for label, value in values.items()
        }
    )


def test_risk_is_spread_by_base_share():
    discipline = _discipline({'DIRECT LABOR': 4000, 'MATERIALS': 1000, 'RISK': 1000})

    breakdown = allocation_breakdown(discipline)

    assert breakdown.additions['direct_labor'] == pytest.approx(800)
    assert breakdown.additions['materials'] == pytest.approx(200)
    assert breakdown.final['direct_labor'] == pytest.approx(4800)
    assert breakdown.final['materials'] == pytest.approx(1200)


def test_labor_add_ons_follow_labor_split():
    discipline = _discipline({
        'DIRECT LABOR': 3000, 'INDIRECT LABOR': 1000,
        'TAXES & INSURANCE': 400, 'PERDIEM': 200, 'ADD ONS': 50,
    })

    breakdown = allocation_breakdown(discipline)

    assert breakdown.final['direct_labor'] == pytest.approx(3000 + 300 + 150)
    assert breakdown.final['indirect_labor'] == pytest.approx(1000 + 100 + 50 + 50)


def test_scaffolding_goes_to_subcontracts():
    discipline = _discipline({'SUBCONTRACTS': 500, 'SCAFFOLDING': 250})
    assert allocation_breakdown(discipline).final['subcontracts'] == pytest.approx(750)


def test_labor_add_ons_skipped_without_labor_base():
    discipline = _discipline({'MATERIALS': 1000, 'TAXES & INSURANCE': 100})
    breakdown = allocation_breakdown(discipline)
    assert breakdown.final['direct_labor'] == 0
    assert breakdown.final['indirect_labor'] == 0


def test_allocation_preserves_discipline_total(budgets_grid):
    discipline = extract_budget_disciplines(budgets_grid)[0]

    items = allocate_discipline(discipline)

    assert sum(item.total_cost for item in items) == pytest.approx(discipline.value)
    assert all(item.total_cost > 0 for item in items)
    assert [item.wbs_code for item in items] == ['L-001', 'L-002', 'N-001', 'N-002', 'N-003', 'N-004']


def test_line_items_carry_labor_manhours():
    discipline = _discipline(
        {'DIRECT LABOR': 1000, 'INDIRECT LABOR': 500},
        manhours={'DIRECT LABOR': 20, 'INDIRECT LABOR': 10}
    )
    items = allocate_discipline(discipline, row_start=5)

    assert [item.manhours for item in items] == [20, 10]
    assert [item.source_row for item in items] == [5, 6]
    assert items[0].labor_direct_cost == 1000
    assert items[1].labor_indirect_cost == 500
    assert items[0].description == 'PIPING - Direct Labor (incl. proportional add-ons)'


def test_rows_number_across_disciplines_and_totals(budgets_grid):
    disciplines = extract_budget_disciplines(budgets_grid)
    items = allocate_disciplines(disciplines + disciplines)

    assert [item.source_row for item in items] == list(range(1, len(items) + 1))

    totals = summarize_line_items(items)
    assert totals.grand_total == pytest.approx(2 * 12350)
    assert totals.total_labor + totals.total_non_labor == pytest.approx(totals.grand_total)
    assert totals.direct_labor_manhours == 200
    assert totals.indirect_labor_manhours == 40
    assert totals.total_manhours == 240
