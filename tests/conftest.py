import pytest
from project_controls.services.budget_sheet import BUDGET_CATEGORIES

API_KEY = "test-key-0123456789abcdef"

PIPING_VALUES = {
    'DIRECT LABOR': (100, 4000),
    'INDIRECT LABOR': (20, 1000),
    'TAXES & INSURANCE': (0, 500),
    'PERDIEM': (0, 250),
    'ADD ONS': (0, 100),
    'SMALL TOOLS & CONSUMABLES': (0, 200),
    'MATERIALS': (0, 3000),
    'EQUIPMENT': (0, 1500),
    'SUBCONTRACTS': (0, 800),
    'RISK': (0, 1000),
}


def _budget_block(number, name, values):
    labor = sum(values.get(label, (0, 0))[1] for label in ('DIRECT LABOR', 'INDIRECT LABOR'))
    total = sum(value for _, value in values.values())
    rows = []
    for offset, label in enumerate(BUDGET_CATEGORIES):
        if label == 'ALL LABOR':
            manhours, value = 0, labor
        elif label == 'DISCIPLINE TOTALS':
            manhours, value = 0, total
        else:
            manhours, value = values.get(label, (0, 0))
        rows.append([
            number if offset == 0 else None,
            name if offset == 0 else None,
            None,
            label,
            manhours,
            value,
            0,
        ])
    return rows


def _equipment_row(discipline, cost, fog=0, maintenance=0, description='Crane'):
    row = [None] * 19
    row[0] = 'X'
    row[1] = discipline
    row[2] = 'CRANE'
    row[3] = description
    row[4] = 1
    row[5] = 4
    row[6] = 'WEEKS'
    row[16] = cost
    row[17] = fog
    row[18] = maintenance
    return row


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def budget_block():
    return _budget_block


@pytest.fixture
def equipment_row():
    return _equipment_row


@pytest.fixture
def piping_values():
    return dict(PIPING_VALUES)


@pytest.fixture
def budgets_grid():
    header = [['#', 'DISCIPLINE', None, 'CATEGORY', 'MANHOURS', 'VALUE', '%']]
    return header + _budget_block(1, 'PIPING', PIPING_VALUES)


@pytest.fixture
def general_equipment_grid():
    header = [['USED', 'DISCIPLINE', 'TYPE', 'DESCRIPTION'] + [None] * 15]
    return header + [
        _equipment_row('PIPING', 1000),
        _equipment_row('GENERAL', 400, fog=60, maintenance=40),
    ]


@pytest.fixture
def directs_grid():
    return [
        ['DIRECT LABOR ESTIMATE'],
        ['WBS', 'Description', 'Crew', 'Hours', 'Total'],
        [None, None, None, None, None],
        ['01-100', 'Pipe fitting', 4, 160, 8000],
        [None, 'Weld out', 2, 40, '2,000'],
        [None, 'Cleanup', 1, 0, '$ -   '],
        [None, 'Total', None, 200, 10000],
    ]
