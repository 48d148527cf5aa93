import re
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence

DEFAULT_DISCIPLINE_RULES: Dict[str, str] = {
    # Mechanical
    'PIPING': 'Mechanical',
    'STEEL': 'Mechanical',
    'EQUIPMENT': 'Mechanical',
    'PIPING DEMO': 'Mechanical',
    'STEEL DEMO': 'Mechanical',
    'EQUIPMENT DEMO': 'Mechanical',
    # I&E
    'INSTRUMENTATION': 'I&E',
    'ELECTRICAL': 'I&E',
    'INSTRUMENTATION DEMO': 'I&E',
    'ELECTRICAL DEMO': 'I&E',
    'I&E DEMO': 'I&E',
    'HYDRO-TESTING': 'I&E',
    # Civil
    'CIVIL': 'Civil',
    'CIVIL DEMO': 'Civil',
    'CONCRETE': 'Civil',
    'CONCRETE DEMO': 'Civil',
    'GROUNDING': 'Civil',
    'GROUTING': 'Civil',
    'BUILDING-REMODELING': 'Civil',
    'BUILDING REMODELING': 'Civil',
    'CIVIL - GROUNDING': 'Civil',
    # Standalone
    'FABRICATION': 'Fabrication',
    'MOBILIZATION': 'Mobilization',
    'CLEAN UP': 'Clean Up',
}

# INPUT sheet columns AG (included flag) and AH (discipline name)
INPUT_INCLUDED_COL = 32
INPUT_DISCIPLINE_COL = 33

_WORD_START = re.compile(r'\b\w')


class DisciplineMapper:
    def __init__(self, rules: Optional[Dict[str, str]] = None):
        source = DEFAULT_DISCIPLINE_RULES if rules is None else rules
        self.rules = {name.upper().strip(): group for name, group in source.items()}

    @staticmethod
    def format_name(discipline: str) -> str:
        """Title case a discipline name, keeping I&E upper case"""
        formatted = _WORD_START.sub(lambda m: m.group(0).upper(), discipline.lower())
        return formatted.replace('I&e', 'I&E')

    @staticmethod
    def is_demo(discipline: str) -> bool:
        return 'DEMO' in discipline.upper()

    def is_known(self, discipline: str) -> bool:
        return discipline.upper().strip() in self.rules

    def parent_of(self, discipline: str) -> str:
        key = discipline.upper().strip()
        return self.rules.get(key) or self.format_name(key)

    def group(self, names: Iterable[str]) -> "OrderedDict[str, List[str]]":
        groups: "OrderedDict[str, List[str]]" = OrderedDict()
        for name in names:
            key = name.upper().strip()
            members = groups.setdefault(self.parent_of(key), [])
            if key not in members:
                members.append(key)
        return groups

    def keywords(self) -> List[str]:
        # Longest first so "PIPING DEMO" wins over "PIPING"
        return sorted(self.rules.keys(), key=len, reverse=True)


def extract_disciplines_from_input(grid: Sequence[Sequence[Any]]) -> List[str]:
    """Disciplines flagged as included on the INPUT sheet.

    The list begins at the first row whose discipline column mentions
    FABRICATION and stops at the first empty name.
    """
    start = -1
    for index, row in enumerate(grid):
        if row and len(row) > INPUT_DISCIPLINE_COL:
            value = row[INPUT_DISCIPLINE_COL]
            if value is not None and 'FABRICATION' in str(value).upper():
                start = index
                break

    if start == -1:
        logging.warning("Could not find discipline list in INPUT sheet columns AG/AH")
        return []

    disciplines: List[str] = []
    for row in grid[start:]:
        if not row or len(row) <= INPUT_DISCIPLINE_COL:
            continue
        name = row[INPUT_DISCIPLINE_COL]
        if name is None or str(name).strip() == '':
            break
        flag = row[INPUT_INCLUDED_COL]
        if flag in (1, '1'):
            disciplines.append(str(name).strip().upper())
    logging.info(f"INPUT sheet lists {len(disciplines)} included disciplines")
    return disciplines
