import re
import logging
from typing import Dict, List, Optional, Sequence
from ..models.budget import BudgetLineItem, BudgetSheetDiscipline, WBSNode
from .discipline_mapper import DisciplineMapper

_SEGMENT = re.compile(r'[^-.]+')


def rollup(nodes: Sequence[WBSNode]) -> Sequence[WBSNode]:
    """Recompute rolled-up totals bottom-up.

    Each node keeps its own directly assigned amounts, so running this twice
    gives the same result.
    """
    for node in nodes:
        rollup(node.children)
        node.budget_total = node.direct_total + sum(child.budget_total for child in node.children)
        node.manhours_total = node.direct_manhours + sum(child.manhours_total or 0.0 for child in node.children)
        node.material_cost = node.direct_material_cost + sum(child.material_cost or 0.0 for child in node.children)
    return nodes


def sort_siblings(nodes: List[WBSNode]) -> List[WBSNode]:
    nodes.sort(key=lambda node: node.code)
    for node in nodes:
        sort_siblings(node.children)
    return nodes


def build_wbs_from_disciplines(
    disciplines: Sequence[BudgetSheetDiscipline],
    mapper: Optional[DisciplineMapper] = None
) -> List[WBSNode]:
    """Two-level tree: discipline groups ("01") over disciplines ("01.01")"""
    mapper = mapper or DisciplineMapper()
    by_name: Dict[str, BudgetSheetDiscipline] = {}
    for discipline in disciplines:
        by_name.setdefault(discipline.discipline.upper().strip(), discipline)

    roots: List[WBSNode] = []
    groups = mapper.group(by_name.keys())
    for group_index, (group_name, members) in enumerate(groups.items(), start=1):
        parent_code = f"{group_index:02d}"
        parent = WBSNode(
            code=parent_code,
            level=1,
            description=group_name.upper(),
            discipline=group_name
        )
        for child_index, name in enumerate(members, start=1):
            source = by_name[name]
            parent.children.append(WBSNode(
                code=f"{parent_code}.{child_index:02d}",
                parent_code=parent_code,
                level=2,
                description=name,
                discipline=group_name,
                direct_total=source.value,
                direct_manhours=source.manhours,
                direct_material_cost=source.category_value('MATERIALS')
            ))
        roots.append(parent)

    rollup(roots)
    return roots


def _code_prefixes(code: str) -> List[str]:
    """'01-100-001' -> ['01', '01-100', '01-100-001']"""
    return [code[:match.end()] for match in _SEGMENT.finditer(code)][:3]


def build_wbs_from_codes(items: Sequence[BudgetLineItem]) -> List[WBSNode]:
    """Tree derived from explicit WBS codes, with missing ancestors created"""
    nodes: Dict[str, WBSNode] = {}
    roots: List[WBSNode] = []

    for item in items:
        if not item.wbs_code:
            continue
        prefixes = _code_prefixes(item.wbs_code)
        if not prefixes:
            continue

        parent: Optional[WBSNode] = None
        for depth, code in enumerate(prefixes, start=1):
            node = nodes.get(code)
            if node is None:
                node = WBSNode(
                    code=code,
                    parent_code=parent.code if parent else None,
                    level=depth,
                    description=item.description if depth == len(prefixes) else None
                )
                nodes[code] = node
                if parent is None:
                    roots.append(node)
                else:
                    parent.children.append(node)
            elif node.description is None and depth == len(prefixes):
                node.description = item.description
            parent = node

        leaf = nodes[prefixes[-1]]
        leaf.direct_total += item.total_cost
        leaf.direct_manhours += item.manhours or 0.0
        leaf.direct_material_cost += item.materials_cost

    sort_siblings(roots)
    rollup(roots)
    logging.info(f"Built WBS from codes: {len(nodes)} nodes, {len(roots)} roots")
    return roots


def _match_child(parent: WBSNode, item: BudgetLineItem) -> Optional[WBSNode]:
    item_desc = item.description.upper()
    is_demo = 'DEMO' in item_desc
    first_word = item_desc.split(' ')[0] if item_desc else ''

    for child in parent.children:
        child_desc = (child.description or '').upper()
        if is_demo and 'DEMO' in child_desc:
            if child_desc.replace(' DEMO', '') in item_desc:
                return child
        elif not is_demo and 'DEMO' not in child_desc:
            if (
                child_desc == (item.subcategory or '').upper()
                or (child_desc and child_desc in item_desc)
                or (first_word and first_word in child_desc)
            ):
                return child
    return None


def populate_wbs(template: Sequence[WBSNode], items: Sequence[BudgetLineItem]) -> List[WBSNode]:
    """Fill a predefined WBS template with line item totals"""
    structure = [node.model_copy(deep=True) for node in template]

    def reset(nodes: Sequence[WBSNode]) -> None:
        for node in nodes:
            node.direct_total = 0.0
            node.direct_manhours = 0.0
            node.direct_material_cost = 0.0
            reset(node.children)

    reset(structure)
    level_one = {(node.description or '').upper(): node for node in structure if node.level == 1}

    unmatched = 0
    for item in items:
        parent = level_one.get((item.discipline or '').upper()) if item.discipline else None
        if parent is None:
            unmatched += 1
            continue
        target = _match_child(parent, item) or parent
        target.direct_total += item.total_cost
        target.direct_manhours += item.manhours or 0.0
        target.direct_material_cost += item.materials_cost

    if unmatched:
        logging.info(f"{unmatched} items did not match the predefined WBS")
    rollup(structure)
    return structure


def flatten_wbs(nodes: Sequence[WBSNode]) -> List[Dict]:
    rows: List[Dict] = []
    for node in nodes:
        rows.append({
            'code': node.code,
            'parent_code': node.parent_code,
            'level': node.level,
            'description': node.description,
            'discipline': node.discipline,
            'budget_total': node.budget_total,
            'manhours_total': node.manhours_total,
            'material_cost': node.material_cost,
        })
        rows.extend(flatten_wbs(node.children))
    return rows
