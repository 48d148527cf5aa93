import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from pydantic import TypeAdapter, ValidationError
from ..config import settings
from ..models.labor import (
    ActualRecord, CategoryActual, CraftActual, CraftType, HeadcountForecastRecord,
    LaborActualRecord, NormalizedActual, NormalizedForecast, LABOR_CATEGORIES
)
from ..utils.dates import week_ending_date
from ..utils.numeric import finite

# Checked in this order; "indirect" contains "direct"
CATEGORY_KEYWORDS: List[tuple] = [
    ('staff', [
        'staff', 'superintendent', 'manager', 'engineer', 'planner', 'scheduler',
        'clerk', 'timekeeper', 'coordinator', 'project controls',
    ]),
    ('indirect', [
        'indirect', 'foreman', 'supervisor', 'safety', 'qa/qc', 'inspector',
    ]),
    ('direct', [
        'direct', 'craft', 'journeyman', 'helper', 'welder', 'fitter', 'electrician',
        'carpenter', 'laborer', 'operator', 'millwright', 'boilermaker', 'ironworker',
    ]),
]

CraftLookup = Mapping[str, CraftType]

_actual_adapter = TypeAdapter(ActualRecord)


def craft_lookup(craft_types: Optional[Iterable[Union[CraftType, Dict]]]) -> Dict[str, CraftType]:
    lookup: Dict[str, CraftType] = {}
    for craft in craft_types or []:
        craft = craft if isinstance(craft, CraftType) else CraftType(**craft)
        lookup[craft.id] = craft
    return lookup


def as_craft_lookup(craft_types) -> CraftLookup:
    """Accept either an id-keyed lookup or a plain list of craft types"""
    if isinstance(craft_types, Mapping):
        return craft_types
    return craft_lookup(craft_types)


def normalize_category_label(label: Optional[str]) -> Optional[str]:
    """'Direct Labor', ' INDIRECT ' and 'staff' map onto the three categories"""
    if not label:
        return None
    text = str(label).strip().lower()
    if text.endswith(' labor'):
        text = text[:-len(' labor')].strip()
    return text if text in LABOR_CATEGORIES else None


def category_from_keywords(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def resolve_category(
    labor_category: Optional[str] = None,
    craft_type_id: Optional[str] = None,
    craft_types: Optional[CraftLookup] = None,
    description: str = ''
) -> Optional[str]:
    """Two-tier category resolution.

    Structured fields win: an explicit category label, then the craft type's
    category. Only when both are missing or unusable is the free text
    (description, craft name and code) scanned for keywords.
    """
    category = normalize_category_label(labor_category)
    if category:
        return category

    craft = (craft_types or {}).get(craft_type_id) if craft_type_id else None
    if craft is not None:
        category = normalize_category_label(craft.category)
        if category:
            return category

    text = ' '.join(part for part in (description, craft.name if craft else None,
                                      craft.code if craft else None) if part)
    return category_from_keywords(text)


def resolve_discipline(
    row_value: Any,
    description: str,
    wbs_code: Optional[str],
    keywords: Sequence[str]
) -> Optional[str]:
    """Discipline of a spreadsheet row: explicit column, then description, then WBS code"""
    if row_value is not None and str(row_value).strip():
        return str(row_value).strip().upper()

    upper_description = (description or '').upper()
    for keyword in keywords:
        if keyword and keyword in upper_description:
            return keyword

    if wbs_code:
        upper_code = wbs_code.upper()
        for keyword in keywords:
            if keyword and keyword in upper_code:
                return keyword
    return None


def as_record_dict(raw: Any) -> Dict:
    if hasattr(raw, 'model_dump'):
        return raw.model_dump()
    data = dict(raw)
    # Joined rows carry the craft as a nested object
    nested = data.get('craft_type')
    if isinstance(nested, dict) and not data.get('craft_type_id'):
        data['craft_type_id'] = nested.get('id')
    return data


def tag_actual(raw: Union[LaborActualRecord, Dict]) -> Optional[Union[CategoryActual, CraftActual]]:
    """Resolve the record shape once: category-tagged or craft-tagged.

    Records with neither tag fall back to a keyword scan of their
    description; None means the record cannot be classified at all.
    """
    record = LaborActualRecord(**as_record_dict(raw))
    common = {
        'week_ending': week_ending_date(record.week_ending),
        'hours': finite(record.actual_hours),
        'cost': finite(record.effective_cost),
        'burden_amount': finite(record.burden_amount),
        'description': record.description or '',
    }
    if record.craft_type_id and not record.labor_category:
        return _actual_adapter.validate_python({'kind': 'craft', 'craft_type_id': record.craft_type_id, **common})

    label = record.labor_category or category_from_keywords(record.description)
    if not label:
        return None
    return _actual_adapter.validate_python({'kind': 'category', 'category': label, **common})


def normalize_actual(
    raw: Union[LaborActualRecord, Dict],
    craft_types: Optional[CraftLookup] = None
) -> Optional[NormalizedActual]:
    craft_types = as_craft_lookup(craft_types)
    try:
        tagged = tag_actual(raw)
    except (ValidationError, ValueError, TypeError) as e:
        logging.warning(f"Dropping malformed labor actual: {str(e)}")
        return None

    category = None
    craft_id = None
    if isinstance(tagged, CategoryActual):
        category = resolve_category(tagged.category, description=tagged.description)
    elif isinstance(tagged, CraftActual):
        craft_id = tagged.craft_type_id
        category = resolve_category(None, craft_id, craft_types, tagged.description)

    if category is None:
        logging.warning(f"Could not classify labor actual: {raw}")
        return None

    return NormalizedActual(
        week_ending=tagged.week_ending,
        category=category,
        hours=tagged.hours,
        cost=tagged.cost,
        burden_amount=tagged.burden_amount,
        craft_type_id=craft_id
    )


def normalize_forecast(
    raw: Union[HeadcountForecastRecord, Dict],
    craft_types: Optional[CraftLookup] = None
) -> Optional[NormalizedForecast]:
    craft_types = as_craft_lookup(craft_types)
    try:
        record = HeadcountForecastRecord(**as_record_dict(raw))
        week = week_ending_date(record.week_starting or record.week_ending)
    except (ValidationError, ValueError, TypeError) as e:
        logging.warning(f"Dropping malformed headcount forecast: {str(e)}")
        return None

    category = resolve_category(record.labor_category, record.craft_type_id, craft_types, record.description or '')
    if category is None:
        logging.warning(f"Could not classify headcount forecast: {raw}")
        return None

    return NormalizedForecast(
        week_ending=week,
        category=category,
        headcount=finite(record.headcount),
        hours_per_person=finite(record.avg_weekly_hours) or settings.HOURS_PER_PERSON,
        rate=record.rate,
        craft_type_id=record.craft_type_id
    )


def normalize_actuals(raws: Iterable, craft_types=None) -> List[NormalizedActual]:
    lookup = as_craft_lookup(craft_types)
    normalized = (normalize_actual(raw, lookup) for raw in raws or [])
    return [record for record in normalized if record is not None]


def normalize_forecasts(raws: Iterable, craft_types=None) -> List[NormalizedForecast]:
    lookup = as_craft_lookup(craft_types)
    normalized = (normalize_forecast(raw, lookup) for raw in raws or [])
    return [record for record in normalized if record is not None]
