import math
import re

# Matches: DEPT NNNN, DEPT-NNNN, DEPTNNN, CSX 3001, GE 1101A, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,6})\s*[-]?\s*(\d{3,4}[A-Za-z]?)$')

# Parent key spellings seen across course-type payloads, in lookup order.
_PARENT_KEYS = ("parent_id", "parentId", "parentCourseTypeId", "parent_course_type_id")


def normalize_code(raw: str) -> str | None:
    """
    Normalizes a course code to canonical 'DEPT NNNN' format.
    Handles: 'csx3001', 'CSX-3001', 'CSX 3001', 'GE 1101A'
    Returns None if the string cannot be parsed as a course code.
    """
    if not raw or not str(raw).strip():
        return None
    m = CANONICAL.match(str(raw).strip())
    if m:
        dept = m.group(1).upper()
        num = m.group(2).upper()
        return f"{dept} {num}"
    return None


def clean_id(value) -> str | None:
    """Ids arrive as str, int, float (from spreadsheets) or NaN."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def clean_number(value, default=None):
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return int(number) if number.is_integer() else number


_BOOL_TRUTHY = {"true", "1", "yes", "y"}


def clean_bool(value) -> bool:
    """Spreadsheet booleans: bool, 1/0, TRUE/FALSE, yes/no. NaN and None are False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not math.isnan(value) and bool(value)
    return str(value).strip().lower() in _BOOL_TRUTHY


def _first(record: dict, *keys, default=None):
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def normalize_course_type(record: dict) -> dict:
    """Collapse the parent key variants into a single canonical parent_id."""
    parent_id = None
    for key in _PARENT_KEYS:
        parent_id = clean_id(record.get(key))
        if parent_id:
            break
    return {
        "id": clean_id(_first(record, "id", "course_type_id")),
        "name": str(_first(record, "name", default="") or "").strip(),
        "color": _first(record, "color"),
        "parent_id": parent_id,
    }


def normalize_course(record: dict) -> dict:
    """
    Canonical course shape: id, credits, course_type_id (+ code/name for display).

    Accepts the nested form {"courseType": {"id": ...}} as well as flat
    course_type_id / courseTypeId keys. Missing or unparseable credits become 0.
    """
    nested = _first(record, "course_type", "courseType")
    if isinstance(nested, dict):
        course_type_id = clean_id(nested.get("id"))
    else:
        course_type_id = clean_id(_first(record, "course_type_id", "courseTypeId"))

    code = _first(record, "code", "course_code")
    return {
        "id": clean_id(_first(record, "id", "course_id", "courseId")),
        "code": normalize_code(code) or (str(code).strip() if code else None),
        "name": _first(record, "name", "course_name"),
        "credits": clean_number(record.get("credits"), 0),
        "course_type_id": course_type_id,
    }


def normalize_pool_source(record: dict) -> dict:
    source_type = str(_first(record, "source_type", "sourceType", default="") or "")
    return {
        "source_type": source_type.strip().upper(),
        "course_type_id": clean_id(_first(record, "course_type_id", "courseTypeId")),
        "course_list_id": clean_id(_first(record, "course_list_id", "courseListId")),
    }


def normalize_pool_list(record: dict) -> dict:
    """
    Pool lists carry either a flat course_ids list or a list of course entries
    ({"courseId": ...} / {"course_id": ...}).
    """
    raw_ids = _first(record, "course_ids", "courseIds")
    if raw_ids is None:
        raw_ids = [
            _first(entry, "course_id", "courseId", "id")
            for entry in record.get("courses") or []
            if isinstance(entry, dict)
        ]
    course_ids = [cid for cid in (clean_id(v) for v in raw_ids) if cid]
    return {
        "id": clean_id(_first(record, "id", "pool_list_id")),
        "name": str(_first(record, "name", default="") or "").strip(),
        "course_ids": course_ids,
    }


def normalize_credit_pool(record: dict) -> dict:
    return {
        "id": clean_id(_first(record, "id", "pool_id")),
        "name": str(_first(record, "name", default="") or "").strip(),
        "min_credits": clean_number(_first(record, "min_credits", "minCredits"), 0),
        "max_credits": clean_number(_first(record, "max_credits", "maxCredits")),
        "allow_non_curriculum": clean_bool(
            _first(record, "allow_non_curriculum", "allowNonCurriculum", default=False)
        ),
        "sources": [normalize_pool_source(s) for s in record.get("sources") or []],
    }


def normalize_attachment(record: dict) -> dict:
    """
    Canonical attachment shape. The nested pool, when present, is normalized too;
    a missing pool stays None (the allocator skips such attachments).
    """
    pool = record.get("pool")
    pool_id = clean_id(_first(record, "credit_pool_id", "creditPoolId", "pool_id"))
    normalized_pool = normalize_credit_pool(pool) if isinstance(pool, dict) else None
    if normalized_pool and not pool_id:
        pool_id = normalized_pool["id"]
    return {
        "id": clean_id(_first(record, "id", "attachment_id")),
        "credit_pool_id": pool_id,
        "pool": normalized_pool,
        "required_credits": clean_number(
            _first(record, "required_credits", "requiredCredits"), 0
        ),
        "max_credits": clean_number(_first(record, "max_credits", "maxCredits")),
        "order_index": clean_number(_first(record, "order_index", "orderIndex"), 0),
    }
