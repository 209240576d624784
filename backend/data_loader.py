import os
import sys

import pandas as pd

from normalizer import (
    clean_id,
    normalize_attachment,
    normalize_code,
    normalize_course,
    normalize_course_type,
    normalize_credit_pool,
    normalize_pool_list,
    normalize_pool_source,
)
from validators import find_course_type_cycles

REQUIRED_TABLES = ("courses", "curricula")
OPTIONAL_TABLES = (
    "course_types",
    "pool_lists",
    "pool_list_courses",
    "credit_pools",
    "pool_sources",
    "curriculum_courses",
    "curriculum_pools",
)


def _read_tables(data_path: str) -> dict[str, pd.DataFrame]:
    """
    Read every known table from a directory of <table>.csv files or from the
    sheets of an .xlsx workbook. Everything is read as text; the normalizer
    does the typing. Missing optional tables come back as empty frames.
    """
    tables: dict[str, pd.DataFrame] = {}
    names = REQUIRED_TABLES + OPTIONAL_TABLES

    if os.path.isdir(data_path):
        for name in names:
            csv_path = os.path.join(data_path, f"{name}.csv")
            if os.path.isfile(csv_path):
                tables[name] = pd.read_csv(csv_path, dtype=str)
    else:
        xl = pd.ExcelFile(data_path)
        for name in names:
            if name in xl.sheet_names:
                tables[name] = xl.parse(name, dtype=str)

    missing = [name for name in REQUIRED_TABLES if name not in tables]
    if missing:
        raise ValueError(f"Data source {data_path} is missing required table(s): {missing}")

    for name in OPTIONAL_TABLES:
        if name not in tables:
            tables[name] = pd.DataFrame()
    return tables


def _records(df: pd.DataFrame) -> list[dict]:
    if df is None or len(df) == 0:
        return []
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def load_data(data_path: str) -> dict:
    """Load and normalize curriculum pool data. Raises on file/schema errors."""
    tables = _read_tables(data_path)

    course_types = [normalize_course_type(r) for r in _records(tables["course_types"])]
    course_types = [t for t in course_types if t["id"]]

    courses_by_id: dict[str, dict] = {}
    for record in _records(tables["courses"]):
        course = normalize_course(record)
        if course["id"]:
            course.pop("course_type_id")
            courses_by_id[course["id"]] = course
    code_to_id = {c["code"]: cid for cid, c in courses_by_id.items() if c.get("code")}

    # ── Pool lists: members may be given by id or by course code ──────────────
    list_members: dict[str, list[str]] = {}
    unknown_list_codes: list[str] = []
    for row in _records(tables["pool_list_courses"]):
        list_id = clean_id(row.get("pool_list_id"))
        course_id = clean_id(row.get("course_id"))
        if not course_id and row.get("course_code"):
            code = normalize_code(row["course_code"])
            course_id = code_to_id.get(code)
            if course_id is None:
                unknown_list_codes.append(str(row["course_code"]).strip())
        if list_id and course_id:
            members = list_members.setdefault(list_id, [])
            if course_id not in members:
                members.append(course_id)

    pool_lists = []
    for record in _records(tables["pool_lists"]):
        pool_list = normalize_pool_list(record)
        if pool_list["id"]:
            pool_list["course_ids"] = list_members.get(pool_list["id"], [])
            pool_lists.append(pool_list)

    # ── Credit pools and their sources ────────────────────────────────────────
    sources_by_pool: dict[str, list[dict]] = {}
    for row in _records(tables["pool_sources"]):
        pool_id = clean_id(row.get("pool_id"))
        if pool_id:
            sources_by_pool.setdefault(pool_id, []).append(normalize_pool_source(row))

    credit_pools: dict[str, dict] = {}
    for record in _records(tables["credit_pools"]):
        pool = normalize_credit_pool(record)
        if pool["id"]:
            pool["sources"] = sources_by_pool.get(pool["id"], [])
            credit_pools[pool["id"]] = pool

    # ── Curricula ─────────────────────────────────────────────────────────────
    curricula: dict[str, dict] = {}
    for row in _records(tables["curricula"]):
        cid = clean_id(row.get("curriculum_id"))
        if cid:
            curricula[cid] = {
                "curriculum_id": cid,
                "name": str(row.get("name") or cid).strip(),
                "department_id": clean_id(row.get("department_id")),
            }

    curriculum_courses: dict[str, list[dict]] = {}
    for row in _records(tables["curriculum_courses"]):
        cid = clean_id(row.get("curriculum_id"))
        course_id = clean_id(row.get("course_id"))
        if cid and course_id:
            curriculum_courses.setdefault(cid, []).append({
                "course_id": course_id,
                "course_type_id": clean_id(row.get("course_type_id")),
            })

    curriculum_pools: dict[str, list[dict]] = {}
    for row in _records(tables["curriculum_pools"]):
        cid = clean_id(row.get("curriculum_id"))
        if not cid:
            continue
        attachment = normalize_attachment(row)
        pool = credit_pools.get(attachment["credit_pool_id"])
        # A blank requirement defaults to the pool's min_credits. A blank cap
        # stays None (unbounded); the attachment owns its cap.
        if pool is not None and row.get("required_credits") is None:
            attachment["required_credits"] = pool["min_credits"]
        curriculum_pools.setdefault(cid, []).append(attachment)

    # ── Startup data integrity checks ─────────────────────────────────────────
    if unknown_list_codes:
        print(
            f"[WARN] {len(unknown_list_codes)} pool list course code(s) not found in courses: "
            f"{sorted(set(unknown_list_codes))}",
            file=sys.stderr,
        )

    orphan_courses = sorted({
        cc["course_id"]
        for rows in curriculum_courses.values()
        for cc in rows
        if cc["course_id"] not in courses_by_id
    })
    if orphan_courses:
        print(f"[WARN] {len(orphan_courses)} curriculum course(s) not found in courses: {orphan_courses}", file=sys.stderr)

    type_ids = {t["id"] for t in course_types}
    unknown_types = sorted({
        cc["course_type_id"]
        for rows in curriculum_courses.values()
        for cc in rows
        if cc["course_type_id"] and cc["course_type_id"] not in type_ids
    })
    if unknown_types:
        print(f"[WARN] {len(unknown_types)} course_type_id(s) not found in course_types: {unknown_types}", file=sys.stderr)

    unresolved = sorted({
        f"{cid}:{a['credit_pool_id']}"
        for cid, rows in curriculum_pools.items()
        for a in rows
        if a["credit_pool_id"] not in credit_pools
    })
    if unresolved:
        print(
            f"[WARN] {len(unresolved)} curriculum pool attachment(s) reference unknown pools "
            f"and will be skipped: {unresolved}",
            file=sys.stderr,
        )

    cycles = [f for f in find_course_type_cycles(course_types) if f["code"] == "CYCLIC_PARENT_CHAIN"]
    if cycles:
        print(
            f"[WARN] {len(cycles)} course type(s) have cyclic parent chains: "
            f"{sorted(f['course_type_id'] for f in cycles)}",
            file=sys.stderr,
        )

    print(f"[INFO] Loaded {len(credit_pools)} credit pool(s) and {len(pool_lists)} pool list(s)")

    return {
        "course_types": course_types,
        "courses_by_id": courses_by_id,
        "pool_lists": pool_lists,
        "credit_pools": credit_pools,
        "curricula": curricula,
        "curriculum_courses": curriculum_courses,
        "curriculum_pools": curriculum_pools,
    }


def build_curriculum_inputs(data: dict, curriculum_id: str) -> dict | None:
    """
    Resolve everything calculate_pool_credits needs for one curriculum.

    Returns None for an unknown curriculum. Attachments keep their stored
    order (the allocator sorts by order_index); an attachment whose pool is
    unknown gets pool=None and is skipped by the allocator.
    """
    cid = clean_id(curriculum_id)
    if not cid or cid not in data["curricula"]:
        return None

    courses = []
    for cc in data["curriculum_courses"].get(cid, []):
        catalog_course = data["courses_by_id"].get(cc["course_id"])
        if catalog_course is None:
            continue
        courses.append({**catalog_course, "course_type_id": cc["course_type_id"]})

    attachments = [
        {**a, "pool": data["credit_pools"].get(a["credit_pool_id"])}
        for a in data["curriculum_pools"].get(cid, [])
    ]

    return {
        "attachments": attachments,
        "courses": courses,
        "course_types": data["course_types"],
        "pool_lists": data["pool_lists"],
    }
