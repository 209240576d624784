"""
Input checks for pool allocation data.

The allocator deliberately does not validate its inputs; these helpers are
what the loading and publishing layers use instead. Each returns a list of
finding dicts ({"code", "message", ...}) and never raises.
No Flask or data-loader imports.
"""

from pool_sources import SOURCE_COURSE_TYPE, SOURCE_TYPES


def _is_negative(value) -> bool:
    return isinstance(value, (int, float)) and value < 0


def find_invalid_numeric_inputs(attachments: list[dict], courses: list[dict]) -> list[dict]:
    """
    Flag credit values the allocator's arithmetic is not defined for:
      - negative course credits
      - negative required_credits / max_credits on an attachment
      - max_credits below required_credits (pool can never be satisfied)
    """
    findings: list[dict] = []

    for course in courses or []:
        if _is_negative(course.get("credits")):
            findings.append({
                "code": "NEGATIVE_COURSE_CREDITS",
                "course_id": course.get("id"),
                "message": f"Course '{course.get('id')}' has negative credits ({course['credits']}).",
            })

    for attachment in attachments or []:
        aid = attachment.get("id")
        required = attachment.get("required_credits")
        maximum = attachment.get("max_credits")
        if _is_negative(required):
            findings.append({
                "code": "NEGATIVE_REQUIRED_CREDITS",
                "attachment_id": aid,
                "message": f"Attachment '{aid}' has negative required_credits ({required}).",
            })
        if _is_negative(maximum):
            findings.append({
                "code": "NEGATIVE_MAX_CREDITS",
                "attachment_id": aid,
                "message": f"Attachment '{aid}' has negative max_credits ({maximum}).",
            })
        elif maximum is not None and required is not None and maximum < required:
            findings.append({
                "code": "MAX_BELOW_REQUIRED",
                "attachment_id": aid,
                "message": (
                    f"Attachment '{aid}' caps at {maximum} credits but requires {required}; "
                    "it can never be satisfied."
                ),
            })

    return findings


def find_course_type_cycles(course_types: list[dict]) -> list[dict]:
    """
    Report course types whose parent chain loops or points at an unknown type.

    A type is reported as CYCLIC_PARENT_CHAIN if walking its parents ever
    revisits a node, so types that merely lead into a cycle are included.
    """
    type_map = {t["id"]: t for t in course_types or [] if t.get("id")}
    findings: list[dict] = []

    for type_id, course_type in type_map.items():
        parent_id = course_type.get("parent_id")
        if parent_id and parent_id not in type_map:
            findings.append({
                "code": "UNKNOWN_PARENT_TYPE",
                "course_type_id": type_id,
                "message": f"Course type '{type_id}' references unknown parent '{parent_id}'.",
            })

        seen = {type_id}
        current = parent_id
        while current and current in type_map:
            if current in seen:
                findings.append({
                    "code": "CYCLIC_PARENT_CHAIN",
                    "course_type_id": type_id,
                    "message": f"Course type '{type_id}' has a cyclic parent chain (revisits '{current}').",
                })
                break
            seen.add(current)
            current = type_map[current].get("parent_id")

    return findings


def find_unresolved_attachments(attachments: list[dict]) -> list[dict]:
    """Attachments whose credit pool could not be resolved are skipped by the allocator."""
    return [
        {
            "code": "UNRESOLVED_POOL",
            "attachment_id": a.get("id"),
            "credit_pool_id": a.get("credit_pool_id"),
            "message": (
                f"Attachment '{a.get('id')}' references credit pool "
                f"'{a.get('credit_pool_id')}', which does not exist."
            ),
        }
        for a in attachments or []
        if not a.get("pool")
    ]


def find_invalid_sources(pools: list[dict]) -> list[dict]:
    """Sources with an unknown source_type or without a target id never match anything."""
    findings: list[dict] = []
    for pool in pools or []:
        for source in pool.get("sources") or []:
            source_type = source.get("source_type")
            if source_type not in SOURCE_TYPES:
                findings.append({
                    "code": "UNKNOWN_SOURCE_TYPE",
                    "pool_id": pool.get("id"),
                    "message": f"Pool '{pool.get('id')}' has a source with unknown type '{source_type}'.",
                })
                continue
            target = (
                source.get("course_type_id")
                if source_type == SOURCE_COURSE_TYPE
                else source.get("course_list_id")
            )
            if not target:
                findings.append({
                    "code": "MISSING_SOURCE_TARGET",
                    "pool_id": pool.get("id"),
                    "message": f"Pool '{pool.get('id')}' has a {source_type} source with no target id.",
                })
    return findings
