from pool_sources import (
    build_list_memberships,
    build_course_type_map,
    course_matches_pool_sources,
)


def _credits(course: dict) -> float:
    return course.get("credits") or 0


def calculate_pool_credits(
    attachments: list[dict],
    courses: list[dict],
    course_types: list[dict],
    pool_lists: list[dict],
) -> list[dict]:
    """
    Deterministically distribute curriculum course credits across attached pools.

    Pools are evaluated by order_index (lower first, ties keep input order).
    Each course is consumed by at most one pool. A course that would push a
    pool past max_credits is skipped and left unconsumed, so a later pool can
    still pick it up; its credits show up in that pool's overflow_credits.

    Attachments whose pool could not be resolved produce no calculation.
    """
    # sorted() is stable, which keeps input order among equal order_index values.
    sorted_attachments = sorted(attachments or [], key=lambda a: a.get("order_index", 0))

    type_map = build_course_type_map(course_types)
    list_members = build_list_memberships(pool_lists)

    consumed: set[str] = set()
    results: list[dict] = []

    for attachment in sorted_attachments:
        pool = attachment.get("pool")
        if not pool:
            continue

        max_credits = attachment.get("max_credits")
        required_credits = attachment.get("required_credits") or 0

        matching = [
            course
            for course in courses or []
            if course.get("id") not in consumed
            and course_matches_pool_sources(
                course,
                pool.get("sources"),
                course_types,
                pool_lists,
                type_map=type_map,
                list_members=list_members,
            )
        ]

        applied_credits = 0
        matched_ids: list[str] = []
        for course in matching:
            credits = _credits(course)
            if max_credits is not None and applied_credits + credits > max_credits:
                continue
            applied_credits += credits
            matched_ids.append(course["id"])
            consumed.add(course["id"])

        potential_credits = sum(_credits(c) for c in matching)
        overflow_credits = (
            max(0, potential_credits - max_credits) if max_credits is not None else 0
        )

        results.append(
            {
                "pool_id": pool["id"],
                "pool_name": pool.get("name", pool["id"]),
                "required_credits": required_credits,
                "max_credits": max_credits,
                "applied_credits": applied_credits,
                "remaining_credits": max(0, required_credits - applied_credits),
                "overflow_credits": overflow_credits,
                "is_satisfied": applied_credits >= required_credits,
                "matched_courses": matched_ids,
            }
        )

    return results


def calculate_total_overflow(calculations: list[dict]) -> float:
    """Total credits routed to Free Elective because of pool caps."""
    return sum(c.get("overflow_credits", 0) for c in calculations or [])


def summarize_pool_credits(calculations: list[dict], courses: list[dict]) -> dict:
    """
    Curriculum-level totals for the credit preview.

    unallocated_credits counts courses no pool consumed, including courses a
    cap skipped that no later pool picked up. total_overflow_credits is the
    informational cap excess summed across pools.
    """
    total_curriculum = sum(_credits(c) for c in courses or [])
    total_required = sum(c["required_credits"] for c in calculations)
    total_applied = sum(c["applied_credits"] for c in calculations)
    total_overflow = calculate_total_overflow(calculations)

    consumed = {cid for c in calculations for cid in c["matched_courses"]}
    unallocated = sum(_credits(c) for c in courses or [] if c.get("id") not in consumed)

    satisfied = sum(1 for c in calculations if c["is_satisfied"])
    with_overflow = sum(1 for c in calculations if c["overflow_credits"] > 0)

    if total_required > 0:
        overall_progress = min(100.0, total_applied / total_required * 100.0)
    else:
        overall_progress = 100.0

    return {
        "total_curriculum_credits": total_curriculum,
        "total_required_credits": total_required,
        "total_applied_credits": total_applied,
        "total_overflow_credits": total_overflow,
        "unallocated_credits": unallocated,
        "satisfied_pools": satisfied,
        "unsatisfied_pools": len(calculations) - satisfied,
        "pools_with_overflow": with_overflow,
        "overall_progress": round(overall_progress, 1),
        "all_satisfied": satisfied == len(calculations),
    }
