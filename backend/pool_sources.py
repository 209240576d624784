SOURCE_COURSE_TYPE = "COURSE_TYPE"
SOURCE_COURSE_LIST = "COURSE_LIST"

SOURCE_TYPES = {SOURCE_COURSE_TYPE, SOURCE_COURSE_LIST}


def build_course_type_map(course_types: list[dict]) -> dict[str, dict]:
    """Index course types by id. Later duplicates win."""
    return {
        str(t["id"]): t
        for t in course_types or []
        if t.get("id") not in (None, "")
    }


def course_type_matches_hierarchy(
    course_type_id: str | None,
    target_type_id: str,
    course_types: list[dict],
    type_map: dict[str, dict] | None = None,
) -> bool:
    """
    True if course_type_id is target_type_id or one of its descendants.

    Walks parent links upward from the course's own type. The walk is bounded
    by len(course_types) + 1 hops; a malformed (cyclic) chain that exceeds the
    bound is treated as no match.
    """
    if not course_type_id:
        return False
    if course_type_id == target_type_id:
        return True

    if type_map is None:
        type_map = build_course_type_map(course_types)

    max_hops = len(course_types or []) + 1
    current = type_map.get(course_type_id)
    hops = 0
    while current is not None:
        hops += 1
        if hops > max_hops:
            return False
        parent_id = current.get("parent_id")
        if not parent_id:
            return False
        if parent_id == target_type_id:
            return True
        current = type_map.get(parent_id)
    return False


def build_list_memberships(pool_lists: list[dict]) -> dict[str, set[str]]:
    return {
        str(pl["id"]): set(pl.get("course_ids") or [])
        for pl in pool_lists or []
        if pl.get("id") not in (None, "")
    }


def course_matches_pool_sources(
    course: dict,
    sources: list[dict],
    course_types: list[dict],
    pool_lists: list[dict],
    type_map: dict[str, dict] | None = None,
    list_members: dict[str, set[str]] | None = None,
) -> bool:
    """
    A course matches a pool when ANY of the pool's sources match:
      - COURSE_TYPE: the course type is the source type or descends from it
      - COURSE_LIST: the course id is in the referenced pool list

    type_map / list_members may be passed in precomputed by callers that
    test many courses against the same inputs.
    """
    if type_map is None:
        type_map = build_course_type_map(course_types)
    if list_members is None:
        list_members = build_list_memberships(pool_lists)

    for source in sources or []:
        source_type = source.get("source_type")
        if source_type == SOURCE_COURSE_TYPE and source.get("course_type_id"):
            if course_type_matches_hierarchy(
                course.get("course_type_id"),
                source["course_type_id"],
                course_types,
                type_map=type_map,
            ):
                return True
        elif source_type == SOURCE_COURSE_LIST and source.get("course_list_id"):
            members = list_members.get(source["course_list_id"])
            if members and course.get("id") in members:
                return True
    return False


def get_descendant_type_ids(type_id: str, course_types: list[dict]) -> list[str]:
    """
    Return every descendant type id of type_id, depth-first in input order.

    Used to show which types a parent source pulls in implicitly.
    """
    children: dict[str, list[str]] = {}
    for t in course_types or []:
        parent_id = t.get("parent_id")
        if parent_id:
            children.setdefault(parent_id, []).append(t["id"])

    descendants: list[str] = []
    visited = {type_id}

    def walk(node_id: str) -> None:
        for child_id in children.get(node_id, []):
            if child_id in visited:
                continue
            visited.add(child_id)
            descendants.append(child_id)
            walk(child_id)

    walk(type_id)
    return descendants


def _source_key(source: dict) -> tuple[str, str | None]:
    source_type = source.get("source_type")
    if source_type == SOURCE_COURSE_TYPE:
        return (source_type, source.get("course_type_id"))
    return (source_type, source.get("course_list_id"))


def sources_overlap(sources_a: list[dict], sources_b: list[dict]) -> bool:
    """Two source lists overlap when any pair has the same type and target id."""
    keys_b = {_source_key(s) for s in sources_b or []}
    return any(_source_key(s) in keys_b for s in sources_a or [])


def detect_pool_overlaps(attachments: list[dict]) -> dict[str, list[str]]:
    """
    Map pool_id -> ids of other attached pools that share an identical source.

    Diagnostic only: allocation always resolves competition by order_index.
    Attachments with an unresolved pool are ignored; pools without any
    overlap are left out of the result.
    """
    overlaps: dict[str, list[str]] = {}
    for i, attachment_a in enumerate(attachments or []):
        pool_a = attachment_a.get("pool")
        if not pool_a:
            continue

        overlapping: list[str] = []
        for j, attachment_b in enumerate(attachments):
            if i == j:
                continue
            pool_b = attachment_b.get("pool")
            if not pool_b:
                continue
            if sources_overlap(pool_a.get("sources"), pool_b.get("sources")):
                overlapping.append(pool_b["id"])

        if overlapping:
            overlaps[pool_a["id"]] = overlapping
    return overlaps
