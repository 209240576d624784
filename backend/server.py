import os
import sys
import time
import threading

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from allocator import calculate_pool_credits, summarize_pool_credits
from cache import TtlCache
from data_loader import build_curriculum_inputs, load_data
from normalizer import (
    clean_id,
    normalize_attachment,
    normalize_course,
    normalize_course_type,
    normalize_credit_pool,
    normalize_pool_list,
)
from pool_sources import detect_pool_overlaps, get_descendant_type_ids

load_dotenv()

app = Flask(__name__)

VERSION = "1.0.0"

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_POOL_CACHE_TTL_SECONDS = _env_float("POOL_CACHE_TTL_SECONDS", 300.0, minimum=0.0)
_POOL_CACHE_SIZE = _env_int("POOL_CACHE_SIZE", 128, minimum=1)

_pool_credit_cache = TtlCache(_POOL_CACHE_TTL_SECONDS, max_size=_POOL_CACHE_SIZE)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


def _data_version_tag() -> str:
    return "none" if _data_mtime is None else str(_data_mtime)


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['curricula'])} curricula from {DATA_PATH}")
except FileNotFoundError:
    # Fall back to the bundled sample data if DATA_PATH is stale.
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default data ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['curricula'])} curricula from {DATA_PATH}")
    else:
        print(f"[FATAL] Data not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload runtime data when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        _pool_credit_cache.clear()
        print(f"[OK] Reloaded {len(new_data['curricula'])} curricula from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


def _error_response(error_code: str, message: str, status: int):
    return jsonify({"error": {"error_code": error_code, "message": message}}), status


def _curriculum_not_found(curriculum_id: str):
    return _error_response(
        "CURRICULUM_NOT_FOUND",
        f"Curriculum '{curriculum_id}' not found.",
        404,
    )


def _pool_credit_payload(inputs: dict) -> dict:
    calculations = calculate_pool_credits(
        inputs["attachments"],
        inputs["courses"],
        inputs["course_types"],
        inputs["pool_lists"],
    )
    return {
        "calculations": calculations,
        "summary": summarize_pool_credits(calculations, inputs["courses"]),
        "overlaps": detect_pool_overlaps(inputs["attachments"]),
    }


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": VERSION,
        "curricula": len(_data.get("curricula", {})) if _data else 0,
    })


# -- Input validation ------------------------------------------------------
_PREVIEW_LIST_FIELDS = ("attachments", "credit_pools", "courses", "course_types", "pool_lists")


def _validate_preview_body(body):
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be a JSON object."
    for field in _PREVIEW_LIST_FIELDS:
        value = body.get(field, [])
        if not isinstance(value, list):
            return "INVALID_INPUT", f"'{field}' must be a list."
        if any(not isinstance(item, dict) for item in value):
            return "INVALID_INPUT", f"Every entry in '{field}' must be an object."

    nested_pools = [a["pool"] for a in body.get("attachments", []) if a.get("pool") is not None]
    for pool in body.get("credit_pools", []) + nested_pools:
        if not isinstance(pool, dict):
            return "INVALID_INPUT", "An attachment's 'pool' must be an object."
        sources = pool.get("sources")
        if sources is None:
            continue
        if not isinstance(sources, list) or any(not isinstance(s, dict) for s in sources):
            return "INVALID_INPUT", "'sources' must be a list of objects."

    for pool_list in body.get("pool_lists", []):
        for key in ("course_ids", "courseIds", "courses"):
            value = pool_list.get(key)
            if value is not None and not isinstance(value, list):
                return "INVALID_INPUT", f"Pool list '{key}' must be a list."
        if any(not isinstance(c, dict) for c in pool_list.get("courses") or []):
            return "INVALID_INPUT", "Every entry in a pool list's 'courses' must be an object."
    return None, None


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return _error_response(e.name.upper().replace(" ", "_"), e.description, e.code)
    print(f"[ERROR] Unhandled exception: {e!r}", file=sys.stderr)
    return _error_response("SERVER_ERROR", "An unexpected server error occurred.", 500)


# ── Routes ─────────────────────────────────────────────────────────────────────
def list_curricula():
    _refresh_data_if_needed()
    curricula = sorted(_data["curricula"].values(), key=lambda c: c["curriculum_id"])
    return jsonify({"curricula": curricula})


def get_curriculum_pools(curriculum_id):
    _refresh_data_if_needed()
    inputs = build_curriculum_inputs(_data, curriculum_id)
    if inputs is None:
        return _curriculum_not_found(curriculum_id)

    ordered = sorted(inputs["attachments"], key=lambda a: a.get("order_index", 0))
    pools = [
        {
            "attachment_id": a["id"],
            "credit_pool_id": a["credit_pool_id"],
            "pool_name": a["pool"]["name"] if a["pool"] else None,
            "resolved": a["pool"] is not None,
            "required_credits": a["required_credits"],
            "max_credits": a["max_credits"],
            "order_index": a["order_index"],
            "sources": a["pool"]["sources"] if a["pool"] else [],
        }
        for a in ordered
    ]
    return jsonify({"curriculum_id": clean_id(curriculum_id), "pools": pools})


def calculate_curriculum_pool_credits(curriculum_id):
    _refresh_data_if_needed()
    cache_key = f"pool-credits:{_data_version_tag()}:{clean_id(curriculum_id)}"
    if _cache_enabled():
        cached = _pool_credit_cache.get(cache_key)
        if cached is not None:
            return jsonify(cached)

    inputs = build_curriculum_inputs(_data, curriculum_id)
    if inputs is None:
        return _curriculum_not_found(curriculum_id)

    payload = {"curriculum_id": clean_id(curriculum_id), **_pool_credit_payload(inputs)}
    if _cache_enabled():
        _pool_credit_cache.set(cache_key, payload)
    return jsonify(payload)


def get_curriculum_pool_overlaps(curriculum_id):
    _refresh_data_if_needed()
    inputs = build_curriculum_inputs(_data, curriculum_id)
    if inputs is None:
        return _curriculum_not_found(curriculum_id)
    return jsonify({"overlaps": detect_pool_overlaps(inputs["attachments"])})


def preview_pool_credits():
    """Calculate pool credits for unsaved edits sent by the client."""
    body = request.get_json(force=True, silent=True)
    error_code, message = _validate_preview_body(body)
    if error_code:
        return _error_response(error_code, message, 400)

    pools_by_id = {
        pool["id"]: pool
        for pool in (normalize_credit_pool(p) for p in body.get("credit_pools", []))
        if pool["id"]
    }
    attachments = [normalize_attachment(a) for a in body.get("attachments", [])]
    for attachment in attachments:
        if attachment["pool"] is None:
            attachment["pool"] = pools_by_id.get(attachment["credit_pool_id"])

    inputs = {
        "attachments": attachments,
        "courses": [normalize_course(c) for c in body.get("courses", [])],
        "course_types": [normalize_course_type(t) for t in body.get("course_types", [])],
        "pool_lists": [normalize_pool_list(pl) for pl in body.get("pool_lists", [])],
    }
    return jsonify(_pool_credit_payload(inputs))


def get_course_type_descendants(course_type_id):
    _refresh_data_if_needed()
    type_id = clean_id(course_type_id)
    known = {t["id"] for t in _data["course_types"]}
    if type_id not in known:
        return _error_response(
            "COURSE_TYPE_NOT_FOUND",
            f"Course type '{course_type_id}' not found.",
            404,
        )
    return jsonify({
        "course_type_id": type_id,
        "descendants": get_descendant_type_ids(type_id, _data["course_types"]),
    })


app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])
app.add_url_rule("/api/curricula", view_func=list_curricula, methods=["GET"])
app.add_url_rule("/api/curricula/<curriculum_id>/pools", view_func=get_curriculum_pools, methods=["GET"])
app.add_url_rule(
    "/api/curricula/<curriculum_id>/pool-credits",
    view_func=calculate_curriculum_pool_credits,
    methods=["POST"],
)
app.add_url_rule(
    "/api/curricula/<curriculum_id>/pool-overlaps",
    view_func=get_curriculum_pool_overlaps,
    methods=["GET"],
)
app.add_url_rule("/api/pool-credits/preview", view_func=preview_pool_credits, methods=["POST"])
app.add_url_rule(
    "/api/course-types/<course_type_id>/descendants",
    view_func=get_course_type_descendants,
    methods=["GET"],
)


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return _error_response("NOT_FOUND", f"/api/{rest} not found", 404)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
