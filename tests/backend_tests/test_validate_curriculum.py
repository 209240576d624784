"""
Tests for the publish gate validator (scripts/validate_curriculum.py).

Synthetic inputs are built in the shape build_curriculum_inputs returns;
the CLI tests run against the bundled sample data.
"""

import os

import pytest

from validate_curriculum import ValidationResult, main, validate_curriculum

SAMPLE_DATA = os.path.join(os.path.dirname(__file__), "..", "..", "data")


# ── Shared helpers ────────────────────────────────────────────────────────────

def _pool(pool_id, *type_ids):
    return {
        "id": pool_id,
        "name": pool_id,
        "min_credits": 0,
        "max_credits": None,
        "allow_non_curriculum": False,
        "sources": [
            {"source_type": "COURSE_TYPE", "course_type_id": t, "course_list_id": None}
            for t in type_ids
        ],
    }


def _attachment(aid, pool, required, order_index, max_credits=None, pool_id=None):
    return {
        "id": aid,
        "credit_pool_id": pool["id"] if pool else pool_id,
        "pool": pool,
        "required_credits": required,
        "max_credits": max_credits,
        "order_index": order_index,
    }


@pytest.fixture
def good_inputs():
    """Two disjoint pools fully satisfied by the curriculum's own courses."""
    return {
        "attachments": [
            _attachment("A1", _pool("CORE", "CORE"), 6, 0),
            _attachment("A2", _pool("ELEC", "ELEC"), 3, 1, max_credits=3),
        ],
        "courses": [
            {"id": "c1", "credits": 3, "course_type_id": "CORE"},
            {"id": "c2", "credits": 3, "course_type_id": "CORE"},
            {"id": "c3", "credits": 3, "course_type_id": "ELEC"},
        ],
        "course_types": [
            {"id": "CORE", "parent_id": None},
            {"id": "ELEC", "parent_id": None},
        ],
        "pool_lists": [],
    }


def _messages(result):
    return "\n".join(result.errors + result.warnings)


class TestValidationResult:
    def test_summary_pass(self):
        result = ValidationResult("X")
        assert result.passed
        assert "[PASS]" in result.summary()
        assert "All checks passed." in result.summary()

    def test_summary_fail(self):
        result = ValidationResult("X")
        result.error("broken")
        result.warn("iffy")
        summary = result.summary()
        assert not result.passed
        assert "[FAIL]" in summary
        assert "[ERROR] broken" in summary
        assert "[WARN]  iffy" in summary


class TestValidateCurriculum:
    def test_clean_curriculum(self, good_inputs):
        result = validate_curriculum("GOOD", good_inputs)
        assert result.passed
        assert result.warnings == []

    def test_unknown_curriculum(self):
        result = validate_curriculum("NOPE", None)
        assert not result.passed
        assert result.errors == ["Curriculum 'NOPE' not found."]

    def test_no_pools_attached(self, good_inputs):
        good_inputs["attachments"] = []
        result = validate_curriculum("GOOD", good_inputs)
        assert "No credit pools attached." in result.errors

    def test_unresolved_pool_is_error(self, good_inputs):
        good_inputs["attachments"].append(_attachment("A3", None, 3, 2, pool_id="GONE"))
        result = validate_curriculum("GOOD", good_inputs)
        assert not result.passed
        assert "GONE" in _messages(result)

    def test_negative_credits_is_error(self, good_inputs):
        good_inputs["courses"][0]["credits"] = -3
        result = validate_curriculum("GOOD", good_inputs)
        assert not result.passed

    def test_max_below_required_is_warning(self, good_inputs):
        good_inputs["attachments"][1]["required_credits"] = 6
        result = validate_curriculum("GOOD", good_inputs)
        assert result.passed
        assert "can never be satisfied" in _messages(result)

    def test_cyclic_course_types_is_error(self, good_inputs):
        good_inputs["course_types"] = [
            {"id": "CORE", "parent_id": "ELEC"},
            {"id": "ELEC", "parent_id": "CORE"},
        ]
        result = validate_curriculum("GOOD", good_inputs)
        assert not result.passed
        assert "cyclic parent chain" in _messages(result)

    def test_pool_without_sources_is_warning(self, good_inputs):
        good_inputs["attachments"].append(_attachment("A3", _pool("EMPTY"), 0, 2))
        result = validate_curriculum("GOOD", good_inputs)
        assert result.passed
        assert "has no sources" in _messages(result)

    def test_duplicate_order_index_is_warning(self, good_inputs):
        good_inputs["attachments"][1]["order_index"] = 0
        result = validate_curriculum("GOOD", good_inputs)
        assert "share order_index 0" in _messages(result)

    def test_overlapping_pools_reported_once(self, good_inputs):
        good_inputs["attachments"].append(_attachment("A3", _pool("FREE", "ELEC"), 0, 2))
        result = validate_curriculum("GOOD", good_inputs)
        overlap_warnings = [w for w in result.warnings if "share a source" in w]
        assert overlap_warnings == [
            "Pools 'ELEC' and 'FREE' share a source and compete for the same courses."
        ]

    def test_unsatisfied_pool_is_warning(self, good_inputs):
        good_inputs["attachments"][0]["required_credits"] = 12
        result = validate_curriculum("GOOD", good_inputs)
        assert result.passed
        assert "gets 6 of 12 required credits" in _messages(result)


class TestCli:
    def test_single_curriculum_passes(self, capsys):
        assert main(["--curriculum", "BSIT-2025", "--path", SAMPLE_DATA]) == 0
        out = capsys.readouterr().out
        assert "[PASS] Curriculum 'BSIT-2025'" in out

    def test_all_curricula(self, capsys):
        assert main(["--all", "--path", SAMPLE_DATA]) == 0
        out = capsys.readouterr().out
        assert "[PASS] Curriculum 'BSCS-2025'" in out
        assert "Pools 'POOL_FREE' and 'POOL_MAJOR_ELEC' share a source" in out

    def test_unknown_curriculum_fails(self, capsys):
        assert main(["--curriculum", "NOPE", "--path", SAMPLE_DATA]) == 1
        assert "[FAIL]" in capsys.readouterr().out

    def test_requires_a_target(self):
        with pytest.raises(SystemExit):
            main(["--path", SAMPLE_DATA])
