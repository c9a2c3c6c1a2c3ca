"""
Tests for import record validation.
"""

import pytest
from clubadmin.schema import validate_record


class TestValidateRecord:
    """Test per-kind validation."""

    def test_valid_member(self):
        errors = validate_record("members", {"id": "m1", "name": "Ana", "club_id": "c1", "points": 10})
        assert errors == []

    def test_missing_required_field(self):
        errors = validate_record("members", {"id": "m1"})
        assert any("name" in err for err in errors)

    def test_empty_string_field(self):
        errors = validate_record("clubs", {"id": "c1", "name": "   "})
        assert len(errors) > 0

    def test_optional_field_type(self):
        errors = validate_record("specialties", {"id": "s1", "name": "Cestaria", "area": 3})
        assert any("area" in err for err in errors)

    def test_optional_field_may_be_null(self):
        errors = validate_record("requirements", {"id": "r1", "description": "x", "code": None})
        assert errors == []

    def test_points_must_be_integer(self):
        errors = validate_record("members", {"id": "m1", "name": "Ana", "points": "10"})
        assert any("points" in err for err in errors)

    def test_ledger_entry_requires_amount(self):
        errors = validate_record("point_history", {"member_id": "m1"})
        assert any("amount" in err for err in errors)

    @pytest.mark.parametrize("amount", [1.5, True, "3"])
    def test_ledger_amount_integer(self, amount):
        errors = validate_record("point_history", {"member_id": "m1", "amount": amount})
        assert any("amount" in err for err in errors)

    def test_ledger_source(self):
        assert validate_record("point_history", {"member_id": "m1", "amount": 1, "source": "activity"}) == []
        errors = validate_record("point_history", {"member_id": "m1", "amount": 1, "source": "LOTTERY"})
        assert any("source" in err for err in errors)

    def test_timestamp_format(self):
        ok = {"id": "c1", "name": "Orion", "created_at": "2025-01-31T10:00:00"}
        bad = {"id": "c1", "name": "Orion", "created_at": "31/01/2025"}
        assert validate_record("clubs", ok) == []
        assert any("created_at" in err for err in validate_record("clubs", bad))

    def test_unknown_kind(self):
        assert validate_record("invoices", {}) == ["Unknown record kind: invoices"]

    def test_not_an_object(self):
        assert validate_record("clubs", ["c1"]) == ["clubs record must be an object"]
