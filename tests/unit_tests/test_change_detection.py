"""Unit tests for the change-detection engine."""

from decimal import Decimal

import pytest

from ccas_api.workflow.change_detection import ChangeSet
from ccas_api.workflow.change_detection import compare
from ccas_api.workflow.change_detection import display_value
from ccas_api.workflow.change_detection import field_label
from ccas_api.workflow.change_detection import format_changes_summary
from ccas_api.workflow.change_detection import normalize_value
from ccas_api.workflow.enums import RequestType


def plant_snapshot(**overrides):
    snapshot = {
        "requestId": "N_01012025_001",
        "version": 1,
        "companyCode": "1000",
        "plantCode": "P100",
        "nameOfPlant": "Alpha",
        "gstNumber": None,
        "addressOfPlant": "",
    }
    snapshot.update(overrides)
    return snapshot


class TestFieldLabel:
    """Tests for human labels derived from field names."""

    @pytest.mark.parametrize(
        "field,expected",
        [
            ("nameOfPlant", "Name Of Plant"),
            ("companyCode", "Company Code"),
            ("storageLocationDescription", "Storage Location Description"),
            ("segment", "Segment"),
            ("gstNumber", "GST Number"),
            ("cin", "CIN"),
            ("shareholdingPercentage", "Shareholding Percentage (%)"),
        ],
        ids=["camel", "two_words", "three_words", "single_word", "override_gst", "override_cin", "override_pct"],
    )
    def test_labels(self, field, expected):
        assert field_label(field) == expected


class TestNormalizeValue:
    """Tests for value normalization before comparison."""

    @pytest.mark.parametrize(
        "field,value,expected",
        [
            ("nameOfPlant", None, ""),
            ("nameOfPlant", "", ""),
            ("nameOfPlant", "Alpha", "Alpha"),
            ("nameOfPlant", " x ", " x "),
            ("profitCenter", "10.10", "10.10"),
            ("costCenters", "1.0", "1.0"),
            ("companyCode", "0100", "0100"),
            ("shareholdingPercentage", Decimal("12.50"), "12.5"),
            ("shareholdingPercentage", "12.50", "12.5"),
            ("shareholdingPercentage", 12.5, "12.5"),
            ("shareholdingPercentage", Decimal("51.00"), "51"),
            ("shareholdingPercentage", None, ""),
            ("shareholdingPercentage", "n/a", "n/a"),
        ],
        ids=[
            "none",
            "empty",
            "text",
            "spaces",
            "code_trailing_zero",
            "code_integral",
            "code_leading_zero",
            "decimal",
            "decimal_string",
            "decimal_float",
            "decimal_integral",
            "decimal_none",
            "decimal_unparsable",
        ],
    )
    def test_normalize(self, field, value, expected):
        assert normalize_value(field, value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), ("5.50", "5.50"), (Decimal("51.00"), "51.00"), ("", "")],
        ids=["none", "text", "decimal", "empty"],
    )
    def test_display_value_keeps_stored_text(self, value, expected):
        assert display_value(value) == expected


class TestCompare:
    """Tests for compare()."""

    def test_identical_snapshots_have_no_changes(self):
        """compare(a, a) never reports changes."""
        a = plant_snapshot()
        result = compare(a, dict(a), RequestType.PLANT)

        assert result.has_changes is False
        assert result.changes == []
        assert result.changed_field_names == set()

    def test_single_field_change(self):
        """Renaming the plant reports exactly that field with old and new values."""
        v1 = plant_snapshot(nameOfPlant="Alpha")
        v2 = plant_snapshot(version=2, nameOfPlant="Beta")

        result = compare(v1, v2, RequestType.PLANT)

        assert result.has_changes is True
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.field == "nameOfPlant"
        assert change.label == "Name Of Plant"
        assert change.old_value == "Alpha"
        assert change.new_value == "Beta"

    def test_bookkeeping_fields_ignored(self):
        """requestId, version and submitter never show up as changes."""
        v1 = plant_snapshot(submittedBy="a@example.com")
        v2 = plant_snapshot(requestId="N_01012025_002", version=7, submittedBy="b@example.com")

        assert compare(v1, v2, RequestType.PLANT).has_changes is False

    def test_none_and_empty_string_are_equal(self):
        v1 = plant_snapshot(gstNumber=None, addressOfPlant="")
        v2 = plant_snapshot(gstNumber="", addressOfPlant=None)

        assert compare(v1, v2, RequestType.PLANT).has_changes is False

    def test_cleared_field_is_a_change(self):
        v1 = plant_snapshot(gstNumber="29ABCDE1234F1Z5")
        v2 = plant_snapshot(gstNumber=None)

        result = compare(v1, v2, RequestType.PLANT)

        assert result.changed_field_names == {"gstNumber"}
        assert result.changes[0].new_value == ""

    def test_changed_field_names_symmetric(self):
        """The set of changed fields does not depend on argument order."""
        a = plant_snapshot(nameOfPlant="Alpha", gstNumber="X1")
        b = plant_snapshot(nameOfPlant="Beta", companyCode="2000")

        forward = compare(a, b, RequestType.PLANT)
        backward = compare(b, a, RequestType.PLANT)

        assert forward.changed_field_names == backward.changed_field_names == {
            "companyCode",
            "gstNumber",
            "nameOfPlant",
        }
        assert forward.changes[0].old_value == backward.changes[0].new_value

    def test_changes_follow_canonical_field_order(self):
        a = plant_snapshot()
        b = plant_snapshot(storageLocationCode="S1", companyCode="2000", nameOfPlant="Beta")

        result = compare(a, b, RequestType.PLANT)

        assert [c.field for c in result.changes] == ["companyCode", "nameOfPlant", "storageLocationCode"]

    def test_decimal_equivalence_for_company(self):
        a = {"companyCode": "1000", "nameOfCompanyCode": "Acme", "shareholdingPercentage": Decimal("12.50")}
        b = {"companyCode": "1000", "nameOfCompanyCode": "Acme", "shareholdingPercentage": "12.5"}

        assert compare(a, b, RequestType.COMPANY).has_changes is False

    @pytest.mark.parametrize(
        "field,old,new",
        [
            ("profitCenter", "10.10", "10.1"),
            ("costCenters", "1.0", "1"),
            ("storageLocationCode", "0100", "100"),
        ],
        ids=["trailing_zero", "integral", "leading_zero"],
    )
    def test_numeric_looking_codes_compare_as_text(self, field, old, new):
        """Code fields are text: a change in trailing or leading zeros is reported."""
        result = compare(plant_snapshot(**{field: old}), plant_snapshot(**{field: new}), RequestType.PLANT)

        assert result.has_changes is True
        assert result.changed_field_names == {field}
        assert (result.changes[0].old_value, result.changes[0].new_value) == (old, new)

    def test_reported_values_keep_stored_text(self):
        """Approvers see the stored values, not their normalized form."""
        result = compare(plant_snapshot(costCenters="5.50"), plant_snapshot(costCenters="ABC"), RequestType.PLANT)

        assert result.changes[0].old_value == "5.50"
        assert result.changes[0].new_value == "ABC"

    def test_reported_decimal_keeps_stored_scale(self):
        a = {"companyCode": "1000", "nameOfCompanyCode": "Acme", "shareholdingPercentage": Decimal("12.50")}
        b = {"companyCode": "1000", "nameOfCompanyCode": "Acme", "shareholdingPercentage": Decimal("51.00")}

        change = compare(a, b, RequestType.COMPANY).changes[0]

        assert (change.old_value, change.new_value) == ("12.50", "51.00")

    @pytest.mark.parametrize(
        "old,new",
        [(None, {"companyCode": "1"}), ({}, {"companyCode": "1"}), ({"companyCode": "1"}, None)],
        ids=["old_none", "old_empty", "new_none"],
    )
    def test_missing_snapshot_is_baseline(self, old, new):
        """Nothing to compare against: no changes."""
        result = compare(old, new, RequestType.COMPANY)

        assert result == ChangeSet()

    def test_to_metadata_uses_camel_case_keys(self):
        result = compare(plant_snapshot(), plant_snapshot(nameOfPlant="Beta"), RequestType.PLANT)

        assert result.to_metadata() == [
            {"field": "nameOfPlant", "label": "Name Of Plant", "oldValue": "Alpha", "newValue": "Beta"}
        ]


class TestFormatChangesSummary:
    """Tests for the human-readable change summary."""

    def test_summary_lines(self):
        result = compare(
            plant_snapshot(gstNumber=None),
            plant_snapshot(nameOfPlant="Beta", gstNumber="X1"),
            RequestType.PLANT,
        )

        summary = format_changes_summary(result.changes)

        assert summary.splitlines() == [
            'GST Number: "(empty)" → "X1"',
            'Name Of Plant: "Alpha" → "Beta"',
        ]

    def test_empty_summary(self):
        assert format_changes_summary([]) == ""
