"""Tests for the per-document-type validation rules."""

from datetime import datetime, timezone

import pytest

from verification.checks import DocumentChecks
from verification.document_step import normalize_fields
from verification.models import ExtractedField

from factories import NOW, analyzed, passport


def fields(**values):
    return {name: ExtractedField(value=value, confidence=95.0) for name, value in values.items()}


COMMON = dict(first_name="Jane", last_name="Roe", date_of_birth="1990-05-05", expiration_date="2030-01-01")


class TestRequiredFields:
    def test_passport_fields_in_order(self):
        assert DocumentChecks().required_fields("passport") == [
            "first_name", "last_name", "date_of_birth",
            "passport_number", "expiration_date", "nationality",
        ]

    def test_drivers_license_requires_license_number_and_state(self):
        required = DocumentChecks().required_fields("drivers_license")
        assert {"license_number", "state", "expiration_date"} <= set(required)

    def test_id_card_requires_id_number(self):
        required = DocumentChecks().required_fields("id_card")
        assert "id_number" in required
        assert "passport_number" not in required

    def test_unknown_type_only_common_fields(self):
        assert DocumentChecks().required_fields("library_card") == ["first_name", "last_name", "date_of_birth"]

    @pytest.mark.parametrize("document_type", ["passport", "drivers_license", "id_card"])
    def test_common_fields_enforced(self, document_type):
        result = DocumentChecks().validate(document_type, {}, now=NOW)
        assert not result.valid
        assert result.reason.startswith("Missing required fields: FIRST_NAME, LAST_NAME, DATE_OF_BIRTH")


class TestValidate:
    def test_valid_passport(self):
        checks = DocumentChecks()
        result = checks.validate("passport", normalize_fields(passport()), now=NOW)
        assert result.valid
        assert result.reason is None

    def test_missing_fields_lists_all(self):
        data = normalize_fields(passport(DATE_OF_BIRTH=None, NATIONALITY=None))
        result = DocumentChecks().validate("passport", data, now=NOW)
        assert result.reason == "Missing required fields: DATE_OF_BIRTH, NATIONALITY"

    def test_field_without_confidence_is_missing(self):
        data = fields(**COMMON, id_number="ID12345")
        data["id_number"] = ExtractedField(value="ID12345", confidence=None)
        result = DocumentChecks().validate("id_card", data, now=NOW)
        assert result.reason == "Missing required fields: ID_NUMBER"

    def test_expired_document(self):
        data = normalize_fields(passport(EXPIRATION_DATE=("2020-01-01", 98.1)))
        result = DocumentChecks().validate("passport", data, now=NOW)
        assert not result.valid
        assert result.reason == "Document has expired"

    def test_future_expiry_passes(self):
        data = normalize_fields(passport(EXPIRATION_DATE=("2025-01-01", 98.1)))
        assert DocumentChecks().validate("passport", data, now=NOW).valid

    def test_unparseable_expiry_skips_check(self):
        data = normalize_fields(passport(EXPIRATION_DATE=("not a date", 60.0)))
        assert DocumentChecks().validate("passport", data, now=NOW).valid

    def test_missing_fields_win_over_expiry(self):
        data = normalize_fields(passport(EXPIRATION_DATE=("2020-01-01", 98.1), NATIONALITY=None))
        result = DocumentChecks().validate("passport", data, now=NOW)
        assert result.reason == "Missing required fields: NATIONALITY"

    def test_passport_number_format(self):
        checks = DocumentChecks()
        ok = normalize_fields(passport(PASSPORT_NUMBER=("AB123456", 97.0)))
        bad = normalize_fields(passport(PASSPORT_NUMBER=("123", 97.0)))
        lower = normalize_fields(passport(PASSPORT_NUMBER=("ab123456", 97.0)))
        assert checks.validate("passport", ok, now=NOW).valid
        assert checks.validate("passport", bad, now=NOW).reason == "Invalid passport number format"
        assert checks.validate("passport", lower, now=NOW).reason == "Invalid passport number format"

    def test_license_number_length(self):
        checks = DocumentChecks()
        good = fields(**COMMON, license_number="D1234", state="CA")
        short = fields(**COMMON, license_number="D123", state="CA")
        assert checks.validate("drivers_license", good, now=NOW).valid
        assert checks.validate("drivers_license", short, now=NOW).reason == "Invalid license number format"

    def test_id_number_length(self):
        checks = DocumentChecks()
        short = fields(**COMMON, id_number="1234")
        assert checks.validate("id_card", short, now=NOW).reason == "Invalid ID number format"
        assert checks.validate("id_card", fields(**COMMON, id_number="12345"), now=NOW).valid

    def test_unknown_type_has_no_format_rule(self):
        data = fields(first_name="A", last_name="B", date_of_birth="2000-01-01")
        assert DocumentChecks().validate("library_card", data, now=NOW).valid


class TestParseDate:
    @pytest.mark.parametrize("text,expected", [
        ("2030-01-01", datetime(2030, 1, 1, tzinfo=timezone.utc)),
        ("2030-01-01T00:00:00", datetime(2030, 1, 1, tzinfo=timezone.utc)),
        ("2030/01/31", datetime(2030, 1, 31, tzinfo=timezone.utc)),
        ("31-01-2030", datetime(2030, 1, 31, tzinfo=timezone.utc)),
        ("01/31/2030", datetime(2030, 1, 31, tzinfo=timezone.utc)),
        ("31 JAN 2030", datetime(2030, 1, 31, tzinfo=timezone.utc)),
    ])
    def test_formats(self, text, expected):
        assert DocumentChecks().parse_date(text) == expected

    def test_garbage(self):
        assert DocumentChecks().parse_date("soon") is None
        assert DocumentChecks().parse_date("") is None


class TestConfidence:
    def test_mean_of_confidences(self):
        data = analyzed({
            "FIRST_NAME": ("John", 99.5),
            "LAST_NAME": ("Doe", 99.2),
            "DATE_OF_BIRTH": ("1980-01-01", 98.7),
        })
        assert DocumentChecks().calculate_confidence(data.fields) == pytest.approx(99.1333, abs=1e-3)

    def test_empty_values_are_averaged(self):
        data = analyzed({"FIRST_NAME": ("John", 90.0), "MIDDLE_NAME": ("", 10.0), "SUFFIX": (None, None)})
        assert DocumentChecks().calculate_confidence(data.fields) == 50.0

    def test_no_fields(self):
        assert DocumentChecks().calculate_confidence([]) == 0
