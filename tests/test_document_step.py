from unittest.mock import AsyncMock, MagicMock

import pytest

from verification.document_step import DocumentVerificationService, normalize_fields
from verification.errors import AnalysisError, ValidationError
from verification.models import AnalyzedDocument, AnalyzedField, PassportDocument

from factories import NOW, passport


def service_returning(result=None, error=None):
    analyzer = MagicMock()
    analyzer.analyze_identity_document = AsyncMock(return_value=result, side_effect=error)
    return DocumentVerificationService(analyzer), analyzer


class TestNormalizeFields:
    def test_lowercases_and_drops_empty(self):
        analyzed = AnalyzedDocument(fields=[
            AnalyzedField(name="FIRST_NAME", value="John", confidence=99.0),
            AnalyzedField(name="MIDDLE_NAME", value="", confidence=80.0),
            AnalyzedField(name="ADDRESS", value=None, confidence=None),
        ])
        fields = normalize_fields(analyzed)
        assert list(fields) == ["first_name"]
        assert fields["first_name"].value == "John"
        assert fields["first_name"].confidence == 99.0


class TestDocumentVerificationService:
    @pytest.mark.asyncio
    async def test_valid_passport(self):
        service, analyzer = service_returning(passport())
        result = await service.verify("passport", b"image", now=NOW)

        analyzer.analyze_identity_document.assert_awaited_once_with(b"image")
        assert result.extracted_fields["passport_number"].value == "AB123456"
        assert result.confidence_score == pytest.approx(
            (99.5 + 99.2 + 98.7 + 97.9 + 98.1 + 98.5) / 6
        )
        assert isinstance(result.document, PassportDocument)
        assert result.document.nationality == "USA"

    @pytest.mark.asyncio
    async def test_confidence_includes_empty_fields(self):
        service, _ = service_returning(passport(MIDDLE_NAME=("", 10.0)))
        result = await service.verify("passport", b"image", now=NOW)

        assert "middle_name" not in result.extracted_fields
        assert result.confidence_score == pytest.approx(
            (99.5 + 99.2 + 98.7 + 97.9 + 98.1 + 98.5 + 10.0) / 7
        )

    @pytest.mark.asyncio
    async def test_not_an_identity_document(self):
        service, _ = service_returning(None)
        with pytest.raises(AnalysisError, match="Failed to analyze document"):
            await service.verify("passport", b"image", now=NOW)

    @pytest.mark.asyncio
    async def test_rule_failure_message(self):
        service, _ = service_returning(passport(EXPIRATION_DATE=("2020-01-01", 98.1)))
        with pytest.raises(ValidationError) as exc:
            await service.verify("passport", b"image", now=NOW)
        assert str(exc.value) == "Document has expired"

    @pytest.mark.asyncio
    async def test_missing_fields_message(self):
        service, _ = service_returning(passport(PASSPORT_NUMBER=None))
        with pytest.raises(ValidationError, match="Missing required fields: PASSPORT_NUMBER"):
            await service.verify("passport", b"image", now=NOW)

    @pytest.mark.asyncio
    async def test_analyzer_outage_becomes_validation_error(self):
        service, _ = service_returning(error=ConnectionError("endpoint unreachable"))
        with pytest.raises(ValidationError) as exc:
            await service.verify("passport", b"image", now=NOW)
        assert str(exc.value) == "endpoint unreachable"
        assert isinstance(exc.value.__cause__, ConnectionError)
