import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from .checks import DocumentChecks
from .errors import AnalysisError, ValidationError
from .extractor import DocumentAnalyzer
from .models import AnalyzedDocument, ExtractedField, IdentityDocument, build_typed_document

logger = logging.getLogger(__name__)


@dataclass
class DocumentVerificationResult:
    extracted_fields: Dict[str, ExtractedField]
    confidence_score: float
    document: IdentityDocument


def normalize_fields(analyzed: AnalyzedDocument) -> Dict[str, ExtractedField]:
    """Lower-case field names mapped to {value, confidence}; empty values are dropped"""
    fields = {}
    for item in analyzed.fields:
        if item.name and item.value:
            fields[item.name.lower()] = ExtractedField(value=item.value, confidence=item.confidence)
    return fields


class DocumentVerificationService:
    """
    Runs the document analyzer on an uploaded image and applies the rule set
    """

    def __init__(self, analyzer: DocumentAnalyzer, checks: Optional[DocumentChecks] = None):
        self.analyzer = analyzer
        self.checks = checks or DocumentChecks()

    async def verify(self, document_type: str, image: bytes,
                     now: Optional[datetime] = None) -> DocumentVerificationResult:
        """
        Extract and validate the document's fields.

        Every failure, including analyzer outages, surfaces as ValidationError
        whose message is the reason recorded on the verification.
        """
        try:
            analyzed = await self.analyzer.analyze_identity_document(image)
            if analyzed is None:
                raise AnalysisError("Failed to analyze document")

            fields = normalize_fields(analyzed)
            result = self.checks.validate(document_type, fields, now=now)
            if not result.valid:
                raise ValidationError(result.reason)

            return DocumentVerificationResult(
                extracted_fields=fields,
                confidence_score=self.checks.calculate_confidence(analyzed.fields),
                document=build_typed_document(document_type, fields),
            )
        except ValidationError as e:
            logger.error("Error verifying document: %s", e)
            raise
        except Exception as e:
            logger.error("Error verifying document: %s", e, exc_info=True)
            raise ValidationError(str(e)) from e
