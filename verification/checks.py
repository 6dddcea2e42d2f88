import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from config import (
    COMMON_REQUIRED_FIELDS, DOCUMENT_RULES,
    MIN_DOCUMENT_NUMBER_LENGTH, PASSPORT_NUMBER_REGEX,
)
from .models import AnalyzedField, DocumentType, ExtractedField

DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%m/%d/%Y", "%d %b %Y", "%d %B %Y"]


@dataclass
class RuleResult:
    valid: bool
    reason: Optional[str] = None


class DocumentChecks:
    """
    Per-document-type validation rules applied to extracted fields
    """

    def __init__(self):
        self.passport_regex = re.compile(PASSPORT_NUMBER_REGEX)

    def required_fields(self, document_type: str) -> List[str]:
        """Ordered required field names for a document type"""
        return list(DOCUMENT_RULES.get(document_type, COMMON_REQUIRED_FIELDS))

    def is_present(self, fields: Dict[str, ExtractedField], name: str) -> bool:
        extracted = fields.get(name)
        return bool(extracted and extracted.value and extracted.confidence is not None)

    def parse_date(self, text: Optional[str]) -> Optional[datetime]:
        """Parse a document date, returning None when the format is not recognised"""
        if not text:
            return None
        text = text.strip()
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def calculate_confidence(self, fields: Iterable[AnalyzedField]) -> float:
        """Mean confidence over every analyzed field that reported one, empty values included"""
        confidences = [f.confidence for f in fields if f.confidence is not None]
        return sum(confidences) / len(confidences) if confidences else 0.0

    def validate(self, document_type: str,
                 fields: Dict[str, ExtractedField],
                 now: Optional[datetime] = None) -> RuleResult:
        """
        Apply the rules in order, first failure wins:
        missing fields, expiry, then the document type's number format
        """
        missing = [name for name in self.required_fields(document_type)
                   if not self.is_present(fields, name)]
        if missing:
            return RuleResult(
                False, f"Missing required fields: {', '.join(n.upper() for n in missing)}"
            )

        expiry_issue = self._check_expiry(fields, now or datetime.now(timezone.utc))
        if expiry_issue:
            return expiry_issue

        if document_type == DocumentType.PASSPORT:
            return self._check_passport(fields)
        if document_type == DocumentType.DRIVERS_LICENSE:
            return self._check_number_length(fields, "license_number", "Invalid license number format")
        if document_type == DocumentType.ID_CARD:
            return self._check_number_length(fields, "id_number", "Invalid ID number format")
        return RuleResult(True)

    def _check_expiry(self, fields: Dict[str, ExtractedField], now: datetime) -> Optional[RuleResult]:
        expiration = fields.get("expiration_date")
        expires_at = self.parse_date(expiration.value if expiration else None)
        if expires_at is not None and expires_at < now:
            return RuleResult(False, "Document has expired")
        return None

    def _check_passport(self, fields: Dict[str, ExtractedField]) -> RuleResult:
        number = fields.get("passport_number")
        if not number or not self.passport_regex.fullmatch(number.value):
            return RuleResult(False, "Invalid passport number format")
        return RuleResult(True)

    def _check_number_length(self, fields: Dict[str, ExtractedField],
                             name: str, reason: str) -> RuleResult:
        number = fields.get(name)
        if not number or len(number.value) < MIN_DOCUMENT_NUMBER_LENGTH:
            return RuleResult(False, reason)
        return RuleResult(True)
