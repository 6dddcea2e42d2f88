"""
Data types shared across the verification workflow.

Pydantic models are used for everything that is persisted or returned
over HTTP (records, face results, typed documents). Analyzer outputs are
plain dataclasses: they only live for the duration of one step.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from .errors import ValidationError


class DocumentType(str, Enum):
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"
    ID_CARD = "id_card"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    VerificationStatus.PENDING: {VerificationStatus.IN_PROGRESS, VerificationStatus.FAILED},
    VerificationStatus.IN_PROGRESS: {VerificationStatus.COMPLETED, VerificationStatus.FAILED},
}


# ------------------------
# Persisted / returned models
# ------------------------
class ExtractedField(BaseModel):
    value: str
    confidence: Optional[float] = None


class FaceMatchResult(BaseModel):
    is_match: bool
    confidence: float
    details: Dict[str, Any] = Field(default_factory=dict)


class LivenessResult(BaseModel):
    is_live: bool
    confidence: float
    details: Dict[str, Any] = Field(default_factory=dict)


class VerificationRecord(BaseModel):
    """One user's document + face verification attempt"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    user_id: str = Field(frozen=True)
    document_type: DocumentType = Field(frozen=True)
    status: VerificationStatus = VerificationStatus.PENDING
    document_data: Optional[Dict[str, ExtractedField]] = None
    document_image_ref: Optional[str] = None
    selfie_image_ref: Optional[str] = None
    face_match_result: Optional[FaceMatchResult] = None
    confidence_score: Optional[float] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (VerificationStatus.COMPLETED, VerificationStatus.FAILED)

    def transition_to(self, status: VerificationStatus, reason: Optional[str] = None) -> None:
        """Move to `status`, refusing any edge outside ALLOWED_TRANSITIONS"""
        if status not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise ValidationError(
                f"Cannot move verification from {self.status.value} to {status.value}"
            )
        self.status = status
        if status == VerificationStatus.FAILED:
            self.failure_reason = reason


# ------------------------
# Typed documents
# ------------------------
class IdentityDocument(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: str
    expiration_date: Optional[str] = None


class PassportDocument(IdentityDocument):
    passport_number: str
    nationality: str


class DriversLicenseDocument(IdentityDocument):
    license_number: str
    state: str


class IdCardDocument(IdentityDocument):
    id_number: str


TYPED_DOCUMENTS: Dict[str, Type[IdentityDocument]] = {
    DocumentType.PASSPORT: PassportDocument,
    DocumentType.DRIVERS_LICENSE: DriversLicenseDocument,
    DocumentType.ID_CARD: IdCardDocument,
}


def build_typed_document(document_type: str, fields: Dict[str, ExtractedField]) -> IdentityDocument:
    """Turn a validated field bag into the document type's own model"""
    model = TYPED_DOCUMENTS.get(document_type, IdentityDocument)
    values = {name: f.value for name, f in fields.items() if name in model.model_fields}
    return model(**values)


# ------------------------
# Analyzer outputs
# ------------------------
@dataclass
class AnalyzedField:
    name: str
    value: Optional[str]
    confidence: Optional[float] = None


@dataclass
class AnalyzedDocument:
    fields: List[AnalyzedField] = field(default_factory=list)


@dataclass
class FaceQuality:
    brightness: Optional[float] = None
    sharpness: Optional[float] = None


@dataclass
class FacePose:
    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None


@dataclass
class FaceAttribute:
    value: Optional[bool] = None
    confidence: Optional[float] = None


@dataclass
class FaceDetail:
    quality: Optional[FaceQuality] = None
    pose: Optional[FacePose] = None
    eyes_open: Optional[FaceAttribute] = None
    mouth_open: Optional[FaceAttribute] = None
    eyeglasses: Optional[FaceAttribute] = None
    sunglasses: Optional[FaceAttribute] = None
    beard: Optional[FaceAttribute] = None
    emotions: List[Dict[str, Any]] = field(default_factory=list)
    landmarks: List[Dict[str, Any]] = field(default_factory=list)
    bounding_box: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FaceMatch:
    similarity: float
    face: FaceDetail = field(default_factory=FaceDetail)


@dataclass
class FaceComparison:
    matches: List[FaceMatch] = field(default_factory=list)
    unmatched: List[FaceDetail] = field(default_factory=list)
