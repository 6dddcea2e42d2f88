import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError
from .face_decision import FaceDecisionEngine
from .face_match import ALL_ATTRIBUTES, QUALITY_ATTRIBUTES, FaceAnalyzer
from .models import FaceMatchResult, LivenessResult

logger = logging.getLogger(__name__)

NO_FACE = "No face detected in the image"
MULTIPLE_FACES = "Multiple faces detected in the image"


@dataclass
class QualityCheck:
    is_valid: bool
    reason: Optional[str] = None


class FaceVerificationService:
    """
    Face match and liveness checks on top of a face analyzer
    """

    def __init__(self, analyzer: FaceAnalyzer, engine: Optional[FaceDecisionEngine] = None):
        self.analyzer = analyzer
        self.engine = engine or FaceDecisionEngine()

    async def check_face_quality(self, image: bytes) -> QualityCheck:
        """Single face, acceptable quality and pose. Analyzer errors become a reason."""
        try:
            faces = await self.analyzer.detect_faces(image, QUALITY_ATTRIBUTES)
        except Exception as e:
            logger.error("Error in face quality detection: %s", e, exc_info=True)
            return QualityCheck(False, str(e))

        if not faces:
            return QualityCheck(False, NO_FACE)
        if len(faces) > 1:
            return QualityCheck(False, MULTIPLE_FACES)

        face = faces[0]
        if not self.engine.quality_acceptable(face):
            return QualityCheck(False, "Image quality is too low")
        if not self.engine.pose_acceptable(face):
            return QualityCheck(False, "Face pose is not acceptable")
        return QualityCheck(True)

    async def verify(self, document_face: bytes, selfie: bytes) -> FaceMatchResult:
        try:
            document_quality, selfie_quality = await asyncio.gather(
                self.check_face_quality(document_face),
                self.check_face_quality(selfie),
            )

            if not document_quality.is_valid:
                raise ValidationError(f"Document face image issue: {document_quality.reason}")
            if not selfie_quality.is_valid:
                raise ValidationError(f"Selfie image issue: {selfie_quality.reason}")

            comparison = await self.analyzer.compare_faces(
                document_face, selfie, self.engine.similarity_threshold
            )

            if not comparison.matches:
                return FaceMatchResult(
                    is_match=False,
                    confidence=0,
                    details={
                        "reason": "No matching faces found",
                        "unmatched": len(comparison.unmatched),
                    },
                )

            best = max(comparison.matches, key=lambda m: m.similarity)
            face = best.face.to_dict()
            return FaceMatchResult(
                is_match=self.engine.is_match(best.similarity),
                confidence=best.similarity,
                details={
                    "bounding_box": face["bounding_box"],
                    "landmarks": face["landmarks"],
                    "quality": face["quality"],
                    "pose": face["pose"],
                },
            )
        except ValidationError as e:
            logger.error("Error in face comparison: %s", e)
            raise
        except Exception as e:
            logger.error("Error in face comparison: %s", e, exc_info=True)
            raise ValidationError(str(e)) from e

    async def detect_liveness(self, selfie: bytes) -> LivenessResult:
        try:
            faces = await self.analyzer.detect_faces(selfie, ALL_ATTRIBUTES)

            if not faces:
                raise ValidationError(NO_FACE)
            if len(faces) > 1:
                raise ValidationError(MULTIPLE_FACES)

            face = faces[0]
            score = self.engine.liveness_score(face)
            raw = face.to_dict()

            return LivenessResult(
                is_live=self.engine.is_live(score),
                confidence=score,
                details={
                    "eyes_open": raw["eyes_open"],
                    "mouth_open": raw["mouth_open"],
                    "eyeglasses": raw["eyeglasses"],
                    "sunglasses": raw["sunglasses"],
                    "beard": raw["beard"],
                    "emotions": raw["emotions"],
                    "quality": raw["quality"],
                    "pose": raw["pose"],
                    **self.engine.explain(face),
                },
            )
        except ValidationError as e:
            logger.error("Error in liveness detection: %s", e)
            raise
        except Exception as e:
            logger.error("Error in liveness detection: %s", e, exc_info=True)
            raise ValidationError(str(e)) from e
