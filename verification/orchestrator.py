"""
Verification orchestrator.

Owns each verification record's lifecycle:

    pending -> in_progress -> completed
                           \\-> failed

`start` runs the document step and leaves the record in_progress on
success. `continue_with_face` runs liveness then face match and moves the
record to completed. Any failure is written to the record (status=failed,
failure_reason=<message>) and persisted before the same error is raised to
the caller.
"""

import asyncio
import logging
import re
from typing import Optional

from config import USER_ID_REGEX
from .document_step import DocumentVerificationService
from .errors import NotFoundError, ValidationError
from .face_step import FaceVerificationService
from .models import DocumentType, VerificationRecord, VerificationStatus
from .storage import ImageStore
from .store import RecordStore

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(USER_ID_REGEX)


class VerificationOrchestrator:
    def __init__(self,
                 store: RecordStore,
                 document_service: DocumentVerificationService,
                 face_service: FaceVerificationService,
                 image_store: Optional[ImageStore] = None):
        self.store = store
        self.document_service = document_service
        self.face_service = face_service
        self.image_store = image_store

    async def _transition(self, record: VerificationRecord,
                          status: VerificationStatus,
                          reason: Optional[str] = None) -> None:
        previous = record.status
        record.transition_to(status, reason)
        await self.store.save(record)
        logger.info("Verification %s: %s -> %s%s", record.id, previous.value, status.value,
                    f" ({reason})" if reason else "")

    async def _fail(self, record: VerificationRecord, reason: str) -> None:
        await self._transition(record, VerificationStatus.FAILED, reason)

    def validate_start(self, user_id: str, document_type: str) -> DocumentType:
        """Reject a malformed user id or unknown document type before any work"""
        if not isinstance(user_id, str) or not USER_ID_PATTERN.fullmatch(user_id):
            raise ValidationError(
                "User ID must be 3-50 characters of letters, numbers, underscores and hyphens"
            )
        try:
            return DocumentType(document_type)
        except ValueError:
            raise ValidationError(
                "Invalid document type. Must be one of: "
                + ", ".join(t.value for t in DocumentType)
            )

    async def start(self, user_id: str, document_type: str, document: bytes,
                    document_image_ref: Optional[str] = None) -> VerificationRecord:
        """Create a record and run the document step"""
        doc_type = self.validate_start(user_id, document_type)

        record = VerificationRecord(
            user_id=user_id,
            document_type=doc_type,
            document_image_ref=document_image_ref,
        )
        record.transition_to(VerificationStatus.IN_PROGRESS)
        await self.store.create(record)
        logger.info("Verification %s started for user %s (%s)", record.id, user_id, doc_type.value)

        try:
            result = await self.document_service.verify(doc_type, document)
        except Exception as e:
            await self._fail(record, str(e))
            raise

        record.document_data = result.extracted_fields
        record.confidence_score = result.confidence_score
        await self.store.save(record)
        logger.info("Verification %s document accepted (confidence=%.2f)",
                    record.id, result.confidence_score)
        return record

    async def continue_with_face(self, verification_id: str, selfie: bytes,
                                 document_face: Optional[bytes] = None,
                                 selfie_image_ref: Optional[str] = None) -> VerificationRecord:
        """Run liveness then face match against the document face"""
        record = await self.store.find_by_id(verification_id)
        if record is None:
            raise NotFoundError("Verification not found")

        if record.status != VerificationStatus.IN_PROGRESS or record.document_data is None:
            raise ValidationError("Verification is not awaiting face verification")

        if selfie_image_ref:
            record.selfie_image_ref = selfie_image_ref

        try:
            liveness = await self.face_service.detect_liveness(selfie)
            if not liveness.is_live:
                raise ValidationError("Liveness check failed")

            source = document_face
            if source is None:
                source = await self._stored_document_image(record)
            match = await self.face_service.verify(source, selfie)
            record.face_match_result = match
            if not match.is_match:
                raise ValidationError("Face match failed")
        except Exception as e:
            await self._fail(record, str(e))
            raise

        await self._transition(record, VerificationStatus.COMPLETED)
        return record

    async def _stored_document_image(self, record: VerificationRecord) -> bytes:
        ref = record.document_image_ref
        if self.image_store and ref and await asyncio.to_thread(self.image_store.exists, ref):
            return await asyncio.to_thread(self.image_store.load, ref)
        raise ValidationError("Document face image is not available")

    async def get_status(self, verification_id: str) -> VerificationRecord:
        record = await self.store.find_by_id(verification_id)
        if record is None:
            raise NotFoundError("Verification not found")
        return record
