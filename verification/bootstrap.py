"""
Builds the verification components once per process from Settings.

Analyzer clients are long-lived and injected into the steps; nothing in
the core looks them up globally.
"""

from openai import AsyncOpenAI

from config import Settings
from .document_step import DocumentVerificationService
from .errors import ConfigurationError
from .extractor import DocumentAnalyzer, OpenAIDocumentAnalyzer, TextractDocumentAnalyzer
from .face_decision import FaceDecisionEngine
from .face_match import FaceAnalyzer, OpenAIFaceAnalyzer, RekognitionFaceAnalyzer
from .face_step import FaceVerificationService
from .orchestrator import VerificationOrchestrator
from .retention import DataRetention
from .storage import ImageStore
from .store import InMemoryRecordStore, RecordStore, SqlRecordStore


def _require_openai(settings: Settings) -> None:
    if not settings.OPENAI_API_KEY:
        raise ConfigurationError("OPENAI_API_KEY is required for the openai provider")


def _require_aws(settings: Settings) -> None:
    if not settings.AWS_ACCESS_KEY_ID or not settings.AWS_SECRET_ACCESS_KEY:
        raise ConfigurationError(
            "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required for AWS providers"
        )


def build_document_analyzer(settings: Settings) -> DocumentAnalyzer:
    provider = settings.DOCUMENT_ANALYZER_PROVIDER.lower()
    if provider == "openai":
        _require_openai(settings)
        return OpenAIDocumentAnalyzer(AsyncOpenAI(api_key=settings.OPENAI_API_KEY), settings.OPENAI_MODEL)
    if provider == "textract":
        _require_aws(settings)
        return TextractDocumentAnalyzer.from_credentials(
            settings.AWS_REGION, settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY
        )
    raise ConfigurationError(f"Unknown document analyzer provider '{provider}'")


def build_face_analyzer(settings: Settings) -> FaceAnalyzer:
    provider = settings.FACE_ANALYZER_PROVIDER.lower()
    if provider == "openai":
        _require_openai(settings)
        return OpenAIFaceAnalyzer(AsyncOpenAI(api_key=settings.OPENAI_API_KEY), settings.FACE_MODEL)
    if provider == "rekognition":
        _require_aws(settings)
        return RekognitionFaceAnalyzer.from_credentials(
            settings.AWS_REGION, settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY
        )
    raise ConfigurationError(f"Unknown face analyzer provider '{provider}'")


def build_record_store(settings: Settings) -> RecordStore:
    if settings.DATABASE_URL:
        return SqlRecordStore.from_url(settings.DATABASE_URL)
    return InMemoryRecordStore()


def build_orchestrator(settings: Settings, store: RecordStore, image_store: ImageStore) -> VerificationOrchestrator:
    engine = FaceDecisionEngine(settings.SIMILARITY_THRESHOLD, settings.LIVENESS_THRESHOLD)
    return VerificationOrchestrator(
        store=store,
        document_service=DocumentVerificationService(build_document_analyzer(settings)),
        face_service=FaceVerificationService(build_face_analyzer(settings), engine),
        image_store=image_store,
    )


def build_retention(settings: Settings, store: RecordStore, image_store: ImageStore) -> DataRetention:
    return DataRetention(
        store=store,
        image_store=image_store,
        record_days=settings.DATA_RETENTION_DAYS,
        image_days=settings.DOCUMENT_RETENTION_DAYS,
    )
