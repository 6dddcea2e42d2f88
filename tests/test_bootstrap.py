import pytest

from config import Settings
from verification.bootstrap import (
    build_document_analyzer, build_face_analyzer, build_orchestrator, build_record_store,
    build_retention,
)
from verification.errors import ConfigurationError
from verification.extractor import OpenAIDocumentAnalyzer, TextractDocumentAnalyzer
from verification.face_match import OpenAIFaceAnalyzer, RekognitionFaceAnalyzer
from verification.storage import ImageStore
from verification.store import InMemoryRecordStore, SqlRecordStore


def make_settings(**overrides):
    values = dict(
        OPENAI_API_KEY="sk-test",
        AWS_ACCESS_KEY_ID="AKIATEST",
        AWS_SECRET_ACCESS_KEY="secret",
        AWS_REGION="us-east-1",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestAnalyzers:
    def test_openai_defaults(self):
        settings = make_settings(DOCUMENT_ANALYZER_PROVIDER="openai", FACE_ANALYZER_PROVIDER="openai")
        assert isinstance(build_document_analyzer(settings), OpenAIDocumentAnalyzer)
        assert isinstance(build_face_analyzer(settings), OpenAIFaceAnalyzer)

    def test_aws_providers(self):
        settings = make_settings(DOCUMENT_ANALYZER_PROVIDER="textract", FACE_ANALYZER_PROVIDER="Rekognition")
        assert isinstance(build_document_analyzer(settings), TextractDocumentAnalyzer)
        assert isinstance(build_face_analyzer(settings), RekognitionFaceAnalyzer)

    def test_missing_openai_key(self):
        settings = make_settings(OPENAI_API_KEY="", DOCUMENT_ANALYZER_PROVIDER="openai")
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            build_document_analyzer(settings)

    def test_missing_aws_credentials(self):
        settings = make_settings(AWS_SECRET_ACCESS_KEY="", FACE_ANALYZER_PROVIDER="rekognition")
        with pytest.raises(ConfigurationError, match="AWS_ACCESS_KEY_ID"):
            build_face_analyzer(settings)

    def test_unknown_provider(self):
        settings = make_settings(DOCUMENT_ANALYZER_PROVIDER="tesseract")
        with pytest.raises(ConfigurationError, match="tesseract"):
            build_document_analyzer(settings)


class TestStoresAndOrchestrator:
    def test_record_store_choice(self, tmp_path):
        assert isinstance(build_record_store(make_settings(DATABASE_URL="")), InMemoryRecordStore)
        url = f"sqlite+aiosqlite:///{tmp_path / 'records.db'}"
        store = build_record_store(make_settings(DATABASE_URL=url))
        assert isinstance(store, SqlRecordStore)
        assert store.engine.url.database == str(tmp_path / 'records.db')

    def test_orchestrator_uses_configured_thresholds(self, tmp_path):
        settings = make_settings(SIMILARITY_THRESHOLD=95.0, LIVENESS_THRESHOLD=70.0)
        orchestrator = build_orchestrator(settings, InMemoryRecordStore(), ImageStore(str(tmp_path)))
        assert orchestrator.face_service.engine.similarity_threshold == 95.0
        assert orchestrator.face_service.engine.liveness_threshold == 70.0

    def test_retention_windows(self, tmp_path):
        settings = make_settings(DATA_RETENTION_DAYS=30, DOCUMENT_RETENTION_DAYS=2)
        retention = build_retention(settings, InMemoryRecordStore(), ImageStore(str(tmp_path)))
        assert retention.record_days == 30
        assert retention.image_days == 2
