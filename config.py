from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LOG_LEVEL: str = "INFO"

    # Analyzer providers: "openai" | "textract" for documents,
    # "openai" | "rekognition" for faces
    DOCUMENT_ANALYZER_PROVIDER: str = "openai"
    FACE_ANALYZER_PROVIDER: str = "openai"

    # OpenAI Configuration
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4.1-mini"
    # Model used specifically for face detection / comparison
    FACE_MODEL: str = "gpt-4.1-mini"

    # AWS Configuration (Textract / Rekognition)
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Face decision thresholds (0-100 scale)
    SIMILARITY_THRESHOLD: float = 90.0
    LIVENESS_THRESHOLD: float = 80.0
    MIN_FACE_BRIGHTNESS: float = 50
    MIN_FACE_SHARPNESS: float = 50
    MAX_POSE_ANGLE: float = 20

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_FILE_SIZE: int = 5 * 1024 * 1024

    # Verification records; empty means an in-process memory store
    DATABASE_URL: str = "sqlite+aiosqlite:///./verifications.db"

    # Celery broker / result backend for the retention beat schedule
    REDIS_URL: str = "redis://localhost:6379/0"

    # Data retention
    RETENTION_ENABLED: bool = True
    DATA_RETENTION_DAYS: int = 90
    DOCUMENT_RETENTION_DAYS: int = 1


settings = Settings()

COMMON_REQUIRED_FIELDS: List[str] = ["first_name", "last_name", "date_of_birth"]

# Required fields per document type, in reporting order
DOCUMENT_RULES: Dict[str, List[str]] = {
    "passport": COMMON_REQUIRED_FIELDS + ["passport_number", "expiration_date", "nationality"],
    "drivers_license": COMMON_REQUIRED_FIELDS + ["license_number", "expiration_date", "state"],
    "id_card": COMMON_REQUIRED_FIELDS + ["id_number", "expiration_date"],
}

ALLOWED_DOCUMENT_EXTS = {".jpg", ".jpeg", ".png", ".heic", ".heif", ".pdf"}
ALLOWED_SELFIE_EXTS = {".jpg", ".jpeg", ".png", ".heic", ".heif"}

# Passport number format
PASSPORT_NUMBER_REGEX = r"^[A-Z0-9]{6,9}$"

# Minimum length for license / ID numbers
MIN_DOCUMENT_NUMBER_LENGTH = 5

# Caller-supplied user identifier
USER_ID_REGEX = r"^[A-Za-z0-9_-]{3,50}$"
