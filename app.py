from fastapi import FastAPI, File, UploadFile, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Iterable, Optional, Tuple

from config import settings, ALLOWED_DOCUMENT_EXTS, ALLOWED_SELFIE_EXTS
from verification.bootstrap import build_orchestrator, build_record_store
from verification.errors import NotFoundError, ValidationError
from verification.file_converter import convert_to_jpeg
from verification.models import VerificationRecord
from verification.orchestrator import VerificationOrchestrator
from verification.storage import ImageStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build analyzer clients and stores once per process"""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = None
    if getattr(app.state, "orchestrator", None) is None:
        store = build_record_store(settings)
        image_store = ImageStore(settings.UPLOAD_DIR)
        # Raises ConfigurationError when credentials are missing
        app.state.orchestrator = build_orchestrator(settings, store, image_store)
        app.state.image_store = image_store

    yield

    if store is not None:
        await store.close()


app = FastAPI(
    title="Identity Verification Service",
    description="Document and face verification workflow for user identity checks",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info("%s %s -> %s [request_id=%s]",
                request.method, request.url.path, response.status_code, request_id)
    return response


def _services(request: Request) -> Tuple[VerificationOrchestrator, ImageStore]:
    return request.app.state.orchestrator, request.app.state.image_store


async def _read_upload(upload: Optional[UploadFile], allowed_exts: Iterable[str], label: str) -> bytes:
    """Read an upload, enforce size, and normalise it to JPEG"""
    if upload is None or not upload.filename:
        raise ValidationError(f"{label} file is required")
    data = await upload.read()
    if not data:
        raise ValidationError(f"{label} file is required")
    if len(data) > settings.MAX_FILE_SIZE:
        raise ValidationError("File size too large")
    return await asyncio.to_thread(convert_to_jpeg, data, upload.filename, allowed_exts)


# ------------------------
# Verification API
# ------------------------
@app.post("/verification/document", response_model=VerificationRecord, status_code=201)
async def start_document_verification(
    request: Request,
    user_id: str = Form(...),
    document_type: str = Form(...),
    document: UploadFile = File(...),
):
    """
    Start a verification: extract and validate the identity document.
    Supports JPG / PNG / HEIC / PDF uploads.
    """
    orchestrator, image_store = _services(request)

    try:
        orchestrator.validate_start(user_id, document_type)
        image = await _read_upload(document, ALLOWED_DOCUMENT_EXTS, "Document")
        ref = await asyncio.to_thread(image_store.save, image)
        return await orchestrator.start(user_id, document_type, image, document_image_ref=ref)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Document verification failed [request_id=%s]", request.state.request_id)
        raise HTTPException(status_code=500, detail="Document verification failed")


@app.post("/verification/{verification_id}/face", response_model=VerificationRecord)
async def verify_face(
    request: Request,
    verification_id: str,
    selfie: UploadFile = File(...),
    document_face: Optional[UploadFile] = File(None),
):
    """
    Liveness and face match of a selfie against the document photo.
    `document_face` overrides the stored document image as the comparison source.
    """
    orchestrator, image_store = _services(request)

    try:
        selfie_image = await _read_upload(selfie, ALLOWED_SELFIE_EXTS, "Selfie")
        face_image = None
        if document_face is not None and document_face.filename:
            face_image = await _read_upload(document_face, ALLOWED_SELFIE_EXTS, "Document face")
        selfie_ref = await asyncio.to_thread(image_store.save, selfie_image)
        return await orchestrator.continue_with_face(
            verification_id, selfie_image,
            document_face=face_image,
            selfie_image_ref=selfie_ref,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Face verification failed [request_id=%s]", request.state.request_id)
        raise HTTPException(status_code=500, detail="Face verification failed")


@app.get("/verification/{verification_id}", response_model=VerificationRecord)
async def get_verification_status(request: Request, verification_id: str):
    orchestrator, _ = _services(request)
    try:
        return await orchestrator.get_status(verification_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "identity-verification"
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
