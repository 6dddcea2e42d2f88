import asyncio
import base64
import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

import boto3
from openai import AsyncOpenAI

from .models import AnalyzedDocument, AnalyzedField

logger = logging.getLogger(__name__)


class DocumentAnalyzer(Protocol):
    async def analyze_identity_document(self, image: bytes) -> Optional[AnalyzedDocument]:
        """Extract identity fields, or None when no identity document is found"""
        ...


def encode_image(image: bytes) -> str:
    """Encode JPEG bytes as base64 data URL"""
    return f"data:image/jpeg;base64,{base64.b64encode(image).decode('utf-8')}"


def safe_json_parse(text: str) -> Dict[str, Any]:
    """Safely parse JSON from LLM response"""
    match = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not match:
        raise ValueError("No JSON found in model output")
    return json.loads(match.group())


def to_percent(val: Any) -> Optional[float]:
    """Parse a model-reported 0-100 score, clamped to that range"""
    if val is None:
        return None
    try:
        v = float(str(val).strip().replace("%", ""))
    except ValueError:
        return None
    return max(0.0, min(100.0, v))


EXTRACTION_PROMPT = """
You are an identity document extraction system.

Decide whether the image shows a government-issued identity document
(passport, driver's license or national ID card). If it does not, set
"is_identity_document" to false and return an empty "fields" list.

Otherwise extract every readable field. Use these field names when they apply:
FIRST_NAME, MIDDLE_NAME, LAST_NAME, DATE_OF_BIRTH, DATE_OF_ISSUE,
EXPIRATION_DATE, PASSPORT_NUMBER, NATIONALITY, LICENSE_NUMBER, STATE,
ID_NUMBER, ADDRESS

Return STRICT JSON only.

Expected format:
{
  "is_identity_document": true/false,
  "fields": [
    {"name": "FIELD_NAME", "value": "string", "confidence": 0-100}
  ]
}

Rules:
- Dates in YYYY-MM-DD
- Document numbers exactly as printed, upper case, without spaces
- Confidence is how sure you are the value was read correctly, 0 to 100
- Omit fields that are not visible. DO NOT guess or hallucinate
"""


class OpenAIDocumentAnalyzer:
    """
    Extracts identity document fields using OpenAI Vision
    """

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    async def analyze_identity_document(self, image: bytes) -> Optional[AnalyzedDocument]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": encode_image(image)}},
                    ],
                }
            ],
            max_tokens=800,
            temperature=0,
        )

        parsed = safe_json_parse(response.choices[0].message.content)
        if not parsed.get("is_identity_document"):
            return None

        fields = []
        for item in parsed.get("fields") or []:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            value = item.get("value")
            fields.append(AnalyzedField(
                name=str(item["name"]),
                value=str(value) if value is not None else None,
                confidence=to_percent(item.get("confidence")),
            ))
        return AnalyzedDocument(fields=fields)


class TextractDocumentAnalyzer:
    """
    Extracts identity document fields with AWS Textract AnalyzeID
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_credentials(cls, region: str, access_key_id: str, secret_access_key: str):
        return cls(boto3.client(
            "textract",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        ))

    async def analyze_identity_document(self, image: bytes) -> Optional[AnalyzedDocument]:
        response = await asyncio.to_thread(
            self.client.analyze_id, DocumentPages=[{"Bytes": image}]
        )

        documents = response.get("IdentityDocuments") or []
        if not documents:
            return None

        fields = []
        for raw in documents[0].get("IdentityDocumentFields") or []:
            name = (raw.get("Type") or {}).get("Text")
            detection = raw.get("ValueDetection") or {}
            if not name:
                continue
            fields.append(AnalyzedField(
                name=name,
                value=detection.get("Text"),
                confidence=detection.get("Confidence"),
            ))
        return AnalyzedDocument(fields=fields)
