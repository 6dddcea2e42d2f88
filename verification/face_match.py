import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import boto3
from openai import AsyncOpenAI

from .extractor import encode_image, safe_json_parse, to_percent
from .models import (
    FaceAttribute, FaceComparison, FaceDetail, FaceMatch, FacePose, FaceQuality,
)

logger = logging.getLogger(__name__)

QUALITY_ATTRIBUTES = ("QUALITY", "POSE")
ALL_ATTRIBUTES = ("ALL",)


class FaceAnalyzer(Protocol):
    async def detect_faces(self, image: bytes, attributes: Sequence[str]) -> List[FaceDetail]:
        ...

    async def compare_faces(self, source: bytes, target: bytes,
                            similarity_floor: float) -> FaceComparison:
        ...


def _to_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _to_bool(val: Any) -> Optional[bool]:
    if isinstance(val, bool) or val is None:
        return val
    s = str(val).strip().lower()
    if s in ("true", "yes", "y", "1"):
        return True
    if s in ("false", "no", "n", "0"):
        return False
    return None


# ------------------------
# AWS Rekognition
# ------------------------
def _aws_attribute(raw: Optional[Dict[str, Any]]) -> Optional[FaceAttribute]:
    if not raw:
        return None
    return FaceAttribute(value=raw.get("Value"), confidence=raw.get("Confidence"))


def parse_rekognition_face(raw: Dict[str, Any]) -> FaceDetail:
    quality = raw.get("Quality")
    pose = raw.get("Pose")
    return FaceDetail(
        quality=FaceQuality(
            brightness=quality.get("Brightness"),
            sharpness=quality.get("Sharpness"),
        ) if quality else None,
        pose=FacePose(
            pitch=pose.get("Pitch"),
            roll=pose.get("Roll"),
            yaw=pose.get("Yaw"),
        ) if pose else None,
        eyes_open=_aws_attribute(raw.get("EyesOpen")),
        mouth_open=_aws_attribute(raw.get("MouthOpen")),
        eyeglasses=_aws_attribute(raw.get("Eyeglasses")),
        sunglasses=_aws_attribute(raw.get("Sunglasses")),
        beard=_aws_attribute(raw.get("Beard")),
        emotions=list(raw.get("Emotions") or []),
        landmarks=list(raw.get("Landmarks") or []),
        bounding_box=raw.get("BoundingBox"),
    )


class RekognitionFaceAnalyzer:
    """
    Face detection and comparison with AWS Rekognition
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_credentials(cls, region: str, access_key_id: str, secret_access_key: str):
        return cls(boto3.client(
            "rekognition",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        ))

    async def detect_faces(self, image: bytes, attributes: Sequence[str]) -> List[FaceDetail]:
        # Quality and pose are part of Rekognition's DEFAULT attribute set
        aws_attributes = ["ALL"] if "ALL" in attributes else ["DEFAULT"]
        response = await asyncio.to_thread(
            self.client.detect_faces,
            Image={"Bytes": image},
            Attributes=aws_attributes,
        )
        return [parse_rekognition_face(face) for face in response.get("FaceDetails") or []]

    async def compare_faces(self, source: bytes, target: bytes,
                            similarity_floor: float) -> FaceComparison:
        response = await asyncio.to_thread(
            self.client.compare_faces,
            SourceImage={"Bytes": source},
            TargetImage={"Bytes": target},
            SimilarityThreshold=similarity_floor,
            QualityFilter="HIGH",
        )
        return FaceComparison(
            matches=[
                FaceMatch(
                    similarity=match.get("Similarity") or 0.0,
                    face=parse_rekognition_face(match.get("Face") or {}),
                )
                for match in response.get("FaceMatches") or []
            ],
            unmatched=[parse_rekognition_face(face) for face in response.get("UnmatchedFaces") or []],
        )


# ------------------------
# OpenAI Vision
# ------------------------
DETECT_PROMPT = """
You are a face analysis assistant for identity verification.

Find every human face in the image. For each face estimate:
- brightness and sharpness of the face region, 0-100
- head pose angles in degrees: pitch, roll, yaw (0 means facing the camera)
- whether eyes are open, mouth is open, eyeglasses, sunglasses, beard,
  each with a confidence 0-100
- dominant emotions with confidence 0-100
- bounding box as fractions of image width/height

Return STRICT JSON ONLY.

Format:
{
  "faces": [
    {
      "brightness": 0-100,
      "sharpness": 0-100,
      "pitch": number, "roll": number, "yaw": number,
      "eyes_open": true/false, "eyes_open_confidence": 0-100,
      "mouth_open": true/false, "mouth_open_confidence": 0-100,
      "eyeglasses": true/false, "eyeglasses_confidence": 0-100,
      "sunglasses": true/false, "sunglasses_confidence": 0-100,
      "beard": true/false, "beard_confidence": 0-100,
      "emotions": [{"type": "CALM", "confidence": 0-100}],
      "bounding_box": {"width": 0-1, "height": 0-1, "left": 0-1, "top": 0-1}
    }
  ]
}

Return an empty "faces" list when no face is visible.
"""

COMPARE_PROMPT = """
You are an identity verification assistant.

You will be given two images:
1. A photo from a government-issued identity document
2. A selfie taken by a user

Task:
Determine whether both images appear to show the SAME PERSON.

Consider:
- Facial structure
- Eyes, nose, mouth
- Face shape
- Relative age
- Hairline (ignore hairstyle differences)
- Ignore lighting, image quality, or background differences

Return STRICT JSON ONLY.

Format:
{
  "same_person": true/false,
  "similarity": 0-100,
  "reasoning_summary": "short explanation"
}
"""


def _llm_attribute(face: Dict[str, Any], name: str) -> Optional[FaceAttribute]:
    if name not in face and f"{name}_confidence" not in face:
        return None
    return FaceAttribute(
        value=_to_bool(face.get(name)),
        confidence=to_percent(face.get(f"{name}_confidence")),
    )


def parse_llm_face(face: Dict[str, Any]) -> FaceDetail:
    has_quality = "brightness" in face or "sharpness" in face
    has_pose = any(k in face for k in ("pitch", "roll", "yaw"))
    return FaceDetail(
        quality=FaceQuality(
            brightness=_to_float(face.get("brightness")),
            sharpness=_to_float(face.get("sharpness")),
        ) if has_quality else None,
        pose=FacePose(
            pitch=_to_float(face.get("pitch")),
            roll=_to_float(face.get("roll")),
            yaw=_to_float(face.get("yaw")),
        ) if has_pose else None,
        eyes_open=_llm_attribute(face, "eyes_open"),
        mouth_open=_llm_attribute(face, "mouth_open"),
        eyeglasses=_llm_attribute(face, "eyeglasses"),
        sunglasses=_llm_attribute(face, "sunglasses"),
        beard=_llm_attribute(face, "beard"),
        emotions=[e for e in face.get("emotions") or [] if isinstance(e, dict)],
        bounding_box=face.get("bounding_box") if isinstance(face.get("bounding_box"), dict) else None,
    )


class OpenAIFaceAnalyzer:
    """
    Face detection and comparison using an OpenAI vision model
    """

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    async def _ask(self, prompt: str, *images: bytes) -> Dict[str, Any]:
        content = [{"type": "text", "text": prompt}]
        content += [{"type": "image_url", "image_url": {"url": encode_image(img)}} for img in images]
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": content}],
            max_tokens=800,
            temperature=0,
        )
        return safe_json_parse(response.choices[0].message.content)

    async def detect_faces(self, image: bytes, attributes: Sequence[str]) -> List[FaceDetail]:
        parsed = await self._ask(DETECT_PROMPT, image)
        return [parse_llm_face(face) for face in parsed.get("faces") or [] if isinstance(face, dict)]

    async def compare_faces(self, source: bytes, target: bytes,
                            similarity_floor: float) -> FaceComparison:
        parsed = await self._ask(COMPARE_PROMPT, source, target)
        similarity = to_percent(parsed.get("similarity")) or 0.0
        same_person = _to_bool(parsed.get("same_person")) is True

        logger.debug("Face comparison similarity=%.1f summary=%s",
                     similarity, parsed.get("reasoning_summary"))

        # Mirror Rekognition: anything under the floor is reported as unmatched
        if same_person and similarity >= similarity_floor:
            return FaceComparison(matches=[FaceMatch(similarity=similarity)])
        return FaceComparison(unmatched=[FaceDetail()])
