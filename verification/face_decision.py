from typing import Dict, Any, Optional

from config import settings
from .models import FaceDetail


class FaceDecisionEngine:
    """
    Pure decisions over a detected face: quality, pose, liveness and match.
    All scores are on a 0-100 scale.
    """

    def __init__(self,
                 similarity_threshold: Optional[float] = None,
                 liveness_threshold: Optional[float] = None):
        self.similarity_threshold = (
            similarity_threshold if similarity_threshold is not None else settings.SIMILARITY_THRESHOLD
        )
        self.liveness_threshold = (
            liveness_threshold if liveness_threshold is not None else settings.LIVENESS_THRESHOLD
        )
        self.min_brightness = settings.MIN_FACE_BRIGHTNESS
        self.min_sharpness = settings.MIN_FACE_SHARPNESS
        self.max_pose_angle = settings.MAX_POSE_ANGLE

    def quality_acceptable(self, face: FaceDetail) -> bool:
        quality = face.quality
        if quality is None:
            return False
        return (
            (quality.brightness or 0) >= self.min_brightness
            and (quality.sharpness or 0) >= self.min_sharpness
        )

    def pose_acceptable(self, face: FaceDetail) -> bool:
        pose = face.pose
        if pose is None:
            return False
        return (
            abs(pose.pitch or 0) <= self.max_pose_angle
            and abs(pose.roll or 0) <= self.max_pose_angle
            and abs(pose.yaw or 0) <= self.max_pose_angle
        )

    def liveness_signals(self, face: FaceDetail) -> Dict[str, float]:
        """Every signal that is available for this face, keyed by name"""
        signals = {}

        if face.eyes_open and face.eyes_open.confidence is not None:
            signals["eyes_open"] = face.eyes_open.confidence

        if face.quality:
            if face.quality.brightness is not None:
                signals["brightness"] = face.quality.brightness
            if face.quality.sharpness is not None:
                signals["sharpness"] = face.quality.sharpness

        if self.pose_acceptable(face):
            signals["pose"] = 100.0

        # Only an explicit "no sunglasses" counts
        if face.sunglasses and face.sunglasses.value is False:
            signals["no_sunglasses"] = 100.0

        return signals

    def liveness_score(self, face: FaceDetail) -> float:
        signals = self.liveness_signals(face)
        if not signals:
            return 0.0
        return sum(signals.values()) / len(signals)

    def is_live(self, score: float) -> bool:
        return score >= self.liveness_threshold

    def is_match(self, similarity: float) -> bool:
        return similarity >= self.similarity_threshold

    def explain(self, face: FaceDetail) -> Dict[str, Any]:
        """Diagnostic summary used in liveness details"""
        return {
            "quality_acceptable": self.quality_acceptable(face),
            "pose_acceptable": self.pose_acceptable(face),
            "signals": self.liveness_signals(face),
        }
