"""Redaction renderer: turns a detection result into the displayed image."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from ..core.config import RendererSettings
from ..core.telemetry import RedactionCounters
from ..models.detection import FACE_PARTS, DetectionResult, Gender, Person
from ..models.geometry import CanvasRect, CanvasScale
from ..utils.formatters import wire_to_detection_result
from .pixelate import pixelate
from .skeleton import CanvasKeyPoint, MaskStyle, SkeletonDrawer, mask_pixels
from .skin import AnalysisRegion, SkinAnalysis, SkinDetector

logger = logging.getLogger(__name__)

DEBUG_TEXT_COLOR = (128, 0, 128)


class RenderState(str, Enum):
    """Display state of one image.

    PENDING is shown (blurred placeholder) until detection finishes; every
    render ends in one of the three other, terminal states.
    """

    PENDING = "pending"
    NSFW = "nsfw"
    SAFE_NO_REDACTION = "safe_no_redaction"
    SAFE_PARTIAL_REDACTION = "safe_partial_redaction"


@dataclass
class PersonDecision:
    """Why one person was or was not redacted."""

    person_id: int
    gender: Gender
    skipped: bool = False
    analysis: Optional[SkinAnalysis] = None
    redacted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "personId": self.person_id,
            "gender": self.gender.value,
            "skipped": self.skipped,
            "redacted": self.redacted,
        }
        if self.analysis is not None:
            data["analysisRegion"] = self.analysis.region.value
            data["skinPixels"] = self.analysis.skin_pixels
            data["totalPixels"] = self.analysis.total_pixels
            data["skinRatio"] = self.analysis.skin_ratio
        return data


@dataclass
class RenderOutcome:
    state: RenderState
    image: np.ndarray
    decisions: List[PersonDecision] = field(default_factory=list)


class Redactor:
    """Decide per person whether to obscure the body and composite the result.

    Per-person policy:
    - persons under ``min_pose_score`` are ignored;
    - FEMALE (face matched and classified) is redacted without skin analysis;
    - MALE is skin-analyzed over a lower-body mask;
    - UNKNOWN (no face) is skin-analyzed over a full-body mask.

    A redacted person's mask area is replaced by the pixelated grayscale image.
    Once anyone is redacted, every matched face oval is restored from the
    original image.
    """

    def __init__(
        self,
        settings: Optional[RendererSettings] = None,
        counters: Optional[RedactionCounters] = None,
    ):
        self.settings = settings or RendererSettings()
        self.counters = counters
        self.skin_detector = SkinDetector.from_settings(self.settings)
        self.drawer = SkeletonDrawer(self.settings)

    def render_payload(
        self, payload: Dict[str, Any], image: np.ndarray, source_url: Optional[str] = None
    ) -> RenderOutcome:
        """Render from a wire payload (as produced by the inference host)."""
        return self.render(wire_to_detection_result(payload), image, source_url)

    def render(
        self, detection: DetectionResult, image: np.ndarray, source_url: Optional[str] = None
    ) -> RenderOutcome:
        """Render ``image`` (the displayed canvas) according to ``detection``.

        Args:
            detection: Detection result; coordinates refer to
                ``detection.image_width x detection.image_height``
            image: RGB image at display size
            source_url: Where the image came from, for telemetry

        Returns:
            RenderOutcome with the terminal state and the image to display
        """
        canvas_h, canvas_w = image.shape[:2]

        if detection.is_nsfw:
            logger.info(f"Pixelating whole NSFW image: {source_url}")
            self._record_blurred(source_url)
            return RenderOutcome(RenderState.NSFW, pixelate(image, settings=self.settings))

        if not detection.persons or detection.image_width <= 0 or detection.image_height <= 0:
            return RenderOutcome(RenderState.SAFE_NO_REDACTION, image.copy())

        scale = CanvasScale.between(
            detection.image_width, detection.image_height, canvas_w, canvas_h
        )
        output = image.copy()
        pixelated: Optional[np.ndarray] = None
        faces_to_restore: List[CanvasRect] = []
        decisions: List[PersonDecision] = []
        should_blur = False

        for person in detection.persons:
            gender = person.gender if person.has_face else Gender.UNKNOWN
            decision = PersonDecision(person_id=person.id, gender=gender)
            decisions.append(decision)

            if person.score < self.settings.min_pose_score:
                decision.skipped = True
                continue

            keypoints = self.scale_keypoints(person, scale, gender)
            style = MaskStyle.LOWER_BODY if gender == Gender.MALE else MaskStyle.FULL_BODY
            mask_canvas = self.drawer.draw_detection_mask((canvas_h, canvas_w), keypoints, style)
            mask = mask_pixels(mask_canvas)

            # A matched female face is redacted without looking at skin
            if gender != Gender.FEMALE:
                region = AnalysisRegion.LOWER_BODY if gender == Gender.MALE else AnalysisRegion.FULL
                decision.analysis = self.skin_detector.analyze(
                    image, mask, region, visualize=self.settings.debug
                )

            if decision.analysis is None or decision.analysis.has_skin:
                if pixelated is None:
                    pixelated = pixelate(image, settings=self.settings)
                output[mask] = pixelated[mask]
                decision.redacted = True
                should_blur = True

            face_rect = None
            if person.face_box_pixel is not None:
                face_rect = person.face_box_pixel.to_canvas(scale)
                faces_to_restore.append(face_rect)

            if self.settings.debug:
                self._draw_debug(output, person, gender, keypoints, face_rect, decision)

        if not should_blur:
            return RenderOutcome(RenderState.SAFE_NO_REDACTION, image.copy(), decisions)

        for face_rect in faces_to_restore:
            self.drawer.draw_oval_face_region(output, image, face_rect)

        redacted = sum(1 for d in decisions if d.redacted)
        logger.info(f"Redacted {redacted}/{len(decisions)} person(s): {source_url}")
        self._record_blurred(source_url)
        return RenderOutcome(RenderState.SAFE_PARTIAL_REDACTION, output, decisions)

    def scale_keypoints(
        self, person: Person, scale: CanvasScale, gender: Gender
    ) -> List[CanvasKeyPoint]:
        """Move a person's keypoints to canvas space and drop weak ones.

        Face parts need ``min_face_part_score``; body parts need
        ``min_part_score_male`` for males and ``min_part_score`` otherwise.
        """
        settings = self.settings
        body_threshold = (
            settings.min_part_score_male if gender == Gender.MALE else settings.min_part_score
        )
        scaled = []
        for kp in person.keypoints:
            threshold = settings.min_face_part_score if kp.body_part in FACE_PARTS else body_threshold
            if kp.score <= threshold:
                continue
            scaled.append(CanvasKeyPoint(kp.body_part, kp.coordinate.to_canvas(scale), kp.score))
        return scaled

    def _record_blurred(self, source_url: Optional[str]) -> None:
        if self.counters is not None:
            self.counters.record_blurred_image(source_url)

    def _draw_debug(
        self,
        canvas: np.ndarray,
        person: Person,
        gender: Gender,
        keypoints: List[CanvasKeyPoint],
        face_rect: Optional[CanvasRect],
        decision: PersonDecision,
    ) -> None:
        if face_rect is not None:
            confidence = person.gender_score
            self.drawer.draw_face_debug(canvas, face_rect, gender == Gender.FEMALE, confidence)

        lines = []
        if gender != Gender.UNKNOWN:
            lines.append(f"Gender: {gender.value}")
        analysis = decision.analysis
        if analysis is not None:
            threshold = self.skin_detector.threshold_for(analysis.region)
            lines.extend(
                [
                    f"Analysis Region: {analysis.region.value}",
                    f"Skin Pixels: {analysis.skin_pixels}/{analysis.total_pixels}",
                    f"Skin Ratio: {analysis.skin_ratio * 100:.1f}%",
                    f"Threshold: {threshold * 100:.0f}%",
                ]
            )
            if analysis.visualization is not None:
                _blend_rgba(canvas, analysis.visualization)

        for row, text in enumerate(lines):
            cv2.putText(
                canvas, text, (10, 125 + row * 25), cv2.FONT_HERSHEY_SIMPLEX,
                0.5, DEBUG_TEXT_COLOR, 1, cv2.LINE_AA,
            )

        self.drawer.draw_skeleton(canvas, keypoints)


def _blend_rgba(canvas: np.ndarray, overlay: np.ndarray) -> None:
    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    blended = canvas.astype(np.float32) * (1 - alpha) + overlay[..., :3].astype(np.float32) * alpha
    canvas[:] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
