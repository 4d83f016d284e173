"""Synthetic skeleton masks drawn over detected poses.

All drawing happens on RGB canvases in canvas space. Detection masks are
stroked with ``MASK_COLOR`` without anti-aliasing so that the pixels they
cover can be recovered exactly with ``mask_pixels``.
"""

import logging
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..core.config import RendererSettings
from ..models.detection import FACE_PARTS, BodyPart
from ..models.geometry import CanvasPoint, CanvasRect

logger = logging.getLogger(__name__)

MASK_COLOR = (53, 34, 34)
STANDARD_MASK_COLOR = (173, 173, 173)
DEBUG_SKELETON_COLOR = (128, 128, 128)
DEBUG_SKELETON_ALPHA = 0.7
DEBUG_STROKE_WIDTH = 5
FACE_KEYPOINT_COLOR = (255, 0, 0)
FEMALE_LABEL_COLOR = (255, 105, 180)
MALE_LABEL_COLOR = (65, 105, 225)

Connection = Tuple[BodyPart, BodyPart]

SKELETON_CONNECTIONS: List[Connection] = [
    # Face
    (BodyPart.NOSE, BodyPart.LEFT_EYE),
    (BodyPart.NOSE, BodyPart.RIGHT_EYE),
    (BodyPart.LEFT_EYE, BodyPart.LEFT_EAR),
    (BodyPart.RIGHT_EYE, BodyPart.RIGHT_EAR),
    (BodyPart.LEFT_EYE, BodyPart.RIGHT_EYE),
    # Neck and body
    (BodyPart.NOSE, BodyPart.LEFT_SHOULDER),
    (BodyPart.NOSE, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_EAR, BodyPart.LEFT_SHOULDER),
    (BodyPart.RIGHT_EAR, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW),
    (BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST),
    (BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST),
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_HIP),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_HIP),
    (BodyPart.RIGHT_SHOULDER, BodyPart.LEFT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE),
    (BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE),
    (BodyPart.LEFT_KNEE, BodyPart.LEFT_ANKLE),
    (BodyPart.RIGHT_KNEE, BodyPart.RIGHT_ANKLE),
    (BodyPart.LEFT_KNEE, BodyPart.RIGHT_KNEE),
    (BodyPart.LEFT_ANKLE, BodyPart.RIGHT_ANKLE),
]

# Eye-to-eye and eye-to-ear lines are left out of the debug skeleton
_DEBUG_EXCLUDED = {
    frozenset((BodyPart.LEFT_EYE, BodyPart.RIGHT_EYE)),
    frozenset((BodyPart.LEFT_EYE, BodyPart.LEFT_EAR)),
    frozenset((BodyPart.RIGHT_EYE, BodyPart.RIGHT_EAR)),
}

LOWER_BODY_CONNECTIONS: List[Connection] = [
    (BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE),
    (BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE),
    (BodyPart.LEFT_KNEE, BodyPart.RIGHT_KNEE),
]

BODY_CONNECTIONS: List[Connection] = [
    # Shoulders and arms
    (BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW),
    (BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST),
    (BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST),
    # Torso sides and crosses
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_HIP),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_HIP),
    (BodyPart.RIGHT_SHOULDER, BodyPart.LEFT_HIP),
    # Hips and legs
    (BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE),
    (BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE),
    (BodyPart.LEFT_KNEE, BodyPart.RIGHT_KNEE),
    (BodyPart.LEFT_KNEE, BodyPart.LEFT_ANKLE),
    (BodyPart.RIGHT_KNEE, BodyPart.RIGHT_ANKLE),
]


class DrawMode(str, Enum):
    STANDARD = "standard"
    DETECTION = "detection"
    DEBUG = "debug"


class MaskStyle(str, Enum):
    """Shape of the detection mask.

    FULL_BODY covers the whole skeleton plus neck, eye and ear regions;
    LOWER_BODY covers hips and thighs only.
    """

    FULL_BODY = "full_body"
    LOWER_BODY = "lower_body"


class CanvasKeyPoint(NamedTuple):
    """A keypoint already scaled to the display canvas."""

    body_part: BodyPart
    point: CanvasPoint
    score: float


def mask_pixels(mask_canvas: np.ndarray) -> np.ndarray:
    """Boolean map of the pixels painted with ``MASK_COLOR``."""
    return np.all(mask_canvas[..., :3] == np.array(MASK_COLOR, dtype=np.uint8), axis=-1)


def _xy(point: CanvasPoint) -> Tuple[int, int]:
    return int(round(point.x)), int(round(point.y))


def _midpoint(a: CanvasPoint, b: CanvasPoint) -> CanvasPoint:
    return CanvasPoint(x=(a.x + b.x) / 2.0, y=(a.y + b.y) / 2.0)


class SkeletonDrawer:
    """Draws detection masks, debug skeletons and preserved face ovals."""

    def __init__(self, settings: Optional[RendererSettings] = None):
        self.settings = settings or RendererSettings()

    def calculate_stroke_width(
        self,
        canvas_width: int,
        canvas_height: int,
        mode: DrawMode = DrawMode.DETECTION,
        style: MaskStyle = MaskStyle.FULL_BODY,
        keypoints: Sequence[CanvasKeyPoint] = (),
    ) -> int:
        """Stroke width scaled to how much of the canvas the pose covers.

        Bigger (closer) subjects get proportionally thicker strokes; the
        full-body style uses the wider female multiplier.
        """
        if mode == DrawMode.DEBUG:
            return DEBUG_STROKE_WIDTH

        settings = self.settings
        valid = [kp for kp in keypoints if kp.score > 0]
        if not valid:
            multiplier = (
                settings.female_stroke_multiplier
                if style == MaskStyle.FULL_BODY
                else settings.fallback_male_stroke_multiplier
            )
            return max(2, int(round(min(canvas_width, canvas_height) * multiplier)))

        xs = [kp.point.x for kp in valid]
        ys = [kp.point.y for kp in valid]
        pose_width = max(xs) - min(xs)
        pose_height = max(ys) - min(ys)

        pose_size_ratio = max(pose_width / canvas_width, pose_height / canvas_height)
        pose_dimension = min(pose_width, pose_height)
        image_dimension = min(canvas_width, canvas_height) / 1.2
        base_size = pose_dimension * (1 - pose_size_ratio) + image_dimension * pose_size_ratio

        multiplier = (
            settings.female_stroke_multiplier
            if style == MaskStyle.FULL_BODY
            else settings.male_stroke_multiplier
        )
        return max(settings.min_stroke_width, int(round(base_size * multiplier * pose_size_ratio)))

    def draw_detection_mask(
        self,
        shape: Tuple[int, int],
        keypoints: Sequence[CanvasKeyPoint],
        style: MaskStyle = MaskStyle.FULL_BODY,
        mode: DrawMode = DrawMode.DETECTION,
    ) -> np.ndarray:
        """Draw the detection mask for one person on a blank canvas.

        Args:
            shape: (height, width) of the canvas
            keypoints: Filtered keypoints in canvas space
            style: LOWER_BODY for males, FULL_BODY otherwise
            mode: DETECTION strokes in ``MASK_COLOR``; STANDARD in gray

        Returns:
            ``H x W x 3`` uint8 canvas holding only the mask strokes
        """
        height, width = shape[:2]
        canvas = np.zeros((height, width, 3), dtype=np.uint8)
        color = MASK_COLOR if mode == DrawMode.DETECTION else STANDARD_MASK_COLOR
        stroke = self.calculate_stroke_width(width, height, mode, style, keypoints)
        points: Dict[BodyPart, CanvasKeyPoint] = {kp.body_part: kp for kp in keypoints}

        def line(a: CanvasPoint, b: CanvasPoint, thickness: int) -> None:
            cv2.line(canvas, _xy(a), _xy(b), color, thickness, lineType=cv2.LINE_8)

        if style == MaskStyle.LOWER_BODY:
            min_score = self.settings.min_part_score_male
            for start_part, end_part in LOWER_BODY_CONNECTIONS:
                start, end = points.get(start_part), points.get(end_part)
                if start and end and start.score > min_score and end.score > min_score:
                    line(start.point, end.point, stroke)
            return canvas

        for start_part, end_part in BODY_CONNECTIONS:
            start, end = points.get(start_part), points.get(end_part)
            if start and end and start.score > 0 and end.score > 0:
                line(start.point, end.point, stroke)

        self._draw_neck_and_centre(points, line, stroke)
        self._draw_head_boxes(points, line, stroke)
        return canvas

    def _draw_neck_and_centre(self, points, line, stroke: int) -> None:
        nose = points.get(BodyPart.NOSE)
        left_shoulder = points.get(BodyPart.LEFT_SHOULDER)
        right_shoulder = points.get(BodyPart.RIGHT_SHOULDER)
        if not (nose and left_shoulder and right_shoulder):
            return

        neck_left = _midpoint(nose.point, left_shoulder.point)
        neck_right = _midpoint(nose.point, right_shoulder.point)
        neck_middle = _midpoint(neck_left, neck_right)
        neck_stroke = stroke * 2

        if nose.score > 0:
            if left_shoulder.score > 0:
                line(nose.point, neck_left, neck_stroke)
            if right_shoulder.score > 0:
                line(nose.point, neck_right, neck_stroke)

        left_hip = points.get(BodyPart.LEFT_HIP)
        right_hip = points.get(BodyPart.RIGHT_HIP)
        if left_hip and right_hip and left_hip.score > 0 and right_hip.score > 0:
            line(neck_middle, _midpoint(left_hip.point, right_hip.point), neck_stroke)

    @staticmethod
    def _draw_box_above(line, left: CanvasPoint, right: CanvasPoint, rise: float, stroke: int) -> None:
        left_top = CanvasPoint(x=left.x, y=left.y - rise)
        right_top = CanvasPoint(x=right.x, y=right.y - rise)
        line(left, left_top, stroke)
        line(left_top, right_top, stroke)
        line(right_top, right, stroke)
        line(right, left, stroke)

    def _draw_head_boxes(self, points, line, stroke: int) -> None:
        eye_distance = None
        left_eye = points.get(BodyPart.LEFT_EYE)
        right_eye = points.get(BodyPart.RIGHT_EYE)
        if left_eye and right_eye:
            eye_distance = abs(left_eye.point.x - right_eye.point.x)
            self._draw_box_above(line, left_eye.point, right_eye.point, eye_distance, stroke)

        left_ear = points.get(BodyPart.LEFT_EAR)
        right_ear = points.get(BodyPart.RIGHT_EAR)
        if left_ear and right_ear:
            base = eye_distance or abs(left_ear.point.x - right_ear.point.x)
            self._draw_box_above(line, left_ear.point, right_ear.point, base * 1.5, stroke)

    def draw_skeleton(
        self,
        canvas: np.ndarray,
        keypoints: Sequence[CanvasKeyPoint],
        mode: DrawMode = DrawMode.DEBUG,
    ) -> None:
        """Overlay a translucent skeleton with red face keypoints, in place."""
        height, width = canvas.shape[:2]
        stroke = self.calculate_stroke_width(width, height, mode, MaskStyle.FULL_BODY, keypoints)
        points = {kp.body_part: kp for kp in keypoints}
        overlay = canvas.copy()

        for start_part, end_part in SKELETON_CONNECTIONS:
            if frozenset((start_part, end_part)) in _DEBUG_EXCLUDED:
                continue
            start, end = points.get(start_part), points.get(end_part)
            if start and end:
                cv2.line(overlay, _xy(start.point), _xy(end.point), DEBUG_SKELETON_COLOR, stroke, cv2.LINE_AA)

        for part in FACE_PARTS:
            kp = points.get(part)
            if kp:
                cv2.circle(overlay, _xy(kp.point), max(1, stroke // 2), FACE_KEYPOINT_COLOR, -1, cv2.LINE_AA)

        cv2.addWeighted(overlay, DEBUG_SKELETON_ALPHA, canvas, 1 - DEBUG_SKELETON_ALPHA, 0, dst=canvas)

    def draw_oval_face_region(self, canvas: np.ndarray, original: np.ndarray, face: CanvasRect) -> None:
        """Copy an elliptical face region from ``original`` back onto ``canvas``.

        The ellipse is centred on the face box with radii of the box sides
        divided by ``face_oval_divisor`` and is clipped to the box itself.
        """
        height, width = canvas.shape[:2]
        divisor = self.settings.face_oval_divisor
        center = _xy(face.center)
        axes = (int(round(face.width / divisor)), int(round(face.height / divisor)))
        if axes[0] <= 0 or axes[1] <= 0:
            return

        oval = np.zeros((height, width), dtype=np.uint8)
        cv2.ellipse(oval, center, axes, 0, 0, 360, 255, -1)

        x0, y0 = max(0, int(face.x)), max(0, int(face.y))
        x1, y1 = min(width, int(np.ceil(face.x_max))), min(height, int(np.ceil(face.y_max)))
        inside_box = np.zeros_like(oval, dtype=bool)
        inside_box[y0:y1, x0:x1] = True

        region = (oval > 0) & inside_box
        canvas[region] = original[region]

    def draw_face_debug(self, canvas: np.ndarray, face: CanvasRect, is_female: bool, confidence: float) -> None:
        """Outline a face box and label it with gender and confidence."""
        color = FEMALE_LABEL_COLOR if is_female else MALE_LABEL_COLOR
        top_left = (int(face.x), int(face.y))
        bottom_right = (int(face.x_max), int(face.y_max))
        cv2.rectangle(canvas, top_left, bottom_right, color, 3)

        label = f"{'Female' if is_female else 'Male'} ({confidence * 100:.1f}%)"
        (text_w, _), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.5, 1)
        padding = 4
        cv2.rectangle(
            canvas,
            (top_left[0], top_left[1] - 20),
            (top_left[0] + text_w + padding * 2, top_left[1]),
            color,
            -1,
        )
        cv2.putText(
            canvas,
            label,
            (top_left[0] + padding, top_left[1] - 6),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            (255, 255, 255),
            1,
            cv2.LINE_AA,
        )
