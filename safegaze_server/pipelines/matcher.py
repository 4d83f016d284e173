"""Associate pose detections with face detections.

Matching is greedy and per pose: each pose independently takes the closest
eligible face. A face is eligible when the distance between its center and
the pose box center is at most the pose box's larger side. The match score
is ``1 - distance / max_side``; the highest score wins and ties keep the
earlier face.

No global assignment is made, so one face can be claimed by several poses in
the same image. Poses with no eligible face stay faceless.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..models.detection import FaceDetection, Person
from ..models.geometry import PixelRect

logger = logging.getLogger(__name__)


def best_face_for(
    pose_box: PixelRect, face_boxes: Sequence[PixelRect]
) -> Optional[Tuple[int, float]]:
    """Index and score of the best eligible face for one pose box.

    Both the pose box and the face boxes must be in pixel space.

    Returns:
        (face_index, score) or None when no face is within range
    """
    if not isinstance(pose_box, PixelRect):
        raise TypeError(f"Pose box must be a PixelRect, got {type(pose_box).__name__}")

    pose_center = pose_box.center
    max_allowed = pose_box.max_side

    best: Optional[Tuple[int, float]] = None
    for index, face_box in enumerate(face_boxes):
        distance = pose_center.distance_to(face_box.center)
        if distance > max_allowed:
            continue
        score = 1.0 - distance / max_allowed if max_allowed > 0 else 1.0
        if best is None or score > best[1]:
            best = (index, score)
    return best


class PersonMatcher:
    """Attach at most one face to each detected pose."""

    def match(
        self,
        persons: List[Person],
        faces: Sequence[FaceDetection],
        image_width: int,
        image_height: int,
    ) -> List[Person]:
        """Match faces to poses in place.

        Face boxes are first brought into the pixel space of the
        ``image_width x image_height`` detection image, whatever space their
        detector emitted.

        Args:
            persons: Persons from the pose estimator (pixel space)
            faces: Face detections in their native spaces
            image_width: Detection image width in pixels
            image_height: Detection image height in pixels

        Returns:
            The same persons, with ``face_box``/``face_box_pixel`` set where matched
        """
        face_boxes = [face.to_pixel(image_width, image_height) for face in faces]

        for person in persons:
            person.face_box = None
            person.face_box_pixel = None
            if person.pose_box is None or not face_boxes:
                continue

            match = best_face_for(person.pose_box, face_boxes)
            if match is None:
                logger.debug(f"Person {person.id}: no face within range")
                continue

            index, score = match
            pixel_box = face_boxes[index]
            person.face_box_pixel = pixel_box
            person.face_box = pixel_box.to_normalized(image_width, image_height)
            logger.debug(f"Person {person.id}: matched face {index} (score={score:.3f})")

        return persons
