"""Convert detection results to and from the renderer wire format."""

import logging
from typing import Any, Dict, List, Optional

from ..models.detection import BodyPart, DetectionResult, Gender, KeyPoint, Person
from ..models.geometry import PixelPoint, PixelRect

logger = logging.getLogger(__name__)


def nsfw_wire_payload() -> Dict[str, Any]:
    """Payload sent instead of a detection result when the image is unsafe."""
    return {"isNSFW": True}


def format_keypoint(keypoint: KeyPoint) -> Dict[str, Any]:
    return {
        "name": keypoint.body_part.value,
        "x": keypoint.coordinate.x,
        "y": keypoint.coordinate.y,
        "score": keypoint.score,
    }


def format_face_box(box: PixelRect) -> Dict[str, float]:
    """Face box in detection-image pixels, with both corners and the size."""
    return {
        "xMin": box.x,
        "xMax": box.x_max,
        "yMin": box.y,
        "yMax": box.y_max,
        "width": box.width,
        "height": box.height,
    }


def format_person(person: Person) -> Dict[str, Any]:
    """Convert one person to its wire entry.

    ``faceBox`` is omitted for faceless persons. ``isFemale`` is true for
    FEMALE, false for MALE and null for UNKNOWN (no face, or the gender
    classification failed).
    """
    is_female: Optional[bool] = None
    if person.gender != Gender.UNKNOWN:
        is_female = person.is_female
    entry: Dict[str, Any] = {
        "id": person.id,
        "keypoints": [format_keypoint(kp) for kp in person.keypoints],
        "poseScore": person.score,
        "isFemale": is_female,
        "genderScore": person.gender_score,
    }
    if person.face_box_pixel is not None:
        entry["faceBox"] = format_face_box(person.face_box_pixel)
    return entry


def detection_result_to_wire(result: DetectionResult) -> Dict[str, Any]:
    """Convert a detection result to the payload the redaction renderer reads.

    Args:
        result: Orchestrator output

    Returns:
        dict: ``{"isNSFW": true}`` for unsafe images, otherwise image size
        and persons keyed by their index as a string
    """
    if result.is_nsfw:
        return nsfw_wire_payload()

    return {
        "imageWidth": result.image_width,
        "imageHeight": result.image_height,
        "persons": {str(index): format_person(p) for index, p in enumerate(result.persons)},
    }


def _parse_keypoints(raw_keypoints: List[Dict[str, Any]]) -> List[KeyPoint]:
    keypoints = []
    for raw in raw_keypoints or []:
        try:
            body_part = BodyPart(raw["name"])
        except (KeyError, ValueError):
            logger.debug(f"Ignoring keypoint with unknown name: {raw.get('name')!r}")
            continue
        keypoints.append(
            KeyPoint(
                body_part=body_part,
                coordinate=PixelPoint(x=float(raw["x"]), y=float(raw["y"])),
                score=min(max(float(raw.get("score", 0.0)), 0.0), 1.0),
            )
        )
    return keypoints


def _parse_person(index: int, raw: Dict[str, Any], image_width: int, image_height: int) -> Person:
    keypoints = _parse_keypoints(raw.get("keypoints", []))

    face_box_pixel: Optional[PixelRect] = None
    raw_face = raw.get("faceBox")
    if raw_face:
        face_box_pixel = PixelRect(
            x=float(raw_face["xMin"]),
            y=float(raw_face["yMin"]),
            width=float(raw_face["width"]),
            height=float(raw_face["height"]),
        )

    is_female = raw.get("isFemale")
    if face_box_pixel is None or is_female is None:
        gender = Gender.UNKNOWN
    else:
        gender = Gender.FEMALE if is_female else Gender.MALE

    face_box = None
    if face_box_pixel is not None and image_width > 0 and image_height > 0:
        face_box = face_box_pixel.to_normalized(image_width, image_height)

    return Person(
        id=int(raw.get("id", index)),
        keypoints=keypoints,
        score=float(raw.get("poseScore", 0.0)),
        pose_box=PixelRect.bounding(kp.coordinate for kp in keypoints) if keypoints else None,
        face_box=face_box,
        face_box_pixel=face_box_pixel,
        gender=gender,
        gender_score=float(raw.get("genderScore", 0.0)),
    )


def wire_to_detection_result(payload: Dict[str, Any]) -> DetectionResult:
    """Parse a wire payload back into a detection result.

    Raises:
        ValueError: If the payload is missing required fields
    """
    if payload.get("isNSFW"):
        return DetectionResult(
            image_width=int(payload.get("imageWidth", 0)),
            image_height=int(payload.get("imageHeight", 0)),
            is_nsfw=True,
        )

    try:
        image_width = int(payload["imageWidth"])
        image_height = int(payload["imageHeight"])
    except (KeyError, TypeError) as e:
        raise ValueError(f"Detection payload is missing image dimensions: {e}") from e

    raw_persons = payload.get("persons") or {}
    if isinstance(raw_persons, dict):
        entries = sorted(raw_persons.items(), key=lambda item: int(item[0]))
        raw_list = [raw for _, raw in entries]
    else:
        raw_list = list(raw_persons)

    try:
        persons = [
            _parse_person(index, raw, image_width, image_height)
            for index, raw in enumerate(raw_list)
        ]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed person entry: {e}") from e

    return DetectionResult(image_width=image_width, image_height=image_height, persons=persons)
