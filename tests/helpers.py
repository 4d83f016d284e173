"""Fake model backends and fixtures shared by the test modules."""

import struct
import threading
import time
import zlib

import numpy as np

from safegaze_server.core.engine import InferenceEngine
from safegaze_server.models.detection import BodyPart, Gender, KeyPoint, Person
from safegaze_server.models.geometry import BoxSpace, PixelPoint, PixelRect

SAFE_SCORES = [0.9, 0.02, 0.9, 0.01, 0.01]
NSFW_SCORES = [0.0, 0.5, 0.0, 0.4, 0.1]
FEMALE_SCORES = [0.9, 0.1]
MALE_SCORES = [0.2, 0.8]

SKIN_COLOR = (200, 120, 90)
NON_SKIN_COLOR = (0, 0, 255)

# Relative (x, y) of each keypoint inside a standing figure's bounding box
_STANDING_LAYOUT = {
    BodyPart.NOSE: (0.5, 0.05),
    BodyPart.LEFT_EYE: (0.4, 0.03),
    BodyPart.RIGHT_EYE: (0.6, 0.03),
    BodyPart.LEFT_EAR: (0.3, 0.05),
    BodyPart.RIGHT_EAR: (0.7, 0.05),
    BodyPart.LEFT_SHOULDER: (0.1, 0.2),
    BodyPart.RIGHT_SHOULDER: (0.9, 0.2),
    BodyPart.LEFT_ELBOW: (0.0, 0.35),
    BodyPart.RIGHT_ELBOW: (1.0, 0.35),
    BodyPart.LEFT_WRIST: (0.0, 0.5),
    BodyPart.RIGHT_WRIST: (1.0, 0.5),
    BodyPart.LEFT_HIP: (0.25, 0.55),
    BodyPart.RIGHT_HIP: (0.75, 0.55),
    BodyPart.LEFT_KNEE: (0.25, 0.78),
    BodyPart.RIGHT_KNEE: (0.75, 0.78),
    BodyPart.LEFT_ANKLE: (0.25, 1.0),
    BodyPart.RIGHT_ANKLE: (0.75, 1.0),
}


def standing_pose(left=100.0, top=50.0, width=100.0, height=200.0, confidence=0.9):
    """Raw ``(17, 3)`` pose rows for an upright figure."""
    pose = np.zeros((len(BodyPart), 3), dtype=np.float32)
    for part, (rx, ry) in _STANDING_LAYOUT.items():
        pose[part.position] = (left + rx * width, top + ry * height, confidence)
    return pose


def make_person(pose=None, gender=Gender.UNKNOWN, face_box=None, gender_score=0.9, person_id=0):
    """Build a Person directly from raw pose rows."""
    if pose is None:
        pose = standing_pose()
    keypoints = [
        KeyPoint(
            body_part=part,
            coordinate=PixelPoint(x=float(pose[part.position][0]), y=float(pose[part.position][1])),
            score=float(pose[part.position][2]),
        )
        for part in BodyPart
    ]
    return Person(
        id=person_id,
        keypoints=keypoints,
        score=sum(kp.score for kp in keypoints) / len(keypoints),
        pose_box=PixelRect.bounding(kp.coordinate for kp in keypoints),
        face_box_pixel=face_box,
        gender=gender,
        gender_score=gender_score if gender != Gender.UNKNOWN else 0.0,
    )


def solid_image(width, height, color=NON_SKIN_COLOR):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


class FakeBackend:
    """Returns a fixed output and remembers every input it saw."""

    def __init__(self, output, box_space=BoxSpace.PIXEL):
        self.output = np.asarray(output, dtype=np.float32)
        self.box_space = box_space
        self.inputs = []

    @property
    def calls(self):
        return len(self.inputs)

    def invoke(self, tensor):
        self.inputs.append(tensor)
        return self.output


class FailingBackend:
    def __init__(self, error=RuntimeError("interpreter crashed")):
        self.error = error
        self.calls = 0

    def invoke(self, tensor):
        self.calls += 1
        raise self.error


class SlowBackend(FakeBackend):
    """Sleeps before answering."""

    def __init__(self, output, delay, box_space=BoxSpace.PIXEL):
        super().__init__(output, box_space)
        self.delay = delay

    def invoke(self, tensor):
        time.sleep(self.delay)
        return super().invoke(tensor)


class BarrierBackend(FakeBackend):
    """Blocks until ``parties`` backends sharing the barrier are running."""

    def __init__(self, output, barrier: threading.Barrier, box_space=BoxSpace.PIXEL):
        super().__init__(output, box_space)
        self.barrier = barrier

    def invoke(self, tensor):
        self.barrier.wait()
        return super().invoke(tensor)


def no_faces():
    return FakeBackend(np.zeros((0, 5)))


def no_poses():
    return FakeBackend(np.zeros((0, len(BodyPart), 3)))


def make_engine(nsfw=None, face=None, pose=None, gender=None):
    """Engine with fake backends; defaults to a safe image with nobody in it."""
    return InferenceEngine.from_backends(
        nsfw=nsfw if nsfw is not None else FakeBackend(SAFE_SCORES),
        face=face if face is not None else no_faces(),
        pose=pose if pose is not None else no_poses(),
        gender=gender if gender is not None else FakeBackend(FEMALE_SCORES),
    )


def oversized_png(width=20000, height=20000):
    """PNG signature plus an IHDR chunk declaring a huge image; no pixel data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    chunk = b"IHDR" + ihdr
    return (
        b"\x89PNG\r\n\x1a\n"
        + struct.pack(">I", len(ihdr))
        + chunk
        + struct.pack(">I", zlib.crc32(chunk) & 0xFFFFFFFF)
    )
