"""Detection orchestrator: drives one image through the whole pipeline."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional, TypeVar

import numpy as np

from ..core.config import PipelineSettings, SafegazeConfig
from ..core.engine import InferenceEngine
from ..core.errors import (
    ImageDecodeError,
    ImageFetchError,
    InferenceTimeoutError,
    SafegazeError,
)
from ..core.fetcher import ImageFetcher
from ..core.telemetry import RedactionCounters
from ..models.detection import DetectionResult, FaceDetection, Person
from ..utils.imaging import crop, decode_image, resize_to_fit
from .face import FaceDetector
from .gender import GenderClassifier, GenderPrediction
from .matcher import PersonMatcher
from .nsfw import NsfwClassifier
from .pose import PoseEstimator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DetectionOrchestrator:
    """Run NSFW -> (face || pose) -> matching -> gender for one image.

    Stages and their barriers:
    1. Downscale to ``max_image_size``; tiny images skip detection (safe).
    2. NSFW classifier. Unsafe short-circuits: no other model runs and the
       result carries no persons. A missing or failing classifier fails closed.
    3. Face detector and pose estimator run concurrently; both are joined
       before matching. Either one failing degrades to an empty list.
    4. Person matcher attaches faces to poses.
    5. One gender task per matched face, all joined before returning. A
       failed classification leaves the person's gender UNKNOWN.

    Model calls run on a bounded thread pool and are awaited with
    ``invocation_timeout``; a timed-out call counts as a failed call.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        settings: Optional[PipelineSettings] = None,
        nsfw_input_size: int = 224,
        gender_input_size: int = 224,
        counters: Optional[RedactionCounters] = None,
    ):
        self.engine = engine
        self.settings = settings or PipelineSettings()
        self.counters = counters

        self.nsfw_classifier = NsfwClassifier(engine.nsfw, nsfw_input_size)
        self.face_detector = FaceDetector(engine.face)
        self.pose_estimator = PoseEstimator(engine.pose, self.settings.keypoint_threshold)
        self.gender_classifier = GenderClassifier(engine.gender, gender_input_size)
        self.matcher = PersonMatcher()

        self.executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="safegaze-infer"
        )

    @classmethod
    def from_config(
        cls,
        engine: InferenceEngine,
        config: SafegazeConfig,
        counters: Optional[RedactionCounters] = None,
    ) -> "DetectionOrchestrator":
        return cls(
            engine,
            config.pipeline,
            nsfw_input_size=config.models.nsfw.input_size,
            gender_input_size=config.models.gender.input_size,
            counters=counters,
        )

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_url(self, url: str, fetcher: ImageFetcher) -> DetectionResult:
        """Download ``url`` and process it. Download failures fail closed."""
        try:
            raw_bytes = fetcher.fetch(url)
        except ImageFetchError as e:
            logger.warning(f"Treating image as unsafe, download failed: {e}")
            return self._fail_closed()
        return self.process_bytes(raw_bytes, source_url=url)

    def process_bytes(self, raw_bytes: bytes, source_url: Optional[str] = None) -> DetectionResult:
        """Decode and process raw image bytes. Decode failures fail closed."""
        try:
            image = decode_image(raw_bytes)
        except ImageDecodeError as e:
            logger.warning(f"Treating image as unsafe, decode failed ({source_url}): {e}")
            return self._fail_closed()
        return self.process_image(image, raw_bytes=raw_bytes, source_url=source_url)

    def process_image(
        self,
        image: np.ndarray,
        raw_bytes: Optional[bytes] = None,
        source_url: Optional[str] = None,
    ) -> DetectionResult:
        """Run the full pipeline on a decoded RGB image.

        Args:
            image: ``H x W x 3`` uint8 RGB array
            raw_bytes: Encoded bytes the image came from (unused by the models)
            source_url: Where the image came from, for logs and telemetry

        Returns:
            DetectionResult whose coordinates refer to the working image size
        """
        start = time.perf_counter()
        img_h, img_w = image.shape[:2]
        min_size = self.settings.min_image_size

        if img_w < min_size or img_h < min_size:
            logger.debug(f"Skipping {img_w}x{img_h} image below {min_size}px: {source_url}")
            return DetectionResult(image_width=img_w, image_height=img_h)

        max_size = self.settings.max_image_size
        working, ratio = resize_to_fit(image, max_size, max_size)
        work_h, work_w = working.shape[:2]
        if ratio != 1.0:
            logger.debug(f"Resized {img_w}x{img_h} -> {work_w}x{work_h}")

        # 1. NSFW gate
        prediction = self._await(
            self._submit(self.nsfw_classifier.detect, working), "nsfw", default=None
        )
        if prediction is None:
            logger.warning(f"NSFW classification unavailable, failing closed: {source_url}")
            return self._fail_closed(work_w, work_h)
        if not prediction.is_safe():
            logger.info(
                f"NSFW image (unsafe={prediction.unsafe_score:.3f}): {source_url}"
            )
            if self.counters is not None:
                self.counters.record_harmful_site(source_url)
            return self._fail_closed(work_w, work_h)

        # 2. Faces and poses in parallel, joined before matching
        face_future = self._submit(self.face_detector.detect, working)
        pose_future = self._submit(self.pose_estimator.detect, working)
        faces: List[FaceDetection] = self._await(face_future, "face", default=[])
        persons: List[Person] = self._await(pose_future, "pose", default=[])

        # 3. Matching
        persons = self.matcher.match(persons, faces, work_w, work_h)

        # 4. Gender per matched face, joined before returning
        self._classify_genders(working, persons)

        elapsed = time.perf_counter() - start
        logger.info(
            f"Processed {work_w}x{work_h} image: {len(faces)} face(s), "
            f"{len(persons)} person(s) in {elapsed:.3f}s"
        )
        return DetectionResult(image_width=work_w, image_height=work_h, persons=persons)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _classify_genders(self, image: np.ndarray, persons: List[Person]) -> None:
        futures: Dict[int, Future] = {}
        for index, person in enumerate(persons):
            if person.face_box_pixel is None:
                continue
            face_crop = crop(image, person.face_box_pixel)
            futures[index] = self._submit(self.gender_classifier.detect, face_crop)

        for index, future in futures.items():
            prediction: Optional[GenderPrediction] = self._await(future, "gender", default=None)
            if prediction is None:
                continue
            persons[index].gender = prediction.gender
            persons[index].gender_score = prediction.score

    def _submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        return self.executor.submit(fn, *args)

    def _await(self, future: "Future[T]", stage: str, default: Any) -> Any:
        """Result of one model call, or ``default`` if it failed or timed out."""
        timeout = self.settings.invocation_timeout
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            error = InferenceTimeoutError(f"{stage} exceeded {timeout}s")
            logger.error(f"Skipping {stage} detector: {error}")
        except SafegazeError as e:
            logger.warning(f"Skipping {stage} detector: {e}")
        except Exception as e:
            logger.error(f"Unexpected {stage} detector error: {e}", exc_info=True)
        return default

    @staticmethod
    def _fail_closed(width: int = 0, height: int = 0) -> DetectionResult:
        return DetectionResult(image_width=width, image_height=height, is_nsfw=True)

    def get_info(self) -> Dict[str, Any]:
        return {
            "detectors": [
                self.nsfw_classifier.get_info(),
                self.face_detector.get_info(),
                self.pose_estimator.get_info(),
                self.gender_classifier.get_info(),
            ],
            "config": {
                "max_image_size": self.settings.max_image_size,
                "min_image_size": self.settings.min_image_size,
                "max_workers": self.settings.max_workers,
                "invocation_timeout": self.settings.invocation_timeout,
            },
        }
