import threading
import unittest
from unittest import mock

import numpy as np

from safegaze_server.core.config import PipelineSettings
from safegaze_server.core.engine import InferenceEngine
from safegaze_server.core.errors import ImageFetchError
from safegaze_server.core.fetcher import ImageFetcher
from safegaze_server.core.telemetry import RedactionCounters
from safegaze_server.models.detection import Gender
from safegaze_server.pipelines.orchestrator import DetectionOrchestrator
from safegaze_server.utils.imaging import encode_png
from tests.helpers import (
    MALE_SCORES,
    NSFW_SCORES,
    SAFE_SCORES,
    BarrierBackend,
    FailingBackend,
    FakeBackend,
    SlowBackend,
    make_engine,
    no_faces,
    no_poses,
    oversized_png,
    solid_image,
    standing_pose,
)

FACE_ROW = [130, 40, 40, 40, 1.0]


class DetectionOrchestratorTestCase(unittest.TestCase):
    """Stage ordering, short-circuit and degradation of the detection pipeline."""

    def make_orchestrator(self, engine, settings=None, counters=None):
        orchestrator = DetectionOrchestrator(engine, settings, counters=counters)
        self.addCleanup(orchestrator.shutdown)
        return orchestrator

    def person_engine(self, **overrides):
        backends = {
            "nsfw": FakeBackend(SAFE_SCORES),
            "face": FakeBackend([FACE_ROW]),
            "pose": FakeBackend(np.stack([standing_pose()])),
            "gender": FakeBackend(MALE_SCORES),
        }
        backends.update(overrides)
        return make_engine(**backends)

    def test_safe_image_without_people(self):
        engine = make_engine()
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertFalse(result.is_nsfw)
        self.assertEqual(result.persons, [])
        self.assertEqual((result.image_width, result.image_height), (400, 300))
        self.assertEqual(engine.face.invocation_count, 1)
        self.assertEqual(engine.pose.invocation_count, 1)
        self.assertEqual(engine.gender.invocation_count, 0)

    def test_nsfw_short_circuits_other_models(self):
        engine = self.person_engine(nsfw=FakeBackend(NSFW_SCORES))
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertTrue(result.is_nsfw)
        self.assertEqual(result.persons, [])
        self.assertEqual(engine.nsfw.invocation_count, 1)
        self.assertEqual(engine.face.invocation_count, 0)
        self.assertEqual(engine.pose.invocation_count, 0)
        self.assertEqual(engine.gender.invocation_count, 0)

    def test_matched_person_is_gender_classified(self):
        engine = self.person_engine()
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertEqual(len(result.persons), 1)
        person = result.persons[0]
        self.assertEqual(person.face_box_pixel.x, 130)
        self.assertEqual(person.gender, Gender.MALE)
        self.assertAlmostEqual(person.gender_score, 0.8, places=5)
        self.assertEqual(engine.gender.invocation_count, 1)

    def test_faceless_person_is_not_gender_classified(self):
        engine = self.person_engine(face=no_faces())
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertEqual(result.persons[0].gender, Gender.UNKNOWN)
        self.assertEqual(engine.gender.invocation_count, 0)

    def test_one_gender_call_per_matched_person(self):
        poses = np.stack([standing_pose(), standing_pose(left=110, top=60)])
        engine = self.person_engine(pose=FakeBackend(poses))
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertEqual(len(result.persons), 2)
        self.assertEqual(engine.gender.invocation_count, 2)

    def test_tiny_image_bypasses_detection(self):
        engine = self.person_engine()
        result = self.make_orchestrator(engine).process_image(solid_image(40, 200))

        self.assertFalse(result.is_nsfw)
        self.assertEqual(result.persons, [])
        self.assertEqual(engine.nsfw.invocation_count, 0)

    def test_large_image_is_downscaled(self):
        pose_backend = no_poses()
        engine = make_engine(pose=pose_backend)
        result = self.make_orchestrator(engine).process_image(solid_image(1600, 1200))

        self.assertEqual((result.image_width, result.image_height), (800, 600))
        self.assertEqual(pose_backend.inputs[0].shape, (600, 800, 3))

    def test_missing_nsfw_model_fails_closed(self):
        engine = InferenceEngine.from_backends(
            face=FakeBackend([FACE_ROW]),
            pose=FakeBackend(np.stack([standing_pose()])),
            gender=FakeBackend(MALE_SCORES),
        )
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertTrue(result.is_nsfw)
        self.assertEqual(engine.pose.invocation_count, 0)

    def test_failing_nsfw_model_fails_closed(self):
        engine = self.person_engine(nsfw=FailingBackend())
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))
        self.assertTrue(result.is_nsfw)
        self.assertEqual(result.persons, [])

    def test_nsfw_timeout_fails_closed(self):
        engine = self.person_engine(nsfw=SlowBackend(SAFE_SCORES, delay=1.0))
        settings = PipelineSettings(invocation_timeout=0.1)
        result = self.make_orchestrator(engine, settings).process_image(solid_image(400, 300))
        self.assertTrue(result.is_nsfw)

    def test_face_failure_leaves_pose_only_persons(self):
        engine = self.person_engine(face=FailingBackend())
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertFalse(result.is_nsfw)
        self.assertEqual(len(result.persons), 1)
        self.assertFalse(result.persons[0].has_face)

    def test_pose_failure_gives_no_persons(self):
        engine = self.person_engine(pose=FailingBackend())
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertFalse(result.is_nsfw)
        self.assertEqual(result.persons, [])
        self.assertEqual(engine.face.invocation_count, 1)

    def test_gender_failure_keeps_unknown(self):
        engine = self.person_engine(gender=FailingBackend())
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        person = result.persons[0]
        self.assertTrue(person.has_face)
        self.assertEqual(person.gender, Gender.UNKNOWN)

    def test_slow_face_detector_is_skipped(self):
        engine = self.person_engine(face=SlowBackend([FACE_ROW], delay=1.0))
        settings = PipelineSettings(invocation_timeout=0.1)
        result = self.make_orchestrator(engine, settings).process_image(solid_image(400, 300))

        self.assertEqual(len(result.persons), 1)
        self.assertFalse(result.persons[0].has_face)

    def test_face_and_pose_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)
        engine = self.person_engine(
            face=BarrierBackend([FACE_ROW], barrier),
            pose=BarrierBackend(np.stack([standing_pose()]), barrier),
        )
        result = self.make_orchestrator(engine).process_image(solid_image(400, 300))

        self.assertFalse(barrier.broken)
        self.assertTrue(result.persons[0].has_face)

    def test_idempotent(self):
        engine = self.person_engine()
        orchestrator = self.make_orchestrator(engine)
        raw_bytes = encode_png(solid_image(400, 300))

        first = orchestrator.process_bytes(raw_bytes)
        second = orchestrator.process_bytes(raw_bytes)
        self.assertEqual(first, second)

    def test_undecodable_bytes_fail_closed(self):
        engine = self.person_engine()
        result = self.make_orchestrator(engine).process_bytes(b"not an image")

        self.assertTrue(result.is_nsfw)
        self.assertEqual(engine.nsfw.invocation_count, 0)

    def test_oversized_image_fails_closed(self):
        engine = self.person_engine()
        result = self.make_orchestrator(engine).process_bytes(oversized_png())

        self.assertTrue(result.is_nsfw)
        self.assertEqual(engine.nsfw.invocation_count, 0)

    def test_download_failure_fails_closed(self):
        fetcher = mock.Mock(spec=ImageFetcher)
        fetcher.fetch.side_effect = ImageFetchError("connection refused")
        engine = self.person_engine()
        result = self.make_orchestrator(engine).process_url("https://example.com/a.jpg", fetcher)

        self.assertTrue(result.is_nsfw)
        self.assertEqual(engine.nsfw.invocation_count, 0)

    def test_process_url(self):
        fetcher = mock.Mock(spec=ImageFetcher)
        fetcher.fetch.return_value = encode_png(solid_image(400, 300))
        result = self.make_orchestrator(make_engine()).process_url("https://example.com/a.png", fetcher)

        fetcher.fetch.assert_called_once_with("https://example.com/a.png")
        self.assertFalse(result.is_nsfw)

    def test_nsfw_source_domain_is_recorded(self):
        counters = RedactionCounters()
        engine = make_engine(nsfw=FakeBackend(NSFW_SCORES))
        orchestrator = self.make_orchestrator(engine, counters=counters)

        orchestrator.process_image(solid_image(400, 300), source_url="https://bad.example.com/1.jpg")
        orchestrator.process_image(solid_image(400, 300), source_url="https://bad.example.com/2.jpg")
        self.assertEqual(counters.harmful_sites, 1)


if __name__ == "__main__":
    unittest.main()
