import unittest

import numpy as np

from safegaze_server.core.config import get_default_config
from safegaze_server.core.engine import InferenceEngine, ModelHandle
from safegaze_server.core.errors import InferenceError, ModelUnavailableError
from tests.helpers import SAFE_SCORES, FailingBackend, FakeBackend


class ModelHandleTestCase(unittest.TestCase):

    def test_invoke_counts_calls(self):
        handle = ModelHandle("nsfw", FakeBackend(SAFE_SCORES))
        output = handle.invoke(np.zeros((1, 1, 3)))
        handle.invoke(np.zeros((1, 1, 3)))
        np.testing.assert_allclose(output, SAFE_SCORES)
        self.assertEqual(handle.invocation_count, 2)

    def test_unloaded_handle(self):
        handle = ModelHandle("pose", None, "weights missing")
        self.assertFalse(handle.available)
        with self.assertRaises(ModelUnavailableError):
            handle.invoke(np.zeros((1, 1, 3)))
        self.assertEqual(handle.get_info()["error"], "weights missing")

    def test_backend_errors_are_wrapped(self):
        handle = ModelHandle("face", FailingBackend())
        with self.assertRaises(InferenceError) as ctx:
            handle.invoke(np.zeros((1, 1, 3)))
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)


class InferenceEngineTestCase(unittest.TestCase):

    def test_requires_every_model(self):
        with self.assertRaises(ValueError):
            InferenceEngine({"nsfw": ModelHandle("nsfw")})

    def test_from_backends_marks_omitted_unavailable(self):
        engine = InferenceEngine.from_backends(nsfw=FakeBackend(SAFE_SCORES))
        self.assertTrue(engine.nsfw.available)
        self.assertFalse(engine.gender.available)

    def test_load_failure_leaves_handle_unavailable(self):
        def loader(name, settings):
            if name == "pose":
                raise OSError("no such file")
            return FakeBackend(SAFE_SCORES)

        engine = InferenceEngine.from_config(get_default_config(), loader=loader)

        self.assertTrue(engine.nsfw.available)
        self.assertFalse(engine.pose.available)
        info = engine.get_info()
        self.assertEqual(info["pose"]["error"], "no such file")
        self.assertEqual(info["face"]["backend"], "FakeBackend")

    def test_disabled_model_is_not_loaded(self):
        config = get_default_config()
        config.models.gender.enabled = False
        loaded = []

        def loader(name, settings):
            loaded.append(name)
            return FakeBackend(SAFE_SCORES)

        engine = InferenceEngine.from_config(config, loader=loader)

        self.assertNotIn("gender", loaded)
        self.assertFalse(engine.gender.available)


if __name__ == "__main__":
    unittest.main()
