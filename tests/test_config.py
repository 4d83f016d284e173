import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from safegaze_server.core.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    get_default_config,
    load_config,
    resolve_config_path,
)


class ConfigTestCase(unittest.TestCase):

    def write_config(self, text):
        handle = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
        handle.write(text)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return Path(handle.name)

    def test_defaults(self):
        config = get_default_config()
        self.assertEqual(config.server.port, 9090)
        self.assertEqual(config.pipeline.max_image_size, 800)
        self.assertEqual(config.renderer.min_skin_ratio, 0.3)
        self.assertEqual(config.models.face.backend, "haar_cascade")

    def test_bundled_config_loads(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        self.assertTrue(config.models.pose.enabled)

    def test_partial_override(self):
        path = self.write_config(
            "pipeline:\n"
            "  invocation_timeout: 2.5\n"
            "  keypoint_thresholds:\n"
            "    left_ear: 0.4\n"
            "renderer:\n"
            "  debug: true\n"
        )
        config = load_config(path)
        self.assertEqual(config.pipeline.invocation_timeout, 2.5)
        self.assertTrue(config.renderer.debug)
        self.assertEqual(config.renderer.min_pose_score, 0.2)
        self.assertEqual(config.pipeline.keypoint_threshold("left_ear"), 0.4)
        self.assertEqual(config.pipeline.keypoint_threshold("nose"), 0.1)

    def test_empty_file_gives_defaults(self):
        config = load_config(self.write_config(""))
        self.assertEqual(config, get_default_config())

    def test_invalid_values_rejected(self):
        path = self.write_config("pipeline:\n  invocation_timeout: 0\n")
        with self.assertRaises(ValidationError):
            load_config(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(Path("/nonexistent/safegaze.yaml"))

    def test_resolve_config_path(self):
        with mock.patch.dict(os.environ, {CONFIG_ENV_VAR: "/etc/safegaze.yaml"}):
            self.assertEqual(resolve_config_path(), Path("/etc/safegaze.yaml"))
            self.assertEqual(resolve_config_path(Path("local.yaml")), Path("local.yaml"))
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_config_path(), DEFAULT_CONFIG_PATH)


if __name__ == "__main__":
    unittest.main()
