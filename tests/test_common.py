import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from flora_vision.common import DEFAULT_DESCRIPTION, Config, Logger


class ConfigTests(unittest.TestCase):
    def test_environment_overrides_defaults(self) -> None:
        env = {
            "GEMINI_API_KEY": "secret",
            "DIAGNOSIS_MODEL": "gemini-1.5-pro",
            "DIAGNOSIS_TIMEOUT": "15",
            "CAMERA_INDEX": "2",
            "RESOLUTION": "640,480",
        }
        with mock.patch.dict(os.environ, env):
            cfg = Config()

        self.assertEqual(cfg.diagnosis.api_key, "secret")
        self.assertEqual(cfg.diagnosis.model, "gemini-1.5-pro")
        self.assertEqual(cfg.diagnosis.timeout, 15)
        self.assertEqual(cfg.camera.camera_index, 2)
        self.assertEqual(cfg.camera.resolution, (640, 480))

    def test_defaults(self) -> None:
        keys = ("DIAGNOSIS_BASE_URL", "DIAGNOSIS_DESCRIPTION", "DIAGNOSIS_LANGUAGE", "RESOLUTION")
        with mock.patch.dict(os.environ, {}):
            for key in keys:
                os.environ.pop(key, None)
            cfg = Config()

        self.assertTrue(cfg.diagnosis.base_url.startswith("https://generativelanguage.googleapis.com"))
        self.assertEqual(cfg.diagnosis.language, "Bahasa Indonesia")
        self.assertEqual(cfg.camera.resolution, (1280, 720))
        self.assertEqual(cfg.camera.image_format, "png")
        self.assertEqual(cfg.description, DEFAULT_DESCRIPTION)


class LoggerTests(unittest.TestCase):
    def test_log_appends_json_line(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_dir = Path(tmp) / "logs"
            logger = Logger(log_dir)

            logger.log("acquisition", "info", "initial -> submitting", attempt=3)

            files = list(log_dir.glob("*.log"))
            self.assertEqual(len(files), 1)
            entry = json.loads(files[0].read_text(encoding="utf-8").strip())
            self.assertEqual(entry["module"], "acquisition")
            self.assertEqual(entry["message"], "initial -> submitting")
            self.assertEqual(entry["attempt"], 3)

    def test_console_only_without_log_dir(self) -> None:
        with mock.patch("builtins.print") as fake_print:
            Logger(None).log("camera", "info", "摄像头已释放")
        fake_print.assert_called_once()


if __name__ == "__main__":
    unittest.main()
