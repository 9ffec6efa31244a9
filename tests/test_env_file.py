from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from bupe.env import LOG_LEVEL_ENV, TMP_DIR_ENV, log_level, read_env, staging_root


def _restore_env(name: str, previous: str | None) -> None:
    if previous is None:
        os.environ.pop(name, None)
    else:
        os.environ[name] = previous


class EnvFileTests(unittest.TestCase):
    def setUp(self) -> None:
        names = ("BUPE_SAMPLE", TMP_DIR_ENV, LOG_LEVEL_ENV)
        self._previous = {}
        for name in names:
            for key in (name, f"{name}_FILE"):
                self._previous[key] = os.environ.get(key)
                os.environ.pop(key, None)

    def tearDown(self) -> None:
        for key, value in self._previous.items():
            _restore_env(key, value)

    def test_read_env_prefers_plain_value(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            value_file = Path(tmp) / "value.txt"
            value_file.write_text("from-file", encoding="utf-8")
            os.environ["BUPE_SAMPLE"] = "from-env"
            os.environ["BUPE_SAMPLE_FILE"] = str(value_file)
            self.assertEqual(read_env("BUPE_SAMPLE"), "from-env")

    def test_read_env_supports_file_suffix(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            value_file = Path(tmp) / "value.txt"
            value_file.write_text("from-file\n", encoding="utf-8")
            os.environ["BUPE_SAMPLE_FILE"] = str(value_file)
            self.assertEqual(read_env("BUPE_SAMPLE"), "from-file")

    def test_read_env_falls_back_to_default(self) -> None:
        self.assertEqual(read_env("BUPE_SAMPLE", "fallback"), "fallback")
        os.environ["BUPE_SAMPLE_FILE"] = "/nonexistent/bupe/value.txt"
        self.assertEqual(read_env("BUPE_SAMPLE", "fallback"), "fallback")

    def test_blank_values_count_as_unset(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            value_file = Path(tmp) / "value.txt"
            value_file.write_text("  \n", encoding="utf-8")
            os.environ["BUPE_SAMPLE"] = "   "
            os.environ["BUPE_SAMPLE_FILE"] = str(value_file)
            self.assertEqual(read_env("BUPE_SAMPLE", "fallback"), "fallback")
            os.environ[LOG_LEVEL_ENV] = ""
            self.assertEqual(log_level(), "WARNING")

    def test_staging_root_can_read_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "staging"
            path_file = Path(tmp) / "tmp_dir.txt"
            path_file.write_text(str(target), encoding="utf-8")
            self.assertIsNone(staging_root())
            os.environ[f"{TMP_DIR_ENV}_FILE"] = str(path_file)
            self.assertEqual(staging_root(), str(target))

    def test_log_level_is_normalized(self) -> None:
        self.assertEqual(log_level(), "WARNING")
        os.environ[LOG_LEVEL_ENV] = " debug "
        self.assertEqual(log_level(), "DEBUG")


if __name__ == "__main__":
    unittest.main()
