import tempfile
import unittest
from pathlib import Path

from loguru import logger

from idec_agent.logging_config import redact, setup_logging


class RedactTests(unittest.TestCase):
    def test_api_keys_are_masked(self) -> None:
        text = redact("key=sk-ant-REDACTED and Bearer abcdefghijk123")
        self.assertNotIn("abcdefghijklmnop", text)
        self.assertNotIn("abcdefghijk123", text)
        self.assertIn("sk-ant***", text)

    def test_plain_text_untouched(self) -> None:
        self.assertEqual("Stream completed - 12 chars", redact("Stream completed - 12 chars"))


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        logger.remove()

    def test_file_consumer_receives_redacted_records(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "logs" / "agent.log")
            descriptions = setup_logging("DEBUG", [{"type": "file", "path": path}])
            logger.info("using sk-ant-REDACTED")
            logger.remove()
            content = Path(path).read_text(encoding="utf-8")

        self.assertEqual([f"file ({path}, DEBUG)"], descriptions)
        self.assertIn("using sk-ant***", content)
        self.assertNotIn("secretsecretsecret", content)

    def test_unknown_consumer_is_skipped(self) -> None:
        descriptions = setup_logging("INFO", [{"type": "syslog"}, {"type": "console", "level": "ERROR"}])
        self.assertEqual(["console (stderr, ERROR)"], descriptions)


if __name__ == "__main__":
    unittest.main()
