import io
import unittest

from idec_agent.spinner import Spinner, frames_for


class _Utf8Buffer(io.StringIO):
    @property
    def encoding(self) -> str:
        return "utf-8"


class SpinnerTests(unittest.TestCase):
    def test_ascii_frames_when_stream_cannot_encode_braille(self) -> None:
        self.assertEqual("|/-\\", frames_for(io.StringIO()))
        self.assertNotEqual("|/-\\", frames_for(_Utf8Buffer()))

    def test_stop_clears_line_and_restores_prefix(self) -> None:
        out = io.StringIO()
        spinner = Spinner(prefix="assistant> ", stream=out)
        spinner.start()
        spinner.stop()
        spinner.stop()

        self.assertTrue(out.getvalue().endswith("\rassistant> "))

    def test_stop_without_start_writes_nothing(self) -> None:
        out = io.StringIO()
        Spinner(stream=out).stop()
        self.assertEqual("", out.getvalue())


if __name__ == "__main__":
    unittest.main()
