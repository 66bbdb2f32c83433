import itertools
import sys
import threading
from typing import TextIO

_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
_ASCII_FRAMES = "|/-\\"


def frames_for(stream: TextIO) -> str:
    """Braille frames when the stream can encode them, ASCII otherwise."""
    encoding = getattr(stream, "encoding", None) or "ascii"
    try:
        _FRAMES.encode(encoding)
    except (UnicodeEncodeError, LookupError):
        return _ASCII_FRAMES
    return _FRAMES


class Spinner:
    """Status line animated on a worker thread until the first reply chunk arrives."""

    def __init__(self, prefix: str = "", label: str = " Thinking...", stream: TextIO | None = None):
        self._prefix = prefix
        self._label = label
        self._stream = stream or sys.stdout
        self._frames = frames_for(self._stream)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="spinner", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None or self._stop.is_set():
            return
        self._stop.set()
        self._thread.join()
        width = 1 + len(self._label)
        self._write("\r" + self._prefix + " " * width + "\r" + self._prefix)

    def _write(self, text: str) -> None:
        try:
            self._stream.write(text)
            self._stream.flush()
        except OSError:
            # Detached terminal: stop animating, the reply still prints.
            self._stop.set()

    def _run(self) -> None:
        for frame in itertools.cycle(self._frames):
            if self._stop.is_set():
                return
            self._write(f"\r{self._prefix}{frame}{self._label}")
            self._stop.wait(0.08)
