import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

# Anthropic, OpenAI, Groq and OpenRouter key shapes, plus bearer headers.
_SECRET_PATTERN = re.compile(r"(sk-ant-[\w-]{8,}|sk-or-[\w-]{8,}|sk-[\w-]{16,}|gsk_\w{16,}|Bearer\s+[\w.\-]{8,})")

# The REPL owns stdout; console logs go to stderr and stay short.
_CONSOLE_FORMAT = "<level>{level:<8}</level> | <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"


def redact(text: str) -> str:
    return _SECRET_PATTERN.sub(lambda m: m.group(0)[:6] + "***", text)


def _redact_record(record: dict) -> None:
    record["message"] = redact(record["message"])


@dataclass
class ConsoleLogConsumer:
    def register(self, level: str) -> None:
        logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)

    def describe(self, level: str) -> str:
        return f"console (stderr, {level})"


@dataclass
class FileLogConsumer:
    path: str = "idec-agent.log"
    rotation: str = "10 MB"
    retention: int = 3

    def register(self, level: str) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(self.path, level=level, format=_FILE_FORMAT, rotation=self.rotation, retention=self.retention)

    def describe(self, level: str) -> str:
        return f"file ({self.path}, {level})"


_CONSUMER_TYPES: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
}

# Stream chatter stays out of the terminal; the file keeps the full trace.
_DEFAULT_CONSUMERS = [
    {"type": "console", "level": "WARNING"},
    {"type": "file"},
]


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Replace all sinks with the configured consumers; returns their descriptions.

    Every record is passed through API-key redaction before any sink sees it.
    """
    logger.remove()
    logger.configure(patcher=_redact_record)

    descriptions: list[str] = []
    for config in consumers if consumers is not None else _DEFAULT_CONSUMERS:
        sink_type = config.get("type", "")
        cls = _CONSUMER_TYPES.get(sink_type)
        if cls is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue
        sink_level = config.get("level", level)
        consumer = cls(**{k: v for k, v in config.items() if k not in ("type", "level")})
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))
    return descriptions
