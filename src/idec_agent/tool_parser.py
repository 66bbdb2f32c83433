"""Best-effort extraction of a tool directive from free-form model text.

Wire grammar (the one place to change it)::

    <tool>NAME</tool>
    <params>{"json": "object"}</params>

Parsing never raises. Anything that does not yield a JSON object is treated
as ordinary prose.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

_DIRECTIVE = re.compile(r"<tool>\s*([^<]+?)\s*</tool>\s*<params>\s*([\s\S]*?)\s*</params>")
_BACKTICK_STRING = re.compile(r"`([\s\S]*?)`")
_NEWLINE_BEFORE_TOKEN = re.compile(r"\n(?=\s*[\"{}\[\]:,])")
_NEWLINE_AFTER_TOKEN = re.compile(r"(?<=[\"{}\[\]:,])\n")


@dataclass(frozen=True)
class ToolInvocation:
    name: str
    params: dict[str, Any] = field(default_factory=dict)
    span: str = ""


def _backtick_to_json(match: re.Match) -> str:
    return json.dumps(match.group(1))


def _repair(raw: str) -> str:
    fixed = raw
    if "`" in fixed:
        fixed = _BACKTICK_STRING.sub(_backtick_to_json, fixed)
    fixed = _NEWLINE_BEFORE_TOKEN.sub(" ", fixed)
    fixed = _NEWLINE_AFTER_TOKEN.sub(" ", fixed)
    return fixed


def _load_params(raw: str) -> dict[str, Any] | None:
    for candidate in (raw, _repair(raw)):
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed
        return None
    return None


def parse_tool_call(text: str) -> ToolInvocation | None:
    """Return the first tool directive in ``text``, or None.

    Only the first directive counts; later ones stay in the text for the
    reader but are never executed.
    """
    if not text or "<tool>" not in text:
        return None

    match = _DIRECTIVE.search(text)
    if match is None:
        if "</params>" not in text:
            logger.debug("Incomplete tool directive; treating as prose")
        return None

    name = match.group(1).strip()
    params = _load_params(match.group(2).strip())
    if params is None:
        logger.debug(f"Unparseable params for tool {name!r}: {match.group(2)[:200]!r}")
        return None

    logger.debug(f"Found tool call: {name}")
    return ToolInvocation(name=name, params=params, span=match.group(0))


def strip_directive(text: str, invocation: ToolInvocation) -> str:
    """Remove the executed directive from text shown to the user."""
    if not invocation.span:
        return text
    return text.replace(invocation.span, "", 1).strip()


_ACTION_VERB = r"(?:writ|updat|creat|modif|edit|read|list|search)"
_INTENT = r"(?:let me|i'll|let's|i will|going to)"
_ANNOUNCED_ACTION = [
    re.compile(rf"{_INTENT}\s+(?:\w+\s+)*?(?:to\s+)?{_ACTION_VERB}", re.IGNORECASE),
    re.compile(rf"proceed(?:ing)?\s+(?:with|to)\s+{_ACTION_VERB}", re.IGNORECASE),
]
# Only checked against the closing part of the response.
_ANNOUNCED_ACTION_TAIL = [
    re.compile(r"\bi(?:'ll| will) (?:now )?(?:make|do|perform|execute|apply|implement)", re.IGNORECASE),
    re.compile(r"\blet(?:'s| me) (?:now )?(?:make|do|perform|execute|apply|implement)", re.IGNORECASE),
    re.compile(r"proceeding (?:to|with)", re.IGNORECASE),
    re.compile(r"(?:update|modify|change|edit|write to) (?:the )?(?:readme|file|code)", re.IGNORECASE),
]
_FILE_REFERENCE = re.compile(r"(?:readme|\.md|\.js|\.json|\.ts|\.py|\.txt|file|code)", re.IGNORECASE)
_TAIL_CHARS = 300


def describes_pending_action(text: str) -> bool:
    """True when prose announces a file action that no directive carried out."""
    if not text or not _FILE_REFERENCE.search(text):
        return False
    if any(p.search(text) for p in _ANNOUNCED_ACTION):
        return True
    tail = text[-_TAIL_CHARS:]
    return any(p.search(tail) for p in _ANNOUNCED_ACTION_TAIL)
