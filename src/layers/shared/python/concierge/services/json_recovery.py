"""Lenient recovery of a JSON value from free-form model output.

Models wrap JSON in markdown fences, chat around it, or break it across
lines. ``recover_json`` tries progressively looser readings of the text and
returns a tagged result instead of raising, so callers can tell "nothing
usable came back" apart from "an empty object came back".
"""

import json
import re
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\n\r\t]")
_OPEN_RE = re.compile(r"[{\[]")


@dataclass(frozen=True)
class Recovered:
    """A JSON value was found."""

    value: Any


@dataclass(frozen=True)
class Empty:
    """No JSON value could be read from the text."""

    raw: str = ""


RecoveryResult = Recovered | Empty


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _outer_slice(text: str) -> str | None:
    """Slice from the first opening bracket to the last matching closer."""
    brace = text.find("{")
    bracket = text.find("[")
    if brace != -1 and (bracket == -1 or brace < bracket):
        start, end = brace, text.rfind("}")
    elif bracket != -1:
        start, end = bracket, text.rfind("]")
    else:
        return None
    if end < start:
        return None
    return text[start : end + 1]


def _sanitized_slice(text: str) -> str | None:
    """Slice after flattening control characters, up to the last closer of any kind."""
    sanitized = _CONTROL_RE.sub(" ", text)
    match = _OPEN_RE.search(sanitized)
    end = max(sanitized.rfind("}"), sanitized.rfind("]"))
    if not match or end < match.start():
        return None
    return sanitized[match.start() : end + 1]


def recover_json(text: Any) -> RecoveryResult:
    """Read one JSON value out of model output.

    Tries, in order: the whole text with code fences removed; the span between
    the first opening bracket and its last matching closer; the same with
    newlines and tabs flattened to spaces. Never raises.

    Args:
        text: Model output. Non-string input yields ``Empty``.

    Returns:
        ``Recovered(value)`` or ``Empty(raw)``.
    """
    if not isinstance(text, str):
        return Empty("" if text is None else repr(text))

    cleaned = _strip_fences(text)
    candidates = (
        lambda: cleaned,
        lambda: _outer_slice(cleaned),
        lambda: _sanitized_slice(cleaned),
    )
    for candidate in candidates:
        snippet = candidate()
        if not snippet:
            continue
        try:
            return Recovered(json.loads(snippet))
        except (ValueError, RecursionError):
            continue

    logger.warning("JSON recovery failed, no data extracted", raw=text[:500])
    return Empty(text)


def safe_parse_json(text: Any) -> Any:
    """Like ``recover_json`` but returns ``{}`` when nothing was recovered."""
    result = recover_json(text)
    if isinstance(result, Recovered):
        return result.value
    return {}
