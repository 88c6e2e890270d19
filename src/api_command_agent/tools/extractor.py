"""Tool-call extraction from free-form model output.

A tool call is a marker followed by a JSON object, written in one of these
forms::

    [TOOL:createEndpoint]{"endpoint": "/ping", ...}]
    [TOOL:createEndpoint]{"endpoint": "/ping", ...}
    TOOL:createEndpoint{"endpoint": "/ping", ...}

Strategies are tried in a fixed order, most specific first, and the first
one that yields a JSON object wins. Extraction never raises: a miss returns
None and the text is treated as prose.
"""

import json
import logging
import re
from collections.abc import Callable, Iterator

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_NAME = r"([A-Za-z_][\w.-]*)"
_BRACKETED_NOISY_RE = re.compile(r"\[TOOL:" + _NAME + r"\]\s*(\{[\s\S]*\})\s*\]")
_BRACKETED_RE = re.compile(r"\[TOOL:" + _NAME + r"\]\s*(\{[\s\S]*\})")
_UNBRACKETED_RE = re.compile(r"TOOL:" + _NAME + r"\s*(\{[\s\S]*\})")
_LOOSE_MARKER_RE = re.compile(r"\btool[\"']?\s*[:=]\s*[\"']?" + _NAME, re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

# Trailing text that may still grow into a marker: "t", "[TO", "Tool: ", ...
_MARKER_TAIL_RE = re.compile(
    r"(?<!\w)t(?:o(?:o(?:l[\"']?\s*(?:[:=]\s*[\"']?)?)?)?)?\Z", re.IGNORECASE
)


class ToolInvocation(BaseModel):
    """A complete tool call recovered from text."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    parameters: dict


Strategy = Callable[[str], ToolInvocation | None]


def sanitize_json(text: str) -> str:
    """Remove trailing commas before a closing brace or bracket."""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def find_marker(text: str) -> int:
    """Return the index where a tool marker starts, or -1.

    Recognizes the exact ``TOOL:`` marker and the looser ``tool: name`` form
    the fallback strategy accepts, so a caller holding text back from this
    index never forwards anything extraction could later claim.
    """
    candidates = []
    exact = text.find("TOOL:")
    if exact != -1:
        candidates.append(exact)
    loose = _LOOSE_MARKER_RE.search(text)
    if loose is not None:
        candidates.append(loose.start())
    if not candidates:
        return -1
    index = min(candidates)
    if index > 0 and text[index - 1] == "[":
        return index - 1
    return index


def partial_marker_length(text: str) -> int:
    """Length of a trailing prefix of a tool marker, e.g. ``[TO`` -> 3."""
    if text.endswith("["):
        return 1
    match = _MARKER_TAIL_RE.search(text)
    if match is None:
        return 0
    start = match.start()
    if start > 0 and text[start - 1] == "[":
        start -= 1
    return len(text) - start


def looks_like_tool_call(text: str) -> bool:
    return find_marker(text) != -1


def extract_tool_call(text: str) -> ToolInvocation | None:
    """Return the first tool call found in ``text``, or None."""
    for strategy in STRATEGIES:
        invocation = strategy(text)
        if invocation is not None:
            logger.debug("Extracted tool call %s via %s", invocation.tool_name, strategy.__name__)
            return invocation
    return None


def _bracketed_with_noise(text: str) -> ToolInvocation | None:
    return _from_match(_BRACKETED_NOISY_RE.search(text))


def _bracketed(text: str) -> ToolInvocation | None:
    return _from_match(_BRACKETED_RE.search(text))


def _unbracketed(text: str) -> ToolInvocation | None:
    return _from_match(_UNBRACKETED_RE.search(text))


def _outermost_braces(text: str) -> ToolInvocation | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    markers = list(_LOOSE_MARKER_RE.finditer(text, 0, start))
    if not markers:
        return None
    return _build(markers[-1].group(1), text[start:end + 1])


STRATEGIES: list[Strategy] = [
    _bracketed_with_noise,
    _bracketed,
    _unbracketed,
    _outermost_braces,
]


def _from_match(match: re.Match | None) -> ToolInvocation | None:
    if match is None:
        return None
    name, blob = match.group(1), match.group(2)
    invocation = _build(name, blob)
    if invocation is None:
        balanced = _balanced_prefix(blob)
        if balanced and balanced != blob:
            invocation = _build(name, balanced)
    return invocation


def _build(name: str, blob: str) -> ToolInvocation | None:
    blob = blob.strip()
    params = _parse_object(blob)
    if params is None:
        trimmed = _trim_trailing_noise(blob)
        if trimmed != blob:
            params = _parse_object(trimmed)
    if params is None:
        return None
    return ToolInvocation(tool_name=name, parameters=params)


def _parse_object(blob: str) -> dict | None:
    for candidate in (blob, sanitize_json(blob)):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
        return None
    return None


def _trim_trailing_noise(blob: str) -> str:
    """Strip stray closing brackets and unbalanced trailing braces."""
    blob = blob.rstrip("]").rstrip()
    depth = sum(1 if ch == "{" else -1 for _, ch in _structural_braces(blob))
    while depth < 0 and blob.endswith("}"):
        blob = blob[:-1].rstrip()
        depth += 1
    return blob


def _balanced_prefix(text: str) -> str | None:
    """Return the first balanced ``{...}`` span of ``text``, skipping strings."""
    depth = 0
    for i, ch in _structural_braces(text):
        depth += 1 if ch == "{" else -1
        if depth == 0:
            return text[:i + 1]
    return None


def _structural_braces(text: str) -> Iterator[tuple[int, str]]:
    """Yield (index, brace) for every brace outside a JSON string literal."""
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{}":
            yield i, ch
