from __future__ import annotations

"""Pull embedded survey documents out of model completions.

The model answers in prose and may embed one object literal somewhere in it.
Extraction scans for top-level balanced ``{...}`` spans, tries them left to
right and keeps the first one that parses and carries ``group_id``. Spans that
do not parse are skipped; "nothing found" is a normal plain-text answer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple
import json
import logging
import re

from ..domain.artifact_models import DISCRIMINATOR_FIELD


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    document: Dict[str, Any]
    start: int
    end: int
    before: str
    after: str


def _match_close(text: str, start: int, skip_strings: bool) -> int:
    """Exclusive end of the span opened at ``start``, or -1 if it never closes."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and skip_strings and depth > 0:
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def iter_candidates(text: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` for every top-level balanced brace span.

    ``end`` is exclusive. A closing brace with nothing open is ignored. Each
    span is matched twice: once skipping braces inside double-quoted strings
    and once counting every brace. The string-aware span comes first; the plain
    one follows when it differs, so a stray quote in prose cannot swallow the
    rest of the text. Scanning resumes after the shorter span, or one past an
    opening brace that never closes.
    """
    pos = 0
    while True:
        start = text.find("{", pos)
        if start < 0:
            return
        quoted = _match_close(text, start, skip_strings=True)
        plain = _match_close(text, start, skip_strings=False)
        ends = [end for end in (quoted, plain) if end > 0]
        if not ends:
            pos = start + 1
            continue
        yield start, ends[0]
        if len(ends) == 2 and ends[1] != ends[0]:
            yield start, ends[1]
        pos = min(ends)


def find_json_object(text: str, required_key: str) -> Optional[Tuple[Dict[str, Any], int, int]]:
    """First candidate span that parses to an object containing ``required_key``."""
    for start, end in iter_candidates(text or ""):
        try:
            parsed = json.loads(text[start:end])
        except ValueError:
            logger.debug("Skipping unparseable candidate at %d..%d", start, end)
            continue
        if isinstance(parsed, dict) and required_key in parsed:
            return parsed, start, end
    return None


def extract_artifact(text: str) -> Optional[ExtractionResult]:
    """Locate the survey document in ``text``.

    ``before`` runs up to the first ``{`` anywhere in the text and ``after``
    starts past the last ``}``; they are not tied to the matched span.
    """
    found = find_json_object(text, DISCRIMINATOR_FIELD)
    if found is None:
        return None
    document, start, end = found
    first_open = text.find("{")
    last_close = text.rfind("}")
    return ExtractionResult(
        document=document,
        start=start,
        end=end,
        before=text[:first_open],
        after=text[last_close + 1:],
    )


_FENCE = re.compile(r"`{3,}(?:json)?\s*", re.IGNORECASE)
_PHRASES = (
    (re.compile(r"here's a json survey template[^:]*:", re.IGNORECASE), "Here's a survey template:"),
    (re.compile(r"here's a json template[^:]*:", re.IGNORECASE), "Here's a template:"),
    (re.compile(r"json survey template", re.IGNORECASE), "survey template"),
    (re.compile(r"json template", re.IGNORECASE), "template"),
)


def _sanitize_once(text: str) -> str:
    out = _FENCE.sub("", text)
    for pattern, replacement in _PHRASES:
        out = pattern.sub(replacement, out)
    return out.strip()


def sanitize_text(text: Optional[str]) -> str:
    """Strip code fences and format-talk from prose, then trim.

    Every rewrite shortens the text, so repeating until nothing changes
    terminates and makes the result a fixed point.
    """
    current = text or ""
    while True:
        cleaned = _sanitize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned
