"""Decoding of JSON payloads embedded in free-form model replies."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(.*?)```", re.DOTALL)
_JSON_FENCE_RE = re.compile(r"```[ \t]*json\b(.*?)```", re.DOTALL | re.IGNORECASE)
_LANGUAGE_TAG_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_+-]*\n")


def extract_fenced_block(text: str) -> Optional[str]:
    """Return the body of the fenced block holding the JSON payload, or ``None``.

    A block tagged ``json`` wins over any earlier fence. Otherwise the first
    block is used with its language tag, if any, removed. The body is stripped.
    """

    match = _JSON_FENCE_RE.search(text)
    if match is not None:
        return match.group(1).strip()

    match = _FENCE_RE.search(text)
    if match is None:
        return None
    body = match.group(1).lstrip(" \t")
    tag = _LANGUAGE_TAG_RE.match(body)
    if tag is not None:
        body = body[tag.end():]
    return body.strip()


@dataclass(slots=True)
class StructuredParse:
    """Outcome of decoding a model reply.

    ``fenced`` tells whether the JSON came from a fenced block. ``error`` holds
    the decoder message when decoding failed, in which case ``value`` is ``None``.
    """

    value: Any = None
    fenced: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_structured_reply(text: str) -> StructuredParse:
    """Decode ``text`` as JSON, preferring a fenced block when present."""

    block = extract_fenced_block(text)
    fenced = block is not None
    candidate = block if fenced else text.strip()
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as error:
        return StructuredParse(fenced=fenced, error=str(error))
    return StructuredParse(value=value, fenced=fenced)


__all__ = ["StructuredParse", "extract_fenced_block", "parse_structured_reply"]
