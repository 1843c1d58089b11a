"""
Best-effort parsing of JSON documents that are still being generated.

A streaming model emits its JSON answer a few characters at a time. To
show progress, each prefix is turned into the largest valid object it
implies: open strings and containers are closed, while dangling keys,
separators and half-written literals are dropped. Values inside an open
string are kept, so a long ``body`` field grows as it streams.
"""

from __future__ import annotations

import json
import re
from typing import Any

_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_LITERALS = ("true", "false", "null")
_UNICODE_TAIL_RE = re.compile(r"(\\+)u[0-9a-fA-F]{0,3}$")
_TOKEN_END = set(" \t\r\n,]}")

# What a container accepts next.
_FIRST = "first"  # just opened: a member/element or the closing bracket
_KEY = "key"  # after a comma inside an object
_COLON = "colon"
_VALUE = "value"  # after a colon, or after a comma inside an array
_COMMA = "comma"  # after a complete member/element: comma or closing bracket


def parse_partial_json(text: str) -> Any | None:
    """Return the object implied by a (possibly incomplete) JSON document.

    Leading prose or a ```json fence before the first ``{``/``[`` is
    ignored, as is anything after the top-level value closes.

    Returns:
        The parsed value, or None if no object or array has started yet
    """
    start = _first_container(text)
    if start == -1:
        return None
    body = text[start:]
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass
    repaired = close_partial_json(body)
    if repaired is None:
        return None
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        return None


def parse_complete_json(text: str) -> Any:
    """Parse a finished model answer, tolerating fences and surrounding prose.

    Raises:
        json.JSONDecodeError: If no complete JSON value can be found
    """
    if not text or not text.strip():
        raise json.JSONDecodeError("Empty content", text or "", 0)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        snippet = _extract_json_snippet(text)
        return json.loads(snippet)


def close_partial_json(text: str) -> str | None:
    """Repair a JSON prefix into a complete document.

    ``text`` must start with ``{`` or ``[``. Returns None when no valid
    prefix exists.
    """
    # frames are [kind, state]; kind is "{" or "["
    stack: list[list[str]] = []
    safe_len: int | None = None
    safe_closers = ""

    def closers() -> str:
        return "".join("}" if kind == "{" else "]" for kind, _ in reversed(stack))

    def expects_value(frame: list[str]) -> bool:
        return frame[1] == _VALUE or (frame[0] == "[" and frame[1] == _FIRST)

    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        top = stack[-1] if stack else None

        if ch in " \t\r\n":
            i += 1
            continue

        if ch in "{[":
            if top is None:
                if i:
                    break
            elif not expects_value(top):
                break
            else:
                top[1] = _COMMA
            stack.append([ch, _FIRST])
            i += 1
            safe_len, safe_closers = i, closers()
            continue

        if ch in "}]":
            if top is None or ch != ("}" if top[0] == "{" else "]"):
                break
            if top[1] not in (_FIRST, _COMMA):
                break
            stack.pop()
            i += 1
            if not stack:
                return text[:i]
            safe_len, safe_closers = i, closers()
            continue

        if ch == '"':
            if top is None:
                break
            is_key = top[0] == "{" and top[1] in (_FIRST, _KEY)
            if not is_key and not expects_value(top):
                break
            j, escaped = i + 1, False
            while j < n:
                c = text[j]
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    break
                j += 1
            if j >= n:
                if is_key:
                    break
                return text[:i] + _trim_open_string(text[i:n], escaped) + '"' + closers()
            i = j + 1
            if is_key:
                top[1] = _COLON
            else:
                top[1] = _COMMA
                safe_len, safe_closers = i, closers()
            continue

        if ch == ":":
            if top is None or top[1] != _COLON:
                break
            top[1] = _VALUE
            i += 1
            continue

        if ch == ",":
            if top is None or top[1] != _COMMA:
                break
            top[1] = _KEY if top[0] == "{" else _VALUE
            i += 1
            continue

        # number or literal
        if top is None or not expects_value(top):
            break
        j = i
        while j < n and text[j] not in _TOKEN_END:
            j += 1
        if not _is_scalar(text[i:j]):
            break
        top[1] = _COMMA
        i = j
        safe_len, safe_closers = i, closers()

    if safe_len is None:
        return None
    return text[:safe_len] + safe_closers


def _trim_open_string(fragment: str, escaped: bool) -> str:
    """Drop an escape sequence cut off at the end of an open string."""
    if escaped:
        return fragment[:-1]
    match = _UNICODE_TAIL_RE.search(fragment)
    if match and len(match.group(1)) % 2 == 1:
        return fragment[: match.end(1) - 1]
    return fragment


def _is_scalar(token: str) -> bool:
    return token in _LITERALS or _NUMBER_RE.fullmatch(token) is not None


def _first_container(text: str) -> int:
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    return min(positions) if positions else -1


def _extract_json_snippet(content: str) -> str:
    fence = _extract_fenced_json(content)
    if fence:
        return fence
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return content[start : end + 1]


def _extract_fenced_json(content: str) -> str | None:
    lines = content.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        if line.strip().startswith("```") and "json" in line.lower():
            start_idx = idx + 1
            break
    if start_idx is None:
        return None
    for idx in range(start_idx, len(lines)):
        if lines[idx].strip().startswith("```"):
            snippet = "\n".join(lines[start_idx:idx]).strip()
            return snippet or None
    return None
