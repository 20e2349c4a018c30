# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Response text extraction for recovery probes.

Upstreams answer in different envelopes. Each matcher below handles one
recognized container and returns its first non-empty text fragment.
Matchers run in priority order; the first hit wins:

1. output_text   - "output_text": "..." or ["...", ...]
2. output        - "output": [{"text": ...}, {"content": ["...", {"text": ...}]}]
3. content       - "content": ["...", {"type": "text", "text": ...}]
4. choices       - "choices": [{"message": {"content": "..." | [...]}, "output_text": [...]}]
5. text          - "text": "..."
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

TextMatcher = Callable[[Dict[str, Any]], Optional[str]]


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first(values: Iterable[Any]) -> Optional[str]:
    for value in values:
        text = _clean(value)
        if text:
            return text
    return None


def _block_texts(blocks: Any) -> List[Any]:
    """Flatten a content list whose items are strings or {"text": ...} blocks."""
    if not isinstance(blocks, list):
        return []
    texts = []
    for block in blocks:
        if isinstance(block, str):
            texts.append(block)
        elif isinstance(block, dict):
            texts.append(block.get("text"))
    return texts


# =============================================================================
# MATCHERS
# =============================================================================


def match_output_text(data: Dict[str, Any]) -> Optional[str]:
    value = data.get("output_text")
    if isinstance(value, list):
        return _first(value)
    return _clean(value)


def match_output_blocks(data: Dict[str, Any]) -> Optional[str]:
    items = data.get("output")
    if not isinstance(items, list):
        return None
    candidates: List[Any] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        candidates.append(item.get("text"))
        candidates.extend(_block_texts(item.get("content")))
    return _first(candidates)


def match_content_blocks(data: Dict[str, Any]) -> Optional[str]:
    return _first(_block_texts(data.get("content")))


def match_choices(data: Dict[str, Any]) -> Optional[str]:
    choices = data.get("choices")
    if not isinstance(choices, list):
        return None
    candidates: List[Any] = []
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, list):
                candidates.extend(_block_texts(content))
            else:
                candidates.append(content)
        output_text = choice.get("output_text")
        if isinstance(output_text, list):
            candidates.extend(output_text)
    return _first(candidates)


def match_text(data: Dict[str, Any]) -> Optional[str]:
    return _clean(data.get("text"))


TEXT_MATCHERS: Tuple[Tuple[str, TextMatcher], ...] = (
    ("output_text", match_output_text),
    ("output", match_output_blocks),
    ("content", match_content_blocks),
    ("choices", match_choices),
    ("text", match_text),
)


def find_response_text(data: Any) -> Optional[Tuple[str, str]]:
    """
    Find the first text fragment in a response body.

    Returns:
        (matcher name, text), or None if the body holds no text
    """
    if not isinstance(data, dict):
        return None
    for name, matcher in TEXT_MATCHERS:
        text = matcher(data)
        if text:
            return name, text
    return None


def extract_response_text(data: Any) -> str:
    """Return the first text fragment in a response body, or "" if none."""
    found = find_response_text(data)
    return found[1] if found else ""
