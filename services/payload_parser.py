from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from models.message_part import MAX_PART_DEPTH, EmailContent, MessagePart
from services.content_decoder import decode_content

LOGGER = logging.getLogger(__name__)

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"


def extract_content(payload: MessagePart | None) -> EmailContent:
    """Pick the first plain-text and first HTML leaf in depth-first order."""

    if payload is None:
        return EmailContent()

    found: Dict[str, str] = {}
    # A part shared by several parents was fully searched the first time.
    visited: Set[int] = set()
    stack: List[Tuple[MessagePart, int]] = [(payload, 0)]
    while stack and len(found) < 2:
        part, depth = stack.pop()
        if id(part) in visited:
            continue
        visited.add(id(part))
        if part.mime_type in (TEXT_PLAIN, TEXT_HTML) and part.body_data:
            if part.mime_type not in found:
                found[part.mime_type] = decode_content(part.body_data)
            continue
        if not part.parts:
            continue
        if depth >= MAX_PART_DEPTH:
            LOGGER.warning("Part tree deeper than %s levels, ignoring the rest", MAX_PART_DEPTH)
            continue
        # Reversed so the first child is popped first.
        stack.extend((child, depth + 1) for child in reversed(part.parts))

    return EmailContent(
        text_content=found.get(TEXT_PLAIN, ""),
        html_content=found.get(TEXT_HTML, ""),
    )


def get_headers(payload: MessagePart | None) -> Dict[str, str]:
    """Map top-level headers by lower-cased name; later duplicates win."""

    if payload is None:
        return {}
    mapped: Dict[str, str] = {}
    for header in payload.headers:
        mapped[header.name.lower()] = header.value
    return mapped
