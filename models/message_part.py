from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Set, Tuple

# Nesting deeper than this is treated as malformed and cut off.
MAX_PART_DEPTH = 64


@dataclass(frozen=True, slots=True)
class Header:
    name: str
    value: str


@dataclass(frozen=True, slots=True)
class MessagePart:
    """Immutable node of a multi-part message body tree."""

    mime_type: str = ""
    body_data: Optional[str] = None
    parts: Tuple["MessagePart", ...] = ()
    headers: Tuple[Header, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["MessagePart"]:
        """Build a part tree from a raw API payload, tolerating missing fields.

        Mappings shared between branches are built once; a mapping that
        contains itself is cut off where it repeats.
        """

        return cls._build(payload, 0, {}, set())

    @classmethod
    def _build(cls, payload: Any, depth: int, built: Dict[int, "MessagePart"], path: Set[int]) -> Optional["MessagePart"]:
        if not isinstance(payload, Mapping):
            return None
        key = id(payload)
        if key in built:
            return built[key]
        if key in path:
            return None
        mime_type = payload.get("mimeType")
        body = payload.get("body")
        data = body.get("data") if isinstance(body, Mapping) else None

        children: Tuple[MessagePart, ...] = ()
        raw_parts = payload.get("parts")
        if isinstance(raw_parts, (list, tuple)) and depth < MAX_PART_DEPTH:
            path.add(key)
            nodes = (cls._build(child, depth + 1, built, path) for child in raw_parts)
            children = tuple(part for part in nodes if part is not None)
            path.discard(key)

        headers: Tuple[Header, ...] = ()
        raw_headers = payload.get("headers")
        if isinstance(raw_headers, (list, tuple)):
            headers = tuple(
                Header(name=item["name"], value=str(item.get("value") or ""))
                for item in raw_headers
                if isinstance(item, Mapping) and isinstance(item.get("name"), str)
            )

        part = cls(
            mime_type=mime_type if isinstance(mime_type, str) else "",
            body_data=data if isinstance(data, str) else None,
            parts=children,
            headers=headers,
        )
        built[key] = part
        return part


@dataclass(frozen=True, slots=True)
class EmailContent:
    text_content: str = ""
    html_content: str = ""
