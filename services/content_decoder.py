from __future__ import annotations

import base64
import binascii
import logging
import quopri
import re

LOGGER = logging.getLogger(__name__)

ASCII_WHITESPACE = re.compile(r"[\t\n\f\r ]")


def decode_content(encoded: str | None) -> str:
    """Decode a base64url, quoted-printable encoded body into text.

    Decoding is best-effort: if any stage fails the input is returned as-is
    so callers always get a string back.
    """

    if not encoded:
        return ""
    # Line-wrapped bodies carry CRLFs between base64 chunks.
    compact = ASCII_WHITESPACE.sub("", encoded)
    standard = compact.replace("-", "+").replace("_", "/")
    standard += "=" * (-len(standard) % 4)
    try:
        raw = base64.b64decode(standard, validate=True)
        return quopri.decodestring(raw).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        LOGGER.debug("Decoding failed, returning raw content: %s", exc)
        return encoded
