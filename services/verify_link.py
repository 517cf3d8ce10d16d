from __future__ import annotations

import re
from typing import Optional

from models.email_message import EmailMessage
from services.payload_parser import extract_content

# Heuristic only: any http(s) link with one of the keywords anywhere after the
# scheme counts, including tracking links such as ".../confirmation-banner.gif".
VERIFY_URL_PATTERN = re.compile(r"https?://[^\s<>\"]+(?:verify|confirm|activate)[^\s<>\"]*", re.IGNORECASE)


def find_verify_url(text: str) -> Optional[str]:
    match = VERIFY_URL_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_verify_url(email: EmailMessage | None) -> Optional[str]:
    """Return the left-most verification-looking link in the message body."""

    if email is None:
        return None
    content = extract_content(email.payload)
    return find_verify_url(content.text_content or content.html_content or "")
