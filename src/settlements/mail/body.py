#!/usr/bin/env python3
"""
Message Body Flattening

Turns a MIME message into the single plain-text blob that the fact extractor
matches against. Every text part is kept: plain-text parts verbatim and HTML
parts converted to text, concatenated in traversal order.
"""

import email.message
import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Tags whose end marks a line break in the rendered text
BLOCK_TAGS = ["p", "div", "li", "tr", "td", "th", "table", "h1", "h2", "h3", "h4"]

_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_BLANK_RUNS = re.compile(r"\n{3,}")


def html_to_text(html: str | None) -> str:
    """
    Convert an HTML email body to readable plain text.

    Drops style and script content, turns line-break and block-level tags into
    newlines, strips the remaining markup and decodes entities.

    Args:
        html: Raw HTML content

    Returns:
        Plain text with line structure preserved
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")

    for tag in soup(["style", "script"]):
        tag.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")

    for block in soup.find_all(BLOCK_TAGS):
        block.append("\n")

    text = soup.get_text().replace("\xa0", " ")
    text = _TRAILING_SPACE.sub("\n", text)
    text = _BLANK_RUNS.sub("\n\n", text)
    return text.strip()


def _decode_part(part: email.message.Message) -> str:
    """Decode a leaf part's payload using its declared charset."""
    payload = part.get_payload(decode=True)
    if not payload or not isinstance(payload, bytes):
        return ""

    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="ignore")
    except LookupError:
        logger.debug(f"Unknown charset {charset!r}, falling back to utf-8")
        return payload.decode("utf-8", errors="ignore")


def extract_body_text(msg: email.message.Message) -> str:
    """
    Flatten all text parts of a message into one plain-text string.

    Attachments are skipped. Plain-text parts are used verbatim and HTML parts
    go through html_to_text, so a message carrying both alternatives yields a
    superset of the text in either.

    Args:
        msg: Parsed email message

    Returns:
        Concatenated body text
    """
    chunks: list[str] = []

    for part in msg.walk():
        if part.is_multipart():
            continue

        content_disposition = str(part.get("Content-Disposition", ""))
        if "attachment" in content_disposition.lower():
            continue

        content_type = part.get_content_type()
        if content_type == "text/plain":
            text = _decode_part(part)
        elif content_type == "text/html":
            text = html_to_text(_decode_part(part))
        else:
            continue

        if text.strip():
            chunks.append(text.strip())

    return "\n".join(chunks)
