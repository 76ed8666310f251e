"""
Mailbox Access Package

IMAP fetching of settlement notification emails and flattening of their
MIME bodies to plain text.
"""

from .body import extract_body_text, html_to_text
from .fetcher import MailFetcher, MessageStub

__all__ = [
    "MailFetcher",
    "MessageStub",
    "extract_body_text",
    "html_to_text",
]
