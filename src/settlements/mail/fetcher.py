#!/usr/bin/env python3
"""
Notification Email Fetcher Module

IMAP access to the mailbox that receives virtual-account and bank-release
notifications. Messages are addressed by UID and identified by their
Message-ID header, so the ingestion pipeline can check a whole page of
identifiers against the fact store before downloading any message body.
"""

import email
import email.header
import email.message
import email.utils
import imaplib
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timezone

from ..core.config import EmailConfig, get_config
from ..core.models import RawMessage
from .body import extract_body_text

logger = logging.getLogger(__name__)

_UID_PATTERN = re.compile(rb"UID (\d+)")


@dataclass(frozen=True)
class MessageStub:
    """Header-only view of a mailbox message: enough to deduplicate."""

    uid: str
    external_id: str


class MailFetcher:
    """
    Fetches settlement notification emails from an IMAP mailbox.

    Searches are subject-based and date-bounded; results are handed out in
    pages of UIDs so callers can cap how much work one sync performs.
    """

    def __init__(self, config: EmailConfig | None = None):
        """Initialize with email configuration."""
        self.config = config if config is not None else get_config().email
        self.connection: imaplib.IMAP4_SSL | None = None

    def connect(self) -> bool:
        """
        Connect to the IMAP server and select the configured folder read-only.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            logger.info(f"Connecting to IMAP server: {self.config.imap_server}:{self.config.imap_port}")

            self.connection = imaplib.IMAP4_SSL(self.config.imap_server, self.config.imap_port)
            self.connection.login(self.config.username or "", self.config.password or "")

            result, _ = self.connection.select(self._quoted_folder(), readonly=True)
            if result != "OK":
                logger.error(f"Cannot select folder '{self.config.folder}'")
                return False

            logger.info("Successfully connected to IMAP server")
            return True

        except (imaplib.IMAP4.error, OSError) as e:
            logger.error(f"Failed to connect to IMAP server: {e}")
            self.connection = None
            return False

    def disconnect(self) -> None:
        """Disconnect from IMAP server."""
        if self.connection:
            try:
                self.connection.close()
                self.connection.logout()
                logger.info("Disconnected from IMAP server")
            except (imaplib.IMAP4.error, OSError) as e:
                logger.warning(f"Error during disconnect: {e}")
            finally:
                self.connection = None

    def _quoted_folder(self) -> str:
        folder = self.config.folder
        if " " in folder and not folder.startswith('"'):
            return f'"{folder}"'
        return folder

    def build_criteria(self, since: date, query: str | None = None) -> list[str]:
        """
        Build IMAP SEARCH criteria, one per subject filter.

        A raw `query` replaces the subject filters and is combined with the
        date bound as-is.
        """
        since_str = since.strftime("%d-%b-%Y")
        if query:
            return [f"(SINCE {since_str} {query})"]
        return [f'(SINCE {since_str} SUBJECT "{subject}")' for subject in self.config.search_subjects]

    def search(self, since: date, query: str | None = None) -> list[str]:
        """
        Search for notification UIDs received on or after `since`.

        Runs each criterion separately and merges the unique UIDs in
        ascending order.

        Returns:
            Sorted list of UID strings
        """
        if not self.connection:
            logger.warning("Cannot search without connection")
            return []

        uids: set[int] = set()
        for criteria in self.build_criteria(since, query):
            try:
                result, data = self.connection.uid("SEARCH", None, criteria)
            except imaplib.IMAP4.error as e:
                logger.warning(f"Search error for '{criteria}': {e}")
                continue
            if result == "OK" and data and data[0]:
                uids.update(int(uid) for uid in data[0].split())

        logger.info(f"Found {len(uids)} candidate messages since {since.isoformat()}")
        return [str(uid) for uid in sorted(uids)]

    def iter_header_pages(self, uids: list[str], page_size: int | None = None) -> Iterator[list[MessageStub]]:
        """
        Yield pages of header-only stubs for the given UIDs.

        Only the Message-ID header is downloaded for each page.
        """
        size = page_size or self.config.page_size
        for offset in range(0, len(uids), size):
            yield self.fetch_stubs(uids[offset : offset + size])

    def fetch_stubs(self, uids: list[str]) -> list[MessageStub]:
        """Fetch the Message-ID header for a batch of UIDs."""
        if not self.connection or not uids:
            return []

        result, data = self.connection.uid("FETCH", ",".join(uids), "(BODY.PEEK[HEADER.FIELDS (MESSAGE-ID)])")
        if result != "OK" or not data:
            logger.warning(f"Header fetch failed for {len(uids)} messages")
            return []

        stubs = []
        for item in data:
            if not isinstance(item, tuple) or len(item) < 2:
                continue
            match = _UID_PATTERN.search(item[0])
            if not match:
                continue
            uid = match.group(1).decode()
            headers = email.message_from_bytes(item[1])
            stubs.append(MessageStub(uid=uid, external_id=self._external_id(headers.get("Message-ID"), uid)))

        # Preserve the mailbox order of the requested page
        order = {uid: index for index, uid in enumerate(uids)}
        stubs.sort(key=lambda stub: order.get(stub.uid, len(order)))
        return stubs

    def fetch_message(self, uid: str) -> RawMessage | None:
        """
        Fetch and flatten a single message.

        Returns:
            RawMessage, or None if the server returned nothing usable
        """
        if not self.connection:
            logger.warning("Connection lost")
            return None

        result, msg_data = self.connection.uid("FETCH", uid, "(RFC822)")
        if result != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
            return None

        raw_email = msg_data[0][1]
        if not isinstance(raw_email, bytes):
            logger.warning(f"Expected bytes but got {type(raw_email)}")
            return None

        return self.parse_message(email.message_from_bytes(raw_email), uid)

    def parse_message(self, msg: email.message.Message, uid: str) -> RawMessage:
        """Build a RawMessage from a parsed email."""
        subject = self._decode_header(msg.get("Subject", ""))
        date_str = msg.get("Date", "")

        try:
            received_at = email.utils.parsedate_to_datetime(date_str)
        except (TypeError, ValueError):
            logger.debug(f"Unparsable Date header {date_str!r} on UID {uid}; using current time")
            received_at = datetime.now(timezone.utc)

        return RawMessage(
            external_id=self._external_id(msg.get("Message-ID"), uid),
            subject=subject,
            body_text=extract_body_text(msg),
            received_at=received_at,
        )

    def _external_id(self, message_id: str | None, uid: str) -> str:
        if message_id and message_id.strip():
            return message_id.strip()
        return f"{self.config.folder}:{uid}"

    def _decode_header(self, header: str | None) -> str:
        """Decode email header with proper encoding handling."""
        if not header:
            return ""

        try:
            decoded_parts = []
            for part, encoding in email.header.decode_header(header):
                if isinstance(part, bytes):
                    decoded_parts.append(part.decode(encoding or "utf-8", errors="ignore"))
                else:
                    decoded_parts.append(str(part))
            return "".join(decoded_parts)

        except (LookupError, ValueError) as e:
            logger.warning(f"Error decoding header {header}: {e}")
            return str(header)
