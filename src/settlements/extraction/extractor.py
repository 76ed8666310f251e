#!/usr/bin/env python3
"""
Payment Fact Extractor Module

Turns the subject and flattened body of a settlement notification into a
typed PaymentFactDraft. Classification, amounts, references and auxiliary
fields are each resolved by an ordered cascade over the tables in
`patterns`; the first match wins per field.

Extraction never raises: a field whose patterns do not match (or whose
amount falls below the materiality floor) is simply left as None.
"""

import logging
import re
from collections.abc import Sequence
from decimal import Decimal

from ..core.config import ExtractionConfig
from ..core.currency import parse_amount
from ..core.models import FactKind, PaymentFactDraft
from ..core.money import Money
from . import patterns
from .patterns import FieldPattern

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class FactExtractor:
    """
    Rule-based extractor for virtual-account, bank-release and deduction notices.

    Kind gating after extraction keeps the amount families apart:
    a virtual credit never carries a bank credit, a release never carries a
    virtual amount, and an explicit deduction carries only its deduction.
    """

    def __init__(self, config: ExtractionConfig | None = None):
        """
        Initialize the extractor.

        Args:
            config: Materiality floors and reference length (defaults apply when None)
        """
        self.config = config or ExtractionConfig()
        self.min_credit = Money.from_decimal(Decimal(self.config.min_credit_amount))
        self.min_deduction = Money.from_decimal(Decimal(self.config.min_deduction_amount))

    def extract(self, subject: str | None, body_text: str | None) -> PaymentFactDraft:
        """
        Extract a payment fact draft from one notification.

        Args:
            subject: Email subject line
            body_text: Flattened plain-text body

        Returns:
            PaymentFactDraft; unmatched fields are None
        """
        subject = "" if subject is None else str(subject)
        body = "" if body_text is None else str(body_text)
        haystack = f"{subject}\n{body}"

        kind, has_deduction = self.classify(subject, body)

        virtual_amount = self._floor(
            self._first_amount(patterns.VIRTUAL_AMOUNT_PATTERNS, body, subject, kind == FactKind.VIRTUAL_CREDIT),
            self.min_credit,
        )
        bank_credit = self._floor(
            self._first_amount(patterns.BANK_AMOUNT_PATTERNS, body, subject, kind == FactKind.RELEASE_TO_BANK),
            self.min_credit,
        )
        deduction = None
        if has_deduction:
            deduction = self._floor(
                self._first_amount(
                    patterns.DEDUCTION_AMOUNT_PATTERNS, body, subject, kind == FactKind.EMI_DEDUCTION_EXPLICIT
                ),
                self.min_deduction,
            )

        # Keep the amount families from contaminating each other
        if kind == FactKind.VIRTUAL_CREDIT:
            bank_credit = None
        elif kind == FactKind.RELEASE_TO_BANK:
            virtual_amount = None
        elif kind == FactKind.EMI_DEDUCTION_EXPLICIT:
            virtual_amount = None
            bank_credit = None

        draft = PaymentFactDraft(
            kind=kind,
            virtual_amount=virtual_amount,
            bank_credit=bank_credit,
            indifi_deduction=deduction,
            transaction_ref=self.extract_reference(haystack),
            virtual_code=self._extract_token(patterns.VIRTUAL_CODE_PATTERN, body, require_digit=True),
            bank_account=self._extract_token(patterns.BANK_ACCOUNT_PATTERN, body),
        )

        if kind != FactKind.UNKNOWN and self._primary_amount(draft) is None:
            logger.debug(f"No amount extracted for {kind.value} notification: {subject!r}")

        return draft

    def classify(self, subject: str, body: str) -> tuple[FactKind, bool]:
        """
        Decide the fact kind from fixed phrase markers.

        Returns:
            (kind, has_deduction) where has_deduction reports whether an
            explicit deduction phrase is present alongside whatever kind won
        """
        haystack = f"{subject}\n{body}"
        has_deduction = _any_match(patterns.DEDUCTION_MARKERS, haystack)

        if _any_match(patterns.VIRTUAL_CREDIT_MARKERS, haystack):
            return FactKind.VIRTUAL_CREDIT, has_deduction
        if _any_match(patterns.RELEASE_MARKERS, haystack):
            return FactKind.RELEASE_TO_BANK, has_deduction
        if has_deduction:
            return FactKind.EMI_DEDUCTION_EXPLICIT, True
        return FactKind.UNKNOWN, False

    def extract_reference(self, text: str) -> str | None:
        """
        Find the transaction reference.

        Candidates shorter than the configured minimum, or (unless disabled)
        made only of letters, are skipped. After a rejected candidate the
        search resumes at the candidate itself, so a label word caught as a
        value ("reference" in "transaction reference number 12345678") can
        still start the next match.
        """
        for field_pattern in patterns.REFERENCE_PATTERNS:
            match = field_pattern.regex.search(text)
            while match is not None:
                candidate = match.group(1).strip("/-_")
                if self._is_reference(candidate):
                    return candidate
                match = field_pattern.regex.search(text, match.start(1))
        return None

    def _is_reference(self, candidate: str) -> bool:
        if len(candidate) < self.config.min_reference_length:
            return False
        if not self.config.reference_requires_digit:
            return True
        return any(ch.isdigit() for ch in candidate)

    def _first_amount(
        self,
        table: Sequence[FieldPattern],
        body: str,
        subject: str,
        allow_subject: bool,
    ) -> Money | None:
        """Run an amount table over the body, then optionally the subject."""
        for field_pattern in table:
            match = field_pattern.regex.search(body)
            if match:
                value = parse_amount(match.group(1))
                logger.debug(f"Amount pattern '{field_pattern.name}' matched {match.group(1)!r}")
                return Money.from_decimal(value) if value is not None else None

        if allow_subject:
            match = patterns.SUBJECT_AMOUNT_PATTERN.regex.search(subject)
            if match:
                value = parse_amount(match.group(1))
                return Money.from_decimal(value) if value is not None else None

        return None

    @staticmethod
    def _floor(amount: Money | None, minimum: Money) -> Money | None:
        """Discard amounts below the materiality floor as extraction noise."""
        if amount is None or amount < minimum:
            return None
        return amount

    @staticmethod
    def _extract_token(field_pattern: FieldPattern, text: str, require_digit: bool = False) -> str | None:
        for match in field_pattern.regex.finditer(text):
            token = _WHITESPACE.sub(" ", match.group(1)).strip()
            if require_digit and not any(ch.isdigit() for ch in token):
                continue
            if token:
                return token
        return None

    @staticmethod
    def _primary_amount(draft: PaymentFactDraft) -> Money | None:
        if draft.kind == FactKind.VIRTUAL_CREDIT:
            return draft.virtual_amount
        if draft.kind == FactKind.RELEASE_TO_BANK:
            return draft.bank_credit
        return draft.indifi_deduction


def _any_match(table: Sequence[FieldPattern], text: str) -> bool:
    return any(field_pattern.regex.search(text) for field_pattern in table)
