#!/usr/bin/env python3
"""
Notification Pattern Tables

Every regular expression the fact extractor uses, grouped per field and
ordered from most to least specific. Within a table the first pattern that
matches wins, so new phrasings go in the position matching their specificity.

Amount patterns carry exactly one capture group (the amount). Reference and
auxiliary patterns carry exactly one capture group (the token).
"""

import re
from dataclasses import dataclass

# "INR", "Rs", "Rs." or the rupee sign (plus its common mis-decoded UTF-8 form)
CURRENCY = r"(?:\bINR|\bRs\.?|₹|â‚¹)\s*"

# Grouped amounts need at least one separator so "12000" is not cut to "120"
AMOUNT = r"([0-9]{1,3}(?:,[0-9]{2,3})+(?:\.[0-9]{1,2})?|[0-9]+(?:\.[0-9]{1,2})?)"

_FLAGS = re.IGNORECASE | re.DOTALL


@dataclass(frozen=True)
class FieldPattern:
    """A named pattern in an ordered extraction table."""

    name: str
    regex: re.Pattern


def _p(name: str, pattern: str) -> FieldPattern:
    return FieldPattern(name=name, regex=re.compile(pattern, _FLAGS))


# Classification markers, matched against subject and body together

VIRTUAL_CREDIT_MARKERS = (
    _p("subject_virtual_received", r"payment\s+received\s+in\s+(?:your\s+)?virtual\s+account"),
    _p("credited_to_virtual", r"credited\s+to\s+(?:your\s+)?virtual\s+(?:code|account)"),
    _p("received_in_virtual", r"received\s+in\s+(?:your\s+)?virtual\s+account"),
)

# "successful" also appears as "succesfull", "successfull" and "succesful"
RELEASE_MARKERS = (
    _p("subject_release_successful", r"payment\s+release\s+succ?ess?full?\b"),
    _p("released_to_bank", r"released\s+to\s+(?:your\s+|the\s+)?(?:registered\s+)?bank\s+account"),
    _p("transferred_to_bank", r"(?:transferred|credited)\s+to\s+(?:your\s+|the\s+)?(?:registered\s+)?bank\s+account"),
)

DEDUCTION_MARKERS = (
    _p("emi_deducted", r"\bEMI\b.{0,40}?\b(?:deduct|debit)"),
    _p("deduction_word", r"\bdeduct(?:ed|ions?)\b"),
)

# Amount tables

VIRTUAL_AMOUNT_PATTERNS = (
    _p(
        "virtual_strict",
        rf"amount\s+of\s+{CURRENCY}{AMOUNT}\s+has\s+been\s+credited\s+to\s+(?:your\s+)?virtual\s+(?:code|account)",
    ),
    _p("virtual_phrase", rf"{CURRENCY}{AMOUNT}\s+(?:has\s+been\s+)?credited\s+to\s+(?:your\s+)?virtual\s+(?:code|account)"),
    _p("virtual_amount_of", rf"amount\s+of\s+{CURRENCY}{AMOUNT}"),
    _p("virtual_verb", rf"\b(?:credited|received)\b.{{0,160}}?{CURRENCY}{AMOUNT}"),
)

BANK_AMOUNT_PATTERNS = (
    _p(
        "release_strict",
        rf"(?:amount|payment)\s+of\s+{CURRENCY}{AMOUNT}\s+has\s+been\s+(?:released|transferred|credited)\s+to\s+"
        r"(?:your\s+|the\s+)?(?:registered\s+)?bank\s+account",
    ),
    _p("release_phrase", rf"{CURRENCY}{AMOUNT}\s+(?:has\s+been\s+)?(?:released|transferred)\s+to"),
    _p("release_verb", rf"\b(?:released|transferred|credited)\b.{{0,160}}?\bbank\b.{{0,160}}?{CURRENCY}{AMOUNT}"),
    _p("release_amount_of", rf"(?:amount|payment)\s+of\s+{CURRENCY}{AMOUNT}"),
)

DEDUCTION_AMOUNT_PATTERNS = (
    _p("emi_strict", rf"\bEMI\s*(?:deduction|deducted|amount)?\s*(?:of\s+)?{CURRENCY}{AMOUNT}"),
    _p("amount_then_deducted", rf"{CURRENCY}{AMOUNT}\s+(?:has\s+been\s+|was\s+)?(?:deducted|debited)"),
    _p("deducted_then_amount", rf"\b(?:deduct(?:ed|ion)|debit(?:ed)?)\b\D{{0,80}}?{CURRENCY}{AMOUNT}"),
)

# Last resort for the field matching the classified kind
SUBJECT_AMOUNT_PATTERN = _p("subject_currency", rf"{CURRENCY}{AMOUNT}")

# Reference tables

REFERENCE_PATTERNS = (
    _p(
        "vide",
        r"\bvide\s+(?:(?:UTR|ref(?:erence)?|txn|transaction)\s*(?:no\.?|number|id)?\s*[:#.-]?\s*)?"
        r"([A-Za-z0-9][A-Za-z0-9/_-]*)",
    ),
    _p(
        "label",
        r"\b(?:UTR|Ref(?:erence)?|TXN|Transaction)\b\s*(?:no\.?|number|id)?\s*[:#.-]?\s*([A-Za-z0-9][A-Za-z0-9/_-]*)",
    ),
)

VIRTUAL_CODE_PATTERN = _p(
    "virtual_code", r"\bvirtual\s+(?:code|account)\s*(?:no\.?|number)?\s*[:#-]?\s*([A-Za-z0-9]{3,32})\b"
)

BANK_ACCOUNT_PATTERN = _p(
    "bank_account",
    r"\bbank\s+account\s+(?:of\s+)?([A-Za-z][A-Za-z0-9&.,' ]{0,80}?\s*-\s*[0-9]{6,20})\b",
)
