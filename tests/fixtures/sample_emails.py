"""
Sample settlement notification emails.

Subjects and bodies follow the formats the mailbox receives: virtual account
credit notices, bank release notices (including the misspelled subject) and
EMI deduction notices.
"""

from email.message import EmailMessage

VIRTUAL_CREDIT_SUBJECT = "Payment Received in virtual account"
VIRTUAL_CREDIT_BODY = """Dear Customer,

An amount of INR 12,500.00 has been credited to Virtual Code MEGA1234 on 05-Apr-2024 vide UTR No. ICIC00112233445.

Regards,
Collections Team"""

RELEASE_SUBJECT = "Payment release succesfull"
RELEASE_BODY = """Dear Partner,

Payment of INR 11,875.00 has been released to the registered bank account Indifi Capital Pvt Ltd - 50200021608160 vide UTR No. HDFCR52024040812345.

Thank you."""

RELEASE_WITH_DEDUCTION_SUBJECT = "Payment release successful"
RELEASE_WITH_DEDUCTION_BODY = """Dear Partner,

Payment of INR 9,500.00 has been released to your bank account HDFC Bank - 1234567890 after EMI deduction of INR 500.00.
Ref No: RLS99887766"""

DEDUCTION_SUBJECT = "EMI Deduction Intimation"
DEDUCTION_BODY = """Dear Partner,

EMI of Rs. 1,250.00 has been deducted towards your loan account on 07-Apr-2024.
Ref: EMI2024040700123"""

BELOW_FLOOR_BODY = "An amount of Rs. 499 has been credited to Virtual Code 123"

STOP_WORD_REFERENCE_BODY = (
    "Your Transaction is successful. An amount of INR 5,000.00 has been credited to Virtual Code VC7788."
)

SUBJECT_ONLY_AMOUNT_SUBJECT = "Payment Received in virtual account - INR 2,000"
SUBJECT_ONLY_AMOUNT_BODY = "Funds credited."

UNKNOWN_SUBJECT = "Your monthly statement is ready"
UNKNOWN_BODY = "Please find your statement attached."

HTML_CREDIT_BODY = """<html><head><style>p { color: red; }</style></head><body>
<p>An amount of <b>INR&nbsp;3,000.00</b> has been credited to Virtual Code <span>AB12CD</span></p>
<p>vide UTR ICIC99887766</p>
<script>var tracking = "INR 99,999.00";</script>
</body></html>"""

ALL_SAMPLES = [
    (VIRTUAL_CREDIT_SUBJECT, VIRTUAL_CREDIT_BODY),
    (RELEASE_SUBJECT, RELEASE_BODY),
    (RELEASE_WITH_DEDUCTION_SUBJECT, RELEASE_WITH_DEDUCTION_BODY),
    (DEDUCTION_SUBJECT, DEDUCTION_BODY),
    (VIRTUAL_CREDIT_SUBJECT, BELOW_FLOOR_BODY),
    (VIRTUAL_CREDIT_SUBJECT, STOP_WORD_REFERENCE_BODY),
    (SUBJECT_ONLY_AMOUNT_SUBJECT, SUBJECT_ONLY_AMOUNT_BODY),
    (UNKNOWN_SUBJECT, UNKNOWN_BODY),
]


def build_email(
    subject: str,
    plain: str | None = None,
    html: str | None = None,
    message_id: str | None = "<msg-1@bank.example>",
    date: str = "Fri, 05 Apr 2024 10:15:00 +0530",
) -> EmailMessage:
    """Build a notification email with plain and/or HTML parts."""
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "alerts@bank.example"
    msg["To"] = "merchant@example.com"
    msg["Date"] = date
    if message_id:
        msg["Message-ID"] = message_id

    if plain is not None:
        msg.set_content(plain)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")
    return msg
