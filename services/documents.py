"""Word (.docx) exports of a stored application: the intake summary and the term sheet."""

import io
import json
import logging
import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from dateutil.relativedelta import relativedelta
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from config import settings
from models import Application
from services.encoder import net_amount, num_or_none, str_or_none
from utils.formatting import MISSING, fmt_date, fmt_money, full_name, parse_date

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SIGNATURE_LINE = "______________________________   "

SENSITIVE_NOTICE = (
    "Note: This document may contain sensitive personal information. Handle and store securely."
)

_PERSON_LABELS = {
    "first": "First Name",
    "last": "Last Name",
    "email": "Email",
    "phone": "Phone",
    "dob": "Date of Birth",
    "sin": "SIN",
    "street": "Street",
    "city": "City",
    "province": "Province",
    "postal": "Postal Code",
    "status": "Status",
}

APPLICANT_LABELS = {f"app-{k}": v for k, v in _PERSON_LABELS.items()}
CO_APPLICANT_LABELS = {f"co-{k}": v for k, v in _PERSON_LABELS.items()}

CONDITIONS = (
    "Satisfactory appraisal of the subject property.",
    "Verification of income and employment for all borrowers.",
    "Proof of down payment from the borrower's own resources.",
    "Valid fire insurance on the subject property with the lender named as loss payee.",
    "This term sheet is not a commitment to lend and is subject to final credit approval.",
)


# Characters XML 1.0 cannot carry; python-docx rejects them.
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _xml_text(text: str) -> str:
    return _XML_INVALID.sub("", text)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return _xml_text(str(value))


def _section_title(doc, text: str) -> None:
    doc.add_heading(text, level=2)


def _kv_table(doc, raw: Optional[Mapping[str, Any]], labels: Optional[Mapping[str, str]] = None) -> None:
    entries = list((raw or {}).items())
    if not entries:
        doc.add_paragraph(MISSING)
        return
    table = doc.add_table(rows=0, cols=2)
    table.style = "Table Grid"
    for key, value in entries:
        cells = table.add_row().cells
        cells[0].text = _xml_text((labels or {}).get(key, key))
        cells[1].text = _cell_text(value)


def _to_bytes(doc) -> bytes:
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def build_application_docx(app: Application) -> bytes:
    """Summary of the applicant and co-applicant sections as captured."""
    doc = Document()
    doc.core_properties.title = f"Application {app.id}"
    doc.core_properties.author = settings.app_name

    title = doc.add_heading("Mortgage Application", level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    header = doc.add_paragraph()
    header.add_run(_xml_text(f"Application ID: {app.id}")).bold = True
    if app.status:
        header.add_run(_xml_text(f" • Status: {app.status}"))

    _section_title(doc, "Applicant")
    _kv_table(doc, app.applicant, APPLICANT_LABELS)

    if app.co_applicant:
        _section_title(doc, "Co-Applicant")
        _kv_table(doc, app.co_applicant, CO_APPLICANT_LABELS)

    notice = doc.add_paragraph()
    notice.paragraph_format.space_before = Pt(15)
    notice.add_run(SENSITIVE_NOTICE).italic = True

    logger.info("application docx generated id=%s", app.id)
    return _to_bytes(doc)


def financing_terms(financing: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Read a stored financing bucket back into typed values for display."""
    fin = financing or {}
    purchase_price = num_or_none(fin.get("purchase_price"))
    down_payment = num_or_none(fin.get("down_payment"))
    finance_amount = num_or_none(fin.get("finance_amount"))
    if finance_amount is None:
        finance_amount = net_amount(purchase_price, down_payment)

    closing = parse_date(fin.get("closing_date"))
    if isinstance(closing, datetime):
        closing = closing.date()
    maturity: Optional[date] = None
    if closing:
        try:
            maturity = closing + relativedelta(months=settings.term_months)
        except ValueError:
            # Past date.max
            maturity = None

    address_parts = [
        str_or_none(fin.get(k))
        for k in ("property_address", "property_city", "property_province", "property_postal_code")
    ]
    address = ", ".join(p for p in address_parts if p) or None

    return {
        "purchase_price": purchase_price,
        "down_payment": down_payment,
        "finance_amount": finance_amount,
        "closing_date": closing,
        "maturity_date": maturity,
        "property": address,
    }


def lender_fee(finance_amount: Any) -> Optional[float]:
    amount = num_or_none(finance_amount)
    if amount is None:
        return None
    try:
        return num_or_none(amount * settings.lender_fee_percent / 100)
    except OverflowError:
        return None


def _signature_block(doc, label: str) -> None:
    p = doc.add_paragraph()
    p.paragraph_format.space_after = Pt(6)
    p.add_run(SIGNATURE_LINE)
    p.add_run(_xml_text(label))


def build_term_sheet_docx(app: Application) -> bytes:
    """Indicative term sheet: parties, facility terms, fees, conditions and signature blocks."""
    applicant_name = full_name(app.applicant, "app")
    coapplicant_name = full_name(app.co_applicant, "co")
    terms = financing_terms(app.financing_details)

    doc = Document()
    doc.core_properties.title = f"Term Sheet {app.id}"
    doc.core_properties.author = settings.app_name

    title = doc.add_heading("Mortgage Term Sheet", level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    doc.add_paragraph(f"Date: {fmt_date(app.created_at)}")
    doc.add_paragraph(f"Reference: {app.id}")

    _section_title(doc, "Parties")
    borrowers = [n for n in (applicant_name, coapplicant_name) if n] or [MISSING]
    _kv_table(doc, {
        "Borrower(s)": " and ".join(borrowers),
        "Lender": settings.lender_name,
    })

    _section_title(doc, "Facility Terms")
    _kv_table(doc, {
        "Purchase Price": fmt_money(terms["purchase_price"]),
        "Down Payment": fmt_money(terms["down_payment"]),
        "Finance Amount": fmt_money(terms["finance_amount"]),
        "Property": terms["property"] or MISSING,
        "Closing Date": fmt_date(terms["closing_date"]),
        "Term": f"{settings.term_months} months",
        "Maturity Date": fmt_date(terms["maturity_date"]),
        "Interest Rate": "To be confirmed at commitment",
    })

    _section_title(doc, "Fees")
    _kv_table(doc, {
        f"Lender Fee ({settings.lender_fee_percent:g}% of finance amount)": fmt_money(lender_fee(terms["finance_amount"])),
        "Appraisal": "Borne by the borrower",
        "Legal Fees": "Borne by the borrower",
        "Broker Fee": "None",
    })

    _section_title(doc, "Conditions")
    for condition in CONDITIONS:
        doc.add_paragraph(condition, style="List Bullet")

    _section_title(doc, "Signatures")
    _signature_block(doc, applicant_name or "Client 1")
    if coapplicant_name:
        _signature_block(doc, coapplicant_name)
    _signature_block(doc, "Signature")

    logger.info("term sheet generated id=%s finance_amount=%s", app.id, terms["finance_amount"])
    return _to_bytes(doc)
