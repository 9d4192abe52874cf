"""
Submission encoder: flat ``<prefix>-<field>`` form payload -> bucketed application record.

Each key is routed to a bucket by the longest matching prefix in PREFIX_TABLE.
Keys with no matching prefix fall into the applicant bucket. Values are trimmed
and blank strings become None. Consent and financing buckets are then compacted
to a fixed set of fields.

Parsing is lenient: a malformed value becomes None instead of failing the
submission. The only hard requirement is a non-empty applicant bucket.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from api.errors import ValidationError

logger = logging.getLogger("intake.encoder")

APPLICANT = "applicant"
CO_APPLICANT = "co_applicant"
REFERENCE = "reference"
DECLARATIONS = "declarations"
CONSENT = "consent"
ASSETS = "assets"
LIABILITIES = "liabilities"
TOTALS = "totals"
FINANCING_DETAILS = "financing_details"

OPTIONAL_BUCKETS = (
    CO_APPLICANT,
    REFERENCE,
    DECLARATIONS,
    CONSENT,
    ASSETS,
    LIABILITIES,
    TOTALS,
    FINANCING_DETAILS,
)

# Fixed routing table. Co-applicant identity and employment share one bucket.
PREFIX_TABLE: tuple[tuple[str, str], ...] = (
    ("app-", APPLICANT),
    ("emp-", APPLICANT),
    ("ref-", REFERENCE),
    ("co-", CO_APPLICANT),
    ("co-emp-", CO_APPLICANT),
    ("asset-", ASSETS),
    ("debt-", LIABILITIES),
    ("nw-", TOTALS),
    ("app-bankruptcy", DECLARATIONS),
    ("co-bankruptcy", DECLARATIONS),
    ("sign-", CONSENT),
    ("consent-", CONSENT),
    ("fin-", FINANCING_DETAILS),
)

# Sorted once; the first hit for a key is its longest matching prefix.
_PREFIXES_LONGEST_FIRST = sorted(PREFIX_TABLE, key=lambda p: len(p[0]), reverse=True)

STATUS_KEY = "status"


@dataclass
class EncodedApplication:
    applicant: dict[str, Any]
    co_applicant: Optional[dict[str, Any]] = None
    reference: Optional[dict[str, Any]] = None
    declarations: Optional[dict[str, Any]] = None
    consent: Optional[dict[str, Any]] = None
    assets: Optional[dict[str, Any]] = None
    liabilities: Optional[dict[str, Any]] = None
    totals: Optional[dict[str, Any]] = None
    financing_details: Optional[dict[str, Any]] = None

    def buckets(self) -> dict[str, Optional[dict[str, Any]]]:
        return {
            APPLICANT: self.applicant,
            **{name: getattr(self, name) for name in OPTIONAL_BUCKETS},
        }


def bucket_for(key: str) -> str:
    """Return the bucket a form key belongs to (applicant when nothing matches)."""
    for prefix, bucket in _PREFIXES_LONGEST_FIRST:
        if key.startswith(prefix):
            return bucket
    return APPLICANT


def normalize_value(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        # NaN/Infinity are not representable in a JSON column
        return None
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    return trimmed or None


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def prune_nulls(obj: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """Drop null/blank entries; an empty result collapses to None."""
    if not obj:
        return None
    out = {k: v for k, v in obj.items() if not _is_blank(v)}
    return out or None


def _none_if_empty(obj: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Keep the bucket as-is (null values included) unless every value is blank."""
    if not obj or all(_is_blank(v) for v in obj.values()):
        return None
    return obj


def num_or_none(value: Any) -> int | float | None:
    """Parse a number leniently: ints, floats and strings like ' $500,000 '."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        # Exact, even beyond float range
        return value
    if isinstance(value, float):
        n = value
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("$", "")
        if not cleaned:
            return None
        try:
            n = float(cleaned)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if not math.isfinite(n):
        return None
    return int(n) if n.is_integer() else n


def net_amount(price: Any, down: Any) -> int | float | None:
    """``max(price - down, 0)`` over parsed numbers; None if either is missing or the result is unrepresentable."""
    if price is None or down is None:
        return None
    try:
        return num_or_none(max(price - down, 0))
    except OverflowError:
        # int beyond float range combined with a float
        return None


def str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def compact_consent(consent: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    if not consent:
        return None
    applicant_name = consent.get("sign-app-name")
    # Consent body text and uploaded signature files are not kept.
    return prune_nulls({
        "applicant_name": applicant_name,
        "applicant_date": consent.get("sign-app-date"),
        "coapplicant_name": consent.get("sign-co-name"),
        "coapplicant_date": consent.get("sign-co-date"),
        "signature": applicant_name,
    })


def compact_financing(fin: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    if not fin:
        return None

    purchase_price = num_or_none(fin.get("fin-purchase-price"))
    down_payment = num_or_none(fin.get("fin-down-payment"))
    if purchase_price is not None and down_payment is not None:
        finance_amount = net_amount(purchase_price, down_payment)
    else:
        finance_amount = num_or_none(fin.get("fin-finance-amount"))

    return prune_nulls({
        "purchase_price": purchase_price,
        "down_payment": down_payment,
        "finance_amount": finance_amount,
        "closing_date": str_or_none(fin.get("fin-closing-date")),
        "property_address": str_or_none(fin.get("fin-property-address")),
        "property_city": str_or_none(fin.get("fin-property-city")),
        "property_province": str_or_none(fin.get("fin-property-province")),
        "property_postal_code": str_or_none(fin.get("fin-property-postal-code")),
    })


def _is_upload(value: Any) -> bool:
    return hasattr(value, "filename") and hasattr(value, "read")


def _bucketize(items: Iterable[tuple[str, Any]]) -> dict[str, dict[str, Any]]:
    buckets: dict[str, dict[str, Any]] = {}
    for key, value in items:
        # Status is server-assigned at creation.
        if key == STATUS_KEY:
            continue
        if _is_upload(value):
            # Files are recorded by name only; nameless parts are dropped.
            if not value.filename:
                continue
            value = value.filename
        buckets.setdefault(bucket_for(key), {})[key] = normalize_value(value)
    return buckets


def encode_submission(fields: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> EncodedApplication:
    """
    Bucket and normalize a flat submission.

    Accepts a mapping (JSON body) or an iterable of (key, value) pairs (form data,
    where keys may repeat; the last value wins). Raises ValidationError when the
    applicant bucket ends up with no values.
    """
    items = fields.items() if isinstance(fields, Mapping) else fields
    buckets = _bucketize(items)

    applicant = buckets.get(APPLICANT) or {}
    if _none_if_empty(applicant) is None:
        logger.warning("submission rejected: applicant bucket empty (keys=%d)", len(applicant))
        raise ValidationError("Missing applicant data")

    return EncodedApplication(
        applicant=applicant,
        co_applicant=_none_if_empty(buckets.get(CO_APPLICANT)),
        reference=_none_if_empty(buckets.get(REFERENCE)),
        declarations=_none_if_empty(buckets.get(DECLARATIONS)),
        consent=compact_consent(buckets.get(CONSENT)),
        assets=_none_if_empty(buckets.get(ASSETS)),
        liabilities=_none_if_empty(buckets.get(LIABILITIES)),
        totals=_none_if_empty(buckets.get(TOTALS)),
        financing_details=compact_financing(buckets.get(FINANCING_DETAILS)),
    )
