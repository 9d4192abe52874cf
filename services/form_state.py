"""
Server-side counterpart of the intake form's reactive behaviour.

The form keeps a flat key/value state. Two things happen before submission:
the co-applicant address can mirror the applicant's, and the financing amount
and net worth totals are derived from other fields.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from services.encoder import net_amount, num_or_none

SECTION_FIELDS: dict[str, tuple[str, ...]] = {
    "applicant": (
        "app-first", "app-last", "app-dob", "app-sin", "app-status",
        "app-email", "app-phone",
        "app-street", "app-city", "app-province", "app-postal",
        "app-occupancy", "app-housing-payment", "app-tenure",
        "app-prev-street", "app-prev-city", "app-prev-province", "app-prev-postal",
    ),
    "employment": (
        "emp-employer", "emp-position", "emp-paytype", "emp-income", "emp-tenure",
        "emp-street", "emp-city", "emp-province", "emp-postal",
        "emp-prev-employer", "emp-prev-position", "emp-prev-tenure",
    ),
    "reference": (
        "ref-name", "ref-relationship", "ref-phone", "ref-email",
        "ref-street", "ref-city", "ref-province", "ref-postal",
    ),
    "co_applicant": (
        "co-first", "co-last", "co-dob", "co-sin", "co-status",
        "co-email", "co-phone",
        "co-street", "co-city", "co-province", "co-postal",
        "co-occupancy", "co-housing-payment", "co-tenure",
        "co-prev-street", "co-prev-city", "co-prev-province", "co-prev-postal",
    ),
    "co_employment": (
        "co-emp-employer", "co-emp-position", "co-emp-paytype", "co-emp-income", "co-emp-tenure",
        "co-emp-street", "co-emp-city", "co-emp-province", "co-emp-postal",
        "co-emp-prev-employer", "co-emp-prev-position", "co-emp-prev-tenure",
    ),
    "assets": (
        "asset-bank-name-1", "asset-bank-balance-1",
        "asset-invest-type-1", "asset-invest-amount-1",
        "asset-re-type-1", "asset-re-value-1",
        "asset-vehicle-status-1", "asset-vehicle-value-1",
        "asset-other-desc-1", "asset-other-value-1",
    ),
    "liabilities": (
        "debt-cc-desc-1", "debt-cc-balance-1", "debt-cc-pay-1",
        "debt-loan-desc-1", "debt-loan-balance-1", "debt-loan-pay-1",
        "debt-mortgage-desc-1", "debt-mortgage-balance-1", "debt-mortgage-pay-1",
        "debt-other-desc-1", "debt-other-balance-1",
    ),
    "networth": ("nw-assets", "nw-liabs", "nw-net"),
    "declarations": (
        "app-bankruptcy", "app-bankruptcy-year",
        "co-bankruptcy", "co-bankruptcy-year",
    ),
    "consent": ("sign-app-name", "sign-app-date", "sign-co-name", "sign-co-date"),
    "financing": (
        "fin-purchase-price", "fin-down-payment", "fin-finance-amount", "fin-closing-date",
        "fin-property-address", "fin-property-city", "fin-property-province",
        "fin-property-postal-code",
    ),
}

# Copied applicant -> co-applicant when "same address" is ticked.
SHARED_ADDRESS_FIELDS = (
    "street", "city", "province", "postal", "occupancy", "housing-payment", "tenure",
)

_ASSET_AMOUNT = re.compile(r"^asset-[a-z]+-(balance|amount|value)-\d+$")
_DEBT_BALANCE = re.compile(r"^debt-[a-z]+-balance-\d+$")


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "on", "yes", "y")
    return bool(value)


def blank_form_state() -> dict[str, Any]:
    """Every catalogued field, unset; the state an untouched form submits."""
    return {name: None for names in SECTION_FIELDS.values() for name in names}


def copy_applicant_address(values: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(values)
    if _truthy(out.get("has-coapp")) and _truthy(out.get("has-coapp-address")):
        for name in SHARED_ADDRESS_FIELDS:
            out[f"co-{name}"] = out.get(f"app-{name}")
    return out


def _sum_matching(values: Mapping[str, Any], pattern: re.Pattern) -> int | float | None:
    total: int | float = 0
    for key, value in values.items():
        if pattern.match(key):
            n = num_or_none(value)
            if n is None:
                continue
            try:
                total += n
            except OverflowError:
                continue
    return num_or_none(total)


def _difference(a: int | float | None, b: int | float | None) -> int | float | None:
    if a is None or b is None:
        return None
    try:
        return num_or_none(a - b)
    except OverflowError:
        return None


def derive_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Compute the financing amount and net worth totals from the current form state."""
    derived: dict[str, Any] = {}

    finance_amount = net_amount(
        num_or_none(values.get("fin-purchase-price")),
        num_or_none(values.get("fin-down-payment")),
    )
    if finance_amount is not None:
        derived["fin-finance-amount"] = finance_amount

    assets = _sum_matching(values, _ASSET_AMOUNT)
    liabilities = _sum_matching(values, _DEBT_BALANCE)
    derived["nw-assets"] = assets
    derived["nw-liabs"] = liabilities
    derived["nw-net"] = _difference(assets, liabilities)
    return derived


def apply_form_state(values: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the form state after the address copy and derived values, plus the derived values alone.

    Catalogued fields missing from ``values`` appear in the state as None.
    """
    state = copy_applicant_address({**blank_form_state(), **values})
    derived = derive_values(state)
    state.update(derived)
    return state, derived
