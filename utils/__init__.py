"""Shared utilities for the backend."""
from utils.formatting import MISSING, fmt_date, fmt_money, full_name, iso_or_none, parse_date

__all__ = [
    "MISSING",
    "fmt_date",
    "fmt_money",
    "full_name",
    "iso_or_none",
    "parse_date",
]
