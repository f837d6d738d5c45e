"""Parsers for the free-text answers users type during multi-step flows.

Every parser returns ``None`` on bad input instead of raising, so callers can
re-prompt without a try/except around each step.
"""

import math
import re
from datetime import date

_SUFFIX_MULTIPLIERS = {
    "jt": 1_000_000,
    "juta": 1_000_000,
    "m": 1_000_000,
    "rb": 1_000,
    "ribu": 1_000,
    "k": 1_000,
}

_PLAIN = re.compile(r"\d+")
_DOT_GROUPED = re.compile(r"\d{1,3}(\.\d{3})+")
_SUFFIXED = re.compile(r"(\d+(?:[.,]\d+)?)(jt|juta|rb|ribu|k|m)")
_SKIP_WORDS = {"skip", "lewati", "-", "ga tau", "gatau", "tidak tahu"}


def parse_amount(text: str) -> int | None:
    """Parse Rupiah shorthand: ``3500000``, ``3.500.000``, ``3.5jt``, ``500rb``, ``45k``."""
    cleaned = re.sub(r"\s+", "", text.strip().lower())
    cleaned = cleaned.removeprefix("rp")

    if _PLAIN.fullmatch(cleaned):
        return int(cleaned)
    if _DOT_GROUPED.fullmatch(cleaned):
        return int(cleaned.replace(".", ""))

    match = _SUFFIXED.fullmatch(cleaned)
    if match:
        number = float(match.group(1).replace(",", "."))
        return round(number * _SUFFIX_MULTIPLIERS[match.group(2)])
    return None


def parse_positive_amount(text: str) -> int | None:
    amount = parse_amount(text)
    if amount is None or amount <= 0:
        return None
    return amount


def parse_total_with_interest(text: str) -> int | None:
    """Like ``parse_positive_amount`` but ``skip`` or ``0`` mean unknown (stored as 0)."""
    if text.strip().lower() in _SKIP_WORDS:
        return 0
    return parse_amount(text)


def parse_platform(text: str) -> str | None:
    name = " ".join(text.split())
    return name or None


def parse_count(text: str) -> int | None:
    cleaned = text.strip().lower().rstrip("x")
    cleaned = re.sub(r"\s*(bulan|bln|kali)$", "", cleaned)
    if not _PLAIN.fullmatch(cleaned):
        return None
    count = int(cleaned)
    return count if count > 0 else None


def parse_due_day(text: str) -> int | None:
    cleaned = re.sub(r"^(tanggal|tgl)\s*", "", text.strip().lower())
    if not _PLAIN.fullmatch(cleaned):
        return None
    day = int(cleaned)
    return day if 1 <= day <= 31 else None


def parse_fee_value(text: str) -> float | None:
    """Non-negative, possibly fractional number: ``5``, ``0.25``, ``0,25``, ``5%``."""
    cleaned = text.strip().lower().rstrip("%").strip().replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        amount = parse_amount(text)
        return float(amount) if amount is not None else None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


def coerce_amount(value: object) -> float | None:
    """Best-effort conversion of a classifier-supplied amount to a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        return float(value)
    if isinstance(value, str):
        parsed = parse_amount(value)
        if parsed is not None:
            return float(parsed)
        digits = re.sub(r"[^0-9]", "", value)
        return float(digits) if digits else None
    return None


def coerce_date(value: object) -> date | None:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None
