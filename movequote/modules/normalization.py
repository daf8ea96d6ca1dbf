"""
Phase 1 (10-19): input sanitization and mandatory-field validation.

These are the only modules allowed to raise: invalid mandatory input is
fatal and aborts the whole computation (FatalInputError).
"""
from __future__ import annotations

import math
import re
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

from ..config import PricingConfig
from ..core.context import SIDES, QuoteContext
from ..core.module import Module
from ..errors import FatalInputError
from .common import done

D = Decimal

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_SPACES_RE = re.compile(r"\s+")
_CITY_RE = re.compile(r"[^A-Za-zÀ-ÖØ-öø-ÿ\s\-]")
_POSTAL_IN_ADDRESS_RE = re.compile(r"\b(\d{5})\b")

MAX_ADDRESS_LENGTH = 200
MAX_CITY_LENGTH = 50


# -----------------------------
# Sanitizers (pure helpers)
# -----------------------------


def clean_text(value: Any, max_length: int) -> Optional[str]:
    if value is None:
        return None
    s = _SCRIPT_RE.sub("", str(value))
    s = _TAG_RE.sub("", s)
    s = _SPACES_RE.sub(" ", s).strip()
    return s[:max_length] or None


def clean_city(value: Any) -> Optional[str]:
    s = clean_text(value, MAX_CITY_LENGTH)
    if s is None:
        return None
    s = _SPACES_RE.sub(" ", _CITY_RE.sub("", s)).strip()
    return s or None


def clean_postal_code(value: Any) -> Optional[str]:
    if value is None:
        return None
    digits = re.sub(r"\D", "", str(value))
    return digits if len(digits) == 5 else None


def parse_moving_date(value: Any) -> Tuple[Optional[date], Optional[int]]:
    """Returns (date, hour); hour only when a time part is present."""
    if value is None:
        return None, None
    s = str(value).strip()
    if not s:
        return None, None
    try:
        if len(s) <= 10:
            return date.fromisoformat(s), None
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        return dt.date(), dt.hour
    except ValueError:
        return None, None


def clean_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    parsed, _ = parse_moving_date(value)
    return str(value).strip() if parsed is not None else None


def clean_number(value: Any) -> Optional[D]:
    if value is None:
        return None
    try:
        n = D(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not n.is_finite() or n < 0:
        return None
    return n


def clean_floor(value: Any) -> Optional[int]:
    n = clean_number(value)
    if n is None:
        return None
    return int(math.floor(n))


# -----------------------------
# input-sanitization (10)
# -----------------------------

_TEXT_FIELDS = {
    "pickup_address": partial(clean_text, max_length=MAX_ADDRESS_LENGTH),
    "delivery_address": partial(clean_text, max_length=MAX_ADDRESS_LENGTH),
    "pickup_city": clean_city,
    "delivery_city": clean_city,
    "pickup_postal_code": clean_postal_code,
    "delivery_postal_code": clean_postal_code,
}

_NUMBER_FIELDS = (
    "estimated_volume",
    "surface",
    "cleaning_surface",
    "distance_km",
    "declared_value",
    "pickup_carry_distance",
    "delivery_carry_distance",
    "client_supplies_total",
)

_FLOOR_FIELDS = ("pickup_floor", "delivery_floor")


def sanitize_input(ctx: QuoteContext) -> QuoteContext:
    changes: Dict[str, Any] = {}
    total = modified = invalid = 0

    def check(name: str, cleaner) -> None:
        nonlocal total, modified, invalid
        raw = getattr(ctx, name)
        if raw is None:
            return
        total += 1
        cleaned = cleaner(raw)
        if cleaned is None:
            invalid += 1
        if cleaned != raw:
            modified += 1
        if cleaned != raw or type(cleaned) is not type(raw):
            changes[name] = cleaned

    for name, cleaner in _TEXT_FIELDS.items():
        check(name, cleaner)
    for name in _NUMBER_FIELDS:
        check(name, clean_number)
    for name in _FLOOR_FIELDS:
        check(name, clean_floor)

    # an unparseable moving date is kept as is: date-validation rejects it as invalid
    if ctx.moving_date is not None:
        total += 1
        cleaned_date = clean_date(ctx.moving_date)
        if cleaned_date is None:
            invalid += 1
        elif cleaned_date != ctx.moving_date:
            modified += 1
            changes["moving_date"] = cleaned_date

    ctx = replace(ctx, **changes)
    computed = ctx.computed.with_metadata(
        sanitization_stats={
            "total_fields": total,
            "modified_fields": modified,
            "invalid_fields": invalid,
        }
    )
    return done(ctx, computed, "input-sanitization")


# -----------------------------
# date-validation (11), fatal
# -----------------------------


def validate_date(ctx: QuoteContext) -> QuoteContext:
    if not ctx.moving_date:
        raise FatalInputError("MOVING_DATE_MISSING", "A moving date is required.")

    moving, hour = parse_moving_date(ctx.moving_date)
    if moving is None:
        raise FatalInputError(
            "MOVING_DATE_INVALID",
            f"Unparseable moving date: {ctx.moving_date!r}",
            meta={"moving_date": ctx.moving_date},
        )

    today = ctx.quoted_at.date() if ctx.quoted_at else date.today()
    if moving < today:
        raise FatalInputError(
            "MOVING_DATE_IN_PAST",
            f"Moving date {moving.isoformat()} is before {today.isoformat()}.",
            meta={"moving_date": moving.isoformat(), "quoted_at": today.isoformat()},
        )

    computed = ctx.computed.with_metadata(
        moving_date=moving.isoformat(),
        moving_weekday=moving.weekday(),
        moving_day_of_month=moving.day,
        moving_hour=hour,
        days_until_move=(moving - today).days,
    )
    return done(ctx, computed, "date-validation")


# -----------------------------
# address-normalization (12), fatal
# -----------------------------


def department_of(postal_code: Optional[str], address: Optional[str]) -> Optional[str]:
    code = postal_code
    if not code and address:
        m = _POSTAL_IN_ADDRESS_RE.search(address)
        code = m.group(1) if m else None
    return code[:2] if code else None


def normalize_addresses(ctx: QuoteContext, cfg: PricingConfig) -> QuoteContext:
    missing: List[str] = [
        side
        for side in SIDES
        if not ctx.access(side).address and not ctx.access(side).postal_code
    ]
    if missing:
        raise FatalInputError(
            "ADDRESS_MISSING",
            f"Address or postal code required for: {missing}",
            meta={"sides": missing},
        )

    idf = set(cfg.logistics.idf_departments)
    values: Dict[str, Any] = {}
    for side in SIDES:
        point = ctx.access(side)
        dept = department_of(point.postal_code, point.address)
        values[f"{side}_department"] = dept
        values[f"{side}_is_idf"] = dept in idf

    computed = ctx.computed.with_metadata(**values)
    return done(ctx, computed, "address-normalization")


def modules(cfg: PricingConfig) -> List[Module]:
    return [
        Module(
            id="input-sanitization",
            description="Strip markup, validate formats and reject negative numbers",
            priority=10,
            apply=sanitize_input,
        ),
        Module(
            id="date-validation",
            description="Moving date must be present, parseable and not in the past",
            priority=11,
            apply=validate_date,
        ),
        Module(
            id="address-normalization",
            description="Both sides need an address or postal code; detect Ile-de-France",
            priority=12,
            apply=partial(normalize_addresses, cfg=cfg),
        ),
    ]
