from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from movequote.errors import FatalInputError
from movequote.modules.normalization import (
    clean_city,
    clean_floor,
    clean_number,
    clean_postal_code,
    clean_text,
    department_of,
    normalize_addresses,
    parse_moving_date,
    sanitize_input,
    validate_date,
)

D = Decimal


def test_clean_text_strips_markup_and_spaces():
    raw = "  12 <b>rue</b>   du <script>alert('x')</script>Bac  "
    assert clean_text(raw, 200) == "12 rue du Bac"
    assert clean_text("x" * 300, 200) == "x" * 200
    assert clean_text("<p></p>", 200) is None


def test_clean_city_keeps_letters_spaces_dashes():
    assert clean_city("Saint-Étienne 42!") == "Saint-Étienne"


def test_clean_postal_code():
    assert clean_postal_code("75 001") == "75001"
    assert clean_postal_code("7500") is None
    assert clean_postal_code("ABCDE") is None


def test_clean_numbers_and_floors():
    assert clean_number("12.5") == D("12.5")
    assert clean_number(-1) is None
    assert clean_number("NaN") is None
    assert clean_number("Infinity") is None
    assert clean_number("abc") is None
    assert clean_floor("3.7") == 3
    assert clean_floor(-2) is None


def test_parse_moving_date():
    assert parse_moving_date("2025-03-12") == (date(2025, 3, 12), None)
    assert parse_moving_date("2025-03-12T08:30:00") == (date(2025, 3, 12), 8)
    assert parse_moving_date("12/03/2025") == (None, None)
    assert parse_moving_date(None) == (None, None)


def test_sanitize_input_records_stats(base_ctx):
    ctx = replace(
        base_ctx,
        pickup_address="<b>10</b> rue de Rivoli",
        delivery_postal_code="123",
        distance_km=D("-5"),
        pickup_floor=2,
    )
    out = sanitize_input(ctx)

    assert out.pickup_address == "10 rue de Rivoli"
    assert out.delivery_postal_code is None
    assert out.distance_km is None
    assert out.computed.activated_modules == ("input-sanitization",)
    stats = out.computed.metadata["sanitization_stats"]
    assert stats["modified_fields"] == 3
    assert stats["invalid_fields"] == 2


def test_sanitize_input_normalizes_number_types(base_ctx):
    out = sanitize_input(replace(base_ctx, estimated_volume=25))
    assert isinstance(out.estimated_volume, Decimal)
    assert out.computed.metadata["sanitization_stats"]["modified_fields"] == 0


def test_sanitize_input_keeps_unparseable_date(base_ctx):
    out = sanitize_input(replace(base_ctx, moving_date=" not-a-date "))

    assert out.moving_date == " not-a-date "
    assert out.computed.metadata["sanitization_stats"]["invalid_fields"] == 1


def test_unparseable_date_is_reported_as_invalid(engine, base_ctx):
    with pytest.raises(FatalInputError) as exc:
        engine.execute(replace(base_ctx, moving_date="not-a-date"))

    assert exc.value.code == "MOVING_DATE_INVALID"
    assert exc.value.module_id == "date-validation"


def test_validate_date_records_calendar_facts(base_ctx):
    out = validate_date(replace(base_ctx, moving_date="2025-03-14T15:00:00"))
    meta = out.computed.metadata

    assert meta["moving_weekday"] == 4
    assert meta["moving_day_of_month"] == 14
    assert meta["moving_hour"] == 15
    assert meta["days_until_move"] == 72


@pytest.mark.parametrize(
    "moving_date, code",
    [
        (None, "MOVING_DATE_MISSING"),
        ("", "MOVING_DATE_MISSING"),
        ("not-a-date", "MOVING_DATE_INVALID"),
        ("2024-12-31", "MOVING_DATE_IN_PAST"),
    ],
)
def test_validate_date_is_fatal(base_ctx, moving_date, code):
    with pytest.raises(FatalInputError) as exc:
        validate_date(replace(base_ctx, moving_date=moving_date))
    assert exc.value.code == code


def test_same_day_move_is_allowed(base_ctx):
    out = validate_date(replace(base_ctx, moving_date="2025-01-01"))
    assert out.computed.metadata["days_until_move"] == 0


def test_department_of():
    assert department_of("92100", None) == "92"
    assert department_of(None, "3 rue X, 69003 Lyon") == "69"
    assert department_of(None, "somewhere") is None


def test_normalize_addresses_detects_idf(base_ctx, config):
    out = normalize_addresses(base_ctx, config)
    meta = out.computed.metadata
    assert meta["pickup_is_idf"] is True
    assert meta["delivery_is_idf"] is False
    assert meta["delivery_department"] == "69"


def test_missing_address_is_fatal(base_ctx, config):
    ctx = replace(base_ctx, delivery_address=None, delivery_postal_code=None)
    with pytest.raises(FatalInputError) as exc:
        normalize_addresses(ctx, config)
    assert exc.value.code == "ADDRESS_MISSING"
    assert exc.value.meta == {"sides": ["delivery"]}
