from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from movequote.config import PricingConfig
from movequote.core.context import QuoteContext
from movequote.core.engine import BaseCostEngine
from movequote.modules import build_catalog
from movequote.multi_offers import MultiQuoteService, load_scenarios


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return PricingConfig()


@pytest.fixture
def registry(config):
    return build_catalog(config)


@pytest.fixture
def engine(registry, config):
    return BaseCostEngine(registry, config)


@pytest.fixture
def base_ctx(fixed_now):
    # Wednesday 12 March 2025, ground floor on both sides, F3 (30 m³), 30 km
    return QuoteContext(
        pickup_address="10 rue de Rivoli",
        pickup_postal_code="75001",
        pickup_city="Paris",
        pickup_floor=0,
        delivery_address="5 place Bellecour",
        delivery_postal_code="69002",
        delivery_city="Lyon",
        delivery_floor=0,
        moving_date="2025-03-12",
        quoted_at=fixed_now,
        housing_type="F3",
        distance_km=Decimal("30"),
    )


@pytest.fixture
def scenarios(registry):
    return load_scenarios(registry=registry)


@pytest.fixture
def multi_quote(registry, scenarios, config):
    return MultiQuoteService(registry, scenarios, config)
