"""Pytest configuration for pricing service tests."""

import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pricing.core.config import PricingConfig  # noqa: E402
from pricing.core.service import PricingService  # noqa: E402
from pricing.data.memory import (  # noqa: E402
    InMemoryDiscountRepository,
    InMemoryOrderRepository,
    InMemoryTaxRateRepository,
    InMemoryVariantDiscountGateway,
)


# Fixed "now" shared by every test that evaluates validity windows
NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def discount_row(code, **overrides):
    """A discount_codes row with sensible defaults (active, 10% off, no limits)."""
    row = {
        "id": f"id-{code.lower()}",
        "code": code,
        "discount_type": "percentage",
        "discount_value": 10,
        "maximum_discount": None,
        "minimum_purchase": None,
        "stackable": False,
        "auto_apply": False,
        "first_purchase_only": False,
        "priority": 0,
        "valid_from": None,
        "valid_until": None,
        "is_active": True,
    }
    row.update(overrides)
    return row


TAX_ROWS = [
    {"country_code": "CA", "state_code": None, "rate": 0.05, "tax_type": "GST", "gst": 0.05},
    {
        "country_code": "CA", "state_code": "QC", "state_name": "Quebec",
        "rate": 0.14975, "tax_type": "GST+QST", "gst": 0.05, "qst": 0.09975,
    },
]


@pytest.fixture
def config():
    return PricingConfig(
        first_order_code="WELCOME30",
        auto_apply_candidate_limit=1,
        store_timeout_seconds=1.0,
        store_retry_attempts=1,
        store_retry_backoff_seconds=0,
    )


@pytest.fixture
def make_service(config):
    """Factory building a PricingService over in-memory repositories."""
    def _make(
        discounts=(),
        completed_users=(),
        tax_rows=TAX_ROWS,
        variant_results=None,
        discount_repo=None,
        order_repo=None,
        tax_repo=None,
        **config_overrides,
    ):
        cfg = config
        if config_overrides:
            cfg = PricingConfig(**{**config.__dict__, **config_overrides})
        return PricingService(
            discounts=discount_repo or InMemoryDiscountRepository(discounts),
            orders=order_repo or InMemoryOrderRepository(completed_users),
            tax_rates=tax_repo or InMemoryTaxRateRepository(tax_rows),
            variant_discounts=InMemoryVariantDiscountGateway(variant_results),
            config=cfg,
            clock=lambda: NOW,
        )
    return _make
