"""
In-memory repositories.

Same interface as the Supabase repositories, backed by plain row dicts. Used
for local development when Supabase is not configured (seeded from
config/default.yaml) and as test doubles.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pricing.data.repositories import parse_discount_rows
from pricing.discounts.records import DiscountCode
from pricing.discounts.selector import selection_key
from pricing.tax.records import TaxRate


class InMemoryDiscountRepository:
    def __init__(self, rows: Iterable[Dict[str, Any]] = ()):
        self.discounts: List[DiscountCode] = parse_discount_rows(list(rows))

    async def get_by_code(self, code: str) -> Optional[DiscountCode]:
        code = code.strip().upper()
        for discount in self.discounts:
            if discount.code == code:
                return discount
        return None

    async def list_auto_apply(
        self,
        subtotal: Decimal,
        now: datetime,
        limit: int = 1,
        exclude_code: Optional[str] = None,
    ) -> List[DiscountCode]:
        excluded = exclude_code.strip().upper() if exclude_code else None
        matches = [
            d for d in self.discounts
            if d.auto_apply and d.is_active
            and d.code != excluded
            and (d.valid_from is None or d.valid_from <= now)
            and (d.valid_until is None or d.valid_until >= now)
            and (d.minimum_purchase is None or d.minimum_purchase <= subtotal)
        ]
        matches.sort(key=selection_key)
        return matches[:limit]


class InMemoryOrderRepository:
    def __init__(self, completed_user_ids: Iterable[str] = ()):
        self.completed_user_ids = set(completed_user_ids)

    async def has_completed_order(self, user_id: str) -> bool:
        return user_id in self.completed_user_ids


class InMemoryTaxRateRepository:
    def __init__(self, rows: Iterable[Dict[str, Any]] = ()):
        self.rates: Dict[tuple, TaxRate] = {}
        for row in rows:
            rate = TaxRate.from_row(row)
            self.rates[(rate.country_code, rate.state_code)] = rate

    async def find(self, country_code: str, state_code: Optional[str]) -> Optional[TaxRate]:
        return self.rates.get((country_code, state_code or None))


class InMemoryVariantDiscountGateway:
    """Returns canned function results keyed by variant id (none = no discount)."""

    def __init__(self, results: Optional[Dict[str, Dict[str, Any]]] = None):
        self.results = dict(results or {})

    async def get_variant_discount(
        self,
        variant_id: str,
        product_id: str,
        category_id: Optional[str],
        base_price: Decimal,
    ) -> Optional[Dict[str, Any]]:
        return self.results.get(variant_id)
