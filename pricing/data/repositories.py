"""
Supabase-backed repositories for the pricing service.

Each repository wraps one table (or RPC) and returns domain records. All of
them are read-only and uncached: pricing must see the current rows on every
request. Store faults propagate as StoreUnavailableError; the service decides
whether to degrade.

The auto-apply query pushes the cheap filters down to the store
(auto_apply, is_active, validity window, minimum purchase) and orders by
priority so only a bounded candidate set crosses the wire. The service
re-validates whatever comes back.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pricing.discounts.records import DiscountCode
from pricing.tax.records import TaxRate
from pricing.utils.logger import get_logger
from pricing.utils.supabase_client import SupabaseClient

logger = get_logger("data.repositories")

DISCOUNT_TABLE = "discount_codes"
ORDER_TABLE = "orders"
TAX_TABLE = "tax_rates"
VARIANT_DISCOUNT_RPC = "get_variant_discount"

AUTO_APPLY_ORDER = "priority.desc,code.asc,id.asc"


def store_timestamp(now: datetime) -> str:
    """UTC timestamp in the form PostgREST compares against timestamptz."""
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_discount_rows(rows: List[Dict[str, Any]]) -> List[DiscountCode]:
    discounts = []
    for row in rows:
        try:
            discounts.append(DiscountCode.from_row(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unusable discount row {row.get('code')!r}: {e}")
    return discounts


class SupabaseDiscountRepository:
    """Reads the `discount_codes` table."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def get_by_code(self, code: str) -> Optional[DiscountCode]:
        rows = await self.client.select(DISCOUNT_TABLE, filters={"code": code.strip().upper()}, limit=1)
        discounts = parse_discount_rows(rows)
        return discounts[0] if discounts else None

    async def list_auto_apply(
        self,
        subtotal: Decimal,
        now: datetime,
        limit: int = 1,
        exclude_code: Optional[str] = None,
    ) -> List[DiscountCode]:
        stamp = store_timestamp(now)
        filters: Dict[str, Any] = {"auto_apply": True, "is_active": True}
        if exclude_code:
            filters["code"] = f"neq.{exclude_code.strip().upper()}"
        rows = await self.client.select(
            DISCOUNT_TABLE,
            filters=filters,
            or_filters=[
                f"valid_from.is.null,valid_from.lte.{stamp}",
                f"valid_until.is.null,valid_until.gte.{stamp}",
                f"minimum_purchase.is.null,minimum_purchase.lte.{subtotal}",
            ],
            order=AUTO_APPLY_ORDER,
            limit=limit,
        )
        return parse_discount_rows(rows)


class SupabaseOrderRepository:
    """Existence checks against the `orders` table."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def has_completed_order(self, user_id: str) -> bool:
        # Identity comes from a request header; never let it carry an operator
        rows = await self.client.select(
            ORDER_TABLE,
            filters={"user_id": f"eq.{user_id}", "payment_status": "completed"},
            select="id",
            limit=1,
        )
        return len(rows) > 0


class SupabaseTaxRateRepository:
    """Reads the `tax_rates` table."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def find(self, country_code: str, state_code: Optional[str]) -> Optional[TaxRate]:
        filters = {
            "country_code": country_code,
            "state_code": state_code if state_code else "is.null",
        }
        rows = await self.client.select(TAX_TABLE, filters=filters, limit=1)
        if not rows:
            return None
        try:
            return TaxRate.from_row(rows[0])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unusable tax row for {country_code}/{state_code}: {e}")
            return None


class SupabaseVariantDiscountGateway:
    """
    Calls the database-side variant discount function.

    The function owns all variant/product/category targeting; its answer
    is passed through untouched.
    """

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def get_variant_discount(
        self,
        variant_id: str,
        product_id: str,
        category_id: Optional[str],
        base_price: Decimal,
    ) -> Optional[Dict[str, Any]]:
        result = await self.client.rpc(VARIANT_DISCOUNT_RPC, {
            "p_variant_id": variant_id,
            "p_product_id": product_id,
            "p_category_id": category_id,
            "p_base_price": float(base_price),
        })
        # Set-returning functions come back as a list of rows
        if isinstance(result, list):
            return result[0] if result else None
        return result if isinstance(result, dict) else None
