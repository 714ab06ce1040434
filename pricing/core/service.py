"""
Pricing orchestration.

PricingService composes the repositories, the discount rules and the tax
resolver into the four checkout operations (validate a code, pick an
auto-apply discount, first-order offer, tax) plus the variant price merge.

Each call reads what it needs once, issuing independent reads concurrently,
then computes synchronously. `now` is taken once per call. Nothing is cached
or written.

Failure policy:
  - business-rule failures return typed results, never raise
  - store faults degrade to "no discount" / "no tax", except code validation,
    which raises StoreUnavailableError
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from pricing.core.config import PricingConfig, get_config
from pricing.core.errors import InputError, StoreUnavailableError
from pricing.data.repositories import DISCOUNT_TABLE, ORDER_TABLE, VARIANT_DISCOUNT_RPC
from pricing.discounts.calculator import DiscountSummary, success_message, summarize
from pricing.discounts.eligibility import is_eligible
from pricing.discounts.records import (
    ZERO,
    CartItem,
    EligibilityContext,
    FailureKind,
    cart_subtotal,
    failure_message,
    to_decimal,
)
from pricing.discounts.selector import select_best
from pricing.tax.records import TaxResult
from pricing.tax.resolver import TaxResolver
from pricing.utils.logger import get_logger

logger = get_logger("core.service")

CODE_REQUIRED = "Discount code is required"
VALIDATION_FAILED = "Failed to validate discount code"
NOT_AUTHENTICATED = "User not authenticated"
ALREADY_ORDERED = "User has already placed orders"
FIRST_ORDER_UNAVAILABLE = "First-order discount not available"


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    message: str
    reason: Optional[FailureKind] = None
    discount: Optional[DiscountSummary] = None
    auto_apply_discount: Optional[DiscountSummary] = None

    @property
    def amount_off(self) -> Decimal:
        return self.discount.amount_off if self.discount else ZERO


@dataclass(frozen=True)
class AutoApplyResult:
    has_auto_apply: bool
    discount: Optional[DiscountSummary] = None


@dataclass(frozen=True)
class FirstOrderResult:
    has_first_order_discount: bool
    discount: Optional[DiscountSummary] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class VariantInput:
    variant_id: str
    price_adjustment: Decimal = ZERO


@dataclass(frozen=True)
class VariantPrice:
    variant_id: str
    price: Decimal
    has_discount: bool
    discount_percentage: Decimal
    discounted_price: Decimal


@dataclass(frozen=True)
class VariantPricingResult:
    product_id: str
    variants: List[VariantPrice] = field(default_factory=list)


def merge_variant_discount(variant_id: str, price: Decimal, result: Optional[Dict[str, Any]]) -> VariantPrice:
    """Fold the store function's answer into a variant price; no answer = no discount."""
    if not result or not result.get("has_discount"):
        return VariantPrice(variant_id, price, False, ZERO, price)
    discounted = to_decimal(result.get("discounted_price"))
    return VariantPrice(
        variant_id=variant_id,
        price=price,
        has_discount=True,
        discount_percentage=to_decimal(result.get("discount_percentage")) or ZERO,
        discounted_price=discounted if discounted is not None else price,
    )


async def _nothing():
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Service
# ============================================================================

class PricingService:
    """
    Checkout pricing operations over injected repositories.

    Args:
        discounts: provides ``get_by_code`` and ``list_auto_apply``
        orders: provides ``has_completed_order``
        tax_rates: provides ``find(country_code, state_code)``
        variant_discounts: provides ``get_variant_discount`` (optional)
        config: tunables; defaults to the global config
        clock: returns the current aware datetime (injectable for tests)
        store_client: shared Supabase client, closed by ``aclose`` (optional)
    """

    def __init__(
        self,
        discounts,
        orders,
        tax_rates,
        variant_discounts=None,
        config: Optional[PricingConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        store_client=None,
    ):
        self.discounts = discounts
        self.orders = orders
        self.variant_discounts = variant_discounts
        self.config = config or get_config()
        self.clock = clock or _utcnow
        self.tax_resolver = TaxResolver(tax_rates, timeout_seconds=self.config.store_timeout_seconds)
        self.store_client = store_client

    async def aclose(self) -> None:
        if self.store_client is not None:
            await self.store_client.aclose()

    async def _bounded(self, awaitable, source: str):
        """Await a store read, turning a timeout into a store failure."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.store_timeout_seconds)
        except asyncio.TimeoutError:
            raise StoreUnavailableError(source, "timed out")

    # ------------------------------------------------------------------
    # Explicit code
    # ------------------------------------------------------------------

    async def validate(
        self,
        code: Optional[str],
        subtotal: Optional[Decimal] = None,
        cart_items: Iterable[CartItem] = (),
        user_id: Optional[str] = None,
    ) -> ValidationResult:
        if not code or not code.strip():
            raise InputError("code", CODE_REQUIRED)
        normalized = code.strip().upper()
        items = list(cart_items)
        if subtotal is None:
            subtotal = cart_subtotal(items)
        now = self.clock()

        discount, history, candidates = await asyncio.gather(
            self._bounded(self.discounts.get_by_code(normalized), DISCOUNT_TABLE),
            self._bounded(self.orders.has_completed_order(user_id), ORDER_TABLE) if user_id else _nothing(),
            self._bounded(
                self.discounts.list_auto_apply(
                    subtotal, now, limit=self.config.auto_apply_candidate_limit, exclude_code=normalized,
                ),
                DISCOUNT_TABLE,
            ),
            return_exceptions=True,
        )
        for outcome in (discount, history, candidates):
            if isinstance(outcome, BaseException) and not isinstance(outcome, StoreUnavailableError):
                raise outcome

        if isinstance(discount, StoreUnavailableError):
            logger.error(f"validate {normalized}: discount lookup failed: {discount}")
            raise discount

        if discount is None or not discount.is_active:
            logger.info(f"validate {normalized}: not found or inactive")
            return ValidationResult(
                is_valid=False,
                message=failure_message(FailureKind.CODE_NOT_FOUND),
                reason=FailureKind.CODE_NOT_FOUND,
            )

        has_completed_order = None
        if isinstance(history, StoreUnavailableError):
            if discount.first_purchase_only:
                logger.error(f"validate {normalized}: order history lookup failed: {history}")
                raise history
            logger.warning(f"validate {normalized}: order history unavailable, not needed for this code")
        elif user_id:
            has_completed_order = history

        context = EligibilityContext(
            subtotal=subtotal,
            now=now,
            cart_items=items,
            user_id=user_id,
            has_completed_order=has_completed_order,
        )
        eligibility = is_eligible(discount, context)
        if not eligibility.ok:
            logger.info(f"validate {normalized}: ineligible ({eligibility.reason.value})")
            return ValidationResult(
                is_valid=False,
                message=failure_message(eligibility.reason, discount),
                reason=eligibility.reason,
            )

        summary = summarize(discount, subtotal)

        auto_apply = None
        if isinstance(candidates, StoreUnavailableError):
            logger.warning(f"validate {normalized}: auto-apply lookup failed, omitting: {candidates}")
        else:
            best = select_best([c for c in candidates if c.id != discount.id], context)
            if best is not None:
                auto_apply = summarize(best, subtotal, is_auto_apply=True)

        logger.info(
            f"validate {normalized}: valid amount_off={summary.amount_off} "
            f"auto_apply={auto_apply.code if auto_apply else None}"
        )
        return ValidationResult(
            is_valid=True,
            message=success_message(discount, subtotal),
            discount=summary,
            auto_apply_discount=auto_apply,
        )

    # ------------------------------------------------------------------
    # Auto-apply
    # ------------------------------------------------------------------

    async def auto_apply(self, subtotal: Decimal, user_id: Optional[str] = None) -> AutoApplyResult:
        now = self.clock()
        try:
            candidates = await self._bounded(
                self.discounts.list_auto_apply(subtotal, now, limit=self.config.auto_apply_candidate_limit),
                DISCOUNT_TABLE,
            )
        except StoreUnavailableError as e:
            logger.error(f"auto-apply lookup failed, no discount applied: {e}")
            return AutoApplyResult(has_auto_apply=False)

        has_completed_order = None
        if user_id and any(c.first_purchase_only for c in candidates):
            try:
                has_completed_order = await self._bounded(self.orders.has_completed_order(user_id), ORDER_TABLE)
            except StoreUnavailableError as e:
                logger.warning(f"auto-apply: order history unavailable, first-purchase candidates skipped: {e}")

        context = EligibilityContext(
            subtotal=subtotal, now=now, user_id=user_id, has_completed_order=has_completed_order,
        )
        best = select_best(candidates, context)
        if best is None:
            logger.debug(f"auto-apply: no eligible discount for subtotal={subtotal}")
            return AutoApplyResult(has_auto_apply=False)
        logger.info(f"auto-apply: selected {best.code} (priority={best.priority})")
        return AutoApplyResult(has_auto_apply=True, discount=summarize(best, subtotal, is_auto_apply=True))

    # ------------------------------------------------------------------
    # First order
    # ------------------------------------------------------------------

    async def first_order_discount(self, user_id: Optional[str], cart_total: Decimal) -> FirstOrderResult:
        if not user_id:
            return FirstOrderResult(has_first_order_discount=False, message=NOT_AUTHENTICATED)

        now = self.clock()
        code = self.config.first_order_code
        try:
            has_order, discount = await asyncio.gather(
                self._bounded(self.orders.has_completed_order(user_id), ORDER_TABLE),
                self._bounded(self.discounts.get_by_code(code), DISCOUNT_TABLE),
            )
        except StoreUnavailableError as e:
            logger.error(f"first-order check failed for user {user_id}: {e}")
            return FirstOrderResult(has_first_order_discount=False, message=FIRST_ORDER_UNAVAILABLE)

        if has_order:
            return FirstOrderResult(has_first_order_discount=False, message=ALREADY_ORDERED)
        if discount is None or not discount.is_active or not discount.first_purchase_only:
            logger.warning(f"first-order code {code} missing, inactive or not first-purchase-only")
            return FirstOrderResult(has_first_order_discount=False, message=FIRST_ORDER_UNAVAILABLE)

        context = EligibilityContext(
            subtotal=cart_total, now=now, user_id=user_id, has_completed_order=False,
        )
        eligibility = is_eligible(discount, context)
        if not eligibility.ok:
            return FirstOrderResult(
                has_first_order_discount=False,
                message=failure_message(eligibility.reason, discount),
            )
        return FirstOrderResult(
            has_first_order_discount=True,
            discount=summarize(discount, cart_total, is_first_order=True),
        )

    # ------------------------------------------------------------------
    # Tax
    # ------------------------------------------------------------------

    async def calculate_tax(self, country: Optional[str], state: Optional[str] = None) -> TaxResult:
        return await self.tax_resolver.resolve(country, state)

    # ------------------------------------------------------------------
    # Variant prices (external discount function)
    # ------------------------------------------------------------------

    async def variant_pricing(
        self,
        product_id: str,
        base_price: Decimal,
        variants: Iterable[VariantInput],
        category_id: Optional[str] = None,
    ) -> VariantPricingResult:
        async def price_one(variant: VariantInput) -> VariantPrice:
            price = base_price + variant.price_adjustment
            if self.variant_discounts is None:
                return merge_variant_discount(variant.variant_id, price, None)
            try:
                result = await self._bounded(
                    self.variant_discounts.get_variant_discount(variant.variant_id, product_id, category_id, price),
                    VARIANT_DISCOUNT_RPC,
                )
            except StoreUnavailableError as e:
                logger.warning(f"variant discount lookup failed for {variant.variant_id}: {e}")
                result = None
            return merge_variant_discount(variant.variant_id, price, result)

        priced = await asyncio.gather(*(price_one(v) for v in variants))
        return VariantPricingResult(product_id=product_id, variants=list(priced))


# ============================================================================
# Default wiring
# ============================================================================

def build_service(config: Optional[PricingConfig] = None) -> PricingService:
    """
    Build a service against Supabase when credentials are set, otherwise
    against in-memory repositories seeded from the config file.
    """
    config = config or get_config()
    if config.has_supabase:
        from pricing.data.repositories import (
            SupabaseDiscountRepository,
            SupabaseOrderRepository,
            SupabaseTaxRateRepository,
            SupabaseVariantDiscountGateway,
        )
        from pricing.utils.supabase_client import SupabaseClient

        client = SupabaseClient(
            config.supabase_url,
            config.supabase_key,
            timeout=config.store_timeout_seconds,
            retry_attempts=config.store_retry_attempts,
            retry_backoff=config.store_retry_backoff_seconds,
        )
        logger.info("Using Supabase repositories")
        return PricingService(
            discounts=SupabaseDiscountRepository(client),
            orders=SupabaseOrderRepository(client),
            tax_rates=SupabaseTaxRateRepository(client),
            variant_discounts=SupabaseVariantDiscountGateway(client),
            config=config,
            store_client=client,
        )

    from pricing.data.memory import (
        InMemoryDiscountRepository,
        InMemoryOrderRepository,
        InMemoryTaxRateRepository,
        InMemoryVariantDiscountGateway,
    )
    logger.warning("SUPABASE_URL/key not set - using in-memory demo data")
    return PricingService(
        discounts=InMemoryDiscountRepository(config.seed_discounts),
        orders=InMemoryOrderRepository(),
        tax_rates=InMemoryTaxRateRepository(config.seed_tax_rates),
        variant_discounts=InMemoryVariantDiscountGateway(),
        config=config,
    )
