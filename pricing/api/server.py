"""
FastAPI server for checkout pricing.

Provides the discount, tax and variant pricing endpoints used by the
storefront checkout. "Not eligible" and "no tax" are normal 200 answers;
only malformed input and store faults on code validation are errors.

Usage:
    python -m pricing.api.server
    # or
    uvicorn pricing.api.server:app --reload --port 8002
"""
import os
import time
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pricing import __version__
from pricing.api.models import (
    AutoApplyDiscountOut,
    AutoApplyRequest,
    AutoApplyResponse,
    CartItemIn,
    FirstOrderDiscountOut,
    FirstOrderResponse,
    HealthResponse,
    TaxBreakdownOut,
    TaxCalculateRequest,
    TaxCalculateResponse,
    ValidateDiscountRequest,
    ValidateDiscountResponse,
    VariantPriceOut,
    VariantPricingRequest,
    VariantPricingResponse,
)
from pricing.core.config import get_config
from pricing.core.errors import InputError, StoreUnavailableError
from pricing.core.service import (
    VALIDATION_FAILED,
    PricingService,
    ValidationResult,
    VariantInput,
    build_service,
)
from pricing.discounts.calculator import DiscountSummary
from pricing.discounts.records import CartItem
from pricing.tax.records import TaxResult
from pricing.utils.logger import get_logger, set_level

logger = get_logger("api.server")


# ============================================================================
# Service wiring
# ============================================================================

_service: Optional[PricingService] = None


def get_service() -> PricingService:
    """FastAPI dependency returning the process-wide pricing service."""
    global _service
    if _service is None:
        _service = build_service()
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    if config.log_level:
        set_level(config.log_level)
    logger.info(f"Pricing service {__version__} starting")
    yield
    if _service is not None:
        await _service.aclose()


app = FastAPI(
    title="Storefront Pricing API",
    description="Discount eligibility, auto-apply selection and tax resolution for checkout",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LatencyLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration for every non-OPTIONS request."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)
        t0 = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - t0) * 1000
        logger.info(
            "[LATENCY] %s %s -> %d  %.1fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response


app.add_middleware(LatencyLoggingMiddleware)


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(StoreUnavailableError)
async def store_error_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Pricing data temporarily unavailable"})


# ============================================================================
# Converters
# ============================================================================

def _to_cart_item(item: CartItemIn) -> CartItem:
    return CartItem(
        product_id=item.product_id,
        variant_id=item.variant_id,
        category_id=item.category_id,
        quantity=item.quantity,
        unit_price=item.unit_price,
    )


def _summary_fields(summary: DiscountSummary) -> dict:
    return dict(
        discount_id=summary.discount_id,
        code=summary.code,
        discount_type=summary.discount_type.value,
        discount_value=float(summary.discount_value),
        amount_off=float(summary.amount_off),
        display=summary.display,
        stackable=summary.stackable,
    )


def _auto_apply_out(summary: Optional[DiscountSummary]) -> Optional[AutoApplyDiscountOut]:
    if summary is None:
        return None
    return AutoApplyDiscountOut(**_summary_fields(summary), is_auto_apply=True)


def validation_response(result: ValidationResult) -> ValidateDiscountResponse:
    if not result.is_valid:
        return ValidateDiscountResponse(is_valid=False, message=result.message, amount_off=0)
    summary = result.discount
    return ValidateDiscountResponse(
        is_valid=True,
        message=result.message,
        amount_off=float(summary.amount_off),
        discount_id=summary.discount_id,
        discount_type=summary.discount_type.value,
        discount_value=float(summary.discount_value),
        maximum_discount=float(summary.maximum_discount) if summary.maximum_discount is not None else None,
        display=summary.display,
        stackable=summary.stackable,
        auto_apply_discount=_auto_apply_out(result.auto_apply_discount),
    )


def tax_response(result: TaxResult) -> TaxCalculateResponse:
    return TaxCalculateResponse(
        rate=float(result.rate),
        level=result.level.value,
        breakdown=TaxBreakdownOut(
            gst=float(result.breakdown.gst),
            pst=float(result.breakdown.pst),
            qst=float(result.breakdown.qst),
            hst=float(result.breakdown.hst),
        ),
        country=result.country,
        state=result.state,
        state_name=result.state_name,
        tax_type=result.tax_type,
        message=result.message,
    )


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", version=__version__)


@app.post("/discounts/validate", response_model=ValidateDiscountResponse, response_model_exclude_none=True)
async def validate_discount(
    request: ValidateDiscountRequest,
    user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    service: PricingService = Depends(get_service),
):
    """
    Validate a shopper-entered discount code against the cart.

    Also reports the best auto-apply discount (if any) so the caller can
    decide whether to combine it, gated by the code's `stackable` flag.
    """
    logger.info(
        f"discount validation: code={request.code!r} user={user_id or 'GUEST'} "
        f"subtotal={request.subtotal} items={len(request.items)}"
    )
    try:
        result = await service.validate(
            request.code,
            subtotal=request.subtotal,
            cart_items=[_to_cart_item(i) for i in request.items],
            user_id=user_id,
        )
    except StoreUnavailableError as e:
        logger.error(f"discount validation failed: {e}")
        raise HTTPException(status_code=503, detail=VALIDATION_FAILED)
    return validation_response(result)


@app.post("/discounts/auto-apply", response_model=AutoApplyResponse)
async def auto_apply_discount(
    request: AutoApplyRequest,
    user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    service: PricingService = Depends(get_service),
):
    """Return the highest-priority eligible auto-apply discount, if any."""
    result = await service.auto_apply(request.subtotal, user_id=user_id)
    return AutoApplyResponse(
        has_auto_apply=result.has_auto_apply,
        discount=_auto_apply_out(result.discount),
    )


@app.get("/discounts/first-order", response_model=FirstOrderResponse, response_model_exclude_none=True)
async def first_order_discount(
    total: Decimal = Query(default=Decimal("0"), ge=0, description="Current cart total"),
    user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    service: PricingService = Depends(get_service),
):
    """Offer the welcome discount to signed-in shoppers without a completed order."""
    result = await service.first_order_discount(user_id, total)
    discount = None
    if result.discount is not None:
        discount = FirstOrderDiscountOut(**_summary_fields(result.discount), is_first_order=True)
    return FirstOrderResponse(
        has_first_order_discount=result.has_first_order_discount,
        discount=discount,
        message=result.message,
    )


@app.post("/tax/calculate", response_model=TaxCalculateResponse, response_model_exclude_none=True)
async def calculate_tax(
    request: TaxCalculateRequest,
    service: PricingService = Depends(get_service),
):
    """Resolve the tax rate for a country/state, falling back to the country rate."""
    result = await service.calculate_tax(request.country, request.state)
    return tax_response(result)


@app.post("/products/variant-pricing", response_model=VariantPricingResponse)
async def variant_pricing(
    request: VariantPricingRequest,
    service: PricingService = Depends(get_service),
):
    """Merge the store's per-variant discount answers into a product's variants."""
    result = await service.variant_pricing(
        request.product_id,
        request.base_price,
        [VariantInput(v.variant_id, v.price_adjustment) for v in request.variants],
        category_id=request.category_id,
    )
    return VariantPricingResponse(
        product_id=result.product_id,
        variants=[
            VariantPriceOut(
                variant_id=v.variant_id,
                price=float(v.price),
                has_discount=v.has_discount,
                discount_percentage=float(v.discount_percentage),
                discounted_price=float(v.discounted_price),
            )
            for v in result.variants
        ],
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pricing.api.server:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8002")),
        reload=True,
    )
