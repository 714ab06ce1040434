"""
Pydantic models for pricing API requests and responses.

Wire format is camelCase; requests also accept snake_case keys. Money comes
in as Decimal and goes out as JSON numbers.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Requests
# ============================================================================

class CartItemIn(CamelModel):
    """One cart line."""
    product_id: str = Field(validation_alias=AliasChoices("productId", "product_id"))
    variant_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("variantId", "variant_id"))
    category_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("categoryId", "category_id"))
    quantity: int = Field(gt=0, description="Units of this line")
    unit_price: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        validation_alias=AliasChoices("unitPrice", "unit_price", "price"),
        description="Price per unit",
    )


class ValidateDiscountRequest(CamelModel):
    """Request model for discount code validation."""
    code: Optional[str] = Field(default=None, description="Code typed by the shopper (case-insensitive)")
    subtotal: Optional[Decimal] = Field(default=None, ge=0, description="Cart subtotal; summed from items when omitted")
    items: List[CartItemIn] = Field(default_factory=list)


class AutoApplyRequest(CamelModel):
    """Request model for auto-apply discount lookup."""
    subtotal: Decimal = Field(ge=0)


class TaxCalculateRequest(CamelModel):
    """Request model for tax resolution."""
    country: Optional[str] = Field(default=None, description="ISO country code")
    state: Optional[str] = Field(default=None, description="State/province code")


class VariantIn(CamelModel):
    variant_id: str
    price_adjustment: Decimal = Decimal("0")


class VariantPricingRequest(CamelModel):
    """Request model for merging variant discounts into a product."""
    product_id: str
    category_id: Optional[str] = None
    base_price: Decimal = Field(ge=0)
    variants: List[VariantIn] = Field(default_factory=list)


# ============================================================================
# Responses
# ============================================================================

class DiscountSummaryOut(CamelModel):
    discount_id: str
    code: str
    discount_type: str
    discount_value: float
    amount_off: float
    display: str
    stackable: bool


class AutoApplyDiscountOut(DiscountSummaryOut):
    is_auto_apply: bool = True


class FirstOrderDiscountOut(DiscountSummaryOut):
    is_first_order: bool = True


class ValidateDiscountResponse(CamelModel):
    """Response model for discount code validation."""
    is_valid: bool
    message: str
    amount_off: float = 0
    discount_id: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    maximum_discount: Optional[float] = None
    display: Optional[str] = None
    stackable: Optional[bool] = None
    auto_apply_discount: Optional[AutoApplyDiscountOut] = None


class AutoApplyResponse(CamelModel):
    """Response model for auto-apply lookup."""
    has_auto_apply: bool
    discount: Optional[AutoApplyDiscountOut] = None


class FirstOrderResponse(CamelModel):
    """Response model for first-order discount check."""
    has_first_order_discount: bool
    discount: Optional[FirstOrderDiscountOut] = None
    message: Optional[str] = None


class TaxBreakdownOut(CamelModel):
    gst: float = 0
    pst: float = 0
    qst: float = 0
    hst: float = 0


class TaxCalculateResponse(CamelModel):
    """Response model for tax resolution."""
    rate: float
    level: str = Field(description="'state', 'country' or 'none'")
    breakdown: TaxBreakdownOut = Field(default_factory=TaxBreakdownOut)
    country: Optional[str] = None
    state: Optional[str] = None
    state_name: Optional[str] = None
    tax_type: Optional[str] = None
    message: Optional[str] = None


class VariantPriceOut(CamelModel):
    variant_id: str
    price: float
    has_discount: bool
    discount_percentage: float
    discounted_price: float


class VariantPricingResponse(CamelModel):
    product_id: str
    variants: List[VariantPriceOut]


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    version: str
